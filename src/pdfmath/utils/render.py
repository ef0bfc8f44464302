"""
Segmentation and rendering of annotated lines.

A line is split into plain-text and math segments at ``$$...$$`` spans, or,
when the line has no block span, at ``$...$`` spans. Each math segment is
rendered to MathML independently; a segment that fails to render falls back
to its literal delimited text.
"""

import html
import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..errors import RenderError
from .latex import BLOCK_DELIMITER, INLINE_DELIMITER, validate_latex

logger = logging.getLogger(__name__)

NBSP = "\u00a0"

_BLOCK_SPAN_RE = re.compile(r'\$\$(.*?)\$\$')
_INLINE_SPAN_RE = re.compile(r'\$(.*?)\$')


# ============================================================================
# Segments
# ============================================================================

class SegmentKind:
    """Segment kind identifiers."""
    TEXT = "text"
    INLINE = "inline"
    BLOCK = "block"


@dataclass(frozen=True)
class MathSegment:
    """A piece of one annotated line."""
    kind: str
    raw: str

    @property
    def is_math(self) -> bool:
        return self.kind != SegmentKind.TEXT

    @property
    def display_mode(self) -> bool:
        return self.kind == SegmentKind.BLOCK

    @property
    def literal(self) -> str:
        """The segment as it appeared in the line, delimiters included."""
        if self.kind == SegmentKind.BLOCK:
            return f"{BLOCK_DELIMITER}{self.raw}{BLOCK_DELIMITER}"
        if self.kind == SegmentKind.INLINE:
            return f"{INLINE_DELIMITER}{self.raw}{INLINE_DELIMITER}"
        return self.raw


def segment_line(line: str) -> List[MathSegment]:
    """
    Split one line into ordered, gap-free segments.

    Block spans are looked for first; inline spans only when the line has no
    block span at all, so a ``$...$`` next to a ``$$...$$`` stays literal
    text. An empty line yields a single non-breaking space segment.
    """
    matches = list(_BLOCK_SPAN_RE.finditer(line))
    kind = SegmentKind.BLOCK
    if not matches:
        matches = list(_INLINE_SPAN_RE.finditer(line))
        kind = SegmentKind.INLINE

    segments = []
    last_index = 0
    for match in matches:
        if match.start() > last_index:
            segments.append(MathSegment(SegmentKind.TEXT, line[last_index:match.start()]))
        segments.append(MathSegment(kind, match.group(1)))
        last_index = match.end()

    if last_index < len(line):
        segments.append(MathSegment(SegmentKind.TEXT, line[last_index:]))

    if not segments:
        segments.append(MathSegment(SegmentKind.TEXT, line or NBSP))

    return segments


# ============================================================================
# Math Renderer
# ============================================================================

@dataclass
class RenderedMath:
    """Result of rendering one markup string."""
    markup: str
    display_mode: bool
    output: str = ""
    ok: bool = True
    error: Optional[str] = None


Backend = Callable[[str, bool], str]


def latex2mathml_backend(markup: str, display_mode: bool) -> str:
    """Convert LaTeX to MathML with latex2mathml."""
    from latex2mathml.converter import convert

    return convert(markup, display="block" if display_mode else "inline")


class MathRenderer:
    """
    Renders math markup, reporting failure through ``RenderedMath.ok``
    instead of raising.
    """

    def __init__(self, backend: Optional[Backend] = None, validate: bool = True):
        self.backend = backend or latex2mathml_backend
        self.validate = validate

    def _convert(self, markup: str, display_mode: bool) -> str:
        if self.validate:
            is_valid, message = validate_latex(markup)
            if not is_valid:
                raise RenderError(message)
        try:
            return self.backend(markup, display_mode)
        except Exception as e:
            raise RenderError(str(e) or type(e).__name__) from e

    def render(self, markup: str, display_mode: bool) -> RenderedMath:
        try:
            output = self._convert(markup, display_mode)
        except RenderError as e:
            logger.debug(f"Math render failed for {markup!r}: {e}")
            return RenderedMath(markup, display_mode, ok=False, error=str(e))
        return RenderedMath(markup, display_mode, output=output)


# ============================================================================
# Line Rendering
# ============================================================================

@dataclass
class RenderedSegment:
    """A segment together with its rendered form."""
    segment: MathSegment
    math: Optional[RenderedMath] = None

    @property
    def ok(self) -> bool:
        return self.math is None or self.math.ok

    @property
    def text(self) -> str:
        """Plain-text form: raw text, or the literal math on failure."""
        if not self.segment.is_math:
            return self.segment.raw
        if self.ok:
            return self.math.output
        return self.segment.literal

    def to_html(self) -> str:
        if not self.segment.is_math or not self.ok:
            return f"<span>{html.escape(self.text)}</span>"
        if self.segment.display_mode:
            return f'<span class="math-display">{self.math.output}</span>'
        return f'<span class="math-inline">{self.math.output}</span>'


def render_line(line: str, renderer: Optional[MathRenderer] = None) -> List[RenderedSegment]:
    """Segment a line and render each math segment."""
    renderer = renderer or MathRenderer()
    rendered = []
    for segment in segment_line(line):
        if segment.is_math:
            rendered.append(RenderedSegment(segment, renderer.render(segment.raw, segment.display_mode)))
        else:
            rendered.append(RenderedSegment(segment))
    return rendered


def render_line_html(line: str, renderer: Optional[MathRenderer] = None) -> str:
    spans = "".join(seg.to_html() for seg in render_line(line, renderer))
    return f'<div class="math-line">{spans}</div>'


def render_content(content: str, renderer: Optional[MathRenderer] = None) -> str:
    """Render a page's annotated content to HTML, one div per line."""
    renderer = renderer or MathRenderer()
    lines = content.split("\n")
    return '<div class="math-content">' + "".join(
        render_line_html(line, renderer) for line in lines
    ) + '</div>'


def _no_backend(markup: str, display_mode: bool) -> str:
    raise RenderError("Math rendering disabled")


RENDER_BACKENDS = {
    "latex2mathml": latex2mathml_backend,
    "none": _no_backend,
}


def create_renderer(backend: str = "latex2mathml") -> MathRenderer:
    """Build a renderer for a configured backend name."""
    if backend not in RENDER_BACKENDS:
        raise ValueError(f"Unknown render backend: {backend}")
    return MathRenderer(backend=RENDER_BACKENDS[backend])
