"""
Line reconstruction for extracted PDF text.

Groups positioned text fragments of a page into newline-delimited lines by
comparing consecutive baselines. Fragments are never reordered: if the
decoder yields them out of visual order, the output follows that order.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

DEFAULT_LINE_THRESHOLD = 5.0

_MULTI_SPACE_RE = re.compile(r' +')


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class PositionedFragment:
    """A decoder-reported run of text at a given baseline."""
    text: str
    baseline_y: float


@dataclass(frozen=True)
class PageText:
    """Reconstructed plain text of one page."""
    page_number: int
    raw_text: str

    def __post_init__(self):
        if self.page_number < 1:
            raise ValueError(f"Page numbers start at 1, got {self.page_number}")


# ============================================================================
# Line Reconstruction
# ============================================================================

def reconstruct_lines(
    fragments: Iterable[PositionedFragment],
    threshold: float = DEFAULT_LINE_THRESHOLD
) -> str:
    """
    Join fragments into lines.

    A line break is inserted before a fragment whose baseline differs from
    the previous fragment's baseline by strictly more than ``threshold``.
    Each fragment is followed by a single space; runs of spaces are then
    collapsed and the whole result is stripped.

    Args:
        fragments: Fragments of one page in extraction order
        threshold: Baseline delta that starts a new line

    Returns:
        Newline-delimited page text ("" for no fragments)
    """
    parts = []
    last_y: Optional[float] = None

    for fragment in fragments:
        if last_y is not None and abs(fragment.baseline_y - last_y) > threshold:
            parts.append('\n')
        parts.append(fragment.text)
        parts.append(' ')
        last_y = fragment.baseline_y

    text = _MULTI_SPACE_RE.sub(' ', ''.join(parts))
    return text.strip()


def build_page_text(
    page_number: int,
    fragments: Iterable[PositionedFragment],
    threshold: float = DEFAULT_LINE_THRESHOLD
) -> PageText:
    """Reconstruct the text of one page."""
    raw_text = reconstruct_lines(fragments, threshold=threshold)
    logger.debug(f"Page {page_number}: reconstructed {raw_text.count(chr(10)) + 1 if raw_text else 0} line(s)")
    return PageText(page_number=page_number, raw_text=raw_text)
