"""
Utility modules for the PDF math extraction pipeline.
"""

from .layout import PositionedFragment, PageText, reconstruct_lines
from .io import open_pdf, validate_pdf_upload, PdfDocument, PdfPage, save_json
from .latex import annotate, AnnotatedPage, ANNOTATION_RULES, validate_latex
from .stream import (
    StreamEvent, process_upload, iter_page_events, encode_event,
    SSEDecoder, EventChannel, ResultCollector,
)
from .render import MathRenderer, MathSegment, segment_line, render_line, render_content
from .export import export_text, DocumentExporter

__all__ = [
    # Layout
    "PositionedFragment", "PageText", "reconstruct_lines",
    # IO
    "open_pdf", "validate_pdf_upload", "PdfDocument", "PdfPage", "save_json",
    # Annotation
    "annotate", "AnnotatedPage", "ANNOTATION_RULES", "validate_latex",
    # Streaming
    "StreamEvent", "process_upload", "iter_page_events", "encode_event",
    "SSEDecoder", "EventChannel", "ResultCollector",
    # Rendering
    "MathRenderer", "MathSegment", "segment_line", "render_line", "render_content",
    # Export
    "export_text", "DocumentExporter",
]
