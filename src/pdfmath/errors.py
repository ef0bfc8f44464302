"""
Exception hierarchy for the PDF math extraction pipeline.
"""

from typing import Optional


class PdfMathError(Exception):
    """Base class for all pipeline errors."""


class InputError(PdfMathError):
    """No file was supplied, or the supplied file is not a PDF."""


class DecodeError(PdfMathError):
    """The document could not be parsed."""


class PageProcessingError(PdfMathError):
    """Extraction or annotation of a single page failed."""

    def __init__(self, message: str, page_number: Optional[int] = None):
        super().__init__(message)
        self.page_number = page_number


class RenderError(PdfMathError):
    """A math segment could not be rendered. Always recovered locally."""
