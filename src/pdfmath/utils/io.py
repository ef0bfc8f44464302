"""
I/O utilities for the PDF math extraction pipeline.

Handles:
- Upload validation
- PDF decoding through PyMuPDF
- Per-page text span extraction with baselines
- JSON serialization
"""

import json
import logging
from pathlib import Path
from typing import List, Union, Optional, Any, Iterator
from dataclasses import asdict

import fitz  # PyMuPDF

from ..errors import DecodeError, InputError
from .layout import PositionedFragment

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"
PDF_MIME_TYPE = "application/pdf"


# ============================================================================
# Input Validation
# ============================================================================

def is_pdf_bytes(data: bytes) -> bool:
    """Check the PDF header within the first KiB (some writers prepend junk)."""
    return PDF_MAGIC in data[:1024]


def validate_pdf_upload(
    data: Optional[bytes],
    filename: Optional[str] = None,
    content_type: Optional[str] = None
) -> bytes:
    """
    Reject missing or non-PDF uploads before any processing starts.

    Args:
        data: Uploaded file content (None if no file was sent)
        filename: Original file name, if known
        content_type: Declared MIME type, if known

    Returns:
        The validated bytes

    Raises:
        InputError: If no file was supplied or it is not a PDF
    """
    if data is None:
        raise InputError("No file provided")

    declared_pdf = (
        (content_type or "").split(";")[0].strip().lower() == PDF_MIME_TYPE
        or (filename or "").lower().endswith(".pdf")
    )
    if not declared_pdf and not is_pdf_bytes(data):
        raise InputError("Please select a PDF file")

    return data


def read_pdf_file(pdf_path: Union[str, Path]) -> bytes:
    """
    Read a PDF from disk.

    Raises:
        FileNotFoundError: If the file doesn't exist
        InputError: If the file is not a PDF
    """
    pdf_path = Path(pdf_path)
    if not pdf_path.exists():
        raise FileNotFoundError(f"PDF file not found: {pdf_path}")

    data = pdf_path.read_bytes()
    return validate_pdf_upload(data, filename=pdf_path.name)


# ============================================================================
# PDF Decoding
# ============================================================================

class PdfPage:
    """One decoded page."""

    def __init__(self, page: "fitz.Page", page_number: int):
        self._page = page
        self.page_number = page_number

    def get_fragments(self) -> List[PositionedFragment]:
        """
        Text spans of the page in extraction order.

        The baseline is the span origin's vertical coordinate.
        """
        return list(self._iter_spans())

    def _iter_spans(self) -> Iterator[PositionedFragment]:
        text_dict = self._page.get_text("dict")
        for block in text_dict.get("blocks", []):
            # type 0 = text, 1 = image
            if block.get("type", 0) != 0:
                continue
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    yield PositionedFragment(
                        text=span.get("text", ""),
                        baseline_y=float(span["origin"][1])
                    )


class PdfDocument:
    """
    Decoded document handle.

    Acquire once per request and close on every exit path; usable as a
    context manager.
    """

    def __init__(self, doc: "fitz.Document"):
        self._doc = doc
        self._closed = False

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    @property
    def closed(self) -> bool:
        return self._closed

    def get_page(self, page_number: int) -> PdfPage:
        """Load a page by its 1-based number."""
        if not 1 <= page_number <= self.page_count:
            raise IndexError(
                f"Page {page_number} out of range (1-{self.page_count})"
            )
        return PdfPage(self._doc.load_page(page_number - 1), page_number)

    def close(self):
        if not self._closed:
            self._doc.close()
            self._closed = True
            logger.debug("Closed PDF document")

    def __enter__(self) -> "PdfDocument":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def open_pdf(data: bytes) -> PdfDocument:
    """
    Decode PDF bytes.

    Args:
        data: Raw PDF content

    Returns:
        PdfDocument handle

    Raises:
        DecodeError: If the content is not a parseable PDF
    """
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as e:
        raise DecodeError(f"Failed to parse PDF: {e}") from e

    if doc.needs_pass:
        doc.close()
        raise DecodeError("Failed to parse PDF: document is encrypted")

    try:
        page_count = doc.page_count
    except Exception as e:
        doc.close()
        raise DecodeError(f"Failed to parse PDF: {e}") from e

    logger.info(f"Opened PDF with {page_count} page(s)")
    return PdfDocument(doc)


# ============================================================================
# JSON Serialization
# ============================================================================

class EnhancedJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles dataclasses and paths."""

    def default(self, obj):
        if hasattr(obj, 'to_dict'):
            return obj.to_dict()
        if hasattr(obj, '__dataclass_fields__'):
            return asdict(obj)
        if isinstance(obj, Path):
            return str(obj)
        return super().default(obj)


def save_json(
    data: Any,
    output_path: Union[str, Path],
    indent: int = 2,
    ensure_ascii: bool = False
) -> Path:
    """
    Save data to a JSON file.

    Args:
        data: Data to serialize (dict, list, dataclass, etc.)
        output_path: Path to save the JSON file
        indent: Indentation level for pretty printing
        ensure_ascii: If True, escape non-ASCII characters

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, ensure_ascii=ensure_ascii, cls=EnhancedJSONEncoder)

    logger.debug(f"Saved JSON: {output_path}")
    return output_path
