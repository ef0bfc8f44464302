"""
Export module for extracted pages.

Provides:
- Plain-text export (one ``=== Page n ===`` section per page)
- JSON export of the page list
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Union

from .io import save_json
from .latex import AnnotatedPage

logger = logging.getLogger(__name__)


def export_text(pages: Iterable[AnnotatedPage]) -> str:
    """Concatenate pages as ``\\n\\n=== Page <n> ===\\n\\n<content>``, joined by newlines."""
    return "\n".join(
        f"\n\n=== Page {page.page_number} ===\n\n{page.content}"
        for page in pages
    )


def export_json(pages: Iterable[AnnotatedPage]) -> List[Dict[str, object]]:
    return [page.to_dict() for page in pages]


class TextExporter:
    """Export pages to a plain-text file."""

    def export(
        self,
        pages: Iterable[AnnotatedPage],
        output_path: Union[str, Path]
    ) -> Path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(export_text(pages), encoding="utf-8")
        logger.info(f"Text exported to: {output_path}")
        return output_path


class JsonExporter:
    """Export pages to a JSON file."""

    def export(
        self,
        pages: Iterable[AnnotatedPage],
        output_path: Union[str, Path]
    ) -> Path:
        path = save_json(export_json(pages), output_path)
        logger.info(f"JSON exported to: {path}")
        return path


class DocumentExporter:
    """Convenience class for exporting to multiple formats."""

    def __init__(
        self,
        output_dir: Union[str, Path],
        text_filename: str = "extracted-math-content.txt",
        json_filename: str = "pages.json"
    ):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.text_filename = text_filename
        self.json_filename = json_filename

    def export(
        self,
        pages: Iterable[AnnotatedPage],
        formats: Iterable[str] = ("text",)
    ) -> Dict[str, Path]:
        """
        Export pages to the requested formats.

        Args:
            pages: Pages in received order
            formats: Any of "text", "json" ("all" for both)

        Returns:
            Dictionary mapping format to output path
        """
        pages = list(pages)
        formats = set(formats)
        if "all" in formats:
            formats = {"text", "json"}

        results = {}

        if "text" in formats:
            try:
                results["text"] = TextExporter().export(
                    pages, self.output_dir / self.text_filename
                )
            except OSError as e:
                logger.error(f"Text export failed: {e}")

        if "json" in formats:
            try:
                results["json"] = JsonExporter().export(
                    pages, self.output_dir / self.json_filename
                )
            except OSError as e:
                logger.error(f"JSON export failed: {e}")

        return results
