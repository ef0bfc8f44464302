#!/usr/bin/env python
"""
Command-line interface for the PDF math extraction pipeline.

Usage:
    pdfmath --input <pdf> --output <output_dir> [options]

Examples:
    # Process a PDF locally and write the text export
    pdfmath --input paper.pdf --output ./output

    # Export both text and JSON
    pdfmath --input paper.pdf --output ./output --format all

    # Send the PDF to a running server and consume its event stream
    pdfmath --input paper.pdf --output ./output --server http://127.0.0.1:8000
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Iterator

from . import __version__
from .config import get_config, EventType
from .utils.io import read_pdf_file
from .utils.stream import (
    EventChannel, ResultCollector, StreamEvent, iter_sse_events, process_upload
)
from .utils.export import DocumentExporter

logger = logging.getLogger("pdfmath")


def setup_argparser() -> argparse.ArgumentParser:
    """Create argument parser."""
    config = get_config()
    parser = argparse.ArgumentParser(
        description="PDF Math Extraction - extract text and LaTeX equations from PDF documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Process a PDF and export text:
    pdfmath --input paper.pdf --output ./output

  Export text and JSON:
    pdfmath --input paper.pdf --output ./output --format all

  Use a running server:
    pdfmath --input paper.pdf --output ./output --server http://127.0.0.1:8000
        """
    )

    parser.add_argument(
        "--input", "-i",
        required=True,
        help="Input PDF file"
    )

    parser.add_argument(
        "--output", "-o",
        required=True,
        help="Output directory for generated files"
    )

    parser.add_argument(
        "--format", "-f",
        nargs="+",
        default=["text"],
        choices=["text", "json", "all"],
        help="Output format(s) (default: text)"
    )

    parser.add_argument(
        "--server",
        default=None,
        help="Base URL of a pdfmath server; process remotely instead of locally"
    )

    parser.add_argument(
        "--line-threshold",
        type=float,
        default=config.layout.line_break_threshold,
        help="Baseline delta that starts a new line (default: 5)"
    )

    parser.add_argument(
        "--max-pages",
        type=int,
        default=None,
        help="Process at most this many pages (default: all)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-error output"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def remote_events(server_url: str, pdf_path: Path, timeout: float = 300.0) -> Iterator[StreamEvent]:
    """Post a PDF to a server and decode its event stream as it arrives."""
    import requests

    config = get_config()
    url = server_url.rstrip("/") + config.server.endpoint

    with open(pdf_path, "rb") as f:
        files = {config.server.form_field: (pdf_path.name, f, "application/pdf")}
        with requests.post(url, files=files, stream=True, timeout=timeout) as response:
            if not response.ok:
                raise RuntimeError(f"Failed to process PDF: HTTP {response.status_code}")
            yield from iter_sse_events(response.iter_content(chunk_size=None))


def run_pipeline(args) -> int:
    """Run extraction and export; returns the process exit code."""
    config = get_config()
    start_time = time.time()

    input_path = Path(args.input)

    if args.server:
        events = remote_events(args.server, input_path)
    else:
        data = read_pdf_file(input_path)
        events = EventChannel(
            process_upload(
                data,
                line_threshold=args.line_threshold,
                max_pages=args.max_pages
            ),
            maxsize=config.stream.channel_maxsize
        )

    collector = ResultCollector()
    try:
        for event in events:
            collector.apply(event)
            if event.type == EventType.PROGRESS:
                logger.info(event.message)
            elif event.type == EventType.PAGE:
                logger.debug(f"Received page {event.page.page_number}")
    finally:
        close = getattr(events, "close", None)
        if close is not None:
            close()

    if collector.pages:
        exporter = DocumentExporter(
            args.output,
            text_filename=config.export.text_filename,
            json_filename=config.export.json_filename
        )
        for fmt, path in exporter.export(collector.pages, args.format).items():
            logger.info(f"Exported {fmt}: {path}")

    if collector.error is not None:
        logger.error(collector.error)
        return 1

    elapsed = time.time() - start_time
    if not args.quiet:
        print("\n" + "=" * 60)
        print("EXTRACTION COMPLETE")
        print("=" * 60)
        print(f"Source: {input_path}")
        print(f"Output: {args.output}")
        print(f"Pages processed: {len(collector.pages)}")
        print(f"Processing time: {elapsed:.2f}s")
        print("=" * 60)

    return 0


def main():
    """Main entry point."""
    parser = setup_argparser()
    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    try:
        exit_code = run_pipeline(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args.verbose:
            raise
        sys.exit(1)


if __name__ == "__main__":
    main()
