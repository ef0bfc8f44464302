#!/usr/bin/env python
"""
HTTP endpoint streaming page events for an uploaded PDF.

Run with:
    python -m pdfmath.server --port 8000

POST /api/process-pdf with a multipart form field ``pdf`` (or a raw
``application/pdf`` body). The response is ``text/event-stream``: one
``data: <json>`` frame per event, written as soon as it is produced.
"""

import argparse
import json
import logging
from email import policy
from email.parser import BytesParser
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional, Tuple

from .config import ServerConfig, get_config
from .errors import InputError
from .utils.io import validate_pdf_upload
from .utils.layout import DEFAULT_LINE_THRESHOLD
from .utils.stream import encode_event, process_upload

logger = logging.getLogger("pdfmath.server")


def parse_upload(
    body: bytes,
    content_type: str,
    field_name: str = "pdf"
) -> Tuple[Optional[bytes], Optional[str], Optional[str]]:
    """
    Extract the uploaded file from a request body.

    Returns:
        (data, filename, content_type) of the file; data is None when the
        request carries no file
    """
    mime = content_type.split(";")[0].strip().lower()

    if mime == "application/pdf":
        return (body or None), None, mime

    if mime != "multipart/form-data":
        return None, None, None

    header = f"Content-Type: {content_type}\r\nMIME-Version: 1.0\r\n\r\n".encode("latin-1")
    message = BytesParser(policy=policy.default).parsebytes(header + body)
    if not message.is_multipart():
        return None, None, None

    for part in message.iter_parts():
        if part.get_param("name", header="content-disposition") != field_name:
            continue
        filename = part.get_filename()
        data = part.get_payload(decode=True)
        if not filename and not data:
            return None, None, None
        return data or b"", filename, part.get_content_type()

    return None, None, None


class ProcessPdfHandler(BaseHTTPRequestHandler):
    """Request handler for the processing endpoint."""

    server_version = "pdfmath/1.0"
    config: ServerConfig = ServerConfig()
    line_threshold: float = DEFAULT_LINE_THRESHOLD

    def do_POST(self) -> None:  # noqa: N802
        if self.path.split("?")[0] != self.config.endpoint:
            self._send_json(HTTPStatus.NOT_FOUND, {"error": "Not found"})
            return

        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            length = -1
        if length < 0:
            self._send_json(HTTPStatus.BAD_REQUEST, {"error": "Invalid Content-Length"})
            return
        if length > self.config.max_upload_bytes:
            self._send_json(HTTPStatus.REQUEST_ENTITY_TOO_LARGE, {"error": "File too large"})
            return

        body = self.rfile.read(length) if length else b""
        data, filename, file_type = parse_upload(
            body,
            self.headers.get("Content-Type", ""),
            field_name=self.config.form_field
        )

        if data is not None:
            try:
                validate_pdf_upload(data, filename=filename, content_type=file_type)
            except InputError as e:
                self._send_json(HTTPStatus.BAD_REQUEST, {"error": str(e)})
                return

        self._stream(data)

    def _stream(self, data: Optional[bytes]) -> None:
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", "text/event-stream")
        self.send_header("Cache-Control", "no-cache")
        self.send_header("Connection", "close")
        self.end_headers()

        events = process_upload(data, line_threshold=self.line_threshold)
        try:
            for event in events:
                self.wfile.write(encode_event(event))
                self.wfile.flush()
        except (BrokenPipeError, ConnectionResetError):
            logger.info("Client disconnected, stopping stream")
        finally:
            events.close()

    def _send_json(self, status: HTTPStatus, payload: dict) -> None:
        body = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args) -> None:  # noqa: A003
        logger.debug("%s - %s", self.address_string(), format % args)


def make_server(host: str, port: int, line_threshold: float = DEFAULT_LINE_THRESHOLD) -> ThreadingHTTPServer:
    config = get_config()
    handler = type(
        "ConfiguredProcessPdfHandler",
        (ProcessPdfHandler,),
        {"config": config.server, "line_threshold": line_threshold}
    )
    return ThreadingHTTPServer((host, port), handler)


def main():
    """Main entry point."""
    config = get_config()
    parser = argparse.ArgumentParser(description="PDF math extraction server")
    parser.add_argument("--host", default=config.server.host)
    parser.add_argument("--port", type=int, default=config.server.port)
    parser.add_argument(
        "--line-threshold",
        type=float,
        default=config.layout.line_break_threshold,
        help="Baseline delta that starts a new line (default: 5)"
    )
    args = parser.parse_args()

    server = make_server(args.host, args.port, line_threshold=args.line_threshold)
    logger.info(f"Serving on http://{args.host}:{args.port}{config.server.endpoint}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        server.server_close()


if __name__ == "__main__":
    main()
