"""
Page-by-page event stream for PDF math extraction.

Provides:
- Typed stream events (progress, page, complete, error)
- The page driver: decode, reconstruct, annotate, emit, in page order
- Server-sent-event framing and an incremental decoder
- A bounded producer/consumer channel running the driver on a thread
- The consumer-side result collector
"""

import codecs
import json
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Any, Iterable, Iterator, List, Optional

from ..config import EventType, StreamConfig
from ..errors import PageProcessingError
from .io import PdfDocument, open_pdf
from .latex import AnnotatedPage, annotate, annotate_page
from .layout import DEFAULT_LINE_THRESHOLD, build_page_text

logger = logging.getLogger(__name__)

_DEFAULTS = StreamConfig()


# ============================================================================
# Events
# ============================================================================

@dataclass(frozen=True)
class StreamEvent:
    """One event of the processing stream."""
    type: str
    message: Optional[str] = None
    page: Optional[AnnotatedPage] = None

    @classmethod
    def progress(cls, message: str) -> "StreamEvent":
        return cls(EventType.PROGRESS, message=message)

    @classmethod
    def page_done(cls, page: AnnotatedPage) -> "StreamEvent":
        return cls(EventType.PAGE, page=page)

    @classmethod
    def complete(cls, message: str = _DEFAULTS.complete_message) -> "StreamEvent":
        return cls(EventType.COMPLETE, message=message)

    @classmethod
    def error(cls, message: str) -> "StreamEvent":
        return cls(EventType.ERROR, message=message)

    @property
    def is_terminal(self) -> bool:
        return self.type in (EventType.COMPLETE, EventType.ERROR)

    def to_dict(self) -> Dict[str, Any]:
        if self.type == EventType.PAGE:
            return {"type": self.type, "data": self.page.to_dict()}
        return {"type": self.type, "message": self.message}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StreamEvent":
        event_type = data.get("type")
        if event_type == EventType.PAGE:
            return cls.page_done(AnnotatedPage.from_dict(data["data"]))
        if event_type in (EventType.PROGRESS, EventType.COMPLETE, EventType.ERROR):
            return cls(event_type, message=data.get("message"))
        raise ValueError(f"Unknown event type: {event_type!r}")


# ============================================================================
# Page Driver
# ============================================================================

def iter_page_events(
    document: PdfDocument,
    annotator: Callable[[str], str] = annotate,
    line_threshold: float = DEFAULT_LINE_THRESHOLD,
    max_pages: Optional[int] = None
) -> Iterator[StreamEvent]:
    """
    Emit progress and page events for an open document.

    Pages are processed one at a time in increasing order. The caller owns
    the document handle.

    Raises:
        PageProcessingError: If extracting or annotating a page fails
    """
    num_pages = document.page_count
    if max_pages is not None:
        num_pages = min(num_pages, max_pages)

    yield StreamEvent.progress(f"Processing {num_pages} pages...")

    for page_num in range(1, num_pages + 1):
        yield StreamEvent.progress(f"Processing page {page_num} of {num_pages}...")

        try:
            fragments = document.get_page(page_num).get_fragments()
            page_text = build_page_text(page_num, fragments, threshold=line_threshold)
            annotated = annotate_page(page_text, annotator=annotator)
        except Exception as e:
            raise PageProcessingError(
                str(e) or f"Failed to process page {page_num}",
                page_number=page_num
            ) from e

        yield StreamEvent.page_done(annotated)


def process_upload(
    data: Optional[bytes],
    opener: Callable[[bytes], PdfDocument] = open_pdf,
    annotator: Callable[[str], str] = annotate,
    line_threshold: float = DEFAULT_LINE_THRESHOLD,
    max_pages: Optional[int] = None,
    config: StreamConfig = _DEFAULTS
) -> Iterator[StreamEvent]:
    """
    Full event stream for one uploaded document.

    Yields exactly one terminal event: ``complete`` on success or ``error``
    on a missing file, decode failure or page failure. Events are produced
    lazily, so a slow consumer loses nothing; closing the generator stops
    production and releases the document.

    Args:
        data: Uploaded PDF bytes (None if no file was supplied)
        opener: Decoder returning a document handle
        annotator: Text annotator applied per page
        line_threshold: Baseline delta starting a new line
        max_pages: Optional cap on the number of pages processed
        config: Messages used by the stream
    """
    if data is None:
        yield StreamEvent.error(config.no_file_message)
        return

    yield StreamEvent.progress(config.loading_message)

    try:
        with opener(data) as document:
            yield from iter_page_events(
                document,
                annotator=annotator,
                line_threshold=line_threshold,
                max_pages=max_pages
            )
    except Exception as e:
        logger.error(f"Error processing PDF: {e}")
        yield StreamEvent.error(str(e) or config.fallback_error_message)
        return

    yield StreamEvent.complete(config.complete_message)


# ============================================================================
# Server-Sent Event Framing
# ============================================================================

SSE_PREFIX = "data: "


def encode_event(event: StreamEvent) -> bytes:
    """Frame an event as ``data: <json>\\n\\n`` in UTF-8."""
    payload = json.dumps(event.to_dict(), ensure_ascii=False)
    return f"{SSE_PREFIX}{payload}\n\n".encode("utf-8")


class SSEDecoder:
    """
    Incremental decoder for a framed event stream.

    Chunks may split lines and multi-byte characters anywhere; the partial
    trailing line is buffered until the next chunk. Lines without the
    ``data: `` prefix are ignored and malformed payloads are logged and
    skipped.
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""

    def feed(self, chunk: bytes) -> List[StreamEvent]:
        self._buffer += self._decoder.decode(chunk)
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return self._parse_lines(lines)

    def close(self) -> List[StreamEvent]:
        """Flush whatever is left after the last chunk."""
        self._buffer += self._decoder.decode(b"", final=True)
        lines = [self._buffer] if self._buffer else []
        self._buffer = ""
        return self._parse_lines(lines)

    def _parse_lines(self, lines: Iterable[str]) -> List[StreamEvent]:
        events = []
        for line in lines:
            line = line.rstrip("\r")
            if not line.startswith(SSE_PREFIX):
                continue
            try:
                events.append(StreamEvent.from_dict(json.loads(line[len(SSE_PREFIX):])))
            except (ValueError, KeyError, TypeError) as e:
                logger.error(f"Failed to parse SSE data: {e}")
        return events


def iter_sse_events(chunks: Iterable[bytes]) -> Iterator[StreamEvent]:
    """Decode events from an iterable of raw byte chunks."""
    decoder = SSEDecoder()
    for chunk in chunks:
        yield from decoder.feed(chunk)
    yield from decoder.close()


# ============================================================================
# Producer / Consumer Channel
# ============================================================================

_END = object()


class EventChannel:
    """
    Runs an event iterator on a producer thread and hands events to the
    consumer through a bounded queue, preserving order.

    ``close()`` stops the producer before its next event; the iterator is
    closed on the producer thread so its resources are released there.
    """

    def __init__(self, events: Iterator[StreamEvent], maxsize: int = _DEFAULTS.channel_maxsize):
        self._events = events
        self._queue: "queue.Queue" = queue.Queue(maxsize=maxsize)
        self._cancelled = threading.Event()
        self._thread = threading.Thread(target=self._produce, name="pdfmath-producer", daemon=True)
        self._started = False

    def start(self) -> "EventChannel":
        if not self._started:
            self._started = True
            self._thread.start()
        return self

    def _put(self, item) -> bool:
        while not self._cancelled.is_set():
            try:
                self._queue.put(item, timeout=0.1)
                return True
            except queue.Full:
                continue
        return False

    def _produce(self):
        try:
            for event in self._events:
                if not self._put(event):
                    logger.info("Consumer went away, abandoning remaining pages")
                    break
        except Exception as e:
            logger.error(f"Event producer failed: {e}")
            self._put(StreamEvent.error(str(e) or _DEFAULTS.fallback_error_message))
        finally:
            close = getattr(self._events, "close", None)
            if close is not None:
                close()
            self._put(_END)

    def __iter__(self) -> Iterator[StreamEvent]:
        self.start()
        while True:
            item = self._queue.get()
            if item is _END:
                return
            yield item

    def close(self, timeout: Optional[float] = 5.0):
        """Cancel the producer and wait for it to release its resources."""
        self._cancelled.set()
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break
        if self._started:
            self._thread.join(timeout)

    def __enter__(self) -> "EventChannel":
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


# ============================================================================
# Consumer Side
# ============================================================================

class ResultCollector:
    """
    Consumer state for one stream: append-only page list plus the latest
    progress text and terminal status. Pages received before an error stay.
    """

    def __init__(self):
        self.pages: List[AnnotatedPage] = []
        self.progress: str = ""
        self.error: Optional[str] = None
        self.completed: bool = False

    @property
    def finished(self) -> bool:
        return self.completed or self.error is not None

    def apply(self, event: StreamEvent) -> StreamEvent:
        if event.type == EventType.PROGRESS:
            self.progress = event.message or ""
        elif event.type == EventType.PAGE:
            self.pages.append(event.page)
        elif event.type == EventType.COMPLETE:
            self.completed = True
            self.progress = "Complete!"
        elif event.type == EventType.ERROR:
            self.error = event.message
        return event

    def consume(self, events: Iterable[StreamEvent]) -> "ResultCollector":
        for event in events:
            self.apply(event)
        return self
