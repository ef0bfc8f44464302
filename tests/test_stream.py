"""
Tests for the page event stream, SSE framing and the event channel.
"""

import json
import time
import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


class FakePage:
    def __init__(self, fragments, fail=False):
        self._fragments = fragments
        self._fail = fail

    def get_fragments(self):
        if self._fail:
            raise RuntimeError("broken content stream")
        return self._fragments


class FakeDocument:
    """In-memory stand-in for a decoded PDF."""

    def __init__(self, pages, fail_on=None):
        self.pages = pages
        self.fail_on = fail_on
        self.closed = False
        self.requested = []

    @property
    def page_count(self):
        return len(self.pages)

    def get_page(self, page_number):
        self.requested.append(page_number)
        return FakePage(self.pages[page_number - 1], fail=page_number == self.fail_on)

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def _page(*pairs):
    from pdfmath.utils.layout import PositionedFragment
    return [PositionedFragment(text, y) for text, y in pairs]


@pytest.fixture
def two_page_document():
    return FakeDocument([
        _page(("x = 1 + 2", 700.0)),
        _page(("Greek", 700.0), ("π", 680.0)),
    ])


class TestProcessUpload:
    """Test the page driver."""

    def test_no_file(self):
        """Missing file: a single error event and nothing else."""
        from pdfmath.utils.stream import process_upload, StreamEvent

        events = list(process_upload(None))

        assert events == [StreamEvent.error("No file provided")]

    def test_empty_document(self):
        """Zero pages: loading, page count, complete."""
        from pdfmath.utils.stream import process_upload, StreamEvent

        document = FakeDocument([])
        events = list(process_upload(b"%PDF", opener=lambda data: document))

        assert events == [
            StreamEvent.progress("Loading PDF..."),
            StreamEvent.progress("Processing 0 pages..."),
            StreamEvent.complete("Processing complete!"),
        ]
        assert document.closed

    def test_event_sequence(self, two_page_document):
        """Pages are emitted in order, each preceded by a progress event."""
        from pdfmath.utils.stream import process_upload

        events = list(process_upload(b"%PDF", opener=lambda data: two_page_document))

        assert [e.type for e in events] == [
            "progress", "progress",
            "progress", "page",
            "progress", "page",
            "complete",
        ]
        assert events[1].message == "Processing 2 pages..."
        assert events[2].message == "Processing page 1 of 2..."
        assert events[4].message == "Processing page 2 of 2..."
        assert [e.page.page_number for e in events if e.type == "page"] == [1, 2]
        assert events[3].page.content == "$$x = 1 + 2$$"
        assert events[5].page.content == "Greek \n$\\pi$"
        assert two_page_document.requested == [1, 2]
        assert two_page_document.closed

    def test_decode_error(self):
        """A decode failure is the terminal error event."""
        from pdfmath.errors import DecodeError
        from pdfmath.utils.stream import process_upload, StreamEvent

        def opener(data):
            raise DecodeError("Failed to parse PDF: bad xref")

        events = list(process_upload(b"garbage", opener=opener))

        assert events == [
            StreamEvent.progress("Loading PDF..."),
            StreamEvent.error("Failed to parse PDF: bad xref"),
        ]

    def test_page_failure_keeps_earlier_pages(self):
        """A page failure stops the stream after pages already emitted."""
        from pdfmath.utils.stream import process_upload

        document = FakeDocument(
            [_page(("one", 0.0)), _page(("two", 0.0)), _page(("three", 0.0))],
            fail_on=2
        )
        events = list(process_upload(b"%PDF", opener=lambda data: document))

        pages = [e.page.page_number for e in events if e.type == "page"]
        assert pages == [1]
        assert events[-1].type == "error"
        assert events[-1].message == "broken content stream"
        assert sum(1 for e in events if e.is_terminal) == 1
        assert 3 not in document.requested
        assert document.closed

    def test_consumer_disconnect_releases_document(self, two_page_document):
        """Closing the generator stops production and closes the document."""
        from pdfmath.utils.stream import process_upload

        events = process_upload(b"%PDF", opener=lambda data: two_page_document)
        first = [next(events), next(events), next(events)]
        events.close()

        assert first[-1].message == "Processing page 1 of 2..."
        assert two_page_document.closed
        assert two_page_document.requested == []
        with pytest.raises(StopIteration):
            next(events)

    def test_lazy_production(self, two_page_document):
        """Nothing is extracted before the consumer asks for it."""
        from pdfmath.utils.stream import process_upload

        events = process_upload(b"%PDF", opener=lambda data: two_page_document)
        assert two_page_document.requested == []
        list(events)
        assert two_page_document.requested == [1, 2]

    def test_max_pages(self, two_page_document):
        from pdfmath.utils.stream import process_upload

        events = list(process_upload(
            b"%PDF", opener=lambda data: two_page_document, max_pages=1
        ))

        assert events[1].message == "Processing 1 pages..."
        assert [e.page.page_number for e in events if e.type == "page"] == [1]
        assert events[-1].type == "complete"

    def test_real_decoder_rejects_garbage(self):
        """The default decoder turns unparseable bytes into an error event."""
        pytest.importorskip("fitz")
        from pdfmath.utils.stream import process_upload

        events = list(process_upload(b"this is not a pdf"))

        assert events[0].message == "Loading PDF..."
        assert events[-1].type == "error"
        assert events[-1].message.startswith("Failed to parse PDF")


class TestStreamEvent:
    """Test event serialization."""

    def test_page_event_dict(self):
        from pdfmath.utils.latex import AnnotatedPage
        from pdfmath.utils.stream import StreamEvent

        event = StreamEvent.page_done(AnnotatedPage(4, "$\\pi$"))

        assert event.to_dict() == {"type": "page", "data": {"pageNum": 4, "content": "$\\pi$"}}
        assert StreamEvent.from_dict(event.to_dict()) == event

    def test_message_events_dict(self):
        from pdfmath.utils.stream import StreamEvent

        for event in [StreamEvent.progress("p"), StreamEvent.complete(), StreamEvent.error("e")]:
            assert StreamEvent.from_dict(event.to_dict()) == event

    def test_unknown_type(self):
        from pdfmath.utils.stream import StreamEvent

        with pytest.raises(ValueError):
            StreamEvent.from_dict({"type": "bogus"})


class TestSSE:
    """Test SSE encoding and incremental decoding."""

    @pytest.fixture
    def events(self):
        from pdfmath.utils.latex import AnnotatedPage
        from pdfmath.utils.stream import StreamEvent

        return [
            StreamEvent.progress("Loading PDF..."),
            StreamEvent.page_done(AnnotatedPage(1, "α is $\\alpha$\nline two")),
            StreamEvent.complete(),
        ]

    def test_encode_framing(self, events):
        from pdfmath.utils.stream import encode_event

        frame = encode_event(events[1])

        assert frame.startswith(b"data: ")
        assert frame.endswith(b"\n\n")
        assert frame.count(b"\n") == 2
        payload = json.loads(frame[len(b"data: "):].decode("utf-8"))
        assert payload["type"] == "page"
        assert payload["data"]["content"] == "α is $\\alpha$\nline two"
        assert "α".encode("utf-8") in frame

    def test_decode_whole_stream(self, events):
        from pdfmath.utils.stream import encode_event, iter_sse_events

        stream = b"".join(encode_event(e) for e in events)

        assert list(iter_sse_events([stream])) == events

    def test_decode_byte_by_byte(self, events):
        """Chunks split lines and multi-byte characters anywhere."""
        from pdfmath.utils.stream import encode_event, iter_sse_events

        stream = b"".join(encode_event(e) for e in events)
        chunks = [stream[i:i + 1] for i in range(len(stream))]

        assert list(iter_sse_events(chunks)) == events

    def test_partial_line_buffered(self, events):
        from pdfmath.utils.stream import SSEDecoder, encode_event

        frame = encode_event(events[0])
        decoder = SSEDecoder()

        assert decoder.feed(frame[:10]) == []
        assert decoder.feed(frame[10:]) == [events[0]]

    def test_ignores_noise_and_bad_json(self, events):
        from pdfmath.utils.stream import SSEDecoder, encode_event

        decoder = SSEDecoder()
        received = decoder.feed(b": keep-alive\nevent: x\ndata: {not json}\n\n" + encode_event(events[2]))

        assert received == [events[2]]

    def test_close_flushes_unterminated_line(self, events):
        from pdfmath.utils.stream import SSEDecoder, encode_event

        decoder = SSEDecoder()
        frame = encode_event(events[0]).rstrip(b"\n")

        assert decoder.feed(frame) == []
        assert decoder.close() == [events[0]]

    def test_crlf_lines(self, events):
        from pdfmath.utils.stream import SSEDecoder, encode_event

        frame = encode_event(events[0]).replace(b"\n", b"\r\n")

        assert SSEDecoder().feed(frame) == [events[0]]


class TestEventChannel:
    """Test the producer/consumer channel."""

    def test_order_with_slow_consumer(self):
        from pdfmath.utils.stream import EventChannel, process_upload

        document = FakeDocument([_page((f"page {i}", 0.0)) for i in range(1, 11)])
        channel = EventChannel(process_upload(b"%PDF", opener=lambda d: document), maxsize=1)

        received = []
        with channel:
            for event in channel:
                received.append(event)
                time.sleep(0.005)

        pages = [e.page.page_number for e in received if e.type == "page"]
        assert pages == list(range(1, 11))
        assert received[-1].type == "complete"
        assert document.closed

    def test_close_midstream_releases_document(self):
        from pdfmath.utils.stream import EventChannel, process_upload

        document = FakeDocument([_page((f"page {i}", 0.0)) for i in range(1, 51)])
        channel = EventChannel(process_upload(b"%PDF", opener=lambda d: document), maxsize=1)

        received = []
        for event in channel:
            received.append(event)
            if len(received) == 4:
                break
        channel.close()

        assert document.closed
        assert len(document.requested) < 50

    def test_producer_error_surfaces(self):
        from pdfmath.utils.stream import EventChannel, StreamEvent

        def events():
            yield StreamEvent.progress("start")
            raise RuntimeError("boom")

        received = list(EventChannel(events()))

        assert received == [StreamEvent.progress("start"), StreamEvent.error("boom")]


class TestResultCollector:
    """Test the consumer-side state."""

    def test_collects_pages_in_order(self, two_page_document):
        from pdfmath.utils.stream import ResultCollector, process_upload

        collector = ResultCollector().consume(
            process_upload(b"%PDF", opener=lambda d: two_page_document)
        )

        assert [p.page_number for p in collector.pages] == [1, 2]
        assert collector.completed
        assert collector.error is None
        assert collector.progress == "Complete!"

    def test_pages_survive_error(self):
        from pdfmath.utils.stream import ResultCollector, process_upload

        document = FakeDocument([_page(("one", 0.0)), _page(("two", 0.0))], fail_on=2)
        collector = ResultCollector().consume(
            process_upload(b"%PDF", opener=lambda d: document)
        )

        assert [p.content for p in collector.pages] == ["one"]
        assert collector.error == "broken content stream"
        assert not collector.completed
        assert collector.finished
