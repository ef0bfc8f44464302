"""
Tests for the Streamlit UI event handling.
"""

import pytest
import sys
from pathlib import Path
from types import SimpleNamespace

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

fitz = pytest.importorskip("fitz")
pytest.importorskip("streamlit")


class RecordingStreamlit:
    """Stand-in for the streamlit module that logs calls in order."""

    def __init__(self):
        self.calls = []
        self.session_state = SimpleNamespace(pages=[], error=None)

    def empty(self):
        calls = self.calls
        return SimpleNamespace(
            info=lambda msg: calls.append(("info", msg)),
            success=lambda msg: calls.append(("success", msg)),
            error=lambda msg: calls.append(("error", msg)),
        )

    def container(self):
        return self

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def markdown(self, body, unsafe_allow_html=False):
        self.calls.append(("markdown", body))

    def divider(self):
        self.calls.append(("divider", None))


class FakeUpload:
    def __init__(self, data):
        self._data = data

    def getvalue(self):
        return self._data


@pytest.fixture
def two_page_pdf():
    doc = fitz.open()
    for text in ("alpha page", "beta page"):
        page = doc.new_page()
        page.insert_text((72, 72), text, fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


class TestProcessDocument:
    """Test page streaming into the UI."""

    def test_pages_render_as_they_arrive(self, monkeypatch, two_page_pdf):
        import pdfmath.app as app

        fake = RecordingStreamlit()
        monkeypatch.setattr(app, "st", fake)

        collector = app.process_document(
            FakeUpload(two_page_pdf),
            {"line_threshold": 5.0, "render_backend": "none"}
        )

        assert collector.completed
        assert [p.page_number for p in collector.pages] == [1, 2]

        calls = fake.calls
        page_one = calls.index(("markdown", "#### Page 1"))
        page_two_progress = calls.index(("info", "Processing page 2 of 2..."))
        page_two = calls.index(("markdown", "#### Page 2"))
        done = calls.index(("success", "Complete!"))

        assert page_one < page_two_progress < page_two < done
        assert [p.page_number for p in fake.session_state.pages] == [1, 2]

    def test_error_keeps_status_and_no_pages(self, monkeypatch):
        import pdfmath.app as app

        fake = RecordingStreamlit()
        monkeypatch.setattr(app, "st", fake)

        collector = app.process_document(
            FakeUpload(b"this is not a pdf at all"),
            {"line_threshold": 5.0, "render_backend": "none"}
        )

        assert collector.error is not None
        assert collector.pages == []
        assert fake.calls[-1][0] == "error"
        assert not any(name == "markdown" for name, _ in fake.calls)
