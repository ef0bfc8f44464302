#!/usr/bin/env python
"""
Streamlit Web UI for PDF math extraction.

Run with:
    streamlit run src/pdfmath/app.py

Features:
- Upload a PDF file
- Page-by-page progress while the document is processed
- Rendered text with inline and display math
- Download of all extracted pages as plain text
"""

import sys
from pathlib import Path

# Add src directory to path for imports when running as script
_src_dir = Path(__file__).parent.parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

import logging

import streamlit as st

from pdfmath.config import get_config, EventType
from pdfmath.errors import InputError
from pdfmath.utils.io import validate_pdf_upload
from pdfmath.utils.export import export_text
from pdfmath.utils.render import create_renderer, render_content
from pdfmath.utils.stream import ResultCollector, process_upload

logger = logging.getLogger("pdfmath.app")


# Page config must be first Streamlit command
st.set_page_config(
    page_title="Math OCR",
    page_icon="📐",
    layout="wide"
)


def load_css():
    """Load custom CSS styles."""
    st.markdown("""
    <style>
    .main-header {
        font-size: 2.5rem;
        font-weight: bold;
        color: #1E88E5;
        text-align: center;
        margin-bottom: 0.5rem;
    }
    .sub-header {
        font-size: 1.2rem;
        color: #888;
        text-align: center;
        margin-bottom: 2rem;
    }
    .math-line {
        min-height: 1.4em;
        line-height: 1.6;
    }
    .math-display {
        display: block;
        text-align: center;
        margin: 0.5rem 0;
    }
    </style>
    """, unsafe_allow_html=True)


def init_session_state():
    """Initialize session state variables."""
    if "pages" not in st.session_state:
        st.session_state.pages = []
    if "error" not in st.session_state:
        st.session_state.error = None


def reset_results():
    st.session_state.pages = []
    st.session_state.error = None


def process_document(uploaded_file, settings: dict) -> ResultCollector:
    """
    Stream events for the uploaded file.

    Progress replaces the status placeholder; each page is rendered below it
    as soon as its event arrives.
    """
    collector = ResultCollector()
    progress_text = st.empty()
    progress_text.info("Uploading PDF...")
    pages_container = st.container()
    renderer = create_renderer(settings["render_backend"])

    events = process_upload(
        uploaded_file.getvalue(),
        line_threshold=settings["line_threshold"]
    )
    try:
        for event in events:
            collector.apply(event)
            if event.type == EventType.PROGRESS:
                progress_text.info(event.message)
            elif event.type == EventType.PAGE:
                st.session_state.pages = list(collector.pages)
                with pages_container:
                    render_page(event.page, renderer)
            elif event.type == EventType.COMPLETE:
                progress_text.success(collector.progress)
            elif event.type == EventType.ERROR:
                # The error replaces the progress indicator
                progress_text.error(event.message)
    finally:
        events.close()

    return collector


def render_sidebar() -> dict:
    """Render sidebar with settings."""
    config = get_config()
    st.sidebar.header("⚙️ Settings")

    line_threshold = st.sidebar.slider(
        "Line break threshold",
        min_value=1.0,
        max_value=20.0,
        value=float(config.layout.line_break_threshold),
        step=0.5,
        help="Baseline distance (PDF units) that starts a new line"
    )

    render_math = st.sidebar.checkbox(
        "Render math",
        value=True,
        help="Show math as MathML; otherwise show the raw LaTeX markup"
    )

    return {
        "line_threshold": line_threshold,
        "render_backend": config.render.backend if render_math else "none",
    }


def render_page(page, renderer):
    st.markdown(f"#### Page {page.page_number}")
    st.markdown(render_content(page.content, renderer), unsafe_allow_html=True)
    st.divider()


def render_download(pages):
    """Render the header row with the text download button."""
    config = get_config()

    col1, col2 = st.columns([4, 1])
    with col1:
        st.subheader(f"Extracted Content ({len(pages)} pages)")
    with col2:
        st.download_button(
            "📥 Download as Text",
            export_text(pages),
            file_name=config.export.text_filename,
            mime="text/plain",
            use_container_width=True
        )


def render_results(settings: dict):
    """Render pages kept from an earlier run and the download button."""
    pages = st.session_state.pages
    renderer = create_renderer(settings["render_backend"])

    render_download(pages)
    for page in pages:
        render_page(page, renderer)


def main():
    """Main application."""
    load_css()
    init_session_state()

    st.markdown('<h1 class="main-header">Math OCR</h1>', unsafe_allow_html=True)
    st.markdown(
        '<p class="sub-header">Extract text and LaTeX equations from PDF documents</p>',
        unsafe_allow_html=True
    )

    settings = render_sidebar()

    uploaded_file = st.file_uploader(
        "Upload a PDF",
        type=["pdf"],
        help="PDF files only",
        on_change=reset_results
    )

    if uploaded_file:
        try:
            validate_pdf_upload(
                uploaded_file.getvalue(),
                filename=uploaded_file.name,
                content_type=uploaded_file.type
            )
        except InputError as e:
            st.error(str(e))
            return

        if st.button("🚀 Extract Text & Equations", type="primary"):
            reset_results()
            st.markdown("---")
            collector = process_document(uploaded_file, settings)
            st.session_state.pages = collector.pages
            st.session_state.error = collector.error
            if collector.pages:
                # Pages were already rendered while streaming
                render_download(collector.pages)
            return
    elif st.session_state.error:
        st.error(st.session_state.error)

    if st.session_state.pages:
        st.markdown("---")
        render_results(settings)


if __name__ == "__main__":
    main()
