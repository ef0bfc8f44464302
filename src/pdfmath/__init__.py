"""
PDF Math Extraction
===================

Extracts text from PDF documents, marks up plausible mathematical notation
as LaTeX and streams the result page by page.

Main components:
- Line reconstruction from positioned text spans
- Heuristic math annotation (fractions, exponents, roots, symbols, equations)
- Ordered page event stream with SSE framing
- Per-segment math rendering with literal fallback
- Plain-text export
"""

__version__ = "1.0.0"
__author__ = "PDF Math Team"
