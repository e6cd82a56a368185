"""
Shared fixtures for the reconstruction tests.
"""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def build_pdf(page_texts, width=595, height=842):
    """Create an in-memory PDF with one text page per entry."""
    import fitz

    doc = fitz.open()
    for text in page_texts:
        page = doc.new_page(width=width, height=height)
        if text:
            page.insert_textbox(
                fitz.Rect(50, 50, width - 50, height - 50),
                text, fontsize=11, fontname="helv"
            )
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def make_pdf():
    """Factory fixture: make_pdf(["page one", "page two"]) -> bytes."""
    return build_pdf


class FakeEmbedder:
    """Embedder returning fixed vectors."""

    def __init__(self, vectors):
        self.vectors = vectors
        self.calls = 0

    def embed(self, corpus):
        self.calls += 1
        return dict(self.vectors)


class FailingEmbedder:
    """Embedder whose model cannot be loaded."""

    def embed(self, corpus):
        from recon.errors import AnalysisDegradation
        raise AnalysisDegradation("embed", "model unavailable")


@pytest.fixture
def fake_embedder():
    return FakeEmbedder


@pytest.fixture
def failing_embedder():
    return FailingEmbedder()
