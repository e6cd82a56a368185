"""
Tests for reordered PDF export with a linked table of contents.
"""

import pytest


class TestReconstructionExporter:
    """Tests for ReconstructionExporter."""

    @pytest.fixture
    def source(self, make_pdf):
        return make_pdf(["alpha page", "bravo page", "charlie page"])

    @pytest.fixture
    def entries(self):
        from recon.toc import TocEntry
        return [TocEntry("Alpha", 0, 0), TocEntry("Rest", 1, 2)]

    def test_link_target_page(self):
        from recon.export import link_target_page

        assert link_target_page([2, 0, 1], 0) == 2
        assert link_target_page([2, 0, 1], 2) == 1
        assert link_target_page([2, 0, 1], 2, toc_offset=0) == 0

    def test_pages_copied_in_order(self, source):
        import fitz
        from recon.export import ReconstructionExporter

        data = ReconstructionExporter().export(source, [2, 0, 1])
        doc = fitz.open(stream=data, filetype="pdf")
        assert doc.page_count == 3
        assert [doc[i].get_text().strip() for i in range(3)] == [
            "charlie page", "alpha page", "bravo page"
        ]

    def test_toc_links_target_reordered_pages(self, source, entries):
        import fitz
        from recon.export import ReconstructionExporter
        from recon.ordering import OrderResult, OrderStrategy

        order = OrderResult((2, 0, 1), 0.9, "test", OrderStrategy.EXPLICIT_NUMBERING)
        data = ReconstructionExporter().export(source, order, entries)
        doc = fitz.open(stream=data, filetype="pdf")

        assert doc.page_count == 4
        assert "Table of Contents" in doc[0].get_text()
        assert "alpha page" in doc[2].get_text()

        links = sorted(doc[0].get_links(), key=lambda link: link["from"].y0)
        assert [link["page"] for link in links] == [2, 3]

        for link in links:
            kind, action = doc.xref_get_key(link["xref"], "A")
            assert kind == "dict"
            assert "/GoTo" in action
            assert "/Fit" in action
            assert f"{doc[link['page']].xref} 0 R" in action

    def test_output_document_closed_on_failure(self, source, monkeypatch):
        import fitz
        from recon.errors import ExportFailure
        from recon.export import ReconstructionExporter

        assembled = []

        def failing_tobytes(self, *args, **kwargs):
            assembled.append(self)
            raise RuntimeError("disk full")

        monkeypatch.setattr(fitz.Document, "tobytes", failing_tobytes)
        with pytest.raises(ExportFailure):
            ReconstructionExporter().export(source, [2, 0, 1])

        assert len(assembled) == 1
        assert assembled[0].is_closed

    def test_bookmarks(self, source, entries):
        import fitz
        from recon.export import ReconstructionExporter

        data = ReconstructionExporter().export(source, [2, 0, 1], entries)
        toc = fitz.open(stream=data, filetype="pdf").get_toc()
        assert toc == [[1, "Table of Contents", 1], [1, "Alpha", 3], [1, "Rest", 4]]

    def test_no_bookmarks(self, source, entries):
        import fitz
        from recon.export import ReconstructionExporter

        data = ReconstructionExporter(add_bookmarks=False).export(source, [0, 1, 2], entries)
        assert fitz.open(stream=data, filetype="pdf").get_toc() == []

    def test_invalid_order_rejected(self, source):
        from recon.errors import ExportFailure
        from recon.export import ReconstructionExporter

        with pytest.raises(ExportFailure):
            ReconstructionExporter().export(source, [0, 0, 1])
        with pytest.raises(ExportFailure):
            ReconstructionExporter().export(source, [0, 1])

    def test_atomic_output(self, source, tmp_path):
        from recon.export import ReconstructionExporter

        target = tmp_path / "out" / "ordered.pdf"
        data = ReconstructionExporter().export(source, [1, 0, 2], output_path=target)

        assert target.read_bytes() == data
        assert [p.name for p in target.parent.iterdir()] == ["ordered.pdf"]

    def test_level_normalization(self):
        from recon.export import _normalize_levels

        assert _normalize_levels([2, 3, 1, 3]) == [1, 2, 1, 2]
