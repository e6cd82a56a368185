"""
End-to-end tests for the reconstruction pipeline.
"""

import json
import threading

import numpy as np
import pytest


def _text_only_config():
    from config import PipelineConfig

    config = PipelineConfig()
    config.embeddings.enabled = False
    config.duplicates.use_image_hash = False
    config.extraction.ocr_enabled = False
    return config


class FakeRecognizer:
    """Recognizer returning fixed text per call."""

    def __init__(self, text):
        self.text = text

    def recognize(self, image):
        from recon.ocr import OCRResult
        return OCRResult(text=self.text, confidence=0.9)


def fake_renderer(images):
    def render(pdf_bytes, dpi=72, first_page=None, last_page=None):
        if first_page is not None:
            return [images[first_page - 1]]
        return list(images)
    return render


class TestReconstructionPipeline:
    """End-to-end pipeline tests."""

    @pytest.fixture
    def shuffled_pdf(self, make_pdf):
        # Printed numbers 3, 1, 4, 2
        return make_pdf([
            "Chapter 3: Results\nthe measured values.\n3",
            "Chapter 1: Introduction\nthe motivation.\n1",
            "Chapter 4: Conclusion\nthe summary.\n4",
            "Chapter 2: Methods\nthe approach.\n2",
        ])

    def test_recovers_numbered_order(self, shuffled_pdf, tmp_path):
        import fitz
        from recon.ordering import OrderStrategy
        from recon.pipeline import ReconstructionPipeline

        result = ReconstructionPipeline(_text_only_config()).run(
            shuffled_pdf, output_dir=tmp_path, source_name="shuffled.pdf"
        )

        assert result.order.order == (1, 3, 0, 2)
        assert result.order.strategy == OrderStrategy.EXPLICIT_NUMBERING
        assert result.order.confidence >= 0.9
        assert result.missing == []
        assert result.duplicates == []
        assert not result.is_degraded

        doc = fitz.open(tmp_path / "ordered.pdf")
        assert doc.page_count == 5
        assert "Introduction" in doc[1].get_text()
        assert "Conclusion" in doc[4].get_text()

        links = sorted(doc[0].get_links(), key=lambda link: link["from"].y0)
        assert [link["page"] for link in links] == [1, 2, 3, 4]

    def test_reports_written(self, shuffled_pdf, tmp_path):
        from recon.pipeline import ReconstructionPipeline

        ReconstructionPipeline(_text_only_config()).run(shuffled_pdf, output_dir=tmp_path)

        for name in ["ordered.pdf", "log.json", "toc.json", "dup_missing.json",
                     "reasoning.txt", "report.html"]:
            assert (tmp_path / name).exists(), name

        log = json.loads((tmp_path / "log.json").read_text())
        assert log["order"] == [1, 3, 0, 2]
        assert log["strategy"] == "explicit_numbering"
        assert len(log["pages"]) == 4

        toc = json.loads((tmp_path / "toc.json").read_text())
        assert [entry["title"] for entry in toc][0] == "Chapter 3: Results"

        reasoning = (tmp_path / "reasoning.txt").read_text()
        assert "2 -> 4 -> 1 -> 3" in reasoning

    def test_no_output_dir_writes_nothing(self, shuffled_pdf, tmp_path, monkeypatch):
        from recon.pipeline import ReconstructionPipeline

        monkeypatch.chdir(tmp_path)
        result = ReconstructionPipeline(_text_only_config()).run(shuffled_pdf)
        assert result.output_path is None
        assert result.pdf_bytes.startswith(b"%PDF")
        assert list(tmp_path.iterdir()) == []

    def test_toc_disabled(self, shuffled_pdf):
        import fitz
        from recon.pipeline import ReconstructionPipeline

        config = _text_only_config()
        config.export.embed_toc = False
        result = ReconstructionPipeline(config).run(shuffled_pdf)
        assert fitz.open(stream=result.pdf_bytes, filetype="pdf").page_count == 4
        # The outline is still computed for the reports
        assert len(result.toc) == 4

    def test_duplicates_and_missing(self, make_pdf):
        from recon.pipeline import ReconstructionPipeline

        pdf = make_pdf([
            "first page body\n1",
            "second page body\n2",
            "second page body\n2",
            "fourth page body\n4",
        ])
        result = ReconstructionPipeline(_text_only_config()).run(pdf)

        assert [g.indices for g in result.duplicates] == [(1, 2)]
        assert [g.number for g in result.missing] == [3]
        assert sorted(result.order.order) == [0, 1, 2, 3]

    def test_precomputed_embeddings(self, make_pdf):
        from recon.pipeline import ReconstructionPipeline

        pdf = make_pdf(["one", "two", "three"])
        result = ReconstructionPipeline(_text_only_config()).run(
            pdf, embeddings={0: [1.0, 0.0], 1: [0.0, 1.0], 2: [1.0, 0.1]}
        )
        assert result.corpus.embedding_coverage == 1.0
        assert sorted(result.order.order) == [0, 1, 2]

    def test_embedder_used_when_enabled(self, make_pdf, fake_embedder):
        from recon.pipeline import ReconstructionPipeline

        config = _text_only_config()
        config.embeddings.enabled = True
        embedder = fake_embedder({0: [1.0, 0.0], 1: [0.0, 1.0]})
        result = ReconstructionPipeline(config, embedder=embedder).run(make_pdf(["a", "b"]))

        assert embedder.calls == 1
        assert result.corpus[1].embedding == (0.0, 1.0)

    def test_embedder_failure_degrades(self, make_pdf, failing_embedder):
        from recon.pipeline import ReconstructionPipeline

        config = _text_only_config()
        config.embeddings.enabled = True
        result = ReconstructionPipeline(config, embedder=failing_embedder).run(
            make_pdf(["one\n1", "two\n2"])
        )

        assert result.order.order == (0, 1)
        assert [d.stage for d in result.degradations] == ["embed"]
        assert result.corpus.embedding_coverage == 0.0

    def test_ocr_fills_blank_pages(self, make_pdf):
        from recon.pipeline import ReconstructionPipeline

        config = _text_only_config()
        config.extraction.ocr_enabled = True
        images = [np.zeros((20, 20, 3), dtype=np.uint8)] * 3
        pipeline = ReconstructionPipeline(
            config,
            recognizer=FakeRecognizer("recovered text\n1"),
            renderer=fake_renderer(images),
        )
        result = pipeline.run(make_pdf(["second\n2", "", "third\n3"]))

        assert result.corpus[1].text == "recovered text\n1"
        assert result.order.order == (1, 0, 2)

    def test_ocr_page_failure_continues(self, make_pdf):
        from recon.errors import AnalysisDegradation
        from recon.ocr import OCRResult
        from recon.pipeline import ReconstructionPipeline

        class FlakyRecognizer:
            def __init__(self):
                self.calls = 0

            def recognize(self, image):
                self.calls += 1
                if self.calls == 1:
                    raise AnalysisDegradation("ocr", "Tesseract error: bad page")
                return OCRResult(text=f"recovered {self.calls}", confidence=0.9)

        config = _text_only_config()
        config.extraction.ocr_enabled = True
        recognizer = FlakyRecognizer()
        images = [np.zeros((20, 20, 3), dtype=np.uint8)] * 3
        pipeline = ReconstructionPipeline(
            config, recognizer=recognizer, renderer=fake_renderer(images)
        )
        result = pipeline.run(make_pdf(["", "", ""]))

        assert recognizer.calls == 3
        assert [(d.stage, d.page) for d in result.degradations] == [("ocr", 0)]
        assert result.corpus[0].text == ""
        assert result.corpus[1].text == "recovered 2"
        assert result.corpus[2].text == "recovered 3"

    def test_ocr_engine_unavailable_stops(self, make_pdf):
        from recon.errors import EngineUnavailable
        from recon.pipeline import ReconstructionPipeline

        class MissingEngine:
            def __init__(self):
                self.calls = 0

            def recognize(self, image):
                self.calls += 1
                raise EngineUnavailable("ocr", "pytesseract not installed")

        config = _text_only_config()
        config.extraction.ocr_enabled = True
        recognizer = MissingEngine()
        images = [np.zeros((20, 20, 3), dtype=np.uint8)] * 3
        pipeline = ReconstructionPipeline(
            config, recognizer=recognizer, renderer=fake_renderer(images)
        )
        result = pipeline.run(make_pdf(["", "", ""]))

        assert recognizer.calls == 1
        assert [(d.stage, d.page) for d in result.degradations] == [("ocr", None)]
        assert len(result.order.order) == 3

    def test_image_signatures(self, make_pdf):
        from recon.pipeline import ReconstructionPipeline

        config = _text_only_config()
        config.duplicates.use_image_hash = True
        gradient = np.tile(np.linspace(0, 255, 90, dtype=np.uint8), (40, 1))
        images = [gradient, gradient[:, ::-1].copy(), gradient]
        pipeline = ReconstructionPipeline(config, renderer=fake_renderer(images))
        result = pipeline.run(make_pdf(["one", "two", "three"]))

        assert all(page.signature for page in result.corpus)
        assert [g.indices for g in result.duplicates] == [(0, 2)]
        assert result.duplicates[0].method == "image_hash"

    def test_render_failure_degrades(self, make_pdf):
        from recon.pipeline import ReconstructionPipeline

        def broken_renderer(*args, **kwargs):
            raise RuntimeError("poppler missing")

        config = _text_only_config()
        config.duplicates.use_image_hash = True
        result = ReconstructionPipeline(config, renderer=broken_renderer).run(
            make_pdf(["same text", "same text"])
        )

        assert [d.stage for d in result.degradations] == ["signature"]
        assert result.duplicates[0].method == "text_jaccard"

    def test_invalid_input(self, tmp_path):
        from recon.errors import ExtractionFailure
        from recon.pipeline import ReconstructionPipeline

        with pytest.raises(ExtractionFailure) as info:
            ReconstructionPipeline(_text_only_config()).run(b"not a pdf")
        assert info.value.stage == "extract"

        with pytest.raises(ExtractionFailure):
            ReconstructionPipeline(_text_only_config()).run(tmp_path / "missing.pdf")

    def test_cancellation(self, shuffled_pdf, tmp_path):
        from recon.errors import PipelineCancelled
        from recon.pipeline import ReconstructionPipeline

        cancel = threading.Event()

        def progress(stage, percent):
            if stage == "classify":
                cancel.set()

        with pytest.raises(PipelineCancelled) as info:
            ReconstructionPipeline(_text_only_config()).run(
                shuffled_pdf, output_dir=tmp_path, cancel_event=cancel, progress=progress
            )
        assert info.value.stage == "similarity"
        assert not (tmp_path / "ordered.pdf").exists()

    def test_progress_reaches_completion(self, shuffled_pdf):
        from recon.pipeline import STAGES, ReconstructionPipeline

        seen = []
        ReconstructionPipeline(_text_only_config()).run(
            shuffled_pdf, progress=lambda stage, percent: seen.append((stage, percent))
        )
        assert {stage for stage, _ in seen} == set(STAGES)
        assert seen[-1][1] == pytest.approx(100.0)

    def test_deterministic(self, shuffled_pdf):
        from recon.pipeline import ReconstructionPipeline

        pipeline = ReconstructionPipeline(_text_only_config())
        first = pipeline.run(shuffled_pdf)
        second = pipeline.run(shuffled_pdf)
        assert first.order == second.order
        assert first.toc == second.toc
