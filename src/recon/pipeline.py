"""
Pipeline orchestration for page-order reconstruction.

Provides:
- ReconstructionResult (everything a run produces)
- ReconstructionPipeline (stage sequencing, degradation handling,
  cancellation, progress reporting)
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .classifier import PageClassification, StructureClassifier
from .corpus import PageCorpus
from .duplicates import DuplicateDetector, DuplicateGroup
from .errors import (
    AnalysisDegradation,
    Degradation,
    EngineUnavailable,
    PipelineCancelled,
    ReconstructionError,
)
from .export import ReconstructionExporter
from .images import signatures_for
from .io import ProcessingProgress, extract_corpus, read_source, render_page_images
from .logs import StageLogger
from .missing import MissingGap, MissingPageAnalyzer
from .ordering import OrderPlanner, OrderResult
from .reports import ReportWriter
from .similarity import SimilarityEngine
from .toc import TocBuilder, TocEntry

logger = logging.getLogger(__name__)

STAGES = [
    "extract", "ocr", "embed", "signature", "classify", "similarity",
    "order", "duplicates", "missing", "toc", "export", "report",
]


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class ReconstructionResult:
    """Complete outcome of one reconstruction run."""
    source_name: str
    corpus: PageCorpus
    classifications: List[PageClassification]
    order: OrderResult
    duplicates: List[DuplicateGroup]
    missing: List[MissingGap]
    toc: List[TocEntry]
    pdf_bytes: bytes = b""
    output_path: Optional[Path] = None
    reports: Dict[str, Path] = field(default_factory=dict)
    degradations: List[Degradation] = field(default_factory=list)

    @property
    def is_degraded(self) -> bool:
        return bool(self.degradations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_file": self.source_name,
            "order": self.order.to_dict(),
            "pages": [c.to_dict() for c in self.classifications],
            "duplicates": [g.to_dict() for g in self.duplicates],
            "missing_pages": [g.to_dict() for g in self.missing],
            "toc": [e.to_dict() for e in self.toc],
            "output_path": str(self.output_path) if self.output_path else None,
            "degradations": [d.to_dict() for d in self.degradations],
        }


# ============================================================================
# Pipeline
# ============================================================================

class ReconstructionPipeline:
    """
    Orchestrates the reconstruction pipeline.

    Coordinates:
    - Extraction (and OCR for pages without a text layer)
    - Optional embeddings and page signatures
    - Classification, similarity and order planning
    - Duplicate and missing page analysis
    - TOC synthesis, export and reports

    Args:
        config: PipelineConfig (see config.py)
        embedder: Object with ``embed(corpus) -> {index: vector}``; built from
            the config when omitted
        recognizer: Object with ``recognize(image) -> OCRResult``; built from
            the config when omitted
        renderer: Callable rendering PDF bytes to page images; pdf2image by
            default
    """

    def __init__(
        self,
        config: Any,
        embedder: Optional[Any] = None,
        recognizer: Optional[Any] = None,
        renderer: Optional[Callable[..., List[Any]]] = None
    ):
        self.config = config
        self._embedder = embedder
        self._recognizer = recognizer
        self.renderer = renderer or render_page_images
        self.log = StageLogger(logger)

    @property
    def embedder(self):
        if self._embedder is None:
            from .embeddings import SentenceTransformerEmbedder
            cfg = self.config.embeddings
            self._embedder = SentenceTransformerEmbedder(
                model_name=cfg.model_name,
                cache_dir=cfg.cache_dir,
                device=cfg.device
            )
        return self._embedder

    @property
    def recognizer(self):
        if self._recognizer is None:
            from .ocr import PageTextRecognizer
            cfg = self.config.extraction
            self._recognizer = PageTextRecognizer(
                language=cfg.ocr_language,
                config=cfg.tesseract_config
            )
        return self._recognizer

    def run(
        self,
        source: Union[str, Path, bytes],
        output_dir: Optional[Union[str, Path]] = None,
        embeddings: Optional[Mapping[int, Sequence[float]]] = None,
        cancel_event: Optional[threading.Event] = None,
        progress: Optional[Callable[[str, float], None]] = None,
        source_name: Optional[str] = None
    ) -> ReconstructionResult:
        """
        Reconstruct a document.

        Args:
            source: PDF path or bytes
            output_dir: Where to write ordered.pdf and reports; nothing is
                written when None
            embeddings: Precomputed page vectors by index; skips the embedding
                model when given
            cancel_event: Checked at every stage boundary
            progress: Called as ``progress(stage, percent)`` after each stage
            source_name: Name recorded in reports

        Returns:
            ReconstructionResult

        Raises:
            ExtractionFailure: Input unreadable
            ExportFailure: Output could not be produced
            PipelineCancelled: cancel_event was set
            ReconstructionError: Any other stage failure, tagged with the stage
        """
        tracker = ProcessingProgress(stages=list(STAGES), callback=progress)
        degradations: List[Degradation] = []
        cfg = self.config

        if source_name is None:
            source_name = Path(source).name if isinstance(source, (str, Path)) else "<bytes>"

        # Extraction failures are fatal and already carry their stage
        self._checkpoint("extract", cancel_event)
        pdf_bytes = read_source(source)
        corpus = extract_corpus(pdf_bytes)
        tracker.complete("extract")
        self.log.for_stage("extract").info(f"{len(corpus)} pages from {source_name}")

        corpus = self._stage("ocr", tracker, cancel_event,
                             self._recognize_missing_text, pdf_bytes, corpus, degradations)
        corpus = self._stage("embed", tracker, cancel_event,
                             self._attach_embeddings, corpus, embeddings, degradations)
        corpus = self._stage("signature", tracker, cancel_event,
                             self._attach_signatures, pdf_bytes, corpus, degradations)

        classifier = StructureClassifier(
            content_min_words=cfg.classifier.content_min_words,
            log=self.log.for_stage("classify")
        )
        classifications = self._stage("classify", tracker, cancel_event,
                                      classifier.classify_corpus, corpus)

        detector = DuplicateDetector(
            jaccard_threshold=cfg.duplicates.jaccard_threshold,
            hamming_threshold=cfg.duplicates.hamming_threshold,
            use_image_hash=cfg.duplicates.use_image_hash,
            log=self.log.for_stage("duplicates")
        )
        analyzer = MissingPageAnalyzer(
            min_numbered_fraction=cfg.missing.min_numbered_fraction,
            max_gap_span=cfg.missing.max_gap_span,
            log=self.log.for_stage("missing")
        )
        planner = OrderPlanner(
            numbering_min_fraction=cfg.order.numbering_min_fraction,
            structure_min_fraction=cfg.order.structure_min_fraction,
            numbering_confidence_cap=cfg.order.numbering_confidence_cap,
            structure_confidence_cap=cfg.order.structure_confidence_cap,
            chain_confidence_cap=cfg.order.chain_confidence_cap,
            log=self.log.for_stage("order")
        )

        def detect_duplicates():
            if not cfg.duplicates.enabled:
                return []
            return detector.detect(corpus)

        # Duplicate and missing analysis do not depend on the order
        with ThreadPoolExecutor(max_workers=2 if cfg.parallel_analysis else 1) as pool:
            duplicates_future = pool.submit(self._guard, "duplicates", detect_duplicates)
            missing_future = pool.submit(self._guard, "missing", analyzer.analyze, classifications)

            similarity = self._stage("similarity", tracker, cancel_event,
                                     SimilarityEngine(log=self.log.for_stage("similarity")).build,
                                     corpus)
            order = self._stage("order", tracker, cancel_event,
                                planner.plan, classifications, similarity)

            duplicates = duplicates_future.result()
            tracker.complete("duplicates")
            missing = missing_future.result()
            tracker.complete("missing")

        toc: List[TocEntry] = []
        if cfg.toc.enabled:
            builder = TocBuilder(
                heading_scan_lines=cfg.toc.heading_scan_lines,
                min_heading_length=cfg.toc.min_heading_length,
                max_heading_length=cfg.toc.max_heading_length,
                max_heading_words=cfg.toc.max_heading_words,
                content_run_min=cfg.toc.content_run_min,
                log=self.log.for_stage("toc")
            )
            toc = self._stage("toc", tracker, cancel_event, builder.build, corpus)
        else:
            tracker.complete("toc")

        exporter = ReconstructionExporter(
            toc_title=cfg.export.toc_title,
            page_size=tuple(cfg.export.toc_page_size),
            add_bookmarks=cfg.export.add_bookmarks,
            log=self.log.for_stage("export")
        )
        output_path = Path(output_dir) / cfg.export.output_name if output_dir else None
        pdf_out = self._stage("export", tracker, cancel_event, exporter.export,
                              pdf_bytes, order, toc if cfg.export.embed_toc else None,
                              output_path)

        result = ReconstructionResult(
            source_name=source_name,
            corpus=corpus,
            classifications=classifications,
            order=order,
            duplicates=duplicates,
            missing=missing,
            toc=toc,
            pdf_bytes=pdf_out,
            output_path=output_path,
            degradations=degradations,
        )

        if output_dir and cfg.export.write_reports:
            result.reports = self._stage("report", tracker, None,
                                         ReportWriter().write, result, output_dir)
        else:
            tracker.complete("report")

        self.log.info(
            f"Reconstruction complete: strategy={order.strategy.value} "
            f"confidence={order.confidence:.2f} duplicates={len(duplicates)} "
            f"missing={len(missing)} degraded={len(degradations)}"
        )
        return result

    # ------------------------------------------------------------------
    # Stage plumbing
    # ------------------------------------------------------------------

    def _checkpoint(self, stage: str, cancel_event: Optional[threading.Event]):
        if cancel_event is not None and cancel_event.is_set():
            self.log.for_stage(stage).warning("Cancelled at stage boundary")
            raise PipelineCancelled(stage)

    def _guard(self, stage: str, func: Callable, *args, **kwargs):
        """Run a stage function, tagging unexpected errors with the stage."""
        try:
            return func(*args, **kwargs)
        except ReconstructionError:
            raise
        except Exception as e:
            self.log.for_stage(stage).error(f"Stage failed: {e}")
            raise ReconstructionError(stage, str(e)) from e

    def _stage(
        self,
        stage: str,
        tracker: ProcessingProgress,
        cancel_event: Optional[threading.Event],
        func: Callable,
        *args,
        **kwargs
    ):
        self._checkpoint(stage, cancel_event)
        tracker.start(stage)
        value = self._guard(stage, func, *args, **kwargs)
        tracker.complete(stage)
        return value

    def _degrade(self, degradations: List[Degradation], error: AnalysisDegradation):
        log = self.log.for_stage(error.stage)
        if error.page is not None:
            log = log.for_page(error.page)
        log.warning(f"Degraded: {error.message}")
        degradations.append(Degradation.from_error(error))

    # ------------------------------------------------------------------
    # Optional analyses
    # ------------------------------------------------------------------

    def _recognize_missing_text(
        self,
        pdf_bytes: bytes,
        corpus: PageCorpus,
        degradations: List[Degradation]
    ) -> PageCorpus:
        blank = [page.index for page in corpus if not page.has_text]
        if not blank or not self.config.extraction.ocr_enabled:
            return corpus

        log = self.log.for_stage("ocr")
        log.info(f"{len(blank)} page(s) without a text layer; running OCR")
        texts: Dict[int, str] = {}
        for index in blank:
            try:
                images = self.renderer(
                    pdf_bytes,
                    dpi=self.config.extraction.ocr_dpi,
                    first_page=index + 1,
                    last_page=index + 1
                )
                if not images:
                    raise AnalysisDegradation("ocr", "page did not render", page=index)
                texts[index] = self.recognizer.recognize(images[0]).text
            except EngineUnavailable as e:
                # Every remaining page would fail the same way
                self._degrade(degradations, e)
                break
            except AnalysisDegradation as e:
                self._degrade(degradations, AnalysisDegradation("ocr", e.message, page=index))
            except Exception as e:
                self._degrade(degradations, AnalysisDegradation("ocr", str(e), page=index))
        return corpus.with_texts(texts)

    def _attach_embeddings(
        self,
        corpus: PageCorpus,
        embeddings: Optional[Mapping[int, Sequence[float]]],
        degradations: List[Degradation]
    ) -> PageCorpus:
        if embeddings is None:
            if not self.config.embeddings.enabled:
                return corpus
            try:
                embeddings = self.embedder.embed(corpus)
            except AnalysisDegradation as e:
                self._degrade(degradations, e)
                return corpus

        corpus = corpus.with_embeddings(embeddings)
        self.log.for_stage("embed").info(
            f"Embedding coverage {corpus.embedding_coverage:.0%}"
        )
        return corpus

    def _attach_signatures(
        self,
        pdf_bytes: bytes,
        corpus: PageCorpus,
        degradations: List[Degradation]
    ) -> PageCorpus:
        cfg = self.config.duplicates
        if not (cfg.enabled and cfg.use_image_hash):
            return corpus

        try:
            images = self.renderer(pdf_bytes, dpi=self.config.extraction.signature_dpi)
            if len(images) != len(corpus):
                raise ValueError(f"rendered {len(images)} of {len(corpus)} pages")
            signatures = signatures_for(images, hash_size=cfg.hash_size)
        except Exception as e:
            self._degrade(degradations, AnalysisDegradation(
                "signature", f"Image signatures unavailable, using text comparison: {e}"
            ))
            return corpus

        return corpus.with_signatures(dict(enumerate(signatures)))
