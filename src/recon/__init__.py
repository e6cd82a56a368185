"""
Modules for the page-order reconstruction pipeline.
"""

from .errors import (
    ReconstructionError, ExtractionFailure, ExportFailure,
    PipelineCancelled, AnalysisDegradation, EngineUnavailable, Degradation,
)
from .corpus import Page, PageCorpus
from .io import read_source, extract_corpus, render_page_images, save_json, ensure_dir
from .classifier import PageRole, PageClassification, StructureClassifier, extract_page_number
from .similarity import SimilarityEngine, SimilarityMatrix
from .ordering import OrderPlanner, OrderResult, OrderStrategy, repair_permutation
from .duplicates import DuplicateDetector, DuplicateGroup
from .missing import MissingPageAnalyzer, MissingGap
from .toc import TocBuilder, TocEntry
from .export import ReconstructionExporter, link_target_page
from .reports import ReportWriter
from .pipeline import ReconstructionPipeline, ReconstructionResult

__all__ = [
    # Errors
    "ReconstructionError", "ExtractionFailure", "ExportFailure",
    "PipelineCancelled", "AnalysisDegradation", "EngineUnavailable", "Degradation",
    # Corpus and IO
    "Page", "PageCorpus", "read_source", "extract_corpus", "render_page_images",
    "save_json", "ensure_dir",
    # Analysis
    "PageRole", "PageClassification", "StructureClassifier", "extract_page_number",
    "SimilarityEngine", "SimilarityMatrix",
    "OrderPlanner", "OrderResult", "OrderStrategy", "repair_permutation",
    "DuplicateDetector", "DuplicateGroup", "MissingPageAnalyzer", "MissingGap",
    "TocBuilder", "TocEntry",
    # Output
    "ReconstructionExporter", "link_target_page", "ReportWriter",
    # Pipeline
    "ReconstructionPipeline", "ReconstructionResult",
]
