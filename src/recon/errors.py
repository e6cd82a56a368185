"""
Error taxonomy for the reconstruction pipeline.

Fatal errors carry the name of the stage that raised them so the caller can
report where a run stopped. AnalysisDegradation is recoverable: the pipeline
catches it, logs it and records it on the result.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


class ReconstructionError(Exception):
    """Base class for pipeline errors."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        self.message = message
        super().__init__(f"[{stage}] {message}")


class ExtractionFailure(ReconstructionError):
    """The input document could not be read. Aborts before any analysis."""

    def __init__(self, message: str):
        super().__init__("extract", message)


class ExportFailure(ReconstructionError):
    """Writing the reconstructed document failed."""

    def __init__(self, message: str):
        super().__init__("export", message)


class PipelineCancelled(ReconstructionError):
    """The run was cancelled at a stage boundary."""

    def __init__(self, stage: str):
        super().__init__(stage, "run cancelled")


class AnalysisDegradation(ReconstructionError):
    """An optional analysis (OCR, embeddings, signatures) is unavailable."""

    def __init__(self, stage: str, message: str, page: Optional[int] = None):
        self.page = page
        super().__init__(stage, message)


class EngineUnavailable(AnalysisDegradation):
    """An optional engine cannot be loaded, so no page can use it."""


@dataclass(frozen=True)
class Degradation:
    """Record of a recovered AnalysisDegradation, kept on the result."""
    stage: str
    message: str
    page: Optional[int] = None

    @classmethod
    def from_error(cls, error: AnalysisDegradation) -> "Degradation":
        return cls(stage=error.stage, message=error.message, page=error.page)

    def to_dict(self) -> Dict[str, Any]:
        return {"stage": self.stage, "message": self.message, "page": self.page}
