"""
Missing page detection from gaps in printed page numbering.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .classifier import PageClassification
from .logs import StageLogger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MissingGap:
    """An expected page number with no page, between two present numbers."""
    number: int
    before_index: int
    after_index: int
    before_number: int
    after_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "expected_page": self.number,
            "between_pages": [self.before_index, self.after_index],
            "between_numbers": [self.before_number, self.after_number],
        }


class MissingPageAnalyzer:
    """
    Flags absent page numbers.

    Analysis only runs when at least ``min_numbered_fraction`` of the pages
    carry an explicit number; otherwise no gaps are reported.
    """

    def __init__(
        self,
        min_numbered_fraction: float = 0.5,
        max_gap_span: Optional[int] = None,
        log: Optional[StageLogger] = None
    ):
        self.min_numbered_fraction = min_numbered_fraction
        self.max_gap_span = max_gap_span
        self.log = log or StageLogger(logger, stage="missing")

    def analyze(self, classifications: Sequence[PageClassification]) -> List[MissingGap]:
        if not classifications:
            return []

        numbered = [c for c in classifications if c.explicit_number is not None]
        fraction = len(numbered) / len(classifications)
        if fraction < self.min_numbered_fraction:
            self.log.info(
                f"Only {fraction:.0%} of pages are numbered; skipping gap analysis"
            )
            return []

        # Lowest page index wins when a number repeats
        index_of: Dict[int, int] = {}
        for c in sorted(numbered, key=lambda c: c.index):
            index_of.setdefault(c.explicit_number, c.index)

        present = sorted(index_of)
        gaps: List[MissingGap] = []
        for low, high in zip(present, present[1:]):
            span = high - low - 1
            if span <= 0:
                continue
            if self.max_gap_span is not None and span > self.max_gap_span:
                self.log.warning(
                    f"Skipping gap of {span} between numbers {low} and {high}"
                )
                continue
            for number in range(low + 1, high):
                gaps.append(MissingGap(
                    number=number,
                    before_index=index_of[low],
                    after_index=index_of[high],
                    before_number=low,
                    after_number=high,
                ))

        self.log.info(f"Found {len(gaps)} missing page number(s)")
        return gaps
