"""
Page order planning.

Provides:
- OrderStrategy tag and OrderResult
- Strategy cascade: explicit numbering, structural roles, similarity chain
- Permutation repair applied to every candidate order

Each strategy either declines (returns None) or produces a candidate result.
The first candidate wins; it is then repaired into a true permutation.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .classifier import PageClassification, PageRole
from .logs import StageLogger
from .similarity import SimilarityMatrix

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes and Enums
# ============================================================================

class OrderStrategy(Enum):
    """Which strategy produced an order."""
    TRIVIAL = "trivial"
    EXPLICIT_NUMBERING = "explicit_numbering"
    STRUCTURAL = "structural"
    SIMILARITY_CHAIN = "similarity_chain"


@dataclass(frozen=True)
class OrderResult:
    """A proposed reading order over original page indices."""
    order: Tuple[int, ...]
    confidence: float
    reasoning: str
    strategy: OrderStrategy

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order": list(self.order),
            "confidence": round(self.confidence, 4),
            "reasoning": self.reasoning,
            "strategy": self.strategy.value,
        }


# ============================================================================
# Role Tables
# ============================================================================

UNCLASSIFIED_BUCKET = 5

# Every PageRole maps to one bucket; roles without a dedicated bucket fall
# into the unclassified bucket and keep their original relative order.
STRUCTURAL_BUCKETS: Dict[PageRole, int] = {
    PageRole.TITLE: 0,
    PageRole.TOC: 1,
    PageRole.ABSTRACT: 2,
    PageRole.INTRODUCTION: 3,
    PageRole.CHAPTER: 4,
    PageRole.SECTION: UNCLASSIFIED_BUCKET,
    PageRole.CONTENT: UNCLASSIFIED_BUCKET,
    PageRole.UNKNOWN: UNCLASSIFIED_BUCKET,
    PageRole.CONCLUSION: 6,
    PageRole.REFERENCES: 7,
    PageRole.APPENDIX: 8,
    PageRole.INDEX: 9,
}

# Lower is stronger; only these roles can seed a similarity chain.
SEED_PRIORITY: Dict[PageRole, int] = {
    PageRole.TITLE: 0,
    PageRole.ABSTRACT: 1,
    PageRole.INTRODUCTION: 2,
}

# Transitions expected late in a document get a small push.
TRANSITION_BONUS: Dict[Tuple[PageRole, PageRole], float] = {
    (PageRole.CHAPTER, PageRole.CHAPTER): 0.1,
    (PageRole.CONCLUSION, PageRole.REFERENCES): 0.2,
    (PageRole.REFERENCES, PageRole.APPENDIX): 0.2,
}

_missing_roles = set(PageRole) - set(STRUCTURAL_BUCKETS)
if _missing_roles:
    raise RuntimeError(
        f"Structural bucket table is missing roles: {sorted(r.value for r in _missing_roles)}"
    )


# ============================================================================
# Permutation Repair
# ============================================================================

def repair_permutation(candidate: Sequence[int], n: int) -> Tuple[Tuple[int, ...], List[str]]:
    """
    Repair a candidate order into a bijection over 0..n-1.

    Out-of-range entries and repeats after the first occurrence are dropped;
    indices never mentioned are appended in ascending order.

    Args:
        candidate: Proposed order (may be invalid)
        n: Number of pages

    Returns:
        Tuple of (valid order, list of repair notes)
    """
    seen = set()
    order: List[int] = []
    notes: List[str] = []

    for index in candidate:
        if not isinstance(index, (int, np.integer)) or not 0 <= index < n:
            notes.append(f"dropped out-of-range index {index}")
            continue
        index = int(index)
        if index in seen:
            notes.append(f"dropped repeated index {index}")
            continue
        seen.add(index)
        order.append(index)

    missing = [i for i in range(n) if i not in seen]
    if missing:
        notes.append(f"appended missing indices {missing}")
        order.extend(missing)

    return tuple(order), notes


def is_permutation(order: Sequence[int], n: int) -> bool:
    return len(order) == n and sorted(order) == list(range(n))


# ============================================================================
# Order Planner
# ============================================================================

class OrderPlanner:
    """
    Combines classifier and similarity output into one best-guess order.

    Strategies are tried in order; the first one that qualifies wins:
    explicit numbering, structural roles, then a greedy similarity chain.
    """

    def __init__(
        self,
        numbering_min_fraction: float = 0.7,
        structure_min_fraction: float = 0.6,
        numbering_confidence_cap: float = 0.95,
        structure_confidence_cap: float = 0.8,
        chain_confidence_cap: float = 0.9,
        log: Optional[StageLogger] = None
    ):
        self.numbering_min_fraction = numbering_min_fraction
        self.structure_min_fraction = structure_min_fraction
        self.numbering_confidence_cap = numbering_confidence_cap
        self.structure_confidence_cap = structure_confidence_cap
        self.chain_confidence_cap = chain_confidence_cap
        self.log = log or StageLogger(logger, stage="order")

    @property
    def strategies(self) -> List[Tuple[OrderStrategy, Callable[..., Optional[OrderResult]]]]:
        return [
            (OrderStrategy.TRIVIAL, self._trivial),
            (OrderStrategy.EXPLICIT_NUMBERING, self._by_numbering),
            (OrderStrategy.STRUCTURAL, self._by_structure),
            (OrderStrategy.SIMILARITY_CHAIN, self._by_similarity),
        ]

    def plan(
        self,
        classifications: Sequence[PageClassification],
        similarity: Optional[SimilarityMatrix] = None
    ) -> OrderResult:
        """
        Produce the reading order for a document.

        Args:
            classifications: One classification per page, in index order
            similarity: Pairwise similarity; a zero matrix is used when absent

        Returns:
            OrderResult whose order is always a permutation of 0..N-1
        """
        n = len(classifications)
        if similarity is None or similarity.size != n:
            if similarity is not None:
                self.log.warning(
                    f"Similarity matrix size {similarity.size} does not match "
                    f"{n} pages; ignoring it"
                )
            similarity = SimilarityMatrix(values=np.eye(n), method="none")

        for strategy, attempt in self.strategies:
            result = attempt(classifications, similarity)
            if result is None:
                self.log.debug(f"Strategy {strategy.value} declined")
                continue
            self.log.info(
                f"Strategy {strategy.value} selected, confidence {result.confidence:.2f}"
            )
            return self.validate(result, n)

        # The similarity chain always qualifies, so this is unreachable for n > 1.
        raise RuntimeError("No ordering strategy produced a result")

    def validate(self, result: OrderResult, n: int) -> OrderResult:
        """Repair the result's order into a bijection over 0..n-1."""
        order, notes = repair_permutation(result.order, n)
        if not notes:
            return result
        for note in notes:
            self.log.warning(f"Order repaired: {note}")
        reasoning = f"{result.reasoning} Order repaired ({'; '.join(notes)})."
        return replace(result, order=order, reasoning=reasoning)

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _trivial(
        self,
        classifications: Sequence[PageClassification],
        similarity: SimilarityMatrix
    ) -> Optional[OrderResult]:
        n = len(classifications)
        if n > 1:
            return None
        return OrderResult(
            order=tuple(range(n)),
            confidence=1.0,
            reasoning=f"Document has {n} page(s); nothing to reorder.",
            strategy=OrderStrategy.TRIVIAL,
        )

    def _by_numbering(
        self,
        classifications: Sequence[PageClassification],
        similarity: SimilarityMatrix
    ) -> Optional[OrderResult]:
        n = len(classifications)
        numbered = [c for c in classifications if c.explicit_number is not None]
        fraction = len(numbered) / n
        if fraction < self.numbering_min_fraction:
            return None

        # Numbered pages are sorted into the slots that numbered pages
        # occupied; numberless pages keep their own slots.
        ranked = sorted(numbered, key=lambda c: (c.explicit_number, c.index))
        slots = iter(ranked)
        order = [
            next(slots).index if c.explicit_number is not None else c.index
            for c in classifications
        ]

        numbers = [c.explicit_number for c in numbered]
        repeats = len(numbers) - len(set(numbers))
        reasoning = (
            f"Explicit page numbers found on {len(numbered)}/{n} pages "
            f"({fraction:.0%}); pages sorted by printed number."
        )
        if repeats:
            reasoning += f" {repeats} repeated number(s) ordered by original position."

        return OrderResult(
            order=tuple(order),
            confidence=min(fraction, self.numbering_confidence_cap),
            reasoning=reasoning,
            strategy=OrderStrategy.EXPLICIT_NUMBERING,
        )

    def _by_structure(
        self,
        classifications: Sequence[PageClassification],
        similarity: SimilarityMatrix
    ) -> Optional[OrderResult]:
        n = len(classifications)
        classified = sum(1 for c in classifications if c.is_classified)
        fraction = classified / n
        if fraction < self.structure_min_fraction:
            return None

        ordered = sorted(classifications, key=lambda c: (STRUCTURAL_BUCKETS[c.role], c.index))
        roles = ", ".join(
            f"{c.index}:{c.role.value}" for c in ordered if c.is_classified
        )
        reasoning = (
            f"Structural roles assigned to {classified}/{n} pages ({fraction:.0%}); "
            f"pages grouped as title, toc, abstract, introduction, chapters, body, "
            f"conclusion, references, appendix, index. Roles: {roles}."
        )
        return OrderResult(
            order=tuple(c.index for c in ordered),
            confidence=min(self.structure_confidence_cap, fraction * 0.8),
            reasoning=reasoning,
            strategy=OrderStrategy.STRUCTURAL,
        )

    def _by_similarity(
        self,
        classifications: Sequence[PageClassification],
        similarity: SimilarityMatrix
    ) -> Optional[OrderResult]:
        n = len(classifications)
        roles = [c.role for c in classifications]
        seed = self._choose_seed(roles, similarity)

        chain = [seed]
        visited = {seed}
        while len(chain) < n:
            current = chain[-1]
            best_index = -1
            best_score = -np.inf
            for candidate in range(n):
                if candidate in visited:
                    continue
                score = similarity(current, candidate) + TRANSITION_BONUS.get(
                    (roles[current], roles[candidate]), 0.0
                )
                if score > best_score:
                    best_score = score
                    best_index = candidate
            chain.append(best_index)
            visited.add(best_index)

        links = [similarity(a, b) for a, b in zip(chain, chain[1:])]
        mean_link = float(np.mean(links)) if links else 0.0
        reasoning = (
            f"Greedy similarity chain ({similarity.method}) seeded at page {seed} "
            f"({roles[seed].value}); mean consecutive similarity {mean_link:.3f}."
        )
        return OrderResult(
            order=tuple(chain),
            confidence=min(mean_link, self.chain_confidence_cap),
            reasoning=reasoning,
            strategy=OrderStrategy.SIMILARITY_CHAIN,
        )

    def _choose_seed(self, roles: Sequence[PageRole], similarity: SimilarityMatrix) -> int:
        averages = [similarity.average(i) for i in range(len(roles))]
        seeds = [i for i, role in enumerate(roles) if role in SEED_PRIORITY]
        if seeds:
            return min(seeds, key=lambda i: (SEED_PRIORITY[roles[i]], -averages[i], i))
        return min(range(len(roles)), key=lambda i: (-averages[i], i))
