"""
Near-duplicate page detection.

Pages are compared by perceptual image signature when every page has one and
image hashing is enabled, otherwise by token overlap of their text. Qualifying
pairs are merged transitively into groups.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .corpus import PageCorpus
from .images import hamming_distance
from .logs import StageLogger
from .similarity import tokenize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DuplicateGroup:
    """Two or more pages judged near-identical."""
    indices: Tuple[int, ...]
    method: str
    threshold: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pages": list(self.indices),
            "method": self.method,
            "threshold": self.threshold,
        }


class _DisjointSet:
    """Union-find over page indices."""

    def __init__(self, size: int):
        self.parent = list(range(size))

    def find(self, item: int) -> int:
        while self.parent[item] != item:
            self.parent[item] = self.parent[self.parent[item]]
            item = self.parent[item]
        return item

    def union(self, a: int, b: int):
        root_a, root_b = self.find(a), self.find(b)
        if root_a != root_b:
            # Smaller index becomes the root so grouping is order-independent
            self.parent[max(root_a, root_b)] = min(root_a, root_b)


class DuplicateDetector:
    """
    Groups near-identical pages.

    Args:
        jaccard_threshold: Minimum text token overlap for a text match
        hamming_threshold: Maximum signature Hamming distance for an image match
        use_image_hash: Compare image signatures when all pages carry one
    """

    def __init__(
        self,
        jaccard_threshold: float = 0.9,
        hamming_threshold: int = 6,
        use_image_hash: bool = True,
        log: Optional[StageLogger] = None
    ):
        self.jaccard_threshold = jaccard_threshold
        self.hamming_threshold = hamming_threshold
        self.use_image_hash = use_image_hash
        self.log = log or StageLogger(logger, stage="duplicates")

    def detect(self, corpus: PageCorpus) -> List[DuplicateGroup]:
        try:
            if self.use_image_hash and len(corpus) and all(p.signature for p in corpus):
                pairs = self._image_pairs(corpus)
                method, threshold = "image_hash", float(self.hamming_threshold)
            else:
                pairs = self._text_pairs(corpus)
                method, threshold = "text_jaccard", self.jaccard_threshold
        except Exception as e:
            self.log.warning(f"Duplicate detection failed, reporting none: {e}")
            return []

        groups = self._group(len(corpus), pairs, method, threshold)
        self.log.info(f"Found {len(groups)} duplicate group(s) using {method}")
        return groups

    def _image_pairs(self, corpus: PageCorpus) -> List[Tuple[int, int]]:
        pairs = []
        for i in range(len(corpus)):
            for j in range(i + 1, len(corpus)):
                distance = hamming_distance(corpus[i].signature, corpus[j].signature)
                if distance <= self.hamming_threshold:
                    pairs.append((i, j))
        return pairs

    def _text_pairs(self, corpus: PageCorpus) -> List[Tuple[int, int]]:
        tokens = [tokenize(page.text) for page in corpus]
        pairs = []
        for i in range(len(corpus)):
            for j in range(i + 1, len(corpus)):
                union = tokens[i] | tokens[j]
                if not union:
                    continue
                if len(tokens[i] & tokens[j]) / len(union) >= self.jaccard_threshold:
                    pairs.append((i, j))
        return pairs

    def _group(
        self,
        size: int,
        pairs: List[Tuple[int, int]],
        method: str,
        threshold: float
    ) -> List[DuplicateGroup]:
        disjoint = _DisjointSet(size)
        for a, b in pairs:
            disjoint.union(a, b)

        members: Dict[int, List[int]] = {}
        for index in range(size):
            members.setdefault(disjoint.find(index), []).append(index)

        groups = [
            DuplicateGroup(indices=tuple(sorted(group)), method=method, threshold=threshold)
            for group in members.values()
            if len(group) >= 2
        ]
        return sorted(groups, key=lambda g: g.indices[0])
