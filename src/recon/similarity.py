"""
Pairwise page similarity.

Cosine similarity over embedding vectors when both pages carry one, token
overlap (Jaccard over lowercase whitespace tokens) otherwise.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import numpy as np

from .corpus import PageCorpus
from .logs import StageLogger

logger = logging.getLogger(__name__)


def cosine_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    """dot(a, b) / (|a| |b|); 0.0 for missing, zero or mismatched vectors."""
    if a is None or b is None or len(a) != len(b) or len(a) == 0:
        return 0.0
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm = np.linalg.norm(va) * np.linalg.norm(vb)
    if norm == 0:
        return 0.0
    return float(np.dot(va, vb) / norm)


def tokenize(text: str) -> frozenset:
    return frozenset(text.lower().split())


def token_overlap(text_a: str, text_b: str) -> float:
    """Shared lowercase whitespace tokens divided by the token union."""
    tokens_a = tokenize(text_a)
    tokens_b = tokenize(text_b)
    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)


@dataclass(frozen=True)
class SimilarityMatrix:
    """Symmetric N x N similarity values in [0, 1] with a unit diagonal."""
    values: np.ndarray
    method: str = "lexical"

    @property
    def size(self) -> int:
        return int(self.values.shape[0])

    def __call__(self, i: int, j: int) -> float:
        return float(self.values[i, j])

    def average(self, index: int) -> float:
        """Mean similarity of a page to every other page."""
        if self.size <= 1:
            return 0.0
        row = self.values[index]
        return float((row.sum() - row[index]) / (self.size - 1))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "values": np.round(self.values, 4).tolist(),
        }


class SimilarityEngine:
    """Builds the pairwise similarity matrix for a corpus."""

    def __init__(self, log: Optional[StageLogger] = None):
        self.log = log or StageLogger(logger, stage="similarity")

    def build(self, corpus: PageCorpus) -> SimilarityMatrix:
        n = len(corpus)
        values = np.eye(n, dtype=np.float64)
        embedded_pairs = 0
        total_pairs = 0

        tokens = [tokenize(page.text) for page in corpus]
        for i in range(n):
            for j in range(i + 1, n):
                a, b = corpus[i], corpus[j]
                if a.embedding is not None and b.embedding is not None:
                    score = max(0.0, min(1.0, cosine_similarity(a.embedding, b.embedding)))
                    embedded_pairs += 1
                else:
                    union = tokens[i] | tokens[j]
                    score = len(tokens[i] & tokens[j]) / len(union) if union else 0.0
                values[i, j] = values[j, i] = score
                total_pairs += 1

        if total_pairs == 0 or embedded_pairs == 0:
            method = "lexical"
        elif embedded_pairs == total_pairs:
            method = "embedding"
        else:
            method = "mixed"

        self.log.info(f"Built {n}x{n} similarity matrix ({method})")
        return SimilarityMatrix(values=values, method=method)
