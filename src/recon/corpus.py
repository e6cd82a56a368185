"""
Page corpus data model.

A Page is the immutable record of one extracted page. A PageCorpus is the
ordered collection of pages for one document, indexed 0..N-1 in source order.
Derived values (OCR text, embeddings, signatures) never mutate a page; they
produce a new corpus with replaced pages.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class Page:
    """A single extracted page."""
    index: int
    text: str = ""
    width: float = 0.0
    height: float = 0.0
    rotation: int = 0
    explicit_number: Optional[int] = None
    embedding: Optional[Tuple[float, ...]] = None
    signature: Optional[str] = None

    @property
    def has_text(self) -> bool:
        return bool(self.text.strip())

    @property
    def lines(self) -> List[str]:
        """Non-empty, stripped lines of the page text."""
        return [line.strip() for line in self.text.splitlines() if line.strip()]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "width": self.width,
            "height": self.height,
            "rotation": self.rotation,
            "explicit_number": self.explicit_number,
            "has_embedding": self.embedding is not None,
            "signature": self.signature,
            "characters": len(self.text),
        }


@dataclass(frozen=True)
class PageCorpus:
    """Ordered, immutable collection of pages for one document."""
    pages: Tuple[Page, ...] = field(default_factory=tuple)

    def __post_init__(self):
        pages = tuple(self.pages)
        object.__setattr__(self, "pages", pages)
        for position, page in enumerate(pages):
            if page.index != position:
                raise ValueError(
                    f"Page indices must be 0..{len(pages) - 1} in order; "
                    f"found index {page.index} at position {position}"
                )

    def __len__(self) -> int:
        return len(self.pages)

    def __iter__(self) -> Iterator[Page]:
        return iter(self.pages)

    def __getitem__(self, index: int) -> Page:
        return self.pages[index]

    @property
    def texts(self) -> List[str]:
        return [page.text for page in self.pages]

    @property
    def embedding_coverage(self) -> float:
        """Fraction of pages carrying an embedding vector."""
        if not self.pages:
            return 0.0
        return sum(1 for p in self.pages if p.embedding is not None) / len(self.pages)

    @classmethod
    def from_texts(
        cls,
        texts: Sequence[str],
        width: float = 595.0,
        height: float = 842.0
    ) -> "PageCorpus":
        """Build a corpus from plain page texts in source order."""
        return cls(tuple(
            Page(index=i, text=text, width=width, height=height)
            for i, text in enumerate(texts)
        ))

    def _with(self, field_name: str, values: Mapping[int, Any]) -> "PageCorpus":
        pages = []
        for page in self.pages:
            if page.index in values:
                page = replace(page, **{field_name: values[page.index]})
            pages.append(page)
        return PageCorpus(tuple(pages))

    def with_texts(self, texts: Mapping[int, str]) -> "PageCorpus":
        return self._with("text", texts)

    def with_embeddings(self, embeddings: Mapping[int, Sequence[float]]) -> "PageCorpus":
        """Attach embedding vectors by page index. Partial coverage is allowed."""
        vectors = {
            index: tuple(float(v) for v in vector)
            for index, vector in embeddings.items()
            if 0 <= index < len(self.pages) and vector is not None
        }
        return self._with("embedding", vectors)

    def with_signatures(self, signatures: Mapping[int, str]) -> "PageCorpus":
        return self._with("signature", signatures)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page_count": len(self.pages),
            "pages": [page.to_dict() for page in self.pages],
        }
