"""
Page structure classification.

Provides:
- PageRole enumeration (closed set of coarse page roles)
- Role assignment by ordered, line-anchored keyword rules
- Explicit page number extraction from footer/header/middle bands
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .corpus import Page, PageCorpus
from .logs import StageLogger

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes and Enums
# ============================================================================

class PageRole(Enum):
    """Coarse structural role of a page."""
    TITLE = "title"
    TOC = "toc"
    ABSTRACT = "abstract"
    INTRODUCTION = "introduction"
    CHAPTER = "chapter"
    SECTION = "section"
    CONTENT = "content"
    CONCLUSION = "conclusion"
    REFERENCES = "references"
    APPENDIX = "appendix"
    INDEX = "index"
    UNKNOWN = "unknown"


# Roles assigned without a keyword match
UNMATCHED_ROLES = frozenset({PageRole.CONTENT, PageRole.UNKNOWN})


@dataclass(frozen=True)
class PageClassification:
    """Role and printed page number for one page."""
    index: int
    role: PageRole
    explicit_number: Optional[int] = None

    @property
    def is_classified(self) -> bool:
        return self.role not in UNMATCHED_ROLES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "role": self.role.value,
            "explicit_number": self.explicit_number,
        }


# ============================================================================
# Role Rules
# ============================================================================

# Ordered: first match wins. Matched against lowercase text, anchored to line
# starts so that passing mentions inside prose are ignored.
ROLE_RULES: List[Tuple[PageRole, re.Pattern]] = [
    (PageRole.TOC, re.compile(r"^\s*(table of contents|contents)\s*$", re.M)),
    (PageRole.ABSTRACT, re.compile(r"^\s*(abstract|summary)\b", re.M)),
    (PageRole.INTRODUCTION, re.compile(
        r"^\s*((\d+|[ivx]+)[.)]?\s+)?(introduction|preface|foreword)\b", re.M)),
    (PageRole.CHAPTER, re.compile(r"^\s*chapter\s+(\d+|[ivxlc]+|[a-z]+)\b", re.M)),
    (PageRole.SECTION, re.compile(
        r"^\s*(section\s+\d+|\d+\.\d+(\.\d+)*\s+[a-z])", re.M)),
    (PageRole.CONCLUSION, re.compile(
        r"^\s*((\d+|[ivx]+)[.)]?\s+)?(conclusions?|concluding remarks|closing remarks)\b",
        re.M)),
    (PageRole.REFERENCES, re.compile(
        r"^\s*(references|bibliography|works cited|literature cited)\s*$", re.M)),
    (PageRole.APPENDIX, re.compile(r"^\s*(appendix|appendices)\b", re.M)),
    (PageRole.INDEX, re.compile(r"^\s*(index|subject index|author index)\s*$", re.M)),
    (PageRole.TITLE, re.compile(
        r"^\s*(a thesis|a dissertation|submitted (to|by|in)|presented by|"
        r"prepared (for|by)|all rights reserved|copyright|©)", re.M)),
]


# ============================================================================
# Page Number Patterns
# ============================================================================

_ROMAN_VALUES = {"i": 1, "v": 5, "x": 10, "l": 50, "c": 100, "d": 500, "m": 1000}
_ROMAN_CANONICAL = re.compile(
    r"^m{0,3}(cm|cd|d?c{0,3})(xc|xl|l?x{0,3})(ix|iv|v?i{0,3})$"
)


def roman_to_int(numeral: str) -> Optional[int]:
    """Convert a canonical roman numeral to an int, or None if invalid."""
    numeral = numeral.strip().lower()
    if not numeral or not _ROMAN_CANONICAL.match(numeral):
        return None
    total = 0
    previous = 0
    for char in reversed(numeral):
        value = _ROMAN_VALUES[char]
        if value < previous:
            total -= value
        else:
            total += value
            previous = value
    return total


# Ordered list of (name, pattern, converter). Each pattern matches a whole line.
NUMBER_PATTERNS: List[Tuple[str, re.Pattern, Any]] = [
    ("page_n", re.compile(r"^page\s+(\d{1,4})(?:\s+(?:of|/)\s+\d{1,4})?$", re.I), int),
    ("p_dot_n", re.compile(r"^p(?:g)?\.\s*(\d{1,4})$", re.I), int),
    ("n_of_m", re.compile(r"^(\d{1,4})\s*(?:of|/)\s*\d{1,4}$", re.I), int),
    ("roman", re.compile(r"^(?:page\s+)?([ivxlcdm]{1,8})\.?$", re.I), roman_to_int),
    ("wrapped", re.compile(
        r"^(?:[-–—]\s*(\d{1,4})\s*[-–—]|[\[(]\s*(\d{1,4})\s*[\])])$"),
        int),
    ("bare", re.compile(r"^(\d{1,4})$"), int),
]

MIN_PAGE_NUMBER = 1
MAX_PAGE_NUMBER = 9999

FOOTER_BAND_LINES = 3
HEADER_BAND_LINES = 2


def _scan_lines(lines: Sequence[str]) -> Optional[int]:
    """Apply the pattern list in priority order across a band of lines."""
    for _, pattern, convert in NUMBER_PATTERNS:
        for line in lines:
            match = pattern.match(line)
            if not match:
                continue
            raw = next(group for group in match.groups() if group is not None)
            value = convert(raw)
            if value is not None and MIN_PAGE_NUMBER <= value <= MAX_PAGE_NUMBER:
                return value
    return None


def extract_page_number(text: str) -> Optional[int]:
    """
    Extract the printed page number from page text.

    Bands are tried in order: footer (last lines), running header (first
    lines), then the middle of the page. Within a band, patterns are tried in
    priority order. If no band yields a number, the same pattern list is
    applied to every line of the full text.

    Args:
        text: Raw page text

    Returns:
        Page number in 1..9999, or None
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        return None

    footer = lines[-FOOTER_BAND_LINES:]
    header = lines[:HEADER_BAND_LINES] if len(lines) > FOOTER_BAND_LINES else []
    # Middle third of the page, for scans that put the number beside the body
    middle = lines[len(lines) // 3:2 * len(lines) // 3] if len(lines) > (
        FOOTER_BAND_LINES + HEADER_BAND_LINES) else []

    # Footer is scanned bottom-up: the last line is the likeliest page label.
    for band in (list(reversed(footer)), header, middle):
        if band:
            number = _scan_lines(band)
            if number is not None:
                return number

    return _scan_lines(lines)


# ============================================================================
# Classifier
# ============================================================================

class StructureClassifier:
    """
    Tags pages with a coarse role and an optional explicit page number.

    Classification is a pure function of the page text, so identical text
    always yields an identical result.
    """

    def __init__(
        self,
        content_min_words: int = 40,
        log: Optional[StageLogger] = None
    ):
        self.content_min_words = content_min_words
        self.log = log or StageLogger(logger, stage="classify")

    def classify_role(self, text: str) -> PageRole:
        lowered = text.lower()
        for role, pattern in ROLE_RULES:
            if pattern.search(lowered):
                return role
        if len(lowered.split()) >= self.content_min_words:
            return PageRole.CONTENT
        return PageRole.UNKNOWN

    def classify(self, page: Page) -> PageClassification:
        role = self.classify_role(page.text)
        number = page.explicit_number
        if number is None:
            number = extract_page_number(page.text)
        self.log.for_page(page.index).debug(f"role={role.value} number={number}")
        return PageClassification(index=page.index, role=role, explicit_number=number)

    def classify_corpus(self, corpus: PageCorpus) -> List[PageClassification]:
        results = [self.classify(page) for page in corpus]
        numbered = sum(1 for r in results if r.explicit_number is not None)
        classified = sum(1 for r in results if r.is_classified)
        self.log.info(
            f"Classified {len(results)} pages: {classified} with a keyword role, "
            f"{numbered} with an explicit number"
        )
        return results
