"""
Table of contents synthesis.

Provides:
- Heading detection (chapter/section labels, numbered outlines, underlined
  lines, ALL-CAPS, Title-Case and bulleted short lines)
- Keyword-bucket fallback when no heading is found
- Gap filling so that every page belongs to exactly one entry

All indices are original page indices; the exporter maps them through the
final order.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .corpus import Page, PageCorpus
from .logs import StageLogger

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class TocEntry:
    """One outline entry over an inclusive range of original page indices."""
    title: str
    start_index: int
    end_index: int
    level: int = 1

    @property
    def pages(self) -> range:
        return range(self.start_index, self.end_index + 1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "start_index": self.start_index,
            "end_index": self.end_index,
            "level": self.level,
        }


@dataclass(frozen=True)
class HeadingCandidate:
    """A heading found on a page. Lower strength is a more reliable pattern."""
    page: int
    line_number: int
    title: str
    level: int
    strength: int
    pattern: str


# ============================================================================
# Patterns
# ============================================================================

LABELLED_HEADING = re.compile(
    r"^(chapter|section|part)\s+(\d+(?:\.\d+)*|[ivxlcdm]+)\b\s*[:.\-–—]?\s*(.*)$",
    re.I
)
NUMBERED_OUTLINE = re.compile(r"^(\d{1,2}(?:\.\d{1,2}){0,3})\.?\s+([A-Z].*)$")
UNDERLINE = re.compile(r"^([-_=])\1{2,}$")
BULLET = re.compile(r"^[•▪►◦*\-]\s+(.+)$")

EXCLUDE_PATTERNS = [
    re.compile(r"^(page\s+)?\d+(\s*(of|/)\s*\d+)?$", re.I),
    re.compile(r"^p\.\s*\d+$", re.I),
    re.compile(r"^[ivxlcdm]+\.?$", re.I),
    re.compile(r"\b\d{1,2}[/.-]\d{1,2}[/.-]\d{2,4}\b"),
    re.compile(r"\b\d{4}-\d{2}-\d{2}\b"),
    re.compile(
        r"\b(jan(uary)?|feb(ruary)?|mar(ch)?|apr(il)?|may|june?|july?|aug(ust)?|"
        r"sep(t(ember)?)?|oct(ober)?|nov(ember)?|dec(ember)?)\.?\s+(\d{1,2},?\s+)?\d{4}\b",
        re.I
    ),
    re.compile(r"^(fig\.?|figure|table)\s*\d+", re.I),
    re.compile(r"\.{4,}|(\s\.){3,}"),
]

MINOR_WORDS = {
    "a", "an", "and", "as", "at", "by", "for", "from", "in", "into", "of",
    "on", "or", "the", "to", "with", "vs", "via",
}

# (bucket title, pattern) in priority order for the fallback pass
KEYWORD_BUCKETS: List[Tuple[str, re.Pattern]] = [
    ("Title Page", re.compile(
        r"\b(a thesis|dissertation|submitted (to|by|in)|all rights reserved|copyright)\b")),
    ("Table of Contents", re.compile(r"\b(table of contents|contents)\b")),
    ("Abstract", re.compile(r"\babstract\b")),
    ("Introduction", re.compile(r"\b(introduction|background|overview)\b")),
    ("Methods", re.compile(r"\b(methods?|methodology|materials and methods|approach)\b")),
    ("Results", re.compile(r"\b(results|findings|experiments?)\b")),
    ("Discussion", re.compile(r"\bdiscussion\b")),
    ("Conclusion", re.compile(r"\b(conclusions?|concluding remarks|future work)\b")),
    ("References", re.compile(r"\b(references|bibliography|works cited)\b")),
    ("Appendix", re.compile(r"\b(appendix|appendices)\b")),
]


# ============================================================================
# TOC Builder
# ============================================================================

class TocBuilder:
    """
    Derives a page-complete outline from page text.

    Args:
        heading_scan_lines: Weak heading patterns are only tried on this many
            leading non-empty lines of a page
        min_heading_length: Shortest accepted heading, in characters
        max_heading_length: Longest accepted heading, in characters
        max_heading_words: Word limit for short-line heading patterns
        content_run_min: Uncovered runs at least this long become one
            "Content Section" entry instead of per-page entries
    """

    def __init__(
        self,
        heading_scan_lines: int = 5,
        min_heading_length: int = 3,
        max_heading_length: int = 80,
        max_heading_words: int = 10,
        content_run_min: int = 3,
        log: Optional[StageLogger] = None
    ):
        self.heading_scan_lines = heading_scan_lines
        self.min_heading_length = min_heading_length
        self.max_heading_length = max_heading_length
        self.max_heading_words = max_heading_words
        self.content_run_min = content_run_min
        self.log = log or StageLogger(logger, stage="toc")

    def build(self, corpus: PageCorpus) -> List[TocEntry]:
        """
        Build the outline for a corpus.

        Returns:
            Entries sorted by start index whose ranges cover every page once
        """
        n = len(corpus)
        if n == 0:
            return []

        headings = [h for h in (self.find_heading(page) for page in corpus) if h]
        if headings:
            entries = self._entries_from_headings(headings, n)
            self.log.info(f"Found {len(headings)} heading(s)")
        else:
            entries = self._entries_from_keywords(corpus)
            self.log.info(f"No headings found; keyword pass produced {len(entries)} entries")

        entries = sorted(entries + self._fill_gaps(entries, n), key=lambda e: e.start_index)
        self._check_coverage(entries, n)
        return entries

    # ------------------------------------------------------------------
    # Heading pass
    # ------------------------------------------------------------------

    def find_heading(self, page: Page) -> Optional[HeadingCandidate]:
        """Return the most reliable heading on a page, if any."""
        lines = page.lines
        candidates: List[HeadingCandidate] = []

        for number, line in enumerate(lines):
            following = lines[number + 1] if number + 1 < len(lines) else ""
            candidate = self._strong_heading(page.index, number, line, following)
            if candidate is None and number < self.heading_scan_lines:
                candidate = self._weak_heading(page.index, number, line)
            if candidate is not None and self._acceptable(candidate.title):
                candidates.append(candidate)

        if not candidates:
            return None
        best = min(candidates, key=lambda c: (c.strength, c.line_number))
        self.log.for_page(page.index).debug(f"heading '{best.title}' ({best.pattern})")
        return best

    def _strong_heading(
        self,
        page: int,
        number: int,
        line: str,
        following: str
    ) -> Optional[HeadingCandidate]:
        match = LABELLED_HEADING.match(line)
        if match:
            kind, label, rest = match.groups()
            title = f"{kind.capitalize()} {label}"
            if rest.strip():
                title = f"{title}: {rest.strip()}"
            level = 2 if kind.lower() == "section" else 1
            return HeadingCandidate(page, number, title, level, 0, "labelled")

        match = NUMBERED_OUTLINE.match(line)
        if match and self._short(match.group(2)) and not match.group(2).endswith("."):
            depth = match.group(1).count(".") + 1
            return HeadingCandidate(page, number, line, min(depth, 3), 1, "outline")

        underline = UNDERLINE.match(following)
        if underline and not UNDERLINE.match(line):
            level = 1 if underline.group(1) == "=" else 2
            return HeadingCandidate(page, number, line, level, 2, "underlined")

        return None

    def _weak_heading(self, page: int, number: int, line: str) -> Optional[HeadingCandidate]:
        if not self._short(line):
            return None

        letters = [c for c in line if c.isalpha()]
        if len(letters) >= 3 and line == line.upper():
            return HeadingCandidate(page, number, line, 1, 3, "all_caps")

        if self._is_title_case(line):
            return HeadingCandidate(page, number, line, 2, 4, "title_case")

        match = BULLET.match(line)
        if match and self._short(match.group(1)):
            return HeadingCandidate(page, number, match.group(1).strip(), 3, 5, "bullet")

        return None

    def _short(self, text: str) -> bool:
        return len(text.split()) <= self.max_heading_words

    def _is_title_case(self, line: str) -> bool:
        words = line.split()
        if not 2 <= len(words) <= self.max_heading_words or line[-1] in ".,;:!?":
            return False
        if not words[0][:1].isupper():
            return False
        for word in words:
            if not word[:1].isalpha():
                return False
            if not word[:1].isupper() and word.lower() not in MINOR_WORDS:
                return False
        return True

    def _acceptable(self, title: str) -> bool:
        title = title.strip()
        if not self.min_heading_length <= len(title) <= self.max_heading_length:
            return False
        return not any(pattern.search(title) for pattern in EXCLUDE_PATTERNS)

    def _entries_from_headings(
        self,
        headings: Sequence[HeadingCandidate],
        n: int
    ) -> List[TocEntry]:
        entries = []
        for current, following in zip(headings, list(headings[1:]) + [None]):
            end = following.page - 1 if following else n - 1
            entries.append(TocEntry(
                title=current.title.rstrip(" :"),
                start_index=current.page,
                end_index=end,
                level=current.level,
            ))
        return entries

    # ------------------------------------------------------------------
    # Keyword fallback
    # ------------------------------------------------------------------

    def _entries_from_keywords(self, corpus: PageCorpus) -> List[TocEntry]:
        buckets: List[Optional[str]] = []
        for page in corpus:
            lowered = page.text.lower()
            buckets.append(next(
                (title for title, pattern in KEYWORD_BUCKETS if pattern.search(lowered)),
                None
            ))

        entries = []
        start = 0
        for index in range(1, len(buckets) + 1):
            if index < len(buckets) and buckets[index] == buckets[start]:
                continue
            if buckets[start] is not None:
                entries.append(TocEntry(buckets[start], start, index - 1, 1))
            start = index
        return entries

    # ------------------------------------------------------------------
    # Coverage
    # ------------------------------------------------------------------

    def _fill_gaps(self, entries: Sequence[TocEntry], n: int) -> List[TocEntry]:
        covered = set()
        for entry in entries:
            covered.update(entry.pages)

        runs: List[Tuple[int, int]] = []
        for index in range(n):
            if index in covered:
                continue
            if runs and runs[-1][1] == index - 1:
                runs[-1] = (runs[-1][0], index)
            else:
                runs.append((index, index))

        fillers = []
        for start, end in runs:
            if end - start + 1 >= self.content_run_min:
                fillers.append(TocEntry(
                    f"Content Section (pages {start + 1}-{end + 1})", start, end, 1
                ))
            else:
                fillers.extend(TocEntry(f"Page {i + 1}", i, i, 1) for i in range(start, end + 1))
        return fillers

    @staticmethod
    def _check_coverage(entries: Sequence[TocEntry], n: int):
        pages = [i for entry in entries for i in entry.pages]
        if sorted(pages) != list(range(n)):
            raise RuntimeError(f"TOC does not cover pages 0..{n - 1} exactly once")


def covered_indices(entries: Sequence[TocEntry]) -> List[int]:
    """All page indices covered by a TOC, in entry order."""
    return [i for entry in entries for i in entry.pages]
