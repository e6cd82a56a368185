"""
Export module for page-order reconstruction.

Provides:
- Reordered PDF assembly (PyMuPDF)
- Optional table-of-contents page with clickable links
- PDF bookmarks mirroring the table of contents
- Atomic output writing
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import fitz  # PyMuPDF

from .errors import ExportFailure
from .io import atomic_write_bytes
from .logs import StageLogger
from .ordering import OrderResult
from .toc import TocEntry

logger = logging.getLogger(__name__)

TOC_PAGE_OFFSET = 1


def link_target_page(
    order: Sequence[int],
    original_index: int,
    toc_offset: int = TOC_PAGE_OFFSET
) -> int:
    """
    0-based page number in the exported document where an original page lands.

    Args:
        order: Exported order of original page indices
        original_index: Page index in the source document
        toc_offset: Number of pages inserted before the content

    Returns:
        Destination page number in the exported document
    """
    return list(order).index(original_index) + toc_offset


def _normalize_levels(levels: Sequence[int]) -> List[int]:
    """Clamp outline levels so each is at most one deeper than the previous."""
    normalized = []
    previous = 0
    for level in levels:
        level = max(1, min(level, previous + 1))
        normalized.append(level)
        previous = level
    return normalized


# ============================================================================
# Reconstruction Exporter
# ============================================================================

class ReconstructionExporter:
    """
    Writes the reordered document, optionally with an inserted TOC page.

    Args:
        toc_title: Heading printed on the TOC page
        page_size: (width, height) of the TOC page in points
        add_bookmarks: Also write a PDF outline with the TOC targets
        font_size: TOC entry font size
    """

    def __init__(
        self,
        toc_title: str = "Table of Contents",
        page_size: Tuple[float, float] = (595.0, 842.0),
        add_bookmarks: bool = True,
        font_size: float = 12.0,
        log: Optional[StageLogger] = None
    ):
        self.toc_title = toc_title
        self.page_size = page_size
        self.add_bookmarks = add_bookmarks
        self.font_size = font_size
        self.log = log or StageLogger(logger, stage="export")

    def export(
        self,
        source: bytes,
        order: Union[OrderResult, Sequence[int]],
        toc_entries: Optional[Sequence[TocEntry]] = None,
        output_path: Optional[Union[str, Path]] = None
    ) -> bytes:
        """
        Copy source pages in order and optionally prepend a linked TOC page.

        Args:
            source: Source PDF bytes
            order: OrderResult or sequence of original page indices
            toc_entries: Outline in original index space; empty or None skips
                the TOC page
            output_path: If given, the bytes are also written there atomically

        Returns:
            The exported PDF bytes

        Raises:
            ExportFailure: If the source cannot be read, the order is not a
                permutation of its pages, or writing fails
        """
        order = tuple(order.order if isinstance(order, OrderResult) else order)

        try:
            src = fitz.open(stream=source, filetype="pdf")
        except Exception as e:
            raise ExportFailure(f"Cannot open source document: {e}") from e

        out = None
        try:
            if sorted(order) != list(range(src.page_count)):
                raise ExportFailure(
                    f"Order {list(order)} is not a permutation of {src.page_count} pages"
                )

            out = fitz.open()
            for index in order:
                out.insert_pdf(src, from_page=index, to_page=index)

            if toc_entries:
                self._insert_toc_page(out, order, toc_entries)

            data = out.tobytes(garbage=3, deflate=True)
        except ExportFailure:
            raise
        except Exception as e:
            raise ExportFailure(f"Failed to assemble document: {e}") from e
        finally:
            if out is not None:
                out.close()
            src.close()

        self.log.info(
            f"Assembled {len(order)} page(s)"
            f"{' with a table of contents' if toc_entries else ''}"
        )

        if output_path is not None:
            try:
                atomic_write_bytes(output_path, data)
            except OSError as e:
                raise ExportFailure(f"Cannot write {output_path}: {e}") from e
            self.log.info(f"Wrote {output_path}")

        return data

    # ------------------------------------------------------------------
    # TOC page
    # ------------------------------------------------------------------

    def _insert_toc_page(
        self,
        doc: fitz.Document,
        order: Sequence[int],
        entries: Sequence[TocEntry]
    ):
        width, height = self.page_size
        page = doc.new_page(pno=0, width=width, height=height)

        page.insert_text(fitz.Point(50, 60), self.toc_title, fontsize=24, fontname="helv")

        # Reader-facing order: by destination page, then outline position
        targets = sorted(
            ((link_target_page(order, entry.start_index), position, entry)
             for position, entry in enumerate(entries)),
            key=lambda item: (item[0], item[1])
        )

        line_height = self.font_size + 8
        y = 100.0
        bottom = height - 50
        shown = 0
        for destination, _, entry in targets:
            if y > bottom:
                break
            indent = 20 * (max(entry.level, 1) - 1)
            self._draw_entry(page, entry.title, destination, 60 + indent, y, width)
            self._add_link(
                doc, page,
                fitz.Rect(60 + indent, y - self.font_size, width - 50, y + 4),
                destination
            )
            shown += 1
            y += line_height

        if shown < len(targets):
            self.log.warning(
                f"{len(targets) - shown} TOC entries did not fit on the TOC page; "
                "they remain available as bookmarks"
            )

        if self.add_bookmarks:
            levels = _normalize_levels([entry.level for _, _, entry in targets])
            outline = [[1, self.toc_title, 1]] + [
                [level, entry.title, destination + 1]
                for level, (destination, _, entry) in zip(levels, targets)
            ]
            doc.set_toc(outline)

    def _draw_entry(
        self,
        page: fitz.Page,
        title: str,
        destination: int,
        x: float,
        y: float,
        width: float
    ):
        label = str(destination + 1)
        label_x = width - 60 - fitz.get_text_length(label, fontname="helv", fontsize=self.font_size)
        available = label_x - x - 20

        text = title
        while text and fitz.get_text_length(text, fontname="helv", fontsize=self.font_size) > available:
            text = text[:-2]
        if text != title:
            text = text.rstrip() + "..."

        page.insert_text(fitz.Point(x, y), text, fontsize=self.font_size, fontname="helv")
        page.insert_text(fitz.Point(label_x, y), label, fontsize=self.font_size, fontname="helv")

    def _add_link(self, doc: fitz.Document, page: fitz.Page, rect: fitz.Rect, destination: int):
        """Add a Link annotation whose action is GoTo [destination /Fit]."""
        known = {item[0] for item in page.annot_xrefs()}
        page.insert_link({
            "kind": fitz.LINK_GOTO,
            "from": rect,
            "page": destination,
            "to": fitz.Point(0, 0),
            "zoom": 0,
        })
        target_xref = doc[destination].xref
        for item in page.annot_xrefs():
            xref = item[0]
            if xref in known:
                continue
            doc.xref_set_key(xref, "A", f"<</S/GoTo/D[{target_xref} 0 R/Fit]>>")
            doc.xref_set_key(xref, "Dest", "null")
