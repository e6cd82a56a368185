"""
Report writers for a reconstruction run.

Provides:
- log.json (order, confidence, strategy, per-page geometry, degradations)
- toc.json and dup_missing.json
- reasoning.txt (numbered narrative)
- report.html (human-readable summary)

Reports are plain serializations of the run result.
"""

import html
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Union

from .io import atomic_write_text, ensure_dir, save_json

logger = logging.getLogger(__name__)


def build_reasoning(result: Any) -> str:
    """Numbered, human-readable explanation of a run."""
    order = result.order
    lines = ["Page ordering reasoning:", ""]
    lines.append(f"1. Total pages processed: {len(result.corpus)}")
    lines.append(
        f"2. Page order determined: {' -> '.join(str(i + 1) for i in order.order)}"
    )

    step = 3
    if result.duplicates:
        lines.append(f"{step}. Duplicate pages detected:")
        for number, group in enumerate(result.duplicates, 1):
            pages = ", ".join(str(i + 1) for i in group.indices)
            lines.append(f"   - Group {number}: pages {pages} ({group.method})")
        step += 1

    if result.missing:
        lines.append(f"{step}. Missing page numbers:")
        for gap in result.missing:
            lines.append(
                f"   - Page {gap.number} (between pages {gap.before_index + 1} "
                f"and {gap.after_index + 1})"
            )
        step += 1

    if result.toc:
        lines.append(f"{step}. Table of contents:")
        for entry in result.toc:
            indent = "  " * (entry.level - 1)
            lines.append(
                f"   {indent}- {entry.title} (pages {entry.start_index + 1}-{entry.end_index + 1})"
            )
        step += 1

    lines.append(f"{step}. Method ({order.strategy.value}): {order.reasoning}")
    lines.append(f"{step + 1}. Confidence: {order.confidence:.2f}")

    if result.degradations:
        lines.append(f"{step + 2}. Degraded analyses:")
        for degradation in result.degradations:
            lines.append(f"   - {degradation.stage}: {degradation.message}")

    return "\n".join(lines) + "\n"


class ReportWriter:
    """Writes the companion reports for a run into one directory."""

    def write(self, result: Any, output_dir: Union[str, Path]) -> Dict[str, Path]:
        """
        Write all reports.

        Args:
            result: ReconstructionResult
            output_dir: Destination directory

        Returns:
            Mapping of report name to path
        """
        output_dir = ensure_dir(output_dir)
        paths = {
            "log": save_json(self._log(result), output_dir / "log.json"),
            "toc": save_json([e.to_dict() for e in result.toc], output_dir / "toc.json"),
            "dup_missing": save_json({
                "duplicates": [g.to_dict() for g in result.duplicates],
                "missing_pages": [g.to_dict() for g in result.missing],
            }, output_dir / "dup_missing.json"),
            "reasoning": atomic_write_text(output_dir / "reasoning.txt", build_reasoning(result)),
            "report": atomic_write_text(output_dir / "report.html", self._html(result)),
        }
        logger.info(f"Wrote {len(paths)} reports to {output_dir}")
        return paths

    def _log(self, result: Any) -> Dict[str, Any]:
        return {
            "timestamp": datetime.now().isoformat(),
            "source_file": result.source_name,
            **result.order.to_dict(),
            "pages": [
                {**page.to_dict(), **classification.to_dict()}
                for page, classification in zip(result.corpus, result.classifications)
            ],
            "summary": {
                "total_pages": len(result.corpus),
                "duplicate_groups": len(result.duplicates),
                "missing_pages": len(result.missing),
                "toc_entries": len(result.toc),
            },
            "degradations": [d.to_dict() for d in result.degradations],
        }

    def _html(self, result: Any) -> str:
        esc = html.escape
        order = result.order
        sections: List[str] = [
            "<h2>Page Order</h2>",
            f"<p><strong>Strategy:</strong> {esc(order.strategy.value)}</p>",
            f"<p><strong>Confidence:</strong> {order.confidence:.2f}</p>",
            f"<p>{' &rarr; '.join(str(i + 1) for i in order.order)}</p>",
        ]

        if result.duplicates:
            sections.append("<h2>Duplicate Pages</h2>")
            for number, group in enumerate(result.duplicates, 1):
                pages = ", ".join(str(i + 1) for i in group.indices)
                sections.append(
                    f'<div class="duplicate-group"><strong>Group {number}:</strong> '
                    f"pages {pages}</div>"
                )

        if result.missing:
            sections.append("<h2>Missing Pages</h2>")
            for gap in result.missing:
                sections.append(f'<div class="missing-page">Page {gap.number}</div>')

        if result.toc:
            sections.append("<h2>Table of Contents</h2>")
            for entry in result.toc:
                sections.append(
                    f'<div class="toc-entry toc-level-{min(entry.level, 3)}">'
                    f"{esc(entry.title)} (pages {entry.start_index + 1}-{entry.end_index + 1})</div>"
                )

        sections.append("<h2>Reasoning</h2>")
        sections.append(f"<pre>{esc(build_reasoning(result))}</pre>")

        return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>PDF Reconstruction Report</title>
<style>
body {{ font-family: Arial, sans-serif; margin: 40px; line-height: 1.6; }}
h2 {{ border-bottom: 2px solid #007bff; padding-bottom: 6px; }}
.duplicate-group {{ background: #fff3cd; padding: 10px; margin: 6px 0; }}
.missing-page {{ background: #f8d7da; padding: 6px; margin: 4px 0; }}
.toc-level-1 {{ font-weight: bold; }}
.toc-level-2 {{ margin-left: 20px; }}
.toc-level-3 {{ margin-left: 40px; }}
pre {{ white-space: pre-wrap; background: #f8f9fa; padding: 16px; }}
</style>
</head>
<body>
<h1>PDF Reconstruction Report</h1>
<p><strong>Generated:</strong> {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}</p>
<p><strong>Total Pages:</strong> {len(result.corpus)}</p>
{chr(10).join(sections)}
</body>
</html>
"""
