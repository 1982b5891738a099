"""
Writes the plain-text run report next to the failed-IDs file.
"""

import logging
from pathlib import Path

from workshop_cli.models.outcome import Outcome
from workshop_cli.models.summary import RunSummary
from workshop_cli.utils.formatting import format_duration

log = logging.getLogger(__name__)


def render_report(summary: RunSummary) -> str:
    counts = summary.counts
    lines = [
        "=== Workshop Download Report ===",
        f"Date:                {summary.started_at:%Y-%m-%d %H:%M:%S}",
        f"Duration:            {format_duration(summary.duration_s)}",
        f"Passes:              {summary.passes_run}",
        "",
        f"Total IDs:           {summary.total_ids}",
        f"Skipped:             {summary.skipped}",
        f"Success:             {summary.succeeded}",
        f"Failed (total):      {summary.failed_total}",
        f"  Timeouts:          {counts.get(Outcome.TIMEOUT, 0)}",
        f"  Errors:            {counts.get(Outcome.GENERIC_ERROR, 0)}",
        f"  RateLimited:       {counts.get(Outcome.RATE_LIMITED, 0)}",
        f"  LockContended:     {counts.get(Outcome.LOCK_CONTENDED, 0)}",
        f"  ValidationFailed:  {counts.get(Outcome.VALIDATION_FAILED, 0)}",
        "",
        "--- Failed item IDs ---",
    ]
    lines.extend(f"{item_id}  [{outcome.value}]" for item_id, outcome in summary.failures)

    if summary.discrepancies:
        lines.append("")
        lines.append("--- Discrepancies ---")
        lines.extend(
            f"{item_id}  {message}"
            for item_id, message in summary.discrepancies.items()
        )
    return "\n".join(lines) + "\n"


def write_report(path: Path, summary: RunSummary) -> bool:
    """Writes the report file. Returns False (and logs) if it cannot be written."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_report(summary), encoding="utf-8")
        return True
    except OSError as e:
        log.error(f"[red]Could not write report to {path}: {e}[/red]")
        return False
