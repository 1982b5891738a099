"""
Immutable end-of-run snapshot consumed by the report writer and the CLI.
"""

from dataclasses import dataclass, field
from datetime import datetime

from .outcome import FAILURE_OUTCOMES, Outcome


@dataclass(frozen=True)
class RunSummary:
    total_ids: int
    dispatched: int
    counts: dict[Outcome, int]
    failures: list[tuple[str, Outcome]]
    discrepancies: dict[str, str] = field(default_factory=dict)
    passes_run: int = 0
    duration_s: float = 0.0
    started_at: datetime = field(default_factory=datetime.now)

    @property
    def succeeded(self) -> int:
        return self.counts.get(Outcome.SUCCESS, 0)

    @property
    def skipped(self) -> int:
        return self.counts.get(Outcome.SKIPPED, 0)

    @property
    def failed_total(self) -> int:
        return sum(self.counts.get(o, 0) for o in FAILURE_OUTCOMES)

    @property
    def failed_ids(self) -> list[str]:
        return [item_id for item_id, _ in self.failures]

    @property
    def exit_code(self) -> int:
        """0 for a clean run, 2 when items are left failed after the last pass."""
        return 2 if self.failures else 0
