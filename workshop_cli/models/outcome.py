"""
Outcome types shared by the classifier, the reconciler and the result store.
"""

from dataclasses import dataclass, field
from enum import Enum, Flag, auto
from pathlib import Path


class Outcome(Enum):
    """The result category of a single workshop item."""

    SUCCESS = "Success"
    SKIPPED = "Skipped"
    TIMEOUT = "Timeout"
    RATE_LIMITED = "RateLimited"
    LOCK_CONTENDED = "LockContended"
    VALIDATION_FAILED = "ValidationFailed"
    GENERIC_ERROR = "GenericError"
    UNKNOWN = "Unknown"

    @property
    def is_terminal(self) -> bool:
        return self is not Outcome.UNKNOWN

    @property
    def is_failure(self) -> bool:
        """True for every outcome that makes an item eligible for a retry pass."""
        return self not in (Outcome.SUCCESS, Outcome.SKIPPED, Outcome.UNKNOWN)

    @property
    def is_specific_failure(self) -> bool:
        """A failure with a known reason, i.e. more specific than GenericError."""
        return self.is_failure and self is not Outcome.GENERIC_ERROR


TERMINAL_OUTCOMES = tuple(o for o in Outcome if o.is_terminal)
FAILURE_OUTCOMES = tuple(o for o in Outcome if o.is_failure)


class Signal(Flag):
    """Process-wide conditions observed in one instance's log."""

    NONE = 0
    RATE_LIMIT = auto()
    TIMEOUT = auto()
    LOCK = auto()
    VALIDATION = auto()


@dataclass
class ClassifiedLog:
    """The classifier's view of one finished SteamCMD instance."""

    outcomes: dict[str, Outcome]
    signals: Signal = Signal.NONE
    success_lines: int = 0
    failure_lines: int = 0

    @property
    def rate_limited(self) -> bool:
        return bool(self.signals & Signal.RATE_LIMIT)

    def outcome(self, item_id: str) -> Outcome:
        return self.outcomes.get(item_id, Outcome.UNKNOWN)


@dataclass
class ChunkReport:
    """Everything observed about one worker slot during one pass."""

    slot: int
    pass_number: int
    items: list[str]
    log_path: Path | None = None
    state: str = "starting"
    exit_code: int | None = None
    duration_s: float = 0.0
    hard_timeout: bool = False
    abandoned: bool = False
    classified: ClassifiedLog | None = None
    final: dict[str, Outcome] = field(default_factory=dict)

    @property
    def signals(self) -> Signal:
        signals = self.classified.signals if self.classified else Signal.NONE
        if self.hard_timeout:
            signals |= Signal.TIMEOUT
        return signals


@dataclass
class PassResult:
    """The chunk assignment and per-slot reports of one pass."""

    pass_number: int
    slots: int
    chunks: list[list[str]]
    reports: list[ChunkReport] = field(default_factory=list)

    @property
    def raw_outcomes(self) -> dict[str, Outcome]:
        """The classifier's verdict per item, before reconciliation."""
        raw: dict[str, Outcome] = {}
        for report in self.reports:
            for item_id in report.items:
                raw[item_id] = (
                    report.classified.outcome(item_id)
                    if report.classified
                    else Outcome.UNKNOWN
                )
        return raw

    @property
    def rate_limited(self) -> bool:
        return any(r.signals & Signal.RATE_LIMIT for r in self.reports)

    @property
    def hard_timeout(self) -> bool:
        return any(r.hard_timeout for r in self.reports)

    @property
    def abandoned_chunks(self) -> int:
        return sum(1 for r in self.reports if r.abandoned)
