"""
The shared result store: per-item outcomes plus one counter per terminal outcome.
"""

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field

from .outcome import FAILURE_OUTCOMES, TERMINAL_OUTCOMES, Outcome


@dataclass
class ResultStore:
    """
    Tracks the authoritative outcome of every item in a run.

    Workers reconcile from worker threads and the progress poller samples the
    store concurrently, so every read-modify-write goes through one lock. Each
    mutation of the outcome map adjusts the counters in the same critical
    section, which keeps ``sum(counts) == items whose outcome is not Unknown``.
    """

    _outcomes: dict[str, Outcome] = field(default_factory=dict, repr=False)
    _counters: dict[Outcome, int] = field(
        default_factory=lambda: dict.fromkeys(TERMINAL_OUTCOMES, 0)
    )
    _discrepancies: dict[str, str] = field(default_factory=dict, repr=False)
    _rate_limited: bool = field(default=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def _transition(self, item_id: str, new: Outcome) -> Outcome:
        """Moves an item to ``new``. Must be called with the lock held."""
        old = self._outcomes.get(item_id, Outcome.UNKNOWN)
        if old is new and item_id in self._outcomes:
            return old
        if old.is_terminal:
            self._counters[old] -= 1
        if new.is_terminal:
            self._counters[new] += 1
        self._outcomes[item_id] = new
        return old

    def mark_skipped(self, item_id: str) -> None:
        """Excludes an item before dispatch (already present or out of scope)."""
        with self._lock:
            self._transition(item_id, Outcome.SKIPPED)

    def mark_dispatched(self, item_id: str) -> None:
        """Registers an item as in flight. Terminal outcomes are left untouched."""
        with self._lock:
            self._outcomes.setdefault(item_id, Outcome.UNKNOWN)

    def record(self, item_id: str, outcome: Outcome) -> Outcome:
        """
        Stores the reconciled outcome of an item and returns the previous one.

        Raises:
            ValueError: If ``outcome`` is Unknown, which is never a final state.
        """
        if not outcome.is_terminal:
            raise ValueError(f"Cannot record a non-terminal outcome for {item_id}.")
        with self._lock:
            return self._transition(item_id, outcome)

    def mark_retrying(self, item_id: str) -> Outcome:
        """
        Clears an item's outcome ahead of re-dispatch, moving its counter and
        map entry together. Returns the outcome that was cleared.
        """
        with self._lock:
            return self._transition(item_id, Outcome.UNKNOWN)

    def signal_rate_limit(self) -> None:
        with self._lock:
            self._rate_limited = True

    def consume_rate_limit(self) -> bool:
        """Returns whether a rate limit was signalled since the last call, and resets it."""
        with self._lock:
            fired, self._rate_limited = self._rate_limited, False
            return fired

    def flag_discrepancy(self, item_id: str, message: str) -> None:
        with self._lock:
            self._discrepancies[item_id] = message

    def discrepancies(self) -> dict[str, str]:
        with self._lock:
            return dict(self._discrepancies)

    def outcome(self, item_id: str) -> Outcome:
        with self._lock:
            return self._outcomes.get(item_id, Outcome.UNKNOWN)

    def counts(self) -> dict[Outcome, int]:
        with self._lock:
            return dict(self._counters)

    def snapshot(self) -> dict[str, Outcome]:
        with self._lock:
            return dict(self._outcomes)

    def processed(self) -> int:
        """Number of items holding a terminal outcome."""
        with self._lock:
            return sum(self._counters.values())

    def failed(self) -> int:
        with self._lock:
            return sum(self._counters[o] for o in FAILURE_OUTCOMES)

    def retry_set(self, item_ids: Iterable[str]) -> list[str]:
        """Items that are neither Success nor Skipped, in the given order."""
        with self._lock:
            return [
                item_id
                for item_id in item_ids
                if self._outcomes.get(item_id, Outcome.UNKNOWN)
                not in (Outcome.SUCCESS, Outcome.SKIPPED)
            ]

    def failures(self, item_ids: Iterable[str]) -> list[tuple[str, Outcome]]:
        """(item, outcome) pairs for every failed or unresolved item, in order."""
        with self._lock:
            result = []
            for item_id in item_ids:
                outcome = self._outcomes.get(item_id)
                if outcome is not None and outcome not in (
                    Outcome.SUCCESS,
                    Outcome.SKIPPED,
                ):
                    result.append((item_id, outcome))
            return result

    def check_invariant(self) -> bool:
        with self._lock:
            terminal = sum(1 for o in self._outcomes.values() if o.is_terminal)
            return sum(self._counters.values()) == terminal and all(
                v >= 0 for v in self._counters.values()
            )
