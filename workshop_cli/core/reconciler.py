"""
Reconciles classifier verdicts with what actually landed on disk.

The filesystem is the ground truth: an item whose files are present in the
shared destination is a success regardless of what the log said, and a
success claim without files is demoted.
"""

import logging
from collections.abc import Sequence

from workshop_cli.models.outcome import ClassifiedLog, Outcome
from workshop_cli.models.stats import ResultStore
from workshop_cli.storage.destination import SharedDestination
from workshop_cli.storage.isolation import IsolationManager

log = logging.getLogger(__name__)

MISSING_FILES_MESSAGE = "log reported success but no files were found"


class Reconciler:
    def __init__(
        self,
        isolation: IsolationManager,
        destination: SharedDestination,
        store: ResultStore,
    ):
        self.isolation = isolation
        self.destination = destination
        self.store = store

    @staticmethod
    def decide(classified: Outcome, present: bool, hard_timeout: bool) -> Outcome:
        """
        Picks the final outcome of one item.

        1. Files present in the destination -> Success.
        2. Success claimed but nothing on disk -> ValidationFailed.
        3. The instance was killed on timeout -> Timeout.
        4. Otherwise the classified outcome, with Unknown coerced to GenericError.
        """
        if present:
            return Outcome.SUCCESS
        if classified is Outcome.SUCCESS:
            return Outcome.VALIDATION_FAILED
        if hard_timeout:
            return Outcome.TIMEOUT
        if classified is Outcome.UNKNOWN:
            return Outcome.GENERIC_ERROR
        return classified

    def reconcile_item(
        self, slot: int, item_id: str, classified: Outcome, hard_timeout: bool
    ) -> Outcome:
        source = self.isolation.item_dir(slot, item_id)
        present = self.destination.adopt(item_id, source)
        outcome = self.decide(classified, present, hard_timeout)

        if classified is Outcome.SUCCESS and not present:
            log.warning(
                f"[yellow][T{slot}] Discrepancy: item {item_id} "
                f"{MISSING_FILES_MESSAGE}.[/yellow]"
            )
            self.store.flag_discrepancy(item_id, MISSING_FILES_MESSAGE)
        elif present and classified is not Outcome.SUCCESS:
            log.debug(
                f"[T{slot}] Item {item_id} classified as {classified.value} "
                "but its files are present, counting it as a success."
            )

        self.store.record(item_id, outcome)
        return outcome

    def reconcile_chunk(
        self,
        slot: int,
        chunk: Sequence[str],
        classified: ClassifiedLog,
        hard_timeout: bool,
    ) -> dict[str, Outcome]:
        """Reconciles every item of a finished chunk, in chunk order."""
        return {
            item_id: self.reconcile_item(
                slot, item_id, classified.outcome(item_id), hard_timeout
            )
            for item_id in chunk
        }
