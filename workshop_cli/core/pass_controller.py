"""
The main orchestrator: plans the work set, runs concurrent instance workers
pass by pass, and retries unresolved items with fewer instances and backoff.
"""

import asyncio
import logging
import shutil
import time
from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Protocol

from workshop_cli.exceptions import ToolNotFoundError
from workshop_cli.models.config import EngineConfig
from workshop_cli.models.outcome import Outcome, PassResult
from workshop_cli.models.stats import ResultStore
from workshop_cli.models.summary import RunSummary
from workshop_cli.storage.destination import SharedDestination
from workshop_cli.storage.isolation import IsolationManager
from workshop_cli.utils.formatting import format_counters, pluralize
from workshop_cli.utils.structured_logger import (
    PassLogger,
    SessionLogger,
    StructuredLogger,
    WorkerLogger,
)

from .backoff import RateLimitCooldown
from .instance_worker import InstanceWorker
from .partitioner import partition

log = logging.getLogger(__name__)

UNRESOLVED_MESSAGE = "no outcome after the final pass (chunk abandoned)"


class ProgressSink(Protocol):
    """What the controller needs from a live display."""

    def start_pass(
        self, pass_number: int, total_passes: int, items: int, slots: int
    ) -> None: ...

    def update(
        self,
        counts: dict[Outcome, int],
        processed: int,
        total: int,
        slot_states: dict[int, str],
    ) -> None: ...


class PassController:
    """Orchestrates the entire download run."""

    def __init__(
        self,
        config: EngineConfig,
        store: ResultStore | None = None,
        isolation: IsolationManager | None = None,
        destination: SharedDestination | None = None,
        progress: ProgressSink | None = None,
        events: StructuredLogger | None = None,
        cooldown: RateLimitCooldown | None = None,
    ):
        self.config = config
        self.store = store or ResultStore()
        self.isolation = isolation or IsolationManager(
            config.path("instances_root"), config.app_id
        )
        self.destination = destination or SharedDestination(
            config.path("shared_root"), config.app_id
        )
        self.progress = progress
        self.cooldown = cooldown or RateLimitCooldown(
            config.rate_limit_backoff, config.max_backoff
        )

        events = events or StructuredLogger("workshop_cli", enable_json=False)
        self.session_events = SessionLogger(events)
        self.pass_events = PassLogger(events)
        self.worker_events = WorkerLogger(events)

        self._workers: dict[int, InstanceWorker] = {}
        self._total = 0

    def preflight(self) -> None:
        """
        Raises:
            ToolNotFoundError: If the SteamCMD executable cannot be resolved.
        """
        executable = self.config.tool_argv[0]
        if shutil.which(executable) is None:
            raise ToolNotFoundError(
                f"SteamCMD executable '{executable}' was not found. "
                "Set 'tool_command' in the configuration file."
            )

    def plan(
        self,
        all_ids: Sequence[str],
        skip_existing: bool | None = None,
        only_ids: Iterable[str] | None = None,
    ) -> list[str]:
        """
        Applies the pre-dispatch policy and returns the items to download.

        Items outside ``only_ids`` and, with ``skip_existing``, items already
        present in the shared destination are marked Skipped.
        """
        if skip_existing is None:
            skip_existing = self.config.skip_existing
        scope = set(only_ids) if only_ids is not None else None

        self.destination.ensure()
        to_download: list[str] = []
        out_of_scope = present = 0
        for item_id in all_ids:
            if scope is not None and item_id not in scope:
                self.store.mark_skipped(item_id)
                out_of_scope += 1
            elif skip_existing and self.destination.is_present(item_id):
                self.store.mark_skipped(item_id)
                present += 1
            else:
                to_download.append(item_id)

        if scope is not None:
            log.info(
                f"Only retrying previously failed items: "
                f"{pluralize(out_of_scope, 'item')} out of scope."
            )
        if present:
            log.info(f"Skipping {pluralize(present, 'item')} already downloaded.")
        log.info(f"{pluralize(len(to_download), 'item')} to download.")
        return to_download

    def _worker(self, slot: int) -> InstanceWorker:
        if slot not in self._workers:
            self._workers[slot] = InstanceWorker(
                slot,
                self.config,
                self.isolation,
                self.destination,
                self.store,
                self.worker_events,
            )
        return self._workers[slot]

    async def run_pass(
        self, items: Sequence[str], slots: int, pass_number: int
    ) -> PassResult:
        """Runs one pass: every chunk on its own slot, concurrently."""
        chunks = partition(items, slots)
        result = PassResult(pass_number=pass_number, slots=len(chunks), chunks=chunks)
        if not chunks:
            return result

        self.destination.clean_patch_files()
        for item_id in items:
            self.store.mark_dispatched(item_id)

        log.info(
            f"[bold]Pass {pass_number}:[/bold] {pluralize(len(items), 'item')} "
            f"across {pluralize(len(chunks), 'instance')}"
        )
        self.pass_events.pass_started(pass_number, len(items), len(chunks))
        if self.progress:
            self.progress.start_pass(
                pass_number, self.config.total_passes, len(items), len(chunks)
            )

        done = asyncio.Event()
        poller = asyncio.create_task(self._poll_progress(len(chunks), done))
        try:
            reports = await asyncio.gather(
                *(
                    self._worker(slot).run(chunk, pass_number)
                    for slot, chunk in enumerate(chunks)
                )
            )
        finally:
            done.set()
            await poller
        result.reports = list(reports)

        counts = self.store.counts()
        log.info(
            f"Pass {pass_number} finished: "
            f"[green]{counts[Outcome.SUCCESS]} OK[/green] | {format_counters(counts)}"
        )
        if result.abandoned_chunks:
            log.warning(
                f"[yellow]{pluralize(result.abandoned_chunks, 'chunk')} abandoned "
                f"in pass {pass_number}.[/yellow]"
            )
        self.pass_events.pass_completed(
            pass_number,
            {o.value: n for o, n in counts.items()},
            result.rate_limited,
        )
        return result

    async def _poll_progress(self, slots: int, done: asyncio.Event) -> None:
        interval = self.config.status_poll_interval
        while True:
            self._sample(slots)
            try:
                await asyncio.wait_for(done.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue
            self._sample(slots)
            return

    def _sample(self, slots: int) -> None:
        counts = self.store.counts()
        processed = sum(counts.values())
        if self.progress:
            states = {slot: self._worker(slot).state.value for slot in range(slots)}
            self.progress.update(counts, processed, self._total, states)
        log.debug(
            f"[Status] Done {processed}/{self._total} | "
            f"OK:{counts[Outcome.SUCCESS]} Skip:{counts[Outcome.SKIPPED]} | "
            f"{format_counters(counts)}"
        )

    async def run(
        self, items: Sequence[str], all_ids: Sequence[str] | None = None
    ) -> RunSummary:
        """
        Downloads ``items`` in one initial pass plus up to ``max_retry_passes``
        retry passes, and returns the final summary.

        ``all_ids`` is the complete work set including items skipped by
        :meth:`plan`; it defaults to ``items``.

        Raises:
            ToolNotFoundError: If there is work to do but no SteamCMD executable.
        """
        items = list(items)
        all_ids = list(all_ids) if all_ids is not None else items
        started_at = datetime.now()
        start = time.monotonic()
        self._total = len(all_ids)
        passes_run = 0

        self.session_events.session_started(
            len(all_ids),
            len(items),
            self.config.max_instances,
            self.config.max_retry_passes,
        )

        if items:
            self.preflight()
            await self.run_pass(items, self.config.max_instances, 1)
            passes_run = 1

            for retry in range(1, self.config.max_retry_passes + 1):
                retry_ids = self.store.retry_set(items)
                if not retry_ids:
                    log.info("[green]All items resolved, no retry needed.[/green]")
                    break
                pass_number = retry + 1
                await self._prepare_retry(retry, retry_ids, pass_number)
                await self.run_pass(
                    retry_ids, self.config.retry_instances, pass_number
                )
                passes_run = pass_number

            self._finalize(items)

        summary = RunSummary(
            total_ids=len(all_ids),
            dispatched=len(items),
            counts=self.store.counts(),
            failures=self.store.failures(all_ids),
            discrepancies=self.store.discrepancies(),
            passes_run=passes_run,
            duration_s=time.monotonic() - start,
            started_at=started_at,
        )
        for item_id, message in summary.discrepancies.items():
            self.session_events.discrepancy(item_id, message)
        self.session_events.session_completed(
            summary.duration_s,
            summary.succeeded,
            summary.skipped,
            summary.failed_total,
            passes_run,
        )
        return summary

    async def _prepare_retry(
        self, retry: int, retry_ids: list[str], pass_number: int
    ) -> None:
        breakdown = Counter(self.store.outcome(i).value for i in retry_ids)
        details = ", ".join(f"{label}: {n}" for label, n in breakdown.most_common())
        log.info(
            f"[yellow]Retry {retry}/{self.config.max_retry_passes}: "
            f"{pluralize(len(retry_ids), 'item')} ({details}) with "
            f"{pluralize(self.config.retry_instances, 'instance')}[/yellow]"
        )
        self.pass_events.retry_scheduled(pass_number, len(retry_ids), dict(breakdown))

        self.isolation.reset_all(range(self.config.max_instances))
        self.destination.clean_patch_files()

        if self.store.consume_rate_limit():
            delay = await self.cooldown.cool_down()
            self.pass_events.cooldown(delay, self.cooldown.strikes)

        for item_id in retry_ids:
            self.store.mark_retrying(item_id)

    def _finalize(self, items: Sequence[str]) -> None:
        """Items still Unknown after the last pass become GenericError."""
        for item_id in items:
            if self.store.outcome(item_id) is Outcome.UNKNOWN:
                log.error(f"[red]Item {item_id}: {UNRESOLVED_MESSAGE}.[/red]")
                self.store.record(item_id, Outcome.GENERIC_ERROR)
                self.store.flag_discrepancy(item_id, UNRESOLVED_MESSAGE)
