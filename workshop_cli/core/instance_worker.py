"""
Runs one chunk of workshop items through one isolated SteamCMD instance.
"""

import asyncio
import logging
from collections.abc import Sequence
from enum import Enum
from pathlib import Path

from workshop_cli.exceptions import ScriptWriteError, ToolLaunchError
from workshop_cli.models.config import EngineConfig
from workshop_cli.models.outcome import ChunkReport
from workshop_cli.models.stats import ResultStore
from workshop_cli.steamcmd.classifier import classify_log_file
from workshop_cli.steamcmd.process import ToolProcess
from workshop_cli.steamcmd.script import render_script, write_script
from workshop_cli.storage.destination import SharedDestination
from workshop_cli.storage.isolation import IsolationManager
from workshop_cli.utils.formatting import pluralize
from workshop_cli.utils.structured_logger import WorkerLogger

from .reconciler import Reconciler

log = logging.getLogger(__name__)


class WorkerState(Enum):
    STARTING = "starting"
    RUNNING = "running"
    COMPLETED = "completed"
    HARD_TIMEOUT = "hard_timeout"
    RECONCILED = "reconciled"
    ABANDONED = "abandoned"


class InstanceWorker:
    """
    Owns one worker slot for the duration of a run.

    A chunk moves through STARTING -> RUNNING -> COMPLETED or HARD_TIMEOUT ->
    RECONCILED. If its script cannot be written or the process cannot be
    launched, the chunk is ABANDONED for this pass and its items keep whatever
    (Unknown) outcome they had, leaving them eligible for the next pass.
    """

    def __init__(
        self,
        slot: int,
        config: EngineConfig,
        isolation: IsolationManager,
        destination: SharedDestination,
        store: ResultStore,
        events: WorkerLogger | None = None,
    ):
        self.slot = slot
        self.config = config
        self.isolation = isolation
        self.store = store
        self.events = events
        self.reconciler = Reconciler(isolation, destination, store)
        self.state = WorkerState.STARTING

    def script_path(self) -> Path:
        return self.config.path("scripts_dir") / f"t{self.slot}" / "script.txt"

    def log_path(self, pass_number: int) -> Path:
        return (
            self.config.path("log_dir") / f"instance_p{pass_number}_t{self.slot}.log"
        )

    def timeout_for(self, chunk: Sequence[str]) -> float:
        return self.config.base_timeout_per_item * len(chunk)

    def _set_state(self, report: ChunkReport, state: WorkerState) -> None:
        self.state = state
        report.state = state.value

    async def run(self, chunk: Sequence[str], pass_number: int) -> ChunkReport:
        """Processes ``chunk`` and returns everything observed about it."""
        report = ChunkReport(slot=self.slot, pass_number=pass_number, items=list(chunk))
        self._set_state(report, WorkerState.STARTING)
        tag = f"[T{self.slot}]"

        slot_dir = self.isolation.acquire(self.slot).resolve()
        self.isolation.reset_staging(self.slot)

        script_path = self.script_path().resolve()
        report.log_path = self.log_path(pass_number)
        timeout = self.timeout_for(chunk)
        process = ToolProcess(
            [*self.config.tool_argv, "+runscript", str(script_path)], report.log_path
        )

        try:
            script = render_script(
                chunk, slot_dir, self.config.app_id, self.config.login
            )
            await write_script(script_path, script)
            await process.spawn()
        except (ScriptWriteError, ToolLaunchError) as e:
            log.error(
                f"[red]{tag} Abandoning {pluralize(len(chunk), 'item')} "
                f"for pass {pass_number}: {e}[/red]"
            )
            report.abandoned = True
            self._set_state(report, WorkerState.ABANDONED)
            self._remove_script(script_path)
            if self.events:
                self.events.chunk_abandoned(self.slot, pass_number, str(e))
            return report

        self._set_state(report, WorkerState.RUNNING)
        log.info(
            f"{tag} Started pid {process.pid} with {pluralize(len(chunk), 'item')} "
            f"(timeout {timeout:.0f}s)"
        )
        if self.events:
            self.events.chunk_started(
                self.slot, pass_number, len(chunk), timeout, process.pid
            )

        try:
            exit_info = await process.wait(timeout)
        finally:
            self._remove_script(script_path)

        report.exit_code = exit_info.returncode
        report.duration_s = exit_info.duration_s
        report.hard_timeout = exit_info.timed_out
        if exit_info.timed_out:
            self._set_state(report, WorkerState.HARD_TIMEOUT)
            log.warning(
                f"[yellow]{tag} Hard timeout after {timeout:.0f}s, "
                f"killed pid {process.pid}.[/yellow]"
            )
            if self.events:
                self.events.hard_timeout(self.slot, pass_number, timeout)
        else:
            self._set_state(report, WorkerState.COMPLETED)
            log.debug(f"{tag} Exited with code {exit_info.returncode}")

        classified = await asyncio.to_thread(classify_log_file, report.log_path, chunk)
        report.classified = classified
        if classified.rate_limited:
            log.warning(f"[yellow]{tag} Rate limiting reported in the log.[/yellow]")
            self.store.signal_rate_limit()

        report.final = await asyncio.to_thread(
            self.reconciler.reconcile_chunk,
            self.slot,
            chunk,
            classified,
            exit_info.timed_out,
        )
        self.isolation.reset_staging(self.slot)
        self._set_state(report, WorkerState.RECONCILED)

        if self.events:
            self.events.chunk_finished(
                self.slot,
                pass_number,
                report.exit_code,
                report.duration_s,
                {item_id: outcome.value for item_id, outcome in report.final.items()},
            )
        return report

    def _remove_script(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            log.debug(f"[T{self.slot}] Could not remove script {path}: {e}")
