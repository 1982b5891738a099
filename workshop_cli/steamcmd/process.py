"""
An owned handle around one SteamCMD process.

The process runs in its own session (POSIX) or process group (Windows), so a
hard timeout terminates exactly the instance this handle spawned and its
children, never other SteamCMD instances on the host.
"""

import asyncio
import logging
import os
import signal
import subprocess
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import IO

from workshop_cli.exceptions import ToolLaunchError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessExit:
    """How an instance ended: natural exit (any code) or a timeout kill."""

    returncode: int | None
    timed_out: bool
    duration_s: float


class ToolProcess:
    """
    Spawns one external process with its combined output redirected to a log
    file, and supports exactly three transitions: spawn, natural exit and
    timeout kill.
    """

    def __init__(
        self, argv: Sequence[str], log_path: Path, cwd: Path | None = None
    ) -> None:
        self.argv = list(argv)
        self.log_path = log_path
        self.cwd = cwd
        self._proc: asyncio.subprocess.Process | None = None
        self._log_handle: IO[bytes] | None = None
        self._started_at = 0.0

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc else None

    async def spawn(self) -> None:
        """
        Starts the process.

        Raises:
            ToolLaunchError: If the log file cannot be opened or the executable
            cannot be started.
        """
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            self._log_handle = open(self.log_path, "wb")  # noqa: SIM115
        except OSError as e:
            raise ToolLaunchError(f"Could not open log {self.log_path}: {e}") from e

        kwargs = {}
        if os.name == "nt":
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            kwargs["start_new_session"] = True

        try:
            self._proc = await asyncio.create_subprocess_exec(
                *self.argv,
                stdin=subprocess.DEVNULL,
                stdout=self._log_handle,
                stderr=subprocess.STDOUT,
                cwd=str(self.cwd) if self.cwd else None,
                **kwargs,
            )
        except OSError as e:
            self._close_log()
            raise ToolLaunchError(f"Could not start {self.argv[0]}: {e}") from e

        self._started_at = time.monotonic()
        log.debug(f"Spawned pid {self._proc.pid}: {' '.join(self.argv)}")

    async def wait(self, timeout: float) -> ProcessExit:
        """
        Waits for the process to exit on its own, killing it once ``timeout``
        seconds of wall-clock time have elapsed.
        """
        if self._proc is None:
            raise RuntimeError("Process has not been spawned.")

        timed_out = False
        try:
            returncode = await asyncio.wait_for(self._proc.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            timed_out = True
            returncode = await self.kill()
        except asyncio.CancelledError:
            await self.kill()
            raise
        finally:
            self._close_log()

        return ProcessExit(
            returncode=returncode,
            timed_out=timed_out,
            duration_s=time.monotonic() - self._started_at,
        )

    async def kill(self) -> int | None:
        """Forcefully terminates the owned process group and reaps the process."""
        if self._proc is None or self._proc.returncode is not None:
            return self._proc.returncode if self._proc else None

        try:
            if os.name == "nt":
                await self._kill_tree_windows(self._proc.pid)
            else:
                os.killpg(self._proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        return await self._proc.wait()

    async def _kill_tree_windows(self, pid: int) -> None:
        # taskkill /T follows the tree rooted at our own pid only.
        try:
            killer = await asyncio.create_subprocess_exec(
                "taskkill",
                "/F",
                "/T",
                "/PID",
                str(pid),
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
            await killer.wait()
        except OSError as e:
            log.debug(f"taskkill failed for pid {pid}: {e}")
        if self._proc and self._proc.returncode is None:
            self._proc.kill()

    def _close_log(self) -> None:
        if self._log_handle and not self._log_handle.closed:
            self._log_handle.close()
