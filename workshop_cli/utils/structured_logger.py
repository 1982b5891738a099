"""
Structured event log for run analysis and debugging.
Writes one JSON object per line, each carrying the session context.
"""

import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import IO, Any

log = logging.getLogger(__name__)


class StructuredLogger:
    """
    Event logger that outputs machine-parseable JSONL next to the regular logs.

    Usage:
        logger = StructuredLogger("workshop_cli", log_dir=Path("logs"))
        logger.info("chunk_finished",
                    slot=0,
                    pass_number=1,
                    exit_code=0,
                    duration_s=42.1)
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
        enable_console: bool = False,
    ):
        """
        Initialize structured logger.

        Args:
            name: Logger name, also used as the JSONL file prefix
            log_dir: Directory for JSON log files (None = disabled)
            enable_json: Enable JSON file logging
            enable_console: Mirror events to the standard logger at debug level
        """
        self.name = name
        self.log_dir = log_dir
        self.enable_json = enable_json and log_dir is not None
        self.enable_console = enable_console
        self.path: Path | None = None

        self._logger = logging.getLogger(name)

        self._json_file: IO[str] | None = None
        if self.enable_json:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.path = log_dir / f"{name}_events_{timestamp}.jsonl"
            self._json_file = open(self.path, "a", encoding="utf-8")  # noqa: SIM115

        # Session context (added to all log entries)
        self._session_context: dict[str, Any] = {
            "session_id": f"{int(time.time())}_{id(self)}",
            "start_time": datetime.now().isoformat(),
        }

    def set_session_context(self, **kwargs) -> None:
        """Set session-level context that appears in all logs."""
        self._session_context.update(kwargs)

    def _format_message(self, event: str, **context) -> str:
        parts = [f"[{event}]"]
        for key, value in context.items():
            parts.append(f"{key}={value}")
        return " ".join(parts)

    def _write_json(self, level: str, event: str, **context) -> None:
        if not self._json_file or self._json_file.closed:
            return

        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **self._session_context,
            **context,
        }

        try:
            self._json_file.write(json.dumps(entry, default=str) + "\n")
            self._json_file.flush()
        except OSError as e:
            log.warning(f"Structured event logging failed: {e}")

    def _emit(self, level: str, event: str, **context) -> None:
        if self.enable_console:
            self._logger.debug(self._format_message(event, **context))
        if self.enable_json:
            self._write_json(level, event, **context)

    def debug(self, event: str, **context) -> None:
        self._emit("DEBUG", event, **context)

    def info(self, event: str, **context) -> None:
        self._emit("INFO", event, **context)

    def warning(self, event: str, **context) -> None:
        self._emit("WARNING", event, **context)

    def error(self, event: str, **context) -> None:
        self._emit("ERROR", event, **context)

    def close(self) -> None:
        """Close JSON log file."""
        if self._json_file and not self._json_file.closed:
            self._json_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class SessionLogger:
    """Events spanning the whole run."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def session_started(
        self,
        total_ids: int,
        dispatched: int,
        max_instances: int,
        max_retry_passes: int,
    ):
        self.logger.info(
            "session_started",
            total_ids=total_ids,
            dispatched=dispatched,
            max_instances=max_instances,
            max_retry_passes=max_retry_passes,
        )

    def session_completed(
        self,
        duration_s: float,
        succeeded: int,
        skipped: int,
        failed: int,
        passes_run: int,
    ):
        self.logger.info(
            "session_completed",
            duration_s=round(duration_s, 2),
            succeeded=succeeded,
            skipped=skipped,
            failed=failed,
            passes_run=passes_run,
        )

    def discrepancy(self, item_id: str, message: str):
        self.logger.warning("discrepancy", item_id=item_id, message=message)


class PassLogger:
    """Events of the pass controller."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def pass_started(self, pass_number: int, items: int, slots: int):
        self.logger.info(
            "pass_started", pass_number=pass_number, items=items, slots=slots
        )

    def pass_completed(
        self, pass_number: int, counts: dict[str, int], rate_limited: bool
    ):
        self.logger.info(
            "pass_completed",
            pass_number=pass_number,
            counts=counts,
            rate_limited=rate_limited,
        )

    def retry_scheduled(self, pass_number: int, items: int, breakdown: dict[str, int]):
        self.logger.info(
            "retry_scheduled",
            pass_number=pass_number,
            items=items,
            breakdown=breakdown,
        )

    def cooldown(self, delay_s: float, strikes: int):
        self.logger.warning("cooldown", delay_s=round(delay_s, 2), strikes=strikes)


class WorkerLogger:
    """Events of individual instance workers."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def chunk_started(
        self, slot: int, pass_number: int, items: int, timeout_s: float, pid: int | None
    ):
        self.logger.info(
            "chunk_started",
            slot=slot,
            pass_number=pass_number,
            items=items,
            timeout_s=timeout_s,
            pid=pid,
        )

    def chunk_finished(
        self,
        slot: int,
        pass_number: int,
        exit_code: int | None,
        duration_s: float,
        outcomes: dict[str, str],
    ):
        self.logger.info(
            "chunk_finished",
            slot=slot,
            pass_number=pass_number,
            exit_code=exit_code,
            duration_s=round(duration_s, 2),
            outcomes=outcomes,
        )

    def chunk_abandoned(self, slot: int, pass_number: int, error: str):
        self.logger.error(
            "chunk_abandoned", slot=slot, pass_number=pass_number, error=error
        )

    def hard_timeout(self, slot: int, pass_number: int, timeout_s: float):
        self.logger.warning(
            "hard_timeout", slot=slot, pass_number=pass_number, timeout_s=timeout_s
        )

