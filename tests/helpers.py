"""Helpers shared by the test modules."""

import os
import shlex
import sys
from pathlib import Path

import pytest

FAKE_TOOL = Path(__file__).with_name("fake_steamcmd.py")

posix_only = pytest.mark.skipif(
    os.name == "nt", reason="process-group handling is exercised on POSIX only"
)


def fake_tool_command() -> str:
    return f"{shlex.quote(sys.executable)} {shlex.quote(str(FAKE_TOOL))}"


def engine_settings(root: Path, **overrides) -> dict:
    settings = {
        "tool_command": fake_tool_command(),
        "ids_file": str(root / "ImportedSkins.json"),
        "shared_root": str(root / "rust_workshop"),
        "instances_root": str(root / "instances"),
        "log_dir": str(root / "logs"),
        "scripts_dir": str(root / "temp_scripts"),
        "failed_ids_file": str(root / "failed_ids.txt"),
        "report_file": str(root / "download_report.txt"),
        "base_timeout_per_item": 15.0,
        "status_poll_interval": 0.05,
        "rate_limit_backoff": 0.0,
        "max_backoff": 0.0,
    }
    settings.update(overrides)
    return settings


def invocations(state_dir: Path) -> list[list[str]]:
    """The item lists the fake tool was started with, one entry per process."""
    log_file = state_dir / "invocations.log"
    if not log_file.exists():
        return []
    return [line.split() for line in log_file.read_text().splitlines()]


def put_item(content_dir: Path, item_id: str, payload: bytes = b"data") -> Path:
    item_dir = content_dir / item_id
    item_dir.mkdir(parents=True, exist_ok=True)
    (item_dir / "item.bin").write_bytes(payload)
    return item_dir
