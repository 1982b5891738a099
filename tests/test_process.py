import asyncio
import signal
import subprocess
import sys

import pytest

from tests.helpers import posix_only
from workshop_cli.exceptions import ToolLaunchError
from workshop_cli.steamcmd.process import ToolProcess

pytestmark = posix_only


@pytest.mark.asyncio
async def test_natural_exit_with_any_code(tmp_path):
    log_path = tmp_path / "logs" / "instance.log"
    proc = ToolProcess(
        [sys.executable, "-c", "print('hello from steamcmd'); raise SystemExit(7)"],
        log_path,
    )
    await proc.spawn()
    result = await proc.wait(timeout=30)

    assert result.returncode == 7
    assert not result.timed_out
    assert "hello from steamcmd" in log_path.read_text()


@pytest.mark.asyncio
async def test_timeout_kills_the_process(tmp_path):
    proc = ToolProcess(
        [sys.executable, "-c", "import time; time.sleep(60)"], tmp_path / "p.log"
    )
    await proc.spawn()
    result = await proc.wait(timeout=0.5)

    assert result.timed_out
    assert result.returncode == -signal.SIGKILL
    assert result.duration_s < 30


@pytest.mark.asyncio
async def test_timeout_kill_leaves_other_processes_alone(tmp_path):
    bystander = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
    try:
        proc = ToolProcess(
            [sys.executable, "-c", "import time; time.sleep(60)"], tmp_path / "p.log"
        )
        await proc.spawn()
        result = await proc.wait(timeout=0.3)
        assert result.timed_out
        assert bystander.poll() is None
    finally:
        bystander.kill()
        bystander.wait()


@pytest.mark.asyncio
async def test_cancellation_kills_the_process(tmp_path):
    proc = ToolProcess(
        [sys.executable, "-c", "import time; time.sleep(60)"], tmp_path / "p.log"
    )
    await proc.spawn()
    task = asyncio.create_task(proc.wait(timeout=60))
    await asyncio.sleep(0.2)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert await proc.kill() is not None


@pytest.mark.asyncio
async def test_missing_executable(tmp_path):
    proc = ToolProcess([str(tmp_path / "no-such-steamcmd")], tmp_path / "p.log")
    with pytest.raises(ToolLaunchError):
        await proc.spawn()
