import pytest

from workshop_cli.exceptions import ScriptWriteError
from workshop_cli.steamcmd.script import render_script, write_script


def test_render_script(tmp_path):
    script = render_script(["1000001", "1000002"], tmp_path / "slot", "252490")
    assert script.splitlines() == [
        "login anonymous",
        f'force_install_dir "{tmp_path / "slot"}"',
        "workshop_download_item 252490 1000001",
        "workshop_download_item 252490 1000002",
        "quit",
    ]


@pytest.mark.asyncio
async def test_write_script(tmp_path):
    path = tmp_path / "temp_scripts" / "t0" / "script.txt"
    await write_script(path, "quit\n")
    assert path.read_text(encoding="utf-8") == "quit\n"


@pytest.mark.asyncio
async def test_write_script_failure(tmp_path):
    blocker = tmp_path / "temp_scripts"
    blocker.write_text("not a directory")
    with pytest.raises(ScriptWriteError):
        await write_script(blocker / "t0" / "script.txt", "quit\n")
