"""
Builds and writes the ``+runscript`` file for one SteamCMD instance.
"""

from collections.abc import Sequence
from pathlib import Path

import aiofiles

from workshop_cli.exceptions import ScriptWriteError


def render_script(
    items: Sequence[str], install_dir: Path, app_id: str, login: str = "anonymous"
) -> str:
    """
    Returns the script text: a login directive, the isolated install target,
    one download directive per item, and a quit directive.
    """
    lines = [f"login {login}", f'force_install_dir "{install_dir}"']
    lines.extend(f"workshop_download_item {app_id} {item_id}" for item_id in items)
    lines.append("quit")
    return "\n".join(lines) + "\n"


async def write_script(path: Path, content: str) -> None:
    """
    Writes a run script to disk.

    Raises:
        ScriptWriteError: If the directory or file cannot be created.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(content)
    except OSError as e:
        raise ScriptWriteError(f"Could not create script {path}: {e}") from e
