"""
Utilities for inspecting and manipulating item directories on disk.
"""

import logging
import shutil
from pathlib import Path

log = logging.getLogger(__name__)


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def folder_has_files(directory_path: Path) -> bool:
    """
    Returns True if the directory exists and directly contains at least one
    regular file with a size greater than zero. This is the definition of an
    item being "present" on disk.
    """
    try:
        if not directory_path.is_dir():
            return False
        for entry in directory_path.iterdir():
            if entry.is_file() and entry.stat().st_size > 0:
                return True
    except OSError as e:
        log.debug(f"Could not inspect '{directory_path}': {e}")
    return False


def clear_directory(directory_path: Path) -> int:
    """
    Removes everything inside a directory, keeping the directory itself.
    Returns the number of entries removed. Errors are raised to the caller.
    """
    if not directory_path.is_dir():
        return 0
    removed = 0
    for entry in directory_path.iterdir():
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()
        removed += 1
    return removed


def remove_tree(directory_path: Path) -> bool:
    """Best-effort recursive delete. Returns False if anything is left behind."""
    if not directory_path.exists():
        return True
    try:
        shutil.rmtree(directory_path)
        return True
    except OSError as e:
        log.debug(f"Could not remove '{directory_path}': {e}")
        return False
