"""
The shared content directory that every downloaded item ends up in.
"""

import errno
import logging
import shutil
from pathlib import Path

from workshop_cli.utils.path import create_dir, folder_has_files, remove_tree

log = logging.getLogger(__name__)

STALE_LOCK_SUFFIXES = (".patch", ".lock")


class SharedDestination:
    """
    ``<shared_root>/steamapps/workshop/content/<app_id>/<item_id>``.

    An item is present when its directory directly holds at least one non-empty
    regular file; nothing else about its content is inspected.
    """

    def __init__(self, shared_root: Path, app_id: str):
        self.shared_root = shared_root
        self.app_id = app_id
        self.content_dir = shared_root / "steamapps" / "workshop" / "content" / app_id
        self.downloads_dir = shared_root / "steamapps" / "workshop" / "downloads"

    def ensure(self) -> None:
        create_dir(self.content_dir)

    def item_dir(self, item_id: str) -> Path:
        return self.content_dir / item_id

    def is_present(self, item_id: str) -> bool:
        return folder_has_files(self.item_dir(item_id))

    def adopt(self, item_id: str, source: Path) -> bool:
        """
        Moves an item out of an isolation directory into the shared content path.

        If the destination already holds the item, the isolation copy is only
        cleaned up; no second move is attempted. Returns whether the item is
        present in the destination afterwards.
        """
        destination = self.item_dir(item_id)

        if folder_has_files(destination):
            if source.exists():
                remove_tree(source)
            return True

        if not folder_has_files(source):
            return False

        try:
            create_dir(destination.parent)
            if destination.exists():
                # A partial leftover from an interrupted move blocks the rename.
                shutil.rmtree(destination)
            source.replace(destination)
        except OSError as e:
            if e.errno != errno.EXDEV:
                log.error(f"[red]Error moving item {item_id}: {e}[/red]")
                return False
            log.debug(f"Cross-device move for item {item_id}, falling back to copy")
            try:
                shutil.copytree(source, destination, dirs_exist_ok=True)
                shutil.rmtree(source)
            except OSError as copy_error:
                log.error(f"[red]Error copying item {item_id}: {copy_error}[/red]")
                return False

        return folder_has_files(destination)

    def clean_patch_files(self) -> int:
        """
        Deletes stale ``.patch`` and ``.lock`` files from the shared downloads
        directory. Best effort; returns the number of files removed.
        """
        if not self.downloads_dir.is_dir():
            return 0
        removed = 0
        try:
            entries = list(self.downloads_dir.iterdir())
        except OSError as e:
            log.debug(f"Could not list {self.downloads_dir}: {e}")
            return 0
        for entry in entries:
            if entry.suffix not in STALE_LOCK_SUFFIXES or not entry.is_file():
                continue
            try:
                entry.unlink()
                removed += 1
            except OSError as e:
                log.debug(f"Could not remove stale lock file {entry}: {e}")
        if removed:
            log.debug(f"Removed {removed} stale patch/lock files from shared dir")
        return removed
