"""
Per-slot install directories that keep concurrent SteamCMD instances from
sharing lock and patch-state files.
"""

import logging
from collections.abc import Iterable
from pathlib import Path

from workshop_cli.models.config import STAGING_SUBDIRS
from workshop_cli.utils.path import clear_directory, create_dir

log = logging.getLogger(__name__)


class IsolationManager:
    """
    Allocates one private install directory per worker slot.

    A slot keeps its directory for the whole run. Only the staging subpaths are
    ever cleared; finalised content under ``steamapps/workshop/content`` is left
    alone so that a later reconciliation can still pick it up.
    """

    DIR_PREFIX = "workshop_t"

    def __init__(self, instances_root: Path, app_id: str):
        self.instances_root = instances_root
        self.app_id = app_id

    def slot_dir(self, slot: int) -> Path:
        return self.instances_root / f"{self.DIR_PREFIX}{slot}"

    def content_dir(self, slot: int) -> Path:
        return self.slot_dir(slot) / "steamapps" / "workshop" / "content" / self.app_id

    def item_dir(self, slot: int, item_id: str) -> Path:
        return self.content_dir(slot) / item_id

    def acquire(self, slot: int) -> Path:
        """Creates the slot's directory if needed and returns it. Idempotent."""
        directory = self.slot_dir(slot)
        create_dir(directory)
        return directory

    def reset_staging(self, slot: int) -> None:
        """
        Wipes the tool's in-progress download areas for a slot. Must only be
        called while no instance is running in that slot.
        """
        slot_dir = self.slot_dir(slot)
        for sub in STAGING_SUBDIRS:
            staging = slot_dir / sub
            try:
                removed = clear_directory(staging)
            except OSError as e:
                log.warning(
                    f"[yellow]Could not clean staging dir {staging}: {e}[/yellow]"
                )
                continue
            if removed:
                log.debug(f"[T{slot}] Removed {removed} stale entries from {staging}")

    def reset_all(self, slots: Iterable[int]) -> None:
        for slot in slots:
            self.reset_staging(slot)
