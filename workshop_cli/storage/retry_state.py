"""
Persists the IDs that failed in a run so the next run can be scoped to them.
"""

import logging
from collections.abc import Iterable
from pathlib import Path

log = logging.getLogger(__name__)


class FailedIdsFile:
    """A flat text file with one previously-failed item ID per line."""

    def __init__(self, path: Path):
        self.path = path

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> list[str]:
        """Returns the stored IDs in file order. A missing file yields an empty list."""
        if not self.path.is_file():
            return []
        try:
            with open(self.path, encoding="utf-8") as f:
                ids = [
                    line.strip()
                    for line in f
                    if line.strip() and not line.startswith("#")
                ]
        except (OSError, UnicodeDecodeError) as e:
            log.warning(f"[yellow]Could not read {self.path}: {e}[/yellow]")
            return []
        return list(dict.fromkeys(ids))

    def save(self, ids: Iterable[str]) -> int:
        """
        Overwrites the file with the given IDs. Returns how many were written;
        an empty iterable leaves an empty file behind.
        """
        unique = list(dict.fromkeys(ids))
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            for item_id in unique:
                f.write(f"{item_id}\n")
        return len(unique)
