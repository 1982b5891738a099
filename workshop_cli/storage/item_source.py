"""
Reads the list of workshop item IDs a run should download.
"""

import logging
import re
from pathlib import Path

from workshop_cli.exceptions import ItemSourceError

log = logging.getLogger(__name__)

# Quoted IDs anywhere in a JSON document, e.g. ImportedSkins.json.
QUOTED_ID_PATTERN = re.compile(r'"(\d{6,12})"')
# Bare IDs, one per line, for plain text lists.
LINE_ID_PATTERN = re.compile(r"^\s*(\d{6,12})\s*$", re.MULTILINE)


def parse_identifiers(text: str) -> list[str]:
    """
    Extracts workshop IDs from text, de-duplicated in first-seen order.
    Quoted IDs take priority; a document without any falls back to one ID per line.
    """
    found = QUOTED_ID_PATTERN.findall(text) or LINE_ID_PATTERN.findall(text)
    return list(dict.fromkeys(found))


def load_identifiers(path: Path) -> list[str]:
    """
    Loads the ordered, unique set of workshop IDs from a file.

    Raises:
        ItemSourceError: If the file is missing or unreadable.
    """
    if not path.is_file():
        raise ItemSourceError(f"Item list not found at '{path}'.")
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise ItemSourceError(f"Could not read item list '{path}': {e}") from e

    ids = parse_identifiers(text)
    log.debug(f"Parsed {len(ids)} unique IDs from {path}")
    return ids
