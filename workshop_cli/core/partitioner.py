"""
Splits the work set of a pass into contiguous chunks, one per worker slot.
"""

from collections.abc import Sequence


def partition(ids: Sequence[str], slots: int) -> list[list[str]]:
    """
    Splits ``ids`` into ``min(slots, len(ids))`` contiguous, order-preserving
    chunks whose sizes differ by at most one, the larger chunks first.

    Raises:
        ValueError: If ``slots`` is lower than 1.
    """
    if slots < 1:
        raise ValueError(f"Slot count must be at least 1, got {slots}.")
    if not ids:
        return []

    count = min(slots, len(ids))
    base, extra = divmod(len(ids), count)

    chunks: list[list[str]] = []
    start = 0
    for index in range(count):
        size = base + (1 if index < extra else 0)
        chunks.append(list(ids[start : start + size]))
        start += size
    return chunks
