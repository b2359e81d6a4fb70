"""Part planning utilities."""
from typing import List

from ..models import PlannedPart


def part_count(size: int, part_size: int) -> int:
    """Number of parts needed for ``size`` bytes: ceil(size / part_size)."""
    if part_size <= 0:
        raise ValueError("part_size must be positive")
    if size < 0:
        raise ValueError("size must not be negative")
    return -(-size // part_size)


def plan_parts(size: int, part_size: int) -> List[PlannedPart]:
    """
    Split a file into contiguous byte ranges.

    Part ``i`` covers ``[i * part_size, min((i + 1) * part_size, size))`` and is
    numbered ``i + 1``.
    """
    return [
        PlannedPart(
            part_no=index + 1,
            start=index * part_size,
            end=min((index + 1) * part_size, size),
        )
        for index in range(part_count(size, part_size))
    ]
