"""Row range coalescing for batched deletes.

Deleting a block of rows shifts every later row up. To send all deletes of
one batch in left-to-right order, each range is expressed in the coordinates
the sheet will have once the earlier ranges are gone.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class RowRange:
    """Half-open range of logical row indices: [start, end)."""

    start: int
    end: int

    def __len__(self) -> int:
        return self.end - self.start

    def shifted(self, offset: int) -> RowRange:
        """Return the same range moved by offset rows."""
        return RowRange(self.start + offset, self.end + offset)


def merge_row_ranges(ranges: Iterable[RowRange]) -> list[RowRange]:
    """Merge sorted ranges whose start touches the previous end."""
    merged: list[RowRange] = []
    for row_range in ranges:
        if merged and row_range.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = RowRange(last.start, max(last.end, row_range.end))
        else:
            merged.append(row_range)
    return merged


def coalesce_row_indices(
    indices: Iterable[int], sorted: bool = False  # noqa: A002
) -> list[RowRange]:
    """Turn row indices into the minimal list of shift-adjusted delete ranges.

    Args:
        indices: Distinct 0-based row indices to delete
        sorted: Set when indices are already in ascending order

    Returns:
        Ranges to delete one after another. The i-th range is moved left by
        the total size of the ranges before it.

    Example:
        >>> coalesce_row_indices([0, 1, 2, 5, 6, 9], sorted=True)
        [RowRange(start=0, end=3), RowRange(start=2, end=4), RowRange(start=4, end=5)]
    """
    ordered = list(indices)
    if not sorted:
        ordered.sort()

    merged = merge_row_ranges(RowRange(index, index + 1) for index in ordered)

    adjusted: list[RowRange] = []
    deleted_so_far = 0
    for row_range in merged:
        adjusted.append(row_range.shifted(-deleted_so_far))
        deleted_so_far += len(row_range)
    return adjusted
