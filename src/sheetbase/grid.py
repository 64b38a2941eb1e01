"""Local cell cache for one table.

The cache mirrors the remote grid: row 0 holds the header values, records
start at row 1. Absent cells are stored as None and are distinct from "",
0 and False.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Final

CellValue = float | int | str | bool | None


class _Unchanged:
    """Marker for cells a write must leave untouched."""

    _instance: _Unchanged | None = None

    def __new__(cls) -> _Unchanged:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNCHANGED"

    def __bool__(self) -> bool:
        return False


UNCHANGED: Final = _Unchanged()


def parse_cell_value(cell: dict[str, Any] | None) -> CellValue:
    """Extract a typed scalar from a CellData object.

    Reads effectiveValue; cells without one are absent. Integral numbers are
    returned as int.
    """
    if not cell:
        return None
    value = cell.get("effectiveValue")
    if not value:
        return None

    if "numberValue" in value:
        number = value["numberValue"]
        if isinstance(number, float) and number.is_integer():
            return int(number)
        return number
    if "stringValue" in value:
        return str(value["stringValue"])
    if "boolValue" in value:
        return bool(value["boolValue"])
    return None


def parse_echo_value(value: Any) -> CellValue:
    """Convert a value returned by the values API into a cache value.

    The values API reports empty cells as "", which the cache stores as absent.
    """
    if value is None or value == "":
        return None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


class GridCache:
    """Sparse 2D store of the cell values of one table.

    Attributes:
        cells: Rows of cell values, sized to the grid at the last fill
        last_row_with_values: Highest record row holding a value (0 if none)
        column_names: Header names of the table
        is_fetch_pending: True when the cache may not match the remote sheet
        has_data: True once a fill with data has happened
    """

    def __init__(self) -> None:
        self.cells: list[list[CellValue]] = []
        self.last_row_with_values = 0
        self.column_names: list[str] = []
        self.is_fetch_pending = True
        self.has_data = False

    def fill(
        self,
        blocks: Sequence[dict[str, Any]] | None,
        row_count: int,
        column_count: int,
    ) -> None:
        """Replace the cached cells with a full read of the remote grid.

        Args:
            blocks: GridData objects from the API. None or empty marks the
                cache pending and keeps the current cells.
            row_count: Declared number of rows of the sheet
            column_count: Declared number of columns of the sheet
        """
        if not blocks:
            self.is_fetch_pending = True
            return

        self.is_fetch_pending = False
        self.has_data = True
        self.cells = [[None] * column_count for _ in range(row_count)]
        self.last_row_with_values = self._write_blocks(blocks, row_count, column_count)

    def merge(
        self,
        blocks: Sequence[dict[str, Any]] | None,
        row_count: int,
        column_count: int,
    ) -> None:
        """Overwrite only the cells covered by a read of part of the grid.

        Cells outside the blocks keep their cached values. The watermark can
        only grow, and the cache stays pending since rows outside the blocks
        may have changed remotely.
        """
        if not blocks:
            return

        self.has_data = True
        self.is_fetch_pending = True
        self._ensure_size(row_count, column_count)
        last_row = self._write_blocks(blocks, row_count, column_count)
        self.last_row_with_values = max(self.last_row_with_values, last_row)

    def _write_blocks(
        self,
        blocks: Sequence[dict[str, Any]],
        row_count: int,
        column_count: int,
    ) -> int:
        last_row = 0
        for block in blocks:
            start_row = block.get("startRow", 0)
            start_col = block.get("startColumn", 0)
            for row_offset, row_data in enumerate(block.get("rowData") or []):
                row = start_row + row_offset
                if row >= row_count:
                    break
                for col_offset, cell in enumerate((row_data or {}).get("values") or []):
                    col = start_col + col_offset
                    if col >= column_count:
                        break
                    value = parse_cell_value(cell)
                    self.cells[row][col] = value
                    if value is not None and row > last_row:
                        last_row = row
        return last_row

    def mark_pending(self) -> None:
        """Flag the cache as possibly out of date."""
        self.is_fetch_pending = True

    def get(self, row: int, col: int) -> CellValue:
        """Return the cached value at (row, col), or None outside the grid."""
        if row < len(self.cells) and col < len(self.cells[row]):
            return self.cells[row][col]
        return None

    def header_values(self) -> list[str]:
        """Return row 0 as stripped strings, without trailing blanks."""
        if not self.cells:
            return []
        names = ["" if value is None else str(value).strip() for value in self.cells[0]]
        while names and not names[-1]:
            names.pop()
        return names

    def row_values(self, row: int) -> list[CellValue]:
        """Return the values of a row, one per column name."""
        return [self.get(row, col) for col in range(len(self.column_names))]

    def record(self, row: int) -> dict[str, CellValue]:
        """Return a row as a dict keyed by column name."""
        return dict(zip(self.column_names, self.row_values(row), strict=True))

    def rows(self) -> list[list[CellValue]]:
        """Return every record row as a list of values."""
        return [self.row_values(row) for row in range(1, self.last_row_with_values + 1)]

    def records(self) -> list[dict[str, CellValue]]:
        """Return every record row as a dict keyed by column name."""
        return [self.record(row) for row in range(1, self.last_row_with_values + 1)]

    def patch_row(self, row: int, values: Sequence[Any], width: int) -> None:
        """Overwrite the first width cells of a row with values echoed by the API.

        Positions missing from values become absent.
        """
        self._ensure_size(row + 1, width)
        for col in range(width):
            value = values[col] if col < len(values) else None
            self.cells[row][col] = parse_echo_value(value)
        if row > self.last_row_with_values and any(
            self.cells[row][col] is not None for col in range(width)
        ):
            self.last_row_with_values = row

    def _ensure_size(self, row_count: int, column_count: int) -> None:
        while len(self.cells) < row_count:
            self.cells.append([None] * column_count)
        for row in self.cells:
            if len(row) < column_count:
                row.extend([None] * (column_count - len(row)))
