"""A single sheet of the spreadsheet, seen as a table.

Row 0 of the sheet holds the column names. Records are addressed by a
0-based index: record i lives on sheet row i + 2 (A1 notation) and on row
i + 1 of the local GridCache.

Mutations are sent to the remote sheet first. With refetch=True the table
reloads afterwards; with refetch=False the cache is only marked pending.
Row updates are the exception: they patch the cache from the values echoed
by the API and never reload.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sheetbase.exceptions import (
    BlankHeadersError,
    MissingHeaderRowError,
    RangeError,
    RowIndexOutOfRangeError,
    TableNotLoadedError,
    UnknownColumnError,
    remote_operation,
)
from sheetbase.grid import UNCHANGED, CellValue, GridCache, parse_cell_value
from sheetbase.ranges import coalesce_row_indices
from sheetbase.utils import column_number_to_name, quote_sheet_title
from sheetbase.validation import strip_names, validate_column_names

if TYPE_CHECKING:
    from sheetbase.database import Database
    from sheetbase.transport import Transport

logger = logging.getLogger(__name__)

RowInput = Sequence[CellValue] | Mapping[str, CellValue]


@dataclass(frozen=True)
class SheetProperties:
    """Properties of a sheet as reported by the API.

    Attributes:
        sheet_id: Numeric sheet identifier, stable across renames
        title: Sheet title, used as the table name
        index: Position of the sheet in the spreadsheet
        row_count: Declared number of rows of the grid
        column_count: Declared number of columns of the grid
        raw: The SheetProperties object the values were read from
    """

    sheet_id: int
    title: str
    index: int = 0
    row_count: int = 0
    column_count: int = 0
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, properties: dict[str, Any]) -> SheetProperties:
        """Build from an API SheetProperties object."""
        grid = properties.get("gridProperties") or {}
        return cls(
            sheet_id=properties.get("sheetId", 0),
            title=properties.get("title", ""),
            index=properties.get("index", 0),
            row_count=grid.get("rowCount", 0),
            column_count=grid.get("columnCount", 0),
            raw=copy.deepcopy(properties),
        )


class Table:
    """One sheet of a spreadsheet, with named columns and indexed records.

    Tables are created by their Database; use Database.add_table() or
    Database.get_table() rather than the constructor.

    Calls that mutate the same table must be awaited one after the other.
    Overlapping calls race at the remote and the last response wins in the
    cache.
    """

    def __init__(
        self, database: Database, sheet: dict[str, Any], partial: bool = False
    ) -> None:
        self._database = database
        self._properties = SheetProperties.from_api(sheet["properties"])
        self._cache = GridCache()
        self._apply_data(sheet.get("data"), partial)

    def __repr__(self) -> str:
        return (
            f"Table(title={self.title!r}, sheet_id={self.sheet_id}, "
            f"columns={self.column_names!r})"
        )

    # Properties

    @property
    def properties(self) -> SheetProperties:
        return self._properties

    @property
    def sheet_id(self) -> int:
        return self._properties.sheet_id

    @property
    def title(self) -> str:
        return self._properties.title

    @property
    def name(self) -> str:
        return self._properties.title

    @property
    def index(self) -> int:
        return self._properties.index

    @property
    def row_count(self) -> int:
        return self._properties.row_count

    @property
    def column_count(self) -> int:
        return self._properties.column_count

    @property
    def a1_sheet_name(self) -> str:
        """Sheet title quoted for A1 ranges."""
        return quote_sheet_title(self.title)

    @property
    def column_names(self) -> list[str]:
        return list(self._cache.column_names)

    @property
    def last_row_with_values(self) -> int:
        """Number of records, counted up to the last row holding a value."""
        return self._cache.last_row_with_values

    @property
    def is_fetch_pending(self) -> bool:
        return self._cache.is_fetch_pending

    @property
    def is_loaded(self) -> bool:
        return self._cache.has_data

    @property
    def _transport(self) -> Transport:
        return self._database.transport

    @property
    def _spreadsheet_id(self) -> str:
        return self._database.spreadsheet_id

    # Cache maintenance

    def update_from_sheet(self, sheet: dict[str, Any], partial: bool = False) -> None:
        """Refresh the properties and cached cells from an API Sheet object.

        Args:
            sheet: Sheet object ({"properties": ..., "data": [...]})
            partial: The data covers only some ranges of the sheet; merge it
                into the cached cells instead of replacing them
        """
        self._properties = SheetProperties.from_api(sheet["properties"])
        self._apply_data(sheet.get("data"), partial)

    def _apply_data(
        self, data: list[dict[str, Any]] | None, partial: bool = False
    ) -> None:
        if partial:
            self._cache.merge(data, self.row_count, self.column_count)
        else:
            self._cache.fill(data, self.row_count, self.column_count)
        if data and any(
            block.get("startRow", 0) == 0 and block.get("startColumn", 0) == 0
            for block in data
        ):
            self._cache.column_names = self._cache.header_values()

    def mark_pending(self) -> None:
        """Flag the cached data as possibly out of date."""
        self._cache.mark_pending()

    async def reload(self) -> None:
        """Fetch the properties and every cell of the sheet."""
        logger.debug("Reloading table %s", self.title)
        with remote_operation(f"reload table '{self.title}'"):
            response = await self._transport.get_spreadsheet(
                self._spreadsheet_id,
                ranges=[self.a1_sheet_name],
                include_grid_data=True,
            )
        self._database.update_from_sheets(response.get("sheets", []))

    async def _after_mutation(self, refetch: bool) -> None:
        if refetch:
            await self.reload()
        else:
            self._cache.mark_pending()

    # Column names

    async def load_column_names(self, enforce_headers: bool = True) -> None:
        """Fetch the header row and adopt its values as column names.

        Args:
            enforce_headers: Raise when the header row is missing or blank.
                When False those cases leave the column names untouched.

        Raises:
            MissingHeaderRowError: if the header row returned no values
            BlankHeadersError: if every header value is blank
        """
        last_column = column_number_to_name(max(self.column_count, 1))
        a1 = f"{self.a1_sheet_name}!A1:{last_column}1"
        with remote_operation(f"load the column names of table '{self.title}'"):
            response = await self._transport.get_spreadsheet(
                self._spreadsheet_id, ranges=[a1], include_grid_data=True
            )

        values: list[CellValue] = []
        for sheet in response.get("sheets", []):
            if sheet.get("properties", {}).get("sheetId") != self.sheet_id:
                continue
            for block in sheet.get("data") or []:
                row_data = block.get("rowData") or []
                if row_data:
                    values = [
                        parse_cell_value(cell)
                        for cell in (row_data[0].get("values") or [])
                    ]

        if not any(value is not None for value in values):
            if enforce_headers:
                raise MissingHeaderRowError(self.title)
            return

        names = strip_names("" if value is None else str(value) for value in values)
        if not any(names):
            if enforce_headers:
                raise BlankHeadersError()
            return

        self._cache.column_names = names

    async def set_column_names(
        self, names: Sequence[str], shrink_table: bool = False
    ) -> None:
        """Write the header row and adopt it as the column names.

        The grid grows when there are more names than columns. Columns are
        only removed when shrink_table is set, in which case the grid is
        resized to fit the records and the new names.

        Raises:
            ValidationError: if the names are invalid (before any request)
        """
        stripped = validate_column_names(names)

        if len(stripped) > self.column_count:
            await self._resize(column_count=len(stripped))

        width = self.column_count
        row = stripped + [""] * (width - len(stripped))
        a1 = f"{self.a1_sheet_name}!A1:{column_number_to_name(width)}1"
        with remote_operation(f"set the column names of table '{self.title}'"):
            response = await self._transport.update_values(
                self._spreadsheet_id,
                [{"range": a1, "majorDimension": "ROWS", "values": [row]}],
                include_values=True,
            )

        echoed = _echoed_rows(response)
        header = echoed[0] if echoed else []
        self._cache.patch_row(0, header, width)
        self._cache.column_names = strip_names(
            "" if value is None else str(value) for value in header
        )
        logger.debug("Set column names of %s to %s", self.title, self._cache.column_names)

        if shrink_table and len(stripped) < self.column_count:
            await self._resize(
                row_count=self._cache.last_row_with_values + 2,
                column_count=len(stripped),
            )

    # Reading rows

    def get_row(self, index: int) -> dict[str, CellValue]:
        """Return the record at index as a dict keyed by column name."""
        self._check_index(index)
        return self._cache.record(index + 1)

    def get_row_array(self, index: int) -> list[CellValue]:
        """Return the record at index as a list, one value per column."""
        self._check_index(index)
        return self._cache.row_values(index + 1)

    def get_data(self) -> list[dict[str, CellValue]]:
        """Return every record as a dict keyed by column name."""
        self._require_data()
        return self._cache.records()

    def get_data_array(self) -> list[list[CellValue]]:
        """Return every record as a list of values."""
        self._require_data()
        return self._cache.rows()

    def _require_data(self) -> None:
        if not self._cache.has_data:
            raise TableNotLoadedError(self.title)

    def _check_index(self, index: int) -> None:
        self._require_data()
        count = self._cache.last_row_with_values
        if not 0 <= index < count:
            raise RowIndexOutOfRangeError(index, count)

    # Inserting rows

    async def insert(
        self, data: RowInput | Sequence[RowInput], refetch: bool = True
    ) -> None:
        """Append one row or a list of rows after the last record.

        Mapping rows are laid out by column name; missing keys are left
        empty.

        Raises:
            UnknownColumnError: if a mapping has a key that is not a column
            RangeError: if a positional row has more values than columns
        """
        rows = [self._positional_row(row) for row in _split_rows(data)]
        if not rows:
            return

        logger.debug("Inserting %d rows into %s", len(rows), self.title)
        with remote_operation(f"insert rows into table '{self.title}'"):
            await self._transport.append_values(
                self._spreadsheet_id, f"{self.a1_sheet_name}!A1", rows
            )
        await self._after_mutation(refetch)

    def _positional_row(self, row: RowInput) -> list[Any]:
        if isinstance(row, Mapping):
            self._check_keys(row)
            values = [row.get(name) for name in self._cache.column_names]
        else:
            self._check_width(row)
            values = list(row)
        return [None if value is UNCHANGED else value for value in values]

    def _check_keys(self, row: Mapping[str, Any]) -> None:
        unknown = [key for key in row if key not in self._cache.column_names]
        if unknown:
            raise UnknownColumnError(unknown, self.title)

    def _check_width(self, row: Sequence[Any]) -> None:
        width = len(self._cache.column_names)
        if len(row) > width:
            raise RangeError(
                f"Row has {len(row)} values but table '{self.title}' "
                f"has {width} columns"
            )

    # Deleting rows

    async def delete_row(self, index: int, refetch: bool = True) -> None:
        """Delete the record at index."""
        self._check_index(index)
        await self._delete_ranges([(index, index + 1)])
        await self._after_mutation(refetch)

    async def delete_row_range(
        self, start: int, end: int, refetch: bool = True
    ) -> None:
        """Delete the records in [start, end)."""
        self._require_data()
        if start >= end:
            raise RangeError(f"Empty row range [{start}, {end})")
        self._check_index(start)
        self._check_index(end - 1)
        await self._delete_ranges([(start, end)])
        await self._after_mutation(refetch)

    async def delete_rows(self, indices: Iterable[int], sorted: bool = False) -> None:  # noqa: A002
        """Delete the records at the given indices in a single request.

        The table is always reloaded afterwards. An empty list sends
        nothing.

        Args:
            indices: 0-based record indices, in any order
            sorted: Set when indices are already ascending
        """
        indices = list(indices)
        if not indices:
            return
        for index in indices:
            self._check_index(index)

        ranges = coalesce_row_indices(indices, sorted=sorted)
        await self._delete_ranges([(r.start, r.end) for r in ranges])
        await self.reload()

    async def delete_rows_where(
        self, predicate: Callable[[dict[str, CellValue]], bool]
    ) -> int:
        """Delete every record for which predicate returns True.

        Returns:
            Number of deleted records
        """
        indices = [
            index for index, record in enumerate(self.get_data()) if predicate(record)
        ]
        await self.delete_rows(indices, sorted=True)
        return len(indices)

    async def _delete_ranges(self, ranges: list[tuple[int, int]]) -> None:
        # Record index 0 is sheet row 1, below the header
        requests = [
            {
                "deleteDimension": {
                    "range": {
                        "sheetId": self.sheet_id,
                        "dimension": "ROWS",
                        "startIndex": start + 1,
                        "endIndex": end + 1,
                    }
                }
            }
            for start, end in ranges
        ]
        logger.debug("Deleting row ranges %s from %s", ranges, self.title)
        await self._database.request_update(requests)

    # Updating rows

    async def update_row(self, index: int, patch: RowInput) -> None:
        """Overwrite cells of the record at index.

        A sequence patch is applied by position: None clears a cell while
        UNCHANGED, and every position past its end, keeps the current value.
        A mapping patch only touches the columns it names.
        """
        self._check_index(index)
        await self._write_rows([(index, self._row_write(patch))])

    async def update_rows(
        self,
        indices: Iterable[int],
        fn: Callable[[dict[str, CellValue]], RowInput],
    ) -> None:
        """Patch several records with one request.

        fn receives each current record and returns its patch, with the
        same rules as update_row().
        """
        entries = []
        for index in indices:
            self._check_index(index)
            entries.append((index, self._row_write(fn(self._cache.record(index + 1)))))
        if entries:
            await self._write_rows(entries)

    def _row_write(self, patch: RowInput) -> list[Any]:
        # None in the written row is sent as null, which the API skips
        width = len(self._cache.column_names)
        row: list[Any] = [None] * width
        if isinstance(patch, Mapping):
            self._check_keys(patch)
            items = [
                (self._cache.column_names.index(key), value)
                for key, value in patch.items()
            ]
        else:
            self._check_width(patch)
            items = list(enumerate(patch))

        for position, value in items:
            if value is UNCHANGED:
                continue
            row[position] = "" if value is None else value
        return row

    async def _write_rows(self, entries: list[tuple[int, list[Any]]]) -> None:
        width = len(self._cache.column_names)
        if not width:
            raise MissingHeaderRowError(self.title)
        last_column = column_number_to_name(width)
        data = [
            {
                "range": f"{self.a1_sheet_name}!A{index + 2}:{last_column}{index + 2}",
                "majorDimension": "ROWS",
                "values": [values],
            }
            for index, values in entries
        ]
        logger.debug("Updating %d rows of %s", len(entries), self.title)
        with remote_operation(f"update rows of table '{self.title}'"):
            response = await self._transport.update_values(
                self._spreadsheet_id, data, include_values=True
            )

        for (index, _), echoed in zip(entries, _responses(response), strict=False):
            rows = (echoed.get("updatedData") or {}).get("values") or [[]]
            self._cache.patch_row(index + 1, rows[0], width)

    # Whole-table operations

    async def clear(self, refetch: bool = True) -> None:
        """Clear every cell below the header row."""
        if self.row_count >= 2:
            last_column = column_number_to_name(max(self.column_count, 1))
            a1 = f"{self.a1_sheet_name}!A2:{last_column}{self.row_count}"
            logger.debug("Clearing %s", a1)
            with remote_operation(f"clear table '{self.title}'"):
                await self._transport.clear_values(self._spreadsheet_id, a1)
        await self._after_mutation(refetch)

    async def shrink_sheet_to_fit_table(self) -> None:
        """Resize the grid to the records plus one blank row and the named columns.

        A pending cache is reloaded first so rows added remotely are kept.
        """
        self._require_data()
        if self._cache.is_fetch_pending:
            await self.reload()
        if not self._cache.column_names:
            raise MissingHeaderRowError(self.title)
        await self._resize(
            row_count=self._cache.last_row_with_values + 2,
            column_count=len(self._cache.column_names),
        )

    async def _resize(
        self, row_count: int | None = None, column_count: int | None = None
    ) -> None:
        grid: dict[str, int] = {}
        if row_count is not None:
            grid["rowCount"] = row_count
        if column_count is not None:
            grid["columnCount"] = column_count
        await self._database.update_sheet_properties(
            self.sheet_id, {"gridProperties": grid}
        )

    async def rename(self, new_title: str) -> None:
        """Rename the sheet. Listeners of the database are notified."""
        await self._database.update_sheet_properties(self.sheet_id, {"title": new_title})

    async def drop(self) -> None:
        """Delete the sheet. Listeners of the database are notified."""
        await self._database.delete_table(self.sheet_id)


def _split_rows(data: RowInput | Sequence[RowInput]) -> list[RowInput]:
    """Tell a single row from a list of rows."""
    if isinstance(data, Mapping):
        return [data]
    items = list(data)
    if items and all(
        isinstance(item, Mapping)
        or (isinstance(item, Sequence) and not isinstance(item, str))
        for item in items
    ):
        return items
    if not items:
        return []
    return [items]


def _responses(response: dict[str, Any]) -> list[dict[str, Any]]:
    responses: list[dict[str, Any]] = response.get("responses") or []
    return responses


def _echoed_rows(response: dict[str, Any]) -> list[list[Any]]:
    responses = _responses(response)
    if not responses:
        return []
    rows: list[list[Any]] = (responses[0].get("updatedData") or {}).get("values") or []
    return rows
