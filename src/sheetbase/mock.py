"""In-memory model of the Google Sheets API endpoints used by sheetbase.

MockGoogleSheetsAPI keeps every sheet as a dense grid of Python scalars and
applies spreadsheets.get, batchUpdate and the values endpoints to it.
MockTransport adapts it to the Transport interface and records every call,
so tests can check how many requests an operation made.
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from typing import Any

from sheetbase.exceptions import InvalidFormatError
from sheetbase.transport import Transport, error_for_status
from sheetbase.utils import parse_a1_range

DEFAULT_ROW_COUNT = 1000
DEFAULT_COLUMN_COUNT = 26


class MockAPIError(Exception):
    """Raised when the mock API rejects a request."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


class _MockSheet:
    def __init__(self, properties: dict[str, Any]) -> None:
        self.properties = properties
        grid = properties["gridProperties"]
        self.cells: list[list[Any]] = [
            [None] * grid["columnCount"] for _ in range(grid["rowCount"])
        ]

    @property
    def sheet_id(self) -> int:
        sheet_id: int = self.properties["sheetId"]
        return sheet_id

    @property
    def title(self) -> str:
        title: str = self.properties["title"]
        return title

    @property
    def row_count(self) -> int:
        count: int = self.properties["gridProperties"]["rowCount"]
        return count

    @property
    def column_count(self) -> int:
        count: int = self.properties["gridProperties"]["columnCount"]
        return count

    def resize(self, row_count: int, column_count: int) -> None:
        if row_count < 1 or column_count < 1:
            raise MockAPIError("Sheets must keep at least one row and one column")
        del self.cells[row_count:]
        for row in self.cells:
            del row[column_count:]
            row.extend([None] * (column_count - len(row)))
        while len(self.cells) < row_count:
            self.cells.append([None] * column_count)
        self.properties["gridProperties"]["rowCount"] = row_count
        self.properties["gridProperties"]["columnCount"] = column_count

    def last_row_with_values(self) -> int:
        """Return the 0-based index of the last non-empty row, or -1."""
        for row in range(len(self.cells) - 1, -1, -1):
            if any(value is not None for value in self.cells[row]):
                return row
        return -1


class MockGoogleSheetsAPI:
    """Mock implementation of the Google Sheets API.

    Cell values are stored as Python scalars (int, float, str, bool) with
    None for empty cells. A failing batchUpdate leaves the spreadsheet as it
    was before the batch.
    """

    def __init__(
        self,
        spreadsheet_id: str = "mock_spreadsheet",
        title: str = "Mock Spreadsheet",
    ) -> None:
        self.spreadsheet_id = spreadsheet_id
        self.title = title
        self._sheets: list[_MockSheet] = []
        self._next_sheet_id = 1000

    # Test setup helpers

    def add_sheet(
        self,
        title: str,
        values: list[list[Any]] | None = None,
        row_count: int = DEFAULT_ROW_COUNT,
        column_count: int = DEFAULT_COLUMN_COUNT,
        sheet_id: int | None = None,
    ) -> int:
        """Create a sheet holding values from A1 and return its sheetId."""
        reply = self._add_sheet(
            {
                "properties": {
                    "title": title,
                    "sheetId": sheet_id,
                    "gridProperties": {
                        "rowCount": row_count,
                        "columnCount": column_count,
                    },
                }
            }
        )
        sheet = self._sheet_by_id(reply["addSheet"]["properties"]["sheetId"])
        for r, row in enumerate(values or []):
            for c, value in enumerate(row):
                sheet.cells[r][c] = _normalize_written(value)
        return sheet.sheet_id

    def values(self, title: str) -> list[list[Any]]:
        """Return the stored values of a sheet, trailing empties trimmed."""
        sheet = self._sheet_by_title(title)
        rows = [_trim_row(list(row)) for row in sheet.cells]
        while rows and not rows[-1]:
            rows.pop()
        return rows

    def sheet_properties(self, title: str) -> dict[str, Any]:
        """Return a copy of the properties of a sheet."""
        return copy.deepcopy(self._sheet_by_title(title).properties)

    # spreadsheets.get

    def get(
        self,
        ranges: list[str] | None = None,
        include_grid_data: bool = False,
    ) -> dict[str, Any]:
        """Return the spreadsheet, optionally restricted to ranges."""
        sheets_out: list[dict[str, Any]] = []
        if ranges:
            wanted: dict[int, list[tuple[int, int, int, int]]] = {}
            for a1 in ranges:
                sheet, bounds = self._resolve_range(a1)
                wanted.setdefault(sheet.sheet_id, []).append(bounds)
            for sheet in self._sheets:
                if sheet.sheet_id not in wanted:
                    continue
                entry: dict[str, Any] = {"properties": copy.deepcopy(sheet.properties)}
                if include_grid_data:
                    entry["data"] = [
                        _grid_data(sheet, bounds) for bounds in wanted[sheet.sheet_id]
                    ]
                sheets_out.append(entry)
        else:
            for sheet in self._sheets:
                entry = {"properties": copy.deepcopy(sheet.properties)}
                if include_grid_data:
                    entry["data"] = [
                        _grid_data(sheet, (0, sheet.row_count, 0, sheet.column_count))
                    ]
                sheets_out.append(entry)

        return {
            "spreadsheetId": self.spreadsheet_id,
            "properties": {"title": self.title},
            "sheets": sheets_out,
        }

    # spreadsheets.batchUpdate

    def batch_update(
        self,
        requests: list[dict[str, Any]],
        include_spreadsheet: bool = False,
        response_ranges: list[str] | None = None,
    ) -> dict[str, Any]:
        """Apply requests in order; roll everything back if one fails."""
        backup_sheets = copy.deepcopy(self._sheets)
        backup_next_id = self._next_sheet_id

        handlers: dict[str, Callable[[dict[str, Any]], dict[str, Any]]] = {
            "addSheet": self._add_sheet,
            "deleteSheet": self._delete_sheet,
            "updateSheetProperties": self._update_sheet_properties,
            "deleteDimension": self._delete_dimension,
        }

        replies: list[dict[str, Any]] = []
        try:
            for request in requests:
                if len(request) != 1:
                    raise MockAPIError(
                        f"Request must have exactly one operation, got: {list(request)}"
                    )
                request_type, params = next(iter(request.items()))
                handler = handlers.get(request_type)
                if handler is None:
                    raise MockAPIError(f"Unsupported request type: {request_type}")
                replies.append(handler(params))
        except Exception:
            self._sheets = backup_sheets
            self._next_sheet_id = backup_next_id
            raise

        response: dict[str, Any] = {
            "spreadsheetId": self.spreadsheet_id,
            "replies": replies,
        }
        if include_spreadsheet:
            response["updatedSpreadsheet"] = self.get(
                response_ranges, include_grid_data=True
            )
        return response

    def _add_sheet(self, params: dict[str, Any]) -> dict[str, Any]:
        props = copy.deepcopy(params.get("properties") or {})
        title = props.get("title") or f"Sheet{len(self._sheets) + 1}"
        if any(sheet.title == title for sheet in self._sheets):
            raise MockAPIError(
                f'A sheet with the name "{title}" already exists. '
                "Please enter another name."
            )
        sheet_id = props.get("sheetId")
        if sheet_id is None:
            sheet_id = self._next_sheet_id
            self._next_sheet_id += 1
        grid = props.get("gridProperties") or {}
        index = props.get("index", len(self._sheets))
        properties = {
            "sheetId": sheet_id,
            "title": title,
            "index": index,
            "sheetType": "GRID",
            "gridProperties": {
                "rowCount": grid.get("rowCount", DEFAULT_ROW_COUNT),
                "columnCount": grid.get("columnCount", DEFAULT_COLUMN_COUNT),
            },
        }
        self._sheets.insert(index, _MockSheet(properties))
        self._reindex()
        return {"addSheet": {"properties": copy.deepcopy(properties)}}

    def _delete_sheet(self, params: dict[str, Any]) -> dict[str, Any]:
        sheet = self._sheet_by_id(params.get("sheetId"))
        if len(self._sheets) == 1:
            raise MockAPIError("You can't remove all the sheets in a document.")
        self._sheets.remove(sheet)
        self._reindex()
        return {}

    def _update_sheet_properties(self, params: dict[str, Any]) -> dict[str, Any]:
        props = params.get("properties") or {}
        sheet = self._sheet_by_id(props.get("sheetId"))
        fields = [f.strip() for f in (params.get("fields") or "").split(",") if f.strip()]
        if not fields:
            raise MockAPIError("At least one field must be updated")

        row_count, column_count = sheet.row_count, sheet.column_count
        for field in fields:
            if field == "title":
                title = props.get("title")
                if not title:
                    raise MockAPIError("Sheet title cannot be empty")
                if any(s.title == title and s is not sheet for s in self._sheets):
                    raise MockAPIError(f'A sheet with the name "{title}" already exists.')
                sheet.properties["title"] = title
            elif field == "index":
                self._sheets.remove(sheet)
                self._sheets.insert(props.get("index", 0), sheet)
                self._reindex()
            elif field in ("gridProperties", "gridProperties.rowCount"):
                row_count = props.get("gridProperties", {}).get("rowCount", row_count)
                if field == "gridProperties":
                    column_count = props["gridProperties"].get("columnCount", column_count)
            elif field == "gridProperties.columnCount":
                column_count = props.get("gridProperties", {}).get(
                    "columnCount", column_count
                )
            else:
                raise MockAPIError(f"Unsupported field: {field}")
        sheet.resize(row_count, column_count)
        return {}

    def _delete_dimension(self, params: dict[str, Any]) -> dict[str, Any]:
        dim_range = params.get("range") or {}
        sheet = self._sheet_by_id(dim_range.get("sheetId"))
        start = dim_range.get("startIndex", 0)
        dimension = dim_range.get("dimension")

        if dimension == "ROWS":
            end = dim_range.get("endIndex", sheet.row_count)
            if not 0 <= start < end <= sheet.row_count:
                raise MockAPIError(f"Invalid row range [{start}, {end})")
            if end - start >= sheet.row_count:
                raise MockAPIError("You can't delete all the rows on the sheet.")
            del sheet.cells[start:end]
            sheet.properties["gridProperties"]["rowCount"] -= end - start
        elif dimension == "COLUMNS":
            end = dim_range.get("endIndex", sheet.column_count)
            if not 0 <= start < end <= sheet.column_count:
                raise MockAPIError(f"Invalid column range [{start}, {end})")
            if end - start >= sheet.column_count:
                raise MockAPIError("You can't delete all the columns on the sheet.")
            for row in sheet.cells:
                del row[start:end]
            sheet.properties["gridProperties"]["columnCount"] -= end - start
        else:
            raise MockAPIError(f"Invalid dimension: {dimension}")
        return {}

    # spreadsheets.values

    def update_values(
        self,
        data: list[dict[str, Any]],
        include_values: bool = False,
    ) -> dict[str, Any]:
        """Write ValueRanges; None leaves a cell unchanged, "" clears it."""
        responses: list[dict[str, Any]] = []
        total = 0
        for value_range in data:
            a1 = value_range["range"]
            rows = value_range.get("values") or []
            sheet, (r0, r1, c0, c1) = self._resolve_range(a1, clip=False)
            height = len(rows)
            width = max((len(row) for row in rows), default=0)
            if r1 - r0 < height or c1 - c0 < width:
                raise MockAPIError(
                    f"Requested writing within range [{a1}], but tried writing "
                    f"{height} rows and {width} columns"
                )
            if r1 > sheet.row_count or c1 > sheet.column_count:
                raise MockAPIError(f"Range ({a1}) exceeds grid limits.")

            for r, row in enumerate(rows):
                for c, value in enumerate(row):
                    if value is None:
                        continue
                    sheet.cells[r0 + r][c0 + c] = _normalize_written(value)
                    total += 1

            entry: dict[str, Any] = {"updatedRange": a1, "updatedRows": height}
            if include_values:
                entry["updatedData"] = {
                    "range": a1,
                    "majorDimension": "ROWS",
                    "values": _echo_values(sheet, (r0, r1, c0, c1)),
                }
            responses.append(entry)

        return {
            "spreadsheetId": self.spreadsheet_id,
            "totalUpdatedCells": total,
            "responses": responses,
        }

    def append_values(self, a1_range: str, rows: list[list[Any]]) -> dict[str, Any]:
        """Write rows below the last non-empty row, growing the grid if needed."""
        sheet, (_, _, c0, _) = self._resolve_range(a1_range)
        start = sheet.last_row_with_values() + 1
        width = max((len(row) for row in rows), default=0)
        sheet.resize(
            max(sheet.row_count, start + len(rows)),
            max(sheet.column_count, c0 + width),
        )
        for r, row in enumerate(rows):
            for c, value in enumerate(row):
                if value is not None:
                    sheet.cells[start + r][c0 + c] = _normalize_written(value)
        return {
            "spreadsheetId": self.spreadsheet_id,
            "updates": {"updatedRows": len(rows), "updatedStartRow": start},
        }

    def clear_values(self, a1_range: str) -> dict[str, Any]:
        """Clear every cell of a range."""
        sheet, (r0, r1, c0, c1) = self._resolve_range(a1_range)
        for r in range(r0, r1):
            for c in range(c0, c1):
                sheet.cells[r][c] = None
        return {"spreadsheetId": self.spreadsheet_id, "clearedRange": a1_range}

    # Helpers

    def _reindex(self) -> None:
        for index, sheet in enumerate(self._sheets):
            sheet.properties["index"] = index

    def _sheet_by_id(self, sheet_id: Any) -> _MockSheet:
        for sheet in self._sheets:
            if sheet.sheet_id == sheet_id:
                return sheet
        raise MockAPIError(f"No grid with id: {sheet_id}")

    def _sheet_by_title(self, title: str) -> _MockSheet:
        for sheet in self._sheets:
            if sheet.title == title:
                return sheet
        raise MockAPIError(f"Unable to parse range: {title}")

    def _resolve_range(
        self, a1: str, clip: bool = True
    ) -> tuple[_MockSheet, tuple[int, int, int, int]]:
        try:
            title, r0, r1, c0, c1 = parse_a1_range(a1)
        except InvalidFormatError as e:
            raise MockAPIError(f"Unable to parse range: {a1}") from e
        if title is None:
            if not self._sheets:
                raise MockAPIError(f"Unable to parse range: {a1}")
            sheet = self._sheets[0]
        else:
            sheet = self._sheet_by_title(title)

        start_row = r0 or 0
        start_col = c0 or 0
        end_row = sheet.row_count if r1 is None else r1
        end_col = sheet.column_count if c1 is None else c1
        if clip:
            end_row = min(end_row, sheet.row_count)
            end_col = min(end_col, sheet.column_count)
        return sheet, (start_row, end_row, start_col, end_col)


class MockTransport(Transport):
    """Transport that wraps MockGoogleSheetsAPI.

    Every call is appended to `calls` as (method, params). Statuses queued
    with fail_next() make the following calls raise the matching transport
    error without touching the mock state.
    """

    def __init__(self, api: MockGoogleSheetsAPI | None = None) -> None:
        """Initialize the mock transport.

        Args:
            api: Mock API holding the spreadsheet state (a new one if omitted)
        """
        self.api = api or MockGoogleSheetsAPI()
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.closed = False
        self._pending_failures: list[int] = []

    def fail_next(self, status_code: int) -> None:
        """Make the next call fail with the given HTTP status."""
        self._pending_failures.append(status_code)

    def call_count(self, method: str | None = None) -> int:
        """Return the number of calls, optionally of a single method."""
        if method is None:
            return len(self.calls)
        return sum(1 for name, _ in self.calls if name == method)

    async def get_spreadsheet(
        self,
        spreadsheet_id: str,  # noqa: ARG002
        ranges: list[str] | None = None,
        include_grid_data: bool = False,
    ) -> dict[str, Any]:
        """Get the spreadsheet from the mock API."""
        return self._call(
            "get_spreadsheet",
            {"ranges": ranges, "include_grid_data": include_grid_data},
            lambda: self.api.get(ranges, include_grid_data),
        )

    async def batch_update(
        self,
        spreadsheet_id: str,  # noqa: ARG002
        requests: list[dict[str, Any]],
        include_spreadsheet: bool = False,
        response_ranges: list[str] | None = None,
    ) -> dict[str, Any]:
        """Apply batch update to the mock API."""
        return self._call(
            "batch_update",
            {
                "requests": requests,
                "include_spreadsheet": include_spreadsheet,
                "response_ranges": response_ranges,
            },
            lambda: self.api.batch_update(
                requests, include_spreadsheet, response_ranges
            ),
        )

    async def update_values(
        self,
        spreadsheet_id: str,  # noqa: ARG002
        data: list[dict[str, Any]],
        include_values: bool = False,
    ) -> dict[str, Any]:
        """Write values to the mock API."""
        return self._call(
            "update_values",
            {"data": data, "include_values": include_values},
            lambda: self.api.update_values(data, include_values),
        )

    async def append_values(
        self,
        spreadsheet_id: str,  # noqa: ARG002
        a1_range: str,
        rows: list[list[Any]],
    ) -> dict[str, Any]:
        """Append rows in the mock API."""
        return self._call(
            "append_values",
            {"range": a1_range, "rows": rows},
            lambda: self.api.append_values(a1_range, rows),
        )

    async def clear_values(
        self,
        spreadsheet_id: str,  # noqa: ARG002
        a1_range: str,
    ) -> dict[str, Any]:
        """Clear a range in the mock API."""
        return self._call(
            "clear_values",
            {"range": a1_range},
            lambda: self.api.clear_values(a1_range),
        )

    async def close(self) -> None:
        """Mark the transport closed."""
        self.closed = True

    def _call(
        self,
        method: str,
        params: dict[str, Any],
        operation: Callable[[], dict[str, Any]],
    ) -> dict[str, Any]:
        self.calls.append((method, copy.deepcopy(params)))
        if self._pending_failures:
            status = self._pending_failures.pop(0)
            raise error_for_status(status, "simulated failure")
        try:
            return copy.deepcopy(operation())
        except MockAPIError as e:
            raise error_for_status(e.status_code, str(e)) from e


def _normalize_written(value: Any) -> Any:
    if value == "" and isinstance(value, str):
        return None
    return value


def _effective_value(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, bool):
        return {"effectiveValue": {"boolValue": value}}
    if isinstance(value, int | float):
        return {"effectiveValue": {"numberValue": float(value)}}
    return {"effectiveValue": {"stringValue": str(value)}}


def _trim_row(row: list[Any]) -> list[Any]:
    while row and row[-1] is None:
        row.pop()
    return row


def _grid_data(sheet: _MockSheet, bounds: tuple[int, int, int, int]) -> dict[str, Any]:
    r0, r1, c0, c1 = bounds
    row_data = []
    for r in range(r0, r1):
        row = _trim_row([sheet.cells[r][c] for c in range(c0, c1)])
        row_data.append({"values": [_effective_value(v) for v in row]} if row else {})
    while row_data and not row_data[-1]:
        row_data.pop()

    grid: dict[str, Any] = {}
    if r0:
        grid["startRow"] = r0
    if c0:
        grid["startColumn"] = c0
    if row_data:
        grid["rowData"] = row_data
    return grid


def _echo_values(sheet: _MockSheet, bounds: tuple[int, int, int, int]) -> list[list[Any]]:
    r0, r1, c0, c1 = bounds
    rows = [
        _trim_row([sheet.cells[r][c] for c in range(c0, c1)]) for r in range(r0, r1)
    ]
    while rows and not rows[-1]:
        rows.pop()
    return [["" if value is None else value for value in row] for row in rows]
