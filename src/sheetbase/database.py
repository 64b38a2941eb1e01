"""A spreadsheet seen as a collection of tables.

Database owns one Table per sheet, keyed by sheetId, and a name index kept
in step with renames and deletions. Every response that carries sheets is
routed through update_from_sheets(), so each table only ever receives the
data of its own sheet.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol

from sheetbase.exceptions import TableNotFoundError, remote_operation
from sheetbase.table import Table
from sheetbase.transport import Transport
from sheetbase.utils import quote_sheet_title
from sheetbase.validation import check_name_valid, validate_column_names

logger = logging.getLogger(__name__)

DEFAULT_ROW_COUNT = 20


class TableListener(Protocol):
    """Receives table lifecycle events, synchronously and in subscription order."""

    def on_table_renamed(self, old_name: str, new_name: str) -> None: ...

    def on_table_dropped(self, name: str) -> None: ...


class Database:
    """Tables of one spreadsheet, backed by a Transport.

    Example:
        >>> db = Database(spreadsheet_id, GoogleSheetsTransport(access_token=token))
        >>> await db.load_data()
        >>> users = db["users"]
        >>> await users.insert({"name": "Ada", "age": 36})
    """

    def __init__(self, spreadsheet_id: str, transport: Transport) -> None:
        self.spreadsheet_id = spreadsheet_id
        self.transport = transport
        self.title: str | None = None
        self._tables: dict[int, Table] = {}
        self._names: dict[str, int] = {}
        self._listeners: list[TableListener] = []

    async def close(self) -> None:
        """Close the underlying transport."""
        await self.transport.close()

    # Table registry

    @property
    def tables(self) -> dict[str, Table]:
        """Tables keyed by name."""
        return {name: self._tables[sheet_id] for name, sheet_id in self._names.items()}

    @property
    def tables_by_id(self) -> dict[int, Table]:
        """Tables keyed by sheetId."""
        return dict(self._tables)

    @property
    def tables_by_index(self) -> list[Table]:
        """Tables in the order of the sheets in the spreadsheet."""
        return sorted(self._tables.values(), key=lambda table: table.index)

    def get_table(self, name: str) -> Table:
        """Return the table with the given name.

        Raises:
            TableNotFoundError: if no table has that name
        """
        sheet_id = self._names.get(name)
        if sheet_id is None:
            raise TableNotFoundError(name)
        return self._tables[sheet_id]

    def __getitem__(self, name: str) -> Table:
        return self.get_table(name)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def subscribe(self, listener: TableListener) -> None:
        """Register a listener for rename and drop events."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: TableListener) -> None:
        self._listeners.remove(listener)

    def update_from_sheets(
        self,
        sheets: Sequence[dict[str, Any]],
        complete: bool = False,
        partial: bool = False,
    ) -> None:
        """Create or refresh the table of every API Sheet object.

        Args:
            sheets: Sheet objects ({"properties": ..., "data": [...]})
            complete: The sheets are the whole spreadsheet; tables whose
                sheet is missing are forgotten
            partial: The data covers only some ranges of each sheet
        """
        seen = set()
        for sheet in sheets:
            sheet_id = sheet["properties"]["sheetId"]
            seen.add(sheet_id)
            table = self._tables.get(sheet_id)
            if table is None:
                self._tables[sheet_id] = Table(self, sheet, partial)
            else:
                table.update_from_sheet(sheet, partial)

        if complete:
            for sheet_id in set(self._tables) - seen:
                logger.info("Sheet %s no longer exists", self._tables[sheet_id].title)
                del self._tables[sheet_id]
        self._reindex()

    def _reindex(self) -> None:
        self._names = {table.title: sheet_id for sheet_id, table in self._tables.items()}

    # Loading

    async def load_data(self, with_data: bool = True) -> None:
        """Fetch the list of sheets and create or refresh their tables.

        Args:
            with_data: Fetch every cell. Otherwise only the header row of
                each table is fetched.
        """
        logger.debug("Loading spreadsheet %s", self.spreadsheet_id)
        with remote_operation("load the list of tables"):
            response = await self.transport.get_spreadsheet(
                self.spreadsheet_id, include_grid_data=with_data
            )
        self.title = (response.get("properties") or {}).get("title")
        self.update_from_sheets(response.get("sheets", []), complete=True)

        if not with_data:
            for table in self.tables_by_index:
                await table.load_column_names(enforce_headers=False)

    async def fetch_tables(self, with_data: bool = True) -> None:
        """Alias of load_data()."""
        await self.load_data(with_data)

    async def load_cells(self, ranges: str | Sequence[str]) -> None:
        """Fetch A1 ranges and merge their cells into the tables' caches.

        Cached cells outside the ranges are kept. The tables stay pending
        until a full read of their sheet.
        """
        range_list = [ranges] if isinstance(ranges, str) else list(ranges)
        with remote_operation(f"load cells {', '.join(range_list)}"):
            response = await self.transport.get_spreadsheet(
                self.spreadsheet_id, ranges=range_list, include_grid_data=True
            )
        self.update_from_sheets(response.get("sheets", []), partial=True)

    # Structural updates

    async def request_update(
        self,
        requests: list[dict[str, Any]],
        refetch: bool = False,
        refetch_ranges: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Send batchUpdate requests and return their replies.

        Args:
            requests: batchUpdate request objects, applied in order
            refetch: Ask for the updated spreadsheet and refresh every table
            refetch_ranges: Only refresh the sheets of these A1 ranges;
                other tables are left as they are

        Returns:
            One reply per request
        """
        kinds = ", ".join(next(iter(request)) for request in requests)
        with remote_operation(f"apply {kinds}"):
            response = await self.transport.batch_update(
                self.spreadsheet_id,
                requests,
                include_spreadsheet=refetch,
                response_ranges=refetch_ranges,
            )
        if refetch:
            updated = response.get("updatedSpreadsheet") or {}
            self.update_from_sheets(
                updated.get("sheets", []), complete=not refetch_ranges
            )
        replies: list[dict[str, Any]] = response.get("replies", [])
        return replies

    async def add_table(
        self,
        title: str,
        column_names: Sequence[str],
        row_count: int = DEFAULT_ROW_COUNT,
    ) -> Table:
        """Create a sheet and write its header row.

        Raises:
            ValidationError: if the title or a column name is invalid; no
                request is sent in that case
        """
        check_name_valid(title)
        names = validate_column_names(column_names)

        replies = await self.request_update(
            [
                {
                    "addSheet": {
                        "properties": {
                            "title": title,
                            "gridProperties": {
                                "rowCount": row_count,
                                "columnCount": len(names),
                            },
                        }
                    }
                }
            ],
            refetch=True,
            refetch_ranges=[quote_sheet_title(title)],
        )
        sheet_id = replies[0]["addSheet"]["properties"]["sheetId"]
        table = self._tables[sheet_id]
        await table.set_column_names(names, shrink_table=True)
        logger.info("Added table %s", title)
        return table

    async def delete_table(self, sheet_id: int) -> None:
        """Delete the sheet with the given sheetId and notify listeners."""
        table = self._tables.get(sheet_id)
        if table is None:
            raise TableNotFoundError(str(sheet_id))
        name = table.title

        await self.request_update([{"deleteSheet": {"sheetId": sheet_id}}])
        del self._tables[sheet_id]
        self._reindex()

        logger.info("Dropped table %s", name)
        for listener in list(self._listeners):
            listener.on_table_dropped(name)

    async def drop_table(self, name: str) -> None:
        """Delete the table with the given name."""
        await self.delete_table(self.get_table(name).sheet_id)

    async def update_sheet_properties(
        self, sheet_id: int, properties: dict[str, Any]
    ) -> None:
        """Update properties of a sheet; only the given fields are changed.

        Nested dicts become dotted field paths, so {"gridProperties":
        {"rowCount": 10}} leaves the column count alone. A new title is
        validated before the request and reported to listeners.
        """
        table = self._tables.get(sheet_id)
        if table is None:
            raise TableNotFoundError(str(sheet_id))
        new_title = properties.get("title")
        if new_title is not None:
            check_name_valid(new_title)
        old_title = table.title
        # moving a sheet shifts the index of the others
        refetch_ranges = (
            None
            if "index" in properties
            else [quote_sheet_title(new_title or old_title)]
        )

        await self.request_update(
            [
                {
                    "updateSheetProperties": {
                        "properties": {"sheetId": sheet_id, **properties},
                        "fields": ",".join(_field_paths(properties)),
                    }
                }
            ],
            refetch=True,
            refetch_ranges=refetch_ranges,
        )

        if new_title is not None and new_title != old_title:
            logger.info("Renamed table %s to %s", old_title, new_title)
            for listener in list(self._listeners):
                listener.on_table_renamed(old_title, new_title)

    async def rename_table(self, name: str, new_name: str) -> None:
        """Rename the table with the given name."""
        await self.update_sheet_properties(
            self.get_table(name).sheet_id, {"title": new_name}
        )


def _field_paths(properties: dict[str, Any], prefix: str = "") -> list[str]:
    paths = []
    for key, value in properties.items():
        path = f"{prefix}{key}"
        if isinstance(value, dict) and value:
            paths.extend(_field_paths(value, f"{path}."))
        else:
            paths.append(path)
    return paths
