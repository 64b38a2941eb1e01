"""Tests for sheetbase.database using the in-memory Sheets API."""

from __future__ import annotations

import pytest

from sheetbase.database import Database
from sheetbase.exceptions import (
    BlankHeadersError,
    DuplicateHeaderError,
    InvalidNameError,
    TableNotFoundError,
)
from sheetbase.mock import MockGoogleSheetsAPI, MockTransport
from sheetbase.transport import MalformedRequestError, NotFoundError

SPREADSHEET_ID = "sheet123"


class RecordingListener:
    """TableListener that records every event."""

    def __init__(self, db: Database | None = None) -> None:
        self.db = db
        self.events: list[tuple[str, ...]] = []
        self.names_seen: list[list[str]] = []

    def on_table_renamed(self, old_name: str, new_name: str) -> None:
        self.events.append(("renamed", old_name, new_name))
        if self.db is not None:
            self.names_seen.append(sorted(self.db.tables))

    def on_table_dropped(self, name: str) -> None:
        self.events.append(("dropped", name))
        if self.db is not None:
            self.names_seen.append(sorted(self.db.tables))


class TestLoading:
    """Tests for listing and loading tables."""

    @pytest.mark.asyncio
    async def test_load_data(self, db: Database) -> None:
        assert db.title == "Test DB"
        assert [t.title for t in db.tables_by_index] == ["users", "orders"]
        assert set(db.tables) == {"users", "orders"}
        assert set(db.tables_by_id) == {1, 2}
        assert db["users"].is_loaded

    @pytest.mark.asyncio
    async def test_load_data_single_call(self, transport: MockTransport) -> None:
        db = Database(SPREADSHEET_ID, transport)
        await db.fetch_tables()
        assert transport.call_count() == 1
        assert transport.calls[0][1]["include_grid_data"] is True

    @pytest.mark.asyncio
    async def test_load_without_data_fetches_headers(
        self, transport: MockTransport
    ) -> None:
        db = Database(SPREADSHEET_ID, transport)
        await db.load_data(with_data=False)

        assert transport.call_count("get_spreadsheet") == 3
        assert db["orders"].column_names == ["id", "item"]
        assert db["orders"].is_fetch_pending

    @pytest.mark.asyncio
    async def test_reload_keeps_table_identity(self, db: Database) -> None:
        users = db["users"]
        await db.load_data()
        assert db["users"] is users

    @pytest.mark.asyncio
    async def test_load_forgets_deleted_sheets(
        self, db: Database, api: MockGoogleSheetsAPI
    ) -> None:
        api.batch_update([{"deleteSheet": {"sheetId": 2}}])
        await db.load_data()
        assert "orders" not in db
        assert set(db.tables_by_id) == {1}

    @pytest.mark.asyncio
    async def test_load_cells(self, db: Database, api: MockGoogleSheetsAPI) -> None:
        api.update_values([{"range": "'users'!A2", "values": [["alicia"]]}])

        await db.load_cells("'users'!A1:C3")

        users = db["users"]
        assert users.get_data_array() == [
            ["alicia", 30, True],
            ["bob", 25, False],
            ["carol", 0, None],
            ["dave", 41, True],
        ]
        assert users.is_fetch_pending
        assert db["orders"].get_data_array() == [[1, "pen"]]
        assert not db["orders"].is_fetch_pending

    @pytest.mark.asyncio
    async def test_load_cells_keeps_rows_outside_range(self, db: Database) -> None:
        users = db["users"]
        await db.load_cells("'users'!A1:C2")

        assert users.last_row_with_values == 4
        assert users.get_row(3) == {"name": "dave", "age": 41, "active": True}

        await users.delete_row(3)
        assert users.last_row_with_values == 3
        assert not users.is_fetch_pending

    @pytest.mark.asyncio
    async def test_load_cells_raises_watermark(
        self, db: Database, api: MockGoogleSheetsAPI
    ) -> None:
        api.update_values([{"range": "'users'!A7", "values": [["gina"]]}])

        await db.load_cells("'users'!A7:C7")

        assert db["users"].last_row_with_values == 6
        assert db["users"].get_row_array(5) == ["gina", None, None]
        assert db["users"].get_row_array(3) == ["dave", 41, True]

    @pytest.mark.asyncio
    async def test_load_cells_many_ranges(
        self, db: Database, transport: MockTransport
    ) -> None:
        await db.load_cells(["'users'!A1:C2", "'orders'!A1:B2"])

        assert transport.call_count() == 1
        assert len(db["users"].get_data_array()) == 4
        assert db["orders"].get_data_array() == [[1, "pen"]]

    @pytest.mark.asyncio
    async def test_unknown_range_is_remote_error(self, db: Database) -> None:
        with pytest.raises(MalformedRequestError) as exc_info:
            await db.load_cells("'missing'!A1")
        assert "while trying to load cells 'missing'!A1" in exc_info.value.__notes__

    @pytest.mark.asyncio
    async def test_remote_error_passes_through(self, transport: MockTransport) -> None:
        db = Database(SPREADSHEET_ID, transport)
        transport.fail_next(404)
        with pytest.raises(NotFoundError) as exc_info:
            await db.load_data()
        assert exc_info.value.__notes__ == ["while trying to load the list of tables"]
        assert db.tables == {}


class TestLookup:
    def test_get_table(self, db: Database) -> None:
        assert db.get_table("users") is db["users"]
        assert "users" in db
        assert "nope" not in db

    def test_missing_table(self, db: Database) -> None:
        with pytest.raises(TableNotFoundError, match="No table named nope"):
            db.get_table("nope")
        with pytest.raises(KeyError):
            db["nope"]


class TestAddTable:
    """Tests for creating tables."""

    @pytest.mark.asyncio
    async def test_add_table(
        self, db: Database, api: MockGoogleSheetsAPI, transport: MockTransport
    ) -> None:
        table = await db.add_table("products", ["sku", " price"])

        assert db["products"] is table
        assert table.column_names == ["sku", "price"]
        assert table.get_data() == []
        assert table.row_count == 20
        assert table.column_count == 2
        assert api.values("products") == [["sku", "price"]]
        assert [name for name, _ in transport.calls] == ["batch_update", "update_values"]

    @pytest.mark.asyncio
    async def test_add_table_row_count(self, db: Database) -> None:
        table = await db.add_table("products", ["sku"], row_count=5)
        assert table.row_count == 5

    @pytest.mark.asyncio
    async def test_add_then_insert(self, db: Database) -> None:
        table = await db.add_table("products", ["sku", "price"])
        await table.insert({"sku": "A-1", "price": 9.5})
        assert table.get_data() == [{"sku": "A-1", "price": 9.5}]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("title", "names", "error"),
        [
            ("bad name", ["a"], InvalidNameError),
            ("ok", ["a", "a"], DuplicateHeaderError),
            ("ok", ["id", "", "", "name"], DuplicateHeaderError),
            ("ok", [" ", ""], BlankHeadersError),
            ("ok", [], BlankHeadersError),
            ("ok", ["a-b"], InvalidNameError),
        ],
    )
    async def test_validation_before_any_request(
        self,
        db: Database,
        transport: MockTransport,
        title: str,
        names: list[str],
        error: type[Exception],
    ) -> None:
        with pytest.raises(error):
            await db.add_table(title, names)
        assert transport.call_count() == 0

    @pytest.mark.asyncio
    async def test_duplicate_title_rejected_remotely(self, db: Database) -> None:
        with pytest.raises(MalformedRequestError):
            await db.add_table("users", ["a"])
        assert db["users"].column_names == ["name", "age", "active"]


class TestLifecycle:
    """Tests for drop and rename notifications."""

    @pytest.mark.asyncio
    async def test_drop_table(self, db: Database, api: MockGoogleSheetsAPI) -> None:
        listener = RecordingListener(db)
        db.subscribe(listener)

        await db.drop_table("orders")

        assert "orders" not in db
        assert listener.events == [("dropped", "orders")]
        assert listener.names_seen == [["users"]]
        with pytest.raises(Exception, match="Unable to parse range"):
            api.values("orders")

    @pytest.mark.asyncio
    async def test_rename_table(self, db: Database) -> None:
        listener = RecordingListener(db)
        db.subscribe(listener)
        users = db["users"]

        await db.rename_table("users", "people")

        assert db["people"] is users
        assert "users" not in db
        assert listener.events == [("renamed", "users", "people")]
        assert listener.names_seen == [["orders", "people"]]

    @pytest.mark.asyncio
    async def test_every_listener_notified_in_order(self, db: Database) -> None:
        order: list[str] = []

        class Named(RecordingListener):
            def __init__(self, name: str) -> None:
                super().__init__()
                self.name = name

            def on_table_dropped(self, name: str) -> None:
                order.append(self.name)

        db.subscribe(Named("first"))
        db.subscribe(Named("second"))
        await db["orders"].drop()
        assert order == ["first", "second"]

    @pytest.mark.asyncio
    async def test_unsubscribe(self, db: Database) -> None:
        listener = RecordingListener()
        db.subscribe(listener)
        db.unsubscribe(listener)
        await db.drop_table("orders")
        assert listener.events == []

    @pytest.mark.asyncio
    async def test_invalid_rename_sends_nothing(
        self, db: Database, transport: MockTransport
    ) -> None:
        listener = RecordingListener()
        db.subscribe(listener)

        with pytest.raises(InvalidNameError):
            await db.rename_table("users", "my people")

        assert transport.call_count() == 0
        assert listener.events == []

    @pytest.mark.asyncio
    async def test_failed_drop_keeps_table(
        self, db: Database, transport: MockTransport
    ) -> None:
        listener = RecordingListener()
        db.subscribe(listener)
        transport.fail_next(500)

        with pytest.raises(Exception, match="Server error"):
            await db.drop_table("orders")

        assert "orders" in db
        assert listener.events == []

    @pytest.mark.asyncio
    async def test_dropping_last_sheet_is_rejected(self, db: Database) -> None:
        await db.drop_table("orders")
        with pytest.raises(MalformedRequestError):
            await db.drop_table("users")
        assert "users" in db

    @pytest.mark.asyncio
    async def test_drop_unknown_table(self, db: Database) -> None:
        with pytest.raises(TableNotFoundError):
            await db.drop_table("nope")
        with pytest.raises(TableNotFoundError):
            await db.delete_table(99)


class TestRequestUpdate:
    @pytest.mark.asyncio
    async def test_returns_replies(self, db: Database) -> None:
        replies = await db.request_update(
            [{"addSheet": {"properties": {"title": "extra"}}}]
        )
        assert replies[0]["addSheet"]["properties"]["title"] == "extra"
        assert "extra" not in db

    @pytest.mark.asyncio
    async def test_refetch_refreshes_tables(self, db: Database) -> None:
        await db.request_update(
            [{"addSheet": {"properties": {"title": "extra"}}}], refetch=True
        )
        assert "extra" in db
        assert db["extra"].row_count == 1000

    @pytest.mark.asyncio
    async def test_failed_batch_is_rolled_back(
        self, db: Database, api: MockGoogleSheetsAPI
    ) -> None:
        with pytest.raises(MalformedRequestError):
            await db.request_update(
                [
                    {"addSheet": {"properties": {"title": "extra"}}},
                    {"deleteSheet": {"sheetId": 999}},
                ]
            )
        await db.load_data()
        assert "extra" not in db
        assert api.sheet_properties("users")["index"] == 0

    @pytest.mark.asyncio
    async def test_update_sheet_properties(
        self, db: Database, api: MockGoogleSheetsAPI, transport: MockTransport
    ) -> None:
        await db.update_sheet_properties(2, {"gridProperties": {"rowCount": 12}})

        update = transport.calls[0][1]["requests"][0]["updateSheetProperties"]
        assert update["fields"] == "gridProperties.rowCount"
        assert db["orders"].row_count == 12
        assert db["orders"].column_count == 4
        assert api.sheet_properties("orders")["gridProperties"]["columnCount"] == 4

    @pytest.mark.asyncio
    async def test_update_sheet_properties_refetches_one_sheet(
        self, db: Database, api: MockGoogleSheetsAPI, transport: MockTransport
    ) -> None:
        api.update_values([{"range": "'users'!A2", "values": [["alicia"]]}])

        await db.update_sheet_properties(2, {"title": "purchases"})

        assert transport.calls[0][1]["response_ranges"] == ["'purchases'"]
        assert db["purchases"].get_data_array() == [[1, "pen"]]
        assert db["users"].get_row(0)["name"] == "alice"
        assert set(db.tables) == {"users", "purchases"}

    @pytest.mark.asyncio
    async def test_moving_a_sheet_refetches_every_sheet(
        self, db: Database, transport: MockTransport
    ) -> None:
        await db.update_sheet_properties(2, {"index": 0})

        assert transport.calls[0][1]["response_ranges"] is None
        assert [t.title for t in db.tables_by_index] == ["orders", "users"]

    @pytest.mark.asyncio
    async def test_close(self, db: Database, transport: MockTransport) -> None:
        await db.close()
        assert transport.closed
