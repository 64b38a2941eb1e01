"""Shared fixtures: an in-memory spreadsheet with two tables."""

from __future__ import annotations

from typing import Any

import pytest
import pytest_asyncio

from sheetbase.database import Database
from sheetbase.mock import MockGoogleSheetsAPI, MockTransport
from sheetbase.table import Table

SPREADSHEET_ID = "sheet123"

USERS: list[list[Any]] = [
    ["name", "age", "active"],
    ["alice", 30, True],
    ["bob", 25, False],
    ["carol", 0, None],
    ["dave", 41, True],
]

ORDERS: list[list[Any]] = [
    ["id", "item"],
    [1, "pen"],
]


@pytest.fixture
def api() -> MockGoogleSheetsAPI:
    """Spreadsheet with a users table (4 records) and an orders table (1 record)."""
    api = MockGoogleSheetsAPI(spreadsheet_id=SPREADSHEET_ID, title="Test DB")
    api.add_sheet("users", USERS, row_count=10, column_count=3, sheet_id=1)
    api.add_sheet("orders", ORDERS, row_count=5, column_count=4, sheet_id=2)
    return api


@pytest.fixture
def transport(api: MockGoogleSheetsAPI) -> MockTransport:
    return MockTransport(api)


@pytest_asyncio.fixture
async def db(transport: MockTransport) -> Database:
    """Database with every table loaded; recorded calls are reset."""
    database = Database(SPREADSHEET_ID, transport)
    await database.load_data()
    transport.calls.clear()
    return database


@pytest.fixture
def users(db: Database) -> Table:
    return db["users"]


@pytest.fixture
def orders(db: Database) -> Table:
    return db["orders"]
