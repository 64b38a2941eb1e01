"""sheetbase - Google Sheets tabs as database tables.

Each sheet of a spreadsheet is a table whose header row holds the column
names. Tables are cached locally and kept in step with the remote sheet
through the Google Sheets API.
"""

__version__ = "0.1.0"

from sheetbase.config import Settings
from sheetbase.database import Database, TableListener
from sheetbase.exceptions import (
    BlankHeadersError,
    DuplicateHeaderError,
    InvalidFormatError,
    InvalidNameError,
    MissingHeaderRowError,
    RangeError,
    RemoteError,
    RowIndexOutOfRangeError,
    SheetbaseError,
    StateError,
    TableNotFoundError,
    TableNotLoadedError,
    UnknownColumnError,
    ValidationError,
)
from sheetbase.grid import UNCHANGED, CellValue
from sheetbase.ranges import RowRange, coalesce_row_indices
from sheetbase.table import SheetProperties, Table
from sheetbase.transport import (
    APIError,
    AuthenticationError,
    GoogleSheetsTransport,
    MalformedRequestError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitedError,
    TransientError,
    Transport,
    TransportError,
    UnauthenticatedError,
)
from sheetbase.utils import column_name_to_number, column_number_to_name

__all__ = [
    "UNCHANGED",
    "APIError",
    "AuthenticationError",
    "BlankHeadersError",
    "CellValue",
    "Database",
    "DuplicateHeaderError",
    "GoogleSheetsTransport",
    "InvalidFormatError",
    "InvalidNameError",
    "MalformedRequestError",
    "MissingHeaderRowError",
    "NotFoundError",
    "PermissionDeniedError",
    "RangeError",
    "RateLimitedError",
    "RemoteError",
    "RowIndexOutOfRangeError",
    "RowRange",
    "Settings",
    "SheetProperties",
    "SheetbaseError",
    "StateError",
    "Table",
    "TableListener",
    "TableNotFoundError",
    "TableNotLoadedError",
    "TransientError",
    "Transport",
    "TransportError",
    "UnauthenticatedError",
    "UnknownColumnError",
    "ValidationError",
    "__version__",
    "coalesce_row_indices",
    "column_name_to_number",
    "column_number_to_name",
]
