"""Custom exceptions for sheetbase.

Validation and range errors are raised before any request is sent to the
remote spreadsheet. Remote errors come from the transport layer and are
passed through unchanged.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager


class SheetbaseError(Exception):
    """Base exception for all sheetbase errors."""


class ValidationError(SheetbaseError):
    """Base exception for table and column naming rules."""


class InvalidNameError(ValidationError):
    """Raised when a table or column name has characters other than letters, digits or underscore."""

    def __init__(self, name: str, kind: str = "Table") -> None:
        self.name = name
        self.kind = kind
        super().__init__(
            f"{kind} names can only consist of letters, numbers and underscores: {name!r}"
        )


class DuplicateHeaderError(ValidationError):
    """Raised when two column names are equal after stripping whitespace."""

    def __init__(self, duplicates: list[str]) -> None:
        self.duplicates = duplicates
        super().__init__(
            f"There are duplicate column names: {', '.join(map(repr, duplicates))}"
        )


class BlankHeadersError(ValidationError):
    """Raised when every column name is blank."""

    def __init__(self, message: str = "All header values are blank") -> None:
        super().__init__(message)


class MissingHeaderRowError(ValidationError):
    """Raised when the header row of a table returned no values."""

    def __init__(self, title: str) -> None:
        self.title = title
        super().__init__(
            f"No values in the header row of table '{title}'. "
            "Set the column names with set_column_names() first."
        )


class UnknownColumnError(ValidationError):
    """Raised when a row mapping uses a key that is not a column name."""

    def __init__(self, keys: list[str], title: str) -> None:
        self.keys = keys
        self.title = title
        super().__init__(f"Unknown columns for table '{title}': {', '.join(keys)}")


class InvalidFormatError(ValidationError, ValueError):
    """Raised when a column name or A1 reference cannot be parsed."""


class RangeError(SheetbaseError, IndexError):
    """Base exception for indices outside the bounds of the cached table."""


class RowIndexOutOfRangeError(RangeError):
    """Raised when a record index is outside the rows currently holding data."""

    def __init__(self, index: int, row_count: int) -> None:
        self.index = index
        self.row_count = row_count
        super().__init__(
            f"Row index {index} is out of range (table has {row_count} rows)"
        )


class StateError(SheetbaseError):
    """Base exception for operations that need data that is not loaded."""


class TableNotLoadedError(StateError):
    """Raised when reading rows of a table whose data was never fetched."""

    def __init__(self, title: str) -> None:
        self.title = title
        super().__init__(
            f"Data of table '{title}' has not been loaded. Call reload() first."
        )


class TableNotFoundError(StateError, KeyError):
    """Raised when looking up a table name the database does not know."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"No table named {name}")

    def __str__(self) -> str:
        return str(self.args[0])


class RemoteError(SheetbaseError):
    """Base exception for errors reported by the remote spreadsheet service."""


@contextmanager
def remote_operation(description: str) -> Iterator[None]:
    """Annotate remote errors raised in the block with the operation that failed.

    The exception is re-raised unchanged; only a note is added.
    """
    try:
        yield
    except RemoteError as e:
        e.add_note(f"while trying to {description}")
        raise
