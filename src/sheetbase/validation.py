"""Naming rules shared by tables and columns.

All checks run locally, before any request reaches the remote spreadsheet.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable, Sequence

from sheetbase.exceptions import (
    BlankHeadersError,
    DuplicateHeaderError,
    InvalidNameError,
)

_NAME_PATTERN = re.compile(r"[A-Za-z0-9_]+")


def is_valid_name(name: str) -> bool:
    """Return True if name is made only of letters, digits and underscores."""
    return bool(_NAME_PATTERN.fullmatch(name))


def check_name_valid(name: str, kind: str = "Table") -> None:
    """Raise InvalidNameError unless name is a valid table or column name."""
    if not isinstance(name, str) or not is_valid_name(name):
        raise InvalidNameError(str(name), kind)


def strip_names(names: Iterable[str]) -> list[str]:
    """Strip whitespace around each name and drop trailing blank names."""
    stripped = [str(name).strip() for name in names]
    while stripped and not stripped[-1]:
        stripped.pop()
    return stripped


def validate_column_names(names: Sequence[str] | None) -> list[str]:
    """Validate a header row and return the stripped names.

    Raises:
        BlankHeadersError: if names is empty or every name is blank
        InvalidNameError: if a non-blank name has invalid characters
        DuplicateHeaderError: if two stripped names are equal
    """
    if not names:
        raise BlankHeadersError("Column names are empty")

    stripped = [str(name).strip() for name in names]
    if not any(stripped):
        raise BlankHeadersError()

    for name in stripped:
        if name:
            check_name_valid(name, kind="Column")

    counts = Counter(stripped)
    duplicates = [name for name, count in counts.items() if count > 1]
    if duplicates:
        raise DuplicateHeaderError(duplicates)

    return stripped
