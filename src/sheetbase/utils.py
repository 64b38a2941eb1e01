"""
Utility functions for sheetbase.

Provides column name conversion and A1 range helpers.
"""

from __future__ import annotations

import re

from sheetbase.exceptions import InvalidFormatError

_CELL_PATTERN = re.compile(r"^([A-Za-z]*)(\d*)$")
_URL_PATTERN = re.compile(r"docs\.google\.com/spreadsheets/d/([a-zA-Z0-9_-]+)")


def column_number_to_name(number: int) -> str:
    """Convert a 1-indexed column number to its letter name.

    Examples:
        1 -> A, 26 -> Z, 27 -> AA, 52 -> AZ, 703 -> AAA
    """
    if number < 1:
        raise InvalidFormatError(f"Column numbers start at 1, got {number}")
    name = ""
    while number > 0:
        remainder = (number - 1) % 26
        name = chr(ord("A") + remainder) + name
        number = (number - remainder - 1) // 26
    return name


def column_name_to_number(name: str) -> int:
    """Convert a column letter name to its 1-indexed column number.

    Examples:
        A -> 1, Z -> 26, AA -> 27, AZ -> 52, AAA -> 703
    """
    if not name or not name.isascii() or not name.isalpha():
        raise InvalidFormatError(f"Invalid column name: {name!r}")
    number = 0
    for char in name.upper():
        number = number * 26 + (ord(char) - ord("A") + 1)
    return number


def quote_sheet_title(title: str) -> str:
    """Quote a sheet title for use in A1 notation.

    Titles are always wrapped in single quotes; embedded quotes are doubled.
    """
    escaped = title.replace("'", "''")
    return f"'{escaped}'"


def a1_range(
    title: str,
    start_row: int,
    start_col: int,
    end_row: int | None = None,
    end_col: int | None = None,
) -> str:
    """Build a sheet-qualified A1 range from 1-indexed inclusive bounds.

    Examples:
        ("Users", 1, 1, 1, 3) -> 'Users'!A1:C1
        ("Users", 2, 1) -> 'Users'!A2
    """
    start = f"{column_number_to_name(start_col)}{start_row}"
    if end_row is None or end_col is None:
        return f"{quote_sheet_title(title)}!{start}"
    end = f"{column_number_to_name(end_col)}{end_row}"
    return f"{quote_sheet_title(title)}!{start}:{end}"


def _split_sheet_prefix(a1: str) -> tuple[str | None, str]:
    if a1.startswith("'"):
        i = 1
        while i < len(a1):
            if a1[i] == "'":
                if i + 1 < len(a1) and a1[i + 1] == "'":
                    i += 2
                    continue
                break
            i += 1
        title = a1[1:i].replace("''", "'")
        rest = a1[i + 1 :]
        if rest and not rest.startswith("!"):
            raise InvalidFormatError(f"Invalid A1 range: {a1}")
        return title, rest[1:]
    if "!" in a1:
        title, _, rest = a1.partition("!")
        return title, rest
    return None, a1


def _parse_cell(ref: str, a1: str) -> tuple[int | None, int | None]:
    match = _CELL_PATTERN.match(ref)
    if not match or not ref:
        raise InvalidFormatError(f"Invalid A1 range: {a1}")
    letters, digits = match.groups()
    col = column_name_to_number(letters) - 1 if letters else None
    row = int(digits) - 1 if digits else None
    if row is not None and row < 0:
        raise InvalidFormatError(f"Invalid A1 range: {a1}")
    return row, col


def parse_a1_range(
    a1: str,
) -> tuple[str | None, int | None, int | None, int | None, int | None]:
    """Parse an A1 range into its sheet title and 0-based half-open bounds.

    Returns (title, start_row, end_row, start_col, end_col). Unbounded sides
    are None; a bare sheet title yields only Nones after the title.

    Examples:
        'Users'!A1:C10 -> ("Users", 0, 10, 0, 3)
        Users!B2 -> ("Users", 1, 2, 1, 2)
        'Users'!A2:C -> ("Users", 1, None, 0, 3)
        'Users' -> ("Users", None, None, None, None)
    """
    title, ref = _split_sheet_prefix(a1)
    if not ref:
        return title, None, None, None, None

    start_ref, sep, end_ref = ref.partition(":")
    start_row, start_col = _parse_cell(start_ref, a1)
    if not sep:
        end_row = start_row + 1 if start_row is not None else None
        end_col = start_col + 1 if start_col is not None else None
        return title, start_row, end_row, start_col, end_col

    end_row, end_col = _parse_cell(end_ref, a1)
    return (
        title,
        start_row,
        end_row + 1 if end_row is not None else None,
        start_col,
        end_col + 1 if end_col is not None else None,
    )


def parse_spreadsheet_id(id_or_url: str) -> str:
    """Extract spreadsheet ID from a URL or return as-is if already an ID."""
    match = _URL_PATTERN.search(id_or_url)
    if match:
        return match.group(1)
    return id_or_url
