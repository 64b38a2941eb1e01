"""Tests for sheetbase.validation module."""

import pytest

from sheetbase.exceptions import (
    BlankHeadersError,
    DuplicateHeaderError,
    InvalidNameError,
    ValidationError,
)
from sheetbase.validation import (
    check_name_valid,
    is_valid_name,
    strip_names,
    validate_column_names,
)


class TestNames:
    """Tests for table and column name rules."""

    @pytest.mark.parametrize("name", ["users", "Users_2024", "_", "a1"])
    def test_valid_names(self, name: str) -> None:
        assert is_valid_name(name)
        check_name_valid(name)

    @pytest.mark.parametrize("name", ["", "my table", "a-b", "naïve", "x\n", "a.b"])
    def test_invalid_names(self, name: str) -> None:
        assert not is_valid_name(name)
        with pytest.raises(InvalidNameError):
            check_name_valid(name)

    def test_error_mentions_kind(self) -> None:
        with pytest.raises(InvalidNameError, match="Column names"):
            check_name_valid("a b", kind="Column")


class TestStripNames:
    def test_strips_and_drops_trailing_blanks(self) -> None:
        assert strip_names([" a ", "b", "", "  "]) == ["a", "b"]

    def test_keeps_interior_blanks(self) -> None:
        assert strip_names(["a", " ", "c"]) == ["a", "", "c"]


class TestValidateColumnNames:
    """Tests for header row validation."""

    def test_returns_stripped_names(self) -> None:
        assert validate_column_names([" id", "name "]) == ["id", "name"]

    @pytest.mark.parametrize("names", [None, []])
    def test_empty(self, names: list[str] | None) -> None:
        with pytest.raises(BlankHeadersError, match="empty"):
            validate_column_names(names)

    def test_all_blank(self) -> None:
        with pytest.raises(BlankHeadersError):
            validate_column_names(["", "  "])

    def test_duplicates_after_strip(self) -> None:
        with pytest.raises(DuplicateHeaderError) as exc_info:
            validate_column_names(["id", " id", "name"])
        assert exc_info.value.duplicates == ["id"]

    def test_invalid_column_name(self) -> None:
        with pytest.raises(InvalidNameError):
            validate_column_names(["id", "first name"])

    def test_interior_blank_allowed(self) -> None:
        assert validate_column_names(["id", "", "name"]) == ["id", "", "name"]

    @pytest.mark.parametrize("names", [["id", "", "", "name"], ["id", " ", "name", ""]])
    def test_two_blanks_are_duplicates(self, names: list[str]) -> None:
        with pytest.raises(DuplicateHeaderError, match="''") as exc_info:
            validate_column_names(names)
        assert exc_info.value.duplicates == [""]

    def test_all_are_validation_errors(self) -> None:
        for names in (None, ["a", "a"], ["a b"]):
            with pytest.raises(ValidationError):
                validate_column_names(names)
