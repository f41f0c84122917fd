"""Tests for field validation and encoding helpers."""

from __future__ import annotations

import logging

import pytest

from atomic_arrays.encoding import decode_field, encode_field
from atomic_arrays.errors import InvalidFieldError
from atomic_arrays.validation import (
    find_pattern_characters,
    validate_fields,
    warn_if_pattern_characters,
)


class TestValidateFields:
    """Tests for validate_fields."""

    def test_accepts_plain_fields(self) -> None:
        """Test that ordinary text passes."""
        validate_fields(["apple", "red", "fruit"])
        validate_fields(["with space", "", "ünïcode"])

    @pytest.mark.parametrize(
        "value, reason",
        [
            ("a\tb", "tab"),
            ("a\nb", "newline"),
            ("a\0b", "null"),
        ],
    )
    def test_rejects_separator_bytes(self, value: str, reason: str) -> None:
        """Test that separators and NUL are rejected with the field index."""
        with pytest.raises(InvalidFieldError) as exc_info:
            validate_fields(["ok", value])

        assert exc_info.value.index == 1
        assert exc_info.value.value == value
        assert reason in str(exc_info.value)

    def test_rejects_empty_field_list(self) -> None:
        """Test that at least one key field is required."""
        with pytest.raises(InvalidFieldError):
            validate_fields([])

    def test_rejects_non_string(self) -> None:
        """Test that non-string values are rejected."""
        with pytest.raises(InvalidFieldError, match="not a string"):
            validate_fields(["ok", 42])  # type: ignore[list-item]

    def test_column_count(self) -> None:
        """Test the optional field count check."""
        validate_fields(["a", "b"], column_count=2)

        with pytest.raises(InvalidFieldError, match="expected 2"):
            validate_fields(["a"], column_count=2)
        with pytest.raises(InvalidFieldError, match="expected 2"):
            validate_fields(["a", "b", "c"], column_count=2)


class TestPatternCharacters:
    """Tests for the advisory pattern character check."""

    @pytest.mark.parametrize("value", ["a.b", "a*", "x+", "why?", "[a]", "{1}", "(g)", "a|b", "\\d", "^a", "a$"])
    def test_detects_metacharacters(self, value: str) -> None:
        """Test every metacharacter is reported."""
        assert find_pattern_characters(["plain", value]) == [value]

    def test_plain_fields_not_reported(self) -> None:
        """Test ordinary fields produce no findings."""
        assert find_pattern_characters(["apple", "red-fruit", "a_b", "a/b"]) == []

    def test_warning_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that a warning is logged and the check never raises."""
        with caplog.at_level(logging.WARNING, logger="atomic_arrays"):
            assert warn_if_pattern_characters(["v1.2", "ok"]) is True

        assert "regex-sensitive" in caplog.text
        assert "base64" in caplog.text

    def test_no_warning_for_plain_fields(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that nothing is logged for safe fields."""
        with caplog.at_level(logging.WARNING, logger="atomic_arrays"):
            assert warn_if_pattern_characters(["apple"]) is False

        assert caplog.records == []


class TestEncoding:
    """Tests for base64 field helpers."""

    def test_round_trip(self) -> None:
        """Test that awkward values survive encoding."""
        value = "a.b*c\tline\nnext ünï"
        assert decode_field(encode_field(value)) == value

    def test_encoded_value_is_safe(self) -> None:
        """Test encoded values pass validation without pattern warnings."""
        encoded = encode_field("path/with.dots?and[brackets]\t")

        validate_fields([encoded])
        assert find_pattern_characters([encoded]) == []
        assert "=" not in encoded
