"""
Tests for input validation functions.
"""

from decimal import Decimal

import pytest

from flockledger.services.exceptions import InvalidInput
from flockledger.utils.validators import (
    parse_decimal,
    require,
    sanitize_string,
    to_decimal,
    validate_integer,
    validate_non_negative_number,
    validate_number_range,
    validate_positive_number,
    validate_required_string,
    validate_string_length,
)


class TestStringValidation:
    """Tests for string validation functions."""

    def test_required_string_valid(self):
        is_valid, error = validate_required_string("Batch 1", "Cycle name")
        assert is_valid
        assert error == ""

    def test_required_string_empty(self):
        is_valid, error = validate_required_string("", "Cycle name")
        assert not is_valid
        assert "Cycle name" in error

    def test_required_string_whitespace(self):
        is_valid, _ = validate_required_string("   ")
        assert not is_valid

    def test_required_string_none(self):
        is_valid, _ = validate_required_string(None)
        assert not is_valid

    def test_string_length_valid(self):
        is_valid, _ = validate_string_length("Short", 10)
        assert is_valid

    def test_string_length_too_long(self):
        is_valid, error = validate_string_length("Way too long name", 10, "Name")
        assert not is_valid
        assert "10 characters" in error

    def test_string_min_length(self):
        is_valid, error = validate_string_length(" x ", 10, "Reason", min_length=3)
        assert not is_valid
        assert "at least 3" in error


class TestNumberValidation:
    """Tests for numeric validation functions."""

    def test_positive_number_valid(self):
        assert validate_positive_number(5)[0]
        assert validate_positive_number("0.5")[0]

    def test_positive_number_zero(self):
        is_valid, error = validate_positive_number(0, "Bags")
        assert not is_valid
        assert "greater than zero" in error

    def test_positive_number_invalid(self):
        is_valid, error = validate_positive_number("abc")
        assert not is_valid
        assert "valid number" in error

    def test_non_negative_number(self):
        assert validate_non_negative_number(0)[0]
        assert not validate_non_negative_number(-0.1)[0]

    def test_integer_rejects_floats_and_bools(self):
        assert validate_integer(5)[0]
        assert not validate_integer(5.0)[0]
        assert not validate_integer(True)[0]
        assert not validate_integer("5")[0]

    def test_number_range(self):
        assert validate_number_range(40, 0, 40)[0]
        is_valid, error = validate_number_range(41, 0, 40, "Age")
        assert not is_valid
        assert "between 0 and 40" in error


class TestRequire:
    """Tests for require()."""

    def test_passes_when_all_valid(self):
        require(validate_integer(5, "DOC"), validate_positive_number(5, "DOC"))

    def test_raises_first_failure(self):
        with pytest.raises(InvalidInput) as exc_info:
            require(
                validate_integer(5, "DOC"),
                validate_positive_number(0, "Bags"),
                validate_required_string("", "Name"),
            )
        assert exc_info.value.message.startswith("Bags")


class TestHelpers:
    """Tests for conversion helpers."""

    def test_sanitize_string(self):
        assert sanitize_string("  Savar ") == "Savar"
        assert sanitize_string("   ") is None
        assert sanitize_string(None) is None

    def test_parse_decimal(self):
        assert parse_decimal("2.5") == 2.5
        assert parse_decimal("bad", default=1.0) == 1.0
        assert parse_decimal(None) == 0.0

    def test_to_decimal_rounds_half_up(self):
        assert to_decimal(0.1) == Decimal("0.1000")
        assert to_decimal(1.23455) == Decimal("1.2346")
        assert to_decimal(None) == Decimal("0.0000")
        assert to_decimal(Decimal("2.345"), places=2) == Decimal("2.35")
