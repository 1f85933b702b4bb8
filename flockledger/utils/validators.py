"""
Input validation functions for the flock ledger.

This module provides validation functions for all officer inputs:
- Numeric validation (positive, non-negative, integer, ranges)
- String validation (required fields, length)

Validators return ``(is_valid, error_message)`` tuples. Service code feeds
those tuples to ``require`` which raises ``InvalidInput`` on the first
failure.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Tuple

from flockledger.services.exceptions import InvalidInput

from .constants import (
    ERROR_INVALID_INTEGER,
    ERROR_INVALID_NON_NEGATIVE,
    ERROR_INVALID_NUMBER,
    ERROR_INVALID_POSITIVE,
    ERROR_REQUIRED_FIELD,
)


def validate_required_string(value: Optional[str], field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a string field is not empty.

    Args:
        value: The string value to validate
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return False, f"{field_name}: {ERROR_REQUIRED_FIELD}"
    return True, ""


def validate_string_length(
    value: Optional[str], max_length: int, field_name: str = "Field", min_length: int = 0
) -> Tuple[bool, str]:
    """
    Validate that a string length lies within ``[min_length, max_length]``.

    Args:
        value: The string value to validate
        max_length: Maximum allowed length
        field_name: Name of the field for error messages
        min_length: Minimum length once stripped (0 disables the check)

    Returns:
        Tuple of (is_valid, error_message)
    """
    if value and len(value) > max_length:
        return False, f"{field_name}: Must be {max_length} characters or less"
    if min_length and (value is None or len(value.strip()) < min_length):
        return False, f"{field_name}: Must be at least {min_length} characters"
    return True, ""


def validate_positive_number(value: Any, field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a value is a positive number (> 0).

    Args:
        value: The value to validate
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        num_value = float(value)
        if num_value <= 0:
            return False, f"{field_name}: {ERROR_INVALID_POSITIVE} (got {value})"
        return True, ""
    except (ValueError, TypeError):
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"


def validate_non_negative_number(value: Any, field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a value is a non-negative number (>= 0).

    Args:
        value: The value to validate
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        num_value = float(value)
        if num_value < 0:
            return False, f"{field_name}: {ERROR_INVALID_NON_NEGATIVE} (got {value})"
        return True, ""
    except (ValueError, TypeError):
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"


def validate_integer(value: Any, field_name: str = "Field") -> Tuple[bool, str]:
    """Validate that a value is a whole number (bools rejected)."""
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{field_name}: {ERROR_INVALID_INTEGER}"
    return True, ""


def validate_number_range(
    value: Any, min_value: float, max_value: float, field_name: str = "Field"
) -> Tuple[bool, str]:
    """
    Validate that a number is within a specified range (inclusive).

    Args:
        value: The value to validate
        min_value: Minimum allowed value
        max_value: Maximum allowed value
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        num_value = float(value)
        if num_value < min_value or num_value > max_value:
            return (
                False,
                f"{field_name}: Must be between {min_value} and {max_value} (got {value})",
            )
        return True, ""
    except (ValueError, TypeError):
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"


def require(*results: Tuple[bool, str]) -> None:
    """
    Raise ``InvalidInput`` for the first failed validation result.

    Example:
        require(
            validate_integer(doc, "DOC"),
            validate_positive_number(doc, "DOC"),
        )
    """
    for is_valid, message in results:
        if not is_valid:
            raise InvalidInput(message)


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """
    Sanitize a string value by stripping whitespace and converting empty strings to None.

    Args:
        value: The string value to sanitize

    Returns:
        Sanitized string or None
    """
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def parse_decimal(value: Any, default: float = 0.0) -> float:
    """
    Safely parse a value to a float.

    Args:
        value: The value to parse
        default: Default value if parsing fails

    Returns:
        Parsed float value or default
    """
    if value is None:
        return default

    try:
        return float(value)
    except (ValueError, TypeError):
        return default


def to_decimal(value: Any, places: int = 4) -> Decimal:
    """
    Convert a number to a Decimal rounded to ``places`` decimal places.

    Floats go through ``str`` so 0.1 becomes Decimal("0.1"), not its
    binary expansion.
    """
    if isinstance(value, Decimal):
        decimal_value = value
    else:
        decimal_value = Decimal(str(value if value is not None else 0))
    return decimal_value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
