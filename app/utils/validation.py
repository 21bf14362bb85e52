"""
Validation utilities
"""
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

_PLAIN_NUMBER = re.compile(r"^-?\d+(\.\d+)?$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def normalize_decimal_input(value: str) -> str:
    """
    Normalize an amount typed by a user: decimal comma becomes a dot

    Example:
        >>> normalize_decimal_input("9,99")
        "9.99"
    """
    return value.strip().replace(",", ".")


def validate_decimal_amount(value: str, max_decimal_places: int = 2) -> tuple[bool, str | None]:
    """
    Validate a money amount

    Returns:
        (is_valid, error_message)

    Example:
        >>> validate_decimal_amount("9.99")
        (True, None)
        >>> validate_decimal_amount("9.999")
        (False, "At most 2 decimal places")
    """
    normalized = normalize_decimal_input(value)

    try:
        Decimal(normalized)
    except (InvalidOperation, ValueError):
        return False, "Valid price is required"
    # Exponents, infinities and NaN parse as Decimal but are not prices
    if not _PLAIN_NUMBER.match(normalized):
        return False, "Valid price is required"

    pattern = rf"^-?\d+(\.\d{{1,{max_decimal_places}}})?$"
    if not re.match(pattern, normalized):
        return False, f"At most {max_decimal_places} decimal places"

    return True, None


def parse_price(value) -> Decimal:
    """
    Parse a price (str / int / float / Decimal) into a non-negative Decimal

    Raises:
        ValueError: not a number, too many decimals, or negative
    """
    if value is None or isinstance(value, bool):
        raise ValueError("Valid price is required")

    raw = normalize_decimal_input(str(value))
    is_valid, error = validate_decimal_amount(raw)
    if not is_valid:
        raise ValueError(error)

    amount = Decimal(raw)
    if amount < 0:
        raise ValueError("Valid price is required")
    return amount


def parse_iso_date(value) -> date | None:
    """
    Parse a calendar date; "" and None mean "no date"

    Raises:
        ValueError: anything but a plain YYYY-MM-DD string
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not _ISO_DATE.match(text):
        raise ValueError(f"Invalid date: {value!r}")
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise ValueError(f"Invalid date: {value!r}")
