"""Lenient parsing of dates and money values found in extracted data."""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%m-%d-%Y", "%B %d, %Y", "%b %d, %Y")


def parse_date(value: Any) -> Optional[date]:
    """Parse a date from an extracted value.

    Accepts date/datetime objects, ISO strings (with or without a time part)
    and a few common US formats. Returns None for anything unparseable,
    including placeholders such as "Not returned".
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def to_decimal(value: Any) -> Optional[Decimal]:
    """Parse a money amount such as 150, 150.5, "$1,200.00" into a Decimal."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        cleaned = value.strip().replace("$", "").replace(",", "")
        if not cleaned:
            return None
        try:
            return Decimal(cleaned)
        except InvalidOperation:
            return None
    return None


def money(value: Decimal) -> float:
    """Round a Decimal amount to cents for storage in JSON."""
    return float(value.quantize(Decimal("0.01")))
