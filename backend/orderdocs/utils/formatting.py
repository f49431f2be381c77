"""Display formatting helpers shared by the PDF templates.

Examples:
    >>> format_currency(100)
    '$100.00'
    >>> format_currency("25.5")
    '$25.50'
    >>> capitalize_label("starter")
    'Starter'
"""
from __future__ import annotations

import locale
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union

logger = logging.getLogger(__name__)

Number = Union[int, float, str, Decimal, None]

_CENT = Decimal("0.01")


def _to_decimal(value: Number) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid monetary value: {value!r}")


def format_currency(value: Number) -> str:
    """Fixed two-decimal dollar amount.

    >>> format_currency(1234.5)
    '$1234.50'
    >>> format_currency(None)
    '$0.00'
    """
    amount = _to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)
    return f"${amount}"


def to_float(value: Number) -> float:
    return float(_to_decimal(value))


def parse_datetime(value: Union[str, date, datetime, None]) -> Optional[datetime]:
    """Coerce ISO strings / dates to datetime; None passes through."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def format_date(value: Union[str, date, datetime, None]) -> str:
    """Host-locale short date ('' when missing)."""
    parsed = parse_datetime(value)
    if parsed is None:
        return ""
    return parsed.strftime("%x")


def format_time(value: Union[str, datetime, None]) -> str:
    parsed = parse_datetime(value)
    if parsed is None:
        return ""
    return parsed.strftime("%X")



def use_host_locale() -> bool:
    """Adopt the host locale for `%x`/`%X`; the process otherwise stays on "C".

    Returns False (and keeps the current locale) when the host locale is unusable.
    """
    try:
        locale.setlocale(locale.LC_TIME, "")
    except locale.Error as exc:
        logger.warning("Host locale unavailable, dates use the C locale: %s", exc)
        return False
    return True


def capitalize_label(value: Optional[str]) -> str:
    """First letter upper, rest untouched.

    >>> capitalize_label("premium")
    'Premium'
    >>> capitalize_label("")
    ''
    """
    if not value:
        return ""
    return value[0].upper() + value[1:]


__all__ = [
    "format_currency",
    "to_float",
    "parse_datetime",
    "format_date",
    "format_time",
    "capitalize_label",
    "use_host_locale",
]
