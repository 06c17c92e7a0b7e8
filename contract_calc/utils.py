"""Utility functions shared by the calculation engines.

This module provides date helpers (adding months, month boundaries and the
month offset arithmetic used by projections), parsers for user input and the
single error type raised by the engines. It uses Python's ``datetime`` and
``calendar`` modules to calculate month offsets.
"""

from __future__ import annotations

import calendar
from datetime import date
from decimal import Decimal, InvalidOperation, getcontext
from typing import Tuple

getcontext().prec = 28  # increase decimal precision to avoid rounding errors

# Balances at or below this amount are treated as fully repaid.
ZERO_TOLERANCE = Decimal("0.01")

# Slack allowed when checking that an EMI covers the first month's interest.
EMI_INTEREST_TOLERANCE = Decimal("0.1")

TWO_PLACES = Decimal("0.01")


class InvalidInputError(ValueError):
    """Raised when an engine receives parameters it cannot work with.

    This is the only failure the engines report. It is raised at the point of
    detection and no partial result is returned.
    """


def to_decimal(value) -> Decimal:
    """Convert ints, floats, strings or Decimals into a ``Decimal``.

    Floats go through ``str`` so that ``0.1`` becomes ``Decimal("0.1")``
    rather than its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise InvalidInputError(f"Invalid numeric value: {value!r}") from exc


def round_currency(value: Decimal) -> Decimal:
    """Round an amount to two places for display or export."""
    return value.quantize(TWO_PLACES)


def parse_year_month(ym: str) -> date:
    """Parse a YYYY-MM string into a ``date`` object (first day of month).

    Parameters
    ----------
    ym: str
        A string in the form ``"YYYY-MM"``. The day component, if present,
        will be ignored.

    Raises
    ------
    InvalidInputError
        If the string is not a valid year-month.
    """
    try:
        parts = ym.split("-")
        if len(parts) < 2:
            raise ValueError
        return date(int(parts[0]), int(parts[1]), 1)
    except Exception as exc:
        raise InvalidInputError(f"Invalid year-month string: {ym}") from exc


def parse_date(value: str) -> date:
    """Parse ``YYYY-MM-DD`` or ``YYYY-MM`` (first of month) into a ``date``."""
    parts = value.strip().split("-")
    if len(parts) == 2:
        return parse_year_month(value)
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise InvalidInputError(f"Invalid date string: {value}") from exc


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    The day of the month is clamped to the last valid day if needed (e.g.,
    adding one month to Jan 31 yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def month_offset(start_month: int, start_year: int, offset: int) -> Tuple[int, int]:
    """Return the (month, year) pair ``offset`` months after the start."""
    total = start_month - 1 + offset
    return total % 12 + 1, start_year + total // 12


def first_day_of_month(month: int, year: int) -> date:
    return date(year, month, 1)


def last_day_of_month(month: int, year: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def months_between(start: date, end: date) -> int:
    """Whole calendar months from ``start`` to ``end``, ignoring the day."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def validate_month_year(month: int, year: int) -> None:
    """Reject a month outside 1-12 or a year ``date`` cannot represent."""
    if not 1 <= month <= 12:
        raise InvalidInputError(f"Month must be between 1 and 12. Got: {month}")
    if not 1 <= year <= 9999:
        raise InvalidInputError(f"Year must be between 1 and 9999. Got: {year}")


def decimal_from_str(value: str) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    The function strips any commas and handles both integer and float-like
    strings. It raises ``InvalidInputError`` if conversion fails.
    """
    try:
        cleaned = value.replace(",", "")
        return Decimal(cleaned)
    except Exception as exc:
        raise InvalidInputError(f"Invalid numeric value: {value}") from exc


def parse_amount(value: str) -> Decimal:
    """Parse a numeric string with optional ``k``/``m`` suffixes.

    Accepts plain numbers ("500000") and shorthand such as "500k" meaning
    500 000.
    """
    value = value.strip().lower().replace(",", "")
    factor = Decimal(1)
    if value.endswith("k"):
        factor = Decimal(1_000)
        value = value[:-1]
    elif value.endswith("m"):
        factor = Decimal(1_000_000)
        value = value[:-1]
    return decimal_from_str(value) * factor
