"""Date parsing for spreadsheet cells.

Converts a raw cell value into a date-only ``datetime.date``. Cells arrive
from the loader as strings, spreadsheet serial numbers, or native
datetimes, and string cells use several textual layouts depending on who
entered the report.

**Parsing order for strings:**

1. Keep only the text before the first newline/carriage return.
2. Remove tabs and spaces.
3. ``YYYYMMDD`` (tried before anything numeric, so ``20240216`` is never
   read as a serial day count).
4. ``YYYY-MM-DD`` / ``YYYY/MM/DD``.
5. ``DD-MM-YYYY`` / ``DD/MM/YYYY``.
6. Generic fallback via ``pandas.to_datetime``.

Whole numbers with eight digits are read as ``YYYYMMDD`` too; every other
number is a serial day count.

Bare years and year-month strings (``2024``, ``202402``, ``2024-02``,
``Feb 2024``) are rejected instead of guessed, as is any calendar-invalid
date such as ``2024-02-30``.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, timedelta
from numbers import Real
from typing import Any, Optional

import pandas as pd

LOG = logging.getLogger(__name__)

# Day 1 is 1899-12-31; the one-day shift matches the spreadsheet's
# treatment of 1900 as a leap year for all serials after Feb 28, 1900.
SPREADSHEET_EPOCH = date(1899, 12, 30)
MAX_SPREADSHEET_SERIAL = 2958465  # 9999-12-31

_FIRST_LINE = re.compile(r"[\r\n]+")
_INTERIOR_SPACE = re.compile(r"[\t ]")
_COMPACT = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
_YEAR_FIRST = re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})$")
_DAY_FIRST = re.compile(r"^(\d{1,2})[-/](\d{1,2})[-/](\d{4})$")

_AMBIGUOUS = (
    re.compile(r"^\d+$"),
    re.compile(r"^\d{4}[-/.]\d{1,2}$"),
    re.compile(r"^\d{1,2}[-/.]\d{4}$"),
    re.compile(r"^[A-Za-z]+[-/.,]?\d{4}$"),
    re.compile(r"^\d{4}[-/.,]?[A-Za-z]+$"),
)


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _calendar_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _from_serial(serial: float) -> Optional[date]:
    if not (0 < serial <= MAX_SPREADSHEET_SERIAL):
        return None
    return SPREADSHEET_EPOCH + timedelta(days=math.floor(serial))


def _fallback(text: str) -> Optional[date]:
    try:
        parsed = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed is None or pd.isna(parsed):
        return None
    return date(parsed.year, parsed.month, parsed.day)


def parse_date(value: Any) -> Optional[date]:
    """Parse a raw cell value into a date-only value.

    Parameters
    ----------
    value : Any
        String, spreadsheet serial number, ``datetime``/``date``/
        ``pd.Timestamp``, or a missing value.

    Returns
    -------
    date | None
        The calendar date, or None if the value is missing, ambiguous,
        unrecognized, or calendar-invalid.

    Examples
    --------
    >>> parse_date("20240216")
    datetime.date(2024, 2, 16)
    >>> parse_date("16/02/2024")
    datetime.date(2024, 2, 16)
    >>> parse_date(45338)
    datetime.date(2024, 2, 16)
    >>> parse_date(20240216)
    datetime.date(2024, 2, 16)
    >>> parse_date("2024") is None
    True
    """
    if _is_missing(value):
        return None

    # Timestamp and datetime are date subclasses; normalize to date-only
    if isinstance(value, datetime):
        return date(value.year, value.month, value.day)
    if isinstance(value, date):
        return value

    if isinstance(value, Real) and not isinstance(value, bool):
        number = float(value)
        # Compact dates read from numeric columns arrive as 20240216 or 20240216.0
        if number.is_integer():
            match = _COMPACT.match(str(int(number)))
            if match:
                year, month, day = (int(part) for part in match.groups())
                return _calendar_date(year, month, day)
        return _from_serial(number)

    first_line = _FIRST_LINE.split(str(value).strip())[0].strip()
    text = _INTERIOR_SPACE.sub("", first_line)
    if not text:
        return None

    match = _COMPACT.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _calendar_date(year, month, day)

    match = _YEAR_FIRST.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _calendar_date(year, month, day)

    match = _DAY_FIRST.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        return _calendar_date(year, month, day)

    if any(pattern.match(text) for pattern in _AMBIGUOUS):
        LOG.debug("Rejected ambiguous date value %r", first_line)
        return None

    # The generic parser copes better with the original spacing
    return _fallback(re.sub(r"\s+", " ", first_line))


def to_iso(value: date) -> str:
    """Format a date as ``YYYY-MM-DD``."""
    return value.isoformat()
