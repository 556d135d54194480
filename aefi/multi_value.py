"""Splitting and predicates for multi-valued spreadsheet cells.

One case row can describe a patient with several AEFI episodes, so a single
cell may hold several logical values separated by newlines, commas,
semicolons or pipes. This module centralizes how those cells are split and
queried so that aggregators never re-implement the delimiter rules.

**Delimiter sets:**

- ``DATE_DELIMITERS``: newline and carriage return (date fields may not be
  split on commas, since some textual dates contain them).
- ``CATEGORY_DELIMITERS``: comma, newline and carriage return.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Callable, Iterable, Optional, Tuple

import pandas as pd

from .data_models import Cell, Multi, Single
from .dates import parse_date
from .enums import Seriousness

DATE_DELIMITERS = "\r\n"
CATEGORY_DELIMITERS = ",\r\n"

_PATTERN_CACHE: dict[str, re.Pattern[str]] = {}


def _splitter(delimiters: str) -> re.Pattern[str]:
    pattern = _PATTERN_CACHE.get(delimiters)
    if pattern is None:
        pattern = re.compile(f"[{re.escape(delimiters)}]+")
        _PATTERN_CACHE[delimiters] = pattern
    return pattern


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def split_cell(value: Any, delimiters: str = CATEGORY_DELIMITERS) -> Tuple[Any, ...]:
    """Split a raw cell into its trimmed, non-empty sub-values.

    Parameters
    ----------
    value : Any
        Raw cell value. Strings are split; a non-string, non-missing value
        (number, datetime) is returned as a single sub-value.
    delimiters : str, optional
        Characters that separate values (default: comma and newline).

    Returns
    -------
    Tuple[Any, ...]
        Sub-values in cell order. Empty for missing or blank cells.

    Examples
    --------
    >>> split_cell("Yes\\nNo")
    ('Yes', 'No')
    >>> split_cell(" Fever, Rash ,")
    ('Fever', 'Rash')
    >>> split_cell(None)
    ()
    """
    if is_blank(value):
        return ()
    if not isinstance(value, str):
        return (value,)

    pieces = (piece.strip() for piece in _splitter(delimiters).split(value))
    return tuple(piece for piece in pieces if piece)


def build_cell(value: Any, delimiters: str = CATEGORY_DELIMITERS) -> Cell:
    """Build the tagged cell representation for a raw value."""
    values = split_cell(value, delimiters)
    if len(values) == 1:
        return Single(values[0])
    return Multi(values)


def cell_values(cell: Any, delimiters: str = CATEGORY_DELIMITERS) -> Tuple[Any, ...]:
    """Return sub-values of a pre-built Cell, an already split tuple, or a raw value."""
    if isinstance(cell, (Single, Multi)):
        return cell.values
    if isinstance(cell, tuple):
        return cell
    return split_cell(cell, delimiters)


def earliest_date(
    cell: Any,
    parser: Callable[[Any], Optional[date]] = parse_date,
    delimiters: str = DATE_DELIMITERS,
) -> Optional[date]:
    """Return the earliest parseable date in a multi-date cell.

    Unparseable sub-values are discarded. Returns None if none parse.
    """
    parsed = [parser(piece) for piece in cell_values(cell, delimiters)]
    valid = [value for value in parsed if value is not None]
    return min(valid) if valid else None


def any_matches(
    cell: Any,
    predicate: Callable[[Any], bool],
    delimiters: str = CATEGORY_DELIMITERS,
) -> bool:
    """True if at least one sub-value satisfies ``predicate``."""
    return any(predicate(piece) for piece in cell_values(cell, delimiters))


def all_match(
    cell: Any,
    predicate: Callable[[Any], bool],
    delimiters: str = CATEGORY_DELIMITERS,
) -> bool:
    """True if every sub-value satisfies ``predicate``.

    Like ``all()``, an empty cell vacuously matches.
    """
    return all(predicate(piece) for piece in cell_values(cell, delimiters))


def none_match(
    cell: Any,
    predicate: Callable[[Any], bool],
    delimiters: str = CATEGORY_DELIMITERS,
) -> bool:
    """True if no sub-value satisfies ``predicate``."""
    return not any_matches(cell, predicate, delimiters)


def equals_flag(expected: str) -> Callable[[Any], bool]:
    """Build a case-insensitive, trimmed equality predicate for flag fields."""
    expected_lower = expected.strip().lower()

    def predicate(piece: Any) -> bool:
        return str(piece).strip().lower() == expected_lower

    return predicate


_IS_YES = equals_flag("yes")
_IS_NO = equals_flag("no")


def classify_seriousness(cell: Any) -> Seriousness:
    """Classify a ``Serious`` cell into Serious / Not Serious / Unknown.

    - Serious if any sub-value equals "yes" (case-insensitive).
    - Not Serious if no sub-value is "yes" and at least one is "no".
    - Unknown otherwise (empty, missing, or only unrecognized values).

    Examples
    --------
    >>> classify_seriousness("Yes\\nNo")
    <Seriousness.SERIOUS: 'Serious'>
    >>> classify_seriousness("No\\nNo")
    <Seriousness.NOT_SERIOUS: 'Not Serious'>
    >>> classify_seriousness(None)
    <Seriousness.UNKNOWN: 'Unknown'>
    """
    if any_matches(cell, _IS_YES):
        return Seriousness.SERIOUS
    if any_matches(cell, _IS_NO):
        return Seriousness.NOT_SERIOUS
    return Seriousness.UNKNOWN


def count_flag(cell: Any, expected: str) -> int:
    """Count sub-values equal to ``expected`` (case-insensitive)."""
    predicate = equals_flag(expected)
    return sum(1 for piece in cell_values(cell) if predicate(piece))


def distinct(values: Iterable[Any]) -> list[Any]:
    """De-duplicate while preserving first-seen order."""
    seen: set = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result
