"""Age normalization and surveillance age banding.

Reported ages come as a magnitude plus a free-text unit ("Years", "months",
"Day(s)"). ``normalize_age`` converts the pair to years; ``classify_age_band``
places a normalized age in the fixed AEFI surveillance stratification.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Optional

from .enums import AgeBand

LOG = logging.getLogger(__name__)

# Unit prefix -> divisor to convert to years. Days use a fixed 365-day year.
UNIT_DIVISORS = (
    ("year", 1.0),
    ("month", 12.0),
    ("week", 52.0),
    ("day", 365.0),
)

UNIT_LABELS = {
    "day": "Days",
    "week": "Weeks",
    "month": "Months",
    "year": "Years",
}

NEONATE_UPPER_YEARS = 28 / 365.25

# Exclusive upper bounds in years, evaluated in order; first match wins.
AGE_BAND_BOUNDS = (
    (NEONATE_UPPER_YEARS, AgeBand.NEONATE),
    (2, AgeBand.INFANT),
    (12, AgeBand.CHILD),
    (18, AgeBand.ADOLESCENT),
    (45, AgeBand.ADULT),
    (65, AgeBand.MIDDLE_AGED),
)


def _to_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def normalize_age(magnitude: Any, unit: Any) -> Optional[float]:
    """Convert an (age, unit) pair into years.

    Parameters
    ----------
    magnitude : Any
        Age value; numbers and numeric strings are accepted.
    unit : Any
        Unit text, matched case-insensitively by prefix
        (``year*``, ``month*``, ``week*``, ``day*``).

    Returns
    -------
    float | None
        Age in years, or None if the magnitude is missing, non-numeric or
        negative, or the unit is not recognized.

    Examples
    --------
    >>> normalize_age(6, "Months")
    0.5
    >>> normalize_age("30", "years")
    30.0
    >>> normalize_age(-1, "Years") is None
    True
    """
    years = _to_number(magnitude)
    if years is None or years < 0:
        return None

    unit_lower = str(unit).strip().lower() if isinstance(unit, str) else ""
    for prefix, divisor in UNIT_DIVISORS:
        if unit_lower.startswith(prefix):
            return years / divisor

    LOG.debug("Unrecognized age unit %r", unit)
    return None


def classify_age_band(years: Any) -> AgeBand:
    """Place an age in years into its surveillance age band.

    Missing, non-numeric and NaN ages fall into ``AgeBand.UNKNOWN``.

    Examples
    --------
    >>> classify_age_band(2).value
    '2-11 Years'
    >>> classify_age_band(0.05).value
    '0-27 Days'
    >>> classify_age_band(float("nan")).value
    'Unknown'
    """
    age = _to_number(years)
    if age is None:
        return AgeBand.UNKNOWN

    for upper, band in AGE_BAND_BOUNDS:
        if age < upper:
            return band
    return AgeBand.ELDERLY


def classify_age_unit(unit: Any) -> Optional[str]:
    """Return the display label for an age unit, or None if unrecognized."""
    if not isinstance(unit, str):
        return None
    unit_lower = unit.strip().lower()
    for prefix, label in UNIT_LABELS.items():
        if unit_lower.startswith(prefix):
            return label
    return None
