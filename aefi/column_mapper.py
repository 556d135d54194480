"""Canonical AEFI column names and fuzzy header mapping.

Line listings exported by different reporting systems spell the same column
slightly differently ("Date of onset", "DATE_OF_ONSET", "Date of  onset ").
``map_columns`` renames such headers onto the canonical names below so that
every downstream step can use fixed column strings.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd
from rapidfuzz import fuzz, process

LOG = logging.getLogger(__name__)

RECORD_ID = "Worldwide unique id"
VACCINE = "Vaccine"
ADVERSE_EVENT = "Adverse event"
SERIOUS = "Serious"
SERIOUS_REASON = "Reason for serious"
OUTCOME = "Outcome"
AGE = "Age"
AGE_UNIT = "Age unit"
SEX = "Sex"
DATE_OF_BIRTH = "Date of birth"
DATE_OF_VACCINATION = "Date of vaccination"
DATE_OF_ONSET = "Date of onset"
DATE_OF_NOTIFICATION = "Date of notification"
DATE_OF_REPORT = "Date of report"
PATIENT_PROVINCE = "Patient state or province"
HEALTH_FACILITY_PROVINCE = "Health facility state or province"
HEALTH_FACILITY_DISTRICT = "Health facility district"
REPORTER_PROVINCE = "Reporter state or province"
REGION = "Created by organisation level 3"

DATE_FIELDS = (
    DATE_OF_BIRTH,
    DATE_OF_VACCINATION,
    DATE_OF_ONSET,
    DATE_OF_NOTIFICATION,
    DATE_OF_REPORT,
)

AEFI_COLUMNS = [
    RECORD_ID,
    VACCINE,
    ADVERSE_EVENT,
    SERIOUS,
    SERIOUS_REASON,
    OUTCOME,
    AGE,
    AGE_UNIT,
    SEX,
    *DATE_FIELDS,
    PATIENT_PROVINCE,
    HEALTH_FACILITY_PROVINCE,
    HEALTH_FACILITY_DISTRICT,
    REPORTER_PROVINCE,
    REGION,
]

# Keys of the ``columns`` config section and the names they default to.
DEFAULT_COLUMNS: Dict[str, str] = {
    "record_id": RECORD_ID,
    "region": REGION,
    "province": PATIENT_PROVINCE,
    "vaccine": VACCINE,
    "adverse_event": ADVERSE_EVENT,
    "serious": SERIOUS,
    "outcome": OUTCOME,
    "age": AGE,
    "age_unit": AGE_UNIT,
    "sex": SEX,
    "vaccination_date": DATE_OF_VACCINATION,
    "onset_date": DATE_OF_ONSET,
    "notification_date": DATE_OF_NOTIFICATION,
    "report_date": DATE_OF_REPORT,
}

THRESHOLD = 90


def resolve_columns(overrides: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Merge configured column names over ``DEFAULT_COLUMNS``.

    Examples
    --------
    >>> resolve_columns({"sex": "Gender"})["sex"]
    'Gender'
    >>> resolve_columns()["age"]
    'Age'
    """
    return {**DEFAULT_COLUMNS, **dict(overrides or {})}


def canonical_columns(columns: Mapping[str, str]) -> List[str]:
    """Return ``AEFI_COLUMNS`` with configured names in place of the defaults."""
    renamed = {
        DEFAULT_COLUMNS[key]: name
        for key, name in columns.items()
        if key in DEFAULT_COLUMNS
    }
    return [renamed.get(name, name) for name in AEFI_COLUMNS]


def normalize(col: str) -> str:
    """Normalize header formatting prior to matching."""
    col_normalized = str(col).lower().strip().replace("_", " ").replace("-", " ")
    return re.sub(r"\s+", " ", col_normalized)


def map_columns(
    df: pd.DataFrame,
    canonical_columns: Sequence[str] = AEFI_COLUMNS,
    threshold: float = THRESHOLD,
) -> Tuple[pd.DataFrame, Dict[str, str]]:
    """Rename DataFrame headers to canonical AEFI column names.

    Parameters
    ----------
    df : pandas.DataFrame
        Frame whose headers will be matched.
    canonical_columns : Sequence[str], optional
        Canonical names to match against. Defaults to AEFI_COLUMNS.
    threshold : float, optional
        Minimum ``fuzz.ratio`` score (0-100) for a header to be renamed.

    Returns
    -------
    tuple[pandas.DataFrame, dict]
        The renamed frame and a mapping of original header -> canonical
        name for every header that was renamed.

    Notes
    -----
    - Headers already equal to a canonical name are left untouched.
    - Each canonical name is assigned to at most one header: the first
      header (in column order) that reaches the best score for it.
    - Headers below the threshold keep their original name.
    """
    choices = [normalize(name) for name in canonical_columns]
    col_map: Dict[str, str] = {}
    claimed = {col for col in df.columns if col in canonical_columns}

    for input_col in df.columns:
        if input_col in canonical_columns:
            continue

        match = process.extractOne(
            query=normalize(input_col),
            choices=choices,
            scorer=fuzz.ratio,
        )
        if match is None:
            continue

        _, score, index = match
        best_match = canonical_columns[index]
        if score < threshold or best_match in claimed:
            continue

        claimed.add(best_match)
        col_map[input_col] = best_match
        LOG.debug("Matching %r to %r with score %.1f", input_col, best_match, score)

    return df.rename(columns=col_map), col_map
