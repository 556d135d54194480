"""Record normalization pipeline.

Turns the raw rows handed over by the loader into ``EnrichedRecord``
instances:

1. Every known date field is split on whitespace runs, each piece is parsed
   with ``parse_date`` and the field is rewritten to the newline-joined ISO
   dates (or None when nothing parsed). Each non-empty piece that fails to
   parse becomes a ``ParseError``.
2. ``NormalizedAge`` is derived from the age and age-unit columns
   (``Age`` and ``Age unit`` by default) unless the row already carries one.
3. The sex column is reduced to a ``Sex`` of Male / Female / Unknown.
4. Multi-valued categorical and date cells are split once into ``Cell``
   values.

Input rows are never modified. Feeding enriched records back through
``process`` yields equal records and no new errors.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from . import column_mapper as cols
from .age import normalize_age
from .data_models import (
    NORMALIZED_AGE_FIELD,
    Cell,
    EnrichedRecord,
    NormalizationResult,
    ParseError,
)
from .dates import parse_date, to_iso
from .enums import Sex
from .multi_value import CATEGORY_DELIMITERS, DATE_DELIMITERS, build_cell, is_blank

LOG = logging.getLogger(__name__)

UNKNOWN_RECORD_ID = "Unknown"

# Categorical fields whose cells may hold several sub-events.
MULTI_VALUE_FIELDS = (cols.SERIOUS, cols.ADVERSE_EVENT, cols.OUTCOME)

_PIECES = re.compile(r"\s+")


class EmptyDatasetError(ValueError):
    """Raised when there are no records to normalize."""


def _record_id(record: Mapping[str, Any], id_field: str) -> str:
    if isinstance(record, EnrichedRecord):
        return record.record_id
    value = record.get(id_field)
    if is_blank(value):
        return UNKNOWN_RECORD_ID
    return str(value).strip()


def _date_pieces(value: Any) -> List[Any]:
    if is_blank(value):
        return []
    if isinstance(value, str):
        return [piece for piece in _PIECES.split(value.strip()) if piece]
    return [value]


def normalize_date_field(
    value: Any, record_id: str, field: str
) -> Tuple[Optional[str], List[ParseError]]:
    """Canonicalize one date cell.

    Parameters
    ----------
    value : Any
        Raw cell value.
    record_id : str
        Identity used in the errors.
    field : str
        Column name used in the errors.

    Returns
    -------
    tuple[str | None, list[ParseError]]
        Newline-joined ISO dates (None if no piece parsed) and one error per
        piece that did not parse.

    Examples
    --------
    >>> normalize_date_field("2024-01-05\\n20240107", "A1", "Date of onset")
    ('2024-01-05\\n2024-01-07', [])
    """
    parsed: List[str] = []
    errors: List[ParseError] = []
    for piece in _date_pieces(value):
        result = parse_date(piece)
        if result is None:
            errors.append(ParseError(record_id, field, str(piece)))
        else:
            parsed.append(to_iso(result))
    return ("\n".join(parsed) if parsed else None), errors


def normalize_sex(value: Any) -> str:
    """Reduce a raw sex value to "Male", "Female" or "Unknown"."""
    return Sex.from_raw(value).value


def _derive_age(
    record: Mapping[str, Any], age_field: str, age_unit_field: str
) -> Optional[float]:
    existing = record.get(NORMALIZED_AGE_FIELD)
    if NORMALIZED_AGE_FIELD in record and not is_blank(existing):
        return existing
    return normalize_age(record.get(age_field), record.get(age_unit_field))


def _build_cells(
    fields: Mapping[str, Any],
    date_fields: Sequence[str],
    multi_value_fields: Sequence[str],
) -> dict[str, Cell]:
    cells: dict[str, Cell] = {}
    for name in date_fields:
        if name in fields:
            cells[name] = build_cell(fields[name], DATE_DELIMITERS)
    for name in multi_value_fields:
        if name in fields:
            cells[name] = build_cell(fields[name], CATEGORY_DELIMITERS)
    return cells


def normalize_record(
    record: Mapping[str, Any],
    *,
    record_id_field: str = cols.RECORD_ID,
    date_fields: Sequence[str] = cols.DATE_FIELDS,
    age_field: str = cols.AGE,
    age_unit_field: str = cols.AGE_UNIT,
    sex_field: str = cols.SEX,
    multi_value_fields: Sequence[str] = MULTI_VALUE_FIELDS,
) -> Tuple[EnrichedRecord, List[ParseError]]:
    """Normalize a single row; see ``process``."""
    record_id = _record_id(record, record_id_field)
    fields = dict(record)
    errors: List[ParseError] = []

    for name in date_fields:
        if name not in fields:
            continue
        canonical, field_errors = normalize_date_field(fields[name], record_id, name)
        fields[name] = canonical
        errors.extend(field_errors)

    enriched = EnrichedRecord(
        fields=fields,
        record_id=record_id,
        normalized_age=_derive_age(record, age_field, age_unit_field),
        sex=normalize_sex(record.get(sex_field)),
        cells=_build_cells(fields, date_fields, multi_value_fields),
    )
    return enriched, errors


def process(
    raw_records: Iterable[Mapping[str, Any]],
    *,
    record_id_field: str = cols.RECORD_ID,
    date_fields: Sequence[str] = cols.DATE_FIELDS,
    age_field: str = cols.AGE,
    age_unit_field: str = cols.AGE_UNIT,
    sex_field: str = cols.SEX,
    multi_value_fields: Sequence[str] = MULTI_VALUE_FIELDS,
) -> NormalizationResult:
    """Normalize a batch of raw records.

    Parameters
    ----------
    raw_records : Iterable[Mapping[str, Any]]
        Rows as produced by the loader; left untouched.
    record_id_field : str, optional
        Column holding the unique record id used in error reports.
    date_fields : Sequence[str], optional
        Columns to canonicalize as dates.
    age_field, age_unit_field : str, optional
        Columns ``NormalizedAge`` is derived from.
    sex_field : str, optional
        Column reduced to the derived ``Sex`` value.
    multi_value_fields : Sequence[str], optional
        Categorical columns pre-split into cells.

    Returns
    -------
    NormalizationResult
        Enriched records in input order and every date parse error.

    Raises
    ------
    EmptyDatasetError
        If ``raw_records`` is empty.
    """
    enriched: List[EnrichedRecord] = []
    errors: List[ParseError] = []

    for record in raw_records:
        normalized, record_errors = normalize_record(
            record,
            record_id_field=record_id_field,
            date_fields=date_fields,
            age_field=age_field,
            age_unit_field=age_unit_field,
            sex_field=sex_field,
            multi_value_fields=multi_value_fields,
        )
        enriched.append(normalized)
        errors.extend(record_errors)

    if not enriched:
        raise EmptyDatasetError("No records found in the uploaded data.")

    for error in errors:
        LOG.warning("%s", error.describe())
    LOG.info(
        "Normalized %d record(s); %d date parse issue(s)", len(enriched), len(errors)
    )
    return NormalizationResult(enriched=enriched, errors=errors)
