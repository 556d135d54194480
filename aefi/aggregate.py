"""Aggregation primitives shared by every dashboard chart and table.

All functions accept raw record mappings or ``EnrichedRecord`` instances and
return plain Python containers. Outputs are descriptive counts and
percentages only.

**Contracts:**

- ``count_field`` counts missing/blank cells under ``"Unknown"``; for a
  single-valued field the counts sum to the number of records.
- ``compute_gap`` returns whole days (``ceil``) and drops records where
  either date is missing or the gap is negative. Dropped negative gaps are
  logged as one warning per call, never raised.
- ``bucket_gaps`` assigns each gap to the first band whose inclusive upper
  bound it does not exceed.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from datetime import date, timedelta
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

from babel.dates import format_date

from . import column_mapper as cols
from .age import classify_age_band, classify_age_unit
from .data_models import (
    NORMALIZED_AGE_FIELD,
    CalendarGrouping,
    DashboardSummary,
    EnrichedRecord,
)
from .dates import parse_date
from .enums import AgeBand, Granularity, Seriousness, TimeBucket
from .multi_value import (
    CATEGORY_DELIMITERS,
    classify_seriousness,
    count_flag,
    distinct,
    earliest_date,
    is_blank,
    split_cell,
)
from .vaccines import parse_vaccine_field

LOG = logging.getLogger(__name__)

UNKNOWN_LABEL = "Unknown"

Record = Mapping[str, Any]
DateExtractor = Callable[[Any], Optional[date]]
RecordDateExtractor = Callable[[Record], Optional[date]]


def _sub_values(record: Record, field: str, delimiters: str) -> Tuple[Any, ...]:
    if isinstance(record, EnrichedRecord) and delimiters == CATEGORY_DELIMITERS:
        cell = record.cell(field)
        if cell is not None:
            return cell.values
    return split_cell(record.get(field), delimiters)


def count_field(
    records: Iterable[Record],
    field: str,
    multi_value: bool = False,
    delimiters: str = CATEGORY_DELIMITERS,
) -> Dict[str, int]:
    """Count records per category label of ``field``.

    Parameters
    ----------
    records : Iterable[Record]
        Records to count.
    field : str
        Column to read.
    multi_value : bool, optional
        If True, split the cell and count each distinct sub-value once per
        record, so the total can exceed the record count.
    delimiters : str, optional
        Delimiters used when ``multi_value`` is True.

    Returns
    -------
    Dict[str, int]
        Label -> count. Labels are exact trimmed strings; no case folding.
    """
    counts: Counter = Counter()
    for record in records:
        if not multi_value:
            value = record.get(field)
            label = UNKNOWN_LABEL if is_blank(value) else str(value).strip()
            counts[label] += 1
            continue
        pieces = _sub_values(record, field, delimiters)
        if not pieces:
            counts[UNKNOWN_LABEL] += 1
        for label in distinct(str(piece).strip() for piece in pieces):
            counts[label] += 1
    return dict(counts)


def bucket_gaps(
    gaps: Iterable[float], bands: Sequence[float] = tuple(TimeBucket.bounds())
) -> List[int]:
    """Count gaps per band given ordered inclusive upper bounds.

    Parameters
    ----------
    gaps : Iterable[float]
        Gaps in days.
    bands : Sequence[float], optional
        Inclusive upper bounds, ascending; use ``math.inf`` for an
        open-ended last band. Defaults to ``[2, 7, 30, 90, inf]``.

    Returns
    -------
    List[int]
        One count per band. A gap above every bound is not counted.

    Examples
    --------
    >>> bucket_gaps([0, 2, 3, 45, 400])
    [2, 1, 0, 1, 1]
    """
    counts = [0] * len(bands)
    for gap in gaps:
        for index, upper in enumerate(bands):
            if gap <= upper:
                counts[index] += 1
                break
    return counts


def compute_gap(
    records: Iterable[Record],
    start_field: str,
    end_field: str,
    date_extractor: DateExtractor = parse_date,
) -> List[int]:
    """Compute whole-day gaps between two date fields of each record.

    Parameters
    ----------
    records : Iterable[Record]
        Records to read.
    start_field, end_field : str
        Columns holding the start and end dates.
    date_extractor : Callable, optional
        Turns a cell value into a date. Defaults to ``parse_date`` (first
        value only); pass ``multi_value.earliest_date`` for cells that may
        carry several dates.

    Returns
    -------
    List[int]
        Non-negative gaps in days, in record order.
    """
    gaps: List[int] = []
    negative = 0
    for record in records:
        start = date_extractor(record.get(start_field))
        end = date_extractor(record.get(end_field))
        if start is None or end is None:
            continue
        gap = math.ceil((end - start) / timedelta(days=1))
        if gap < 0:
            negative += 1
            continue
        gaps.append(gap)

    if negative:
        LOG.warning(
            "Excluded %d record(s) where %r precedes %r",
            negative,
            end_field,
            start_field,
        )
    return gaps


def field_extractor(
    field: str, extractor: DateExtractor = earliest_date
) -> RecordDateExtractor:
    """Build a per-record date extractor reading ``field``."""

    def extract(record: Record) -> Optional[date]:
        return extractor(record.get(field))

    return extract


def earliest_onset_date(record: Record) -> Optional[date]:
    """Return the earliest parseable onset date of a case."""
    return earliest_date(record.get(cols.DATE_OF_ONSET))


def group_by_calendar_period(
    records: Iterable[Record],
    date_extractor: RecordDateExtractor = earliest_onset_date,
    granularity: str | Granularity = Granularity.YEAR,
    *,
    year: Optional[int] = None,
    locale: str = "en",
) -> CalendarGrouping:
    """Group records by calendar year or month.

    Parameters
    ----------
    records : Iterable[Record]
        Records to group.
    date_extractor : Callable, optional
        Returns the date to group a record by (default: earliest onset).
        Records without a date are skipped.
    granularity : str | Granularity, optional
        "year" (keys ``YYYY``) or "month" (keys ``YYYY-MM``).
    year : int, optional
        Only count records dated in this year (monthly drill-down).
    locale : str, optional
        Babel locale for month labels (default: "en", giving "Jan 2023").

    Returns
    -------
    CalendarGrouping
        Counts, labels and sort orders per period key.
    """
    if not isinstance(granularity, Granularity):
        granularity = Granularity.from_string(granularity)

    counts: Counter = Counter()
    labels: Dict[str, str] = {}
    sort_order: Dict[str, int] = {}

    for record in records:
        when = date_extractor(record)
        if when is None:
            continue
        if year is not None and when.year != year:
            continue

        if granularity == Granularity.MONTH:
            key = f"{when.year:04d}-{when.month:02d}"
            if key not in labels:
                labels[key] = format_date(when, format="MMM yyyy", locale=locale)
                sort_order[key] = when.month
        else:
            key = f"{when.year:04d}"
            labels.setdefault(key, key)
            sort_order.setdefault(key, when.year)
        counts[key] += 1

    return CalendarGrouping(
        granularity=granularity.value,
        counts=dict(counts),
        labels=labels,
        sort_order=sort_order,
    )


def count_seriousness(
    records: Iterable[Record], field: str = cols.SERIOUS
) -> Dict[str, int]:
    """Count cases per seriousness class; all three classes are present."""
    counts = {member.value: 0 for member in Seriousness}
    for record in records:
        cell = _sub_values(record, field, CATEGORY_DELIMITERS)
        counts[classify_seriousness(cell).value] += 1
    return counts


def filter_by_seriousness(
    records: Iterable[Record],
    seriousness: Seriousness,
    field: str = cols.SERIOUS,
) -> List[Record]:
    """Keep records whose ``Serious`` cell classifies as ``seriousness``."""
    return [
        record
        for record in records
        if classify_seriousness(_sub_values(record, field, CATEGORY_DELIMITERS))
        == seriousness
    ]


def count_age_bands(
    records: Iterable[Record], include_empty: bool = False
) -> Dict[str, int]:
    """Count records per age band using ``NormalizedAge``.

    Parameters
    ----------
    records : Iterable[Record]
        Normalized records.
    include_empty : bool, optional
        If True, every band appears (with zero counts) in band order.
        Otherwise only observed bands appear, still in band order.
    """
    counts: Counter = Counter(
        classify_age_band(record.get(NORMALIZED_AGE_FIELD)).value for record in records
    )
    return {
        label: counts[label]
        for label in AgeBand.labels()
        if include_empty or counts[label]
    }


def count_age_units(
    records: Iterable[Record], field: str = cols.AGE_UNIT
) -> Dict[str, int]:
    """Count records per reported age unit; unrecognized units are skipped."""
    counts = {"Days": 0, "Weeks": 0, "Months": 0, "Years": 0}
    for record in records:
        label = classify_age_unit(record.get(field))
        if label is not None:
            counts[label] += 1
    return counts


def count_vaccines(
    records: Iterable[Record], field: str = cols.VACCINE
) -> Dict[str, int]:
    """Count records per vaccine name, each name once per record."""
    counts: Counter = Counter()
    for record in records:
        for name in distinct(parse_vaccine_field(record.get(field))):
            counts[name] += 1
    return dict(counts)


def count_vaccine_adverse_events(
    records: Iterable[Record],
    vaccine_field: str = cols.VACCINE,
    event_field: str = cols.ADVERSE_EVENT,
) -> Dict[str, int]:
    """Count adverse events attributed to each vaccine.

    Every vaccine of a record is credited with all of the record's adverse
    events. Records missing either field are skipped.
    """
    counts: Counter = Counter()
    for record in records:
        vaccines = distinct(parse_vaccine_field(record.get(vaccine_field)))
        events = _sub_values(record, event_field, CATEGORY_DELIMITERS)
        if not vaccines or not events:
            continue
        for name in vaccines:
            counts[name] += len(events)
    return dict(counts)


def top_n(counts: Mapping[str, int], n: int) -> List[Tuple[str, int]]:
    """Return the ``n`` largest categories, ties kept in insertion order."""
    return sorted(counts.items(), key=lambda item: item[1], reverse=True)[:n]


def percentage_table(
    counts: Mapping[str, int] | Sequence[Tuple[str, int]], decimals: int = 2
) -> List[Tuple[str, int, float]]:
    """Build ``(label, count, percentage)`` rows plus a closing total row.

    Percentages are of the summed counts and rounded to ``decimals``; all
    percentages are 0 when the total is 0.
    """
    items = list(counts.items()) if isinstance(counts, Mapping) else list(counts)
    total = sum(count for _, count in items)

    rows = [
        (label, count, round(count / total * 100, decimals) if total else 0.0)
        for label, count in items
    ]
    rows.append(("Total", total, 100.0 if total else 0.0))
    return rows


def temporal_intervals(
    records: Sequence[Record],
    bands: Sequence[float] = tuple(TimeBucket.bounds()),
    *,
    vaccination_field: str = cols.DATE_OF_VACCINATION,
    onset_field: str = cols.DATE_OF_ONSET,
    notification_field: str = cols.DATE_OF_NOTIFICATION,
    report_field: str = cols.DATE_OF_REPORT,
) -> Dict[str, List[int]]:
    """Bucket the three reporting-timeliness intervals.

    Vaccination, onset and notification dates may be multi-valued; the
    earliest value is used for the first two intervals. The notification to
    report interval uses the first value of each cell.
    """
    records = list(records)
    intervals = {
        "vaccination_to_onset": compute_gap(
            records, vaccination_field, onset_field, earliest_date
        ),
        "onset_to_notification": compute_gap(
            records, onset_field, notification_field, earliest_date
        ),
        "notification_to_report": compute_gap(
            records, notification_field, report_field
        ),
    }
    return {name: bucket_gaps(gaps, bands) for name, gaps in intervals.items()}


def unique_values(records: Iterable[Record], field: str) -> List[str]:
    """Sorted distinct sub-values of ``field`` (split on comma/newline)."""
    values = {
        str(piece).strip()
        for record in records
        for piece in _sub_values(record, field, CATEGORY_DELIMITERS)
    }
    return sorted(values)


def summarize(
    records: Sequence[Record],
    id_field: str = cols.RECORD_ID,
    serious_field: str = cols.SERIOUS,
    province_field: str = cols.PATIENT_PROVINCE,
) -> DashboardSummary:
    """Compute the headline statistics.

    Patient statistics group rows by ``id_field``; rows without an id are
    counted as reports but not as patients. Serious events are the number of
    "yes" sub-values across all identified patients.
    """
    records = list(records)
    serious_by_patient: Dict[str, int] = {}
    for record in records:
        patient_id = record.get(id_field)
        if patient_id is None or not str(patient_id).strip():
            continue
        key = str(patient_id).strip()
        serious_by_patient[key] = serious_by_patient.get(key, 0) + count_flag(
            _sub_values(record, serious_field, CATEGORY_DELIMITERS), "yes"
        )

    return DashboardSummary(
        total_reports=len(records),
        total_patients=len(serious_by_patient),
        total_serious_events=sum(serious_by_patient.values()),
        reporting_provinces=len(unique_values(records, province_field)),
    )


def filter_records(
    records: Iterable[Record],
    *,
    region: Optional[str] = None,
    vaccine: Optional[str] = None,
    seriousness: Optional[Seriousness] = None,
    since: Optional[date] = None,
    region_field: str = cols.REGION,
    vaccine_field: str = cols.VACCINE,
    serious_field: str = cols.SERIOUS,
    report_field: str = cols.DATE_OF_REPORT,
) -> List[Record]:
    """Apply the dashboard filters; a None filter is not applied.

    Parameters
    ----------
    region : str, optional
        Exact match on the trimmed region column.
    vaccine : str, optional
        Case-insensitive match against any parsed vaccine name.
    seriousness : Seriousness, optional
        Seriousness class to keep.
    since : date, optional
        Keep records whose report date is on or after this date.
    """
    selected = list(records)

    if region is not None:
        selected = [
            r for r in selected if str(r.get(region_field) or "").strip() == region
        ]
    if vaccine is not None:
        wanted = vaccine.strip().lower()
        selected = [
            r
            for r in selected
            if any(name.lower() == wanted for name in parse_vaccine_field(r.get(vaccine_field)))
        ]
    if seriousness is not None:
        selected = filter_by_seriousness(selected, seriousness, serious_field)
    if since is not None:
        selected = [
            r
            for r in selected
            if (reported := parse_date(r.get(report_field))) is not None
            and reported >= since
        ]
    return selected


__all__ = [
    "bucket_gaps",
    "compute_gap",
    "count_age_bands",
    "count_age_units",
    "count_field",
    "count_seriousness",
    "count_vaccine_adverse_events",
    "count_vaccines",
    "earliest_onset_date",
    "field_extractor",
    "filter_by_seriousness",
    "filter_records",
    "group_by_calendar_period",
    "percentage_table",
    "summarize",
    "temporal_intervals",
    "top_n",
    "unique_values",
]
