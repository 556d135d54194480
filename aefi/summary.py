"""Dashboard summary artifact.

Computes every aggregate the dashboard charts and tables consume from the
enriched records and writes them as one JSON artifact per run. Column names,
gap bands, ranking size and locale come from the configuration.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from . import aggregate
from . import column_mapper as cols
from .data_models import SEX_FIELD, CalendarGrouping, EnrichedRecord, NormalizationResult
from .dates import parse_date
from .enums import Granularity, TimeBucket

LOG = logging.getLogger(__name__)

# Vaccination to report delay bands, coarser than the timeliness bands.
REPORT_GAP_BOUNDS = (7, 30, 90, math.inf)


def band_labels(bounds: Sequence[float]) -> List[str]:
    """Build display labels for inclusive day bounds.

    Examples
    --------
    >>> band_labels([2, 7, 30, 90, float("inf")])
    ['0-2 Days', '3-7 Days', '8-30 Days', '31-90 Days', '91+ Days']
    """
    labels = []
    lower = 0
    for upper in bounds:
        if math.isinf(upper):
            labels.append(f"{lower:g}+ Days")
        else:
            labels.append(f"{lower:g}-{upper:g} Days")
            lower = math.floor(upper) + 1
    return labels


def gap_bounds(config: Mapping[str, Any]) -> Tuple[float, ...]:
    """Configured gap bands with the open-ended last band appended."""
    configured = config.get("gap_bands")
    if not configured:
        return tuple(TimeBucket.bounds())
    return (*configured, math.inf)


def _rows(pairs: Sequence[Tuple[str, int]]) -> List[Dict[str, Any]]:
    return [
        {"label": label, "count": count, "percentage": percentage}
        for label, count, percentage in aggregate.percentage_table(pairs)
    ]


def _bands(bounds: Sequence[float], counts: Sequence[int]) -> List[Dict[str, Any]]:
    return [
        {"label": label, "count": count}
        for label, count in zip(band_labels(bounds), counts)
    ]


def _periods(grouping: CalendarGrouping) -> List[Dict[str, Any]]:
    return [
        {"key": key, "label": label, "count": count}
        for key, label, count in grouping.ordered()
    ]


def build_summary(
    records: Sequence[EnrichedRecord], config: Optional[Mapping[str, Any]] = None
) -> Dict[str, Any]:
    """Compute the dashboard aggregates for a set of enriched records.

    Parameters
    ----------
    records : Sequence[EnrichedRecord]
        Normalized records, already filtered if the caller applies filters.
    config : Mapping[str, Any], optional
        Parsed parameters.yaml; defaults are used for missing keys.

    Returns
    -------
    Dict[str, Any]
        JSON-serializable aggregates keyed by chart/table name.
    """
    config = config or {}
    columns = cols.resolve_columns(config.get("columns"))
    reporting = config.get("reporting", {})
    top = reporting.get("top_n", 10)
    locale = reporting.get("locale", "en")

    vaccine_field = columns["vaccine"]
    event_field = columns["adverse_event"]
    serious_field = columns["serious"]
    vaccination_field = columns["vaccination_date"]
    report_field = columns["report_date"]

    headline = aggregate.summarize(
        records,
        id_field=columns["record_id"],
        serious_field=serious_field,
        province_field=columns["province"],
    )

    vaccines = aggregate.count_vaccines(records, vaccine_field)
    events = aggregate.count_field(records, event_field, multi_value=True)
    vaccine_events = aggregate.count_vaccine_adverse_events(
        records, vaccine_field, event_field
    )

    onset = aggregate.field_extractor(columns["onset_date"])
    by_year = aggregate.group_by_calendar_period(records, onset, Granularity.YEAR)
    latest_year = max((int(key) for key in by_year.counts), default=None)
    by_month = aggregate.group_by_calendar_period(
        records, onset, Granularity.MONTH, year=latest_year, locale=locale
    )
    reports_by_month = aggregate.group_by_calendar_period(
        records,
        aggregate.field_extractor(report_field, parse_date),
        Granularity.MONTH,
        locale=locale,
    )

    bounds = gap_bounds(config)
    intervals = {
        name: _bands(bounds, counts)
        for name, counts in aggregate.temporal_intervals(
            records,
            bounds,
            vaccination_field=vaccination_field,
            onset_field=columns["onset_date"],
            notification_field=columns["notification_date"],
            report_field=report_field,
        ).items()
    }
    report_gaps = aggregate.compute_gap(records, vaccination_field, report_field)

    return {
        "summary": asdict(headline),
        "seriousness": aggregate.count_seriousness(records, serious_field),
        "serious_reasons": aggregate.count_field(
            records, cols.SERIOUS_REASON, multi_value=True
        ),
        "outcomes": aggregate.count_field(
            records, columns["outcome"], multi_value=True
        ),
        "sex": aggregate.count_field(records, SEX_FIELD),
        "age_bands": aggregate.count_age_bands(records),
        "age_units": aggregate.count_age_units(records, columns["age_unit"]),
        "vaccines": _rows(aggregate.top_n(vaccines, top)),
        "adverse_events": _rows(aggregate.top_n(events, top)),
        "vaccine_adverse_events": _rows(aggregate.top_n(vaccine_events, top)),
        "regions": aggregate.count_field(records, columns["region"]),
        "patient_provinces": aggregate.count_field(records, columns["province"]),
        "health_facility_provinces": aggregate.count_field(
            records, cols.HEALTH_FACILITY_PROVINCE
        ),
        "health_facility_districts": aggregate.count_field(
            records, cols.HEALTH_FACILITY_DISTRICT
        ),
        "reporter_provinces": aggregate.count_field(records, cols.REPORTER_PROVINCE),
        "cases_by_year": _periods(by_year),
        "cases_by_month": {"year": latest_year, "periods": _periods(by_month)},
        "reports_by_month": _periods(reports_by_month),
        "temporal_intervals": intervals,
        "vaccination_to_report": _bands(
            REPORT_GAP_BOUNDS, aggregate.bucket_gaps(report_gaps, REPORT_GAP_BOUNDS)
        ),
    }


def write_artifact(
    output_dir: Path,
    run_id: str,
    result: NormalizationResult,
    summary: Dict[str, Any],
    column_map: Optional[Mapping[str, str]] = None,
    dictionary_size: Optional[int] = None,
) -> Path:
    """Write the summary and data-quality warnings to a JSON artifact."""
    output_dir.mkdir(parents=True, exist_ok=True)

    payload = {
        "run_id": run_id,
        "created_at": datetime.now(timezone.utc).isoformat(),
        "total_records": len(result.enriched),
        "column_map": dict(column_map or {}),
        "warnings": [error.describe() for error in result.errors],
        "vaccine_dictionary_size": dictionary_size,
        **summary,
    }

    artifact_path = output_dir / f"aefi_summary_{run_id}.json"
    artifact_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    LOG.info("Wrote summary artifact to %s", artifact_path)
    return artifact_path
