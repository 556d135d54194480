"""Unified data models for the AEFI normalization core.

This module provides the dataclasses shared by the normalization pipeline,
the aggregators and the summary artifact writer.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

NORMALIZED_AGE_FIELD = "NormalizedAge"
SEX_FIELD = "Sex"


@dataclass(frozen=True)
class Single:
    """A cell holding exactly one logical value."""

    value: Any

    @property
    def values(self) -> Tuple[Any, ...]:
        return (self.value,)


@dataclass(frozen=True)
class Multi:
    """A cell holding zero or more logical values, in cell order.

    An empty cell is represented as ``Multi(())``.
    """

    values: Tuple[Any, ...] = ()


Cell = Union[Single, Multi]


@dataclass(frozen=True)
class ParseError:
    """A single cell that failed date parsing.

    Fields
    ------
    record_id : str
        Value of the record's unique-id column, or "Unknown" when absent.
    field : str
        Column name of the offending cell.
    raw_value : str
        The piece of the cell that could not be parsed.
    """

    record_id: str
    field: str
    raw_value: str

    def describe(self) -> str:
        return (
            f'Record ID {self.record_id}: invalid date "{self.raw_value}" '
            f'in field "{self.field}"'
        )


@dataclass(frozen=True, eq=False)
class EnrichedRecord(Mapping):
    """Normalized, read-only view of one case-report row.

    Behaves as a mapping over the canonical record: the original columns
    with date fields rewritten to newline-joined ISO strings, plus the
    derived ``NormalizedAge`` and ``Sex`` entries.

    Fields
    ------
    fields : Mapping[str, Any]
        Canonical column values (read-only).
    record_id : str
        Identity used in error reporting.
    normalized_age : Optional[float]
        Age in years, or None if the age could not be normalized.
    sex : str
        One of "Male", "Female", "Unknown".
    cells : Mapping[str, Cell]
        Pre-split multi-valued cells keyed by column name.
    """

    fields: Mapping[str, Any]
    record_id: str = "Unknown"
    normalized_age: Optional[float] = None
    sex: str = "Unknown"
    cells: Mapping[str, Cell] = field(default_factory=dict)

    def __post_init__(self) -> None:
        merged = dict(self.fields)
        merged[NORMALIZED_AGE_FIELD] = self.normalized_age
        merged[SEX_FIELD] = self.sex
        object.__setattr__(self, "fields", MappingProxyType(merged))
        object.__setattr__(self, "cells", MappingProxyType(dict(self.cells)))

    def __getitem__(self, key: str) -> Any:
        return self.fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def cell(self, name: str) -> Optional[Cell]:
        """Return the pre-split cell for ``name`` if one was built."""
        return self.cells.get(name)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.fields)


@dataclass(frozen=True)
class NormalizationResult:
    """Output of the record normalization pipeline.

    Parameters
    ----------
    enriched : List[EnrichedRecord]
        One normalized record per input row, in input order.
    errors : List[ParseError]
        One entry per date piece that failed to parse.
    """

    enriched: List[EnrichedRecord]
    errors: List[ParseError]

    def warning_summary(self) -> Optional[str]:
        """Summarize parse errors for a single dismissible warning."""
        if not self.errors:
            return None
        first = self.errors[0]
        message = f"Data Quality Warning: {len(self.errors)} issue(s) found. {first.describe()}."
        if len(self.errors) > 1:
            message += f" ...and {len(self.errors) - 1} more issues."
        return message


@dataclass(frozen=True)
class CalendarGrouping:
    """Record counts grouped by calendar year or month.

    Fields
    ------
    granularity : str
        "year" or "month".
    counts : Dict[str, int]
        Keyed by "YYYY" or "YYYY-MM".
    labels : Dict[str, str]
        Human-readable label per key (e.g. "Jan 2023"); equal to the key
        for yearly grouping.
    sort_order : Dict[str, int]
        Numeric month (1-12) for monthly grouping, the year for yearly.
    """

    granularity: str
    counts: Dict[str, int]
    labels: Dict[str, str]
    sort_order: Dict[str, int]

    def ordered(self) -> List[Tuple[str, str, int]]:
        """Return ``(key, label, count)`` tuples in chronological order."""
        keys = sorted(self.counts, key=lambda k: (int(k[:4]), self.sort_order[k]))
        return [(key, self.labels[key], self.counts[key]) for key in keys]


@dataclass(frozen=True)
class DashboardSummary:
    """Headline statistics shown above the charts."""

    total_reports: int
    total_patients: int
    total_serious_events: int
    reporting_provinces: int
