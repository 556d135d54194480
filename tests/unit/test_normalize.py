"""Unit tests for normalize module - the record normalization pipeline.

Tests cover:
- Date field canonicalization to newline-joined ISO strings
- ParseError collection with record identity
- NormalizedAge derivation and Sex normalization
- Pre-split cells on enriched records
- Immutability of raw input and idempotent re-processing
- Empty input as the only fatal error

Real-world significance:
- Every chart reads the enriched records, never the raw rows
- Double normalization must not corrupt already-clean dates
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List

import pytest

from aefi import normalize
from aefi.data_models import EnrichedRecord, Multi, ParseError, Single


@pytest.mark.unit
class TestNormalizeDateField:
    """Unit tests for normalize_date_field."""

    def test_mixed_layouts(self) -> None:
        value, errors = normalize.normalize_date_field(
            "16/02/2024\n20240301", "A1", "Date of onset"
        )
        assert value == "2024-02-16\n2024-03-01"
        assert errors == []

    def test_one_error_per_failed_piece(self) -> None:
        """Verify each unparseable piece is reported and good pieces are kept.

        Real-world significance:
        - Users see how many cells need fixing in the source spreadsheet
        """
        value, errors = normalize.normalize_date_field(
            "2024-02-16\nunknown 2024", "A1", "Date of onset"
        )
        assert value == "2024-02-16"
        assert errors == [
            ParseError("A1", "Date of onset", "unknown"),
            ParseError("A1", "Date of onset", "2024"),
        ]

    def test_nothing_parsed_gives_none(self) -> None:
        value, errors = normalize.normalize_date_field("pending", "A1", "Date of report")
        assert value is None
        assert len(errors) == 1

    def test_blank_cell_is_not_an_error(self) -> None:
        assert normalize.normalize_date_field("  ", "A1", "Date of report") == (None, [])
        assert normalize.normalize_date_field(None, "A1", "Date of report") == (None, [])

    def test_serial_number(self) -> None:
        assert normalize.normalize_date_field(45338, "A1", "Date of report") == (
            "2024-02-16",
            [],
        )


@pytest.mark.unit
class TestProcess:
    """Unit tests for process."""

    def test_enriched_fields(self, raw_records: List[Dict[str, Any]]) -> None:
        result = normalize.process(raw_records)
        first = result.enriched[0]

        assert isinstance(first, EnrichedRecord)
        assert first.record_id == "AEFI-001"
        assert first["Date of onset"] == "2023-01-12"
        assert first["Date of report"] == "2023-01-16"
        assert first["Date of birth"] is None
        assert first["NormalizedAge"] == 30.0
        assert first["Sex"] == "Male"

    def test_sex_normalization(self, raw_records: List[Dict[str, Any]]) -> None:
        result = normalize.process(raw_records)
        assert [r["Sex"] for r in result.enriched] == ["Male", "Female", "Unknown", "Unknown"]

    def test_normalized_age(self, raw_records: List[Dict[str, Any]]) -> None:
        result = normalize.process(raw_records)
        assert [r.normalized_age for r in result.enriched] == [30.0, 0.5, 70.0, None]

    def test_configured_age_and_sex_columns(self) -> None:
        """Verify age and sex are derived from configured column names."""
        result = normalize.process(
            [
                {
                    "Patient age": 6,
                    "Age units": "Months",
                    "Gender": "f",
                    "Outcome?": "Died, Recovered",
                }
            ],
            age_field="Patient age",
            age_unit_field="Age units",
            sex_field="Gender",
            multi_value_fields=("Outcome?",),
        )
        record = result.enriched[0]
        assert record["NormalizedAge"] == 0.5
        assert record["Sex"] == "Female"
        assert record["Gender"] == "f"
        assert record.cell("Outcome?") == Multi(("Died", "Recovered"))

    def test_existing_normalized_age_kept(self) -> None:
        result = normalize.process([{"Age": 5, "Age unit": "Years", "NormalizedAge": 4.5}])
        assert result.enriched[0]["NormalizedAge"] == 4.5

    def test_errors_carry_record_id(self, raw_records: List[Dict[str, Any]]) -> None:
        result = normalize.process(raw_records)
        assert result.errors == [ParseError("AEFI-003", "Date of notification", "pending")]

    def test_missing_record_id_is_unknown(self) -> None:
        result = normalize.process([{"Date of onset": "bad"}])
        assert result.enriched[0].record_id == "Unknown"
        assert result.errors[0].record_id == "Unknown"

    def test_cells_are_prebuilt(self, raw_records: List[Dict[str, Any]]) -> None:
        record = normalize.process(raw_records).enriched[1]
        assert record.cell("Serious") == Multi(("No", "Yes"))
        assert record.cell("Adverse event") == Single("Fever")
        assert record.cell("Date of onset") == Multi(("2023-03-20", "2023-03-05"))
        assert record.cell("Vaccine") is None

    def test_raw_records_not_mutated(self, raw_records: List[Dict[str, Any]]) -> None:
        """Verify input rows are left untouched.

        Real-world significance:
        - The raw upload can be re-filtered or re-processed safely
        """
        before = copy.deepcopy(raw_records)
        normalize.process(raw_records)
        assert raw_records == before

    def test_enriched_records_are_read_only(self, raw_records: List[Dict[str, Any]]) -> None:
        record = normalize.process(raw_records).enriched[0]
        with pytest.raises(TypeError):
            record.fields["Sex"] = "Female"  # type: ignore[index]

    def test_idempotent(self, raw_records: List[Dict[str, Any]]) -> None:
        """Verify processing enriched records again changes nothing."""
        first = normalize.process(raw_records)
        second = normalize.process(first.enriched)

        assert second.errors == []
        assert [r.to_dict() for r in second.enriched] == [r.to_dict() for r in first.enriched]
        assert [r.record_id for r in second.enriched] == [r.record_id for r in first.enriched]

    def test_custom_date_fields(self) -> None:
        result = normalize.process(
            [{"Received": "20240101", "Date of onset": "junk"}], date_fields=["Received"]
        )
        record = result.enriched[0]
        assert record["Received"] == "2024-01-01"
        assert record["Date of onset"] == "junk"
        assert result.errors == []

    def test_warning_summary(self, raw_records: List[Dict[str, Any]]) -> None:
        summary = normalize.process(raw_records).warning_summary()
        assert summary is not None
        assert summary.startswith("Data Quality Warning: 1 issue(s) found.")
        assert "pending" in summary

    def test_empty_input_is_fatal(self) -> None:
        """Verify an empty dataset aborts normalization.

        Real-world significance:
        - An empty upload must not produce an empty dashboard
        """
        with pytest.raises(normalize.EmptyDatasetError):
            normalize.process([])

    def test_empty_dataset_error_is_value_error(self) -> None:
        assert issubclass(normalize.EmptyDatasetError, ValueError)


@pytest.mark.unit
class TestNormalizeSex:
    @pytest.mark.parametrize(
        "raw, expected",
        [("M", "Male"), ("male", "Male"), (" F", "Female"), ("x", "Unknown"), (None, "Unknown"), (1, "Unknown")],
    )
    def test_first_letter(self, raw, expected: str) -> None:
        assert normalize.normalize_sex(raw) == expected
