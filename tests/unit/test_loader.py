"""Unit tests for loader module - reading AEFI line listings.

Tests cover:
- File type detection and unsupported extensions
- AEFI sheet detection in multi-sheet workbooks
- XLSX and CSV reading
- Conversion of blanks to None in raw records

Real-world significance:
- Exports usually arrive as workbooks with a summary sheet first
- NaN leaking into records would be counted as a category value
"""

from __future__ import annotations

import math
from pathlib import Path

import pandas as pd
import pytest

from aefi import loader, normalize
from tests.fixtures import sample_input


@pytest.mark.unit
class TestDetectFileType:
    def test_lowercases_extension(self, tmp_test_dir: Path) -> None:
        path = tmp_test_dir / "listing.XLSX"
        path.write_bytes(b"")
        assert loader.detect_file_type(path) == ".xlsx"

    def test_missing_file(self, tmp_test_dir: Path) -> None:
        with pytest.raises(FileNotFoundError):
            loader.detect_file_type(tmp_test_dir / "missing.xlsx")


@pytest.mark.unit
class TestFindAefiSheet:
    """Unit tests for find_aefi_sheet."""

    def test_prefers_line_listing_sheet(self) -> None:
        assert (
            loader.find_aefi_sheet(["Summary", "aefi_LINE_listing", "Notes"])
            == "aefi_LINE_listing"
        )

    def test_requires_every_keyword(self) -> None:
        assert loader.find_aefi_sheet(["AEFI summary", "Line list"]) == "AEFI summary"

    def test_no_sheets(self) -> None:
        assert loader.find_aefi_sheet([]) is None

    def test_custom_keywords(self) -> None:
        assert loader.find_aefi_sheet(["Sheet1", "Cases"], ["cases"]) == "Cases"


@pytest.mark.unit
class TestReadInput:
    """Unit tests for read_input."""

    def test_reads_aefi_sheet_from_workbook(self, tmp_test_dir: Path) -> None:
        """Verify the line listing is read even when it is not the first sheet."""
        path = sample_input.write_line_listing_xlsx(tmp_test_dir / "export.xlsx")
        df = loader.read_input(path)
        assert len(df) == 4
        assert "WORLDWIDE_UNIQUE_ID" in df.columns

    def test_falls_back_to_first_sheet(self, tmp_test_dir: Path) -> None:
        path = sample_input.write_line_listing_xlsx(
            tmp_test_dir / "export.xlsx", sheet_name="Data", extra_sheet=False
        )
        assert len(loader.read_input(path)) == 4

    def test_reads_csv(self, tmp_test_dir: Path) -> None:
        path = sample_input.write_line_listing_csv(tmp_test_dir / "export.csv")
        df = loader.read_input(path)
        assert len(df) == 4
        assert "Vaccine" in df.columns

    def test_unsupported_type(self, tmp_test_dir: Path) -> None:
        path = tmp_test_dir / "export.json"
        path.write_text("[]", encoding="utf-8")
        with pytest.raises(ValueError, match="Unsupported file type"):
            loader.read_input(path)


@pytest.mark.unit
class TestToRecords:
    def test_blanks_become_none(self) -> None:
        df = pd.DataFrame({"Age": [30.0, math.nan], "Sex": ["M", None]})
        records = loader.to_records(df)
        assert records == [{"Age": 30.0, "Sex": "M"}, {"Age": None, "Sex": None}]


@pytest.mark.unit
class TestLoadRecords:
    def test_headers_mapped(self, tmp_test_dir: Path) -> None:
        """Verify records come back keyed by canonical names.

        Real-world significance:
        - Downstream code only knows canonical column names
        """
        path = sample_input.write_line_listing_xlsx(tmp_test_dir / "export.xlsx")
        records, column_map = loader.load_records(path)

        assert column_map["WORLDWIDE_UNIQUE_ID"] == "Worldwide unique id"
        assert records[0]["Worldwide unique id"] == "AEFI-001"
        assert records[0]["Date of onset"] == "12/01/2023"
        assert records[3]["Worldwide unique id"] is None

    def test_numeric_compact_dates_normalize(self, tmp_test_dir: Path) -> None:
        """Verify a CSV column of YYYYMMDD numbers survives normalization.

        Real-world significance:
        - pandas infers such a column as numbers (float64 once a cell is
          blank), so the dates reach the normalizer as 20240216.0
        """
        path = tmp_test_dir / "compact.csv"
        pd.DataFrame(
            {
                "Worldwide unique id": ["A1", "A2", "A3"],
                "Date of onset": [20240216, None, 20240301],
            }
        ).to_csv(path, index=False)

        records, _ = loader.load_records(path)
        result = normalize.process(records)

        assert [record["Date of onset"] for record in result.enriched] == [
            "2024-02-16",
            None,
            "2024-03-01",
        ]
        assert result.errors == []
