"""Spreadsheet loading for AEFI line listings.

Reads a CSV or Excel export into raw records for the normalization
pipeline. The loader only decodes the file, picks the line-listing sheet and
renames headers onto the canonical AEFI columns; cell values are passed on
as decoded (strings, numbers, timestamps, None).

**Error handling:**

- Missing files and unsupported file types raise immediately.
- A CSV that cannot be decoded with any of the common encodings raises
  ValueError.
- An empty sheet is not an error here; the pipeline reports it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .column_mapper import AEFI_COLUMNS, THRESHOLD, map_columns

LOG = logging.getLogger(__name__)

EXCEL_EXTENSIONS = (".xlsx", ".xlsm")
CSV_ENCODINGS = ("utf-8-sig", "latin-1", "cp1252")
DEFAULT_SHEET_KEYWORDS = ("aefi", "line")


def detect_file_type(file_path: Path) -> str:
    """Detect file type by extension.

    Parameters
    ----------
    file_path : Path
        Path to the file to detect.

    Returns
    -------
    str
        File extension in lowercase (e.g., '.xlsx', '.csv').

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Input file not found: {file_path}")
    return file_path.suffix.lower()


def find_aefi_sheet(
    sheet_names: Sequence[str], keywords: Sequence[str] = DEFAULT_SHEET_KEYWORDS
) -> Optional[str]:
    """Pick the AEFI line-listing sheet of a workbook.

    Returns the first sheet whose lower-cased name contains every keyword,
    else the first sheet, else None for a workbook without sheets.

    Examples
    --------
    >>> find_aefi_sheet(["Summary", "AEFI Line Listing"])
    'AEFI Line Listing'
    >>> find_aefi_sheet(["Sheet1", "Sheet2"])
    'Sheet1'
    """
    lowered = [keyword.lower() for keyword in keywords]
    for name in sheet_names:
        if all(keyword in name.lower() for keyword in lowered):
            return name
    return sheet_names[0] if sheet_names else None


def read_input(
    file_path: Path, sheet_keywords: Sequence[str] = DEFAULT_SHEET_KEYWORDS
) -> pd.DataFrame:
    """Read a CSV or Excel line listing into a pandas DataFrame.

    Parameters
    ----------
    file_path : Path
        Path to the input file (CSV, XLSX or XLSM).
    sheet_keywords : Sequence[str], optional
        Keywords used to locate the line-listing sheet of a workbook.

    Returns
    -------
    pd.DataFrame
        Raw rows, one per case report.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file type is unsupported, the workbook has no sheets, or a
        CSV cannot be decoded with common encodings.
    """
    ext = detect_file_type(file_path)

    try:
        if ext in EXCEL_EXTENSIONS:
            with pd.ExcelFile(file_path, engine="openpyxl") as workbook:
                sheet = find_aefi_sheet(workbook.sheet_names, sheet_keywords)
                if sheet is None:
                    raise ValueError("Could not find AEFI line listing sheet.")
                df = workbook.parse(sheet)
            LOG.info("Reading sheet %r", sheet)
        elif ext == ".csv":
            # Try common encodings
            for enc in CSV_ENCODINGS:
                try:
                    # Let pandas sniff the delimiter
                    df = pd.read_csv(file_path, sep=None, encoding=enc, engine="python")
                    break
                except (UnicodeDecodeError, pd.errors.ParserError):
                    continue
            else:
                raise ValueError(
                    "Could not decode CSV with common encodings or delimiters"
                )
        else:
            raise ValueError(f"Unsupported file type: {ext}")

        LOG.info("Loaded %s rows from %s", len(df), file_path)
        return df

    except Exception as exc:
        LOG.error("Failed to read %s: %s", file_path, exc)
        raise


def to_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Convert a DataFrame into raw record mappings with None for blanks."""
    cleaned = df.astype(object).where(pd.notna(df), None)
    return cleaned.to_dict(orient="records")


def load_records(
    file_path: Path,
    sheet_keywords: Sequence[str] = DEFAULT_SHEET_KEYWORDS,
    canonical_columns: Sequence[str] = AEFI_COLUMNS,
    threshold: float = THRESHOLD,
) -> Tuple[List[Dict[str, Any]], Dict[str, str]]:
    """Read a line listing and return raw records with canonical headers.

    Returns
    -------
    tuple[list[dict], dict]
        Records in row order and the header renames that were applied.
    """
    df = read_input(file_path, sheet_keywords)
    mapped, column_map = map_columns(df, canonical_columns, threshold)
    for original, canonical in column_map.items():
        LOG.info("Mapped column %r to %r", original, canonical)
    return to_records(mapped), column_map
