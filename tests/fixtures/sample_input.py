"""Mock data generators for test fixtures and sample input.

This module provides utilities to generate realistic test data:
- Raw records as handed over by the spreadsheet loader
- DataFrames with export-style headers for loader tests
- Spreadsheet files written to disk for end-to-end runs

The default records are small on purpose so expected aggregates can be
worked out by hand:

====  =========  ============  ===========  =========================
Row   Serious    Age           Onset        Notes
====  =========  ============  ===========  =========================
1     Yes        30 Years      12/01/2023   report date as serial
2     No / Yes   6 Months      two dates    comma-bearing vaccine name
3     No         70 years      2024-02-10   onset before vaccination,
                                            unparseable notification
4     (blank)    (blank)       (blank)      no record id
====  =========  ============  ===========  =========================
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import pandas as pd


def create_raw_records() -> List[Dict[str, Any]]:
    """Generate four raw line-listing rows covering the common data issues.

    Returns
    -------
    List[Dict[str, Any]]
        Rows keyed by canonical AEFI column names.
    """
    return [
        {
            "Worldwide unique id": "AEFI-001",
            "Vaccine": "BCG; OPV",
            "Adverse event": "Fever, Rash",
            "Serious": "Yes",
            "Reason for serious": "Hospitalization",
            "Outcome": "Recovered",
            "Age": 30,
            "Age unit": "Years",
            "Sex": "M",
            "Date of birth": None,
            "Date of vaccination": "2023-01-10",
            "Date of onset": "12/01/2023",
            "Date of notification": "20230115",
            "Date of report": 44942,
            "Patient state or province": "Ontario",
            "Created by organisation level 3": "Region A",
        },
        {
            "Worldwide unique id": "AEFI-002",
            "Vaccine": "Measles, Mumps, Rubella",
            "Adverse event": "Fever",
            "Serious": "No\nYes",
            "Reason for serious": "Life threatening",
            "Outcome": "Recovering",
            "Age": 6,
            "Age unit": "Months",
            "Sex": "female",
            "Date of birth": "2022-09-01",
            "Date of vaccination": "2023-03-01",
            "Date of onset": "2023-03-20\n2023-03-05",
            "Date of notification": "2023-04-30",
            "Date of report": "2023-05-02",
            "Patient state or province": "Quebec",
            "Created by organisation level 3": "Region B",
        },
        {
            "Worldwide unique id": "AEFI-003",
            "Vaccine": "OPV",
            "Adverse event": None,
            "Serious": "No",
            "Reason for serious": None,
            "Outcome": None,
            "Age": "70",
            "Age unit": "years",
            "Sex": None,
            "Date of birth": None,
            "Date of vaccination": "2024-02-16",
            "Date of onset": "2024-02-10",
            "Date of notification": "pending",
            "Date of report": "2024-03-01",
            "Patient state or province": "Ontario",
            "Created by organisation level 3": "Region A",
        },
        {
            "Worldwide unique id": None,
            "Vaccine": None,
            "Adverse event": None,
            "Serious": None,
            "Reason for serious": None,
            "Outcome": None,
            "Age": None,
            "Age unit": None,
            "Sex": "x",
            "Date of birth": None,
            "Date of vaccination": None,
            "Date of onset": None,
            "Date of notification": None,
            "Date of report": None,
            "Patient state or province": None,
            "Created by organisation level 3": None,
        },
    ]


def create_export_dataframe() -> pd.DataFrame:
    """Generate the default rows with export-style (non-canonical) headers.

    Real-world significance:
    - Reporting systems upper-case headers or use underscores
    - The loader must map these back onto canonical names
    """
    renames = {
        "Worldwide unique id": "WORLDWIDE_UNIQUE_ID",
        "Date of onset": "DATE OF ONSET",
        "Age unit": "age-unit",
        "Patient state or province": "Patient State or Province ",
    }
    df = pd.DataFrame(create_raw_records())
    return df.rename(columns=renames)


def write_line_listing_xlsx(
    path: Path, sheet_name: str = "AEFI Line Listing", extra_sheet: bool = True
) -> Path:
    """Write the export-style rows to an Excel workbook.

    Parameters
    ----------
    path : Path
        Destination .xlsx file.
    sheet_name : str, optional
        Name of the sheet holding the rows.
    extra_sheet : bool, optional
        If True, a "Summary" sheet is written before the line listing so
        sheet detection is exercised.
    """
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        if extra_sheet:
            pd.DataFrame({"Note": ["Generated for tests"]}).to_excel(
                writer, sheet_name="Summary", index=False
            )
        create_export_dataframe().to_excel(writer, sheet_name=sheet_name, index=False)
    return path


def write_line_listing_csv(path: Path) -> Path:
    """Write the export-style rows to a CSV file."""
    create_export_dataframe().to_csv(path, index=False)
    return path
