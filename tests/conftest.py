"""Shared pytest fixtures for unit and integration tests.

This module provides:
- Temporary directory fixtures for file I/O testing
- Raw and enriched sample records
- Configuration fixtures for parameter testing
"""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Any, Dict, Generator, List

import pytest
import yaml

from aefi import normalize
from aefi.data_models import EnrichedRecord
from tests.fixtures import sample_input


@pytest.fixture
def tmp_test_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that's cleaned up after each test.

    Real-world significance:
    - Isolates file I/O tests from each other
    - Prevents test artifacts (logs, dictionaries) from polluting the file system

    Yields
    ------
    Path
        Absolute path to temporary directory (automatically deleted after test)
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def raw_records() -> List[Dict[str, Any]]:
    """Provide a small line listing as decoded by the loader.

    Real-world significance:
    - Mixes date layouts, multi-valued cells and age units the way real
      exports do
    - Includes one row with an unparseable date and one without an id
    """
    return sample_input.create_raw_records()


@pytest.fixture
def enriched_records(raw_records: List[Dict[str, Any]]) -> List[EnrichedRecord]:
    """Provide the normalized form of ``raw_records``."""
    return normalize.process(raw_records).enriched


@pytest.fixture
def default_config() -> Dict[str, Any]:
    """Provide a minimal valid configuration for testing.

    Returns
    -------
    Dict[str, Any]
        Configuration dict with all standard sections
    """
    return {
        "columns": {
            "record_id": "Worldwide unique id",
            "region": "Created by organisation level 3",
            "province": "Patient state or province",
            "vaccine": "Vaccine",
            "adverse_event": "Adverse event",
            "serious": "Serious",
            "age": "Age",
            "age_unit": "Age unit",
            "sex": "Sex",
            "outcome": "Outcome",
            "vaccination_date": "Date of vaccination",
            "onset_date": "Date of onset",
            "notification_date": "Date of notification",
            "report_date": "Date of report",
        },
        "date_fields": [
            "Date of birth",
            "Date of vaccination",
            "Date of onset",
            "Date of notification",
            "Date of report",
        ],
        "gap_bands": [2, 7, 30, 90],
        "reporting": {"top_n": 10, "locale": "en"},
        "input": {"sheet_keywords": ["aefi", "line"], "column_match_threshold": 90},
        "vaccine_dictionary": {"path": "state/vaccine_dictionary.json"},
    }


@pytest.fixture
def config_file(tmp_test_dir: Path, default_config: Dict[str, Any]) -> Path:
    """Create a temporary parameters.yaml with the default configuration.

    Returns
    -------
    Path
        Path to created YAML config file
    """
    config_path = tmp_test_dir / "parameters.yaml"
    with open(config_path, "w") as f:
        yaml.dump(default_config, f)
    return config_path


@pytest.fixture
def run_id() -> str:
    """Provide a consistent run ID for testing artifact generation."""
    return "test_run_20250101_120000"
