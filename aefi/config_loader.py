"""Configuration loading utilities for the AEFI summary tool.

Provides a centralized way to load and validate the parameters.yaml
configuration file used by the loader, the normalization pipeline and the
aggregation step.
"""

from numbers import Real
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .column_mapper import DEFAULT_COLUMNS

SCRIPT_DIR = Path(__file__).resolve().parent
DEFAULT_CONFIG_PATH = SCRIPT_DIR.parent / "config" / "parameters.yaml"


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load and parse the parameters.yaml configuration file.

    Automatically validates the configuration after loading. Raises
    clear exceptions if validation fails, enabling fail-fast behavior
    for infrastructure errors.

    Parameters
    ----------
    config_path : Path, optional
        Path to the configuration file. If not provided, uses the default
        location (config/parameters.yaml in the project root).

    Returns
    -------
    Dict[str, Any]
        Parsed and validated YAML configuration as a nested dictionary.

    Raises
    ------
    FileNotFoundError
        If the configuration file does not exist.
    yaml.YAMLError
        If the configuration file is invalid YAML.
    ValueError
        If the configuration fails validation (see validate_config).
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    validate_config(config)
    return config


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def validate_config(config: Dict[str, Any]) -> None:
    """Validate the entire configuration for consistency and required values.

    Parameters
    ----------
    config : Dict[str, Any]
        Configuration dictionary (result of load_config).

    Raises
    ------
    ValueError
        If a configured value has the wrong type or range.

    Notes
    -----
    **Validation checks:**

    - **Columns:** every ``columns.*`` key must name a known column and
      map to a non-empty string
    - **Date fields:** ``date_fields`` must be a list of strings
    - **Gap bands:** ``gap_bands`` must be strictly increasing positive
      numbers; the open-ended last band is implied
    - **Reporting:** ``reporting.top_n`` positive integer,
      ``reporting.locale`` string
    - **Input:** ``input.sheet_keywords`` list of strings,
      ``input.column_match_threshold`` number between 0 and 100
    - **Vaccine dictionary:** ``vaccine_dictionary.path`` string

    Missing sections fall back to module defaults and are not errors.
    """
    # Validate column names
    columns = config.get("columns", {})
    if not isinstance(columns, dict):
        raise ValueError(f"columns must be a mapping, got {type(columns).__name__}")
    for key, name in columns.items():
        if key not in DEFAULT_COLUMNS:
            raise ValueError(
                f"columns.{key} is not a known column; expected one of "
                f"{sorted(DEFAULT_COLUMNS)}"
            )
        if not isinstance(name, str) or not name.strip():
            raise ValueError(f"columns.{key} must be a non-empty string, got {name!r}")

    # Validate date fields
    date_fields = config.get("date_fields")
    if date_fields is not None:
        if not isinstance(date_fields, list) or not all(
            isinstance(name, str) for name in date_fields
        ):
            raise ValueError("date_fields must be a list of column names")

    # Validate gap bands
    gap_bands = config.get("gap_bands")
    if gap_bands is not None:
        if not isinstance(gap_bands, list) or not gap_bands:
            raise ValueError("gap_bands must be a non-empty list of numbers")
        if not all(_is_number(bound) and bound > 0 for bound in gap_bands):
            raise ValueError(f"gap_bands must contain positive numbers, got {gap_bands}")
        if any(later <= earlier for earlier, later in zip(gap_bands, gap_bands[1:])):
            raise ValueError(f"gap_bands must be strictly increasing, got {gap_bands}")

    # Validate reporting config
    reporting = config.get("reporting", {})
    top_n = reporting.get("top_n", 10)
    if not isinstance(top_n, int) or isinstance(top_n, bool):
        raise ValueError(f"reporting.top_n must be an integer, got {type(top_n).__name__}")
    if top_n <= 0:
        raise ValueError(f"reporting.top_n must be positive, got {top_n}")

    locale = reporting.get("locale", "en")
    if not isinstance(locale, str):
        raise ValueError(f"reporting.locale must be a string, got {type(locale).__name__}")

    # Validate input config
    input_config = config.get("input", {})
    keywords = input_config.get("sheet_keywords", [])
    if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
        raise ValueError("input.sheet_keywords must be a list of strings")

    threshold = input_config.get("column_match_threshold", 90)
    if not _is_number(threshold) or not 0 <= threshold <= 100:
        raise ValueError(
            f"input.column_match_threshold must be a number between 0 and 100, got {threshold!r}"
        )

    # Validate vaccine dictionary config
    dictionary_config = config.get("vaccine_dictionary", {})
    dictionary_path = dictionary_config.get("path")
    if dictionary_path is not None and not isinstance(dictionary_path, str):
        raise ValueError(
            f"vaccine_dictionary.path must be a string, got {type(dictionary_path).__name__}"
        )
