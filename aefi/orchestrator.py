"""AEFI Summary Orchestrator.

Runs the normalization and aggregation core over one AEFI line listing:
load the spreadsheet, normalize every record, train the vaccine dictionary,
compute the dashboard aggregates and write them as a JSON artifact.

**Error Handling Philosophy:**

- **Data-quality issues** (unparseable dates, invalid ages, negative gaps)
  are warn-and-continue: they are logged in full and summarized on the
  console, and the run still succeeds.
- **Dictionary persistence failures** are logged and do not abort the run.
- **Infrastructure errors** (missing files, unsupported file types, config
  errors) and an empty dataset always fail-fast with exit code 1.

**Exit Codes:**
- 0: Run completed successfully
- 1: Run failed (infrastructure error or empty dataset)
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from . import column_mapper, loader, normalize, summary, vaccines
from .config_loader import load_config
from .data_models import NormalizationResult

SCRIPT_DIR = Path(__file__).resolve().parent
ROOT_DIR = SCRIPT_DIR.parent
DEFAULT_INPUT_DIR = ROOT_DIR / "input"
DEFAULT_OUTPUT_DIR = ROOT_DIR / "output"
DEFAULT_CONFIG_DIR = ROOT_DIR / "config"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Summarize an AEFI line listing into dashboard aggregates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s aefi_line_listing.xlsx
  %(prog)s export.csv --output /tmp/aefi
        """,
    )

    parser.add_argument(
        "input_file",
        type=str,
        help="Name of the input file (e.g., aefi_line_listing.xlsx)",
    )
    parser.add_argument(
        "--input",
        type=Path,
        default=DEFAULT_INPUT_DIR,
        dest="input_dir",
        help=f"Input directory (default: {DEFAULT_INPUT_DIR})",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=DEFAULT_OUTPUT_DIR,
        dest="output_dir",
        help=f"Output directory (default: {DEFAULT_OUTPUT_DIR})",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_DIR,
        dest="config_dir",
        help=f"Config directory (default: {DEFAULT_CONFIG_DIR})",
    )

    return parser.parse_args(argv)


def validate_args(args: argparse.Namespace) -> None:
    """Validate command-line arguments and raise errors if invalid."""
    if args.input_file and not (args.input_dir / args.input_file).exists():
        raise FileNotFoundError(
            f"Input file not found: {args.input_dir / args.input_file}"
        )


def configure_logging(output_dir: Path, run_id: str) -> Path:
    """Configure file logging for the run.

    Parameters
    ----------
    output_dir : Path
        Root output directory where logs subdirectory will be created.
    run_id : str
        Unique run identifier used in log filename.

    Returns
    -------
    Path
        Path to the created log file.
    """
    log_dir = output_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / f"aefi_{run_id}.log"

    handler = logging.FileHandler(log_path, encoding="utf-8")
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(handler)

    return log_path


def print_header(input_file: str) -> None:
    """Print the run header."""
    print()
    print("🚀 Starting AEFI Summary")
    print(f"🗂️  Input File: {input_file}")
    print()


def print_step(step_num: int, description: str) -> None:
    """Print a step header."""
    print()
    print(f"{'=' * 60}")
    print(f"Step {step_num}: {description}")
    print(f"{'=' * 60}")


def print_step_complete(step_num: int, description: str, duration: float) -> None:
    """Print step completion message."""
    print(f"✅ Step {step_num}: {description} complete in {duration:.1f} seconds.")


def resolve_dictionary_path(config: Dict[str, Any], output_dir: Path) -> Path:
    """Resolve the vaccine dictionary file, relative paths under output_dir."""
    configured = config.get("vaccine_dictionary", {}).get(
        "path", "state/vaccine_dictionary.json"
    )
    path = Path(configured)
    return path if path.is_absolute() else output_dir / path


def run_step_1_load(
    input_path: Path, config: Dict[str, Any]
) -> Tuple[List[Dict[str, Any]], Dict[str, str]]:
    """Step 1: Load the line listing."""
    print_step(1, "Loading line listing")

    input_config = config.get("input", {})
    columns = column_mapper.resolve_columns(config.get("columns"))
    records, column_map = loader.load_records(
        input_path,
        sheet_keywords=input_config.get("sheet_keywords", loader.DEFAULT_SHEET_KEYWORDS),
        canonical_columns=column_mapper.canonical_columns(columns),
        threshold=input_config.get("column_match_threshold", column_mapper.THRESHOLD),
    )
    print(f"📥 Rows loaded:            {len(records)}")
    if column_map:
        print(f"🔤 Columns renamed:        {len(column_map)}")
    return records, column_map


def run_step_2_normalize(
    records: List[Dict[str, Any]], config: Dict[str, Any]
) -> NormalizationResult:
    """Step 2: Normalize records."""
    print_step(2, "Normalizing records")

    columns = column_mapper.resolve_columns(config.get("columns"))
    result = normalize.process(
        records,
        record_id_field=columns["record_id"],
        date_fields=config.get("date_fields", column_mapper.DATE_FIELDS),
        age_field=columns["age"],
        age_unit_field=columns["age_unit"],
        sex_field=columns["sex"],
        multi_value_fields=(
            columns["serious"],
            columns["adverse_event"],
            columns["outcome"],
        ),
    )

    warning = result.warning_summary()
    if warning:
        print(f"⚠️  {warning}")
    return result


def run_step_3_train_dictionary(
    result: NormalizationResult, config: Dict[str, Any], output_dir: Path
) -> int:
    """Step 3: Train the vaccine dictionary.

    Returns:
        Dictionary size after training.
    """
    print_step(3, "Training vaccine dictionary")

    store = vaccines.JsonFileDictionaryStore(
        resolve_dictionary_path(config, output_dir)
    )
    dictionary = vaccines.load_dictionary(store)
    trained = vaccines.train_dictionary(
        result.enriched,
        dictionary,
        store,
        field=column_mapper.resolve_columns(config.get("columns"))["vaccine"],
    )
    print(f"💉 Dictionary terms:       {len(dictionary)} → {len(trained)}")
    return len(trained)


def run_step_4_summarize(
    result: NormalizationResult,
    config: Dict[str, Any],
    output_dir: Path,
    run_id: str,
    column_map: Dict[str, str],
    dictionary_size: int,
) -> Path:
    """Step 4: Aggregate and write the summary artifact."""
    print_step(4, "Aggregating")

    aggregates = summary.build_summary(result.enriched, config)
    artifact_path = summary.write_artifact(
        output_dir / "artifacts",
        run_id,
        result,
        aggregates,
        column_map=column_map,
        dictionary_size=dictionary_size,
    )
    print(f"📄 Summary artifact: {artifact_path}")
    return artifact_path


def print_summary(
    step_times: list[tuple[str, float]],
    total_duration: float,
    total_records: int,
    total_issues: int,
) -> None:
    """Print the run summary."""
    print()
    print(f"{'=' * 60}")
    print("🎉 AEFI summary completed successfully!")
    print(f"{'=' * 60}")
    print()
    print("🕒 Time Summary:")
    for step_name, duration in step_times:
        print(f"  - {step_name:<25} {duration:.1f}s")
    print(f"  - {'─' * 25} {'─' * 6}")
    print(f"  - {'Total Time':<25} {total_duration:.1f}s")
    print()
    print(f"📋 Records processed:      {total_records}")
    print(f"⚠️  Data quality issues:    {total_issues}")


def main(argv: Optional[List[str]] = None) -> int:
    """Run the AEFI summary orchestrator."""
    try:
        args = parse_args(argv)
        validate_args(args)
    except (ValueError, FileNotFoundError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    output_dir = args.output_dir.resolve()
    config_dir = args.config_dir.resolve()
    run_id = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")

    # Load configuration
    try:
        config = load_config(config_dir / "parameters.yaml")
    except (FileNotFoundError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print_header(args.input_file)
    log_path = configure_logging(output_dir, run_id)

    total_start = time.time()
    step_times = []

    try:
        # Step 1: Load
        step_start = time.time()
        records, column_map = run_step_1_load(args.input_dir / args.input_file, config)
        step_duration = time.time() - step_start
        step_times.append(("Loading", step_duration))
        print_step_complete(1, "Loading", step_duration)

        # Step 2: Normalize
        step_start = time.time()
        result = run_step_2_normalize(records, config)
        step_duration = time.time() - step_start
        step_times.append(("Normalization", step_duration))
        print_step_complete(2, "Normalization", step_duration)

        # Step 3: Dictionary training
        step_start = time.time()
        dictionary_size = run_step_3_train_dictionary(result, config, output_dir)
        step_duration = time.time() - step_start
        step_times.append(("Dictionary Training", step_duration))
        print_step_complete(3, "Dictionary training", step_duration)

        # Step 4: Aggregation
        step_start = time.time()
        run_step_4_summarize(
            result, config, output_dir, run_id, column_map, dictionary_size
        )
        step_duration = time.time() - step_start
        step_times.append(("Aggregation", step_duration))
        print_step_complete(4, "Aggregation", step_duration)

        total_duration = time.time() - total_start
        print_summary(
            step_times, total_duration, len(result.enriched), len(result.errors)
        )
        print(f"Log written to {log_path}")
        return 0

    except normalize.EmptyDatasetError as exc:
        print(f"\n❌ {exc}", file=sys.stderr)
        return 1
    except Exception as exc:
        print(f"\n❌ Run failed: {exc}", file=sys.stderr)
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
