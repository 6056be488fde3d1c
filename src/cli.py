"""Command-line interface for DR form extraction and database setup.

Provides subcommands for extracting one DR form, batch processing a
folder of photographs into CSV, and creating (and seeding) the
database.
"""

import argparse
import csv
import json
import sys
import time
from pathlib import Path

from src.db.database import Database
from src.db.seed import seed_demo_data
from src.ocr.dr_form_processor import DRFormProcessor, ProcessResult
from src.utils.config import load_config
from src.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

_SUPPORTED_EXTENSIONS = ("*.png", "*.jpg", "*.jpeg", "*.tiff", "*.tif", "*.webp")
_META_COLUMNS = [
    "filename",
    "status",
    "processing_time_s",
    "male_voters",
    "female_voters",
    "wasted_ballots",
    "total_voters",
    "error",
]


def _find_images(input_dir: Path) -> list[Path]:
    """Find all supported image files in a directory.

    Args:
        input_dir: Directory to scan for DR form photographs.

    Returns:
        Sorted list of image file paths.
    """
    files: list[Path] = []
    for ext in _SUPPORTED_EXTENSIONS:
        files.extend(input_dir.glob(ext))
        files.extend(input_dir.glob(ext.upper()))
    return sorted(set(files))


def to_payload(outcome: ProcessResult) -> dict[str, object]:
    """Render an extraction outcome in the text-extraction wire format."""
    stats = outcome.voter_stats
    return {
        "results": [
            {"candidateName": r.candidate_name, "votes": r.votes}
            for r in outcome.results
        ],
        "voterStats": {
            "maleVoters": stats.male_voters,
            "femaleVoters": stats.female_voters,
            "wastedBallots": stats.wasted_ballots,
            "totalVoters": stats.total_voters,
        },
        "success": outcome.success,
        "error": outcome.error,
    }


def process_folder(
    input_dir: Path,
    output_csv: Path,
    verbose: bool = False,
) -> dict[str, int]:
    """Extract every DR form in a folder and export results to CSV.

    Args:
        input_dir: Directory containing DR form photographs.
        output_csv: Path for the output CSV file.
        verbose: Whether to print per-file progress.

    Returns:
        Summary dict with total, successful, and failed counts.
    """
    config = load_config()
    processor = DRFormProcessor(config, allow_local_files=True)

    files = _find_images(input_dir)
    if not files:
        logger.warning("No images found in %s", input_dir)
        return {"total": 0, "successful": 0, "failed": 0}

    logger.info("Found %d images to process", len(files))

    rows: list[dict[str, object]] = []
    successful = 0
    failed = 0

    for i, file_path in enumerate(files, 1):
        if verbose:
            print(f"Processing [{i}/{len(files)}]: {file_path.name}")

        start_time = time.time()
        outcome = processor.process(str(file_path))
        row = _result_row(file_path.name, outcome)
        row["processing_time_s"] = round(time.time() - start_time, 2)
        rows.append(row)
        if outcome.success:
            successful += 1
        else:
            logger.error("Failed to extract %s: %s", file_path.name, outcome.error)
            failed += 1

    _write_csv(rows, output_csv)
    logger.info("Results written to %s", output_csv)

    summary = {"total": len(files), "successful": successful, "failed": failed}
    _print_summary(summary, output_csv)
    return summary


def _result_row(filename: str, outcome: ProcessResult) -> dict[str, object]:
    """Flatten one extraction outcome into a CSV row.

    Candidate vote counts become one column per candidate name.
    """
    stats = outcome.voter_stats
    row: dict[str, object] = {
        "filename": filename,
        "status": "success" if outcome.success else "failed",
        "male_voters": stats.male_voters,
        "female_voters": stats.female_voters,
        "wasted_ballots": stats.wasted_ballots,
        "total_voters": stats.total_voters,
        "error": outcome.error,
    }
    if outcome.success:
        for result in outcome.results:
            row[result.candidate_name] = result.votes
    return row


def _write_csv(rows: list[dict[str, object]], output_path: Path) -> None:
    """Write extraction rows to a CSV file.

    Args:
        rows: List of row dictionaries.
        output_path: Path for the output CSV file.
    """
    if not rows:
        return

    all_keys: set[str] = set()
    for r in rows:
        all_keys.update(r.keys())

    candidate_columns = sorted(all_keys - set(_META_COLUMNS))
    columns = [c for c in _META_COLUMNS if c in all_keys] + candidate_columns

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=columns, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(rows)


def _print_summary(summary: dict[str, int], output_csv: Path) -> None:
    """Print batch processing summary to stdout."""
    print(f"\n{'=' * 50}")
    print("DR Form Batch Complete")
    print(f"{'=' * 50}")
    print(f"Total:      {summary['total']}")
    print(f"Successful: {summary['successful']}")
    print(f"Failed:     {summary['failed']}")
    print(f"Output:     {output_csv}")


def extract_single(file_path: Path) -> dict[str, object]:
    """Extract one DR form and return the wire-format payload.

    Args:
        file_path: Path to the DR form photograph.

    Returns:
        Dictionary with results, voterStats, success and error.
    """
    config = load_config()
    processor = DRFormProcessor(config, allow_local_files=True)
    return to_payload(processor.process(str(file_path)))


def init_db(seed: bool = False) -> bool:
    """Create the database tables, optionally loading the demo data.

    Returns:
        Whether demo data was inserted.
    """
    config = load_config()
    database = Database(config.database)
    database.create_all()
    logger.info("Database tables ready")
    if seed:
        return seed_demo_data(database)
    return False


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(
        description="VoteSnap DR form tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    batch_parser = subparsers.add_parser("batch", help="Process a folder of DR forms")
    batch_parser.add_argument(
        "input_dir", type=Path, help="Input directory with DR form images"
    )
    batch_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("results.csv"),
        help="Output CSV file (default: results.csv)",
    )
    batch_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Verbose output"
    )

    single_parser = subparsers.add_parser("extract", help="Process a single DR form")
    single_parser.add_argument("file", type=Path, help="DR form image to process")
    single_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")

    db_parser = subparsers.add_parser("init-db", help="Create the database tables")
    db_parser.add_argument(
        "--seed", action="store_true", help="Load the demo stations and results"
    )

    args = parser.parse_args(argv)

    setup_logging()

    if args.command == "batch":
        if not args.input_dir.is_dir():
            print(f"Error: {args.input_dir} is not a directory", file=sys.stderr)
            sys.exit(1)
        process_folder(args.input_dir, args.output, args.verbose)
    elif args.command == "extract":
        if not args.file.exists():
            print(f"Error: {args.file} does not exist", file=sys.stderr)
            sys.exit(1)
        result = extract_single(args.file)
        output_str = json.dumps(result, indent=2)
        if args.output:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_text(output_str)
            print(f"Output written to {args.output}")
        else:
            print(output_str)
    elif args.command == "init-db":
        seeded = init_db(args.seed)
        print("Database initialised" + (" with demo data" if seeded else ""))
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()
