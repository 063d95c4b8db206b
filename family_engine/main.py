#!/usr/bin/env python3
"""Command-line entry point for the contract family engine.

Reads a JSON document of raw agreement records, assembles contract families
and writes the result as JSON:
- {"agreements": [...]} documents and bare record lists are both accepted
- --family prints the per-node governance annotation for one family
- Environment-based configuration (.env supported)
"""

import argparse
import os
import sys
from pathlib import Path
from typing import Any, List, Optional

import msgspec
from dotenv import load_dotenv
from loguru import logger

from family_engine.config import load_config
from family_engine.error_handling import FamilyEngineError
from family_engine.logging_config import setup_logging
from family_engine.orchestrator import create_orchestrator, find_family


def load_agreements(path: Path) -> List[Any]:
    """Read raw agreement records from a JSON file.

    Args:
        path: JSON file holding {"agreements": [...]} or a list of records

    Returns:
        List of raw records

    Raises:
        FamilyEngineError: If the file cannot be read or has the wrong shape
    """
    try:
        document = msgspec.json.decode(path.read_bytes())
    except OSError as e:
        raise FamilyEngineError(f"Cannot read input file {path}: {e}") from e
    except msgspec.DecodeError as e:
        raise FamilyEngineError(f"Input file {path} is not valid JSON: {e}") from e

    if isinstance(document, dict):
        document = document.get("agreements")
    if not isinstance(document, list):
        raise FamilyEngineError(
            f"Input file {path} must hold a list of agreements or an 'agreements' key"
        )
    return document


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="Assemble contract families from raw agreement records",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Assemble every family in a data export
  python -m family_engine.main --input sample_data/agreements.json

  # Write the result to a file with readable indentation
  python -m family_engine.main --input data.json --output families.json --pretty

  # Show inherited/overridden governance for one family
  python -m family_engine.main --input data.json --family MSA-99119
        """
    )

    parser.add_argument(
        "--input",
        type=str,
        required=True,
        help="JSON file with raw agreement records"
    )

    parser.add_argument(
        "--output",
        type=str,
        help="Write JSON output to this file instead of stdout"
    )

    parser.add_argument(
        "--family",
        type=str,
        help="Only output the per-contract governance annotation of this family"
    )

    parser.add_argument(
        "--pretty",
        action="store_true",
        help="Indent JSON output"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.getenv("LOG_LEVEL", "WARNING"),
        help="Logging level (default: WARNING)"
    )

    parser.add_argument(
        "--log-dir",
        type=str,
        default=os.getenv("LOG_DIR"),
        help="Directory for log files (default: console only)"
    )

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the command-line tool.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    # Load environment variables from .env file
    load_dotenv()

    args = parse_arguments(argv)
    setup_logging(log_dir=args.log_dir, level=args.log_level)

    try:
        agreements = load_agreements(Path(args.input))
        orchestrator = create_orchestrator(load_config())
        result = orchestrator.process(agreements)

        if args.family:
            payload: Any = orchestrator.annotate(find_family(result, args.family))
        else:
            payload = result

        output = msgspec.json.encode(payload)
        if args.pretty:
            output = msgspec.json.format(output, indent=2)

        if args.output:
            Path(args.output).write_bytes(output + b"\n")
            logger.info(f"Output written to {args.output}")
        else:
            sys.stdout.write(output.decode("utf-8") + "\n")

        if result.anomalies:
            logger.warning(f"{len(result.anomalies)} anomalies reported during assembly")

        return 0

    except FamilyEngineError as e:
        logger.error(f"Assembly failed: {e}")
        return 1

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
