#!/usr/bin/env python3
"""
Invoice Totals Engine - Debug Command Line.

Runs one invoice through acquisition, vendor classification, totals
extraction and reconciliation, and prints the report as JSON on stdout.
Logs go to stderr.

Usage:
    Command Line:
        python main.py --input invoice.pdf
        python main.py --input invoice.txt --text --show-lines
        python main.py --input invoice.pdf --line-items items.json --parser-total 107.00

    Python:
        from invoice_totals.pipeline import process_file
        report = process_file("invoice.pdf")

Author: ML Engineering Team
Version: 1.0.0
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, List, Optional

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import ConfigurationManager
from invoice_totals.normalizers import parse_cents
from invoice_totals.utils.exceptions import InputError
from invoice_totals.utils.logger import get_logger, setup_logger_from_config


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        description="Invoice Totals Engine - extract vendor and totals with evidence",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    Process a PDF:
        python main.py --input invoice.pdf

    Process pre-extracted text and show the interesting lines:
        python main.py --input invoice.txt --text --show-lines

    Reconcile against parsed line items:
        python main.py --input invoice.pdf --line-items '[{"total_cents": 5000}]'
        """
    )

    parser.add_argument(
        "--input", "-i",
        type=str,
        required=True,
        help="Invoice file (PDF or image, or text with --text)"
    )

    parser.add_argument(
        "--text",
        action="store_true",
        help="Treat the input file as already-extracted text"
    )

    parser.add_argument(
        "--line-items",
        type=str,
        default=None,
        help="Line items as a JSON list, or a path to a JSON file"
    )

    parser.add_argument(
        "--parser-total",
        type=str,
        default=None,
        help="Total reported by a vendor parser, e.g. 107.00"
    )

    parser.add_argument(
        "--show-lines",
        action="store_true",
        help="Include total/tax/fee lines with context in the report"
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to custom configuration file"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    return parser.parse_args(argv)


def load_line_items(value: Optional[str]) -> List[Any]:
    """
    Read line items from inline JSON or a JSON file.

    Raises:
        InputError: If the value is neither valid JSON nor a readable JSON file.
    """
    if not value:
        return []

    path = Path(value)
    try:
        raw = path.read_text(encoding='utf-8') if path.is_file() else value
        items = json.loads(raw)
    except (OSError, ValueError) as e:
        raise InputError(f"Could not read line items: {e}")

    if not isinstance(items, list):
        raise InputError("Line items must be a JSON list")
    return items


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function - entry point for command-line execution.

    Returns:
        Exit code (0 for success, 1 for input errors).
    """
    args = parse_arguments(argv)

    ConfigurationManager(args.config)
    setup_logger_from_config(level="DEBUG" if args.debug else None, stream=sys.stderr)
    logger = get_logger(__name__)

    from invoice_totals.pipeline import process_file

    try:
        line_items = load_line_items(args.line_items)

        parser_total_cents = 0
        if args.parser_total:
            parsed = parse_cents(args.parser_total)
            if parsed is None:
                raise InputError(f"Invalid parser total: {args.parser_total}")
            parser_total_cents = parsed

        report = process_file(
            args.input,
            line_items=line_items,
            parser_total_cents=parser_total_cents,
            as_text=args.text
        )

    except InputError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user", file=sys.stderr)
        return 130

    output = report.to_dict()
    if not args.show_lines:
        output.pop('interesting_lines', None)

    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
