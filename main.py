#!/usr/bin/env python3
"""
Invoice Confidence Parser - Main Entry Point.

Command-line access to the parsing pipeline. Reads OCR text and/or markup
from files, parses them, and writes the ParseOutcome as JSON.

Usage:
    Command Line:
        python main.py --text invoice.txt --output result.json
        python main.py --text invoice.txt --markup invoice.md --similarity 0.92

    Python:
        from main import run_parse
        outcome = run_parse("invoice.txt", "invoice.md")

Author: ML Engineering Team
Version: 1.0.0
"""

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

# Import project modules
from config import ConfigurationManager
from src.utils.exceptions import InputError, OCRServiceUnavailableError
from src.utils.helpers import ensure_directory
from src.utils.logger import get_logger, setup_logger_from_config

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_UPSTREAM_UNAVAILABLE = 3
EXIT_INTERRUPTED = 130


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        argv: Argument list, defaults to ``sys.argv[1:]``.

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        description="Invoice Confidence Parser",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    Parse OCR text:
        python main.py --text invoice.txt

    Parse text and markup, write the result:
        python main.py --text invoice.txt --markup invoice.md --output result.json
        """
    )

    # Input/Output arguments
    parser.add_argument(
        "--text", "-t",
        type=str,
        default=None,
        help="File containing the plain OCR text"
    )

    parser.add_argument(
        "--markup", "-m",
        type=str,
        default=None,
        help="File containing the markup rendering of the same page"
    )

    parser.add_argument(
        "--similarity", "-s",
        type=float,
        default=None,
        help="Similarity score between the two OCR renderings (0-1)"
    )

    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Output JSON file (default: print to stdout)"
    )

    # Processing options
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to custom configuration file"
    )

    # Logging options
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    return parser.parse_args(argv)


def initialize_system(args: argparse.Namespace) -> ConfigurationManager:
    """
    Initialize configuration and logging.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Initialized configuration manager.
    """
    config = ConfigurationManager(args.config)

    logger = setup_logger_from_config(level_override="DEBUG" if args.debug else None)

    logger.info("=" * 60)
    logger.info("INVOICE CONFIDENCE PARSER")
    logger.info("=" * 60)
    logger.info(f"Version: {config.get('project.version', '1.0.0')}")
    logger.info(f"Text: {args.text}")
    logger.info(f"Markup: {args.markup}")

    return config


def run_parse(
    text_path: Optional[str] = None,
    markup_path: Optional[str] = None,
    similarity_score: Optional[float] = None
) -> Dict[str, Any]:
    """
    Parse an invoice from files.

    No enhancement collaborator is configured on the command line.

    Args:
        text_path: File with the OCR text.
        markup_path: File with the markup rendering.
        similarity_score: Agreement between the two renderings.

    Returns:
        ParseOutcome as a dictionary.

    Raises:
        InputError: If the files are missing or both are blank.

    Example:
        >>> outcome = run_parse("invoice.txt")
        >>> outcome['parsed']['invoice_number']
        'INV-2024-001'
    """
    from src.pipeline import InvoicePipeline

    pipeline = InvoicePipeline()
    document = pipeline.input_handler.load_files(text_path, markup_path, similarity_score)
    return pipeline.run(document).to_dict()


def write_output(outcome: Dict[str, Any], output_path: Optional[str]) -> None:
    import json

    payload = json.dumps(outcome, indent=2, ensure_ascii=False)
    if not output_path:
        print(payload)
        return

    path = Path(output_path)
    ensure_directory(path.parent)
    path.write_text(payload, encoding="utf-8")
    get_logger(__name__).info(f"Result written to {path}")


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function - entry point for command-line execution.

    Returns:
        Exit code: 0 ok, 1 input error, 3 upstream unavailable, 130 interrupted.
    """
    try:
        args = parse_arguments(argv)

        if not args.text and not args.markup:
            print("Error: --text or --markup is required", file=sys.stderr)
            return EXIT_INPUT_ERROR

        initialize_system(args)
        logger = get_logger(__name__)

        outcome = run_parse(args.text, args.markup, args.similarity)
        write_output(outcome, args.output)

        logger.info("=" * 60)
        logger.info(
            f"Parse complete. Confidence {outcome['confidence']:.2f}, "
            f"strategy {outcome['strategy']}"
        )
        logger.info(outcome['action'])
        logger.info("=" * 60)

        return EXIT_OK

    except InputError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INPUT_ERROR

    except OCRServiceUnavailableError as e:
        print(f"Upstream unavailable: {e}", file=sys.stderr)
        return EXIT_UPSTREAM_UNAVAILABLE

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return EXIT_INTERRUPTED

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if "--debug" in sys.argv:
            import traceback
            traceback.print_exc()
        return EXIT_INPUT_ERROR


if __name__ == "__main__":
    sys.exit(main())
