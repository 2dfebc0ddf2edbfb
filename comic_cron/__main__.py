"""Command-line entry point: run every comic source once."""

import argparse
import sys

from .config import Config
from .errors import PersistenceError
from .logging_config import create_execution_logger, setup_structured_logging
from .runner import run_once


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Notify new xkcd, QC and SMBC comics to webhooks"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--state", help="Override the checkpoint file path")
    parser.add_argument("--webhooks", help="Override the webhooks file path")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        config = Config()
    except ValueError as e:
        setup_structured_logging("DEBUG" if args.verbose else "INFO")
        create_execution_logger("main").error(
            f"Invalid configuration: {e}", error=str(e)
        )
        return 1
    if args.state:
        config.state_file = args.state
    if args.webhooks:
        config.webhooks_file = args.webhooks
    setup_structured_logging("DEBUG" if args.verbose else config.log_level)
    logger = create_execution_logger("main")

    try:
        report = run_once(config, execution_id=logger.execution_id)
    except PersistenceError as e:
        logger.error(f"Error loading state: {e}", error=str(e))
        return 1
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}", error=str(e))
        return 1

    return 0 if report.success else 1


if __name__ == "__main__":
    sys.exit(main())
