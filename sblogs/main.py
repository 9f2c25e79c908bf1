#!/usr/bin/env python3
"""
sblogs - Main Entry Point
Run the log viewer for systemd services or docker containers
"""
import argparse
import logging
import sys
from typing import List, Optional

from pydantic import ValidationError

from sblogs.config import load_settings
from sblogs.log_setup import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sblogs",
        description="Page through systemd service or docker container logs",
    )
    parser.add_argument("source", choices=["services", "containers"],
                        help="Which kind of logs to browse")
    parser.add_argument("--debug", action="store_true",
                        help="Write debug records to the log file")
    parser.add_argument("--env-file", default=None,
                        help="Read SBLOGS_* settings from this .env file")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.env_file)
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return 2

    level = "DEBUG" if args.debug else settings.log_level
    log_path = configure_logging(settings.log_directory, level)
    logger.info(f"sblogs starting: source={args.source} page_size={settings.page_size}")

    # Imported late so --help stays fast
    from sblogs.UI import run_app

    print(f"Starting sblogs ({args.source})...")
    print("Enter to open, Esc to go back, PgUp/PgDn to page, 'f' to follow, 't' for timestamps, 'q' to quit")
    print(f"Diagnostics are written to {log_path}")
    print("-" * 80)

    try:
        run_app(args.source, settings)
    except KeyboardInterrupt:
        print("\nsblogs terminated by user")
    except Exception as e:
        logger.exception("Log viewer crashed")
        print(f"\nError running sblogs: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
