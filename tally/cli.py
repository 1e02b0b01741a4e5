"""
CLI -- Operator interface for the analytics log

    tally stats --start 2025-01-01
    tally channel C123
    tally daily 2025-01-31
    tally partitions
    tally ingest events.ndjson
    tally help
"""

import argparse
import os
import sys
from pathlib import Path
from typing import Any, List, Mapping, Optional

from loguru import logger

from . import __version__
from .commands import COMMANDS, dispatch, register_all
from .config import ConfigManager, TallyConfig
from .errors import TallyError
from .logging import VALID_LEVELS, setup_logging
from .output import VALID_FORMATS
from .service import AnalyticsService


class TallyCLI:
    """Shared resources for command handlers."""

    def __init__(
        self,
        config: TallyConfig,
        commands: Mapping[str, Any] = COMMANDS,
        directory: Optional[str] = None,
        format: str = "auto"
    ):
        self.config = config
        self.commands = commands
        self.directory = directory
        self.format = format
        self._service: Optional[AnalyticsService] = None

    @property
    def service(self) -> AnalyticsService:
        """Analytics service (lazy, so help never touches storage)."""
        if self._service is None:
            self._service = AnalyticsService(self.config, directory=self.directory)
        return self._service

    def close(self) -> None:
        if self._service is not None:
            self._service.close()
            self._service = None


def build_parser(commands: Mapping[str, Any] = COMMANDS) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tally",
        description="Tally -- embedded interaction analytics",
    )
    parser.add_argument(
        '--project', '-p',
        default=os.environ.get("TALLY_PROJECT_PATH", "."),
        help='Project directory holding .tally/config.yaml (default: TALLY_PROJECT_PATH or current)'
    )
    parser.add_argument('--dir', '-d', help='Partition directory (overrides config)')
    parser.add_argument('--format', '-f', choices=VALID_FORMATS, default='auto', help='Output format')
    parser.add_argument(
        '--log-level',
        type=str.upper,
        choices=VALID_LEVELS,
        help='Log level (overrides config)'
    )
    parser.add_argument('--version', '-V', action='version', version=f'tally {__version__}')

    subparsers = parser.add_subparsers(dest='command', help='Commands')
    register_all(subparsers, commands)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the Tally CLI.

    Returns process exit code. TallyError is reported as "Error: ..." on stderr.
    """
    parser = build_parser(COMMANDS)
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    try:
        config = ConfigManager(Path(args.project)).load()
    except TallyError as e:
        setup_logging("INFO")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(args.log_level or config.logging.level)

    cli = TallyCLI(config, COMMANDS, directory=args.dir, format=args.format)
    try:
        code = dispatch(COMMANDS, args.command, cli, args) or 0
    except (TallyError, OSError) as e:
        logger.debug("Command {} failed: {!r}", args.command, e)
        print(f"Error: {e}", file=sys.stderr)
        code = 1

    try:
        cli.close()
    except TallyError as e:
        print(f"Error: {e}", file=sys.stderr)
        code = 1
    return code


if __name__ == '__main__':
    sys.exit(main())
