"""
DailyCommand — One UTC day with its hourly distribution

    tally daily
    tally daily 2025-01-31
"""

from typing import Optional

from .base import BaseCommand
from ..output import OutputSpec


COMMAND_NAME = 'daily'


class DailyCommand(BaseCommand):

    def daily(self, day: Optional[str] = None) -> int:
        result = self.service.get_daily_stats(day)
        self.emit(OutputSpec(
            data=result.to_dict(),
            shape="detail",
            title=f"Daily analytics {result.date}",
        ))
        return 0


def register_parser(subparsers):
    """Register daily command parser."""
    p = subparsers.add_parser('daily', help='Analytics for one UTC day (default: today)')
    p.add_argument('date', nargs='?', metavar='YYYY-MM-DD', help='Day to report')
    return p


def handle(cli, args):
    """Handle daily command dispatch."""
    return DailyCommand(cli).daily(args.date)
