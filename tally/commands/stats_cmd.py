"""
StatsCommand — Overall analytics for a time window

    tally stats
    tally stats --start 2025-01-01 --end 2025-01-31T23:59:59Z --channel C123
    tally stats --errors --format json
"""

from typing import Any, Dict, Optional

from .base import BaseCommand
from ..output import OutputSpec


COMMAND_NAME = 'stats'


def build_query(args) -> Dict[str, Any]:
    """Query dict from the shared window/filter flags. Unset flags are omitted."""
    query = {
        "startDate": getattr(args, 'start', None),
        "endDate": getattr(args, 'end', None),
        "channel": getattr(args, 'channel', None),
        "user": getattr(args, 'user', None),
        "command": getattr(args, 'command_filter', None),
        "hasError": getattr(args, 'has_error', None),
    }
    return {k: v for k, v in query.items() if v is not None}


def add_window_arguments(p) -> None:
    p.add_argument('--start', metavar='ISO', help='Window start (ISO-8601, UTC if no offset)')
    p.add_argument('--end', metavar='ISO', help='Window end, inclusive (default: now)')


class StatsCommand(BaseCommand):

    def stats(self, query: Optional[Dict[str, Any]] = None) -> int:
        result = self.service.get_stats(query or {})
        window = result.time_range
        self.emit(OutputSpec(
            data=result.to_dict(),
            shape="detail",
            title=f"Analytics {window.get('start')} .. {window.get('end')}",
        ))
        return 0


def register_parser(subparsers):
    """Register stats command parser."""
    p = subparsers.add_parser('stats', help='Overall analytics for a time window (default: last 7 days)')
    add_window_arguments(p)
    p.add_argument('--channel', help='Only this channel id')
    p.add_argument('--user', help='Only this user id')
    p.add_argument('--command', dest='command_filter', metavar='NAME', help='Only this command')
    errors = p.add_mutually_exclusive_group()
    errors.add_argument('--errors', dest='has_error', action='store_const', const=True,
                        help='Only interactions that failed')
    errors.add_argument('--no-errors', dest='has_error', action='store_const', const=False,
                        help='Only interactions that succeeded')
    return p


def handle(cli, args):
    """Handle stats command dispatch."""
    return StatsCommand(cli).stats(build_query(args))
