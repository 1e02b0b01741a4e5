"""
ChannelCommand — Analytics for one channel

    tally channel C123
    tally channel C123 --start 2025-01-01
"""

from typing import Any, Dict, Optional

from .base import BaseCommand
from .stats_cmd import add_window_arguments, build_query
from ..output import OutputSpec


COMMAND_NAME = 'channel'


class ChannelCommand(BaseCommand):

    def channel(self, channel_id: str, query: Optional[Dict[str, Any]] = None) -> int:
        result = self.service.get_channel_stats(channel_id, query or {})
        if result is None:
            self.emit(OutputSpec(
                data=None,
                shape="detail",
                empty_message=f"No activity for channel {channel_id} in this window.",
            ))
            return 0

        self.emit(OutputSpec(
            data=result.to_dict(),
            shape="detail",
            title=f"Channel {channel_id}",
        ))
        return 0


def register_parser(subparsers):
    """Register channel command parser."""
    p = subparsers.add_parser('channel', help='Analytics for one channel (default: last 30 days)')
    p.add_argument('channel_id', help='Channel id')
    add_window_arguments(p)
    return p


def handle(cli, args):
    """Handle channel command dispatch."""
    return ChannelCommand(cli).channel(args.channel_id, build_query(args))
