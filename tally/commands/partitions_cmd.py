"""
PartitionsCommand — List partition files on disk
"""

from .base import BaseCommand
from ..output import OutputSpec


COMMAND_NAME = 'partitions'


class PartitionsCommand(BaseCommand):

    def partitions(self) -> int:
        rows = self.service.partitions()
        self.emit(OutputSpec(
            data=rows,
            shape="table",
            title=f"Partitions in {self.service.store.directory}",
            columns=["Date", "Events", "Path"],
            column_keys=["date", "events", "path"],
            empty_message=f"No partitions in {self.service.store.directory}.",
        ))
        return 0


def register_parser(subparsers):
    """Register partitions command parser."""
    return subparsers.add_parser('partitions', help='List stored partitions and their event counts')


def handle(cli, args):
    """Handle partitions command dispatch."""
    return PartitionsCommand(cli).partitions()
