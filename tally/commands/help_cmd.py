"""
HelpCommand — Command overview built from the command table
"""

from .base import BaseCommand


COMMAND_NAME = 'help'

HELP_HEADER = """Tally -- embedded interaction analytics

Events are buffered per UTC day and appended to
<dir>/analytics-YYYY-MM-DD.jsonl. Queries flush the buffer first.

Commands:"""

HELP_FOOTER = """
Global options:
  --dir DIR          Partition directory (default: TALLY_DIR or logs/analytics)
  --format FORMAT    auto | table | detail | json
  --log-level LEVEL  loguru level (default: TALLY_LOG_LEVEL or INFO)

Dates are ISO-8601; values without an offset are UTC."""


class HelpCommand(BaseCommand):

    def help(self) -> int:
        lines = [HELP_HEADER]
        for name, module in self._cli.commands.items():
            summary = (module.__doc__ or "").strip().splitlines()
            first = summary[0].split("—", 1)[-1].strip() if summary else ""
            lines.append(f"  {name:<12} {first}")
        lines.append(HELP_FOOTER)
        print("\n".join(lines))
        return 0


def register_parser(subparsers):
    """Register help command parser."""
    return subparsers.add_parser('help', help='Show command overview')


def handle(cli, args):
    """Handle help command dispatch."""
    return HelpCommand(cli).help()
