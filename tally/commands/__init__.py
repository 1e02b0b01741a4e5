"""
Commands — CLI command implementations and the command table

Each command module:
1. Defines XxxCommand class (handler implementation)
2. Exports register_parser(subparsers) to configure its argparse
3. Exports handle(cli, args) to dispatch to handler methods

COMMANDS maps command name → module. It is built once at import and is
read-only; callers pass it to register_all() and dispatch().
"""

from types import MappingProxyType
from typing import Any, Mapping

from .base import BaseCommand
from . import stats_cmd, channel_cmd, daily_cmd, partitions_cmd, ingest_cmd, help_cmd


# Order determines help display order
COMMAND_MODULES = (
    stats_cmd,
    channel_cmd,
    daily_cmd,
    partitions_cmd,
    ingest_cmd,
    help_cmd,
)


def build_command_table(modules=COMMAND_MODULES) -> Mapping[str, Any]:
    """Immutable name → module lookup."""
    table = {}
    for module in modules:
        name = module.COMMAND_NAME
        if name in table:
            raise ValueError(f"Duplicate command name: {name}")
        table[name] = module
    return MappingProxyType(table)


COMMANDS = build_command_table()


def register_all(subparsers, commands: Mapping[str, Any] = COMMANDS) -> None:
    """Add every command's parser to the main parser's subparsers."""
    for module in commands.values():
        module.register_parser(subparsers)


def dispatch(commands: Mapping[str, Any], command: str, cli: Any, args: Any) -> Any:
    """
    Dispatch command to its handler.

    Raises:
        KeyError: If command is not in the table
    """
    if command not in commands:
        raise KeyError(f"Unknown command: {command}. Available: {', '.join(commands)}")
    return commands[command].handle(cli, args)


__all__ = ['BaseCommand', 'COMMANDS', 'build_command_table', 'register_all', 'dispatch']
