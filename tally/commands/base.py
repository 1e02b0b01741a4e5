"""
BaseCommand — Shared foundation for all CLI commands

Provides access to CLI resources via composition.
Commands receive the CLI instance and access its resources through properties.
"""

from typing import TYPE_CHECKING

from ..output import OutputSpec, render

if TYPE_CHECKING:
    from ..cli import TallyCLI


class BaseCommand:
    """
    Base class for CLI commands with access to shared resources.

    Commands don't build their own service or config; they use the CLI's.
    """

    def __init__(self, cli: 'TallyCLI'):
        self._cli = cli

    @property
    def service(self):
        """Analytics service (created on first use)."""
        return self._cli.service

    @property
    def config(self):
        """Application configuration."""
        return self._cli.config

    @property
    def format(self) -> str:
        """Output format from --format."""
        return self._cli.format

    def emit(self, spec: OutputSpec) -> None:
        """Render and print a command result."""
        print(render(spec, format=self.format))
