"""
BaseRenderer — Abstract base class for output renderers

All renderers inherit from this class and implement render().
Provides terminal width, truncation and value formatting shared by
every format.
"""

import shutil
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from . import OutputSpec


ELLIPSIS = "..."


class BaseRenderer(ABC):
    """
    Abstract base class for all output renderers.

    Subclasses must implement render().
    """

    def __init__(self, width: int = None, full: bool = False):
        """
        Args:
            width: Terminal width (auto-detect if None)
            full: If True, don't truncate content
        """
        self.width = width or shutil.get_terminal_size().columns
        self.full = full

    @abstractmethod
    def render(self, spec: "OutputSpec") -> str:
        """Render OutputSpec to formatted string."""

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def truncate(self, text: str, length: int = None) -> str:
        """Truncate text with ellipsis, respecting full mode."""
        if not text:
            return ""
        if self.full:
            return text
        if length is None:
            length = max(20, self.width - 10)
        if len(text) <= length:
            return text
        if length <= len(ELLIPSIS):
            return text[:length]
        return text[:length - len(ELLIPSIS)] + ELLIPSIS

    def safe_str(self, value) -> str:
        """
        Convert value to display string.

        None renders empty, booleans as Yes/No, floats to two decimals.
        """
        if value is None:
            return ""
        if isinstance(value, bool):
            return "Yes" if value else "No"
        if isinstance(value, float):
            return f"{value:.2f}"
        return str(value)

    def format_count(self, count: int, singular: str, plural: str = None) -> str:
        """Format count with singular/plural noun (e.g. "3 events")."""
        if plural is None:
            plural = singular + "s"
        noun = singular if count == 1 else plural
        return f"{count} {noun}"
