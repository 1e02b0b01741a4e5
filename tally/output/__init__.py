"""
Output Module — View layer for the Tally CLI

Separates data from presentation.
Commands return OutputSpec, renderers handle display.

Usage:
    from tally.output import OutputSpec, render

    # In command:
    return OutputSpec(data=stats.to_dict(), shape="detail", title="Analytics")

    # In CLI layer:
    print(render(spec, format="auto"))
"""

from dataclasses import dataclass
from typing import Any, Optional, List

from .base import BaseRenderer
from .table import TableRenderer
from .detail import DetailRenderer
from .json import JsonRenderer


@dataclass
class OutputSpec:
    """
    Data envelope that commands return for rendering.

    Attributes:
        data: The actual data (dict, list, or any structure)
        shape: Rendering hint - "table" | "detail" | "json" | "auto"
        title: Optional section title/header
        columns: For tables - column headers in order
        column_keys: For tables - dict keys corresponding to columns
        empty_message: Message when data is empty
    """
    data: Any
    shape: str = "auto"
    title: Optional[str] = None
    columns: Optional[List[str]] = None
    column_keys: Optional[List[str]] = None
    empty_message: str = "No data to display."


RENDERERS = {
    "table": TableRenderer,
    "detail": DetailRenderer,
    "json": JsonRenderer,
}

# Valid format values for config/CLI
VALID_FORMATS = ("auto", "table", "detail", "json")


def auto_detect_shape(data: Any) -> str:
    """Infer rendering shape: list of dicts → table, everything else → detail."""
    if isinstance(data, list) and data and all(isinstance(x, dict) for x in data):
        return "table"
    if isinstance(data, dict) and isinstance(data.get("rows"), list):
        return "table"
    return "detail"


def get_renderer(format: str, width: int = None, full: bool = False) -> BaseRenderer:
    """
    Get renderer instance.

    Raises:
        ValueError: If format is invalid
    """
    if format not in RENDERERS:
        valid = ", ".join(RENDERERS.keys())
        raise ValueError(f"Unknown format '{format}'. Valid: {valid}")
    return RENDERERS[format](width=width, full=full)


def render(spec: OutputSpec, format: str = "auto", width: int = None, full: bool = False) -> str:
    """
    Render OutputSpec to formatted string.

    Args:
        spec: OutputSpec from command
        format: "auto" | "table" | "detail" | "json"
        width: Terminal width (auto-detect if None)
        full: If True, don't truncate content
    """
    if format == "auto":
        if spec.shape and spec.shape != "auto":
            effective_format = spec.shape
        else:
            effective_format = auto_detect_shape(spec.data)
    else:
        effective_format = format

    return get_renderer(effective_format, width, full).render(spec)
