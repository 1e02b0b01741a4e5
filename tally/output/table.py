"""
TableRenderer — Render rows as an ASCII table

    +------------+--------+
    |    Date    | Events |
    +------------+--------+
    | 2025-01-30 | 42     |
    | 2025-01-31 | 17     |
    +------------+--------+
"""

from typing import TYPE_CHECKING, List, Dict

from .base import BaseRenderer, ELLIPSIS

if TYPE_CHECKING:
    from . import OutputSpec


MIN_COLUMN_WIDTH = 4


class TableRenderer(BaseRenderer):

    def render(self, spec: "OutputSpec") -> str:
        """
        Render OutputSpec as a table.

        Expected data formats:
        - List of dicts: [{col1: val1, col2: val2}, ...]
        - Dict with "rows" key: {"rows": [...], ...}
        """
        if isinstance(spec.data, list):
            rows = spec.data
        elif isinstance(spec.data, dict):
            rows = spec.data.get("rows") or []
        else:
            rows = []

        if not rows:
            return spec.empty_message

        column_keys = spec.column_keys or list(rows[0].keys())
        columns = spec.columns or [self._header_for(k) for k in column_keys]
        widths = self._calculate_widths(rows, columns, column_keys)

        lines = []
        if spec.title:
            lines.append(spec.title)
        lines.append(self._separator(widths))
        lines.append(self._header_row(columns, widths))
        lines.append(self._separator(widths))
        for row in rows:
            lines.append(self._data_row(row, column_keys, widths))
        lines.append(self._separator(widths))

        return "\n".join(lines)

    def _header_for(self, key: str) -> str:
        return key.replace("_", " ").title()

    def _calculate_widths(
        self,
        rows: List[Dict],
        columns: List[str],
        column_keys: List[str]
    ) -> List[int]:
        widths = [len(col) for col in columns]
        for row in rows:
            for i, key in enumerate(column_keys):
                widths[i] = max(widths[i], len(self.safe_str(row.get(key))))

        # Leave room for borders and padding
        available = self.width - (3 * len(widths) + 1)
        overflow = sum(widths) - available
        if not self.full and overflow > 0 and available > 0:
            # Only the widest column gives up space
            widest = widths.index(max(widths))
            widths[widest] = max(MIN_COLUMN_WIDTH, widths[widest] - overflow)
        return widths

    def _separator(self, widths: List[int]) -> str:
        return "+" + "+".join("-" * (w + 2) for w in widths) + "+"

    def _header_row(self, columns: List[str], widths: List[int]) -> str:
        cells = [col[:w].center(w) for col, w in zip(columns, widths)]
        return "| " + " | ".join(cells) + " |"

    def _data_row(self, row: Dict, column_keys: List[str], widths: List[int]) -> str:
        cells = []
        for key, w in zip(column_keys, widths):
            value = self.safe_str(row.get(key))
            if len(value) > w:
                value = value[:w - len(ELLIPSIS)] + ELLIPSIS if w > len(ELLIPSIS) else value[:w]
            cells.append(value.ljust(w))
        return "| " + " | ".join(cells) + " |"
