"""
DetailRenderer — Render a single result as labelled fields

Format:
    Title

      Total Interactions: 4
      Command Usage:
        help: 2
        query: 1
      Top Commands:
        - help (2)
"""

from typing import TYPE_CHECKING, Any, List

from .base import BaseRenderer

if TYPE_CHECKING:
    from . import OutputSpec


# Lists longer than this are cut with an "and N more" line
MAX_LIST_ITEMS = 10


class DetailRenderer(BaseRenderer):

    def render(self, spec: "OutputSpec") -> str:
        if not spec.data:
            return spec.empty_message

        if not isinstance(spec.data, dict):
            return str(spec.data)

        lines = []
        if spec.title:
            lines.append(spec.title)
            lines.append("")

        for key, value in spec.data.items():
            if key.startswith("_"):
                continue
            label = self._label(key)

            if isinstance(value, dict):
                lines.append(f"  {label}:")
                if not value:
                    lines.append("    (none)")
                for k, v in value.items():
                    lines.append(f"    {k}: {self.safe_str(v)}")
            elif isinstance(value, list):
                lines.append(f"  {label}:")
                lines.extend(self._list_lines(value))
            else:
                value_str = self.truncate(self.safe_str(value), self.width - len(label) - 6)
                lines.append(f"  {label}: {value_str}")

        return "\n".join(lines)

    def _label(self, key: str) -> str:
        """camelCase or snake_case key to Title Case label."""
        words = []
        current = ""
        for ch in key.replace("_", " "):
            if ch.isupper() and current and not current.endswith(" "):
                words.append(current)
                current = ch
            else:
                current += ch
        words.append(current)
        return " ".join(w.capitalize() for w in " ".join(words).split())

    def _list_lines(self, items: List[Any]) -> List[str]:
        if not items:
            return ["    (none)"]
        lines = []
        for item in items[:MAX_LIST_ITEMS]:
            if isinstance(item, dict) and set(item) == {"command", "count"}:
                text = f"{item['command']} ({item['count']})"
            else:
                text = self.safe_str(item)
            lines.append(f"    - {self.truncate(text, self.width - 8)}")
        if len(items) > MAX_LIST_ITEMS:
            lines.append(f"    ... and {len(items) - MAX_LIST_ITEMS} more")
        return lines
