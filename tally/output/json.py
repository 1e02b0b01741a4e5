"""
JsonRenderer — Render data as JSON for piping

Output uses the same camelCase keys as the persisted records and the
result types' to_dict(), so `tally stats --format json | jq` sees the
wire shape.
"""

import json
from typing import TYPE_CHECKING, Any

from .base import BaseRenderer

if TYPE_CHECKING:
    from . import OutputSpec


class JsonRenderer(BaseRenderer):

    def __init__(self, *args, compact: bool = False, **kwargs):
        """
        Args:
            compact: If True, output single line (no indentation)
            *args, **kwargs: Passed to BaseRenderer
        """
        super().__init__(*args, **kwargs)
        self.compact = compact

    def render(self, spec: "OutputSpec") -> str:
        data = self._clean_data(spec.data)
        if self.compact:
            return json.dumps(data, default=self._json_serializer, ensure_ascii=False)
        return json.dumps(data, indent=2, default=self._json_serializer, ensure_ascii=False)

    def _clean_data(self, data: Any) -> Any:
        """Remove internal keys (starting with _)."""
        if isinstance(data, dict):
            return {
                k: self._clean_data(v)
                for k, v in data.items()
                if not k.startswith("_")
            }
        if isinstance(data, list):
            return [self._clean_data(item) for item in data]
        return data

    def _json_serializer(self, obj: Any) -> Any:
        if hasattr(obj, "to_dict"):
            return obj.to_dict()
        if hasattr(obj, "value"):  # Enum
            return obj.value
        return str(obj)
