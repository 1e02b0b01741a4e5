"""
Partition Store — Append-only, date-partitioned event persistence

One file per UTC calendar date:
    <directory>/analytics-YYYY-MM-DD.jsonl

Each line is one event as a JSON object. Files are only ever appended to.
The store assumes at most one concurrent append per partition; the write
buffer owns that serialization.
"""

import re
from datetime import date
from pathlib import Path
from typing import Iterable, List, Union

import orjson
from loguru import logger

from ..errors import PartitionCorruptError, QueryError
from .events import InteractionEvent, parse_timestamp


FILE_PREFIX = "analytics-"
FILE_SUFFIX = ".jsonl"

_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def normalize_date_key(value: Union[str, date]) -> str:
    """
    Coerce a date or YYYY-MM-DD string into a validated date key.

    Raises QueryError for anything that is not a real calendar date.
    """
    if isinstance(value, date):
        return value.isoformat()[:10]
    if not isinstance(value, str) or not _DATE_KEY_RE.match(value):
        raise QueryError(f"Invalid date key {value!r}. Expected YYYY-MM-DD")
    try:
        date.fromisoformat(value)
    except ValueError as e:
        raise QueryError(f"Invalid date key {value!r}: {e}") from e
    return value


class PartitionStore:
    """
    Maps calendar dates to append-only NDJSON files.

    Missing partitions read as empty. A line that does not parse aborts
    the load with PartitionCorruptError.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def path_for(self, date_key: Union[str, date]) -> Path:
        """File path for a date's partition."""
        return self.directory / f"{FILE_PREFIX}{normalize_date_key(date_key)}{FILE_SUFFIX}"

    def append(self, date_key: Union[str, date], records: Iterable[InteractionEvent]) -> int:
        """
        Append records to a partition in a single write.

        Creates the directory and file if absent. Returns number of records written.
        """
        lines = [orjson.dumps(record.to_dict()) for record in records]
        if not lines:
            return 0

        path = self.path_for(date_key)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = b"\n".join(lines) + b"\n"
        with open(path, 'ab') as f:
            f.write(payload)

        logger.debug("Appended {} event(s) to {}", len(lines), path)
        return len(lines)

    def load(self, date_key: Union[str, date]) -> List[InteractionEvent]:
        """Read every event in a partition, in append order."""
        path = self.path_for(date_key)
        try:
            with open(path, 'rb') as f:
                content = f.read()
        except FileNotFoundError:
            return []

        events = []
        for line_number, line in enumerate(content.split(b"\n"), start=1):
            if not line.strip():
                continue
            try:
                event = InteractionEvent.from_dict(orjson.loads(line))
                parse_timestamp(event.timestamp)
                events.append(event)
            except (orjson.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
                logger.error("Corrupt record in {} at line {}: {}", path, line_number, e)
                raise PartitionCorruptError(path, line_number, str(e)) from e
        return events

    def exists(self, date_key: Union[str, date]) -> bool:
        return self.path_for(date_key).exists()

    def dates(self) -> List[str]:
        """Sorted date keys that have a partition file on disk."""
        if not self.directory.exists():
            return []

        keys = []
        for path in self.directory.glob(f"{FILE_PREFIX}*{FILE_SUFFIX}"):
            key = path.name[len(FILE_PREFIX):-len(FILE_SUFFIX)]
            if _DATE_KEY_RE.match(key):
                keys.append(key)
        return sorted(keys)

    def count(self, date_key: Union[str, date]) -> int:
        """Number of events stored for a date."""
        return len(self.load(date_key))
