"""
Errors — Exception hierarchy for Tally

Query-shape and parse errors propagate to the caller.
Ingestion errors are caught at the service boundary and logged.
"""

from pathlib import Path
from typing import Optional


class TallyError(Exception):
    """Base exception for all tally errors."""


class QueryError(TallyError, ValueError):
    """Raised when a query is malformed (bad date string, inverted range, bad date key)."""


class ConfigError(TallyError, ValueError):
    """Raised when configuration values are invalid."""


class PartitionCorruptError(TallyError):
    """
    Raised when a partition line cannot be parsed as an event record.

    Aborts the whole range query that touched the partition.
    """

    def __init__(self, path: Path, line_number: int, reason: str = ""):
        self.path = Path(path)
        self.line_number = line_number
        self.reason = reason
        message = f"Corrupt record in {self.path} at line {line_number}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class FlushError(TallyError):
    """
    Raised when appending a batch to its partition fails.

    The batch stays queued in the write buffer.
    """

    def __init__(self, date_key: str, count: int, cause: Optional[BaseException] = None):
        self.date_key = date_key
        self.count = count
        message = f"Failed to flush {count} event(s) for {date_key}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
