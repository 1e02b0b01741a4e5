"""
Query Engine — Range reads and aggregate views over partitions

Read path:
    flush barrier (every buffered date key)
      → load one partition per UTC calendar day in range (thread pool)
      → keep events inside [start, end] that match every filter
      → sort by timestamp
      → aggregate (stats.py)

A corrupt partition line aborts the whole query (PartitionCorruptError).
A failed barrier flush is logged and the query proceeds over what is on disk.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Iterator, List, Mapping, Optional, Union

from loguru import logger

from ..errors import FlushError, QueryError
from .buffer import WriteBuffer
from .events import InteractionEvent, format_timestamp, parse_timestamp
from .partitions import PartitionStore, normalize_date_key
from .stats import (
    DEFAULT_TOP_K, AnalyticsStats, ChannelStats, DailyStats,
    summarize, summarize_channel, summarize_day,
)


DEFAULT_STATS_WINDOW_DAYS = 7
DEFAULT_CHANNEL_WINDOW_DAYS = 30
DEFAULT_IO_WORKERS = 4

DateLike = Union[str, date, datetime]

# Accepted spellings of each query key
_QUERY_KEYS = {
    "startDate": "start_date",
    "start_date": "start_date",
    "endDate": "end_date",
    "end_date": "end_date",
    "channel": "channel",
    "user": "user",
    "command": "command",
    "hasError": "has_error",
    "has_error": "has_error",
}


def _ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_query_date(value: DateLike, field_name: str = "date") -> datetime:
    """
    Coerce a query bound into an aware UTC datetime.

    Strings are ISO-8601 (Z accepted, naive = UTC, date-only = midnight).
    Raises QueryError on anything else.
    """
    if isinstance(value, datetime):
        return _ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    try:
        return parse_timestamp(value)
    except ValueError as e:
        raise QueryError(f"Invalid {field_name} {value!r}: expected an ISO-8601 date-time") from e


def _iter_days(start_day: date, end_day: date) -> Iterator[date]:
    current = start_day
    while current <= end_day:
        yield current
        current += timedelta(days=1)


@dataclass(frozen=True)
class AnalyticsQuery:
    """Optional range bounds and exact-match filters."""
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    channel: Optional[str] = None
    user: Optional[str] = None
    command: Optional[str] = None
    has_error: Optional[bool] = None

    def __post_init__(self):
        for name in ("start_date", "end_date"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, parse_query_date(value, name))
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise QueryError(
                f"end_date {format_timestamp(self.end_date)} is before "
                f"start_date {format_timestamp(self.start_date)}"
            )

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> 'AnalyticsQuery':
        """Build from camelCase or snake_case keys. Unknown keys raise QueryError."""
        kwargs = {}
        for key, value in d.items():
            attr = _QUERY_KEYS.get(key)
            if attr is None:
                raise QueryError(f"Unknown query field {key!r}")
            if value is not None:
                kwargs[attr] = value
        return cls(**kwargs)

    @classmethod
    def coerce(cls, query: Union['AnalyticsQuery', Mapping[str, Any], None]) -> 'AnalyticsQuery':
        if query is None:
            return cls()
        if isinstance(query, cls):
            return query
        return cls.from_dict(query)

    def matches(self, event: InteractionEvent) -> bool:
        """True when the event satisfies every filter that is set."""
        if self.channel is not None and event.channel != self.channel:
            return False
        if self.user is not None and event.user != self.user:
            return False
        if self.command is not None and event.command != self.command:
            return False
        if self.has_error is not None and event.has_error != self.has_error:
            return False
        return True


class QueryEngine:
    """
    Answers range and aggregate queries over a PartitionStore.

    When given the WriteBuffer in front of the store, every query first
    flushes it so results include all prior enqueues.
    """

    def __init__(
        self,
        store: PartitionStore,
        buffer: Optional[WriteBuffer] = None,
        io_workers: int = DEFAULT_IO_WORKERS,
        stats_window_days: int = DEFAULT_STATS_WINDOW_DAYS,
        channel_window_days: int = DEFAULT_CHANNEL_WINDOW_DAYS,
        top_k: int = DEFAULT_TOP_K,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.store = store
        self.buffer = buffer
        self.io_workers = io_workers
        self.stats_window_days = stats_window_days
        self.channel_window_days = channel_window_days
        self.top_k = top_k
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def now(self) -> datetime:
        return _ensure_utc(self._clock())

    # -------------------------------------------------------------------------
    # Range read
    # -------------------------------------------------------------------------

    def events_in_range(
        self,
        start: DateLike,
        end: DateLike,
        query: Optional[AnalyticsQuery] = None
    ) -> List[InteractionEvent]:
        """Events with start <= timestamp <= end matching the query filters, oldest first."""
        start = parse_query_date(start, "start")
        end = parse_query_date(end, "end")
        if end < start:
            raise QueryError(f"Range end {format_timestamp(end)} is before start {format_timestamp(start)}")
        query = query or AnalyticsQuery()

        self._barrier()

        days = [day.isoformat() for day in _iter_days(start.date(), end.date())]
        partitions = self._load_all(days)

        events = [
            event
            for partition in partitions
            for event in partition
            if start <= event.parsed_timestamp <= end and query.matches(event)
        ]
        events.sort(key=lambda e: e.timestamp)

        logger.debug(
            "Range {} .. {} over {} partition(s): {} event(s)",
            format_timestamp(start), format_timestamp(end), len(days), len(events)
        )
        return events

    def _barrier(self) -> None:
        if self.buffer is None:
            return
        try:
            self.buffer.flush_all(trigger="barrier")
        except FlushError as e:
            logger.warning("Flush barrier failed, results exclude unflushed events: {}", e)

    def _load_all(self, days: List[str]) -> List[List[InteractionEvent]]:
        if len(days) <= 1 or self.io_workers <= 1:
            return [self.store.load(day) for day in days]
        workers = min(self.io_workers, len(days))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="tally-load-") as pool:
            # map() yields in input order, so results stay day-ordered
            return list(pool.map(self.store.load, days))

    # -------------------------------------------------------------------------
    # Aggregate views
    # -------------------------------------------------------------------------

    def _window(self, query: AnalyticsQuery, days: int):
        now = self.now()
        start = query.start_date or now - timedelta(days=days)
        end = query.end_date or now
        return start, end

    def _window_events(self, start: datetime, end: datetime, query: AnalyticsQuery) -> List[InteractionEvent]:
        # A bound filled in from the clock can land on the wrong side of the
        # given one (e.g. startDate in the future); that window is empty.
        if end < start:
            logger.debug("Empty window {} .. {}", format_timestamp(start), format_timestamp(end))
            return []
        return self.events_in_range(start, end, query)

    def get_stats(self, query: Union[AnalyticsQuery, Mapping[str, Any], None] = None) -> AnalyticsStats:
        """Overall stats. Defaults to the trailing stats window ending now."""
        query = AnalyticsQuery.coerce(query)
        start, end = self._window(query, self.stats_window_days)
        events = self._window_events(start, end, query)
        return summarize(events, format_timestamp(start), format_timestamp(end))

    def get_channel_stats(
        self,
        channel_id: str,
        query: Union[AnalyticsQuery, Mapping[str, Any], None] = None
    ) -> Optional[ChannelStats]:
        """Stats for one channel, or None when it has no events in the window."""
        query = replace(AnalyticsQuery.coerce(query), channel=channel_id)
        start, end = self._window(query, self.channel_window_days)
        events = self._window_events(start, end, query)
        return summarize_channel(channel_id, events, self.top_k)

    def get_daily_stats(self, day: Optional[DateLike] = None) -> DailyStats:
        """Stats for one UTC calendar day. Defaults to today."""
        date_key = self._day_key(day)
        start = parse_query_date(date_key)
        end = start + timedelta(days=1) - timedelta(milliseconds=1)
        events = self.events_in_range(start, end)
        return summarize_day(date_key, events, self.top_k)

    def _day_key(self, day: Optional[DateLike]) -> str:
        if day is None:
            return self.now().date().isoformat()
        if isinstance(day, datetime) or (isinstance(day, str) and len(day) > 10):
            return parse_query_date(day, "day").date().isoformat()
        return normalize_date_key(day)
