"""
AnalyticsService — Boundary facade over buffer, store and query engine

Ingestion is fire-and-forget: log_event() never raises into the feature
that produced the event. Query-shape errors and corrupt partitions do
propagate. cleanup() must run before exit; the service registers an
atexit hook for that unless configured otherwise.

Usage:
    service = AnalyticsService.from_config()
    service.log_event(user="U1", channel="C1", command="help", response_time=120)
    stats = service.get_stats({"startDate": "2025-01-01T00:00:00Z"})
    service.cleanup()
"""

import atexit
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from loguru import logger

from .config import TallyConfig, load_config
from .core.buffer import WriteBuffer
from .core.events import InteractionEvent
from .core.metrics import BufferMetrics
from .core.partitions import PartitionStore
from .core.query import AnalyticsQuery, DateLike, QueryEngine
from .core.stats import AnalyticsStats, ChannelStats, DailyStats
from .errors import FlushError
from .logging import log_span


QueryLike = Union[AnalyticsQuery, Mapping[str, Any], None]


class AnalyticsService:

    def __init__(
        self,
        config: Optional[TallyConfig] = None,
        directory: Optional[Union[str, Path]] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Args:
            config: Settings (defaults if None)
            directory: Overrides config.storage.directory
            clock: Returns "now" for default query windows (tests)
        """
        self.config = config or TallyConfig()
        self.config.validate()

        self.store = PartitionStore(directory or self.config.storage.directory)
        self.metrics_collector = BufferMetrics()
        self.buffer = WriteBuffer(
            self.store,
            batch_size=self.config.buffer.batch_size,
            flush_interval=self.config.buffer.flush_interval,
            metrics=self.metrics_collector,
            on_error=self._on_flush_error,
        )
        self.engine = QueryEngine(
            self.store,
            buffer=self.buffer,
            io_workers=self.config.query.io_workers,
            stats_window_days=self.config.query.stats_window_days,
            channel_window_days=self.config.query.channel_window_days,
            top_k=self.config.query.top_k,
            clock=clock,
        )

        self._atexit_registered = False
        if self.config.lifecycle.register_atexit:
            atexit.register(self._atexit_cleanup)
            self._atexit_registered = True

        logger.debug("Analytics service ready at {}", self.store.directory)

    @classmethod
    def from_config(cls, project_dir: Optional[Path] = None, **kwargs: Any) -> 'AnalyticsService':
        """Build from the layered config (env, project, user, defaults)."""
        return cls(load_config(project_dir), **kwargs)

    # -------------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------------

    def log_event(self, event_data: Optional[Mapping[str, Any]] = None, **fields: Any) -> bool:
        """
        Record an interaction. Returns False if buffering or a triggered flush failed.

        A False result does not drop the event: it stays queued and is
        retried by the next timer, flush or cleanup.
        """
        return self.log_event_returning_id(event_data, **fields) is not None

    def log_event_returning_id(
        self,
        event_data: Optional[Mapping[str, Any]] = None,
        **fields: Any
    ) -> Optional[str]:
        """Like log_event, but returns the assigned eventId (None on failure)."""
        try:
            event = self.buffer.enqueue(event_data, **fields)
        except FlushError as e:
            logger.error("Analytics event not yet persisted: {}", e)
            return None
        except Exception:
            logger.exception("Failed to log analytics event")
            return None
        return event.event_id

    def _on_flush_error(self, error: FlushError) -> None:
        logger.error("Background analytics flush failed: {}", error)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_stats(self, query: QueryLike = None) -> AnalyticsStats:
        with log_span("Computing analytics stats"):
            try:
                return self.engine.get_stats(query)
            except OSError:
                logger.exception("Failed to read analytics partitions")
                raise

    def get_channel_stats(self, channel_id: str, query: QueryLike = None) -> Optional[ChannelStats]:
        with log_span("Computing channel stats for {}", channel_id):
            try:
                return self.engine.get_channel_stats(channel_id, query)
            except OSError:
                logger.exception("Failed to read analytics partitions")
                raise

    def get_daily_stats(self, day: Optional[DateLike] = None) -> DailyStats:
        with log_span("Computing daily stats"):
            try:
                return self.engine.get_daily_stats(day)
            except OSError:
                logger.exception("Failed to read analytics partitions")
                raise

    def events_in_range(
        self,
        start: DateLike,
        end: DateLike,
        query: QueryLike = None
    ) -> List[InteractionEvent]:
        return self.engine.events_in_range(start, end, AnalyticsQuery.coerce(query))

    def partitions(self) -> List[Dict[str, Any]]:
        """One entry per partition on disk: date, path, event count."""
        self.buffer.flush_all(trigger="barrier")
        return [
            {
                "date": date_key,
                "path": str(self.store.path_for(date_key)),
                "events": self.store.count(date_key),
            }
            for date_key in self.store.dates()
        ]

    def metrics(self) -> Dict[str, Any]:
        return self.buffer.stats()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def cleanup(self) -> int:
        """
        Flush every pending event and cancel all timers.

        Raises FlushError if any date key could not be written.
        """
        written = self.buffer.cleanup()
        logger.info("Analytics service cleaned up ({} event(s) flushed)", written)
        return written

    def close(self) -> None:
        """cleanup() and drop the atexit hook."""
        if self._atexit_registered:
            atexit.unregister(self._atexit_cleanup)
            self._atexit_registered = False
        self.cleanup()

    def _atexit_cleanup(self) -> None:
        try:
            self.buffer.cleanup()
        except FlushError as e:
            logger.error("Analytics events lost at exit: {}", e)

    def __enter__(self) -> 'AnalyticsService':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
