"""
BufferMetrics — Observability for the write buffer

Collects and exposes:
- Flush latency histogram
- Pending depth gauges per date key
- Enqueue / flush / failure counters
- Flushes by trigger (size, timer, forced, barrier)
"""

import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Any
from datetime import datetime, timezone


# Upper bounds (ms) of the flush latency buckets
FLUSH_LATENCY_BUCKETS = (
    ("lt_1ms", 1),
    ("lt_5ms", 5),
    ("lt_25ms", 25),
    ("lt_100ms", 100),
    ("lt_500ms", 500),
)
SLOWEST_BUCKET = "gte_500ms"


@dataclass
class LatencyHistogram:
    """Flush latency counts with min/max/avg."""
    count: int = 0
    sum_ms: float = 0.0
    min_ms: float = float('inf')
    max_ms: float = 0.0
    buckets: Dict[str, int] = field(default_factory=lambda: dict.fromkeys(
        [name for name, _ in FLUSH_LATENCY_BUCKETS] + [SLOWEST_BUCKET], 0
    ))

    def record(self, duration_ms: float) -> None:
        self.count += 1
        self.sum_ms += duration_ms
        self.min_ms = min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)
        for name, bound in FLUSH_LATENCY_BUCKETS:
            if duration_ms < bound:
                self.buckets[name] += 1
                return
        self.buckets[SLOWEST_BUCKET] += 1

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "avg_ms": round(self.sum_ms / self.count, 2) if self.count else 0.0,
            "min_ms": round(self.min_ms, 2) if self.count else 0,
            "max_ms": round(self.max_ms, 2),
            "buckets": dict(self.buckets),
        }


class BufferMetrics:
    """
    Thread-safe counters, gauges and a latency histogram for the write buffer.

    Flush triggers: "size" (batch threshold), "timer" (flush interval),
    "forced" (cleanup), "barrier" (query consistency flush), "manual".
    """

    def __init__(self):
        self._lock = threading.Lock()

        self._events_enqueued = 0
        self._records_flushed = 0
        self._flushes: Dict[str, int] = defaultdict(int)
        self._failures: Dict[str, int] = defaultdict(int)
        self._latency = LatencyHistogram()
        self._pending: Dict[str, int] = {}

        self._start_time = datetime.now(timezone.utc)

    def record_enqueued(self, date_key: str, pending: int) -> None:
        with self._lock:
            self._events_enqueued += 1
            self._pending[date_key] = pending

    def record_flush(self, date_key: str, trigger: str, count: int, duration_ms: float, pending: int) -> None:
        """Record a successful flush of `count` records."""
        with self._lock:
            self._flushes[trigger] += 1
            self._records_flushed += count
            self._latency.record(duration_ms)
            if pending:
                self._pending[date_key] = pending
            else:
                self._pending.pop(date_key, None)

    def record_failure(self, date_key: str, trigger: str) -> None:
        with self._lock:
            self._failures[trigger] += 1

    @property
    def events_enqueued(self) -> int:
        with self._lock:
            return self._events_enqueued

    @property
    def records_flushed(self) -> int:
        with self._lock:
            return self._records_flushed

    def flush_count(self, trigger: str = None) -> int:
        """Successful flushes, for one trigger or in total."""
        with self._lock:
            if trigger is None:
                return sum(self._flushes.values())
            return self._flushes.get(trigger, 0)

    def failure_count(self, trigger: str = None) -> int:
        with self._lock:
            if trigger is None:
                return sum(self._failures.values())
            return self._failures.get(trigger, 0)

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        with self._lock:
            uptime = (datetime.now(timezone.utc) - self._start_time).total_seconds()
            return {
                "uptime_seconds": round(uptime, 2),
                "events": {
                    "enqueued": self._events_enqueued,
                    "flushed": self._records_flushed,
                    "pending": sum(self._pending.values()),
                },
                "flushes": dict(self._flushes),
                "failures": dict(self._failures),
                "latency": self._latency.to_dict(),
                "pending_by_date": dict(self._pending),
            }

    def reset(self) -> None:
        """Reset all metrics."""
        with self._lock:
            self._events_enqueued = 0
            self._records_flushed = 0
            self._flushes.clear()
            self._failures.clear()
            self._latency = LatencyHistogram()
            self._pending.clear()
            self._start_time = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Export all metrics as dictionary."""
        summary = self.get_summary()
        with self._lock:
            summary["start_time"] = self._start_time.isoformat()
        return summary
