"""
WriteBuffer — Batched, per-date writes into the partition store

Implements the single-writer-per-partition pattern:
- Callers enqueue events from any thread
- Events accumulate in a FIFO queue per date key
- A queue is flushed as one append when it reaches batch_size,
  when its timer fires, or when cleanup()/flush_all() forces it

Per date key:
- state lock guards the queue and its timer
- flush lock keeps at most one flush in flight

A flush snapshots the queue, appends the snapshot, and only then drops
exactly those records from the head of the queue. Records enqueued
during the write stay queued behind the snapshot. A failed append
leaves the queue untouched.
"""

import threading
import time
from typing import Callable, Dict, List, Optional, Any, Mapping

from loguru import logger

from ..errors import FlushError
from .events import InteractionEvent
from .metrics import BufferMetrics
from .partitions import PartitionStore


DEFAULT_BATCH_SIZE = 10
DEFAULT_FLUSH_INTERVAL = 5.0  # seconds


class _DateQueue:
    """Pending records and timer for one date key."""

    __slots__ = ("lock", "flush_lock", "pending", "timer")

    def __init__(self):
        self.lock = threading.Lock()
        self.flush_lock = threading.Lock()
        self.pending: List[InteractionEvent] = []
        self.timer: Optional[threading.Timer] = None


class WriteBuffer:
    """
    In-memory per-date queues in front of a PartitionStore.

    Usage:
        buffer = WriteBuffer(PartitionStore("logs/analytics"))
        buffer.enqueue(user="U1", channel="C1", command="help", response_time=120)
        ...
        buffer.cleanup()   # before exit: flush everything, cancel timers
    """

    def __init__(
        self,
        store: PartitionStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
        metrics: Optional[BufferMetrics] = None,
        on_error: Optional[Callable[[FlushError], None]] = None
    ):
        """
        Args:
            store: Partition store that receives flushed batches
            batch_size: Queue length that triggers an immediate flush
            flush_interval: Seconds after the first enqueue before a timer flush
            metrics: Metrics collector (a fresh one if None)
            on_error: Called with the FlushError when a timer flush fails
        """
        self.store = store
        self.batch_size = batch_size
        self.flush_interval = flush_interval
        self.metrics = metrics or BufferMetrics()
        self._on_error = on_error

        self._queues: Dict[str, _DateQueue] = {}
        self._registry_lock = threading.Lock()
        self._closing = False

    # -------------------------------------------------------------------------
    # Enqueue
    # -------------------------------------------------------------------------

    def enqueue(self, event_data: Optional[Mapping[str, Any]] = None, **fields: Any) -> InteractionEvent:
        """
        Build an event (assigning timestamp and id) and queue it.

        Raises FlushError only if this enqueue triggers a size flush that fails;
        the event itself stays queued in that case.
        """
        event = InteractionEvent.create(event_data, **fields)
        return self.add(event)

    def add(self, event: InteractionEvent) -> InteractionEvent:
        """Queue an already-built event under its own date key."""
        key = event.date_key
        queue = self._queue_for(key)

        with queue.lock:
            queue.pending.append(event)
            pending = len(queue.pending)
            full = pending >= self.batch_size
            if full:
                self._cancel_timer(queue)
            elif queue.timer is None:
                self._arm_timer(key, queue)

        self.metrics.record_enqueued(key, pending)
        logger.debug("Event {} queued for {} ({} pending)", event.event_id, key, pending)

        if full:
            self._flush(key, "size")
        return event

    # -------------------------------------------------------------------------
    # Flush
    # -------------------------------------------------------------------------

    def flush(self, date_key: str) -> int:
        """Flush one date key now. Returns number of records written."""
        return self._flush(date_key, "manual")

    def flush_all(self, trigger: str = "barrier") -> int:
        """
        Flush every date key that has pending records.

        Every key is attempted; the first FlushError is raised afterwards.
        Returns number of records written.
        """
        written = 0
        errors: List[FlushError] = []
        for key in self._keys():
            try:
                written += self._flush(key, trigger)
            except FlushError as e:
                errors.append(e)
        if errors:
            raise errors[0]
        return written

    def cleanup(self) -> int:
        """
        Cancel all timers and force-flush every queue.

        Guarantees that nothing successfully appendable is left behind.
        Raises the first FlushError after attempting every key.
        """
        self._closing = True
        try:
            for key in self._keys():
                queue = self._queue_for(key)
                with queue.lock:
                    self._cancel_timer(queue)
            written = self.flush_all(trigger="forced")
        finally:
            self._closing = False

        logger.debug("Write buffer cleaned up ({} event(s) flushed)", written)
        return written

    def _flush(self, key: str, trigger: str) -> int:
        queue = self._queue_for(key)

        with queue.flush_lock:
            with queue.lock:
                self._cancel_timer(queue)
                batch = list(queue.pending)
            if not batch:
                return 0

            started = time.monotonic()
            try:
                self.store.append(key, batch)
            except Exception as e:
                self.metrics.record_failure(key, trigger)
                logger.error(
                    "Failed to flush {} event(s) for {} ({} trigger): {}",
                    len(batch), key, trigger, e
                )
                with queue.lock:
                    # Retry later unless we are shutting down
                    if queue.timer is None and not self._closing:
                        self._arm_timer(key, queue)
                raise FlushError(key, len(batch), e) from e

            with queue.lock:
                del queue.pending[:len(batch)]
                remaining = len(queue.pending)
                if remaining and queue.timer is None and not self._closing:
                    self._arm_timer(key, queue)

            duration_ms = (time.monotonic() - started) * 1000
            self.metrics.record_flush(key, trigger, len(batch), duration_ms, remaining)
            logger.debug(
                "Flushed {} event(s) for {} ({} trigger, {:.1f}ms, {} still pending)",
                len(batch), key, trigger, duration_ms, remaining
            )
            return len(batch)

    # -------------------------------------------------------------------------
    # Timers
    # -------------------------------------------------------------------------

    def _arm_timer(self, key: str, queue: _DateQueue) -> None:
        """Start the flush timer. Caller holds queue.lock."""
        timer = threading.Timer(self.flush_interval, self._on_timer, args=(key,))
        timer.daemon = True
        timer.name = f"tally-flush-{key}"
        queue.timer = timer
        timer.start()

    def _cancel_timer(self, queue: _DateQueue) -> None:
        """Cancel the flush timer. Caller holds queue.lock."""
        if queue.timer is not None:
            queue.timer.cancel()
            queue.timer = None

    def _on_timer(self, key: str) -> None:
        queue = self._queue_for(key)
        with queue.lock:
            # A timer that was cancelled or replaced after it started must not flush
            if queue.timer is not threading.current_thread():
                return
            queue.timer = None

        try:
            self._flush(key, "timer")
        except FlushError as e:
            self._report(e)

    def _report(self, error: FlushError) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:
            logger.exception("Flush error handler failed for {}", error.date_key)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def _queue_for(self, key: str) -> _DateQueue:
        with self._registry_lock:
            queue = self._queues.get(key)
            if queue is None:
                queue = _DateQueue()
                self._queues[key] = queue
            return queue

    def _keys(self) -> List[str]:
        with self._registry_lock:
            return list(self._queues.keys())

    def pending_count(self, date_key: Optional[str] = None) -> int:
        """Records waiting to be flushed, for one date key or in total."""
        keys = [date_key] if date_key is not None else self._keys()
        total = 0
        for key in keys:
            with self._registry_lock:
                queue = self._queues.get(key)
            if queue is not None:
                with queue.lock:
                    total += len(queue.pending)
        return total

    def pending_keys(self) -> List[str]:
        """Date keys that currently hold unflushed records."""
        return sorted(key for key in self._keys() if self.pending_count(key))

    def has_timer(self, date_key: str) -> bool:
        with self._registry_lock:
            queue = self._queues.get(date_key)
        if queue is None:
            return False
        with queue.lock:
            return queue.timer is not None

    def stats(self) -> Dict[str, Any]:
        """Metrics summary."""
        return self.metrics.get_summary()

    def __enter__(self) -> 'WriteBuffer':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()
