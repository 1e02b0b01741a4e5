"""
Tests for AnalyticsService — Ingestion, query and lifecycle boundaries

Tests verify:
- log_event is fire-and-forget: failures become False, never exceptions
- The returning variant hands back the assigned eventId
- cleanup/close/with flush everything buffered
- atexit registration follows config
"""

import atexit

import pytest

from tally.errors import FlushError, PartitionCorruptError
from tally.service import AnalyticsService


class TestLogEvent:

    def test_log_event_returns_true_and_buffers(self, service):
        assert service.log_event(user="U1", channel="C1", command="help", response_time=12) is True
        assert service.buffer.pending_count() == 1

    def test_log_event_accepts_mapping(self, service):
        assert service.log_event({"user": "U1", "channel": "C1", "responseTime": 5})
        assert service.buffer.pending_count() == 1

    def test_returning_variant_gives_event_id(self, service):
        event_id = service.log_event_returning_id(user="U1", channel="C1")
        service.cleanup()
        stored = [
            e for key in service.store.dates() for e in service.store.load(key)
        ]
        assert [e.event_id for e in stored] == [event_id]

    def test_failed_flush_returns_false_and_keeps_event(self, tally_factory, monkeypatch, log_messages):
        service = tally_factory.create_service(buffer__batch_size=1)

        def broken_append(date_key, records):
            raise OSError("permission denied")

        monkeypatch.setattr(service.store, "append", broken_append)
        assert service.log_event(user="U1", channel="C1") is False
        assert service.buffer.pending_count() == 1
        assert any(m.startswith("ERROR") for m in log_messages)

        monkeypatch.undo()
        assert service.cleanup() == 1

    def test_unexpected_error_returns_false(self, service, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("bug")

        monkeypatch.setattr(service.buffer, "enqueue", explode)
        assert service.log_event(user="U1") is False
        assert service.log_event_returning_id(user="U1") is None


class TestQueries:

    def test_corrupt_partition_propagates(self, tally_factory):
        tally_factory.write_raw("2025-01-15", "nope\n")
        service = tally_factory.create_service()
        with pytest.raises(PartitionCorruptError):
            service.get_daily_stats("2025-01-15")

    def test_partitions_lists_dates_with_counts(self, tally_env):
        rows = tally_env.create_service().partitions()
        assert [(r["date"], r["events"]) for r in rows] == [("2025-01-15", 4)]

    def test_metrics_summary(self, service):
        service.log_event(user="U1", channel="C1")
        service.cleanup()
        summary = service.metrics()
        assert summary["events"]["enqueued"] == 1
        assert summary["events"]["flushed"] == 1
        assert summary["flushes"] == {"forced": 1}


class TestLifecycle:

    def test_with_block_flushes(self, tally_factory):
        config = tally_factory.create_config()
        with AnalyticsService(config) as service:
            service.log_event(user="U1", channel="C1")
        assert sum(service.store.count(d) for d in service.store.dates()) == 1

    def test_cleanup_raises_flush_error(self, service, monkeypatch):
        service.log_event(user="U1", channel="C1")

        def broken_append(date_key, records):
            raise OSError("disk full")

        monkeypatch.setattr(service.store, "append", broken_append)
        with pytest.raises(FlushError):
            service.cleanup()
        monkeypatch.undo()

    def test_atexit_registration_follows_config(self, tally_factory, monkeypatch):
        registered, unregistered = [], []
        monkeypatch.setattr(atexit, "register", registered.append)
        monkeypatch.setattr(atexit, "unregister", unregistered.append)

        service = AnalyticsService(tally_factory.create_config(lifecycle__register_atexit=True))
        assert registered == [service._atexit_cleanup]
        service.close()
        assert unregistered == [service._atexit_cleanup]

        AnalyticsService(tally_factory.create_config())
        assert len(registered) == 1

    def test_atexit_cleanup_logs_instead_of_raising(self, service, monkeypatch, log_messages):
        service.log_event(user="U1", channel="C1")

        def broken_append(date_key, records):
            raise OSError("disk full")

        monkeypatch.setattr(service.store, "append", broken_append)
        service._atexit_cleanup()
        assert any("lost at exit" in m for m in log_messages)
        monkeypatch.undo()
