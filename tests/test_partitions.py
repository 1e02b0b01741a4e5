"""
Tests for PartitionStore — Append-only NDJSON partitions

Tests verify:
- File naming is deterministic from the date
- append writes every record in one call and creates missing directories
- Absent partitions load as empty
- A corrupt line aborts the load with its line number
"""

from datetime import date

import orjson
import pytest

from tally.core.partitions import PartitionStore, normalize_date_key
from tally.errors import PartitionCorruptError, QueryError


class TestNaming:

    def test_path_for_date_key(self, tmp_path):
        store = PartitionStore(tmp_path)
        assert store.path_for("2025-01-31") == tmp_path / "analytics-2025-01-31.jsonl"

    def test_path_for_date_object(self, tmp_path):
        store = PartitionStore(tmp_path)
        assert store.path_for(date(2025, 1, 31)).name == "analytics-2025-01-31.jsonl"

    @pytest.mark.parametrize("bad", ["2025-1-31", "2025-02-30", "../etc", "", None])
    def test_malformed_date_key_raises_query_error(self, bad):
        with pytest.raises(QueryError):
            normalize_date_key(bad)


class TestAppendAndLoad:

    def test_absent_partition_loads_empty(self, tmp_path):
        """Loading a date with no writes is not an error."""
        store = PartitionStore(tmp_path / "never-created")
        assert store.load("2025-01-31") == []
        assert store.count("2025-01-31") == 0

    def test_append_creates_directory_and_file(self, tally_factory):
        events = [tally_factory.make_event("2025-01-31T10:00:00.000Z", command=f"c{i}") for i in range(3)]
        assert tally_factory.store.append("2025-01-31", events) == 3
        assert tally_factory.store.path_for("2025-01-31").exists()

    def test_one_record_per_line(self, tally_factory):
        events = [tally_factory.make_event("2025-01-31T10:00:00.000Z") for _ in range(2)]
        tally_factory.store.append("2025-01-31", events)
        lines = tally_factory.store.path_for("2025-01-31").read_bytes().splitlines()
        assert len(lines) == 2
        assert orjson.loads(lines[0])["eventId"] == events[0].event_id

    def test_load_preserves_append_order(self, tally_factory):
        """Order reflects appends, not timestamps."""
        later = tally_factory.make_event("2025-01-31T12:00:00.000Z", command="later")
        earlier = tally_factory.make_event("2025-01-31T08:00:00.000Z", command="earlier")
        tally_factory.store.append("2025-01-31", [later])
        tally_factory.store.append("2025-01-31", [earlier])
        assert [e.command for e in tally_factory.store.load("2025-01-31")] == ["later", "earlier"]

    def test_empty_append_does_not_touch_disk(self, tmp_path):
        store = PartitionStore(tmp_path / "analytics")
        assert store.append("2025-01-31", []) == 0
        assert not store.directory.exists()

    def test_blank_lines_are_skipped(self, tally_factory):
        tally_factory.add_event("2025-01-31T10:00:00.000Z")
        tally_factory.write_raw("2025-01-31", "\n\n")
        tally_factory.add_event("2025-01-31T11:00:00.000Z")
        assert tally_factory.store.count("2025-01-31") == 2

    def test_dates_lists_existing_partitions_sorted(self, tally_factory):
        tally_factory.add_event("2025-02-01T00:00:00.000Z")
        tally_factory.add_event("2025-01-30T00:00:00.000Z")
        (tally_factory.directory / "notes.txt").write_text("ignored")
        assert tally_factory.store.dates() == ["2025-01-30", "2025-02-01"]


class TestCorruption:
    """Strict mode: one bad line fails the whole partition."""

    def test_invalid_json_raises_with_line_number(self, tally_factory):
        tally_factory.add_event("2025-01-31T10:00:00.000Z")
        path = tally_factory.write_raw("2025-01-31", "{not json\n")
        with pytest.raises(PartitionCorruptError) as excinfo:
            tally_factory.store.load("2025-01-31")
        assert excinfo.value.line_number == 2
        assert excinfo.value.path == path

    def test_missing_required_field_is_corrupt(self, tally_factory):
        tally_factory.write_raw("2025-01-31", '{"timestamp": "2025-01-31T10:00:00.000Z"}\n')
        with pytest.raises(PartitionCorruptError):
            tally_factory.store.load("2025-01-31")

    def test_bad_timestamp_is_corrupt(self, tally_factory):
        tally_factory.write_raw(
            "2025-01-31",
            '{"timestamp": "soon", "eventId": "x", "user": "U1", "channel": "C1"}\n',
        )
        with pytest.raises(PartitionCorruptError):
            tally_factory.store.load("2025-01-31")

    def test_non_object_line_is_corrupt(self, tally_factory):
        tally_factory.write_raw("2025-01-31", "[1, 2, 3]\n")
        with pytest.raises(PartitionCorruptError):
            tally_factory.store.load("2025-01-31")
