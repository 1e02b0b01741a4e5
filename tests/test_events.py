"""
Tests for InteractionEvent — Construction, timestamps and wire shape

Tests verify:
- Timestamp and eventId are assigned at construction, never taken from the caller
- Timestamps are fixed-width so string order equals chronological order
- Wire keys are camelCase; absent optionals are omitted
- Derived views (date_key, activity, has_error, total_tokens)
"""

import re
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from tally.core.events import (
    InteractionEvent, TokenUsage, ErrorStatus, ChannelType, QUERY_BUCKET,
    format_timestamp, parse_timestamp, new_event_id,
)


MOMENT = datetime(2025, 1, 31, 9, 15, 2, 123456, tzinfo=timezone.utc)


# =============================================================================
# Timestamps and IDs
# =============================================================================

class TestTimestamps:
    """Sortable millisecond timestamps."""

    def test_format_has_millisecond_precision_and_z_suffix(self):
        """Microseconds are truncated to milliseconds."""
        assert format_timestamp(MOMENT) == "2025-01-31T09:15:02.123Z"

    def test_format_converts_to_utc(self):
        """Offset-aware datetimes are rendered in UTC."""
        plus_two = timezone(timedelta(hours=2))
        moment = datetime(2025, 1, 31, 11, 0, 0, tzinfo=plus_two)
        assert format_timestamp(moment) == "2025-01-31T09:00:00.000Z"

    def test_naive_datetime_is_utc(self):
        assert format_timestamp(datetime(2025, 1, 1)) == "2025-01-01T00:00:00.000Z"

    def test_string_order_matches_chronological_order(self):
        """Fixed width means lexicographic order is time order."""
        moments = [MOMENT + timedelta(milliseconds=ms) for ms in (0, 7, 950, 1000, 86_400_000)]
        formatted = [format_timestamp(m) for m in moments]
        assert formatted == sorted(formatted)

    def test_parse_accepts_z_and_offsets(self):
        assert parse_timestamp("2025-01-31T09:15:02.123Z") == datetime(
            2025, 1, 31, 9, 15, 2, 123000, tzinfo=timezone.utc
        )
        assert parse_timestamp("2025-01-31T11:15:02+02:00") == datetime(
            2025, 1, 31, 9, 15, 2, tzinfo=timezone.utc
        )

    def test_parse_naive_is_utc(self):
        assert parse_timestamp("2025-01-31T09:00:00").tzinfo == timezone.utc

    def test_parse_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")
        with pytest.raises(ValueError):
            parse_timestamp(12345)

    def test_event_id_shape(self):
        """Epoch millis, dash, 9 base36 characters."""
        event_id = new_event_id(MOMENT)
        millis, suffix = event_id.split("-")
        assert int(millis) == int(MOMENT.timestamp() * 1000)
        assert re.fullmatch(r"[0-9a-z]{9}", suffix)

    def test_event_ids_differ_within_same_millisecond(self):
        ids = {new_event_id(MOMENT) for _ in range(200)}
        assert len(ids) == 200

    @pytest.mark.parametrize("digest,suffix", [
        (2 ** 64 - 1, "11264sgsf"),  # base36 "3w5e11264sgsf"
        (35, "00000000z"),
    ])
    def test_event_id_suffix_keeps_low_digits(self, monkeypatch, digest, suffix):
        """The suffix is the last 9 base36 digits of the hash, zero-padded."""
        fake_hash = SimpleNamespace(intdigest=lambda: digest)
        monkeypatch.setattr("tally.core.events.xxhash.xxh64", lambda data: fake_hash)
        assert new_event_id(MOMENT).endswith("-" + suffix)


# =============================================================================
# Construction
# =============================================================================

class TestCreate:
    """InteractionEvent.create assigns identity fields."""

    def test_assigns_timestamp_and_id(self):
        event = InteractionEvent.create({"user": "U1", "channel": "C1"}, moment=MOMENT)
        assert event.timestamp == "2025-01-31T09:15:02.123Z"
        assert event.event_id.startswith(str(int(MOMENT.timestamp() * 1000)))

    def test_caller_timestamp_and_id_are_ignored(self):
        event = InteractionEvent.create(
            {"user": "U1", "channel": "C1", "timestamp": "1999-01-01T00:00:00.000Z", "eventId": "mine"},
            moment=MOMENT,
        )
        assert event.timestamp.startswith("2025-01-31")
        assert event.event_id != "mine"

    def test_accepts_wire_and_attribute_keys(self):
        """camelCase and snake_case spellings land on the same attribute."""
        a = InteractionEvent.create({"responseTime": 50, "isInThread": True}, moment=MOMENT)
        b = InteractionEvent.create(response_time=50, is_in_thread=True, moment=MOMENT)
        assert a.response_time == b.response_time == 50
        assert a.is_in_thread and b.is_in_thread

    def test_keyword_fields_override_mapping(self):
        event = InteractionEvent.create({"user": "U1"}, user="U2", moment=MOMENT)
        assert event.user == "U2"

    def test_unknown_keys_are_ignored(self):
        event = InteractionEvent.create({"user": "U1", "mood": "happy"}, moment=MOMENT)
        assert not hasattr(event, "mood")

    def test_no_validation_of_contents(self):
        """Negative response times are accepted as given."""
        event = InteractionEvent.create(response_time=-5, moment=MOMENT)
        assert event.response_time == -5

    def test_nested_values_are_coerced(self):
        event = InteractionEvent.create(
            tokens_used={"input": 3, "output": 4},
            error_status={"hasError": True, "errorType": "rate_limit"},
            channel_type=ChannelType.MPIM,
            moment=MOMENT,
        )
        assert event.tokens_used == TokenUsage(input=3, output=4, total=7)
        assert event.error_status == ErrorStatus(has_error=True, error_type="rate_limit")
        assert event.channel_type == "mpim"

    def test_events_are_immutable(self):
        event = InteractionEvent.create(user="U1", moment=MOMENT)
        with pytest.raises(AttributeError):
            event.user = "U2"


# =============================================================================
# Derived views
# =============================================================================

class TestDerivedViews:

    def test_date_key_is_utc_date(self):
        late = datetime(2025, 1, 31, 23, 59, 59, 999000, tzinfo=timezone.utc)
        assert InteractionEvent.create(moment=late).date_key == "2025-01-31"

    def test_activity_prefers_command(self):
        event = InteractionEvent.create(command="help", query="how?", moment=MOMENT)
        assert event.activity == "help"

    def test_activity_falls_back_to_query_bucket(self):
        assert InteractionEvent.create(query="how?", moment=MOMENT).activity == QUERY_BUCKET

    def test_activity_none_without_command_or_query(self):
        assert InteractionEvent.create(moment=MOMENT).activity is None

    def test_has_error_treats_absent_as_false(self):
        assert InteractionEvent.create(moment=MOMENT).has_error is False
        assert InteractionEvent.create(error_status={"hasError": True}, moment=MOMENT).has_error is True

    def test_total_tokens_treats_absent_as_zero(self):
        assert InteractionEvent.create(moment=MOMENT).total_tokens == 0
        assert InteractionEvent.create(tokens_used={"total": 12}, moment=MOMENT).total_tokens == 12

    def test_with_timestamp_copies(self):
        event = InteractionEvent.create(user="U1", moment=MOMENT)
        moved = event.with_timestamp(datetime(2025, 2, 1, tzinfo=timezone.utc))
        assert moved.timestamp == "2025-02-01T00:00:00.000Z"
        assert moved.event_id == event.event_id
        assert event.timestamp == "2025-01-31T09:15:02.123Z"


# =============================================================================
# Serialization
# =============================================================================

class TestSerialization:

    def test_to_dict_uses_camel_case_and_omits_absent_optionals(self):
        event = InteractionEvent.create(user="U1", channel="C1", command="help", moment=MOMENT)
        d = event.to_dict()
        assert d["eventId"] == event.event_id
        assert d["responseTime"] == 0
        assert d["isInThread"] is False
        assert d["botMentioned"] is False
        for absent in ("query", "tokensUsed", "errorStatus", "channelType", "threadTs"):
            assert absent not in d

    def test_from_dict_restores_all_fields(self):
        event = InteractionEvent.create(
            user="U1", channel="C1", channel_type="group", command="ask",
            query="q", response_time=812, tokens_used={"input": 1, "output": 2, "total": 3},
            error_status={"hasError": True, "errorMessage": "boom"},
            thread_ts="1738314902.000100", is_in_thread=True, bot_mentioned=True,
            moment=MOMENT,
        )
        assert InteractionEvent.from_dict(event.to_dict()) == event

    def test_unknown_channel_type_is_preserved(self):
        d = InteractionEvent.create(user="U1", channel="C1", moment=MOMENT).to_dict()
        d["channelType"] = "huddle"
        assert InteractionEvent.from_dict(d).channel_type == "huddle"

    def test_from_dict_requires_identity_fields(self):
        d = InteractionEvent.create(user="U1", channel="C1", moment=MOMENT).to_dict()
        del d["eventId"]
        with pytest.raises(KeyError):
            InteractionEvent.from_dict(d)
