"""
Interaction Events — The immutable unit of the analytics log

Events are immutable. Once appended to a partition, never modified.
The caller supplies everything except timestamp and event id;
those are assigned when the event enters the write buffer.

Persisted shape (one JSON object per line):
    {"timestamp": "2025-01-31T09:15:02.123Z", "eventId": "1738314902123-k3j9x0a1b",
     "user": "U123", "channel": "C456", "channelType": "channel",
     "command": "summarize", "responseTime": 812, "isInThread": false,
     "botMentioned": true, ...}
"""

import os
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, Mapping, Union

import xxhash


class ChannelType(Enum):
    IM = "im"
    CHANNEL = "channel"
    GROUP = "group"
    MPIM = "mpim"


# Bucket used in command usage when an event carries free text instead of a command
QUERY_BUCKET = "query"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"

# camelCase wire key -> attribute name
_WIRE_TO_ATTR = {
    "timestamp": "timestamp",
    "eventId": "event_id",
    "user": "user",
    "channel": "channel",
    "channelType": "channel_type",
    "command": "command",
    "query": "query",
    "responseTime": "response_time",
    "tokensUsed": "tokens_used",
    "errorStatus": "error_status",
    "threadTs": "thread_ts",
    "isInThread": "is_in_thread",
    "botMentioned": "bot_mentioned",
}
_ATTR_TO_WIRE = {attr: wire for wire, attr in _WIRE_TO_ATTR.items()}

# Assigned by the buffer, never by the caller
_ASSIGNED = ("timestamp", "event_id")


# =============================================================================
# Timestamps and IDs
# =============================================================================

def format_timestamp(moment: datetime) -> str:
    """
    Format as UTC ISO-8601 with millisecond precision and a Z suffix.

    Fixed width, so string order equals chronological order.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO-8601 string into an aware UTC datetime.

    Accepts a trailing Z. Naive values are taken as UTC.
    Raises ValueError on malformed input.
    """
    if not isinstance(value, str):
        raise ValueError(f"Expected ISO-8601 string, got {type(value).__name__}")
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def now_timestamp() -> str:
    """Current instant as a sortable timestamp string."""
    return format_timestamp(datetime.now(timezone.utc))


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def new_event_id(moment: Optional[datetime] = None) -> str:
    """
    Generate a best-effort unique event id: epoch millis + random suffix.

    Not a primary key. Two events created in the same millisecond collide
    only if their 9-character suffixes also collide.
    """
    moment = moment or datetime.now(timezone.utc)
    millis = int(moment.timestamp() * 1000)
    suffix = _to_base36(xxhash.xxh64(os.urandom(16)).intdigest()).rjust(9, "0")[-9:]
    return f"{millis}-{suffix}"


# =============================================================================
# Nested value types
# =============================================================================

@dataclass(frozen=True)
class TokenUsage:
    """Language-model token counts for one interaction."""
    input: int = 0
    output: int = 0
    total: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"input": self.input, "output": self.output, "total": self.total}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> 'TokenUsage':
        input_tokens = d.get("input", 0) or 0
        output_tokens = d.get("output", 0) or 0
        total = d.get("total")
        if total is None:
            total = input_tokens + output_tokens
        return cls(input=input_tokens, output=output_tokens, total=total)


@dataclass(frozen=True)
class ErrorStatus:
    """Outcome of the interaction when it failed."""
    has_error: bool = False
    error_type: Optional[str] = None
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"hasError": self.has_error}
        if self.error_type is not None:
            d["errorType"] = self.error_type
        if self.error_message is not None:
            d["errorMessage"] = self.error_message
        return d

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> 'ErrorStatus':
        return cls(
            has_error=bool(d.get("hasError", d.get("has_error", False))),
            error_type=d.get("errorType", d.get("error_type")),
            error_message=d.get("errorMessage", d.get("error_message")),
        )


def _coerce_tokens(value: Any) -> Optional[TokenUsage]:
    if value is None or isinstance(value, TokenUsage):
        return value
    return TokenUsage.from_dict(value)


def _coerce_error(value: Any) -> Optional[ErrorStatus]:
    if value is None or isinstance(value, ErrorStatus):
        return value
    return ErrorStatus.from_dict(value)


def _coerce_channel_type(value: Any) -> Optional[str]:
    if isinstance(value, ChannelType):
        return value.value
    return value


# =============================================================================
# InteractionEvent
# =============================================================================

@dataclass(frozen=True)
class InteractionEvent:
    timestamp: str
    event_id: str
    user: str
    channel: str
    response_time: float = 0
    channel_type: Optional[str] = None  # ChannelType value; unknown strings preserved
    command: Optional[str] = None
    query: Optional[str] = None
    tokens_used: Optional[TokenUsage] = None
    error_status: Optional[ErrorStatus] = None
    thread_ts: Optional[str] = None
    is_in_thread: bool = False
    bot_mentioned: bool = False

    @classmethod
    def create(
        cls,
        event_data: Optional[Mapping[str, Any]] = None,
        moment: Optional[datetime] = None,
        **fields: Any
    ) -> 'InteractionEvent':
        """
        Build an event from caller-supplied data, assigning timestamp and id.

        Keys may be attribute names (response_time) or wire keys (responseTime).
        Caller-supplied timestamp/eventId are ignored. Contents are not validated.
        """
        merged: Dict[str, Any] = {}
        for source in (event_data or {}, fields):
            for key, value in source.items():
                attr = _WIRE_TO_ATTR.get(key, key)
                if attr in _ATTR_TO_WIRE and attr not in _ASSIGNED:
                    merged[attr] = value

        moment = moment or datetime.now(timezone.utc)
        return cls(
            timestamp=format_timestamp(moment),
            event_id=new_event_id(moment),
            user=merged.get("user", ""),
            channel=merged.get("channel", ""),
            response_time=merged.get("response_time", 0),
            channel_type=_coerce_channel_type(merged.get("channel_type")),
            command=merged.get("command"),
            query=merged.get("query"),
            tokens_used=_coerce_tokens(merged.get("tokens_used")),
            error_status=_coerce_error(merged.get("error_status")),
            thread_ts=merged.get("thread_ts"),
            is_in_thread=bool(merged.get("is_in_thread", False)),
            bot_mentioned=bool(merged.get("bot_mentioned", False)),
        )

    # -------------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------------

    @property
    def date_key(self) -> str:
        """Partition key: UTC calendar date YYYY-MM-DD."""
        return self.timestamp[:10]

    @property
    def parsed_timestamp(self) -> datetime:
        return parse_timestamp(self.timestamp)

    @property
    def has_error(self) -> bool:
        return bool(self.error_status and self.error_status.has_error)

    @property
    def total_tokens(self) -> int:
        if self.tokens_used is None:
            return 0
        return self.tokens_used.total or 0

    @property
    def activity(self) -> Optional[str]:
        """Command name, the query bucket for free-text questions, or None."""
        if self.command:
            return self.command
        if self.query:
            return QUERY_BUCKET
        return None

    def with_timestamp(self, timestamp: Union[str, datetime]) -> 'InteractionEvent':
        """Copy with a different timestamp (for backfills and fixtures)."""
        if isinstance(timestamp, datetime):
            timestamp = format_timestamp(timestamp)
        return replace(self, timestamp=timestamp)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape. Absent optional fields are omitted."""
        d: Dict[str, Any] = {
            "timestamp": self.timestamp,
            "eventId": self.event_id,
            "user": self.user,
            "channel": self.channel,
        }
        if self.channel_type is not None:
            d["channelType"] = self.channel_type
        if self.command is not None:
            d["command"] = self.command
        if self.query is not None:
            d["query"] = self.query
        d["responseTime"] = self.response_time
        if self.tokens_used is not None:
            d["tokensUsed"] = self.tokens_used.to_dict()
        if self.error_status is not None:
            d["errorStatus"] = self.error_status.to_dict()
        if self.thread_ts is not None:
            d["threadTs"] = self.thread_ts
        d["isInThread"] = self.is_in_thread
        d["botMentioned"] = self.bot_mentioned
        return d

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> 'InteractionEvent':
        """
        Rebuild from the wire shape.

        Raises KeyError when timestamp, eventId, user or channel is missing.
        """
        tokens = d.get("tokensUsed")
        error = d.get("errorStatus")
        return cls(
            timestamp=d["timestamp"],
            event_id=d["eventId"],
            user=d["user"],
            channel=d["channel"],
            response_time=d.get("responseTime", 0),
            channel_type=d.get("channelType"),
            command=d.get("command"),
            query=d.get("query"),
            tokens_used=TokenUsage.from_dict(tokens) if tokens is not None else None,
            error_status=ErrorStatus.from_dict(error) if error is not None else None,
            thread_ts=d.get("threadTs"),
            is_in_thread=bool(d.get("isInThread", False)),
            bot_mentioned=bool(d.get("botMentioned", False)),
        )
