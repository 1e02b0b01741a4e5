"""
Stats — Aggregate views over a filtered event sequence

Pure functions over already-loaded events. The query engine decides
which events go in; these decide what comes out.

Result types serialize to the camelCase shape consumers already expect:
    AnalyticsStats  → {"totalInteractions", "totalUsers", ..., "timeRange"}
    ChannelStats    → {"channelId", "channelType", ..., "lastActivity"}
    DailyStats      → {"date", ..., "hourlyDistribution", "topCommands"}
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Any

from .events import InteractionEvent


DEFAULT_TOP_K = 5
UNKNOWN_CHANNEL_TYPE = "unknown"
HOURS = tuple(f"{hour:02d}" for hour in range(24))


@dataclass(frozen=True)
class CommandCount:
    command: str
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"command": self.command, "count": self.count}


@dataclass
class AnalyticsStats:
    total_interactions: int = 0
    total_users: int = 0
    total_channels: int = 0
    average_response_time: float = 0.0
    total_tokens_used: int = 0
    error_rate: float = 0.0
    command_usage: Dict[str, int] = field(default_factory=dict)
    time_range: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalInteractions": self.total_interactions,
            "totalUsers": self.total_users,
            "totalChannels": self.total_channels,
            "averageResponseTime": self.average_response_time,
            "totalTokensUsed": self.total_tokens_used,
            "errorRate": self.error_rate,
            "commandUsage": dict(self.command_usage),
            "timeRange": dict(self.time_range),
        }


@dataclass
class ChannelStats:
    channel_id: str
    channel_type: str
    total_interactions: int
    unique_users: int
    average_response_time: float
    total_tokens_used: int
    error_rate: float
    most_used_commands: List[CommandCount]
    last_activity: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channelId": self.channel_id,
            "channelType": self.channel_type,
            "totalInteractions": self.total_interactions,
            "uniqueUsers": self.unique_users,
            "averageResponseTime": self.average_response_time,
            "totalTokensUsed": self.total_tokens_used,
            "errorRate": self.error_rate,
            "mostUsedCommands": [c.to_dict() for c in self.most_used_commands],
            "lastActivity": self.last_activity,
        }


@dataclass
class DailyStats:
    date: str
    total_interactions: int = 0
    unique_users: int = 0
    unique_channels: int = 0
    average_response_time: float = 0.0
    total_tokens_used: int = 0
    error_count: int = 0
    hourly_distribution: Dict[str, int] = field(default_factory=lambda: dict.fromkeys(HOURS, 0))
    top_commands: List[CommandCount] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "totalInteractions": self.total_interactions,
            "uniqueUsers": self.unique_users,
            "uniqueChannels": self.unique_channels,
            "averageResponseTime": self.average_response_time,
            "totalTokensUsed": self.total_tokens_used,
            "errorCount": self.error_count,
            "hourlyDistribution": dict(self.hourly_distribution),
            "topCommands": [c.to_dict() for c in self.top_commands],
        }


# =============================================================================
# Aggregation helpers
# =============================================================================

def average_response_time(events: Sequence[InteractionEvent]) -> float:
    """Mean responseTime; 0 for an empty sequence."""
    if not events:
        return 0.0
    return sum(e.response_time for e in events) / len(events)


def total_tokens(events: Sequence[InteractionEvent]) -> int:
    return sum(e.total_tokens for e in events)


def error_count(events: Sequence[InteractionEvent]) -> int:
    return sum(1 for e in events if e.has_error)


def error_rate(events: Sequence[InteractionEvent]) -> float:
    if not events:
        return 0.0
    return error_count(events) / len(events)


def command_usage(events: Sequence[InteractionEvent]) -> Dict[str, int]:
    """
    Count events per activity bucket, in first-seen order.

    An event counts toward its command, else toward the "query" bucket
    when it carries query text, else toward nothing.
    """
    counts: Dict[str, int] = {}
    for event in events:
        bucket = event.activity
        if bucket is not None:
            counts[bucket] = counts.get(bucket, 0) + 1
    return counts


def top_commands(events: Sequence[InteractionEvent], k: int = DEFAULT_TOP_K) -> List[CommandCount]:
    """Top-k buckets by count, descending. Ties keep first-seen order."""
    counts = command_usage(events)
    # sorted() is stable and counts preserves insertion order
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [CommandCount(command, count) for command, count in ranked[:k]]


def hourly_distribution(events: Sequence[InteractionEvent]) -> Dict[str, int]:
    """Events per UTC hour; all 24 buckets present."""
    buckets = dict.fromkeys(HOURS, 0)
    for event in events:
        buckets[f"{event.parsed_timestamp.hour:02d}"] += 1
    return buckets


# =============================================================================
# Views
# =============================================================================

def summarize(events: Sequence[InteractionEvent], start: str, end: str) -> AnalyticsStats:
    """Overall stats for a window. Empty input yields zeros."""
    return AnalyticsStats(
        total_interactions=len(events),
        total_users=len({e.user for e in events}),
        total_channels=len({e.channel for e in events}),
        average_response_time=average_response_time(events),
        total_tokens_used=total_tokens(events),
        error_rate=error_rate(events),
        command_usage=command_usage(events),
        time_range={"start": start, "end": end},
    )


def summarize_channel(
    channel_id: str,
    events: Sequence[InteractionEvent],
    k: int = DEFAULT_TOP_K
) -> Optional[ChannelStats]:
    """Stats for one channel, or None when there is nothing to report."""
    if not events:
        return None

    return ChannelStats(
        channel_id=channel_id,
        channel_type=events[0].channel_type or UNKNOWN_CHANNEL_TYPE,
        total_interactions=len(events),
        unique_users=len({e.user for e in events}),
        average_response_time=average_response_time(events),
        total_tokens_used=total_tokens(events),
        error_rate=error_rate(events),
        most_used_commands=top_commands(events, k),
        last_activity=max(e.timestamp for e in events),
    )


def summarize_day(date_key: str, events: Sequence[InteractionEvent], k: int = DEFAULT_TOP_K) -> DailyStats:
    return DailyStats(
        date=date_key,
        total_interactions=len(events),
        unique_users=len({e.user for e in events}),
        unique_channels=len({e.channel for e in events}),
        average_response_time=average_response_time(events),
        total_tokens_used=total_tokens(events),
        error_count=error_count(events),
        hourly_distribution=hourly_distribution(events),
        top_commands=top_commands(events, k),
    )
