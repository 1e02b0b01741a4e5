"""
Core — Storage and query layer for Tally

- Events: Immutable interaction records
- Partitions: Append-only NDJSON file per UTC date
- Buffer: Per-date write batching with size and timer flushes
- Query: Range reads with filters, flush barrier first
- Stats: Aggregate views (overall, channel, daily)
- Metrics: Buffer observability
"""

from .events import (
    InteractionEvent, TokenUsage, ErrorStatus, ChannelType, QUERY_BUCKET,
    format_timestamp, parse_timestamp, now_timestamp, new_event_id,
)
from .partitions import PartitionStore, normalize_date_key
from .metrics import BufferMetrics, LatencyHistogram
from .buffer import WriteBuffer
from .stats import AnalyticsStats, ChannelStats, DailyStats, CommandCount
from .query import AnalyticsQuery, QueryEngine, parse_query_date

__all__ = [
    'InteractionEvent', 'TokenUsage', 'ErrorStatus', 'ChannelType', 'QUERY_BUCKET',
    'format_timestamp', 'parse_timestamp', 'now_timestamp', 'new_event_id',
    'PartitionStore', 'normalize_date_key',
    'BufferMetrics', 'LatencyHistogram',
    'WriteBuffer',
    'AnalyticsStats', 'ChannelStats', 'DailyStats', 'CommandCount',
    'AnalyticsQuery', 'QueryEngine', 'parse_query_date',
]
