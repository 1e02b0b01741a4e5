"""
Tally — Embedded interaction analytics

Append-only event log, partitioned by UTC day, with write batching
and a read-side query/aggregation engine.

Usage:
    from tally import AnalyticsService

    with AnalyticsService() as analytics:
        analytics.log_event(user="U1", channel="C1", command="help", response_time=120)
        print(analytics.get_stats().to_dict())

CLI:
    tally stats --start 2025-01-01
    tally channel C123
    tally daily 2025-01-31
    tally partitions
    tally ingest events.ndjson
"""

__version__ = "0.1.0"

# Core layer
from .core.events import InteractionEvent, TokenUsage, ErrorStatus, ChannelType
from .core.partitions import PartitionStore
from .core.buffer import WriteBuffer
from .core.metrics import BufferMetrics
from .core.query import AnalyticsQuery, QueryEngine
from .core.stats import AnalyticsStats, ChannelStats, DailyStats, CommandCount

# Errors
from .errors import TallyError, QueryError, ConfigError, PartitionCorruptError, FlushError

# Config
from .config import TallyConfig, ConfigManager, load_config

# Service boundary
from .service import AnalyticsService

__all__ = [
    # Core
    'InteractionEvent', 'TokenUsage', 'ErrorStatus', 'ChannelType',
    'PartitionStore', 'WriteBuffer', 'BufferMetrics',
    'AnalyticsQuery', 'QueryEngine',
    'AnalyticsStats', 'ChannelStats', 'DailyStats', 'CommandCount',
    # Errors
    'TallyError', 'QueryError', 'ConfigError', 'PartitionCorruptError', 'FlushError',
    # Config
    'TallyConfig', 'ConfigManager', 'load_config',
    # Service
    'AnalyticsService',
]
