from .backends.base import StatsStore
from .backends.memory import MemoryStatsStore
from .backends.redis import RedisStatsStore
from .cache import CacheConfig, StatsCache
from .errors import StatsNotEnabledError
from .metrics import StatsMetrics
from .serializers import deserialize_stats, serialize_stats
from .stats import (
    CacheState,
    CacheStats,
    StatKind,
    add_eviction,
    add_expiration,
    add_hit,
    add_miss,
    add_op,
    add_set,
    finalize,
    increment_stat,
    merge,
    merge_all,
    new_stats,
)

__all__ = [
    "CacheStats",
    "CacheState",
    "StatKind",
    "new_stats",
    "increment_stat",
    "add_eviction",
    "add_expiration",
    "add_hit",
    "add_miss",
    "add_op",
    "add_set",
    "finalize",
    "merge",
    "merge_all",
    "CacheConfig",
    "StatsCache",
    "StatsNotEnabledError",
    "StatsStore",
    "MemoryStatsStore",
    "RedisStatsStore",
    "StatsMetrics",
    "serialize_stats",
    "deserialize_stats",
]

__version__ = "1.0.0"
