"""Backend initialization."""
from .base import StatsStore
from .memory import MemoryStatsStore
from .redis import RedisStatsStore

__all__ = [
    "StatsStore",
    "MemoryStatsStore",
    "RedisStatsStore",
]
