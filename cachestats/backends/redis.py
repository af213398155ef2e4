from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import List, Optional

import redis

from ..serializers import deserialize_stats, serialize_stats
from ..stats import CacheStats, merge_all
from .base import StatsStore

logger = logging.getLogger(__name__)


@dataclass
class RedisStatsStore(StatsStore):
    """Stats store shared between processes through a Redis hash.

    Each producer writes its serialized accumulator under its own hash field;
    ``collect`` reads the whole hash and merges it.
    """

    redis_url: str = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
    key_prefix: str = os.environ.get("CACHESTATS_PREFIX", "cachestats:")
    namespace: str = os.environ.get("CACHESTATS_NAMESPACE", "default")

    def __post_init__(self) -> None:
        try:
            self._client = redis.from_url(self.redis_url)
        except Exception as e:
            # Redact password from URL
            safe_url = re.sub(r'://:[^@]+@', '://***@', self.redis_url)
            logger.error(f"Failed to connect to Redis at {safe_url}: {e}")
            raise

    @property
    def key(self) -> str:
        return f"{self.key_prefix}{self.namespace}"

    def publish(self, producer_id: str, stats: CacheStats) -> None:
        try:
            self._client.hset(self.key, producer_id, serialize_stats(stats))
        except Exception as e:
            logger.error(f"Redis HSET error for producer {producer_id}: {e}")

    def collect(self) -> Optional[CacheStats]:
        try:
            blobs = self._client.hgetall(self.key)
        except Exception as e:
            logger.error(f"Redis HGETALL error for {self.key}: {e}")
            return None

        collected: List[CacheStats] = []
        for producer_id, blob in blobs.items():
            try:
                collected.append(deserialize_stats(blob))
            except Exception as e:
                if isinstance(producer_id, bytes):
                    producer_id = producer_id.decode()
                logger.warning(f"Skipping corrupt stats from producer {producer_id}: {e}")
        return merge_all(collected)

    def remove(self, producer_id: str) -> None:
        try:
            self._client.hdel(self.key, producer_id)
        except Exception as e:
            logger.error(f"Redis HDEL error for producer {producer_id}: {e}")

    def clear(self) -> None:
        try:
            self._client.delete(self.key)
        except Exception as e:
            logger.error(f"Error clearing stats for {self.key}: {e}")

    def health_check(self) -> bool:
        """Check if Redis is reachable."""
        try:
            return bool(self._client.ping())
        except Exception:
            return False

    def close(self) -> None:
        """Close the Redis connection."""
        try:
            self._client.close()
        except Exception as e:
            logger.error(f"Error closing Redis connection: {e}")
