from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from ..serializers import deserialize_stats, serialize_stats
from ..stats import CacheStats, merge_all
from .base import StatsStore

logger = logging.getLogger(__name__)


class MemoryStatsStore(StatsStore):
    """In-process stats store for producers running as threads."""

    def __init__(self) -> None:
        # Serialized snapshots, so producers never share a live accumulator
        self._data: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def publish(self, producer_id: str, stats: CacheStats) -> None:
        blob = serialize_stats(stats)
        with self._lock:
            self._data[producer_id] = blob

    def collect(self) -> Optional[CacheStats]:
        with self._lock:
            blobs = list(self._data.values())
        return merge_all(deserialize_stats(blob) for blob in blobs)

    def producers(self) -> List[str]:
        with self._lock:
            return list(self._data)

    def remove(self, producer_id: str) -> None:
        with self._lock:
            self._data.pop(producer_id, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def health_check(self) -> bool:
        return True
