from __future__ import annotations

from typing import Optional, Protocol

from ..stats import CacheStats


class StatsStore(Protocol):
    """Interface for stores that aggregate stats from several producers."""

    def publish(self, producer_id: str, stats: CacheStats) -> None:
        """Store the latest accumulator of a producer, replacing any previous one."""
        ...

    def collect(self) -> Optional[CacheStats]:
        """Merge every published accumulator. None if nothing was published."""
        ...

    def remove(self, producer_id: str) -> None:
        """Forget a producer."""
        ...

    def clear(self) -> None:
        """Forget every producer."""
        ...

    def health_check(self) -> bool:
        """Check if the store is healthy."""
        ...
