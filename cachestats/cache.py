from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import StatsNotEnabledError
from .stats import (
    CacheState,
    CacheStats,
    add_eviction,
    add_expiration,
    add_hit,
    add_miss,
    add_op,
    add_set,
    finalize,
    new_stats,
)

logger = logging.getLogger(__name__)


def _env_ttl() -> Optional[int]:
    raw = os.environ.get("CACHESTATS_DEFAULT_TTL", "")
    return int(raw) if raw else None


@dataclass
class CacheConfig:
    namespace: str = os.environ.get("CACHESTATS_NAMESPACE", "default")
    record_stats: bool = os.environ.get("CACHESTATS_RECORD_STATS", "true").lower() == "true"
    default_ttl: Optional[int] = _env_ttl()  # None = entries never expire
    enable_logging: bool = os.environ.get("CACHESTATS_LOGGING", "false").lower() == "true"

    def __post_init__(self) -> None:
        if not self.namespace:
            raise ValueError("namespace must not be empty")

        if self.default_ttl is not None and self.default_ttl < 0:
            raise ValueError(f"default_ttl must be >= 0, got {self.default_ttl}")


class StatsCache:
    """In-memory cache with TTL support that records stats for every operation.

    The stats accumulator is a value; each operation replaces ``self.state``
    with the state returned by the stats functions. When ``record_stats`` is
    off the state carries no accumulator and those calls are no-ops.
    """

    def __init__(self, config: Optional[CacheConfig] = None) -> None:
        self.config = config or CacheConfig()
        self.state = CacheState(
            name=self.config.namespace,
            stats=new_stats(self.config.record_stats),
        )
        # Store tuples of (value, expiry_timestamp or None)
        self._data: Dict[Any, Tuple[Any, Optional[float]]] = {}

    def _expires_at(self, ttl: Optional[int]) -> Optional[float]:
        ttl = self.config.default_ttl if ttl is None else ttl
        if ttl is None:
            return None
        return time.time() + ttl

    @staticmethod
    def _is_expired(expires_at: Optional[float], now: float) -> bool:
        return expires_at is not None and now >= expires_at

    def get(self, key: Any, default: Any = None) -> Any:
        entry = self._data.get(key)
        if entry is not None:
            value, expires_at = entry
            if not self._is_expired(expires_at, time.time()):
                self.state = add_hit(self.state)
                if self.config.enable_logging:
                    logger.debug(f"Cache HIT: {key!r} ({self.config.namespace})")
                return value

            del self._data[key]
            self.state = add_expiration(self.state)
            if self.config.enable_logging:
                logger.debug(f"Cache entry expired on read: {key!r} ({self.config.namespace})")

        self.state = add_miss(self.state)
        if self.config.enable_logging:
            logger.debug(f"Cache MISS: {key!r} ({self.config.namespace})")
        return default

    def set(self, key: Any, value: Any, ttl: Optional[int] = None) -> None:
        if ttl is not None and ttl < 0:
            raise ValueError(f"ttl must be >= 0, got {ttl}")
        self._data[key] = (value, self._expires_at(ttl))
        self.state = add_set(self.state)
        if self.config.enable_logging:
            logger.debug(f"Cached {key!r} (ttl={ttl if ttl is not None else self.config.default_ttl})")

    def delete(self, key: Any) -> bool:
        """Delete a key. Returns True if the key existed."""
        if self._data.pop(key, None) is None:
            return False
        self.state = add_eviction(self.state)
        return True

    def clear(self) -> int:
        """Remove every entry. Returns number of entries removed."""
        count = len(self._data)
        self._data.clear()
        self.state = add_eviction(self.state, count)
        if self.config.enable_logging:
            logger.info(f"Cleared {count} cache entries ({self.config.namespace})")
        return count

    def purge(self) -> int:
        """Remove expired entries. Returns number of entries removed."""
        now = time.time()
        expired_keys = [k for k, (_, exp) in self._data.items() if self._is_expired(exp, now)]
        for key in expired_keys:
            del self._data[key]
        self.state = add_expiration(self.state, len(expired_keys))
        if self.config.enable_logging and expired_keys:
            logger.info(f"Purged {len(expired_keys)} expired entries ({self.config.namespace})")
        return len(expired_keys)

    def exists(self, key: Any) -> bool:
        self.state = add_op(self.state)
        entry = self._data.get(key)
        return entry is not None and not self._is_expired(entry[1], time.time())

    def size(self) -> int:
        self.state = add_op(self.state)
        return len(self._data)

    def keys(self) -> List[Any]:
        self.state = add_op(self.state)
        return list(self._data)

    def raw_stats(self) -> Optional[CacheStats]:
        """Current accumulator, or None when stats are disabled."""
        return self.state.stats

    def stats(self) -> Mapping[str, Any]:
        """Finalized stats snapshot for this cache."""
        if self.state.stats is None:
            raise StatsNotEnabledError(f"Stats not enabled for cache '{self.config.namespace}'")
        return finalize(self.state.stats)
