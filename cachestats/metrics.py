from __future__ import annotations

import logging
import weakref
from typing import Any, Dict, Mapping, MutableMapping

from prometheus_client import REGISTRY, CollectorRegistry, Gauge

logger = logging.getLogger(__name__)

# Snapshot field -> (gauge name, help text)
GAUGES: Dict[str, tuple] = {
    "opCount": ("cachestats_op_count", "Total operations on the cache"),
    "setCount": ("cachestats_set_count", "Keys set on the cache"),
    "hitCount": ("cachestats_hit_count", "Reads that found a key"),
    "missCount": ("cachestats_miss_count", "Reads that found no key"),
    "evictionCount": ("cachestats_eviction_count", "Keys explicitly removed"),
    "expiredCount": ("cachestats_expired_count", "Keys removed by TTL expiry"),
    "requestCount": ("cachestats_request_count", "Hits plus misses"),
    "hitRate": ("cachestats_hit_rate_percent", "Hit rate (0-100)"),
    "missRate": ("cachestats_miss_rate_percent", "Miss rate (0-100)"),
    "creationDate": ("cachestats_creation_timestamp_seconds", "When the stats started accumulating"),
}


class StatsMetrics:
    """Prometheus gauges mirroring a finalized stats snapshot."""

    # Gauges per registry, dropped once the registry is garbage collected
    _metrics_cache: MutableMapping[CollectorRegistry, Dict[str, Gauge]] = weakref.WeakKeyDictionary()

    def __init__(self, namespace: str = "default", registry: CollectorRegistry = REGISTRY):
        self.namespace = namespace
        self.registry = registry

        if registry not in self._metrics_cache:
            self._metrics_cache[registry] = {
                field: Gauge(name, doc, ['namespace'], registry=registry)
                for field, (name, doc) in GAUGES.items()
            }
        self.gauges = self._metrics_cache[registry]

    def observe(self, snapshot: Mapping[str, Any]) -> None:
        """Set every gauge whose field is present in ``snapshot``."""
        for field, gauge in self.gauges.items():
            value = snapshot.get(field)
            if value is None:
                continue
            gauge.labels(namespace=self.namespace).set(value)
        logger.debug(f"Exported stats snapshot for namespace {self.namespace}")
