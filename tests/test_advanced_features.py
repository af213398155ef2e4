from __future__ import annotations

import gc
import logging
import threading
import weakref
from unittest.mock import MagicMock, patch

import msgpack
import pytest
from prometheus_client import CollectorRegistry

from cachestats import (
    CacheConfig,
    CacheStats,
    MemoryStatsStore,
    RedisStatsStore,
    StatsCache,
    StatsMetrics,
    finalize,
    merge,
)
from cachestats.serializers import deserialize_stats, serialize_stats


# ==================== Serialization ====================

def test_serialize_roundtrip() -> None:
    stats = CacheStats(op_count=9, set_count=2, hit_count=3, miss_count=4,
                       eviction_count=5, expired_count=6, creation_date=1700000000.5)
    assert deserialize_stats(serialize_stats(stats)) == stats


def test_serialized_blob_uses_report_names() -> None:
    payload = msgpack.unpackb(serialize_stats(CacheStats(hit_count=2)), raw=False)
    assert payload["hitCount"] == 2
    assert payload["creationDate"] is None
    assert "hit_count" not in payload


def test_deserialize_partial_blob() -> None:
    blob = msgpack.packb({"opCount": 3, "missCount": 3}, use_bin_type=True)
    stats = deserialize_stats(blob)
    assert stats.op_count == 3
    assert stats.miss_count == 3
    assert stats.hit_count == 0
    assert stats.creation_date is None


@pytest.mark.parametrize("payload", [
    {"opCount": 1, "creationDate": "yesterday"},
    {"opCount": 1, "creationDate": True},
    {"hitCount": 2.9},
    {"missCount": "3"},
    {"evictionCount": False},
])
def test_deserialize_rejects_wrong_types(payload: dict) -> None:
    with pytest.raises(ValueError):
        deserialize_stats(msgpack.packb(payload, use_bin_type=True))


def test_deserialize_accepts_integer_creation_date() -> None:
    blob = msgpack.packb({"opCount": 1, "creationDate": 1700000000}, use_bin_type=True)
    assert deserialize_stats(blob).creation_date == 1700000000


def test_deserialize_rejects_non_map() -> None:
    with pytest.raises(ValueError):
        deserialize_stats(msgpack.packb([1, 2, 3]))


# ==================== Memory store ====================

def test_memory_store_merges_producers_across_threads() -> None:
    store = MemoryStatsStore()
    expected = []
    lock = threading.Lock()

    def worker(n: int) -> None:
        cache = StatsCache(CacheConfig(namespace="t"))
        for i in range(n):
            cache.set(i, i)
            cache.get(i)
        cache.get("missing")
        with lock:
            expected.append(cache.raw_stats())
        store.publish(f"worker-{n}", cache.raw_stats())

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(1, 5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    collected = store.collect()
    assert collected.hit_count == 1 + 2 + 3 + 4
    assert collected.miss_count == 4
    assert collected.set_count == 10
    assert collected.creation_date == min(s.creation_date for s in expected)
    assert sorted(store.producers()) == ["worker-1", "worker-2", "worker-3", "worker-4"]


def test_memory_store_publish_replaces_previous_snapshot() -> None:
    store = MemoryStatsStore()
    store.publish("w", CacheStats(hit_count=1, op_count=1))
    store.publish("w", CacheStats(hit_count=5, op_count=5))
    assert store.collect().hit_count == 5


def test_memory_store_remove_and_clear() -> None:
    store = MemoryStatsStore()
    assert store.collect() is None
    store.publish("a", CacheStats(op_count=1))
    store.publish("b", CacheStats(op_count=2))
    store.remove("a")
    assert store.collect().op_count == 2
    store.clear()
    assert store.collect() is None
    assert store.health_check() is True


# ==================== Redis store ====================

@pytest.fixture
def redis_client():
    with patch("cachestats.backends.redis.redis") as mock_redis_module:
        mock_client = MagicMock()
        mock_redis_module.from_url.return_value = mock_client
        yield mock_client


def test_redis_store_publish_uses_namespace_hash(redis_client: MagicMock) -> None:
    store = RedisStatsStore(key_prefix="cs:", namespace="t")
    stats = CacheStats(hit_count=1, op_count=1)
    store.publish("worker-1", stats)

    redis_client.hset.assert_called_once_with("cs:t", "worker-1", serialize_stats(stats))


def test_redis_store_collect_merges_and_skips_corrupt(redis_client: MagicMock) -> None:
    a = CacheStats(hit_count=1, op_count=1, creation_date=20.0)
    b = CacheStats(miss_count=2, op_count=2, creation_date=10.0)
    redis_client.hgetall.return_value = {
        b"w1": serialize_stats(a),
        b"w2": serialize_stats(b),
        b"w3": b"\xc1",
    }
    store = RedisStatsStore(key_prefix="cs:", namespace="t")
    assert store.collect() == merge(a, b)
    redis_client.hgetall.assert_called_once_with("cs:t")


def test_redis_store_collect_skips_blob_with_bad_date(redis_client: MagicMock) -> None:
    good = CacheStats(hit_count=1, op_count=1, creation_date=20.0)
    redis_client.hgetall.return_value = {
        b"w1": serialize_stats(good),
        b"w2": msgpack.packb({"opCount": 1, "creationDate": "yesterday"}, use_bin_type=True),
    }
    store = RedisStatsStore(key_prefix="cs:", namespace="t")
    assert store.collect() == good


def test_redis_store_close(redis_client: MagicMock, caplog: pytest.LogCaptureFixture) -> None:
    store = RedisStatsStore()
    store.close()
    redis_client.close.assert_called_once()

    redis_client.close.side_effect = Exception("Down")
    with caplog.at_level(logging.ERROR, logger="cachestats.backends.redis"):
        store.close()
    assert "Error closing Redis connection" in caplog.text


def test_redis_store_errors_are_not_raised(redis_client: MagicMock) -> None:
    redis_client.hset.side_effect = Exception("Down")
    redis_client.hgetall.side_effect = Exception("Down")
    redis_client.hdel.side_effect = Exception("Down")
    redis_client.delete.side_effect = Exception("Down")

    store = RedisStatsStore(namespace="t")
    store.publish("w", CacheStats())
    store.remove("w")
    store.clear()
    assert store.collect() is None


def test_redis_store_health_check(redis_client: MagicMock) -> None:
    redis_client.ping.return_value = True
    store = RedisStatsStore()
    assert store.health_check() is True

    redis_client.ping.side_effect = Exception("Down")
    assert store.health_check() is False


# ==================== Metrics ====================

def test_metrics_export_snapshot() -> None:
    registry = CollectorRegistry()
    metrics = StatsMetrics(namespace="t", registry=registry)
    metrics.observe(finalize(CacheStats(op_count=4, hit_count=3, miss_count=1, creation_date=50.0)))

    def sample(name: str) -> float:
        return registry.get_sample_value(name, {"namespace": "t"})

    assert sample("cachestats_op_count") == 4
    assert sample("cachestats_request_count") == 4
    assert sample("cachestats_hit_rate_percent") == pytest.approx(75.0)
    assert sample("cachestats_miss_rate_percent") == pytest.approx(25.0)
    assert sample("cachestats_creation_timestamp_seconds") == 50.0


def test_metrics_skip_missing_rates() -> None:
    registry = CollectorRegistry()
    metrics = StatsMetrics(namespace="empty", registry=registry)
    metrics.observe(finalize(CacheStats()))

    assert registry.get_sample_value("cachestats_request_count", {"namespace": "empty"}) == 0
    assert registry.get_sample_value("cachestats_hit_rate_percent", {"namespace": "empty"}) is None
    assert registry.get_sample_value("cachestats_creation_timestamp_seconds", {"namespace": "empty"}) is None


def test_metrics_reuse_gauges_per_registry() -> None:
    registry = CollectorRegistry()
    first = StatsMetrics(namespace="a", registry=registry)
    second = StatsMetrics(namespace="b", registry=registry)
    assert first.gauges is second.gauges


def test_metrics_cache_releases_registry() -> None:
    registry = CollectorRegistry()
    metrics = StatsMetrics(namespace="t", registry=registry)
    ref = weakref.ref(registry)
    assert registry in StatsMetrics._metrics_cache

    del metrics, registry
    gc.collect()
    assert ref() is None
