from __future__ import annotations

import dataclasses
import enum
import time
from dataclasses import dataclass
from functools import reduce
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union


class StatKind(enum.Enum):
    """Kinds of cache operations that can be recorded."""

    EVICTION = "eviction"
    EXPIRATION = "expiration"
    HIT = "hit"
    MISS = "miss"
    OP = "op"
    SET = "set"


# Counters bumped together for each operation kind. Evictions are not
# counted as operations.
KIND_FIELDS: Dict[StatKind, Tuple[str, ...]] = {
    StatKind.EVICTION: ("eviction_count",),
    StatKind.EXPIRATION: ("op_count", "expired_count"),
    StatKind.HIT: ("op_count", "hit_count"),
    StatKind.MISS: ("op_count", "miss_count"),
    StatKind.OP: ("op_count",),
    StatKind.SET: ("op_count", "set_count"),
}

# Attribute name -> name used in finalized snapshots and serialized blobs
REPORT_NAMES: Dict[str, str] = {
    "op_count": "opCount",
    "set_count": "setCount",
    "hit_count": "hitCount",
    "miss_count": "missCount",
    "eviction_count": "evictionCount",
    "expired_count": "expiredCount",
}

COUNTER_FIELDS: Tuple[str, ...] = tuple(REPORT_NAMES)

Fields = Union[StatKind, str, Sequence[str]]


def _resolve_fields(fields: Fields) -> Tuple[str, ...]:
    if isinstance(fields, StatKind):
        return KIND_FIELDS[fields]
    if isinstance(fields, str):
        fields = (fields,)
    names = tuple(fields)
    for name in names:
        if name not in REPORT_NAMES:
            raise ValueError(f"Unknown stats field '{name}'. Valid fields: {', '.join(COUNTER_FIELDS)}")
    return names


@dataclass(frozen=True)
class CacheStats:
    """Immutable container of cache operation counters.

    Every update returns a new instance, so an accumulator can be handed
    between execution contexts without locking. Copies updated independently
    are combined with :func:`merge`.
    """

    op_count: int = 0
    set_count: int = 0
    hit_count: int = 0
    miss_count: int = 0
    eviction_count: int = 0
    expired_count: int = 0
    creation_date: Optional[float] = None

    def increment(self, fields: Fields, amount: int = 1) -> "CacheStats":
        """Return a copy with each named counter increased by ``amount``."""
        names = _resolve_fields(fields)
        changes = {}
        for name in names:
            changes[name] = changes.get(name, getattr(self, name)) + amount
        return dataclasses.replace(self, **changes)

    @property
    def request_count(self) -> int:
        return self.hit_count + self.miss_count

    def to_dict(self) -> Dict[str, Any]:
        """Export raw counters and creation date under their report names."""
        data: Dict[str, Any] = {REPORT_NAMES[name]: getattr(self, name) for name in COUNTER_FIELDS}
        data["creationDate"] = self.creation_date
        return data


@dataclass(frozen=True)
class CacheState:
    """State of a cache as seen by the stats layer.

    ``stats`` is None when statistics are disabled for the cache.
    """

    name: str = "default"
    stats: Optional[CacheStats] = None


def new_stats(enabled: bool = True) -> Optional[CacheStats]:
    """Create a zeroed accumulator stamped with the current time, or None if disabled."""
    if not enabled:
        return None
    return CacheStats(creation_date=time.time())


def increment_stat(state: Any, fields: Fields, amount: int = 1) -> Any:
    """Increment one or more counters on ``state`` by ``amount``.

    ``state`` may be a :class:`CacheStats` or a :class:`CacheState`. When the
    state carries no accumulator (stats disabled), or is anything else, it is
    returned unchanged.
    """
    if isinstance(state, CacheStats):
        return state.increment(fields, amount)
    if isinstance(state, CacheState) and state.stats is not None:
        return dataclasses.replace(state, stats=state.stats.increment(fields, amount))
    return state


def add_eviction(state: Any, amount: int = 1) -> Any:
    """Add a number of evictions, defaulting to 1."""
    return increment_stat(state, StatKind.EVICTION, amount)


def add_expiration(state: Any, amount: int = 1) -> Any:
    """Add a number of expirations, defaulting to 1."""
    return increment_stat(state, StatKind.EXPIRATION, amount)


def add_hit(state: Any, amount: int = 1) -> Any:
    """Add a number of hits, defaulting to 1."""
    return increment_stat(state, StatKind.HIT, amount)


def add_miss(state: Any, amount: int = 1) -> Any:
    """Add a number of misses, defaulting to 1."""
    return increment_stat(state, StatKind.MISS, amount)


def add_op(state: Any, amount: int = 1) -> Any:
    """Add a number of generic operations, defaulting to 1."""
    return increment_stat(state, StatKind.OP, amount)


def add_set(state: Any, amount: int = 1) -> Any:
    """Add a number of sets, defaulting to 1."""
    return increment_stat(state, StatKind.SET, amount)


def finalize(stats: CacheStats) -> Mapping[str, Any]:
    """Build a read-only reporting snapshot from an accumulator.

    Adds ``requestCount`` and, when there were any requests, ``hitRate`` and
    ``missRate`` as percentages (0-100). Keys are in reverse lexicographic
    order.
    """
    if not isinstance(stats, CacheStats):
        raise TypeError(f"finalize() expects CacheStats, got {type(stats).__name__}")

    data = stats.to_dict()
    requests = stats.request_count
    data["requestCount"] = requests
    if requests:
        if stats.hit_count == 0:
            data["hitRate"], data["missRate"] = 0.0, 100.0
        elif stats.miss_count == 0:
            data["hitRate"], data["missRate"] = 100.0, 0.0
        else:
            data["hitRate"] = stats.hit_count * 100 / requests
            data["missRate"] = stats.miss_count * 100 / requests

    ordered = {key: data[key] for key in sorted(data, reverse=True)}
    return MappingProxyType(ordered)


def _earliest(a: Optional[float], b: Optional[float]) -> Optional[float]:
    # An absent creation date never wins over a present one
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)


def merge(a: CacheStats, b: CacheStats) -> CacheStats:
    """Combine two accumulators: counters are summed, the earliest creation date is kept."""
    if not isinstance(a, CacheStats) or not isinstance(b, CacheStats):
        raise TypeError("merge() expects two CacheStats instances")

    counters = {name: getattr(a, name) + getattr(b, name) for name in COUNTER_FIELDS}
    return CacheStats(creation_date=_earliest(a.creation_date, b.creation_date), **counters)


def merge_all(stats: Iterable[CacheStats]) -> Optional[CacheStats]:
    """Merge any number of accumulators. Returns None for an empty input."""
    items = list(stats)
    if not items:
        return None
    return reduce(merge, items)
