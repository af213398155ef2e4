from __future__ import annotations

import logging
from typing import Any, Dict

import msgpack

from .stats import REPORT_NAMES, CacheStats

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


def serialize_stats(stats: CacheStats) -> bytes:
    """Serialize an accumulator into a compact msgpack blob.

    Keys are the report names (``opCount``, ``hitCount``...), so a blob can be
    read by consumers that never import this package.
    """
    payload: Dict[str, Any] = stats.to_dict()
    payload["format_version"] = FORMAT_VERSION
    return msgpack.packb(payload, use_bin_type=True)


def deserialize_stats(data: bytes) -> CacheStats:
    """Reconstruct an accumulator from a serialized blob.

    Missing counters decode as 0 and a missing creation date as None.
    """
    payload = msgpack.unpackb(data, raw=False)
    if not isinstance(payload, dict):
        raise ValueError(f"Expected a msgpack map, got {type(payload).__name__}")

    version = payload.get("format_version", FORMAT_VERSION)
    if version != FORMAT_VERSION:
        logger.warning(f"Decoding stats blob with unknown format_version {version}")

    counters = {}
    for name, report in REPORT_NAMES.items():
        value = payload.get(report, 0)
        if not isinstance(value, int) or isinstance(value, bool):
            raise ValueError(f"{report} must be an integer, got {value!r}")
        counters[name] = value

    creation_date = payload.get("creationDate")
    if creation_date is not None and (
        not isinstance(creation_date, (int, float)) or isinstance(creation_date, bool)
    ):
        raise ValueError(f"creationDate must be a timestamp, got {creation_date!r}")

    return CacheStats(creation_date=creation_date, **counters)
