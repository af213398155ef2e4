from __future__ import annotations


class StatsNotEnabledError(Exception):
    """Raised when stats are requested from a cache that does not record them."""
    pass
