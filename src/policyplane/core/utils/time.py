"""Timestamp helpers.

policyplane records every timestamp as integer epoch milliseconds so that
snapshots round-trip through JSON without timezone handling.
"""
from __future__ import annotations

import time
from datetime import datetime, timezone


def now_ms() -> int:
    """Return the current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


def elapsed_ms(start: float) -> float:
    """Return milliseconds elapsed since a ``time.perf_counter()`` reading."""
    return (time.perf_counter() - start) * 1000.0


def ms_to_iso(ms: int) -> str:
    """Format epoch milliseconds as an ISO-8601 UTC string (second precision)."""
    dt = datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc).replace(microsecond=0)
    return dt.isoformat().replace("+00:00", "Z")


def utc_timestamp() -> str:
    """Return the current time as an ISO-8601 UTC string."""
    return ms_to_iso(now_ms())


__all__ = ["now_ms", "elapsed_ms", "ms_to_iso", "utc_timestamp"]
