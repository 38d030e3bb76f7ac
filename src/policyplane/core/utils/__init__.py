"""Shared utilities (merging, glob matching, time, hashing)."""
from __future__ import annotations

from .hashing import content_digest
from .merge import deep_merge, merge_arrays
from .patterns import matches_any_pattern
from .time import elapsed_ms, now_ms

__all__ = [
    "content_digest",
    "deep_merge",
    "merge_arrays",
    "matches_any_pattern",
    "elapsed_ms",
    "now_ms",
]
