"""Tests for shared utilities (merge, patterns, hashing, time)."""
from __future__ import annotations

import time

from policyplane.core.utils import (
    content_digest,
    deep_merge,
    elapsed_ms,
    matches_any_pattern,
    merge_arrays,
)
from policyplane.core.utils.time import ms_to_iso


class TestDeepMerge:
    def test_nested_dicts_merge_without_mutation(self) -> None:
        base = {"a": 1, "b": {"c": 2}}
        merged = deep_merge(base, {"b": {"d": 3}})

        assert merged == {"a": 1, "b": {"c": 2, "d": 3}}
        assert base == {"a": 1, "b": {"c": 2}}

    def test_array_merge_modes(self) -> None:
        assert merge_arrays([1, 2], [3]) == [3]
        assert merge_arrays([1, 2], ["+", 3]) == [1, 2, 3]
        assert merge_arrays([1, 2], ["=", 4]) == [4]


class TestPatterns:
    def test_recursive_scope_matches_nested_files(self) -> None:
        assert matches_any_pattern("src/auth/login.py", ["src/**"])
        assert not matches_any_pattern("tests/test_login.py", ["src/**"])

    def test_universal_patterns_match_everything(self) -> None:
        assert matches_any_pattern("anything/at/all.txt", ["**/*"])

    def test_bare_filename_glob_matches_anywhere(self) -> None:
        assert matches_any_pattern("deps/requirements-dev.txt", ["requirements*.txt"])
        assert matches_any_pattern("web/package.json", ["package.json"])


def test_content_digest_is_16_hex_chars_and_stable() -> None:
    digest = content_digest("hello")
    assert len(digest) == 16
    assert digest == content_digest("hello")
    assert digest != content_digest("hello!")


def test_ms_to_iso_formats_utc() -> None:
    assert ms_to_iso(0) == "1970-01-01T00:00:00Z"


def test_elapsed_ms_is_non_negative() -> None:
    assert elapsed_ms(time.perf_counter()) >= 0.0
