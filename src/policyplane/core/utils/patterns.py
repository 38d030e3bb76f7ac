"""Unified file pattern matching - single source of truth.

All glob matching in policyplane (rule repo scopes, dependency manifest
detection) goes through these helpers instead of direct fnmatch calls.

Example:
    from policyplane.core.utils.patterns import matches_any_pattern

    if matches_any_pattern("src/auth/login.py", ["src/**"]):
        print("rule applies")
"""
from __future__ import annotations

import fnmatch
from pathlib import PurePosixPath
from typing import List, Optional

# Patterns that apply to every path.
UNIVERSAL_PATTERNS = frozenset({"*", "**", "**/*"})


def matches_any_pattern(file_path: str, patterns: List[str]) -> bool:
    """Check if file matches any pattern.

    Args:
        file_path: File path to check
        patterns: List of glob patterns

    Returns:
        True if file matches at least one pattern
    """
    return find_matching_pattern(file_path, patterns) is not None


def find_matching_pattern(file_path: str, patterns: List[str]) -> Optional[str]:
    """Find first matching pattern for a file, or None."""
    if not patterns:
        return None

    for pattern in patterns:
        if pattern in UNIVERSAL_PATTERNS:
            return pattern
        if _matches_pattern(file_path, pattern):
            return pattern
    return None


def _matches_pattern(file_path: str, pattern: str) -> bool:
    """Internal helper to check if a file matches a pattern.

    Handles various pattern formats:
    - Direct fnmatch: "*.py" matches "setup.py"
    - Path prefix: "src/*.py" matches "src/app.py"
    - Recursive: "src/**" matches "src/auth/login.py"
    - Filename only: "requirements*.txt" matches "deps/requirements-dev.txt"
    """
    file_posix = str(PurePosixPath(file_path.replace("\\", "/")))
    pat = str(PurePosixPath(pattern))

    # Strip leading slash (treat as repo-root relative)
    if pat.startswith("/"):
        pat = pat[1:]
    if file_posix.startswith("/"):
        file_posix = file_posix[1:]

    for glob_pat in _expand_globstar_variants(pat):
        try:
            if PurePosixPath(file_posix).match(glob_pat):
                return True
        except ValueError:
            pass

    # Bare filename glob: match anywhere in the path.
    if "/" not in pat and fnmatch.fnmatch(PurePosixPath(file_posix).name, pat):
        return True

    # Final fallback: fnmatch, where "*" also crosses "/" ("src/**" covers nested files).
    if fnmatch.fnmatch(file_posix, pat):
        return True

    # A directory scope also covers the directory itself ("src/**" matches "src").
    if pat.endswith("/**") and file_posix == pat[:-3]:
        return True

    return False


def _expand_globstar_variants(pattern: str) -> List[str]:
    """Return globstar-compatible variants for patterns containing '/**/'.

    pathlib's match treats '/**/' as requiring at least one component; scopes like
    'src/**/*.py' are meant to cover direct children too, so also try 'src/*.py'.
    """
    if "/**/" not in pattern:
        return [pattern]
    return [pattern, pattern.replace("/**/", "/")]


__all__ = [
    "UNIVERSAL_PATTERNS",
    "matches_any_pattern",
    "find_matching_pattern",
]
