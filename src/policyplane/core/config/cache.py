"""Centralized configuration caching.

Provides a single source of truth for loaded configuration across all domain
configs. Cache keys include the repo root, a fingerprint of ``POLICYPLANE_*``
environment variables, and the mtimes of project config files so a
long-running process never serves stale configuration.
"""
from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .manager import ENV_PREFIX, PROJECT_CONFIG_DIRNAME, ConfigManager

_config_cache: Dict[str, Dict[str, Any]] = {}
_cache_clearers: Dict[str, Callable[[], None]] = {}


def _normalize_repo_root(repo_root: Optional[Path]) -> Optional[Path]:
    if repo_root is None:
        return None
    return Path(repo_root).expanduser().resolve()


def _fingerprint_dir(directory: Path) -> List[Tuple[str, int, int]]:
    files: List[Tuple[str, int, int]] = []
    if not directory.is_dir():
        return files
    for path in sorted(directory.iterdir()):
        if path.suffix not in {".yaml", ".yml"}:
            continue
        st = path.stat()
        files.append((path.name, int(st.st_mtime_ns), int(st.st_size)))
    return files


def _cache_key(repo_root: Optional[Path], validate: bool) -> str:
    """Generate a cache key from repo_root, validation flag, env and file state."""
    base = str(repo_root) if repo_root is not None else "__bundled__"

    env_items = sorted(
        (k, os.environ.get(k, "")) for k in os.environ.keys() if k.startswith(ENV_PREFIX)
    )
    env_fp = hashlib.sha256(repr(env_items).encode("utf-8")).hexdigest()[:12]

    cfg_files: List[Tuple[str, int, int]] = []
    if repo_root is not None:
        cfg_files = _fingerprint_dir(repo_root / PROJECT_CONFIG_DIRNAME / "config")
    cfg_fp = hashlib.sha256(repr(cfg_files).encode("utf-8")).hexdigest()[:12]

    return f"{base}:validate={int(validate)}:env={env_fp}:cfg={cfg_fp}"


def get_cached_config(repo_root: Optional[Path] = None, validate: bool = True) -> Dict[str, Any]:
    """Get configuration with caching.

    Returns the same config dict instance for the same inputs, avoiding
    repeated file I/O.

    Args:
        repo_root: Repository root path. ``None`` loads bundled defaults + env only.
        validate: Whether to validate against the config schema.

    Returns:
        Configuration dictionary (cached; treat as immutable).
    """
    normalized_root = _normalize_repo_root(repo_root)
    key = _cache_key(normalized_root, validate)
    if key not in _config_cache:
        manager = ConfigManager(repo_root=normalized_root)
        _config_cache[key] = manager._load_config_uncached(validate=validate)
    return _config_cache[key]


def clear_all_caches() -> None:
    """Clear all configuration caches.

    Call this when configuration files have changed and need to be reloaded.
    """
    _config_cache.clear()
    for clearer in list(_cache_clearers.values()):
        clearer()


def register_cache_clearer(name: str, clearer: Callable[[], None]) -> None:
    """Register an additional cache clearer to run inside ``clear_all_caches()``."""
    _cache_clearers[name] = clearer


def is_cached(repo_root: Optional[Path] = None, validate: bool = True) -> bool:
    """Check if config for ``repo_root`` is cached."""
    return _cache_key(_normalize_repo_root(repo_root), validate) in _config_cache


__all__ = [
    "get_cached_config",
    "clear_all_caches",
    "register_cache_clearer",
    "is_cached",
]
