"""policyplane configuration: layered YAML, env overrides, typed accessors."""
from __future__ import annotations

from policyplane.core.schemas.validation import load_schema
from policyplane.data import clear_caches as _clear_data_caches

from .base import BaseDomainConfig
from .cache import clear_all_caches, get_cached_config, is_cached, register_cache_clearer
from .domains import (
    CompilerConfig,
    GatesConfig,
    LedgerConfig,
    LoggingConfig,
    OptimizerConfig,
    RetrieverConfig,
)
from .manager import ConfigManager

register_cache_clearer("data", _clear_data_caches)
register_cache_clearer("schemas", load_schema.cache_clear)

__all__ = [
    "BaseDomainConfig",
    "ConfigManager",
    "CompilerConfig",
    "GatesConfig",
    "LedgerConfig",
    "LoggingConfig",
    "OptimizerConfig",
    "RetrieverConfig",
    "clear_all_caches",
    "get_cached_config",
    "is_cached",
    "register_cache_clearer",
]
