"""Domain-specific configuration accessors."""
from __future__ import annotations

from .compiler import CompilerConfig
from .gates import GatesConfig
from .ledger import LedgerConfig
from .logging import LoggingConfig
from .optimizer import OptimizerConfig
from .retriever import RetrieverConfig

__all__ = [
    "CompilerConfig",
    "GatesConfig",
    "LedgerConfig",
    "LoggingConfig",
    "OptimizerConfig",
    "RetrieverConfig",
]
