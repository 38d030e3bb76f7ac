"""Rule compiler: guidance markdown -> constitution, shards, manifest."""
from __future__ import annotations

from .compiler import AutoIdSequence, GuidanceCompiler
from .models import (
    Constitution,
    GuidanceRule,
    ManifestEntry,
    PolicyBundle,
    RiskClass,
    RuleManifest,
    RuleShard,
    RuleSource,
    TaskIntent,
    ToolClass,
)

__all__ = [
    "AutoIdSequence",
    "GuidanceCompiler",
    "Constitution",
    "GuidanceRule",
    "ManifestEntry",
    "PolicyBundle",
    "RiskClass",
    "RuleManifest",
    "RuleShard",
    "RuleSource",
    "TaskIntent",
    "ToolClass",
]
