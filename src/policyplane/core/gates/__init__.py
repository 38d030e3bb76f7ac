"""Enforcement gates: allow / warn / require-confirmation / block decisions."""
from __future__ import annotations

from .gates import DESTRUCTIVE_OPS, DIFF_SIZE, SECRETS, TOOL_ALLOWLIST, EnforcementGates
from .models import GateDecision, GateResult, aggregate_decision

__all__ = [
    "EnforcementGates",
    "GateDecision",
    "GateResult",
    "aggregate_decision",
    "DESTRUCTIVE_OPS",
    "DIFF_SIZE",
    "SECRETS",
    "TOOL_ALLOWLIST",
]
