"""Optimizer loop: rule change proposals, heuristic scoring, ADRs and promotion."""
from __future__ import annotations

from .adr import ADR_TEMPLATE, render_adr
from .models import ABTestResult, ChangeType, CycleResult, PromotionState, RuleADR, RuleChange
from .optimizer import (
    EFFECT_MULTIPLIERS,
    OPTIMIZER_STATE_SCHEMA,
    OptimizerLoop,
)

__all__ = [
    "OptimizerLoop",
    "ChangeType",
    "PromotionState",
    "RuleChange",
    "ABTestResult",
    "RuleADR",
    "CycleResult",
    "render_adr",
    "ADR_TEMPLATE",
    "EFFECT_MULTIPLIERS",
    "OPTIMIZER_STATE_SCHEMA",
]
