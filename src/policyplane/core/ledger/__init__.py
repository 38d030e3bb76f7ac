"""Run ledger: append-only task outcome events, evaluators and metrics."""
from __future__ import annotations

from .evaluators import (
    DEFAULT_FORBIDDEN_COMMANDS,
    DiffQualityEvaluator,
    Evaluator,
    ForbiddenCommandEvaluator,
    ForbiddenDependencyEvaluator,
    TestsPassEvaluator,
    ViolationRateEvaluator,
    default_evaluators,
)
from .ledger import RUN_EVENT_SCHEMA, RunLedger
from .models import (
    DiffSummary,
    EvaluatorResult,
    OptimizationMetrics,
    RunEvent,
    TestResults,
    Violation,
    ViolationRanking,
)

__all__ = [
    "RunLedger",
    "RUN_EVENT_SCHEMA",
    "RunEvent",
    "Violation",
    "DiffSummary",
    "TestResults",
    "EvaluatorResult",
    "OptimizationMetrics",
    "ViolationRanking",
    "Evaluator",
    "DEFAULT_FORBIDDEN_COMMANDS",
    "TestsPassEvaluator",
    "ForbiddenCommandEvaluator",
    "ForbiddenDependencyEvaluator",
    "ViolationRateEvaluator",
    "DiffQualityEvaluator",
    "default_evaluators",
]
