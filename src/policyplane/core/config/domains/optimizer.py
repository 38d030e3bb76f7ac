"""Domain-specific configuration for the optimizer loop."""
from __future__ import annotations

from functools import cached_property

from ..base import BaseDomainConfig


class OptimizerConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "optimizer"

    @cached_property
    def top_violations_per_cycle(self) -> int:
        return int(self.section.get("topViolationsPerCycle", 3))

    @cached_property
    def min_events_for_optimization(self) -> int:
        return int(self.section.get("minEventsForOptimization", 10))

    @cached_property
    def improvement_threshold(self) -> float:
        return float(self.section.get("improvementThreshold", 0.1))

    @cached_property
    def max_risk_increase(self) -> float:
        return float(self.section.get("maxRiskIncrease", 0.05))

    @cached_property
    def promotion_wins(self) -> int:
        return int(self.section.get("promotionWins", 2))


__all__ = ["OptimizerConfig"]
