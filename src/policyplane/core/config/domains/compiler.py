"""Domain-specific configuration for the rule compiler."""
from __future__ import annotations

from functools import cached_property

from ..base import BaseDomainConfig


class CompilerConfig(BaseDomainConfig):
    """Settings consumed by :class:`~policyplane.core.rules.compiler.GuidanceCompiler`."""

    def _config_section(self) -> str:
        return "compiler"

    @cached_property
    def max_constitution_lines(self) -> int:
        return int(self.section.get("maxConstitutionLines", 60))

    @cached_property
    def default_risk_class(self) -> str:
        return str(self.section.get("defaultRiskClass", "medium"))

    @cached_property
    def default_priority(self) -> int:
        return int(self.section.get("defaultPriority", 50))

    @cached_property
    def auto_generate_ids(self) -> bool:
        return bool(self.section.get("autoGenerateIds", True))

    @cached_property
    def constitution_priority_bonus(self) -> int:
        return int(self.section.get("constitutionPriorityBonus", 100))


__all__ = ["CompilerConfig"]
