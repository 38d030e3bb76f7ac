"""Domain-specific configuration for the run ledger and its evaluators."""
from __future__ import annotations

from functools import cached_property
from typing import List

from ..base import BaseDomainConfig


class LedgerConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "ledger"

    @cached_property
    def max_violations(self) -> int:
        return int(self.section.get("maxViolations", 0))

    @cached_property
    def max_rework_ratio(self) -> float:
        return float(self.section.get("maxReworkRatio", 0.3))

    @cached_property
    def forbidden_commands(self) -> List[str]:
        """Extra regex patterns appended to the built-in forbidden command list."""
        return [str(p) for p in (self.section.get("forbiddenCommands") or [])]

    @cached_property
    def forbidden_packages(self) -> List[str]:
        return [str(p) for p in (self.section.get("forbiddenPackages") or [])]

    @cached_property
    def dependency_manifests(self) -> List[str]:
        return [str(p) for p in (self.section.get("dependencyManifests") or [])]


__all__ = ["LedgerConfig"]
