"""Domain-specific configuration for the enforcement gates.

Each gate can be switched off individually; the tool allowlist is disabled
by default because an empty allowlist already permits every tool.
"""
from __future__ import annotations

from functools import cached_property
from typing import List

from ..base import BaseDomainConfig


class GatesConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "gates"

    @cached_property
    def destructive_ops(self) -> bool:
        return bool(self.section.get("destructiveOps", True))

    @cached_property
    def tool_allowlist(self) -> bool:
        return bool(self.section.get("toolAllowlist", False))

    @cached_property
    def diff_size(self) -> bool:
        return bool(self.section.get("diffSize", True))

    @cached_property
    def secrets(self) -> bool:
        return bool(self.section.get("secrets", True))

    @cached_property
    def diff_size_threshold(self) -> int:
        return int(self.section.get("diffSizeThreshold", 300))

    @cached_property
    def allowed_tools(self) -> List[str]:
        tools = self.section.get("allowedTools") or []
        return [str(t) for t in tools if str(t).strip()]

    @cached_property
    def secret_block_severity(self) -> str:
        return str(self.section.get("secretBlockSeverity", "high"))

    @cached_property
    def entropy_threshold(self) -> float:
        return float(self.section.get("entropyThreshold", 3.5))

    @cached_property
    def min_entropy_length(self) -> int:
        return int(self.section.get("minEntropyLength", 16))


__all__ = ["GatesConfig"]
