"""Gate decisions and results."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


class GateDecision(str, Enum):
    ALLOW = "allow"
    WARN = "warn"
    REQUIRE_CONFIRMATION = "require-confirmation"
    BLOCK = "block"

    @property
    def severity(self) -> int:
        """Precedence rank: block > require-confirmation > warn > allow."""
        return _PRECEDENCE[self]


_PRECEDENCE = {
    GateDecision.ALLOW: 0,
    GateDecision.WARN: 1,
    GateDecision.REQUIRE_CONFIRMATION: 2,
    GateDecision.BLOCK: 3,
}


@dataclass(frozen=True)
class GateResult:
    """Outcome of one gate evaluation.

    Attributes:
        decision: What the gate decided
        gate_name: Gate that produced the result (``destructive-ops``, ``secrets``...)
        reason: Human-readable explanation
        triggered_rules: IDs of guidance rules bound to the gate
        remediation: Suggested next step, if any
        metadata: Extra details (matched patterns, redacted secrets...)
    """

    decision: GateDecision
    gate_name: str
    reason: str
    triggered_rules: List[str] = field(default_factory=list)
    remediation: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "decision": self.decision.value,
            "gateName": self.gate_name,
            "reason": self.reason,
            "triggeredRules": list(self.triggered_rules),
        }
        if self.remediation is not None:
            result["remediation"] = self.remediation
        if self.metadata:
            result["metadata"] = dict(self.metadata)
        return result


def aggregate_decision(results: Iterable[Optional[GateResult]]) -> GateDecision:
    """Most restrictive decision among ``results`` (``allow`` when empty)."""
    decision = GateDecision.ALLOW
    for result in results:
        if result is not None and result.decision.severity > decision.severity:
            decision = result.decision
    return decision


__all__ = ["GateDecision", "GateResult", "aggregate_decision"]
