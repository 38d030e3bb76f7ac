"""
Data models for the optimizer loop.

- ChangeType: closed set of rule change kinds
- PromotionState: per-rule position in the promotion state machine
- RuleChange: a proposed edit to one rule
- ABTestResult: heuristic baseline-vs-candidate comparison for a change
- RuleADR: permanent, numbered decision record
- CycleResult: everything one optimization cycle produced
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from policyplane.core.exceptions import ValidationError
from policyplane.core.ledger.models import OptimizationMetrics, ViolationRanking


class ChangeType(str, Enum):
    MODIFY = "modify"
    ADD = "add"
    REMOVE = "remove"
    PROMOTE = "promote"
    DEMOTE = "demote"


class PromotionState(str, Enum):
    UNTRACKED = "untracked"
    PROPOSED = "proposed"
    TESTED_PASS = "tested-pass"
    TESTED_FAIL = "tested-fail"
    PROMOTED = "promoted"
    DEMOTED = "demoted"


@dataclass(frozen=True)
class RuleChange:
    change_id: str
    target_rule_id: str
    change_type: ChangeType
    proposed_text: str
    rationale: str
    triggering_violation: ViolationRanking
    original_text: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "changeId": self.change_id,
            "targetRuleId": self.target_rule_id,
            "changeType": self.change_type.value,
            "proposedText": self.proposed_text,
            "rationale": self.rationale,
            "triggeringViolation": self.triggering_violation.to_dict(),
        }
        if self.original_text is not None:
            result["originalText"] = self.original_text
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RuleChange":
        try:
            change_type = ChangeType(data["changeType"])
        except ValueError as exc:
            raise ValidationError(f"Invalid change type: {data['changeType']!r}") from exc
        return cls(
            change_id=str(data["changeId"]),
            target_rule_id=str(data["targetRuleId"]),
            change_type=change_type,
            proposed_text=str(data.get("proposedText", "")),
            rationale=str(data.get("rationale", "")),
            triggering_violation=ViolationRanking.from_dict(data["triggeringViolation"]),
            original_text=data.get("originalText"),
        )


@dataclass(frozen=True)
class ABTestResult:
    """Estimated effect of a change.

    ``candidate`` is derived from ``baseline`` with fixed per-change-type
    multipliers; it is an approximation, never a measured experiment.
    """

    change: RuleChange
    baseline: OptimizationMetrics
    candidate: OptimizationMetrics
    should_promote: bool
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "change": self.change.to_dict(),
            "baseline": self.baseline.to_dict(),
            "candidate": self.candidate.to_dict(),
            "shouldPromote": self.should_promote,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ABTestResult":
        return cls(
            change=RuleChange.from_dict(data["change"]),
            baseline=OptimizationMetrics.from_dict(data["baseline"]),
            candidate=OptimizationMetrics.from_dict(data["candidate"]),
            should_promote=bool(data["shouldPromote"]),
            reason=str(data.get("reason", "")),
        )


@dataclass(frozen=True)
class RuleADR:
    number: int
    title: str
    decision: str
    rationale: str
    change: RuleChange
    test_result: ABTestResult
    date: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "title": self.title,
            "decision": self.decision,
            "rationale": self.rationale,
            "change": self.change.to_dict(),
            "testResult": self.test_result.to_dict(),
            "date": self.date,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RuleADR":
        try:
            return cls(
                number=int(data["number"]),
                title=str(data["title"]),
                decision=str(data["decision"]),
                rationale=str(data["rationale"]),
                change=RuleChange.from_dict(data["change"]),
                test_result=ABTestResult.from_dict(data["testResult"]),
                date=int(data["date"]),
            )
        except KeyError as exc:
            raise ValidationError(
                f"ADR record is missing required key: {exc.args[0]}",
                context={"key": exc.args[0]},
            ) from exc


@dataclass
class CycleResult:
    rankings: List[ViolationRanking] = field(default_factory=list)
    changes: List[RuleChange] = field(default_factory=list)
    results: List[ABTestResult] = field(default_factory=list)
    adrs: List[RuleADR] = field(default_factory=list)
    promoted: List[str] = field(default_factory=list)
    demoted: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rankings": [r.to_dict() for r in self.rankings],
            "changes": [c.to_dict() for c in self.changes],
            "results": [r.to_dict() for r in self.results],
            "adrs": [a.to_dict() for a in self.adrs],
            "promoted": list(self.promoted),
            "demoted": list(self.demoted),
        }


__all__ = [
    "ChangeType",
    "PromotionState",
    "RuleChange",
    "ABTestResult",
    "RuleADR",
    "CycleResult",
]
