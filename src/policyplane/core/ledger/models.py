"""
Data models for the run ledger.

- Violation: a rule breach observed during a task
- DiffSummary / TestResults: per-task change and test statistics
- RunEvent: one task outcome; frozen once finalized
- EvaluatorResult: output of one evaluator over one event
- OptimizationMetrics / ViolationRanking: aggregates derived from events
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from policyplane.core.exceptions import StateError, ValidationError
from policyplane.core.rules.models import RiskClass


@dataclass(frozen=True)
class Violation:
    rule_id: str
    description: str = ""
    severity: RiskClass = RiskClass.MEDIUM
    location: Optional[str] = None
    auto_corrected: bool = False

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "severity", RiskClass(self.severity))
        except ValueError as exc:
            raise ValidationError(
                f"Invalid violation severity: {self.severity!r}",
                context={"ruleId": self.rule_id},
            ) from exc

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ruleId": self.rule_id,
            "description": self.description,
            "severity": self.severity.value,
            "location": self.location,
            "autoCorrected": self.auto_corrected,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Violation":
        return cls(
            rule_id=str(data["ruleId"]),
            description=str(data.get("description", "")),
            severity=data.get("severity", "medium"),
            location=data.get("location"),
            auto_corrected=bool(data.get("autoCorrected", False)),
        )


@dataclass(frozen=True)
class DiffSummary:
    lines_added: int = 0
    lines_removed: int = 0
    files_changed: int = 0

    @property
    def total_lines(self) -> int:
        return self.lines_added + self.lines_removed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "linesAdded": self.lines_added,
            "linesRemoved": self.lines_removed,
            "filesChanged": self.files_changed,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DiffSummary":
        return cls(
            lines_added=int(data.get("linesAdded", 0)),
            lines_removed=int(data.get("linesRemoved", 0)),
            files_changed=int(data.get("filesChanged", 0)),
        )


@dataclass(frozen=True)
class TestResults:
    __test__ = False

    ran: bool = False
    passed: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def total(self) -> int:
        return self.passed + self.failed + self.skipped

    def to_dict(self) -> Dict[str, Any]:
        return {"ran": self.ran, "passed": self.passed, "failed": self.failed, "skipped": self.skipped}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TestResults":
        return cls(
            ran=bool(data.get("ran", False)),
            passed=int(data.get("passed", 0)),
            failed=int(data.get("failed", 0)),
            skipped=int(data.get("skipped", 0)),
        )


@dataclass
class RunEvent:
    """One task outcome.

    The event is filled in while the task runs and frozen by
    :meth:`RunLedger.finalize_event`. After that, assigning any field, or
    calling one of the ``add_*``/``record_*`` helpers, raises
    :class:`StateError`; list fields become tuples.
    """

    event_id: str
    task_id: str
    guidance_hash: str
    intent: str
    timestamp: int
    retrieved_rule_ids: List[str] = field(default_factory=list)
    tools_used: List[str] = field(default_factory=list)
    files_touched: List[str] = field(default_factory=list)
    diff_summary: DiffSummary = field(default_factory=DiffSummary)
    test_results: TestResults = field(default_factory=TestResults)
    violations: List[Violation] = field(default_factory=list)
    outcome_accepted: Optional[bool] = None
    rework_lines: float = 0
    clarifying_questions: int = 0
    duration_ms: int = 0
    session_id: Optional[str] = None
    finalized: bool = field(default=False, init=False, repr=False, compare=False)

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, "finalized", False):
            raise StateError(
                f"Run event {self.event_id} is finalized; field '{name}' cannot change",
                context={"eventId": self.event_id, "field": name},
            )
        object.__setattr__(self, name, value)

    def _check_open(self) -> None:
        if self.finalized:
            raise StateError(
                f"Run event {self.event_id} is finalized",
                context={"eventId": self.event_id},
            )

    def record_tool(self, tool: str) -> None:
        self._check_open()
        self.tools_used.append(tool)

    def touch_file(self, path: str) -> None:
        self._check_open()
        if path not in self.files_touched:
            self.files_touched.append(path)

    def add_violation(self, violation: Violation) -> None:
        self._check_open()
        self.violations.append(violation)

    def add_retrieved_rules(self, rule_ids: List[str]) -> None:
        self._check_open()
        for rule_id in rule_ids:
            if rule_id not in self.retrieved_rule_ids:
                self.retrieved_rule_ids.append(rule_id)

    def freeze(self, duration_ms: int) -> None:
        """Stamp the duration and make the event immutable."""
        self._check_open()
        self.duration_ms = max(0, int(duration_ms))
        self.retrieved_rule_ids = tuple(self.retrieved_rule_ids)  # type: ignore[assignment]
        self.tools_used = tuple(self.tools_used)  # type: ignore[assignment]
        self.files_touched = tuple(self.files_touched)  # type: ignore[assignment]
        self.violations = tuple(self.violations)  # type: ignore[assignment]
        object.__setattr__(self, "finalized", True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "eventId": self.event_id,
            "taskId": self.task_id,
            "guidanceHash": self.guidance_hash,
            "retrievedRuleIds": list(self.retrieved_rule_ids),
            "toolsUsed": list(self.tools_used),
            "filesTouched": list(self.files_touched),
            "diffSummary": self.diff_summary.to_dict(),
            "testResults": self.test_results.to_dict(),
            "violations": [v.to_dict() for v in self.violations],
            "outcomeAccepted": self.outcome_accepted,
            "reworkLines": self.rework_lines,
            "clarifyingQuestions": self.clarifying_questions,
            "intent": self.intent,
            "timestamp": self.timestamp,
            "durationMs": self.duration_ms,
            "sessionId": self.session_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RunEvent":
        """Build an (unfinalized) event from :meth:`to_dict` output."""
        return cls(
            event_id=str(data["eventId"]),
            task_id=str(data["taskId"]),
            guidance_hash=str(data["guidanceHash"]),
            intent=str(data["intent"]),
            timestamp=int(data["timestamp"]),
            retrieved_rule_ids=[str(r) for r in data.get("retrievedRuleIds", [])],
            tools_used=[str(t) for t in data.get("toolsUsed", [])],
            files_touched=[str(f) for f in data.get("filesTouched", [])],
            diff_summary=DiffSummary.from_dict(data.get("diffSummary") or {}),
            test_results=TestResults.from_dict(data.get("testResults") or {}),
            violations=[Violation.from_dict(v) for v in data.get("violations", [])],
            outcome_accepted=data.get("outcomeAccepted"),
            rework_lines=float(data.get("reworkLines", 0)),
            clarifying_questions=int(data.get("clarifyingQuestions", 0)),
            duration_ms=int(data.get("durationMs", 0)),
            session_id=data.get("sessionId"),
        )


@dataclass(frozen=True)
class EvaluatorResult:
    name: str
    passed: bool
    details: str
    score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"name": self.name, "passed": self.passed, "details": self.details}
        if self.score is not None:
            result["score"] = self.score
        return result


@dataclass(frozen=True)
class OptimizationMetrics:
    """Aggregates over an event window.

    Attributes:
        violation_rate: Violations per 10 tasks
        self_correction_rate: Auto-corrected / total violations (1.0 with no violations)
        rework_lines: Mean rework lines per task
        clarifying_questions: Mean clarifying questions per task
        task_count: Events in the window
    """

    violation_rate: float = 0.0
    self_correction_rate: float = 0.0
    rework_lines: float = 0.0
    clarifying_questions: float = 0.0
    task_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "violationRate": self.violation_rate,
            "selfCorrectionRate": self.self_correction_rate,
            "reworkLines": self.rework_lines,
            "clarifyingQuestions": self.clarifying_questions,
            "taskCount": self.task_count,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OptimizationMetrics":
        return cls(
            violation_rate=float(data.get("violationRate", 0.0)),
            self_correction_rate=float(data.get("selfCorrectionRate", 0.0)),
            rework_lines=float(data.get("reworkLines", 0.0)),
            clarifying_questions=float(data.get("clarifyingQuestions", 0.0)),
            task_count=int(data.get("taskCount", 0)),
        )


@dataclass(frozen=True)
class ViolationRanking:
    rule_id: str
    frequency: int
    cost: float
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {"ruleId": self.rule_id, "frequency": self.frequency, "cost": self.cost, "score": self.score}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ViolationRanking":
        return cls(
            rule_id=str(data["ruleId"]),
            frequency=int(data.get("frequency", 0)),
            cost=float(data.get("cost", 0.0)),
            score=float(data.get("score", 0.0)),
        )


__all__ = [
    "Violation",
    "DiffSummary",
    "TestResults",
    "RunEvent",
    "EvaluatorResult",
    "OptimizationMetrics",
    "ViolationRanking",
]
