"""Tests for run ledger data models."""
from __future__ import annotations

from dataclasses import FrozenInstanceError

import pytest

from policyplane.core.exceptions import StateError, ValidationError
from policyplane.core.ledger import DiffSummary, RunEvent, RunLedger, TestResults, Violation
from policyplane.core.rules import RiskClass


def _event() -> RunEvent:
    return RunEvent(event_id="e-1", task_id="t-1", guidance_hash="h", intent="feature", timestamp=1000)


class TestViolation:
    def test_severity_string_is_coerced(self) -> None:
        assert Violation("R1", severity="high").severity is RiskClass.HIGH

    def test_unknown_severity_rejected(self) -> None:
        with pytest.raises(ValidationError, match="severity"):
            Violation("R1", severity="catastrophic")

    def test_to_dict(self) -> None:
        assert Violation("R1", "broke it", location="src/a.py:3").to_dict() == {
            "ruleId": "R1",
            "description": "broke it",
            "severity": "medium",
            "location": "src/a.py:3",
            "autoCorrected": False,
        }

    def test_violation_is_immutable(self) -> None:
        violation = Violation("R1")

        with pytest.raises(FrozenInstanceError):
            violation.auto_corrected = True  # type: ignore[misc]
        with pytest.raises(FrozenInstanceError):
            violation.rule_id = "R2"  # type: ignore[misc]


def test_summary_totals() -> None:
    assert DiffSummary(lines_added=10, lines_removed=5, files_changed=2).total_lines == 15
    assert TestResults(ran=True, passed=3, failed=1, skipped=2).total == 6


class TestRunEventLifecycle:
    def test_open_event_collects_data(self) -> None:
        event = _event()
        event.record_tool("Bash")
        event.record_tool("Bash")
        event.touch_file("a.py")
        event.touch_file("a.py")
        event.add_retrieved_rules(["R1", "R2", "R1"])
        event.add_violation(Violation("R1"))

        assert event.tools_used == ["Bash", "Bash"]
        assert event.files_touched == ["a.py"]
        assert event.retrieved_rule_ids == ["R1", "R2"]
        assert len(event.violations) == 1

    def test_frozen_event_rejects_every_mutation(self) -> None:
        event = _event()
        event.freeze(25)

        assert event.finalized
        assert event.duration_ms == 25
        with pytest.raises(StateError):
            event.rework_lines = 5
        with pytest.raises(StateError):
            event.record_tool("Bash")
        with pytest.raises(StateError):
            event.touch_file("a.py")
        with pytest.raises(StateError):
            event.add_violation(Violation("R1"))
        with pytest.raises(StateError):
            event.add_retrieved_rules(["R1"])
        with pytest.raises(StateError):
            event.freeze(1)

    def test_frozen_lists_become_tuples(self) -> None:
        event = _event()
        event.record_tool("Read")
        event.freeze(0)

        assert event.tools_used == ("Read",)
        with pytest.raises(AttributeError):
            event.tools_used.append("Bash")

    def test_negative_duration_clamps_to_zero(self) -> None:
        event = _event()
        event.freeze(-5)

        assert event.duration_ms == 0


def test_event_dict_round_trip_is_unfinalized() -> None:
    ledger = RunLedger()
    event = ledger.create_event("t-1", "bug-fix", "h", session_id="s-1")
    event.add_violation(Violation("R1", severity="critical"))
    event.rework_lines = 12
    ledger.finalize_event(event)

    restored = RunEvent.from_dict(event.to_dict())

    assert not restored.finalized
    assert restored.to_dict() == event.to_dict()
    assert restored.violations[0].severity is RiskClass.CRITICAL


def test_recorded_violations_cannot_rewrite_history() -> None:
    ledger = RunLedger()
    event = ledger.create_event("t-1", "bug-fix", "h")
    event.add_violation(Violation("R1"))
    event.rework_lines = 10
    ledger.finalize_event(event)
    logged = ledger.log_event(event)

    stored = ledger.get_events()[0].violations[0]
    with pytest.raises(FrozenInstanceError):
        stored.auto_corrected = True  # type: ignore[misc]
    with pytest.raises(FrozenInstanceError):
        stored.rule_id = "R9"  # type: ignore[misc]

    assert logged.violations[0] == stored
    assert ledger.compute_metrics().self_correction_rate == 0.0
    assert [r.rule_id for r in ledger.rank_violations()] == ["R1"]
