"""Tests for bundled JSON schema validation."""
from __future__ import annotations

import pytest

from policyplane.core.exceptions import ValidationError
from policyplane.core.schemas import load_schema, section_schema, validate_payload


def _event(**overrides):
    event = {
        "eventId": "e-1",
        "taskId": "t-1",
        "guidanceHash": "abc",
        "intent": "feature",
        "timestamp": 1,
    }
    event.update(overrides)
    return event


def test_load_schema_accepts_short_names() -> None:
    assert load_schema("run-event") is load_schema("run-event")
    assert load_schema("run-event")["title"] == "policyplane run event"


def test_section_schema_returns_subschema() -> None:
    schema = section_schema("config", "retriever")
    assert "maxShards" in schema["properties"]


def test_valid_run_event_passes() -> None:
    validate_payload(_event(violations=[{"ruleId": "R1", "severity": "high"}]), "run-event")


def test_missing_required_field_lists_errors() -> None:
    payload = _event()
    del payload["taskId"]

    with pytest.raises(ValidationError) as excinfo:
        validate_payload(payload, "run-event")

    assert any("taskId" in e for e in excinfo.value.context["errors"])
