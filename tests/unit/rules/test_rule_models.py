"""Tests for compiled rule data models."""
from __future__ import annotations

import pytest

from helpers.factories import ROOT_GUIDANCE, make_rule

from policyplane.core.exceptions import ValidationError
from policyplane.core.rules import GuidanceCompiler, GuidanceRule, PolicyBundle, RiskClass


def test_rule_to_dict_uses_camel_case() -> None:
    data = make_rule("R009", "Use fixtures", verifier="tests-pass").to_dict()

    assert data["riskClass"] == "medium"
    assert data["toolClasses"] == ["all"]
    assert data["isConstitution"] is False
    assert data["verifier"] == "tests-pass"


def test_rule_without_verifier_omits_key() -> None:
    assert "verifier" not in make_rule().to_dict()


def test_rule_from_dict_rejects_unknown_enum() -> None:
    with pytest.raises(ValidationError, match="riskClass"):
        GuidanceRule.from_dict({"id": "R1", "riskClass": "severe"})


def test_bundle_survives_dict_round_trip() -> None:
    bundle = GuidanceCompiler().compile(ROOT_GUIDANCE)

    restored = PolicyBundle.from_dict(bundle.to_dict())

    assert restored.to_dict() == bundle.to_dict()
    assert restored.find_rule("R010").risk_class is RiskClass.CRITICAL


def test_bundle_from_dict_requires_manifest() -> None:
    with pytest.raises(ValidationError, match="manifest"):
        PolicyBundle.from_dict({"constitution": {}})


def test_find_rule_returns_none_for_unknown_id() -> None:
    assert GuidanceCompiler().compile(ROOT_GUIDANCE).find_rule("NOPE") is None
