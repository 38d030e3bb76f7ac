"""Tests for GuidanceCompiler."""
from __future__ import annotations

import json

from helpers.factories import LOCAL_GUIDANCE, ROOT_GUIDANCE, SECURITY_SCENARIO

from policyplane.core.config import CompilerConfig, LoggingConfig
from policyplane.core.rules import (
    GuidanceCompiler,
    RiskClass,
    RuleSource,
    TaskIntent,
    ToolClass,
)
from policyplane.core.rules.compiler import CONSTITUTION_HEADER
from policyplane.core.utils.hashing import content_digest


class TestCompileRoot:
    def test_partitions_constitution_and_shards(self) -> None:
        bundle = GuidanceCompiler().compile(ROOT_GUIDANCE)

        assert [r.id for r in bundle.constitution.rules] == ["R001", "R002"]
        assert [s.rule.id for s in bundle.shards] == ["R030", "R010", "R011", "R020", "R021"]
        assert bundle.manifest.total_rules == 7
        assert bundle.manifest.constitution_rules == 2
        assert bundle.manifest.shard_rules == 5

    def test_constitution_text_is_grouped_by_domain(self) -> None:
        bundle = GuidanceCompiler().compile(ROOT_GUIDANCE)

        assert bundle.constitution.text.splitlines() == [
            CONSTITUTION_HEADER,
            "",
            "## Security",
            "- [R001] Never force push to main",
            "## Testing",
            "- [R002] Always run the test suite before committing",
        ]
        assert bundle.constitution.hash == content_digest(bundle.constitution.text)

    def test_constitution_rules_get_priority_bonus(self) -> None:
        bundle = GuidanceCompiler().compile(ROOT_GUIDANCE)

        assert {r.priority for r in bundle.constitution.rules} == {150}
        assert all(r.is_constitution for r in bundle.constitution.rules)

    def test_annotations_are_applied(self) -> None:
        bundle = GuidanceCompiler().compile(ROOT_GUIDANCE)

        r010 = bundle.find_rule("R010")
        assert r010.text == "Never commit secrets or API keys"
        assert r010.risk_class is RiskClass.CRITICAL
        assert r010.intents == [TaskIntent.SECURITY]
        assert r010.repo_scopes == ["src/**"]

        r021 = bundle.find_rule("R021")
        assert r021.tool_classes == [ToolClass.EDIT]

        assert bundle.find_rule("R030").priority == 70
        assert bundle.find_rule("R011").risk_class is RiskClass.HIGH

    def test_unannotated_rules_get_inferred_tags(self) -> None:
        r002 = GuidanceCompiler().compile(ROOT_GUIDANCE).find_rule("R002")

        assert r002.intents == [TaskIntent.TESTING]
        assert r002.domains == ["testing"]
        assert r002.risk_class is RiskClass.MEDIUM
        assert r002.repo_scopes == ["**/*"]

    def test_shard_compact_text_carries_id_and_tags(self) -> None:
        bundle = GuidanceCompiler().compile(ROOT_GUIDANCE)
        shard = next(s for s in bundle.shards if s.rule.id == "R021")

        assert shard.compact_text.startswith("[R021] Mock external services in unit tests")
        assert "@edit" in shard.compact_text
        assert "@medium" in shard.compact_text


class TestCompileWithLocal:
    def test_local_overrides_root_and_keeps_higher_priority(self) -> None:
        bundle = GuidanceCompiler().compile(ROOT_GUIDANCE, LOCAL_GUIDANCE)

        r020 = bundle.find_rule("R020")
        assert r020.text == "Write a regression test for every bug fix"
        assert r020.source is RuleSource.LOCAL
        assert r020.priority == 80
        assert bundle.find_rule("L001").source is RuleSource.LOCAL
        assert bundle.manifest.total_rules == 8

    def test_merged_rules_sorted_by_priority_stably(self) -> None:
        bundle = GuidanceCompiler().compile(ROOT_GUIDANCE, LOCAL_GUIDANCE)

        assert [r.id for r in bundle.iter_rules()] == [
            "R001", "R002", "R020", "R030", "R010", "R011", "R021", "L001",
        ]

    def test_manifest_records_both_source_hashes(self) -> None:
        bundle = GuidanceCompiler().compile(ROOT_GUIDANCE, LOCAL_GUIDANCE)

        assert bundle.manifest.source_hashes == {
            "root": content_digest(ROOT_GUIDANCE),
            "local": content_digest(LOCAL_GUIDANCE),
        }


class TestAutoIds:
    def test_actionable_bullets_get_sequential_ids(self) -> None:
        doc = "## Style\n- Use black for formatting\n- Nice weather today\n- Avoid wildcard imports\n"

        rules = GuidanceCompiler().compile(doc).manifest.rules

        assert [r.id for r in rules] == ["AUTO-001", "AUTO-002"]

    def test_sequence_restarts_each_compile(self) -> None:
        compiler = GuidanceCompiler()
        first = compiler.compile(SECURITY_SCENARIO)
        second = compiler.compile(SECURITY_SCENARIO)

        assert [r.id for r in first.iter_rules()] == ["AUTO-001"]
        assert [r.id for r in second.iter_rules()] == ["AUTO-001"]

    def test_sequence_continues_into_local_document(self) -> None:
        bundle = GuidanceCompiler().compile("- Always lint\n", "- Never skip review\n")

        assert sorted(r.id for r in bundle.iter_rules()) == ["AUTO-001", "AUTO-002"]
        assert bundle.find_rule("AUTO-002").source is RuleSource.LOCAL

    def test_disabled_auto_ids_skip_bullets(self) -> None:
        compiler = GuidanceCompiler(CompilerConfig(overrides={"autoGenerateIds": False}))

        assert compiler.compile(SECURITY_SCENARIO).manifest.total_rules == 0


class TestEdgeCases:
    def test_empty_and_non_text_input_give_empty_bundle(self) -> None:
        compiler = GuidanceCompiler()

        for value in ("", "just prose, no rules", None):
            bundle = compiler.compile(value)
            assert bundle.manifest.total_rules == 0
            assert bundle.constitution.text == ""
            assert bundle.constitution.hash == content_digest("")
            assert bundle.shards == []

    def test_constitution_text_is_line_bounded(self) -> None:
        compiler = GuidanceCompiler(CompilerConfig(overrides={"maxConstitutionLines": 3}))

        bundle = compiler.compile(ROOT_GUIDANCE)

        assert len(bundle.constitution.text.splitlines()) == 3
        assert len(bundle.constitution.rules) == 2

    def test_default_risk_class_is_configurable(self) -> None:
        compiler = GuidanceCompiler(CompilerConfig(overrides={"defaultRiskClass": "low"}))

        assert compiler.compile(ROOT_GUIDANCE).find_rule("R002").risk_class is RiskClass.LOW

    def test_compile_audits_counts(self, audit_log) -> None:
        GuidanceCompiler(audit=LoggingConfig(audit_log.parent.parent)).compile(ROOT_GUIDANCE)

        record = json.loads(audit_log.read_text(encoding="utf-8").splitlines()[-1])
        assert record["event"] == "compiler.compiled"
        assert record["totalRules"] == 7
