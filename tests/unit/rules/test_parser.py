"""Tests for markdown block splitting and inline annotation parsing."""
from __future__ import annotations

from policyplane.core.rules.parser import (
    extract_bullets,
    extract_explicit_rules,
    parse_annotations,
    split_blocks,
)


class TestSplitBlocks:
    def test_headings_and_rules_split_blocks(self) -> None:
        doc = "intro\n## Safety\n- a\n---\n- b\n## Testing\n- c\n"

        blocks = split_blocks(doc)

        assert [b.heading for b in blocks] == ["", "Safety", "---", "Testing"]
        assert [b.is_constitution for b in blocks] == [False, True, False, False]

    def test_empty_document_has_no_blocks(self) -> None:
        assert split_blocks("") == []


class TestExplicitRules:
    def test_id_lines_start_rules_and_continuations_attach(self) -> None:
        lines = [
            "## Testing",
            "preamble is ignored",
            "- [R001] Run tests",
            "  - including integration tests",
            "R002: Use fixtures",
        ]

        rules = extract_explicit_rules(lines)

        assert [rid for rid, _ in rules] == ["R001", "R002"]
        assert "including integration tests" in rules[0][1]
        assert rules[1][1] == "Use fixtures"

    def test_hyphenated_ids(self) -> None:
        assert extract_explicit_rules(["- [SEC-0042] Rotate keys"]) == [("SEC-0042", "Rotate keys")]

    def test_plain_words_are_not_ids(self) -> None:
        assert extract_explicit_rules(["- NEVER commit secrets"]) == []


def test_extract_bullets_skips_prose_and_headings() -> None:
    lines = ["## Style", "Some prose.", "- Use black", "* Prefer f-strings", ""]
    assert extract_bullets(lines) == ["Use black", "Prefer f-strings"]


class TestAnnotations:
    def test_every_annotation_is_parsed_and_stripped(self) -> None:
        ann = parse_annotations(
            "Never log tokens (critical) [bash] [edit] #security @security "
            "scope:src/** verify:no-secrets priority:90"
        )

        assert ann.clean_text == "Never log tokens"
        assert ann.risk_class == "critical"
        assert ann.tool_classes == ["bash", "edit"]
        assert ann.intents == ["security"]
        assert ann.domains == ["security"]
        assert ann.repo_scopes == ["src/**"]
        assert ann.verifier == "no-secrets"
        assert ann.priority == 90

    def test_risk_suffix_forms(self) -> None:
        assert parse_annotations("x (high-risk)").risk_class == "high"
        assert parse_annotations("x [low-risk]").risk_class == "low"

    def test_unknown_tags_stay_in_text(self) -> None:
        ann = parse_annotations("Keep issue #123 and @someone mentioned")

        assert ann.intents == []
        assert ann.domains == []
        assert ann.clean_text == "Keep issue #123 and @someone mentioned"

    def test_no_annotations_means_empty_fields(self) -> None:
        ann = parse_annotations("Write docs")

        assert ann.risk_class is None
        assert ann.priority is None
        assert ann.tool_classes == []
