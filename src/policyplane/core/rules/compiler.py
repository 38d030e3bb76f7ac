"""Guidance compiler.

Turns a root guidance document (and an optional local overlay) into a
:class:`PolicyBundle`:

1. a small always-loaded constitution, rendered to a line-bounded text,
2. one retrievable shard per remaining rule,
3. a machine-readable manifest with triggers, verifiers and source digests.

Compilation never raises on malformed text; input that yields no rules
produces an empty (but valid) bundle.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Optional

from policyplane.core.audit import audit_event
from policyplane.core.config import CompilerConfig, LoggingConfig
from policyplane.core.taxonomy import GENERAL, infer_domains, infer_intents, is_actionable
from policyplane.core.utils.hashing import content_digest
from policyplane.core.utils.time import now_ms

from .models import (
    Constitution,
    GuidanceRule,
    ManifestEntry,
    PolicyBundle,
    RiskClass,
    RuleManifest,
    RuleShard,
    RuleSource,
    TaskIntent,
    ToolClass,
)
from .parser import extract_bullets, extract_explicit_rules, parse_annotations, split_blocks

logger = logging.getLogger(__name__)

CONSTITUTION_HEADER = "# Constitution - Always Active Rules"


class AutoIdSequence:
    """Generates ``AUTO-001``, ``AUTO-002``... for one compilation."""

    def __init__(self, start: int = 1) -> None:
        self._next = start

    def next_id(self) -> str:
        value = self._next
        self._next += 1
        return f"AUTO-{value:03d}"


class GuidanceCompiler:
    """Compile guidance markdown into a policy bundle.

    Example:
        >>> bundle = GuidanceCompiler().compile("# Safety\\n- [R001] Never push to main\\n")
        >>> [r.id for r in bundle.constitution.rules]
        ['R001']
    """

    def __init__(
        self,
        config: Optional[CompilerConfig] = None,
        *,
        audit: Optional[LoggingConfig] = None,
    ) -> None:
        self.config = config or CompilerConfig()
        self._audit = audit

    def compile(self, root_text: str, local_text: Optional[str] = None) -> PolicyBundle:
        """Compile root (and optional local) guidance into a bundle.

        Auto-generated IDs restart at ``AUTO-001`` on every call and continue
        from the root document into the local one, so identical input always
        yields identical IDs.
        """
        root_text = _as_text(root_text)
        local = _as_text(local_text) if local_text is not None else None

        ids = AutoIdSequence()
        root_rules = self.parse_guidance_file(root_text, RuleSource.ROOT, ids=ids)
        local_rules = self.parse_guidance_file(local, RuleSource.LOCAL, ids=ids) if local else []

        all_rules = self._merge_rules(root_rules, local_rules)
        constitution = self.build_constitution([r for r in all_rules if r.is_constitution])
        shards = [self.build_shard(r) for r in all_rules if not r.is_constitution]
        manifest = self._build_manifest(all_rules, root_text, local)

        logger.debug(
            "Compiled %d rules (%d constitution, %d shards)",
            manifest.total_rules,
            manifest.constitution_rules,
            manifest.shard_rules,
        )
        audit_event(
            "compiler.compiled",
            settings=self._audit,
            totalRules=manifest.total_rules,
            constitutionRules=manifest.constitution_rules,
            shardRules=manifest.shard_rules,
            constitutionHash=constitution.hash,
            sourceHashes=manifest.source_hashes,
        )
        return PolicyBundle(constitution=constitution, shards=shards, manifest=manifest)

    def parse_guidance_file(
        self,
        content: str,
        source: RuleSource = RuleSource.ROOT,
        *,
        ids: Optional[AutoIdSequence] = None,
    ) -> List[GuidanceRule]:
        """Parse one guidance document into rules (document order).

        Args:
            content: Markdown text.
            source: Which document the rules come from.
            ids: Auto-ID sequence to draw from; a fresh one when omitted.
        """
        ids = ids or AutoIdSequence()
        source = RuleSource(source)
        rules: List[GuidanceRule] = []
        for block in split_blocks(_as_text(content)):
            explicit = extract_explicit_rules(block.lines)
            if explicit:
                for rule_id, raw in explicit:
                    rules.append(self._parse_rule(rule_id, raw, source, block.is_constitution))
                continue
            if not self.config.auto_generate_ids:
                continue
            for text in extract_bullets(block.lines):
                if is_actionable(text):
                    rules.append(self._parse_rule(ids.next_id(), text, source, block.is_constitution))
        return rules

    def _parse_rule(
        self, rule_id: str, text: str, source: RuleSource, is_constitution: bool
    ) -> GuidanceRule:
        ann = parse_annotations(text)
        now = now_ms()

        intents = ann.intents or infer_intents(text)
        domains = ann.domains or infer_domains(text)
        priority = ann.priority if ann.priority is not None else self.config.default_priority
        if is_constitution:
            priority += self.config.constitution_priority_bonus

        return GuidanceRule(
            id=rule_id,
            text=ann.clean_text,
            risk_class=RiskClass(ann.risk_class or self.config.default_risk_class),
            tool_classes=[ToolClass(t) for t in ann.tool_classes] or [ToolClass.ALL],
            intents=[TaskIntent(i) for i in intents],
            repo_scopes=ann.repo_scopes or ["**/*"],
            domains=domains,
            priority=priority,
            source=source,
            is_constitution=is_constitution,
            verifier=ann.verifier,
            created_at=now,
            updated_at=now,
        )

    def _merge_rules(
        self, root_rules: List[GuidanceRule], local_rules: List[GuidanceRule]
    ) -> List[GuidanceRule]:
        """Local rules override root rules with the same ID.

        The merged rule keeps the higher of the two priorities. Result is
        sorted by priority descending, stable on first appearance.
        """
        merged: Dict[str, GuidanceRule] = {}
        for rule in root_rules:
            merged[rule.id] = rule
        for rule in local_rules:
            existing = merged.get(rule.id)
            if existing is None:
                merged[rule.id] = rule
                continue
            merged[rule.id] = replace(
                rule,
                priority=max(rule.priority, existing.priority),
                created_at=existing.created_at,
                updated_at=now_ms(),
            )
        return sorted(merged.values(), key=lambda r: -r.priority)

    def build_constitution(self, rules: List[GuidanceRule]) -> Constitution:
        """Render constitution rules grouped by first domain, bounded in lines."""
        ordered = sorted(rules, key=lambda r: -r.priority)
        if not ordered:
            return Constitution(rules=[], text="", hash=content_digest(""))

        groups: Dict[str, List[GuidanceRule]] = {}
        for rule in ordered:
            domain = rule.domains[0] if rule.domains else GENERAL
            groups.setdefault(domain, []).append(rule)

        lines = [CONSTITUTION_HEADER, ""]
        for domain, members in groups.items():
            lines.append(f"## {domain[:1].upper()}{domain[1:]}")
            lines.extend(f"- [{rule.id}] {rule.text}" for rule in members)

        text = "\n".join(lines[: self.config.max_constitution_lines])
        return Constitution(rules=ordered, text=text, hash=content_digest(text))

    def build_shard(self, rule: GuidanceRule) -> RuleShard:
        tags = [rule.risk_class.value, *rule.domains, *(i.value for i in rule.intents)]
        tags.extend(t.value for t in rule.tool_classes if t is not ToolClass.ALL)
        tag_text = " ".join(f"@{t}" for t in tags)
        return RuleShard(rule=rule, compact_text=f"[{rule.id}] {rule.text} {tag_text}".strip())

    def _build_manifest(
        self, rules: List[GuidanceRule], root_text: str, local_text: Optional[str]
    ) -> RuleManifest:
        source_hashes = {"root": content_digest(root_text)}
        if local_text:
            source_hashes["local"] = content_digest(local_text)

        constitution_count = sum(1 for r in rules if r.is_constitution)
        return RuleManifest(
            rules=[
                ManifestEntry(
                    id=r.id,
                    triggers=[*(i.value for i in r.intents), *r.domains, *(t.value for t in r.tool_classes)],
                    verifier=r.verifier,
                    risk_class=r.risk_class,
                    priority=r.priority,
                    source=r.source,
                )
                for r in rules
            ],
            compiled_at=now_ms(),
            source_hashes=source_hashes,
            total_rules=len(rules),
            constitution_rules=constitution_count,
            shard_rules=len(rules) - constitution_count,
        )


def _as_text(value: object) -> str:
    if isinstance(value, str):
        return value
    if value is not None:
        logger.debug("Ignoring non-text guidance input of type %s", type(value).__name__)
    return ""


__all__ = ["AutoIdSequence", "CONSTITUTION_HEADER", "GuidanceCompiler"]
