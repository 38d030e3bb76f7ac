"""
Data models for compiled guidance.

This module defines the dataclasses produced by the rule compiler:
- GuidanceRule: a single rule with its inferred annotations
- RuleShard: a retrievable, task-scoped wrapper around a non-constitution rule
- Constitution: the always-loaded rule subset and its rendered text
- RuleManifest: machine-readable index of every compiled rule
- PolicyBundle: constitution + shards + manifest
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional

from policyplane.core.exceptions import ValidationError


class RiskClass(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class ToolClass(str, Enum):
    EDIT = "edit"
    BASH = "bash"
    READ = "read"
    WRITE = "write"
    MCP = "mcp"
    TASK = "task"
    ALL = "all"


class TaskIntent(str, Enum):
    BUG_FIX = "bug-fix"
    FEATURE = "feature"
    REFACTOR = "refactor"
    SECURITY = "security"
    PERFORMANCE = "performance"
    TESTING = "testing"
    DOCS = "docs"
    DEPLOYMENT = "deployment"
    ARCHITECTURE = "architecture"
    DEBUG = "debug"
    GENERAL = "general"


class RuleSource(str, Enum):
    ROOT = "root"
    LOCAL = "local"
    OPTIMIZER = "optimizer"


def _enum(kind: type, raw: Any, label: str) -> Any:
    try:
        return kind(raw)
    except ValueError as exc:
        raise ValidationError(f"Invalid {label}: {raw!r}", context={"field": label}) from exc


@dataclass
class GuidanceRule:
    """A single compiled guidance rule.

    Attributes:
        id: Unique rule identifier within a bundle (``R001``, ``AUTO-003``)
        text: Rule text with every inline annotation stripped
        risk_class: Risk classification
        tool_classes: Tool classes the rule applies to
        intents: Task intents the rule is relevant for
        repo_scopes: Repository path globs where the rule applies
        domains: Domain tags (security, testing, ...)
        priority: Higher wins contradictions; constitution rules carry a bonus
        source: Document (or optimizer) the rule came from
        is_constitution: Whether the rule is always loaded
        verifier: Optional verifier name (``verify:<name>``)
        created_at: Epoch milliseconds
        updated_at: Epoch milliseconds
    """

    id: str
    text: str
    risk_class: RiskClass = RiskClass.MEDIUM
    tool_classes: List[ToolClass] = field(default_factory=lambda: [ToolClass.ALL])
    intents: List[TaskIntent] = field(default_factory=lambda: [TaskIntent.GENERAL])
    repo_scopes: List[str] = field(default_factory=lambda: ["**/*"])
    domains: List[str] = field(default_factory=lambda: ["general"])
    priority: int = 50
    source: RuleSource = RuleSource.ROOT
    is_constitution: bool = False
    verifier: Optional[str] = None
    created_at: int = 0
    updated_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "riskClass": self.risk_class.value,
            "toolClasses": [t.value for t in self.tool_classes],
            "intents": [i.value for i in self.intents],
            "repoScopes": list(self.repo_scopes),
            "domains": list(self.domains),
            "priority": self.priority,
            "source": self.source.value,
            "isConstitution": self.is_constitution,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.verifier is not None:
            result["verifier"] = self.verifier
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GuidanceRule":
        return cls(
            id=str(data["id"]),
            text=str(data.get("text", "")),
            risk_class=_enum(RiskClass, data.get("riskClass", "medium"), "riskClass"),
            tool_classes=[_enum(ToolClass, t, "toolClasses") for t in data.get("toolClasses", ["all"])],
            intents=[_enum(TaskIntent, i, "intents") for i in data.get("intents", ["general"])],
            repo_scopes=[str(s) for s in data.get("repoScopes", ["**/*"])],
            domains=[str(d) for d in data.get("domains", ["general"])],
            priority=int(data.get("priority", 50)),
            source=_enum(RuleSource, data.get("source", "root"), "source"),
            is_constitution=bool(data.get("isConstitution", False)),
            verifier=data.get("verifier"),
            created_at=int(data.get("createdAt", 0)),
            updated_at=int(data.get("updatedAt", 0)),
        )


@dataclass
class RuleShard:
    """A non-constitution rule plus its compact injectable text."""

    rule: GuidanceRule
    compact_text: str
    embedding: Optional[List[float]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"rule": self.rule.to_dict(), "compactText": self.compact_text}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RuleShard":
        return cls(rule=GuidanceRule.from_dict(data["rule"]), compact_text=str(data.get("compactText", "")))


@dataclass
class Constitution:
    rules: List[GuidanceRule] = field(default_factory=list)
    text: str = ""
    hash: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"rules": [r.to_dict() for r in self.rules], "text": self.text, "hash": self.hash}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Constitution":
        return cls(
            rules=[GuidanceRule.from_dict(r) for r in data.get("rules", [])],
            text=str(data.get("text", "")),
            hash=str(data.get("hash", "")),
        )


@dataclass(frozen=True)
class ManifestEntry:
    id: str
    triggers: List[str]
    verifier: Optional[str]
    risk_class: RiskClass
    priority: int
    source: RuleSource

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "triggers": list(self.triggers),
            "verifier": self.verifier,
            "riskClass": self.risk_class.value,
            "priority": self.priority,
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ManifestEntry":
        return cls(
            id=str(data["id"]),
            triggers=[str(t) for t in data.get("triggers", [])],
            verifier=data.get("verifier"),
            risk_class=_enum(RiskClass, data.get("riskClass", "medium"), "riskClass"),
            priority=int(data.get("priority", 0)),
            source=_enum(RuleSource, data.get("source", "root"), "source"),
        )


@dataclass
class RuleManifest:
    """Machine-readable index of all compiled rules.

    ``constitution_rules + shard_rules == total_rules`` always holds for a
    manifest produced by the compiler.
    """

    rules: List[ManifestEntry] = field(default_factory=list)
    compiled_at: int = 0
    source_hashes: Dict[str, str] = field(default_factory=dict)
    total_rules: int = 0
    constitution_rules: int = 0
    shard_rules: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rules": [r.to_dict() for r in self.rules],
            "compiledAt": self.compiled_at,
            "sourceHashes": dict(self.source_hashes),
            "totalRules": self.total_rules,
            "constitutionRules": self.constitution_rules,
            "shardRules": self.shard_rules,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RuleManifest":
        return cls(
            rules=[ManifestEntry.from_dict(r) for r in data.get("rules", [])],
            compiled_at=int(data.get("compiledAt", 0)),
            source_hashes={str(k): str(v) for k, v in (data.get("sourceHashes") or {}).items()},
            total_rules=int(data.get("totalRules", 0)),
            constitution_rules=int(data.get("constitutionRules", 0)),
            shard_rules=int(data.get("shardRules", 0)),
        )


@dataclass
class PolicyBundle:
    constitution: Constitution
    shards: List[RuleShard]
    manifest: RuleManifest

    def iter_rules(self) -> Iterator[GuidanceRule]:
        """Yield constitution rules first, then shard rules."""
        yield from self.constitution.rules
        for shard in self.shards:
            yield shard.rule

    def find_rule(self, rule_id: str) -> Optional[GuidanceRule]:
        for rule in self.iter_rules():
            if rule.id == rule_id:
                return rule
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "constitution": self.constitution.to_dict(),
            "shards": [s.to_dict() for s in self.shards],
            "manifest": self.manifest.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PolicyBundle":
        """Rebuild a bundle from :meth:`to_dict` output.

        Raises:
            ValidationError: If a required key is missing or an enum value is unknown.
        """
        try:
            return cls(
                constitution=Constitution.from_dict(data["constitution"]),
                shards=[RuleShard.from_dict(s) for s in data.get("shards", [])],
                manifest=RuleManifest.from_dict(data["manifest"]),
            )
        except KeyError as exc:
            raise ValidationError(
                f"Policy bundle is missing required key: {exc.args[0]}",
                context={"key": exc.args[0]},
            ) from exc


__all__ = [
    "RiskClass",
    "ToolClass",
    "TaskIntent",
    "RuleSource",
    "GuidanceRule",
    "RuleShard",
    "Constitution",
    "ManifestEntry",
    "RuleManifest",
    "PolicyBundle",
]
