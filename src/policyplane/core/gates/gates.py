"""Enforcement gates: policy decision points for proposed agent actions.

Every evaluation is pure and never raises. Non-text input is treated as
"no match" (allow); only an explicit pattern match escalates.
"""
from __future__ import annotations

import fnmatch
import logging
from typing import Dict, List, Optional, Tuple

from policyplane.core.audit import audit_event
from policyplane.core.config import GatesConfig, LoggingConfig
from policyplane.core.rules.models import PolicyBundle
from policyplane.core.taxonomy import RISK_LEVELS

from .models import GateDecision, GateResult, aggregate_decision
from .patterns import (
    DESTRUCTIVE_PATTERNS,
    ENTROPY_CANDIDATE,
    ENV_REFERENCE,
    GATE_RULE_SIGNALS,
    SECRET_PATTERNS,
    mixed_character_classes,
    redact,
    shannon_entropy,
)

logger = logging.getLogger(__name__)

DESTRUCTIVE_OPS = "destructive-ops"
TOOL_ALLOWLIST = "tool-allowlist"
DIFF_SIZE = "diff-size"
SECRETS = "secrets"

DESTRUCTIVE_REMEDIATION = (
    "Confirm the exact target first, make sure a backup exists, and write down a "
    "rollback plan before running this. Prefer a scoped, reversible alternative."
)
DIFF_REMEDIATION = (
    "Stage changes incrementally: split this edit into smaller, reviewable commits "
    "and write a short plan before continuing."
)
SECRET_REMEDIATION = (
    "Remove the credential from the content and load it from an environment "
    "variable or secret manager instead."
)


class EnforcementGates:
    """Destructive-ops, tool-allowlist, diff-size and secrets gates."""

    def __init__(
        self,
        config: Optional[GatesConfig] = None,
        *,
        audit: Optional[LoggingConfig] = None,
    ) -> None:
        self.config = config or GatesConfig()
        self._audit = audit
        self._bound_rules: Dict[str, List[str]] = {}

    def bind_rules(self, bundle: PolicyBundle) -> None:
        """Attach guidance rule IDs to gates so results report them as triggered."""
        bound: Dict[str, List[str]] = {}
        for rule in bundle.iter_rules():
            for gate, signal in GATE_RULE_SIGNALS.items():
                if signal.search(rule.text):
                    bound.setdefault(gate, []).append(rule.id)
        self._bound_rules = bound

    @property
    def active_gate_count(self) -> int:
        count = sum(1 for enabled in (self.config.destructive_ops, self.config.diff_size, self.config.secrets) if enabled)
        if self.config.tool_allowlist and self.config.allowed_tools:
            count += 1
        return count

    def evaluate_command(self, command: str) -> List[GateResult]:
        """Run every command-relevant gate; empty list means allow."""
        results = [
            r for r in (self.evaluate_destructive_ops(command), self.evaluate_secrets(command)) if r
        ]
        self.record_decision("command", results)
        return results

    def evaluate_edit(self, path: str, content: str, diff_lines: int) -> List[GateResult]:
        """Run the secrets and diff-size gates over a proposed file edit."""
        results = [
            r for r in (self.evaluate_secrets(content), self.evaluate_diff_size(path, diff_lines)) if r
        ]
        self.record_decision("edit", results)
        return results

    def evaluate_destructive_ops(self, command: str) -> Optional[GateResult]:
        """Match ``command`` against the destructive pattern set.

        Catastrophic operations (``rm -rf /``, forced push to a protected
        branch, pipe-to-shell, dynamic eval) block; other destructive
        operations require confirmation. The most restrictive match wins.
        """
        if not self.config.destructive_ops or not isinstance(command, str):
            return None

        matched = [p for p in DESTRUCTIVE_PATTERNS if p.pattern.search(command)]
        if not matched:
            return None
        worst = max(matched, key=lambda p: p.decision.severity)
        return GateResult(
            decision=worst.decision,
            gate_name=DESTRUCTIVE_OPS,
            reason=f"Destructive operation detected: {worst.description}",
            triggered_rules=list(self._bound_rules.get(DESTRUCTIVE_OPS, [])),
            remediation=DESTRUCTIVE_REMEDIATION,
            metadata={"command": command, "matchedPatterns": [p.name for p in matched]},
        )

    def evaluate_tool_allowlist(self, tool: str) -> Optional[GateResult]:
        """Block tools outside the allowlist (``fnmatch`` wildcards allowed).

        A disabled gate or an empty allowlist allows every tool.
        """
        if not self.config.tool_allowlist or not isinstance(tool, str):
            return None
        allowed = self.config.allowed_tools
        if not allowed:
            return None
        if any(tool == entry or fnmatch.fnmatchcase(tool, entry) for entry in allowed):
            return None
        return GateResult(
            decision=GateDecision.BLOCK,
            gate_name=TOOL_ALLOWLIST,
            reason=f"Tool '{tool}' is not in the allowlist",
            triggered_rules=list(self._bound_rules.get(TOOL_ALLOWLIST, [])),
            remediation=f"Use one of the allowed tools: {', '.join(allowed)}",
            metadata={"tool": tool, "allowedTools": list(allowed)},
        )

    def evaluate_diff_size(self, path: str, lines_changed: int) -> Optional[GateResult]:
        if not self.config.diff_size:
            return None
        if isinstance(lines_changed, bool) or not isinstance(lines_changed, int):
            return None
        threshold = self.config.diff_size_threshold
        if lines_changed <= threshold:
            return None
        return GateResult(
            decision=GateDecision.WARN,
            gate_name=DIFF_SIZE,
            reason=f"Diff of {lines_changed} lines to {path} exceeds threshold of {threshold}",
            triggered_rules=list(self._bound_rules.get(DIFF_SIZE, [])),
            remediation=DIFF_REMEDIATION,
            metadata={"path": path, "linesChanged": lines_changed, "threshold": threshold},
        )

    def evaluate_secrets(self, content: str) -> Optional[GateResult]:
        """Detect credential-shaped substrings.

        Findings at or above ``secretBlockSeverity`` block; weaker findings
        (including high-entropy quoted blobs) warn.
        """
        if not self.config.secrets or not isinstance(content, str) or not content:
            return None

        findings: List[Tuple[str, str, str]] = []
        seen: List[str] = []
        for secret in SECRET_PATTERNS:
            for match in secret.pattern.finditer(content):
                value = match.group(secret.group)
                if secret.group and ENV_REFERENCE.match(value):
                    continue
                if value in seen:
                    continue
                seen.append(value)
                findings.append((secret.name, secret.severity, value))

        for match in ENTROPY_CANDIDATE.finditer(content):
            value = match.group(1)
            if len(value) < self.config.min_entropy_length or not mixed_character_classes(value):
                continue
            if any(value in s or s in value for s in seen):
                continue
            if shannon_entropy(value) >= self.config.entropy_threshold:
                seen.append(value)
                findings.append(("high-entropy-string", "medium", value))

        if not findings:
            return None

        worst = max(RISK_LEVELS.get(severity, 0) for _, severity, _ in findings)
        block_at = RISK_LEVELS.get(self.config.secret_block_severity, RISK_LEVELS["high"])
        decision = GateDecision.BLOCK if worst >= block_at else GateDecision.WARN
        kinds = sorted({name for name, _, _ in findings})
        return GateResult(
            decision=decision,
            gate_name=SECRETS,
            reason=f"Possible secret(s) detected: {', '.join(kinds)}",
            triggered_rules=list(self._bound_rules.get(SECRETS, [])),
            remediation=SECRET_REMEDIATION,
            metadata={
                "findingCount": len(findings),
                "patterns": kinds,
                "redactedSecrets": [redact(value) for _, _, value in findings],
            },
        )

    def aggregate_decision(self, results: List[GateResult]) -> GateDecision:
        return aggregate_decision(results)

    def record_decision(self, action: str, results: List[GateResult]) -> None:
        """Log and audit non-empty gate results for ``action``."""
        if not results:
            return
        decision = aggregate_decision(results)
        logger.info("Gate decision for %s: %s (%s)", action, decision.value, ", ".join(r.gate_name for r in results))
        audit_event(
            "gate.decision",
            settings=self._audit,
            action=action,
            decision=decision.value,
            gates=[r.gate_name for r in results],
            triggeredRules=sorted({rid for r in results for rid in r.triggered_rules}),
        )


__all__ = [
    "EnforcementGates",
    "DESTRUCTIVE_OPS",
    "TOOL_ALLOWLIST",
    "DIFF_SIZE",
    "SECRETS",
]
