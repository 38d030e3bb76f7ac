"""Static pattern sets used by the enforcement gates."""
from __future__ import annotations

import math
import re
from collections import Counter
from dataclasses import dataclass
from typing import Pattern, Tuple

from .models import GateDecision

_I = re.IGNORECASE

# Root or home directory as a recursive delete target.
_ROOT_TARGET = r"(?:/\*?|~/?\*?|\$HOME/?|\$\{HOME\}/?)(?=\s|$|;|&|\|)"
_RM_RECURSIVE = r"\brm\s+(?:-[a-zA-Z]*[rR][a-zA-Z]*|--recursive)(?:\s+(?:-[a-zA-Z]+|--[a-z-]+))*\s+"
_FORCE_FLAG = r"(?:\s--force(?:-with-lease)?\b|\s-f\b|\s\+\S)"
PROTECTED_BRANCHES = ("main", "master", "production", "release")


@dataclass(frozen=True)
class CommandPattern:
    name: str
    pattern: Pattern[str]
    decision: GateDecision
    description: str


DESTRUCTIVE_PATTERNS: Tuple[CommandPattern, ...] = (
    CommandPattern(
        "rm-rf-root",
        re.compile(_RM_RECURSIVE + _ROOT_TARGET),
        GateDecision.BLOCK,
        "recursive delete of the root or home directory",
    ),
    CommandPattern(
        "force-push-protected",
        re.compile(
            r"\bgit\s+push\b(?=[^;&|]*" + _FORCE_FLAG + r")(?=[^;&|]*\b(?:"
            + "|".join(PROTECTED_BRANCHES)
            + r")\b)"
        ),
        GateDecision.BLOCK,
        "forced push to a protected branch",
    ),
    CommandPattern(
        "pipe-to-shell",
        re.compile(r"\b(?:curl|wget)\b[^|;&]*\|\s*(?:sudo\s+)?(?:ba|z|da|k)?sh\b"),
        GateDecision.BLOCK,
        "downloaded script piped straight into a shell",
    ),
    CommandPattern(
        "dynamic-eval",
        re.compile(r"(?:^|[;&|]\s*|\s)eval\s*[(\"'$`]|\bexec\s*\("),
        GateDecision.BLOCK,
        "dynamic code execution",
    ),
    CommandPattern(
        "disk-wipe",
        re.compile(r"\bmkfs(?:\.\w+)?\b|\bdd\s+[^;&|]*\bof=/dev/|>\s*/dev/sd[a-z]\b"),
        GateDecision.BLOCK,
        "raw disk format or overwrite",
    ),
    CommandPattern(
        "fork-bomb",
        re.compile(r":\(\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:"),
        GateDecision.BLOCK,
        "fork bomb",
    ),
    CommandPattern(
        "rm-recursive",
        re.compile(r"\brm\s+(?:-[a-zA-Z]*[rR][a-zA-Z]*|--recursive)\b"),
        GateDecision.REQUIRE_CONFIRMATION,
        "recursive delete",
    ),
    CommandPattern(
        "force-push",
        re.compile(r"\bgit\s+push\b(?=[^;&|]*" + _FORCE_FLAG + r")"),
        GateDecision.REQUIRE_CONFIRMATION,
        "forced push rewrites remote history",
    ),
    CommandPattern(
        "git-reset-hard",
        re.compile(r"\bgit\s+reset\s+(?:\S+\s+)*--hard\b"),
        GateDecision.REQUIRE_CONFIRMATION,
        "hard reset discards local changes",
    ),
    CommandPattern(
        "git-clean",
        re.compile(r"\bgit\s+clean\s+(?:-[a-zA-Z]*f|--force)"),
        GateDecision.REQUIRE_CONFIRMATION,
        "git clean deletes untracked files",
    ),
    CommandPattern(
        "git-branch-delete",
        re.compile(r"\bgit\s+branch\s+(?:\S+\s+)*-D\b"),
        GateDecision.REQUIRE_CONFIRMATION,
        "force-deleting a branch",
    ),
    CommandPattern(
        "sql-drop",
        re.compile(r"\bDROP\s+(?:DATABASE|TABLE|SCHEMA|INDEX|VIEW)\b", _I),
        GateDecision.REQUIRE_CONFIRMATION,
        "SQL DROP statement",
    ),
    CommandPattern(
        "sql-truncate",
        re.compile(r"\bTRUNCATE\s+(?:TABLE\s+)?\w+", _I),
        GateDecision.REQUIRE_CONFIRMATION,
        "SQL TRUNCATE statement",
    ),
    CommandPattern(
        "sql-delete-all",
        re.compile(r"\bDELETE\s+FROM\s+[\w.\"`]+\s*(?:;|$)", _I),
        GateDecision.REQUIRE_CONFIRMATION,
        "SQL DELETE without a WHERE clause",
    ),
    CommandPattern(
        "kubectl-delete",
        re.compile(r"\bkubectl\s+delete\b"),
        GateDecision.REQUIRE_CONFIRMATION,
        "deleting cluster resources",
    ),
    CommandPattern(
        "terraform-destroy",
        re.compile(r"\bterraform\s+destroy\b"),
        GateDecision.REQUIRE_CONFIRMATION,
        "destroying managed infrastructure",
    ),
    CommandPattern(
        "docker-prune",
        re.compile(r"\bdocker\s+(?:system|volume|image)\s+prune\b"),
        GateDecision.REQUIRE_CONFIRMATION,
        "pruning docker resources",
    ),
    CommandPattern(
        "chmod-world-writable",
        re.compile(r"\bchmod\s+(?:-R\s+)?0?777\b"),
        GateDecision.REQUIRE_CONFIRMATION,
        "world-writable permissions",
    ),
)


@dataclass(frozen=True)
class SecretPattern:
    name: str
    pattern: Pattern[str]
    severity: str
    # Capture group holding the secret value (0 = whole match).
    group: int = 0


SECRET_PATTERNS: Tuple[SecretPattern, ...] = (
    SecretPattern("private-key", re.compile(r"-----BEGIN (?:[A-Z]+ )*PRIVATE KEY-----"), "critical"),
    SecretPattern("aws-access-key", re.compile(r"\b(?:AKIA|ASIA)[0-9A-Z]{16}\b"), "critical"),
    SecretPattern("github-token", re.compile(r"\bgh[pousr]_[A-Za-z0-9]{36,}\b"), "critical"),
    SecretPattern("api-key-sk", re.compile(r"\bsk-[A-Za-z0-9_-]{20,}"), "critical"),
    SecretPattern("slack-token", re.compile(r"\bxox[baprs]-[A-Za-z0-9-]{10,}"), "high"),
    SecretPattern(
        "credential-assignment",
        re.compile(
            r"\b(?:api[_-]?key|apikey|secret(?:[_-]?key)?|access[_-]?token|auth[_-]?token|client[_-]?secret)"
            r"\b[\"']?\s*[:=]\s*[\"']([^\"'\s]{8,})[\"']",
            _I,
        ),
        "high",
        group=1,
    ),
    SecretPattern(
        "password-assignment",
        re.compile(r"\b(?:password|passwd|pwd)\b[\"']?\s*[:=]\s*[\"']([^\"'\s]{6,})[\"']", _I),
        "high",
        group=1,
    ),
    # Unquoted dotenv lines. Bare identifiers, expressions and paths are not values.
    SecretPattern(
        "dotenv-password",
        re.compile(
            r"^\s*(?:export\s+)?[A-Z0-9_]*(?:PASSWORD|PASSWD)\s*=\s*"
            r"((?=\S*[^A-Za-z_\s])[^\s\"'#.()\[\]{}$/]{6,})\s*$",
            re.M,
        ),
        "high",
        group=1,
    ),
)

# Values that reference a secret instead of containing one.
ENV_REFERENCE = re.compile(r"^(?:process\.env\.|os\.environ|os\.getenv|\$\{?|env\(|getenv\()", _I)

# Quoted blobs considered for the entropy heuristic.
ENTROPY_CANDIDATE = re.compile(r"[\"']([A-Za-z0-9+/=_\-]{8,})[\"']")


def shannon_entropy(value: str) -> float:
    """Bits of entropy per character of ``value``."""
    if not value:
        return 0.0
    counts = Counter(value)
    length = len(value)
    return -sum((n / length) * math.log2(n / length) for n in counts.values())


def mixed_character_classes(value: str) -> bool:
    """True when ``value`` mixes letters with digits, or is base64-shaped mixed case.

    Plain identifiers such as ``my_very_long_variable_name`` are never scored.
    """
    has_alpha = any(c.isalpha() for c in value)
    if has_alpha and any(c.isdigit() for c in value):
        return True
    mixed_case = any(c.isupper() for c in value) and any(c.islower() for c in value)
    return mixed_case and any(c in "+/=" for c in value)


def redact(value: str) -> str:
    """Keep a short prefix so the finding is recognizable; mask the rest."""
    visible = min(4, max(1, len(value) // 4))
    return value[:visible] + "*" * max(4, len(value) - visible)


# Guidance rules whose text matches one of these is bound to that gate.
GATE_RULE_SIGNALS = {
    "destructive-ops": re.compile(
        r"\brm\s+-rf\b|\bforce[- ]push|\bdestructi\w*|\bdrop\s+(?:database|table)|\breset\s+--hard", _I
    ),
    "secrets": re.compile(r"\bsecrets?\b|\bcredential\w*|\bapi[ _-]?keys?\b|\bpasswords?\b|\btokens?\b", _I),
    "tool-allowlist": re.compile(r"\ballow[- ]?list\w*|\bapproved tools?\b|\btool (?:access|usage)\b", _I),
    "diff-size": re.compile(r"\bdiffs?\b|\blarge (?:changes?|edits?|commits?)\b|\bsmall commits?\b", _I),
}


__all__ = [
    "CommandPattern",
    "DESTRUCTIVE_PATTERNS",
    "PROTECTED_BRANCHES",
    "SecretPattern",
    "SECRET_PATTERNS",
    "ENV_REFERENCE",
    "ENTROPY_CANDIDATE",
    "GATE_RULE_SIGNALS",
    "shannon_entropy",
    "mixed_character_classes",
    "redact",
]
