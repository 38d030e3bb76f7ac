"""Markdown guidance parsing: block splitting, rule extraction, annotations.

Annotation grammar (all optional, anywhere in the rule text)::

    (critical) | (high-risk) | [low-risk]   risk class
    [edit] [bash] ...                      tool classes
    #security #bug-fix ...                 intents
    @security @testing ...                 domains
    scope:src/**                           repository scope glob
    verify:tests-pass                      verifier name
    priority:80                            priority override
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from policyplane.core.taxonomy import CONSTITUTION_HEADING_PATTERN

RULE_ID_PATTERN = re.compile(r"^(?:#{1,4}\s+)?(?:[-*]\s+)?\[?([A-Z]+-?\d{3,4})\]?(?:[:\s]|$)")
RISK_PATTERN = re.compile(
    r"\((critical|high|medium|low|info)(?:-risk)?\)|\[(critical|high|medium|low|info)-risk\]",
    re.IGNORECASE,
)
TOOL_TAG_PATTERN = re.compile(r"\[(edit|bash|read|write|mcp|task|all)\]", re.IGNORECASE)
INTENT_TAG_PATTERN = re.compile(
    r"(?<![\w#])#(bug-fix|feature|refactor|security|performance|testing|docs|deployment"
    r"|architecture|debug|general)\b(?!-)",
    re.IGNORECASE,
)
DOMAIN_TAG_PATTERN = re.compile(
    r"(?<![\w@])@(security|testing|performance|architecture|debugging|deployment|general)\b",
    re.IGNORECASE,
)
SCOPE_PATTERN = re.compile(r"\bscope:([\w/*.\-]+)", re.IGNORECASE)
VERIFIER_PATTERN = re.compile(r"\bverify:([\w\-]+)", re.IGNORECASE)
PRIORITY_PATTERN = re.compile(r"\bpriority:(\d+)", re.IGNORECASE)

SHARD_MARKERS = (
    re.compile(r"^#+\s"),
    re.compile(r"^---+\s*$"),
    re.compile(r"^\*\*\*+\s*$"),
)
_BULLET = re.compile(r"^[-*]\s+(.+)")
_ANNOTATIONS = (
    RISK_PATTERN,
    TOOL_TAG_PATTERN,
    INTENT_TAG_PATTERN,
    DOMAIN_TAG_PATTERN,
    SCOPE_PATTERN,
    VERIFIER_PATTERN,
    PRIORITY_PATTERN,
)


@dataclass
class Block:
    """A run of lines between two section boundaries."""

    heading: str
    is_constitution: bool
    lines: List[str] = field(default_factory=list)


@dataclass
class Annotations:
    """Inline annotations found in one rule's text; empty lists mean "not given"."""

    clean_text: str
    risk_class: Optional[str] = None
    tool_classes: List[str] = field(default_factory=list)
    intents: List[str] = field(default_factory=list)
    domains: List[str] = field(default_factory=list)
    repo_scopes: List[str] = field(default_factory=list)
    verifier: Optional[str] = None
    priority: Optional[int] = None


def is_boundary(line: str) -> bool:
    return any(marker.match(line) for marker in SHARD_MARKERS)


def split_blocks(content: str) -> List[Block]:
    """Split a markdown document at heading / horizontal-rule boundaries.

    A block is a constitution block when its opening heading matches the
    constitution marker set. Text before the first boundary forms a
    (non-constitution) preamble block.
    """
    blocks: List[Block] = []
    current = Block(heading="", is_constitution=False)
    for line in content.splitlines():
        if is_boundary(line):
            if current.lines:
                blocks.append(current)
            current = Block(
                heading=re.sub(r"^#+\s*", "", line).strip(),
                is_constitution=bool(CONSTITUTION_HEADING_PATTERN.match(line)),
            )
        current.lines.append(line)
    if current.lines:
        blocks.append(current)
    return blocks


def extract_explicit_rules(lines: List[str]) -> List[Tuple[str, str]]:
    """Return ``(rule_id, raw_text)`` pairs for lines led by a rule-ID token.

    Lines after an ID line (up to the next ID line) continue that rule.
    Lines before the first ID line are ignored.
    """
    rules: List[Tuple[str, str]] = []
    current_id: Optional[str] = None
    buffer: List[str] = []
    for line in lines:
        match = RULE_ID_PATTERN.match(line)
        if match:
            if current_id is not None:
                rules.append((current_id, "\n".join(buffer)))
            current_id = match.group(1)
            buffer = [line[match.end():].strip()]
        elif current_id is not None:
            if is_boundary(line):
                continue
            bullet = _BULLET.match(line.strip())
            buffer.append(bullet.group(1) if bullet else line)
    if current_id is not None:
        rules.append((current_id, "\n".join(buffer)))
    return rules


def extract_bullets(lines: List[str]) -> List[str]:
    """Return the text of every bullet line (headings and rules skipped)."""
    bullets: List[str] = []
    for line in lines:
        trimmed = line.strip()
        if not trimmed or is_boundary(trimmed):
            continue
        match = _BULLET.match(trimmed)
        if match:
            bullets.append(match.group(1).strip())
    return bullets


def parse_annotations(text: str) -> Annotations:
    risk = RISK_PATTERN.search(text)
    verifier = VERIFIER_PATTERN.search(text)
    priority = PRIORITY_PATTERN.search(text)

    clean = text
    for pattern in _ANNOTATIONS:
        clean = pattern.sub("", clean)
    clean = re.sub(r"\s+", " ", clean).strip()

    return Annotations(
        clean_text=clean,
        risk_class=(risk.group(1) or risk.group(2)).lower() if risk else None,
        tool_classes=_unique(m.lower() for m in TOOL_TAG_PATTERN.findall(text)),
        intents=_unique(m.lower() for m in INTENT_TAG_PATTERN.findall(text)),
        domains=_unique(m.lower() for m in DOMAIN_TAG_PATTERN.findall(text)),
        repo_scopes=_unique(SCOPE_PATTERN.findall(text)),
        verifier=verifier.group(1) if verifier else None,
        priority=int(priority.group(1)) if priority else None,
    )


def _unique(items) -> List[str]:
    seen: List[str] = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen


__all__ = [
    "RULE_ID_PATTERN",
    "RISK_PATTERN",
    "TOOL_TAG_PATTERN",
    "INTENT_TAG_PATTERN",
    "DOMAIN_TAG_PATTERN",
    "SCOPE_PATTERN",
    "VERIFIER_PATTERN",
    "PRIORITY_PATTERN",
    "Block",
    "Annotations",
    "split_blocks",
    "extract_explicit_rules",
    "extract_bullets",
    "parse_annotations",
]
