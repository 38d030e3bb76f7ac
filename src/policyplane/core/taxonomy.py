"""Shared, versioned vocabulary for rule tagging and task classification.

The compiler tags rules with these tables and the retriever classifies task
text with the very same tables, so both sides always agree on what
"security" or "bug-fix" means. Bump ``VOCABULARY_VERSION`` whenever a table
changes.
"""
from __future__ import annotations

import re
from typing import Dict, List, Pattern, Tuple

VOCABULARY_VERSION = "1"

GENERAL = "general"
GENERIC_INTENT = "feature"

_I = re.IGNORECASE

# Ordered: earlier entries win score ties.
INTENT_SIGNALS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("security", re.compile(
        r"\bsecur\w*|\bauth\w*|\bsecrets?\b|\bpasswords?\b|\btokens?\b|\bcve\b|\bvuln\w*"
        r"|\bencrypt\w*|\binjection\b|\bxss\b|\bcsrf\b|\bcredential\w*", _I)),
    ("testing", re.compile(
        r"\btests?\b|\btesting\b|\bspecs?\b|\bmock\w*|\bcoverage\b|\bassert\w*|\btdd\b|\bunit\b", _I)),
    ("performance", re.compile(
        r"\bperf\w*|\boptimi[sz]\w*|\bfast\w*|\bslow\w*|\bcach\w*|\bmemory\b|\bspeed\w*"
        r"|\blatency\b|\bhnsw\b|\bbatch\w*", _I)),
    ("refactor", re.compile(
        r"\brefactor\w*|\bclean\w*|\brestructur\w*|\bsimplif\w*|\bcomplexity\b|\brename\w*", _I)),
    ("bug-fix", re.compile(
        r"\bbugs?\b|\bfix\w*|\berrors?\b|\bbroken\b|\bfail\w*|\bcrash\w*|\bpatch\w*|\bregression\w*", _I)),
    ("architecture", re.compile(
        r"\barchitect\w*|\bdesign\w*|\bpatterns?\b|\bstructur\w*|\bboundar\w*|\bddd\b"
        r"|\binterfaces?\b|\bmodul\w*", _I)),
    ("deployment", re.compile(
        r"\bdeploy\w*|\brelease\w*|\bpublish\w*|\bci\b|\bcd\b|\bproduction\b|\bpipeline\w*|\brollout\w*", _I)),
    ("docs", re.compile(
        r"\bdocs?\b|\bdocument\w*|\breadme\b|\bcomments?\b|\bjsdoc\b|\bdocstrings?\b|\bchangelog\b", _I)),
    ("debug", re.compile(
        r"\bdebug\w*|\btrac(?:e|es|ing)\b|\bprofil(?:ing|er)\b|\binvestigat\w*|\bdiagnos\w*|\blogs?\b", _I)),
    ("feature", re.compile(
        r"\badd\w*|\bnew\b|\bimplement\w*|\bcreat\w*|\bbuild\w*|\bintroduc\w*|\bsupport\w*", _I)),
)

DOMAIN_SIGNALS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("security", re.compile(
        r"\bsecur\w*|\bauth\w*|\bsecrets?\b|\bpasswords?\b|\btokens?\b|\bcve\b|\bvuln\w*|\bcredential\w*", _I)),
    ("testing", re.compile(r"\btest\w*|\bspecs?\b|\bmock\w*|\bcoverage\b|\bassert\w*", _I)),
    ("performance", re.compile(r"\bperf\w*|\boptimi[sz]\w*|\bfast\w*|\bslow\w*|\bcach\w*|\bspeed\w*", _I)),
    ("architecture", re.compile(r"\barchitect\w*|\bdesign\w*|\bddd\b|\bdomains?\b|\bboundar\w*", _I)),
    ("debugging", re.compile(r"\bbugs?\b|\bfix\w*|\berrors?\b|\bdebug\w*", _I)),
    ("deployment", re.compile(r"\bdeploy\w*|\brelease\w*|\bpublish\w*|\bpipeline\w*", _I)),
)

ACTIONABLE_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"\b(must|never|always|should|require|forbid|ensure|validate|check|verify)\b", _I),
    re.compile(r"\b(do not|don't|cannot|can't|avoid|prevent|block|deny|reject)\b", _I),
    re.compile(
        r"\b(use|prefer|apply|follow|implement|enforce|maintain|keep|run|include|write|mock|respect)\b", _I
    ),
)

# "security" is not a marker: a "## Security" section compiles to shards.
CONSTITUTION_HEADING_PATTERN = re.compile(
    r"^#+\s*(safety|invariants?|constitution|critical|non[- ]?negotiable|always|must|never"
    r"|required|mandatory)\b",
    _I,
)

NEGATIVE_POLARITY = re.compile(
    r"\b(never|do not|don't|must not|should not|cannot|can't|avoid|forbid\w*|prohibit\w*|no)\b", _I
)
POSITIVE_POLARITY = re.compile(r"\b(always|must|should|use|prefer|ensure|require\w*)\b", _I)

RISK_LEVELS: Dict[str, int] = {"info": 0, "low": 1, "medium": 2, "high": 3, "critical": 4}


def infer_intents(text: str) -> List[str]:
    """Intents signalled by ``text``.

    The generic ``feature`` intent is only reported when no specific intent
    matched; ``general`` when nothing matched at all.
    """
    specific = [
        intent for intent, pattern in INTENT_SIGNALS
        if intent != GENERIC_INTENT and pattern.search(text)
    ]
    if specific:
        return specific
    if _pattern_for(GENERIC_INTENT).search(text):
        return [GENERIC_INTENT]
    return [GENERAL]


def infer_domains(text: str) -> List[str]:
    domains = [domain for domain, pattern in DOMAIN_SIGNALS if pattern.search(text)]
    return domains or [GENERAL]


def score_intents(text: str) -> Dict[str, float]:
    """Score every intent signal against ``text``.

    Each match counts one point; a match on the text's first word adds 0.5.
    Intents without any match are omitted. Keys keep table order.
    """
    words = text.strip().split()
    first = words[0] if words else ""
    scores: Dict[str, float] = {}
    for intent, pattern in INTENT_SIGNALS:
        hits = len(pattern.findall(text))
        if not hits:
            continue
        score = float(hits)
        if first and pattern.match(first):
            score += 0.5
        scores[intent] = score
    return scores


def polarity(text: str) -> int:
    """Return -1 for prohibitive wording, 1 for prescriptive wording, else 0."""
    if NEGATIVE_POLARITY.search(text):
        return -1
    if POSITIVE_POLARITY.search(text):
        return 1
    return 0


def is_actionable(text: str) -> bool:
    return any(p.search(text) for p in ACTIONABLE_PATTERNS)


def _pattern_for(intent: str) -> Pattern[str]:
    for name, pattern in INTENT_SIGNALS:
        if name == intent:
            return pattern
    raise KeyError(intent)


__all__ = [
    "VOCABULARY_VERSION",
    "GENERAL",
    "GENERIC_INTENT",
    "INTENT_SIGNALS",
    "DOMAIN_SIGNALS",
    "ACTIONABLE_PATTERNS",
    "CONSTITUTION_HEADING_PATTERN",
    "NEGATIVE_POLARITY",
    "POSITIVE_POLARITY",
    "RISK_LEVELS",
    "infer_intents",
    "infer_domains",
    "score_intents",
    "polarity",
    "is_actionable",
]
