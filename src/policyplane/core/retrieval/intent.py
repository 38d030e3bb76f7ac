"""Task intent classification over the shared vocabulary tables."""
from __future__ import annotations

from dataclasses import dataclass

from policyplane.core.taxonomy import GENERAL, GENERIC_INTENT, score_intents


@dataclass(frozen=True)
class IntentClassification:
    intent: str
    confidence: float


def classify_intent(text: str) -> IntentClassification:
    """Pick the best-scoring intent for ``text``.

    Specific intents beat the generic ``feature`` intent; ties resolve in
    vocabulary table order. Confidence is the winner's share of all points.
    """
    scores = score_intents(text if isinstance(text, str) else "")
    if not scores:
        return IntentClassification(intent=GENERAL, confidence=0.0)

    specific = {k: v for k, v in scores.items() if k != GENERIC_INTENT}
    pool = specific or scores
    best = max(pool.items(), key=lambda kv: kv[1])[0]
    return IntentClassification(intent=best, confidence=pool[best] / sum(scores.values()))


__all__ = ["IntentClassification", "classify_intent"]
