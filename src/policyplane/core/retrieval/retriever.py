"""Shard retriever: constitution + a ranked, budgeted subset of shards per task."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Set, Tuple

from policyplane.core.config import RetrieverConfig
from policyplane.core.exceptions import StateError, ValidationError
from policyplane.core.rules.models import Constitution, PolicyBundle, RiskClass, RuleShard
from policyplane.core.taxonomy import NEGATIVE_POLARITY, POSITIVE_POLARITY, polarity
from policyplane.core.utils.patterns import matches_any_pattern
from policyplane.core.utils.time import elapsed_ms

from .embeddings import (
    STOPWORDS,
    BoundedEmbeddingProvider,
    EmbeddingProvider,
    HashEmbeddingProvider,
    cosine_similarity,
    normalize_token,
    raw_tokens,
)
from .intent import IntentClassification, classify_intent

logger = logging.getLogger(__name__)

TASK_RULES_HEADER = "## Task-Specific Rules"


@dataclass
class RetrievalRequest:
    """What to retrieve for one task.

    Attributes:
        task_description: Free-text task description
        intent: Intent override; any string is accepted as a literal category
        risk_filter: Only shards with one of these risk classes are eligible
        repo_scope: Path or glob the task touches; shards must cover it
        max_shards: Shard budget (retriever default when None)
    """

    task_description: str
    intent: Optional[str] = None
    risk_filter: Optional[List[RiskClass]] = None
    repo_scope: Optional[str] = None
    max_shards: Optional[int] = None

    def __post_init__(self) -> None:
        if self.max_shards is not None and self.max_shards < 0:
            raise ValidationError(
                f"max_shards must be >= 0, got {self.max_shards}",
                context={"max_shards": self.max_shards},
            )
        if self.risk_filter is not None:
            try:
                self.risk_filter = [RiskClass(r) for r in self.risk_filter]
            except ValueError as exc:
                raise ValidationError(f"Invalid risk filter: {self.risk_filter!r}") from exc


@dataclass(frozen=True)
class RetrievedShard:
    shard: RuleShard
    similarity: float
    score: float
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shard": self.shard.to_dict(),
            "similarity": round(self.similarity, 6),
            "score": round(self.score, 6),
            "reason": self.reason,
        }


@dataclass
class RetrievalResult:
    constitution: Constitution
    shards: List[RetrievedShard] = field(default_factory=list)
    detected_intent: str = "general"
    contradictions_resolved: int = 0
    policy_text: str = ""
    latency_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "constitution": self.constitution.to_dict(),
            "shards": [s.to_dict() for s in self.shards],
            "detectedIntent": self.detected_intent,
            "contradictionsResolved": self.contradictions_resolved,
            "policyText": self.policy_text,
            "latencyMs": self.latency_ms,
        }


class ShardRetriever:
    """Rank a loaded bundle's shards against task text.

    Score = cosine similarity + ``intent_boost`` (when the detected intent is
    one of the rule's intents) + ``priority * priority_weight``.
    """

    def __init__(
        self,
        config: Optional[RetrieverConfig] = None,
        *,
        embeddings: Optional[EmbeddingProvider] = None,
    ) -> None:
        self.config = config or RetrieverConfig()
        fallback: EmbeddingProvider = HashEmbeddingProvider(self.config.embedding_dimensions)
        self._owns_embeddings = False
        if embeddings is None:
            self.embeddings: EmbeddingProvider = fallback
        elif isinstance(embeddings, HashEmbeddingProvider):
            self.embeddings = embeddings
        elif isinstance(embeddings, BoundedEmbeddingProvider):
            self.embeddings = embeddings
            fallback = embeddings.fallback
        else:
            self.embeddings = BoundedEmbeddingProvider(
                embeddings,
                timeout_seconds=self.config.embedding_timeout_seconds,
                fallback=fallback,
            )
            self._owns_embeddings = True
        self._fallback = fallback
        self._bundle: Optional[PolicyBundle] = None
        self._index: List[RuleShard] = []
        # Parallel to _index: whether the stored embedding came from the fallback,
        # and the shard's fallback-space vector once computed.
        self._fell_back: List[bool] = []
        self._fallback_vectors: List[Optional[List[float]]] = []

    def load_bundle(self, bundle: PolicyBundle) -> None:
        """Index ``bundle`` (embeds every shard); replaces any previous bundle."""
        index: List[RuleShard] = []
        fell_back_flags: List[bool] = []
        for shard in bundle.shards:
            vector, fell_back = self._embed(shard.compact_text)
            index.append(replace(shard, embedding=vector))
            fell_back_flags.append(fell_back)
        self._index = index
        self._fell_back = fell_back_flags
        self._fallback_vectors = [
            shard.embedding if flag else None for shard, flag in zip(index, fell_back_flags)
        ]
        self._bundle = bundle
        logger.debug(
            "Loaded bundle with %d shards (%d on fallback embeddings)",
            len(index),
            sum(fell_back_flags),
        )

    def _embed(self, text: str) -> Tuple[List[float], bool]:
        if isinstance(self.embeddings, BoundedEmbeddingProvider):
            return self.embeddings.embed_or_fallback(text)
        return self.embeddings.embed(text), False

    def close(self) -> None:
        """Release the embedding provider this retriever wrapped itself."""
        if self._owns_embeddings and isinstance(self.embeddings, BoundedEmbeddingProvider):
            self.embeddings.close()

    @property
    def shard_count(self) -> int:
        return len(self._index)

    def get_constitution(self) -> Optional[Constitution]:
        return self._bundle.constitution if self._bundle is not None else None

    def classify_intent(self, text: str) -> IntentClassification:
        return classify_intent(text)

    def retrieve(self, request: RetrievalRequest) -> RetrievalResult:
        """Return the constitution plus at most ``max_shards`` ranked shards.

        Raises:
            StateError: If no bundle has been loaded.
        """
        if self._bundle is None:
            raise StateError("No policy bundle loaded; call load_bundle() first")

        start = time.perf_counter()
        text = request.task_description if isinstance(request.task_description, str) else ""
        intent = request.intent or classify_intent(text).intent
        budget = request.max_shards if request.max_shards is not None else self.config.max_shards

        eligible = [i for i, s in enumerate(self._index) if self._is_eligible(s, request)]
        query, query_fell_back = self._embed(text)
        fallback_query = query if query_fell_back else None
        scored: List[RetrievedShard] = []
        for position in eligible:
            shard = self._index[position]
            if query_fell_back or self._fell_back[position]:
                # Either side on fallback: compare both in the fallback space.
                if fallback_query is None:
                    fallback_query = self._fallback.embed(text)
                similarity = cosine_similarity(fallback_query, self._fallback_vector(position))
            else:
                similarity = cosine_similarity(query, shard.embedding or [])
            scored.append(self._score(shard, similarity, intent))
        ranked = sorted(scored, key=lambda r: (-r.score, -r.shard.rule.priority, r.shard.rule.id))
        kept, resolved = self._resolve_contradictions(ranked)
        selected = kept[:budget]

        constitution = self._bundle.constitution
        result = RetrievalResult(
            constitution=constitution,
            shards=selected,
            detected_intent=intent,
            contradictions_resolved=resolved,
            policy_text=_policy_text(constitution.text, selected),
            latency_ms=elapsed_ms(start),
        )
        logger.debug(
            "Retrieved %d/%d shards for intent %s (%d contradictions resolved, %.2fms)",
            len(selected),
            len(eligible),
            intent,
            resolved,
            result.latency_ms,
        )
        return result

    def _is_eligible(self, shard: RuleShard, request: RetrievalRequest) -> bool:
        rule = shard.rule
        if request.risk_filter is not None and rule.risk_class not in request.risk_filter:
            return False
        scope = request.repo_scope
        if scope:
            if scope in rule.repo_scopes:
                return True
            if matches_any_pattern(scope, rule.repo_scopes):
                return True
            return any(matches_any_pattern(pattern, [scope]) for pattern in rule.repo_scopes)
        return True

    def _fallback_vector(self, position: int) -> List[float]:
        vector = self._fallback_vectors[position]
        if vector is None:
            vector = self._fallback.embed(self._index[position].compact_text)
            self._fallback_vectors[position] = vector
        return vector

    def _score(self, shard: RuleShard, similarity: float, intent: str) -> RetrievedShard:
        score = similarity + shard.rule.priority * self.config.priority_weight
        reasons = [f"similarity {similarity:.2f}"]
        if intent in shard.rule.intents:
            score += self.config.intent_boost
            reasons.insert(0, f"intent match ({intent})")
        reasons.append(f"priority {shard.rule.priority}")
        return RetrievedShard(shard=shard, similarity=similarity, score=score, reason=", ".join(reasons))

    def _resolve_contradictions(self, ranked: List[RetrievedShard]) -> Tuple[List[RetrievedShard], int]:
        """Drop the lower-priority side of each contradicting shard pair.

        Two shards contradict when they share a domain and an intent, carry
        opposite polarity ("always X" vs "never X") and their content terms
        overlap by at least ``contradiction_overlap`` (Jaccard).
        """
        kept: List[RetrievedShard] = []
        resolved = 0
        for candidate in ranked:
            rival_index = next(
                (i for i, k in enumerate(kept) if self._contradicts(candidate.shard, k.shard)),
                None,
            )
            if rival_index is None:
                kept.append(candidate)
                continue
            resolved += 1
            rival = kept[rival_index]
            if candidate.shard.rule.priority > rival.shard.rule.priority:
                kept[rival_index] = candidate
        return kept, resolved

    def _contradicts(self, a: RuleShard, b: RuleShard) -> bool:
        ra, rb = a.rule, b.rule
        if not set(ra.domains) & set(rb.domains):
            return False
        if not set(ra.intents) & set(rb.intents):
            return False
        if polarity(ra.text) * polarity(rb.text) != -1:
            return False
        terms_a, terms_b = _content_terms(ra.text), _content_terms(rb.text)
        union = terms_a | terms_b
        if not union:
            return False
        return len(terms_a & terms_b) / len(union) >= self.config.contradiction_overlap


def _content_terms(text: str) -> Set[str]:
    return {
        normalize_token(t)
        for t in raw_tokens(text)
        if t not in STOPWORDS
        and not NEGATIVE_POLARITY.fullmatch(t)
        and not POSITIVE_POLARITY.fullmatch(t)
    }


def _policy_text(constitution_text: str, shards: List[RetrievedShard]) -> str:
    if not shards:
        return constitution_text
    lines = [TASK_RULES_HEADER, ""]
    lines.extend(f"- {s.shard.compact_text}" for s in shards)
    task_text = "\n".join(lines)
    if not constitution_text:
        return task_text
    return f"{constitution_text}\n\n{task_text}"


__all__ = [
    "RetrievalRequest",
    "RetrievedShard",
    "RetrievalResult",
    "ShardRetriever",
    "TASK_RULES_HEADER",
]
