"""Domain-specific configuration for the shard retriever."""
from __future__ import annotations

from functools import cached_property

from ..base import BaseDomainConfig


class RetrieverConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "retriever"

    @cached_property
    def max_shards(self) -> int:
        return int(self.section.get("maxShards", 5))

    @cached_property
    def embedding_dimensions(self) -> int:
        return int(self.section.get("embeddingDimensions", 128))

    @cached_property
    def intent_boost(self) -> float:
        """Score added to shards whose intents include the detected intent."""
        return float(self.section.get("intentBoost", 0.3))

    @cached_property
    def priority_weight(self) -> float:
        """Multiplier applied to rule priority when combining it with similarity."""
        return float(self.section.get("priorityWeight", 0.001))

    @cached_property
    def contradiction_overlap(self) -> float:
        """Minimum term overlap for two opposing shards to count as contradictory."""
        return float(self.section.get("contradictionOverlap", 0.5))

    @cached_property
    def embedding_timeout_seconds(self) -> float:
        return float(self.section.get("embeddingTimeoutSeconds", 2.0))


__all__ = ["RetrieverConfig"]
