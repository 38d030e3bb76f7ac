"""Shard retriever: task-scoped rule selection under a shard budget."""
from __future__ import annotations

from .embeddings import (
    BoundedEmbeddingProvider,
    EmbeddingProvider,
    HashEmbeddingProvider,
    cosine_similarity,
)
from .intent import IntentClassification, classify_intent
from .retriever import RetrievalRequest, RetrievalResult, RetrievedShard, ShardRetriever

__all__ = [
    "BoundedEmbeddingProvider",
    "EmbeddingProvider",
    "HashEmbeddingProvider",
    "cosine_similarity",
    "IntentClassification",
    "classify_intent",
    "RetrievalRequest",
    "RetrievalResult",
    "RetrievedShard",
    "ShardRetriever",
]
