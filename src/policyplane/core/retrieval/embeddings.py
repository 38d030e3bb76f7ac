"""Deterministic text embeddings behind a swappable provider interface.

The default :class:`HashEmbeddingProvider` is a fixed-width hashed
bag-of-terms projection: cheap, dependency-free and stable across processes.
Any other provider (for example one backed by a network service) is wrapped
in :class:`BoundedEmbeddingProvider` so a slow or failing backend can never
stall retrieval.
"""
from __future__ import annotations

import logging
import math
import re
import threading
import zlib
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from typing import List, Optional, Protocol, Sequence, Set, Tuple

logger = logging.getLogger(__name__)

_WORD = re.compile(r"[a-z0-9]+")

STOPWORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "in", "into", "is", "it",
    "its", "of", "on", "or", "that", "the", "this", "to", "with", "all", "any", "don", "doesn",
    "isn", "not", "we", "you", "your", "our", "do", "does",
})


def raw_tokens(text: str) -> List[str]:
    """Lowercased alphanumeric words of two or more characters."""
    return [w for w in _WORD.findall(text.lower()) if len(w) >= 2]


def normalize_token(token: str) -> str:
    """Crude suffix folding so ``tests``/``testing``/``test`` share a term."""
    if len(token) > 5 and token.endswith("ing"):
        return token[:-3]
    if len(token) > 4 and token.endswith("ed"):
        return token[:-2]
    if len(token) > 3 and token.endswith("s") and not token.endswith("ss"):
        return token[:-1]
    return token


def tokenize(text: str) -> List[str]:
    return [normalize_token(t) for t in raw_tokens(text) if t not in STOPWORDS]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity; 0.0 for empty, zero or mismatched-width vectors."""
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


class EmbeddingProvider(Protocol):
    """Anything that turns text into a fixed-width vector."""

    def embed(self, text: str) -> List[float]:
        ...


class HashEmbeddingProvider:
    """Hashed bag-of-terms projection into ``dimensions`` buckets (L2-normalized)."""

    def __init__(self, dimensions: int = 128) -> None:
        if dimensions <= 0:
            raise ValueError(f"dimensions must be positive, got {dimensions}")
        self.dimensions = dimensions

    def embed(self, text: str) -> List[float]:
        vector = [0.0] * self.dimensions
        for token in tokenize(text):
            digest = zlib.crc32(token.encode("utf-8"))
            sign = 1.0 if (digest >> 31) & 1 == 0 else -1.0
            vector[digest % self.dimensions] += sign
        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0.0:
            return vector
        return [v / norm for v in vector]


class BoundedEmbeddingProvider:
    """Enforce a wall-clock budget on ``inner``; use ``fallback`` on timeout or error.

    Each call to ``inner`` runs on a daemon worker thread, so a hung backend
    never holds up interpreter exit. At most ``max_in_flight`` calls may be
    outstanding; beyond that, and after :meth:`close`, every call goes
    straight to ``fallback``.
    """

    def __init__(
        self,
        inner: EmbeddingProvider,
        *,
        timeout_seconds: float,
        fallback: EmbeddingProvider,
        max_in_flight: int = 4,
    ) -> None:
        self.inner = inner
        self.timeout_seconds = timeout_seconds
        self.fallback = fallback
        self.max_in_flight = max_in_flight
        self._lock = threading.Lock()
        self._workers: Set[threading.Thread] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def embed(self, text: str) -> List[float]:
        return self.embed_or_fallback(text)[0]

    def embed_or_fallback(self, text: str) -> Tuple[List[float], bool]:
        """Return ``(vector, fell_back)``; ``fell_back`` is True for ``fallback`` vectors."""
        future = self._dispatch(text)
        if future is None:
            return self.fallback.embed(text), True
        try:
            return list(future.result(timeout=self.timeout_seconds)), False
        except FutureTimeout:
            future.cancel()
            logger.warning(
                "Embedding provider %s exceeded %.2fs; using fallback embedding",
                type(self.inner).__name__,
                self.timeout_seconds,
            )
        except Exception as exc:
            logger.warning(
                "Embedding provider %s failed (%s); using fallback embedding",
                type(self.inner).__name__,
                exc,
            )
        return self.fallback.embed(text), True

    def _dispatch(self, text: str) -> Optional[Future]:
        with self._lock:
            if self._closed:
                return None
            self._workers = {w for w in self._workers if w.is_alive()}
            if len(self._workers) >= self.max_in_flight:
                logger.warning(
                    "Embedding provider %s has %d calls still running; using fallback embedding",
                    type(self.inner).__name__,
                    len(self._workers),
                )
                return None
            future: Future = Future()
            worker = threading.Thread(
                target=self._run, args=(future, text), name="policyplane-embed", daemon=True
            )
            self._workers.add(worker)
        worker.start()
        return future

    def _run(self, future: Future, text: str) -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(self.inner.embed(text))
        except Exception as exc:
            future.set_exception(exc)

    def close(self) -> None:
        """Stop dispatching to ``inner``; outstanding calls are abandoned."""
        with self._lock:
            self._closed = True
            abandoned = sum(1 for w in self._workers if w.is_alive())
            self._workers.clear()
        if abandoned:
            logger.debug("Abandoned %d running embedding call(s)", abandoned)

    def __enter__(self) -> "BoundedEmbeddingProvider":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = [
    "STOPWORDS",
    "raw_tokens",
    "normalize_token",
    "tokenize",
    "cosine_similarity",
    "EmbeddingProvider",
    "HashEmbeddingProvider",
    "BoundedEmbeddingProvider",
]
