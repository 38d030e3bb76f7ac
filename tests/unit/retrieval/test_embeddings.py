"""Tests for hashed embeddings and the bounded provider wrapper."""
from __future__ import annotations

import math
import threading
import time

import pytest

from policyplane.core.retrieval import BoundedEmbeddingProvider, HashEmbeddingProvider, cosine_similarity
from policyplane.core.retrieval.embeddings import normalize_token, tokenize


class _Failing:
    def embed(self, text):
        raise ConnectionError("backend down")


class _Slow:
    def embed(self, text):
        time.sleep(0.5)
        return [1.0, 0.0]


class TestHashEmbeddings:
    def test_vectors_are_stable_and_unit_length(self) -> None:
        provider = HashEmbeddingProvider(32)

        vector = provider.embed("Validate user input")

        assert len(vector) == 32
        assert vector == HashEmbeddingProvider(32).embed("Validate user input")
        assert math.isclose(math.sqrt(sum(v * v for v in vector)), 1.0)

    def test_text_without_terms_embeds_to_zero(self) -> None:
        assert HashEmbeddingProvider(8).embed("a the of") == [0.0] * 8

    def test_dimensions_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            HashEmbeddingProvider(0)

    def test_related_texts_are_closer_than_unrelated(self) -> None:
        provider = HashEmbeddingProvider(128)
        query = provider.embed("run the tests")

        related = cosine_similarity(query, provider.embed("tests must run"))
        unrelated = cosine_similarity(query, provider.embed("rotate deployment credentials"))

        assert related > unrelated


def test_tokenize_folds_suffixes_and_drops_stopwords() -> None:
    assert tokenize("The tests are passing") == ["test", "pass"]
    assert normalize_token("class") == "class"


class TestCosine:
    def test_identical_vectors(self) -> None:
        assert math.isclose(cosine_similarity([1.0, 2.0], [1.0, 2.0]), 1.0)

    def test_degenerate_inputs_score_zero(self) -> None:
        assert cosine_similarity([], [1.0]) == 0.0
        assert cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0]) == 0.0
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0


class TestBoundedProvider:
    def test_error_falls_back(self) -> None:
        fallback = HashEmbeddingProvider(16)
        provider = BoundedEmbeddingProvider(_Failing(), timeout_seconds=1.0, fallback=fallback)

        assert provider.embed("hello world") == fallback.embed("hello world")

    def test_timeout_falls_back(self) -> None:
        fallback = HashEmbeddingProvider(16)
        provider = BoundedEmbeddingProvider(_Slow(), timeout_seconds=0.05, fallback=fallback)

        start = time.perf_counter()
        vector = provider.embed("hello world")

        assert vector == fallback.embed("hello world")
        assert time.perf_counter() - start < 0.4

    def test_worker_threads_do_not_block_exit(self) -> None:
        release = threading.Event()

        class Hung:
            def embed(self, text):
                release.wait(5)
                return [1.0]

        provider = BoundedEmbeddingProvider(Hung(), timeout_seconds=0.05, fallback=HashEmbeddingProvider(4))
        try:
            vector, fell_back = provider.embed_or_fallback("hello")

            assert fell_back
            assert vector == HashEmbeddingProvider(4).embed("hello")
            workers = [t for t in threading.enumerate() if t.name == "policyplane-embed"]
            assert workers
            assert all(t.daemon for t in workers)
        finally:
            release.set()
            provider.close()

    def test_in_flight_cap_skips_primary(self) -> None:
        release = threading.Event()
        calls = []

        class Hung:
            def embed(self, text):
                calls.append(text)
                release.wait(5)
                return [1.0]

        provider = BoundedEmbeddingProvider(
            Hung(), timeout_seconds=0.02, fallback=HashEmbeddingProvider(4), max_in_flight=1
        )
        try:
            provider.embed("first")
            _, fell_back = provider.embed_or_fallback("second")

            assert fell_back
            assert calls == ["first"]
        finally:
            release.set()
            provider.close()

    def test_close_routes_everything_to_fallback(self) -> None:
        calls = []

        class Recording:
            def embed(self, text):
                calls.append(text)
                return [1.0, 0.0]

        with BoundedEmbeddingProvider(Recording(), timeout_seconds=1.0, fallback=HashEmbeddingProvider(4)) as provider:
            assert provider.embed_or_fallback("before") == ([1.0, 0.0], False)

        assert provider.closed
        assert provider.embed_or_fallback("after") == (HashEmbeddingProvider(4).embed("after"), True)
        assert calls == ["before"]
