"""Unit tests for EmbeddingGenerator - length policy, fallback, normalization, cache."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest

from docvec.interfaces.embedding_provider import IEmbeddingProvider
from docvec.providers.embedding.hash_embedding_provider import HashEmbeddingProvider
from docvec.services.embedding_generator import BUILTIN_MODELS, EmbeddingGenerator, EmbeddingModelSpec
from docvec.utils.errors import ConfigurationError, DimensionMismatchError, InputTooLongError
from tests.conftest import TEST_DIMENSION, TEST_MODEL, MockEmbeddingProvider, build_generator, make_words


def _norm(values: list[float]) -> float:
    return float(np.linalg.norm(values))


class TestRegistry:
    def test_builtin_models(self) -> None:
        specs = {spec.name: spec for spec in BUILTIN_MODELS}
        assert specs["text-embedding-3-small"].dimension == 1536
        assert specs["text-embedding-3-large"].dimension == 3072
        assert specs["nomic-embed-text"].provider == "ollama"

    def test_unknown_model(self, embedding_generator: EmbeddingGenerator) -> None:
        with pytest.raises(ConfigurationError, match="Unknown embedding model"):
            embedding_generator.get_model("no-such-model")

    def test_default_model_must_be_registered(self) -> None:
        with pytest.raises(ConfigurationError):
            EmbeddingGenerator(models={}, providers={}, default_model="missing")

    def test_register_model(self, embedding_generator: EmbeddingGenerator) -> None:
        embedding_generator.register_model(EmbeddingModelSpec("extra", "hash", 8, 100))
        assert embedding_generator.dimension("extra") == 8
        assert "extra" in {m.name for m in embedding_generator.list_models()}

    def test_fits(self) -> None:
        generator = build_generator(None, max_tokens=10)
        assert generator.fits(make_words(13)) is True
        assert generator.fits(make_words(14)) is False


class TestEmbed:
    @pytest.mark.asyncio
    async def test_result_is_normalized(
        self, embedding_generator: EmbeddingGenerator, mock_embedding_provider: MockEmbeddingProvider
    ) -> None:
        result = await embedding_generator.embed("vector search")
        assert result.dimension == TEST_DIMENSION
        assert len(result.vector) == TEST_DIMENSION
        assert _norm(result.vector) == pytest.approx(1.0)
        assert result.provider == "mock"
        assert result.model == TEST_MODEL
        assert result.used_fallback is False
        assert result.token_estimate == 2
        assert result.latency_ms >= 0.0
        assert mock_embedding_provider.calls == [["vector search"]]

    @pytest.mark.asyncio
    async def test_input_too_long_rejected_without_provider_call(self) -> None:
        provider = MockEmbeddingProvider()
        generator = build_generator(provider, max_tokens=10)
        with pytest.raises(InputTooLongError) as excinfo:
            await generator.embed(make_words(20))
        assert excinfo.value.token_estimate == 15
        assert excinfo.value.max_tokens == 10
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_truncate_opt_in(self) -> None:
        provider = MockEmbeddingProvider()
        generator = build_generator(provider, max_tokens=10)
        result = await generator.embed(make_words(20), truncate=True)
        assert result.truncated is True
        assert result.token_estimate <= 10
        assert provider.calls == [[make_words(13)]]

    @pytest.mark.asyncio
    async def test_cache_hit_skips_provider(
        self, embedding_generator: EmbeddingGenerator, mock_embedding_provider: MockEmbeddingProvider
    ) -> None:
        first = await embedding_generator.embed("same query")
        second = await embedding_generator.embed("same query")
        assert first == second
        assert len(mock_embedding_provider.calls) == 1


class TestFallback:
    @pytest.mark.asyncio
    async def test_provider_failure_falls_back_deterministically(self) -> None:
        provider = MockEmbeddingProvider()
        provider.fail = True
        generator = build_generator(provider)

        first = await generator.embed("an unreachable provider")
        second = await generator.embed("an unreachable provider")

        assert first.used_fallback is True
        assert first.provider == "hash"
        assert first.vector == second.vector
        assert first.vector == pytest.approx(
            HashEmbeddingProvider(dimension=TEST_DIMENSION).embed_text("an unreachable provider")
        )
        assert _norm(first.vector) == pytest.approx(1.0)
        # Fallback results are not cached; the provider is retried.
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_model_without_provider_uses_fallback(self) -> None:
        result = await build_generator(None).embed("offline")
        assert result.used_fallback is True
        assert len(result.vector) == TEST_DIMENSION

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self) -> None:
        provider = MockEmbeddingProvider()
        provider.delay = 1.0
        generator = build_generator(provider, timeout_seconds=0.05)
        result = await generator.embed("slow service")
        assert result.used_fallback is True

    @pytest.mark.asyncio
    async def test_wrong_vector_count_falls_back(self) -> None:
        provider = MagicMock(spec=IEmbeddingProvider)
        provider.get_provider_name.return_value = "short"
        provider.embed = AsyncMock(return_value=[[1.0] * TEST_DIMENSION])
        generator = build_generator(provider)

        results = await generator.embed_batch(["one", "two"])
        assert all(r.used_fallback for r in results)

    @pytest.mark.asyncio
    async def test_wrong_dimension_raises(self) -> None:
        generator = build_generator(MockEmbeddingProvider(dimension=TEST_DIMENSION // 2))
        with pytest.raises(DimensionMismatchError):
            await generator.embed("text")

    @pytest.mark.asyncio
    async def test_seed_changes_fallback(self) -> None:
        spec = EmbeddingModelSpec(TEST_MODEL, "hash", TEST_DIMENSION, 100)
        a = EmbeddingGenerator({TEST_MODEL: spec}, {}, TEST_MODEL, fallback_seed=1)
        b = EmbeddingGenerator({TEST_MODEL: spec}, {}, TEST_MODEL, fallback_seed=2)
        assert (await a.embed("same text")).vector != (await b.embed("same text")).vector


class TestEmbedBatch:
    @pytest.mark.asyncio
    async def test_batches_and_preserves_order(self) -> None:
        provider = MockEmbeddingProvider()
        generator = build_generator(provider, batch_size=2)
        texts = [f"text number {i}" for i in range(5)]

        results = await generator.embed_batch(texts)

        assert [len(call) for call in provider.calls] == [2, 2, 1]
        singles = [await build_generator(MockEmbeddingProvider()).embed(t) for t in texts]
        assert [r.vector for r in results] == [s.vector for s in singles]

    @pytest.mark.asyncio
    async def test_empty(self, embedding_generator: EmbeddingGenerator) -> None:
        assert await embedding_generator.embed_batch([]) == []

    @pytest.mark.asyncio
    async def test_one_long_text_fails_whole_batch_up_front(self) -> None:
        provider = MockEmbeddingProvider()
        generator = build_generator(provider, max_tokens=10)
        with pytest.raises(InputTooLongError):
            await generator.embed_batch(["short", make_words(50)])
        assert provider.calls == []
