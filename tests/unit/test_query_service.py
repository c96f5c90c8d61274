"""Unit tests for QueryService."""

from __future__ import annotations

import pytest

from docvec.models.vector import Vector
from docvec.services.embedding_generator import EmbeddingGenerator
from docvec.services.query_service import QueryService
from docvec.services.vector_store import VectorStore
from docvec.utils.errors import (
    CollectionNotFoundError,
    ConfigurationError,
    DimensionMismatchError,
    InputTooLongError,
)
from tests.conftest import TEST_DIMENSION, build_generator, make_words


@pytest.fixture
async def populated(embedding_generator: EmbeddingGenerator, memory_store: VectorStore):
    collection = await memory_store.create_collection("kb", TEST_DIMENSION)
    texts = {
        "c0": "vector databases store embeddings for similarity search",
        "c1": "bread needs flour water salt and time",
        "c2": "similarity search ranks embeddings by cosine score",
    }
    embeddings = await embedding_generator.embed_batch(list(texts.values()))
    await memory_store.insert(
        collection.id,
        [
            Vector(id=vid, values=e.vector, metadata={"text": text, "topic": "food" if vid == "c1" else "search"})
            for (vid, text), e in zip(texts.items(), embeddings)
        ],
    )
    return QueryService(embedding_generator, memory_store), collection


class TestQueryService:
    @pytest.mark.asyncio
    async def test_text_query(self, populated) -> None:
        service, collection = populated
        response = await service.search(collection.id, text="similarity search over embeddings", top_k=3)

        assert response.collection_id == collection.id
        assert len(response.results) == 3
        assert {r.id for r in response.results} == {"c0", "c1", "c2"}
        scores = [r.score for r in response.results]
        assert scores == sorted(scores, reverse=True)
        assert response.embedding_info is not None
        assert response.embedding_info.dimension == TEST_DIMENSION

    @pytest.mark.asyncio
    async def test_vector_query(self, populated, embedding_generator: EmbeddingGenerator) -> None:
        service, collection = populated
        query = await embedding_generator.embed("bread needs flour water salt and time")

        response = await service.search(collection.id, vector=query.vector, top_k=1)

        assert response.embedding_info is None
        assert response.results[0].id == "c1"
        assert response.results[0].score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_filter(self, populated) -> None:
        service, collection = populated
        response = await service.search(
            collection.id, text="anything", top_k=5, metadata_filter={"topic": "search"}
        )
        assert {r.id for r in response.results} == {"c0", "c2"}

    @pytest.mark.parametrize("kwargs", [{}, {"text": "x", "vector": [0.0] * TEST_DIMENSION}])
    @pytest.mark.asyncio
    async def test_exactly_one_input(self, populated, kwargs: dict) -> None:
        service, collection = populated
        with pytest.raises(ConfigurationError):
            await service.search(collection.id, **kwargs)

    @pytest.mark.asyncio
    async def test_long_query_is_rejected_by_default(self, memory_store: VectorStore) -> None:
        generator = build_generator(None, max_tokens=10)
        collection = await memory_store.create_collection("short", TEST_DIMENSION)
        with pytest.raises(InputTooLongError):
            await QueryService(generator, memory_store).search(collection.id, text=make_words(100))

    @pytest.mark.asyncio
    async def test_long_query_truncated_on_request(self, memory_store: VectorStore) -> None:
        generator = build_generator(None, max_tokens=10)
        collection = await memory_store.create_collection("short", TEST_DIMENSION)
        response = await QueryService(generator, memory_store).search(
            collection.id, text=make_words(100), truncate=True
        )
        assert response.embedding_info is not None
        assert response.embedding_info.truncated is True

    @pytest.mark.asyncio
    async def test_unknown_collection(self, populated) -> None:
        service, _ = populated
        with pytest.raises(CollectionNotFoundError):
            await service.search("missing", text="query")

    @pytest.mark.asyncio
    async def test_vector_dimension_mismatch(self, populated) -> None:
        service, collection = populated
        with pytest.raises(DimensionMismatchError):
            await service.search(collection.id, vector=[1.0, 0.0])
