"""Query path: text or vector in, ranked search results out."""

from __future__ import annotations

from typing import Any

import structlog

from docvec.models.vector import QueryResponse
from docvec.services.embedding_generator import EmbeddingGenerator
from docvec.services.vector_store import VectorStore
from docvec.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


class QueryService:
    """Embeds query text when needed and searches a collection.

    The collection's dimension must match the embedding model's; the
    model defaults to the generator's default model.
    """

    def __init__(self, embedding_generator: EmbeddingGenerator, vector_store: VectorStore) -> None:
        self._generator = embedding_generator
        self._store = vector_store

    async def search(
        self,
        collection_id: str,
        text: str | None = None,
        vector: list[float] | None = None,
        top_k: int = 10,
        metadata_filter: dict[str, Any] | None = None,
        namespace: str | None = None,
        model: str | None = None,
        include_values: bool = False,
        truncate: bool = False,
    ) -> QueryResponse:
        """Search *collection_id* with exactly one of *text* or *vector*.

        Parameters
        ----------
        collection_id:
            Target collection.
        text:
            Natural-language query, embedded with *model*.
        vector:
            A ready query vector; must match the collection dimension.
        top_k:
            Maximum results; clamped to the collection size.
        metadata_filter:
            Optional metadata conditions (see :mod:`docvec.utils.filters`).
        truncate:
            Cut an over-long *text* to the model limit instead of raising
            :class:`InputTooLongError`.

        Raises
        ------
        docvec.utils.errors.ConfigurationError
            If both or neither of *text* and *vector* are given.
        docvec.utils.errors.InputTooLongError
            If *text* exceeds the model limit and *truncate* is False.
        docvec.utils.errors.CollectionNotFoundError
        docvec.utils.errors.DimensionMismatchError
        """
        if (text is None) == (vector is None):
            raise ConfigurationError(message="Provide exactly one of text or vector")

        embedding_info = None
        if text is not None:
            self._store.get_collection(collection_id)
            embedding_info = await self._generator.embed(text, model=model, truncate=truncate)
            vector = embedding_info.vector

        results = await self._store.search(
            collection_id,
            vector,
            top_k=top_k,
            metadata_filter=metadata_filter,
            namespace=namespace,
            include_values=include_values,
        )
        logger.info(
            "query_completed",
            collection_id=collection_id,
            mode="text" if text is not None else "vector",
            results=len(results),
            used_fallback=embedding_info.used_fallback if embedding_info else None,
        )
        return QueryResponse(collection_id=collection_id, results=results, embedding_info=embedding_info)
