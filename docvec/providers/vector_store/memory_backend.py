"""In-memory exact-search vector backend.

Scores every stored vector on each query and returns the exact top-k.
This is the reference behaviour the other backends are tested against.
Nothing survives the process.
"""

from __future__ import annotations

from typing import Any

import structlog

from docvec.interfaces.vector_store_backend import IVectorStoreBackend
from docvec.models.vector import Collection, SearchResult, Vector
from docvec.utils.errors import CollectionNotFoundError
from docvec.utils.filters import matches_filter
from docvec.utils.similarity import score_matrix, top_k_indices, validate_dimensions

logger = structlog.get_logger(logger_name=__name__)


class MemoryVectorBackend(IVectorStoreBackend):
    """Dict-backed backend; dicts keep insertion order, which is the tie-break order."""

    def __init__(self) -> None:
        self._collections: dict[str, Collection] = {}
        self._vectors: dict[str, dict[str, Vector]] = {}

    def _require(self, collection_id: str) -> dict[str, Vector]:
        try:
            return self._vectors[collection_id]
        except KeyError:
            raise CollectionNotFoundError(
                message=f"Collection {collection_id!r} does not exist",
                provider_name=self.get_backend_name(),
                collection_id=collection_id,
            ) from None

    async def initialize(self) -> None:
        return None

    async def save_collection(self, collection: Collection) -> None:
        self._collections[collection.id] = collection
        self._vectors.setdefault(collection.id, {})

    async def load_collections(self) -> list[Collection]:
        return list(self._collections.values())

    async def delete_collection(self, collection_id: str) -> None:
        self._require(collection_id)
        del self._vectors[collection_id]
        del self._collections[collection_id]

    async def insert(self, collection: Collection, vectors: list[Vector]) -> int:
        store = self._require(collection.id)
        validate_dimensions(collection.dimension, [v.values for v in vectors])

        added = 0
        for vector in vectors:
            if vector.id not in store:
                added += 1
            # Re-assigning an existing key keeps its original position.
            store[vector.id] = vector
        return added

    async def search(
        self,
        collection: Collection,
        query: list[float],
        top_k: int,
        metadata_filter: dict[str, Any] | None = None,
        namespace: str | None = None,
        include_values: bool = False,
    ) -> list[SearchResult]:
        store = self._require(collection.id)
        validate_dimensions(collection.dimension, [query])

        candidates = [
            v
            for v in store.values()
            if (namespace is None or v.namespace == namespace)
            and matches_filter(v.metadata, metadata_filter)
        ]
        if not candidates:
            return []

        scores = score_matrix(query, [v.values for v in candidates], collection.metric)
        return [
            SearchResult(
                id=candidates[i].id,
                score=float(scores[i]),
                values=list(candidates[i].values) if include_values else None,
                metadata=dict(candidates[i].metadata),
                namespace=candidates[i].namespace,
            )
            for i in top_k_indices(scores, top_k)
        ]

    async def delete(self, collection: Collection, ids: list[str]) -> int:
        store = self._require(collection.id)
        removed = 0
        for vector_id in dict.fromkeys(ids):
            if store.pop(vector_id, None) is not None:
                removed += 1
        return removed

    async def count(self, collection: Collection) -> int:
        return len(self._require(collection.id))

    async def reindex(self, collection: Collection) -> None:
        self._require(collection.id)
        logger.debug("reindex_noop", backend=self.get_backend_name(), collection_id=collection.id)

    def get_backend_name(self) -> str:
        return "memory"

    def is_available(self) -> bool:
        return True
