"""Collection registry and backend dispatch for vector storage.

The service owns everything that must behave identically across
backends:

- collection lifecycle (create, list, stats, delete, reindex)
- dimension validation, all-or-nothing per insert batch
- ``top_k`` clamping to the collection's vector count
- the running ``vector_count``, updated under a per-collection lock from
  the counts the backend reports, and re-read from the backend when a
  mutation fails part-way
- per-call timeouts on backend operations

The backend is picked once at construction; no operation branches on
backend type.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, TypeVar

import structlog

from docvec.interfaces.vector_store_backend import IVectorStoreBackend
from docvec.models.vector import Collection, CollectionStats, DistanceMetric, SearchResult, Vector
from docvec.utils.errors import (
    CollectionNotFoundError,
    ConfigurationError,
    DocVecError,
    VectorStoreError,
)
from docvec.utils.filters import validate_filter
from docvec.utils.similarity import validate_dimensions

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")

# float32 storage per component.
_BYTES_PER_COMPONENT = 4


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VectorStore:
    """Front door for collections and vectors.

    Parameters
    ----------
    backend:
        The storage implementation.
    timeout_seconds:
        Upper bound for each backend call; ``None`` disables it.
    """

    def __init__(self, backend: IVectorStoreBackend, timeout_seconds: float | None = 30.0) -> None:
        self._backend = backend
        self._timeout = timeout_seconds
        self._collections: dict[str, Collection] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def backend_name(self) -> str:
        return self._backend.get_backend_name()

    async def _call(self, operation: str, awaitable: Awaitable[_T]) -> _T:
        try:
            if self._timeout is None:
                return await awaitable
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise VectorStoreError(
                message=f"{operation} timed out after {self._timeout}s",
                provider_name=self.backend_name,
            ) from exc

    def _lock(self, collection_id: str) -> asyncio.Lock:
        lock = self._locks.get(collection_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[collection_id] = lock
        return lock

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Prepare the backend and load its collections, resyncing counts."""
        await self._call("initialize", self._backend.initialize())
        for collection in await self._call("load_collections", self._backend.load_collections()):
            actual = await self._call("count", self._backend.count(collection))
            if actual != collection.vector_count:
                logger.warning(
                    "collection_count_resynced",
                    collection_id=collection.id,
                    recorded=collection.vector_count,
                    actual=actual,
                )
                collection = collection.model_copy(update={"vector_count": actual})
                await self._call("save_collection", self._backend.save_collection(collection))
            self._collections[collection.id] = collection
        logger.info(
            "vector_store_initialized",
            backend=self.backend_name,
            collections=len(self._collections),
        )

    async def create_collection(
        self,
        name: str,
        dimension: int,
        metric: DistanceMetric | str = DistanceMetric.COSINE,
        metadata: dict[str, Any] | None = None,
    ) -> Collection:
        """Create an empty collection.

        Raises
        ------
        docvec.utils.errors.ConfigurationError
            For an empty or duplicate name, a non-positive dimension, or a
            metric the backend cannot serve.
        """
        if not name or not name.strip():
            raise ConfigurationError(message="Collection name must not be empty")
        if not isinstance(dimension, int) or dimension <= 0:
            raise ConfigurationError(message=f"Collection dimension must be a positive integer, got {dimension!r}")
        if self.find_by_name(name) is not None:
            raise ConfigurationError(message=f"Collection named {name!r} already exists")

        now = _utcnow()
        collection = Collection(
            id=str(uuid.uuid4()),
            name=name.strip(),
            dimension=dimension,
            metric=DistanceMetric.parse(metric),
            metadata=dict(metadata or {}),
            created_at=now,
            updated_at=now,
        )
        await self._call("save_collection", self._backend.save_collection(collection))
        self._collections[collection.id] = collection
        logger.info(
            "collection_created",
            collection_id=collection.id,
            name=collection.name,
            dimension=dimension,
            metric=collection.metric.value,
            backend=self.backend_name,
        )
        return collection

    def get_collection(self, collection_id: str) -> Collection:
        try:
            return self._collections[collection_id]
        except KeyError:
            raise CollectionNotFoundError(
                message=f"Collection {collection_id!r} does not exist",
                provider_name=self.backend_name,
                collection_id=collection_id,
            ) from None

    def find_by_name(self, name: str) -> Collection | None:
        for collection in self._collections.values():
            if collection.name == name.strip():
                return collection
        return None

    def resolve(self, reference: str) -> Collection:
        """Look a collection up by id, falling back to its name."""
        if reference in self._collections:
            return self._collections[reference]
        by_name = self.find_by_name(reference)
        if by_name is None:
            raise CollectionNotFoundError(
                message=f"No collection with id or name {reference!r}",
                provider_name=self.backend_name,
                collection_id=reference,
            )
        return by_name

    def list_collections(self) -> list[Collection]:
        return sorted(self._collections.values(), key=lambda c: c.created_at)

    async def delete_collection(self, collection_id: str) -> None:
        """Delete a collection and, with it, every vector it holds."""
        collection = self.get_collection(collection_id)
        async with self._lock(collection_id):
            await self._call("delete_collection", self._backend.delete_collection(collection.id))
            self._collections.pop(collection_id, None)
        self._locks.pop(collection_id, None)
        logger.info(
            "collection_deleted",
            collection_id=collection_id,
            name=collection.name,
            vectors_removed=collection.vector_count,
        )

    async def stats(self, collection_id: str) -> CollectionStats:
        collection = self.get_collection(collection_id)
        return CollectionStats(
            collection_id=collection.id,
            name=collection.name,
            count=collection.vector_count,
            dimension=collection.dimension,
            metric=collection.metric,
            estimated_memory=collection.vector_count * collection.dimension * _BYTES_PER_COMPONENT,
        )

    async def reindex(self, collection_id: str) -> None:
        """Let the backend rebuild internal structures; results do not change."""
        collection = self.get_collection(collection_id)
        async with self._lock(collection_id):
            await self._call("reindex", self._backend.reindex(collection))
        logger.info("collection_reindexed", collection_id=collection_id, backend=self.backend_name)

    # ------------------------------------------------------------------
    # Vectors
    # ------------------------------------------------------------------

    async def _resync_count(self, collection: Collection) -> None:
        actual = await self._call("count", self._backend.count(collection))
        await self._set_count(collection, actual)

    async def _set_count(self, collection: Collection, count: int) -> None:
        updated = collection.model_copy(update={"vector_count": count, "updated_at": _utcnow()})
        self._collections[collection.id] = updated
        await self._call("save_collection", self._backend.save_collection(updated))

    async def insert(self, collection_id: str, vectors: list[Vector]) -> int:
        """Store *vectors* (upsert by id) and return how many were new.

        Raises
        ------
        docvec.utils.errors.CollectionNotFoundError
        docvec.utils.errors.DimensionMismatchError
            If any vector has the wrong length; nothing is stored then.
        """
        collection = self.get_collection(collection_id)
        validate_dimensions(collection.dimension, [v.values for v in vectors])
        if not vectors:
            return 0

        async with self._lock(collection_id):
            collection = self.get_collection(collection_id)
            try:
                added = await self._call("insert", self._backend.insert(collection, vectors))
            except DocVecError:
                await self._resync_count(collection)
                raise
            await self._set_count(collection, collection.vector_count + added)

        logger.debug(
            "vectors_inserted",
            collection_id=collection_id,
            submitted=len(vectors),
            added=added,
        )
        return added

    async def search(
        self,
        collection_id: str,
        query_vector: list[float],
        top_k: int = 10,
        metadata_filter: dict[str, Any] | None = None,
        namespace: str | None = None,
        include_values: bool = False,
    ) -> list[SearchResult]:
        """Return the best matches for *query_vector*, best first.

        ``top_k`` is clamped to the number of stored vectors; asking for
        more than exist returns all of them.

        Raises
        ------
        docvec.utils.errors.CollectionNotFoundError
        docvec.utils.errors.DimensionMismatchError
        """
        collection = self.get_collection(collection_id)
        validate_dimensions(collection.dimension, [query_vector])
        validate_filter(metadata_filter)

        effective_k = min(max(top_k, 0), collection.vector_count)
        if effective_k == 0:
            return []
        return await self._call(
            "search",
            self._backend.search(
                collection,
                list(query_vector),
                effective_k,
                metadata_filter=metadata_filter,
                namespace=namespace,
                include_values=include_values,
            ),
        )

    async def delete(self, collection_id: str, vector_ids: list[str]) -> int:
        """Remove vectors by id.  Unknown ids are ignored; returns how many were removed."""
        collection = self.get_collection(collection_id)
        if not vector_ids:
            return 0

        async with self._lock(collection_id):
            collection = self.get_collection(collection_id)
            try:
                removed = await self._call("delete", self._backend.delete(collection, vector_ids))
            except DocVecError:
                await self._resync_count(collection)
                raise
            if removed:
                await self._set_count(collection, max(0, collection.vector_count - removed))

        logger.debug(
            "vectors_deleted",
            collection_id=collection_id,
            requested=len(vector_ids),
            removed=removed,
        )
        return removed

    async def close(self) -> None:
        await self._backend.close()
