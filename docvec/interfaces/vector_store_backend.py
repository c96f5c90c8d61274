"""Abstract base class for vector-store backends.

A backend only stores and scores vectors.  The
:class:`~docvec.services.vector_store.VectorStore` service in front of it
owns the collection registry, dimension validation, ``top_k`` clamping and
the running ``vector_count``.  Callers must not be able to tell backends
apart except by latency and persistence, so every implementation honours
the same rules:

* Scores are "higher is better" for every metric (euclidean and manhattan
  return negated distances).
* Results are ordered by non-increasing score; ties keep insertion order.
* ``insert`` is an upsert keyed by vector id and returns the number of ids
  that were newly added.
* ``delete`` ignores unknown ids and returns the number actually removed.
* An unknown collection raises
  :class:`~docvec.utils.errors.CollectionNotFoundError`; a vector of the
  wrong length raises :class:`~docvec.utils.errors.DimensionMismatchError`
  before anything is written.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from docvec.models.vector import Collection, SearchResult, Vector


# Concrete implementations (docvec/providers/vector_store/):
#   MemoryVectorBackend    - exact search over in-process arrays; the correctness oracle
#   SQLiteVectorBackend    - transactional store via aiosqlite, exact numpy scoring
#   ChromaDBVectorBackend  - external HNSW index service
class IVectorStoreBackend(ABC):
    """Contract for vector storage and similarity search."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create schemas or connect.  Safe to call more than once."""

    @abstractmethod
    async def save_collection(self, collection: Collection) -> None:
        """Create or update the stored record for *collection*."""

    @abstractmethod
    async def load_collections(self) -> list[Collection]:
        """Return every collection the backend knows about, oldest first."""

    @abstractmethod
    async def delete_collection(self, collection_id: str) -> None:
        """Remove a collection and all of its vectors."""

    @abstractmethod
    async def insert(self, collection: Collection, vectors: list[Vector]) -> int:
        """Upsert *vectors* as one batch.

        The batch is all-or-nothing: a dimension mismatch or storage error
        leaves the collection unchanged.

        Returns
        -------
        int
            How many of the ids were not previously stored.
        """

    @abstractmethod
    async def search(
        self,
        collection: Collection,
        query: list[float],
        top_k: int,
        metadata_filter: dict[str, Any] | None = None,
        namespace: str | None = None,
        include_values: bool = False,
    ) -> list[SearchResult]:
        """Return up to *top_k* best-scoring vectors, best first."""

    @abstractmethod
    async def delete(self, collection: Collection, ids: list[str]) -> int:
        """Remove vectors by id; returns how many existed."""

    @abstractmethod
    async def count(self, collection: Collection) -> int:
        """Number of vectors actually stored in *collection*."""

    @abstractmethod
    async def reindex(self, collection: Collection) -> None:
        """Rebuild internal structures without changing observable behaviour."""

    @abstractmethod
    def get_backend_name(self) -> str:
        """Return a short identifier such as ``"memory"`` or ``"sqlite"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the backend can serve requests."""

    async def close(self) -> None:
        """Release connections.  Backends without resources need not override."""
        return None
