"""ChromaDB vector store backend.

Each docvec collection maps to one ChromaDB collection (HNSW index).
Collection records live in a small registry collection so the backend
works the same against a local ``PersistentClient`` and a remote
``HttpClient``.  ChromaDB is synchronous, so every call runs in a worker
thread.

ChromaDB reports distances; they are converted to docvec's
"higher is better" scores:

- cosine: ``1 - distance``
- l2 (squared euclidean): ``-sqrt(distance)``
- ip: ``1 - distance``

Manhattan has no ChromaDB equivalent and is rejected at creation.
"""

from __future__ import annotations

import asyncio
import json
import math
import os
import time
from typing import Any, Callable, TypeVar

# Telemetry off before chromadb is imported; some versions only read the env var.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from docvec.interfaces.vector_store_backend import IVectorStoreBackend
from docvec.models.vector import Collection, DistanceMetric, SearchResult, Vector
from docvec.utils.errors import (
    CollectionNotFoundError,
    ConfigurationError,
    DocVecError,
    VectorStoreError,
)
from docvec.utils.filters import matches_filter
from docvec.utils.similarity import validate_dimensions

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")

_REGISTRY_NAME = "docvec-registry"
_COLLECTION_PREFIX = "docvec-"

_SPACES: dict[DistanceMetric, str] = {
    DistanceMetric.COSINE: "cosine",
    DistanceMetric.EUCLIDEAN: "l2",
    DistanceMetric.DOT_PRODUCT: "ip",
}

# Reserved metadata keys; the caller's metadata travels as JSON.
_META_KEY = "_docvec_metadata"
_NAMESPACE_KEY = "_docvec_namespace"
_SEQ_KEY = "_docvec_seq"


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Stops ChromaDB from loading its default ONNX model; docvec always supplies vectors."""

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError("docvec supplies pre-computed embeddings")

    def name(self) -> str:
        return "noop_precomputed"


def _to_score(space: str, distance: float) -> float:
    if space == "l2":
        return -math.sqrt(max(distance, 0.0))
    return 1.0 - distance


class ChromaDBVectorBackend(IVectorStoreBackend):
    """Vector backend delegating storage and ANN search to ChromaDB.

    Parameters
    ----------
    persist_directory:
        Local storage path for ``PersistentClient``.  Ignored when *host*
        is given.
    host, port:
        Address of a ChromaDB server; switches to ``HttpClient``.
    client:
        A ready client, mainly for tests (``chromadb.EphemeralClient()``).
    """

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        host: str = "",
        port: int = 8000,
        client: Any | None = None,
    ) -> None:
        self._persist_directory = persist_directory
        self._host = host
        self._port = port
        self._client = client
        self._registry: Any | None = None
        self._handles: dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    async def _run(self, action: str, fn: Callable[..., _T], *args: Any, **kwargs: Any) -> _T:
        """Run a blocking ChromaDB call in a thread, translating its errors."""
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except DocVecError:
            raise
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB {action} failed: {exc}",
                provider_name=self.get_backend_name(),
            ) from exc

    def _connect(self) -> None:
        if self._client is None:
            settings = chromadb.config.Settings(anonymized_telemetry=False)
            if self._host:
                self._client = chromadb.HttpClient(host=self._host, port=self._port, settings=settings)
            else:
                self._client = chromadb.PersistentClient(path=self._persist_directory, settings=settings)
        self._registry = self._get_or_create(_REGISTRY_NAME, None)

    def _get_or_create(self, name: str, metadata: dict[str, Any] | None) -> Any:
        # Collections created by other ChromaDB versions may carry a different
        # persisted embedding function; opening without one is accepted then.
        try:
            return self._client.get_or_create_collection(
                name=name, metadata=metadata, embedding_function=_NoopEmbeddingFunction()
            )
        except ValueError:
            return self._client.get_or_create_collection(name=name, metadata=metadata)

    def _open(self, collection: Collection) -> Any:
        handle = self._handles.get(collection.id)
        if handle is not None:
            return handle
        name = f"{_COLLECTION_PREFIX}{collection.id}"
        metadata = {"hnsw:space": _SPACES[collection.metric]}
        handle = self._get_or_create(name, metadata)
        self._handles[collection.id] = handle
        return handle

    def _registered(self, collection_id: str) -> bool:
        found = self._registry.get(ids=[collection_id], include=[])
        return bool(found["ids"])

    def _require(self, collection: Collection) -> Any:
        if not self._registered(collection.id):
            raise CollectionNotFoundError(
                message=f"Collection {collection.id!r} does not exist",
                provider_name=self.get_backend_name(),
                collection_id=collection.id,
            )
        return self._open(collection)

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        await self._run("connect", self._connect)
        logger.info(
            "chromadb_backend_initialized",
            mode="http" if self._host else "persistent",
            target=f"{self._host}:{self._port}" if self._host else self._persist_directory,
        )

    def _save_collection_sync(self, collection: Collection) -> None:
        self._open(collection)
        self._registry.upsert(
            ids=[collection.id],
            embeddings=[[1.0]],
            documents=[collection.model_dump_json()],
            metadatas=[{"name": collection.name}],
        )

    async def save_collection(self, collection: Collection) -> None:
        if collection.metric not in _SPACES:
            raise ConfigurationError(
                message=f"ChromaDB does not support the {collection.metric.value} metric",
                provider_name=self.get_backend_name(),
            )
        await self._run("save_collection", self._save_collection_sync, collection)

    def _load_collections_sync(self) -> list[Collection]:
        records = self._registry.get(include=["documents"])
        collections = [Collection.model_validate_json(doc) for doc in records["documents"] or []]
        return sorted(collections, key=lambda c: c.created_at)

    async def load_collections(self) -> list[Collection]:
        return await self._run("load_collections", self._load_collections_sync)

    def _delete_collection_sync(self, collection_id: str) -> None:
        if not self._registered(collection_id):
            raise CollectionNotFoundError(
                message=f"Collection {collection_id!r} does not exist",
                provider_name=self.get_backend_name(),
                collection_id=collection_id,
            )
        self._handles.pop(collection_id, None)
        self._client.delete_collection(name=f"{_COLLECTION_PREFIX}{collection_id}")
        self._registry.delete(ids=[collection_id])

    async def delete_collection(self, collection_id: str) -> None:
        await self._run("delete_collection", self._delete_collection_sync, collection_id)

    # ------------------------------------------------------------------
    # Vectors
    # ------------------------------------------------------------------

    def _insert_sync(self, collection: Collection, vectors: list[Vector]) -> int:
        handle = self._require(collection)
        # Last write wins for ids repeated inside one batch.
        by_id = {v.id: v for v in vectors}
        ids = list(by_id)
        existing = handle.get(ids=ids, include=["metadatas"])
        known_seq = {
            vid: meta.get(_SEQ_KEY)
            for vid, meta in zip(existing["ids"], existing["metadatas"] or [])
            if meta
        }

        base_seq = time.time_ns()
        metadatas: list[dict[str, Any]] = []
        for offset, vid in enumerate(ids):
            meta: dict[str, Any] = {
                _META_KEY: json.dumps(by_id[vid].metadata),
                _SEQ_KEY: known_seq.get(vid) or base_seq + offset,
            }
            if by_id[vid].namespace is not None:
                meta[_NAMESPACE_KEY] = by_id[vid].namespace
            metadatas.append(meta)

        handle.upsert(
            ids=ids,
            embeddings=[list(by_id[vid].values) for vid in ids],
            metadatas=metadatas,
        )
        return len(ids) - len(existing["ids"])

    async def insert(self, collection: Collection, vectors: list[Vector]) -> int:
        validate_dimensions(collection.dimension, [v.values for v in vectors])
        if not vectors:
            return 0
        return await self._run("insert", self._insert_sync, collection, vectors)

    def _search_sync(
        self,
        collection: Collection,
        query: list[float],
        top_k: int,
        metadata_filter: dict[str, Any] | None,
        namespace: str | None,
        include_values: bool,
    ) -> list[SearchResult]:
        handle = self._require(collection)
        total = handle.count()
        if total == 0 or top_k <= 0:
            return []

        # Metadata filters run client-side, so filtered queries fetch every candidate.
        n_results = total if metadata_filter else min(top_k, total)
        include = ["metadatas", "distances"]
        if include_values:
            include.append("embeddings")
        kwargs: dict[str, Any] = {
            "query_embeddings": [list(query)],
            "n_results": n_results,
            "include": include,
        }
        if namespace is not None:
            kwargs["where"] = {_NAMESPACE_KEY: namespace}
        raw = handle.query(**kwargs)

        space = _SPACES[collection.metric]
        ids = raw["ids"][0]
        metadatas = raw["metadatas"][0]
        distances = raw["distances"][0]
        embeddings = raw["embeddings"][0] if include_values and raw.get("embeddings") is not None else None

        hits: list[tuple[float, int, SearchResult]] = []
        for i, vid in enumerate(ids):
            meta = metadatas[i] or {}
            user_meta = json.loads(meta.get(_META_KEY, "{}"))
            if not matches_filter(user_meta, metadata_filter):
                continue
            score = _to_score(space, float(distances[i]))
            hits.append(
                (
                    score,
                    int(meta.get(_SEQ_KEY, 0)),
                    SearchResult(
                        id=vid,
                        score=score,
                        values=[float(x) for x in embeddings[i]] if embeddings is not None else None,
                        metadata=user_meta,
                        namespace=meta.get(_NAMESPACE_KEY),
                    ),
                )
            )
        hits.sort(key=lambda h: (-h[0], h[1]))
        return [h[2] for h in hits[:top_k]]

    async def search(
        self,
        collection: Collection,
        query: list[float],
        top_k: int,
        metadata_filter: dict[str, Any] | None = None,
        namespace: str | None = None,
        include_values: bool = False,
    ) -> list[SearchResult]:
        validate_dimensions(collection.dimension, [query])
        return await self._run(
            "search",
            self._search_sync,
            collection,
            query,
            top_k,
            metadata_filter,
            namespace,
            include_values,
        )

    def _delete_sync(self, collection: Collection, ids: list[str]) -> int:
        handle = self._require(collection)
        unique_ids = list(dict.fromkeys(ids))
        if not unique_ids:
            return 0
        existing = handle.get(ids=unique_ids, include=[])["ids"]
        if existing:
            handle.delete(ids=existing)
        return len(existing)

    async def delete(self, collection: Collection, ids: list[str]) -> int:
        return await self._run("delete", self._delete_sync, collection, ids)

    async def count(self, collection: Collection) -> int:
        handle = await self._run("count", self._require, collection)
        return await self._run("count", handle.count)

    async def reindex(self, collection: Collection) -> None:
        """ChromaDB maintains its HNSW index itself; only existence is checked."""
        await self._run("reindex", self._require, collection)

    def get_backend_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        if self._client is None:
            return False
        try:
            self._client.heartbeat()
            return True
        except Exception:  # noqa: BLE001
            return False

    async def close(self) -> None:
        self._handles.clear()
