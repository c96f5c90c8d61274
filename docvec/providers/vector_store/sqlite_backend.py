"""SQLite-backed vector store.

Persists collections and vectors to a local SQLite database with
``aiosqlite``.  Vectors are stored as JSON arrays and scored exactly with
numpy at query time, so results match the in-memory backend while
surviving restarts.  Each insert batch is one transaction.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from docvec.interfaces.vector_store_backend import IVectorStoreBackend
from docvec.models.vector import Collection, DistanceMetric, SearchResult, Vector
from docvec.utils.errors import CollectionNotFoundError, VectorStoreError
from docvec.utils.filters import matches_filter
from docvec.utils.similarity import score_matrix, top_k_indices, validate_dimensions

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/vectors.db")

# SQLite's default bound-parameter ceiling is 999 on older builds.
_IN_CLAUSE_BATCH = 500

_CREATE_COLLECTIONS_SQL = """\
CREATE TABLE IF NOT EXISTS vector_collections (
    id            TEXT    PRIMARY KEY,
    name          TEXT    NOT NULL UNIQUE,
    dimension     INTEGER NOT NULL,
    metric        TEXT    NOT NULL,
    metadata      TEXT    NOT NULL DEFAULT '{}',
    vector_count  INTEGER NOT NULL DEFAULT 0,
    created_at    TEXT    NOT NULL,
    updated_at    TEXT    NOT NULL
);
"""

# seq records first-insertion order and is the search tie-break.
_CREATE_VECTORS_SQL = """\
CREATE TABLE IF NOT EXISTS vector_index (
    seq                 INTEGER PRIMARY KEY AUTOINCREMENT,
    id                  TEXT    NOT NULL,
    collection_id       TEXT    NOT NULL,
    vector              TEXT    NOT NULL,
    metadata            TEXT    NOT NULL DEFAULT '{}',
    namespace           TEXT,
    document_reference  TEXT,
    created_at          TEXT    NOT NULL,
    UNIQUE(collection_id, id)
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_vector_index_collection ON vector_index(collection_id, seq);",
    "CREATE INDEX IF NOT EXISTS idx_vector_index_document ON vector_index(document_reference);",
]

_UPSERT_COLLECTION_SQL = """\
INSERT INTO vector_collections (id, name, dimension, metric, metadata, vector_count, created_at, updated_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(id)
DO UPDATE SET name         = excluded.name,
              metadata     = excluded.metadata,
              vector_count = excluded.vector_count,
              updated_at   = excluded.updated_at;
"""

_UPSERT_VECTOR_SQL = """\
INSERT INTO vector_index (id, collection_id, vector, metadata, namespace, document_reference, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(collection_id, id)
DO UPDATE SET vector             = excluded.vector,
              metadata           = excluded.metadata,
              namespace          = excluded.namespace,
              document_reference = excluded.document_reference;
"""


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteVectorBackend(IVectorStoreBackend):
    """Transactional vector storage with exact numpy search."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    def _error(self, action: str, exc: Exception) -> VectorStoreError:
        return VectorStoreError(
            message=f"SQLite {action} failed: {exc}",
            provider_name=self.get_backend_name(),
        )

    async def _require(self, db: aiosqlite.Connection, collection_id: str) -> None:
        cursor = await db.execute(
            "SELECT 1 FROM vector_collections WHERE id = ?", (collection_id,)
        )
        if await cursor.fetchone() is None:
            raise CollectionNotFoundError(
                message=f"Collection {collection_id!r} does not exist",
                provider_name=self.get_backend_name(),
                collection_id=collection_id,
            )

    async def _existing_ids(
        self, db: aiosqlite.Connection, collection_id: str, ids: list[str]
    ) -> set[str]:
        found: set[str] = set()
        for start in range(0, len(ids), _IN_CLAUSE_BATCH):
            batch = ids[start : start + _IN_CLAUSE_BATCH]
            placeholders = ",".join("?" * len(batch))
            cursor = await db.execute(
                f"SELECT id FROM vector_index WHERE collection_id = ? AND id IN ({placeholders})",
                (collection_id, *batch),
            )
            found.update(row[0] for row in await cursor.fetchall())
        return found

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_COLLECTIONS_SQL)
            await db.execute(_CREATE_VECTORS_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("vector_db_initialized", path=str(self._db_path))

    async def save_collection(self, collection: Collection) -> None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    _UPSERT_COLLECTION_SQL,
                    (
                        collection.id,
                        collection.name,
                        collection.dimension,
                        collection.metric.value,
                        json.dumps(collection.metadata),
                        collection.vector_count,
                        collection.created_at.isoformat(),
                        collection.updated_at.isoformat(),
                    ),
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise self._error("save_collection", exc) from exc

    async def load_collections(self) -> list[Collection]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT id, name, dimension, metric, metadata, vector_count, created_at, updated_at "
                "FROM vector_collections ORDER BY created_at, rowid"
            )
            rows = await cursor.fetchall()
        return [
            Collection(
                id=row["id"],
                name=row["name"],
                dimension=row["dimension"],
                metric=DistanceMetric(row["metric"]),
                metadata=json.loads(row["metadata"]),
                vector_count=row["vector_count"],
                created_at=datetime.fromisoformat(row["created_at"]),
                updated_at=datetime.fromisoformat(row["updated_at"]),
            )
            for row in rows
        ]

    async def delete_collection(self, collection_id: str) -> None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await self._require(db, collection_id)
                cursor = await db.execute(
                    "DELETE FROM vector_index WHERE collection_id = ?", (collection_id,)
                )
                removed = cursor.rowcount
                await db.execute("DELETE FROM vector_collections WHERE id = ?", (collection_id,))
                await db.commit()
        except aiosqlite.Error as exc:
            raise self._error("delete_collection", exc) from exc
        logger.info("sqlite_collection_deleted", collection_id=collection_id, vectors_removed=removed)

    # ------------------------------------------------------------------
    # Vectors
    # ------------------------------------------------------------------

    async def insert(self, collection: Collection, vectors: list[Vector]) -> int:
        validate_dimensions(collection.dimension, [v.values for v in vectors])
        if not vectors:
            return 0

        now = _utcnow_iso()
        ids = list(dict.fromkeys(v.id for v in vectors))
        rows = [
            (
                v.id,
                collection.id,
                json.dumps(v.values),
                json.dumps(v.metadata),
                v.namespace,
                v.metadata.get("document_id"),
                now,
            )
            for v in vectors
        ]
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await self._require(db, collection.id)
                existing = await self._existing_ids(db, collection.id, ids)
                await db.executemany(_UPSERT_VECTOR_SQL, rows)
                await db.commit()
        except aiosqlite.Error as exc:
            raise self._error("insert", exc) from exc
        return len(ids) - len(existing)

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

        sql = "SELECT id, vector, metadata, namespace FROM vector_index WHERE collection_id = ?"
        params: list[Any] = [collection.id]
        if namespace is not None:
            sql += " AND namespace = ?"
            params.append(namespace)
        sql += " ORDER BY seq"

        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await self._require(db, collection.id)
                cursor = await db.execute(sql, params)
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise self._error("search", exc) from exc

        candidates: list[tuple[str, list[float], dict[str, Any], str | None]] = []
        for vector_id, vector_json, metadata_json, vector_namespace in rows:
            metadata = json.loads(metadata_json)
            if matches_filter(metadata, metadata_filter):
                candidates.append((vector_id, json.loads(vector_json), metadata, vector_namespace))
        if not candidates:
            return []

        scores = score_matrix(query, [c[1] for c in candidates], collection.metric)
        results: list[SearchResult] = []
        for i in top_k_indices(scores, top_k):
            vector_id, values, metadata, vector_namespace = candidates[i]
            results.append(
                SearchResult(
                    id=vector_id,
                    score=float(scores[i]),
                    values=values if include_values else None,
                    metadata=metadata,
                    namespace=vector_namespace,
                )
            )
        return results

    async def delete(self, collection: Collection, ids: list[str]) -> int:
        unique_ids = list(dict.fromkeys(ids))
        removed = 0
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await self._require(db, collection.id)
                for start in range(0, len(unique_ids), _IN_CLAUSE_BATCH):
                    batch = unique_ids[start : start + _IN_CLAUSE_BATCH]
                    placeholders = ",".join("?" * len(batch))
                    cursor = await db.execute(
                        f"DELETE FROM vector_index WHERE collection_id = ? AND id IN ({placeholders})",
                        (collection.id, *batch),
                    )
                    removed += cursor.rowcount
                await db.commit()
        except aiosqlite.Error as exc:
            raise self._error("delete", exc) from exc
        return removed

    async def count(self, collection: Collection) -> int:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await self._require(db, collection.id)
            cursor = await db.execute(
                "SELECT COUNT(*) FROM vector_index WHERE collection_id = ?", (collection.id,)
            )
            row = await cursor.fetchone()
        return int(row[0])

    async def reindex(self, collection: Collection) -> None:
        """Rebuild the SQLite indices; search results are unaffected."""
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await self._require(db, collection.id)
                await db.execute("REINDEX vector_index")
                await db.commit()
        except aiosqlite.Error as exc:
            raise self._error("reindex", exc) from exc
        logger.info("sqlite_reindexed", collection_id=collection.id)

    def get_backend_name(self) -> str:
        return "sqlite"

    def is_available(self) -> bool:
        return self._db_path.parent.exists()
