"""SQLite-backed document repository.

Persists processed documents and their chunks to ``data/documents.db``
using ``aiosqlite``.  A document and its chunks are written in a single
transaction, once, when the document reaches a terminal status.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import aiosqlite
import structlog

from docvec.interfaces.document_repository import IDocumentRepository
from docvec.models.document import (
    DocumentChunk,
    DocumentMetadata,
    DocumentStatistics,
    DocumentStatus,
    DocumentType,
    ProcessedDocument,
)
from docvec.utils.errors import PersistenceError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/documents.db")

_CREATE_DOCUMENTS_SQL = """\
CREATE TABLE IF NOT EXISTS kb_documents (
    id                  TEXT    PRIMARY KEY,
    title               TEXT    NOT NULL,
    content             TEXT    NOT NULL DEFAULT '',
    file_name           TEXT    NOT NULL,
    file_path           TEXT    NOT NULL,
    document_type       TEXT,
    collection_id       TEXT,
    metadata            TEXT,
    statistics          TEXT,
    word_count          INTEGER NOT NULL DEFAULT 0,
    character_count     INTEGER NOT NULL DEFAULT 0,
    language            TEXT,
    status              TEXT    NOT NULL,
    errors              TEXT    NOT NULL DEFAULT '[]',
    vector_count        INTEGER NOT NULL DEFAULT 0,
    processing_time_ms  REAL    NOT NULL DEFAULT 0,
    created_at          TEXT    NOT NULL,
    updated_at          TEXT    NOT NULL
);
"""

_CREATE_CHUNKS_SQL = """\
CREATE TABLE IF NOT EXISTS kb_document_chunks (
    id               TEXT    PRIMARY KEY,
    document_id      TEXT    NOT NULL REFERENCES kb_documents(id) ON DELETE CASCADE,
    chunk_index      INTEGER NOT NULL,
    content          TEXT    NOT NULL,
    token_count      INTEGER NOT NULL,
    character_count  INTEGER NOT NULL,
    start_position   INTEGER NOT NULL,
    end_position     INTEGER NOT NULL,
    metadata         TEXT    NOT NULL DEFAULT '{}',
    created_at       TEXT    NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_kb_documents_status ON kb_documents(status);",
    "CREATE INDEX IF NOT EXISTS idx_kb_documents_collection ON kb_documents(collection_id);",
    "CREATE INDEX IF NOT EXISTS idx_kb_chunks_document ON kb_document_chunks(document_id, chunk_index);",
]

_INSERT_DOCUMENT_SQL = """\
INSERT INTO kb_documents (
    id, title, content, file_name, file_path, document_type, collection_id,
    metadata, statistics, word_count, character_count, language, status,
    errors, vector_count, processing_time_ms, created_at, updated_at
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_INSERT_CHUNK_SQL = """\
INSERT INTO kb_document_chunks (
    id, document_id, chunk_index, content, token_count, character_count,
    start_position, end_position, metadata, created_at
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_DOCUMENT_COLUMNS = (
    "id, title, content, file_name, file_path, document_type, collection_id, metadata, "
    "statistics, status, errors, vector_count, processing_time_ms, created_at, updated_at"
)


class SQLiteDocumentRepository(IDocumentRepository):
    """SQLite persistence for ingested documents."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_DOCUMENTS_SQL)
            await db.execute(_CREATE_CHUNKS_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("document_db_initialized", path=str(self._db_path))

    async def save_document(self, document: ProcessedDocument) -> None:
        metadata = document.metadata
        document_row = (
            document.id,
            document.title,
            document.content,
            document.file_name,
            document.file_path,
            document.document_type.value if document.document_type else None,
            document.collection_id,
            metadata.model_dump_json() if metadata else None,
            document.statistics.model_dump_json() if document.statistics else None,
            metadata.word_count if metadata else 0,
            metadata.character_count if metadata else 0,
            metadata.language if metadata else None,
            document.status.value,
            json.dumps(document.errors),
            document.vector_count,
            document.processing_time_ms,
            document.created_at.isoformat(),
            document.updated_at.isoformat(),
        )
        chunk_rows = [
            (
                chunk.chunk_id,
                chunk.document_id,
                chunk.index,
                chunk.content,
                chunk.token_count,
                chunk.character_count,
                chunk.start_position,
                chunk.end_position,
                json.dumps(chunk.metadata),
                chunk.created_at.isoformat(),
            )
            for chunk in document.chunks
        ]

        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                # Replace any earlier run of the same document id.
                await db.execute("DELETE FROM kb_document_chunks WHERE document_id = ?", (document.id,))
                cursor = await db.execute("DELETE FROM kb_documents WHERE id = ?", (document.id,))
                replaced = cursor.rowcount > 0
                await db.execute(_INSERT_DOCUMENT_SQL, document_row)
                if chunk_rows:
                    await db.executemany(_INSERT_CHUNK_SQL, chunk_rows)
                await db.commit()
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Failed to save document {document.id!r}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.debug(
            "document_saved",
            document_id=document.id,
            status=document.status.value,
            chunks=len(chunk_rows),
            replaced=replaced,
        )

    async def get_document(self, document_id: str, include_chunks: bool = True) -> ProcessedDocument | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM kb_documents WHERE id = ?",
                (document_id,),
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        chunks = await self.get_chunks(document_id) if include_chunks else []
        return self._row_to_document(row, chunks)

    async def list_documents(
        self,
        status: DocumentStatus | None = None,
        collection_id: str | None = None,
        limit: int = 100,
    ) -> list[ProcessedDocument]:
        clauses: list[str] = []
        params: list[object] = []
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if collection_id is not None:
            clauses.append("collection_id = ?")
            params.append(collection_id)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        params.append(limit)

        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM kb_documents{where} "
                "ORDER BY created_at DESC, rowid DESC LIMIT ?",
                params,
            )
            rows = await cursor.fetchall()
        return [self._row_to_document(row, []) for row in rows]

    async def get_chunks(self, document_id: str) -> list[DocumentChunk]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT id, document_id, chunk_index, content, token_count, character_count, "
                "start_position, end_position, metadata, created_at "
                "FROM kb_document_chunks WHERE document_id = ? ORDER BY chunk_index",
                (document_id,),
            )
            rows = await cursor.fetchall()

        chunks: list[DocumentChunk] = []
        for row in rows:
            meta = json.loads(row["metadata"])
            chunks.append(
                DocumentChunk(
                    chunk_id=row["id"],
                    document_id=row["document_id"],
                    index=row["chunk_index"],
                    content=row["content"],
                    token_count=row["token_count"],
                    character_count=row["character_count"],
                    start_position=row["start_position"],
                    end_position=row["end_position"],
                    word_count=meta.get("word_count", 0),
                    has_code=meta.get("has_code", False),
                    created_at=datetime.fromisoformat(row["created_at"]),
                )
            )
        return chunks

    async def delete_document(self, document_id: str) -> bool:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute("DELETE FROM kb_document_chunks WHERE document_id = ?", (document_id,))
            cursor = await db.execute("DELETE FROM kb_documents WHERE id = ?", (document_id,))
            await db.commit()
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("document_deleted", document_id=document_id)
        return deleted

    def get_provider_name(self) -> str:
        return "sqlite"

    @staticmethod
    def _row_to_document(row: aiosqlite.Row, chunks: list[DocumentChunk]) -> ProcessedDocument:
        return ProcessedDocument(
            id=row["id"],
            title=row["title"],
            content=row["content"],
            file_name=row["file_name"],
            file_path=row["file_path"],
            document_type=DocumentType(row["document_type"]) if row["document_type"] else None,
            collection_id=row["collection_id"],
            metadata=DocumentMetadata.model_validate_json(row["metadata"]) if row["metadata"] else None,
            statistics=(
                DocumentStatistics.model_validate_json(row["statistics"]) if row["statistics"] else None
            ),
            chunks=chunks,
            status=DocumentStatus(row["status"]),
            errors=json.loads(row["errors"]),
            vector_count=row["vector_count"],
            processing_time_ms=row["processing_time_ms"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
