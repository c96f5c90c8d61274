"""Unit tests for SQLiteDocumentRepository."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from docvec.models.document import (
    DocumentMetadata,
    DocumentStatistics,
    DocumentStatus,
    DocumentType,
    ProcessedDocument,
)
from docvec.providers.persistence.sqlite_document_repository import SQLiteDocumentRepository
from docvec.services.ingestion.chunker import TextChunker
from docvec.utils.errors import PersistenceError
from tests.conftest import make_words


def _document(doc_id: str = "doc-1", status: DocumentStatus = DocumentStatus.SUCCESS, **overrides) -> ProcessedDocument:
    content = make_words(30)
    fields = {
        "id": doc_id,
        "title": "Notes",
        "file_name": "notes.txt",
        "file_path": "/tmp/notes.txt",
        "document_type": DocumentType.TXT,
        "collection_id": "col-1",
        "content": content,
        "metadata": DocumentMetadata(file_name="notes.txt", word_count=30, character_count=len(content), language="en"),
        "statistics": DocumentStatistics(word_count=30, sentence_count=1, readability_score=55.5),
        "chunks": TextChunker(chunk_size=10, overlap=2).chunk(content, doc_id),
        "status": status,
        "vector_count": 4,
        "processing_time_ms": 12.5,
    }
    fields.update(overrides)
    return ProcessedDocument(**fields)


class TestSQLiteDocumentRepository:
    @pytest.mark.asyncio
    async def test_save_and_get(self, document_repository: SQLiteDocumentRepository) -> None:
        original = _document()
        await document_repository.save_document(original)

        loaded = await document_repository.get_document("doc-1")

        assert loaded is not None
        assert loaded.model_dump() == original.model_dump()

    @pytest.mark.asyncio
    async def test_get_without_chunks(self, document_repository: SQLiteDocumentRepository) -> None:
        await document_repository.save_document(_document())
        loaded = await document_repository.get_document("doc-1", include_chunks=False)
        assert loaded is not None
        assert loaded.chunks == []
        assert len(await document_repository.get_chunks("doc-1")) == 4

    @pytest.mark.asyncio
    async def test_chunks_keep_order_and_positions(self, document_repository: SQLiteDocumentRepository) -> None:
        original = _document()
        await document_repository.save_document(original)
        chunks = await document_repository.get_chunks("doc-1")
        assert [c.index for c in chunks] == [0, 1, 2, 3]
        assert [(c.start_position, c.end_position) for c in chunks] == [
            (c.start_position, c.end_position) for c in original.chunks
        ]

    @pytest.mark.asyncio
    async def test_failed_document_without_metadata(self, document_repository: SQLiteDocumentRepository) -> None:
        failed = ProcessedDocument(
            id="bad",
            title="bad",
            file_name="bad.xyz",
            file_path="/tmp/bad.xyz",
            status=DocumentStatus.FAILED,
            errors=["Unsupported document type: 'xyz'"],
        )
        await document_repository.save_document(failed)
        loaded = await document_repository.get_document("bad")
        assert loaded is not None
        assert loaded.status is DocumentStatus.FAILED
        assert loaded.errors == ["Unsupported document type: 'xyz'"]
        assert loaded.metadata is None
        assert loaded.document_type is None

    @pytest.mark.asyncio
    async def test_missing(self, document_repository: SQLiteDocumentRepository) -> None:
        assert await document_repository.get_document("nope") is None

    @pytest.mark.asyncio
    async def test_saving_same_id_replaces_record(self, document_repository: SQLiteDocumentRepository) -> None:
        await document_repository.save_document(_document())
        rerun = _document(
            "doc-1",
            DocumentStatus.PARTIAL,
            chunks=TextChunker(chunk_size=20, overlap=5).chunk(make_words(30), "doc-1"),
            vector_count=1,
        )
        await document_repository.save_document(rerun)

        loaded = await document_repository.get_document("doc-1")
        assert loaded is not None
        assert loaded.status is DocumentStatus.PARTIAL
        assert loaded.vector_count == 1
        assert [c.chunk_id for c in loaded.chunks] == ["doc-1_chunk_0", "doc-1_chunk_1"]
        assert len(await document_repository.list_documents()) == 1

    @pytest.mark.asyncio
    async def test_write_failure(self, tmp_path: Path) -> None:
        repository = SQLiteDocumentRepository(db_path=tmp_path / "uninitialized.db")
        with pytest.raises(PersistenceError, match="Failed to save"):
            await repository.save_document(_document())

    @pytest.mark.asyncio
    async def test_list_filters_and_order(self, document_repository: SQLiteDocumentRepository) -> None:
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        await document_repository.save_document(_document("old", created_at=base))
        await document_repository.save_document(
            _document("new", created_at=base + timedelta(hours=1), collection_id="col-2")
        )
        await document_repository.save_document(
            _document("broken", DocumentStatus.FAILED, created_at=base + timedelta(hours=2), chunks=[])
        )

        assert [d.id for d in await document_repository.list_documents()] == ["broken", "new", "old"]
        assert [d.id for d in await document_repository.list_documents(status=DocumentStatus.SUCCESS)] == [
            "new",
            "old",
        ]
        assert [d.id for d in await document_repository.list_documents(collection_id="col-2")] == ["new"]
        assert len(await document_repository.list_documents(limit=1)) == 1

    @pytest.mark.asyncio
    async def test_delete(self, document_repository: SQLiteDocumentRepository) -> None:
        await document_repository.save_document(_document())
        assert await document_repository.delete_document("doc-1") is True
        assert await document_repository.get_document("doc-1") is None
        assert await document_repository.get_chunks("doc-1") == []
        assert await document_repository.delete_document("doc-1") is False
