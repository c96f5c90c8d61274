"""End-to-end ingestion: file on disk to searchable vectors and a stored record."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from docvec.models.document import DocumentStatus, IngestionRequest, ProcessingOptions
from docvec.providers.persistence.sqlite_document_repository import SQLiteDocumentRepository
from docvec.services.embedding_generator import EmbeddingGenerator
from docvec.services.ingestion.analyzer import DocumentAnalyzer
from docvec.services.ingestion.chunker import TextChunker
from docvec.services.ingestion.document_processor import DocumentProcessor
from docvec.services.ingestion.extractor import DocumentExtractor
from docvec.services.query_service import QueryService
from docvec.services.vector_store import VectorStore
from docvec.utils.errors import CollectionNotFoundError, DimensionMismatchError
from tests.conftest import TEST_DIMENSION, MockEmbeddingProvider, build_generator, make_words


@pytest.fixture
async def collection_id(memory_store: VectorStore) -> str:
    return (await memory_store.create_collection("docs", TEST_DIMENSION)).id


def _request(path: Path, collection_id: str, **options) -> IngestionRequest:
    return IngestionRequest(
        file_path=str(path),
        collection_id=collection_id,
        options=ProcessingOptions(**options),
        metadata={"source": "test"},
    )


@pytest.mark.asyncio
async def test_text_file_is_ingested_and_searchable(
    processor: DocumentProcessor,
    memory_store: VectorStore,
    embedding_generator: EmbeddingGenerator,
    document_repository: SQLiteDocumentRepository,
    collection_id: str,
    text_file: Path,
) -> None:
    document = await processor.process(_request(text_file, collection_id, chunk_size=20, chunk_overlap=5))

    assert document.status is DocumentStatus.SUCCESS
    assert document.errors == []
    assert document.title == "notes"
    assert document.metadata is not None
    assert document.metadata.language == "en"
    assert document.metadata.custom == {"source": "test"}
    assert len(document.chunks) > 1
    assert document.vector_count == len(document.chunks)
    assert (await memory_store.stats(collection_id)).count == document.vector_count

    response = await QueryService(embedding_generator, memory_store).search(
        collection_id, text=document.chunks[0].content, top_k=1
    )
    top = response.results[0]
    assert top.id == document.chunks[0].chunk_id
    assert top.metadata["document_id"] == document.id
    assert top.metadata["chunk_index"] == 0
    assert top.metadata["source"] == "test"
    assert top.metadata["text"] == document.chunks[0].content

    stored = await document_repository.get_document(document.id)
    assert stored is not None
    assert stored.status is DocumentStatus.SUCCESS
    assert [c.chunk_id for c in stored.chunks] == [c.chunk_id for c in document.chunks]


@pytest.mark.asyncio
async def test_five_hundred_words_make_six_chunks(
    processor: DocumentProcessor, collection_id: str, tmp_path: Path
) -> None:
    path = tmp_path / "words.txt"
    path.write_text(make_words(500), encoding="utf-8")

    document = await processor.process(_request(path, collection_id, chunk_size=100, chunk_overlap=20))

    assert [c.start_position for c in document.chunks] == [0, 80, 160, 240, 320, 400]
    assert document.chunks[-1].end_position == 499
    assert document.vector_count == 6


@pytest.mark.asyncio
async def test_json_document(processor: DocumentProcessor, collection_id: str, tmp_path: Path) -> None:
    path = tmp_path / "record.json"
    path.write_text(json.dumps({"title": "Pipeline", "tags": ["vectors", "search"]}), encoding="utf-8")

    document = await processor.process(_request(path, collection_id))

    assert document.status is DocumentStatus.SUCCESS
    assert document.document_type is not None and document.document_type.value == "json"
    assert "Pipeline" in document.content


@pytest.mark.asyncio
async def test_unsupported_type_fails_document(
    processor: DocumentProcessor,
    document_repository: SQLiteDocumentRepository,
    collection_id: str,
    tmp_path: Path,
) -> None:
    path = tmp_path / "slides.pptx"
    path.write_bytes(b"PK")

    document = await processor.process(_request(path, collection_id))

    assert document.status is DocumentStatus.FAILED
    assert document.vector_count == 0
    assert "Cannot infer document type" in document.errors[0]
    assert (await document_repository.get_document(document.id)).status is DocumentStatus.FAILED


@pytest.mark.asyncio
async def test_missing_file_fails_document(processor: DocumentProcessor, collection_id: str, tmp_path: Path) -> None:
    document = await processor.process(_request(tmp_path / "gone.txt", collection_id))
    assert document.status is DocumentStatus.FAILED
    assert document.errors


@pytest.mark.asyncio
async def test_retry_after_failure_replaces_record(
    processor: DocumentProcessor,
    memory_store: VectorStore,
    document_repository: SQLiteDocumentRepository,
    collection_id: str,
    text_file: Path,
) -> None:
    failed = await processor.process(
        IngestionRequest(
            id="doc-1",
            file_path=str(text_file),
            collection_id=collection_id,
            options=ProcessingOptions(chunk_size=10, chunk_overlap=10),
        )
    )
    assert failed.status is DocumentStatus.FAILED

    document = await processor.process(
        IngestionRequest(
            id="doc-1",
            file_path=str(text_file),
            collection_id=collection_id,
            options=ProcessingOptions(chunk_size=20, chunk_overlap=5),
        )
    )

    assert document.status is DocumentStatus.SUCCESS
    stored = await document_repository.get_document("doc-1")
    assert stored is not None
    assert stored.status is DocumentStatus.SUCCESS
    assert stored.errors == []
    assert len(await document_repository.list_documents()) == 1
    assert (await memory_store.stats(collection_id)).count == document.vector_count


@pytest.mark.asyncio
async def test_reingest_with_fewer_chunks_drops_stale_vectors(
    processor: DocumentProcessor,
    memory_store: VectorStore,
    document_repository: SQLiteDocumentRepository,
    collection_id: str,
    text_file: Path,
) -> None:
    def request(**options) -> IngestionRequest:
        return IngestionRequest(
            id="doc-1",
            file_path=str(text_file),
            collection_id=collection_id,
            options=ProcessingOptions(**options),
        )

    first = await processor.process(request(chunk_size=20, chunk_overlap=5))
    assert first.vector_count > 1

    second = await processor.process(request(chunk_size=1000, chunk_overlap=0))

    assert second.status is DocumentStatus.SUCCESS
    assert second.vector_count == 1
    assert (await memory_store.stats(collection_id)).count == 1
    stored = await document_repository.get_document("doc-1")
    assert stored is not None
    assert [chunk.chunk_id for chunk in stored.chunks] == ["doc-1_chunk_0"]


@pytest.mark.asyncio
async def test_deeply_nested_json_fails_document(
    processor: DocumentProcessor,
    document_repository: SQLiteDocumentRepository,
    collection_id: str,
    tmp_path: Path,
) -> None:
    path = tmp_path / "deep.json"
    path.write_text("[" * 100_000 + "]" * 100_000, encoding="utf-8")

    document = await processor.process(_request(path, collection_id))

    assert document.status is DocumentStatus.FAILED
    assert "nested too deeply" in document.errors[0]
    stored = await document_repository.get_document(document.id)
    assert stored is not None
    assert stored.status is DocumentStatus.FAILED


@pytest.mark.asyncio
async def test_unexpected_error_is_recorded_then_raised(
    processor: DocumentProcessor,
    document_repository: SQLiteDocumentRepository,
    collection_id: str,
    text_file: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def _explode(self, path, document_type=None):
        raise RuntimeError("extractor bug")

    monkeypatch.setattr(DocumentExtractor, "extract", _explode)
    request = _request(text_file, collection_id)

    with pytest.raises(RuntimeError, match="extractor bug"):
        await processor.process(request)

    stored = await document_repository.get_document(request.id)
    assert stored is not None
    assert stored.status is DocumentStatus.FAILED
    assert any("Unexpected error: RuntimeError" in error for error in stored.errors)


@pytest.mark.asyncio
async def test_bad_chunk_parameters_fail_document(
    processor: DocumentProcessor, memory_store: VectorStore, collection_id: str, text_file: Path
) -> None:
    document = await processor.process(_request(text_file, collection_id, chunk_size=10, chunk_overlap=10))

    assert document.status is DocumentStatus.FAILED
    assert "overlap" in document.errors[0]
    assert (await memory_store.stats(collection_id)).count == 0


@pytest.mark.asyncio
async def test_dimension_mismatch_is_raised_and_recorded(
    processor: DocumentProcessor,
    memory_store: VectorStore,
    document_repository: SQLiteDocumentRepository,
    text_file: Path,
) -> None:
    narrow = await memory_store.create_collection("narrow", TEST_DIMENSION // 2)
    request = _request(text_file, narrow.id)

    with pytest.raises(DimensionMismatchError):
        await processor.process(request)

    stored = await document_repository.get_document(request.id)
    assert stored is not None
    assert stored.status is DocumentStatus.FAILED
    assert (await memory_store.stats(narrow.id)).count == 0


@pytest.mark.asyncio
async def test_unknown_collection_is_raised(processor: DocumentProcessor, text_file: Path) -> None:
    with pytest.raises(CollectionNotFoundError):
        await processor.process(_request(text_file, "no-such-collection"))


@pytest.mark.asyncio
async def test_cancelled_before_start(
    processor: DocumentProcessor,
    memory_store: VectorStore,
    document_repository: SQLiteDocumentRepository,
    collection_id: str,
    text_file: Path,
) -> None:
    cancel = asyncio.Event()
    cancel.set()

    document = await processor.process(_request(text_file, collection_id), cancel_event=cancel)

    assert document.status is DocumentStatus.CANCELLED
    assert document.chunks == []
    assert (await memory_store.stats(collection_id)).count == 0
    assert (await document_repository.get_document(document.id)).status is DocumentStatus.CANCELLED


@pytest.mark.asyncio
async def test_over_long_chunks_make_document_partial(
    memory_store: VectorStore,
    document_repository: SQLiteDocumentRepository,
    collection_id: str,
    tmp_path: Path,
) -> None:
    # 13 words fit a 10-token model; 20 do not.
    generator = build_generator(MockEmbeddingProvider(), max_tokens=10)
    processor = DocumentProcessor(
        extractor=DocumentExtractor(),
        chunker=TextChunker(),
        analyzer=DocumentAnalyzer(),
        embedding_generator=generator,
        vector_store=memory_store,
        repository=document_repository,
    )
    path = tmp_path / "mixed.txt"
    path.write_text(make_words(36), encoding="utf-8")

    partial = await processor.process(_request(path, collection_id, chunk_size=20, chunk_overlap=8))

    # Windows start at 0, 12 and 24: 20, 20 and 12 words.
    assert [c.word_count for c in partial.chunks] == [20, 20, 12]
    assert partial.status is DocumentStatus.PARTIAL
    assert partial.vector_count == 1
    assert len(partial.errors) == 2

    truncated = await processor.process(
        _request(path, collection_id, chunk_size=20, chunk_overlap=8, truncate_embeddings=True)
    )
    assert truncated.status is DocumentStatus.SUCCESS
    assert truncated.vector_count == 3


@pytest.mark.asyncio
async def test_provider_outage_uses_fallback(
    processor: DocumentProcessor,
    mock_embedding_provider: MockEmbeddingProvider,
    memory_store: VectorStore,
    collection_id: str,
    text_file: Path,
) -> None:
    mock_embedding_provider.fail = True

    document = await processor.process(_request(text_file, collection_id, chunk_size=20, chunk_overlap=5))

    assert document.status is DocumentStatus.SUCCESS
    assert (await memory_store.stats(collection_id)).count == document.vector_count
