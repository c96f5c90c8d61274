"""Drives one document through every ingestion stage.

Pipeline stages: **extract -> analyze -> chunk -> embed -> store -> persist**.

:class:`DocumentProcessor` coordinates its collaborators without any of
them knowing about each other.  Failure handling is per document:

- Extraction, chunking-parameter and embedding failures end the document
  as ``failed`` (or ``partial`` when only some chunks failed to embed) with
  the error messages recorded.  They are not raised, so a batch of many
  documents is not aborted by one bad file.
- Vector-store contract violations (:class:`DimensionMismatchError`,
  :class:`CollectionNotFoundError`) and backend failures are recorded the
  same way *and* re-raised to the caller.
- Any other exception is recorded as ``failed`` and then propagates.
- Cancellation is checked before extraction, chunking, embedding and
  storage.  After vectors are stored the job always runs to completion.
- Re-running a document id replaces its record and deletes the vectors
  the earlier run stored that the new run did not.

Every outcome, ``cancelled`` included, is persisted through the document
repository before ``process`` returns.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

import structlog

from docvec.interfaces.document_repository import IDocumentRepository
from docvec.models.document import (
    DocumentChunk,
    DocumentMetadata,
    DocumentStatistics,
    DocumentStatus,
    DocumentType,
    IngestionRequest,
    ProcessedDocument,
)
from docvec.models.vector import Vector
from docvec.services.embedding_generator import EmbeddingGenerator
from docvec.services.ingestion.analyzer import DocumentAnalyzer
from docvec.services.ingestion.chunker import TextChunker
from docvec.services.ingestion.extractor import DocumentExtractor
from docvec.services.vector_store import VectorStore
from docvec.utils.errors import (
    CollectionNotFoundError,
    ConfigurationError,
    DimensionMismatchError,
    ExtractionError,
    IngestionCancelledError,
    InputTooLongError,
    ProviderUnavailableError,
    UnsupportedTypeError,
    VectorStoreError,
)
from docvec.utils.text import normalize_whitespace, split_words

logger = structlog.get_logger(logger_name=__name__)

# Errors that fail the document but are not raised to the caller.
_RECOVERABLE = (
    UnsupportedTypeError,
    ExtractionError,
    ConfigurationError,
    InputTooLongError,
    ProviderUnavailableError,
)


@dataclass
class _JobState:
    """What a job has produced so far; becomes the ProcessedDocument."""

    document_type: DocumentType | None = None
    content: str = ""
    metadata: DocumentMetadata | None = None
    statistics: DocumentStatistics | None = None
    chunks: list[DocumentChunk] = field(default_factory=list)
    vector_count: int = 0
    stored_ids: set[str] = field(default_factory=set)
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class IngestionOutcome:
    """Terminal document plus the vector-store error that ended it, if any."""

    document: ProcessedDocument
    error: VectorStoreError | None = None


class DocumentProcessor:
    """Runs the ingestion stages for a single :class:`IngestionRequest`."""

    def __init__(
        self,
        extractor: DocumentExtractor,
        chunker: TextChunker,
        analyzer: DocumentAnalyzer,
        embedding_generator: EmbeddingGenerator,
        vector_store: VectorStore,
        repository: IDocumentRepository,
    ) -> None:
        self._extractor = extractor
        self._chunker = chunker
        self._analyzer = analyzer
        self._generator = embedding_generator
        self._store = vector_store
        self._repository = repository

    async def process(
        self, request: IngestionRequest, cancel_event: asyncio.Event | None = None
    ) -> ProcessedDocument:
        """Ingest one document and return its terminal record.

        Parameters
        ----------
        request:
            The document to ingest.
        cancel_event:
            When set, the job stops at its next stage boundary and is
            recorded as ``cancelled``.

        Raises
        ------
        docvec.utils.errors.VectorStoreError
            Including :class:`DimensionMismatchError` and
            :class:`CollectionNotFoundError`; the failed document is
            persisted first.
        docvec.utils.errors.PersistenceError
            If the terminal record cannot be saved.
        """
        outcome = await self.execute(request, cancel_event)
        if outcome.error is not None:
            raise outcome.error
        return outcome.document

    async def execute(
        self, request: IngestionRequest, cancel_event: asyncio.Event | None = None
    ) -> IngestionOutcome:
        """Like :meth:`process`, but hands back a vector-store error instead of raising it.

        Errors outside the docvec hierarchy (a parser blowing its recursion
        limit, a bug in a processor) still leave a ``failed`` record behind
        before they propagate.
        """
        started = time.monotonic()
        created_at = datetime.now(timezone.utc)
        state = _JobState()
        surfaced: VectorStoreError | None = None
        previous = await self._repository.get_document(request.id)

        try:
            status = await self._run(request, state, cancel_event)
        except IngestionCancelledError as exc:
            status = DocumentStatus.CANCELLED
            state.errors.append(str(exc))
        except _RECOVERABLE as exc:
            status = DocumentStatus.FAILED
            state.errors.append(str(exc))
        except VectorStoreError as exc:
            status = DocumentStatus.FAILED
            state.errors.append(str(exc))
            surfaced = exc
        except Exception as exc:
            state.errors.append(f"Unexpected error: {type(exc).__name__}: {exc}")
            if previous is not None:
                await self._drop_stale_vectors(request, previous, state)
            document = self._build(request, state, DocumentStatus.FAILED, created_at, started)
            await self._repository.save_document(document)
            logger.exception("document_processing_crashed", document_id=document.id, file=document.file_name)
            raise

        if previous is not None:
            cleanup_error = await self._drop_stale_vectors(request, previous, state)
            surfaced = surfaced or cleanup_error

        document = self._build(request, state, status, created_at, started)
        await self._repository.save_document(document)

        log = logger.error if status == DocumentStatus.FAILED else logger.info
        log(
            "document_processed",
            document_id=document.id,
            file=document.file_name,
            status=status.value,
            chunks=len(document.chunks),
            vectors=document.vector_count,
            errors=len(document.errors),
            elapsed_ms=document.processing_time_ms,
        )
        return IngestionOutcome(document=document, error=surfaced)

    async def record_cancelled(self, request: IngestionRequest) -> ProcessedDocument:
        """Persist a ``cancelled`` record for a job that never started."""
        state = _JobState(errors=["Cancelled while queued"])
        previous = await self._repository.get_document(request.id)
        if previous is not None:
            await self._drop_stale_vectors(request, previous, state)
        document = self._build(
            request, state, DocumentStatus.CANCELLED, datetime.now(timezone.utc), time.monotonic()
        )
        await self._repository.save_document(document)
        logger.info("document_cancelled", document_id=request.id, file=document.file_name)
        return document

    @staticmethod
    def _build(
        request: IngestionRequest,
        state: _JobState,
        status: DocumentStatus,
        created_at: datetime,
        started: float,
    ) -> ProcessedDocument:
        return ProcessedDocument(
            id=request.id,
            title=str(request.metadata.get("title") or Path(request.display_name).stem or request.id),
            file_name=request.display_name,
            file_path=request.file_path,
            document_type=state.document_type,
            collection_id=request.collection_id,
            content=state.content,
            metadata=state.metadata,
            statistics=state.statistics,
            chunks=state.chunks,
            status=status,
            errors=state.errors,
            vector_count=state.vector_count,
            processing_time_ms=round((time.monotonic() - started) * 1000, 2),
            created_at=created_at,
            updated_at=datetime.now(timezone.utc),
        )

    async def _drop_stale_vectors(
        self, request: IngestionRequest, previous: ProcessedDocument, state: _JobState
    ) -> VectorStoreError | None:
        """Delete vectors an earlier run of this document id stored and this run did not.

        Returns the store error, already recorded on *state*, when the
        delete fails.
        """
        kept = state.stored_ids if previous.collection_id == request.collection_id else set()
        stale = [c.chunk_id for c in previous.chunks if c.chunk_id not in kept]
        if not stale or previous.collection_id is None:
            return None
        try:
            removed = await self._store.delete(previous.collection_id, stale)
        except CollectionNotFoundError:
            logger.debug(
                "stale_vectors_collection_gone",
                document_id=request.id,
                collection_id=previous.collection_id,
            )
            return None
        except VectorStoreError as exc:
            state.errors.append(f"Could not remove vectors of an earlier run: {exc}")
            return exc
        if removed:
            logger.info(
                "stale_vectors_removed",
                document_id=request.id,
                collection_id=previous.collection_id,
                removed=removed,
            )
        return None

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    @staticmethod
    def _checkpoint(cancel_event: asyncio.Event | None, stage: str) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise IngestionCancelledError(message=f"Cancelled before {stage}")

    async def _run(
        self,
        request: IngestionRequest,
        state: _JobState,
        cancel_event: asyncio.Event | None,
    ) -> DocumentStatus:
        options = request.options

        # 1. Extract
        self._checkpoint(cancel_event, "extraction")
        state.document_type = self._extractor.resolve_type(request.file_path, request.file_type)
        file_size = self._extractor.probe_size(request.file_path)
        text = await asyncio.to_thread(self._extractor.extract, request.file_path, state.document_type)
        if not options.preserve_formatting:
            text = normalize_whitespace(text)
        state.content = text

        # 2. Analyze
        if options.extract_metadata:
            state.metadata, state.statistics = self._analyzer.analyze(
                text,
                file_name=request.display_name,
                file_size=file_size,
                document_type=state.document_type,
                custom=request.metadata,
                detect_language=options.language_detection,
            )
        else:
            state.metadata = DocumentMetadata(
                file_name=request.display_name,
                file_size=file_size,
                mime_type=state.document_type.mime_type,
                document_type=state.document_type,
                word_count=len(split_words(text)),
                character_count=len(text),
                custom=dict(request.metadata),
            )

        if not options.generate_chunks:
            return DocumentStatus.SUCCESS

        # 3. Chunk
        self._checkpoint(cancel_event, "chunking")
        state.chunks = self._chunker.chunk(
            text,
            document_id=request.id,
            chunk_size=options.chunk_size,
            overlap=options.chunk_overlap,
        )
        if not state.chunks:
            logger.warning("document_has_no_text", document_id=request.id, file=request.display_name)
            return DocumentStatus.SUCCESS

        # 4. Embed
        self._checkpoint(cancel_event, "embedding")
        collection = self._store.get_collection(request.collection_id)
        model_dimension = self._generator.dimension(request.embedding_model)
        if model_dimension != collection.dimension:
            raise DimensionMismatchError(
                message=(
                    f"Model {self._generator.get_model(request.embedding_model).name} produces "
                    f"{model_dimension} dimensions but collection {collection.name!r} "
                    f"expects {collection.dimension}"
                ),
                expected=collection.dimension,
                actual=model_dimension,
            )

        embeddable: list[DocumentChunk] = []
        for chunk in state.chunks:
            if options.truncate_embeddings or self._generator.fits(chunk.content, request.embedding_model):
                embeddable.append(chunk)
            else:
                state.errors.append(
                    f"Chunk {chunk.index}: ~{chunk.token_count} tokens exceeds the input limit of "
                    f"{self._generator.get_model(request.embedding_model).name}"
                )
        if not embeddable:
            raise InputTooLongError(message="No chunk fits the embedding model's input limit")

        embeddings = await self._generator.embed_batch(
            [c.content for c in embeddable],
            model=request.embedding_model,
            truncate=options.truncate_embeddings,
        )

        # 5. Store
        self._checkpoint(cancel_event, "storage")
        language = state.metadata.language if state.metadata else "unknown"
        vectors = [
            Vector(
                id=chunk.chunk_id,
                values=embedding.vector,
                metadata={
                    **request.metadata,
                    "document_id": request.id,
                    "chunk_id": chunk.chunk_id,
                    "chunk_index": chunk.index,
                    "file_name": request.display_name,
                    "document_type": state.document_type.value,
                    "language": language,
                    "word_count": chunk.word_count,
                    "has_code": chunk.has_code,
                    "text": chunk.content,
                },
            )
            for chunk, embedding in zip(embeddable, embeddings)
        ]
        await self._store.insert(collection.id, vectors)
        state.vector_count = len(vectors)
        state.stored_ids = {v.id for v in vectors}

        if any(e.used_fallback for e in embeddings):
            logger.warning("document_embedded_with_fallback", document_id=request.id)
        return DocumentStatus.PARTIAL if state.errors else DocumentStatus.SUCCESS
