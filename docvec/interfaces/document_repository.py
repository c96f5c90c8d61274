"""Abstract base class for persisting processed documents and their chunks."""

from __future__ import annotations

from abc import ABC, abstractmethod

from docvec.models.document import DocumentChunk, DocumentStatus, ProcessedDocument


# Concrete implementation: SQLiteDocumentRepository (docvec/providers/persistence/)
class IDocumentRepository(ABC):
    """Contract for the documents/chunks store.

    Documents are written once, in their terminal status, and never
    updated in place.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables if they don't exist."""

    @abstractmethod
    async def save_document(self, document: ProcessedDocument) -> None:
        """Persist *document* and its chunks in one transaction.

        A document with the same id is replaced, chunks included, so a
        re-submitted job leaves exactly one record.

        Raises
        ------
        docvec.utils.errors.PersistenceError
            If the write fails.
        """

    @abstractmethod
    async def get_document(self, document_id: str, include_chunks: bool = True) -> ProcessedDocument | None:
        """Load a document by id, or ``None`` when it is unknown."""

    @abstractmethod
    async def list_documents(
        self,
        status: DocumentStatus | None = None,
        collection_id: str | None = None,
        limit: int = 100,
    ) -> list[ProcessedDocument]:
        """Most recent documents first, without chunks."""

    @abstractmethod
    async def get_chunks(self, document_id: str) -> list[DocumentChunk]:
        """Chunks of a document in index order."""

    @abstractmethod
    async def delete_document(self, document_id: str) -> bool:
        """Remove a document and its chunks; ``False`` when it did not exist."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"sqlite"``."""
