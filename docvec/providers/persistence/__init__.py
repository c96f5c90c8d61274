"""Document persistence adapters."""

from docvec.providers.persistence.sqlite_document_repository import SQLiteDocumentRepository

__all__ = ["SQLiteDocumentRepository"]
