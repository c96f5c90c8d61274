"""Abstract provider contracts.  Concrete implementations live in docvec.providers."""

from docvec.interfaces.document_repository import IDocumentRepository
from docvec.interfaces.embedding_provider import IEmbeddingProvider
from docvec.interfaces.vector_store_backend import IVectorStoreBackend

__all__ = ["IDocumentRepository", "IEmbeddingProvider", "IVectorStoreBackend"]
