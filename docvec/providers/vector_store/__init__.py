"""Vector-store backends implementing IVectorStoreBackend."""

from docvec.providers.vector_store.chromadb_backend import ChromaDBVectorBackend
from docvec.providers.vector_store.memory_backend import MemoryVectorBackend
from docvec.providers.vector_store.sqlite_backend import SQLiteVectorBackend

__all__ = ["ChromaDBVectorBackend", "MemoryVectorBackend", "SQLiteVectorBackend"]
