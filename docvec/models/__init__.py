"""docvec domain models - re-exports all public model classes."""

from __future__ import annotations

from docvec.models.document import (
    CODE_LANGUAGES,
    DocumentChunk,
    DocumentMetadata,
    DocumentStatistics,
    DocumentStatus,
    DocumentType,
    IngestionRequest,
    ProcessedDocument,
    ProcessingOptions,
    QueuedAcknowledgment,
    QueueStatus,
)
from docvec.models.vector import (
    Collection,
    CollectionStats,
    DistanceMetric,
    EmbeddingResult,
    QueryResponse,
    SearchResult,
    Vector,
)

__all__ = [
    "CODE_LANGUAGES",
    "Collection",
    "CollectionStats",
    "DistanceMetric",
    "DocumentChunk",
    "DocumentMetadata",
    "DocumentStatistics",
    "DocumentStatus",
    "DocumentType",
    "EmbeddingResult",
    "IngestionRequest",
    "ProcessedDocument",
    "ProcessingOptions",
    "QueryResponse",
    "QueueStatus",
    "QueuedAcknowledgment",
    "SearchResult",
    "Vector",
]
