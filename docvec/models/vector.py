"""Vector-space models: collections, stored vectors, search results and embeddings.

All models are frozen.  A :class:`Collection` changes only by replacing it
with an updated copy (``model_copy(update=...)``), which keeps the running
``vector_count`` bookkeeping in one place, the ``VectorStore`` service.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from docvec.utils.errors import ConfigurationError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DistanceMetric(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Similarity metric fixed for the lifetime of a collection.

    Scores are always "higher is better": euclidean and manhattan report
    the negated distance.
    """

    COSINE = "cosine"
    EUCLIDEAN = "euclidean"
    DOT_PRODUCT = "dot_product"
    MANHATTAN = "manhattan"

    @classmethod
    def parse(cls, value: str | DistanceMetric) -> DistanceMetric:
        """Resolve a metric name, accepting a few common spellings."""
        if isinstance(value, DistanceMetric):
            return value
        key = str(value).strip().lower().replace("-", "_")
        key = _METRIC_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise ConfigurationError(
                message=f"Unsupported similarity metric: {value!r}"
            ) from None


_METRIC_ALIASES = {
    "dot": "dot_product",
    "ip": "dot_product",
    "inner_product": "dot_product",
    "l2": "euclidean",
    "l1": "manhattan",
}


class Vector(BaseModel):
    """A stored embedding plus the metadata that points back at its chunk."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Vector identifier, unique per collection.")
    values: list[float] = Field(description="Embedding values; length must equal the collection dimension.")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Arbitrary metadata, including document_id/chunk_id back-references.",
    )
    namespace: str | None = Field(default=None, description="Optional partition inside the collection.")


class Collection(BaseModel):
    """A named vector space with a fixed dimension and similarity metric."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    dimension: int = Field(gt=0)
    metric: DistanceMetric = DistanceMetric.COSINE
    vector_count: int = Field(default=0, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class SearchResult(BaseModel):
    """One ranked hit from a similarity search."""

    model_config = ConfigDict(frozen=True)

    id: str
    score: float = Field(description="Similarity score; higher is more similar for every metric.")
    values: list[float] | None = Field(default=None, description="Echoed vector values when requested.")
    metadata: dict[str, Any] = Field(default_factory=dict)
    namespace: str | None = None


class CollectionStats(BaseModel):
    """Size summary for a collection."""

    model_config = ConfigDict(frozen=True)

    collection_id: str
    name: str
    count: int = Field(ge=0)
    dimension: int
    metric: DistanceMetric
    estimated_memory: int = Field(description="Approximate bytes used by raw float32 vectors.")


class EmbeddingResult(BaseModel):
    """Output of one embedding call."""

    model_config = ConfigDict(frozen=True)

    vector: list[float] = Field(description="L2-normalized embedding.")
    dimension: int
    token_estimate: int = Field(ge=0)
    latency_ms: float = Field(ge=0.0)
    model: str
    provider: str
    used_fallback: bool = Field(
        default=False,
        description="True when the deterministic hash fallback produced this vector.",
    )
    truncated: bool = Field(default=False, description="True when the input was cut to the model limit.")


class QueryResponse(BaseModel):
    """Search results plus information about how the query vector was produced."""

    model_config = ConfigDict(frozen=True)

    collection_id: str
    results: list[SearchResult] = Field(default_factory=list)
    embedding_info: EmbeddingResult | None = Field(
        default=None,
        description="Present for text queries; None when the caller supplied a vector.",
    )
