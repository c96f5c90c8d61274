"""Document ingestion models.

A document enters as an :class:`IngestionRequest`, is split into
:class:`DocumentChunk` records and leaves the pipeline as a
:class:`ProcessedDocument` in a terminal :class:`DocumentStatus`.
Documents are never updated in place; re-ingesting a file produces a new
document id.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePath
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from docvec.utils.errors import UnsupportedTypeError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Document types
# ---------------------------------------------------------------------------

class DocumentType(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Declared source format of a document."""

    TXT = "txt"
    MD = "md"
    HTML = "html"
    JSON = "json"
    CSV = "csv"
    CODE = "code"
    PDF = "pdf"
    DOCX = "docx"

    @property
    def mime_type(self) -> str:
        return _MIME_TYPES[self]

    @classmethod
    def from_declared(cls, value: str | DocumentType) -> DocumentType:
        """Resolve a caller-declared type, raising UnsupportedTypeError if unknown."""
        if isinstance(value, DocumentType):
            return value
        key = str(value).strip().lower().lstrip(".")
        key = _TYPE_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise UnsupportedTypeError(
                message=f"Unsupported document type: {value!r}"
            ) from None

    @classmethod
    def from_filename(cls, file_name: str) -> DocumentType:
        """Infer the type from a file extension."""
        suffix = PurePath(file_name).suffix.lower()
        if suffix in CODE_LANGUAGES:
            return cls.CODE
        key = _TYPE_ALIASES.get(suffix.lstrip("."), suffix.lstrip("."))
        try:
            return cls(key)
        except ValueError:
            raise UnsupportedTypeError(
                message=f"Cannot infer document type from file name: {file_name!r}"
            ) from None


_MIME_TYPES: dict[DocumentType, str] = {
    DocumentType.TXT: "text/plain",
    DocumentType.MD: "text/markdown",
    DocumentType.HTML: "text/html",
    DocumentType.JSON: "application/json",
    DocumentType.CSV: "text/csv",
    DocumentType.CODE: "text/plain",
    DocumentType.PDF: "application/pdf",
    DocumentType.DOCX: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

_TYPE_ALIASES = {
    "text": "txt",
    "markdown": "md",
    "htm": "html",
    "tsv": "csv",
    "source": "code",
}

# Source-code extensions and the language reported in the code header.
CODE_LANGUAGES: dict[str, str] = {
    ".js": "JavaScript",
    ".jsx": "JavaScript",
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".py": "Python",
    ".java": "Java",
    ".cpp": "C++",
    ".cc": "C++",
    ".hpp": "C++",
    ".c": "C",
    ".h": "C",
    ".cs": "C#",
    ".php": "PHP",
    ".rb": "Ruby",
    ".go": "Go",
    ".rs": "Rust",
    ".kt": "Kotlin",
    ".swift": "Swift",
    ".scala": "Scala",
    ".sql": "SQL",
    ".sh": "Shell",
    ".ps1": "PowerShell",
}


class DocumentStatus(str, Enum):  # noqa: UP042
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    CANCELLED = "cancelled"


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class ProcessingOptions(BaseModel):
    """Per-request switches for the ingestion stages.

    ``chunk_size`` and ``chunk_overlap`` are word counts.  They are validated
    by the chunker when it runs, so a bad pair fails the document rather
    than the submission.
    """

    model_config = ConfigDict(frozen=True)

    extract_metadata: bool = True
    generate_chunks: bool = True
    chunk_size: int = 1000
    chunk_overlap: int = 200
    preserve_formatting: bool = False
    language_detection: bool = True
    truncate_embeddings: bool = Field(
        default=False,
        description="Cut chunks to the model's input limit instead of failing them.",
    )


class IngestionRequest(BaseModel):
    """A document reference submitted for ingestion."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    file_path: str
    file_name: str = Field(default="", description="Display name; defaults to the path's basename.")
    file_type: str | None = Field(
        default=None,
        description="Declared type (txt, md, html, json, csv, code, pdf, docx); inferred from the extension when omitted.",
    )
    collection_id: str
    options: ProcessingOptions = Field(default_factory=ProcessingOptions)
    metadata: dict[str, Any] = Field(default_factory=dict, description="Caller-supplied custom fields.")
    embedding_model: str | None = None

    @property
    def display_name(self) -> str:
        return self.file_name or PurePath(self.file_path).name


class QueuedAcknowledgment(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_id: str
    status: DocumentStatus = DocumentStatus.PENDING
    position: int = Field(ge=0, description="Zero-based place in the pending queue.")


class QueueStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    pending: int = 0
    processing: int = 0
    max_concurrent: int = 0


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class DocumentMetadata(BaseModel):
    """Facts derived once from a document; never mutated afterwards."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    file_size: int = Field(default=0, ge=0)
    mime_type: str = "text/plain"
    document_type: DocumentType | None = None
    language: str = "unknown"
    word_count: int = 0
    character_count: int = 0
    tags: list[str] = Field(default_factory=list)
    custom: dict[str, Any] = Field(default_factory=dict)


class DocumentStatistics(BaseModel):
    model_config = ConfigDict(frozen=True)

    word_count: int = 0
    sentence_count: int = 0
    paragraph_count: int = 0
    average_words_per_sentence: float = 0.0
    readability_score: float = Field(default=0.0, ge=0.0, le=100.0)
    complexity_score: float = Field(default=0.0, ge=0.0, le=100.0)
    language_confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class DocumentChunk(BaseModel):
    """A contiguous word window of a document.

    ``start_position`` and ``end_position`` are word offsets into the
    parent document; ``end_position`` is inclusive.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    document_id: str
    index: int = Field(ge=0)
    content: str
    token_count: int = Field(ge=0)
    character_count: int = Field(ge=0)
    start_position: int = Field(ge=0)
    end_position: int = Field(ge=0)
    word_count: int = Field(ge=0)
    has_code: bool = False
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def metadata(self) -> dict[str, Any]:
        return {"word_count": self.word_count, "has_code": self.has_code}


class ProcessedDocument(BaseModel):
    """Terminal record for one ingestion job."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    file_name: str
    file_path: str
    document_type: DocumentType | None = None
    collection_id: str | None = None
    content: str = ""
    metadata: DocumentMetadata | None = None
    statistics: DocumentStatistics | None = None
    chunks: list[DocumentChunk] = Field(default_factory=list)
    status: DocumentStatus = DocumentStatus.PENDING
    errors: list[str] = Field(default_factory=list)
    vector_count: int = Field(default=0, ge=0, description="Vectors written to the collection.")
    processing_time_ms: float = 0.0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
