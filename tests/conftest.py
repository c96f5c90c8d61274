"""Shared pytest fixtures for the docvec test suite."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
import structlog

import docvec.cli.commands as cli_commands
from docvec.interfaces.embedding_provider import IEmbeddingProvider
from docvec.providers.embedding.hash_embedding_provider import HashEmbeddingProvider
from docvec.providers.persistence.sqlite_document_repository import SQLiteDocumentRepository
from docvec.providers.vector_store.memory_backend import MemoryVectorBackend
from docvec.services.embedding_generator import EmbeddingGenerator, EmbeddingModelSpec
from docvec.services.ingestion.analyzer import DocumentAnalyzer
from docvec.services.ingestion.chunker import TextChunker
from docvec.services.ingestion.document_processor import DocumentProcessor
from docvec.services.ingestion.extractor import DocumentExtractor
from docvec.services.vector_store import VectorStore
from docvec.utils.errors import ProviderUnavailableError

TEST_MODEL = "test-model"


@pytest.fixture(autouse=True)
def _isolate_structlog(monkeypatch: pytest.MonkeyPatch):
    """Keep loggers from caching pytest's per-test capture streams."""
    real_configure_logging = cli_commands.configure_logging

    def configure_logging(*args, **kwargs):
        result = real_configure_logging(*args, **kwargs)
        structlog.configure(cache_logger_on_first_use=False)
        return result

    monkeypatch.setattr(cli_commands, "configure_logging", configure_logging)
    yield
    structlog.reset_defaults()

TEST_DIMENSION = 16

# ---------------------------------------------------------------------------
# Sample content
# ---------------------------------------------------------------------------


def make_words(count: int) -> str:
    """``count`` distinct words: ``w0 w1 w2 ...``."""
    return " ".join(f"w{i}" for i in range(count))


SAMPLE_PROSE = (
    "Vector search finds documents that are close to a query in embedding space. "
    "The index stores one vector for each chunk of text.\n\n"
    "Chunks overlap a little so that a sentence cut at a boundary still appears "
    "whole in one of them. This keeps retrieval stable when the text is long."
)


@pytest.fixture
def sample_prose() -> str:
    return SAMPLE_PROSE


@pytest.fixture
def text_file(tmp_path: Path) -> Path:
    """A small plain-text document on disk."""
    path = tmp_path / "notes.txt"
    path.write_text(SAMPLE_PROSE, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Embedding fakes
# ---------------------------------------------------------------------------


class MockEmbeddingProvider(IEmbeddingProvider):
    """Deterministic provider that records every call.

    Delegates to :class:`HashEmbeddingProvider` so vectors are meaningful,
    and can be switched to fail or to hang.
    """

    def __init__(self, dimension: int = TEST_DIMENSION) -> None:
        self._inner = HashEmbeddingProvider(dimension=dimension, seed=99)
        self._dimension = dimension
        self.calls: list[list[str]] = []
        self.fail = False
        self.delay: float = 0.0

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ProviderUnavailableError(message="service down", provider_name="mock")
        # Scaled so normalization is observable.
        return [[v * 3.0 for v in await self._inner.embed_single(t)] for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "mock"

    def is_available(self) -> bool:
        return not self.fail


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


def build_generator(
    provider: IEmbeddingProvider | None,
    max_tokens: int = 8191,
    timeout_seconds: float = 5.0,
    batch_size: int = 64,
) -> EmbeddingGenerator:
    spec = EmbeddingModelSpec(TEST_MODEL, "mock", TEST_DIMENSION, max_tokens)
    return EmbeddingGenerator(
        models={TEST_MODEL: spec},
        providers={TEST_MODEL: provider} if provider is not None else {},
        default_model=TEST_MODEL,
        timeout_seconds=timeout_seconds,
        batch_size=batch_size,
    )


@pytest.fixture
def embedding_generator(mock_embedding_provider: MockEmbeddingProvider) -> EmbeddingGenerator:
    return build_generator(mock_embedding_provider)


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


@pytest.fixture
async def memory_store() -> VectorStore:
    store = VectorStore(MemoryVectorBackend())
    await store.initialize()
    return store


@pytest.fixture
async def document_repository(tmp_path: Path) -> SQLiteDocumentRepository:
    repository = SQLiteDocumentRepository(db_path=tmp_path / "documents.db")
    await repository.initialize()
    return repository


@pytest.fixture
async def processor(
    embedding_generator: EmbeddingGenerator,
    memory_store: VectorStore,
    document_repository: SQLiteDocumentRepository,
) -> DocumentProcessor:
    return DocumentProcessor(
        extractor=DocumentExtractor(),
        chunker=TextChunker(chunk_size=20, overlap=5),
        analyzer=DocumentAnalyzer(),
        embedding_generator=embedding_generator,
        vector_store=memory_store,
        repository=document_repository,
    )
