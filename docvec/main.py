"""docvec application assembly.

Wires providers, backends and services together via dependency
injection.  Loads configuration from ``.env`` and ``config/config.yaml``
and returns the assembled :class:`Components`; nothing here runs at
import time, so the CLI and tests can build their own instances.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from docvec.config.loader import load_config
from docvec.config.settings import Settings
from docvec.interfaces.embedding_provider import IEmbeddingProvider
from docvec.interfaces.vector_store_backend import IVectorStoreBackend
from docvec.providers.embedding.fastembed_embedding_provider import FastEmbedEmbeddingProvider
from docvec.providers.embedding.hash_embedding_provider import HashEmbeddingProvider
from docvec.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from docvec.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from docvec.providers.persistence.sqlite_document_repository import SQLiteDocumentRepository
from docvec.providers.vector_store.chromadb_backend import ChromaDBVectorBackend
from docvec.providers.vector_store.memory_backend import MemoryVectorBackend
from docvec.providers.vector_store.sqlite_backend import SQLiteVectorBackend
from docvec.services.embedding_generator import BUILTIN_MODELS, EmbeddingGenerator, EmbeddingModelSpec
from docvec.services.ingestion.analyzer import DocumentAnalyzer
from docvec.services.ingestion.chunker import TextChunker
from docvec.services.ingestion.coordinator import IngestionCoordinator
from docvec.services.ingestion.document_processor import DocumentProcessor
from docvec.services.ingestion.extractor import DocumentExtractor
from docvec.services.query_service import QueryService
from docvec.services.vector_store import VectorStore
from docvec.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

HASH_MODEL = "hash"


# ---------------------------------------------------------------------------
# Embedding
# ---------------------------------------------------------------------------


def _model_specs(app_settings: Settings, config: dict[str, Any]) -> dict[str, EmbeddingModelSpec]:
    """Built-in models, the offline ``hash`` model and any YAML extras."""
    specs = {spec.name: spec for spec in BUILTIN_MODELS}
    specs[HASH_MODEL] = EmbeddingModelSpec(HASH_MODEL, "hash", app_settings.hash_embedding_dimension, 8191)

    for entry in config.get("embedding", {}).get("models") or []:
        try:
            spec = EmbeddingModelSpec(
                name=str(entry["name"]),
                provider=str(entry["provider"]),
                dimension=int(entry["dimension"]),
                max_tokens=int(entry.get("max_tokens", 8191)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(message=f"Invalid embedding model entry {entry!r}: {exc}") from exc
        if spec.dimension <= 0 or spec.max_tokens <= 0:
            raise ConfigurationError(message=f"Embedding model {spec.name!r} needs positive dimension and max_tokens")
        specs[spec.name] = spec
    return specs


def _build_embedding_provider(spec: EmbeddingModelSpec, app_settings: Settings) -> IEmbeddingProvider | None:
    """Return the provider serving *spec*, or ``None`` when it is not configured.

    A model without a provider is answered by the generator's fallback.
    """
    if spec.provider == "openai":
        if not app_settings.openai_api_key:
            return None
        return OpenAIEmbeddingProvider(settings=app_settings, model=spec.name, dimension=spec.dimension)
    if spec.provider == "ollama":
        if not app_settings.ollama_base_url:
            return None
        return OllamaEmbeddingProvider(settings=app_settings, model=spec.name, dimension=spec.dimension)
    if spec.provider == "fastembed":
        return FastEmbedEmbeddingProvider(model=spec.name, dimension=spec.dimension)
    if spec.provider == "hash":
        return HashEmbeddingProvider(dimension=spec.dimension, seed=app_settings.embedding_fallback_seed)
    raise ConfigurationError(message=f"Unknown embedding provider {spec.provider!r} for model {spec.name!r}")


def build_embedding_generator(app_settings: Settings, config: dict[str, Any] | None = None) -> EmbeddingGenerator:
    specs = _model_specs(app_settings, config or {})
    providers: dict[str, IEmbeddingProvider] = {}
    for spec in specs.values():
        provider = _build_embedding_provider(spec, app_settings)
        if provider is not None:
            providers[spec.name] = provider

    logger.info(
        "embedding_generator_built",
        default_model=app_settings.embedding_model,
        models=len(specs),
        providers=sorted({p.get_provider_name() for p in providers.values()}),
    )
    return EmbeddingGenerator(
        models=specs,
        providers=providers,
        default_model=app_settings.embedding_model,
        timeout_seconds=app_settings.embedding_timeout_seconds,
        fallback_seed=app_settings.embedding_fallback_seed,
        batch_size=app_settings.embedding_batch_size,
        max_concurrent_batches=app_settings.embedding_max_concurrent_batches,
        cache_size=app_settings.query_cache_size,
        cache_ttl_seconds=app_settings.query_cache_ttl_seconds,
    )


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


def build_vector_backend(app_settings: Settings) -> IVectorStoreBackend:
    """Select the vector backend named by ``VECTOR_BACKEND``."""
    backend = app_settings.vector_backend
    if backend == "memory":
        return MemoryVectorBackend()
    if backend == "sqlite":
        return SQLiteVectorBackend(db_path=app_settings.vector_db_path)
    if backend == "chromadb":
        return ChromaDBVectorBackend(
            persist_directory=app_settings.chromadb_persist_dir,
            host=app_settings.chromadb_host,
            port=app_settings.chromadb_port,
        )
    raise ConfigurationError(message=f"Unknown vector backend: {backend!r}")


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


@dataclass
class Components:
    """Every assembled service, ready after :func:`bootstrap`."""

    settings: Settings
    config: dict[str, Any]
    embedding_generator: EmbeddingGenerator
    vector_store: VectorStore
    repository: SQLiteDocumentRepository
    processor: DocumentProcessor
    coordinator: IngestionCoordinator
    query_service: QueryService

    async def close(self) -> None:
        await self.coordinator.stop()
        await self.vector_store.close()


def build_components(app_settings: Settings | None = None, config: dict[str, Any] | None = None) -> Components:
    """Construct every provider and service without touching storage."""
    app_settings = app_settings or Settings()
    if config is None:
        config = load_config(app_settings.config_path, app_settings)

    generator = build_embedding_generator(app_settings, config)
    vector_store = VectorStore(build_vector_backend(app_settings), timeout_seconds=app_settings.backend_timeout_seconds)
    repository = SQLiteDocumentRepository(db_path=app_settings.document_db_path)

    processor = DocumentProcessor(
        extractor=DocumentExtractor(
            max_file_size_bytes=app_settings.max_file_size_bytes,
            tabular_row_limit=app_settings.tabular_row_limit,
        ),
        chunker=TextChunker(
            chunk_size=app_settings.default_chunk_size,
            overlap=app_settings.default_chunk_overlap,
        ),
        analyzer=DocumentAnalyzer(language_confidence_floor=app_settings.language_confidence_floor),
        embedding_generator=generator,
        vector_store=vector_store,
        repository=repository,
    )
    return Components(
        settings=app_settings,
        config=config,
        embedding_generator=generator,
        vector_store=vector_store,
        repository=repository,
        processor=processor,
        coordinator=IngestionCoordinator(processor, max_concurrent=app_settings.ingestion_max_concurrent),
        query_service=QueryService(generator, vector_store),
    )


async def _ensure_collections(components: Components) -> None:
    """Create the collections listed under ``vector_store.collections`` if missing."""
    store = components.vector_store
    for entry in components.config.get("vector_store", {}).get("collections") or []:
        name = entry.get("name")
        if not name or store.find_by_name(name) is not None:
            continue
        dimension = entry.get("dimension") or components.embedding_generator.dimension()
        await store.create_collection(
            name=name,
            dimension=int(dimension),
            metric=entry.get("metric", "cosine"),
            metadata=entry.get("metadata") or {},
        )


async def bootstrap(app_settings: Settings | None = None, config: dict[str, Any] | None = None) -> Components:
    """Build all components and initialise their storage."""
    components = build_components(app_settings, config)
    await components.repository.initialize()
    await components.vector_store.initialize()
    await _ensure_collections(components)
    logger.info(
        "docvec_ready",
        backend=components.vector_store.backend_name,
        collections=len(components.vector_store.list_collections()),
        default_model=components.embedding_generator.default_model,
    )
    return components
