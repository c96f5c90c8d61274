"""Application settings loaded from environment variables via pydantic-settings.

Two sources, in priority order:

  1. Environment variables, e.g. ``OPENAI_API_KEY=sk-...`` (always wins)
  2. A ``.env`` file in the working directory

Field ``vector_backend`` maps to ``VECTOR_BACKEND`` and so on.  Defaults
apply when neither source sets a value.
"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """docvec settings.  Environment variables override defaults."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Embedding ===
    # Empty key = OpenAI not configured; the generator then falls back.
    openai_api_key: str = ""
    openai_base_url: str = ""
    ollama_base_url: str = "http://localhost:11434"
    embedding_model: str = "text-embedding-3-small"
    embedding_timeout_seconds: float = 30.0
    embedding_batch_size: int = 64
    embedding_max_concurrent_batches: int = 4
    embedding_fallback_seed: int = 0
    hash_embedding_dimension: int = 384
    query_cache_size: int = 1024
    query_cache_ttl_seconds: int = 3600

    # === Vector store ===
    vector_backend: Literal["memory", "sqlite", "chromadb"] = "sqlite"
    vector_db_path: str = "data/vectors.db"
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_host: str = ""  # non-empty switches ChromaDB to client/server mode
    chromadb_port: int = 8000
    backend_timeout_seconds: float = 30.0

    # === Documents ===
    document_db_path: str = "data/documents.db"
    max_file_size_bytes: int = 50 * 1024 * 1024
    tabular_row_limit: int = 1000
    default_chunk_size: int = 1000
    default_chunk_overlap: int = 200
    language_confidence_floor: float = 0.1

    # === Ingestion queue ===
    ingestion_max_concurrent: int = 5

    # === App ===
    config_path: str = "config/config.yaml"
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_embedding_providers(self) -> list[str]:
        """Return the embedding providers that have enough configuration to try."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.ollama_base_url:
            providers.append("ollama")
        providers.extend(["fastembed", "hash"])
        return providers
