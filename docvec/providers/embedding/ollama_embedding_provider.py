"""Ollama embedding provider adapter (local/free).

Talks to Ollama's native ``/api/embed`` endpoint with httpx.  Default
model is ``nomic-embed-text`` (768 dimensions); any pulled embedding model
works when its dimension is declared in the model registry.
"""

from __future__ import annotations

import httpx
import structlog

from docvec.config.settings import Settings
from docvec.interfaces.embedding_provider import IEmbeddingProvider
from docvec.utils.errors import ProviderUnavailableError

logger = structlog.get_logger(logger_name=__name__)

_OLLAMA_BATCH_LIMIT = 512


class OllamaEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by a local Ollama server."""

    def __init__(
        self,
        settings: Settings,
        model: str = "nomic-embed-text",
        dimension: int = 768,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._model = model
        self._dimension = dimension
        self._timeout = settings.embedding_timeout_seconds
        # Injected in tests (httpx.MockTransport).
        self._transport = transport

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        if not self._base_url:
            raise ProviderUnavailableError(
                message="OLLAMA_BASE_URL is not configured",
                provider_name=self.get_provider_name(),
            )

        all_embeddings: list[list[float]] = []
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url, timeout=self._timeout, transport=self._transport
            ) as client:
                for start in range(0, len(texts), _OLLAMA_BATCH_LIMIT):
                    batch = texts[start : start + _OLLAMA_BATCH_LIMIT]
                    response = await client.post(
                        "/api/embed", json={"model": self._model, "input": batch}
                    )
                    response.raise_for_status()
                    embeddings = response.json().get("embeddings") or []
                    if len(embeddings) != len(batch):
                        raise ProviderUnavailableError(
                            message=f"Expected {len(batch)} embeddings, got {len(embeddings)}",
                            provider_name=self.get_provider_name(),
                        )
                    all_embeddings.extend(embeddings)
                    logger.debug("ollama_embedding_batch", model=self._model, batch_size=len(batch))
        except httpx.HTTPStatusError as exc:
            raise ProviderUnavailableError(
                message=f"Ollama returned HTTP {exc.response.status_code} for model {self._model}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(
                message=f"Ollama request failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except ValueError as exc:
            raise ProviderUnavailableError(
                message=f"Ollama returned invalid JSON: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return all_embeddings

    async def embed_single(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "ollama"

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama server is reachable."""
        if not self._base_url:
            return False
        try:
            response = httpx.get(f"{self._base_url}/api/tags", timeout=3.0)
            return response.status_code == 200
        except httpx.HTTPError:
            return False
