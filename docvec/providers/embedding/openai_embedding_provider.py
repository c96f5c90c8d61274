"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Works against real OpenAI and OpenAI-compatible services via a custom
``base_url``.  Length limits are enforced upstream by the embedding
generator, so this adapter never truncates.
"""

from __future__ import annotations

import openai
import structlog

from docvec.config.settings import Settings
from docvec.interfaces.embedding_provider import IEmbeddingProvider
from docvec.utils.errors import ProviderUnavailableError

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Every ``openai.APIError`` (connection failures, timeouts, rejected
    credentials, rate limits, server errors) surfaces as
    :class:`ProviderUnavailableError` so the generator can fall back.
    """

    def __init__(self, settings: Settings, model: str, dimension: int) -> None:
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {"api_key": self._api_key or "unset", "max_retries": 1}
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._model = model
        self._dimension = dimension

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts*, splitting into API-sized batches."""
        if not texts:
            return []
        if not self._api_key:
            raise ProviderUnavailableError(
                message="OPENAI_API_KEY is not configured",
                provider_name=self.get_provider_name(),
            )

        try:
            all_embeddings: list[list[float]] = []
            for start in range(0, len(texts), _OPENAI_BATCH_LIMIT):
                batch = texts[start : start + _OPENAI_BATCH_LIMIT]
                response = await self._client.embeddings.create(
                    input=batch,
                    model=self._model,
                )
                # The API may return items out of order; index is authoritative.
                ordered = sorted(response.data, key=lambda item: item.index)
                all_embeddings.extend(item.embedding for item in ordered)
                logger.debug(
                    "openai_embedding_batch",
                    model=self._model,
                    batch_size=len(batch),
                    tokens=response.usage.total_tokens if response.usage else None,
                )
            return all_embeddings
        except openai.AuthenticationError as exc:
            raise ProviderUnavailableError(
                message=f"Authentication rejected: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.RateLimitError as exc:
            raise ProviderUnavailableError(
                message=f"Rate limit or quota exceeded: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise ProviderUnavailableError(
                message=f"Embedding API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def embed_single(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "openai"

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)
