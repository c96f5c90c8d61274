"""Local ONNX-based embedding provider using fastembed.

Runs on CPU through ONNX Runtime with no PyTorch dependency.  fastembed
is an optional extra (``pip install docvec[local]``); when it is not
installed the provider reports itself unavailable and the generator
falls back.
"""

from __future__ import annotations

import asyncio

import structlog

from docvec.interfaces.embedding_provider import IEmbeddingProvider
from docvec.utils.errors import ProviderUnavailableError

logger = structlog.get_logger(logger_name=__name__)

_BATCH_LIMIT = 64


class FastEmbedEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by fastembed.

    The ONNX model is loaded on first use; the first run downloads the
    weights into fastembed's cache directory.
    """

    def __init__(self, model: str = "BAAI/bge-small-en-v1.5", dimension: int = 384) -> None:
        self._model_name = model
        self._dimension = dimension
        self._model = None  # Lazy-loaded

    def _load_model(self) -> None:
        if self._model is not None:
            return
        try:
            from fastembed import TextEmbedding

            logger.info("loading_fastembed_model", model=self._model_name)
            self._model = TextEmbedding(model_name=self._model_name)
        except (ImportError, ValueError, OSError, RuntimeError) as exc:
            raise ProviderUnavailableError(
                message=f"Failed to load fastembed model '{self._model_name}': {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def _embed_sync(self, texts: list[str]) -> list[list[float]]:
        self._load_model()
        all_embeddings: list[list[float]] = []
        for start in range(0, len(texts), _BATCH_LIMIT):
            batch = texts[start : start + _BATCH_LIMIT]
            # fastembed yields numpy arrays lazily.
            all_embeddings.extend(v.tolist() for v in self._model.embed(batch))
        return all_embeddings

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            return await asyncio.to_thread(self._embed_sync, texts)
        except ProviderUnavailableError:
            raise
        except (ValueError, RuntimeError, OSError) as exc:
            raise ProviderUnavailableError(
                message=f"fastembed embedding error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def embed_single(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "fastembed"

    def is_available(self) -> bool:
        """Return ``True`` if fastembed is installed."""
        try:
            import fastembed  # noqa: F401

            return True
        except ImportError:
            return False
