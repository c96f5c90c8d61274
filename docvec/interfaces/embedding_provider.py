"""Abstract base class for text-embedding service providers.

An embedding provider is an external collaborator: docvec treats it as a
function ``text -> vector`` with a declared dimension.  Length checks,
normalization, timeouts and the deterministic fallback all live in
:class:`~docvec.services.embedding_generator.EmbeddingGenerator`, so
providers stay thin adapters.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations (docvec/providers/embedding/):
#   OpenAIEmbeddingProvider     - text-embedding-3-* via the OpenAI API
#   OllamaEmbeddingProvider     - nomic-embed-text and friends via a local Ollama server
#   FastEmbedEmbeddingProvider  - ONNX models run in-process
#   HashEmbeddingProvider       - deterministic feature hashing, the fallback
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.  Implementations handle
            batching internally if the underlying API has a per-call limit.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.

        Raises
        ------
        docvec.utils.errors.ProviderUnavailableError
            On network errors, rejected credentials or exhausted quota.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"openai"`` or ``"ollama"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and reachable.

        Must not generate an embedding to find out.
        """
