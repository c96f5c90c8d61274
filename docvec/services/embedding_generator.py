"""Uniform embedding front end over the configured providers.

Responsibilities that every provider shares live here rather than in the
adapters:

1. **Model registry** -- each model declares its provider, output
   dimension and maximum input tokens.
2. **Length policy** -- over-long input raises :class:`InputTooLongError`
   unless the caller asks for truncation.
3. **Timeouts and fallback** -- a provider call that fails with
   :class:`ProviderUnavailableError` or exceeds the timeout is logged and
   answered by the deterministic :class:`HashEmbeddingProvider` at the
   model's dimension.  Only a failing fallback reaches the caller.
4. **Normalization** -- every returned vector has unit L2 norm, so cosine
   similarity downstream is a plain dot product.
5. **Query cache** -- single-text embeddings from the real provider are
   kept in a ``TTLCache``.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass

import structlog
from cachetools import TTLCache

from docvec.interfaces.embedding_provider import IEmbeddingProvider
from docvec.models.vector import EmbeddingResult
from docvec.providers.embedding.hash_embedding_provider import HashEmbeddingProvider
from docvec.utils.concurrency import throttled_gather
from docvec.utils.errors import (
    ConfigurationError,
    DimensionMismatchError,
    DocVecError,
    InputTooLongError,
    ProviderUnavailableError,
)
from docvec.utils.similarity import l2_normalize
from docvec.utils.text import estimate_tokens, split_words, words_for_tokens

logger = structlog.get_logger(logger_name=__name__)


@dataclass(frozen=True)
class EmbeddingModelSpec:
    """Static description of an embedding model."""

    name: str
    provider: str
    dimension: int
    max_tokens: int


BUILTIN_MODELS: tuple[EmbeddingModelSpec, ...] = (
    EmbeddingModelSpec("text-embedding-3-small", "openai", 1536, 8191),
    EmbeddingModelSpec("text-embedding-3-large", "openai", 3072, 8191),
    EmbeddingModelSpec("text-embedding-ada-002", "openai", 1536, 8191),
    EmbeddingModelSpec("nomic-embed-text", "ollama", 768, 8192),
    EmbeddingModelSpec("sentence-transformers/all-MiniLM-L6-v2", "fastembed", 384, 256),
    EmbeddingModelSpec("BAAI/bge-small-en-v1.5", "fastembed", 384, 512),
)


class EmbeddingGenerator:
    """Embeds text through a registered model, with fallback and normalization.

    Parameters
    ----------
    models:
        Model specs keyed by name.
    providers:
        Provider instance per model name.  A model without a provider is
        served by the fallback.
    default_model:
        Model used when a call does not name one.
    timeout_seconds:
        Upper bound on each provider call.
    fallback_seed:
        Salt for the deterministic fallback vectors.
    batch_size, max_concurrent_batches:
        ``embed_batch`` splits its input into batches of ``batch_size``
        and runs at most ``max_concurrent_batches`` provider calls at once.
    cache_size, cache_ttl_seconds:
        Query cache bounds.
    """

    def __init__(
        self,
        models: dict[str, EmbeddingModelSpec],
        providers: dict[str, IEmbeddingProvider],
        default_model: str,
        timeout_seconds: float = 30.0,
        fallback_seed: int = 0,
        batch_size: int = 64,
        max_concurrent_batches: int = 4,
        cache_size: int = 1024,
        cache_ttl_seconds: int = 3600,
    ) -> None:
        if default_model not in models:
            raise ConfigurationError(message=f"Default embedding model {default_model!r} is not registered")
        self._models = dict(models)
        self._providers = dict(providers)
        self._default_model = default_model
        self._timeout = timeout_seconds
        self._fallback_seed = fallback_seed
        self._batch_size = max(1, batch_size)
        self._max_concurrent_batches = max(1, max_concurrent_batches)
        self._fallbacks: dict[int, HashEmbeddingProvider] = {}
        self._cache: TTLCache[tuple[str, str, bool], EmbeddingResult] = TTLCache(
            maxsize=cache_size, ttl=cache_ttl_seconds
        )

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    @property
    def default_model(self) -> str:
        return self._default_model

    def register_model(self, spec: EmbeddingModelSpec, provider: IEmbeddingProvider | None = None) -> None:
        self._models[spec.name] = spec
        if provider is not None:
            self._providers[spec.name] = provider

    def get_model(self, model: str | None = None) -> EmbeddingModelSpec:
        name = model or self._default_model
        try:
            return self._models[name]
        except KeyError:
            raise ConfigurationError(message=f"Unknown embedding model: {name!r}") from None

    def list_models(self) -> list[EmbeddingModelSpec]:
        return list(self._models.values())

    def dimension(self, model: str | None = None) -> int:
        return self.get_model(model).dimension

    def fits(self, text: str, model: str | None = None) -> bool:
        """True when *text* is within the model's input limit."""
        return estimate_tokens(len(split_words(text))) <= self.get_model(model).max_tokens

    # ------------------------------------------------------------------
    # Embedding
    # ------------------------------------------------------------------

    async def embed(self, text: str, model: str | None = None, truncate: bool = False) -> EmbeddingResult:
        """Embed one text (typically a query).

        Raises
        ------
        docvec.utils.errors.InputTooLongError
            If *text* exceeds the model limit and *truncate* is False.
        docvec.utils.errors.ProviderUnavailableError
            Only if the fallback also fails.
        """
        spec = self.get_model(model)
        cache_key = (spec.name, text, truncate)
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.debug("embedding_cache_hit", model=spec.name)
            return cached

        results = await self._embed_group(spec, [text], truncate)
        result = results[0]
        if not result.used_fallback:
            self._cache[cache_key] = result
        return result

    async def embed_batch(
        self, texts: list[str], model: str | None = None, truncate: bool = False
    ) -> list[EmbeddingResult]:
        """Embed many texts, batched per provider call.

        The length check covers the whole input before any provider call,
        so one over-long text fails the call without spending quota.
        """
        spec = self.get_model(model)
        if not texts:
            return []
        for text in texts:
            self._prepare(spec, text, truncate)

        groups = [texts[i : i + self._batch_size] for i in range(0, len(texts), self._batch_size)]
        semaphore = asyncio.Semaphore(self._max_concurrent_batches)
        grouped = await throttled_gather(
            [self._embed_group(spec, group, truncate) for group in groups], semaphore
        )
        return [result for group in grouped for result in group]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _prepare(self, spec: EmbeddingModelSpec, text: str, truncate: bool) -> tuple[str, int, bool]:
        words = split_words(text)
        tokens = estimate_tokens(len(words))
        if tokens <= spec.max_tokens:
            return text, tokens, False
        if not truncate:
            raise InputTooLongError(
                message=(
                    f"Input is ~{tokens} tokens; {spec.name} accepts at most {spec.max_tokens}"
                ),
                provider_name=spec.provider,
                token_estimate=tokens,
                max_tokens=spec.max_tokens,
            )
        kept = words[: words_for_tokens(spec.max_tokens)]
        return " ".join(kept), estimate_tokens(len(kept)), True

    def _fallback(self, dimension: int) -> HashEmbeddingProvider:
        provider = self._fallbacks.get(dimension)
        if provider is None:
            provider = HashEmbeddingProvider(dimension=dimension, seed=self._fallback_seed)
            self._fallbacks[dimension] = provider
        return provider

    async def _call_provider(
        self, spec: EmbeddingModelSpec, texts: list[str]
    ) -> tuple[list[list[float]], str, bool]:
        provider = self._providers.get(spec.name)
        if provider is not None:
            try:
                vectors = await asyncio.wait_for(provider.embed(texts), timeout=self._timeout)
                if len(vectors) != len(texts):
                    raise ProviderUnavailableError(
                        message=f"Provider returned {len(vectors)} vectors for {len(texts)} inputs",
                        provider_name=provider.get_provider_name(),
                    )
                return vectors, provider.get_provider_name(), False
            except ProviderUnavailableError as exc:
                logger.warning(
                    "embedding_provider_unavailable",
                    model=spec.name,
                    provider=provider.get_provider_name(),
                    error=str(exc),
                    fallback="hash",
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "embedding_provider_timeout",
                    model=spec.name,
                    provider=provider.get_provider_name(),
                    timeout_seconds=self._timeout,
                    fallback="hash",
                )
        else:
            logger.debug("embedding_provider_missing", model=spec.name, fallback="hash")

        fallback = self._fallback(spec.dimension)
        try:
            vectors = await fallback.embed(texts)
        except DocVecError as exc:
            raise ProviderUnavailableError(
                message=f"Fallback embedding failed for {spec.name}: {exc}",
                provider_name=fallback.get_provider_name(),
            ) from exc
        return vectors, fallback.get_provider_name(), True

    async def _embed_group(
        self, spec: EmbeddingModelSpec, texts: list[str], truncate: bool
    ) -> list[EmbeddingResult]:
        prepared = [self._prepare(spec, text, truncate) for text in texts]
        started = time.monotonic()
        vectors, provider_name, used_fallback = await self._call_provider(
            spec, [p[0] for p in prepared]
        )
        latency_ms = (time.monotonic() - started) * 1000

        results: list[EmbeddingResult] = []
        for (_, tokens, truncated), values in zip(prepared, vectors):
            if len(values) != spec.dimension:
                raise DimensionMismatchError(
                    message=f"{provider_name} returned {len(values)} dimensions for {spec.name}",
                    provider_name=provider_name,
                    expected=spec.dimension,
                    actual=len(values),
                )
            results.append(
                EmbeddingResult(
                    vector=l2_normalize(values),
                    dimension=spec.dimension,
                    token_estimate=tokens,
                    latency_ms=latency_ms,
                    model=spec.name,
                    provider=provider_name,
                    used_fallback=used_fallback,
                    truncated=truncated,
                )
            )
        return results
