"""Deterministic feature-hashing embedding provider.

Used as the fallback when a real provider is unavailable, and as a
zero-dependency model for tests and offline use.  Each lower-cased word
is hashed (SHA-256, salted with the configured seed) to a bucket and a
sign; the bucket counts form the vector.  Texts with shared words
therefore land near each other, and the same text always maps to the same
vector across processes and machines.
"""

from __future__ import annotations

import hashlib
import re

import numpy as np

from docvec.interfaces.embedding_provider import IEmbeddingProvider
from docvec.utils.similarity import l2_normalize

_TOKEN = re.compile(r"\w+")


class HashEmbeddingProvider(IEmbeddingProvider):
    """Embeds text without any model or network access."""

    def __init__(self, dimension: int = 384, seed: int = 0) -> None:
        self._dimension = dimension
        self._seed = seed

    def _digest(self, value: str) -> bytes:
        return hashlib.sha256(f"{self._seed}:{value}".encode("utf-8")).digest()

    def embed_text(self, text: str) -> list[float]:
        vector = np.zeros(self._dimension, dtype=np.float64)
        for token in _TOKEN.findall(text.lower()):
            digest = self._digest(token)
            bucket = int.from_bytes(digest[:8], "big") % self._dimension
            vector[bucket] += 1.0 if digest[8] & 1 else -1.0

        if not vector.any():
            # No words (or they cancelled out): derive a vector from the raw text.
            rng = np.random.default_rng(int.from_bytes(self._digest(text)[:8], "big"))
            vector = rng.standard_normal(self._dimension)
        return l2_normalize(vector)

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [self.embed_text(text) for text in texts]

    async def embed_single(self, text: str) -> list[float]:
        return self.embed_text(text)

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "hash"

    def is_available(self) -> bool:
        return True
