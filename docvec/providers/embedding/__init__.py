"""Embedding provider adapters."""

from docvec.providers.embedding.fastembed_embedding_provider import FastEmbedEmbeddingProvider
from docvec.providers.embedding.hash_embedding_provider import HashEmbeddingProvider
from docvec.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from docvec.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = [
    "FastEmbedEmbeddingProvider",
    "HashEmbeddingProvider",
    "OllamaEmbeddingProvider",
    "OpenAIEmbeddingProvider",
]
