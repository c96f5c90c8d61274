"""Word-window chunking with a fixed overlap.

Splits text on whitespace and emits windows of ``chunk_size`` words whose
starts advance by ``chunk_size - overlap``.  Sizes are word counts; the
token estimate stored on each chunk is informational and never drives the
slicing, so changing the estimator cannot move chunk boundaries.

For 500 words, ``chunk_size=100`` and ``overlap=20`` this yields six
chunks starting at words 0, 80, 160, 240, 320 and 400; the last one ends
at word 499, and every neighbouring pair shares exactly 20 words.
"""

from __future__ import annotations

import structlog

from docvec.models.document import DocumentChunk
from docvec.utils.errors import ConfigurationError
from docvec.utils.text import estimate_tokens, looks_like_code, split_words

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_CHUNK_SIZE = 1000
_DEFAULT_OVERLAP = 200


class TextChunker:
    """Splits text into overlapping word windows.

    Chunking is a pure function of ``(text, chunk_size, overlap)``.  The
    constructor only sets defaults; parameters are validated on every
    :meth:`chunk` call.
    """

    def __init__(self, chunk_size: int = _DEFAULT_CHUNK_SIZE, overlap: int = _DEFAULT_OVERLAP) -> None:
        self._chunk_size = chunk_size
        self._overlap = overlap

    @staticmethod
    def validate(chunk_size: int, overlap: int) -> None:
        """Raise ConfigurationError unless ``0 <= overlap < chunk_size``."""
        if chunk_size <= 0:
            raise ConfigurationError(message=f"chunk_size must be positive, got {chunk_size}")
        if overlap < 0:
            raise ConfigurationError(message=f"overlap must not be negative, got {overlap}")
        if overlap >= chunk_size:
            raise ConfigurationError(
                message=f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})"
            )

    def chunk(
        self,
        text: str,
        document_id: str = "",
        chunk_size: int | None = None,
        overlap: int | None = None,
    ) -> list[DocumentChunk]:
        """Split *text* into chunks.

        Parameters
        ----------
        text:
            Normalized document text.
        document_id:
            Owning document; chunk ids are ``<document_id>_chunk_<index>``.
        chunk_size:
            Words per chunk.  Defaults to the constructor value.
        overlap:
            Words shared by consecutive chunks.  Defaults to the constructor value.

        Returns
        -------
        list[DocumentChunk]
            Chunks in index order; empty for text without words.

        Raises
        ------
        docvec.utils.errors.ConfigurationError
            If ``chunk_size <= 0``, ``overlap < 0`` or ``overlap >= chunk_size``.
        """
        size = self._chunk_size if chunk_size is None else chunk_size
        step_back = self._overlap if overlap is None else overlap
        self.validate(size, step_back)

        words = split_words(text)
        total = len(words)
        chunks: list[DocumentChunk] = []

        start = 0
        while start < total:
            end = min(start + size, total)
            window = words[start:end]
            content = " ".join(window)
            chunks.append(
                DocumentChunk(
                    chunk_id=f"{document_id}_chunk_{len(chunks)}",
                    document_id=document_id,
                    index=len(chunks),
                    content=content,
                    token_count=estimate_tokens(len(window)),
                    character_count=len(content),
                    start_position=start,
                    end_position=end - 1,
                    word_count=len(window),
                    has_code=looks_like_code(content),
                )
            )
            if end == total:
                break
            start = end - step_back

        logger.debug(
            "text_chunked",
            document_id=document_id,
            words=total,
            chunks=len(chunks),
            chunk_size=size,
            overlap=step_back,
        )
        return chunks
