"""Derives metadata and text statistics from extracted document text.

Everything here is a heuristic and nothing here fails: empty or odd
input yields zeroed statistics and an ``"unknown"`` language.  The
functions are deterministic, so analyzing the same text twice gives
identical results.

Readability follows Flesch Reading Ease::

    206.835 - 1.015 * (words / sentences) - 84.6 * (syllables / words)

clamped to ``[0, 100]``.  Syllables are approximated by vowel groups.
"""

from __future__ import annotations

import re
from typing import Any

import structlog

from docvec.models.document import DocumentMetadata, DocumentStatistics, DocumentType
from docvec.utils.text import count_syllables, looks_like_code, split_paragraphs, split_sentences, split_words

logger = structlog.get_logger(logger_name=__name__)

_LANGUAGE_SAMPLE_WORDS = 100

# Most frequent function words per language.  Order decides ties.
_STOP_WORDS: dict[str, frozenset[str]] = {
    "en": frozenset({"the", "and", "is", "in", "to", "of", "a", "that", "it", "with", "for", "on", "as", "are", "was", "this", "be", "by"}),
    "es": frozenset({"el", "la", "de", "que", "y", "en", "los", "las", "del", "se", "por", "un", "una", "con", "para", "es"}),
    "fr": frozenset({"le", "la", "les", "de", "des", "et", "est", "un", "une", "du", "en", "que", "qui", "dans", "pour", "pas"}),
    "de": frozenset({"der", "die", "das", "und", "ist", "nicht", "ein", "eine", "zu", "den", "mit", "von", "sich", "des", "auf", "dem"}),
    "pt": frozenset({"o", "a", "os", "as", "de", "que", "e", "do", "da", "em", "um", "uma", "para", "com", "não", "dos"}),
    "it": frozenset({"il", "la", "di", "che", "e", "è", "un", "una", "per", "non", "gli", "le", "del", "della", "con", "sono"}),
}

_TECHNICAL_TAGS = ("api", "database", "function", "class", "method", "variable")
_COMPLEXITY_TERMS = ("algorithm", "implementation", "optimization", "architecture")
_LONG_SENTENCE_WORDS = 20

_HASHTAG = re.compile(r"#(\w+)")
_WORD_CHARS = re.compile(r"[^\w']+")


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


class DocumentAnalyzer:
    """Computes :class:`DocumentMetadata` and :class:`DocumentStatistics`.

    Parameters
    ----------
    language_confidence_floor:
        Minimum stop-word ratio for a language to be reported; below it
        the language is ``"unknown"``.
    """

    def __init__(self, language_confidence_floor: float = 0.1) -> None:
        self._floor = language_confidence_floor

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def analyze(
        self,
        text: str,
        file_name: str = "",
        file_size: int = 0,
        document_type: DocumentType | None = None,
        custom: dict[str, Any] | None = None,
        detect_language: bool = True,
    ) -> tuple[DocumentMetadata, DocumentStatistics]:
        """Return metadata and statistics for *text*."""
        language, confidence = self.detect_language(text) if detect_language else ("unknown", 0.0)
        statistics = self.statistics(text, language_confidence=confidence)
        metadata = DocumentMetadata(
            file_name=file_name,
            file_size=file_size,
            mime_type=document_type.mime_type if document_type else "text/plain",
            document_type=document_type,
            language=language,
            word_count=statistics.word_count,
            character_count=len(text),
            tags=self.extract_tags(text),
            custom=dict(custom or {}),
        )
        logger.debug(
            "document_analyzed",
            file=file_name,
            language=language,
            words=statistics.word_count,
            readability=statistics.readability_score,
        )
        return metadata, statistics

    def detect_language(self, text: str) -> tuple[str, float]:
        """Guess the language from stop-word overlap in the first 100 words.

        Returns
        -------
        tuple[str, float]
            An ISO 639-1 tag (or ``"unknown"``) and the winning overlap ratio.
        """
        sample = [
            w for w in (_WORD_CHARS.sub("", word.lower()) for word in split_words(text)[:_LANGUAGE_SAMPLE_WORDS]) if w
        ]
        if not sample:
            return "unknown", 0.0

        best_language, best_ratio = "unknown", 0.0
        for language, stop_words in _STOP_WORDS.items():
            ratio = sum(1 for w in sample if w in stop_words) / len(sample)
            if ratio > best_ratio:
                best_language, best_ratio = language, ratio

        if best_ratio < self._floor:
            return "unknown", round(best_ratio, 4)
        return best_language, round(best_ratio, 4)

    @staticmethod
    def extract_tags(text: str) -> list[str]:
        """Hashtags plus recognized technical terms, lower-cased, first-seen order."""
        lowered = text.lower()
        tags = [match.lower() for match in _HASHTAG.findall(text)]
        tags.extend(term for term in _TECHNICAL_TAGS if re.search(rf"\b{term}\b", lowered))
        return list(dict.fromkeys(tags))

    def statistics(self, text: str, language_confidence: float = 0.0) -> DocumentStatistics:
        words = split_words(text)
        if not words:
            return DocumentStatistics(language_confidence=language_confidence)

        sentences = split_sentences(text)
        paragraphs = split_paragraphs(text)
        sentence_count = max(1, len(sentences))
        average_words = len(words) / sentence_count
        average_syllables = sum(count_syllables(w) for w in words) / len(words)

        readability = _clamp(206.835 - 1.015 * average_words - 84.6 * average_syllables)

        return DocumentStatistics(
            word_count=len(words),
            sentence_count=len(sentences),
            paragraph_count=len(paragraphs),
            average_words_per_sentence=round(average_words, 2),
            readability_score=round(readability, 2),
            complexity_score=self._complexity(text, sentences),
            language_confidence=language_confidence,
        )

    @staticmethod
    def _complexity(text: str, sentences: list[str]) -> float:
        lowered = text.lower()
        score = 10.0 * sum(1 for term in _COMPLEXITY_TERMS if term in lowered)
        if looks_like_code(text):
            score += 20.0
        score += 5.0 * sum(1 for s in sentences if len(split_words(s)) > _LONG_SENTENCE_WORDS)
        return _clamp(score)
