"""Word, sentence and code-likelihood helpers used by chunking and analysis."""

from __future__ import annotations

import math
import re

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
_VOWEL_GROUPS = re.compile(r"[aeiouy]+")
_SPACE_RUNS = re.compile(r"[ \t\f\v]+")
_BLANK_RUNS = re.compile(r"\n\s*\n(\s*\n)*")

# Structural signals of source code.  Keywords only count when followed by
# code syntax so ordinary prose ("if you", "for example") does not trip them.
_CODE_PATTERNS = (
    re.compile(r"[{}]"),
    re.compile(r"=>|==|!=|:=|\+=|-=|&&|\|\|"),
    re.compile(r"\w+\([^()]*\)\s*;"),
    re.compile(r"\b(?:if|for|while|switch|catch)\s*\("),
    re.compile(r"\b(?:def|function|func|fn)\s+\w+\s*\("),
    re.compile(r"\bclass\s+\w+\s*[:({]"),
    re.compile(r"^\s*(?:import\s+[\w.]+|from\s+[\w.]+\s+import\b|#include\s*[<\"])", re.MULTILINE),
    re.compile(r"\b(?:const|let|var)\s+\w+\s*="),
    re.compile(r"\breturn\b[^.\n]*;"),
)

# Words-to-tokens ratio shared by the chunker and the embedding length check.
TOKENS_PER_WORD = 0.75


def split_words(text: str) -> list[str]:
    """Split on any run of whitespace."""
    return text.split()


def estimate_tokens(word_count: int) -> int:
    return math.ceil(word_count * TOKENS_PER_WORD)


def words_for_tokens(max_tokens: int) -> int:
    """Largest word count whose token estimate stays within *max_tokens*."""
    return int(max_tokens / TOKENS_PER_WORD)


def split_sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_SPLIT.split(text) if s.strip()]


def split_paragraphs(text: str) -> list[str]:
    return [p.strip() for p in _PARAGRAPH_SPLIT.split(text) if p.strip()]


def count_syllables(word: str) -> int:
    """Estimate syllables as the number of vowel groups, minimum one."""
    return max(1, len(_VOWEL_GROUPS.findall(word.lower())))


def looks_like_code(text: str) -> bool:
    return any(pattern.search(text) for pattern in _CODE_PATTERNS)


def normalize_whitespace(text: str) -> str:
    """Collapse space runs per line and keep at most one blank line between paragraphs."""
    lines = [_SPACE_RUNS.sub(" ", line).strip() for line in text.splitlines()]
    collapsed = _BLANK_RUNS.sub("\n\n", "\n".join(lines))
    return collapsed.strip()
