"""
Keyword Scoring — literal matches in extracted text and display names.

Complements semantic ranking for exact terminology (invoice numbers,
surnames, product codes) that embeddings tend to blur.

Scoring (all weights from Settings, case-insensitive):

  Content
    full query appears as a substring      → score_exact_phrase   (once per document)
    each whole-word token occurrence       → score_whole_word
    each in-word token occurrence          → score_partial_word

  Display name (fallback only: no text, or content score is zero)
    full query appears in the name         → score_exact_filename
    each token appearing in the name       → score_partial_filename

Settings validation guarantees every filename weight is below every content
weight, so a filename-only hit never outranks a content hit.

Tokenizer: lower-case, whitespace split, tokens shorter than 3 characters
dropped, duplicates removed (first occurrence order kept).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from content_index.core.config import Settings
from content_index.schemas.content import ResultSource

MIN_TOKEN_LENGTH = 3


def tokenize_query(query: str) -> list[str]:
    tokens: list[str] = []
    for token in query.lower().split():
        if len(token) >= MIN_TOKEN_LENGTH and token not in tokens:
            tokens.append(token)
    return tokens


def _is_word_char(char: str) -> bool:
    return char.isalnum() or char == "_"


def count_occurrences(token: str, haystack: str) -> tuple[int, int]:
    """
    (whole-word, in-word) occurrence counts of token in haystack.

    Every start position is visited, so overlapping occurrences all count.
    Word boundaries are checked on the neighbouring characters rather than
    with \\b, so tokens with punctuation ("q3-report,") still anchor.
    """
    whole = partial = 0
    for match in re.finditer(f"(?={re.escape(token)})", haystack):
        start, end = match.start(), match.start() + len(token)
        before_is_word = start > 0 and _is_word_char(haystack[start - 1])
        after_is_word = end < len(haystack) and _is_word_char(haystack[end])
        if before_is_word or after_is_word:
            partial += 1
        else:
            whole += 1
    return whole, partial


@dataclass
class KeywordScore:
    score:  float
    source: ResultSource


class KeywordScorer:
    """
    Stateless scorer configured once from Settings.

    Usage:
        scorer = KeywordScorer(settings)
        hit = scorer.score("budget report", text, display_name)
        if hit is not None: hit.score, hit.source
    """

    def __init__(self, settings: Settings) -> None:
        self._exact_phrase     = settings.score_exact_phrase
        self._whole_word       = settings.score_whole_word
        self._partial_word     = settings.score_partial_word
        self._exact_filename   = settings.score_exact_filename
        self._partial_filename = settings.score_partial_filename

    def score(
        self,
        query:        str,
        text:         str,
        display_name: str | None = None,
    ) -> KeywordScore | None:
        """Score one document. Returns None when nothing matched."""
        phrase = query.lower().strip()
        if not phrase:
            return None
        tokens = tokenize_query(phrase)

        content_score = self.content_score(phrase, tokens, text)
        if content_score > 0:
            return KeywordScore(score=content_score, source=ResultSource.CONTENT)

        if display_name:
            name_score = self.filename_score(phrase, tokens, display_name)
            if name_score > 0:
                return KeywordScore(score=name_score, source=ResultSource.FILENAME)
        return None

    def content_score(self, phrase: str, tokens: list[str], text: str) -> float:
        if not text:
            return 0.0
        haystack = text.lower()
        total = 0.0

        if phrase in haystack:
            total += self._exact_phrase

        for token in tokens:
            whole, partial = count_occurrences(token, haystack)
            total += whole * self._whole_word + partial * self._partial_word
        return total

    def filename_score(self, phrase: str, tokens: list[str], display_name: str) -> float:
        name = display_name.lower()
        total = 0.0
        if phrase in name:
            total += self._exact_filename
        for token in tokens:
            if token in name:
                total += self._partial_filename
        return total
