"""
Hybrid Ranker — semantic and keyword relevance, kept as two lists.

  ┌──────────────────────────────────────────────────────────────┐
  │  Query text                                                  │
  │       │                                                      │
  │       ├─────────────────────────────┐                        │
  │       ▼                             ▼                        │
  │  [1] truncate → embed          [3] keyword scoring           │
  │       │        (provider chain)     (content, then filename  │
  │       ▼                              fallback)               │
  │  [2] cosine vs every candidate      │                        │
  │      clamp [0,1], drop < threshold  │                        │
  │       │                             │                        │
  │       ▼                             ▼                        │
  │   semantic list (desc)          keyword list (desc)          │
  └──────────────────────────────────────────────────────────────┘

The lists are returned side by side; deciding how to interleave or cap them
belongs to the caller. The ranker only reads candidates and never mutates
the cache, so it is safe to run concurrently with extraction.

Candidates are supplied by the caller after authorization filtering. The
ranker has no notion of ownership.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from content_index.core.config import Settings
from content_index.processing.embeddings import EmbeddingProviderChain, truncate_for_embedding
from content_index.schemas.content import RankedResult, ResultSource, SearchResults
from content_index.search.keyword import KeywordScorer
from content_index.search.similarity import clamp_unit, cosine_similarity

logger = logging.getLogger(__name__)


@dataclass
class Candidate:
    """One searchable file as seen by the ranker."""
    file_id:      str
    text:         str = ""
    vector:       list[float] = field(default_factory=list)
    display_name: str | None = None


class HybridRanker:
    """
    Scores candidates against a query on two independent axes.

    Usage:
        ranker = HybridRanker(settings, chain)
        results = await ranker.rank("budget report", candidates)
        results.semantic, results.keyword
    """

    def __init__(self, settings: Settings, embedder: EmbeddingProviderChain) -> None:
        self._embedder        = embedder
        self._max_text_length = settings.max_text_length
        self._threshold       = settings.min_similarity_threshold
        self._keyword         = KeywordScorer(settings)

    async def rank(self, query: str, candidates: list[Candidate]) -> SearchResults:
        if not candidates or not query or not query.strip():
            return SearchResults()

        t0 = time.monotonic()
        semantic = await self._semantic(query, candidates)
        keyword = self._keywords(query, candidates)

        logger.info(
            "HybridRanker | candidates=%d semantic=%d keyword=%d elapsed_ms=%.0f",
            len(candidates), len(semantic), len(keyword), (time.monotonic() - t0) * 1000,
        )
        return SearchResults(semantic=semantic, keyword=keyword)

    # ------------------------------------------------------------------
    # Semantic
    # ------------------------------------------------------------------

    async def _semantic(self, query: str, candidates: list[Candidate]) -> list[RankedResult]:
        outcome = await self._embedder.embed(truncate_for_embedding(query, self._max_text_length))
        if not outcome.vector:
            return []

        results: list[RankedResult] = []
        for candidate in candidates:
            if not candidate.vector:
                continue
            score = clamp_unit(cosine_similarity(outcome.vector, candidate.vector))
            if score < self._threshold:
                continue
            results.append(RankedResult(
                file_id=candidate.file_id,
                semantic_score=score,
                source=ResultSource.SEMANTIC,
            ))

        results.sort(key=lambda r: r.semantic_score or 0.0, reverse=True)
        logger.debug(
            "Semantic ranking | query_provider=%s query_dims=%d hits=%d",
            outcome.provider.value, outcome.dimension, len(results),
        )
        return results

    # ------------------------------------------------------------------
    # Keyword
    # ------------------------------------------------------------------

    def _keywords(self, query: str, candidates: list[Candidate]) -> list[RankedResult]:
        results: list[RankedResult] = []
        for candidate in candidates:
            hit = self._keyword.score(query, candidate.text, candidate.display_name)
            if hit is None or hit.score <= 0:
                continue
            results.append(RankedResult(
                file_id=candidate.file_id,
                keyword_score=hit.score,
                source=hit.source,
            ))

        results.sort(key=lambda r: r.keyword_score, reverse=True)
        return results
