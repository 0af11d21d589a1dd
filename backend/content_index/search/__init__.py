"""
Search package — hybrid ranking over cached content.

  similarity.py  prefix-truncated cosine similarity
  keyword.py     literal phrase / token scoring with filename fallback
  ranker.py      HybridRanker producing independent semantic and keyword lists
"""

from content_index.search.keyword import KeywordScorer, tokenize_query
from content_index.search.ranker import Candidate, HybridRanker
from content_index.search.similarity import cosine_similarity

__all__ = [
    "Candidate",
    "HybridRanker",
    "KeywordScorer",
    "cosine_similarity",
    "tokenize_query",
]
