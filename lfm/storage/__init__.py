"""
Storage Layer
=============

In-memory storage used by the engine.

Components:
- vectors/: cosine similarity between embeddings
- cache: TTL/LRU caches, semantic cache, cache registry
- corpus: stored precedents
- retriever/: feature ranking and provider-aware embedding search

Architecture:
    grievance text -> features ----------> rank_similar_cases -> RankedCase
                 \\-> embed (cached) ----> EmbeddingCaseRetriever -> EmbeddingMatch
"""

from lfm.storage.cache import TTLCache, SemanticCache, SemanticHit, CacheRegistry
from lfm.storage.corpus import CaseCorpus
from lfm.storage.retriever import (
    rank_similar_cases,
    EmbeddingCaseRetriever,
    EmbeddingMatch,
    EmbeddingResult,
)
from lfm.storage.vectors import cosine_similarity, safe_cosine_similarity

__all__ = [
    # Cache
    "TTLCache",
    "SemanticCache",
    "SemanticHit",
    "CacheRegistry",
    # Corpus
    "CaseCorpus",
    # Retriever
    "rank_similar_cases",
    "EmbeddingCaseRetriever",
    "EmbeddingMatch",
    "EmbeddingResult",
    # Vectors
    "cosine_similarity",
    "safe_cosine_similarity",
]
