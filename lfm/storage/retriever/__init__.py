"""
Case retrieval: feature ranking and provider-aware embedding search.
"""

from lfm.storage.retriever.cases import (
    rank_similar_cases,
    EmbeddingCaseRetriever,
    EmbeddingMatch,
    EmbeddingResult,
)

__all__ = [
    "rank_similar_cases",
    "EmbeddingCaseRetriever",
    "EmbeddingMatch",
    "EmbeddingResult",
]
