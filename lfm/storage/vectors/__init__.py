"""
LFM Vector Utilities
====================

Similarity between embedding vectors.

Example:
    from lfm.storage.vectors import cosine_similarity

    score = cosine_similarity(query_vector, case_vector)
"""

from lfm.storage.vectors.similarity import cosine_similarity, safe_cosine_similarity

__all__ = [
    "cosine_similarity",
    "safe_cosine_similarity",
]
