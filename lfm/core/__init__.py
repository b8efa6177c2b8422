"""
LFM Core
========

Orchestration facade over the engine components.
"""

from lfm.core.service import AccuracyService, CachedSimilarityScorer

__all__ = [
    "AccuracyService",
    "CachedSimilarityScorer",
]
