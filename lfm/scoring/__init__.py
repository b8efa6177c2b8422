"""
LFM Scoring
===========

Case similarity and win probability.

Components:
- CaseSimilarityScorer: weighted multi-attribute similarity (0-100)
- WinProbabilityEstimator: bounded multi-factor win probability
"""

from lfm.scoring.similarity import CaseSimilarityScorer, levenshtein
from lfm.scoring.win_probability import WinProbabilityEstimator

__all__ = [
    "CaseSimilarityScorer",
    "WinProbabilityEstimator",
    "levenshtein",
]
