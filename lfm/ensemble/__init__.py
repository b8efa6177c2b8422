"""
LFM Ensemble
============

Voting over independently registered prediction functions.
"""

from lfm.ensemble.predictor import (
    EnsemblePredictor,
    EnsembleResult,
    MemberPrediction,
    STRATEGIES,
)

__all__ = [
    "EnsemblePredictor",
    "EnsembleResult",
    "MemberPrediction",
    "STRATEGIES",
]
