"""
LFM Weight Management
=====================

Centralised configuration of every tunable constant in the engine.

Supports:
- Case similarity attribute weights
- Win probability factor weights and base rates
- Calibration, ensemble, feedback and error-analysis thresholds

All weights are:
1. Configurable via YAML (default)
2. Overridable at runtime (without restart)
3. Injectable per service instance

Example:
    >>> from lfm.weights import WeightStore
    >>>
    >>> store = WeightStore()
    >>> weights = store.get_weights()
    >>> print(weights.win_probability.similar_cases)
    0.3
"""

from lfm.weights.config import (
    EngineWeights,
    WeightCategory,
    SimilarityWeights,
    WinProbabilityWeights,
    CalibrationSettings,
    EnsembleSettings,
    FeedbackSettings,
    ErrorAnalysisSettings,
    BasePredictionSettings,
)
from lfm.weights.store import (
    WeightStore,
    get_weight_store,
)

__all__ = [
    # Config models
    "EngineWeights",
    "WeightCategory",
    "SimilarityWeights",
    "WinProbabilityWeights",
    "CalibrationSettings",
    "EnsembleSettings",
    "FeedbackSettings",
    "ErrorAnalysisSettings",
    "BasePredictionSettings",
    # Store
    "WeightStore",
    "get_weight_store",
]
