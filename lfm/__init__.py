"""
LFM: Legal Fighting Machine core
================================

Grievance analysis engine: feature extraction, precedent similarity,
win probability, confidence calibration, ensemble voting and learning
from user feedback and actual outcomes.

Quick Start:
    from lfm import AccuracyService
    from lfm.storage import CaseCorpus

    service = AccuracyService(corpus=CaseCorpus.load_json("cases.json"))

    features = service.extract_features("Fired without prior warning")
    ranked = service.rank_similar_cases(features, limit=3, min_score=40)
    prediction = await service.predict_with_enhancements("Fired without prior warning")

Components:
- core: AccuracyService
- features: CaseFeatureExtractor
- scoring: CaseSimilarityScorer, WinProbabilityEstimator
- calibration: ConfidenceCalibrator
- ensemble: EnsemblePredictor
- learning: FeedbackLearner, ErrorAnalyzer, InteractionDataCollector
- storage: TTLCache, SemanticCache, CaseCorpus, EmbeddingCaseRetriever
- weights: EngineWeights, WeightStore
"""

__version__ = "0.1.0"
__author__ = "LFM Team"

# Core API
from lfm.core import AccuracyService

# Convenience exports
from lfm.features import CaseFeatureExtractor, extract_features
from lfm.scoring import CaseSimilarityScorer, WinProbabilityEstimator
from lfm.calibration import ConfidenceCalibrator
from lfm.ensemble import EnsemblePredictor
from lfm.learning import FeedbackLearner, ErrorAnalyzer, InteractionDataCollector
from lfm.weights import EngineWeights, WeightStore

__all__ = [
    # Core
    "AccuracyService",
    # Components
    "CaseFeatureExtractor",
    "extract_features",
    "CaseSimilarityScorer",
    "WinProbabilityEstimator",
    "ConfidenceCalibrator",
    "EnsemblePredictor",
    "FeedbackLearner",
    "ErrorAnalyzer",
    "InteractionDataCollector",
    # Weights
    "EngineWeights",
    "WeightStore",
]
