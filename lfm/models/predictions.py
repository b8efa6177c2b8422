"""
Prediction Records
===================

Outputs of the estimation, calibration and ensemble layers.

Confidence values are normalised to [0, 1] when a Prediction is built;
NaN or non-numeric confidence never leaves this module.
"""

import math
from dataclasses import dataclass, field, replace as dc_replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from lfm.models.enums import PredictionSource


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]; NaN maps to the midpoint."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return (low + high) / 2
    if math.isnan(value):
        return (low + high) / 2
    return max(low, min(high, value))


@dataclass
class Prediction:
    """
    A grievance outcome prediction.

    Attributes:
        outcome: Predicted outcome ("granted", "denied", "settled")
        confidence: Probability in [0, 1]
        case_type: Case type the prediction was made for
        similar_cases_found: Number of precedents used
        source: Layer that produced the final value
        analysis: Free-text analysis, if any
        features: Extracted features as a dict
        alternative_outcome: Outcome suggested by learned corrections
        outcome_correction_suggested: Whether alternative_outcome is set
        feedback_applied: Learned adjustment details
        calibration_applied: Calibration details
        ensemble_result: Ensemble vote details
        enhancements_applied: Names of the layers that ran
    """
    outcome: str
    confidence: float
    case_type: str = "general"
    similar_cases_found: int = 0
    source: PredictionSource = PredictionSource.BASE
    analysis: Optional[str] = None
    features: Optional[Dict[str, Any]] = None
    alternative_outcome: Optional[str] = None
    outcome_correction_suggested: bool = False
    feedback_applied: Optional[Dict[str, Any]] = None
    calibration_applied: Optional[Dict[str, Any]] = None
    ensemble_result: Optional[Dict[str, Any]] = None
    enhancements_applied: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.outcome = str(getattr(self.outcome, "value", self.outcome)).lower()
        self.confidence = clamp(self.confidence, 0.0, 1.0)
        self.source = PredictionSource(self.source)

    def replace(self, **changes: Any) -> "Prediction":
        """Copy with fields replaced (confidence is re-clamped)."""
        changes.setdefault("enhancements_applied", list(self.enhancements_applied))
        return dc_replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome,
            "confidence": self.confidence,
            "case_type": self.case_type,
            "similar_cases_found": self.similar_cases_found,
            "source": self.source.value,
            "analysis": self.analysis,
            "features": self.features,
            "alternative_outcome": self.alternative_outcome,
            "outcome_correction_suggested": self.outcome_correction_suggested,
            "feedback_applied": self.feedback_applied,
            "calibration_applied": self.calibration_applied,
            "ensemble_result": self.ensemble_result,
            "enhancements_applied": list(self.enhancements_applied),
        }


@dataclass
class WinProbability:
    """
    Bounded win probability estimate.

    Attributes:
        percentage: Integer in [0, 100]
        confidence: "low", "medium" or "high", by how much factor weight had data
        factors: One formatted score per factor, "N/A" when skipped
        total_weight: Sum of the weights of the factors that contributed
    """
    percentage: int
    confidence: str
    factors: Dict[str, str]
    total_weight: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "percentage": self.percentage,
            "confidence": self.confidence,
            "factors": dict(self.factors),
            "total_weight": round(self.total_weight, 4),
        }


@dataclass
class CalibrationProfile:
    """
    Calibration parameters fitted for one case type.

    Attributes:
        case_type: Case type the profile applies to
        temperature: Positive scaling divisor
        platt_weights: (intercept, slope) of the logistic correction
        last_calibrated: When the profile was fitted
        sample_size: Number of prediction/outcome pairs used
        accuracy: Accuracy of the raw predictions at fit time (threshold 0.5)
    """
    case_type: str
    temperature: float
    platt_weights: Tuple[float, float]
    last_calibrated: datetime
    sample_size: int
    accuracy: Optional[float] = None

    def __post_init__(self):
        if not self.temperature > 0:
            raise ValueError(f"temperature must be positive, got {self.temperature}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "case_type": self.case_type,
            "temperature": self.temperature,
            "platt_weights": list(self.platt_weights),
            "last_calibrated": self.last_calibrated.isoformat(),
            "sample_size": self.sample_size,
            "accuracy": self.accuracy,
        }
