"""
Weight Configuration Models
============================

Pydantic models for every tunable constant of the LFM engine.

Covers:
- Case similarity weights (seven attributes, summing to 1.0)
- Win probability factor weights and the case-type base-rate table
- Confidence calibration search space and recalibration policy
- Ensemble priors and weight adaptation
- Feedback learning and error analysis thresholds
- Base prediction multipliers

Weights can be:
- Loaded from YAML (default)
- Overridden at runtime (without restart)
- Injected per service instance (tests build their own)
"""

from enum import Enum
from typing import Dict, Literal, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator


class WeightCategory(str, Enum):
    """Sections of the engine weight configuration."""
    SIMILARITY = "similarity"
    WIN_PROBABILITY = "win_probability"
    CALIBRATION = "calibration"
    ENSEMBLE = "ensemble"
    FEEDBACK = "feedback"
    ERROR_ANALYSIS = "error_analysis"
    BASE_PREDICTION = "base_prediction"


def _check_bounds(v: Tuple[float, float]) -> Tuple[float, float]:
    low, high = v
    if low >= high:
        raise ValueError(f"lower bound {low} must be below upper bound {high}")
    return v


class SimilarityWeights(BaseModel):
    """
    Weights of the multi-attribute case similarity score.

    Weights are not renormalised when attributes are missing, so a
    record without description or outcome cannot reach 100.

    empty_sets_match=True scores two empty attribute sets as full overlap,
    where the plain ratio |A & B| / max(|A|, |B|, 1) gives 0. With False,
    records sharing no articles, Seven Tests or procedural issues lose up
    to 37 points, so sparse but identical records never reach 90.
    """
    case_type: float = Field(default=0.25, ge=0.0, le=1.0)
    violation_type: float = Field(default=0.20, ge=0.0, le=1.0)
    contract_articles: float = Field(default=0.15, ge=0.0, le=1.0)
    just_cause_tests: float = Field(default=0.12, ge=0.0, le=1.0)
    procedural_issues: float = Field(default=0.10, ge=0.0, le=1.0)
    description: float = Field(default=0.10, ge=0.0, le=1.0)
    outcome: float = Field(default=0.08, ge=0.0, le=1.0)

    jaccard_share: float = Field(default=0.6, ge=0.0, le=1.0, description="Jaccard share of text similarity")
    min_word_length: int = Field(default=3, ge=1, description="Shorter words are excluded from Jaccard sets")
    empty_sets_match: bool = Field(
        default=True,
        description="Two empty attribute sets count as full overlap instead of zero",
    )

    @model_validator(mode="after")
    def weights_sum_to_one(self) -> "SimilarityWeights":
        total = sum(self.as_dict().values())
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"similarity weights must sum to 1.0, got {total:.4f}")
        return self

    def as_dict(self) -> Dict[str, float]:
        """Attribute weights only."""
        return {
            "case_type": self.case_type,
            "violation_type": self.violation_type,
            "contract_articles": self.contract_articles,
            "just_cause_tests": self.just_cause_tests,
            "procedural_issues": self.procedural_issues,
            "description": self.description,
            "outcome": self.outcome,
        }


class WinProbabilityWeights(BaseModel):
    """
    Factor weights and constants of the win probability estimate.

    The evidence factor is a configured constant, not a computed signal.
    """
    similar_cases: float = Field(default=0.30, ge=0.0, le=1.0)
    contract_clarity: float = Field(default=0.25, ge=0.0, le=1.0)
    just_cause: float = Field(default=0.20, ge=0.0, le=1.0)
    evidence: float = Field(default=0.15, ge=0.0, le=1.0)
    case_type_base_rate: float = Field(default=0.10, ge=0.0, le=1.0)

    contract_neutral_score: float = Field(default=50.0, ge=0.0, le=100.0)
    contract_step: float = Field(default=10.0, ge=0.0)
    contract_cap: float = Field(default=90.0, ge=0.0, le=100.0)
    evidence_placeholder_score: float = Field(default=60.0, ge=0.0, le=100.0)
    default_percentage: int = Field(default=50, ge=0, le=100)

    high_confidence_weight: float = Field(default=0.8, ge=0.0)
    medium_confidence_weight: float = Field(default=0.5, ge=0.0)

    base_rates: Dict[str, float] = Field(
        default_factory=lambda: {
            "termination": 65.0,
            "suspension": 70.0,
            "discipline": 75.0,
            "contract": 80.0,
            "contract_violation": 80.0,
            "overtime": 85.0,
            "seniority": 75.0,
        }
    )
    default_base_rate: float = Field(default=50.0, ge=0.0, le=100.0)

    @field_validator("base_rates")
    @classmethod
    def rates_are_percentages(cls, v: Dict[str, float]) -> Dict[str, float]:
        for key, rate in v.items():
            if not 0.0 <= rate <= 100.0:
                raise ValueError(f"base rate for {key} must be within [0, 100], got {rate}")
        return v

    @model_validator(mode="after")
    def tiers_are_ordered(self) -> "WinProbabilityWeights":
        if self.medium_confidence_weight > self.high_confidence_weight:
            raise ValueError("medium_confidence_weight must not exceed high_confidence_weight")
        return self


class CalibrationSettings(BaseModel):
    """
    Search space and recalibration policy for confidence calibration.

    recalibration_mode:
        drop: recalibrate when accuracy fell by more than the threshold
              from the accuracy recorded at calibration time
        floor: recalibrate when accuracy is below the threshold itself
    """
    temperature_min: float = Field(default=0.1, gt=0.0)
    temperature_max: float = Field(default=2.0, gt=0.0)
    temperature_step: float = Field(default=0.1, gt=0.0)
    nll_clip: Tuple[float, float] = Field(default=(0.001, 0.999))

    platt_learning_rate: float = Field(default=0.01, gt=0.0)
    platt_epochs: int = Field(default=100, ge=1)

    output_bounds: Tuple[float, float] = Field(default=(0.01, 0.99))
    max_age_days: float = Field(default=30.0, gt=0.0)
    recalibration_threshold: float = Field(default=0.05, ge=0.0, le=1.0)
    recalibration_mode: Literal["drop", "floor"] = "drop"

    @field_validator("nll_clip", "output_bounds")
    @classmethod
    def bounds_are_ordered(cls, v: Tuple[float, float]) -> Tuple[float, float]:
        return _check_bounds(v)

    @model_validator(mode="after")
    def grid_is_ordered(self) -> "CalibrationSettings":
        if self.temperature_min > self.temperature_max:
            raise ValueError("temperature_min must not exceed temperature_max")
        return self


class EnsembleSettings(BaseModel):
    """Voting priors and weight adaptation for the ensemble."""
    outcome_priors: Dict[str, float] = Field(
        default_factory=lambda: {"granted": 0.6, "denied": 0.3, "settled": 0.1}
    )
    default_likelihood: float = Field(default=0.5, ge=0.0, le=1.0)
    default_strategy: str = "weighted"
    history_size: int = Field(default=100, ge=1)
    smoothing_window: int = Field(default=10, ge=1)
    smoothing_factor: float = Field(default=0.1, ge=0.0, le=1.0)
    weight_bounds: Tuple[float, float] = Field(default=(0.1, 2.0))
    underperforming_threshold: float = Field(default=0.7, ge=0.0, le=1.0)

    @field_validator("weight_bounds")
    @classmethod
    def bounds_are_ordered(cls, v: Tuple[float, float]) -> Tuple[float, float]:
        return _check_bounds(v)


class FeedbackSettings(BaseModel):
    """Thresholds for learning from user corrections."""
    min_correction_threshold: int = Field(default=3, ge=1)
    confidence_dampening: float = Field(default=0.1, ge=0.0, le=1.0)
    outcome_override_min_confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    outcome_majority_ratio: float = Field(default=0.6, ge=0.0, le=1.0)
    output_bounds: Tuple[float, float] = Field(default=(0.01, 0.99))
    min_word_length: int = Field(default=4, ge=1, description="Analysis diff keeps words at least this long")
    effectiveness_decay: float = Field(default=0.9, ge=0.0, le=1.0)
    effectiveness_tolerance: float = Field(default=0.1, ge=0.0)

    @field_validator("output_bounds")
    @classmethod
    def bounds_are_ordered(cls, v: Tuple[float, float]) -> Tuple[float, float]:
        return _check_bounds(v)


class ErrorAnalysisSettings(BaseModel):
    """Thresholds for misprediction analysis."""
    min_samples_for_analysis: int = Field(default=10, ge=1)
    common_factor_ratio: float = Field(default=0.5, ge=0.0, le=1.0)
    max_common_factors: int = Field(default=3, ge=1)
    high_error_rate: float = Field(default=0.15, ge=0.0, le=1.0)
    assumed_predictions_per_period: int = Field(default=100, ge=1)
    over_confidence_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    weak_evidence_confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    no_precedent_confidence: float = Field(default=0.6, ge=0.0, le=1.0)
    max_recommendations: int = Field(default=3, ge=1)
    factor_impacts: Dict[str, float] = Field(
        default_factory=lambda: {
            "over_confidence": 0.8,
            "weak_evidence": 0.7,
            "misclassification": 0.6,
            "no_precedent": 0.5,
        }
    )
    default_impact: float = Field(default=0.5, ge=0.0, le=1.0)


class BasePredictionSettings(BaseModel):
    """Multipliers for the heuristic base prediction."""
    base_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    evidence_multipliers: Dict[str, float] = Field(
        default_factory=lambda: {"high": 1.3, "medium": 1.0, "low": 0.7}
    )
    similarity_multiplier_base: float = Field(default=0.8, ge=0.0)
    similarity_multiplier_span: float = Field(default=0.4, ge=0.0)
    confidence_bounds: Tuple[float, float] = Field(default=(0.05, 0.95))
    similar_limit: int = Field(default=3, ge=1)
    min_similarity: float = Field(default=40.0, ge=0.0, le=100.0)
    default_outcome: str = "denied"

    @field_validator("confidence_bounds")
    @classmethod
    def bounds_are_ordered(cls, v: Tuple[float, float]) -> Tuple[float, float]:
        return _check_bounds(v)


class EngineWeights(BaseModel):
    """
    Complete weight configuration of the engine.

    Unifies every section with support for:
    - YAML loading (via WeightStore)
    - Runtime overrides
    - Versioning metadata
    """
    version: str = Field(default="1.0")
    schema_version: str = Field(default="1.0")

    similarity: SimilarityWeights = Field(default_factory=SimilarityWeights)
    win_probability: WinProbabilityWeights = Field(default_factory=WinProbabilityWeights)
    calibration: CalibrationSettings = Field(default_factory=CalibrationSettings)
    ensemble: EnsembleSettings = Field(default_factory=EnsembleSettings)
    feedback: FeedbackSettings = Field(default_factory=FeedbackSettings)
    error_analysis: ErrorAnalysisSettings = Field(default_factory=ErrorAnalysisSettings)
    base_prediction: BasePredictionSettings = Field(default_factory=BasePredictionSettings)

    # Metadata
    updated_at: Optional[str] = Field(default=None)
