"""
Ensemble Predictor
===================

Combines predictions from independently registered models.

The EnsemblePredictor:
1. Fans the grievance text out to every registered model concurrently
2. Drops members that fail or exceed the per-member timeout
3. Combines the survivors with a voting strategy
4. Adapts model weights from observed accuracy

Voting strategies:
- majority: most votes; confidence = votes / voters
- weighted: sum(model weight * confidence) per outcome / total model weight
- confidence: like weighted, with each prediction's confidence as its weight
- bayesian: fixed outcome priors times the average per-outcome likelihood,
  normalised to a posterior distribution

Ties go to the outcome seen first.

Example:
    >>> ensemble = EnsemblePredictor()
    >>> ensemble.add_model("strict", strict_model)
    >>> ensemble.add_model("lenient", lenient_model, weight=0.8)
    >>> result = await ensemble.predict_ensemble("Fired without warning", strategy="majority")
    >>> print(result.outcome, result.confidence)
"""

import asyncio
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Deque, Dict, List, Mapping, Optional, Tuple

import structlog

from lfm.exceptions import ModelNotRegistered, NoModelsAvailable, UnknownVotingStrategy
from lfm.models import clamp
from lfm.weights.config import EnsembleSettings

log = structlog.get_logger()

ModelFn = Callable[[str], Awaitable[Any]]

STRATEGIES = ("majority", "weighted", "confidence", "bayesian")


@dataclass
class MemberPrediction:
    """Normalised output of one ensemble member."""
    model_id: str
    outcome: str
    confidence: float
    raw: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"model_id": self.model_id, "outcome": self.outcome, "confidence": self.confidence}


@dataclass
class EnsembleResult:
    """
    Combined ensemble prediction.

    Attributes:
        outcome: Winning outcome
        confidence: Combined confidence in [0, 1]
        method: Voting method that produced the result
        strategy: Strategy requested by the caller
        individual_predictions: Member predictions that took part in the vote
        ensemble_size: Number of voters
        failed_models: Members that raised or timed out
        posteriors: Posterior distribution (bayesian only)
    """
    outcome: str
    confidence: float
    method: str
    strategy: str
    individual_predictions: List[MemberPrediction] = field(default_factory=list)
    ensemble_size: int = 0
    failed_models: List[str] = field(default_factory=list)
    posteriors: Optional[Dict[str, float]] = None

    def __post_init__(self):
        self.confidence = clamp(self.confidence, 0.0, 1.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome,
            "confidence": self.confidence,
            "method": self.method,
            "strategy": self.strategy,
            "individual_predictions": [p.to_dict() for p in self.individual_predictions],
            "ensemble_size": self.ensemble_size,
            "failed_models": list(self.failed_models),
            "posteriors": dict(self.posteriors) if self.posteriors is not None else None,
        }


@dataclass
class PerformanceRecord:
    accuracy: float
    confidence: Optional[float]
    timestamp: datetime


def _argmax_first(scores: Mapping[str, float]) -> Tuple[str, float]:
    """Highest-scoring key; the earliest key wins ties."""
    best_key, best_score = None, 0.0
    for key, score in scores.items():
        if best_key is None or score > best_score:
            best_key, best_score = key, score
    return best_key, best_score


class EnsemblePredictor:
    """
    Ensemble of async prediction functions with adaptive weights.

    Each member is an async callable (text) -> {"outcome", "confidence"}
    (a mapping or an object with those attributes).

    Attributes:
        settings: EnsembleSettings (priors, history, smoothing, weight bounds)
        member_timeout: Seconds allowed per member call
    """

    def __init__(
        self,
        settings: Optional[EnsembleSettings] = None,
        member_timeout: float = 30.0,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings or EnsembleSettings()
        self.member_timeout = member_timeout
        self._now = now
        self._models: Dict[str, ModelFn] = {}
        self._weights: Dict[str, float] = {}
        self._history: Dict[str, Deque[PerformanceRecord]] = {}

        self._voters = {
            "majority": self._majority_vote,
            "weighted": self._weighted_vote,
            "confidence": self._confidence_vote,
            "bayesian": self._bayesian_vote,
        }

    # ---- Registry ----

    def add_model(self, model_id: str, fn: ModelFn, weight: float = 1.0) -> None:
        """Register (or replace) a member."""
        self._models[model_id] = fn
        self._weights[model_id] = float(weight)
        self._history[model_id] = deque(maxlen=self.settings.history_size)
        log.info("Ensemble model added", model_id=model_id, weight=weight)

    def remove_model(self, model_id: str) -> bool:
        removed = self._models.pop(model_id, None) is not None
        self._weights.pop(model_id, None)
        self._history.pop(model_id, None)
        if removed:
            log.info("Ensemble model removed", model_id=model_id)
        return removed

    @property
    def models(self) -> Mapping[str, ModelFn]:
        return MappingProxyType(self._models)

    @property
    def weights(self) -> Dict[str, float]:
        return dict(self._weights)

    # ---- Prediction ----

    @staticmethod
    def _normalize(model_id: str, raw: Any) -> MemberPrediction:
        if isinstance(raw, Mapping):
            outcome, confidence = raw.get("outcome"), raw.get("confidence")
        else:
            outcome, confidence = getattr(raw, "outcome", None), getattr(raw, "confidence", None)
        if outcome is None:
            raise ValueError("prediction has no outcome")
        outcome = str(getattr(outcome, "value", outcome)).lower()
        return MemberPrediction(model_id=model_id, outcome=outcome, confidence=clamp(confidence, 0.0, 1.0), raw=raw)

    async def _run_member(self, model_id: str, fn: ModelFn, text: str) -> Optional[MemberPrediction]:
        try:
            raw = await asyncio.wait_for(fn(text), timeout=self.member_timeout)
            return self._normalize(model_id, raw)
        except asyncio.TimeoutError:
            log.warning("Ensemble model timed out", model_id=model_id, timeout=self.member_timeout)
        except Exception as e:
            log.warning("Ensemble model failed", model_id=model_id, error=str(e))
        return None

    async def predict_ensemble(self, text: str, strategy: str = "weighted") -> EnsembleResult:
        """
        Predict with every registered model and combine the results.

        Args:
            text: Grievance text
            strategy: "majority", "weighted", "confidence" or "bayesian"

        Raises:
            UnknownVotingStrategy: Before any model is called
            NoModelsAvailable: When no member produced a prediction
        """
        voter = self._voters.get(strategy)
        if voter is None:
            raise UnknownVotingStrategy(strategy)

        members = list(self._models.items())
        results = await asyncio.gather(*(self._run_member(mid, fn, text) for mid, fn in members))

        predictions = [r for r in results if r is not None]
        failed = [mid for (mid, _), r in zip(members, results) if r is None]
        if not predictions:
            raise NoModelsAvailable(f"No models available for ensemble prediction ({len(members)} registered)")

        outcome, confidence, posteriors = voter(predictions)
        result = EnsembleResult(
            outcome=outcome,
            confidence=confidence,
            method=strategy,
            strategy=strategy,
            individual_predictions=predictions,
            ensemble_size=len(predictions),
            failed_models=failed,
            posteriors=posteriors,
        )
        log.debug(
            "Ensemble prediction",
            strategy=strategy,
            outcome=result.outcome,
            confidence=round(result.confidence, 4),
            voters=result.ensemble_size,
            failed=len(failed),
        )
        return result

    # ---- Voting ----

    def _majority_vote(self, predictions: List[MemberPrediction]):
        counts: Dict[str, float] = {}
        for p in predictions:
            counts[p.outcome] = counts.get(p.outcome, 0) + 1
        outcome, votes = _argmax_first(counts)
        return outcome, votes / len(predictions), None

    def _weighted_vote(self, predictions: List[MemberPrediction]):
        scores: Dict[str, float] = {}
        total_weight = 0.0
        for p in predictions:
            weight = self._weights.get(p.model_id, 1.0)
            scores[p.outcome] = scores.get(p.outcome, 0.0) + weight * p.confidence
            total_weight += weight
        outcome, best = _argmax_first(scores)
        return outcome, (best / total_weight if total_weight > 0 else 0.0), None

    def _confidence_vote(self, predictions: List[MemberPrediction]):
        scores: Dict[str, float] = {}
        total = 0.0
        for p in predictions:
            scores[p.outcome] = scores.get(p.outcome, 0.0) + p.confidence
            total += p.confidence
        outcome, best = _argmax_first(scores)
        return outcome, (best / total if total > 0 else 0.0), None

    def _bayesian_vote(self, predictions: List[MemberPrediction]):
        priors = self.settings.outcome_priors
        likelihoods: Dict[str, List[float]] = {}
        for p in predictions:
            likelihoods.setdefault(p.outcome, []).append(p.confidence)

        posteriors: Dict[str, float] = {}
        for outcome, prior in priors.items():
            values = likelihoods.get(outcome) or [self.settings.default_likelihood]
            posteriors[outcome] = prior * (sum(values) / len(values))

        total = sum(posteriors.values())
        if total > 0:
            posteriors = {k: v / total for k, v in posteriors.items()}
        outcome, best = _argmax_first(posteriors)
        return outcome, best, posteriors

    # ---- Weight adaptation ----

    def update_weights(self, model_id: str, accuracy: float, confidence: Optional[float] = None) -> float:
        """
        Record an accuracy observation and smooth the model weight.

        new = (1 - f) * old + f * mean(last N accuracies), clamped to weight_bounds

        Returns:
            The new weight
        """
        if model_id not in self._models:
            raise ModelNotRegistered(model_id)

        s = self.settings
        history = self._history[model_id]
        history.append(PerformanceRecord(accuracy=float(accuracy), confidence=confidence, timestamp=self._now()))

        recent = list(history)[-s.smoothing_window:]
        avg_accuracy = sum(r.accuracy for r in recent) / len(recent)
        new_weight = (1.0 - s.smoothing_factor) * self._weights.get(model_id, 1.0) + s.smoothing_factor * avg_accuracy

        low, high = s.weight_bounds
        self._weights[model_id] = max(low, min(high, new_weight))
        return self._weights[model_id]

    def history_for(self, model_id: str) -> List[PerformanceRecord]:
        return list(self._history.get(model_id, ()))

    def underperforming_models(self, threshold: Optional[float] = None, min_history: int = 10) -> List[str]:
        """Models whose average recorded accuracy is below threshold."""
        threshold = self.settings.underperforming_threshold if threshold is None else threshold
        flagged = []
        for model_id, history in self._history.items():
            if len(history) < min_history:
                continue
            if sum(r.accuracy for r in history) / len(history) < threshold:
                flagged.append(model_id)
        return flagged

    def get_ensemble_stats(self) -> Dict[str, Any]:
        summary = {}
        for model_id, history in self._history.items():
            if history:
                summary[model_id] = {
                    "average_accuracy": round(sum(r.accuracy for r in history) / len(history), 2),
                    "average_confidence": round(sum(r.confidence or 0.0 for r in history) / len(history), 2),
                    "total_predictions": len(history),
                }
        return {
            "total_models": len(self._models),
            "active_models": list(self._models),
            "weights": self.weights,
            "performance_summary": summary,
        }
