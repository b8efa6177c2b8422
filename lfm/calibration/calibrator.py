"""
Confidence Calibrator
======================

Per-case-type post-hoc calibration of raw confidence scores.

Two scalers are fitted from historical (prediction, outcome) pairs:
1. Temperature: grid search over t in [0.1, 2.0] (step 0.1) minimising the
   mean negative log-likelihood of clip(pred / t, 0.001, 0.999)
2. Platt: logistic regression (intercept, slope) by batch gradient descent,
   zero init, fixed learning rate and epochs, fully deterministic

apply() divides by the temperature, then passes the result through the
Platt sigmoid, then clamps to [0.01, 0.99]. Platt weights are fitted on the
raw predictions but applied to temperature-scaled values.

Example:
    >>> calibrator = ConfidenceCalibrator()
    >>> profile = calibrator.calibrate("termination", [0.9, 0.8, 0.3], [1, 1, 0])
    >>> 0.01 <= calibrator.apply("termination", 0.85) <= 0.99
    True
"""

import math
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import structlog
from scipy.special import expit

from lfm.exceptions import CalibrationDataError
from lfm.models import CalibrationProfile
from lfm.weights.config import CalibrationSettings

log = structlog.get_logger()


class ConfidenceCalibrator:
    """
    Temperature + Platt calibration keyed by case type.

    Attributes:
        settings: CalibrationSettings
        history: Every fitted profile, in fit order
    """

    def __init__(
        self,
        settings: Optional[CalibrationSettings] = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings or CalibrationSettings()
        self._now = now
        self._profiles: Dict[str, CalibrationProfile] = {}
        self.history: List[CalibrationProfile] = []

    # ---- Fitting ----

    @staticmethod
    def _validate(predictions: Sequence[float], outcomes: Sequence[int]) -> Tuple[np.ndarray, np.ndarray]:
        if len(predictions) != len(outcomes):
            raise CalibrationDataError(
                f"predictions and outcomes differ in length: {len(predictions)} != {len(outcomes)}"
            )
        if len(predictions) == 0:
            raise CalibrationDataError("calibration needs at least one prediction/outcome pair")

        preds = np.asarray(predictions, dtype=np.float64)
        labels = np.asarray(outcomes, dtype=np.float64)
        if not np.all(np.isfinite(preds)):
            raise CalibrationDataError("predictions must be finite numbers")
        if not np.all((labels == 0.0) | (labels == 1.0)):
            raise CalibrationDataError("outcomes must be 0 or 1")
        return preds, labels

    def temperature_grid(self) -> List[float]:
        s = self.settings
        start = int(round(s.temperature_min / s.temperature_step))
        stop = int(round(s.temperature_max / s.temperature_step))
        return [round(k * s.temperature_step, 6) for k in range(start, stop + 1) if k > 0]

    def fit_temperature(self, preds: np.ndarray, labels: np.ndarray) -> float:
        low, high = self.settings.nll_clip
        best_t, best_nll = 1.0, math.inf
        for t in self.temperature_grid():
            scaled = np.clip(preds / t, low, high)
            nll = -np.mean(labels * np.log(scaled) + (1.0 - labels) * np.log(1.0 - scaled))
            # Strict improvement: the first (smallest) temperature wins ties
            if nll < best_nll:
                best_t, best_nll = t, float(nll)
        return best_t

    def fit_platt(self, preds: np.ndarray, labels: np.ndarray) -> Tuple[float, float]:
        lr = self.settings.platt_learning_rate
        intercept, slope = 0.0, 0.0
        for _ in range(self.settings.platt_epochs):
            error = expit(intercept + slope * preds) - labels
            intercept -= lr * float(np.mean(error))
            slope -= lr * float(np.mean(error * preds))
        return intercept, slope

    def calibrate(
        self,
        case_type: str,
        predictions: Sequence[float],
        outcomes: Sequence[int],
    ) -> CalibrationProfile:
        """
        Fit and store the calibration profile of a case type.

        Args:
            case_type: Case type the profile applies to
            predictions: Raw confidences in [0, 1]
            outcomes: Binary outcomes (1 = prediction was right)

        Returns:
            The fitted CalibrationProfile

        Raises:
            CalibrationDataError: On empty, mismatched or non-binary input
        """
        preds, labels = self._validate(predictions, outcomes)

        profile = CalibrationProfile(
            case_type=case_type,
            temperature=self.fit_temperature(preds, labels),
            platt_weights=self.fit_platt(preds, labels),
            last_calibrated=self._now(),
            sample_size=int(preds.size),
            accuracy=float(np.mean((preds >= 0.5) == (labels == 1.0))),
        )
        self._profiles[case_type] = profile
        self.history.append(profile)

        log.info(
            "Calibration fitted",
            case_type=case_type,
            temperature=profile.temperature,
            platt_weights=[round(w, 6) for w in profile.platt_weights],
            sample_size=profile.sample_size,
        )
        return profile

    # ---- Application ----

    def apply(self, case_type: str, raw_confidence: Any) -> float:
        """Calibrated confidence in [0.01, 0.99]; non-finite input counts as 0.5."""
        try:
            value = float(raw_confidence)
        except (TypeError, ValueError):
            value = 0.5
        if not math.isfinite(value):
            value = 0.5

        profile = self._profiles.get(case_type)
        if profile is not None:
            value = value / profile.temperature
            intercept, slope = profile.platt_weights
            value = float(expit(intercept + slope * value))

        low, high = self.settings.output_bounds
        return max(low, min(high, value))

    # ---- Maintenance ----

    def get_profile(self, case_type: str) -> Optional[CalibrationProfile]:
        return self._profiles.get(case_type)

    @property
    def calibrated_case_types(self) -> List[str]:
        return list(self._profiles)

    def _age_days(self, profile: CalibrationProfile) -> float:
        return (self._now() - profile.last_calibrated).total_seconds() / 86400.0

    def needs_recalibration(
        self,
        case_type: str,
        recent_accuracy: Optional[float] = None,
        baseline_accuracy: Optional[float] = None,
    ) -> bool:
        """
        Whether the case type should be recalibrated.

        True when there is no profile, when the profile is older than
        max_age_days, or when accuracy degraded:
        - "drop" mode: baseline - recent > threshold, baseline defaulting to
          the accuracy recorded at calibration time
        - "floor" mode: recent < threshold
        """
        profile = self._profiles.get(case_type)
        if profile is None:
            return True
        if self._age_days(profile) > self.settings.max_age_days:
            return True
        if recent_accuracy is None:
            return False

        threshold = self.settings.recalibration_threshold
        if self.settings.recalibration_mode == "floor":
            return recent_accuracy < threshold

        if baseline_accuracy is None:
            baseline_accuracy = profile.accuracy if profile.accuracy is not None else recent_accuracy
        return baseline_accuracy - recent_accuracy > threshold

    def get_calibration_stats(self, case_type: str) -> Optional[Dict[str, Any]]:
        profile = self._profiles.get(case_type)
        if profile is None:
            return None
        stats = profile.to_dict()
        stats["days_since_calibration"] = int(math.floor(self._age_days(profile)))
        return stats

    def get_summary(self) -> Dict[str, Any]:
        """Overview across case types."""
        return {
            "calibrated_case_types": self.calibrated_case_types,
            "calibrations_performed": len(self.history),
            "profiles": {ct: self.get_calibration_stats(ct) for ct in self._profiles},
        }
