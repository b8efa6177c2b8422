"""
Feedback Learner
=================

Learns from user corrections to predictions.

Flow:
    record_feedback -> corrections (typed deltas) -> patterns keyed by
    (correction_type, case_type) -> apply_learned_corrections on new predictions

Rules:
- A pattern influences predictions only once it holds min_correction_threshold samples
- Confidence: average delta of corrections made at the same original
  confidence, dampened (x0.1), clamped to [0.01, 0.99]
- Outcome: only for confident (> 0.7) original predictions, when at least
  min_correction_threshold corrections agree by a > 60% majority; the
  alternative is attached as a suggestion, the outcome is never overwritten

Payloads are validated before any state is touched.

Example:
    >>> learner = FeedbackLearner()
    >>> entry = learner.record_feedback(
    ...     "g-1",
    ...     {"outcome": "granted", "confidence": 0.6, "case_type": "termination"},
    ...     {"outcome": "granted", "confidence": 0.8},
    ... )
    >>> entry.corrections[0].difference
    0.2
"""

import math
import re
import uuid
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from numbers import Real
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

import structlog

from lfm.exceptions import InvalidFeedbackShape
from lfm.models import Correction, CorrectionType, FeedbackEntry, FeedbackType, Prediction
from lfm.weights.config import FeedbackSettings

log = structlog.get_logger()

WORD_SPLIT = re.compile(r"\W+")
CONFIDENCE_TOLERANCE = 1e-9

CORRECTION_RECOMMENDATIONS = {
    CorrectionType.CONFIDENCE_ADJUSTMENT: "Review confidence scoring algorithm for more accurate probability estimates",
    CorrectionType.OUTCOME_CORRECTION: "Improve case type classification and precedent matching",
    CorrectionType.ANALYSIS_REFINEMENT: "Enhance analysis depth and legal reasoning completeness",
}

Payload = Union[Mapping[str, Any], Prediction]


@dataclass
class LearningPattern:
    """One correction sample with the context it was made in."""
    correction: Correction
    original_outcome: str
    original_confidence: float
    case_type: str
    timestamp: datetime
    effectiveness: float = 0.0


@dataclass
class OutcomeRecord:
    """Actual resolution of a grievance."""
    grievance_id: str
    actual_outcome: str
    resolution_date: Optional[datetime]
    notes: str
    recorded_at: datetime
    feedback_provided: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "grievance_id": self.grievance_id,
            "actual_outcome": self.actual_outcome,
            "resolution_date": self.resolution_date.isoformat() if self.resolution_date else None,
            "notes": self.notes,
            "recorded_at": self.recorded_at.isoformat(),
            "feedback_provided": self.feedback_provided,
        }


def _normalize_payload(value: Any, side: str) -> Dict[str, Any]:
    """Validate a prediction payload and return a normalised copy."""
    if isinstance(value, Prediction):
        value = value.to_dict()
    if not isinstance(value, Mapping):
        raise InvalidFeedbackShape(f"{side} must be a mapping, got {type(value).__name__}")

    outcome = value.get("outcome")
    if not isinstance(outcome, str) or not outcome.strip():
        raise InvalidFeedbackShape(f"{side}.outcome must be a non-empty string")

    confidence = value.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, Real):
        raise InvalidFeedbackShape(f"{side}.confidence must be a number")
    confidence = float(confidence)
    if not math.isfinite(confidence) or not 0.0 <= confidence <= 1.0:
        raise InvalidFeedbackShape(f"{side}.confidence must be within [0, 1], got {confidence}")

    analysis = value.get("analysis")
    if analysis is not None and not isinstance(analysis, str):
        raise InvalidFeedbackShape(f"{side}.analysis must be a string")

    case_type = value.get("case_type") or value.get("caseType") or "general"
    normalized = dict(value)
    normalized.update(
        outcome=outcome.strip().lower(),
        confidence=confidence,
        analysis=analysis,
        case_type=str(getattr(case_type, "value", case_type)).lower(),
    )
    return normalized


class FeedbackLearner:
    """
    Aggregates user corrections and applies them to new predictions.

    Attributes:
        settings: FeedbackSettings
        history: Every FeedbackEntry, in recording order
    """

    def __init__(
        self,
        settings: Optional[FeedbackSettings] = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings or FeedbackSettings()
        self._now = now
        self._feedback: Dict[str, List[FeedbackEntry]] = {}
        self._patterns: Dict[Tuple[CorrectionType, str], List[LearningPattern]] = {}
        self._outcomes: Dict[str, OutcomeRecord] = {}
        self.history: List[FeedbackEntry] = []

    # ---- Recording ----

    def _words(self, text: str) -> List[str]:
        return [w for w in WORD_SPLIT.split(text.lower()) if len(w) >= self.settings.min_word_length]

    def _diff_words(self, source: List[str], other: set) -> List[str]:
        seen, result = set(), []
        for word in source:
            if word not in other and word not in seen:
                seen.add(word)
                result.append(word)
        return result

    def _extract(self, original: Dict[str, Any], corrected: Dict[str, Any]) -> List[Correction]:
        corrections: List[Correction] = []

        if original["confidence"] != corrected["confidence"]:
            corrections.append(Correction(
                type=CorrectionType.CONFIDENCE_ADJUSTMENT,
                original=original["confidence"],
                corrected=corrected["confidence"],
                difference=round(corrected["confidence"] - original["confidence"], 10),
            ))

        if original["outcome"] != corrected["outcome"]:
            corrections.append(Correction(
                type=CorrectionType.OUTCOME_CORRECTION,
                original=original["outcome"],
                corrected=corrected["outcome"],
            ))

        if original.get("analysis") and corrected.get("analysis"):
            original_words = self._words(original["analysis"])
            corrected_words = self._words(corrected["analysis"])
            added = self._diff_words(corrected_words, set(original_words))
            removed = self._diff_words(original_words, set(corrected_words))
            if added or removed:
                corrections.append(Correction(
                    type=CorrectionType.ANALYSIS_REFINEMENT,
                    added=added,
                    removed=removed,
                ))

        return corrections

    def extract_corrections(self, original: Payload, corrected: Payload) -> List[Correction]:
        """Typed deltas between an original prediction and its correction."""
        return self._extract(
            _normalize_payload(original, "original"),
            _normalize_payload(corrected, "corrected"),
        )

    def record_feedback(
        self,
        grievance_id: str,
        original: Payload,
        corrected: Payload,
        feedback_type: Union[str, FeedbackType] = FeedbackType.CORRECTION,
    ) -> FeedbackEntry:
        """
        Record a user correction and update the learning patterns.

        Raises:
            InvalidFeedbackShape: If either payload is malformed (nothing is recorded)
        """
        original_n = _normalize_payload(original, "original")
        corrected_n = _normalize_payload(corrected, "corrected")
        try:
            feedback_type = FeedbackType(feedback_type)
        except ValueError:
            raise InvalidFeedbackShape(f"unknown feedback type: {feedback_type!r}")

        now = self._now()
        entry = FeedbackEntry(
            id=f"feedback-{uuid.uuid4().hex[:12]}",
            grievance_id=str(grievance_id),
            original_prediction=original_n,
            user_correction=corrected_n,
            feedback_type=feedback_type,
            corrections=self._extract(original_n, corrected_n),
            timestamp=now,
        )

        self._feedback.setdefault(entry.grievance_id, []).append(entry)
        self.history.append(entry)

        case_type = original_n["case_type"]
        for correction in entry.corrections:
            self._patterns.setdefault((correction.type, case_type), []).append(LearningPattern(
                correction=correction,
                original_outcome=original_n["outcome"],
                original_confidence=original_n["confidence"],
                case_type=case_type,
                timestamp=now,
            ))

        log.debug(
            "Feedback recorded",
            grievance_id=entry.grievance_id,
            case_type=case_type,
            corrections=[c.type.value for c in entry.corrections],
        )
        return entry

    # ---- Application ----

    def _applicable(self, case_type: str) -> List[LearningPattern]:
        threshold = self.settings.min_correction_threshold
        applicable: List[LearningPattern] = []
        for (_, pattern_case_type), samples in self._patterns.items():
            if pattern_case_type == case_type and len(samples) >= threshold:
                applicable.extend(samples)
        return applicable

    def apply_learned_corrections(self, prediction: Prediction, case_type: Any) -> Prediction:
        """
        Adjust a prediction with what was learned for its case type.

        Returns:
            A new Prediction; the input is left unchanged
        """
        s = self.settings
        case_type = str(getattr(case_type, "value", case_type) or "general").lower()
        applicable = self._applicable(case_type)
        if not applicable:
            return prediction

        changes: Dict[str, Any] = {}

        confidence_samples = [
            p for p in applicable
            if p.correction.type is CorrectionType.CONFIDENCE_ADJUSTMENT
            and abs(p.original_confidence - prediction.confidence) <= CONFIDENCE_TOLERANCE
        ]
        if confidence_samples:
            avg = sum(p.correction.difference for p in confidence_samples) / len(confidence_samples)
            adjustment = avg * s.confidence_dampening
            low, high = s.output_bounds
            changes["confidence"] = max(low, min(high, prediction.confidence + adjustment))
            changes["feedback_applied"] = {
                "confidence_adjustment": adjustment,
                "based_on": len(confidence_samples),
            }

        outcome_samples = [
            p for p in applicable
            if p.correction.type is CorrectionType.OUTCOME_CORRECTION
            and p.original_outcome == prediction.outcome
            and p.original_confidence > s.outcome_override_min_confidence
        ]
        if len(outcome_samples) >= s.min_correction_threshold:
            counts = Counter(p.correction.corrected for p in outcome_samples)
            suggested, votes = counts.most_common(1)[0]
            if votes > len(outcome_samples) * s.outcome_majority_ratio:
                changes["alternative_outcome"] = suggested
                changes["outcome_correction_suggested"] = True

        if not changes:
            return prediction

        adjusted = prediction.replace(**changes)
        adjusted.enhancements_applied.append("feedback_learning")
        log.debug("Learned corrections applied", case_type=case_type, changes=sorted(changes))
        return adjusted

    # ---- Outcome tracking ----

    def track_actual_outcome(
        self,
        grievance_id: str,
        actual: str,
        resolution_date: Optional[datetime] = None,
        notes: str = "",
    ) -> OutcomeRecord:
        """Record how a grievance was actually resolved and update pattern effectiveness."""
        grievance_id = str(grievance_id)
        actual = str(getattr(actual, "value", actual)).lower()
        record = OutcomeRecord(
            grievance_id=grievance_id,
            actual_outcome=actual,
            resolution_date=resolution_date,
            notes=notes,
            recorded_at=self._now(),
            feedback_provided=grievance_id in self._feedback,
        )
        self._outcomes[grievance_id] = record
        self._update_effectiveness(grievance_id, actual)
        return record

    def _update_effectiveness(self, grievance_id: str, actual: str) -> None:
        decay = self.settings.effectiveness_decay
        tolerance = self.settings.effectiveness_tolerance
        for entry in self._feedback.get(grievance_id, []):
            predicted = entry.original_prediction
            accuracy = 1.0 if predicted["outcome"] == actual else 0.0
            for samples in self._patterns.values():
                for pattern in samples:
                    if (pattern.case_type == predicted["case_type"]
                            and abs(pattern.original_confidence - predicted["confidence"]) < tolerance):
                        pattern.effectiveness = pattern.effectiveness * decay + accuracy * (1.0 - decay)

    def get_outcome(self, grievance_id: str) -> Optional[OutcomeRecord]:
        return self._outcomes.get(str(grievance_id))

    # ---- Reporting ----

    def patterns_for(self, correction_type: CorrectionType, case_type: str) -> List[LearningPattern]:
        return list(self._patterns.get((correction_type, case_type), []))

    def get_learning_stats(self) -> Dict[str, Any]:
        effectiveness = {}
        for (correction_type, case_type), samples in self._patterns.items():
            avg = sum(p.effectiveness for p in samples) / len(samples)
            effectiveness[f"{correction_type.value}:{case_type}"] = {
                "pattern_count": len(samples),
                "average_effectiveness": round(avg, 2),
                "last_updated": samples[-1].timestamp.isoformat(),
            }
        return {
            "total_feedback": len(self.history),
            "unique_grievances": len(self._feedback),
            "learning_patterns": len(self._patterns),
            "tracked_outcomes": len(self._outcomes),
            "pattern_effectiveness": effectiveness,
        }

    def generate_insights(self) -> List[Dict[str, str]]:
        insights: List[Dict[str, str]] = []

        type_counts = Counter(c.type for entry in self.history for c in entry.corrections)
        if type_counts:
            top_type, count = type_counts.most_common(1)[0]
            insights.append({
                "type": "common_corrections",
                "finding": f"Most common correction type: {top_type.value} ({count} instances)",
                "recommendation": CORRECTION_RECOMMENDATIONS.get(
                    top_type, "Continue monitoring and collecting feedback"
                ),
            })

        case_type_counts = Counter(entry.original_prediction["case_type"] for entry in self.history)
        if case_type_counts and self._feedback:
            case_type, count = case_type_counts.most_common(1)[0]
            rate = count / len(self._feedback)
            insights.append({
                "type": "case_type_performance",
                "finding": f"Highest correction rate in {case_type} cases ({round(rate * 100)}%)",
                "recommendation": f"Focus improvement efforts on {case_type} case analysis",
            })

        return insights
