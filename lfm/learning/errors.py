"""
Error Analyzer
===============

Classifies mispredictions, aggregates their contributing factors and
derives corrective actions for recurring patterns.

Classification (first match wins):
1. predicted == actual               -> false_positive_confidence
2. granted <-> denied                -> outcome_reversal
3. granted predicted, settled actual -> over_optimistic
4. denied predicted, settled actual  -> under_confident
5. anything else                     -> outcome_mismatch

Contributing factors are checked independently:
- over_confidence:   confidence > 0.8 and wrong outcome (severity high)
- weak_evidence:     low evidence and confidence > 0.7 (severity medium)
- misclassification: declared case type differs from the predicted one (medium)
- no_precedent:      zero similar cases and confidence > 0.6

Errors are grouped in patterns keyed "<error_type>:<case_type>". Once a
pattern holds min_samples_for_analysis errors, every new error in it
re-runs the root cause analysis.

Example:
    >>> analyzer = ErrorAnalyzer()
    >>> analyzer.classify_error({"outcome": "granted", "confidence": 0.9}, "denied")
    <ErrorType.OUTCOME_REVERSAL: 'outcome_reversal'>
    >>> record = analyzer.record_error("g-1", {"outcome": "granted", "confidence": 0.9}, "denied")
    >>> record.severity
    <Severity.HIGH: 'high'>
"""

import re
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

import structlog

from lfm.models import (
    CommonFactor,
    CorrectiveAction,
    ErrorRecord,
    ErrorType,
    Prediction,
    RootCausePattern,
    Severity,
    clamp,
)
from lfm.weights.config import ErrorAnalysisSettings

log = structlog.get_logger()

FACTOR_LABELS = {
    "over_confidence": "Over-confidence in incorrect prediction",
    "weak_evidence": "Weak evidence supporting high confidence",
    "misclassification": "Case type misclassification",
    "no_precedent": "No similar precedents found",
}

FACTOR_ACTIONS = {
    "over_confidence": [
        "Implement confidence calibration for {case_type} cases",
        "Add ensemble prediction validation",
        "Review confidence scoring algorithm",
    ],
    "weak_evidence": [
        "Strengthen evidence evaluation criteria",
        "Add evidence quality scoring",
        "Implement evidence threshold validation",
    ],
    "misclassification": [
        "Improve case type detection algorithm",
        "Add case type validation step",
        "Enhance training data for case classification",
    ],
    "no_precedent": [
        "Expand case database with more examples",
        "Improve similarity matching algorithm",
        "Add fallback analysis for unique cases",
    ],
}

DEFAULT_ACTIONS = ["Review and improve analysis methodology"]

_WINDOW = re.compile(r"^\s*(\d+)\s*([dh])\s*$", re.I)


def describe_factor(factor: str) -> str:
    """Human-readable label of a factor key."""
    return FACTOR_LABELS.get(factor, factor)


def corrective_actions_for(factor: str, case_type: str) -> List[str]:
    return [a.format(case_type=case_type) for a in FACTOR_ACTIONS.get(factor, DEFAULT_ACTIONS)]


def parse_window(window: Union[str, timedelta]) -> timedelta:
    """
    Turn "30d" / "12h" (or a timedelta) into a timedelta.

    Raises:
        ValueError: If the string is not <int>d or <int>h
    """
    if isinstance(window, timedelta):
        return window
    match = _WINDOW.match(str(window))
    if not match:
        raise ValueError(f"Invalid time window: {window!r} (expected e.g. '30d' or '12h')")
    amount, unit = int(match.group(1)), match.group(2).lower()
    return timedelta(days=amount) if unit == "d" else timedelta(hours=amount)


def _as_prediction_dict(prediction: Union[Mapping[str, Any], Prediction]) -> Dict[str, Any]:
    data = prediction.to_dict() if isinstance(prediction, Prediction) else dict(prediction)
    outcome = data.get("outcome")
    data["outcome"] = str(getattr(outcome, "value", outcome)).lower() if outcome is not None else None
    data["confidence"] = clamp(data.get("confidence", 0.5), 0.0, 1.0)
    case_type = data.get("case_type") or data.get("caseType")
    data["case_type"] = str(getattr(case_type, "value", case_type)).lower() if case_type else None
    return data


def _context_value(context: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in context:
            return context[key]
    return None


@dataclass
class ErrorAnalysisReport:
    """
    Error summary over a time window.

    Attributes:
        period: Window as requested ("30d" or a timedelta rendered as string)
        total_errors: Errors recorded after the cutoff
        error_breakdown: Count per error type
        root_causes: Root causes analysed after the cutoff, by pattern
        corrective_actions: Actions generated after the cutoff, by pattern
        recommendations: Overall recommendations
    """
    period: str
    total_errors: int
    error_breakdown: Dict[str, int] = field(default_factory=dict)
    root_causes: Dict[str, RootCausePattern] = field(default_factory=dict)
    corrective_actions: Dict[str, List[CorrectiveAction]] = field(default_factory=dict)
    recommendations: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "total_errors": self.total_errors,
            "error_breakdown": dict(self.error_breakdown),
            "root_causes": {k: v.to_dict() for k, v in self.root_causes.items()},
            "corrective_actions": {
                k: [a.to_dict() for a in actions] for k, actions in self.corrective_actions.items()
            },
            "recommendations": [dict(r) for r in self.recommendations],
        }


class ErrorAnalyzer:
    """
    Misprediction classifier and root cause tracker.

    Attributes:
        settings: ErrorAnalysisSettings
        history: Every ErrorRecord, in recording order
    """

    def __init__(
        self,
        settings: Optional[ErrorAnalysisSettings] = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings or ErrorAnalysisSettings()
        self._now = now
        self.history: List[ErrorRecord] = []
        self._patterns: Dict[str, List[ErrorRecord]] = {}
        self._root_causes: Dict[str, RootCausePattern] = {}
        self._corrective_actions: Dict[str, Tuple[List[CorrectiveAction], datetime]] = {}

    # ---- Classification ----

    @staticmethod
    def classify_error(prediction: Union[Mapping[str, Any], Prediction], actual: str) -> ErrorType:
        predicted = _as_prediction_dict(prediction)["outcome"]
        actual = str(getattr(actual, "value", actual)).lower()

        if predicted == actual:
            return ErrorType.FALSE_POSITIVE_CONFIDENCE
        if {predicted, actual} == {"granted", "denied"}:
            return ErrorType.OUTCOME_REVERSAL
        if predicted == "granted" and actual == "settled":
            return ErrorType.OVER_OPTIMISTIC
        if predicted == "denied" and actual == "settled":
            return ErrorType.UNDER_CONFIDENT
        return ErrorType.OUTCOME_MISMATCH

    def analyze_error(
        self,
        prediction: Union[Mapping[str, Any], Prediction],
        actual: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> Tuple[List[str], Severity, List[str]]:
        """
        Contributing factors, severity and recommendations of one error.

        Returns:
            (factor keys, severity, up to max_recommendations actions)
        """
        s = self.settings
        data = _as_prediction_dict(prediction)
        context = context or {}
        actual = str(getattr(actual, "value", actual)).lower()
        confidence = data["confidence"]

        factors: List[str] = []
        severity = Severity.LOW

        def raise_to(level: Severity) -> Severity:
            return level if level.rank > severity.rank else severity

        if confidence > s.over_confidence_threshold and data["outcome"] != actual:
            factors.append("over_confidence")
            severity = raise_to(Severity.HIGH)

        evidence = _context_value(context, "evidence_strength", "evidenceStrength")
        if str(getattr(evidence, "value", evidence)).lower() == "low" and confidence > s.weak_evidence_confidence:
            factors.append("weak_evidence")
            severity = raise_to(Severity.MEDIUM)

        declared = _context_value(context, "case_type", "caseType")
        if declared:
            declared = str(getattr(declared, "value", declared)).lower()
            if declared != data["case_type"]:
                factors.append("misclassification")
                severity = raise_to(Severity.MEDIUM)

        similar = _context_value(context, "similar_cases_found", "similarCasesFound")
        if similar == 0 and confidence > s.no_precedent_confidence:
            factors.append("no_precedent")

        case_type = str(declared or "general")
        recommendations: List[str] = []
        for factor in factors:
            for action in corrective_actions_for(factor, case_type):
                if action not in recommendations:
                    recommendations.append(action)

        return factors, severity, recommendations[:s.max_recommendations]

    # ---- Recording ----

    @staticmethod
    def pattern_key(error_type: ErrorType, case_type: Optional[str]) -> str:
        return f"{ErrorType(error_type).value}:{case_type or 'general'}"

    def record_error(
        self,
        grievance_id: str,
        prediction: Union[Mapping[str, Any], Prediction],
        actual: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> ErrorRecord:
        """Record a misprediction; runs root cause analysis when its pattern is large enough."""
        data = _as_prediction_dict(prediction)
        context = dict(context or {})
        actual = str(getattr(actual, "value", actual)).lower()
        factors, severity, recommendations = self.analyze_error(data, actual, context)

        record = ErrorRecord(
            id=f"error-{uuid.uuid4().hex[:12]}",
            grievance_id=str(grievance_id),
            prediction=data,
            actual_outcome=actual,
            error_type=self.classify_error(data, actual),
            contributing_factors=factors,
            severity=severity,
            recommendations=recommendations,
            context=context,
            timestamp=self._now(),
        )
        self.history.append(record)

        key = self.pattern_key(record.error_type, record.case_type)
        samples = self._patterns.setdefault(key, [])
        samples.append(record)

        log.debug(
            "Error recorded",
            grievance_id=record.grievance_id,
            error_type=record.error_type.value,
            severity=record.severity.value,
            factors=factors,
        )

        if len(samples) >= self.settings.min_samples_for_analysis:
            self.analyze_root_cause(record.error_type, record.case_type)
        return record

    # ---- Root cause ----

    def _pattern_severity(self, samples: List[ErrorRecord]) -> Severity:
        ratio = sum(1 for r in samples if r.severity is Severity.HIGH) / len(samples)
        if ratio > 0.7:
            return Severity.CRITICAL
        if ratio > 0.4:
            return Severity.HIGH
        if ratio > 0.2:
            return Severity.MEDIUM
        return Severity.LOW

    def analyze_root_cause(self, error_type: ErrorType, case_type: str) -> Optional[RootCausePattern]:
        """
        Common factors of a pattern, with corrective actions.

        Returns:
            The RootCausePattern, or None below min_samples_for_analysis
        """
        s = self.settings
        error_type = ErrorType(error_type)
        key = self.pattern_key(error_type, case_type)
        samples = self._patterns.get(key, [])
        if len(samples) < s.min_samples_for_analysis:
            return None

        counts = Counter(f for r in samples for f in r.contributing_factors)
        common = [
            (factor, count) for factor, count in counts.most_common()
            if count >= len(samples) * s.common_factor_ratio
        ][:s.max_common_factors]

        now = self._now()
        root_cause = RootCausePattern(
            pattern=key,
            error_type=error_type,
            case_type=case_type or "general",
            common_factors=[
                CommonFactor(factor=f, frequency=c / len(samples), occurrences=c) for f, c in common
            ],
            sample_size=len(samples),
            severity=self._pattern_severity(samples),
            analyzed_at=now,
        )
        self._root_causes[key] = root_cause

        actions = [
            CorrectiveAction(
                factor=cf.factor,
                frequency=cf.frequency,
                actions=corrective_actions_for(cf.factor, root_cause.case_type),
                priority="high" if cf.frequency > 0.8 else "medium" if cf.frequency > 0.6 else "low",
                estimated_impact=s.factor_impacts.get(cf.factor, s.default_impact),
            )
            for cf in root_cause.common_factors
        ]
        self._corrective_actions[key] = (actions, now)

        log.info(
            "Root cause detected",
            pattern=key,
            sample_size=root_cause.sample_size,
            severity=root_cause.severity.value,
            common_factors=[cf.factor for cf in root_cause.common_factors],
        )
        return root_cause

    def get_root_cause(self, error_type: ErrorType, case_type: str) -> Optional[RootCausePattern]:
        return self._root_causes.get(self.pattern_key(error_type, case_type))

    def get_corrective_actions(self, error_type: ErrorType, case_type: str) -> List[CorrectiveAction]:
        entry = self._corrective_actions.get(self.pattern_key(error_type, case_type))
        return list(entry[0]) if entry else []

    # ---- Reporting ----

    def get_error_analysis_report(self, window: Union[str, timedelta] = "30d") -> ErrorAnalysisReport:
        cutoff = self._now() - parse_window(window)
        recent = [r for r in self.history if r.timestamp > cutoff]

        report = ErrorAnalysisReport(
            period=window if isinstance(window, str) else str(window),
            total_errors=len(recent),
            error_breakdown=dict(Counter(r.error_type.value for r in recent)),
            root_causes={k: rc for k, rc in self._root_causes.items() if rc.analyzed_at > cutoff},
            corrective_actions={
                k: list(actions) for k, (actions, generated_at) in self._corrective_actions.items()
                if generated_at > cutoff
            },
        )
        report.recommendations = self._overall_recommendations(report)
        return report

    def _overall_recommendations(self, report: ErrorAnalysisReport) -> List[Dict[str, Any]]:
        s = self.settings
        recommendations: List[Dict[str, Any]] = []

        error_rate = report.total_errors / s.assumed_predictions_per_period
        if error_rate > s.high_error_rate:
            recommendations.append({
                "priority": "high",
                "recommendation": "Overall error rate exceeds threshold - implement comprehensive review",
                "actions": [
                    "Audit prediction algorithm",
                    "Review training data quality",
                    "Implement additional validation steps",
                ],
            })

        severe = [
            rc for rc in report.root_causes.values()
            if rc.severity in (Severity.HIGH, Severity.CRITICAL)
        ]
        if severe:
            recommendations.append({
                "priority": "high",
                "recommendation": f"Address {len(severe)} high-severity error patterns",
                "actions": [describe_factor(cf.factor) for rc in severe for cf in rc.common_factors[:2]],
            })

        return recommendations

    def get_error_stats(self) -> Dict[str, Any]:
        return {
            "total_errors": len(self.history),
            "error_patterns": len(self._patterns),
            "root_causes_identified": len(self._root_causes),
            "corrective_actions_generated": len(self._corrective_actions),
        }
