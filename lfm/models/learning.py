"""
Learning Records
=================

Append-only records produced by the feedback learner and the error analyzer.

Every relation is by identifier (grievance_id, case_type), never by object
reference.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from lfm.models.enums import CorrectionType, ErrorType, FeedbackType, Severity


@dataclass
class Correction:
    """
    One typed delta between an original prediction and a user correction.

    Attributes:
        type: Kind of correction
        original: Original value (confidence or outcome)
        corrected: Corrected value
        difference: corrected - original, for confidence adjustments
        added: Words added to the analysis, for analysis refinements
        removed: Words removed from the analysis, for analysis refinements
    """
    type: CorrectionType
    original: Any = None
    corrected: Any = None
    difference: Optional[float] = None
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type.value}
        if self.type is CorrectionType.ANALYSIS_REFINEMENT:
            data["added"] = list(self.added)
            data["removed"] = list(self.removed)
        else:
            data["original"] = self.original
            data["corrected"] = self.corrected
        if self.difference is not None:
            data["difference"] = self.difference
        return data


@dataclass
class FeedbackEntry:
    """One recorded user correction."""
    id: str
    grievance_id: str
    original_prediction: Dict[str, Any]
    user_correction: Dict[str, Any]
    feedback_type: FeedbackType
    corrections: List[Correction]
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "grievance_id": self.grievance_id,
            "original_prediction": dict(self.original_prediction),
            "user_correction": dict(self.user_correction),
            "feedback_type": self.feedback_type.value,
            "corrections": [c.to_dict() for c in self.corrections],
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class ErrorRecord:
    """
    One observed misprediction.

    Attributes:
        id: Unique error id
        grievance_id: Grievance the prediction was made for
        prediction: Prediction as a dict (outcome, confidence, case_type)
        actual_outcome: Outcome that actually occurred
        error_type: Classification of the mismatch
        contributing_factors: Factor keys that fired
        severity: Highest severity among the fired factors
        recommendations: Up to three suggested actions
        context: Caller-provided context (case_type, evidence_strength, ...)
        timestamp: When the error was recorded
    """
    id: str
    grievance_id: str
    prediction: Dict[str, Any]
    actual_outcome: str
    error_type: ErrorType
    contributing_factors: List[str]
    severity: Severity
    recommendations: List[str]
    context: Dict[str, Any]
    timestamp: datetime

    @property
    def case_type(self) -> str:
        return self.prediction.get("case_type") or "general"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "grievance_id": self.grievance_id,
            "prediction": dict(self.prediction),
            "actual_outcome": self.actual_outcome,
            "error_type": self.error_type.value,
            "contributing_factors": list(self.contributing_factors),
            "severity": self.severity.value,
            "recommendations": list(self.recommendations),
            "context": dict(self.context),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class CommonFactor:
    """A contributing factor shared by a recurring error pattern."""
    factor: str
    frequency: float
    occurrences: int

    def to_dict(self) -> Dict[str, Any]:
        return {"factor": self.factor, "frequency": self.frequency, "occurrences": self.occurrences}


@dataclass
class RootCausePattern:
    """
    Root cause of a recurring (error_type, case_type) pattern.

    Attributes:
        pattern: Pattern key "<error_type>:<case_type>"
        error_type: Error classification
        case_type: Case type of the predictions
        common_factors: Factors present in at least half of the samples
        sample_size: Number of errors in the pattern
        severity: Pattern severity from its share of high-severity errors
        analyzed_at: When the analysis ran
    """
    pattern: str
    error_type: ErrorType
    case_type: str
    common_factors: List[CommonFactor]
    sample_size: int
    severity: Severity
    analyzed_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern": self.pattern,
            "error_type": self.error_type.value,
            "case_type": self.case_type,
            "common_factors": [f.to_dict() for f in self.common_factors],
            "sample_size": self.sample_size,
            "severity": self.severity.value,
            "analyzed_at": self.analyzed_at.isoformat(),
        }


@dataclass
class CorrectiveAction:
    """Action bundle for one common factor of a root cause."""
    factor: str
    frequency: float
    actions: List[str]
    priority: str
    estimated_impact: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "factor": self.factor,
            "frequency": self.frequency,
            "actions": list(self.actions),
            "priority": self.priority,
            "estimated_impact": self.estimated_impact,
        }
