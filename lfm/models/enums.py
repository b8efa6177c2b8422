"""
Domain Enumerations
====================

Closed vocabularies used across the engine.

Example:
    >>> CaseType.parse("Overtime")
    <CaseType.OVERTIME: 'overtime'>
    >>> Outcome.parse("Granted")
    <Outcome.GRANTED: 'granted'>
"""

from enum import Enum
from typing import Any, Optional


class CaseType(str, Enum):
    """Subject matter of a grievance."""
    TERMINATION = "termination"
    DISCIPLINE = "discipline"
    OVERTIME = "overtime"
    HARASSMENT = "harassment"
    SAFETY = "safety"
    SENIORITY = "seniority"
    WEINGARTEN = "weingarten"
    CONTRACT = "contract"
    GENERAL = "general"

    @classmethod
    def parse(cls, value: Any) -> "CaseType":
        """Map any string to a CaseType, GENERAL when unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.GENERAL


class EvidenceStrength(str, Enum):
    """Evidence tier, ordered low < medium < high."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _EVIDENCE_RANK[self]

    @classmethod
    def parse(cls, value: Any) -> "EvidenceStrength":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.LOW


_EVIDENCE_RANK = {
    EvidenceStrength.LOW: 0,
    EvidenceStrength.MEDIUM: 1,
    EvidenceStrength.HIGH: 2,
}


class Outcome(str, Enum):
    """Resolution of a grievance."""
    GRANTED = "granted"
    DENIED = "denied"
    SETTLED = "settled"

    @classmethod
    def parse(cls, value: Any) -> Optional["Outcome"]:
        """
        Case-insensitive parse.

        Returns None for empty or unrecognised values, so that stored
        records with free-form outcomes ("Granted", "pending") can be read.
        """
        if value is None:
            return None
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class PredictionSource(str, Enum):
    """Which layer produced the final prediction."""
    BASE = "base"
    ENSEMBLE = "ensemble"
    CALIBRATED = "calibrated"


class CorrectionType(str, Enum):
    CONFIDENCE_ADJUSTMENT = "confidence_adjustment"
    OUTCOME_CORRECTION = "outcome_correction"
    ANALYSIS_REFINEMENT = "analysis_refinement"


class FeedbackType(str, Enum):
    CORRECTION = "correction"
    CONFIRMATION = "confirmation"
    PARTIAL = "partial"


class ErrorType(str, Enum):
    FALSE_POSITIVE_CONFIDENCE = "false_positive_confidence"
    OUTCOME_REVERSAL = "outcome_reversal"
    OVER_OPTIMISTIC = "over_optimistic"
    UNDER_CONFIDENT = "under_confident"
    OUTCOME_MISMATCH = "outcome_mismatch"


class Severity(str, Enum):
    """Error severity, ordered low < medium < high < critical."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}
