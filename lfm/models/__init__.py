"""
LFM Data Model
==============

Records exchanged between the engine components.

Exports:
- Enumerations: CaseType, EvidenceStrength, Outcome, PredictionSource, ...
- Case records: FeatureRecord, HistoricalCase, RankedCase
- Estimate inputs: JustCauseResults, EstimateContext, ContractViolation
- Outputs: Prediction, WinProbability, CalibrationProfile
- Learning records: Correction, FeedbackEntry, ErrorRecord, RootCausePattern, CorrectiveAction
"""

from lfm.models.enums import (
    CaseType,
    EvidenceStrength,
    Outcome,
    PredictionSource,
    CorrectionType,
    FeedbackType,
    ErrorType,
    Severity,
)
from lfm.models.records import (
    FeatureRecord,
    HistoricalCase,
    RankedCase,
    JustCauseResults,
    EstimateContext,
    ContractViolation,
    JUST_CAUSE_TEST_NAMES,
)
from lfm.models.predictions import (
    Prediction,
    WinProbability,
    CalibrationProfile,
    clamp,
)
from lfm.models.learning import (
    Correction,
    FeedbackEntry,
    ErrorRecord,
    CommonFactor,
    RootCausePattern,
    CorrectiveAction,
)

__all__ = [
    # Enums
    "CaseType",
    "EvidenceStrength",
    "Outcome",
    "PredictionSource",
    "CorrectionType",
    "FeedbackType",
    "ErrorType",
    "Severity",
    # Records
    "FeatureRecord",
    "HistoricalCase",
    "RankedCase",
    "JustCauseResults",
    "EstimateContext",
    "ContractViolation",
    "JUST_CAUSE_TEST_NAMES",
    # Predictions
    "Prediction",
    "WinProbability",
    "CalibrationProfile",
    "clamp",
    # Learning
    "Correction",
    "FeedbackEntry",
    "ErrorRecord",
    "CommonFactor",
    "RootCausePattern",
    "CorrectiveAction",
]
