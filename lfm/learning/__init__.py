"""
LFM Learning
============

Components that improve predictions from what happens after them:
user corrections, actual outcomes and logged interactions.
"""

from lfm.learning.feedback import FeedbackLearner, LearningPattern, OutcomeRecord
from lfm.learning.errors import (
    ErrorAnalyzer,
    ErrorAnalysisReport,
    describe_factor,
    parse_window,
)
from lfm.learning.interactions import Interaction, InteractionDataCollector, infer_outcome

__all__ = [
    "FeedbackLearner",
    "LearningPattern",
    "OutcomeRecord",
    "ErrorAnalyzer",
    "ErrorAnalysisReport",
    "describe_factor",
    "parse_window",
    "Interaction",
    "InteractionDataCollector",
    "infer_outcome",
]
