"""
Test FeedbackLearner
====================

Correction extraction, pattern application and outcome tracking.
"""

import pytest

from lfm.exceptions import InvalidFeedbackShape
from lfm.learning import FeedbackLearner
from lfm.models import CorrectionType, FeedbackType, Prediction


def _original(confidence=0.6, outcome="granted", case_type="termination", **extra):
    return {"outcome": outcome, "confidence": confidence, "case_type": case_type, **extra}


@pytest.fixture
def learner(fake_now):
    return FeedbackLearner(now=fake_now)


class TestRecordFeedback:
    """Test correction extraction and validation."""

    def test_confidence_adjustment(self, learner):
        """A pure confidence change yields exactly one correction."""
        entry = learner.record_feedback("g-1", _original(0.6), {"outcome": "granted", "confidence": 0.8})
        assert len(entry.corrections) == 1
        correction = entry.corrections[0]
        assert correction.type is CorrectionType.CONFIDENCE_ADJUSTMENT
        assert correction.difference == 0.2

    def test_outcome_correction(self, learner):
        entry = learner.record_feedback("g-1", _original(0.9), {"outcome": "Denied", "confidence": 0.9})
        assert [c.type for c in entry.corrections] == [CorrectionType.OUTCOME_CORRECTION]
        assert entry.corrections[0].corrected == "denied"

    def test_analysis_refinement(self, learner):
        entry = learner.record_feedback(
            "g-1",
            _original(0.6, analysis="The grievance lacks evidence"),
            {"outcome": "granted", "confidence": 0.6,
             "analysis": "The grievance lacks witness evidence and documentation"},
        )
        assert len(entry.corrections) == 1
        correction = entry.corrections[0]
        assert correction.type is CorrectionType.ANALYSIS_REFINEMENT
        assert correction.added == ["witness", "documentation"]
        assert correction.removed == []

    def test_identical_payloads(self, learner):
        entry = learner.record_feedback("g-1", _original(0.6), _original(0.6))
        assert entry.corrections == []
        assert entry.feedback_type is FeedbackType.CORRECTION

    def test_accepts_prediction_and_camel_case(self, learner):
        prediction = Prediction(outcome="granted", confidence=0.7, case_type="overtime")
        entry = learner.record_feedback("g-2", prediction, {"outcome": "granted", "confidence": 0.5})
        assert entry.original_prediction["case_type"] == "overtime"

        entry = learner.record_feedback(
            "g-3", {"outcome": "denied", "confidence": 0.4, "caseType": "Safety"},
            {"outcome": "denied", "confidence": 0.5},
        )
        assert entry.original_prediction["case_type"] == "safety"

    @pytest.mark.parametrize("bad", [
        None,
        "granted",
        {"confidence": 0.5},
        {"outcome": "", "confidence": 0.5},
        {"outcome": "granted", "confidence": "high"},
        {"outcome": "granted", "confidence": True},
        {"outcome": "granted", "confidence": 1.5},
        {"outcome": "granted", "confidence": float("nan")},
        {"outcome": "granted", "confidence": 0.5, "analysis": 42},
    ])
    def test_malformed_payload_records_nothing(self, learner, bad):
        with pytest.raises(InvalidFeedbackShape):
            learner.record_feedback("g-1", _original(0.6), bad)
        assert learner.history == []
        assert learner.get_learning_stats()["learning_patterns"] == 0

    def test_unknown_feedback_type(self, learner):
        with pytest.raises(InvalidFeedbackShape):
            learner.record_feedback("g-1", _original(), _original(0.7), feedback_type="bogus")
        assert learner.history == []

    def test_extract_corrections_is_stateless(self, learner):
        corrections = learner.extract_corrections(_original(0.6), {"outcome": "denied", "confidence": 0.6})
        assert [c.type for c in corrections] == [CorrectionType.OUTCOME_CORRECTION]
        assert learner.history == []


class TestApplyLearnedCorrections:
    """Test application of learned patterns."""

    def test_below_threshold_is_noop(self, learner):
        for i in range(2):
            learner.record_feedback(f"g-{i}", _original(0.6), {"outcome": "granted", "confidence": 0.8})
        prediction = Prediction(outcome="granted", confidence=0.6, case_type="termination")
        assert learner.apply_learned_corrections(prediction, "termination") is prediction

    def test_confidence_adjustment_applied(self, learner):
        for i in range(3):
            learner.record_feedback(f"g-{i}", _original(0.6), {"outcome": "granted", "confidence": 0.8})
        prediction = Prediction(outcome="granted", confidence=0.6, case_type="termination")

        adjusted = learner.apply_learned_corrections(prediction, "termination")

        assert adjusted.confidence == pytest.approx(0.62)
        assert adjusted.feedback_applied["based_on"] == 3
        assert adjusted.feedback_applied["confidence_adjustment"] == pytest.approx(0.02)
        assert adjusted.enhancements_applied == ["feedback_learning"]
        assert prediction.confidence == 0.6
        assert prediction.enhancements_applied == []

    def test_other_confidence_or_case_type_untouched(self, learner):
        for i in range(3):
            learner.record_feedback(f"g-{i}", _original(0.6), {"outcome": "granted", "confidence": 0.8})
        other_confidence = Prediction(outcome="granted", confidence=0.5, case_type="termination")
        assert learner.apply_learned_corrections(other_confidence, "termination") is other_confidence
        other_type = Prediction(outcome="granted", confidence=0.6, case_type="overtime")
        assert learner.apply_learned_corrections(other_type, "overtime") is other_type

    def test_outcome_suggestion(self, learner):
        for i in range(3):
            learner.record_feedback(f"g-{i}", _original(0.9), {"outcome": "denied", "confidence": 0.9})
        prediction = Prediction(outcome="granted", confidence=0.9, case_type="termination")

        adjusted = learner.apply_learned_corrections(prediction, "termination")

        assert adjusted.outcome == "granted"
        assert adjusted.alternative_outcome == "denied"
        assert adjusted.outcome_correction_suggested is True

    def test_no_suggestion_for_unconfident_originals(self, learner):
        for i in range(3):
            learner.record_feedback(f"g-{i}", _original(0.6), {"outcome": "denied", "confidence": 0.6})
        prediction = Prediction(outcome="granted", confidence=0.6, case_type="termination")
        adjusted = learner.apply_learned_corrections(prediction, "termination")
        assert adjusted.alternative_outcome is None

    def test_no_suggestion_without_majority(self, learner):
        for i, corrected in enumerate(["denied", "settled", "denied", "settled", "denied"]):
            learner.record_feedback(f"g-{i}", _original(0.9), {"outcome": corrected, "confidence": 0.9})
        prediction = Prediction(outcome="granted", confidence=0.9, case_type="termination")
        adjusted = learner.apply_learned_corrections(prediction, "termination")
        assert adjusted.outcome_correction_suggested is False


class TestOutcomeTracking:
    """Test outcome tracking and reporting."""

    def test_effectiveness_update(self, learner):
        learner.record_feedback("g-1", _original(0.8), {"outcome": "granted", "confidence": 0.9})
        record = learner.track_actual_outcome("g-1", "granted", notes="arbitration award")

        assert record.feedback_provided is True
        assert learner.get_outcome("g-1") is record
        pattern = learner.patterns_for(CorrectionType.CONFIDENCE_ADJUSTMENT, "termination")[0]
        assert pattern.effectiveness == pytest.approx(0.1)

    def test_wrong_prediction_leaves_effectiveness(self, learner):
        learner.record_feedback("g-1", _original(0.8), {"outcome": "granted", "confidence": 0.9})
        learner.track_actual_outcome("g-1", "denied")
        pattern = learner.patterns_for(CorrectionType.CONFIDENCE_ADJUSTMENT, "termination")[0]
        assert pattern.effectiveness == 0.0

    def test_outcome_without_feedback(self, learner):
        record = learner.track_actual_outcome("g-9", "settled")
        assert record.feedback_provided is False
        assert record.to_dict()["resolution_date"] is None

    def test_learning_stats(self, learner, fake_now):
        learner.record_feedback("g-1", _original(0.6), {"outcome": "granted", "confidence": 0.8})
        learner.record_feedback("g-1", _original(0.6), {"outcome": "denied", "confidence": 0.6})
        stats = learner.get_learning_stats()

        assert stats["total_feedback"] == 2
        assert stats["unique_grievances"] == 1
        assert stats["learning_patterns"] == 2
        entry = stats["pattern_effectiveness"]["confidence_adjustment:termination"]
        assert entry["pattern_count"] == 1
        assert entry["last_updated"] == fake_now().isoformat()

    def test_insights(self, learner):
        for i in range(3):
            learner.record_feedback(f"g-{i}", _original(0.6), {"outcome": "granted", "confidence": 0.8})
        insights = {i["type"]: i for i in learner.generate_insights()}

        assert "confidence_adjustment (3 instances)" in insights["common_corrections"]["finding"]
        assert insights["case_type_performance"]["finding"] == "Highest correction rate in termination cases (100%)"

    def test_no_insights_without_feedback(self, learner):
        assert learner.generate_insights() == []
