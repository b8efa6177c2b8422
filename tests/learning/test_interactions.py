"""
Test InteractionDataCollector
=============================

Bounded interaction log and conversion to training cases.
"""

import pytest

from lfm.learning import InteractionDataCollector, infer_outcome
from lfm.models import Outcome
from lfm.storage import CaseCorpus


def _analysis(text, output, **extra):
    return {"type": "analysis", "input": text, "output": output, **extra}


@pytest.fixture
def collector(fake_now):
    return InteractionDataCollector(CaseCorpus(), max_interactions=3, conversion_batch=2, now=fake_now)


class TestInferOutcome:
    """Test outcome keywords."""

    @pytest.mark.parametrize("output,expected", [
        ("The grievance should be granted", Outcome.GRANTED),
        ("Arbitrators ruled in favor of the union", Outcome.GRANTED),
        ("The claim is not supported by the record", Outcome.DENIED),
        ("A compromise is the likely result", Outcome.SETTLED),
        ("More facts are needed", None),
        ("", None),
    ])
    def test_keywords(self, output, expected):
        assert infer_outcome(output) == expected


class TestRecordInteraction:
    """Test the bounded log."""

    def test_record(self, collector, fake_now):
        interaction = collector.record_interaction(
            _analysis("Employee fired after one late arrival", "Likely granted",
                      userId="steward-7", responseTime=1.5, confidence=0.8)
        )
        assert interaction.id.startswith("interaction-")
        assert interaction.case_type == "termination"
        assert interaction.user_id == "steward-7"
        assert interaction.response_time == 1.5
        assert interaction.confidence == 0.8
        assert interaction.timestamp == fake_now()
        assert len(collector) == 1

    def test_overflow_converts_oldest_batch(self, collector):
        collector.record_interaction(_analysis("Fired without warning for tardiness", "Grievance granted"))
        collector.record_interaction({"type": "query", "input": "What is Weingarten?", "output": "A right"})
        collector.record_interaction(_analysis("Overtime hours unpaid", "Outcome unclear"))
        assert len(collector.corpus) == 0

        collector.record_interaction(_analysis("Suspended for safety complaint", "Claim denied"))

        assert len(collector) == 2
        assert collector.converted_total == 1
        case = collector.corpus.cases[0]
        assert case.case_id.startswith("training-interaction-")
        assert case.source == "user_interaction"
        assert case.outcome == "granted"
        assert case.features.case_type.value == "termination"
        assert case.features.description == "Fired without warning for tardiness"

    def test_duplicate_descriptions_are_skipped(self, collector):
        text = "Fired without warning for tardiness"
        batch = [
            collector.record_interaction(_analysis(text, "granted")),
            collector.record_interaction(_analysis(text.upper(), "granted")),
        ]
        added = collector.convert_to_training(batch)
        assert len(added) == 1
        assert collector.convert_to_training(batch) == []

    def test_invalid_sizes(self):
        with pytest.raises(ValueError):
            InteractionDataCollector(max_interactions=0)
        with pytest.raises(ValueError):
            InteractionDataCollector(conversion_batch=0)


class TestStats:
    """Test stats and export."""

    def test_interaction_stats_window(self, collector, fake_now):
        collector.record_interaction(_analysis("Fired", "granted", response_time=2.0))
        fake_now.advance(hours=25)
        collector.record_interaction(_analysis("Overtime unpaid", "denied", response_time=1.0, success=False))

        stats = collector.get_interaction_stats(hours=24)
        assert stats["total_interactions"] == 1
        assert stats["avg_response_time"] == 1.0
        assert stats["success_rate"] == 0.0
        assert stats["case_type_distribution"] == {"overtime": 1}
        assert stats["time_range"] == "24 hours"

    def test_empty_stats(self, collector):
        stats = collector.get_interaction_stats()
        assert stats["total_interactions"] == 0
        assert stats["case_type_distribution"] == {}

    def test_case_outcomes(self, collector):
        collector.track_case_outcome("case-1", "settled", actual_confidence=0.7)
        assert collector.get_case_outcome("case-1")["outcome"] == "settled"
        assert collector.get_case_outcome("missing") is None

    def test_export_training_data(self, collector):
        batch = [
            collector.record_interaction(_analysis("Fired without warning", "granted")),
            collector.record_interaction(_analysis("Overtime hours unpaid", "settlement reached")),
        ]
        collector.convert_to_training(batch)
        export = collector.export_training_data()
        assert export["total_training_cases"] == 2
        assert export["case_type_breakdown"] == {"termination": 1, "overtime": 1}
