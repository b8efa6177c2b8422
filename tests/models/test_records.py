"""
Test Case Records
=================

Normalisation and dict conversion of feature records and precedents.
"""

import pytest

from lfm.models import (
    CaseType,
    EvidenceStrength,
    FeatureRecord,
    HistoricalCase,
    JustCauseResults,
    Outcome,
    RankedCase,
)


class TestEnums:
    """Test enum parsing."""

    def test_case_type_parse(self):
        assert CaseType.parse(" Overtime ") is CaseType.OVERTIME
        assert CaseType.parse("unknown") is CaseType.GENERAL

    def test_outcome_parse(self):
        assert Outcome.parse("GRANTED") is Outcome.GRANTED
        assert Outcome.parse("pending") is None
        assert Outcome.parse(None) is None

    def test_evidence_rank(self):
        assert EvidenceStrength.LOW.rank < EvidenceStrength.MEDIUM.rank < EvidenceStrength.HIGH.rank
        assert EvidenceStrength.parse("strong") is EvidenceStrength.LOW


class TestFeatureRecord:
    """Test FeatureRecord."""

    def test_normalisation(self):
        record = FeatureRecord(
            case_type="Termination",
            violation_type=" Progressive_Discipline ",
            contract_articles=["12.3", " 12.3 "],
            evidence_strength="HIGH",
            just_cause_tests=[1, "7"],
            outcome="Granted",
        )
        assert record.case_type is CaseType.TERMINATION
        assert record.violation_type == "progressive_discipline"
        assert record.contract_articles == frozenset({"12.3"})
        assert record.evidence_strength is EvidenceStrength.HIGH
        assert record.just_cause_tests == frozenset({1, 7})
        assert record.outcome is Outcome.GRANTED

    def test_hashable_and_frozen(self, termination_record):
        assert hash(termination_record) == hash(FeatureRecord(**{
            "case_type": "termination",
            "violation_type": "progressive_discipline",
            "contract_articles": {"12.3"},
            "procedural_issues": {"no_prior_discipline"},
            "evidence_strength": "high",
            "just_cause_tests": {1, 7},
            "description": "Employee terminated without progressive discipline",
            "outcome": "granted",
        }))
        with pytest.raises(AttributeError):
            termination_record.case_type = CaseType.SAFETY

    @pytest.mark.parametrize("violation,expected", [
        ("progressive discipline", "progressive_discipline"),
        ("FLSA-violation", "flsa_violation"),
        ("art-12", "art"),
        ("42", "general"),
        ("", "general"),
    ])
    def test_violation_tag_is_normalised(self, violation, expected):
        assert FeatureRecord(violation_type=violation).violation_type == expected

    def test_just_cause_range(self):
        with pytest.raises(ValueError):
            FeatureRecord(just_cause_tests={0, 8})

    def test_from_dict_camel_case(self):
        record = FeatureRecord.from_dict({
            "caseType": "overtime",
            "violationType": "flsa_violation",
            "contractArticles": ["7.1"],
            "evidenceStrength": "medium",
            "justCauseTests": [5],
        })
        assert record.case_type is CaseType.OVERTIME
        assert record.contract_articles == frozenset({"7.1"})
        assert record.just_cause_tests == frozenset({5})

    def test_to_dict_sorted(self, termination_record):
        data = termination_record.to_dict()
        assert data["case_type"] == "termination"
        assert data["just_cause_tests"] == [1, 7]
        assert data["outcome"] == "granted"


class TestHistoricalCase:
    """Test HistoricalCase."""

    def test_from_dict(self):
        case = HistoricalCase.from_dict({
            "id": 17,
            "features": {"caseType": "safety"},
            "decision": "Settled",
            "embedding": [1, 0],
            "embedding_provider": "openai",
        })
        assert case.case_id == "17"
        assert case.outcome is Outcome.SETTLED
        assert case.embedding == (1.0, 0.0)
        assert case.provider == "openai"
        assert case.source == "import"

    def test_round_trip_dict(self, sample_cases):
        case = sample_cases[2]
        assert HistoricalCase.from_dict(case.to_dict()) == case

    def test_ranked_case(self, sample_cases):
        ranked = RankedCase(case=sample_cases[0], score=87.123)
        assert ranked.outcome is Outcome.GRANTED
        assert ranked.to_dict()["score"] == 87.12


class TestJustCauseResults:
    """Test JustCauseResults."""

    def test_passing(self):
        results = JustCauseResults.from_dict({"notice": "PASS", "equalTreatment": "pass", "proof": "fail"})
        assert results.passing_count == 2
        assert results.as_test_numbers() == frozenset({1, 6})
        assert results.to_dict()["proof"] == "fail"
