"""
Test CaseCorpus
===============

Loading stored precedents and corpus statistics.
"""

import json

import pytest

from lfm.models import CaseType, FeatureRecord, HistoricalCase, Outcome
from lfm.storage import CaseCorpus


class TestCaseCorpus:
    """Test CaseCorpus."""

    def test_len_and_iter(self, sample_corpus):
        assert len(sample_corpus) == 3
        assert [c.case_id for c in sample_corpus] == ["case-001", "case-002", "case-003"]

    def test_has_description_normalizes(self, sample_corpus):
        """Description lookup ignores case and whitespace."""
        assert sample_corpus.has_description("  termination after a single   VERBAL warning ")
        assert not sample_corpus.has_description("something else")

    def test_add(self, sample_corpus):
        sample_corpus.add(HistoricalCase(case_id="new", features=FeatureRecord(description="New case")))
        assert len(sample_corpus) == 4
        assert sample_corpus.has_description("new case")

    def test_from_records_camel_case(self):
        """Stored corpora may use camelCase keys and capitalised outcomes."""
        corpus = CaseCorpus.from_records([
            {
                "id": "db-1",
                "features": {"caseType": "overtime", "violationType": "flsa_violation"},
                "decision": "Granted",
            }
        ])
        case = corpus.cases[0]
        assert case.case_id == "db-1"
        assert case.features.case_type is CaseType.OVERTIME
        assert case.outcome is Outcome.GRANTED

    def test_load_json_list(self, tmp_path, sample_cases):
        path = tmp_path / "cases.json"
        path.write_text(json.dumps([c.to_dict() for c in sample_cases]))
        corpus = CaseCorpus.load_json(path)
        assert len(corpus) == 3
        assert corpus.cases[2].provider == "openai"

    def test_load_json_wrapped(self, tmp_path, sample_cases):
        path = tmp_path / "cases.json"
        path.write_text(json.dumps({"cases": [sample_cases[0].to_dict()]}))
        assert len(CaseCorpus.load_json(path)) == 1

    def test_load_json_normalises_free_text_violation_types(self, tmp_path):
        """One hand-entered violation type does not abort the load."""
        path = tmp_path / "cases.json"
        path.write_text(json.dumps([
            {"id": "db-1", "features": {"caseType": "overtime", "violationType": "FLSA-violation"}},
            {"id": "db-2", "features": {"caseType": "discipline", "violationType": "progressive_discipline"}},
        ]))
        corpus = CaseCorpus.load_json(path)
        assert len(corpus) == 2
        assert corpus.cases[0].features.violation_type == "flsa_violation"
        assert corpus.cases[1].features.violation_type == "progressive_discipline"

    def test_load_json_rejects_scalars(self, tmp_path):
        path = tmp_path / "cases.json"
        path.write_text("42")
        with pytest.raises(ValueError):
            CaseCorpus.load_json(path)

    def test_export_training_stats(self, sample_corpus):
        stats = sample_corpus.export_training_stats()
        assert stats["total_cases"] == 3
        assert stats["by_case_type"] == {"termination": 2, "overtime": 1}
        assert stats["by_outcome"] == {"granted": 1, "denied": 1, "settled": 1}
        assert stats["by_source"] == {"import": 3}
        assert stats["with_embedding"] == 3
