"""
Test WinProbabilityEstimator
============================

Weighted multi-factor win probability.
"""

import pytest

from lfm.models import ContractViolation, EstimateContext, HistoricalCase, JustCauseResults
from lfm.scoring import WinProbabilityEstimator
from lfm.weights import WinProbabilityWeights


def _cases(*outcomes):
    return [HistoricalCase(case_id=f"c{i}", outcome=o) for i, o in enumerate(outcomes)]


ALL_PASS = JustCauseResults(**{name: "pass" for name in (
    "notice", "reasonable_rule", "investigation", "fair_investigation",
    "proof", "equal_treatment", "penalty",
)})


@pytest.fixture
def estimator():
    return WinProbabilityEstimator()


class TestNeutralDefault:
    """Test the estimate without case-specific data."""

    def test_returns_50_low(self, estimator):
        result = estimator.estimate(EstimateContext(case_type="termination"), similar_cases=[])
        assert result.percentage == 50
        assert result.confidence == "low"

    def test_factors_still_reported(self, estimator):
        result = estimator.estimate(EstimateContext(case_type="termination"), similar_cases=[])
        assert result.factors["similar_cases"] == "N/A"
        assert result.factors["just_cause"] == "N/A"
        assert result.factors["evidence"] == "60.0"
        assert result.factors["case_type_base_rate"] == "65.0"

    def test_configurable_default(self):
        estimator = WinProbabilityEstimator(WinProbabilityWeights(default_percentage=40))
        assert estimator.estimate(EstimateContext(case_type="overtime"), []).percentage == 40


class TestEstimate:
    """Test the weighted combination."""

    def test_all_factors(self, estimator):
        """Two of four precedents granted, every just-cause test passed."""
        result = estimator.estimate(
            EstimateContext(case_type="overtime", just_cause=ALL_PASS),
            _cases("granted", "denied", "granted", "settled"),
        )
        # 50*.30 + 50*.25 + 100*.20 + 60*.15 + 85*.10 = 65
        assert result.percentage == 65
        assert result.confidence == "high"
        assert result.factors["similar_cases"] == "50.0"
        assert result.factors["just_cause"] == "100.0"

    def test_violations_raise_contract_score(self, estimator):
        context = EstimateContext(case_type="contract")
        violations = [ContractViolation(article=str(i)) for i in range(10)]
        result = estimator.estimate(context, _cases("granted"), violations)
        assert result.factors["contract_clarity"] == "90.0"

    def test_mapping_cases_accepted(self, estimator):
        """Stored records with capitalised outcomes count as granted."""
        result = estimator.estimate(
            EstimateContext(case_type="termination"),
            [{"outcome": "Granted"}, {"decision": "denied"}],
        )
        assert result.factors["similar_cases"] == "50.0"

    def test_unknown_case_type_uses_default_rate(self, estimator):
        result = estimator.estimate(EstimateContext(case_type="parking"), _cases("granted"))
        assert result.factors["case_type_base_rate"] == "50.0"

    def test_enum_case_type(self, estimator):
        from lfm.models import CaseType
        result = estimator.estimate(EstimateContext(case_type=CaseType.OVERTIME), _cases("denied"))
        assert result.factors["case_type_base_rate"] == "85.0"

    @pytest.mark.parametrize("outcomes,violations,just_cause", [
        ((), 0, ALL_PASS),
        (("granted",) * 5, 20, ALL_PASS),
        (("denied",) * 5, 0, JustCauseResults(notice="fail")),
        (("settled",), 3, None),
    ])
    def test_always_bounded(self, estimator, outcomes, violations, just_cause):
        result = estimator.estimate(
            EstimateContext(case_type="termination", just_cause=just_cause),
            _cases(*outcomes),
            [ContractViolation(article=str(i)) for i in range(violations)],
        )
        assert 0 <= result.percentage <= 100
        assert result.confidence in {"low", "medium", "high"}
        assert isinstance(result.percentage, int)
