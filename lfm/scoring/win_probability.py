"""
Win Probability Estimator
==========================

Combines heterogeneous signals into a bounded win probability.

Factors (score 0-100, weight):
1. similar_cases (0.30): grant rate among similar precedents, skipped without precedents
2. contract_clarity (0.25): neutral 50, +10 per violation, capped at 90
3. just_cause (0.20): share of the Seven Tests marked "pass", skipped without data
4. evidence (0.15): configured constant, not a computed signal
5. case_type_base_rate (0.10): historical success rate by grievance type

percentage = round(sum(score * weight) / total_weight), where total_weight
counts only the factors that contributed. The confidence tier reflects how
much of the weight had data (>= 0.8 high, >= 0.5 medium, else low), not how
extreme the percentage is.

With no precedents, no violations and no just-cause data the estimate is the
neutral default: 50%, low confidence.

Example:
    >>> estimator = WinProbabilityEstimator()
    >>> result = estimator.estimate(EstimateContext(case_type="overtime"), similar_cases=[])
    >>> result.percentage, result.confidence
    (50, 'low')
"""

import math
from typing import Any, Iterable, List, Mapping, Optional, Sequence

import structlog

from lfm.models import ContractViolation, EstimateContext, Outcome, WinProbability
from lfm.weights.config import WinProbabilityWeights

log = structlog.get_logger()

NOT_AVAILABLE = "N/A"


def _case_outcome(case: Any) -> Optional[Outcome]:
    """Outcome of a HistoricalCase, RankedCase or stored mapping."""
    if isinstance(case, Mapping):
        value = case.get("outcome") or case.get("decision")
    else:
        value = getattr(case, "outcome", None)
    return Outcome.parse(value)


def _fmt(score: float) -> str:
    return f"{score:.1f}"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class WinProbabilityEstimator:
    """
    Weighted multi-factor win probability.

    Attributes:
        weights: WinProbabilityWeights (factor weights, constants, base rates)
    """

    def __init__(self, weights: Optional[WinProbabilityWeights] = None):
        self.weights = weights or WinProbabilityWeights()

    def estimate(
        self,
        context: EstimateContext,
        similar_cases: Sequence[Any],
        contract_violations: Optional[Iterable[ContractViolation]] = None,
    ) -> WinProbability:
        """
        Estimate the probability that the grievance is granted.

        Args:
            context: Case type and optional just-cause results
            similar_cases: Precedents (HistoricalCase, RankedCase or mappings)
            contract_violations: Alleged contract violations

        Returns:
            WinProbability with percentage in [0, 100] and a factor breakdown
        """
        w = self.weights
        similar_cases = list(similar_cases or [])
        violations: List[ContractViolation] = list(contract_violations or [])
        just_cause = context.just_cause

        score = 0.0
        total_weight = 0.0
        factors = {}

        if similar_cases:
            granted = sum(1 for c in similar_cases if _case_outcome(c) is Outcome.GRANTED)
            case_score = granted / len(similar_cases) * 100
            score += case_score * w.similar_cases
            total_weight += w.similar_cases
            factors["similar_cases"] = _fmt(case_score)
        else:
            factors["similar_cases"] = NOT_AVAILABLE

        contract_score = w.contract_neutral_score
        if violations:
            contract_score = min(w.contract_cap, w.contract_neutral_score + w.contract_step * len(violations))
        score += contract_score * w.contract_clarity
        total_weight += w.contract_clarity
        factors["contract_clarity"] = _fmt(contract_score)

        if just_cause is not None:
            just_cause_score = just_cause.passing_count / 7 * 100
            score += just_cause_score * w.just_cause
            total_weight += w.just_cause
            factors["just_cause"] = _fmt(just_cause_score)
        else:
            factors["just_cause"] = NOT_AVAILABLE

        score += w.evidence_placeholder_score * w.evidence
        total_weight += w.evidence
        factors["evidence"] = _fmt(w.evidence_placeholder_score)

        case_type = str(getattr(context.case_type, "value", context.case_type)).lower()
        type_score = w.base_rates.get(case_type, w.default_base_rate)
        score += type_score * w.case_type_base_rate
        total_weight += w.case_type_base_rate
        factors["case_type_base_rate"] = _fmt(type_score)

        if not similar_cases and not violations and just_cause is None:
            log.debug("No case-specific data, returning neutral estimate", case_type=case_type)
            return WinProbability(
                percentage=w.default_percentage,
                confidence="low",
                factors=factors,
                total_weight=0.0,
            )

        if total_weight > 0:
            percentage = _round_half_up(score / total_weight)
        else:
            percentage = w.default_percentage
        percentage = max(0, min(100, percentage))

        if total_weight >= w.high_confidence_weight:
            confidence = "high"
        elif total_weight >= w.medium_confidence_weight:
            confidence = "medium"
        else:
            confidence = "low"

        log.debug(
            "Win probability estimated",
            case_type=case_type,
            percentage=percentage,
            confidence=confidence,
            total_weight=round(total_weight, 4),
        )
        return WinProbability(
            percentage=percentage,
            confidence=confidence,
            factors=factors,
            total_weight=total_weight,
        )
