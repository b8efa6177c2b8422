"""
Case Similarity Scorer
=======================

Weighted multi-attribute similarity (0-100) between two feature records.

Sub-scores (each in [0, 1], contributing weight * sub-score * 100):
- case_type: exact match
- violation_type: exact match
- contract_articles, just_cause_tests, procedural_issues: set overlap
  |A & B| / max(|A|, |B|, 1)
- description: hybrid Jaccard/Levenshtein text similarity, when both present
- outcome: exact match, when both present

Absent attributes contribute 0 and the weights are not renormalised.

Example:
    >>> scorer = CaseSimilarityScorer()
    >>> scorer.score(record, record)
    100.0
"""

import re
from typing import AbstractSet, Dict, Optional

from lfm.models import FeatureRecord
from lfm.weights.config import SimilarityWeights

WORD_SPLIT = re.compile(r"\W+")


def levenshtein(a: str, b: str) -> int:
    """Edit distance (insert, delete, substitute) between two strings."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j - 1] + cost, current[j - 1] + 1, previous[j] + 1))
        previous = current
    return previous[-1]


class CaseSimilarityScorer:
    """
    Multi-attribute similarity between feature records.

    Attributes:
        weights: SimilarityWeights (attribute weights summing to 1.0)
    """

    def __init__(self, weights: Optional[SimilarityWeights] = None):
        self.weights = weights or SimilarityWeights()

    def score(self, a: Optional[FeatureRecord], b: Optional[FeatureRecord]) -> float:
        """Similarity in [0, 100]; 0 when either record is missing."""
        if a is None or b is None:
            return 0.0
        total = round(sum(self.breakdown(a, b).values()), 10)
        return max(0.0, min(100.0, total))

    def breakdown(self, a: FeatureRecord, b: FeatureRecord) -> Dict[str, float]:
        """Contribution of each attribute to the score (already weighted, 0-100 scale)."""
        w = self.weights
        contributions = {
            "case_type": w.case_type * self._match(a.case_type, b.case_type),
            "violation_type": w.violation_type * self._match(a.violation_type, b.violation_type),
            "contract_articles": w.contract_articles * self.set_overlap(a.contract_articles, b.contract_articles),
            "just_cause_tests": w.just_cause_tests * self.set_overlap(a.just_cause_tests, b.just_cause_tests),
            "procedural_issues": w.procedural_issues * self.set_overlap(a.procedural_issues, b.procedural_issues),
            "description": 0.0,
            "outcome": 0.0,
        }
        if a.description and b.description:
            contributions["description"] = w.description * self.text_similarity(a.description, b.description)
        if a.outcome is not None and b.outcome is not None:
            contributions["outcome"] = w.outcome * self._match(a.outcome, b.outcome)

        return {name: value * 100 for name, value in contributions.items()}

    @staticmethod
    def _match(x, y) -> float:
        return 1.0 if x == y else 0.0

    def set_overlap(self, a: AbstractSet, b: AbstractSet) -> float:
        if not a and not b:
            return 1.0 if self.weights.empty_sets_match else 0.0
        return len(a & b) / max(len(a), len(b), 1)

    def _words(self, text: str) -> set:
        return {w for w in WORD_SPLIT.split(text) if len(w) >= self.weights.min_word_length}

    def text_similarity(self, a: str, b: str) -> float:
        """
        Hybrid text similarity in [0, 1].

        jaccard_share * Jaccard(word sets) + (1 - jaccard_share) * (1 - levenshtein / max length)
        """
        a, b = a.lower(), b.lower()
        max_len = max(len(a), len(b))
        if max_len == 0:
            return 1.0

        words_a, words_b = self._words(a), self._words(b)
        union = words_a | words_b
        jaccard = len(words_a & words_b) / len(union) if union else 0.0
        edit = 1.0 - levenshtein(a, b) / max_len

        share = self.weights.jaccard_share
        return share * jaccard + (1.0 - share) * edit
