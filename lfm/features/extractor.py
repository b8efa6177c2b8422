"""
Case Feature Extractor
=======================

Derives a structured FeatureRecord from raw grievance text with keyword and
pattern heuristics.

Extraction steps:
1. Case type: keyword families in a fixed priority order, first match wins
2. Violation type: pattern family with the most matches, ties by declaration order
3. Contract articles: "Article 12.3" -> "12.3"
4. Procedural issues: phrase cues
5. Evidence strength: low -> medium -> high, upgrades only
6. Just-cause tests: phrase cues mapped to the Seven Tests (1..7)

Extraction is pure: no I/O, no state.

Example:
    >>> features = extract_features(
    ...     "Employee was terminated for a single 5-minute tardiness incident "
    ...     "with no prior written warnings"
    ... )
    >>> features.case_type, features.violation_type
    (<CaseType.TERMINATION: 'termination'>, 'progressive_discipline')
"""

import re
from typing import FrozenSet, Optional, Pattern, Sequence, Tuple, Union

import structlog

from lfm.models import CaseType, EvidenceStrength, FeatureRecord

log = structlog.get_logger()


# Order matters: a text mentioning both "fired" and "overtime" is a termination
CASE_TYPE_KEYWORDS: Tuple[Tuple[CaseType, Tuple[str, ...]], ...] = (
    (CaseType.TERMINATION, ("fire", "terminat", "discharg")),
    (CaseType.DISCIPLINE, ("suspend", "suspension", "disciplin", "reprimand")),
    (CaseType.OVERTIME, ("overtime", "hours", "pay")),
    (CaseType.HARASSMENT, ("harass", "hostile")),
    (CaseType.SAFETY, ("safety", "hazard", "danger")),
    (CaseType.SENIORITY, ("seniority", "bypass")),
    (CaseType.WEINGARTEN, ("weingarten", "representation")),
    (CaseType.CONTRACT, ("contract", "article")),
)

VIOLATION_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("progressive_discipline", re.compile(r"no.*warning|first.*offense|clean.*record", re.I)),
    ("disparate_treatment", re.compile(r"others.*same|selective|everyone.*else", re.I)),
    ("flsa_violation", re.compile(r"off.*clock|unpaid|overtime|hours.*worked", re.I)),
    ("investigation_required", re.compile(r"no.*investigation|not.*interview|based.*complaint", re.I)),
    ("safety_hazard", re.compile(r"unsafe|dangerous|hazard|injury|accident", re.I)),
)

PROCEDURAL_CUES: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("no_prior_discipline", re.compile(r"no (?:prior )?(?:written )?(?:warning|discipline)|clean record", re.I)),
    ("no_investigation", re.compile(r"no investigation|without (?:an? )?investigation", re.I)),
    ("selective_enforcement", re.compile(r"others did|same thing", re.I)),
    ("uncompensated_work", re.compile(r"off(?: the)? clock|unpaid", re.I)),
)

# Seven Tests of Just Cause: 1 notice, 2 reasonable rule, 3 investigation,
# 4 fair investigation, 5 proof, 6 equal treatment, 7 penalty
JUST_CAUSE_CUES: Tuple[Tuple[int, Pattern[str]], ...] = (
    (1, re.compile(r"no (?:prior )?(?:written )?warning|without (?:any )?(?:prior )?warning|never (?:warned|notified)", re.I)),
    (2, re.compile(r"unreasonable (?:rule|policy)|arbitrary (?:rule|policy)", re.I)),
    (3, re.compile(r"no investigation|without (?:an? )?investigation|never investigated", re.I)),
    (4, re.compile(r"not (?:allowed|given a chance) to (?:respond|explain)|biased investigation|not interviewed", re.I)),
    (5, re.compile(r"no (?:proof|evidence)|insufficient evidence|lack of evidence", re.I)),
    (6, re.compile(r"others did|same thing|treated differently|selective", re.I)),
    (7, re.compile(r"too harsh|excessive (?:penalty|discipline|punishment)|disproportionate|first offen[cs]e", re.I)),
)

ARTICLE_PATTERN = re.compile(r"article\s*(\d+(?:\.\d+)?)", re.I)

MEDIUM_EVIDENCE_CUES = ("document", "record", "witness")
HIGH_EVIDENCE_CUE = "written"


class CaseFeatureExtractor:
    """
    Heuristic feature extraction from grievance text.

    The rule tables are class attributes so that subclasses can extend them.

    Example:
        >>> extractor = CaseFeatureExtractor()
        >>> extractor.extract("Suspended under Article 12.3", hinted_type="discipline").contract_articles
        frozenset({'12.3'})
    """

    case_type_keywords = CASE_TYPE_KEYWORDS
    violation_patterns = VIOLATION_PATTERNS
    procedural_cues = PROCEDURAL_CUES
    just_cause_cues = JUST_CAUSE_CUES

    def extract(self, text: str, hinted_type: Optional[Union[str, CaseType]] = None) -> FeatureRecord:
        """
        Extract features from a grievance description.

        Args:
            text: Free-text grievance
            hinted_type: Case type supplied by the caller, overrides detection

        Returns:
            FeatureRecord carrying the stripped text as description
        """
        text = text or ""
        lowered = text.lower()

        case_type = CaseType.parse(hinted_type) if hinted_type else self.detect_case_type(lowered)
        articles = self.extract_articles(text)
        procedural = self.detect_procedural_issues(text)

        record = FeatureRecord(
            case_type=case_type,
            violation_type=self.detect_violation_type(text),
            contract_articles=articles,
            procedural_issues=procedural,
            evidence_strength=self.assess_evidence(lowered, articles, procedural),
            just_cause_tests=self.detect_just_cause_tests(text),
            description=text.strip() or None,
        )

        log.debug(
            "Features extracted",
            case_type=record.case_type.value,
            violation_type=record.violation_type,
            articles=len(record.contract_articles),
            evidence=record.evidence_strength.value,
        )
        return record

    def detect_case_type(self, lowered: str) -> CaseType:
        for case_type, keywords in self.case_type_keywords:
            if any(keyword in lowered for keyword in keywords):
                return case_type
        return CaseType.GENERAL

    def detect_violation_type(self, text: str) -> str:
        best, best_count = "general", 0
        for violation, pattern in self.violation_patterns:
            count = len(pattern.findall(text))
            # Strict comparison keeps the earlier family on ties
            if count > best_count:
                best, best_count = violation, count
        return best

    @staticmethod
    def extract_articles(text: str) -> FrozenSet[str]:
        return frozenset(m.group(1).lower() for m in ARTICLE_PATTERN.finditer(text))

    def detect_procedural_issues(self, text: str) -> FrozenSet[str]:
        return frozenset(tag for tag, pattern in self.procedural_cues if pattern.search(text))

    def detect_just_cause_tests(self, text: str) -> FrozenSet[int]:
        return frozenset(number for number, pattern in self.just_cause_cues if pattern.search(text))

    @staticmethod
    def assess_evidence(
        lowered: str,
        articles: Sequence[str],
        procedural: Sequence[str],
    ) -> EvidenceStrength:
        strength = EvidenceStrength.LOW
        if any(cue in lowered for cue in MEDIUM_EVIDENCE_CUES):
            strength = EvidenceStrength.MEDIUM
        if HIGH_EVIDENCE_CUE in lowered or len(articles) >= 1 or len(procedural) >= 2:
            strength = EvidenceStrength.HIGH
        return strength


_default_extractor = CaseFeatureExtractor()


def extract_features(text: str, hinted_type: Optional[Union[str, CaseType]] = None) -> FeatureRecord:
    """Extract features with the default extractor."""
    return _default_extractor.extract(text, hinted_type)
