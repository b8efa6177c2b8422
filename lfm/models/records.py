"""
Case Records
=============

Feature records and stored precedents.

A FeatureRecord is derived from one grievance text and is immutable.
A HistoricalCase is a stored precedent: features, outcome and an
embedding tied to the provider that produced it.

Stored corpora use either snake_case or camelCase keys; both are accepted
by the from_dict constructors.
Violation types are coerced to lowercase [a-z_] tags, so "FLSA-violation"
is stored as "flsa_violation".

Example:
    >>> record = FeatureRecord(case_type=CaseType.TERMINATION,
    ...                        violation_type="progressive_discipline",
    ...                        contract_articles={"15.2"})
    >>> record.contract_articles
    frozenset({'15.2'})
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from lfm.models.enums import CaseType, EvidenceStrength, Outcome

NON_TAG_CHARS = re.compile(r"[^a-z_]+")

JUST_CAUSE_TEST_NAMES = (
    "notice",
    "reasonable_rule",
    "investigation",
    "fair_investigation",
    "proof",
    "equal_treatment",
    "penalty",
)


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _string_set(values: Optional[Iterable[Any]]) -> FrozenSet[str]:
    if not values:
        return frozenset()
    if isinstance(values, str):
        values = [values]
    return frozenset(str(v).strip().lower() for v in values if str(v).strip())


@dataclass(frozen=True)
class FeatureRecord:
    """
    Structured features of one grievance.

    Attributes:
        case_type: Subject matter
        violation_type: Lowercase tag, e.g. "progressive_discipline"
        contract_articles: Article identifiers, e.g. {"12.3"}
        procedural_issues: Procedural issue tags
        evidence_strength: Evidence tier
        just_cause_tests: Seven Tests numbers (1..7) implicated by the text
        description: Grievance text, used for text similarity
        outcome: Known outcome, for stored precedents
    """
    case_type: CaseType = CaseType.GENERAL
    violation_type: str = "general"
    contract_articles: FrozenSet[str] = frozenset()
    procedural_issues: FrozenSet[str] = frozenset()
    evidence_strength: EvidenceStrength = EvidenceStrength.LOW
    just_cause_tests: FrozenSet[int] = frozenset()
    description: Optional[str] = None
    outcome: Optional[Outcome] = None

    def __post_init__(self):
        # Normalise inputs on a frozen instance
        object.__setattr__(self, "case_type", CaseType.parse(self.case_type))
        object.__setattr__(self, "evidence_strength", EvidenceStrength.parse(self.evidence_strength))
        object.__setattr__(self, "contract_articles", _string_set(self.contract_articles))
        object.__setattr__(self, "procedural_issues", _string_set(self.procedural_issues))
        object.__setattr__(self, "just_cause_tests", frozenset(int(t) for t in self.just_cause_tests or ()))
        if self.outcome is not None and not isinstance(self.outcome, Outcome):
            object.__setattr__(self, "outcome", Outcome.parse(self.outcome))

        # Coerce to a [a-z_]+ tag, "general" when nothing survives
        violation = NON_TAG_CHARS.sub("_", str(self.violation_type or "").lower()).strip("_") or "general"
        object.__setattr__(self, "violation_type", violation)

        invalid = [t for t in self.just_cause_tests if not 1 <= t <= 7]
        if invalid:
            raise ValueError(f"just_cause_tests must be within 1..7, got {sorted(invalid)}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "case_type": self.case_type.value,
            "violation_type": self.violation_type,
            "contract_articles": sorted(self.contract_articles),
            "procedural_issues": sorted(self.procedural_issues),
            "evidence_strength": self.evidence_strength.value,
            "just_cause_tests": sorted(self.just_cause_tests),
            "description": self.description,
            "outcome": self.outcome.value if self.outcome else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FeatureRecord":
        return cls(
            case_type=_pick(data, "case_type", "caseType", default=CaseType.GENERAL),
            violation_type=_pick(data, "violation_type", "violationType", default="general"),
            contract_articles=_pick(data, "contract_articles", "contractArticles", default=()),
            procedural_issues=_pick(data, "procedural_issues", "proceduralIssues", default=()),
            evidence_strength=_pick(data, "evidence_strength", "evidenceStrength", default=EvidenceStrength.LOW),
            just_cause_tests=_pick(data, "just_cause_tests", "justCauseTests", default=()),
            description=_pick(data, "description"),
            outcome=_pick(data, "outcome"),
        )


@dataclass
class HistoricalCase:
    """
    A stored precedent.

    Embeddings are only comparable between cases sharing the same provider.

    Attributes:
        case_id: Unique identifier
        features: Feature record of the precedent
        outcome: Known outcome, None when unresolved
        embedding: Embedding vector, empty when not computed
        provider: Embedding provider tag
        source: Where the case came from ("import", "user_interaction")
        title: Short human-readable title
    """
    case_id: str
    features: FeatureRecord = field(default_factory=FeatureRecord)
    outcome: Optional[Outcome] = None
    embedding: Tuple[float, ...] = ()
    provider: str = "gemini"
    source: str = "import"
    title: str = ""

    def __post_init__(self):
        self.case_id = str(self.case_id)
        if self.outcome is not None and not isinstance(self.outcome, Outcome):
            self.outcome = Outcome.parse(self.outcome)
        self.embedding = tuple(float(x) for x in self.embedding or ())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "case_id": self.case_id,
            "features": self.features.to_dict(),
            "outcome": self.outcome.value if self.outcome else None,
            "embedding": list(self.embedding),
            "provider": self.provider,
            "source": self.source,
            "title": self.title,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HistoricalCase":
        features = _pick(data, "features")
        if isinstance(features, FeatureRecord):
            record = features
        else:
            record = FeatureRecord.from_dict(features or {})
        return cls(
            case_id=_pick(data, "case_id", "id", "caseId", default=""),
            features=record,
            outcome=_pick(data, "outcome", "decision", default=record.outcome),
            embedding=_pick(data, "embedding", default=()),
            provider=_pick(data, "provider", "embedding_provider", default="gemini"),
            source=_pick(data, "source", default="import"),
            title=_pick(data, "title", default=""),
        )


@dataclass
class RankedCase:
    """A precedent with its similarity score (0..100)."""
    case: HistoricalCase
    score: float

    @property
    def outcome(self) -> Optional[Outcome]:
        return self.case.outcome

    def to_dict(self) -> Dict[str, Any]:
        return {
            "case_id": self.case.case_id,
            "title": self.case.title,
            "outcome": self.outcome.value if self.outcome else None,
            "score": round(self.score, 2),
        }


@dataclass
class JustCauseResults:
    """
    Seven Tests of Just Cause, each "pass", "fail" or None (not assessed).
    """
    notice: Optional[str] = None
    reasonable_rule: Optional[str] = None
    investigation: Optional[str] = None
    fair_investigation: Optional[str] = None
    proof: Optional[str] = None
    equal_treatment: Optional[str] = None
    penalty: Optional[str] = None

    def _results(self) -> Tuple[Optional[str], ...]:
        return tuple(getattr(self, name) for name in JUST_CAUSE_TEST_NAMES)

    @property
    def passing_count(self) -> int:
        return sum(1 for r in self._results() if r == "pass")

    def as_test_numbers(self) -> FrozenSet[int]:
        """Numbers (1..7) of the tests marked as passing."""
        return frozenset(i for i, r in enumerate(self._results(), start=1) if r == "pass")

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {name: getattr(self, name) for name in JUST_CAUSE_TEST_NAMES}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "JustCauseResults":
        camel = {
            "reasonableRule": "reasonable_rule",
            "fairInvestigation": "fair_investigation",
            "equalTreatment": "equal_treatment",
        }
        values = {}
        for key, value in data.items():
            name = camel.get(key, key)
            if name in JUST_CAUSE_TEST_NAMES:
                values[name] = str(value).lower() if value is not None else None
        return cls(**values)


@dataclass
class EstimateContext:
    """Input context of a win probability estimate."""
    case_type: str
    just_cause: Optional[JustCauseResults] = None


@dataclass
class ContractViolation:
    """A contract article alleged to be violated."""
    article: str
    description: str = ""
