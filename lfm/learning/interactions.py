"""
Interaction Data Collector
===========================

Bounded log of user interactions that feeds the case corpus.

When the log grows past max_interactions, the oldest batch is converted to
training cases before being dropped:
- only "analysis" interactions with both input and output are converted
- the outcome is inferred from keywords in the output; "unknown" is skipped
- a case whose description is already in the corpus is not added again

Example:
    >>> corpus = CaseCorpus()
    >>> collector = InteractionDataCollector(corpus, max_interactions=10000)
    >>> collector.record_interaction({"type": "analysis", "input": "...", "output": "..."})
    >>> collector.get_interaction_stats(hours=24)["total_interactions"]
    1
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional

import structlog

from lfm.features import CaseFeatureExtractor
from lfm.models import HistoricalCase, Outcome
from lfm.storage.corpus import CaseCorpus

log = structlog.get_logger()

# Checked in order; the first family with a hit decides.
OUTCOME_KEYWORDS = (
    (Outcome.GRANTED, ("granted", "favor", "recommend")),
    (Outcome.DENIED, ("denied", "not supported")),
    (Outcome.SETTLED, ("settlement", "compromise")),
)


@dataclass
class Interaction:
    """
    One logged user interaction.

    Attributes:
        id: Unique interaction id
        timestamp: When it was recorded
        type: "query", "analysis", "feedback", "template_use" or "unknown"
        user_id: Caller identity, "anonymous" by default
        input: User input text
        output: Produced output text
        response_time: Seconds taken to answer
        success: Whether the interaction succeeded
        metadata: Free-form extra data
        case_type: Case type inferred from the input
        confidence: Confidence reported with the output, if any
    """
    id: str
    timestamp: datetime
    type: str = "unknown"
    user_id: str = "anonymous"
    input: str = ""
    output: str = ""
    response_time: float = 0.0
    success: bool = True
    metadata: Dict[str, Any] = field(default_factory=dict)
    case_type: str = "general"
    confidence: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "type": self.type,
            "user_id": self.user_id,
            "input": self.input,
            "output": self.output,
            "response_time": self.response_time,
            "success": self.success,
            "metadata": dict(self.metadata),
            "case_type": self.case_type,
            "confidence": self.confidence,
        }


def infer_outcome(output: str) -> Optional[Outcome]:
    """Outcome suggested by the wording of an analysis, None when unclear."""
    lowered = (output or "").lower()
    for outcome, keywords in OUTCOME_KEYWORDS:
        if any(k in lowered for k in keywords):
            return outcome
    return None


class InteractionDataCollector:
    """
    Interaction log with conversion of aged entries into training cases.

    Attributes:
        corpus: CaseCorpus receiving converted training cases
        max_interactions: Log size that triggers a conversion
        conversion_batch: Number of oldest interactions converted and dropped
    """

    def __init__(
        self,
        corpus: Optional[CaseCorpus] = None,
        max_interactions: int = 10000,
        conversion_batch: int = 100,
        extractor: Optional[CaseFeatureExtractor] = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        if max_interactions < 1 or conversion_batch < 1:
            raise ValueError("max_interactions and conversion_batch must be positive")
        self.corpus = corpus if corpus is not None else CaseCorpus()
        self.max_interactions = max_interactions
        self.conversion_batch = conversion_batch
        self.extractor = extractor or CaseFeatureExtractor()
        self._now = now
        self._interactions: List[Interaction] = []
        self._case_outcomes: Dict[str, Dict[str, Any]] = {}
        self.converted_total = 0

    @property
    def interactions(self) -> List[Interaction]:
        return list(self._interactions)

    def __len__(self) -> int:
        return len(self._interactions)

    def record_interaction(self, data: Mapping[str, Any]) -> Interaction:
        text = str(data.get("input") or "")
        confidence = data.get("confidence")
        interaction = Interaction(
            id=f"interaction-{uuid.uuid4().hex[:12]}",
            timestamp=self._now(),
            type=str(data.get("type") or "unknown"),
            user_id=str(data.get("user_id") or data.get("userId") or "anonymous"),
            input=text,
            output=str(data.get("output") or ""),
            response_time=float(data.get("response_time") or data.get("responseTime") or 0.0),
            success=data.get("success") is not False,
            metadata=dict(data.get("metadata") or {}),
            case_type=self.extractor.detect_case_type(text.lower()).value,
            confidence=float(confidence) if confidence is not None else None,
        )
        self._interactions.append(interaction)

        if len(self._interactions) > self.max_interactions:
            batch = self._interactions[:self.conversion_batch]
            self.convert_to_training(batch)
            self._interactions = self._interactions[self.conversion_batch:]

        return interaction

    def convert_to_training(self, batch: List[Interaction]) -> List[HistoricalCase]:
        """Append the convertible interactions of a batch to the corpus."""
        added: List[HistoricalCase] = []
        for interaction in batch:
            if interaction.type != "analysis" or not interaction.input or not interaction.output:
                continue
            outcome = infer_outcome(interaction.output)
            if outcome is None or self.corpus.has_description(interaction.input):
                continue

            features = replace(
                self.extractor.extract(interaction.input, hinted_type=interaction.case_type),
                outcome=outcome,
            )
            case = HistoricalCase(
                case_id=f"training-{interaction.id}",
                features=features,
                outcome=outcome,
                source="user_interaction",
                title=interaction.input[:80],
            )
            self.corpus.add(case)
            added.append(case)

        self.converted_total += len(added)
        log.info(
            "Interactions converted to training cases",
            batch=len(batch),
            added=len(added),
            corpus_size=len(self.corpus),
        )
        return added

    def track_case_outcome(
        self,
        case_id: str,
        outcome: str,
        actual_confidence: Optional[float] = None,
    ) -> Dict[str, Any]:
        entry = {
            "outcome": outcome,
            "actual_confidence": actual_confidence,
            "recorded_at": self._now().isoformat(),
        }
        self._case_outcomes[str(case_id)] = entry
        return entry

    def get_case_outcome(self, case_id: str) -> Optional[Dict[str, Any]]:
        return self._case_outcomes.get(str(case_id))

    def get_interaction_stats(self, hours: float = 24) -> Dict[str, Any]:
        cutoff = self._now() - timedelta(hours=hours)
        recent = [i for i in self._interactions if i.timestamp > cutoff]

        stats: Dict[str, Any] = {
            "total_interactions": len(recent),
            "avg_response_time": 0.0,
            "success_rate": 0.0,
            "case_type_distribution": {},
            "time_range": f"{hours:g} hours",
        }
        if recent:
            stats["avg_response_time"] = sum(i.response_time for i in recent) / len(recent)
            stats["success_rate"] = sum(1 for i in recent if i.success) / len(recent)
            distribution: Dict[str, int] = {}
            for i in recent:
                distribution[i.case_type] = distribution.get(i.case_type, 0) + 1
            stats["case_type_distribution"] = distribution
        return stats

    def export_training_data(self) -> Dict[str, Any]:
        """Summary of the training cases that came from interactions."""
        training = [c for c in self.corpus if c.source == "user_interaction"]
        breakdown: Dict[str, int] = {}
        for case in training:
            key = case.features.case_type.value
            breakdown[key] = breakdown.get(key, 0) + 1
        return {
            "total_training_cases": len(training),
            "case_type_breakdown": breakdown,
            "export_date": self._now().isoformat(),
        }
