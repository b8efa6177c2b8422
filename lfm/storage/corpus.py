"""
Case Corpus
===========

In-memory collection of stored precedents.

The persistence layer is an external collaborator: it hands over plain
records (from a database query or a JSON export) and the corpus turns them
into HistoricalCase objects. Training cases produced from aged interaction
logs are appended here.

Example:
    >>> corpus = CaseCorpus.load_json("cases.json")
    >>> len(corpus)
    42
"""

import json
from collections import Counter
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Union

import structlog

from lfm.models import HistoricalCase

log = structlog.get_logger()


class CaseCorpus:
    """Ordered, append-only list of HistoricalCase records."""

    def __init__(self, cases: Optional[Iterable[HistoricalCase]] = None):
        self._cases: List[HistoricalCase] = list(cases or [])
        self._descriptions = {self._normalize(c.features.description) for c in self._cases}

    @staticmethod
    def _normalize(description: Optional[str]) -> str:
        return " ".join((description or "").lower().split())

    def add(self, case: HistoricalCase) -> None:
        self._cases.append(case)
        self._descriptions.add(self._normalize(case.features.description))

    def extend(self, cases: Iterable[HistoricalCase]) -> None:
        for case in cases:
            self.add(case)

    def has_description(self, description: str) -> bool:
        """Whether a case with the same description (case and whitespace-insensitive) exists."""
        return self._normalize(description) in self._descriptions

    def __iter__(self) -> Iterator[HistoricalCase]:
        return iter(list(self._cases))

    def __len__(self) -> int:
        return len(self._cases)

    @property
    def cases(self) -> List[HistoricalCase]:
        return list(self._cases)

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "CaseCorpus":
        return cls(HistoricalCase.from_dict(record) for record in records)

    @classmethod
    def load_json(cls, path: Union[str, Path]) -> "CaseCorpus":
        """
        Load a corpus from a JSON file.

        The file holds either a list of case records or {"cases": [...]}.
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, Mapping):
            data = data.get("cases", [])
        if not isinstance(data, list):
            raise ValueError(f"Corpus file must hold a list of cases: {path}")

        corpus = cls.from_records(data)
        log.info("Case corpus loaded", path=str(path), cases=len(corpus))
        return corpus

    def export_training_stats(self) -> Dict[str, Any]:
        """Counts of cases by case type, outcome and source."""
        return {
            "total_cases": len(self._cases),
            "by_case_type": dict(Counter(c.features.case_type.value for c in self._cases)),
            "by_outcome": dict(Counter(c.outcome.value if c.outcome else "unknown" for c in self._cases)),
            "by_source": dict(Counter(c.source for c in self._cases)),
            "with_embedding": sum(1 for c in self._cases if c.embedding),
        }
