"""
Case Retrieval
==============

Two ways of finding precedents for a grievance:

1. rank_similar_cases: feature-based, scored by CaseSimilarityScorer (0-100)
2. EmbeddingCaseRetriever: embedding-based, cosine similarity restricted to
   cases embedded by the same provider

Embeddings from different providers have different dimensionality and
semantics; they are never compared with each other.

Example:
    >>> ranked = rank_similar_cases(features, corpus, limit=3, min_score=40)
    >>> [(r.case.case_id, round(r.score)) for r in ranked]
    [('case-001', 92), ('case-007', 61)]
"""

import hashlib
import math
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, List, Mapping, Optional, Sequence, Tuple

import structlog

from lfm.exceptions import DimensionMismatch
from lfm.models import FeatureRecord, HistoricalCase, RankedCase
from lfm.scoring.similarity import CaseSimilarityScorer
from lfm.storage.cache import TTLCache
from lfm.storage.vectors.similarity import cosine_similarity

log = structlog.get_logger()


def rank_similar_cases(
    features: FeatureRecord,
    corpus: Iterable[HistoricalCase],
    limit: int = 3,
    min_score: float = 40.0,
    scorer: Optional[CaseSimilarityScorer] = None,
) -> List[RankedCase]:
    """
    Rank precedents by feature similarity.

    Args:
        features: Features of the grievance
        corpus: Candidate precedents
        limit: Maximum number of results
        min_score: Minimum similarity (0-100) to be returned
        scorer: Scorer to use, default weights when None

    Returns:
        RankedCase list, best first; equal scores keep corpus order
    """
    scorer = scorer or CaseSimilarityScorer()
    scored = [RankedCase(case=case, score=scorer.score(features, case.features)) for case in corpus]
    ranked = sorted((r for r in scored if r.score >= min_score), key=lambda r: r.score, reverse=True)
    return ranked[: max(0, limit)]


@dataclass
class EmbeddingResult:
    """Output of an embedding provider."""
    embedding: Tuple[float, ...]
    provider: str


@dataclass
class EmbeddingMatch:
    """A precedent with its cosine similarity to the query."""
    case: HistoricalCase
    similarity: float

    def to_dict(self) -> dict:
        return {
            "case_id": self.case.case_id,
            "title": self.case.title,
            "outcome": self.case.outcome.value if self.case.outcome else None,
            "similarity": round(self.similarity, 4),
        }


EmbedFn = Callable[[str], Awaitable[Any]]


def _as_embedding_result(raw: Any, default_provider: str) -> EmbeddingResult:
    if isinstance(raw, EmbeddingResult):
        return raw
    if isinstance(raw, Mapping):
        return EmbeddingResult(
            embedding=tuple(float(x) for x in raw["embedding"]),
            provider=str(raw.get("provider") or default_provider),
        )
    if hasattr(raw, "embedding"):
        return EmbeddingResult(
            embedding=tuple(float(x) for x in raw.embedding),
            provider=str(getattr(raw, "provider", None) or default_provider),
        )
    return EmbeddingResult(embedding=tuple(float(x) for x in raw), provider=default_provider)


class EmbeddingCaseRetriever:
    """
    Provider-aware embedding search over a case corpus.

    Example:
        >>> retriever = EmbeddingCaseRetriever(cache=registry.embedding)
        >>> matches = await retriever.retrieve("Fired without warning", corpus, embed=provider.embed)
    """

    def __init__(
        self,
        cache: Optional[TTLCache] = None,
        limit: int = 5,
        default_provider: str = "gemini",
    ):
        self.cache = cache
        self.limit = limit
        self.default_provider = default_provider

    def find_similar(
        self,
        query_embedding: Sequence[float],
        provider: str,
        corpus: Iterable[HistoricalCase],
        limit: Optional[int] = None,
    ) -> List[EmbeddingMatch]:
        """
        Most similar cases embedded by the same provider.

        Cases with another provider, no embedding, a different dimensionality
        or a degenerate (zero) vector are skipped.
        """
        limit = self.limit if limit is None else limit
        matches: List[EmbeddingMatch] = []
        skipped = 0

        for case in corpus:
            if case.provider != provider or not case.embedding:
                continue
            try:
                similarity = cosine_similarity(query_embedding, case.embedding)
            except DimensionMismatch:
                skipped += 1
                continue
            if math.isnan(similarity):
                skipped += 1
                continue
            matches.append(EmbeddingMatch(case=case, similarity=similarity))

        if skipped:
            log.warning("Skipped incomparable embeddings", provider=provider, skipped=skipped)

        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[: max(0, limit)]

    async def embed(self, text: str, embed: EmbedFn) -> EmbeddingResult:
        """Embed text through the provider, memoised by text fingerprint."""
        key = "embedding_" + hashlib.sha256(text.encode("utf-8")).hexdigest()
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        result = _as_embedding_result(await embed(text), self.default_provider)
        if self.cache is not None:
            self.cache.set(key, result)
        return result

    async def retrieve(
        self,
        text: str,
        corpus: Iterable[HistoricalCase],
        embed: EmbedFn,
        limit: Optional[int] = None,
    ) -> List[EmbeddingMatch]:
        """
        Embed the grievance and search the corpus.

        Provider failures are logged and yield an empty result.
        """
        try:
            result = await self.embed(text, embed)
        except Exception as e:
            log.error("Embedding provider failed", error=str(e))
            return []

        matches = self.find_similar(result.embedding, result.provider, corpus, limit)
        log.debug("Embedding retrieval", provider=result.provider, results=len(matches))
        return matches
