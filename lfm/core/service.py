"""
Accuracy Service
================

Orchestration facade that wires every LFM component together:
- CaseFeatureExtractor (text -> features)
- CaseSimilarityScorer + CaseCorpus (precedent ranking, memoised)
- WinProbabilityEstimator (bounded win probability)
- ConfidenceCalibrator, EnsemblePredictor, FeedbackLearner (enhancements)
- ErrorAnalyzer, InteractionDataCollector (learning from outcomes)
- CacheRegistry (TTL caches, optional background sweepers)

Every component is an explicit instance owned by the service; nothing is
shared through module globals, so independent services never interfere.

Usage:
    from lfm import AccuracyService
    from lfm.storage import CaseCorpus

    service = AccuracyService(corpus=CaseCorpus.load_json("cases.json"))
    service.add_model("strict", strict_model)

    prediction = await service.predict_with_enhancements(
        "Employee was fired without prior warning",
        ensemble_strategy="majority",
    )
    print(prediction.outcome, prediction.confidence, prediction.source)

    await service.close()
"""

import hashlib
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import structlog

from lfm.calibration import ConfidenceCalibrator
from lfm.config import EnvironmentConfig, get_current_environment
from lfm.ensemble import EnsemblePredictor, EnsembleResult
from lfm.ensemble.predictor import ModelFn
from lfm.exceptions import NoModelsAvailable
from lfm.features import CaseFeatureExtractor
from lfm.learning import (
    ErrorAnalysisReport,
    ErrorAnalyzer,
    FeedbackLearner,
    Interaction,
    InteractionDataCollector,
)
from lfm.learning.feedback import OutcomeRecord
from lfm.models import (
    CalibrationProfile,
    CaseType,
    ContractViolation,
    ErrorRecord,
    EstimateContext,
    FeatureRecord,
    FeedbackEntry,
    FeedbackType,
    HistoricalCase,
    Prediction,
    PredictionSource,
    RankedCase,
    WinProbability,
)
from lfm.scoring import CaseSimilarityScorer, WinProbabilityEstimator
from lfm.storage import CacheRegistry, CaseCorpus, EmbeddingCaseRetriever, EmbeddingMatch
from lfm.storage.retriever import rank_similar_cases
from lfm.weights import EngineWeights, WeightStore

log = structlog.get_logger()

GenerateFn = Callable[[str], Awaitable[str]]


class CachedSimilarityScorer(CaseSimilarityScorer):
    """CaseSimilarityScorer whose scores are memoised in a TTL cache."""

    def __init__(self, weights, cache, on_access: Optional[Callable[[bool], None]] = None):
        super().__init__(weights)
        self.cache = cache
        self._on_access = on_access

    def score(self, a: Optional[FeatureRecord], b: Optional[FeatureRecord]) -> float:
        if a is None or b is None:
            return 0.0
        key = ("similarity", a, b)
        cached = self.cache.get(key)
        if self._on_access is not None:
            self._on_access(cached is not None)
        if cached is not None:
            return cached
        value = super().score(a, b)
        self.cache.set(key, value)
        return value


class AccuracyService:
    """
    Prediction pipeline with calibration, ensemble and feedback learning.

    Architecture:
        AccuracyService
        ├── CaseFeatureExtractor
        ├── CachedSimilarityScorer -> CacheRegistry.similarity
        ├── CaseCorpus (+ InteractionDataCollector appending training cases)
        ├── EmbeddingCaseRetriever -> CacheRegistry.embedding
        ├── WinProbabilityEstimator
        ├── ConfidenceCalibrator
        ├── EnsemblePredictor
        ├── FeedbackLearner
        └── ErrorAnalyzer
    """

    def __init__(
        self,
        weights: Optional[EngineWeights] = None,
        env: Optional[EnvironmentConfig] = None,
        corpus: Optional[CaseCorpus] = None,
        extractor: Optional[CaseFeatureExtractor] = None,
        estimator: Optional[WinProbabilityEstimator] = None,
        calibrator: Optional[ConfidenceCalibrator] = None,
        ensemble: Optional[EnsemblePredictor] = None,
        learner: Optional[FeedbackLearner] = None,
        analyzer: Optional[ErrorAnalyzer] = None,
        collector: Optional[InteractionDataCollector] = None,
        caches: Optional[CacheRegistry] = None,
        now: Callable[[], datetime] = datetime.now,
        clock: Callable[[], float] = time.monotonic,
        start_sweepers: bool = False,
    ):
        """
        Initialize the service.

        Components not supplied are built from weights and env.

        Args:
            weights: Engine weights (loaded from env.weights_path, or defaults, when None)
            env: Environment config for caches and timeouts (current environment when None)
            corpus: Stored precedents
            now: Clock for timestamps of the learning components
            clock: Monotonic clock for the caches
            start_sweepers: Start background expiry sweepers on the caches
        """
        self.env = env or get_current_environment()
        if weights is None:
            weights = WeightStore(self.env.weights_path).get_weights() if self.env.weights_path else EngineWeights()
        self.weights = weights
        self._now = now

        self.caches = caches or CacheRegistry(self.env, clock=clock, start_sweepers=start_sweepers)
        self.corpus = corpus if corpus is not None else CaseCorpus()

        self.extractor = extractor or CaseFeatureExtractor()
        self.scorer = CachedSimilarityScorer(
            self.weights.similarity, self.caches.similarity, on_access=self.caches.track_access
        )
        self.estimator = estimator or WinProbabilityEstimator(self.weights.win_probability)
        self.calibrator = calibrator or ConfidenceCalibrator(self.weights.calibration, now=now)
        self.ensemble = ensemble or EnsemblePredictor(
            self.weights.ensemble, member_timeout=self.env.ensemble_member_timeout, now=now
        )
        self.learner = learner or FeedbackLearner(self.weights.feedback, now=now)
        self.analyzer = analyzer or ErrorAnalyzer(self.weights.error_analysis, now=now)
        self.collector = collector or InteractionDataCollector(self.corpus, extractor=self.extractor, now=now)
        self.retriever = EmbeddingCaseRetriever(cache=self.caches.embedding)

        self._closed = False
        log.info(
            "AccuracyService initialized",
            environment=self.env.name,
            corpus_size=len(self.corpus),
            weights_version=self.weights.version,
        )

    @classmethod
    def from_store(cls, store: WeightStore, **kwargs: Any) -> "AccuracyService":
        """Build a service with the weights currently held by a WeightStore."""
        return cls(weights=store.get_weights(), **kwargs)

    # ---- Features and similarity ----

    def extract_features(self, text: str, hinted_type: Optional[Union[str, CaseType]] = None) -> FeatureRecord:
        return self.extractor.extract(text, hinted_type)

    def score_similarity(self, a: FeatureRecord, b: FeatureRecord) -> float:
        return self.scorer.score(a, b)

    def rank_similar_cases(
        self,
        features: FeatureRecord,
        cases: Optional[Iterable[HistoricalCase]] = None,
        limit: int = 3,
        min_score: float = 40.0,
    ) -> List[RankedCase]:
        """Rank precedents (the service corpus when cases is None)."""
        return rank_similar_cases(
            features,
            self.corpus if cases is None else cases,
            limit=limit,
            min_score=min_score,
            scorer=self.scorer,
        )

    async def find_similar_by_embedding(self, text: str, embed: Callable, limit: Optional[int] = None) -> List[EmbeddingMatch]:
        """Embedding search over the corpus; provider errors yield no matches."""
        return await self.retriever.retrieve(text, self.corpus, embed, limit=limit)

    # ---- Estimation ----

    def estimate_win_probability(
        self,
        context: EstimateContext,
        similar_cases: Sequence[Any],
        violations: Optional[Iterable[ContractViolation]] = None,
    ) -> WinProbability:
        return self.estimator.estimate(context, similar_cases, violations)

    # ---- Calibration ----

    def calibrate_confidence(
        self,
        case_type: str,
        predictions: Sequence[float],
        outcomes: Sequence[int],
    ) -> CalibrationProfile:
        return self.calibrator.calibrate(case_type, predictions, outcomes)

    def apply_calibration(self, case_type: str, raw: Any) -> float:
        return self.calibrator.apply(case_type, raw)

    # ---- Ensemble ----

    def add_model(self, model_id: str, fn: ModelFn, weight: float = 1.0) -> Dict[str, Any]:
        """Register an ensemble member; returns the ensemble stats."""
        self.ensemble.add_model(model_id, fn, weight)
        return self.ensemble.get_ensemble_stats()

    async def predict_ensemble(self, text: str, strategy: str = "weighted") -> EnsembleResult:
        return await self.ensemble.predict_ensemble(text, strategy)

    # ---- Prediction ----

    def generate_base_prediction(self, text: str, case_type: Optional[Union[str, CaseType]] = None) -> Prediction:
        """
        Heuristic prediction from evidence strength and similar precedents.

        confidence = base * evidence multiplier * (0.8 + avg_similarity / 100 * 0.4)
        The outcome is the most frequent outcome among the similar cases,
        "denied" when none is known.
        """
        s = self.weights.base_prediction
        features = self.extract_features(text, case_type)
        similar = self.rank_similar_cases(features, limit=s.similar_limit, min_score=s.min_similarity)

        confidence = s.base_confidence * s.evidence_multipliers.get(features.evidence_strength.value, 1.0)
        if similar:
            avg_similarity = sum(r.score for r in similar) / len(similar)
            confidence *= s.similarity_multiplier_base + avg_similarity / 100.0 * s.similarity_multiplier_span

        counts: Dict[str, int] = {}
        for ranked in similar:
            if ranked.outcome is not None:
                counts[ranked.outcome.value] = counts.get(ranked.outcome.value, 0) + 1
        outcome, best = s.default_outcome, 0
        for candidate, count in counts.items():
            if count > best:
                outcome, best = candidate, count

        low, high = s.confidence_bounds
        return Prediction(
            outcome=outcome,
            confidence=max(low, min(high, confidence)),
            case_type=features.case_type.value,
            similar_cases_found=len(similar),
            source=PredictionSource.BASE,
            analysis=(
                f"Based on {len(similar)} similar cases with evidence strength: "
                f"{features.evidence_strength.value}"
            ),
            features=features.to_dict(),
        )

    async def predict_with_enhancements(
        self,
        text: str,
        case_type: Optional[Union[str, CaseType]] = None,
        use_calibration: bool = True,
        use_ensemble: bool = True,
        use_feedback_learning: bool = True,
        ensemble_strategy: str = "weighted",
    ) -> Prediction:
        """
        Base prediction refined by the enhancement layers.

        Order: feedback corrections -> calibration (when a profile exists for
        the case type) -> ensemble (adopted only if more confident).

        Raises:
            UnknownVotingStrategy: If ensemble_strategy is invalid and members exist
        """
        prediction = self.generate_base_prediction(text, case_type)
        detected = prediction.case_type

        if use_feedback_learning:
            prediction = self.learner.apply_learned_corrections(prediction, detected)

        if use_calibration and self.calibrator.get_profile(detected) is not None:
            raw = prediction.confidence
            calibrated = self.calibrator.apply(detected, raw)
            prediction = prediction.replace(
                confidence=calibrated,
                source=PredictionSource.CALIBRATED,
                calibration_applied={"case_type": detected, "raw_confidence": raw, "calibrated_confidence": calibrated},
            )
            prediction.enhancements_applied.append("calibration")

        if use_ensemble and self.ensemble.models:
            try:
                result = await self.ensemble.predict_ensemble(text, ensemble_strategy)
            except NoModelsAvailable as e:
                log.warning("Ensemble prediction failed", error=str(e))
            else:
                changes: Dict[str, Any] = {"ensemble_result": result.to_dict()}
                if result.confidence > prediction.confidence:
                    changes.update(
                        outcome=result.outcome,
                        confidence=result.confidence,
                        source=PredictionSource.ENSEMBLE,
                    )
                prediction = prediction.replace(**changes)
                prediction.enhancements_applied.append("ensemble")

        log.debug(
            "Enhanced prediction",
            case_type=detected,
            outcome=prediction.outcome,
            confidence=round(prediction.confidence, 4),
            source=prediction.source.value,
            enhancements=prediction.enhancements_applied,
        )
        return prediction

    # ---- Generation ----

    async def generate_analysis(self, prompt: str, generate: GenerateFn) -> str:
        """Generated text for a prompt, cached in the AI response cache."""
        key = "ai_" + hashlib.sha256(prompt.encode("utf-8")).hexdigest()
        cached = self.caches.ai_response.get(key)
        self.caches.track_access(cached is not None)
        if cached is not None:
            return cached
        text = await generate(prompt)
        self.caches.ai_response.set(key, text)
        return text

    # ---- Learning ----

    @staticmethod
    def _error_context(original: Union[Mapping[str, Any], Prediction]) -> Dict[str, Any]:
        data = original.to_dict() if isinstance(original, Prediction) else dict(original)
        features = data.get("features") or {}
        return {
            "case_type": data.get("case_type") or data.get("caseType"),
            "evidence_strength": (
                data.get("evidence_strength") or data.get("evidenceStrength") or features.get("evidence_strength")
            ),
            "similar_cases_found": data.get("similar_cases_found", data.get("similarCasesFound")),
        }

    def record_feedback(
        self,
        grievance_id: str,
        original: Union[Mapping[str, Any], Prediction],
        corrected: Union[Mapping[str, Any], Prediction],
        feedback_type: Union[str, FeedbackType] = FeedbackType.CORRECTION,
    ) -> FeedbackEntry:
        """
        Record a user correction.

        A "correction" with a corrected outcome is also recorded as an error.

        Raises:
            InvalidFeedbackShape: If a payload is malformed (nothing is recorded)
        """
        entry = self.learner.record_feedback(grievance_id, original, corrected, feedback_type)
        corrected_outcome = entry.user_correction.get("outcome")
        if entry.feedback_type is FeedbackType.CORRECTION and corrected_outcome:
            self.analyzer.record_error(
                grievance_id,
                entry.original_prediction,
                corrected_outcome,
                self._error_context(original),
            )
        return entry

    def track_actual_outcome(
        self,
        grievance_id: str,
        actual: str,
        resolution_date: Optional[datetime] = None,
        notes: str = "",
    ) -> OutcomeRecord:
        return self.learner.track_actual_outcome(grievance_id, actual, resolution_date, notes)

    def record_error(
        self,
        grievance_id: str,
        prediction: Union[Mapping[str, Any], Prediction],
        actual: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> ErrorRecord:
        return self.analyzer.record_error(grievance_id, prediction, actual, context)

    def get_error_analysis_report(self, window: Any = "30d") -> ErrorAnalysisReport:
        return self.analyzer.get_error_analysis_report(window)

    def record_interaction(self, data: Mapping[str, Any]) -> Interaction:
        return self.collector.record_interaction(data)

    # ---- Maintenance ----

    def get_accuracy_enhancement_stats(self) -> Dict[str, Any]:
        calibrated = self.calibrator.calibrated_case_types
        return {
            "confidence_calibration": {
                "calibrated_case_types": calibrated,
                "calibration_stats": {ct: self.calibrator.get_calibration_stats(ct) for ct in calibrated},
            },
            "ensemble": self.ensemble.get_ensemble_stats(),
            "feedback_learning": self.learner.get_learning_stats(),
            "error_analysis": self.analyzer.get_error_analysis_report("30d").to_dict(),
            "insights": self.learner.generate_insights(),
            "interactions": self.collector.get_interaction_stats(),
            "corpus": self.corpus.export_training_stats(),
            "cache": self.caches.get_performance(),
            "generated_at": self._now().isoformat(),
        }

    def check_and_trigger_recalibration(
        self,
        recent_accuracy: Optional[Union[float, Mapping[str, float]]] = None,
    ) -> List[Dict[str, Any]]:
        """
        List what needs recalibration.

        Args:
            recent_accuracy: Observed accuracy, either one value for every
                case type or a mapping case_type -> accuracy

        Returns:
            One entry per stale calibration profile and per ensemble model
            whose last smoothing_window accuracies average below the
            underperforming threshold
        """
        needed: List[Dict[str, Any]] = []

        for case_type in self.calibrator.calibrated_case_types:
            if isinstance(recent_accuracy, Mapping):
                accuracy = recent_accuracy.get(case_type)
            else:
                accuracy = recent_accuracy
            if self.calibrator.needs_recalibration(case_type, accuracy):
                needed.append({
                    "type": "confidence_calibration",
                    "case_type": case_type,
                    "reason": "Accuracy dropped or calibration outdated",
                })

        s = self.weights.ensemble
        for model_id in self.ensemble.models:
            history = self.ensemble.history_for(model_id)
            if len(history) <= s.smoothing_window:
                continue
            recent = history[-s.smoothing_window:]
            avg_accuracy = sum(r.accuracy for r in recent) / len(recent)
            if avg_accuracy < s.underperforming_threshold:
                needed.append({
                    "type": "ensemble_model",
                    "model_id": model_id,
                    "current_accuracy": avg_accuracy,
                    "reason": "Model performance below threshold",
                })

        if needed:
            log.info("Recalibration needed", items=len(needed))
        return needed

    async def close(self) -> None:
        """Stop the cache sweepers."""
        if self._closed:
            return
        self.caches.close()
        self._closed = True
        log.info("AccuracyService closed")

    async def __aenter__(self) -> "AccuracyService":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
