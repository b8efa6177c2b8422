"""
Test EnsemblePredictor
======================

Concurrent fan-out, voting strategies and weight adaptation.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock

from lfm.ensemble import EnsemblePredictor
from lfm.exceptions import ModelNotRegistered, NoModelsAvailable, UnknownVotingStrategy
from lfm.weights import EnsembleSettings


@pytest.fixture
def ensemble(make_model):
    predictor = EnsemblePredictor(member_timeout=1.0)
    predictor.add_model("a", make_model("granted", 0.9))
    predictor.add_model("b", make_model("denied", 0.8))
    predictor.add_model("c", make_model("granted", 0.85))
    return predictor


class TestVoting:
    """Test voting strategies."""

    @pytest.mark.asyncio
    async def test_majority(self, ensemble):
        """Two of three members vote granted."""
        result = await ensemble.predict_ensemble("text", strategy="majority")
        assert result.outcome == "granted"
        assert result.confidence == pytest.approx(2 / 3)
        assert result.ensemble_size == 3
        assert result.method == "majority"

    @pytest.mark.asyncio
    async def test_weighted(self, ensemble):
        result = await ensemble.predict_ensemble("text", strategy="weighted")
        assert result.outcome == "granted"
        assert result.confidence == pytest.approx((0.9 + 0.85) / 3)

    @pytest.mark.asyncio
    async def test_weighted_respects_model_weights(self, make_model):
        predictor = EnsemblePredictor()
        predictor.add_model("heavy", make_model("denied", 0.9), weight=2.0)
        predictor.add_model("light", make_model("granted", 0.9), weight=0.5)
        result = await predictor.predict_ensemble("text", strategy="weighted")
        assert result.outcome == "denied"
        assert result.confidence == pytest.approx(1.8 / 2.5)

    @pytest.mark.asyncio
    async def test_confidence(self, ensemble):
        result = await ensemble.predict_ensemble("text", strategy="confidence")
        assert result.outcome == "granted"
        assert result.confidence == pytest.approx(1.75 / 2.55)

    @pytest.mark.asyncio
    async def test_bayesian_posteriors(self, ensemble):
        result = await ensemble.predict_ensemble("text", strategy="bayesian")
        assert result.outcome == "granted"
        assert sum(result.posteriors.values()) == pytest.approx(1.0)
        assert result.confidence == pytest.approx(result.posteriors["granted"])

    @pytest.mark.asyncio
    async def test_tie_goes_to_first_outcome(self, make_model):
        predictor = EnsemblePredictor()
        predictor.add_model("x", make_model("denied", 0.7))
        predictor.add_model("y", make_model("granted", 0.7))
        result = await predictor.predict_ensemble("text", strategy="majority")
        assert result.outcome == "denied"
        assert result.confidence == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_unknown_strategy_fails_before_calling_models(self, ensemble):
        with pytest.raises(UnknownVotingStrategy):
            await ensemble.predict_ensemble("text", strategy="astrology")
        for fn in ensemble.models.values():
            fn.assert_not_awaited()


class TestFailures:
    """Test partial failure tolerance."""

    @pytest.mark.asyncio
    async def test_failed_member_is_dropped(self, ensemble):
        ensemble.add_model("broken", AsyncMock(side_effect=RuntimeError("boom")))
        result = await ensemble.predict_ensemble("text", strategy="majority")
        assert result.ensemble_size == 3
        assert result.failed_models == ["broken"]

    @pytest.mark.asyncio
    async def test_slow_member_times_out(self, make_model):
        async def slow(text):
            await asyncio.sleep(5)
            return {"outcome": "denied", "confidence": 1.0}

        predictor = EnsemblePredictor(member_timeout=0.05)
        predictor.add_model("fast", make_model("granted", 0.6))
        predictor.add_model("slow", slow)
        result = await predictor.predict_ensemble("text", strategy="majority")
        assert result.outcome == "granted"
        assert result.failed_models == ["slow"]

    @pytest.mark.asyncio
    async def test_member_without_outcome_counts_as_failed(self, make_model):
        predictor = EnsemblePredictor()
        predictor.add_model("good", make_model("settled", 0.5))
        predictor.add_model("empty", AsyncMock(return_value={"confidence": 0.9}))
        result = await predictor.predict_ensemble("text", strategy="majority")
        assert result.failed_models == ["empty"]

    @pytest.mark.asyncio
    async def test_all_failed_raises(self):
        predictor = EnsemblePredictor()
        predictor.add_model("broken", AsyncMock(side_effect=RuntimeError("boom")))
        with pytest.raises(NoModelsAvailable):
            await predictor.predict_ensemble("text")

    @pytest.mark.asyncio
    async def test_no_models_raises(self):
        with pytest.raises(NoModelsAvailable):
            await EnsemblePredictor().predict_ensemble("text")

    @pytest.mark.asyncio
    async def test_confidence_is_clamped(self):
        predictor = EnsemblePredictor()
        predictor.add_model("wild", AsyncMock(return_value={"outcome": "Granted", "confidence": 7.0}))
        result = await predictor.predict_ensemble("text", strategy="confidence")
        assert result.outcome == "granted"
        assert result.individual_predictions[0].confidence == 1.0
        assert 0.0 <= result.confidence <= 1.0


class TestWeights:
    """Test weight adaptation."""

    def test_update_weights_smooths(self, ensemble):
        new_weight = ensemble.update_weights("a", accuracy=0.0)
        assert new_weight == pytest.approx(0.9)

    def test_weight_bounds(self, make_model):
        predictor = EnsemblePredictor(EnsembleSettings(smoothing_factor=1.0))
        predictor.add_model("m", make_model("granted", 0.5))
        assert predictor.update_weights("m", accuracy=0.0) == pytest.approx(0.1)

    def test_unknown_model(self, ensemble):
        with pytest.raises(ModelNotRegistered):
            ensemble.update_weights("ghost", accuracy=1.0)

    def test_history_is_bounded(self, make_model):
        predictor = EnsemblePredictor(EnsembleSettings(history_size=5))
        predictor.add_model("m", make_model("granted", 0.5))
        for _ in range(8):
            predictor.update_weights("m", accuracy=1.0)
        assert len(predictor.history_for("m")) == 5

    def test_underperforming_models(self, ensemble):
        for _ in range(10):
            ensemble.update_weights("a", accuracy=0.2)
            ensemble.update_weights("b", accuracy=0.9)
        assert ensemble.underperforming_models() == ["a"]

    def test_remove_model(self, ensemble):
        assert ensemble.remove_model("a") is True
        assert ensemble.remove_model("a") is False
        assert "a" not in ensemble.weights

    def test_stats(self, ensemble):
        ensemble.update_weights("a", accuracy=1.0, confidence=0.8)
        stats = ensemble.get_ensemble_stats()
        assert stats["total_models"] == 3
        assert stats["performance_summary"]["a"]["average_accuracy"] == 1.0
