"""
Test ConfidenceCalibrator
=========================

Temperature and Platt calibration, recalibration policy.
"""

import math

import pytest

from lfm.calibration import ConfidenceCalibrator
from lfm.exceptions import CalibrationDataError
from lfm.weights import CalibrationSettings

PREDICTIONS = [0.9, 0.8, 0.3, 0.7, 0.2, 0.95]
OUTCOMES = [1, 1, 0, 1, 0, 1]


@pytest.fixture
def calibrator(fake_now):
    return ConfidenceCalibrator(now=fake_now)


class TestApply:
    """Test ConfidenceCalibrator.apply."""

    @pytest.mark.parametrize("raw,expected", [(0, 0.01), (1, 0.99), (-1, 0.01), (2, 0.99), (0.42, 0.42)])
    def test_uncalibrated_is_clamped(self, calibrator, raw, expected):
        """Without a profile the raw value is only clamped."""
        assert calibrator.apply("termination", raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", [0, 1, -1, 2, 0.5, 1e9, -1e9])
    def test_calibrated_within_bounds(self, calibrator, raw):
        calibrator.calibrate("termination", PREDICTIONS, OUTCOMES)
        assert 0.01 <= calibrator.apply("termination", raw) <= 0.99

    @pytest.mark.parametrize("raw", [float("nan"), float("inf"), None, "abc"])
    def test_non_finite_counts_as_half(self, calibrator, raw):
        assert calibrator.apply("termination", raw) == pytest.approx(0.5)

    def test_profile_only_affects_its_case_type(self, calibrator):
        calibrator.calibrate("termination", PREDICTIONS, OUTCOMES)
        assert calibrator.apply("overtime", 0.8) == pytest.approx(0.8)


class TestCalibrate:
    """Test profile fitting."""

    def test_profile_fields(self, calibrator, fake_now):
        profile = calibrator.calibrate("termination", PREDICTIONS, OUTCOMES)
        assert profile.case_type == "termination"
        assert profile.temperature in calibrator.temperature_grid()
        assert profile.sample_size == 6
        assert profile.last_calibrated == fake_now()
        assert profile.accuracy == pytest.approx(1.0)
        assert all(math.isfinite(w) for w in profile.platt_weights)

    def test_deterministic(self, fake_now):
        first = ConfidenceCalibrator(now=fake_now).calibrate("x", PREDICTIONS, OUTCOMES)
        second = ConfidenceCalibrator(now=fake_now).calibrate("x", PREDICTIONS, OUTCOMES)
        assert first.temperature == second.temperature
        assert first.platt_weights == second.platt_weights

    def test_temperature_grid(self, calibrator):
        grid = calibrator.temperature_grid()
        assert grid[0] == pytest.approx(0.1)
        assert grid[-1] == pytest.approx(2.0)
        assert len(grid) == 20

    def test_history_and_summary(self, calibrator):
        calibrator.calibrate("termination", PREDICTIONS, OUTCOMES)
        calibrator.calibrate("overtime", PREDICTIONS, OUTCOMES)
        summary = calibrator.get_summary()
        assert summary["calibrations_performed"] == 2
        assert set(summary["calibrated_case_types"]) == {"termination", "overtime"}

    @pytest.mark.parametrize("predictions,outcomes", [
        ([0.5, 0.6], [1]),
        ([], []),
        ([0.5], [2]),
        ([float("nan")], [1]),
    ])
    def test_invalid_data(self, calibrator, predictions, outcomes):
        with pytest.raises(CalibrationDataError):
            calibrator.calibrate("termination", predictions, outcomes)


class TestRecalibration:
    """Test needs_recalibration."""

    def test_missing_profile(self, calibrator):
        assert calibrator.needs_recalibration("termination") is True

    def test_fresh_profile(self, calibrator):
        calibrator.calibrate("termination", PREDICTIONS, OUTCOMES)
        assert calibrator.needs_recalibration("termination") is False

    def test_outdated_profile(self, calibrator, fake_now):
        calibrator.calibrate("termination", PREDICTIONS, OUTCOMES)
        fake_now.advance(days=31)
        assert calibrator.needs_recalibration("termination") is True
        assert calibrator.get_calibration_stats("termination")["days_since_calibration"] == 31

    def test_drop_mode(self, calibrator):
        """Accuracy drop larger than the threshold from the fitted accuracy."""
        calibrator.calibrate("termination", PREDICTIONS, OUTCOMES)
        assert calibrator.needs_recalibration("termination", recent_accuracy=0.9) is True
        assert calibrator.needs_recalibration("termination", recent_accuracy=0.97) is False

    def test_drop_mode_explicit_baseline(self, calibrator):
        calibrator.calibrate("termination", PREDICTIONS, OUTCOMES)
        assert calibrator.needs_recalibration("termination", 0.80, baseline_accuracy=0.82) is False

    def test_floor_mode(self, fake_now):
        calibrator = ConfidenceCalibrator(CalibrationSettings(recalibration_mode="floor"), now=fake_now)
        calibrator.calibrate("termination", PREDICTIONS, OUTCOMES)
        assert calibrator.needs_recalibration("termination", recent_accuracy=0.04) is True
        assert calibrator.needs_recalibration("termination", recent_accuracy=0.85) is False
