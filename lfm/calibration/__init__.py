"""
LFM Confidence Calibration
==========================

Temperature and Platt scaling of raw confidences, per case type.
"""

from lfm.calibration.calibrator import ConfidenceCalibrator

__all__ = [
    "ConfidenceCalibrator",
]
