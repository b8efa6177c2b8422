"""
LFM Feature Extraction
======================

Structured features from grievance text.

Example:
    from lfm.features import extract_features

    features = extract_features("I was fired without any prior warning")
    print(features.case_type)  # CaseType.TERMINATION
"""

from lfm.features.extractor import CaseFeatureExtractor, extract_features

__all__ = [
    "CaseFeatureExtractor",
    "extract_features",
]
