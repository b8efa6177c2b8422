"""
Vector Similarity
=================

Cosine similarity between embedding vectors.

Vectors from different embedding providers have different dimensionality
and must never be compared; a length mismatch raises DimensionMismatch.

A zero vector has no direction: cosine_similarity returns NaN for it and
callers treat that as "no similarity". safe_cosine_similarity does this
mapping (NaN -> 0.0) for callers that only need a score.

Example:
    >>> cosine_similarity([1.0, 0.0], [1.0, 0.0])
    1.0
    >>> cosine_similarity([1.0, 0.0], [-1.0, 0.0])
    -1.0
"""

import math
from typing import Sequence

import numpy as np

from lfm.exceptions import DimensionMismatch


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity in [-1, 1].

    Args:
        a: First vector
        b: Second vector, same length as a

    Returns:
        Similarity, or NaN when either vector is all zeros

    Raises:
        DimensionMismatch: If the vectors have different lengths
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise DimensionMismatch(va.size, vb.size)

    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0:
        return float("nan")

    # Float drift can push |cos| slightly above 1
    return float(np.clip(np.dot(va, vb) / norm, -1.0, 1.0))


def safe_cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity with the degenerate (NaN) case mapped to 0.0."""
    value = cosine_similarity(a, b)
    return 0.0 if math.isnan(value) else value
