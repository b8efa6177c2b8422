"""
Test Vector Similarity
======================

Cosine similarity between embeddings.
"""

import math

import numpy as np
import pytest

from lfm.exceptions import DimensionMismatch
from lfm.storage.vectors import cosine_similarity, safe_cosine_similarity


class TestCosineSimilarity:
    """Test cosine_similarity."""

    @pytest.mark.parametrize("vector", [[1.0, 2.0, 3.0], [0.5, -0.25], [7.0]])
    def test_self_similarity_is_one(self, vector):
        """A non-zero vector is fully similar to itself."""
        assert cosine_similarity(vector, vector) == pytest.approx(1.0)

    def test_opposite_is_minus_one(self):
        """v and -v point in opposite directions."""
        v = np.array([0.3, -1.2, 4.0])
        assert cosine_similarity(v, -v) == pytest.approx(-1.0)

    def test_orthogonal_is_zero(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_dimension_mismatch_raises(self):
        """Vectors of different length cannot be compared."""
        with pytest.raises(DimensionMismatch) as exc_info:
            cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])
        assert exc_info.value.left == 2
        assert exc_info.value.right == 3

    def test_dimension_mismatch_is_value_error(self):
        with pytest.raises(ValueError):
            cosine_similarity([1.0], [1.0, 2.0])

    def test_zero_vector_is_nan(self):
        """A zero-norm vector has no direction."""
        assert math.isnan(cosine_similarity([0.0, 0.0], [1.0, 2.0]))

    def test_result_is_bounded(self):
        value = cosine_similarity([1e-8, 1e-8], [1e-8, 1e-8])
        assert -1.0 <= value <= 1.0


class TestSafeCosineSimilarity:
    """Test safe_cosine_similarity."""

    def test_degenerate_maps_to_zero(self):
        """NaN never reaches the caller."""
        assert safe_cosine_similarity([0.0, 0.0], [0.0, 0.0]) == 0.0

    def test_regular_value_passes_through(self):
        assert safe_cosine_similarity([1.0, 1.0], [1.0, 1.0]) == pytest.approx(1.0)

    def test_mismatch_still_raises(self):
        with pytest.raises(DimensionMismatch):
            safe_cosine_similarity([1.0], [1.0, 0.0])
