"""Tests for seeded point subsampling."""

import numpy as np
import pytest

from geodensity.sampling import sample_points
from conftest import make_points


@pytest.fixture
def many_points():
    coords = np.column_stack([np.arange(100.0), np.arange(100.0) * 2])
    return make_points(coords.tolist(), fix_id=list(range(100)))


class TestSamplePoints:
    """Test the sampler."""

    def test_sample_size(self, many_points):
        sampled = sample_points(many_points, n=10, seed=1)

        assert len(sampled) == 10

    def test_order_preserved(self, many_points):
        sampled = sample_points(many_points, n=25, seed=1)

        ids = list(sampled["fix_id"])
        assert ids == sorted(ids)

    def test_same_seed_same_sample(self, many_points):
        first = sample_points(many_points, n=10, seed=5)
        second = sample_points(many_points, n=10, seed=5)

        assert list(first["fix_id"]) == list(second["fix_id"])

    def test_different_seeds(self, many_points):
        first = sample_points(many_points, n=10, seed=5)
        second = sample_points(many_points, n=10, seed=6)

        assert list(first["fix_id"]) != list(second["fix_id"])

    def test_small_input_returned_whole(self, many_points):
        sampled = sample_points(many_points, n=500, seed=1)

        assert len(sampled) == 100
        assert sampled is not many_points

    def test_no_duplicate_rows(self, many_points):
        sampled = sample_points(many_points, n=50, seed=2)

        assert sampled["fix_id"].is_unique

    def test_too_small_sample(self, many_points):
        with pytest.raises(ValueError):
            sample_points(many_points, n=1)
