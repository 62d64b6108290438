"""Tests for resample.py."""

import numpy as np
import pytest
from scipy import sparse

from bootstab.exceptions import InvalidInputError
from bootstab.resample import bootstrap_resample


def _rows(X):
    return {tuple(row) for row in np.asarray(X)}


class TestBootstrapResample:
    @pytest.mark.parametrize("n_obs", [1, 2, 17, 200])
    def test_same_number_of_observations(self, n_obs):
        X = np.random.default_rng(0).normal(size=(n_obs, 3))
        replicate, indices = bootstrap_resample(X, np.random.default_rng(1))
        assert replicate.shape == X.shape
        assert indices.shape == (n_obs,)

    def test_every_row_comes_from_original(self):
        X = np.random.default_rng(0).normal(size=(50, 4))
        replicate, indices = bootstrap_resample(X, np.random.default_rng(2))
        original_rows = _rows(X)
        assert all(tuple(row) in original_rows for row in replicate)
        np.testing.assert_array_equal(replicate, X[indices])

    def test_indices_in_range(self):
        X = np.arange(30, dtype=float).reshape(10, 3)
        _, indices = bootstrap_resample(X, np.random.default_rng(3))
        assert indices.min() >= 0
        assert indices.max() < 10

    def test_draws_with_replacement(self):
        X = np.arange(200, dtype=float).reshape(100, 2)
        _, indices = bootstrap_resample(X, np.random.default_rng(4))
        # 100 draws from 100 rows repeat some row with overwhelming probability
        assert len(np.unique(indices)) < 100

    def test_deterministic_for_seed(self):
        X = np.random.default_rng(0).normal(size=(40, 2))
        a, ia = bootstrap_resample(X, np.random.default_rng(42))
        b, ib = bootstrap_resample(X, np.random.default_rng(42))
        np.testing.assert_array_equal(ia, ib)
        np.testing.assert_array_equal(a, b)

    def test_different_seeds_differ(self):
        X = np.random.default_rng(0).normal(size=(40, 2))
        _, ia = bootstrap_resample(X, np.random.default_rng(1))
        _, ib = bootstrap_resample(X, np.random.default_rng(2))
        assert not np.array_equal(ia, ib)

    def test_sparse_input(self):
        dense = np.random.default_rng(0).poisson(1.0, size=(25, 6)).astype(np.float32)
        X = sparse.csr_matrix(dense)
        replicate, indices = bootstrap_resample(X, np.random.default_rng(5))
        assert sparse.issparse(replicate)
        assert replicate.shape == X.shape
        np.testing.assert_array_equal(replicate.toarray(), dense[indices])

    def test_original_untouched(self):
        X = np.random.default_rng(0).normal(size=(20, 2))
        before = X.copy()
        bootstrap_resample(X, np.random.default_rng(6))
        np.testing.assert_array_equal(X, before)

    def test_empty_dataset_raises(self):
        with pytest.raises(InvalidInputError):
            bootstrap_resample(np.empty((0, 3)), np.random.default_rng(0))
