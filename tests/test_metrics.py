import numpy as np
import pytest

from wtlars.metrics import relative_residual_norm, sparsity, weighted_norm


def test_weighted_norm():
    R = np.array([[3.0, 4.0]])
    assert weighted_norm(R) == pytest.approx(5.0)
    assert weighted_norm(R, np.array([1.0, 0.0])) == pytest.approx(3.0)


def test_relative_residual_norm():
    Y = np.array([1.0, 2.0, 2.0])
    assert relative_residual_norm(Y, Y) == 0.0
    assert relative_residual_norm(Y, np.zeros(3)) == pytest.approx(1.0)
    w = np.array([0.0, 1.0, 1.0])
    assert relative_residual_norm(Y, np.array([5.0, 2.0, 2.0]), w) == 0.0
    assert relative_residual_norm(np.zeros(2), np.zeros(2)) == 0.0
    assert relative_residual_norm(np.zeros(2), np.ones(2)) == np.inf


def test_sparsity():
    X = np.array([[0.0, 1e-9], [2.0, 0.0]])
    assert sparsity(X) == pytest.approx(0.5)
    assert sparsity(X, tol=1e-6) == pytest.approx(0.75)
