import numpy as np
import pytest

from wtlars.errors import DimensionMismatch
from wtlars.ops import (
    SeparableOperator,
    column_weights,
    dense_dictionary,
    mode_product,
    multilinear_product,
)


def _factors(rng, tensor_dims=(5, 4, 3), core_dims=(3, 2, 4)):
    return [rng.standard_normal((n, m)) for n, m in zip(tensor_dims, core_dims, strict=True)]


def test_apply_matches_dense_kronecker():
    rng = np.random.default_rng(0)
    factors = _factors(rng)
    op = SeparableOperator(factors)
    A = dense_dictionary(factors)
    assert op.shape == A.shape

    x = rng.standard_normal(A.shape[1])
    y = rng.standard_normal(A.shape[0])
    assert np.allclose(op.apply(x), A @ x, atol=1e-12)
    assert np.allclose(op.apply_adjoint(y), A.T @ y, atol=1e-12)

    # tensor in, tensor out
    X = x.reshape(op.core_dims)
    assert op.apply(X).shape == op.tensor_dims
    assert np.allclose(op.apply(X).ravel(), A @ x, atol=1e-12)


def test_scipy_linear_operator_protocol():
    rng = np.random.default_rng(1)
    factors = _factors(rng, (3, 4), (2, 3))
    op = SeparableOperator(factors)
    A = dense_dictionary(factors)
    x = rng.standard_normal(A.shape[1])
    y = rng.standard_normal(A.shape[0])
    assert np.allclose(op.matvec(x), A @ x)
    assert np.allclose(op.rmatvec(y), A.T @ y)


def test_mode_product_single_mode():
    rng = np.random.default_rng(2)
    T = rng.standard_normal((3, 4, 5))
    M = rng.standard_normal((6, 4))
    got = mode_product(T, M, 1)
    expected = np.einsum("ij,ajb->aib", M, T)
    assert got.shape == (3, 6, 5)
    assert np.allclose(got, expected)


def test_multilinear_product_transpose_is_adjoint():
    rng = np.random.default_rng(3)
    factors = _factors(rng, (4, 3), (2, 2))
    X = rng.standard_normal((2, 2))
    Y = rng.standard_normal((4, 3))
    lhs = np.sum(multilinear_product(X, factors) * Y)
    rhs = np.sum(X * multilinear_product(Y, factors, transpose=True))
    assert np.isclose(lhs, rhs)


def test_columns_and_active_products_match_dense():
    rng = np.random.default_rng(4)
    factors = _factors(rng)
    op = SeparableOperator(factors)
    A = dense_dictionary(factors)
    active = [17, 2, 5, 20]
    coef = rng.standard_normal(len(active))
    weights = rng.uniform(0.5, 2.0, A.shape[1])
    y = rng.standard_normal(A.shape[0])

    assert np.allclose(op.columns(active), A[:, active])
    assert np.allclose(
        op.apply_active(active, coef, weights), A[:, active] @ (weights[active] * coef)
    )
    assert np.allclose(op.adjoint_active(y, active), A[:, active].T @ y)


def test_active_products_with_cached_factor_columns():
    rng = np.random.default_rng(5)
    factors = _factors(rng, (4, 4), (3, 3))
    op = SeparableOperator(factors)
    A = dense_dictionary(factors)
    active = [4, 0]
    # mode 0 uses rows {0, 1}, mode 1 uses {0, 1}
    factor_columns = [np.array([0, 1]), np.array([0, 1])]
    coef = np.array([1.5, -2.0])
    assert np.allclose(op.apply_active(active, coef, factor_columns=factor_columns), A[:, active] @ coef)


def test_empty_active_set():
    rng = np.random.default_rng(6)
    op = SeparableOperator(_factors(rng, (3, 2), (2, 2)))
    assert np.allclose(op.apply_active([], np.zeros(0)), np.zeros(6))
    assert op.adjoint_active(np.ones(6), []).shape == (0,)
    assert op.columns([]).shape == (6, 0)


def test_weighted_column_norms_and_weights():
    rng = np.random.default_rng(7)
    factors = _factors(rng, (4, 3), (3, 3))
    factors[1][:, 2] = 0.0
    op = SeparableOperator(factors)
    A = dense_dictionary(factors)
    w = rng.uniform(0.1, 1.0, A.shape[0])

    expected = np.sqrt((A * A).T @ w)
    assert np.allclose(op.column_norms(w), expected)

    q = column_weights(op, w)
    zero = expected == 0
    assert zero.any()
    assert np.allclose(q[zero], 1.0)
    assert np.allclose(q[~zero], 1.0 / expected[~zero])


def test_dimension_mismatch():
    rng = np.random.default_rng(8)
    op = SeparableOperator(_factors(rng, (3, 2), (2, 2)))
    with pytest.raises(DimensionMismatch, match="expected"):
        op.apply(np.ones(5))
    with pytest.raises(DimensionMismatch, match="mode sizes"):
        op.apply_adjoint(np.ones((2, 3)))
