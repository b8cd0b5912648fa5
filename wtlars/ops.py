"""Matrix-free separable (Kronecker) dictionary operators.

The dictionary ``A = D[0] ⊗ D[1] ⊗ ... ⊗ D[N-1]`` is never formed. Every
product is evaluated as a sequence of mode-wise multiplications, so the cost of
one application scales with ``sum_k tensor_dim[k] * core_dim[k]`` times the
size of the remaining modes rather than with ``prod(tensor_dims) * prod(core_dims)``.

Index convention: flat vectors are the C-order ravel of their tensor, i.e.

    A @ X.ravel() == multilinear_product(X, factors).ravel()
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import numpy as np
from scipy.sparse.linalg import LinearOperator

from .backend import ArrayBackend, numpy_backend
from .errors import DimensionMismatch


def mode_product(T: Any, M: Any, mode: int, xp: Any = np) -> Any:
    """Return ``T ×_mode M``: multiply every mode-``mode`` fiber of ``T`` by ``M``."""
    out = xp.tensordot(M, T, axes=([1], [mode]))
    return xp.moveaxis(out, 0, mode)


def multilinear_product(
    T: Any, factors: Sequence[Any], *, transpose: bool = False, xp: Any = np
) -> Any:
    """Apply one matrix per mode: ``T ×_0 M0 ×_1 M1 ...`` (``Mk.T`` if ``transpose``)."""
    for k, M in enumerate(factors):
        T = mode_product(T, M.T if transpose else M, k, xp=xp)
    return T


class SeparableOperator(LinearOperator):
    """Linear operator for the implicit dictionary ``A`` built from factor matrices.

    Parameters
    ----------
    factors:
        Sequence of 2-D arrays; ``factors[k]`` has ``tensor_dims[k]`` rows and
        ``core_dims[k]`` columns.
    backend:
        Array backend the factors live on. Products accept and return arrays
        of that backend.
    """

    def __init__(
        self, factors: Sequence[Any], *, backend: ArrayBackend | None = None
    ) -> None:
        self.backend = backend or numpy_backend
        xp = self.backend.xp
        self.factors = [xp.asarray(D, dtype=float) for D in factors]
        self.tensor_dims = tuple(int(D.shape[0]) for D in self.factors)
        self.core_dims = tuple(int(D.shape[1]) for D in self.factors)
        self.order = len(self.factors)
        super().__init__(
            dtype=np.dtype(float),
            shape=(int(np.prod(self.tensor_dims)), int(np.prod(self.core_dims))),
        )

    @property
    def xp(self) -> Any:
        return self.backend.xp

    # ------------------------------------------------------------------
    # Shape handling
    # ------------------------------------------------------------------
    def _as_tensor(self, v: Any, dims: tuple[int, ...], what: str) -> Any:
        v = self.xp.asarray(v, dtype=float)
        if v.ndim == 1:
            if v.shape[0] != int(np.prod(dims)):
                raise DimensionMismatch(
                    f"{what} vector has length {v.shape[0]}, expected {int(np.prod(dims))}"
                )
            return v.reshape(dims)
        if tuple(v.shape) != dims:
            raise DimensionMismatch(
                f"{what} tensor has shape {tuple(v.shape)}, expected {dims} "
                "(mode sizes must match the factor matrices)"
            )
        return v

    # ------------------------------------------------------------------
    # Full products
    # ------------------------------------------------------------------
    def apply(self, x: Any) -> Any:
        """Forward product ``A x``; flat input gives flat output, tensors give tensors."""
        flat = self.xp.asarray(x).ndim == 1
        X = self._as_tensor(x, self.core_dims, "coefficient")
        out = multilinear_product(X, self.factors, xp=self.xp)
        return out.reshape(-1) if flat else out

    def apply_adjoint(self, y: Any) -> Any:
        """Adjoint product ``A' y``; flat input gives flat output, tensors give tensors."""
        flat = self.xp.asarray(y).ndim == 1
        Y = self._as_tensor(y, self.tensor_dims, "data")
        out = multilinear_product(Y, self.factors, transpose=True, xp=self.xp)
        return out.reshape(-1) if flat else out

    def _matvec(self, x: np.ndarray) -> np.ndarray:
        return self.backend.to_host(self.apply(np.ravel(x)))

    def _rmatvec(self, y: np.ndarray) -> np.ndarray:
        return self.backend.to_host(self.apply_adjoint(np.ravel(y)))

    def squared(self) -> SeparableOperator:
        """Operator of the element-wise squared dictionary ``A ∘ A``."""
        return SeparableOperator([D * D for D in self.factors], backend=self.backend)

    def column_norms(self, w: Any | None = None) -> Any:
        """Weighted column norms ``sqrt(sum_j w_j A_ji^2)`` for every column ``i``."""
        xp = self.xp
        if w is None:
            w = xp.ones(self.shape[0])
        return xp.sqrt(xp.maximum(self.squared().apply_adjoint(w), 0.0))

    # ------------------------------------------------------------------
    # Products restricted to a set of columns
    # ------------------------------------------------------------------
    def columns(self, indices: Any) -> Any:
        """Dense ``(numel(Y), len(indices))`` block of dictionary columns."""
        xp = self.xp
        idx = np.unravel_index(np.asarray(indices, dtype=np.int64), self.core_dims)
        block = None
        for D, ik in zip(self.factors, idx, strict=True):
            Dk = D[:, xp.asarray(ik)].T  # (k, n_k)
            if block is None:
                block = Dk
            else:
                block = (block[:, :, None] * Dk[:, None, :]).reshape(
                    Dk.shape[0], block.shape[1] * Dk.shape[1]
                )
        return block.T

    def _restricted(self, active: Any, factor_columns: Sequence[np.ndarray] | None):
        idx = np.unravel_index(np.asarray(active, dtype=np.int64), self.core_dims)
        if factor_columns is None:
            factor_columns = [np.unique(ik) for ik in idx]
        positions = tuple(
            np.searchsorted(cols, ik) for cols, ik in zip(factor_columns, idx, strict=True)
        )
        sub = [
            D[:, self.xp.asarray(cols)]
            for D, cols in zip(self.factors, factor_columns, strict=True)
        ]
        dims = tuple(len(cols) for cols in factor_columns)
        return sub, dims, positions

    def apply_active(
        self,
        active: Any,
        coef: Any,
        weights: Any | None = None,
        factor_columns: Sequence[np.ndarray] | None = None,
    ) -> Any:
        """Partial weighted product ``A[:, active] @ (weights[active] * coef)``.

        Only the factor columns used by ``active`` (``factor_columns``, the sorted
        per-mode indices) take part, so inactive dictionary columns are never
        visited. Returns a flat data-space vector.
        """
        xp = self.xp
        if len(active) == 0:
            return xp.zeros(self.shape[0])
        coef = xp.asarray(coef, dtype=float)
        if weights is not None:
            coef = coef * weights[xp.asarray(np.asarray(active, dtype=np.int64))]
        sub, dims, positions = self._restricted(active, factor_columns)
        core = xp.zeros(dims)
        core[tuple(xp.asarray(p) for p in positions)] = coef
        return multilinear_product(core, sub, xp=xp).reshape(-1)

    def adjoint_active(
        self,
        y: Any,
        active: Any,
        factor_columns: Sequence[np.ndarray] | None = None,
    ) -> Any:
        """``A[:, active]' @ y`` evaluated on the touched factor columns only."""
        xp = self.xp
        if len(active) == 0:
            return xp.zeros(0)
        Y = self._as_tensor(y, self.tensor_dims, "data")
        sub, _, positions = self._restricted(active, factor_columns)
        core = multilinear_product(Y, sub, transpose=True, xp=xp)
        return core[tuple(xp.asarray(p) for p in positions)]


def column_weights(operator: SeparableOperator, w: Any | None = None) -> Any:
    """Normalization vector ``q = 1 / ||a_i||_w``; zero-norm columns get ``q = 1``."""
    xp = operator.xp
    norms = operator.column_norms(w)
    norms = xp.where(norms == 0, 1.0, norms)
    return 1.0 / norms


def dense_dictionary(factors: Sequence[np.ndarray]) -> np.ndarray:
    """Explicit ``D[0] ⊗ ... ⊗ D[N-1]``. Only meant for small checks and benchmarks."""
    out = np.ones((1, 1))
    for D in factors:
        out = np.kron(out, np.asarray(D, dtype=float))
    return out


__all__ = [
    "SeparableOperator",
    "column_weights",
    "dense_dictionary",
    "mode_product",
    "multilinear_product",
]
