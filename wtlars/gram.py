"""Incrementally maintained inverse of the active-set weighted Gram matrix."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import numpy as np

from .backend import ArrayBackend, numpy_backend

logger = logging.getLogger(__name__)

SINGULAR_DET = 1e-50


class ActiveSetGramInverse:
    """Inverse of ``G = B_I' B_I`` for the active columns ``I`` of ``B = S A Q``.

    Column additions use the block inversion lemma (Schur complement) and
    removals the matching downdate, both in ``O(n^2)``. The inverse lives in
    the top-left ``size × size`` corner of a buffer that is over-allocated in
    blocks of ``block_size`` rows/columns and only reallocated when full.

    Parameters
    ----------
    block_size:
        Rows/columns added to the buffer each time it runs out of capacity.
    tol:
        A Schur complement with magnitude at or below ``tol`` marks the new
        column as linearly dependent; the updated inverse is then poisoned
        with NaN so that :meth:`direction` falls back to :meth:`recompute`.
    backend:
        Array backend holding the buffer.
    """

    def __init__(
        self,
        block_size: int = 256,
        *,
        tol: float = 10 * np.finfo(float).eps,
        singular_det: float = SINGULAR_DET,
        backend: ArrayBackend | None = None,
    ) -> None:
        if block_size < 1:
            raise ValueError(f"block_size must be a positive integer, got {block_size}")
        self.block_size = int(block_size)
        self.tol = float(tol)
        self.singular_det = float(singular_det)
        self.backend = backend or numpy_backend
        self._buf = self.backend.xp.zeros((self.block_size, self.block_size))
        self.size = 0
        self.pseudo_inverse = False

    @property
    def xp(self) -> Any:
        return self.backend.xp

    @property
    def capacity(self) -> int:
        return int(self._buf.shape[0])

    @property
    def inverse(self) -> Any:
        """View of the current inverse (``size × size``)."""
        return self._buf[: self.size, : self.size]

    def _reserve(self, n: int) -> None:
        if n <= self.capacity:
            return
        blocks = -(-n // self.block_size)
        new = self.xp.zeros((blocks * self.block_size, blocks * self.block_size))
        new[: self.size, : self.size] = self.inverse
        self._buf = new

    def reset(self, inverse: Any | None = None) -> None:
        """Replace the stored inverse (empty when ``inverse`` is None)."""
        if inverse is None:
            self.size = 0
            return
        inverse = self.xp.asarray(inverse, dtype=float)
        n = int(inverse.shape[0])
        self.size = 0
        self._reserve(n)
        self._buf[:n, :n] = inverse
        self.size = n

    def grown(self, gram_row: Any, diag: float) -> Any:
        """Inverse after adding one column, as a new array; the buffer is untouched.

        ``gram_row`` holds the Gram entries between the new column and the
        current active columns (in active-set order), ``diag`` its squared norm.
        """
        xp = self.xp
        n = self.size
        if n == 0:
            return xp.asarray([[1.0 / diag if diag > 0 else 1.0]])
        b = xp.asarray(gram_row, dtype=float).reshape(n)
        u = self.inverse @ b
        schur = float(diag - b @ u)
        inv_s = 1.0 / schur if abs(schur) > self.tol else np.nan

        edge = -inv_s * u
        out = xp.empty((n + 1, n + 1))
        out[:n, :n] = self.inverse + inv_s * xp.outer(u, u)
        out[:n, n] = edge
        out[n, :n] = edge
        out[n, n] = inv_s
        return out

    def shrunk(self, position: int) -> Any:
        """Inverse after dropping the active column at ``position``, as a new array."""
        xp = self.xp
        n = self.size
        if not (0 <= position < n):
            raise IndexError(f"position {position} outside active set of size {n}")
        H = self.inverse
        keep = xp.asarray(np.delete(np.arange(n), position))
        h = H[keep, position]
        return H[keep][:, keep] - xp.outer(h, h) / H[position, position]

    def add_column(self, gram_row: Any, diag: float) -> Any:
        """Grow the stored inverse by one column (see :meth:`grown`)."""
        self.reset(self.grown(gram_row, diag))
        return self.inverse

    def remove_column(self, position: int) -> Any:
        """Drop the active column at ``position`` from the stored inverse."""
        self.reset(self.shrunk(position))
        return self.inverse

    def recompute(self, gram: Any) -> Any:
        """Invert a freshly built Gram matrix, using the pseudo-inverse when singular."""
        xp = self.xp
        gram = xp.asarray(gram, dtype=float)
        det = float(xp.linalg.det(gram))
        self.pseudo_inverse = False
        if det < self.singular_det:
            logger.warning(
                "The re-calculated Gramian is singular (det=%.3g); using the pseudo-inverse",
                det,
            )
            inverse = xp.linalg.pinv(gram)
            self.pseudo_inverse = True
        else:
            try:
                inverse = xp.linalg.inv(gram)
            except np.linalg.LinAlgError:
                logger.warning("Gramian inversion failed; using the pseudo-inverse")
                inverse = xp.linalg.pinv(gram)
                self.pseudo_inverse = True
        self.reset(inverse)
        return self.inverse

    def direction(self, z: Any, gram: Callable[[], Any] | None = None) -> Any:
        """Return ``G^{-1} z``.

        If the result is not finite and a ``gram`` builder is given, the
        inverse is rebuilt from scratch via :meth:`recompute` and the direction
        evaluated again.
        """
        xp = self.xp
        with np.errstate(invalid="ignore", over="ignore"):
            d = self.inverse @ z
        if gram is not None and not bool(xp.all(xp.isfinite(d))):
            logger.warning(
                "The inverse of the Gramian is singular; re-calculating it from the active set"
            )
            self.recompute(gram())
            d = self.inverse @ z
        return d

    def to_backend(self, backend: ArrayBackend) -> None:
        host = self.backend.to_host(self._buf)
        self.backend = backend
        self._buf = backend.xp.asarray(host)
