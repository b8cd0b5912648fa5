"""Flat <-> per-mode column indexing for separable dictionaries.

Flat indices follow NumPy's C order (the last mode varies fastest), which is
the order :class:`wtlars.ops.SeparableOperator` uses for ``A = D[0] ⊗ ... ⊗ D[N-1]``.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import numpy as np

from .errors import IndexOutOfRange, InputShapeMismatch

MASK_TYPES = {
    "kronecker": "kronecker",
    "kp": "kronecker",
    "khatri-rao": "khatri-rao",
    "khatri_rao": "khatri-rao",
    "kr": "khatri-rao",
}


class ColumnIndexer:
    """Column index bookkeeping for a dictionary with ``core_dims`` columns per mode.

    Besides the pure index arithmetic it tracks how many active columns use
    each per-mode factor column, so the operator can restrict products to the
    factor columns that are actually touched.
    """

    def __init__(self, core_dims: Sequence[int]) -> None:
        self.core_dims = tuple(int(n) for n in core_dims)
        if len(self.core_dims) == 0 or any(n < 1 for n in self.core_dims):
            raise InputShapeMismatch(
                f"core_dims must be a non-empty sequence of positive ints, got {core_dims}"
            )
        self.order = len(self.core_dims)
        self.total_columns = int(np.prod(self.core_dims))
        self.usage = [np.zeros(n, dtype=np.int64) for n in self.core_dims]

    def _check(self, flat: np.ndarray) -> None:
        if flat.size and (flat.min() < 0 or flat.max() >= self.total_columns):
            bad = flat[(flat < 0) | (flat >= self.total_columns)][0]
            raise IndexOutOfRange(
                f"column index {int(bad)} outside [0, {self.total_columns})"
            )

    def decompose(self, flat):
        """Per-mode indices of one flat index (tuple of ints) or of an index array."""
        arr = np.asarray(flat, dtype=np.int64)
        self._check(arr.reshape(-1))
        idx = np.unravel_index(arr, self.core_dims)
        if arr.ndim == 0:
            return tuple(int(i) for i in idx)
        return idx

    def compose(self, indices: Sequence[int]) -> int:
        if len(indices) != self.order:
            raise InputShapeMismatch(
                f"expected {self.order} per-mode indices, got {len(indices)}"
            )
        for k, (i, n) in enumerate(zip(indices, self.core_dims, strict=True)):
            if not (0 <= int(i) < n):
                raise IndexOutOfRange(f"mode {k} index {int(i)} outside [0, {n})")
        return int(np.ravel_multi_index(tuple(int(i) for i in indices), self.core_dims))

    def khatri_rao_columns(self) -> np.ndarray:
        """Flat indices of the "diagonal" columns valid under a Khatri-Rao product."""
        if len(set(self.core_dims)) != 1:
            raise InputShapeMismatch(
                "Column dimensions of the dictionary matrices should be equal for "
                f"Khatri-Rao Product, got {self.core_dims}"
            )
        diag = np.arange(self.core_dims[0])
        return np.ravel_multi_index((diag,) * self.order, self.core_dims)

    def mask(self, mask_type: str = "kronecker") -> np.ndarray:
        """Flat indices excluded from the run for ``mask_type``."""
        kind = MASK_TYPES.get(str(mask_type).lower())
        if kind is None:
            raise ValueError(
                f"mask_type must be one of {sorted(set(MASK_TYPES.values()))}, got {mask_type!r}"
            )
        if kind == "kronecker":
            return np.empty(0, dtype=np.int64)
        keep = np.zeros(self.total_columns, dtype=bool)
        keep[self.khatri_rao_columns()] = True
        return np.flatnonzero(~keep)

    # ------------------------------------------------------------------
    # Factor columns touched by the active set
    # ------------------------------------------------------------------
    def counts_after(
        self, added: Iterable[int] = (), removed: Iterable[int] = ()
    ) -> list[np.ndarray]:
        """Per-mode usage counts once ``added`` join and ``removed`` leave the active set.

        Returns new arrays and leaves :attr:`usage` as it is.
        """
        usage = [u.copy() for u in self.usage]
        for flat in added:
            for k, i in enumerate(self.decompose(int(flat))):
                usage[k][i] += 1
        for flat in removed:
            for k, i in enumerate(self.decompose(int(flat))):
                if usage[k][i] == 0:
                    raise ValueError(f"column {int(flat)} is not in the active set")
                usage[k][i] -= 1
        return usage

    def touch(self, columns: Iterable[int]) -> None:
        self.usage = self.counts_after(added=columns)

    def release(self, columns: Iterable[int]) -> None:
        self.usage = self.counts_after(removed=columns)

    def reset(self, columns: Iterable[int] = ()) -> None:
        self.usage = [np.zeros(n, dtype=np.int64) for n in self.core_dims]
        self.touch(columns)

    def factor_columns(self) -> list[np.ndarray]:
        """Sorted per-mode factor column indices used by the active set."""
        return [np.flatnonzero(u > 0) for u in self.usage]
