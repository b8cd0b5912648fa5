"""LARS step-size selection for one WT-LARS iteration."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

from .ops import SeparableOperator


def round_to(a: Any, digits: int, xp: Any = np) -> Any:
    """Round to ``digits`` decimals; damps noise that compounds across iterations."""
    return xp.round(a, digits)


@dataclass(frozen=True)
class StepEvent:
    """Winning active-set transition of an iteration.

    ``position`` is the index inside the active set of a column being removed
    (``None`` for additions).
    """

    column: int
    delta: float
    add: bool
    position: int | None = None


class StepSolver:
    """Direction image and step-size (delta) computation.

    Parameters
    ----------
    operator:
        Separable dictionary ``A``.
    q:
        Column normalization vector, length ``total_columns``.
    w:
        Weight vector, length ``numel(Y)``.
    mask:
        Flat indices of columns that may never enter the active set.
    precision:
        Candidate steps at or below this value are infeasible.
    precision_digits:
        Decimals kept when rounding ``v`` and the winning delta.
    l0_mode:
        Greedy (L0) mode; active columns are never removed.
    """

    def __init__(
        self,
        operator: SeparableOperator,
        q: Any,
        w: Any,
        mask: np.ndarray,
        *,
        precision: float,
        precision_digits: int,
        l0_mode: bool = False,
    ) -> None:
        self.operator = operator
        self.q = q
        self.w = w
        self.mask = np.asarray(mask, dtype=np.int64)
        self._mask_idx = self._index(self.mask)
        self.precision = float(precision)
        self.precision_digits = int(precision_digits)
        self.l0_mode = bool(l0_mode)

    @property
    def xp(self) -> Any:
        return self.operator.xp

    def _index(self, idx: Sequence[int] | np.ndarray) -> Any:
        return self.xp.asarray(np.asarray(idx, dtype=np.int64))

    def signs(self, c: Any, active: Sequence[int]) -> Any:
        return self.xp.sign(c[self._index(active)])

    def image(
        self,
        active: Sequence[int],
        dI: Any,
        factor_columns: Sequence[np.ndarray] | None = None,
    ) -> tuple[Any, Any]:
        """Return ``(u, v)`` with ``u = A_I Q_I dI`` and ``v = Q A' W u``.

        ``v`` is rounded, zeroed on masked columns and forced to ``sign(v)`` on
        the active columns, where it equals ``sign(c)`` in exact arithmetic.
        """
        xp = self.xp
        u = self.operator.apply_active(active, dI, self.q, factor_columns)
        v = self.q * self.operator.apply_adjoint(self.w * u)
        if self.mask.size:
            v[self._mask_idx] = 0.0
        v = round_to(v, self.precision_digits, xp)
        act = self._index(active)
        v[act] = xp.sign(v[act])
        return u, v

    def _feasible(self, delta: Any) -> Any:
        # NaN (0/0) compares False, so it becomes infeasible too.
        return self.xp.where(delta > self.precision, delta, np.inf)

    def add_candidates(
        self, lambda_: float, c: Any, v: Any, active: Sequence[int]
    ) -> tuple[Any, Any]:
        """Candidate add steps for the ``(λ - c)/(1 - v)`` and ``(λ + c)/(1 + v)`` branches."""
        with np.errstate(divide="ignore", invalid="ignore"):
            plus = (lambda_ - c) / (1.0 - v)
            minus = (lambda_ + c) / (1.0 + v)
        plus = self._feasible(plus)
        minus = self._feasible(minus)
        for blocked in (self._index(active), self._mask_idx):
            if blocked.size:
                plus[blocked] = np.inf
                minus[blocked] = np.inf
        return plus, minus

    def remove_candidates(self, x: Any, dI: Any) -> Any:
        with np.errstate(divide="ignore", invalid="ignore"):
            return self._feasible(-x / dI)

    def select(
        self,
        lambda_: float,
        c: Any,
        v: Any,
        x: Any,
        dI: Any,
        active: Sequence[int],
    ) -> StepEvent:
        """Pick the next active-set event and its (rounded) step size.

        Ties go to the ``(λ - c)/(1 - v)`` branch, then to the lowest column
        index; a removal wins only when strictly smaller than the best addition.
        """
        xp = self.xp
        plus, minus = self.add_candidates(lambda_, c, v, active)
        i_plus = int(xp.argmin(plus))
        i_minus = int(xp.argmin(minus))
        d_plus = float(plus[i_plus])
        d_minus = float(minus[i_minus])
        if d_plus <= d_minus:
            event = StepEvent(column=i_plus, delta=d_plus, add=True)
        else:
            event = StepEvent(column=i_minus, delta=d_minus, add=True)

        if not self.l0_mode and len(active) > 1:
            removal = self.remove_candidates(x, dI)
            pos = int(xp.argmin(removal))
            d_remove = float(removal[pos])
            if d_remove < event.delta:
                event = StepEvent(
                    column=int(active[pos]), delta=d_remove, add=False, position=pos
                )

        delta = float(round_to(event.delta, self.precision_digits))
        return StepEvent(event.column, delta, event.add, event.position)

    @staticmethod
    def is_valid(lambda_: float, delta: float) -> bool:
        """False on numerical breakdown: ``λ < δ`` or either one negative."""
        return not (lambda_ < delta or lambda_ < 0 or delta < 0)
