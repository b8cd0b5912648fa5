"""High-level estimator APIs for WT-LARS sparse tensor fitting."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import numpy as np

from .engine import WTLARSResult, wt_lars
from .metrics import relative_residual_norm, sparsity
from .ops import multilinear_product

_PARAM_NAMES = (
    "active_columns_limit",
    "tolerance",
    "l0_mode",
    "mask_type",
    "max_iterations",
    "precision_factor",
    "precision_digits",
    "reconstruct_with_weights",
    "is_orthogonal",
    "block_size",
    "use_accelerator",
    "return_path",
)


def _asarray_tensor(x: Any) -> np.ndarray:
    if hasattr(x, "to_numpy"):
        x = x.to_numpy()
    return np.asarray(x, dtype=np.float64)


class WTLARS:
    """Scikit-learn style estimator for sparse separable tensor regression."""

    def __init__(
        self,
        *,
        active_columns_limit: int = 10,
        tolerance: float = 0.01,
        l0_mode: bool = False,
        mask_type: str = "kronecker",
        max_iterations: int | None = None,
        precision_factor: float = 10.0,
        precision_digits: int | None = None,
        reconstruct_with_weights: bool = False,
        is_orthogonal: bool = False,
        block_size: int = 256,
        use_accelerator: bool = False,
        return_path: bool = False,
    ) -> None:
        self.active_columns_limit = active_columns_limit
        self.tolerance = tolerance
        self.l0_mode = l0_mode
        self.mask_type = mask_type
        self.max_iterations = max_iterations
        self.precision_factor = precision_factor
        self.precision_digits = precision_digits
        self.reconstruct_with_weights = reconstruct_with_weights
        self.is_orthogonal = is_orthogonal
        self.block_size = block_size
        self.use_accelerator = use_accelerator
        self.return_path = return_path

    # ------------------------------------------------------------------
    # Scikit-learn estimator protocol
    # ------------------------------------------------------------------
    def get_params(self, deep: bool = True) -> dict[str, Any]:  # noqa: D401 - sklearn API
        return {name: getattr(self, name) for name in _PARAM_NAMES}

    def set_params(self, **params: Any) -> WTLARS:  # noqa: D401 - sklearn API
        for key, value in params.items():
            if key not in _PARAM_NAMES:
                raise ValueError(f"Unknown parameter {key!r}")
            setattr(self, key, value)
        return self

    # ------------------------------------------------------------------
    # Fitting / inference
    # ------------------------------------------------------------------
    def fit(
        self,
        Y: Any,
        factors: Sequence[Any],
        w: Any | None = None,
        *,
        warm_start: Any | None = None,
        **hooks: Any,
    ) -> WTLARS:
        """Fit ``Y ≈ X ×_0 D[0] ×_1 D[1] ...`` with a sparse core ``X``.

        Extra keyword arguments (``callback``, ``callback_every``, ``on_abort``,
        ``should_stop``, ``backend``) are passed on to :func:`wt_lars`.
        """
        Y_arr = _asarray_tensor(Y)
        result = wt_lars(
            Y_arr,
            list(factors),
            w,
            warm_start=warm_start,
            **self.get_params(),
            **hooks,
        )
        self._store(result, factors)
        return self

    def _store(self, result: WTLARSResult, factors: Sequence[Any]) -> None:
        self.result_ = result
        self.factors_ = [np.asarray(D, dtype=np.float64) for D in factors]
        self.coef_ = result.data_coefficients()
        self.active_columns_ = result.active_columns
        self.x_ = result.x
        self.n_iter_ = result.parameters.iterations
        self.status_ = result.status
        self.is_fitted_ = True

    def _ensure_fitted(self) -> None:
        if not getattr(self, "is_fitted_", False):
            raise RuntimeError("The estimator has not been fitted yet")

    def predict(self, factors: Sequence[Any] | None = None) -> np.ndarray:
        """Tensor ``coef_ ×_k D[k]``; uses the fitted factor matrices by default."""
        self._ensure_fitted()
        if factors is None:
            factors = self.factors_
        factors = [np.asarray(D, dtype=np.float64) for D in factors]
        if len(factors) != self.coef_.ndim:
            raise ValueError(
                f"Expected {self.coef_.ndim} factor matrices, got {len(factors)}"
            )
        for k, (D, n) in enumerate(zip(factors, self.coef_.shape, strict=True)):
            if D.ndim != 2 or D.shape[1] != n:
                raise ValueError(f"factors[{k}] must have {n} columns, got shape {D.shape}")
        return multilinear_product(self.coef_, factors)

    def score(self, Y: Any, factors: Sequence[Any] | None = None, w: Any | None = None) -> float:
        """Weighted coefficient of determination ``1 - ||S(Y - Ŷ)||² / ||S Y||²``."""
        self._ensure_fitted()
        Y_arr = _asarray_tensor(Y)
        preds = self.predict(factors)
        if preds.size != Y_arr.size:
            raise ValueError("Predictions and Y have incompatible shapes")
        return 1.0 - relative_residual_norm(Y_arr.reshape(preds.shape), preds, w) ** 2

    def stats_as_frame(self):
        self._ensure_fitted()
        return self.result_.stats_as_frame()


class WTLARSResults:
    """Lightweight results container mimicking ``statsmodels`` outputs."""

    def __init__(self, estimator: WTLARS, Y: Any, w: Any | None = None) -> None:
        estimator._ensure_fitted()
        self.estimator = estimator
        self.result = estimator.result_
        Y_arr = _asarray_tensor(Y)

        idx = np.unravel_index(estimator.active_columns_, estimator.coef_.shape)
        self.params = estimator.coef_[idx]
        self.param_labels = [tuple(int(i) for i in label) for label in zip(*idx, strict=True)]
        self.fittedvalues = estimator.predict()
        self.resids = Y_arr.reshape(self.fittedvalues.shape) - self.fittedvalues
        self.relative_residual = relative_residual_norm(
            Y_arr.reshape(self.fittedvalues.shape), self.fittedvalues, w
        )

    def params_as_series(self):
        try:
            import pandas as pd  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("pandas is required for params_as_series()") from exc

        names = [f"mode{k}" for k in range(self.estimator.coef_.ndim)]
        mi = pd.MultiIndex.from_tuples(self.param_labels, names=names)
        return pd.Series(self.params, index=mi)

    def summary_dict(self) -> dict[str, Any]:
        summary = self.result.summary_dict()
        summary.update(
            {
                "relative_residual": self.relative_residual,
                "sparsity": sparsity(self.estimator.coef_),
                "n_coefficients": int(self.estimator.coef_.size),
            }
        )
        return summary
