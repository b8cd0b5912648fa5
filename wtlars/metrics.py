from __future__ import annotations

import numpy as np


def weighted_norm(R: np.ndarray, w: np.ndarray | None = None) -> float:
    """Weighted Euclidean norm ``sqrt(sum_j w_j R_j^2)`` of a tensor or vector."""
    R = np.asarray(R, dtype=float).reshape(-1)
    if w is None:
        return float(np.linalg.norm(R))
    w = np.asarray(w, dtype=float).reshape(-1)
    return float(np.sqrt(np.sum(w * R * R)))


def relative_residual_norm(
    Y: np.ndarray, Yhat: np.ndarray, w: np.ndarray | None = None
) -> float:
    """
    Relative weighted residual ``||S (Y - Yhat)|| / ||S Y||``.

    Returns 0.0 when both ``Y`` and the residual vanish.
    """
    Y = np.asarray(Y, dtype=float)
    num = weighted_norm(Y - np.asarray(Yhat, dtype=float).reshape(Y.shape), w)
    den = weighted_norm(Y, w)
    if den == 0.0:
        return 0.0 if num == 0.0 else float("inf")
    return num / den


def sparsity(X: np.ndarray, tol: float = 0.0) -> float:
    """Fraction of coefficients with magnitude at or below ``tol``."""
    X = np.asarray(X)
    if X.size == 0:
        return 1.0
    return float(np.mean(np.abs(X) <= tol))
