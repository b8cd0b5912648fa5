"""Input validation and sanitization helpers for wtlars.

This module provides standardized validation functions so that shape and
contract violations are rejected before any solver state is created.
"""

from __future__ import annotations

import numbers
from typing import Any

import numpy as np

from .errors import InputShapeMismatch


def _is_integer(value: Any) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def _is_real(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _validate_factor_matrices(factors: Any, *, name: str = "factors") -> list[np.ndarray]:
    """Validate and convert the per-mode factor matrices.

    Parameters
    ----------
    factors : list-like
        One 2D array per tensor mode.
    name : str, optional
        Variable name for error messages.

    Returns
    -------
    list[np.ndarray]
        Validated list of 2D float arrays.

    Raises
    ------
    InputShapeMismatch
        If ``factors`` is empty, not list-like, or contains invalid matrices.
    """
    if not isinstance(factors, (list, tuple)) or len(factors) == 0:
        raise InputShapeMismatch(
            f"{name} must be a non-empty list or tuple of 2D arrays. "
            f"Got {type(factors).__name__} with length "
            f"{len(factors) if hasattr(factors, '__len__') else '?'}"
        )

    validated = []
    for k, D in enumerate(factors):
        try:
            D_arr = np.asarray(D, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InputShapeMismatch(
                f"{name}[{k}] cannot be converted to numeric array: {e}"
            ) from e

        if D_arr.ndim == 1:
            D_arr = D_arr[:, None]
        if D_arr.ndim != 2 or D_arr.size == 0:
            raise InputShapeMismatch(
                f"{name}[{k}] must be a non-empty 2D array, got shape {D_arr.shape}."
            )
        if not np.all(np.isfinite(D_arr)):
            raise ValueError(f"{name}[{k}] contains NaN or Inf entries.")
        validated.append(D_arr)

    return validated


def _validate_tensor(Y: Any, tensor_dims: tuple[int, ...], *, name: str = "Y") -> np.ndarray:
    """Validate the data tensor against the factor row counts.

    Singleton modes are ignored when matching, so a vector stored as an
    ``(n, 1)`` array is accepted for a single factor matrix.

    Raises
    ------
    InputShapeMismatch
        If the tensor cannot be matched to ``tensor_dims``.
    """
    try:
        Y_arr = np.asarray(Y, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InputShapeMismatch(f"{name} cannot be converted to numeric array: {e}") from e

    if Y_arr.size == 0:
        raise InputShapeMismatch(f"{name} must be non-empty.")

    if Y_arr.shape != tensor_dims:
        squeezed = tuple(n for n in Y_arr.shape if n > 1)
        wanted = tuple(n for n in tensor_dims if n > 1)
        if squeezed != wanted:
            raise InputShapeMismatch(
                f"{name} has shape {Y_arr.shape} but the factor matrices have "
                f"{tensor_dims} rows. Factor k must have as many rows as mode k of {name}."
            )
        Y_arr = Y_arr.reshape(tensor_dims)

    if not np.all(np.isfinite(Y_arr)):
        raise ValueError(f"{name} contains NaN or Inf entries.")
    return Y_arr


def _validate_weights(w: Any, size: int, *, name: str = "w") -> np.ndarray:
    """Validate the weight vector; ``None`` means unit weights.

    Raises
    ------
    InputShapeMismatch
        If ``w`` does not have one entry per tensor element.
    ValueError
        If any weight is negative or non-finite.
    """
    if w is None:
        return np.ones(size)
    w_arr = np.asarray(w, dtype=np.float64).reshape(-1)
    if w_arr.shape[0] != size:
        raise InputShapeMismatch(
            f"{name} has {w_arr.shape[0]} entries but the tensor has {size}. "
            f"Provide one weight per element of Y (flat or with Y's shape)."
        )
    if not np.all(np.isfinite(w_arr)) or np.any(w_arr < 0):
        raise ValueError(f"{name} must be finite and non-negative.")
    return w_arr


def _validate_warm_start(
    X0: Any, core_dims: tuple[int, ...], *, name: str = "warm_start"
) -> np.ndarray | None:
    """Validate a previous coefficient tensor; returns it flattened or None."""
    if X0 is None:
        return None
    X_arr = np.asarray(X0, dtype=np.float64)
    if X_arr.ndim == 0:
        # scalar 0 means "no previous solution"
        if float(X_arr) != 0.0:
            raise InputShapeMismatch(f"{name} must be a tensor of shape {core_dims}.")
        return None
    if X_arr.size != int(np.prod(core_dims)) or (
        X_arr.ndim > 1 and X_arr.shape != core_dims
    ):
        raise InputShapeMismatch(
            f"{name} has shape {X_arr.shape}, expected {core_dims} "
            f"(one coefficient per dictionary column)."
        )
    if not np.all(np.isfinite(X_arr)):
        raise ValueError(f"{name} contains NaN or Inf entries.")
    x = X_arr.reshape(-1)
    return x if np.any(x != 0) else None


def _validate_wtlars_inputs(
    Y: Any, factors: Any, w: Any
) -> tuple[np.ndarray, list[np.ndarray], np.ndarray]:
    """Comprehensive validation for the solver's array inputs.

    Returns
    -------
    tuple
        Validated (Y, factors, w).
    """
    factors_valid = _validate_factor_matrices(factors)
    tensor_dims = tuple(int(D.shape[0]) for D in factors_valid)
    Y_valid = _validate_tensor(Y, tensor_dims)
    w_valid = _validate_weights(w, Y_valid.size)
    return Y_valid, factors_valid, w_valid


def _validate_run_params(
    *,
    active_columns_limit: Any,
    tolerance: Any,
    max_iterations: Any,
    precision_factor: Any,
    precision_digits: Any,
    block_size: Any,
    callback_every: Any,
    default_iterations: int,
) -> dict[str, int | float]:
    """Validate iteration limits and numerical precision parameters.

    Returns
    -------
    dict
        Validated parameters, with ``max_iterations`` and ``precision_digits``
        resolved to concrete values.
    """
    params: dict[str, int | float] = {}

    if not _is_integer(active_columns_limit) or active_columns_limit < 1:
        raise ValueError(
            f"active_columns_limit must be a positive integer, got {active_columns_limit}. "
            f"Try the number of non-zeros you expect in the solution."
        )
    params["active_columns_limit"] = int(active_columns_limit)

    if not _is_real(tolerance) or tolerance < 0:
        raise ValueError(
            f"tolerance must be non-negative, got {tolerance}. "
            f"Try tolerance=0.01 for a 1% relative residual."
        )
    params["tolerance"] = float(tolerance)

    if max_iterations is None:
        max_iterations = default_iterations
    if not _is_integer(max_iterations) or max_iterations < 1:
        raise ValueError(
            f"max_iterations must be a positive integer, got {max_iterations}. "
            f"Leave it as None to allow numel(Y) iterations."
        )
    params["max_iterations"] = int(max_iterations)

    if not _is_real(precision_factor) or precision_factor <= 0:
        raise ValueError(
            f"precision_factor must be positive, got {precision_factor}. "
            f"Try precision_factor=10 (ten times machine epsilon)."
        )
    precision = float(precision_factor) * float(np.finfo(float).eps)

    if precision_digits is None:
        precision_digits = int(round(abs(np.log10(precision))))
    elif not _is_integer(precision_digits) or precision_digits < 1:
        raise ValueError(
            f"precision_digits must be a positive integer, got {precision_digits}."
        )
    else:
        precision = max(precision, 10.0 ** -int(precision_digits))
    params["precision"] = precision
    params["precision_digits"] = int(precision_digits)

    if not _is_integer(block_size) or block_size < 1:
        raise ValueError(
            f"block_size must be a positive integer, got {block_size}. "
            f"Try block_size=256."
        )
    params["block_size"] = int(block_size)

    if not _is_integer(callback_every) or callback_every < 1:
        raise ValueError(
            f"callback_every must be a positive integer, got {callback_every}."
        )
    params["callback_every"] = int(callback_every)

    return params
