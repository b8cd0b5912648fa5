"""Weighted Tensor Least Angle Regression (WT-LARS).

Solves the weighted sparse regression problem

    min_x || S (y - A Q x) ||_2   with  A = D[0] ⊗ ... ⊗ D[N-1],  S = diag(sqrt(w))

along the LARS/homotopy path (L1) or greedily (L0), adding or removing one
dictionary column per iteration. The dictionary is only ever applied through
:class:`wtlars.ops.SeparableOperator`; the Gram inverse of the active set is
updated incrementally by :class:`wtlars.gram.ActiveSetGramInverse`.

Reference: Wickramasingha I, Elrewainy A, Sobhy M, Sherif SS. Tensor Least
Angle Regression for Sparse Representations of Multidimensional Signals.
Neural Comput. 2020;32(9):1-36.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

import numpy as np

from ._validation import (
    _validate_run_params,
    _validate_warm_start,
    _validate_wtlars_inputs,
)
from .backend import ArrayBackend, numpy_backend, resolve_backend
from .errors import WTLARSRuntimeError
from .gram import ActiveSetGramInverse
from .indexing import MASK_TYPES, ColumnIndexer
from .ops import SeparableOperator, column_weights
from .step import StepEvent, StepSolver, round_to

logger = logging.getLogger(__name__)

ALGORITHM = "WT-LARS"


class Status(str, Enum):
    INITIALIZING = "initializing"
    ITERATING = "iterating"
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"
    ABORTED = "aborted"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class IterationStat:
    """One completed iteration."""

    iteration: int
    residual_norm: float
    column: int
    column_indices: tuple[int, ...]
    add_column: bool
    active_columns_count: int
    delta: float
    lambda_: float
    time: float


@dataclass(frozen=True)
class RunParameters:
    """Aggregate statistics of a run."""

    iterations: int
    residual_norm: float
    lambda_: float
    active_columns_count: int
    time: float


@dataclass(frozen=True)
class RunConfig:
    active_columns_limit: int
    tolerance: float
    max_iterations: int
    precision: float
    precision_digits: int
    block_size: int
    callback_every: int
    l0_mode: bool = False
    mask_type: str = "kronecker"
    reconstruct_with_weights: bool = False
    is_orthogonal: bool = False
    return_path: bool = False


@dataclass
class RunSnapshot:
    """State handed to the progress and abort hooks (host arrays)."""

    iteration: int
    status: Status
    active_columns: np.ndarray
    x: np.ndarray
    lambda_: float
    residual: np.ndarray
    residual_norms: list[float]
    stats: list[IterationStat]
    reconstruction: np.ndarray | None = None


@dataclass
class WTLARSResult:
    """Output of :func:`wt_lars`.

    ``X``/``x`` are coefficients of the normalized, whitened dictionary
    ``B = S A Q`` for the unit-norm target; :meth:`data_coefficients` maps them
    back to the units of ``Y``. ``Ax`` is the reconstruction in normalized units.
    """

    X: np.ndarray
    active_columns: np.ndarray
    x: np.ndarray
    parameters: RunParameters
    stats: list[IterationStat]
    Ax: np.ndarray
    status: Status
    residual_norms: list[float]
    tensor_norm: float
    q: np.ndarray
    backend: str
    path: list[tuple[np.ndarray, np.ndarray]] | None = None

    @property
    def converged(self) -> bool:
        return self.status is Status.CONVERGED

    def reconstruction(self) -> np.ndarray:
        """Reconstruction rescaled to the norm of the (whitened) input."""
        return self.Ax * self.tensor_norm

    def data_coefficients(self) -> np.ndarray:
        """Coefficient tensor ``X_data`` such that ``A @ X_data.ravel()`` approximates ``Y``."""
        out = np.zeros(self.X.size)
        out[self.active_columns] = self.x * self.q[self.active_columns] * self.tensor_norm
        return out.reshape(self.X.shape)

    def path_matrix(self) -> np.ndarray:
        """Coefficient history as one dense row (``total_columns`` wide) per iteration."""
        if self.path is None:
            raise RuntimeError("Run wt_lars(..., return_path=True) to record the path")
        out = np.zeros((len(self.path), self.X.size))
        for row, (active, x) in zip(out, self.path, strict=True):
            row[active] = x
        return out

    def summary_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "iterations": self.parameters.iterations,
            "residual_norm": self.parameters.residual_norm,
            "lambda": self.parameters.lambda_,
            "active_columns_count": self.parameters.active_columns_count,
            "time": self.parameters.time,
            "backend": self.backend,
        }

    def stats_as_frame(self):
        try:
            import pandas as pd  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("pandas is required for stats_as_frame()") from exc

        frame = pd.DataFrame([asdict(stat) for stat in self.stats])
        if not frame.empty:
            frame = frame.set_index("iteration")
        return frame


@dataclass
class WTLARSState:
    """Mutable run state; arrays live on the context's backend."""

    y: Any
    r: Any
    c: Any
    x: Any
    lambda_: float
    active: list[int]
    gram: ActiveSetGramInverse
    indexer: ColumnIndexer
    residual_norm: float
    residual_norms: list[float] = field(default_factory=list)
    stats: list[IterationStat] = field(default_factory=list)
    path: list[tuple[np.ndarray, np.ndarray]] | None = None
    iteration: int = 0
    status: Status = Status.INITIALIZING

    def to_backend(self, source: ArrayBackend, target: ArrayBackend) -> None:
        for name in ("y", "r", "c", "x"):
            setattr(self, name, target.asarray(source.to_host(getattr(self, name))))
        self.gram.to_backend(target)


@dataclass
class _Context:
    """Read-only run inputs bound to one backend."""

    config: RunConfig
    backend: ArrayBackend
    factors: list[np.ndarray]
    operator: SeparableOperator
    w: Any
    s: Any
    q: Any
    q1: Any
    s1: Any
    mask: np.ndarray
    solver: StepSolver
    started: float
    tensor_norm: float = 1.0

    @classmethod
    def build(
        cls,
        factors: list[np.ndarray],
        w: np.ndarray,
        mask: np.ndarray,
        config: RunConfig,
        backend: ArrayBackend,
        started: float,
    ) -> _Context:
        operator = SeparableOperator(factors, backend=backend)
        xp = backend.xp
        w_b = backend.asarray(w)
        s = xp.sqrt(w_b)
        q = column_weights(operator, w_b)
        if config.reconstruct_with_weights:
            q1, s1 = q, s
        else:
            q1, s1 = column_weights(operator), 1.0
        return cls._assemble(config, backend, factors, operator, w_b, s, q, q1, s1, mask, started)

    @classmethod
    def _assemble(cls, config, backend, factors, operator, w, s, q, q1, s1, mask, started):
        solver = StepSolver(
            operator,
            q,
            w,
            mask,
            precision=config.precision,
            precision_digits=config.precision_digits,
            l0_mode=config.l0_mode,
        )
        return cls(config, backend, factors, operator, w, s, q, q1, s1, mask, solver, started)

    @property
    def xp(self) -> Any:
        return self.backend.xp

    def moved(self, backend: ArrayBackend) -> _Context:
        """Same context on another backend, carrying the computed vectors over."""

        def move(a):
            return a if np.isscalar(a) else backend.asarray(self.backend.to_host(a))

        operator = SeparableOperator(self.factors, backend=backend)
        ctx = self._assemble(
            self.config,
            backend,
            self.factors,
            operator,
            move(self.w),
            move(self.s),
            move(self.q),
            move(self.q1),
            move(self.s1),
            self.mask,
            self.started,
        )
        ctx.tensor_norm = self.tensor_norm
        return ctx

    def elapsed(self) -> float:
        return time.perf_counter() - self.started


@dataclass
class _StepResult:
    status: Status | None = None
    error: Exception | None = None


# ----------------------------------------------------------------------
# Building blocks
# ----------------------------------------------------------------------
def _index(ctx: _Context, idx: Sequence[int]) -> Any:
    return ctx.xp.asarray(np.asarray(idx, dtype=np.int64))


def _correlation(ctx: _Context, r: Any) -> Any:
    """``c = Q A' S r`` with masked columns zeroed, rounded to the working precision."""
    c = ctx.q * ctx.operator.apply_adjoint(ctx.s * r)
    if ctx.mask.size:
        c[_index(ctx, ctx.mask)] = 0.0
    return round_to(c, ctx.config.precision_digits, ctx.xp)


def _weighted_gram(ctx: _Context, active: Sequence[int]) -> Any:
    """Full ``Q_I A_I' W A_I Q_I`` for the active columns."""
    cols = ctx.operator.columns(active) * ctx.q[_index(ctx, active)][None, :]
    return cols.T @ (ctx.w[:, None] * cols)


def _gram_column(
    ctx: _Context,
    active: Sequence[int],
    column: int,
    factor_columns: Sequence[np.ndarray],
) -> tuple[Any, float]:
    """Gram entries between ``column`` and the active set, plus its diagonal."""
    a = ctx.operator.columns([column])[:, 0] * ctx.q[column]
    wa = ctx.w * a
    row = ctx.q[_index(ctx, active)] * ctx.operator.adjoint_active(wa, active, factor_columns)
    return row, float(a @ wa)


def _rebuild_gram(state: WTLARSState, ctx: _Context) -> None:
    """Rebuild the stored Gram inverse from the active set after a failed iteration."""
    if ctx.config.is_orthogonal or len(state.active) < 2:
        return
    state.gram.recompute(_weighted_gram(ctx, state.active))


def _reconstruct(ctx: _Context, state: WTLARSState) -> Any:
    Ax = ctx.operator.apply_active(
        state.active, state.x, ctx.q1, state.indexer.factor_columns()
    )
    return ctx.s1 * Ax


def _initialize(
    Y: np.ndarray,
    x0: np.ndarray | None,
    ctx: _Context,
    indexer: ColumnIndexer,
) -> WTLARSState:
    config = ctx.config
    xp = ctx.xp
    y = ctx.s * ctx.backend.asarray(Y.reshape(-1))
    tensor_norm = float(xp.linalg.norm(y))
    if tensor_norm == 0.0:
        raise ValueError(
            "Y has zero weighted norm; there is nothing to approximate. "
            "Check that Y is non-zero where the weights w are positive."
        )
    y = y / tensor_norm
    ctx.tensor_norm = tensor_norm

    gram = ActiveSetGramInverse(config.block_size, tol=config.precision, backend=ctx.backend)

    if x0 is not None:
        logger.info("Start %s calculations using the existing solution", ALGORITHM)
        active = [int(i) for i in np.flatnonzero(x0)]
        masked = np.intersect1d(active, ctx.mask)
        if masked.size:
            raise ValueError(
                f"warm_start has non-zeros on masked columns {masked.tolist()[:5]} "
                f"for mask_type={config.mask_type!r}."
            )
        x = ctx.backend.asarray(x0[active])
        indexer.reset(active)
        Ax = ctx.operator.apply_active(active, x, ctx.q, indexer.factor_columns())
        r = y - ctx.s * Ax
        c = _correlation(ctx, r)
        lambda_ = float(xp.max(xp.abs(c)))
        logger.info("Obtaining the inverse of the weighted Gramian for %d columns", len(active))
        if not config.is_orthogonal:
            gram.recompute(_weighted_gram(ctx, active))
    else:
        logger.info("Calculating the initial correlation vector")
        r = y.copy()
        c = _correlation(ctx, r)
        first = int(xp.argmax(xp.abs(c)))
        lambda_ = float(xp.abs(c[first]))
        active = [first]
        x = xp.zeros(1)
        indexer.reset(active)
        gram.reset(xp.ones((1, 1)))

    residual_norm = float(xp.linalg.norm(r))
    state = WTLARSState(
        y=y,
        r=r,
        c=c,
        x=x,
        lambda_=lambda_,
        active=active,
        gram=gram,
        indexer=indexer,
        residual_norm=residual_norm,
        path=[] if config.return_path else None,
    )
    state.residual_norms.append(residual_norm)
    logger.info(
        "Active columns = %d norm(r) = %g lambda = %g", len(active), residual_norm, lambda_
    )
    return state


def _iterate(state: WTLARSState, ctx: _Context) -> Status:
    """Run one iteration; ``state`` is only mutated once every product succeeded."""
    config = ctx.config
    xp = ctx.xp
    solver = ctx.solver
    active = state.active
    n = len(active)
    factor_columns = state.indexer.factor_columns()

    zI = solver.signs(state.c, active)
    if config.is_orthogonal:
        dI = zI
    elif n > 1:
        dI = state.gram.direction(zI, gram=lambda: _weighted_gram(ctx, active))
    else:
        state.gram.reset(xp.ones((1, 1)))
        dI = zI

    u, v = solver.image(active, dI, factor_columns)
    event = solver.select(state.lambda_, state.c, v, state.x, dI, active)
    delta = event.delta

    if not solver.is_valid(state.lambda_, delta):
        logger.warning(
            "%s stopped at: t = %d norm(r) = %g lambda = %g delta = %g",
            ALGORITHM,
            state.iteration + 1,
            state.residual_norm,
            state.lambda_,
            delta,
        )
        return Status.ABORTED

    act = _index(ctx, active)
    x = state.x + delta * dI
    lambda_ = float(round_to(state.lambda_ - delta, config.precision_digits))
    c = state.c - delta * v
    c[act] = lambda_ * xp.sign(c[act])
    r = state.r - delta * ctx.s * u
    nr = float(xp.linalg.norm(r))

    done = nr < config.tolerance or n >= config.active_columns_limit
    path_entry = (
        (np.asarray(active, dtype=np.int64), ctx.backend.to_host(x))
        if state.path is not None
        else None
    )
    column_indices = state.indexer.decompose(event.column)
    stat = IterationStat(
        iteration=state.iteration + 1,
        residual_norm=nr,
        column=event.column,
        column_indices=column_indices,
        add_column=event.add,
        active_columns_count=n,
        delta=delta,
        lambda_=lambda_,
        time=ctx.elapsed(),
    )
    if done:
        next_active, next_x, usage, inverse = active, x, state.indexer.usage, None
    else:
        next_active, next_x, usage = _apply_event(state, event, x, xp)
        inverse = _next_inverse(ctx, state, event, factor_columns)

    # commit
    if inverse is not None:
        state.gram.reset(inverse)
    state.iteration = stat.iteration
    state.active, state.x, state.indexer.usage = next_active, next_x, usage
    state.lambda_, state.c, state.r, state.residual_norm = lambda_, c, r, nr
    state.residual_norms.append(nr)
    state.stats.append(stat)
    if path_entry is not None:
        state.path.append(path_entry)

    if done:
        logger.info(
            "%s stopping criteria reached at: t = %d norm(r) = %g lambda = %g "
            "delta = %g tolerance = %g time = %.3f",
            ALGORITHM,
            state.iteration,
            nr,
            lambda_,
            delta,
            config.tolerance,
            ctx.elapsed(),
        )
        return Status.CONVERGED

    logger.debug(
        "%s %s t= %d norm(r)= %g active columns= %d %s column= %d indices= %s time= %.3f",
        ALGORITHM,
        ctx.backend.name,
        state.iteration,
        nr,
        len(state.active),
        "add" if event.add else "remove",
        event.column,
        column_indices,
        ctx.elapsed(),
    )
    return Status.ITERATING


def _next_inverse(
    ctx: _Context, state: WTLARSState, event: StepEvent, factor_columns: list[np.ndarray]
) -> Any | None:
    """Gram inverse after ``event``, or None when the stored one stays valid."""
    if ctx.config.is_orthogonal:
        return None
    if event.add:
        return state.gram.grown(*_gram_column(ctx, state.active, event.column, factor_columns))
    return state.gram.shrunk(event.position)


def _apply_event(
    state: WTLARSState, event: StepEvent, x: Any, xp: Any
) -> tuple[list[int], Any, list[np.ndarray]]:
    """Active set, coefficients and factor usage after ``event``; ``state`` is untouched."""
    if event.add:
        active = [*state.active, event.column]
        x = xp.concatenate([x, xp.zeros(1)])
        usage = state.indexer.counts_after(added=[event.column])
    else:
        pos = event.position
        active = state.active[:pos] + state.active[pos + 1 :]
        x = xp.concatenate([x[:pos], x[pos + 1 :]])
        usage = state.indexer.counts_after(removed=[event.column])
    return active, x, usage


def _guarded_iteration(state: WTLARSState, ctx: _Context) -> _StepResult:
    try:
        return _StepResult(status=_iterate(state, ctx))
    except Exception as exc:  # handed back to the caller, which retries at most once
        return _StepResult(error=exc)


def _snapshot(
    state: WTLARSState, ctx: _Context, *, reconstruct: bool = False
) -> RunSnapshot:
    host = ctx.backend.to_host
    reconstruction = None
    if reconstruct:
        reconstruction = host(_reconstruct(ctx, state)).reshape(ctx.operator.tensor_dims)
    return RunSnapshot(
        iteration=state.iteration,
        status=state.status,
        active_columns=np.asarray(state.active, dtype=np.int64),
        x=host(state.x),
        lambda_=state.lambda_,
        residual=host(state.r),
        residual_norms=list(state.residual_norms),
        stats=list(state.stats),
        reconstruction=reconstruction,
    )


def _finalize(state: WTLARSState, ctx: _Context) -> WTLARSResult:
    host = ctx.backend.to_host
    active = np.asarray(state.active, dtype=np.int64)
    x = host(state.x)
    X = np.zeros(state.indexer.total_columns)
    X[active] = x
    Ax = host(_reconstruct(ctx, state)).reshape(ctx.operator.tensor_dims)
    parameters = RunParameters(
        iterations=state.iteration,
        residual_norm=state.residual_norm,
        lambda_=state.lambda_,
        active_columns_count=len(active),
        time=ctx.elapsed(),
    )
    return WTLARSResult(
        X=X.reshape(state.indexer.core_dims),
        active_columns=active,
        x=x,
        parameters=parameters,
        stats=list(state.stats),
        Ax=Ax,
        status=state.status,
        residual_norms=list(state.residual_norms),
        tensor_norm=ctx.tensor_norm,
        q=host(ctx.q),
        backend=ctx.backend.name,
        path=state.path,
    )


def _best_effort_result(state: WTLARSState, ctx: _Context) -> WTLARSResult | None:
    try:
        return _finalize(state, ctx)
    except Exception:
        logger.exception("Could not assemble the last consistent %s solution", ALGORITHM)
        return None


# ----------------------------------------------------------------------
# Public entry point
# ----------------------------------------------------------------------
def wt_lars(
    Y,
    factors,
    w=None,
    active_columns_limit: int = 1,
    tolerance: float = 0.01,
    *,
    warm_start=None,
    l0_mode: bool = False,
    mask_type: str = "kronecker",
    max_iterations: int | None = None,
    precision_factor: float = 10.0,
    precision_digits: int | None = None,
    reconstruct_with_weights: bool = False,
    is_orthogonal: bool = False,
    block_size: int = 256,
    use_accelerator: bool = False,
    backend: ArrayBackend | None = None,
    return_path: bool = False,
    callback: Callable[[RunSnapshot], None] | None = None,
    callback_every: int = 1000,
    on_abort: Callable[[RunSnapshot], None] | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> WTLARSResult:
    """
    Weighted Tensor Least Angle Regression with a separable dictionary.

    Parameters
    ----------
    Y : array, shape tensor_dims
        Data tensor; ``factors[k]`` must have ``Y.shape[k]`` rows.
    factors : list of (tensor_dims[k] × core_dims[k]) arrays
        Factor matrices of the separable dictionary ``A = D[0] ⊗ ... ⊗ D[N-1]``.
    w : array, optional
        Non-negative weights, one per element of ``Y`` (flat or shaped like Y).
        ``None`` means unit weights.
    active_columns_limit : int
        Stop once the active set reaches this size.
    tolerance : float
        Stop once the norm of the (normalized) residual falls below this.
    warm_start : array, shape core_dims, optional
        Previous coefficient tensor to resume from.
    l0_mode : bool
        Greedy L0 path (columns are never removed) instead of the L1 homotopy.
    mask_type : {"kronecker", "khatri-rao"}
        "khatri-rao" restricts the dictionary to its diagonal columns.
    max_iterations : int, optional
        Iteration cap; defaults to ``Y.size``.
    precision_factor : float
        Working precision is ``precision_factor * eps``.
    precision_digits : int, optional
        Decimals kept when rounding; derived from the precision when omitted.
    reconstruct_with_weights : bool
        Build ``Ax`` with the weighted normalization (``q``, ``sqrt(w)``)
        instead of the unweighted column norms.
    is_orthogonal : bool
        Treat the dictionary as orthogonal; the Gram inverse is never formed.
    block_size : int
        Growth step of the Gram-inverse buffer.
    use_accelerator, backend :
        Request the CuPy path, or pass an explicit :class:`ArrayBackend`.
    return_path : bool
        Keep ``(active_columns, x)`` after every iteration in ``result.path``.
    callback, callback_every :
        Progress hook receiving a :class:`RunSnapshot` with the current
        reconstruction on iterations 1, 1 + every, 1 + 2*every, ...
    on_abort :
        Hook receiving a :class:`RunSnapshot` on numerical breakdown or failure.
    should_stop :
        Polled before every iteration; returning True cancels the run.

    Returns
    -------
    WTLARSResult

    Raises
    ------
    InputShapeMismatch
        Inconsistent tensor / factor / weight / warm-start dimensions.
    WTLARSRuntimeError
        A failure the baseline path could not recover from; ``exc.result``
        holds the last consistent solution.
    """
    started = time.perf_counter()
    Y, factors, w = _validate_wtlars_inputs(Y, factors, w)
    indexer = ColumnIndexer([D.shape[1] for D in factors])
    params = _validate_run_params(
        active_columns_limit=active_columns_limit,
        tolerance=tolerance,
        max_iterations=max_iterations,
        precision_factor=precision_factor,
        precision_digits=precision_digits,
        block_size=block_size,
        callback_every=callback_every,
        default_iterations=Y.size,
    )
    mask = indexer.mask(mask_type)
    config = RunConfig(
        **params,
        l0_mode=bool(l0_mode),
        mask_type=MASK_TYPES[str(mask_type).lower()],
        reconstruct_with_weights=bool(reconstruct_with_weights),
        is_orthogonal=bool(is_orthogonal),
        return_path=bool(return_path),
    )
    x0 = _validate_warm_start(warm_start, indexer.core_dims)
    backend = resolve_backend(use_accelerator, backend)

    logger.info(
        "Initializing %s: %s product, %s minimization, %d columns, backend=%s",
        ALGORITHM,
        config.mask_type,
        "L0" if config.l0_mode else "L1",
        indexer.total_columns,
        backend.name,
    )
    ctx = _Context.build(factors, w, mask, config, backend, started)
    state = _initialize(Y, x0, ctx, indexer)

    logger.info("Running %s iterations", ALGORITHM)
    state.status = Status.ITERATING
    while state.status is Status.ITERATING:
        if state.iteration >= config.max_iterations:
            state.status = Status.EXHAUSTED
            logger.info("%s reached max_iterations = %d", ALGORITHM, config.max_iterations)
            break
        if should_stop is not None and should_stop():
            state.status = Status.CANCELLED
            logger.info("%s cancelled at t = %d", ALGORITHM, state.iteration)
            break

        step = _guarded_iteration(state, ctx)
        if step.error is not None and ctx.backend.accelerated:
            logger.warning(
                "Exception occurred on the %s path, disabling accelerated computing: %r",
                ctx.backend.name,
                step.error,
            )
            try:
                baseline = ctx.moved(numpy_backend)
                state.to_backend(ctx.backend, numpy_backend)
                _rebuild_gram(state, baseline)
            except Exception as exc:
                step = _StepResult(error=exc)
            else:
                ctx = baseline
                step = _guarded_iteration(state, ctx)

        if step.error is not None:
            state.status = Status.FAILED
            logger.error(
                "%s failed at t = %d", ALGORITHM, state.iteration + 1, exc_info=step.error
            )
            partial = _best_effort_result(state, ctx)
            if on_abort is not None:
                on_abort(_snapshot(state, ctx))
            raise WTLARSRuntimeError(
                f"{ALGORITHM} failed at iteration {state.iteration + 1}: {step.error!r}",
                result=partial,
            ) from step.error

        state.status = step.status
        if (
            callback is not None
            and step.status is not Status.ABORTED
            and (state.iteration - 1) % config.callback_every == 0
        ):
            callback(_snapshot(state, ctx, reconstruct=True))

    if state.status is Status.ABORTED and on_abort is not None:
        on_abort(_snapshot(state, ctx))

    result = _finalize(state, ctx)
    logger.info(
        "%s finished (%s): t = %d norm(r) = %g lambda = %g active columns = %d time = %.3f",
        ALGORITHM,
        result.status.value,
        result.parameters.iterations,
        result.parameters.residual_norm,
        result.parameters.lambda_,
        result.parameters.active_columns_count,
        result.parameters.time,
    )
    return result


__all__ = [
    "IterationStat",
    "RunConfig",
    "RunParameters",
    "RunSnapshot",
    "Status",
    "WTLARSResult",
    "WTLARSState",
    "wt_lars",
]
