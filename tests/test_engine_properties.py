import numpy as np
import pytest

from wtlars import Status, wt_lars
from wtlars.ops import multilinear_product
from wtlars.sim import random_factors, simulate_separable

LAMBDA_FUZZ = 1e-12
RESIDUAL_FUZZ = 1e-10


@pytest.fixture
def problem():
    return simulate_separable((6, 5, 4), (4, 3, 3), n_nonzero=4, noise=0.01, seed=21)


def test_path_invariants(problem):
    Y, factors, _ = problem
    result = wt_lars(Y, factors, None, 20, 1e-6, return_path=True)

    n_iter = result.parameters.iterations
    assert len(result.stats) == n_iter
    assert len(result.residual_norms) == n_iter + 1
    assert len(result.path) == n_iter

    lambdas = [s.lambda_ for s in result.stats]
    assert all(b <= a + LAMBDA_FUZZ for a, b in zip(lambdas, lambdas[1:]))

    norms = result.residual_norms
    assert all(b <= a + RESIDUAL_FUZZ for a, b in zip(norms, norms[1:]))

    for active, x in result.path:
        assert len(active) == len(x)
        assert len(set(active.tolist())) == len(active)
    assert len(result.active_columns) == len(result.x)
    assert len(set(result.active_columns.tolist())) == len(result.active_columns)

    history = result.path_matrix()
    assert history.shape == (n_iter, 36)
    last_active, last_x = result.path[-1]
    assert np.allclose(history[-1, last_active], last_x)


def test_greedy_mode_only_adds(problem):
    Y, factors, _ = problem
    result = wt_lars(Y, factors, None, 5, 0.0, l0_mode=True, return_path=True)

    assert result.status is Status.CONVERGED
    assert result.parameters.iterations == 5
    assert all(s.add_column for s in result.stats)
    assert [len(active) for active, _ in result.path] == [1, 2, 3, 4, 5]


def test_max_iterations_exhausts(problem):
    Y, factors, _ = problem
    result = wt_lars(Y, factors, None, 30, 0.0, max_iterations=3)
    assert result.status is Status.EXHAUSTED
    assert result.parameters.iterations == 3


def test_warm_start_resumes_from_previous_solution(problem, caplog):
    Y, factors, _ = problem
    first = wt_lars(Y, factors, None, 3, 0.0)
    assert first.parameters.active_columns_count == 3

    with caplog.at_level("INFO", logger="wtlars"):
        second = wt_lars(Y, factors, None, 6, 0.0, warm_start=first.X, return_path=True)

    assert "existing solution" in caplog.text
    assert second.residual_norms[0] == pytest.approx(first.residual_norms[-1], abs=1e-10)
    assert set(second.path[0][0].tolist()) == set(first.active_columns.tolist())
    assert second.parameters.active_columns_count >= 3


def test_scalar_zero_warm_start_is_a_cold_start(problem):
    Y, factors, _ = problem
    cold = wt_lars(Y, factors, None, 4, 0.0)
    zero = wt_lars(Y, factors, None, 4, 0.0, warm_start=0)
    assert np.array_equal(cold.active_columns, zero.active_columns)
    assert np.allclose(cold.x, zero.x)


def test_progress_callback_frequency(problem):
    Y, factors, _ = problem
    seen = []

    def callback(snapshot):
        seen.append(snapshot.iteration)
        assert snapshot.reconstruction.shape == Y.shape
        assert len(snapshot.residual_norms) == snapshot.iteration + 1

    wt_lars(Y, factors, None, 6, 0.0, l0_mode=True, callback=callback, callback_every=2)
    assert seen == [1, 3, 5]


def test_cancellation_is_polled_each_iteration(problem):
    Y, factors, _ = problem
    polls = []

    def should_stop():
        polls.append(1)
        return len(polls) > 2

    result = wt_lars(Y, factors, None, 10, 0.0, l0_mode=True, should_stop=should_stop)
    assert result.status is Status.CANCELLED
    assert result.parameters.iterations == 2
    assert len(result.active_columns) == len(result.x)


def test_breakdown_calls_abort_hook_and_returns_last_solution():
    rng = np.random.default_rng(9)
    factors = random_factors((4, 4), (3, 3), seed=9)
    Y = rng.standard_normal((4, 4))
    aborted = []

    result = wt_lars(
        Y, factors, None, 9, 1e-12, mask_type="khatri-rao", l0_mode=True, on_abort=aborted.append
    )

    # every admissible column is active, so no further step exists
    assert result.status is Status.ABORTED
    assert result.parameters.iterations == 2
    assert len(aborted) == 1
    assert aborted[0].status is Status.ABORTED
    assert sorted(aborted[0].active_columns.tolist()) == [0, 4, 8]
    assert np.all(np.isfinite(result.x))


def test_orthogonal_flag_skips_gram():
    rng = np.random.default_rng(2)
    factors = [np.linalg.qr(rng.standard_normal((n, n)))[0] for n in (4, 3)]
    X = np.zeros((4, 3))
    X[0, 1], X[2, 2] = 3.0, -1.0
    Y = multilinear_product(X, factors)
    result = wt_lars(Y, factors, None, 12, 1e-8, is_orthogonal=True)
    assert result.status is Status.CONVERGED
    assert np.allclose(result.data_coefficients(), X, atol=1e-8)


def test_summary_and_frame(problem):
    pd = pytest.importorskip("pandas")
    Y, factors, _ = problem
    result = wt_lars(Y, factors, None, 4, 0.0)

    summary = result.summary_dict()
    assert summary["status"] == "converged"
    assert summary["iterations"] == result.parameters.iterations
    assert summary["backend"] == "numpy"

    frame = result.stats_as_frame()
    assert isinstance(frame, pd.DataFrame)
    assert len(frame) == result.parameters.iterations
    assert {"residual_norm", "delta", "lambda_", "add_column"} <= set(frame.columns)
