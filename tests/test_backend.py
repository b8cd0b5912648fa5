import numpy as np
import pytest

import wtlars.backend as backend_module
from wtlars import Status, WTLARSRuntimeError, wt_lars
from wtlars.backend import ArrayBackend, numpy_backend, resolve_backend
from wtlars.sim import simulate_separable


class _FlakyNumpy:
    """NumPy namespace whose ``failing`` function raises like an exhausted device.

    With ``fail_on`` set, only that call (1-based) fails and the others go
    through to NumPy.
    """

    def __init__(self, failing="sign", fail_on=None):
        self.failing = failing
        self.fail_on = fail_on
        self.calls = 0

    def __getattr__(self, name):
        func = getattr(np, name)
        if name != self.failing:
            return func

        def flaky(*args, **kwargs):
            self.calls += 1
            if self.fail_on is None or self.calls == self.fail_on:
                raise MemoryError("out of device memory")
            return func(*args, **kwargs)

        return flaky


@pytest.fixture
def problem():
    return simulate_separable((5, 4), (3, 3), n_nonzero=3, seed=4)


def test_accelerated_failure_falls_back_to_numpy(problem, caplog):
    Y, factors, _ = problem
    flaky = ArrayBackend(name="flaky-gpu", xp=_FlakyNumpy(), accelerated=True)

    with caplog.at_level("WARNING", logger="wtlars"):
        result = wt_lars(Y, factors, None, 4, 0.0, backend=flaky)
    reference = wt_lars(Y, factors, None, 4, 0.0)

    assert "disabling accelerated computing" in caplog.text
    assert flaky.xp.calls == 1
    assert result.backend == "numpy"
    assert result.status is reference.status
    assert np.array_equal(result.active_columns, reference.active_columns)
    assert np.allclose(result.x, reference.x)


@pytest.mark.parametrize("fail_on", [1, 3])
def test_failure_while_growing_active_set_retries_the_same_step(problem, caplog, fail_on):
    Y, factors, _ = problem
    flaky_xp = _FlakyNumpy(failing="concatenate", fail_on=fail_on)
    flaky = ArrayBackend(name="flaky-gpu", xp=flaky_xp, accelerated=True)

    with caplog.at_level("WARNING", logger="wtlars"):
        result = wt_lars(Y, factors, None, 4, 0.0, backend=flaky, return_path=True)
    reference = wt_lars(Y, factors, None, 4, 0.0, return_path=True)

    assert "disabling accelerated computing" in caplog.text
    assert flaky_xp.calls == fail_on
    assert result.backend == "numpy"
    assert result.status is reference.status
    assert result.parameters.iterations == reference.parameters.iterations
    assert [s.column for s in result.stats] == [s.column for s in reference.stats]
    assert len(result.path) == len(reference.path)
    assert np.array_equal(result.active_columns, reference.active_columns)
    assert np.allclose(result.x, reference.x)
    assert np.allclose(result.residual_norms, reference.residual_norms)


def test_baseline_failure_surfaces_partial_result(problem):
    Y, factors, _ = problem
    broken = ArrayBackend(name="broken", xp=_FlakyNumpy(), accelerated=False)
    aborted = []

    with pytest.raises(WTLARSRuntimeError, match="failed at iteration 1") as excinfo:
        wt_lars(Y, factors, None, 4, 0.0, backend=broken, on_abort=aborted.append)

    err = excinfo.value
    assert isinstance(err.__cause__, MemoryError)
    assert err.result is not None
    assert err.result.status is Status.FAILED
    assert err.result.parameters.iterations == 0
    assert len(err.result.active_columns) == 1
    assert len(aborted) == 1


def test_resolve_backend(monkeypatch):
    assert resolve_backend() is numpy_backend
    custom = ArrayBackend(name="custom", xp=np)
    assert resolve_backend(True, custom) is custom

    monkeypatch.setattr(backend_module, "accelerator_available", lambda: False)
    with pytest.warns(RuntimeWarning, match="no CuPy device"):
        assert resolve_backend(use_accelerator=True) is numpy_backend


def test_to_host_round_trip():
    a = numpy_backend.asarray([1, 2, 3])
    assert a.dtype == np.float64
    assert isinstance(numpy_backend.to_host(a), np.ndarray)
