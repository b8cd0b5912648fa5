"""Array backends for the baseline (NumPy) and accelerated (CuPy) paths.

The solver only ever talks to an :class:`ArrayBackend`; which one is used is
decided once per run and can be switched to the baseline path at an iteration
boundary when the accelerated path fails.
"""

from __future__ import annotations

import importlib
import importlib.util
import logging
import warnings
from dataclasses import dataclass
from typing import Any

import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArrayBackend:
    """Array namespace plus the transfers needed to move state on/off device."""

    name: str
    xp: Any
    accelerated: bool = False

    def asarray(self, a: Any, dtype: Any = float) -> Any:
        return self.xp.asarray(a, dtype=dtype)

    def to_host(self, a: Any) -> np.ndarray:
        # CuPy arrays expose ``.get()``; NumPy arrays do not.
        if hasattr(a, "get"):
            return np.asarray(a.get())
        return np.asarray(a)


numpy_backend = ArrayBackend(name="numpy", xp=np, accelerated=False)


def accelerator_available() -> bool:
    """Return True when CuPy is importable and sees at least one device."""
    if importlib.util.find_spec("cupy") is None:
        return False
    try:
        cupy = importlib.import_module("cupy")
        return int(cupy.cuda.runtime.getDeviceCount()) > 0
    except Exception as exc:  # CUDA driver/runtime errors surface as many types
        logger.debug("CuPy present but no usable device: %s", exc)
        return False


def cupy_backend() -> ArrayBackend:
    cupy = importlib.import_module("cupy")
    return ArrayBackend(name="cupy", xp=cupy, accelerated=True)


def resolve_backend(
    use_accelerator: bool = False, backend: ArrayBackend | None = None
) -> ArrayBackend:
    """Pick the backend for a run.

    An explicit ``backend`` always wins. Otherwise the accelerated path is used
    only when requested and available; a request that cannot be honoured falls
    back to NumPy with a warning.
    """
    if backend is not None:
        return backend
    if not use_accelerator:
        return numpy_backend
    if accelerator_available():
        logger.info("Accelerated computing enabled (cupy)")
        return cupy_backend()
    warnings.warn(
        "use_accelerator=True but no CuPy device was found; running on NumPy. "
        "Install the 'gpu' extra (cupy) to enable the accelerated path.",
        RuntimeWarning,
        stacklevel=2,
    )
    return numpy_backend
