from .api import WTLARS, WTLARSResults
from .backend import ArrayBackend, accelerator_available, numpy_backend, resolve_backend
from .engine import IterationStat, RunParameters, RunSnapshot, Status, WTLARSResult, wt_lars
from .errors import (
    DimensionMismatch,
    IndexOutOfRange,
    InputShapeMismatch,
    WTLARSError,
    WTLARSRuntimeError,
)
from .indexing import ColumnIndexer
from .metrics import relative_residual_norm, sparsity, weighted_norm
from .ops import SeparableOperator, multilinear_product
from .sim import random_factors, simulate_separable

__version__ = "0.1.0"

__all__ = [
    "ArrayBackend",
    "ColumnIndexer",
    "DimensionMismatch",
    "IndexOutOfRange",
    "InputShapeMismatch",
    "IterationStat",
    "RunParameters",
    "RunSnapshot",
    "SeparableOperator",
    "Status",
    "WTLARS",
    "WTLARSError",
    "WTLARSResult",
    "WTLARSResults",
    "WTLARSRuntimeError",
    "accelerator_available",
    "multilinear_product",
    "numpy_backend",
    "random_factors",
    "relative_residual_norm",
    "resolve_backend",
    "simulate_separable",
    "sparsity",
    "weighted_norm",
    "wt_lars",
]
