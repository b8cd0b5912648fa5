"""Exception types raised by wtlars."""

from __future__ import annotations

from typing import Any


class WTLARSError(Exception):
    """Base class for all wtlars errors."""


class InputShapeMismatch(WTLARSError, ValueError):
    """Dictionary, tensor, weight or warm-start dimensions are inconsistent."""


class DimensionMismatch(InputShapeMismatch):
    """A tensor mode size does not match the row count of its factor matrix."""


class IndexOutOfRange(WTLARSError, IndexError):
    """A flat dictionary column index lies outside ``[0, total_columns)``."""


class WTLARSRuntimeError(WTLARSError, RuntimeError):
    """Terminal failure inside the iteration loop.

    The last consistent solution assembled before the failure is attached as
    ``result`` (``None`` when even that could not be recovered).
    """

    def __init__(self, message: str, *, result: Any = None) -> None:
        super().__init__(message)
        self.result = result
