"""Math functions for fixed-point values.

Two strategies are used:

* ``floor``, ``ceil``, ``trunc`` and ``fabs`` work on the representation
  directly (clearing or rounding the fractional bits), which is exact.
* ``sqrt``, ``sin``, ``cos``, ``tan``, ``exp`` and ``atan2`` go through a
  float64 round trip: the argument is converted to ``float``, the numpy ufunc
  computes the result and the result is converted back.  Converting back goes
  through the normal constructor, so a result that does not fit (or a NaN from
  a domain error such as ``sqrt(-1)``) reaches the overflow policy.

Fixed-point arithmetic is deterministic; the transcendental functions are only
as accurate as float64 followed by truncation to the format.

Every function accepts plain floats too and then simply returns the float64
result, so generic code can call ``fxmath.sin(x)`` whatever ``x`` is.
"""

from __future__ import annotations

from typing import Callable, TypeVar

import numpy as np

from .fixed import FixedPoint

__all__ = [
    "fabs",
    "floor",
    "ceil",
    "trunc",
    "sqrt",
    "sin",
    "cos",
    "tan",
    "exp",
    "atan2",
]

T = TypeVar("T", FixedPoint, float)


def _float64(ufunc: Callable, *args: float) -> float:
    # IEEE semantics: nan / inf instead of ValueError / OverflowError
    with np.errstate(all="ignore"):
        return float(ufunc(*(np.float64(a) for a in args)))


def _forward(ufunc: Callable, x: T) -> T:
    if isinstance(x, FixedPoint):
        return type(x)(_float64(ufunc, float(x)))
    return _float64(ufunc, x)


# -----------------------------------------------------------------------------
# Exact functions – operate on the representation
# -----------------------------------------------------------------------------


def fabs(x: T) -> T:
    """Absolute value; ``fabs(min())`` overflows."""
    if isinstance(x, FixedPoint):
        return -x if x.repr < 0 else x
    return _float64(np.fabs, x)


def floor(x: T) -> T:
    if isinstance(x, FixedPoint):
        return x.narrow(x.repr & ~x.MASK)
    return _float64(np.floor, x)


def ceil(x: T) -> T:
    if isinstance(x, FixedPoint):
        return x.narrow((x.repr + x.MASK) & ~x.MASK)
    return _float64(np.ceil, x)


def trunc(x: T) -> T:
    if isinstance(x, FixedPoint):
        return ceil(x) if x.repr < 0 else floor(x)
    return _float64(np.trunc, x)


# -----------------------------------------------------------------------------
# Forwarded functions – float64 round trip
# -----------------------------------------------------------------------------


def sqrt(x: T) -> T:
    return _forward(np.sqrt, x)


def sin(x: T) -> T:
    return _forward(np.sin, x)


def cos(x: T) -> T:
    return _forward(np.cos, x)


def tan(x: T) -> T:
    return _forward(np.tan, x)


def exp(x: T) -> T:
    return _forward(np.exp, x)


def atan2(y, x):
    """Two-argument arctangent.

    If either argument is fixed-point the result has that format and the
    other argument is converted to it first; mixing two different formats is
    a ``TypeError``.
    """
    fixed = [a for a in (y, x) if isinstance(a, FixedPoint)]
    if not fixed:
        return _float64(np.arctan2, y, x)
    fmt = type(fixed[0])
    if any(type(a) is not fmt for a in fixed):
        raise TypeError(f"atan2 of mixed fixed-point formats: {type(y).__name__}, {type(x).__name__}")
    y, x = (a if isinstance(a, FixedPoint) else fmt(a) for a in (y, x))
    return fmt(_float64(np.arctan2, float(y), float(x)))
