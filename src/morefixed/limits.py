"""Numeric limits and classification for fixed-point formats.

Generic numeric code often branches on ``isfinite``/``isnan`` or asks for the
largest representable value.  The helpers below answer those questions for
fixed-point values *and* plain floats, so a fixed-point format can be dropped
into such code in place of ``float``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import math
import sys

from .config import REPR_BITS
from .fixed import FixedPoint

__all__ = [
    "Limits",
    "numeric_limits",
    "isfinite",
    "isinf",
    "isnan",
    "isnormal",
]


@dataclass(frozen=True, slots=True)
class Limits:
    """Static properties of one fixed-point format.

    ``min``/``max``/``epsilon`` are derived from the representation on every
    call rather than stored.  Note that, unlike ``std::numeric_limits<float>``,
    ``min()`` is the most *negative* value (same as ``lowest()``).
    """

    fmt: type[FixedPoint]
    frac_bits: int = field(init=False)
    is_integer: bool = field(init=False)
    is_specialized: bool = True
    is_signed: bool = True
    is_exact: bool = True
    has_infinity: bool = False
    has_quiet_nan: bool = False
    radix: int = 2
    digits: int = REPR_BITS - 1

    def __post_init__(self):
        object.__setattr__(self, "frac_bits", self.fmt.BITS)
        object.__setattr__(self, "is_integer", self.fmt.BITS == 0)

    def min(self) -> FixedPoint:
        return self.fmt.min()

    def max(self) -> FixedPoint:
        return self.fmt.max()

    def lowest(self) -> FixedPoint:
        return self.fmt.min()

    def epsilon(self) -> FixedPoint:
        return self.fmt.epsilon()


def numeric_limits(fmt: type[FixedPoint]) -> Limits:
    if not (isinstance(fmt, type) and issubclass(fmt, FixedPoint) and hasattr(fmt, "BITS")):
        raise TypeError(f"numeric_limits expects a concrete fixed-point type, got {fmt!r}")
    return Limits(fmt)


# -----------------------------------------------------------------------------
# Classification – fixed-point values are never infinite or NaN
# -----------------------------------------------------------------------------


def isfinite(x) -> bool:
    if isinstance(x, FixedPoint):
        return True
    return math.isfinite(x)


def isinf(x) -> bool:
    if isinstance(x, FixedPoint):
        return False
    return math.isinf(x)


def isnan(x) -> bool:
    if isinstance(x, FixedPoint):
        return False
    return math.isnan(x)


def isnormal(x) -> bool:
    """Non-zero for fixed-point values; non-zero, finite and not subnormal for floats."""
    if isinstance(x, FixedPoint):
        return x.repr != 0
    return math.isfinite(x) and abs(x) >= sys.float_info.min
