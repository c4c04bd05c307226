"""Batched fixed-point values on ``torch.int64`` tensors.

:class:`FixedTensor` applies the scalar semantics of
:class:`morefixed.FixedPoint` element-wise to a 1-D tensor of
representations.  The scalar format ``fmt`` supplies the fractional bits and
the overflow policy:

- repr: (n,) int64 tensor, every element inside the 32-bit range
- fmt: the scalar fixed-point type
- overflow: (n,) bool tensor, *sticky* – an element stays flagged once any
  operation that produced it overflowed

Because a batch may overflow in many elements at once, the policy is called
once per *operation* that produced at least one new overflow; the mask tells
which elements did.  The main consumer is :mod:`morefixed.validate`, which
sweeps millions of representations per test.
"""

from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
import math
import numbers
from typing import Any, Callable, Optional, Union

import torch
from torch import Tensor

from .config import REPR_BITS, REPR_MAX, REPR_MIN
from .fixed import FixedPoint, _exact, _is_real

__all__ = [
    "FixedTensor",
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

_WORD = 1 << REPR_BITS

Operand = Union["FixedTensor", FixedPoint, int, float]


def _wrap(t: Tensor) -> Tensor:
    """Two's-complement truncation of an int64 tensor to 32 bits."""
    return torch.remainder(t - REPR_MIN, _WORD) + REPR_MIN


@dataclass(eq=False)
class FixedTensor:
    """A batch of fixed-point values of one format."""

    repr: Tensor  # (n,) int64
    fmt: type[FixedPoint]
    overflow: Optional[Tensor] = None  # (n,) bool

    def __post_init__(self):
        """Validate tensor shapes and types."""
        if self.repr.dtype != torch.int64:
            raise TypeError("Representations must be int64")
        if self.repr.ndim != 1:
            raise ValueError("Representations must be 1-dimensional")
        if not (isinstance(self.fmt, type) and issubclass(self.fmt, FixedPoint) and hasattr(self.fmt, "BITS")):
            raise TypeError(f"fmt must be a concrete fixed-point type, got {self.fmt!r}")
        if self.overflow is None:
            self.overflow = torch.zeros_like(self.repr, dtype=torch.bool)
        elif self.overflow.shape != self.repr.shape:
            raise ValueError("Overflow mask must match the representation shape")

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_repr(cls, t: Tensor, fmt: type[FixedPoint]) -> FixedTensor:
        """Build from raw representations, wrapping anything outside 32 bits."""
        return cls(_wrap(t.reshape(-1).to(torch.int64)), fmt)

    @classmethod
    def from_real(cls, x: Tensor, fmt: type[FixedPoint]) -> FixedTensor:
        """Scale, truncate toward zero and saturate – the scalar constructor, batched.

        NaN becomes 0; ±inf and out-of-range values saturate.  All of them are
        flagged in the overflow mask.
        """
        x = x.reshape(-1).to(torch.float64)
        scaled = x * fmt.SCALE  # exact – power-of-two scale
        hi = scaled > REPR_MAX
        lo = scaled < REPR_MIN
        overflow = hi | lo | torch.isnan(x)
        safe = torch.where(overflow, torch.zeros_like(scaled), scaled)
        r = torch.trunc(safe).to(torch.int64)
        r = torch.where(hi, torch.full_like(r, REPR_MAX), r)
        r = torch.where(lo, torch.full_like(r, REPR_MIN), r)
        if bool(overflow.any()):
            fmt.on_overflow()
        return cls(r, fmt, overflow)

    @classmethod
    def full(cls, n: int, value: FixedPoint) -> FixedTensor:
        return cls(torch.full((n,), value.repr, dtype=torch.int64), type(value))

    def _narrow(self, wide: Tensor, overflow: Tensor) -> FixedTensor:
        bad = (wide < REPR_MIN) | (wide > REPR_MAX)
        if bool(bad.any()):
            self.fmt.on_overflow()
        return FixedTensor(_wrap(wide), self.fmt, overflow | bad)

    # ------------------------------------------------------------------
    # Conversions
    # ------------------------------------------------------------------

    def to_float(self) -> Tensor:
        """Exact float64 values (``repr / SCALE``)."""
        return self.repr.to(torch.float64) / self.fmt.SCALE

    def to_int(self) -> Tensor:
        """Integer parts, truncated toward zero."""
        return torch.div(self.repr, self.fmt.SCALE, rounding_mode="trunc")

    def item(self, i: int) -> FixedPoint:
        return self.fmt.from_repr(int(self.repr[i]))

    def __len__(self) -> int:
        return self.repr.numel()

    def __getitem__(self, idx) -> FixedTensor:
        if isinstance(idx, int):
            idx = slice(idx, idx + 1 if idx != -1 else None)
        return FixedTensor(self.repr[idx], self.fmt, self.overflow[idx])

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def _operand(self, other: Any) -> Optional[FixedTensor]:
        if isinstance(other, FixedTensor):
            return other if other.fmt is self.fmt else None
        if isinstance(other, FixedPoint):
            return FixedTensor.full(1, other) if type(other) is self.fmt else None
        if isinstance(other, numbers.Real):
            return FixedTensor.full(1, self.fmt(other))
        return None

    def _binary_op(self, other: Any, op: Callable[[Tensor, Tensor], Tensor], *, reflected: bool = False):
        rhs = self._operand(other)
        if rhs is None:
            return NotImplemented
        a, b = (rhs, self) if reflected else (self, rhs)
        return self._narrow(op(a.repr, b.repr), a.overflow | b.overflow)

    def _mul(self, a: Tensor, b: Tensor) -> Tensor:
        return torch.div(a * b, self.fmt.SCALE, rounding_mode="trunc")

    def _div(self, a: Tensor, b: Tensor) -> Tensor:
        if bool((b == 0).any()):
            raise ZeroDivisionError(f"{self.fmt.__name__} division by zero")
        # int64 division of -2**63 by -1 traps; negating wraps to the same low 32 bits
        neg = b == -1
        q = torch.div(a * self.fmt.SCALE, torch.where(neg, torch.ones_like(b), b), rounding_mode="trunc")
        return torch.where(neg, -q, q)

    def __add__(self, other: Operand) -> FixedTensor:
        return self._binary_op(other, torch.add)

    def __radd__(self, other: Operand) -> FixedTensor:
        return self._binary_op(other, torch.add, reflected=True)

    def __sub__(self, other: Operand) -> FixedTensor:
        return self._binary_op(other, torch.sub)

    def __rsub__(self, other: Operand) -> FixedTensor:
        return self._binary_op(other, torch.sub, reflected=True)

    def __mul__(self, other: Operand) -> FixedTensor:
        return self._binary_op(other, self._mul)

    def __rmul__(self, other: Operand) -> FixedTensor:
        return self._binary_op(other, self._mul, reflected=True)

    def __truediv__(self, other: Operand) -> FixedTensor:
        return self._binary_op(other, self._div)

    def __rtruediv__(self, other: Operand) -> FixedTensor:
        return self._binary_op(other, self._div, reflected=True)

    def __neg__(self) -> FixedTensor:
        return self._narrow(-self.repr, self.overflow)

    # ------------------------------------------------------------------
    # Comparison – element-wise bool tensors
    # ------------------------------------------------------------------

    def _compare(self, other: Any, op: Callable[[Tensor, Tensor], Tensor]):
        if isinstance(other, (FixedTensor, FixedPoint)):
            rhs = self._operand(other)
            return NotImplemented if rhs is None else op(self.repr, rhs.repr)
        if not _is_real(other):
            return NotImplemented
        exact = _exact(other)
        if isinstance(exact, float):
            # float64 holds every value of a 32-bit format exactly
            return op(self.to_float(), torch.as_tensor(exact, dtype=torch.float64))
        return self._compare_rational(exact * self.fmt.SCALE, op)

    def _compare_rational(self, q: Fraction, op: Callable[[Tensor, Tensor], Tensor]) -> Tensor:
        """Compare the integer reprs with the rational *q* without rounding it."""
        if op is torch.eq or op is torch.ne:
            if q.denominator != 1:
                hit = torch.zeros_like(self.repr, dtype=torch.bool)
                return hit if op is torch.eq else ~hit
            bound = q.numerator
        elif op is torch.lt or op is torch.ge:
            bound = math.ceil(q)
        else:
            bound = math.floor(q)
        # clamping just outside the range keeps the answer and fits int64
        return op(self.repr, min(max(bound, REPR_MIN - 1), REPR_MAX + 1))

    def __eq__(self, other: object):  # type: ignore[override]
        return self._compare(other, torch.eq)

    def __ne__(self, other: object):  # type: ignore[override]
        return self._compare(other, torch.ne)

    def __lt__(self, other: Operand):
        return self._compare(other, torch.lt)

    def __le__(self, other: Operand):
        return self._compare(other, torch.le)

    def __gt__(self, other: Operand):
        return self._compare(other, torch.gt)

    def __ge__(self, other: Operand):
        return self._compare(other, torch.ge)

    def __str__(self) -> str:  # pragma: no cover – cosmetics only
        return f"FixedTensor[{self.fmt.__name__}]({self.to_float().tolist()})"


# -----------------------------------------------------------------------------
# Math kernels – same results as :mod:`morefixed.fxmath`, element-wise
# -----------------------------------------------------------------------------


def fabs(x: FixedTensor) -> FixedTensor:
    return x._narrow(torch.where(x.repr < 0, -x.repr, x.repr), x.overflow)


def floor(x: FixedTensor) -> FixedTensor:
    return x._narrow(x.repr & ~x.fmt.MASK, x.overflow)


def ceil(x: FixedTensor) -> FixedTensor:
    return x._narrow((x.repr + x.fmt.MASK) & ~x.fmt.MASK, x.overflow)


def trunc(x: FixedTensor) -> FixedTensor:
    mask = x.fmt.MASK
    wide = torch.where(x.repr < 0, (x.repr + mask) & ~mask, x.repr & ~mask)
    return x._narrow(wide, x.overflow)


def _forward(fn: Callable[..., Tensor], x: FixedTensor, *rest: FixedTensor) -> FixedTensor:
    result = FixedTensor.from_real(fn(x.to_float(), *(r.to_float() for r in rest)), x.fmt)
    overflow = result.overflow | x.overflow
    for r in rest:
        overflow = overflow | r.overflow
    return FixedTensor(result.repr, x.fmt, overflow)


def sqrt(x: FixedTensor) -> FixedTensor:
    return _forward(torch.sqrt, x)


def sin(x: FixedTensor) -> FixedTensor:
    return _forward(torch.sin, x)


def cos(x: FixedTensor) -> FixedTensor:
    return _forward(torch.cos, x)


def tan(x: FixedTensor) -> FixedTensor:
    return _forward(torch.tan, x)


def exp(x: FixedTensor) -> FixedTensor:
    return _forward(torch.exp, x)


def atan2(y: FixedTensor, x: FixedTensor) -> FixedTensor:
    if y.fmt is not x.fmt:
        raise TypeError(f"atan2 of mixed fixed-point formats: {y.fmt.__name__}, {x.fmt.__name__}")
    return _forward(torch.atan2, y, x)
