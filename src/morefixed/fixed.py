from __future__ import annotations

"""
Scalar fixed-point numbers backed by a 32-bit signed word.

A concrete format is a subclass of :class:`FixedPoint` that binds two static
parameters – the number of fractional bits and the overflow policy:

  ```python
  from morefixed import FixedPoint
  from morefixed.policy import ignore_overflow

  class Q16(FixedPoint, frac_bits=16, on_overflow=ignore_overflow):
      __slots__ = ()
  ```

or, equivalently, ``Q16 = fixed_type(16, ignore_overflow)``.  Both parameters
live on the class, so a value is nothing but its representation word and the
policy costs no storage or lookup per instance.

Arithmetic is carried out on Python integers (plenty of headroom for the
64-bit intermediates of multiplication and division) and narrowed back to 32
bits afterwards.  Whenever the narrowing loses information the policy is
called once; the result is then the two's-complement truncation.  Building a
value from an out-of-range or non-finite number also calls the policy, but
saturates to the nearest extreme instead.

Every operation returns a *new* object – values are immutable.
"""

from decimal import Decimal, localcontext
from fractions import Fraction
import logging
import math
import numbers
import operator
import threading
from typing import Any, Callable, ClassVar, Self, TypeAlias, Union

from .config import DEFAULT_FRAC_BITS, REPR_BITS, REPR_MAX, REPR_MIN, check_frac_bits, mask_for, scale_for
from .policy import abort_on_overflow, assert_on_overflow, ignore_overflow

__all__ = [
    "FixedPoint",
    "fixed_type",
    "fixed16",
    "fixed16_fast",
    "fixed16_safe",
]

logger = logging.getLogger(__name__)

# -- Type aliases -----------------------------------------------------------------
Policy: TypeAlias = Callable[[], None]
NumberLike = Union[int, float, Fraction, Decimal, "FixedPoint"]

_WORD = 1 << REPR_BITS
_DECIMAL_DIGITS = 64


# -----------------------------------------------------------------------------
# Helper utilities
# -----------------------------------------------------------------------------

def _wrap(n: int) -> int:
    """Two's-complement truncation of *n* to the representation width."""
    return (n - REPR_MIN) % _WORD + REPR_MIN


def _div_trunc(n: int, d: int) -> int:
    """Integer division rounding toward zero (C semantics, not Python's floor)."""
    q = abs(n) // abs(d)
    return q if (n < 0) == (d < 0) else -q


def _is_real(x: Any) -> bool:
    """True for the native numbers that mix freely with fixed-point values."""
    return isinstance(x, (numbers.Real, Decimal))


def _exact(x: Any) -> Fraction | float:
    """Exact rational for *x* where one exists, a float otherwise (nan, inf)."""
    if isinstance(x, numbers.Rational):
        return Fraction(x.numerator, x.denominator)
    if isinstance(x, Decimal) and x.is_finite():
        return Fraction(x)
    return float(x)


# -----------------------------------------------------------------------------
# Main class
# -----------------------------------------------------------------------------


class FixedPoint:
    """Abstract fixed-point number.

    Subclasses bind ``BITS`` (fractional bits, 0..32) and ``on_overflow``
    through class keywords; everything else is derived:

    * ``SCALE = 2**BITS`` – real value of one representation unit is ``1/SCALE``
    * ``MASK = SCALE - 1`` – selects the fractional bits of a representation
    """

    __slots__ = ("_repr",)

    BITS: ClassVar[int]
    SCALE: ClassVar[int]
    MASK: ClassVar[int]
    on_overflow: ClassVar[Policy]

    # numpy scalars must defer to our reflected operators
    __array_ufunc__ = None

    def __init_subclass__(cls, *, frac_bits: int | None = None, on_overflow: Policy | None = None, **kwargs):
        super().__init_subclass__(**kwargs)
        if frac_bits is None:
            if not hasattr(cls, "BITS"):
                raise TypeError(f"{cls.__name__} must set frac_bits")
            frac_bits = cls.BITS
        if on_overflow is None:
            on_overflow = cls.on_overflow if hasattr(cls, "on_overflow") else assert_on_overflow
        if not callable(on_overflow):
            raise TypeError("on_overflow must be a zero-argument callable")
        cls.BITS = check_frac_bits(frac_bits)
        cls.SCALE = scale_for(cls.BITS)
        cls.MASK = mask_for(cls.BITS)
        cls.on_overflow = staticmethod(on_overflow)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def __init__(self, value: NumberLike = 0):
        cls = type(self)
        if not hasattr(cls, "BITS"):
            raise TypeError("FixedPoint is abstract – use fixed_type() or subclass with frac_bits=")
        object.__setattr__(self, "_repr", cls._repr_from_number(value))

    @classmethod
    def _make(cls, r: int) -> Self:
        obj = object.__new__(cls)
        object.__setattr__(obj, "_repr", r)
        return obj

    @classmethod
    def from_repr(cls, bits: int) -> Self:
        """Build a value straight from its representation word, unchecked."""
        return cls._make(_wrap(int(bits)))

    @classmethod
    def narrow(cls, wide: int) -> Self:
        """Narrow a wide intermediate representation to 32 bits.

        Calls the policy when *wide* does not fit and keeps the low 32 bits.
        """
        if not REPR_MIN <= wide <= REPR_MAX:
            cls.on_overflow()
            wide = _wrap(wide)
        return cls._make(wide)

    @classmethod
    def _saturate(cls, scaled: int | float | Fraction) -> int:
        if scaled > REPR_MAX:
            cls.on_overflow()
            return REPR_MAX
        if scaled < REPR_MIN:
            cls.on_overflow()
            return REPR_MIN
        return math.trunc(scaled)

    @classmethod
    def _repr_from_number(cls, value: Any) -> int:
        if isinstance(value, FixedPoint):
            if type(value) is cls:
                return value._repr
            return cls._saturate(value.as_fraction() * cls.SCALE)
        if isinstance(value, numbers.Integral):
            return cls._saturate(int(value) * cls.SCALE)
        if isinstance(value, numbers.Rational):
            return cls._saturate(Fraction(value.numerator, value.denominator) * cls.SCALE)
        if isinstance(value, (str, bytes)) or not hasattr(value, "__float__"):
            raise TypeError(f"Cannot build {cls.__name__} from {type(value).__name__}")
        if isinstance(value, Decimal) and value.is_nan():
            cls.on_overflow()
            return 0
        f = float(value)
        if math.isnan(f):
            cls.on_overflow()
            return 0
        # scaling by a power of two is exact, so the range check is too
        return cls._saturate(f * cls.SCALE)

    # immutability ------------------------------------------------------------
    def __setattr__(self, name: str, value: Any):
        raise AttributeError(f"{type(self).__name__} values are immutable")

    def __delattr__(self, name: str):
        raise AttributeError(f"{type(self).__name__} values are immutable")

    def __copy__(self) -> Self:
        return self

    def __deepcopy__(self, memo: dict) -> Self:
        return self

    def __reduce__(self):
        cls = type(self)
        if _is_factory_type(cls):
            return (_rebuild, (self.BITS, self.on_overflow, cls.__name__, self._repr))
        # declared subclasses are pickled by reference
        return (cls.from_repr, (self._repr,))

    # ------------------------------------------------------------------
    # Limits
    # ------------------------------------------------------------------

    @classmethod
    def min(cls) -> Self:
        """Most negative representable value."""
        return cls._make(REPR_MIN)

    @classmethod
    def max(cls) -> Self:
        return cls._make(REPR_MAX)

    @classmethod
    def epsilon(cls) -> Self:
        """Smallest positive step, ``1 / SCALE``."""
        return cls._make(1)

    # ------------------------------------------------------------------
    # Conversions
    # ------------------------------------------------------------------

    @property
    def repr(self) -> int:
        """The raw signed 32-bit representation."""
        return self._repr

    def to(self, target: type):
        """Explicit conversion to a numeric type.

        Integral targets truncate toward zero; every other target receives
        ``target(repr) / target(SCALE)``, computed exactly for ``Decimal``.
        """
        if issubclass(target, FixedPoint):
            return target(self)
        if issubclass(target, numbers.Integral):
            return target(_div_trunc(self._repr, self.SCALE))
        if issubclass(target, Decimal):
            # r / 2**F has at most 10 + F significant digits
            with localcontext(prec=_DECIMAL_DIGITS):
                return target(self._repr) / target(self.SCALE)
        return target(self._repr) / target(self.SCALE)

    def as_fraction(self) -> Fraction:
        return Fraction(self._repr, self.SCALE)

    def as_integer_ratio(self) -> tuple[int, int]:
        return self.as_fraction().as_integer_ratio()

    def __int__(self) -> int:
        return _div_trunc(self._repr, self.SCALE)

    def __float__(self) -> float:
        return self._repr / self.SCALE

    def __bool__(self) -> bool:
        return self._repr != 0

    def __trunc__(self) -> int:
        return int(self)

    def __floor__(self) -> int:
        return self._repr >> self.BITS

    def __ceil__(self) -> int:
        return -(-self._repr >> self.BITS)

    def __round__(self, ndigits: int | None = None):
        if ndigits is None:
            return round(self.as_fraction())
        return type(self)(round(self.as_fraction(), ndigits))

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def _binary_op(self, other: Any, op, *, reflected: bool = False):
        cls = type(self)
        if type(other) is not cls:
            if isinstance(other, FixedPoint) or not _is_real(other):
                return NotImplemented
            other = cls(other)
        return op(other, self) if reflected else op(self, other)

    @staticmethod
    def _add(a: FixedPoint, b: FixedPoint) -> FixedPoint:
        return a.narrow(a._repr + b._repr)

    @staticmethod
    def _sub(a: FixedPoint, b: FixedPoint) -> FixedPoint:
        return a.narrow(a._repr - b._repr)

    @staticmethod
    def _mul(a: FixedPoint, b: FixedPoint) -> FixedPoint:
        return a.narrow(_div_trunc(a._repr * b._repr, a.SCALE))

    @staticmethod
    def _div(a: FixedPoint, b: FixedPoint) -> FixedPoint:
        if b._repr == 0:
            raise ZeroDivisionError(f"{type(a).__name__} division by zero")
        return a.narrow(_div_trunc(a._repr * a.SCALE, b._repr))

    def __add__(self, other: NumberLike) -> Self:
        return self._binary_op(other, self._add)

    def __radd__(self, other: NumberLike) -> Self:
        return self._binary_op(other, self._add, reflected=True)

    def __sub__(self, other: NumberLike) -> Self:
        return self._binary_op(other, self._sub)

    def __rsub__(self, other: NumberLike) -> Self:
        return self._binary_op(other, self._sub, reflected=True)

    def __mul__(self, other: NumberLike) -> Self:
        return self._binary_op(other, self._mul)

    def __rmul__(self, other: NumberLike) -> Self:
        return self._binary_op(other, self._mul, reflected=True)

    def __truediv__(self, other: NumberLike) -> Self:
        return self._binary_op(other, self._div)

    def __rtruediv__(self, other: NumberLike) -> Self:
        return self._binary_op(other, self._div, reflected=True)

    def __neg__(self) -> Self:
        # only -min() fails to fit
        return self.narrow(-self._repr)

    def __pos__(self) -> Self:
        return self

    def __abs__(self) -> Self:
        return -self if self._repr < 0 else self

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------
    # Same-format operands compare representations.  Anything else compares
    # as an exact rational, so comparing never builds a fixed-point value and
    # never reaches the overflow policy.

    def _compare(self, other: Any, op):
        if type(other) is type(self):
            return op(self._repr, other._repr)
        if isinstance(other, FixedPoint):
            return op(self.as_fraction(), other.as_fraction())
        if _is_real(other):
            return op(self.as_fraction(), _exact(other))
        return NotImplemented

    def __eq__(self, other: object):  # type: ignore[override]
        return self._compare(other, operator.eq)

    def __lt__(self, other: NumberLike):
        return self._compare(other, operator.lt)

    def __le__(self, other: NumberLike):
        return self._compare(other, operator.le)

    def __gt__(self, other: NumberLike):
        return self._compare(other, operator.gt)

    def __ge__(self, other: NumberLike):
        return self._compare(other, operator.ge)

    def __hash__(self) -> int:
        # equal to the hash of the int / float / Fraction it compares equal to
        return hash(self.as_fraction())

    # ------------------------------------------------------------------
    # String representation
    # ------------------------------------------------------------------

    def __repr__(self) -> str:
        return f"{type(self).__name__}({float(self)!r})"

    def __str__(self) -> str:
        return str(float(self))

    def __format__(self, format_spec: str) -> str:
        return format(float(self), format_spec)


# -----------------------------------------------------------------------------
# Type factory
# -----------------------------------------------------------------------------

# one class per (frac_bits, on_overflow); the first caller chooses the name
_TYPES: dict[tuple[int, Policy], type[FixedPoint]] = {}
_TYPES_LOCK = threading.Lock()


def _default_name(frac_bits: int, on_overflow: Policy) -> str:
    if on_overflow is assert_on_overflow:
        return f"fixed{frac_bits}"
    policy = getattr(on_overflow, "__name__", type(on_overflow).__name__)
    return f"fixed{frac_bits}_{policy}"


def fixed_type(
    frac_bits: int = DEFAULT_FRAC_BITS,
    on_overflow: Policy = assert_on_overflow,
    name: str | None = None,
) -> type[FixedPoint]:
    """Return the fixed-point format with *frac_bits* fractional bits.

    Parameters
    ----------
    frac_bits:
        Number of fractional bits, ``0 <= frac_bits <= 32``.
    on_overflow:
        Zero-argument callable invoked whenever a result does not fit.
        See :mod:`morefixed.policy` for the canonical choices.
    name:
        Class name, used only when the format is created by this call.
        Defaults to ``fixed<frac_bits>`` for the default policy and
        ``fixed<frac_bits>_<policy>`` otherwise.

    Returns
    -------
    type[FixedPoint]
        The same class object for every call with the same *frac_bits* and
        *on_overflow*, so ``fixed_type(16, ignore_overflow) is fixed16_fast``.
    """
    frac_bits = check_frac_bits(frac_bits)
    if not callable(on_overflow):
        raise TypeError("on_overflow must be a zero-argument callable")
    key = (frac_bits, on_overflow)
    with _TYPES_LOCK:
        cls = _TYPES.get(key)
        if cls is None:
            name = name or _default_name(frac_bits, on_overflow)
            cls = type(
                name,
                (FixedPoint,),
                {"__slots__": (), "__module__": __name__, "__qualname__": name},
                frac_bits=frac_bits,
                on_overflow=on_overflow,
            )
            _TYPES[key] = cls
            logger.debug(
                "created fixed-point type %s (%d fractional bits, policy %r)", name, frac_bits, on_overflow
            )
    return cls


def _is_factory_type(cls: type) -> bool:
    return _TYPES.get((cls.BITS, cls.on_overflow)) is cls


def _rebuild(frac_bits: int, on_overflow: Policy, name: str, r: int) -> FixedPoint:
    """Unpickling helper – values are restored into the cached factory type."""
    return fixed_type(frac_bits, on_overflow, name).from_repr(r)


# Standard formats -----------------------------------------------------------------
# Default: raise on overflow, unless Python runs with -O.
fixed16 = fixed_type(DEFAULT_FRAC_BITS, assert_on_overflow, "fixed16")
# Fastest option: always ignore overflow.
fixed16_fast = fixed_type(DEFAULT_FRAC_BITS, ignore_overflow, "fixed16_fast")
# Safest option: always abort on overflow.
fixed16_safe = fixed_type(DEFAULT_FRAC_BITS, abort_on_overflow, "fixed16_safe")
