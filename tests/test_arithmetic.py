"""Arithmetic and comparison semantics of scalar fixed-point values."""

from __future__ import annotations

from fractions import Fraction
import math

import numpy as np
import pytest
from hypothesis import given, strategies as st

from morefixed import (
    FixedPointOverflowError,
    OverflowCounter,
    fixed16,
    fixed_type,
    ignore_overflow,
)
from morefixed.config import REPR_MAX, REPR_MIN

overflows = OverflowCounter()
count16 = fixed_type(16, overflows, name="count16")

reprs = st.integers(min_value=REPR_MIN, max_value=REPR_MAX)
frac_bits = st.integers(min_value=0, max_value=32)


# -----------------------------------------------------------------------------
# Concrete scenarios
# -----------------------------------------------------------------------------


def test_half_and_quarter():
    """Fixed values mix with float constants."""
    overflows.reset()
    half = count16(0.5)
    quarter = half * half

    assert half == 0.5
    assert quarter == count16(0.25)
    assert half != quarter
    assert quarter == half * count16(0.5)
    assert quarter == half * 0.5
    assert quarter == 0.5 * 0.5
    assert overflows.count == 0


def test_overflow_at_the_extremes():
    overflows.reset()
    hi = count16.max()
    lo = count16.min()

    a = hi - 1
    b = lo + 1
    assert overflows.count == 0

    a = hi + 1
    assert overflows.count == 1
    b = lo - 1
    assert overflows.count == 2

    a = lo * 1.01
    assert overflows.count == 3
    b = hi / 0.99
    assert overflows.count == 4
    assert a is not None and b is not None


def test_overflowing_sum_wraps():
    q = fixed_type(16, ignore_overflow)
    assert (q.max() + q.epsilon()).repr == REPR_MIN
    assert (q.min() - q.epsilon()).repr == REPR_MAX


def test_negation_boundary():
    overflows.reset()
    assert (-count16.max()).repr == -REPR_MAX
    assert (-count16.from_repr(REPR_MIN + 1)).repr == REPR_MAX
    assert overflows.count == 0
    assert (-count16.min()).repr == REPR_MIN
    assert overflows.count == 1


def test_abs_and_pos():
    overflows.reset()
    assert abs(count16(-2.5)) == 2.5
    assert +count16(-2.5) == -2.5
    abs(count16.min())
    assert overflows.count == 1


def test_multiplication_truncates_toward_zero():
    eps = count16.epsilon()
    assert ((-eps) * count16(0.5)).repr == 0
    assert (count16.from_repr(-3) * count16(0.5)).repr == -1
    assert (count16.from_repr(3) * count16(0.5)).repr == 1


def test_division_keeps_fraction_bits():
    overflows.reset()
    assert (count16(1) / count16(3)).repr == 21845
    assert (count16(-1) / count16(3)).repr == -21845
    assert count16(3) / count16(0.5) == 6
    assert overflows.count == 0


def test_division_by_zero_raises():
    overflows.reset()
    with pytest.raises(ZeroDivisionError):
        count16(1) / count16(0)
    with pytest.raises(ZeroDivisionError):
        count16(1) / 0
    with pytest.raises(ZeroDivisionError):
        1 / count16(0)
    assert overflows.count == 0


# -----------------------------------------------------------------------------
# Mixed operands
# -----------------------------------------------------------------------------


def test_mixed_operands_both_orders():
    x = count16(0.5)
    assert 1 + x == x + 1 == count16(1.5)
    assert 1 - x == count16(0.5)
    assert x - 1 == count16(-0.5)
    assert 2 / x == 4
    assert x / 2 == 0.25
    assert 3 * x == x * 3 == 1.5
    assert Fraction(1, 2) + x == 1


def test_numpy_scalars_defer_to_fixed():
    x = count16(2)
    for result in (np.float64(0.5) * x, x * np.float32(0.5), np.int64(3) - x):
        assert type(result) is count16
    assert np.float64(0.5) * x == 1


def test_compound_assignment_rebinds():
    x = count16(1)
    y = x
    x += 0.5
    assert x == 1.5
    assert y == 1
    x -= 1
    x *= 4
    x /= count16(8)
    assert x == 0.25


def test_mixed_formats_rejected():
    with pytest.raises(TypeError):
        count16(1) + fixed_type(8, ignore_overflow)(1)
    with pytest.raises(TypeError):
        count16(1) * "2"
    with pytest.raises(TypeError):
        count16(1) + 1j


@pytest.mark.skipif(not __debug__, reason="assert policy is disabled under -O")
def test_default_format_raises_on_overflow():
    with pytest.raises(FixedPointOverflowError):
        fixed16.max() + 1
    with pytest.raises(OverflowError):
        fixed16(1e9)


# -----------------------------------------------------------------------------
# Comparisons
# -----------------------------------------------------------------------------


def test_comparisons_with_native_numbers_are_exact():
    overflows.reset()
    assert count16(0.5) == 0.5
    assert count16(0.1) != 0.1  # truncated on construction
    assert count16(0.1) < 0.1
    assert count16.max() < 1e20
    assert count16.min() > -math.inf
    assert not count16(1) < math.nan
    assert not count16(1) == math.nan
    assert count16(1) != math.nan
    assert count16(2) >= 2 and count16(2) <= Fraction(2)
    assert overflows.count == 0


def test_comparison_across_formats():
    q8 = fixed_type(8, ignore_overflow)
    assert count16(1.5) == q8(1.5)
    assert count16.epsilon() < q8.epsilon()


def test_hash_agrees_with_equality():
    assert hash(count16(0.5)) == hash(0.5)
    assert hash(count16(3)) == hash(3)
    assert {count16(1): "one"}[1] == "one"
    assert len({count16(2), fixed16(2), 2.0}) == 1


# -----------------------------------------------------------------------------
# Properties
# -----------------------------------------------------------------------------


@given(frac_bits, reprs)
def test_float_round_trip_is_exact(bits: int, r: int):
    counter = OverflowCounter()
    q = fixed_type(bits, counter)
    value = q.from_repr(r).to(float)
    assert value * q.SCALE == r
    assert q(value).repr == r
    assert counter.count == 0


@given(reprs, reprs)
def test_order_preserved(a: int, b: int):
    overflows.reset()
    x, y = count16.from_repr(a), count16.from_repr(b)
    assert (a < b) == (x < y)
    assert (a <= b) == (x <= y)
    assert (a == b) == (x == y)
    assert overflows.count == 0


@given(reprs)
def test_additive_identity_and_inverse(a: int):
    overflows.reset()
    x = count16.from_repr(a)
    assert x + count16.from_repr(0) == x
    assert x - x == count16.from_repr(0)
    assert overflows.count == 0


@given(reprs, reprs)
def test_addition_signals_exactly_when_out_of_range(a: int, b: int):
    overflows.reset()
    total = count16.from_repr(a) + count16.from_repr(b)
    fits = REPR_MIN <= a + b <= REPR_MAX
    assert overflows.count == (0 if fits else 1)
    if fits:
        assert total.repr == a + b


@given(frac_bits, reprs, reprs)
def test_multiplication_matches_exact_product(bits: int, a: int, b: int):
    counter = OverflowCounter()
    q = fixed_type(bits, counter)
    exact = Fraction(a * b, q.SCALE)
    product = q.from_repr(a) * q.from_repr(b)
    expected = math.trunc(exact)
    if REPR_MIN <= expected <= REPR_MAX:
        assert product.repr == expected
        assert counter.count == 0
    else:
        assert counter.count == 1


@given(frac_bits, reprs, reprs.filter(lambda r: r != 0))
def test_division_matches_exact_quotient(bits: int, a: int, b: int):
    counter = OverflowCounter()
    q = fixed_type(bits, counter)
    expected = math.trunc(Fraction(a * q.SCALE, b))
    quotient = q.from_repr(a) / q.from_repr(b)
    if REPR_MIN <= expected <= REPR_MAX:
        assert quotient.repr == expected
        assert counter.count == 0
    else:
        assert counter.count == 1
