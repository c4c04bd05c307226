# SPDX-License-Identifier: MIT
"""morefixed – 32-bit fixed-point numbers with pluggable overflow handling.

A format is chosen by its number of fractional bits and an overflow policy
(`fixed_type(16, ignore_overflow)`), and its values behave like a numeric
primitive: they mix with Python numbers in ordinary expressions, compare,
convert to ``int``/``float`` and go through the math functions in
:mod:`morefixed.fxmath`.  :class:`FixedTensor` applies the same semantics to
batches held in PyTorch tensors.
"""

from __future__ import annotations

from .fixed import (
    FixedPoint,  # public base class
    fixed_type,
    fixed16,
    fixed16_fast,
    fixed16_safe,
)
from .policy import (
    FixedPointError,
    FixedPointOverflowError,
    OverflowCounter,
    OverflowFlag,
    abort_on_overflow,
    assert_on_overflow,
    ignore_overflow,
    log_overflow,
)
from .limits import Limits, numeric_limits, isfinite, isinf, isnan, isnormal

# ---------------------------------------------------------------------------
# Test-suite helpers – register a Hypothesis profile without per-example
# deadlines so property-based tests do not fail spuriously on slower CI
# machines.  Library users are not forced to install Hypothesis.
# ---------------------------------------------------------------------------

try:  # pragma: no cover – optional dependency
    from hypothesis import settings

    settings.register_profile("morefixed_no_deadline", deadline=None)
    settings.load_profile("morefixed_no_deadline")
except ModuleNotFoundError:  # pragma: no cover – Hypothesis not installed
    pass

# Re-export the batched backend ------------------------------------------------
from .torch_fixed import FixedTensor

__all__ = [
    "FixedPoint",
    "fixed_type",
    "fixed16",
    "fixed16_fast",
    "fixed16_safe",
    # policies
    "FixedPointError",
    "FixedPointOverflowError",
    "OverflowCounter",
    "OverflowFlag",
    "abort_on_overflow",
    "assert_on_overflow",
    "ignore_overflow",
    "log_overflow",
    # limits & classification
    "Limits",
    "numeric_limits",
    "isfinite",
    "isinf",
    "isnan",
    "isnormal",
    # batched backend
    "FixedTensor",
]
