"""Global configuration for *morefixed*.

This module centralises the constants that every fixed-point format shares and
the knobs of the validation sweep, so they can be tweaked from a single
location.

Representation
--------------
Every format stores its value in one signed 32-bit word.  A format with *F*
fractional bits interprets the word *r* as the real number

    r / 2**F

so the representable range is ``[REPR_MIN / 2**F, REPR_MAX / 2**F]``.
Intermediate results are computed with Python integers (at least 64 bits of
headroom) and narrowed back to 32 bits afterwards.
"""

from __future__ import annotations

import numbers

__all__ = [
    "REPR_BITS",
    "REPR_MIN",
    "REPR_MAX",
    "MAX_FRAC_BITS",
    "DEFAULT_FRAC_BITS",
    "SWEEP_STEP",
    "SWEEP_WORKERS",
    "SWEEP_CHUNK",
    "check_frac_bits",
    "scale_for",
    "mask_for",
    "set_sweep_chunk",
]

# -----------------------------------------------------------------------------
# Public constants
# -----------------------------------------------------------------------------

REPR_BITS: int = 32
REPR_MIN: int = -(1 << (REPR_BITS - 1))
REPR_MAX: int = (1 << (REPR_BITS - 1)) - 1

MAX_FRAC_BITS: int = REPR_BITS
DEFAULT_FRAC_BITS: int = 16  # 16.16 – the `fixed16` family

SWEEP_STEP: int = 8191  # step 1 is exhaustive (and slow)
SWEEP_WORKERS: int = 8
SWEEP_CHUNK: int = 1 << 20  # representations per tensor chunk

# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------

def check_frac_bits(bits: int) -> int:
    """Validate a fractional-bit count and return it as a plain ``int``."""
    if isinstance(bits, bool) or not isinstance(bits, numbers.Integral):
        raise TypeError(f"Fractional bits must be an integer, got {type(bits).__name__}")
    bits = int(bits)
    if not 0 <= bits <= MAX_FRAC_BITS:
        raise ValueError(f"Fractional bits must lie in [0, {MAX_FRAC_BITS}], got {bits}")
    return bits


def scale_for(bits: int) -> int:
    """``2**bits`` – multiplier from real value to representation."""
    return 1 << check_frac_bits(bits)


def mask_for(bits: int) -> int:
    """Mask selecting the fractional bits of a representation."""
    return scale_for(bits) - 1


def set_sweep_chunk(new_chunk: int):
    """Change the global sweep chunk size *in-place*.

    Larger chunks trade memory for fewer Python round trips in
    :mod:`morefixed.validate`.
    """
    global SWEEP_CHUNK
    if new_chunk <= 0:
        raise ValueError("Chunk size must be positive.")
    SWEEP_CHUNK = new_chunk
