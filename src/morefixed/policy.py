"""Overflow policies.

A policy is any callable that takes no arguments.  Fixed-point types call
their policy synchronously, exactly once per detected overflow, and then carry
on with a well-defined (saturated or truncated) result – the policy decides
whether that is silently fine, worth a log line, an exception or the end of
the process.

Policies are bound to a *type*, not to a value, so the choice costs nothing
per instance:

>>> from morefixed import fixed_type
>>> from morefixed.policy import OverflowFlag
>>> overflowed = OverflowFlag()
>>> Q16 = fixed_type(16, overflowed)
>>> _ = Q16.max() + 1
>>> overflowed.get_and_clear()
True
"""

from __future__ import annotations

import logging
import os
import threading

__all__ = [
    "FixedPointError",
    "FixedPointOverflowError",
    "ignore_overflow",
    "abort_on_overflow",
    "assert_on_overflow",
    "log_overflow",
    "OverflowFlag",
    "OverflowCounter",
]

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Errors
# -----------------------------------------------------------------------------


class FixedPointError(ArithmeticError):
    """Base class for errors raised by *morefixed* policies."""


class FixedPointOverflowError(FixedPointError, OverflowError):
    """A result did not fit the 32-bit representation."""


# -----------------------------------------------------------------------------
# Stateless policies
# -----------------------------------------------------------------------------


def ignore_overflow() -> None:
    """Fastest option: overflow is not reported at all."""


def abort_on_overflow() -> None:
    """Safest option: terminate the process on the first overflow."""
    logger.critical("fixed-point overflow, aborting")
    os.abort()


def assert_on_overflow() -> None:
    """Raise :class:`FixedPointOverflowError` unless assertions are disabled.

    Running Python with ``-O`` turns this policy into a no-op, the same way the
    C ``assert`` it replaces disappears under ``NDEBUG``.
    """
    if __debug__:
        raise FixedPointOverflowError("fixed-point overflow")


def log_overflow() -> None:
    """Record the overflow as a warning and continue."""
    logger.warning("fixed-point overflow")


# -----------------------------------------------------------------------------
# Stateful policies (test hooks)
# -----------------------------------------------------------------------------


class OverflowFlag:
    """Thread-local overflow flag.

    Every thread sees its own flag, so concurrent test workers can share one
    fixed-point type without locking and without seeing each other's events.
    """

    __slots__ = ("_local",)

    def __init__(self):
        self._local = threading.local()

    def __call__(self) -> None:
        self._local.flag = True

    @property
    def is_set(self) -> bool:
        return getattr(self._local, "flag", False)

    def clear(self) -> None:
        self._local.flag = False

    def get_and_clear(self) -> bool:
        """Return the flag and reset it in one step."""
        result = self.is_set
        self._local.flag = False
        return result

    def __repr__(self) -> str:  # pragma: no cover – cosmetics only
        return f"OverflowFlag(is_set={self.is_set})"


class OverflowCounter:
    """Counts overflow events across all threads."""

    __slots__ = ("_lock", "_count")

    def __init__(self):
        self._lock = threading.Lock()
        self._count = 0

    def __call__(self) -> None:
        with self._lock:
            self._count += 1

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    def reset(self) -> None:
        with self._lock:
            self._count = 0

    def __repr__(self) -> str:  # pragma: no cover – cosmetics only
        return f"OverflowCounter(count={self.count})"
