from __future__ import annotations

"""Sweep the representation space and check every math function.

For each function and each fractional-bit count we compare the fixed-point
result ``f(x)`` with the float64 reference converted back to the format,
``Q(f_ref(float(x)))``.  A sample passes when

* both sides overflow, or
* neither overflows and the representations differ by at most one unit.

Edge values (zero, the extremes, ±1 unit and small integers) are checked one
by one through the scalar type with a thread-local :class:`OverflowFlag`
policy; the bulk of the sweep runs in chunks through
:mod:`morefixed.torch_fixed`.  Tests are spread over a thread pool and no new
test starts once one has failed.

Run standalone:

    $ morefixed-validate            # every 8191st representation
    $ morefixed-validate 1          # exhaustive – slow
    $ morefixed-validate 65535 --bits 8 16 --functions sqrt floor
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
import logging
import math
import sys
import threading
from typing import Callable, Dict, Iterator, List, Sequence, Tuple

import numpy as np
import torch
import tyro  # type: ignore – Third-party CLI library (preferred over argparse)

from . import config, fxmath, torch_fixed
from .config import REPR_MAX, REPR_MIN
from .fixed import FixedPoint, fixed_type
from .policy import OverflowFlag
from .torch_fixed import FixedTensor

__all__ = ["MathFunction", "FUNCTIONS", "SweepTest", "run_all", "Config", "main", "cli"]

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Function table
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class MathFunction:
    name: str
    reference: Callable[[np.ndarray], np.ndarray]  # numpy float64 ufunc
    scalar: Callable[[FixedPoint], FixedPoint]
    vector: Callable[[FixedTensor], FixedTensor]


FUNCTIONS: Dict[str, MathFunction] = {
    f.name: f
    for f in [
        MathFunction("fabs", np.fabs, fxmath.fabs, torch_fixed.fabs),
        MathFunction("floor", np.floor, fxmath.floor, torch_fixed.floor),
        MathFunction("ceil", np.ceil, fxmath.ceil, torch_fixed.ceil),
        MathFunction("trunc", np.trunc, fxmath.trunc, torch_fixed.trunc),
        MathFunction("sqrt", np.sqrt, fxmath.sqrt, torch_fixed.sqrt),
        MathFunction("sin", np.sin, fxmath.sin, torch_fixed.sin),
        MathFunction("cos", np.cos, fxmath.cos, torch_fixed.cos),
        MathFunction("tan", np.tan, fxmath.tan, torch_fixed.tan),
        MathFunction("exp", np.exp, fxmath.exp, torch_fixed.exp),
    ]
}

DEFAULT_BITS: Tuple[int, ...] = tuple(range(31))


# -----------------------------------------------------------------------------
# A single (function, bits) test
# -----------------------------------------------------------------------------


@dataclass
class SweepTest:
    function: MathFunction
    bits: int
    lock: threading.Lock = field(default_factory=threading.Lock)

    def __post_init__(self):
        self.flag = OverflowFlag()
        self.cancelled = False
        self.fmt = fixed_type(self.bits, self.flag, name=f"fixed{self.bits}")

    def print(self, message: str) -> None:
        with self.lock:
            print(f"{self.function.name:>8}.{self.bits:02d}: {message}", flush=True)

    def _log_error(self, value: float, expected: float, actual: float) -> None:
        self.print(f"{value:13.6f}: expected {expected:13.6f}, got {actual:13.6f}")

    # scalar edge cases -----------------------------------------------------------
    def edge_values(self) -> Iterator[FixedPoint]:
        fmt = self.fmt
        yield fmt(0)
        for i in range(4):
            yield fmt.from_repr(REPR_MIN + i)
            yield fmt.from_repr(REPR_MAX - i)
            yield fmt.from_repr(i + 1)
            yield fmt.from_repr(-i - 1)
            yield fmt(i + 1)
            yield fmt(-i - 1)

    def check_value(self, fval: FixedPoint) -> bool:
        dval = float(fval)
        with np.errstate(all="ignore"):
            exact = float(self.function.reference(np.float64(dval)))
        self.flag.clear()

        expected = self.fmt(exact)
        expected_overflow = self.flag.get_and_clear()
        actual = self.function.scalar(fval)
        actual_overflow = self.flag.get_and_clear()

        if expected_overflow or actual_overflow:
            if expected_overflow != actual_overflow:
                self._log_error(
                    dval,
                    math.nan if expected_overflow else float(expected),
                    math.nan if actual_overflow else float(actual),
                )
                return False
        elif abs(actual.repr - expected.repr) > 1:
            self._log_error(dval, float(expected), float(actual))
            return False
        return True

    # tensor sweep ---------------------------------------------------------------
    def check_chunk(self, reprs: torch.Tensor) -> bool:
        x = FixedTensor.from_repr(reprs, self.fmt)
        with np.errstate(all="ignore"):
            exact = self.function.reference(x.to_float().numpy())
        expected = FixedTensor.from_real(torch.from_numpy(exact), self.fmt)
        actual = self.function.vector(x)

        both = expected.overflow & actual.overflow
        either = expected.overflow | actual.overflow
        err = (actual.repr - expected.repr).abs()
        bad = (either & ~both) | (~either & (err > 1))
        if not bool(bad.any()):
            return True

        i = int(torch.nonzero(bad)[0])
        self._log_error(
            float(x.to_float()[i]),
            math.nan if bool(expected.overflow[i]) else float(expected.to_float()[i]),
            math.nan if bool(actual.overflow[i]) else float(actual.to_float()[i]),
        )
        return False

    def sweep(self, step: int, cancel: threading.Event | None = None) -> bool:
        """Check every *step*-th representation; *False* on the first mismatch.

        Stops early, without failing, once *cancel* is set.
        """
        start, stop = REPR_MIN + step, REPR_MAX - step
        span = config.SWEEP_CHUNK * step
        for lo in range(start, stop, span):
            if cancel is not None and cancel.is_set():
                self.cancelled = True
                return True
            reprs = torch.arange(lo, min(lo + span, stop), step, dtype=torch.int64)
            logger.debug("%s.%02d: chunk at %d (%d values)", self.function.name, self.bits, lo, len(reprs))
            if not self.check_chunk(reprs):
                return False
        return True

    def run(self, step: int, cancel: threading.Event | None = None) -> bool:
        """Return *True* on success."""
        ok = all(self.check_value(v) for v in self.edge_values())
        ok = ok and self.sweep(step, cancel)
        self.print("cancelled" if self.cancelled else "ok" if ok else "FAILED")
        return ok


# -----------------------------------------------------------------------------
# Worker pool
# -----------------------------------------------------------------------------


def run_all(
    functions: Sequence[str] = tuple(FUNCTIONS),
    bits: Sequence[int] = DEFAULT_BITS,
    step: int = config.SWEEP_STEP,
    workers: int = config.SWEEP_WORKERS,
) -> bool:
    """Run every (function, bits) test; *True* when all of them passed."""
    lock = threading.Lock()
    tests: List[SweepTest] = [SweepTest(FUNCTIONS[name], b, lock) for name in functions for b in bits]
    failed = threading.Event()

    def _run_one(test: SweepTest) -> None:
        if failed.is_set():
            return
        if not test.run(step, failed):
            failed.set()

    with ThreadPoolExecutor(max_workers=workers) as pool:
        # list() re-raises any worker exception
        list(pool.map(_run_one, tests))
    return not failed.is_set()


# -----------------------------------------------------------------------------
# CLI
# -----------------------------------------------------------------------------


@dataclass
class Config:
    """Test all math functions with a range of inputs.

    Use step 1 for an exhaustive test.
    """

    step: tyro.conf.Positional[int] = config.SWEEP_STEP
    workers: int = config.SWEEP_WORKERS
    bits: Tuple[int, ...] = DEFAULT_BITS
    functions: Tuple[str, ...] = tuple(FUNCTIONS)
    chunk: int = config.SWEEP_CHUNK
    verbose: bool = False


def _usage_error(message: str) -> int:
    print(f"** {message}\n", file=sys.stderr)
    print("Usage: morefixed-validate [STEP] [--workers N] [--bits ...] [--functions ...]", file=sys.stderr)
    return 1


def main(cfg: Config) -> int:  # noqa: D401 – CLI entry
    if cfg.step <= 0:
        return _usage_error(f"Expected a positive step but found: {cfg.step}")
    if cfg.workers <= 0:
        return _usage_error(f"Expected a positive worker count but found: {cfg.workers}")
    unknown = [name for name in cfg.functions if name not in FUNCTIONS]
    if unknown:
        return _usage_error(f"Unknown functions {unknown}; available: {', '.join(FUNCTIONS)}")
    bad_bits = [b for b in cfg.bits if not 0 <= b <= config.MAX_FRAC_BITS]
    if bad_bits:
        return _usage_error(f"Fractional bits must lie in [0, {config.MAX_FRAC_BITS}], got {bad_bits}")
    try:
        config.set_sweep_chunk(cfg.chunk)
    except ValueError as exc:
        return _usage_error(str(exc))

    ok = run_all(cfg.functions, cfg.bits, cfg.step, cfg.workers)
    print(f"\n*** {'PASSED' if ok else 'FAILED'} ***")
    return 0 if ok else 1


def cli() -> None:
    try:
        cfg = tyro.cli(Config)
    except SystemExit as exc:
        # tyro/argparse exit with 2 on bad arguments; --help exits with 0
        if exc.code:
            raise SystemExit(1) from None
        raise
    logging.basicConfig(
        level=logging.DEBUG if cfg.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    raise SystemExit(main(cfg))


if __name__ == "__main__":
    cli()
