from __future__ import annotations

"""Mandelbrot set rendered with a selectable numeric type.

The same generic code runs on numpy ``float32``, Python ``float`` and two
16.16 fixed-point formats, so the ASCII output (and the timing printed to
stderr) shows what fixed point costs and whether it changes the picture.

Run standalone:

    $ python benchmarks/mandelbrot.py 100 fixed_fast
"""

from dataclasses import dataclass
import sys
from time import perf_counter
from typing import Callable, Dict, TextIO, Tuple

import numpy as np
import tyro  # type: ignore – project guideline

from morefixed import fixed16_fast, fixed16_safe


def mandelbrot(T: Callable, x0, y0, max_iterations: int) -> int:
    """Iterations before ``z -> z² + c`` escapes the radius-2 disc."""
    x, y = T(0), T(0)
    for i in range(max_iterations):
        _x = x * x - y * y + x0
        _y = 2 * x * y + y0
        if _x * _x + _y * _y >= 2 * 2:
            return i
        x, y = _x, _y
    return max_iterations


def plot(T: Callable, max_iterations: int, out: TextIO = sys.stdout) -> None:
    step = T(1 / 16.0)
    y = T(-1)
    while y <= 1:
        row = []
        x = T(-2)
        while x <= 1:
            i = mandelbrot(T, x, y, max_iterations)
            row.append("*" if i == max_iterations else " ."[i % 2])
            x += step
        out.write("".join(row) + "\n")
        y += step


# name -> (help, numeric type)
TYPES: Dict[str, Tuple[str, Callable]] = {
    "float": ("32-bit floating point", np.float32),
    "double": ("64-bit floating point", float),
    "fixed_safe": ("16.16 fixed point, abort on overflow", fixed16_safe),
    "fixed_fast": ("16.16 fixed point, no overflow check", fixed16_fast),
}


@dataclass
class Config(tyro.conf.FlagConversionOff):  # type: ignore[misc]
    """Prints a Mandelbrot set."""

    max_iterations: tyro.conf.Positional[int]
    numeric_type: tyro.conf.Positional[str]


def usage() -> None:
    print("Usage: mandelbrot.py <max_iterations> <numeric_type>\n", file=sys.stderr)
    print("Prints a Mandelbrot set. Available numeric types:", file=sys.stderr)
    for name, (help_, _) in TYPES.items():
        print(f"  {name}: {help_}", file=sys.stderr)
    print(file=sys.stderr)


def main(cfg: Config) -> int:  # noqa: D401 – CLI entry
    if cfg.numeric_type not in TYPES:
        print(f"** Expected a numeric type but found: '{cfg.numeric_type}'\n", file=sys.stderr)
        usage()
        return 1
    _, T = TYPES[cfg.numeric_type]
    start = perf_counter()
    plot(T, cfg.max_iterations)
    print(f"[mandelbrot] {cfg.numeric_type}: {perf_counter() - start:.3f}s", file=sys.stderr)
    return 0


if __name__ == "__main__":
    try:
        cfg = tyro.cli(Config)
    except SystemExit as exc:
        if exc.code:
            usage()
            raise SystemExit(1) from None
        raise
    raise SystemExit(main(cfg))
