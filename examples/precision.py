"""How accurate are the forwarded math functions?

For every fractional-bit count we evaluate each function on a grid of
representable inputs, once in fixed point (float64 round trip, then
truncation) and once in plain float64, and record the largest absolute
difference among the results that did not overflow.  The error should shrink
like ``2**-bits`` – one representation unit – until the range becomes too
small for the function's outputs.

Results are written as ``precision.png`` (matplotlib) and
``precision.html`` (plotly).
"""

from __future__ import annotations

import math
from pathlib import Path

import numpy as np
import torch
import matplotlib
matplotlib.use('Agg')  # Set non-interactive backend
import matplotlib.pyplot as plt
import plotly.graph_objects as go

from morefixed import fixed_type, ignore_overflow
from morefixed.torch_fixed import FixedTensor
from morefixed.validate import FUNCTIONS

N_POINTS = 4097
BITS = list(range(0, 31, 2))
NAMES = ["sqrt", "sin", "cos", "tan", "exp"]


def max_error(name: str, bits: int, n_points: int = N_POINTS) -> float:
    """Largest |fixed - float64| over non-overflowing samples of one format."""
    fmt = fixed_type(bits, ignore_overflow)
    function = FUNCTIONS[name]
    # inputs spread over [-8, 8] (or the whole range for wide formats)
    bound = min(8.0, float(fmt.max()))
    x = FixedTensor.from_real(torch.linspace(-bound, bound, n_points, dtype=torch.float64), fmt)
    y = function.vector(x)
    with np.errstate(all="ignore"):
        exact = function.reference(x.to_float().numpy())
    ok = ~y.overflow.numpy() & np.isfinite(exact)
    if not ok.any():
        return math.nan
    return float(np.max(np.abs(y.to_float().numpy()[ok] - exact[ok])))


def main(out_dir: Path = Path(".")) -> None:
    errors = {name: [max_error(name, b) for b in BITS] for name in NAMES}
    for name, errs in errors.items():
        print(f"{name:>5}: " + "  ".join(f"{e:.1e}" for e in errs))

    # matplotlib ---------------------------------------------------------------
    fig, ax = plt.subplots(figsize=(8, 5))
    for name, errs in errors.items():
        ax.semilogy(BITS, errs, marker="o", label=name)
    ax.semilogy(BITS, [2.0 ** -b for b in BITS], "k--", label="1 unit (2^-bits)")
    ax.set_xlabel("fractional bits")
    ax.set_ylabel("max |fixed - float64|")
    ax.set_title("Forwarded math functions: fixed-point error")
    ax.legend()
    fig.savefig(out_dir / "precision.png", dpi=120, bbox_inches="tight")
    plt.close(fig)

    # plotly -------------------------------------------------------------------
    fig_plotly = go.Figure()
    for name, errs in errors.items():
        fig_plotly.add_trace(go.Scatter(x=BITS, y=errs, mode="lines+markers", name=name))
    fig_plotly.add_trace(
        go.Scatter(x=BITS, y=[2.0 ** -b for b in BITS], name="1 unit", line=dict(dash="dash", color="black"))
    )
    fig_plotly.update_layout(
        title="Forwarded math functions: fixed-point error",
        xaxis_title="fractional bits",
        yaxis_title="max |fixed - float64|",
        yaxis_type="log",
    )
    fig_plotly.write_html(out_dir / "precision.html")


if __name__ == "__main__":
    main()
