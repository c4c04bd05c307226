"""Micro-benchmarks for the hot fixed-point operations.

Needs the ``pytest-benchmark`` plugin.  Inputs are small so the regular test
run stays fast; run

```
pytest tests/test_benchmark_micro.py --benchmark-only
```

for a summary table.  Timings are informative only and never asserted.
"""

import pytest
pytest.importorskip("pytest_benchmark")

import torch

from morefixed import fixed16_fast
from morefixed import torch_fixed
from morefixed.torch_fixed import FixedTensor

BATCH_SIZE = 4096


def _sample(batch_size: int = BATCH_SIZE) -> FixedTensor:
    x = torch.empty(batch_size, dtype=torch.float64).uniform_(-100.0, 100.0)
    return FixedTensor.from_real(x, fixed16_fast)


def test_scalar_add(benchmark):
    a, b = fixed16_fast(1.25), fixed16_fast(-3.5)
    benchmark(lambda: a + b)


def test_scalar_mul(benchmark):
    a, b = fixed16_fast(1.25), fixed16_fast(-3.5)
    benchmark(lambda: a * b)


def test_tensor_mul(benchmark):
    a, b = _sample(), _sample()
    benchmark(lambda: a * b)


def test_tensor_sqrt(benchmark):
    a = torch_fixed.fabs(_sample())
    benchmark(lambda: torch_fixed.sqrt(a))
