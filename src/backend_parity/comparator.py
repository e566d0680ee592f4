"""Approximate, NaN-aware comparison of numeric buffers.

Every parity check ends here: an accelerated result is compared against a
golden value built with :mod:`backend_parity.reference`.  The comparison is
element-wise with an absolute tolerance and stops at the first mismatch.

Tolerance depends on the active :class:`~backend_parity.environment.Environment`:

========================  =========  ===================  ====================
HIGH_PRECISION_FLOAT      epsilon    low-precision exp.   low-precision eps.
========================  =========  ===================  ====================
enabled                   1e-4       3                    1e-3
disabled                  1e-2       1                    1e-1
========================  =========  ===================  ====================
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Union

import torch

from backend_parity._exceptions import LengthMismatchError, ValueMismatchError
from backend_parity.environment import (
    HIGH_PRECISION_FLOAT_ENABLED,
    Environment,
    get_environment,
)

Buffer = Union[torch.Tensor, Sequence[float]]


@dataclass(frozen=True)
class Tolerance:
    """Absolute tolerances for one Environment."""

    epsilon: float
    low_precision: int

    @property
    def low_precision_epsilon(self) -> float:
        return 1 / math.pow(10, self.low_precision)


_HIGH_PRECISION = Tolerance(epsilon=1e-4, low_precision=3)
_LOW_PRECISION = Tolerance(epsilon=1e-2, low_precision=1)


def tolerance_for(env: Optional[Environment] = None) -> Tolerance:
    """Return the tolerance policy for *env* (default: the active Environment)."""
    env = env if env is not None else get_environment()
    return _HIGH_PRECISION if env.get(HIGH_PRECISION_FLOAT_ENABLED) else _LOW_PRECISION


def test_epsilon(env: Optional[Environment] = None) -> float:
    return tolerance_for(env).epsilon


def test_low_precision(env: Optional[Environment] = None) -> int:
    return tolerance_for(env).low_precision


def test_low_precision_epsilon(env: Optional[Environment] = None) -> float:
    return tolerance_for(env).low_precision_epsilon


# Keep pytest from collecting the tolerance helpers when they are imported
# into a test module.
test_epsilon.__test__ = False  # type: ignore[attr-defined]
test_low_precision.__test__ = False  # type: ignore[attr-defined]
test_low_precision_epsilon.__test__ = False  # type: ignore[attr-defined]


def _as_values(buf: Any) -> List[float]:
    if isinstance(buf, torch.Tensor):
        return buf.detach().to("cpu").reshape(-1).tolist()
    return [float(v) for v in buf]


def expect_arrays_close(
    actual: Buffer,
    expected: Buffer,
    epsilon: Optional[float] = None,
    *,
    env: Optional[Environment] = None,
) -> None:
    """Assert that *actual* matches *expected* element-wise within *epsilon*.

    Positions where both values are NaN count as equal.  A NaN on one side
    only, or an absolute difference above *epsilon*, raises at the first
    such index.

    Args:
        actual: Result under test (tensor of any shape/device, or a flat
            sequence of numbers).
        expected: Golden values, same length as *actual*.
        epsilon: Maximum allowed absolute difference.  Defaults to
            :func:`test_epsilon` for *env*.
        env: Environment used to pick the default epsilon.

    Raises:
        LengthMismatchError: The buffers have different lengths.
        ValueMismatchError: Some index differs beyond tolerance.
    """
    if epsilon is None:
        epsilon = test_epsilon(env)

    actual_values = _as_values(actual)
    expected_values = _as_values(expected)
    if len(actual_values) != len(expected_values):
        raise LengthMismatchError(
            f"Matrices have different lengths ({len(actual_values)} vs "
            f"{len(expected_values)}).",
            len(actual_values),
            len(expected_values),
        )

    for i, (a, e) in enumerate(zip(actual_values, expected_values)):
        if math.isnan(a) and math.isnan(e):
            continue
        if math.isnan(a) or math.isnan(e) or abs(a - e) > epsilon:
            raise ValueMismatchError(
                f"Arrays differ: actual[{i}] === {a}, expected[{i}] === {e}",
                i,
                a,
                e,
            )


def expect_numbers_close(
    actual: float,
    expected: float,
    epsilon: Optional[float] = None,
    *,
    env: Optional[Environment] = None,
) -> None:
    """Scalar form of :func:`expect_arrays_close`."""
    if isinstance(actual, torch.Tensor):
        actual = actual.item()
    if isinstance(expected, torch.Tensor):
        expected = expected.item()
    if epsilon is None:
        epsilon = test_epsilon(env)
    a, e = float(actual), float(expected)
    if math.isnan(a) and math.isnan(e):
        return
    if math.isnan(a) or math.isnan(e) or abs(a - e) > epsilon:
        raise ValueMismatchError(
            f"Numbers differ: actual === {a}, expected === {e}", 0, a, e
        )
