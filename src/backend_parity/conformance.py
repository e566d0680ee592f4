"""Built-in conformance suite.

Each test builds its expected value with the reference kernels, runs the
same computation on the backend under test, and compares the two.  Inputs
come from a seeded generator so a failure reproduces exactly.

Usage::

    from backend_parity.conformance import run_conformance, format_report
    results = run_conformance(["cpu", "accelerated"])
    print(format_report(results))
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence

import torch

from backend_parity._exceptions import BackendParityError
from backend_parity._logging import get_logger
from backend_parity.backends import BACKEND_REGISTRY
from backend_parity.comparator import (
    expect_arrays_close,
    expect_numbers_close,
    test_low_precision_epsilon,
)
from backend_parity.hosts import CaseResult, SequentialHost
from backend_parity.reference import (
    cpu_dot_product,
    cpu_multiply_matrix,
    make_identity,
    random_array_in_range,
)
from backend_parity.runner import MathTest, describe_math, math_test

logger = get_logger(__name__)

SEED = 42

NAN = float("nan")


def _generator() -> torch.Generator:
    g = torch.Generator()
    g.manual_seed(SEED)
    return g


# ---------------------------------------------------------------------------
# Test bodies
# ---------------------------------------------------------------------------


@math_test("matmul matches reference")
def matmul_matches_reference(math: Any) -> None:
    g = _generator()
    a = random_array_in_range(3 * 4, -1, 1, g)
    b = random_array_in_range(4 * 2, -1, 1, g)
    expected = cpu_multiply_matrix(a, 3, 4, b, 4, 2)

    out = math.matmul(math.tensor(a, (3, 4)), math.tensor(b, (4, 2)))
    expect_arrays_close(math.read(out), expected, env=math.environment)


@math_test("identity is a left and right unit for matmul")
def matmul_identity(math: Any) -> None:
    m = random_array_in_range(3 * 2, -1, 1, _generator())
    m_t = math.tensor(m, (3, 2))

    left = math.matmul(math.tensor(make_identity(3), (3, 3)), m_t)
    expect_arrays_close(math.read(left), m, env=math.environment)

    right = math.matmul(m_t, math.tensor(make_identity(2), (2, 2)))
    expect_arrays_close(math.read(right), m, env=math.environment)


@math_test("dot matches reference")
def dot_matches_reference(math: Any) -> None:
    g = _generator()
    a = random_array_in_range(8, -1, 1, g)
    b = random_array_in_range(8, -1, 1, g)

    out = math.dot(math.tensor(a), math.tensor(b))
    expect_numbers_close(
        math.read(out)[0],
        cpu_dot_product(a, b),
        test_low_precision_epsilon(math.environment),
    )


@math_test("elementwise add, sub and mul match reference")
def elementwise_matches_reference(math: Any) -> None:
    g = _generator()
    a = random_array_in_range(6, -1, 1, g)
    b = random_array_in_range(6, -1, 1, g)
    a_t, b_t = math.tensor(a), math.tensor(b)
    av, bv = a.tolist(), b.tolist()

    env = math.environment
    expect_arrays_close(math.read(math.add(a_t, b_t)), [x + y for x, y in zip(av, bv)], env=env)
    expect_arrays_close(math.read(math.sub(a_t, b_t)), [x - y for x, y in zip(av, bv)], env=env)
    expect_arrays_close(math.read(math.mul(a_t, b_t)), [x * y for x, y in zip(av, bv)], env=env)


@math_test("NaN propagates through add and relu")
def nan_propagates(math: Any) -> None:
    a = math.tensor([1, NAN, 3, -2])
    b = math.tensor([1, 2, NAN, 1])

    expect_arrays_close(math.read(math.add(a, b)), [2, NAN, NAN, -1], env=math.environment)
    expect_arrays_close(math.read(math.relu(a)), [1, NAN, 3, 0], env=math.environment)


@math_test("end_scope releases intermediates and keeps the result")
def scope_releases_intermediates(math: Any) -> None:
    before = math.num_tracked
    math.start_scope()
    a = math.tensor([1, 2, 3])
    total = math.sum(math.add(a, a))
    expect_numbers_close(math.num_tracked, before + 3, 0)

    math.end_scope(total)
    expect_numbers_close(math.num_tracked, before + 1, 0)
    expect_numbers_close(math.read(total)[0], 12, env=math.environment)


MATH_TESTS: List[MathTest] = [
    matmul_matches_reference,
    matmul_identity,
    dot_matches_reference,
    elementwise_matches_reference,
    nan_propagates,
    scope_releases_intermediates,
]


# ---------------------------------------------------------------------------
# Driver and report
# ---------------------------------------------------------------------------


def run_conformance(
    backends: Sequence[str],
    features_list: Optional[Sequence[Mapping[str, Any]]] = None,
) -> List[CaseResult]:
    """Run :data:`MATH_TESTS` for each named backend and return the results."""
    host = SequentialHost()
    for name in backends:
        factory = BACKEND_REGISTRY.get(name)
        if factory is None:
            raise BackendParityError(
                f"Unknown backend {name!r}; choose from {sorted(BACKEND_REGISTRY)}"
            )
        describe_math("conformance", MATH_TESTS, factory, f"math_{name}", features_list, host=host)
    results = host.run()
    failed = sum(1 for r in results if not r.passed)
    logger.info("Conformance: %d case(s), %d failed", len(results), failed)
    return results


def format_report(results: List[CaseResult]) -> str:
    """Format conformance results as a human-readable report."""
    width = 78
    lines = [
        "Backend Parity Report",
        "=" * width,
        f"{'Suite':<40} {'Case':<26} {'Status':<6} {'Time':>8}",
        "-" * width,
    ]

    current = None
    for r in results:
        suite = r.suite if r.suite != current else ""
        current = r.suite
        status = "PASS" if r.passed else "FAIL"
        lines.append(f"{suite:<40.40} {r.case:<26.26} {status:<6} {r.elapsed_ms:>6.1f}ms")

    lines.append("-" * width)
    passed = sum(1 for r in results if r.passed)
    failed = len(results) - passed
    lines.append(f"Total: {len(results)} | Passed: {passed} | Failed: {failed}")

    if failed > 0:
        lines.append("")
        lines.append("FAILED cases:")
        for r in results:
            if not r.passed:
                lines.append(f"  - {r.suite} :: {r.case}")
                lines.append(f"      {r.error_type}: {r.error_message}")

    lines.append("=" * width)
    return "\n".join(lines)
