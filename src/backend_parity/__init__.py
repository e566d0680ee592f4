"""backend-parity: verification harness for numeric backends.

The same array-math operations run on a reference engine and on an
accelerated engine.  This package checks that they agree:

- :mod:`backend_parity.reference` builds golden values with small,
  unoptimized kernels.
- :mod:`backend_parity.comparator` compares buffers with a NaN-aware
  absolute tolerance chosen from the active environment.
- :mod:`backend_parity.runner` runs one list of test bodies against a
  backend factory under several feature configurations, opening and closing
  backend scopes and restoring the environment around every case.

Quick start (pytest)::

    from backend_parity import describe_math_cpu, expect_arrays_close, math_test

    @math_test("relu clamps negatives")
    def relu_clamps(math):
        out = math.relu(math.tensor([-1, 0, 2]))
        expect_arrays_close(math.read(out), [0, 0, 2])

    test_relu = describe_math_cpu("relu", [relu_clamps]).as_pytest()

Environment Variables
---------------------
``BACKEND_PARITY_FEATURES``
    JSON object overriding default feature flags.
``BACKEND_PARITY_LOG_LEVEL``
    Set to ``DEBUG`` to trace lifecycle transitions. Default: ``WARNING``.
``BACKEND_PARITY_LOG_VERBOSE``
    Set to ``1`` for timestamps and source locations in log lines.
"""

from __future__ import annotations

__version__ = "0.3.0"

from backend_parity._logging import set_log_level
from backend_parity.comparator import (
    Tolerance,
    expect_arrays_close,
    expect_numbers_close,
    test_epsilon,
    test_low_precision,
    test_low_precision_epsilon,
    tolerance_for,
)
from backend_parity.environment import (
    Environment,
    EnvironmentStack,
    Features,
    get_environment,
    reset_environment,
    set_environment,
)
from backend_parity.reference import (
    cpu_dot_product,
    cpu_multiply_matrix,
    make_identity,
    random_array_in_range,
    set_value,
)
from backend_parity.runner import (
    CaseLifecycle,
    MathTest,
    SuiteSpec,
    describe_math,
    describe_math_accelerated,
    describe_math_cpu,
    execute_math_tests,
    math_test,
    plan_suites,
)

__all__ = [
    "__version__",
    "set_log_level",
    # Comparator
    "Tolerance",
    "expect_arrays_close",
    "expect_numbers_close",
    "test_epsilon",
    "test_low_precision",
    "test_low_precision_epsilon",
    "tolerance_for",
    # Environment
    "Environment",
    "EnvironmentStack",
    "Features",
    "get_environment",
    "reset_environment",
    "set_environment",
    # Reference kernels
    "cpu_dot_product",
    "cpu_multiply_matrix",
    "make_identity",
    "random_array_in_range",
    "set_value",
    # Runner
    "CaseLifecycle",
    "MathTest",
    "SuiteSpec",
    "describe_math",
    "describe_math_accelerated",
    "describe_math_cpu",
    "execute_math_tests",
    "math_test",
    "plan_suites",
]
