"""Backend-parameterized suite runner.

One list of test bodies runs against one backend factory under zero or more
feature configurations:

1. :func:`plan_suites` expands ``(name, tests, backend tag, features list)``
   into :class:`SuiteSpec` records, one per configuration.  It registers
   nothing, so suite generation can be checked on its own.
2. :func:`execute_math_tests` registers a planned suite with a host through
   ``register_suite`` / ``before_each`` / ``after_each`` / ``register_case``.
3. :class:`CaseLifecycle` owns one case's state machine::

       Idle -> BackendConstructed -> ScopeOpen -> (ConfigInstalled)
            -> Running -> ScopeClosed -> Disposed -> (ConfigRestored) -> Idle

   Teardown steps each run even when the body or an earlier step raised.

Usage::

    from backend_parity import describe_math_cpu, math_test, expect_arrays_close

    @math_test("add is elementwise")
    def add_elementwise(math):
        a = math.tensor([1, 2, 3])
        expect_arrays_close(math.read(math.add(a, a)), [2, 4, 6])

    test_add = describe_math_cpu("add", [add_elementwise]).as_pytest()
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from backend_parity._exceptions import BackendParityError
from backend_parity._logging import get_logger
from backend_parity.backends import AcceleratedBackend, CPUBackend, MathBackend
from backend_parity.environment import ENV_STACK, Environment, EnvironmentStack, Features
from backend_parity.hosts import PytestHost, SuiteHost

logger = get_logger(__name__)

TestFn = Callable[[Any], None]
BackendFactory = Callable[[EnvironmentStack], MathBackend]

CPU_TAG = "math_cpu"
ACCELERATED_TAG = "math_accelerated"


# ---------------------------------------------------------------------------
# Test definitions and suites
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MathTest:
    """A named test body taking a backend handle."""

    name: str
    fn: TestFn


def math_test(name: Optional[str] = None) -> Callable[[TestFn], MathTest]:
    """Decorator turning ``fn(backend)`` into a :class:`MathTest`.

    The case name defaults to the function name.
    """

    def wrap(fn: TestFn) -> MathTest:
        return MathTest(name or fn.__name__, fn)

    return wrap


def _coerce_tests(tests: Iterable[Union[MathTest, TestFn]]) -> Tuple[MathTest, ...]:
    out = []
    for test in tests:
        if isinstance(test, MathTest):
            out.append(test)
        elif callable(test):
            out.append(MathTest(getattr(test, "__name__", repr(test)), test))
        else:
            raise BackendParityError(f"Not a test definition: {test!r}")
    return tuple(out)


@dataclass(frozen=True)
class SuiteSpec:
    """One planned suite: its name, optional configuration and test bodies."""

    name: str
    features: Optional[Features]
    tests: Tuple[MathTest, ...]


def plan_suites(
    name: str,
    tests: Iterable[Union[MathTest, TestFn]],
    backend_tag: str,
    features_list: Optional[Sequence[Mapping[str, Any]]] = None,
) -> List[SuiteSpec]:
    """Expand *tests* into one suite per feature configuration.

    Without *features_list* a single suite is planned that runs under
    whatever Environment is active at the time.
    """
    base = f"{backend_tag}.{name}"
    defs = _coerce_tests(tests)
    if features_list is None:
        suites = [SuiteSpec(base, None, defs)]
    else:
        suites = []
        for raw in features_list:
            features = raw if isinstance(raw, Features) else Features(raw)
            suites.append(SuiteSpec(f"{base} {features.to_json()}", features, defs))
    logger.info("Planned %d suite(s) for %s with %d test(s)", len(suites), base, len(defs))
    return suites


# ---------------------------------------------------------------------------
# Per-case lifecycle
# ---------------------------------------------------------------------------


class CaseLifecycle:
    """Backend and environment state for one case at a time.

    ``setup`` and ``teardown`` are meant to be installed as before/after
    hooks.  The object is also a context manager yielding the backend.

    Args:
        factory: Builds a fresh backend from the environment stack.
        features: Configuration to install for the case, or *None* to leave
            the active Environment untouched.
        stack: Environment stack to install into.
    """

    def __init__(
        self,
        factory: BackendFactory,
        features: Optional[Features] = None,
        stack: Optional[EnvironmentStack] = None,
    ) -> None:
        self._factory = factory
        self._features = features
        self._stack = stack if stack is not None else ENV_STACK
        self._backend: Optional[MathBackend] = None
        self._scope_open = False
        self._saved: Optional[Tuple[Environment, ...]] = None

    @property
    def backend(self) -> MathBackend:
        if self._backend is None:
            raise BackendParityError("No backend: the case has not been set up")
        return self._backend

    def setup(self) -> None:
        # Saved before anything runs; a body that replaces the active
        # Environment is undone with the rest of the case.
        self._saved = self._stack.save()
        self._backend = self._factory(self._stack)
        logger.debug("Constructed backend %s", self._backend.name)
        self._backend.start_scope()
        self._scope_open = True
        if self._features is not None:
            self._stack.push(Environment(self._features))

    def teardown(self) -> None:
        backend, self._backend = self._backend, None
        try:
            if backend is not None:
                try:
                    if self._scope_open and not backend.disposed:
                        backend.end_scope(None)
                finally:
                    self._scope_open = False
                    backend.dispose()
        finally:
            saved, self._saved = self._saved, None
            if saved is not None:
                self._stack.restore(saved)

    def __enter__(self) -> MathBackend:
        try:
            self.setup()
        except BaseException:
            self.teardown()
            raise
        return self.backend

    def __exit__(self, *exc_info: Any) -> None:
        self.teardown()


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def _invoke(test: MathTest, lifecycle: CaseLifecycle) -> None:
    test.fn(lifecycle.backend)


def execute_math_tests(
    suite: SuiteSpec,
    factory: BackendFactory,
    host: SuiteHost,
    stack: Optional[EnvironmentStack] = None,
) -> None:
    """Register *suite* with *host*, wiring the per-case lifecycle hooks."""
    lifecycle = CaseLifecycle(factory, suite.features, stack)

    def body() -> None:
        host.before_each(lifecycle.setup)
        host.after_each(lifecycle.teardown)
        for test in suite.tests:
            host.register_case(test.name, functools.partial(_invoke, test, lifecycle))

    host.register_suite(suite.name, body)


def describe_math(
    name: str,
    tests: Iterable[Union[MathTest, TestFn]],
    factory: BackendFactory,
    backend_tag: str,
    features_list: Optional[Sequence[Mapping[str, Any]]] = None,
    host: Optional[SuiteHost] = None,
    stack: Optional[EnvironmentStack] = None,
) -> SuiteHost:
    """Plan and register suites for one backend factory.

    Returns the host (a new :class:`PytestHost` unless one is given).
    """
    host = host if host is not None else PytestHost()
    for suite in plan_suites(name, tests, backend_tag, features_list):
        execute_math_tests(suite, factory, host, stack)
    return host


def describe_math_cpu(
    name: str,
    tests: Iterable[Union[MathTest, TestFn]],
    features_list: Optional[Sequence[Mapping[str, Any]]] = None,
    host: Optional[SuiteHost] = None,
    stack: Optional[EnvironmentStack] = None,
) -> SuiteHost:
    return describe_math(name, tests, CPUBackend, CPU_TAG, features_list, host, stack)


def describe_math_accelerated(
    name: str,
    tests: Iterable[Union[MathTest, TestFn]],
    features_list: Optional[Sequence[Mapping[str, Any]]] = None,
    host: Optional[SuiteHost] = None,
    stack: Optional[EnvironmentStack] = None,
) -> SuiteHost:
    return describe_math(
        name, tests, AcceleratedBackend, ACCELERATED_TAG, features_list, host, stack
    )
