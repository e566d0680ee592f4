"""Test-framework hosts.

The suite runner is written against four registration primitives:
``register_suite(name, body)``, ``register_case(name, fn)``,
``before_each(fn)`` and ``after_each(fn)``.  A host collects what the runner
registers and decides how the cases get executed:

- :class:`SequentialHost` runs every case in-process, in registration
  order, and records a :class:`CaseResult` per case.  The CLI uses it.
- :class:`PytestHost` turns the collected cases into one parametrized
  pytest test function, so each case shows up as its own pytest item.

Hooks run in before / case / after order.  After-hooks always run, whatever
raised before them; an error from the case itself takes precedence.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

from backend_parity._exceptions import BackendParityError
from backend_parity._logging import case_context, get_logger

logger = get_logger(__name__)

Hook = Callable[[], None]


@dataclass(frozen=True)
class CollectedCase:
    """A registered case together with the hooks of its suite."""

    suite: str
    name: str
    fn: Hook
    before: Tuple[Hook, ...] = ()
    after: Tuple[Hook, ...] = ()

    @property
    def id(self) -> str:
        return f"{self.suite}::{self.name}"


@dataclass
class CaseResult:
    """Outcome of one executed case."""

    suite: str
    case: str
    passed: bool
    error_type: str = ""
    error_message: str = ""
    elapsed_ms: float = 0.0


@dataclass
class _SuiteFrame:
    name: str
    cases: List[Tuple[str, Hook]] = field(default_factory=list)
    before: List[Hook] = field(default_factory=list)
    after: List[Hook] = field(default_factory=list)


def run_case(case: CollectedCase) -> None:
    """Execute *case* with its hooks.

    Every after-hook runs even when the case or another hook raised.  The
    case's own error wins; otherwise the first hook error is raised.
    """
    error: Optional[BaseException] = None
    with case_context(case.id):
        try:
            for hook in case.before:
                hook()
            case.fn()
        except BaseException as exc:
            error = exc
        for hook in case.after:
            try:
                hook()
            except BaseException as exc:
                if error is None:
                    error = exc
                else:
                    logger.warning("after-hook failed while the case was failing: %r", exc)
    if error is not None:
        raise error


class SuiteHost:
    """Collects suites registered through the four primitives."""

    def __init__(self) -> None:
        self.suites: List[str] = []
        self.cases: List[CollectedCase] = []
        self._frame: Optional[_SuiteFrame] = None

    def _require_frame(self, primitive: str) -> _SuiteFrame:
        if self._frame is None:
            raise BackendParityError(f"{primitive}() must be called inside register_suite()")
        return self._frame

    def register_suite(self, name: str, body: Callable[[], Any]) -> None:
        if self._frame is not None:
            raise BackendParityError(
                f"Suite {name!r} registered inside suite {self._frame.name!r}; nesting is not supported"
            )
        frame = _SuiteFrame(name)
        self._frame = frame
        try:
            body()
        finally:
            self._frame = None

        self.suites.append(name)
        for case_name, fn in frame.cases:
            self.cases.append(
                CollectedCase(frame.name, case_name, fn, tuple(frame.before), tuple(frame.after))
            )
        logger.debug("Registered suite %r with %d case(s)", name, len(frame.cases))

    def register_case(self, name: str, fn: Hook) -> None:
        self._require_frame("register_case").cases.append((name, fn))

    def before_each(self, fn: Hook) -> None:
        self._require_frame("before_each").before.append(fn)

    def after_each(self, fn: Hook) -> None:
        self._require_frame("after_each").after.append(fn)


class SequentialHost(SuiteHost):
    """Runs collected cases one at a time and records the outcomes."""

    def run(self) -> List[CaseResult]:
        results: List[CaseResult] = []
        for case in self.cases:
            logger.info("Running %s...", case.id)
            start = time.perf_counter()
            try:
                run_case(case)
            except Exception as exc:  # noqa: BLE001
                result = CaseResult(
                    suite=case.suite,
                    case=case.name,
                    passed=False,
                    error_type=type(exc).__name__,
                    error_message=str(exc),
                )
            else:
                result = CaseResult(suite=case.suite, case=case.name, passed=True)
            result.elapsed_ms = (time.perf_counter() - start) * 1000
            status = "PASS" if result.passed else "FAIL"
            logger.info("  [%s] %s (%.1fms)", status, case.id, result.elapsed_ms)
            results.append(result)
        return results


class PytestHost(SuiteHost):
    """Exposes collected cases as a parametrized pytest test function.

    Example::

        test_matmul = describe_math_cpu("matmul", MATMUL_TESTS).as_pytest()
    """

    def as_pytest(self) -> Callable[[CollectedCase], None]:
        import pytest

        cases = list(self.cases)

        @pytest.mark.parametrize("case", cases, ids=[c.id for c in cases])
        def run_parity_case(case: CollectedCase) -> None:
            run_case(case)

        return run_parity_case
