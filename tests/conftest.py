"""Shared test fixtures for backend-parity.

- Every test starts and ends with a clean process-wide environment stack, so
  a leaked feature override cannot change another test's tolerances.
- ``@pytest.mark.hardware`` tests are skipped unless ``--run-hardware`` is
  passed (they need a real CUDA or MPS device).
"""

from __future__ import annotations

from typing import Any, List, Optional

import pytest

from backend_parity.backends.base import MathBackend
from backend_parity.environment import ENV_STACK, EnvironmentStack, reset_environment


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register the ``--run-hardware`` CLI flag."""
    parser.addoption(
        "--run-hardware",
        action="store_true",
        default=False,
        help="Run tests that require a real accelerator",
    )


def pytest_collection_modifyitems(
    config: pytest.Config, items: List[pytest.Item]
) -> None:
    """Auto-skip hardware tests when --run-hardware is not set."""
    if config.getoption("--run-hardware"):
        return

    skip_hw = pytest.mark.skip(reason="needs --run-hardware flag and an accelerator")
    for item in items:
        if "hardware" in item.keywords:
            item.add_marker(skip_hw)


@pytest.fixture(autouse=True)
def _reset_environment_state(monkeypatch: pytest.MonkeyPatch):
    """Ensure a clean environment stack before and after every test."""
    monkeypatch.delenv("BACKEND_PARITY_FEATURES", raising=False)
    reset_environment()
    yield
    reset_environment()


class RecordingBackend(MathBackend):
    """Backend that records every lifecycle call into a shared list."""

    name = "recording"

    def __init__(
        self,
        events: List[str],
        stack: Optional[EnvironmentStack] = None,
        fail_on: Optional[str] = None,
    ) -> None:
        super().__init__(stack)
        self.events = events
        self.fail_on = fail_on
        self.events.append("construct")

    def _maybe_fail(self, op: str) -> None:
        if self.fail_on == op:
            raise RuntimeError(f"{op} failed")

    def start_scope(self) -> None:
        self.events.append("start_scope")
        self._maybe_fail("start_scope")
        super().start_scope()

    def end_scope(self, result: Optional[Any] = None) -> None:
        self.events.append(f"end_scope({result!r})")
        self._maybe_fail("end_scope")
        super().end_scope(result)

    def dispose(self) -> None:
        self.events.append("dispose")
        super().dispose()


@pytest.fixture
def events() -> List[str]:
    return []


@pytest.fixture
def stack() -> EnvironmentStack:
    """An isolated environment stack (not the process-wide one)."""
    return EnvironmentStack()


@pytest.fixture
def global_stack() -> EnvironmentStack:
    return ENV_STACK
