"""Custom exception hierarchy for backend-parity.

Comparison failures derive from :class:`AssertionError` as well as the
library base class, so pytest reports them as ordinary assertion failures
while callers can still ``except BackendParityError``.

Usage::

    from backend_parity._exceptions import ValueMismatchError

    try:
        expect_arrays_close(actual, expected)
    except ValueMismatchError as e:
        print(f"first bad index: {e.index}")
"""

from __future__ import annotations

from typing import Any


class BackendParityError(Exception):
    """Base exception for all backend-parity errors."""


class ValidationError(BackendParityError, AssertionError):
    """Raised when an actual result does not match its expected value."""


class LengthMismatchError(ValidationError):
    """Raised when two buffers that must line up have different lengths."""

    def __init__(self, message: str, actual_length: int, expected_length: int) -> None:
        super().__init__(message)
        self.actual_length = actual_length
        self.expected_length = expected_length


class ValueMismatchError(ValidationError):
    """Raised at the first index where two buffers differ beyond epsilon.

    A NaN on one side only is also a mismatch.
    """

    def __init__(self, message: str, index: int, actual: float, expected: float) -> None:
        super().__init__(message)
        self.index = index
        self.actual = actual
        self.expected = expected


class OutOfBoundsError(BackendParityError, IndexError):
    """Raised when a write addresses a row or column outside the matrix."""

    def __init__(self, message: str, index: int, bound: int) -> None:
        super().__init__(message)
        self.index = index
        self.bound = bound


class UnknownFeatureError(BackendParityError, KeyError):
    """Raised when an Environment is asked for a flag it cannot evaluate."""

    def __init__(self, flag: Any) -> None:
        super().__init__(flag)
        self.flag = flag

    def __str__(self) -> str:
        return f"Unknown feature flag: {self.flag!r}"


class BackendError(BackendParityError):
    """Raised when a math backend is used outside its lifecycle.

    Examples:
    - an operation is called after ``dispose()``
    - ``end_scope()`` is called with no scope open
    """
