"""Public exception hierarchy for backend-parity.

All exceptions inherit from :class:`BackendParityError`, so callers can
``except BackendParityError`` to catch any library error, or be specific
with a subclass.

Example::

    from backend_parity.exceptions import LengthMismatchError, BackendParityError

    try:
        cpu_dot_product([1, 2, 3], [4, 5])
    except LengthMismatchError as e:
        print(e.actual_length, e.expected_length)
"""

from backend_parity._exceptions import (  # noqa: F401
    BackendError,
    BackendParityError,
    LengthMismatchError,
    OutOfBoundsError,
    UnknownFeatureError,
    ValidationError,
    ValueMismatchError,
)

__all__ = [
    "BackendParityError",
    "BackendError",
    "LengthMismatchError",
    "OutOfBoundsError",
    "UnknownFeatureError",
    "ValidationError",
    "ValueMismatchError",
]
