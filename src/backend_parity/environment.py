"""Feature configurations and the environment stack.

An :class:`Environment` answers "what can this process do?" through named
capability flags.  Flags are either set explicitly by a :class:`Features`
mapping or evaluated lazily from the hardware the first time they are read.

The active Environment lives on an :class:`EnvironmentStack`.  The bottom
entry is the process default; a suite that runs under an explicit feature
configuration pushes an Environment before each case and pops it afterwards.
:meth:`EnvironmentStack.installed` wraps the push/pop pair so the previous
Environment comes back on every exit path.

Configuration
-------------
``BACKEND_PARITY_FEATURES``
    JSON object of flag overrides applied to the default Environment, e.g.
    ``{"HIGH_PRECISION_FLOAT_ENABLED": false}``.
"""

from __future__ import annotations

import json
import os
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from backend_parity._exceptions import BackendParityError, UnknownFeatureError
from backend_parity._logging import get_logger

logger = get_logger(__name__)

_ENV_FEATURES = "BACKEND_PARITY_FEATURES"

HIGH_PRECISION_FLOAT_ENABLED = "HIGH_PRECISION_FLOAT_ENABLED"
ACCELERATOR_DEVICE = "ACCELERATOR_DEVICE"
ACCELERATOR_AVAILABLE = "ACCELERATOR_AVAILABLE"


# ---------------------------------------------------------------------------
# Feature probes
# ---------------------------------------------------------------------------


def _probe_accelerator_device() -> str:
    """Return the best torch device type for the accelerated engine."""
    import torch

    if torch.cuda.is_available():
        return "cuda"
    mps = getattr(torch.backends, "mps", None)
    if mps is not None and mps.is_available():
        return "mps"
    return "cpu"


_FEATURE_EVALUATORS: Dict[str, Callable[[], Any]] = {
    HIGH_PRECISION_FLOAT_ENABLED: lambda: True,
    ACCELERATOR_DEVICE: _probe_accelerator_device,
    ACCELERATOR_AVAILABLE: lambda: _probe_accelerator_device() != "cpu",
}


# ---------------------------------------------------------------------------
# Features
# ---------------------------------------------------------------------------


class Features(Mapping[str, Any]):
    """Immutable mapping from capability flag names to values."""

    __slots__ = ("_values",)

    def __init__(self, values: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> None:
        merged: Dict[str, Any] = dict(values or {})
        merged.update(kwargs)
        self._values = merged

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return dict(self._values) == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.to_json())

    def __repr__(self) -> str:
        return f"Features({self._values!r})"

    def to_json(self) -> str:
        """Stable textual rendering, used to tell suites apart."""
        return json.dumps(self._values, sort_keys=True, default=str)

    @classmethod
    def from_json(cls, text: str) -> "Features":
        data = json.loads(text)
        if not isinstance(data, dict):
            raise BackendParityError(
                f"Feature configuration must be a JSON object, got {type(data).__name__}"
            )
        return cls(data)


def _features_from_os_environ() -> Features:
    raw = os.environ.get(_ENV_FEATURES, "").strip()
    if not raw:
        return Features()
    features = Features.from_json(raw)
    logger.debug("Default features overridden by %s: %s", _ENV_FEATURES, features.to_json())
    return features


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


class Environment:
    """A set of capability flags, explicit or lazily probed.

    Args:
        features: Explicit flag values.  Flags not listed are evaluated on
            first :meth:`get` and cached for the lifetime of the instance.
    """

    def __init__(self, features: Optional[Mapping[str, Any]] = None) -> None:
        self.features = features if isinstance(features, Features) else Features(features)
        self._evaluated: Dict[str, Any] = {}

    def get(self, flag: str) -> Any:
        if flag in self.features:
            return self.features[flag]
        if flag in self._evaluated:
            return self._evaluated[flag]
        evaluator = _FEATURE_EVALUATORS.get(flag)
        if evaluator is None:
            raise UnknownFeatureError(flag)
        value = evaluator()
        self._evaluated[flag] = value
        logger.debug("Evaluated feature %s = %r", flag, value)
        return value

    def snapshot(self) -> Dict[str, Any]:
        """Return every known flag plus any explicit extras."""
        values = {flag: self.get(flag) for flag in _FEATURE_EVALUATORS}
        values.update(self.features)
        return values

    def __repr__(self) -> str:
        return f"Environment({self.features.to_json()})"


# ---------------------------------------------------------------------------
# Environment stack
# ---------------------------------------------------------------------------


class EnvironmentStack:
    """Save/restore stack of Environments.

    The bottom entry is the default Environment and is never popped.
    """

    def __init__(self, default: Optional[Environment] = None) -> None:
        self._entries: List[Environment] = [default if default is not None else Environment()]

    @property
    def active(self) -> Environment:
        return self._entries[-1]

    @property
    def default(self) -> Environment:
        return self._entries[0]

    @property
    def depth(self) -> int:
        """Number of overrides currently installed above the default."""
        return len(self._entries) - 1

    def set_default(self, env: Environment) -> None:
        self._entries[0] = env
        logger.debug("Default environment replaced: %r", env)

    def set_active(self, env: Environment) -> None:
        """Replace the top entry, which is the default when nothing is installed."""
        self._entries[-1] = env
        logger.debug("Active environment replaced (depth=%d): %r", self.depth, env)

    def save(self) -> Tuple[Environment, ...]:
        """Capture every entry so :meth:`restore` can undo later changes."""
        return tuple(self._entries)

    def restore(self, saved: Tuple[Environment, ...]) -> None:
        self._entries = list(saved)
        logger.debug("Environment restored (depth=%d): %r", self.depth, self.active)

    def push(self, env: Environment) -> None:
        self._entries.append(env)
        logger.debug("Environment installed (depth=%d): %r", self.depth, env)

    def pop(self) -> Environment:
        if self.depth == 0:
            raise BackendParityError("Cannot pop the default environment")
        env = self._entries.pop()
        logger.debug("Environment restored (depth=%d): %r", self.depth, self.active)
        return env

    @contextmanager
    def installed(self, features: Mapping[str, Any]) -> Iterator[Environment]:
        """Make *features* active for the duration of the ``with`` block."""
        env = Environment(features)
        self.push(env)
        try:
            yield env
        finally:
            self.pop()

    def reset(self) -> None:
        """Drop every override and rebuild the default from the OS environment."""
        self._entries = [Environment(_features_from_os_environ())]


ENV_STACK = EnvironmentStack(Environment(_features_from_os_environ()))


def get_environment() -> Environment:
    """Return the process-wide active Environment."""
    return ENV_STACK.active


def set_environment(env: Environment) -> None:
    """Replace the process-wide active Environment.

    Inside an installed configuration this replaces the override, not the
    default underneath it, so the change is visible immediately and is undone
    when the configuration is removed.
    """
    ENV_STACK.set_active(env)


def reset_environment() -> None:
    """Restore the process-wide stack to its start-up state."""
    ENV_STACK.reset()
