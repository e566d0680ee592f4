"""Math-engine protocol.

Every engine under test implements this interface.  The suite runner only
touches the three lifecycle methods (``start_scope``, ``end_scope``,
``dispose``); the numeric operations are called by individual test bodies.

This is a simple class protocol (not an ABC) so an engine only needs to
override what it supports.

Scopes
------
``start_scope()`` opens a region in which every tensor an operation returns
is recorded.  ``end_scope(result)`` closes the innermost region and releases
its tensors, except *result*, which moves to the enclosing scope so the
caller can keep using it.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from backend_parity._exceptions import BackendError
from backend_parity._logging import get_logger
from backend_parity.environment import ENV_STACK, Environment, EnvironmentStack

logger = get_logger(__name__)


class MathBackend:
    """Protocol for a math engine with scoped resource tracking.

    Args:
        stack: Environment stack the engine reads its feature flags from.
            Defaults to the process-wide stack.
    """

    #: Short identifier, e.g. ``"cpu"``
    name: str = ""

    #: Human-readable display name
    display_name: str = ""

    def __init__(self, stack: Optional[EnvironmentStack] = None) -> None:
        self._stack = stack if stack is not None else ENV_STACK
        self._scopes: List[List[Any]] = []
        self._disposed = False

    # -- Environment ---------------------------------------------------------

    @property
    def environment(self) -> Environment:
        """The Environment active right now (read on every access)."""
        return self._stack.active

    # -- Lifecycle -----------------------------------------------------------

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def scope_depth(self) -> int:
        return len(self._scopes)

    @property
    def num_tracked(self) -> int:
        """Number of live tensors recorded across all open scopes."""
        return sum(len(scope) for scope in self._scopes)

    def start_scope(self) -> None:
        self._check_alive("start_scope")
        self._scopes.append([])
        logger.debug("%s: start_scope (depth=%d)", self.name, self.scope_depth)

    def end_scope(self, result: Optional[Any] = None) -> None:
        self._check_alive("end_scope")
        if not self._scopes:
            raise BackendError(f"{self.name}: end_scope() called with no open scope")
        scope = self._scopes.pop()
        kept = [t for t in scope if result is not None and t is result]
        released = len(scope) - len(kept)
        scope.clear()
        if kept and self._scopes:
            self._scopes[-1].extend(kept)
        logger.debug(
            "%s: end_scope released %d tensor(s), retained %d (depth=%d)",
            self.name, released, len(kept), self.scope_depth,
        )

    def dispose(self) -> None:
        if self._disposed:
            return
        if self._scopes:
            logger.debug(
                "%s: dispose with %d open scope(s), releasing", self.name, self.scope_depth
            )
        self._scopes.clear()
        self._disposed = True
        logger.debug("%s: disposed", self.name)

    # -- Helpers for subclasses ----------------------------------------------

    def _check_alive(self, op: str) -> None:
        if self._disposed:
            raise BackendError(f"{self.name}: {op}() called after dispose()")

    def _track(self, value: Any) -> Any:
        """Record *value* in the innermost open scope and return it."""
        if self._scopes:
            self._scopes[-1].append(value)
        return value

    @classmethod
    def summary(cls) -> Dict[str, Any]:
        return {"name": cls.name, "display_name": cls.display_name}
