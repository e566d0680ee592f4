"""Math engines under test.

Each engine subclasses :class:`MathBackend` and is constructed from an
:class:`~backend_parity.environment.EnvironmentStack`, so the class itself
is a valid backend factory for the suite runner.

Adding a new engine:
1. Create a module in this package
2. Subclass :class:`MathBackend` (or :class:`TorchBackend`)
3. Register it in :data:`BACKEND_REGISTRY`
"""

from __future__ import annotations

from typing import Dict, Type

from backend_parity.backends.base import MathBackend
from backend_parity.backends.torch_backend import AcceleratedBackend, CPUBackend, TorchBackend

# Keyed by short name; ``verify`` runs them in insertion order.
BACKEND_REGISTRY: Dict[str, Type[MathBackend]] = {
    "cpu": CPUBackend,
    "accelerated": AcceleratedBackend,
}

__all__ = [
    "BACKEND_REGISTRY",
    "MathBackend",
    "TorchBackend",
    "CPUBackend",
    "AcceleratedBackend",
]
