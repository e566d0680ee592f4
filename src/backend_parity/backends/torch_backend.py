"""Torch-based math engines.

:class:`CPUBackend` is the reference engine: float32 storage on the CPU.

:class:`AcceleratedBackend` runs on the probed accelerator (CUDA, then MPS).
When no accelerator is present it falls back to the CPU with a warning, so
suites still run in CI.  If the active Environment reports
``HIGH_PRECISION_FLOAT_ENABLED = False``, values are stored as float16 and
widened to float32 only while an operation computes.
"""

from __future__ import annotations

from typing import Optional, Sequence, Union

import torch

from backend_parity._exceptions import LengthMismatchError
from backend_parity._logging import get_logger
from backend_parity.backends.base import MathBackend
from backend_parity.environment import (
    ACCELERATOR_DEVICE,
    HIGH_PRECISION_FLOAT_ENABLED,
    EnvironmentStack,
)

logger = get_logger(__name__)

Values = Union[torch.Tensor, Sequence[float]]


class TorchBackend(MathBackend):
    """Math engine backed by torch tensors on a single device."""

    name = "torch"
    display_name = "PyTorch"

    def __init__(
        self,
        device: str = "cpu",
        stack: Optional[EnvironmentStack] = None,
    ) -> None:
        super().__init__(stack)
        self.device = torch.device(device)

    # -- Storage -------------------------------------------------------------

    @property
    def storage_dtype(self) -> torch.dtype:
        return torch.float32

    def _store(self, t: torch.Tensor) -> torch.Tensor:
        return self._track(t.to(self.device, self.storage_dtype))

    @staticmethod
    def _load(t: torch.Tensor) -> torch.Tensor:
        return t.to(torch.float32)

    def tensor(self, values: Values, shape: Optional[Sequence[int]] = None) -> torch.Tensor:
        """Upload *values* to the engine, optionally reshaped."""
        self._check_alive("tensor")
        t = torch.as_tensor(values, dtype=torch.float32)
        if shape is not None:
            t = t.reshape(tuple(shape))
        return self._store(t)

    def read(self, t: torch.Tensor) -> torch.Tensor:
        """Download *t* as a flat float32 CPU buffer."""
        self._check_alive("read")
        return t.detach().to("cpu", torch.float32).reshape(-1)

    # -- Operations ----------------------------------------------------------

    def matmul(self, a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
        self._check_alive("matmul")
        if a.dim() != 2 or b.dim() != 2:
            raise ValueError(f"matmul expects 2-D operands, got {a.dim()}-D and {b.dim()}-D")
        if a.shape[1] != b.shape[0]:
            raise LengthMismatchError(
                f"matmul: inner dimensions differ ({a.shape[1]} vs {b.shape[0]}).",
                a.shape[1],
                b.shape[0],
            )
        return self._store(self._load(a) @ self._load(b))

    def dot(self, a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
        self._check_alive("dot")
        if a.numel() != b.numel():
            raise LengthMismatchError(
                f"dot: incompatible vectors ({a.numel()} vs {b.numel()}).",
                a.numel(),
                b.numel(),
            )
        return self._store(torch.dot(self._load(a).reshape(-1), self._load(b).reshape(-1)))

    def add(self, a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
        self._check_alive("add")
        return self._store(self._load(a) + self._load(b))

    def sub(self, a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
        self._check_alive("sub")
        return self._store(self._load(a) - self._load(b))

    def mul(self, a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
        self._check_alive("mul")
        return self._store(self._load(a) * self._load(b))

    def relu(self, a: torch.Tensor) -> torch.Tensor:
        self._check_alive("relu")
        return self._store(torch.relu(self._load(a)))

    def sum(self, a: torch.Tensor) -> torch.Tensor:
        self._check_alive("sum")
        return self._store(self._load(a).sum())


class CPUBackend(TorchBackend):
    """Reference engine: float32 on the CPU, no feature-dependent behaviour."""

    name = "cpu"
    display_name = "Reference CPU"

    def __init__(self, stack: Optional[EnvironmentStack] = None) -> None:
        super().__init__("cpu", stack)


class AcceleratedBackend(TorchBackend):
    """Accelerated engine on the best available torch device."""

    name = "accelerated"
    display_name = "Accelerated"

    def __init__(self, stack: Optional[EnvironmentStack] = None) -> None:
        super().__init__("cpu", stack)
        device = self.environment.get(ACCELERATOR_DEVICE)
        if device == "cpu":
            logger.warning(
                "No accelerator available; the accelerated engine is running on "
                "'cpu'. Parity results will not exercise device kernels."
            )
        self.device = torch.device(device)

    @property
    def storage_dtype(self) -> torch.dtype:
        # Read per call so a feature configuration installed after
        # construction still takes effect.
        if self.environment.get(HIGH_PRECISION_FLOAT_ENABLED):
            return torch.float32
        return torch.float16
