"""Reference numeric kernels for building expected values.

These run element by element in plain Python loops over float32 buffers.
They are deliberately unoptimized: each one is short enough to check by
reading it, and none of them goes through a backend under test.

Buffers are flat row-major ``torch.float32`` tensors; matrix dimensions are
passed alongside.
"""

from __future__ import annotations

from typing import Optional, Sequence, Union

import torch

from backend_parity._exceptions import LengthMismatchError, OutOfBoundsError

Buffer = Union[torch.Tensor, Sequence[float]]


def _flat(buf: Buffer) -> torch.Tensor:
    if isinstance(buf, torch.Tensor):
        return buf.detach().to("cpu", torch.float32).reshape(-1)
    return torch.tensor(list(buf), dtype=torch.float32)


def random_array_in_range(
    n: int,
    min_value: float,
    max_value: float,
    generator: Optional[torch.Generator] = None,
) -> torch.Tensor:
    """Return *n* values drawn uniformly from ``[min_value, max_value)``."""
    span = max_value - min_value
    return torch.rand(n, generator=generator, dtype=torch.float32) * span + min_value


def make_identity(n: int) -> torch.Tensor:
    """Return an ``n x n`` identity matrix as a flat buffer."""
    out = torch.zeros(n * n, dtype=torch.float32)
    for j in range(n):
        out[j * n + j] = 1
    return out


def set_value(
    m: torch.Tensor,
    num_rows: int,
    num_cols: int,
    value: float,
    row: int,
    column: int,
) -> None:
    """Write *value* at ``(row, column)`` of the row-major matrix *m*."""
    if row < 0 or row >= num_rows:
        raise OutOfBoundsError(f"row ({row}) must be in [0 {num_rows}].", row, num_rows)
    if column < 0 or column >= num_cols:
        raise OutOfBoundsError(
            f"column ({column}) must be in [0 {num_cols}].", column, num_cols
        )
    m[row * num_cols + column] = value


def cpu_multiply_matrix(
    a: Buffer,
    a_rows: int,
    a_cols: int,
    b: Buffer,
    b_rows: int,
    b_cols: int,
) -> torch.Tensor:
    """Return ``a @ b`` as a flat ``a_rows x b_cols`` buffer."""
    if a_cols != b_rows:
        raise LengthMismatchError(
            f"cpu_multiply_matrix: inner dimensions differ ({a_cols} vs {b_rows}).",
            a_cols,
            b_rows,
        )
    a_vals = _flat(a).tolist()
    b_vals = _flat(b).tolist()
    result = torch.zeros(a_rows * b_cols, dtype=torch.float32)
    for r in range(a_rows):
        a_offset = r * a_cols
        c_offset = r * b_cols
        for c in range(b_cols):
            d = 0.0
            for k in range(a_cols):
                d += a_vals[a_offset + k] * b_vals[k * b_cols + c]
            result[c_offset + c] = d
    return result


def cpu_dot_product(a: Buffer, b: Buffer) -> float:
    """Return the sum of element-wise products of *a* and *b*."""
    a_vals = _flat(a).tolist()
    b_vals = _flat(b).tolist()
    if len(a_vals) != len(b_vals):
        raise LengthMismatchError(
            f"cpu_dot_product: incompatible vectors ({len(a_vals)} vs {len(b_vals)}).",
            len(a_vals),
            len(b_vals),
        )
    d = 0.0
    for x, y in zip(a_vals, b_vals):
        d += x * y
    return d
