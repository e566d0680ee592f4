"""Tests for the approximate array comparator."""

from __future__ import annotations

import math

import pytest
import torch

from backend_parity.comparator import (
    Tolerance,
    expect_arrays_close,
    expect_numbers_close,
    test_epsilon,
    test_low_precision,
    test_low_precision_epsilon,
    tolerance_for,
)
from backend_parity.environment import HIGH_PRECISION_FLOAT_ENABLED, Environment
from backend_parity.exceptions import (
    BackendParityError,
    LengthMismatchError,
    ValidationError,
    ValueMismatchError,
)

NAN = float("nan")

HIGH = Environment({HIGH_PRECISION_FLOAT_ENABLED: True})
LOW = Environment({HIGH_PRECISION_FLOAT_ENABLED: False})


class TestExpectArraysClose:
    """Element-wise comparison rules."""

    def test_identical_nan_positions_pass(self) -> None:
        expect_arrays_close([1, 2, NAN], [1, 2, NAN], 0.01)

    def test_identical_nan_positions_pass_with_zero_epsilon(self) -> None:
        expect_arrays_close([NAN, 3.5, NAN], [NAN, 3.5, NAN], 0)

    @pytest.mark.parametrize("env", [HIGH, LOW], ids=["high", "low"])
    def test_identical_nan_positions_pass_with_default_epsilon(self, env: Environment) -> None:
        expect_arrays_close(torch.tensor([NAN, 1.0]), [NAN, 1.0], env=env)

    def test_within_epsilon_passes(self) -> None:
        expect_arrays_close([1.0, 2.0], [1.005, 2.0], 0.01)

    def test_outside_epsilon_cites_index_and_values(self) -> None:
        with pytest.raises(ValueMismatchError) as info:
            expect_arrays_close([1.0], [1.02], 0.01)
        err = info.value
        assert err.index == 0
        assert err.actual == 1.0
        assert err.expected == 1.02
        assert "actual[0] === 1.0" in str(err)
        assert "expected[0] === 1.02" in str(err)

    def test_reports_first_mismatch_only(self) -> None:
        with pytest.raises(ValueMismatchError) as info:
            expect_arrays_close([0, 5, 9], [0, 1, 1], 0.5)
        assert info.value.index == 1

    def test_nan_on_one_side_fails(self) -> None:
        with pytest.raises(ValueMismatchError) as info:
            expect_arrays_close([1, NAN], [1, 2], 100)
        assert info.value.index == 1
        with pytest.raises(ValueMismatchError):
            expect_arrays_close([1, 2], [1, NAN], 100)

    def test_length_mismatch_names_both_lengths(self) -> None:
        with pytest.raises(LengthMismatchError) as info:
            expect_arrays_close([1, 2], [1, 2, 3], 1e9)
        assert info.value.actual_length == 2
        assert info.value.expected_length == 3
        assert "(2 vs 3)" in str(info.value)

    def test_length_mismatch_ignores_content(self) -> None:
        with pytest.raises(LengthMismatchError):
            expect_arrays_close([NAN], [], 0)

    def test_self_comparison_at_zero_epsilon(self) -> None:
        g = torch.Generator().manual_seed(7)
        x = torch.rand(64, generator=g)
        expect_arrays_close(x, x.clone(), 0)

    def test_difference_exactly_epsilon_passes(self) -> None:
        expect_arrays_close([0.5], [0.25], 0.25)

    def test_accepts_multidimensional_tensors(self) -> None:
        actual = torch.tensor([[1.0, 2.0], [3.0, 4.0]])
        expect_arrays_close(actual, [1, 2, 3, 4], 0)

    def test_empty_buffers_pass(self) -> None:
        expect_arrays_close([], [], 0)

    def test_returns_none(self) -> None:
        assert expect_arrays_close([1], [1], 0) is None

    def test_errors_are_assertion_errors(self) -> None:
        with pytest.raises(AssertionError):
            expect_arrays_close([1], [2], 0)
        assert issubclass(ValueMismatchError, ValidationError)
        assert issubclass(LengthMismatchError, BackendParityError)


class TestDefaultTolerance:
    """Default epsilon comes from the active environment."""

    def test_high_precision_default_is_tight(self) -> None:
        with pytest.raises(ValueMismatchError):
            expect_arrays_close([1.0], [1.0005], env=HIGH)

    def test_low_precision_default_is_loose(self) -> None:
        expect_arrays_close([1.0], [1.005], env=LOW)

    def test_uses_active_environment(self, global_stack) -> None:
        with global_stack.installed({HIGH_PRECISION_FLOAT_ENABLED: False}):
            expect_arrays_close([1.0], [1.005])
        with pytest.raises(ValueMismatchError):
            expect_arrays_close([1.0], [1.005])

    def test_tolerance_values(self) -> None:
        assert test_epsilon(HIGH) == 1e-4
        assert test_low_precision(HIGH) == 3
        assert test_low_precision_epsilon(HIGH) == pytest.approx(1e-3)
        assert test_epsilon(LOW) == 1e-2
        assert test_low_precision(LOW) == 1
        assert test_low_precision_epsilon(LOW) == pytest.approx(1e-1)

    def test_tolerance_for_returns_record(self) -> None:
        tol = tolerance_for(LOW)
        assert isinstance(tol, Tolerance)
        assert tol == Tolerance(epsilon=1e-2, low_precision=1)

    def test_default_environment_is_high_precision(self) -> None:
        assert test_epsilon() == 1e-4


class TestExpectNumbersClose:
    """Scalar comparison."""

    def test_within_epsilon(self) -> None:
        expect_numbers_close(1.0, 1.05, 0.1)

    def test_outside_epsilon(self) -> None:
        with pytest.raises(ValueMismatchError, match="actual === 1.0"):
            expect_numbers_close(1.0, 1.5, 0.1)

    def test_nan_pair_passes(self) -> None:
        expect_numbers_close(math.nan, math.nan, 0)

    def test_accepts_zero_dim_tensors(self) -> None:
        expect_numbers_close(torch.tensor(3.0), 3, 0)
