"""Tests for feature configurations and the environment stack."""

from __future__ import annotations

import pytest

from backend_parity import environment
from backend_parity.environment import (
    ACCELERATOR_AVAILABLE,
    ACCELERATOR_DEVICE,
    HIGH_PRECISION_FLOAT_ENABLED,
    Environment,
    EnvironmentStack,
    Features,
    get_environment,
    reset_environment,
    set_environment,
)
from backend_parity.exceptions import BackendParityError, UnknownFeatureError


class TestFeatures:
    """Immutable feature mapping."""

    def test_is_read_only(self) -> None:
        features = Features({"A": 1})
        with pytest.raises(TypeError):
            features["A"] = 2  # type: ignore[index]

    def test_copies_input(self) -> None:
        raw = {"A": 1}
        features = Features(raw)
        raw["A"] = 2
        assert features["A"] == 1

    def test_json_is_stable(self) -> None:
        a = Features({"B": False, "A": 1})
        b = Features({"A": 1, "B": False})
        assert a.to_json() == b.to_json() == '{"A": 1, "B": false}'

    def test_equality_and_hash(self) -> None:
        assert Features(A=1) == Features({"A": 1})
        assert Features(A=1) == {"A": 1}
        assert hash(Features(A=1)) == hash(Features({"A": 1}))

    def test_from_json(self) -> None:
        features = Features.from_json('{"HIGH_PRECISION_FLOAT_ENABLED": false}')
        assert features[HIGH_PRECISION_FLOAT_ENABLED] is False

    def test_from_json_rejects_non_objects(self) -> None:
        with pytest.raises(BackendParityError):
            Features.from_json("[1, 2]")


class TestEnvironment:
    """Flag lookup and lazy evaluation."""

    def test_explicit_value_wins(self) -> None:
        env = Environment({HIGH_PRECISION_FLOAT_ENABLED: False})
        assert env.get(HIGH_PRECISION_FLOAT_ENABLED) is False

    def test_default_high_precision(self) -> None:
        assert Environment().get(HIGH_PRECISION_FLOAT_ENABLED) is True

    def test_unknown_flag(self) -> None:
        with pytest.raises(UnknownFeatureError, match="NO_SUCH_FLAG"):
            Environment().get("NO_SUCH_FLAG")

    def test_unknown_flag_is_key_error(self) -> None:
        with pytest.raises(KeyError):
            Environment().get("NO_SUCH_FLAG")

    def test_explicit_unknown_flag_is_returned(self) -> None:
        assert Environment({"CUSTOM": 3}).get("CUSTOM") == 3

    def test_evaluation_is_cached(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls = []

        def fake_device() -> str:
            calls.append(1)
            return "cuda"

        monkeypatch.setitem(environment._FEATURE_EVALUATORS, ACCELERATOR_DEVICE, fake_device)
        env = Environment()
        assert env.get(ACCELERATOR_DEVICE) == "cuda"
        assert env.get(ACCELERATOR_DEVICE) == "cuda"
        assert len(calls) == 1

    def test_accelerator_available_without_device(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(environment, "_probe_accelerator_device", lambda: "cpu")
        assert Environment().get(ACCELERATOR_AVAILABLE) is False

    def test_snapshot_lists_known_flags(self) -> None:
        snap = Environment({ACCELERATOR_DEVICE: "cpu", ACCELERATOR_AVAILABLE: False}).snapshot()
        assert snap[HIGH_PRECISION_FLOAT_ENABLED] is True
        assert snap[ACCELERATOR_DEVICE] == "cpu"


class TestEnvironmentStack:
    """Save/restore discipline."""

    def test_push_and_pop(self, stack: EnvironmentStack) -> None:
        default = stack.active
        override = Environment({"A": 1})
        stack.push(override)
        assert stack.active is override
        assert stack.depth == 1
        assert stack.pop() is override
        assert stack.active is default

    def test_default_cannot_be_popped(self, stack: EnvironmentStack) -> None:
        with pytest.raises(BackendParityError):
            stack.pop()

    def test_installed_restores_on_exception(self, stack: EnvironmentStack) -> None:
        default = stack.active
        with pytest.raises(RuntimeError):
            with stack.installed({HIGH_PRECISION_FLOAT_ENABLED: False}) as env:
                assert stack.active is env
                raise RuntimeError("boom")
        assert stack.active is default
        assert stack.depth == 0

    def test_nested_installs_restore_in_order(self, stack: EnvironmentStack) -> None:
        with stack.installed({"A": 1}) as outer:
            with stack.installed({"A": 2}):
                assert stack.active.get("A") == 2
            assert stack.active is outer
        assert stack.depth == 0

    def test_set_default_keeps_overrides(self, stack: EnvironmentStack) -> None:
        with stack.installed({"A": 1}) as env:
            replacement = Environment({"A": 0})
            stack.set_default(replacement)
            assert stack.active is env
        assert stack.active is replacement

    def test_set_active_replaces_override(self, stack: EnvironmentStack) -> None:
        default = stack.active
        with stack.installed({"A": 1}):
            replacement = Environment({"A": 2})
            stack.set_active(replacement)
            assert stack.active is replacement
            assert stack.depth == 1
        assert stack.active is default

    def test_save_and_restore(self, stack: EnvironmentStack) -> None:
        default = stack.active
        saved = stack.save()
        stack.push(Environment({"A": 1}))
        stack.set_default(Environment({"A": 0}))
        stack.restore(saved)
        assert stack.depth == 0
        assert stack.active is default


class TestProcessEnvironment:
    """Module-level helpers around the process-wide stack."""

    def test_set_environment(self) -> None:
        env = Environment({HIGH_PRECISION_FLOAT_ENABLED: False})
        set_environment(env)
        assert get_environment() is env

    def test_set_environment_inside_override_takes_effect(self, global_stack: EnvironmentStack) -> None:
        default = global_stack.default
        with global_stack.installed({HIGH_PRECISION_FLOAT_ENABLED: True}):
            set_environment(Environment({HIGH_PRECISION_FLOAT_ENABLED: False}))
            assert get_environment().get(HIGH_PRECISION_FLOAT_ENABLED) is False
        assert get_environment() is default

    def test_reset_environment(self) -> None:
        set_environment(Environment({HIGH_PRECISION_FLOAT_ENABLED: False}))
        reset_environment()
        assert get_environment().get(HIGH_PRECISION_FLOAT_ENABLED) is True

    def test_features_from_os_environ(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BACKEND_PARITY_FEATURES", '{"HIGH_PRECISION_FLOAT_ENABLED": false}')
        reset_environment()
        assert get_environment().get(HIGH_PRECISION_FLOAT_ENABLED) is False
