import threading

import pytest

from stepline.errors import (
    ActionNotFound,
    CyclicDependency,
    InputNotFound,
    NilOutput,
    NoRunnerForType,
    UndefinedReference,
)
from stepline.model import ActionCollection
from stepline.registry import StepRegistry
from stepline.runner import Executor, OutputStore, StepState, execute


def _executor(actions, registry, console, **kwargs):
    return Executor(ActionCollection.from_dict({"actions": actions}), registry, console=console, **kwargs)


def test_build_passes_output_to_dependent(collection, registry, quiet_console):
    result = Executor(collection, registry, console=quiet_console).execute("deploy")

    assert result.ok
    assert result.errors == {}
    assert result.outputs == {"build.compile": "binary"}
    assert registry.calls == ["emit", "echo", "echo"]
    assert all(state is StepState.SUCCEEDED for state in result.states.values())


def test_steps_in_one_front_keep_independent_outputs(registry, quiet_console):
    executor = _executor({
        "pair": {
            "steps": {
                "a": {"type": "emit", "output": True, "params": {"value": "A"}},
                "b": {"type": "emit", "output": True, "params": {"value": "B"}},
            },
        },
    }, registry, quiet_console)

    result = executor.execute("pair")

    assert result.ok
    assert result.outputs == {"pair.a": "A", "pair.b": "B"}


def test_failure_in_front_halts_before_dependents(registry, quiet_console):
    executor = _executor({
        "mixed": {
            "steps": {
                "ok": {"type": "emit", "output": True, "params": {"value": "x", "id": "ok"}},
                "bad": {"type": "fail", "params": {"id": "bad"}},
                "after": {"type": "echo", "input": "ok", "dependencies": ["bad"], "params": {"id": "after"}},
            },
        },
    }, registry, quiet_console)

    result = executor.execute("mixed")

    assert not result.ok
    assert list(result.errors) == ["mixed"]
    assert list(result.errors["mixed"]) == ["bad"]
    assert isinstance(result.errors["mixed"]["bad"], RuntimeError)
    assert result.failed() == ["mixed.bad"]

    assert result.states["mixed.ok"] is StepState.SUCCEEDED
    assert result.states["mixed.bad"] is StepState.FAILED
    assert result.states["mixed.after"] is StepState.PLANNED
    assert result.outputs == {"mixed.ok": "x"}
    assert sorted(registry.calls) == ["bad", "ok"]


def test_all_failures_of_a_front_are_collected(registry, quiet_console):
    executor = _executor({
        "two": {
            "steps": {
                "x": {"type": "fail", "params": {"message": "x broke"}},
                "y": {"type": "fail", "params": {"message": "y broke"}},
            },
        },
    }, registry, quiet_console)

    result = executor.execute("two")

    assert sorted(result.errors["two"]) == ["x", "y"]
    assert str(result.errors["two"]["y"]) == "y broke"


def test_linear_stops_at_first_failure(registry, quiet_console):
    executor = _executor({
        "seq": {
            "steps": {
                "bad": {"type": "fail", "params": {"id": "bad"}},
                "ok": {"type": "emit", "params": {"id": "ok"}},
            },
        },
    }, registry, quiet_console)

    result = executor.execute("seq", linear=True)

    assert registry.calls == ["bad"]
    assert result.failed() == ["seq.bad"]
    assert result.states["seq.ok"] is StepState.PLANNED


def test_concurrent_runs_siblings_of_a_failing_step(registry, quiet_console):
    executor = _executor({
        "seq": {
            "steps": {
                "bad": {"type": "fail", "params": {"id": "bad"}},
                "ok": {"type": "emit", "params": {"id": "ok"}},
            },
        },
    }, registry, quiet_console)

    result = executor.execute("seq")

    assert sorted(registry.calls) == ["bad", "ok"]
    assert result.states["seq.ok"] is StepState.SUCCEEDED


def test_linear_and_concurrent_agree_on_success(collection, registry, quiet_console):
    executor = Executor(collection, registry, console=quiet_console)

    linear = executor.execute("deploy", linear=True)
    layered = executor.execute("deploy")

    assert linear.outputs == layered.outputs
    assert linear.plan == layered.plan


def test_declared_output_must_not_be_none(registry, quiet_console):
    result = _executor({
        "act": {"steps": {"s": {"type": "none", "output": True}}},
    }, registry, quiet_console).execute("act")

    err = result.errors["act"]["s"]
    assert isinstance(err, NilOutput)
    assert err.step == "act.s"


def test_unknown_step_type_is_a_step_error(registry, quiet_console):
    result = _executor({
        "act": {"steps": {"s": {"type": "teleport"}}},
    }, registry, quiet_console).execute("act")

    err = result.errors["act"]["s"]
    assert isinstance(err, NoRunnerForType)
    assert err.type == "teleport"
    assert err.step == "act.s"


def test_input_from_step_without_output(registry, quiet_console):
    result = _executor({
        "act": {
            "steps": {
                "a": {"type": "emit", "params": {"value": "dropped"}},
                "b": {"type": "echo", "input": "a"},
            },
        },
    }, registry, quiet_console).execute("act")

    assert result.states["act.a"] is StepState.SUCCEEDED
    err = result.errors["act"]["b"]
    assert isinstance(err, InputNotFound)
    assert err.reference == "act.a"


def test_definition_errors_run_nothing(collection, registry, quiet_console):
    with pytest.raises(UndefinedReference):
        Executor(collection, registry, console=quiet_console).execute("broken")
    assert registry.calls == []


def test_missing_action(collection, registry, quiet_console):
    with pytest.raises(ActionNotFound):
        Executor(collection, registry, console=quiet_console).execute("nope")


def test_action_cycle_is_rejected(registry, quiet_console):
    executor = _executor({
        "a": {"dependencies": ["b"], "steps": {"s": {"type": "emit"}}},
        "b": {"dependencies": ["a"], "steps": {"s": {"type": "emit"}}},
    }, registry, quiet_console)

    with pytest.raises(CyclicDependency):
        executor.execute("a")
    assert registry.calls == []


def test_step_flags_are_passed_to_runner(registry, quiet_console):
    result = _executor({
        "act": {
            "steps": {
                "s": {
                    "type": "params",
                    "output": True,
                    "continue_on_error": True,
                    "ignore_exit_codes": [1, 2],
                    "params": {"command": "true"},
                },
                "keep": {
                    "type": "params",
                    "output": True,
                    "continue_on_error": True,
                    "params": {"continue_on_error": False},
                },
            },
        },
    }, registry, quiet_console).execute("act")

    assert result.outputs["act.s"] == {
        "command": "true",
        "continue_on_error": True,
        "ignore_exit_codes": [1, 2],
    }
    assert result.outputs["act.keep"] == {"continue_on_error": False}


def test_single_worker(collection, registry, quiet_console):
    result = Executor(collection, registry, max_workers=1, console=quiet_console).execute("deploy")
    assert result.ok


def test_module_level_execute(collection, registry):
    result = execute(collection, "build", registry=registry, linear=True)
    assert result.outputs == {"build.compile": "binary"}


def test_each_execution_gets_a_fresh_store(collection, registry, quiet_console):
    executor = Executor(collection, registry, console=quiet_console)
    first = executor.execute("build")
    second = executor.execute("build")

    assert first.outputs == second.outputs
    assert first.outputs is not second.outputs


def test_output_store():
    store = OutputStore()
    store.put("a.b", 1)

    assert store.get("a.b") == 1
    assert "a.b" in store
    snap = store.snapshot()
    store.put("a.c", 2)
    assert snap == {"a.b": 1}

    with pytest.raises(InputNotFound):
        store.get("missing.step")


def test_front_members_run_concurrently(quiet_console):
    barrier = threading.Barrier(2, timeout=5)
    registry = StepRegistry()

    @registry.step("meet")
    def meet(input, params):
        # both steps must be inside the runner at the same time to pass
        barrier.wait()
        return params["value"]

    actions = {
        "pair": {
            "steps": {
                "left": {"type": "meet", "output": True, "params": {"value": "L"}},
                "right": {"type": "meet", "output": True, "params": {"value": "R"}},
            },
        },
    }

    result = _executor(actions, registry, quiet_console).execute("pair")
    assert result.ok, result.errors
    assert result.outputs == {"pair.left": "L", "pair.right": "R"}


def test_linear_mode_runs_one_step_at_a_time(quiet_console):
    barrier = threading.Barrier(2, timeout=0.5)
    registry = StepRegistry()

    @registry.step("meet")
    def meet(input, params):
        barrier.wait()
        return None

    actions = {"pair": {"steps": {"left": {"type": "meet"}, "right": {"type": "meet"}}}}

    result = _executor(actions, registry, quiet_console).execute("pair", linear=True)

    assert result.failed() == ["pair.left"]
    assert isinstance(result.errors["pair"]["left"], threading.BrokenBarrierError)
    assert result.states["pair.right"] is StepState.PLANNED
