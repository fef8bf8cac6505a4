# registry.py
from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional

from .errors import AlreadyRegistered, NoRunnerForType
from .model import Value

# runner(input, params) -> output (None = no value)
StepRunner = Callable[[Optional[Value], Mapping[str, Any]], Optional[Value]]


class StepRegistry:
    """
    Mapping from step type name to step runner.

    Registration never overwrites: a second registration under the same name
    raises AlreadyRegistered so built-ins cannot be shadowed by accident.
    Lookups are read-only and safe to share between worker threads.
    """

    def __init__(self) -> None:
        self._runners: Dict[str, StepRunner] = {}

    def register(self, name: str, runner: StepRunner) -> None:
        if name in self._runners:
            raise AlreadyRegistered(name)
        self._runners[name] = runner

    def step(self, name: str) -> Callable[[StepRunner], StepRunner]:
        """Decorator form of register()."""
        def deco(fn: StepRunner) -> StepRunner:
            self.register(name, fn)
            return fn
        return deco

    def get(self, name: str) -> StepRunner:
        try:
            return self._runners[name]
        except KeyError:
            raise NoRunnerForType(name) from None

    def names(self) -> List[str]:
        return sorted(self._runners)

    def __contains__(self, name: object) -> bool:
        return name in self._runners


def default_registry() -> StepRegistry:
    """A fresh registry holding the built-in runners (exec, print)."""
    from .step_workflows.exec_step import run_exec
    from .step_workflows.print_step import run_print

    registry = StepRegistry()
    registry.register("exec", run_exec)
    registry.register("print", run_print)
    return registry
