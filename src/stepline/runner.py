# runner.py
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import ActionNotFound, CyclicDependency, InputNotFound, NilOutput, NoRunnerForType
from .graph import DependencyGraph
from .model import ActionCollection, Step, Value
from .plan import ExecutionPlanner
from .reference import Reference, resolve_reference
from .registry import StepRegistry, default_registry
from .ui.console import Console, get_console

logger = logging.getLogger(__name__)


class StepState(str, Enum):
    PLANNED = "planned"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# ----------------------------------------------------------------------
# Run-scoped state
# ----------------------------------------------------------------------

class OutputStore:
    """Values produced during one execution, keyed by reference string."""

    def __init__(self) -> None:
        self._values: Dict[str, Value] = {}
        self._lock = threading.Lock()

    def put(self, ref: str, value: Value) -> None:
        with self._lock:
            self._values[ref] = value

    def get(self, ref: str) -> Value:
        with self._lock:
            if ref not in self._values:
                raise InputNotFound(ref)
            return self._values[ref]

    def __contains__(self, ref: object) -> bool:
        with self._lock:
            return ref in self._values

    def snapshot(self) -> Dict[str, Value]:
        with self._lock:
            return dict(self._values)


@dataclass
class ExecutionResult:
    """
    Outcome of Executor.execute().

    errors maps action -> step -> exception for every step that failed; it is
    empty when everything succeeded. Steps that never started stay PLANNED.
    """
    action: str
    plan: List[Reference]
    errors: Dict[str, Dict[str, Exception]] = field(default_factory=dict)
    outputs: Dict[str, Value] = field(default_factory=dict)
    states: Dict[str, StepState] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def failed(self) -> List[str]:
        return [f"{a}.{s}" for a, steps in self.errors.items() for s in steps]


class _Run:
    def __init__(self, plan: List[Reference]) -> None:
        self.store = OutputStore()
        self.errors: Dict[str, Dict[str, Exception]] = {}
        self.states: Dict[str, StepState] = {str(r): StepState.PLANNED for r in plan}
        self.lock = threading.Lock()

    def set_state(self, ref: Reference, state: StepState) -> None:
        with self.lock:
            self.states[str(ref)] = state

    def fail(self, ref: Reference, exc: Exception) -> None:
        with self.lock:
            self.states[str(ref)] = StepState.FAILED
            self.errors.setdefault(ref.action, {})[ref.step] = exc


# ----------------------------------------------------------------------
# Executor
# ----------------------------------------------------------------------

class Executor:
    """
    Runs an action and everything it depends on.

    Two disciplines:
      - layered (default): steps are grouped into fronts of mutually
        independent steps; each front runs concurrently and all failures in a
        front are collected before execution stops.
      - linear: the plan runs in order and the first failure stops the run.
    """

    def __init__(
        self,
        collection: ActionCollection,
        registry: StepRegistry | None = None,
        *,
        max_workers: int | None = None,
        console: Console | None = None,
    ):
        self.collection = collection
        self.registry = registry if registry is not None else default_registry()
        self.max_workers = max_workers
        self.console = console

    def execute(self, action_name: str, *, linear: bool = False) -> ExecutionResult:
        """
        Execute ``action_name``.

        Raises:
            ActionNotFound, UndefinedReference, InvalidReference, CyclicDependency:
                definition errors, raised before any step runs.
        """
        plan, step_graph = self.prepare(action_name)
        run = _Run(plan)

        if linear:
            self._run_linear(plan, run)
        else:
            self._run_fronts(step_graph.iterate(), {str(r): r for r in plan}, run)

        return ExecutionResult(
            action=action_name,
            plan=plan,
            errors=run.errors,
            outputs=run.store.snapshot(),
            states=dict(run.states),
        )

    def prepare(self, action_name: str) -> tuple[List[Reference], DependencyGraph]:
        """Validate the definitions reachable from ``action_name`` and build the plan."""
        if not self.collection.has_action(action_name):
            raise ActionNotFound(action_name)

        reachable = DependencyGraph()
        reachable.add(self.collection.graph(), action_name)
        cycle = reachable.find_cycle()
        if cycle:
            raise CyclicDependency(cycle)

        planner = ExecutionPlanner(self.collection)
        plan = planner.plan(action_name)

        step_graph = planner.graph(plan)
        cycle = step_graph.find_cycle()
        if cycle:
            raise CyclicDependency(cycle)

        return plan, step_graph

    # ------------------------------------------------------------------
    # Disciplines
    # ------------------------------------------------------------------

    def _run_linear(self, plan: List[Reference], run: _Run) -> None:
        for ref in plan:
            if not self._execute_step(ref, run):
                return

    def _run_fronts(self, fronts: List[List[str]], refs_by_key: Dict[str, Reference], run: _Run) -> None:
        for idx, front in enumerate(fronts):
            refs = [refs_by_key[node] for node in front]
            logger.debug("front %d: %s", idx + 1, front)
            self._ui().print_front(idx + 1, front)

            workers = self.max_workers or len(refs)
            with ThreadPoolExecutor(max_workers=max(1, workers)) as pool:
                futures = {pool.submit(self._execute_step, ref, run): ref for ref in refs}
                # barrier: the whole front finishes before the next one starts
                for future in as_completed(futures):
                    future.result()

            if run.errors:
                logger.info("stopping after front %d: %s", idx + 1, sorted(
                    f"{a}.{s}" for a, steps in run.errors.items() for s in steps
                ))
                return

    # ------------------------------------------------------------------
    # Single step
    # ------------------------------------------------------------------

    def _execute_step(self, ref: Reference, run: _Run) -> bool:
        """Run one step; failures are recorded on ``run`` and reported as False."""
        run.set_state(ref, StepState.RUNNING)
        logger.info("executing step %s", ref)
        self._ui().print_step(str(ref))

        try:
            step = self.collection.get_step(ref)

            value: Optional[Value] = None
            if step.input:
                input_ref = resolve_reference(step.input, ref.action)
                value = run.store.get(str(input_ref))

            try:
                runner = self.registry.get(step.type)
            except NoRunnerForType:
                raise NoRunnerForType(step.type, step=str(ref)) from None

            out = runner(value, self._params_for(step))

            if step.output:
                if out is None:
                    raise NilOutput(str(ref))
                run.store.put(str(ref), out)

        except Exception as e:
            run.fail(ref, e)
            logger.info("step %s failed: %s", ref, e)
            self._ui().print_step_failed(str(ref), str(e))
            return False

        run.set_state(ref, StepState.SUCCEEDED)
        logger.debug("step %s executed", ref)
        return True

    @staticmethod
    def _params_for(step: Step) -> Dict[str, Any]:
        params = dict(step.params)
        if step.continue_on_error:
            params.setdefault("continue_on_error", True)
        if step.ignore_exit_codes:
            params.setdefault("ignore_exit_codes", list(step.ignore_exit_codes))
        return params

    def _ui(self) -> Console:
        return self.console if self.console is not None else get_console()


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def execute(
    collection: ActionCollection,
    action_name: str,
    *,
    registry: StepRegistry | None = None,
    linear: bool = False,
    max_workers: int | None = None,
) -> ExecutionResult:
    return Executor(collection, registry, max_workers=max_workers).execute(action_name, linear=linear)
