# plan.py
from __future__ import annotations

import logging
from typing import Dict, List, Set

from .errors import ActionNotFound, CyclicDependency, UndefinedReference
from .graph import DependencyGraph
from .model import Action, ActionCollection, Step
from .reference import Reference, resolve_reference

logger = logging.getLogger(__name__)


class ExecutionPlanner:
    """
    Turns "run action X" into a flat, duplicate-free list of step references.

    Every reference is validated while planning, so a bad definition fails
    before any step has a chance to run.
    """

    def __init__(self, collection: ActionCollection):
        self.collection = collection
        self._refs: List[Reference] = []
        self._planned: Set[Reference] = set()
        self._visiting: List[Reference] = []
        self._actions_done: Set[str] = set()
        self._actions_visiting: List[str] = []

    # ------------------------------------------------------------------
    # Linear plan
    # ------------------------------------------------------------------

    def plan(self, action_name: str) -> List[Reference]:
        if not self.collection.has_action(action_name):
            raise ActionNotFound(action_name)

        self._refs = []
        self._planned = set()
        self._visiting = []
        self._actions_done = set()
        self._actions_visiting = []

        self._plan_action(action_name, self.collection.get_action(action_name))

        logger.debug("plan for %s: %s", action_name, [str(r) for r in self._refs])
        return list(self._refs)

    def _plan_action(self, name: str, action: Action) -> None:
        if name in self._actions_done:
            return
        if name in self._actions_visiting:
            start = self._actions_visiting.index(name)
            raise CyclicDependency(self._actions_visiting[start:] + [name])

        self._actions_visiting.append(name)

        # action dependencies are planned before any of our own steps
        for dep in action.dependencies:
            if not self.collection.has_action(dep):
                raise ActionNotFound(dep, required_by=name)
            self._plan_action(dep, self.collection.get_action(dep))

        for step_name, step in action.steps.items():
            self._plan_step(Reference(name, step_name), step)

        self._actions_visiting.pop()
        self._actions_done.add(name)

    def _plan_step(self, ref: Reference, step: Step) -> None:
        if ref in self._planned:
            return
        if ref in self._visiting:
            start = self._visiting.index(ref)
            raise CyclicDependency([str(r) for r in self._visiting[start:] + [ref]])

        self._visiting.append(ref)

        for dep_ref in self.prerequisites(ref, step):
            if dep_ref in self._planned:
                continue
            self._plan_step(dep_ref, self.collection.get_step(dep_ref))

        self._visiting.pop()
        self._planned.add(ref)
        self._refs.append(ref)

    def prerequisites(self, ref: Reference, step: Step | None = None) -> List[Reference]:
        """
        Resolved dependencies + input of the step at ``ref``.

        Raises:
            UndefinedReference: if a prerequisite names a missing action or step.
        """
        if step is None:
            step = self.collection.get_step(ref)

        out: List[Reference] = []
        for text in step.prerequisites():
            dep_ref = resolve_reference(text, ref.action)
            if not self._exists(dep_ref):
                raise UndefinedReference(reference=text, step=ref.step, action=ref.action)
            out.append(dep_ref)
        return out

    def _exists(self, ref: Reference) -> bool:
        return (
            self.collection.has_action(ref.action)
            and self.collection.get_action(ref.action).has_step(ref.step)
        )

    # ------------------------------------------------------------------
    # Layered view
    # ------------------------------------------------------------------

    def graph(self, plan: List[Reference]) -> DependencyGraph:
        """
        Dependency graph over the planned references (as strings).

        Besides step prerequisites, each step depends on every planned step of
        the actions its own action (transitively) depends on, so a dependency
        action is finished before a dependent action starts.
        """
        g = DependencyGraph()
        by_action: Dict[str, List[Reference]] = {}
        for ref in plan:
            g.add_node(str(ref))
            by_action.setdefault(ref.action, []).append(ref)

        action_graph = self.collection.graph()
        upstream: Dict[str, List[str]] = {}

        for ref in plan:
            for dep_ref in self.prerequisites(ref):
                g.add_edge(str(ref), str(dep_ref))

            if ref.action not in upstream:
                sub = DependencyGraph()
                sub.add(action_graph, ref.action)
                upstream[ref.action] = [n for n in sub.nodes() if n != ref.action]

            for dep_action in upstream[ref.action]:
                for dep_ref in by_action.get(dep_action, []):
                    g.add_edge(str(ref), str(dep_ref))

        return g
