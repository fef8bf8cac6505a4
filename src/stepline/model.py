# model.py
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from .errors import ActionNotFound, ConfigError, UndefinedReference
from .graph import DependencyGraph
from .reference import SEPARATOR, Reference, resolve_reference

# Values flowing between steps. None means "no value".
Value = Union[str, bytes, int, float, bool, Dict[str, Any], List[Any]]

DEFAULT_ACTIONS_FILE = "actions.json"


def _check_name(name: Any, kind: str, where: str) -> None:
    # names become the parts of "action.step" references
    if not isinstance(name, str) or not name or SEPARATOR in name:
        raise ConfigError(where, f"invalid {kind} name {name!r} (must be non-empty and must not contain {SEPARATOR!r})")


def _flag(data: Mapping[str, Any], key: str, where: str) -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise ConfigError(where, f"'{key}' must be a boolean")
    return value


@dataclass(frozen=True)
class Step:
    """A single unit of work inside an action, executed by the runner registered for ``type``."""
    type: str
    dependencies: List[str] = field(default_factory=list)
    input: Optional[str] = None
    output: bool = False
    continue_on_error: bool = False
    ignore_exit_codes: List[int] = field(default_factory=list)
    params: Dict[str, Any] = field(default_factory=dict)

    def prerequisites(self) -> List[str]:
        """Dependencies plus the input reference, in declaration order, without duplicates."""
        out: List[str] = []
        for dep in [*self.dependencies, *([self.input] if self.input else [])]:
            if dep not in out:
                out.append(dep)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, where: str = "step") -> "Step":
        if not isinstance(data, Mapping):
            raise ConfigError(where, "step must be an object")

        step_type = data.get("type")
        if not isinstance(step_type, str) or not step_type:
            raise ConfigError(where, "missing step 'type'")

        deps = data.get("dependencies") or []
        if not isinstance(deps, list) or not all(isinstance(d, str) for d in deps):
            raise ConfigError(where, "'dependencies' must be a list of strings")

        inp = data.get("input") or None
        if inp is not None and not isinstance(inp, str):
            raise ConfigError(where, "'input' must be a string reference")

        codes = data.get("ignore_exit_codes") or []
        if not isinstance(codes, list) or not all(isinstance(c, int) and not isinstance(c, bool) for c in codes):
            raise ConfigError(where, "'ignore_exit_codes' must be a list of integers")

        params = data.get("params") or {}
        if not isinstance(params, Mapping):
            raise ConfigError(where, "'params' must be an object")

        return cls(
            type=step_type,
            dependencies=list(deps),
            input=inp,
            output=_flag(data, "output", where),
            continue_on_error=_flag(data, "continue_on_error", where),
            ignore_exit_codes=list(codes),
            params=dict(params),
        )


@dataclass(frozen=True)
class Action:
    """A named group of steps plus the actions that must run first."""
    dependencies: List[str] = field(default_factory=list)
    steps: Dict[str, Step] = field(default_factory=dict)

    def has_step(self, name: str) -> bool:
        return name in self.steps

    def get_step(self, name: str, *, action: str = "?") -> Step:
        try:
            return self.steps[name]
        except KeyError:
            raise UndefinedReference(reference=f"{action}.{name}", step=name, action=action) from None

    def graph(self, name: str) -> DependencyGraph:
        """Step-level graph of this action (only prerequisites inside the same action)."""
        g = DependencyGraph()
        for step_name, step in self.steps.items():
            g.add_node(step_name)
            for dep in step.prerequisites():
                ref = resolve_reference(dep, name)
                if ref.action == name:
                    g.add_edge(step_name, ref.step)
        return g

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, where: str = "action") -> "Action":
        if not isinstance(data, Mapping):
            raise ConfigError(where, "action must be an object")

        deps = data.get("dependencies") or []
        if not isinstance(deps, list) or not all(isinstance(d, str) for d in deps):
            raise ConfigError(where, "'dependencies' must be a list of action names")

        raw_steps = data.get("steps") or {}
        if not isinstance(raw_steps, Mapping):
            raise ConfigError(where, "'steps' must be an object")

        for name in raw_steps:
            _check_name(name, "step", where)

        steps = {
            name: Step.from_dict(raw, where=f"{where}.steps.{name}")
            for name, raw in raw_steps.items()
        }
        return cls(dependencies=list(deps), steps=steps)


@dataclass(frozen=True)
class ActionCollection:
    """All actions known to one invocation, keyed by name."""
    actions: Dict[str, Action] = field(default_factory=dict)

    def has_action(self, name: str) -> bool:
        return name in self.actions

    def get_action(self, name: str) -> Action:
        try:
            return self.actions[name]
        except KeyError:
            raise ActionNotFound(name) from None

    def get_step(self, ref: Reference) -> Step:
        return self.get_action(ref.action).get_step(ref.step, action=ref.action)

    def names(self) -> List[str]:
        return list(self.actions)

    def graph(self) -> DependencyGraph:
        """Action-level graph: nodes are action names, edges are declared dependencies."""
        g = DependencyGraph()
        for name, action in self.actions.items():
            g.add_node(name)
            for dep in action.dependencies:
                g.add_edge(name, dep)
        return g

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, where: str = "actions") -> "ActionCollection":
        if not isinstance(data, Mapping) or "actions" not in data:
            raise ConfigError(where, "top-level key 'actions' is required")

        raw = data["actions"]
        if not isinstance(raw, Mapping):
            raise ConfigError(where, "'actions' must be an object")

        for name in raw:
            _check_name(name, "action", where)

        return cls(actions={
            name: Action.from_dict(body, where=f"{where}:{name}")
            for name, body in raw.items()
        })


# ----------------------------------------------------------------------
# Loading (local file)
# ----------------------------------------------------------------------

def load_actions(path: str | Path) -> ActionCollection:
    """
    Load an action collection from a JSON file.

    The document must look like:
        {"actions": {"<name>": {"dependencies": [...], "steps": {...}}}}
    """
    p = Path(path).expanduser().resolve()
    if not p.exists():
        raise FileNotFoundError(f"Actions file not found: {p}")

    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(str(p), f"invalid JSON: {e}") from e

    return ActionCollection.from_dict(data, where=p.name)
