from .errors import SteplineError
from .graph import DependencyGraph
from .model import Action, ActionCollection, Step, load_actions
from .plan import ExecutionPlanner
from .reference import Reference, parse_reference, resolve_reference
from .registry import StepRegistry, default_registry
from .runner import ExecutionResult, Executor, StepState, execute

__all__ = [
    "SteplineError",
    "DependencyGraph",
    "Action",
    "ActionCollection",
    "Step",
    "load_actions",
    "ExecutionPlanner",
    "Reference",
    "parse_reference",
    "resolve_reference",
    "StepRegistry",
    "default_registry",
    "ExecutionResult",
    "Executor",
    "StepState",
    "execute",
]
