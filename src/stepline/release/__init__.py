from .workflow import (
    Workflow,
    MultiBranchWorkflow,
    SingleBranchWorkflow,
    WORKFLOWS,
    workflow_from_config,
)
from .service import release, next_release, init_project

__all__ = [
    "Workflow",
    "MultiBranchWorkflow",
    "SingleBranchWorkflow",
    "WORKFLOWS",
    "workflow_from_config",
    "release",
    "next_release",
    "init_project",
]
