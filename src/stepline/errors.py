# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


class SteplineError(Exception):
    """Base class for every error raised by stepline."""


# ----------------------------------------------------------------------
# Definition errors (raised before anything runs)
# ----------------------------------------------------------------------

@dataclass
class ActionNotFound(SteplineError):
    action: str
    required_by: Optional[str] = None

    def __str__(self) -> str:
        if self.required_by:
            return (
                f"action {self.required_by} depends on {self.action}, "
                f"but {self.action} is not defined (actions can only depend on other actions)"
            )
        return f"action {self.action} not found"


@dataclass
class UndefinedReference(SteplineError):
    """A step names a prerequisite (dependency or input) that does not exist."""
    reference: str
    step: str
    action: str

    def __str__(self) -> str:
        return (
            f"step {self.step} of action {self.action} depends on {self.reference}, "
            f"but {self.reference} is not defined"
        )


@dataclass
class InvalidReference(SteplineError):
    text: str

    def __str__(self) -> str:
        return f"invalid reference {self.text!r} (expected '<action>.<step>' or '<step>')"


@dataclass
class CyclicDependency(SteplineError):
    nodes: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        if self.nodes:
            return f"cyclic dependency detected: {', '.join(self.nodes)}"
        return "cyclic dependency detected"


# ----------------------------------------------------------------------
# Registry errors
# ----------------------------------------------------------------------

@dataclass
class AlreadyRegistered(SteplineError):
    name: str

    def __str__(self) -> str:
        return f"step runner {self.name!r} already registered"


# ----------------------------------------------------------------------
# Runtime step errors (collected per step)
# ----------------------------------------------------------------------

@dataclass
class NoRunnerForType(SteplineError):
    type: str
    step: Optional[str] = None

    def __str__(self) -> str:
        if self.step:
            return f"no runner for step {self.step} and type {self.type}"
        return f"no runner registered for type {self.type}"


@dataclass
class InputNotFound(SteplineError):
    reference: str

    def __str__(self) -> str:
        return f"failed to get input {self.reference}: output not found"


@dataclass
class NilOutput(SteplineError):
    step: str

    def __str__(self) -> str:
        return f"output of step {self.step} is nil"


@dataclass
class StepParamError(SteplineError):
    """A step runner received params or input it cannot work with."""
    runner: str
    message: str

    def __str__(self) -> str:
        return f"{self.runner}: {self.message}"


@dataclass
class StepFailure(SteplineError):
    cmd: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    def __str__(self) -> str:
        lines = [
            f'command "{self.cmd}" failed',
            f"    exit code: {self.exit_code}",
            f"    stderr: {self.stderr.strip()}",
            f"    stdout: {self.stdout.strip()}",
        ]
        return "\n".join(lines)


# ----------------------------------------------------------------------
# Project / release errors
# ----------------------------------------------------------------------

@dataclass
class ConfigError(SteplineError):
    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


@dataclass
class InvalidVersion(SteplineError):
    text: str

    def __str__(self) -> str:
        return f"invalid version {self.text!r}"


@dataclass
class VersionMismatch(SteplineError):
    versions: List[str]

    def __str__(self) -> str:
        return f"version strategies disagree: {', '.join(self.versions)}"


@dataclass
class AlreadyReleased(SteplineError):
    tag: str

    def __str__(self) -> str:
        return f"already released: tag {self.tag} already exists"


@dataclass
class ReleaseError(SteplineError):
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class GitError(SteplineError):
    args_: List[str]
    returncode: int
    stderr: str = ""

    def __str__(self) -> str:
        cmd = " ".join(["git", *self.args_])
        detail = self.stderr.strip()
        if detail:
            return f"{cmd} failed (exit={self.returncode}): {detail}"
        return f"{cmd} failed (exit={self.returncode})"
