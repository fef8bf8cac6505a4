from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, ClassVar, Dict, List, Mapping, Type

from ..errors import ConfigError, InvalidVersion, ReleaseError
from ..git_facts import git
from ..version.semver import Version, render
from ..version.strategies import Strategy, set_version

logger = logging.getLogger(__name__)


@dataclass
class Workflow:
    """
    How releases map onto branches and tags.

    A release checks out the workflow's branch, writes the version and
    commits it (pre_release), tags that commit, then moves the branch on to
    the next patch DEV version (post_release).
    """
    tag_format: str = "v{{VERSION}}"
    update_message_format: str = "Update version for {{VERSION}}"
    bump_message_format: str = "Bump version to {{VERSION}}"

    type: ClassVar[str] = ""

    def branch(self, v: Version) -> str:
        raise NotImplementedError

    def tag(self, v: Version) -> str:
        return render(self.tag_format, v)

    def update_message(self, v: Version) -> str:
        return render(self.update_message_format, v)

    def bump_message(self, v: Version) -> str:
        return render(self.bump_message_format, v)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def pre_release(self, repo: Path, v: Version, strategies: List[Strategy]) -> None:
        branch = self.branch(v)
        if not git.has_branch(branch, repo):
            raise ReleaseError(f"missing branch {branch}")

        git.checkout(branch, repo)
        set_version(strategies, v)
        git.commit(self.update_message(v), repo)

    def release(self, repo: Path, v: Version, strategies: List[Strategy]) -> str:
        """Run the release hooks; returns the created tag."""
        self.pre_release(repo, v, strategies)

        tag = self.tag(v)
        git.create_tag(tag, "HEAD", repo)
        logger.info("created tag %s", tag)

        self.post_release(repo, v, strategies)
        return tag

    def post_release(self, repo: Path, v: Version, strategies: List[Strategy]) -> None:
        nv = v.bump("patch").with_prerelease("DEV")
        set_version(strategies, nv)
        git.commit(self.bump_message(nv), repo)


@dataclass
class MultiBranchWorkflow(Workflow):
    """One long-lived branch per minor line (release/1.2, release/1.3, ...)."""
    branch_format: str = "release/{{VERSION_MAJOR}}.{{VERSION_MINOR}}"

    type: ClassVar[str] = "multi_branch"

    def branch(self, v: Version) -> str:
        return render(self.branch_format, v)


@dataclass
class SingleBranchWorkflow(Workflow):
    """Every release is cut from the same branch."""
    branch_name: str = "main"

    type: ClassVar[str] = "single_branch"

    def branch(self, v: Version) -> str:
        return self.branch_name

    def release(self, repo: Path, v: Version, strategies: List[Strategy]) -> str:
        for tag in git.tags(repo):
            try:
                tagged = Version.parse(tag[1:] if tag.startswith("v") else tag)
            except InvalidVersion:
                # tags that are not versions don't constrain releases
                continue
            if tagged > v:
                raise ReleaseError(f"tag {tag} is higher than version {v}")
        return super().release(repo, v, strategies)


WORKFLOWS: Dict[str, Type[Workflow]] = {
    MultiBranchWorkflow.type: MultiBranchWorkflow,
    SingleBranchWorkflow.type: SingleBranchWorkflow,
}

# config keys that differ from the attribute names
_ALIASES = {"branch": "branch_name"}


def workflow_from_config(data: Mapping[str, Any] | None, *, where: str = "release.workflow") -> Workflow:
    if not isinstance(data, Mapping):
        raise ConfigError(where, "missing release workflow configuration")

    kind = data.get("type")
    if not isinstance(kind, str):
        raise ConfigError(where, "missing workflow type")
    cls = WORKFLOWS.get(kind)
    if cls is None:
        raise ConfigError(where, f"unknown workflow type {kind!r} (expected one of {sorted(WORKFLOWS)})")

    allowed = {f.name for f in fields(cls)}
    kwargs: Dict[str, Any] = {}
    for key, value in data.items():
        if key == "type":
            continue
        attr = _ALIASES.get(key, key)
        if attr not in allowed:
            raise ConfigError(where, f"unknown option {key!r} for {kind} workflow")
        if not isinstance(value, str):
            raise ConfigError(where, f"'{key}' must be a string")
        kwargs[attr] = value

    return cls(**kwargs)
