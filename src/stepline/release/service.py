from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from ..config import CONFIG_FILE, ProjectConfig
from ..errors import AlreadyReleased, ReleaseError
from ..git_facts import git
from ..version.semver import Bump, Version
from ..version.strategies import Strategy, set_version
from .workflow import MultiBranchWorkflow, Workflow

logger = logging.getLogger(__name__)

INITIAL_VERSION = "0.1.0-DEV"
INITIAL_COMMIT_MESSAGE = "feat: Add initial set of files"


def release(repo: Path, version: Version, workflow: Workflow, strategies: List[Strategy]) -> str:
    """
    Release ``version``: refuse if its tag exists, else run the workflow hooks.

    Returns the created tag.
    """
    tag = workflow.tag(version)
    if git.has_tag(tag, repo):
        raise AlreadyReleased(tag)

    logger.info("releasing %s (%s workflow)", version, workflow.type)
    return workflow.release(repo, version, strategies)


def next_release(
    repo: Path,
    current: Version,
    kind: Bump,
    workflow: Workflow,
    strategies: List[Strategy],
) -> Version:
    """
    Open the branch for the next major/minor line and bump the version on it.

    Only meaningful for the multi-branch workflow. The new branch is cut from
    the branch of ``current``.
    """
    if not isinstance(workflow, MultiBranchWorkflow):
        raise ReleaseError("release next requires a multi_branch workflow")
    if kind not in ("major", "minor"):
        raise ReleaseError(f"invalid release type: {kind}")

    if git.is_dirty(repo):
        raise ReleaseError("uncommitted changes")

    nv = current.bump(kind).with_prerelease("DEV")
    logger.info("current version: %s", current)
    logger.info("next version: %s", nv)

    base = workflow.branch(current)
    target = workflow.branch(nv)

    if not git.has_branch(base, repo):
        raise ReleaseError(f"missing base branch: {base}")
    if git.has_branch(target, repo):
        raise ReleaseError(f"branch already exists: {target}")

    git.create_branch(target, base, repo)
    logger.info("release branch created: %s", target)

    set_version(strategies, nv)
    git.commit(workflow.bump_message(nv), repo)
    logger.info("bumped version: %s", nv)

    return nv


def init_project(directory: str | Path, workflow_type: str = MultiBranchWorkflow.type) -> str:
    """
    Turn an empty (or missing) directory into a repository ready for releases.

    Returns the name of the first release branch, which is left checked out;
    every other local branch is removed.
    """
    if workflow_type != MultiBranchWorkflow.type:
        raise ReleaseError(f"only {MultiBranchWorkflow.type} workflow is supported")

    root = Path(directory)
    if root.exists():
        if not root.is_dir():
            raise ReleaseError(f"not a directory: {root}")
        if any(root.iterdir()):
            raise ReleaseError(f"directory not empty: {root}")
    else:
        root.mkdir(parents=True)

    v = Version.parse(INITIAL_VERSION)
    workflow = MultiBranchWorkflow()

    git.init(root)

    config = ProjectConfig(root / CONFIG_FILE, {
        "version": {"current": str(v)},
        "release": {"workflow": {"type": workflow_type}},
    })
    config.save()

    git.commit(INITIAL_COMMIT_MESSAGE, root)

    existing = git.branches(root)
    first = workflow.branch(v)
    git.create_branch(first, "HEAD", root)

    for branch in existing:
        if branch != first:
            git.delete_branch(branch, force=True, cwd=root)

    logger.info("initialized %s on %s", root, first)
    return first
