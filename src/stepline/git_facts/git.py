# git.py
# Thin wrapper around the git CLI for project discovery and releases.
# Every git invocation goes through _git().

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List, Optional, Tuple

from ..errors import GitError

PathLike = Optional[str | Path]


def _git(args: list[str], cwd: PathLike = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    This is the single low-level entry point for all Git operations in this file.

    Args:
        args: List of git arguments (e.g. ["status", "--porcelain"])
        cwd: Optional working directory in which to run the git command.

    Returns:
        Stdout from the git command with surrounding whitespace removed.

    Raises:
        GitError: if git exits non-zero (or is not installed).
    """
    try:
        proc = subprocess.run(
            ["git", *args],
            cwd=str(cwd) if cwd is not None else None,
            text=True,
            capture_output=True,
        )
    except FileNotFoundError as e:
        raise GitError(args, 127, "git executable not found") from e

    if proc.returncode != 0:
        raise GitError(args, proc.returncode, proc.stderr)

    return proc.stdout.strip()


def _lines(out: str) -> List[str]:
    return out.splitlines() if out else []


# ----------------------------------------------------------------------
# Repository facts
# ----------------------------------------------------------------------

def repo_root(cwd: PathLike = None) -> Path:
    """Absolute path of the repository root (`git rev-parse --show-toplevel`)."""
    return Path(_git(["rev-parse", "--show-toplevel"], cwd))


def find_repo_root(cwd: PathLike = None) -> Optional[Path]:
    """Like repo_root(), but None when ``cwd`` is not inside a repository."""
    try:
        return repo_root(cwd)
    except GitError:
        return None


def head_sha(cwd: PathLike = None) -> str:
    return _git(["rev-parse", "HEAD"], cwd)


def rev_parse(ref: str, cwd: PathLike = None) -> str:
    return _git(["rev-parse", ref], cwd)


def is_dirty(cwd: PathLike = None) -> bool:
    """True if there are modified, staged or untracked files."""
    return _git(["status", "--porcelain"], cwd) != ""


def signature(cwd: PathLike = None) -> Tuple[str, str]:
    """(user.name, user.email) from git config; both must be set to commit."""
    out = []
    for key in ("user.name", "user.email"):
        try:
            out.append(_git(["config", "--get", key], cwd))
        except GitError as e:
            raise GitError(e.args_, e.returncode, f"{key} is not configured") from e
    return out[0], out[1]


# ----------------------------------------------------------------------
# Branches
# ----------------------------------------------------------------------

def init(directory: str | Path) -> None:
    _git(["init", "--quiet", str(directory)])


def branches(cwd: PathLike = None) -> List[str]:
    return _lines(_git(["for-each-ref", "--format=%(refname:short)", "refs/heads"], cwd))


def has_branch(name: str, cwd: PathLike = None) -> bool:
    return name in branches(cwd)


def current_branch(cwd: PathLike = None) -> str:
    return _git(["symbolic-ref", "--short", "HEAD"], cwd)


def checkout(name: str, cwd: PathLike = None) -> None:
    _git(["checkout", "--quiet", name], cwd)


def create_branch(name: str, base: Optional[str] = None, cwd: PathLike = None) -> None:
    """Create ``name`` (from ``base`` or HEAD) and check it out."""
    args = ["checkout", "--quiet", "-b", name]
    if base:
        args.append(base)
    _git(args, cwd)


def delete_branch(name: str, force: bool = False, cwd: PathLike = None) -> None:
    _git(["branch", "-D" if force else "-d", name], cwd)


# ----------------------------------------------------------------------
# Tags and commits
# ----------------------------------------------------------------------

def tags(cwd: PathLike = None) -> List[str]:
    return _lines(_git(["tag", "--list"], cwd))


def has_tag(name: str, cwd: PathLike = None) -> bool:
    return name in tags(cwd)


def create_tag(name: str, rev: str = "HEAD", cwd: PathLike = None) -> None:
    _git(["tag", name, rev], cwd)


def add_all(cwd: PathLike = None) -> None:
    _git(["add", "--all"], cwd)


def commit(message: str, cwd: PathLike = None) -> str:
    """Stage everything, commit with ``message`` and return the new HEAD sha."""
    signature(cwd)
    add_all(cwd)
    _git(["commit", "--quiet", "--allow-empty", "-m", message], cwd)
    return head_sha(cwd)
