"""Pytest configuration and shared fixtures."""

import json
import shutil
import sys
import threading
from pathlib import Path
from typing import Any, Dict, List

import pytest

from stepline.model import ActionCollection
from stepline.registry import StepRegistry
from stepline.ui.console import Console


BUILD_AND_DEPLOY: Dict[str, Any] = {
    "actions": {
        "build": {
            "steps": {
                "compile": {"type": "emit", "output": True, "params": {"value": "binary"}},
                "test": {"type": "echo", "input": "compile"},
            },
        },
        "deploy": {
            "dependencies": ["build"],
            "steps": {
                "push": {"type": "echo", "input": "build.compile"},
            },
        },
        "broken": {
            "steps": {
                "s": {"type": "emit", "input": "otherAction.otherStep"},
            },
        },
    }
}


class RecordingRegistry(StepRegistry):
    """
    Registry with a few test runners; every call is recorded in ``calls``.

    emit  -> returns params["value"]
    echo  -> returns its input
    fail  -> raises RuntimeError(params.get("message", "boom"))
    none  -> returns None
    params -> returns a copy of the params it received
    """

    def __init__(self) -> None:
        super().__init__()
        self.calls: List[str] = []
        self._lock = threading.Lock()

        self.register("emit", self._recorded("emit", lambda input, params: params.get("value")))
        self.register("echo", self._recorded("echo", lambda input, params: input))
        self.register("none", self._recorded("none", lambda input, params: None))
        self.register("params", self._recorded("params", lambda input, params: dict(params)))
        self.register("fail", self._recorded("fail", self._fail))

    @staticmethod
    def _fail(input, params):
        raise RuntimeError(params.get("message", "boom"))

    def _recorded(self, name, fn):
        def runner(input, params):
            with self._lock:
                self.calls.append(params.get("id", name))
            return fn(input, params)
        return runner


@pytest.fixture
def collection() -> ActionCollection:
    return ActionCollection.from_dict(BUILD_AND_DEPLOY)


@pytest.fixture
def registry() -> RecordingRegistry:
    return RecordingRegistry()


@pytest.fixture
def quiet_console() -> Console:
    return Console(quiet=True)


@pytest.fixture
def python() -> str:
    """Interpreter used as a portable command for exec steps."""
    return sys.executable


@pytest.fixture
def actions_file(tmp_path: Path, python: str) -> Path:
    """An actions.json that only needs the built-in runners."""
    path = tmp_path / "actions.json"
    path.write_text(json.dumps({
        "actions": {
            "hello": {
                "steps": {
                    "greet": {
                        "type": "exec",
                        "output": True,
                        "params": {"command": python, "args": ["-c", "print('hello')"]},
                    },
                    "show": {"type": "print", "input": "greet"},
                },
            },
            "failing": {
                "steps": {
                    "exit": {
                        "type": "exec",
                        "params": {"command": python, "args": ["-c", "raise SystemExit(4)"]},
                    },
                },
            },
        }
    }))
    return path


@pytest.fixture
def git_env(tmp_path: Path, monkeypatch) -> Path:
    """Isolated git identity and config; skips when git is not installed."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    home = tmp_path / "home"
    home.mkdir()
    (home / ".gitconfig").write_text(
        "[user]\n"
        "\tname = Stepline Test\n"
        "\temail = stepline@example.com\n"
        "[init]\n"
        "\tdefaultBranch = main\n"
        "[commit]\n"
        "\tgpgSign = false\n"
        "[tag]\n"
        "\tgpgSign = false\n"
    )

    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    for var in ("GIT_CONFIG_GLOBAL", "XDG_CONFIG_HOME", "GIT_DIR", "GIT_WORK_TREE", "GIT_INDEX_FILE"):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def project(tmp_path: Path, git_env: Path) -> Path:
    """A fresh project initialised on release/0.1."""
    from stepline.release import init_project

    root = tmp_path / "proj"
    init_project(root)
    return root
