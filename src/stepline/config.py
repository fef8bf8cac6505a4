# config.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ConfigError

CONFIG_FILE = "stepline.json"
CONFIG_ENV = "STEPLINE_CONFIG"


class ProjectConfig:
    """
    Project settings stored in stepline.json.

    Keys are addressed with dotted paths, e.g. ``version.current`` or
    ``release.workflow``.
    """

    def __init__(self, path: str | Path, data: Optional[Dict[str, Any]] = None):
        self.path = Path(path)
        self.data: Dict[str, Any] = data if data is not None else {}

    @classmethod
    def load(cls, path: str | Path, *, missing_ok: bool = True) -> "ProjectConfig":
        p = Path(path)
        if not p.exists():
            if missing_ok:
                return cls(p)
            raise ConfigError(str(p), "config file not found")

        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigError(str(p), f"invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(str(p), "top level must be an object")
        return cls(p, data)

    def get(self, key: str, default: Any = None) -> Any:
        node: Any = self.data
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        parts = key.split(".")
        node = self.data
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

    def require_list(self, key: str) -> List[Any]:
        value = self.get(key, [])
        if not isinstance(value, list):
            raise ConfigError(str(self.path), f"'{key}' must be a list")
        return value

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self.data, indent=2) + "\n", encoding="utf-8")


def discover_config(explicit: str | None, root: str | Path = ".") -> Path:
    """Explicit path if given, else stepline.json under ``root``."""
    if explicit:
        return Path(explicit)
    return Path(root) / CONFIG_FILE
