from __future__ import annotations

import json
import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Tuple

from ..config import ProjectConfig
from ..errors import ConfigError, ReleaseError, VersionMismatch
from .semver import Version, expand_expression, render

logger = logging.getLogger(__name__)


class Strategy:
    """Somewhere a project records its version."""

    name = "strategy"

    def get(self) -> List[Version]:
        raise NotImplementedError

    def set(self, version: Version) -> None:
        raise NotImplementedError


# ---------------------------------------------------------------------
# stepline.json
# ---------------------------------------------------------------------

class ConfigStrategy(Strategy):
    """``version.current`` in the project config file."""

    name = "config"

    def __init__(self, config: ProjectConfig):
        self.config = config

    def get(self) -> List[Version]:
        current = self.config.get("version.current")
        if current is None:
            return []
        if not isinstance(current, str):
            raise ConfigError(str(self.config.path), "'version.current' must be a string")
        return [Version.parse(current)]

    def set(self, version: Version) -> None:
        self.config.set("version.current", str(version))
        self.config.save()


# ---------------------------------------------------------------------
# Regular expression over matching files
# ---------------------------------------------------------------------

@dataclass
class ExpressionStrategy(Strategy):
    """
    Reads and rewrites the version inside arbitrary files.

    ``expression`` is a regular expression where ``{{VERSION}}`` marks the
    version; ``replacement`` is the text written in place of every match
    (placeholders are rendered with the new version).
    """
    directories: List[str]
    pattern: str
    expression: str
    replacement: str
    root: Path = field(default_factory=Path.cwd)

    name = "expression"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], root: Path, *, where: str = "version.strategies") -> "ExpressionStrategy":
        try:
            directories = data["directories"]
            pattern = data["pattern"]
            expression = data["expression"]
            replacement = data["replacement"]
        except KeyError as e:
            raise ConfigError(where, f"expression strategy is missing {e.args[0]!r}") from None

        if not isinstance(directories, list) or not all(isinstance(d, str) for d in directories):
            raise ConfigError(where, "'directories' must be a list of strings")
        for key, value in (("pattern", pattern), ("expression", expression), ("replacement", replacement)):
            if not isinstance(value, str):
                raise ConfigError(where, f"'{key}' must be a string")

        return cls(directories, pattern, expression, replacement, root=root)

    def files(self) -> List[Path]:
        out: List[Path] = []
        for directory in self.directories:
            out.extend(sorted(p for p in (self.root / directory).glob(self.pattern) if p.is_file()))
        return out

    def get(self) -> List[Version]:
        expr = expand_expression(self.expression)
        versions: List[Version] = []
        for path in self.files():
            m = expr.search(path.read_text(encoding="utf-8"))
            if m is None:
                raise ReleaseError(f"no version found in {path} (expression {self.expression!r})")
            versions.append(Version.parse(m.group("version")))
        return versions

    def set(self, version: Version) -> None:
        expr = expand_expression(self.expression)
        replacement = render(self.replacement, version)
        for path in self.files():
            text = path.read_text(encoding="utf-8")
            updated = expr.sub(lambda _m: replacement, text)
            if updated != text:
                path.write_text(updated, encoding="utf-8")
                logger.debug("version %s written to %s", version, path)

    def __str__(self) -> str:
        return f"Expression({', '.join(self.directories)} -> {self.pattern}): {self.expression} -> {self.replacement}"


# ---------------------------------------------------------------------
# package.json
# ---------------------------------------------------------------------

class NpmStrategy(Strategy):
    """``version`` in package.json, written through yarn or npm."""

    name = "npm"

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def get(self) -> List[Version]:
        path = self.directory / "package.json"
        try:
            pkg = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(str(path), f"failed to read package.json: {e}") from e
        return [Version.parse(str(pkg.get("version", "")))]

    def set(self, version: Version) -> None:
        yarn = shutil.which("yarn")
        if yarn:
            cmd = [yarn, "version", "--no-git-tag-version", "--new-version", str(version)]
        else:
            npm = shutil.which("npm")
            if not npm:
                raise ReleaseError("npm version strategy requires npm or yarn to be installed")
            cmd = [npm, "version", "--no-git-tag-version", str(version)]

        proc = subprocess.run(cmd, cwd=str(self.directory), text=True, capture_output=True)
        if proc.returncode != 0:
            raise ReleaseError(f"{' '.join(cmd)} failed (exit={proc.returncode}): {proc.stderr.strip()}")


# ---------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------

def strategies_from_config(config: ProjectConfig, directory: str | Path) -> List[Strategy]:
    root = Path(directory)
    out: List[Strategy] = [ConfigStrategy(config)]

    if (root / "package.json").exists():
        out.append(NpmStrategy(root))

    for idx, raw in enumerate(config.require_list("version.strategies")):
        where = f"{config.path}: version.strategies[{idx}]"
        if not isinstance(raw, dict):
            raise ConfigError(where, "strategy must be an object")
        kind = raw.get("type")
        if kind == "expression":
            out.append(ExpressionStrategy.from_dict(raw, root, where=where))
        else:
            raise ConfigError(where, f"unknown versioning strategy {kind!r}")

    return out


def get_version(strategies: List[Strategy]) -> Version:
    """The project version; every strategy has to agree on it."""
    found: List[Tuple[str, Version]] = []
    for strategy in strategies:
        for idx, v in enumerate(strategy.get()):
            found.append((f"{strategy.name}[{idx}]", v))

    distinct = {str(v) for _, v in found}
    if not distinct:
        raise ReleaseError("no version found (set version.current in stepline.json)")
    if len(distinct) > 1:
        raise VersionMismatch([f"{k}={v}" for k, v in found])
    return found[0][1]


def set_version(strategies: List[Strategy], version: Version) -> None:
    for strategy in strategies:
        strategy.set(version)
        logger.info("version set to %s via %s", version, strategy.name)
