from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Literal, Optional, Tuple

from ..errors import InvalidVersion

Bump = Literal["major", "minor", "patch"]

_NUM = r"0|[1-9]\d*"
_PRE_ID = r"(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
_BUILD_ID = r"[0-9a-zA-Z-]+"

# unnamed form, safe to embed in user expressions
SEMVER_PATTERN = (
    rf"(?:{_NUM})\.(?:{_NUM})\.(?:{_NUM})"
    rf"(?:-{_PRE_ID}(?:\.{_PRE_ID})*)?"
    rf"(?:\+{_BUILD_ID}(?:\.{_BUILD_ID})*)?"
)

_SEMVER_RE = re.compile(
    rf"^(?P<major>{_NUM})\.(?P<minor>{_NUM})\.(?P<patch>{_NUM})"
    rf"(?:-(?P<prerelease>{_PRE_ID}(?:\.{_PRE_ID})*))?"
    rf"(?:\+(?P<build>{_BUILD_ID}(?:\.{_BUILD_ID})*))?$"
)


@dataclass(frozen=True)
class Version:
    """
    Semantic version (https://semver.org).

    Equality is structural (build metadata included); ordering follows SemVer
    precedence, which ignores build metadata.
    """
    major: int
    minor: int
    patch: int
    prerelease: Tuple[str, ...] = ()
    build: Tuple[str, ...] = ()

    @classmethod
    def parse(cls, text: str) -> "Version":
        m = _SEMVER_RE.match(text.strip()) if isinstance(text, str) else None
        if m is None:
            raise InvalidVersion(str(text))
        pre = m.group("prerelease")
        build = m.group("build")
        return cls(
            major=int(m.group("major")),
            minor=int(m.group("minor")),
            patch=int(m.group("patch")),
            prerelease=tuple(pre.split(".")) if pre else (),
            build=tuple(build.split(".")) if build else (),
        )

    def __str__(self) -> str:
        out = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            out += "-" + ".".join(self.prerelease)
        if self.build:
            out += "+" + ".".join(self.build)
        return out

    # ------------------------------------------------------------------
    # Precedence
    # ------------------------------------------------------------------

    def compare(self, other: "Version") -> int:
        for a, b in ((self.major, other.major), (self.minor, other.minor), (self.patch, other.patch)):
            if a != b:
                return 1 if a > b else -1
        return _compare_prerelease(self.prerelease, other.prerelease)

    def __lt__(self, other: "Version") -> bool:
        return self.compare(other) < 0

    def __le__(self, other: "Version") -> bool:
        return self.compare(other) <= 0

    def __gt__(self, other: "Version") -> bool:
        return self.compare(other) > 0

    def __ge__(self, other: "Version") -> bool:
        return self.compare(other) >= 0

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def bump(self, kind: Bump) -> "Version":
        if kind == "major":
            return Version(self.major + 1, 0, 0)
        if kind == "minor":
            return Version(self.major, self.minor + 1, 0)
        if kind == "patch":
            return Version(self.major, self.minor, self.patch + 1)
        raise ValueError(f"unexpected bump kind: {kind}")

    def with_prerelease(self, *ids: str) -> "Version":
        return replace(self, prerelease=tuple(ids))


def _compare_prerelease(a: Tuple[str, ...], b: Tuple[str, ...]) -> int:
    # a release ranks above any of its prereleases
    if not a and b:
        return 1
    if a and not b:
        return -1

    for x, y in zip(a, b):
        if x == y:
            continue
        x_num, y_num = x.isdigit(), y.isdigit()
        if x_num and y_num:
            return 1 if int(x) > int(y) else -1
        if x_num:
            return -1
        if y_num:
            return 1
        return 1 if x > y else -1

    if len(a) != len(b):
        return 1 if len(a) > len(b) else -1
    return 0


def parse_version(text: str) -> Version:
    return Version.parse(text)


# ----------------------------------------------------------------------
# Placeholders
# ----------------------------------------------------------------------

def render(template: str, v: Version, now: Optional[datetime] = None) -> str:
    """Expand {{VERSION*}} and {{TIME_*}} placeholders in ``template``."""
    now = now or datetime.now().astimezone()
    values = {
        "VERSION_MAJOR": str(v.major),
        "VERSION_MINOR": str(v.minor),
        "VERSION_PATCH": str(v.patch),
        "VERSION_PRERELEASE": ".".join(v.prerelease),
        "VERSION_BUILD": ".".join(v.build),
        "VERSION": str(v),
        "TIME_YEAR": f"{now.year}",
        "TIME_MONTH": f"{now.month:02d}",
        "TIME_DAY": f"{now.day:02d}",
        "TIME_HOUR": f"{now.hour:02d}",
        "TIME_MINUTE": f"{now.minute:02d}",
        "TIME_SECOND": f"{now.second:02d}",
        "TIME_RFC3339": now.isoformat(timespec="seconds"),
    }
    for key, value in values.items():
        template = template.replace("{{" + key + "}}", value)
    return template


def expand_expression(expression: str) -> re.Pattern[str]:
    """Compile ``expression`` with {{VERSION}} replaced by a named ``version`` group."""
    return re.compile(expression.replace("{{VERSION}}", f"(?P<version>{SEMVER_PATTERN})"))
