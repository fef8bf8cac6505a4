# reference.py
from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidReference

SEPARATOR = "."


@dataclass(frozen=True, order=True)
class Reference:
    """Fully-qualified (action, step) pair. Canonical form: ``action.step``."""
    action: str
    step: str

    def __str__(self) -> str:
        return f"{self.action}{SEPARATOR}{self.step}"


def parse_reference(text: str) -> Reference:
    parts = text.split(SEPARATOR)
    if len(parts) != 2 or not all(parts):
        raise InvalidReference(text)
    return Reference(parts[0], parts[1])


def resolve_reference(text: str, current_action: str) -> Reference:
    """
    Resolve ``text`` against ``current_action``.

    ``"other.step"`` is taken as fully qualified, a bare ``"step"`` names a
    step of the current action.
    """
    if SEPARATOR in text:
        return parse_reference(text)
    if not text:
        raise InvalidReference(text)
    return Reference(current_action, text)
