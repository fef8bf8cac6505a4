# step_workflows/print_step.py
from __future__ import annotations

import sys
from typing import Any, Mapping, Optional

from ..errors import StepParamError
from ..model import Value

NAME = "print"


def format_value(value: Value) -> str:
    # bool first: bool is a subclass of int
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, int):
        return f"{value:d}"
    if isinstance(value, float):
        return f"{value:f}"
    raise StepParamError(NAME, f"unsupported type {type(value).__name__}")


def run_print(input: Optional[Value], params: Mapping[str, Any]) -> Optional[Value]:
    """Write the step input to stdout (or stderr with params['stream'] == 'stderr'). Produces no value."""
    stream = params.get("stream", "stdout")
    if stream not in ("stdout", "stderr"):
        raise StepParamError(NAME, f"unknown stream {stream!r}")

    if input is None:
        raise StepParamError(NAME, "input is nil")

    out = sys.stderr if stream == "stderr" else sys.stdout
    out.write(format_value(input))
    out.flush()
    return None
