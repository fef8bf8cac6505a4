# step_workflows/exec_step.py
from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..errors import StepFailure, StepParamError
from ..model import Value

NAME = "exec"


# ---------------------------------------------------------------------
# Param helpers
# ---------------------------------------------------------------------

def _str_list(params: Mapping[str, Any], key: str) -> List[str]:
    raw = params.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise StepParamError(NAME, f"'{key}' must be a list")
    return [str(v) for v in raw]


def _bool(params: Mapping[str, Any], key: str) -> bool:
    raw = params.get(key, False)
    if not isinstance(raw, bool):
        raise StepParamError(NAME, f"'{key}' must be a boolean")
    return raw


def _env(params: Mapping[str, Any]) -> Dict[str, str]:
    """Current environment extended with params['env'] (mapping or list of K=V)."""
    env = os.environ.copy()
    raw = params.get("env")
    if raw is None:
        return env

    if isinstance(raw, Mapping):
        env.update({str(k): str(v) for k, v in raw.items()})
    elif isinstance(raw, list):
        for item in raw:
            key, sep, value = str(item).partition("=")
            if not sep or not key:
                raise StepParamError(NAME, f"invalid env entry {item!r} (expected KEY=VALUE)")
            env[key] = value
    else:
        raise StepParamError(NAME, "'env' must be an object or a list of KEY=VALUE strings")
    return env


def _cwd(params: Mapping[str, Any]) -> Optional[Path]:
    raw = params.get("directory")
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise StepParamError(NAME, "'directory' must be a string")

    cwd = Path(raw)
    if not cwd.is_absolute():
        cwd = Path(os.getcwd()) / cwd
    if not cwd.is_dir():
        raise StepParamError(NAME, f"directory not found: {cwd}")
    return cwd


def _stdin(input: Optional[Value]) -> Optional[bytes]:
    if input is None:
        return None
    if isinstance(input, bytes):
        return input
    if isinstance(input, str):
        return input.encode("utf-8")
    raise StepParamError(NAME, f"input must be a string or bytes, got {type(input).__name__}")


# ---------------------------------------------------------------------
# Step runner
# ---------------------------------------------------------------------

def run_exec(input: Optional[Value], params: Mapping[str, Any]) -> Optional[Value]:
    """
    Run an external process and return its combined stdout + stderr.

    Params:
        command: executable to run (required)
        args: list of arguments
        directory: working directory, relative paths resolve against cwd
        env: extra environment variables
        continue_on_error / ignore_exit_codes: tolerate non-zero exit codes
        print_stdout / print_stderr: echo captured streams after the run
        timeout: seconds before the process is killed

    The step input, when present, is written to the process stdin.
    """
    command = params.get("command")
    if not isinstance(command, str) or not command:
        raise StepParamError(NAME, "missing 'command'")

    argv = [command, *_str_list(params, "args")]
    cmd_display = " ".join(argv)

    continue_on_error = _bool(params, "continue_on_error")
    print_stdout = _bool(params, "print_stdout")
    print_stderr = _bool(params, "print_stderr")

    ignore_exit_codes = params.get("ignore_exit_codes") or []
    if not isinstance(ignore_exit_codes, list):
        raise StepParamError(NAME, "'ignore_exit_codes' must be a list")
    try:
        ignore = {int(c) for c in ignore_exit_codes}
    except (TypeError, ValueError):
        raise StepParamError(NAME, "'ignore_exit_codes' must contain integers") from None

    timeout = params.get("timeout")
    if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, (int, float))):
        raise StepParamError(NAME, "'timeout' must be a number of seconds")

    cwd = _cwd(params)

    try:
        proc = subprocess.run(
            argv,
            shell=False,
            cwd=str(cwd) if cwd else None,
            env=_env(params),
            input=_stdin(input),
            capture_output=True,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        raise StepFailure(cmd=cmd_display, exit_code=127, stderr=str(e)) from e
    except subprocess.TimeoutExpired as e:
        raise StepFailure(
            cmd=cmd_display,
            exit_code=-1,
            stdout=(e.stdout or b"").decode("utf-8", errors="replace"),
            stderr=f"timed out after {timeout}s",
        ) from e

    stdout = proc.stdout.decode("utf-8", errors="replace")
    stderr = proc.stderr.decode("utf-8", errors="replace")

    if proc.returncode != 0 and proc.returncode not in ignore and not continue_on_error:
        raise StepFailure(
            cmd=cmd_display,
            exit_code=proc.returncode,
            stdout=stdout[-4000:],
            stderr=stderr[-4000:],
        )

    if print_stdout:
        sys.stdout.write(stdout)
    if print_stderr:
        sys.stderr.write(stderr)

    return stdout + stderr
