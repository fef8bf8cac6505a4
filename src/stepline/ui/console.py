"""Console output formatting utilities for stepline."""

from __future__ import annotations

import sys
import threading
from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:
    from ..runner import ExecutionResult


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False, quiet: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
            quiet: If True, suppress per-step progress lines
        """
        self.debug = debug
        self.quiet = quiet
        # steps of one front report from worker threads
        self._lock = threading.Lock()

    def _out(self, line: str = "", *, err: bool = False) -> None:
        with self._lock:
            print(line, file=sys.stderr if err else sys.stdout)

    def print_run_started(
        self,
        action: str,
        config: str,
        step_count: int,
        mode: str,
    ) -> None:
        """Print run start information."""
        self._out("\nRUN STARTED")
        self._out(f"Action: {action}")
        self._out(f"Config: {config}")
        self._out(f"Steps: {step_count}")
        self._out(f"Mode: {mode}")
        self._out()

    def print_front(self, index: int, refs: List[str]) -> None:
        """Print the members of one execution front."""
        if not self.quiet:
            self._out(f"=== Front {index}: {', '.join(refs)} ===")

    def print_step(self, ref: str) -> None:
        """Print step start message."""
        if not self.quiet:
            self._out(f"STEP: {ref}")

    def print_step_failed(self, ref: str, reason: str) -> None:
        """
        Print step failure message.

        Only the first line of the error is shown unless debug is enabled.
        """
        if self.quiet:
            return
        self._out(f"STEP FAILED: {ref}")
        if self.debug:
            self._out(f"Error details: {reason}")
        else:
            self._out(f"Error: {reason.splitlines()[0] if reason else 'Unknown error'}")

    def print_plan(self, action: str, refs: List[str]) -> None:
        """Print the planned execution order of an action."""
        self._out(f"{action}:")
        for i, ref in enumerate(refs, start=1):
            self._out(f"  {i}. {ref}")

    def print_results(self, result: "ExecutionResult") -> None:
        """Print final results summary."""
        self._out("\n" + "=" * 40)
        self._out("RESULTS")
        self._out("=" * 40)
        for ref, state in result.states.items():
            self._out(f"  {ref}: {state.value.upper()}")

        if result.errors:
            self._out()
            for action, steps in result.errors.items():
                for step, exc in steps.items():
                    self._out(f"{action}.{step}: {exc}", err=True)

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        self._out(f"\nERROR: {title}", err=True)
        self._out(f"{message}", err=True)
        if details:
            for detail in details:
                self._out(f"  {detail}", err=True)
        if suggestion:
            self._out(f"\n{suggestion}", err=True)

    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            self._out(f"Error: {exc}", err=True)

    def print_versions(self, versions: Dict[str, str]) -> None:
        """Print the version reported by each strategy."""
        for source, version in versions.items():
            self._out(f"  {source}: {version}")

    def print_info(self, message: str) -> None:
        """Print informational message."""
        self._out(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            self._out(f"[DEBUG] {message}", err=True)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
