"""Console output formatting utilities for seamore."""

from __future__ import annotations

import sys
import threading
from pathlib import Path
from typing import Optional, Sequence


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug
        # chains print from worker threads; keep multi-line blocks together
        self._lock = threading.Lock()

    def _emit(self, lines: Sequence[str], context=None, file=None) -> None:
        prefix = f"[{context}] " if context is not None else ""
        with self._lock:
            for line in lines:
                print(f"{prefix}{line}", file=file or sys.stdout)

    def print_header(self, title: str) -> None:
        """Print a section header."""
        self._emit(["", title, "-" * len(title)])

    def print_run_started(self, workflow: str, chain_count: int, workers: int) -> None:
        """Print run start information."""
        self._emit([
            "",
            "RUN STARTED",
            f"Workflow: {workflow}",
            f"Chains: {chain_count}",
            f"Workers: {workers}",
            "",
        ])

    def print_chain_started(self, name: str, stages: Sequence[str], context=None) -> None:
        self._emit([f"CHAIN STARTED: {name}", f"Stages: {' -> '.join(stages)}"], context)

    def print_resume(self, tag: Optional[str], context=None) -> None:
        """Print from where a chain picks up its work."""
        if tag is None:
            self._emit(["RESUME: nothing on disk, running all steps"], context)
        else:
            self._emit([f"RESUME: reusing results up to {tag}"], context)

    def print_step(self, tag: str, inputs: Sequence[str], output: Path, context=None) -> None:
        """Print step start message."""
        self._emit([f"STEP: {tag} {', '.join(inputs)} -> {output}"], context)

    def print_step_skipped(self, tag: str, output: Path, context=None) -> None:
        self._emit([f"STEP: {tag} (skipped, exists: {Path(output).name})"], context)

    def print_cleanup(self, removed: Sequence[Path], context=None) -> None:
        if removed:
            self._emit([f"CLEANUP: removed {len(removed)} intermediate file(s)"], context)

    def print_success(self, output: Path, context=None) -> None:
        """Print success message."""
        self._emit([f"STATUS: success ({output})"], context)

    def print_failure(
        self,
        name: str,
        reason: str,
        hint: Optional[str] = None,
        context=None,
    ) -> None:
        """
        Print failure message.

        Args:
            name: Chain name
            reason: Failure reason/error message
            hint: Optional hint for user
        """
        lines = [f"CHAIN FAILED: {name}"]
        if hint:
            lines.append(f"Hint: {hint}")
        if self.debug:
            lines.append(f"Error details: {reason}")
        else:
            # Show first line of error for non-debug mode
            error_line = reason.split("\n")[0] if reason else "Unknown error"
            lines.append(f"Error: {error_line}")
        self._emit(lines, context, file=sys.stderr)

    def print_results(self, results: dict[str, str]) -> None:
        """Print final results summary."""
        lines = ["", "=" * 40, "RESULTS", "=" * 40]
        for name, status in results.items():
            status_display = status.upper() if status != "ok" else "SUCCESS"
            lines.append(f"  {name}: {status_display}")
        self._emit(lines)

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
        lines = ["", f"ERROR: {title}", message]
        for detail in details or []:
            lines.append(f"  {detail}")
        if suggestion:
            lines.extend(["", suggestion])
        self._emit(lines, file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str, context=None) -> None:
        """Print informational message."""
        self._emit([message], context)

    def print_debug(self, message: str, context=None) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            self._emit([f"[DEBUG] {message}"], context, file=sys.stderr)


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
