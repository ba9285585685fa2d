"""Console output formatting utilities for yamlci."""

from __future__ import annotations

import sys
from typing import Iterable, Optional

from ..model import ExecutionResult, Status


_STEP_MARKS = {
    Status.SUCCESS: "ok  ",
    Status.FAILED: "FAIL",
    Status.SKIPPED: "skip",
}


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_header(self, title: str) -> None:
        """Print a section header."""
        print(f"\n{title}")
        print("-" * len(title))

    def print_run_started(
        self,
        workflow: str,
        event: str,
        branch: Optional[str],
        instance_count: int,
    ) -> None:
        """Print run start information."""
        print("\nRUN STARTED")
        print(f"Workflow: {workflow}")
        print(f"Event: {event}" + (f" ({branch})" if branch else ""))
        print(f"Job instances: {instance_count}")

    def print_not_triggered(self, workflow: str, event: str) -> None:
        print(f"\nWorkflow {workflow!r} is not triggered by '{event}'")

    def print_job_result(self, result: ExecutionResult) -> None:
        """Print one job instance with its ordered step log."""
        print(f"\nJOB: {result.instance_name}")
        for step in result.steps:
            print(f"  [{_STEP_MARKS[step.status]}] {step.name}")
            if step.status is Status.FAILED and step.reason:
                reason = step.reason if self.debug else step.reason.split("\n")[0]
                print(f"         {reason}")
                if self.debug and step.stdout:
                    for line in step.stdout.rstrip().splitlines()[-20:]:
                        print(f"         | {line}")
            elif step.status is Status.SKIPPED and self.debug and step.reason:
                print(f"         ({step.reason})")
        print(f"STATUS: {result.status.value}")

    def print_results(self, results: Iterable[ExecutionResult]) -> None:
        """Print final results summary."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        for r in results:
            print(f"  {r.instance_name}: {r.status.value.upper()}")

    def print_plan_instance(self, job: str, cell: str, runs_on: str, steps: int) -> None:
        """Print a planned job instance."""
        label = f"{job} ({cell})" if cell else job
        print(f"  {label} on {runs_on}: {steps} step(s)")

    def print_lint(self, warnings: list) -> None:
        if not warnings:
            print("No lint warnings.")
            return
        for w in warnings:
            print(f"  {w}")

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
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)


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
