"""Console output formatting utilities for the pre-release runs."""

from __future__ import annotations

import sys
from typing import Optional


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
        run_id: str,
        runner: str,
        project: str,
        chain_count: int,
    ) -> None:
        """Print run start information."""
        print("\nRUN STARTED")
        print(f"Run ID: {run_id}")
        print(f"Runner: {runner} ({project})")
        print(f"Chains: {chain_count}")
        print()

    def print_group_started(self, title: str) -> None:
        print(f"Starting {title} tests... ")

    # Job lines are single `print` calls: several chains log at once.
    def print_job_start(self, label: str, chain: str) -> None:
        """Print job start message."""
        print(f"JOB STARTED: {label} [{chain}]")

    def print_job_success(self, label: str, chain: str) -> None:
        print(f"JOB SUCCEEDED: {label} [{chain}]")

    def print_job_failure(self, label: str, chain: str, reason: str) -> None:
        """
        Print failure message.

        Args:
            label: Job label (job name and stage)
            chain: Chain the job was launched from
            reason: Failure reason/error message
        """
        if self.debug:
            print(f"JOB FAILED: {label} [{chain}]\nError details: {reason}")
        else:
            # Show first line of error for non-debug mode
            error_line = reason.split("\n")[0] if reason else "Unknown error"
            print(f"JOB FAILED: {label} [{chain}] Error: {error_line}")

    def print_chain_aborted(self, chain: str, skipped: list[str]) -> None:
        print(f"CHAIN ABORTED: {chain} (not run: {', '.join(skipped)})")

    def print_plan_chain(self, name: str, group: str, steps: list[str]) -> None:
        """Print one chain of the run plan."""
        print(f"\n{name} ({group})")
        for step in steps:
            print(f"  {step}")

    def print_results(self, results: dict[str, str]) -> None:
        """Print final results summary."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        for chain, status in results.items():
            status_display = status.upper() if status != "ok" else "SUCCESS"
            print(f"  {chain}: {status_display}")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)

    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


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
