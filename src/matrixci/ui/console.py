"""Console output formatting utilities for matrixci."""

from __future__ import annotations

import sys
import threading
from typing import Optional

from ..model import ABORTED, FAILED, FAILURE, NOT_RUN, SUCCESS, JobConfig, JobResult, RunResult, StepResult


class Console:
    """
    Centralized console output formatting.

    Jobs run on worker threads, so every multi-line block is written under
    a lock to keep it contiguous.
    """

    def __init__(self, debug: bool = False, verbose: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
            verbose: If True, echo captured step output for every step
        """
        self.debug = debug
        self.verbose = verbose
        self._lock = threading.Lock()

    def _emit(self, *lines: str, err: bool = False) -> None:
        stream = sys.stderr if err else sys.stdout
        with self._lock:
            for line in lines:
                print(line, file=stream)

    def print_header(self, title: str) -> None:
        """Print a section header."""
        self._emit(f"\n{title}", "-" * len(title))

    def print_run_started(
        self,
        repository: str,
        workflow: str,
        event: str,
        branch: str,
        template_count: int,
    ) -> None:
        """Print run start information."""
        self._emit(
            "\nRUN STARTED",
            f"Repository: {repository}",
            f"Workflow: {workflow}",
            f"Event: {event} ({branch})",
            f"Job templates: {template_count}",
            "",
        )

    def print_not_triggered(self, event: str, branch: Optional[str]) -> None:
        self._emit(f"No trigger matched {event} on {branch or '<no branch>'}; nothing to run.")

    def print_plan(self, jobs: list[JobConfig]) -> None:
        """Print the expanded matrix, one line per job."""
        lines = ["PLAN"]
        for j in jobs:
            matrix = ", ".join(f"{k}={v}" for k, v in j.matrix) or "-"
            lines.append(f"  [{j.index}] {j.name}  ({matrix})")
            for s in j.steps:
                flag = "  (continue-on-error)" if s.continue_on_error else ""
                lines.append(f"        - {s.name}: {s.descriptor}{flag}")
        self._emit(*lines)

    def print_job_start(self, job: JobConfig) -> None:
        """Print job start message."""
        self._emit(f"\nJOB STARTED: {job.name}")

    def print_step(self, job: JobConfig, name: str) -> None:
        """Print step start message."""
        self._emit(f"[{job.name}] STEP: {name}")

    def print_step_result(self, job: JobConfig, result: StepResult) -> None:
        """Print step outcome, plus its output when it failed (or in verbose mode)."""
        if result.status == SUCCESS:
            lines = [f"[{job.name}] ✓ {result.step.name} ({result.duration:.1f}s)"]
        else:
            suffix = " (continue-on-error)" if result.tolerated else ""
            lines = [f"[{job.name}] ✗ {result.step.name}{suffix}"]
            if result.exit_code is not None:
                lines.append(f"[{job.name}] Exit code: {result.exit_code}")
            if result.error:
                lines.append(f"[{job.name}] Error: {result.error.splitlines()[0]}")
        if result.output and (self.verbose or result.status == FAILURE):
            lines.extend(f"[{job.name}] | {line}" for line in result.output.rstrip().splitlines())
        self._emit(*lines)

    def print_job_finished(self, result: JobResult) -> None:
        status = "SUCCESS" if result.status == SUCCESS else result.status.upper()
        self._emit(f"JOB FINISHED: {result.job.name} -> {status}")

    def print_results(self, run: RunResult) -> None:
        """Print final results summary, in matrix order."""
        lines = ["\n" + "=" * 40, "RESULTS", "=" * 40]
        for r in run.jobs:
            lines.append(f"  {r.job.name}: {_job_status_display(r)}")
            if r.status == FAILED and r.failed_step is not None:
                pos = r.steps.index(r.failed_step) + 1
                lines.append(f"      failed at step {pos}: {r.failed_step.step.name}")
            elif r.status == FAILED and r.error:
                lines.append(f"      error: {r.error.splitlines()[0]}")
            elif r.status == ABORTED:
                ran = sum(1 for s in r.steps if s.status != NOT_RUN)
                lines.append(f"      aborted after {ran}/{len(r.steps)} step(s)")
        lines.append("-" * 40)
        lines.append(f"RUN: {run.status.upper()}")
        self._emit(*lines)

    def print_warning(self, title: str, message: str) -> None:
        self._emit(f"\nWARNING: {title}", message, err=True)

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
        lines = [f"\nERROR: {title}", message]
        if details:
            lines.extend(f"  {d}" for d in details)
        if suggestion:
            lines.append(f"\n{suggestion}")
        self._emit(*lines, err=True)

    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            with self._lock:
                traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            self._emit(f"Error: {exc}", err=True)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        self._emit(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            self._emit(f"[DEBUG] {message}", err=True)


def _job_status_display(r: JobResult) -> str:
    if r.status == SUCCESS:
        return "SUCCESS"
    if r.excused:
        return f"{r.status.upper()} (allowed)"
    return r.status.upper()


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
