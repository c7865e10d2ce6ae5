# executor.py
from __future__ import annotations

import threading
import time
from dataclasses import replace
from pathlib import Path
from typing import List, Mapping, Optional

from .actions.registry import ActionRegistry, StepContext, default_registry
from .errors import ActionError
from .model import ABORTED, FAILED, FAILURE, NOT_RUN, SUCCESS, JobConfig, JobResult, Step, StepResult
from .ui.console import Console


def not_run(steps: List[Step]) -> List[StepResult]:
    return [StepResult(step=s, status=NOT_RUN) for s in steps]


class StepExecutor:
    """
    Runs the steps of one job, strictly in declared order.

    A failing step stops the job unless it is marked continue-on-error.
    Cancellation is only observed between steps: a running step always
    finishes (or hits its own timeout) before the job reports "aborted".
    An action that raises is recorded as a failed step.
    """

    def __init__(
        self,
        actions: Optional[ActionRegistry] = None,
        *,
        workdir: str | Path = ".",
        base_env: Optional[Mapping[str, str]] = None,
        console: Optional[Console] = None,
    ):
        self.actions = actions or default_registry()
        self.workdir = Path(workdir).resolve()
        self.base_env = dict(base_env or {})
        self.console = console

    def _execute(self, step: Step, ctx: StepContext) -> StepResult:
        started = time.monotonic()
        try:
            result = self.actions.execute(step, ctx)
        except ActionError as e:
            result = StepResult(step=step, status=FAILURE, error=str(e))
        except Exception as e:
            result = StepResult(step=step, status=FAILURE, error=f"{type(e).__name__}: {e}")
        # the action may hand back a rebuilt step; report the declared one
        return replace(result, step=step, duration=time.monotonic() - started)

    def run(self, job: JobConfig, cancel: Optional[threading.Event] = None) -> JobResult:
        ctx = StepContext(job=job, workdir=self.workdir, base_env=self.base_env)
        results: List[StepResult] = []
        failed = False

        if cancel is not None and cancel.is_set():
            return self._finish(job, not_run(list(job.steps)), ABORTED)

        if self.console:
            self.console.print_job_start(job)

        for pos, step in enumerate(job.steps):
            if cancel is not None and cancel.is_set():
                results.extend(not_run(list(job.steps[pos:])))
                return self._finish(job, results, ABORTED)

            if self.console:
                self.console.print_step(job, step.name)

            result = self._execute(step, ctx)
            results.append(result)

            if self.console:
                self.console.print_step_result(job, result)

            if result.status == FAILURE:
                failed = True
                if not step.continue_on_error:
                    results.extend(not_run(list(job.steps[pos + 1:])))
                    break

        return self._finish(job, results, FAILED if failed else SUCCESS)

    def _finish(self, job: JobConfig, results: List[StepResult], status: str) -> JobResult:
        out = JobResult(job=job, steps=tuple(results), status=status)
        if self.console:
            self.console.print_job_finished(out)
        return out
