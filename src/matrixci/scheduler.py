# scheduler.py
from __future__ import annotations

import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, List, Optional

from .executor import StepExecutor, not_run
from .model import ABORTED, FAILED, JobConfig, JobResult, RunPolicy
from .results import ResultCollector
from .ui.console import Console


def default_workers() -> int:
    c = os.cpu_count() or 2
    return max(1, c - 1)


def aborted(job: JobConfig) -> JobResult:
    """Result for a job that was cancelled before it started."""
    return JobResult(job=job, steps=tuple(not_run(list(job.steps))), status=ABORTED)


class JobScheduler:
    """
    Runs every job of a run on a thread pool.

    Jobs are independent. With fail_fast, the first unexcused job failure
    cancels jobs that have not started and tells running jobs to stop at
    their next step boundary.
    """

    def __init__(
        self,
        executor: StepExecutor,
        policy: Optional[RunPolicy] = None,
        *,
        console: Optional[Console] = None,
    ):
        self.executor = executor
        self.policy = policy or RunPolicy()
        self.console = console

    def _cancel_all(self, cancel: threading.Event, in_flight: Dict[Future, JobConfig]) -> None:
        cancel.set()
        for fut in in_flight:
            fut.cancel()  # only succeeds for jobs not yet started

    def _on_timeout(self, cancel: threading.Event) -> None:
        if self.console:
            self.console.print_warning(
                "Run timed out",
                f"Run exceeded {self.policy.timeout:g}s; cancelling remaining steps",
            )
        cancel.set()

    def schedule(self, jobs: Iterable[JobConfig]) -> List[JobResult]:
        jobs = sorted(jobs, key=lambda j: j.index)
        collector = ResultCollector()
        cancel = threading.Event()
        max_workers = self.policy.max_workers or default_workers()

        timer: Optional[threading.Timer] = None
        if self.policy.timeout:
            timer = threading.Timer(self.policy.timeout, self._on_timeout, args=(cancel,))
            timer.daemon = True
            timer.start()

        try:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                in_flight: Dict[Future, JobConfig] = {
                    pool.submit(self.executor.run, job, cancel): job for job in jobs
                }

                for fut in as_completed(list(in_flight)):
                    job = in_flight[fut]

                    if fut.cancelled():
                        result = aborted(job)
                    else:
                        try:
                            result = fut.result()
                        except Exception as e:
                            result = JobResult(
                                job=job,
                                steps=tuple(not_run(list(job.steps))),
                                status=FAILED,
                                error=f"{type(e).__name__}: {e}",
                            )
                            if self.console:
                                self.console.print_error(f"Job crashed: {job.name}", str(e))

                    collector.add(result)

                    if (
                        self.policy.fail_fast
                        and result.status == FAILED
                        and not result.excused
                        and not cancel.is_set()
                    ):
                        if self.console:
                            self.console.print_info(f"fail-fast: {job.name} failed, cancelling other jobs")
                        self._cancel_all(cancel, in_flight)
        finally:
            if timer is not None:
                timer.cancel()

        return collector.results()
