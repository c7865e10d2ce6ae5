# results.py
from __future__ import annotations

import threading
from typing import Iterable, List

from .model import ABORTED, FAILED, FAILURE, SUCCESS, JobResult, RunResult


class ResultCollector:
    """Job results, inserted concurrently by worker threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._results: List[JobResult] = []

    def add(self, result: JobResult) -> None:
        with self._lock:
            self._results.append(result)

    def results(self) -> List[JobResult]:
        with self._lock:
            return list(self._results)

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)


def run_status(results: Iterable[JobResult]) -> str:
    """
    A run fails if any job was aborted, or failed without being excused.
    With job-level continue-on-error off, every failed job is fatal.
    """
    for r in results:
        if r.status == ABORTED:
            return FAILURE
        if r.status == FAILED and not r.excused:
            return FAILURE
    return SUCCESS


def aggregate(results: Iterable[JobResult]) -> RunResult:
    """
    Fold job results into the run verdict.

    Jobs are ordered by their position in the expanded matrix, never by
    completion order, so identical inputs always report identically.
    """
    ordered = tuple(sorted(results, key=lambda r: r.job.index))
    return RunResult(jobs=ordered, status=run_status(ordered))
