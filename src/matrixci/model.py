# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

PUSH = "push"
PULL_REQUEST = "pull_request"
EVENT_KINDS = (PUSH, PULL_REQUEST)

# step statuses
SUCCESS = "success"
FAILURE = "failure"
NOT_RUN = "not_run"

# job statuses
FAILED = "failed"
ABORTED = "aborted"


# ---------------------------------------------------------------------
# Declaration side (what the workflow says)
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class Event:
    """An incoming trigger event: a push or pull request against a branch."""
    kind: str
    branch: Optional[str] = None


@dataclass(frozen=True)
class TriggerRule:
    """
    Start a run for events of `kind` whose branch matches one of `branches`.

    Branch patterns are shell-style globs. No patterns means any branch.
    """
    kind: str
    branches: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MatrixDimension:
    name: str
    values: Tuple[str, ...]

    def __post_init__(self) -> None:
        # matrix values are always substituted as text
        object.__setattr__(self, "values", tuple(str(v) for v in self.values))


@dataclass(frozen=True)
class Matrix:
    """Named dimensions plus optional partial assignments to drop."""
    dimensions: Tuple[MatrixDimension, ...] = ()
    exclude: Tuple[Dict[str, str], ...] = ()

    @property
    def names(self) -> list[str]:
        return [d.name for d in self.dimensions]


@dataclass(frozen=True)
class Step:
    """
    A single unit of work inside a job.

    `uses` selects the action that executes the step ("run" for a shell
    command, or a registered action name such as "docker" or
    "org/action@v1"). `run` and `params` are handed to that action as-is.
    """
    name: str
    uses: str = "run"
    run: Optional[str] = None
    params: Dict[str, str] = field(default_factory=dict)
    cwd: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict)
    continue_on_error: bool = False
    timeout: Optional[float] = None  # seconds

    @property
    def action(self) -> str:
        """Registry key: `uses` without its `@ref` suffix."""
        return self.uses.split("@", 1)[0]

    @property
    def descriptor(self) -> str:
        """Short human readable command, for output and reports."""
        if self.run is not None:
            return self.run
        if self.params:
            args = " ".join(f"{k}={v}" for k, v in self.params.items())
            return f"{self.uses} {args}"
        return self.uses


@dataclass(frozen=True)
class JobTemplate:
    """One entry under `jobs:`: a step sequence run once per matrix point."""
    id: str
    steps: Tuple[Step, ...]
    name: Optional[str] = None
    matrix: Matrix = field(default_factory=Matrix)
    env: Dict[str, str] = field(default_factory=dict)
    continue_on_error: bool = False
    fail_fast: bool = False
    max_parallel: Optional[int] = None


@dataclass(frozen=True)
class Workflow:
    name: str
    jobs: Tuple[JobTemplate, ...]
    triggers: Tuple[TriggerRule, ...] = ()
    env: Dict[str, str] = field(default_factory=dict)
    # extra actions by `uses` name, merged over the built-ins
    actions: Dict[str, Any] = field(default_factory=dict)

    @property
    def fail_fast(self) -> bool:
        return any(t.fail_fast for t in self.jobs)

    @property
    def max_parallel(self) -> Optional[int]:
        limits = [t.max_parallel for t in self.jobs if t.max_parallel]
        return min(limits) if limits else None


@dataclass(frozen=True)
class RunPolicy:
    fail_fast: bool = False
    max_workers: Optional[int] = None
    timeout: Optional[float] = None  # seconds, whole run


# ---------------------------------------------------------------------
# Execution side (what actually ran)
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class JobConfig:
    """A fully parameterized job: one matrix point of one template."""
    index: int
    template: str
    name: str
    steps: Tuple[Step, ...]
    matrix: Tuple[Tuple[str, str], ...] = ()
    env: Dict[str, str] = field(default_factory=dict)
    continue_on_error: bool = False

    @property
    def assignment(self) -> Dict[str, str]:
        return dict(self.matrix)


@dataclass(frozen=True)
class StepResult:
    step: Step
    status: str
    exit_code: Optional[int] = None
    output: str = ""
    duration: float = 0.0
    error: Optional[str] = None

    @property
    def tolerated(self) -> bool:
        return self.status == FAILURE and self.step.continue_on_error

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.step.name,
            "uses": self.step.uses,
            "status": self.status,
            "exit_code": self.exit_code,
            "duration": round(self.duration, 3),
            "error": self.error,
        }


@dataclass(frozen=True)
class JobResult:
    job: JobConfig
    steps: Tuple[StepResult, ...]
    status: str
    error: Optional[str] = None

    @property
    def failed_step(self) -> Optional[StepResult]:
        for r in self.steps:
            if r.status == FAILURE:
                return r
        return None

    @property
    def tolerated(self) -> bool:
        """True if every failed step was allowed to fail."""
        failures = [r for r in self.steps if r.status == FAILURE]
        return bool(failures) and all(r.tolerated for r in failures) and self.error is None

    @property
    def excused(self) -> bool:
        """
        A failed job that does not fail the run: the job allows failure and
        every step that failed was itself marked continue-on-error.
        """
        return self.status == FAILED and self.job.continue_on_error and self.tolerated

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.job.name,
            "template": self.job.template,
            "matrix": self.job.assignment,
            "status": self.status,
            "error": self.error,
            "steps": [r.to_dict() for r in self.steps],
        }


@dataclass(frozen=True)
class RunResult:
    jobs: Tuple[JobResult, ...]
    status: str

    @property
    def ok(self) -> bool:
        return self.status == SUCCESS

    def by_name(self) -> Mapping[str, JobResult]:
        return {r.job.name: r for r in self.jobs}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "jobs": [r.to_dict() for r in self.jobs],
        }
