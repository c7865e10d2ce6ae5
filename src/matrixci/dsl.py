# src/matrixci/dsl.py
from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .actions.registry import ActionHandler
from .model import PULL_REQUEST, PUSH, JobTemplate, Matrix, MatrixDimension, Step, TriggerRule, Workflow
from .trigger import validate_rules


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def sh(
    name: str,
    cmd: str,
    *,
    cwd: str | None = None,
    env: Optional[Dict[str, str]] = None,
    continue_on_error: bool = False,
    timeout: float | None = None,
) -> Step:
    """Create a shell step."""
    return Step(
        name=name,
        run=cmd,
        cwd=cwd,
        env=dict(env or {}),
        continue_on_error=continue_on_error,
        timeout=timeout,
    )


def uses(
    name: str,
    action: str,
    *,
    with_: Optional[Dict[str, Any]] = None,
    cwd: str | None = None,
    continue_on_error: bool = False,
    timeout: float | None = None,
) -> Step:
    """Create a step executed by a registered action, e.g. uses("Build", "actions-rs/cargo@v1", with_={...})."""
    return Step(
        name=name,
        uses=action,
        params={k: str(v) for k, v in (with_ or {}).items()},
        cwd=cwd,
        continue_on_error=continue_on_error,
        timeout=timeout,
    )


# ---------------------------------------------------------------------
# Matrix / triggers
# ---------------------------------------------------------------------

def matrix(
    dims: Optional[Mapping[str, Iterable[Any]]] = None,
    *,
    exclude: Sequence[Mapping[str, Any]] = (),
    **kw_dims: Iterable[Any],
) -> Matrix:
    """
    Example:
        matrix(rust=["stable", "beta", "nightly"])
        matrix({"python-version": ["3.11", "3.12"]}, exclude=[{"python-version": "3.11"}])
    """
    merged: Dict[str, Iterable[Any]] = dict(dims or {})
    merged.update(kw_dims)
    return Matrix(
        dimensions=tuple(MatrixDimension(name=k, values=tuple(v)) for k, v in merged.items()),
        exclude=tuple({k: str(v) for k, v in e.items()} for e in exclude),
    )


def on_push(*branches: str) -> TriggerRule:
    return TriggerRule(kind=PUSH, branches=tuple(branches))


def on_pull_request(*branches: str) -> TriggerRule:
    return TriggerRule(kind=PULL_REQUEST, branches=tuple(branches))


# ---------------------------------------------------------------------
# Functional job helper
# ---------------------------------------------------------------------

def job(
    id: str,
    *steps: Step,  # allow: job("x", sh(...), sh(...))
    steps_list: Optional[List[Step]] = None,  # allow: job("x", steps_list=[...])
    name: Optional[str] = None,
    matrix: Optional[Matrix] = None,
    env: Optional[Dict[str, str]] = None,
    continue_on_error: bool = False,
    fail_fast: bool = False,
    max_parallel: Optional[int] = None,
    cwd: str | None = None,  # default cwd applied to steps missing cwd
) -> JobTemplate:
    steps_final: List[Step] = []
    if steps_list:
        steps_final.extend(list(steps_list))
    steps_final.extend(list(steps))

    if not steps_final:
        raise ValueError(f"job({id!r}) must have at least one step")

    if cwd is not None:
        steps_final = [s if s.cwd is not None else replace(s, cwd=cwd) for s in steps_final]

    return JobTemplate(
        id=id,
        name=name,
        steps=tuple(steps_final),
        matrix=matrix or Matrix(),
        env=dict(env or {}),
        continue_on_error=continue_on_error,
        fail_fast=fail_fast,
        max_parallel=max_parallel,
    )


# ---------------------------------------------------------------------
# Builder API
# ---------------------------------------------------------------------

class JobBuilder:
    def __init__(self, id: str):
        self.id = id
        self._name: Optional[str] = None
        self._steps: list[Step] = []
        self._dims: Dict[str, list[str]] = {}
        self._exclude: list[Dict[str, str]] = []
        self._env: dict[str, str] = {}
        self._continue_on_error = False
        self._fail_fast = False
        self._max_parallel: Optional[int] = None

    def named(self, name: str):
        self._name = name
        return self

    def define_step(self, name: str, run: str, cwd: str | None = None, *, continue_on_error: bool = False):
        self._steps.append(sh(name, run, cwd=cwd, continue_on_error=continue_on_error))
        return self

    def add_step(self, step: Step):
        self._steps.append(step)
        return self

    def over(self, dimension: str, *values: Any):
        self._dims[dimension] = [str(v) for v in values]
        return self

    def excluding(self, **assignment: Any):
        self._exclude.append({k: str(v) for k, v in assignment.items()})
        return self

    def with_env(self, **env):
        self._env.update({k: str(v) for k, v in env.items()})
        return self

    def allow_failure(self, enabled: bool = True):
        self._continue_on_error = enabled
        return self

    def strategy(self, *, fail_fast: bool = False, max_parallel: Optional[int] = None):
        self._fail_fast = fail_fast
        self._max_parallel = max_parallel
        return self

    def build(self) -> JobTemplate:
        if not self._steps:
            raise ValueError(f"Job '{self.id}' has no steps")

        return job(
            self.id,
            steps_list=self._steps,
            name=self._name,
            matrix=matrix(self._dims, exclude=self._exclude),
            env=self._env,
            continue_on_error=self._continue_on_error,
            fail_fast=self._fail_fast,
            max_parallel=self._max_parallel,
        )


def build(id: str) -> JobBuilder:
    """Convenience: build('test').define_step(...).build()"""
    return JobBuilder(id)


# ---------------------------------------------------------------------
# Workflow helper (single-file story)
# ---------------------------------------------------------------------

def wf(
    *jobs: JobTemplate,
    name: str = "workflow",
    on: Optional[Sequence[TriggerRule]] = None,
    env: Optional[Dict[str, str]] = None,
    actions: Optional[Mapping[str, ActionHandler]] = None,
) -> Workflow:
    """
    Workflow definition helper.

        from matrixci import wf, job, sh, matrix, on_push

        def workflow():
            return wf(
                job("ci", sh("Build", "make"), matrix=matrix(cc=["gcc", "clang"])),
                on=[on_push("main")],
            )

    Without `on`, pushes and pull requests on any branch trigger the run.
    """
    if not jobs:
        raise ValueError("wf() needs at least one job")

    ids = [j.id for j in jobs]
    dupes = sorted({i for i in ids if ids.count(i) > 1})
    if dupes:
        raise ValueError(f"Duplicate job ids found: {dupes}")

    triggers = tuple(on) if on is not None else (on_push(), on_pull_request())
    return Workflow(
        name=name,
        jobs=tuple(jobs),
        triggers=validate_rules(triggers),
        env=dict(env or {}),
        actions=dict(actions or {}),
    )
