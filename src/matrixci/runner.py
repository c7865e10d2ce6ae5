# runner.py
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional

from .actions.registry import ActionRegistry, default_registry, process_env
from .errors import EmptyMatrixError
from .executor import StepExecutor
from .matrix import expand_workflow
from .model import Event, JobConfig, RunPolicy, RunResult, Workflow
from .results import aggregate
from .scheduler import JobScheduler
from .trigger import TriggerListener
from .ui.console import Console

# event ---> trigger ---> matrix ---> scheduler ---> executor per job ---> verdict


def resolve_policy(
    workflow: Workflow,
    *,
    fail_fast: Optional[bool] = None,
    max_workers: Optional[int] = None,
    timeout: Optional[float] = None,
) -> RunPolicy:
    """Explicit arguments win over what the workflow declares."""
    return RunPolicy(
        fail_fast=workflow.fail_fast if fail_fast is None else fail_fast,
        max_workers=max_workers or workflow.max_parallel,
        timeout=timeout,
    )


def registry_for(workflow: Workflow, base: Optional[ActionRegistry] = None) -> ActionRegistry:
    return (base or default_registry()).extended(workflow.actions)


def validate_actions(jobs: Iterable[JobConfig], actions: ActionRegistry) -> None:
    """Fail before anything runs if a step uses an unregistered action."""
    for j in jobs:
        for step in j.steps:
            actions.resolve(step)


def plan(workflow: Workflow, *, console: Optional[Console] = None) -> List[JobConfig]:
    """Expand the workflow's matrices; an empty matrix is reported, then raised."""
    try:
        return expand_workflow(workflow)
    except EmptyMatrixError as e:
        if console:
            console.print_warning("Empty matrix", str(e))
        raise


def run_workflow(
    workflow: Workflow,
    event: Event,
    *,
    policy: Optional[RunPolicy] = None,
    workdir: str | Path = ".",
    actions: Optional[ActionRegistry] = None,
    console: Optional[Console] = None,
    force: bool = False,
) -> Optional[RunResult]:
    """
    Run a workflow for an event.

    Returns None when no trigger rule accepts the event (a no-op, not an
    error). Configuration problems raise ConfigurationError before any job
    starts.
    """
    listener = TriggerListener(workflow.triggers)
    if not force and not listener.accepts(event):
        if console:
            console.print_not_triggered(event.kind, event.branch)
        return None

    jobs = plan(workflow, console=console)
    registry = registry_for(workflow, actions)
    validate_actions(jobs, registry)

    executor = StepExecutor(registry, workdir=workdir, base_env=process_env(), console=console)
    scheduler = JobScheduler(executor, policy or resolve_policy(workflow), console=console)
    return aggregate(scheduler.schedule(jobs))
