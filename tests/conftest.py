from __future__ import annotations

import threading

import pytest

from matrixci.actions.registry import ActionRegistry
from matrixci.model import FAILURE, SUCCESS, Step, StepResult


class FakeAction:
    """
    Step collaborator driven by the step itself: `params["fail"] == "1"`
    fails, `params["fail_on"]` fails when the job's matrix has that value.
    Every call is recorded as (job name, step name).
    """

    def __init__(self):
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def __call__(self, step: Step, ctx) -> StepResult:
        with self._lock:
            self.calls.append((ctx.job.name, step.name))

        gate = step.params.get("wait")
        if gate is not None:
            GATES[gate].wait(timeout=5)

        fail = step.params.get("fail") == "1"
        fail_on = step.params.get("fail_on")
        if fail_on is not None and fail_on in ctx.job.assignment.values():
            fail = True

        return StepResult(
            step=step,
            status=FAILURE if fail else SUCCESS,
            exit_code=1 if fail else 0,
            output=f"{step.name} output",
        )

    def steps_for(self, job_name: str) -> list[str]:
        return [s for j, s in self.calls if j == job_name]


GATES: dict[str, threading.Event] = {}


def fake(name: str, *, fail: bool = False, fail_on: str | None = None, wait: str | None = None,
         continue_on_error: bool = False) -> Step:
    params = {"fail": "1" if fail else "0"}
    if fail_on is not None:
        params["fail_on"] = fail_on
    if wait is not None:
        params["wait"] = wait
    return Step(name=name, uses="fake", params=params, continue_on_error=continue_on_error)


@pytest.fixture
def fake_action():
    return FakeAction()


@pytest.fixture
def registry(fake_action):
    return ActionRegistry({"fake": fake_action})


@pytest.fixture
def gates():
    GATES.clear()
    yield GATES
    for g in GATES.values():
        g.set()
    GATES.clear()
