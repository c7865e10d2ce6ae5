import threading

from conftest import fake

from matrixci.actions.registry import ActionRegistry
from matrixci.errors import ActionError
from matrixci.executor import StepExecutor
from matrixci.model import ABORTED, FAILED, FAILURE, NOT_RUN, SUCCESS, JobConfig, Step
from matrixci.results import aggregate
from matrixci.ui.console import Console


def make_job(*steps, name="job", matrix=()):
    return JobConfig(index=0, template="job", name=name, steps=tuple(steps), matrix=matrix)


def statuses(result):
    return [r.status for r in result.steps]


def test_all_steps_succeed(registry, fake_action):
    job = make_job(fake("A"), fake("B"), fake("C"))
    result = StepExecutor(registry).run(job)

    assert result.status == SUCCESS
    assert statuses(result) == [SUCCESS, SUCCESS, SUCCESS]
    assert fake_action.steps_for("job") == ["A", "B", "C"]


def test_failure_stops_remaining_steps(registry, fake_action):
    job = make_job(fake("A"), fake("B", fail=True), fake("C"))
    result = StepExecutor(registry).run(job)

    assert statuses(result) == [SUCCESS, FAILURE, NOT_RUN]
    assert result.status == FAILED
    assert result.failed_step.step.name == "B"
    assert fake_action.steps_for("job") == ["A", "B"]


def test_continue_on_error_runs_next_step_but_job_still_fails(registry, fake_action):
    job = make_job(fake("A"), fake("B", fail=True, continue_on_error=True), fake("C"))
    result = StepExecutor(registry).run(job)

    assert statuses(result) == [SUCCESS, FAILURE, SUCCESS]
    assert result.status == FAILED
    assert result.tolerated
    assert fake_action.steps_for("job") == ["A", "B", "C"]


def test_continue_on_error_then_hard_failure(registry):
    job = make_job(
        fake("A", fail=True, continue_on_error=True),
        fake("B", fail=True),
        fake("C"),
    )
    result = StepExecutor(registry).run(job)

    assert statuses(result) == [FAILURE, FAILURE, NOT_RUN]
    assert result.status == FAILED
    assert not result.tolerated


def test_cancelled_before_start_is_aborted(registry, fake_action):
    cancel = threading.Event()
    cancel.set()
    result = StepExecutor(registry).run(make_job(fake("A"), fake("B")), cancel)

    assert result.status == ABORTED
    assert statuses(result) == [NOT_RUN, NOT_RUN]
    assert fake_action.calls == []


def test_cancellation_is_observed_at_step_boundary(fake_action):
    cancel = threading.Event()

    def cancelling(step, ctx):
        result = fake_action(step, ctx)
        cancel.set()
        return result

    registry = ActionRegistry({"fake": fake_action, "cancel": cancelling})
    job = make_job(fake("A"), Step(name="B", uses="cancel"), fake("C"))
    result = StepExecutor(registry).run(job, cancel)

    # B runs to completion, C never starts
    assert statuses(result) == [SUCCESS, SUCCESS, NOT_RUN]
    assert result.status == ABORTED


def test_action_error_becomes_step_failure(fake_action):
    def broken(step, ctx):
        raise ActionError(kind="tool_unavailable", message="cargo is not available")

    registry = ActionRegistry({"fake": fake_action, "broken": broken})
    result = StepExecutor(registry).run(make_job(Step(name="X", uses="broken"), fake("Y")))

    assert statuses(result) == [FAILURE, NOT_RUN]
    assert "cargo is not available" in result.steps[0].error


def test_results_keep_declared_step_and_output(registry):
    step = fake("A")
    result = StepExecutor(registry).run(make_job(step))
    assert result.steps[0].step is step
    assert result.steps[0].output == "A output"
    assert result.steps[0].duration >= 0


def test_raising_action_keeps_earlier_results(fake_action):
    def broken(step, ctx):
        raise OSError("permission denied")

    registry = ActionRegistry({"fake": fake_action, "broken": broken})
    job = make_job(fake("A"), Step(name="B", uses="broken"), fake("C"))
    result = StepExecutor(registry).run(job)

    assert statuses(result) == [SUCCESS, FAILURE, NOT_RUN]
    assert result.status == FAILED
    assert result.steps[1].error == "OSError: permission denied"
    assert fake_action.steps_for("job") == ["A"]


def test_tolerated_step_failure_fails_run_unless_job_allows_failure(registry):
    steps = (fake("A"), fake("B", fail=True, continue_on_error=True), fake("C"))
    strict = JobConfig(index=0, template="job", name="strict", steps=steps)
    lenient = JobConfig(index=1, template="job", name="lenient", steps=steps, continue_on_error=True)
    executor = StepExecutor(registry)

    assert aggregate([executor.run(strict)]).status == FAILURE
    assert aggregate([executor.run(lenient)]).status == SUCCESS


def test_job_allowing_failure_still_fails_run_on_hard_step_failure(registry):
    job = JobConfig(index=0, template="job", name="job", steps=(fake("A", fail=True), fake("B")), continue_on_error=True)
    run = aggregate([StepExecutor(registry).run(job)])

    assert run.jobs[0].status == FAILED
    assert run.status == FAILURE


def test_cancelled_job_is_not_announced_as_started(registry, capsys):
    cancel = threading.Event()
    cancel.set()
    StepExecutor(registry, console=Console()).run(make_job(fake("A")), cancel)

    out = capsys.readouterr().out
    assert "JOB STARTED" not in out
    assert "JOB FINISHED: job -> ABORTED" in out
