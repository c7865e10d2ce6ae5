from matrixci.model import ABORTED, FAILED, FAILURE, NOT_RUN, SUCCESS, JobConfig, JobResult, Step, StepResult
from matrixci.results import ResultCollector, aggregate


def job_result(index, status, *, continue_on_error=False, tolerated_steps=False):
    step = Step(name="s", run="x", continue_on_error=tolerated_steps)
    job = JobConfig(
        index=index,
        template="t",
        name=f"job{index}",
        steps=(step,),
        continue_on_error=continue_on_error,
    )
    step_status = {SUCCESS: SUCCESS, FAILED: FAILURE, ABORTED: NOT_RUN}[status]
    return JobResult(job=job, steps=(StepResult(step=step, status=step_status),), status=status)


def test_all_success():
    run = aggregate([job_result(0, SUCCESS), job_result(1, SUCCESS)])
    assert run.status == SUCCESS
    assert run.ok


def test_any_failed_fails_the_run():
    run = aggregate([job_result(0, SUCCESS), job_result(1, FAILED)])
    assert run.status == FAILURE


def test_aborted_fails_the_run():
    run = aggregate([job_result(0, SUCCESS), job_result(1, ABORTED)])
    assert run.status == FAILURE


def test_job_level_continue_on_error_alone_does_not_excuse_a_hard_failure():
    run = aggregate([job_result(0, SUCCESS), job_result(1, FAILED, continue_on_error=True)])
    assert not run.jobs[1].excused
    assert run.status == FAILURE


def test_tolerated_step_failures_still_fail_the_run_without_job_level_flag():
    run = aggregate([job_result(0, FAILED, tolerated_steps=True)])
    assert run.jobs[0].status == FAILED
    assert not run.jobs[0].excused
    assert run.status == FAILURE


def test_tolerated_step_failures_in_a_job_that_allows_failure_pass():
    run = aggregate([job_result(0, SUCCESS), job_result(1, FAILED, continue_on_error=True, tolerated_steps=True)])
    assert run.jobs[1].status == FAILED
    assert run.jobs[1].excused
    assert run.status == SUCCESS


def test_ordering_follows_matrix_position_not_completion():
    completed = [job_result(2, SUCCESS), job_result(0, FAILED), job_result(1, SUCCESS)]
    run = aggregate(completed)
    assert [r.job.index for r in run.jobs] == [0, 1, 2]


def test_aggregate_is_idempotent():
    results = [job_result(1, FAILED), job_result(0, SUCCESS), job_result(2, ABORTED)]
    assert aggregate(results) == aggregate(results)
    assert aggregate(results).to_dict() == aggregate(list(reversed(results))).to_dict()


def test_collector_snapshot():
    collector = ResultCollector()
    collector.add(job_result(0, SUCCESS))
    snapshot = collector.results()
    collector.add(job_result(1, SUCCESS))
    assert len(snapshot) == 1
    assert len(collector) == 2
