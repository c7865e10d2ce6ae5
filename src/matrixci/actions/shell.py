# actions/shell.py
from __future__ import annotations

from ..errors import ActionError
from ..model import Step, StepResult
from .registry import StepContext, run_process


def run_step(step: Step, ctx: StepContext) -> StepResult:
    """Run a `run:` step through the shell."""
    if not step.run:
        raise ActionError(
            kind="invalid_step",
            message=f"[{ctx.job.name}] step '{step.name}' has no command to run",
        )

    return run_process(
        step,
        step.run,
        shell=True,
        cwd=str(ctx.cwd_for(step)),
        env=ctx.env_for(step),
    )
