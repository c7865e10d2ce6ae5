# actions/tool.py
from __future__ import annotations

import shlex
from typing import List

from ..errors import ActionError
from ..model import Step, StepResult
from .registry import ActionHandler, StepContext, check_tool_available, run_process


# ---------------------------------------------------------------------
# Tool step helper
# ---------------------------------------------------------------------

def tool_step(
    name: str,
    tool: str,
    args: str | None = None,
    *,
    cwd: str | None = None,
    files: List[str] | None = None,
    continue_on_error: bool = False,
) -> Step:
    """Create a step that runs a command line tool (linter, formatter, build tool)."""
    params = {"tool": tool}
    if args:
        params["args"] = args
    if files:
        params["files"] = " ".join(shlex.quote(f) for f in files)
    return Step(name=name, uses="tool", params=params, cwd=cwd, continue_on_error=continue_on_error)


# ---------------------------------------------------------------------
# Tool step execution
# ---------------------------------------------------------------------

def build_command(step: Step, ctx: StepContext) -> List[str]:
    tool = step.params.get("tool")
    if not tool:
        raise ActionError(
            kind="invalid_step",
            message=f"[{ctx.job.name}] step '{step.name}' has no tool",
        )

    cmd_parts = [tool]
    # Split args string into list, handling quoted strings
    cmd_parts.extend(shlex.split(step.params.get("args", "")))
    cmd_parts.extend(shlex.split(step.params.get("files", "")))
    return cmd_parts


def run_step(step: Step, ctx: StepContext) -> StepResult:
    """Run a tool step."""
    cmd_parts = build_command(step, ctx)
    cwd = ctx.cwd_for(step)
    check_tool_available(cmd_parts[0])

    return run_process(
        step,
        cmd_parts,
        shell=False,
        cwd=str(cwd),
        env=ctx.env_for(step),
    )


def tool_action(tool: str, *, command_param: str = "command") -> ActionHandler:
    """
    Bind a tool to an action name, e.g. `register("actions-rs/cargo",
    tool_action("cargo"))`. The step's `command` and `args` params become
    the tool's arguments.
    """

    def _handler(step: Step, ctx: StepContext) -> StepResult:
        args = " ".join(
            part for part in (step.params.get(command_param, ""), step.params.get("args", "")) if part
        )
        params = {"tool": tool}
        if args:
            params["args"] = args
        bound = Step(
            name=step.name,
            uses="tool",
            params=params,
            cwd=step.cwd,
            env=step.env,
            continue_on_error=step.continue_on_error,
            timeout=step.timeout,
        )
        result = run_step(bound, ctx)
        return StepResult(
            step=step,
            status=result.status,
            exit_code=result.exit_code,
            output=result.output,
            error=result.error,
        )

    return _handler
