# actions/docker.py
from __future__ import annotations

from typing import Dict, List

from ..errors import ActionError
from ..model import Step, StepResult
from .registry import StepContext, check_tool_available, run_process

CONTAINER_WORKDIR = "/workspace"


# ---------------------------------------------------------------------
# Docker step helper
# ---------------------------------------------------------------------

def docker_step(
    name: str,
    cmd: str,
    image: str,
    *,
    cwd: str | None = None,
    volumes: List[str] | None = None,
    env: Dict[str, str] | None = None,
    user: str | None = None,
    continue_on_error: bool = False,
) -> Step:
    """Create a step that runs `cmd` inside a Docker container."""
    params = {"image": image}
    if volumes:
        params["volumes"] = ",".join(volumes)
    if user:
        params["user"] = user
    return Step(
        name=name,
        uses="docker",
        run=cmd,
        params=params,
        cwd=cwd,
        env=dict(env or {}),
        continue_on_error=continue_on_error,
    )


# ---------------------------------------------------------------------
# Docker step execution
# ---------------------------------------------------------------------

def build_command(step: Step, ctx: StepContext) -> List[str]:
    image = step.params.get("image")
    if not image:
        raise ActionError(
            kind="invalid_step",
            message=f"[{ctx.job.name}] docker step '{step.name}' has no image",
        )
    if not step.run:
        raise ActionError(
            kind="invalid_step",
            message=f"[{ctx.job.name}] docker step '{step.name}' has no command to run",
        )

    cmd = ["docker", "run", "--rm"]

    # Volume mount: workdir -> /workspace
    cmd.extend(["-v", f"{ctx.workdir.resolve()}:{CONTAINER_WORKDIR}"])

    for vol in filter(None, (v.strip() for v in step.params.get("volumes", "").split(","))):
        cmd.extend(["-v", vol])

    # Working directory: /workspace/<relative_cwd>
    container_cwd = f"{CONTAINER_WORKDIR}/{step.cwd or '.'}".replace("//", "/")
    cmd.extend(["-w", container_cwd])

    # only the workflow's env crosses into the container
    for key, value in ctx.job_env_for(step).items():
        cmd.extend(["-e", f"{key}={value}"])

    user = step.params.get("user")
    if user:
        cmd.extend(["--user", user])

    cmd.append(image)
    cmd.extend(["sh", "-c", step.run])
    return cmd


def run_step(step: Step, ctx: StepContext) -> StepResult:
    """Run a step inside a Docker container."""
    cmd = build_command(step, ctx)
    check_tool_available("docker")
    return run_process(step, cmd, shell=False)
