from .runner import run_workflow
from .model import Event, JobTemplate, RunPolicy, Step, Workflow
from .actions.docker import docker_step
from .actions.tool import tool_step, tool_action
from .dsl import job, sh, uses, matrix, on_push, on_pull_request, wf, JobBuilder, build

__all__ = [
    "job", "sh", "uses", "matrix", "on_push", "on_pull_request", "wf", "JobBuilder", "build",
    "run_workflow", "Event", "JobTemplate", "RunPolicy", "Step", "Workflow",
    "docker_step", "tool_step", "tool_action",
]
