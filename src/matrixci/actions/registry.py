# actions/registry.py
from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional

from ..errors import ActionError, UnknownActionError
from ..model import FAILURE, SUCCESS, JobConfig, Step, StepResult

# Anything that can execute a step. Handlers never raise for an ordinary
# command failure; they return a StepResult with status "failure".
ActionHandler = Callable[[Step, "StepContext"], StepResult]

OUTPUT_TAIL = 4000

TOOL_HINTS = {
    "cargo": "Install Rust (rustup) or fix PATH.",
    "npm": "Install Node.js (includes npm) or fix PATH.",
    "node": "Install Node.js or fix PATH.",
    "pytest": "Install pytest (e.g., pip install pytest).",
    "ruff": "Install ruff (e.g., pip install ruff).",
    "docker": "Install Docker and ensure the daemon is running.",
    "python3": "Install Python 3 or fix PATH (python3).",
}


@dataclass(frozen=True)
class StepContext:
    """Everything an action needs besides the step itself."""
    job: JobConfig
    workdir: Path
    base_env: Mapping[str, str] = field(default_factory=dict)

    def cwd_for(self, step: Step) -> Path:
        cwd = (self.workdir / (step.cwd or ".")).resolve()
        if not cwd.exists():
            raise ActionError(
                kind="cwd_not_found",
                message=f"[{self.job.name}] step '{step.name}' cwd not found: {cwd}",
                details={"cwd": str(cwd)},
            )
        return cwd

    def env_for(self, step: Step) -> Dict[str, str]:
        """Process env, then job env, then step env."""
        env = dict(self.base_env)
        env.update(self.job.env)
        env.update(step.env)
        return env

    def job_env_for(self, step: Step) -> Dict[str, str]:
        """Only the env declared by the workflow (no process env)."""
        env = dict(self.job.env)
        env.update(step.env)
        return env


def _tail(text: Optional[str]) -> str:
    if not text:
        return ""
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    return text[-OUTPUT_TAIL:]


def run_process(step: Step, cmd, **kwargs) -> StepResult:
    """
    Run a subprocess for a step and turn its exit status into a StepResult.

    A step timeout kills the process and reports a failure.
    """
    try:
        proc = subprocess.run(
            cmd,
            text=True,
            capture_output=True,
            timeout=step.timeout,
            **kwargs,
        )
    except subprocess.TimeoutExpired as e:
        return StepResult(
            step=step,
            status=FAILURE,
            output=_tail(e.stdout) + _tail(e.stderr),
            error=f"timed out after {step.timeout:g}s",
        )

    output = _tail(proc.stdout) + _tail(proc.stderr)
    return StepResult(
        step=step,
        status=SUCCESS if proc.returncode == 0 else FAILURE,
        exit_code=proc.returncode,
        output=output,
    )


def check_tool_available(tool: str) -> None:
    """Check if a tool is available, raise helpful error if not."""
    try:
        subprocess.run(
            [tool, "--version"],
            capture_output=True,
            check=True,
        )
    except (subprocess.CalledProcessError, FileNotFoundError):
        hint = TOOL_HINTS.get(tool, f"Install {tool} or fix PATH.")
        raise ActionError(
            kind="tool_unavailable",
            message=f"{tool} is not available",
            details={"hint": hint, "tool": tool},
        )


class ActionRegistry:
    """Maps `uses` names to the handlers that execute them."""

    def __init__(self, handlers: Optional[Mapping[str, ActionHandler]] = None):
        self._handlers: Dict[str, ActionHandler] = dict(handlers or {})

    def register(self, name: str, handler: ActionHandler) -> None:
        if "@" in name:
            raise ValueError(f"Register actions without a version: {name!r}")
        self._handlers[name] = handler

    def names(self) -> List[str]:
        return sorted(self._handlers)

    def resolve(self, step: Step) -> ActionHandler:
        try:
            return self._handlers[step.action]
        except KeyError:
            raise UnknownActionError(step.action, self.names()) from None

    def execute(self, step: Step, ctx: StepContext) -> StepResult:
        return self.resolve(step)(step, ctx)

    def extended(self, handlers: Mapping[str, ActionHandler]) -> "ActionRegistry":
        out = ActionRegistry(self._handlers)
        for name, handler in handlers.items():
            out.register(name, handler)
        return out


def default_registry() -> ActionRegistry:
    from .docker import run_step as docker_run
    from .shell import run_step as shell_run
    from .tool import run_step as tool_run

    return ActionRegistry(
        {
            "run": shell_run,
            "docker": docker_run,
            "tool": tool_run,
        }
    )


def process_env() -> Dict[str, str]:
    return os.environ.copy()
