# errors.py
from __future__ import annotations

from dataclasses import dataclass, field


class MatrixCIError(Exception):
    """Base class for errors raised by matrixci."""


class ConfigurationError(MatrixCIError):
    """The workflow, a trigger rule or the matrix is malformed."""


class EmptyMatrixError(ConfigurationError):
    """A matrix dimension has no values, so the run would do nothing."""


class WorkflowLoadError(ConfigurationError):
    """A workflow file could not be found or did not produce a Workflow."""


@dataclass(eq=False)
class ActionError(MatrixCIError):
    """
    Structured infrastructure error raised by a step action, e.g. a missing
    tool. The executor turns it into a failed step.
    """
    kind: str
    message: str
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}"]
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


class UnknownActionError(ActionError, ConfigurationError):
    """A step `uses` an action nobody registered."""

    def __init__(self, action: str, known: list[str]):
        super().__init__(
            kind="unknown_action",
            message=f"No action registered for {action!r}",
            details={"known": ", ".join(sorted(known))},
        )
        self.action = action
