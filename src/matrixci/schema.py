# schema.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import ConfigurationError
from .model import EVENT_KINDS, JobTemplate, Matrix, MatrixDimension, Step, TriggerRule, Workflow
from .trigger import validate_rules

# -------------------- Schemas --------------------
# Mirrors the subset of the GitHub Actions workflow syntax we execute.


class _Doc(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class TriggerDoc(_Doc):
    branches: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _single_branch(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("branches"), str):
            data = {**data, "branches": [data["branches"]]}
        return data


class StepDoc(_Doc):
    id: Optional[str] = None
    name: Optional[str] = None
    run: Optional[str] = None
    uses: Optional[str] = None
    with_: Dict[str, Any] = Field(default_factory=dict, alias="with")
    working_directory: Optional[str] = Field(None, alias="working-directory")
    env: Dict[str, Any] = Field(default_factory=dict)
    continue_on_error: bool = Field(False, alias="continue-on-error")
    timeout_minutes: Optional[float] = Field(None, alias="timeout-minutes", gt=0)

    @model_validator(mode="after")
    def _run_or_uses(self) -> "StepDoc":
        if (self.run is None) == (self.uses is None):
            raise ValueError("a step needs exactly one of 'run' or 'uses'")
        return self


class StrategyDoc(_Doc):
    matrix: Dict[str, Any] = Field(default_factory=dict)
    fail_fast: bool = Field(False, alias="fail-fast")
    max_parallel: Optional[int] = Field(None, alias="max-parallel", ge=1)


class JobDoc(_Doc):
    name: Optional[str] = None
    runs_on: Any = Field(None, alias="runs-on")  # runner provisioning is not ours; accepted and ignored
    env: Dict[str, Any] = Field(default_factory=dict)
    continue_on_error: bool = Field(False, alias="continue-on-error")
    strategy: StrategyDoc = Field(default_factory=StrategyDoc)
    steps: List[StepDoc] = Field(min_length=1)


class WorkflowDoc(_Doc):
    name: Optional[str] = None
    on: Any = None
    env: Dict[str, Any] = Field(default_factory=dict)
    jobs: Dict[str, JobDoc] = Field(min_length=1)


# -------------------- Conversion --------------------

def _text(value: Any, where: str) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ConfigurationError(f"{where}: expected a scalar, got {type(value).__name__}")


def _text_map(values: Dict[str, Any], where: str) -> Dict[str, str]:
    return {str(k): _text(v, f"{where}.{k}") for k, v in values.items()}


def _triggers(on: Any) -> Tuple[TriggerRule, ...]:
    if on is None:
        raise ConfigurationError("Workflow has no 'on' section; nothing could ever trigger it")

    if isinstance(on, str):
        on = [on]

    if isinstance(on, list):
        rules = [TriggerRule(kind=str(kind)) for kind in on]
    elif isinstance(on, dict):
        rules = []
        for kind, body in on.items():
            if str(kind) not in EVENT_KINDS:
                raise ConfigurationError(
                    f"Unknown trigger event {kind!r}. Expected one of: {', '.join(EVENT_KINDS)}"
                )
            try:
                doc = TriggerDoc.model_validate(body or {})
            except ValidationError as e:
                raise ConfigurationError(f"Invalid trigger 'on.{kind}':\n{e}") from e
            rules.append(TriggerRule(kind=str(kind), branches=tuple(doc.branches)))
    else:
        raise ConfigurationError(f"'on' must be a string, list or mapping, got {type(on).__name__}")

    return validate_rules(rules)


def _matrix(raw: Dict[str, Any], job_id: str) -> Matrix:
    dims: List[MatrixDimension] = []
    exclude: List[Dict[str, str]] = []

    for key, values in raw.items():
        where = f"jobs.{job_id}.strategy.matrix.{key}"
        if key == "include":
            raise ConfigurationError(f"{where}: 'include' is not supported; add a dimension value instead")
        if key == "exclude":
            if not isinstance(values, list) or not all(isinstance(e, dict) for e in values):
                raise ConfigurationError(f"{where}: expected a list of mappings")
            exclude.extend(_text_map(e, where) for e in values)
            continue
        if not isinstance(values, list):
            raise ConfigurationError(f"{where}: expected a list of values, got {type(values).__name__}")
        dims.append(MatrixDimension(name=str(key), values=tuple(_text(v, where) for v in values)))

    return Matrix(dimensions=tuple(dims), exclude=tuple(exclude))


def _step(doc: StepDoc, where: str) -> Step:
    name = doc.name or doc.id or doc.run or doc.uses
    if doc.uses is not None:
        uses, run = doc.uses, doc.with_.get("run")
        params = {k: v for k, v in _text_map(doc.with_, f"{where}.with").items() if k != "run"}
    else:
        uses, run, params = "run", doc.run, {}

    return Step(
        name=name.strip().splitlines()[0] if name and name.strip() else where,
        uses=uses,
        run=_text(run, f"{where}.with.run") if run is not None else None,
        params=params,
        cwd=doc.working_directory,
        env=_text_map(doc.env, f"{where}.env"),
        continue_on_error=doc.continue_on_error,
        timeout=doc.timeout_minutes * 60 if doc.timeout_minutes else None,
    )


def _job(job_id: str, doc: JobDoc) -> JobTemplate:
    return JobTemplate(
        id=job_id,
        name=doc.name,
        steps=tuple(_step(s, f"jobs.{job_id}.steps[{i}]") for i, s in enumerate(doc.steps)),
        matrix=_matrix(doc.strategy.matrix, job_id),
        env=_text_map(doc.env, f"jobs.{job_id}.env"),
        continue_on_error=doc.continue_on_error,
        fail_fast=doc.strategy.fail_fast,
        max_parallel=doc.strategy.max_parallel,
    )


def parse_document(raw: Any, *, default_name: str = "workflow") -> Workflow:
    """Validate a decoded workflow document and build the Workflow."""
    if not isinstance(raw, dict):
        raise ConfigurationError("Workflow document must be a mapping")

    raw = dict(raw)
    # YAML 1.1 reads a bare `on:` key as boolean True
    if True in raw and "on" not in raw:
        raw["on"] = raw.pop(True)

    try:
        doc = WorkflowDoc.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid workflow:\n{e}") from e

    return Workflow(
        name=doc.name or default_name,
        triggers=_triggers(doc.on),
        jobs=tuple(_job(job_id, j) for job_id, j in doc.jobs.items()),
        env=_text_map(doc.env, "env"),
    )
