# matrix.py
from __future__ import annotations

import re
from dataclasses import replace
from itertools import product
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .errors import ConfigurationError, EmptyMatrixError
from .model import JobConfig, JobTemplate, MatrixDimension, Step, Workflow

# ${{ matrix.rust }}; other ${{ ... }} expressions are left alone
_PLACEHOLDER = re.compile(r"\$\{\{\s*matrix\.([A-Za-z0-9_-]+)\s*\}\}")


# ---------------------------------------------------------------------
# Template substitution
# ---------------------------------------------------------------------

def substitute(text: Optional[str], assignment: Mapping[str, str]) -> Optional[str]:
    """Replace every `${{ matrix.<name> }}` in text with its assigned value."""
    if text is None:
        return None

    def _sub(m: re.Match) -> str:
        key = m.group(1)
        if key not in assignment:
            raise ConfigurationError(
                f"Unknown matrix key {key!r} in {text!r}. "
                f"Known keys: {sorted(assignment) or 'none'}"
            )
        return assignment[key]

    return _PLACEHOLDER.sub(_sub, text)


def has_placeholder(text: Optional[str]) -> bool:
    return bool(text) and _PLACEHOLDER.search(text) is not None


def _substitute_map(values: Mapping[str, str], assignment: Mapping[str, str]) -> Dict[str, str]:
    return {k: substitute(v, assignment) for k, v in values.items()}


def render_step(step: Step, assignment: Mapping[str, str]) -> Step:
    return replace(
        step,
        name=substitute(step.name, assignment),
        run=substitute(step.run, assignment),
        params=_substitute_map(step.params, assignment),
        cwd=substitute(step.cwd, assignment),
        env=_substitute_map(step.env, assignment),
    )


def job_name(base: str, assignment: Mapping[str, str]) -> str:
    if has_placeholder(base) or not assignment:
        return substitute(base, assignment)
    return f"{base} ({', '.join(assignment.values())})"


# ---------------------------------------------------------------------
# Expansion
# ---------------------------------------------------------------------

def _check_dimensions(dimensions: Sequence[MatrixDimension]) -> None:
    seen = set()
    for d in dimensions:
        if d.name in seen:
            raise ConfigurationError(f"Duplicate matrix dimension: {d.name!r}")
        seen.add(d.name)

        dupes = sorted({v for v in d.values if d.values.count(v) > 1})
        if dupes:
            raise ConfigurationError(f"Matrix dimension {d.name!r} repeats values: {dupes}")

    empty = [d.name for d in dimensions if not d.values]
    if empty:
        raise EmptyMatrixError(
            f"Matrix dimension(s) {empty} have no values; the run would execute no jobs"
        )


def _excluded(assignment: Mapping[str, str], exclude: Iterable[Mapping[str, str]]) -> bool:
    return any(all(assignment.get(k) == v for k, v in rule.items()) for rule in exclude)


def expand(
    dimensions: Sequence[MatrixDimension],
    steps: Sequence[Step],
    *,
    template: str = "job",
    name: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    continue_on_error: bool = False,
    exclude: Sequence[Mapping[str, str]] = (),
    start: int = 0,
) -> List[JobConfig]:
    """
    Expand dimensions into one JobConfig per point of their cartesian product.

    The first declared dimension is the outermost loop and each dimension
    keeps its declared value order. No dimensions gives one job. A dimension
    without values raises EmptyMatrixError.
    """
    dimensions = list(dimensions)
    _check_dimensions(dimensions)

    names = [d.name for d in dimensions]
    for rule in exclude:
        unknown = sorted(set(rule) - set(names))
        if unknown:
            raise ConfigurationError(f"Matrix exclude uses unknown dimension(s): {unknown}")

    configs: List[JobConfig] = []
    for values in product(*(d.values for d in dimensions)):
        assignment = dict(zip(names, values))
        if _excluded(assignment, exclude):
            continue

        configs.append(
            JobConfig(
                index=start + len(configs),
                template=template,
                name=job_name(name or template, assignment),
                steps=tuple(render_step(s, assignment) for s in steps),
                matrix=tuple(assignment.items()),
                env=_substitute_map(env or {}, assignment),
                continue_on_error=continue_on_error,
            )
        )

    if dimensions and not configs:
        raise EmptyMatrixError(f"Matrix for {template!r} excludes every combination")

    return configs


def expand_template(t: JobTemplate, *, start: int = 0, env: Optional[Mapping[str, str]] = None) -> List[JobConfig]:
    merged_env = dict(env or {})
    merged_env.update(t.env)
    return expand(
        t.matrix.dimensions,
        t.steps,
        template=t.id,
        name=t.name,
        env=merged_env,
        continue_on_error=t.continue_on_error,
        exclude=t.matrix.exclude,
        start=start,
    )


def expand_workflow(workflow: Workflow) -> List[JobConfig]:
    """Expand every job template in declaration order, numbering jobs globally."""
    configs: List[JobConfig] = []
    for t in workflow.jobs:
        configs.extend(expand_template(t, start=len(configs), env=workflow.env))

    names = [c.name for c in configs]
    dupes = sorted({n for n in names if names.count(n) > 1})
    if dupes:
        raise ConfigurationError(f"Duplicate job names after matrix expansion: {dupes}")
    return configs

