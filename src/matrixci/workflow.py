# workflow.py
from __future__ import annotations

import runpy
from pathlib import Path
from typing import List

import yaml

from .errors import WorkflowLoadError
from .model import JobTemplate, Workflow
from .schema import parse_document

YAML_SUFFIXES = (".yml", ".yaml")

DEFAULT_WORKFLOW_FILES = (
    "matrixci.yml",
    "matrixci.yaml",
    "matrixci_workflow.py",
    ".github/workflows/ci.yml",
    ".github/workflows/ci.yaml",
)


# ----------------------------------------------------------------------
# Discovery
# ----------------------------------------------------------------------

def find_workflow_files(root: str | Path = ".") -> List[Path]:
    """
    Find candidate workflow files in a directory.

    Looks for the default names, then any other `*_workflow.py`.
    """
    root = Path(root)
    found: List[Path] = []
    for name in DEFAULT_WORKFLOW_FILES:
        p = root / name
        if p.is_file():
            found.append(p)

    for p in sorted(root.glob("*_workflow.py")):
        if p not in found:
            found.append(p)

    return found


# ----------------------------------------------------------------------
# Loading
# ----------------------------------------------------------------------

def load_yaml_workflow(path: Path) -> Workflow:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise WorkflowLoadError(f"Invalid YAML in {path}: {exc}") from exc

    if raw is None:
        raise WorkflowLoadError(f"Workflow file is empty: {path}")
    return parse_document(raw, default_name=path.stem)


def load_python_workflow(path: Path) -> Workflow:
    """
    Run a python workflow file. It must define either:
      - workflow() -> Workflow
      - WORKFLOW = Workflow(...)
    A list of JobTemplates is accepted too and wrapped with default triggers.
    """
    module_name = f"matrixci_workflow_{path.stem}"
    globals_dict = runpy.run_path(str(path), run_name=module_name)

    if "workflow" in globals_dict and callable(globals_dict["workflow"]):
        result = globals_dict["workflow"]()
    elif "WORKFLOW" in globals_dict:
        result = globals_dict["WORKFLOW"]
    else:
        raise WorkflowLoadError(
            f"{path.name} defines neither workflow() nor WORKFLOW. "
            "Define `def workflow(): return wf(job(...), ...)`."
        )

    if isinstance(result, (list, tuple)) and result and all(isinstance(j, JobTemplate) for j in result):
        from .dsl import wf
        result = wf(*result, name=path.stem)

    if not isinstance(result, Workflow):
        raise WorkflowLoadError(
            f"{path.name} must produce a Workflow (use the wf() helper), got {type(result).__name__}"
        )
    return result


def load_workflow(path: str | Path) -> Workflow:
    """Load a workflow from a YAML document or a python file."""
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise WorkflowLoadError(f"Workflow file not found: {wf_path}")

    if wf_path.suffix in YAML_SUFFIXES:
        return load_yaml_workflow(wf_path)
    if wf_path.suffix == ".py":
        return load_python_workflow(wf_path)

    raise WorkflowLoadError(f"Workflow must be a .yml/.yaml or .py file, got: {wf_path.name}")
