# selfcheck_workflow.py
# Workflow for checking matrixci itself: lint, format check and tests on
# every supported Python.
#   matrixci run --workflow examples/selfcheck_workflow.py --branch main
from __future__ import annotations

from matrixci import job, matrix, on_pull_request, on_push, sh, tool_step, wf


def workflow():
    return wf(
        job(
            "lint",
            tool_step("Ruff check", tool="ruff", args="check", files=["src/", "tests/"]),
            tool_step("Ruff format check", tool="ruff", args="format --check", files=["src/", "tests/"]),
        ),

        job(
            "test",
            sh("Install package", "python${{ matrix.python }} -m pip install -e '.[test]'"),
            sh("Run pytest", "python${{ matrix.python }} -m pytest -q"),
            sh("Type check", "python${{ matrix.python }} -m mypy src/matrixci --ignore-missing-imports",
               continue_on_error=True),
            name="test py${{ matrix.python }}",
            matrix=matrix(python=["3.10", "3.11", "3.12"]),
            continue_on_error=True,
            max_parallel=2,
        ),
        name="selfcheck",
        on=[on_push("main"), on_pull_request("main")],
    )
