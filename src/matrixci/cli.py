# cli.py
from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

import click

from matrixci.errors import ConfigurationError
from matrixci.git_facts.git import current_branch, repo_name
from matrixci.model import EVENT_KINDS, PUSH, Event
from matrixci.runner import plan, resolve_policy, run_workflow
from matrixci.trigger import TriggerListener
from matrixci.ui.console import Console, get_console, set_console
from matrixci.workflow import DEFAULT_WORKFLOW_FILES, find_workflow_files, load_workflow

EXIT_OK = 0
EXIT_FAILED = 1        # a job failed or was aborted
EXIT_CONFIG = 2        # workflow / infrastructure problem
EXIT_INTERRUPTED = 130


def discover_workflow(workflow_arg: str | None, root: Path) -> Path:
    """
    Discover workflow file from argument or default.

    Raises:
        SystemExit: If workflow cannot be found or multiple workflows exist
    """
    console = get_console()

    # If workflow is explicitly provided, use it
    if workflow_arg:
        workflow_path = Path(workflow_arg)
        if not workflow_path.is_absolute() and not workflow_path.exists():
            workflow_path = root / workflow_arg
        if not workflow_path.exists():
            console.print_error(
                "Workflow file not found",
                f"Could not find workflow file: {workflow_arg}",
                suggestion="Create a workflow file or specify a different path:\n  matrixci run --workflow ci.yml",
            )
            sys.exit(EXIT_CONFIG)
        return workflow_path

    workflow_files = find_workflow_files(root)

    if len(workflow_files) == 0:
        console.print_error(
            "No workflow file found",
            "Could not find any workflow files.",
            details=["Looked for:", *(f"  {n}" for n in DEFAULT_WORKFLOW_FILES), "  *_workflow.py"],
            suggestion="Create a workflow file:\n  matrixci.yml\n\nOr specify a workflow explicitly:\n  matrixci run --workflow my_workflow.py",
        )
        sys.exit(EXIT_CONFIG)

    if len(workflow_files) > 1:
        console.print_error(
            "Multiple workflow files found",
            "Found multiple workflow files. Please specify which one to use:",
            details=[str(f) for f in workflow_files],
            suggestion="Specify a workflow explicitly:\n  matrixci run --workflow matrixci.yml",
        )
        sys.exit(EXIT_CONFIG)

    return workflow_files[0]


def resolve_branch(branch: str | None, root: Path) -> str:
    if branch:
        return branch

    console = get_console()
    try:
        return current_branch(cwd=str(root))
    except subprocess.CalledProcessError:
        console.print_error(
            "Could not determine branch",
            "No --branch given and git could not report the current branch (not a repo, or detached HEAD).",
            suggestion="Specify the branch explicitly:\n  matrixci run --branch main",
        )
    except FileNotFoundError:
        console.print_error(
            "Git command not found",
            "Could not find git command.",
            suggestion="Install Git or specify --branch explicitly:\n  matrixci run --branch main",
        )
    sys.exit(EXIT_CONFIG)


def _load(workflow_path: Path):
    console = get_console()
    try:
        return load_workflow(workflow_path)
    except ConfigurationError as e:
        console.print_error("Invalid workflow", f"Could not load workflow from {workflow_path}", details=[str(e)])
        sys.exit(EXIT_CONFIG)
    except Exception as e:
        console.print_error("Failed to load workflow", f"Running {workflow_path} raised an error", details=[str(e)])
        if console.debug:
            console.print_exception(e)
        sys.exit(EXIT_CONFIG)


workflow_option = click.option(
    "--workflow",
    default=None,
    help="Workflow file (.yml/.yaml or .py); discovered in --workdir if omitted",
)
workdir_option = click.option(
    "--workdir",
    default=".",
    show_default=True,
    type=click.Path(file_okay=False, exists=True, path_type=Path),
    help="Directory steps run in",
)
event_option = click.option(
    "--event",
    type=click.Choice(EVENT_KINDS),
    default=PUSH,
    show_default=True,
    help="Event kind that triggered this run",
)
branch_option = click.option("--branch", default=None, help="Target branch (defaults to the current git branch)")


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.option("--verbose", is_flag=True, default=False, help="Echo output of every step, not only failed ones")
@click.pass_context
def cli(ctx, debug, verbose):
    """matrixci: run matrix CI workflows locally."""
    console = Console(debug=debug, verbose=verbose)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@workflow_option
@workdir_option
@event_option
@branch_option
@click.option("--workers", default=None, type=click.IntRange(min=1), help="Max jobs running at once")
@click.option(
    "--fail-fast/--no-fail-fast",
    default=None,
    help="Cancel other jobs after the first failure (default: the workflow's strategy.fail-fast)",
)
@click.option("--timeout", default=None, type=click.FloatRange(min=0, min_open=True), help="Run timeout in seconds")
@click.option("--force", is_flag=True, default=False, help="Run even if no trigger matches the event")
@click.option("--report", default=None, type=click.Path(dir_okay=False, path_type=Path), help="Write results as JSON")
def run(workflow, workdir, event, branch, workers, fail_fast, timeout, force, report):
    """Run a workflow for an event."""
    console = get_console()

    workflow_path = discover_workflow(workflow, workdir)
    wf = _load(workflow_path)
    branch = resolve_branch(branch, workdir)
    ev = Event(kind=event, branch=branch)

    try:
        policy = resolve_policy(wf, fail_fast=fail_fast, max_workers=workers, timeout=timeout)
        console.print_run_started(
            repository=repo_name(cwd=str(workdir)),
            workflow=workflow_path.name,
            event=event,
            branch=branch,
            template_count=len(wf.jobs),
        )
        console.print_debug(f"policy: {policy}")

        result = run_workflow(wf, ev, policy=policy, workdir=workdir, console=console, force=force)
        if result is None:
            sys.exit(EXIT_OK)

        console.print_results(result)

        if report is not None:
            payload = {"workflow": wf.name, "event": event, "branch": branch, **result.to_dict()}
            report.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            console.print_info(f"Report written to {report}")

        sys.exit(EXIT_OK if result.ok else EXIT_FAILED)

    except ConfigurationError as e:
        console.print_error("Invalid workflow", str(e))
        sys.exit(EXIT_CONFIG)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as e:
        console.print_exception(e)
        sys.exit(EXIT_CONFIG)


@cli.command(name="plan")
@workflow_option
@workdir_option
def plan_cmd(workflow, workdir):
    """Show the jobs a workflow expands to, without running them."""
    console = get_console()
    workflow_path = discover_workflow(workflow, workdir)
    wf = _load(workflow_path)

    try:
        jobs = plan(wf, console=console)
    except ConfigurationError as e:
        console.print_error("Invalid workflow", str(e))
        sys.exit(EXIT_CONFIG)

    console.print_plan(jobs)


@cli.command()
@workflow_option
@workdir_option
@event_option
@branch_option
def check(workflow, workdir, event, branch):
    """Exit 0 if the event would trigger the workflow, 1 otherwise."""
    console = get_console()
    workflow_path = discover_workflow(workflow, workdir)
    wf = _load(workflow_path)
    branch = resolve_branch(branch, workdir)

    rule = TriggerListener(wf.triggers).matching_rule(Event(kind=event, branch=branch))
    if rule is None:
        console.print_not_triggered(event, branch)
        sys.exit(EXIT_FAILED)

    patterns = ", ".join(rule.branches) or "*"
    console.print_info(f"Triggered: {event} on {branch} (matches {rule.kind}: {patterns})")


def main() -> None:
    cli(auto_envvar_prefix="MATRIXCI")


if __name__ == "__main__":
    main()
