import sys
from pathlib import Path

import pytest

from matrixci.actions import docker, tool
from matrixci.actions.registry import ActionRegistry, StepContext, default_registry
from matrixci.actions.shell import run_step as shell_run
from matrixci.errors import ActionError, UnknownActionError
from matrixci.model import FAILURE, SUCCESS, JobConfig, Step

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX shell commands")


def ctx_for(tmp_path: Path, *, env=None, base_env=None) -> StepContext:
    job = JobConfig(index=0, template="t", name="job", steps=(), env=dict(env or {}))
    return StepContext(job=job, workdir=tmp_path, base_env=dict(base_env or {"PATH": "/usr/bin:/bin"}))


def test_shell_success_captures_output(tmp_path):
    result = shell_run(Step(name="hello", run="echo hello"), ctx_for(tmp_path))
    assert result.status == SUCCESS
    assert result.exit_code == 0
    assert "hello" in result.output


def test_shell_failure_keeps_exit_code(tmp_path):
    result = shell_run(Step(name="bad", run="echo oops >&2; exit 3"), ctx_for(tmp_path))
    assert result.status == FAILURE
    assert result.exit_code == 3
    assert "oops" in result.output


def test_shell_env_layers(tmp_path):
    step = Step(name="env", run='echo "$A-$B"', env={"B": "step"})
    result = shell_run(step, ctx_for(tmp_path, env={"A": "job", "B": "job"}))
    assert result.output.strip() == "job-step"


def test_shell_cwd(tmp_path):
    (tmp_path / "sub").mkdir()
    result = shell_run(Step(name="pwd", run="pwd", cwd="sub"), ctx_for(tmp_path))
    assert Path(result.output.strip()).resolve() == (tmp_path / "sub").resolve()


def test_shell_missing_cwd_is_an_action_error(tmp_path):
    with pytest.raises(ActionError):
        shell_run(Step(name="pwd", run="pwd", cwd="missing"), ctx_for(tmp_path))


def test_shell_timeout_is_a_failure(tmp_path):
    result = shell_run(Step(name="sleep", run="sleep 5", timeout=0.2), ctx_for(tmp_path))
    assert result.status == FAILURE
    assert "timed out" in result.error


def test_tool_command_building(tmp_path):
    step = tool.tool_step("clippy", "cargo", "clippy -- -D warnings", files=["src/a b.rs"])
    assert tool.build_command(step, ctx_for(tmp_path)) == ["cargo", "clippy", "--", "-D", "warnings", "src/a b.rs"]


def test_missing_tool_is_an_action_error(tmp_path):
    step = tool.tool_step("lint", "definitely-not-a-real-tool-xyz")
    with pytest.raises(ActionError) as exc:
        tool.run_step(step, ctx_for(tmp_path))
    assert exc.value.kind == "tool_unavailable"


def test_tool_action_binds_command_and_args(tmp_path, monkeypatch):
    seen = {}

    def fake_run_step(step, ctx):
        seen["cmd"] = tool.build_command(step, ctx)
        return shell_run(Step(name=step.name, run="true"), ctx)

    monkeypatch.setattr(tool, "run_step", fake_run_step)
    handler = tool.tool_action("cargo")
    declared = Step(name="test", uses="actions-rs/cargo@v1", params={"command": "test", "args": "--all-features"})
    result = handler(declared, ctx_for(tmp_path))

    assert seen["cmd"] == ["cargo", "test", "--all-features"]
    assert result.step is declared
    assert result.status == SUCCESS


def test_docker_command(tmp_path):
    step = docker.docker_step("build", "make", "rust:1", cwd="crate", volumes=["/cache:/cache"], user="1000")
    cmd = docker.build_command(step, ctx_for(tmp_path, env={"CI": "1"}))

    assert cmd[:3] == ["docker", "run", "--rm"]
    assert f"{tmp_path.resolve()}:/workspace" in cmd
    assert cmd[cmd.index("-w") + 1] == "/workspace/crate"
    assert "/cache:/cache" in cmd
    assert "CI=1" in cmd
    assert "PATH=/usr/bin:/bin" not in cmd
    assert cmd[-4:] == ["rust:1", "sh", "-c", "make"]


def test_docker_requires_image(tmp_path):
    with pytest.raises(ActionError):
        docker.build_command(Step(name="x", uses="docker", run="make"), ctx_for(tmp_path))


def test_registry_resolution(tmp_path):
    registry = default_registry()
    assert registry.names() == ["docker", "run", "tool"]
    assert registry.resolve(Step(name="x", run="true")) is shell_run

    with pytest.raises(UnknownActionError):
        registry.resolve(Step(name="x", uses="actions/checkout@v4"))

    extended = registry.extended({"actions/checkout": shell_run})
    assert extended.resolve(Step(name="x", uses="actions/checkout@v4")) is shell_run
    # the original registry is untouched
    assert "actions/checkout" not in registry.names()


def test_registry_rejects_versioned_names():
    with pytest.raises(ValueError):
        ActionRegistry().register("org/action@v1", shell_run)
