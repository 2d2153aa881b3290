from pathlib import Path

import pytest

from drvkit.builders import HookChain, HookContext, IsolatedHome, ShellHook
from drvkit.builders.sandbox import Workspace, build_environment
from drvkit.errors import BuildFailure
from drvkit.observability import StructuredLogger


def test_shell_hook_exports_persist_into_the_build_environment(tmp_path: Path) -> None:
    context = _context(tmp_path)
    hook = ShellHook("export RUSTFLAGS='-C debuginfo=0'\nexport TOOL_GREETING=hello\n")

    hook.run(context)

    assert context.env["RUSTFLAGS"] == "-C debuginfo=0"
    assert context.env["TOOL_GREETING"] == "hello"
    assert "DRVKIT_ENV_DUMP" not in context.env
    assert "SHLVL" not in context.env
    assert not list(context.tmp_dir.glob(".env-*"))


def test_shell_hook_can_unset_variables(tmp_path: Path) -> None:
    context = _context(tmp_path)
    context.env["CARGO_BUILD_JOBS"] = "8"

    ShellHook("unset CARGO_BUILD_JOBS").run(context)

    assert "CARGO_BUILD_JOBS" not in context.env


def test_shell_hook_keeps_exports_when_it_installs_its_own_exit_trap(tmp_path: Path) -> None:
    context = _context(tmp_path)

    ShellHook("trap 'echo bye' EXIT\nexport TOOL_GREETING=hi\n").run(context)

    assert context.env["TOOL_GREETING"] == "hi"
    assert not list(context.tmp_dir.glob(".env-*"))


def test_shell_hook_runs_in_the_source_copy(tmp_path: Path) -> None:
    context = _context(tmp_path)

    ShellHook('echo generated > "$PWD/generated.txt"').run(context)

    assert (context.source_dir / "generated.txt").read_text(encoding="utf-8") == "generated\n"


def test_failing_shell_hook_raises_build_failure_for_its_stage(tmp_path: Path) -> None:
    context = _context(tmp_path)
    context.stage = "pre_build"
    before = dict(context.env)

    with pytest.raises(BuildFailure) as excinfo:
        ShellHook("export LEAKED=1\necho boom\nexit 7", name="pre-build").run(context)

    error = excinfo.value
    assert error.stage == "pre_build"
    assert error.exit_code == 7
    assert "boom" in error.log
    assert error.context["hook"] == "pre-build"
    assert context.env == before


def test_shell_hook_fails_on_unset_variables(tmp_path: Path) -> None:
    context = _context(tmp_path)
    with pytest.raises(BuildFailure):
        ShellHook('echo "$DOES_NOT_EXIST"').run(context)


def test_isolated_home_points_home_at_build_tmp(tmp_path: Path) -> None:
    context = _context(tmp_path)
    assert context.env["HOME"] == "/homeless-shelter"

    IsolatedHome().run(context)

    assert context.env["HOME"] == str(context.tmp_dir)


def test_hook_chain_runs_hooks_in_order(tmp_path: Path) -> None:
    context = _context(tmp_path)
    chain = HookChain(
        IsolatedHome(),
        ShellHook('export CARGO_HOME="$HOME/.cargo"'),
        name="pre-build",
    )

    chain.run(context)

    assert context.env["CARGO_HOME"] == f"{context.tmp_dir}/.cargo"
    assert chain.describe() == {
        "kind": "chain",
        "hooks": [
            {"kind": "isolated-home", "variable": "HOME"},
            {
                "kind": "shell",
                "name": "shell",
                "shell": "bash",
                "script": 'export CARGO_HOME="$HOME/.cargo"',
            },
        ],
    }


def _context(tmp_path: Path) -> HookContext:
    workspace = Workspace.create(work_root=tmp_path / "work", name="tool")
    workspace.source.mkdir()
    env = build_environment(
        workspace=workspace,
        native_inputs=(),
        build_inputs=(),
        extra={},
    )
    return HookContext(
        name="tool",
        platform="x86_64-linux",
        work_dir=workspace.root,
        source_dir=workspace.source,
        tmp_dir=workspace.tmp,
        out=workspace.out,
        intermediate_path=workspace.root / "build",
        env=env,
        logger=StructuredLogger(),
    )
