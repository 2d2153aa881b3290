from dataclasses import replace
from pathlib import Path

import pytest

from drvkit.augment import (
    ArtifactAugmenter,
    ManualPageSpec,
    completion_destination,
    manual_page_destination,
)
from drvkit.builders import BuildSpec, DerivationBuilder, HookContext
from drvkit.errors import (
    AmbiguousManualPageWarning,
    CompletionGenerationFailure,
    ManualPageNotFound,
    ValidationError,
)
from drvkit.models import PackageIndex
from drvkit.observability import StructuredLogger

AUGMENTER = ArtifactAugmenter(
    command_name="tool",
    manual_pages=ManualPageSpec(pattern="gen-*/man1/*", exclude=("tool-autocomplete.1",)),
)


@pytest.mark.parametrize(
    ("shell", "expected"),
    [
        ("bash", "share/bash-completion/completions/tool.bash"),
        ("zsh", "share/zsh/site-functions/_tool"),
        ("fish", "share/fish/vendor_completions.d/tool.fish"),
        ("elvish", "share/completions/elvish/tool"),
    ],
)
def test_completion_destinations_follow_shell_conventions(shell: str, expected: str) -> None:
    assert completion_destination(shell, "tool") == Path(expected)


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("handlr.1", "share/man/man1/handlr.1"),
        ("handlr.1.gz", "share/man/man1/handlr.1.gz"),
        ("handlr-config.5", "share/man/man5/handlr-config.5"),
        ("libfoo.3ssl", "share/man/man3/libfoo.3ssl"),
    ],
)
def test_manual_page_destination_uses_section_suffix(name: str, expected: str) -> None:
    assert manual_page_destination(Path("/build") / name) == Path(expected)


def test_manual_page_without_section_is_rejected() -> None:
    with pytest.raises(ValidationError):
        manual_page_destination(Path("/build/README.md"))


def test_files_without_a_section_are_not_manual_pages(tmp_path: Path) -> None:
    man1 = tmp_path / "gen-1a2b" / "man1"
    man1.mkdir(parents=True)
    (man1 / "README").write_text("generated pages\n", encoding="utf-8")
    spec = ManualPageSpec(pattern="gen-*/man1/*")

    assert spec.find(tmp_path) == []

    (man1 / "tool.1").write_text(".TH TOOL 1\n", encoding="utf-8")

    assert spec.find(tmp_path) == [man1 / "tool.1"]


def test_absolute_manual_page_pattern_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValidationError) as excinfo:
        ManualPageSpec(pattern=str(tmp_path / "man1" / "*")).find(tmp_path)

    assert "relative" in str(excinfo.value)


def test_augmenter_installs_completions_and_manual_pages(
    build_spec: BuildSpec,
    index: PackageIndex,
    store: Path,
    work_root: Path,
) -> None:
    spec = replace(build_spec, post_build_hook=AUGMENTER)

    output = DerivationBuilder(store_dir=store, work_root=work_root).build(spec, index=index)
    root = output.root_path

    bash = root / "share/bash-completion/completions/tool.bash"
    assert bash.read_text(encoding="utf-8") == "# bash completion for tool\n"
    assert (root / "share/zsh/site-functions/_tool").read_text(encoding="utf-8") == (
        "# zsh completion for tool\n"
    )
    assert (root / "share/fish/vendor_completions.d/tool.fish").is_file()
    assert (root / "share/man/man1/tool.1").read_text(encoding="utf-8") == ".TH TOOL 1\n"
    assert not (root / "share/man/man1/tool-autocomplete.1").exists()
    assert bash.stat().st_mode & 0o777 == 0o444


def test_completions_are_harvested_in_shell_order(
    build_spec: BuildSpec,
    index: PackageIndex,
    store: Path,
    work_root: Path,
    tmp_path: Path,
) -> None:
    trace = tmp_path / "trace"
    augmenter = replace(AUGMENTER, shells=("fish", "bash", "zsh"))
    spec = replace(build_spec, post_build_hook=augmenter, env={"TOOL_TRACE": str(trace)})

    DerivationBuilder(store_dir=store, work_root=work_root).build(spec, index=index)

    assert trace.read_text(encoding="utf-8").split() == ["fish", "bash", "zsh"]


def test_completion_failure_publishes_nothing(
    build_spec: BuildSpec,
    index: PackageIndex,
    store: Path,
    work_root: Path,
) -> None:
    spec = replace(build_spec, post_build_hook=AUGMENTER, env={"TOOL_FAIL_SHELL": "bash"})
    builder = DerivationBuilder(store_dir=store, work_root=work_root)

    with pytest.raises(CompletionGenerationFailure) as excinfo:
        builder.build(spec, index=index)

    error = excinfo.value
    assert error.shell == "bash"
    assert error.context["returncode"] == "3"
    assert "cannot complete for bash" in error.context["stderr"]
    assert not store.exists() or list(store.iterdir()) == []
    assert list(work_root.iterdir()) == []


def test_empty_completion_output_is_a_failure(
    build_spec: BuildSpec,
    index: PackageIndex,
    store: Path,
    work_root: Path,
) -> None:
    spec = replace(build_spec, post_build_hook=AUGMENTER, env={"TOOL_EMPTY_SHELL": "zsh"})

    with pytest.raises(CompletionGenerationFailure) as excinfo:
        DerivationBuilder(store_dir=store, work_root=work_root).build(spec, index=index)

    assert excinfo.value.shell == "zsh"


def test_missing_manual_pages_publish_nothing(
    build_spec: BuildSpec,
    index: PackageIndex,
    store: Path,
    work_root: Path,
) -> None:
    spec = replace(build_spec, post_build_hook=AUGMENTER, env={"TOOL_NO_MAN": "1"})

    with pytest.raises(ManualPageNotFound) as excinfo:
        DerivationBuilder(store_dir=store, work_root=work_root).build(spec, index=index)

    assert excinfo.value.context["pattern"] == "gen-*/man1/*"
    assert not store.exists() or list(store.iterdir()) == []


def test_exclusions_can_leave_zero_manual_pages(
    build_spec: BuildSpec,
    index: PackageIndex,
    store: Path,
    work_root: Path,
) -> None:
    augmenter = replace(
        AUGMENTER,
        manual_pages=ManualPageSpec(pattern="gen-*/man1/*", exclude=("tool*.1",)),
    )
    spec = replace(build_spec, post_build_hook=augmenter)

    with pytest.raises(ManualPageNotFound):
        DerivationBuilder(store_dir=store, work_root=work_root).build(spec, index=index)


def test_manual_pages_in_several_directories_warn_and_install_all(
    build_spec: BuildSpec,
    index: PackageIndex,
    store: Path,
    work_root: Path,
) -> None:
    spec = replace(build_spec, post_build_hook=AUGMENTER, env={"TOOL_EXTRA_MAN": "1"})
    builder = DerivationBuilder(store_dir=store, work_root=work_root)

    with pytest.warns(AmbiguousManualPageWarning):
        output = builder.build(spec, index=index)

    pages = sorted(path.name for path in (output.root_path / "share/man/man1").iterdir())
    assert pages == ["tool-extra.1", "tool.1"]
    warnings = [record for record in builder.logger.records if record["level"] == "warning"]
    assert len(warnings) == 1
    assert warnings[0]["component"] == "augment-artifacts"


def test_manual_pages_sharing_a_destination_publish_nothing(
    build_spec: BuildSpec,
    index: PackageIndex,
    store: Path,
    work_root: Path,
) -> None:
    spec = replace(build_spec, post_build_hook=AUGMENTER, env={"TOOL_CLASH_MAN": "1"})
    builder = DerivationBuilder(store_dir=store, work_root=work_root)

    with pytest.warns(AmbiguousManualPageWarning), pytest.raises(ValidationError) as excinfo:
        builder.build(spec, index=index)

    assert excinfo.value.context["destination"] == "share/man/man1/tool.1"
    assert "gen-1a2b" in excinfo.value.context["sources"]
    assert "gen-9z9z" in excinfo.value.context["sources"]
    assert not store.exists() or list(store.iterdir()) == []
    assert list(work_root.iterdir()) == []


def test_missing_binary_fails_before_any_subprocess(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    started: list[object] = []

    def fake_run(*args: object, **kwargs: object) -> None:
        started.append(args)
        raise AssertionError("subprocess must not start")

    monkeypatch.setattr("drvkit.augment.subprocess.run", fake_run)
    context = _context(tmp_path)

    with pytest.raises(CompletionGenerationFailure):
        AUGMENTER.run(context)

    context.binary_path = tmp_path / "out" / "bin" / "tool"
    context.binary_path.parent.mkdir(parents=True)
    context.binary_path.write_text("#!/bin/sh\n", encoding="utf-8")
    context.binary_path.chmod(0o644)

    with pytest.raises(CompletionGenerationFailure):
        AUGMENTER.run(context)

    assert started == []
    assert list((tmp_path / "out").rglob("share")) == []


def test_describe_is_stable() -> None:
    assert AUGMENTER.describe() == {
        "kind": "augment",
        "command": "tool",
        "shells": ["bash", "zsh", "fish"],
        "completion_env_var": "COMPLETE",
        "manual_page_pattern": "gen-*/man1/*",
        "manual_page_exclude": ["tool-autocomplete.1"],
    }


def _context(tmp_path: Path) -> HookContext:
    return HookContext(
        name="tool",
        platform="x86_64-linux",
        work_dir=tmp_path,
        source_dir=tmp_path,
        tmp_dir=tmp_path / "tmp",
        out=tmp_path / "out",
        intermediate_path=tmp_path / "build",
        env={},
        logger=StructuredLogger(),
        stage="post_build",
    )
