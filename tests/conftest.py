"""Shared test fixtures."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from drvkit.builders import BuildSpec, ScriptCompiler
from drvkit.config import PipelineConfig
from drvkit.index import LockedPackageSource, PackageLock
from drvkit.models import PackageDescriptor, PackageIndex
from drvkit.profiles import RUST_DEVSHELL_TOOLS

PLATFORMS = ("x86_64-linux", "aarch64-linux")

# A build script standing in for a real compiler. The produced "binary" is a
# bash script that prints a completion script when COMPLETE names a shell,
# and the build leaves manual pages under the intermediate directory.
BUILD_SCRIPT = textwrap.dedent(
    r"""
    set -euo pipefail
    cat > "$DRVKIT_BINARY" <<'TOOL'
    #!/usr/bin/env bash
    if [ -n "${COMPLETE:-}" ]; then
      if [ "$COMPLETE" = "${TOOL_FAIL_SHELL:-}" ]; then
        if [ -z "${TOOL_FAIL_PLATFORM:-}" ] || \
           [ "${TOOL_FAIL_PLATFORM}" = "${DRVKIT_PLATFORM:-}" ]; then
          echo "cannot complete for $COMPLETE" >&2
          exit 3
        fi
      fi
      if [ "$COMPLETE" = "${TOOL_EMPTY_SHELL:-}" ]; then
        exit 0
      fi
      if [ -n "${TOOL_TRACE:-}" ]; then
        echo "$COMPLETE" >> "$TOOL_TRACE"
      fi
      echo "# $COMPLETE completion for tool"
      exit 0
    fi
    echo "tool"
    TOOL
    chmod +x "$DRVKIT_BINARY"
    if [ -n "${TOOL_GREETING:-}" ]; then
      mkdir -p "$out/share"
      echo "$TOOL_GREETING" > "$out/share/greeting"
    fi
    if [ -z "${TOOL_NO_MAN:-}" ]; then
      mkdir -p "$DRVKIT_INTERMEDIATE/gen-1a2b/man1"
      printf '.TH TOOL 1\n' > "$DRVKIT_INTERMEDIATE/gen-1a2b/man1/tool.1"
      printf '.TH TOOL-AUTOCOMPLETE 1\n' > "$DRVKIT_INTERMEDIATE/gen-1a2b/man1/tool-autocomplete.1"
    fi
    if [ -n "${TOOL_EXTRA_MAN:-}" ]; then
      mkdir -p "$DRVKIT_INTERMEDIATE/gen-3c4d/man1"
      printf '.TH TOOL-EXTRA 1\n' > "$DRVKIT_INTERMEDIATE/gen-3c4d/man1/tool-extra.1"
    fi
    if [ -n "${TOOL_CLASH_MAN:-}" ]; then
      mkdir -p "$DRVKIT_INTERMEDIATE/gen-9z9z/man1"
      printf '.TH TOOL 1\n' > "$DRVKIT_INTERMEDIATE/gen-9z9z/man1/tool.1"
    fi
    if [ -n "${TOOL_FIFO_PLATFORM:-}" ] && [ "$TOOL_FIFO_PLATFORM" = "${DRVKIT_PLATFORM:-}" ]; then
      mkfifo "$out/pipe"
    fi
    if [ -n "${TOOL_FAIL_BUILD:-}" ]; then
      echo "error[E0425]: cannot find value" >&2
      exit 101
    fi
    if [ -n "${TOOL_SKIP_BINARY:-}" ]; then
      rm -f "$DRVKIT_BINARY"
    fi
    """
).lstrip()


def make_descriptor(root: Path, name: str, *, lib: bool = False) -> PackageDescriptor:
    prefix = root / "pkgs" / name
    return PackageDescriptor(
        name=name,
        version="1.0.0",
        path=prefix,
        executables=(name,),
        lib_dirs=(prefix / "lib",) if lib else (),
    )


def make_index(root: Path, platform: str = "x86_64-linux", *, revision: str = "r1") -> PackageIndex:
    names = [*RUST_DEVSHELL_TOOLS, "pkg-config"]
    packages = {name: make_descriptor(root, name) for name in names}
    packages["openssl"] = make_descriptor(root, "openssl", lib=True)
    packages["rust-src"] = make_descriptor(root, "rust-src")
    return PackageIndex(platform=platform, revision=revision, packages=packages)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    source = tmp_path / "project"
    source.mkdir()
    (source / "build.sh").write_text(BUILD_SCRIPT, encoding="utf-8")
    (source / "README").write_text("tool\n", encoding="utf-8")
    return source


@pytest.fixture
def index(tmp_path: Path) -> PackageIndex:
    return make_index(tmp_path)


@pytest.fixture
def package_source(tmp_path: Path) -> LockedPackageSource:
    platforms = {
        platform: dict(make_index(tmp_path, platform).items()) for platform in PLATFORMS
    }
    return LockedPackageSource(PackageLock(version=1, revision="r1", platforms=platforms))


@pytest.fixture
def store(tmp_path: Path) -> Path:
    return tmp_path / "store"


@pytest.fixture
def work_root(tmp_path: Path) -> Path:
    return tmp_path / "work"


@pytest.fixture
def pipeline_config(project: Path) -> PipelineConfig:
    return PipelineConfig(
        name="tool",
        command_name="tool",
        source_root=project,
        manual_page_pattern="gen-*/man1/*",
        platforms=PLATFORMS,
        native_build_inputs=("pkg-config",),
        build_inputs=("openssl",),
        compiler="script",
        manual_page_exclude=("tool-autocomplete.1",),
    )


@pytest.fixture
def build_spec(project: Path) -> BuildSpec:
    return BuildSpec(
        name="tool",
        source_root=project,
        compiler=ScriptCompiler(binary="tool"),
        native_build_inputs=("pkg-config",),
        build_inputs=("openssl",),
    )
