"""Isolated working directories, build environments and store promotion."""

from __future__ import annotations

import os
import shutil
import stat
import subprocess
import tempfile
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from drvkit.builders.base import Stage
from drvkit.errors import BuildFailure
from drvkit.models import PackageDescriptor

# Timestamp applied to every published file, as in a Nix store.
SOURCE_DATE_EPOCH = 1

LOG_TAIL = 2000

# Host variables forwarded into the otherwise scrubbed build environment.
PASSTHROUGH_VARS = ("PATH", "LANG", "LC_ALL", "TERM", "TZ")


@dataclass(frozen=True, slots=True)
class Workspace:
    root: Path
    source: Path
    tmp: Path
    out: Path

    @classmethod
    def create(cls, *, work_root: Path | None, name: str) -> Workspace:
        if work_root is not None:
            work_root.mkdir(parents=True, exist_ok=True)
        root = Path(tempfile.mkdtemp(prefix=f"drvkit-{name}-", dir=work_root))
        workspace = cls(root=root, source=root / "source", tmp=root / "tmp", out=root / "out")
        workspace.tmp.mkdir()
        workspace.out.mkdir()
        return workspace

    def copy_source(self, source_root: Path) -> None:
        if not source_root.is_dir():
            raise BuildFailure(
                "Source root does not exist or is not a directory.",
                stage="prepare",
                exit_code=None,
                context={"source_root": str(source_root)},
            )
        shutil.copytree(source_root, self.source, symlinks=True)

    def cleanup(self) -> None:
        shutil.rmtree(self.root, ignore_errors=True)


def build_environment(
    *,
    workspace: Workspace,
    native_inputs: tuple[PackageDescriptor, ...],
    build_inputs: tuple[PackageDescriptor, ...],
    extra: Mapping[str, str],
    host_env: Mapping[str, str] | None = None,
) -> dict[str, str]:
    host = dict(os.environ if host_env is None else host_env)
    env = {key: host[key] for key in PASSTHROUGH_VARS if key in host}

    bin_dirs = _unique(str(item.bin_dir) for item in native_inputs)
    host_path = env.get("PATH", "")
    env["PATH"] = os.pathsep.join([*bin_dirs, host_path] if host_path else bin_dirs)

    lib_dirs = _unique(str(lib) for item in build_inputs for lib in item.lib_dirs)
    if lib_dirs:
        env["LIBRARY_PATH"] = os.pathsep.join(lib_dirs)
        env["PKG_CONFIG_PATH"] = os.pathsep.join(str(Path(lib) / "pkgconfig") for lib in lib_dirs)

    env["TMPDIR"] = str(workspace.tmp)
    env["TEMPDIR"] = str(workspace.tmp)
    env["SOURCE_DATE_EPOCH"] = str(SOURCE_DATE_EPOCH)
    env["DRVKIT_BUILD_TOP"] = str(workspace.root)
    env["out"] = str(workspace.out)
    # HOME is deliberately unusable until a pre-build hook provides one.
    env["HOME"] = "/homeless-shelter"
    env.update(extra)
    return env


def run_stage(
    command: tuple[str, ...],
    *,
    stage: Stage,
    cwd: Path,
    env: Mapping[str, str],
    context: Mapping[str, str],
) -> str:
    """Run one build command to completion and return its combined output."""
    try:
        result = subprocess.run(
            list(command),
            cwd=str(cwd),
            env=dict(env),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise BuildFailure(
            f"{stage} step could not be started.",
            stage=stage,
            exit_code=None,
            log=str(exc),
            hint=f"Ensure `{command[0]}` is provided by a native build input.",
            context={**context, "command": " ".join(command)},
        ) from exc

    output = result.stdout or ""
    if result.returncode != 0:
        raise BuildFailure(
            f"{stage} step failed.",
            stage=stage,
            exit_code=result.returncode,
            log=output[-LOG_TAIL:],
            hint="Check the build output for details.",
            context={
                **context,
                "command": " ".join(command),
                "returncode": str(result.returncode),
                "output": output[-LOG_TAIL:],
            },
        )
    return output


def install_file(source: Path, destination: Path, *, mode: int) -> Path:
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, destination)
    destination.chmod(mode)
    return destination


def promote(staging: Path, final: Path) -> Path:
    """Copy *staging* into the store and swap it into place at *final*.

    The tree is normalized (modes and timestamps) before it becomes visible,
    and an existing realization at *final* is replaced as a whole.
    """
    final.parent.mkdir(parents=True, exist_ok=True)
    pending = Path(tempfile.mkdtemp(prefix=f".{final.name}-", dir=final.parent))
    try:
        shutil.copytree(staging, pending, symlinks=True, dirs_exist_ok=True)
        normalize_tree(pending)
        if final.exists():
            retired = final.with_name(f".{final.name}-retired-{os.getpid()}")
            os.replace(final, retired)
            os.replace(pending, final)
            shutil.rmtree(retired, ignore_errors=True)
        else:
            os.replace(pending, final)
    finally:
        if pending.exists():
            shutil.rmtree(pending, ignore_errors=True)
    return final


def normalize_tree(root: Path) -> None:
    for dirpath, dirnames, filenames in os.walk(root, topdown=False):
        base = Path(dirpath)
        for filename in filenames:
            path = base / filename
            if path.is_symlink():
                os.utime(path, (SOURCE_DATE_EPOCH, SOURCE_DATE_EPOCH), follow_symlinks=False)
                continue
            executable = path.stat().st_mode & stat.S_IXUSR
            path.chmod(0o555 if executable else 0o444)
            os.utime(path, (SOURCE_DATE_EPOCH, SOURCE_DATE_EPOCH))
        for dirname in dirnames:
            path = base / dirname
            if not path.is_symlink():
                path.chmod(0o755)
                os.utime(path, (SOURCE_DATE_EPOCH, SOURCE_DATE_EPOCH))
    root.chmod(0o755)
    os.utime(root, (SOURCE_DATE_EPOCH, SOURCE_DATE_EPOCH))


def _unique(items: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen
