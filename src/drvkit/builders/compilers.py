"""Compile steps for the toolchains a derivation can use."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from drvkit.builders.base import HookContext


@dataclass(frozen=True, slots=True)
class CargoCompiler:
    binary: str
    tool: str = "cargo"
    profile: str = "release"
    reproducible: bool = True
    flags: tuple[str, ...] = ()
    name: str = "cargo"

    def intermediate_dir(self, work_dir: Path) -> Path:
        return work_dir / "target"

    def binary_path(self, work_dir: Path) -> Path:
        return self.intermediate_dir(work_dir) / self.profile / self.binary

    def command(self, context: HookContext) -> tuple[str, ...]:
        flags = list(self.flags)
        if self.reproducible:
            for flag in ("--locked", "--offline"):
                if flag not in flags:
                    flags.append(flag)
        profile_flag = ("--release",) if self.profile == "release" else ("--profile", self.profile)
        return (
            self.tool,
            "build",
            *profile_flag,
            *flags,
            "--bin",
            self.binary,
            "--target-dir",
            str(self.intermediate_dir(context.work_dir)),
        )

    def prepare_env(self, context: HookContext) -> None:
        context.env.setdefault("CARGO_HOME", str(context.tmp_dir / "cargo-home"))
        if self.reproducible:
            remap = f"--remap-path-prefix={context.work_dir}=/build"
            existing = context.env.get("RUSTFLAGS", "")
            context.env["RUSTFLAGS"] = f"{existing} {remap}".strip()

    def describe(self) -> dict[str, object]:
        return {
            "kind": self.name,
            "tool": self.tool,
            "binary": self.binary,
            "profile": self.profile,
            "reproducible": self.reproducible,
            "flags": list(self.flags),
        }


@dataclass(frozen=True, slots=True)
class GoCompiler:
    binary: str
    tool: str = "go"
    package: str = "."
    reproducible: bool = True
    flags: tuple[str, ...] = ()
    name: str = "go"

    def intermediate_dir(self, work_dir: Path) -> Path:
        return work_dir / "build"

    def binary_path(self, work_dir: Path) -> Path:
        return self.intermediate_dir(work_dir) / "bin" / self.binary

    def command(self, context: HookContext) -> tuple[str, ...]:
        flags = list(self.flags)
        if self.reproducible and "-trimpath" not in flags:
            flags.append("-trimpath")
        output = str(self.binary_path(context.work_dir))
        return (self.tool, "build", *flags, "-o", output, self.package)

    def prepare_env(self, context: HookContext) -> None:
        context.env.setdefault("GOCACHE", str(context.tmp_dir / "go-cache"))
        context.env.setdefault("GOPATH", str(context.tmp_dir / "go"))

    def describe(self) -> dict[str, object]:
        return {
            "kind": self.name,
            "tool": self.tool,
            "binary": self.binary,
            "package": self.package,
            "reproducible": self.reproducible,
            "flags": list(self.flags),
        }


@dataclass(frozen=True, slots=True)
class ScriptCompiler:
    """Run a build script that writes the executable to ``$DRVKIT_BINARY``.

    ``script`` is relative to the source root. Transient products such as
    generated documentation belong under ``$DRVKIT_INTERMEDIATE``.
    """

    binary: str
    script: str = "build.sh"
    shell: str = "bash"
    flags: tuple[str, ...] = ()
    name: str = "script"

    def intermediate_dir(self, work_dir: Path) -> Path:
        return work_dir / "build"

    def binary_path(self, work_dir: Path) -> Path:
        return self.intermediate_dir(work_dir) / "bin" / self.binary

    def command(self, context: HookContext) -> tuple[str, ...]:
        return (self.shell, self.script, *self.flags)

    def prepare_env(self, context: HookContext) -> None:
        self.binary_path(context.work_dir).parent.mkdir(parents=True, exist_ok=True)
        context.env["DRVKIT_BINARY"] = str(self.binary_path(context.work_dir))

    def describe(self) -> dict[str, object]:
        return {
            "kind": self.name,
            "binary": self.binary,
            "script": self.script,
            "shell": self.shell,
            "flags": list(self.flags),
        }
