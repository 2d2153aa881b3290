"""Typed interfaces for derivations, hooks and compile steps."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Protocol

from drvkit.models import PlatformIdentifier
from drvkit.observability import StructuredLogger

Stage = Literal["prepare", "pre_build", "compile", "post_build", "install"]


@dataclass(slots=True)
class HookContext:
    """Mutable per-build state handed to lifecycle hooks and compile steps.

    One instance exists per derivation build; it is never shared across
    platforms. ``env`` is the build environment: hooks may change it and the
    following stages see the change.
    """

    name: str
    platform: PlatformIdentifier
    work_dir: Path
    source_dir: Path
    tmp_dir: Path
    out: Path
    intermediate_path: Path
    env: dict[str, str]
    logger: StructuredLogger
    stage: Stage = "prepare"
    binary_path: Path | None = None

    @property
    def cwd(self) -> Path:
        return self.source_dir


class Hook(Protocol):
    name: str

    def run(self, context: HookContext) -> None:
        """Execute the hook; raise a ``DrvError`` on failure."""

    def describe(self) -> dict[str, object]:
        """Return a stable, JSON-serializable description for hashing."""


class Compiler(Protocol):
    name: str

    def intermediate_dir(self, work_dir: Path) -> Path:
        """Directory that receives transient build products."""

    def binary_path(self, work_dir: Path) -> Path:
        """Location of the compiled executable inside the intermediate dir."""

    def command(self, context: HookContext) -> tuple[str, ...]:
        """Argv of the compile step, run with ``context.cwd`` as cwd."""

    def prepare_env(self, context: HookContext) -> None:
        """Adjust ``context.env`` for this compiler before it runs."""

    def describe(self) -> dict[str, object]:
        """Return a stable, JSON-serializable description for hashing."""


@dataclass(frozen=True, slots=True)
class BuildSpec:
    name: str
    source_root: Path
    compiler: Compiler
    native_build_inputs: tuple[str, ...] = ()
    build_inputs: tuple[str, ...] = ()
    pre_build_hook: Hook | None = None
    post_build_hook: Hook | None = None
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class BuildOutput:
    """Published build result.

    ``intermediate_path`` records where transient products lived while the
    build ran; the directory no longer exists once ``build()`` returns.
    """

    name: str
    platform: PlatformIdentifier
    root_path: Path
    binary_path: Path
    intermediate_path: Path
    derivation_hash: str
