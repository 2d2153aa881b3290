"""Core typed dataclasses for package indices, installed trees and dev shells."""

from __future__ import annotations

import hashlib
import json
import os
import threading
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

import cbor2

PlatformIdentifier = str

DEFAULT_PLATFORMS: tuple[PlatformIdentifier, ...] = (
    "aarch64-darwin",
    "aarch64-linux",
    "x86_64-darwin",
    "x86_64-linux",
)

DEFAULT_SHELLS: tuple[str, ...] = ("bash", "zsh", "fish")


@dataclass(frozen=True, slots=True)
class PackageDescriptor:
    name: str
    version: str
    path: Path
    executables: tuple[str, ...] = ()
    lib_dirs: tuple[Path, ...] = ()

    @property
    def bin_dir(self) -> Path:
        return self.path / "bin"

    def describe(self) -> dict[str, object]:
        return {
            "name": self.name,
            "version": self.version,
            "path": str(self.path),
            "executables": list(self.executables),
            "lib_dirs": [str(item) for item in self.lib_dirs],
        }


class PackageIndex(Mapping[str, PackageDescriptor]):
    """Read-only mapping of package name to descriptor for one platform."""

    __slots__ = ("_packages", "platform", "revision")

    def __init__(
        self,
        *,
        platform: PlatformIdentifier,
        revision: str,
        packages: Mapping[str, PackageDescriptor],
    ) -> None:
        self.platform = platform
        self.revision = revision
        self._packages = MappingProxyType(dict(sorted(packages.items())))

    def __getitem__(self, name: str) -> PackageDescriptor:
        return self._packages[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._packages)

    def __len__(self) -> int:
        return len(self._packages)

    def __repr__(self) -> str:
        return (
            f"PackageIndex(platform={self.platform!r}, revision={self.revision!r}, "
            f"packages={list(self._packages)!r})"
        )


@dataclass(frozen=True, slots=True)
class InstalledArtifactTree:
    """Final per-platform output: executable, completions and manual pages."""

    platform: PlatformIdentifier
    root: Path
    executable: Path
    shell_completions: Mapping[str, Path] = field(default_factory=dict)
    manual_pages: tuple[Path, ...] = ()
    schema_version: int = 1

    def manifest(self) -> dict[str, dict[str, object]]:
        """Return ``relative path -> {sha256, mode}`` for every installed file."""
        files = [self.executable, *self.shell_completions.values(), *self.manual_pages]
        entries: dict[str, dict[str, object]] = {}
        for path in sorted(files):
            rel = path.relative_to(self.root).as_posix()
            entries[rel] = {
                "sha256": hashlib.sha256(path.read_bytes()).hexdigest(),
                "mode": oct(path.stat().st_mode & 0o777),
            }
        return entries

    def to_cbor(self, path: str | Path | None = None) -> bytes:
        encoded = cbor2.dumps(self._payload(), canonical=True)
        if path is not None:
            Path(path).write_bytes(encoded)
        return encoded

    def to_json(self, path: str | Path | None = None) -> str:
        encoded = json.dumps(self._payload(), indent=2, sort_keys=True) + "\n"
        if path is not None:
            Path(path).write_text(encoded, encoding="utf-8")
        return encoded

    def digest(self) -> str:
        return hashlib.sha256(self.to_cbor()).hexdigest()

    def _payload(self) -> dict[str, object]:
        return {
            "schema_version": self.schema_version,
            "platform": self.platform,
            "executable": self.executable.relative_to(self.root).as_posix(),
            "shell_completions": {
                shell: path.relative_to(self.root).as_posix()
                for shell, path in sorted(self.shell_completions.items())
            },
            "manual_pages": [path.relative_to(self.root).as_posix() for path in self.manual_pages],
            "files": self.manifest(),
        }


@dataclass(frozen=True, slots=True)
class DevEnvironment:
    platform: PlatformIdentifier
    toolchain_tools: tuple[PackageDescriptor, ...] = ()
    env_vars: Mapping[str, str] = field(default_factory=dict)

    @property
    def tool_names(self) -> tuple[str, ...]:
        return tuple(tool.name for tool in self.toolchain_tools)

    def environ(self, base: Mapping[str, str] | None = None) -> dict[str, str]:
        """Return a process environment with the toolchain on ``PATH``."""
        env = dict(os.environ if base is None else base)
        bin_dirs: list[str] = []
        for tool in self.toolchain_tools:
            entry = str(tool.bin_dir)
            if entry not in bin_dirs:
                bin_dirs.append(entry)
        existing = env.get("PATH", "")
        env["PATH"] = os.pathsep.join([*bin_dirs, existing] if existing else bin_dirs)
        env.update(self.env_vars)
        return env


class PlatformOutputs:
    """Per-platform output record with lazily evaluated members.

    ``default_output`` compiles on first access; ``dev_environment`` never
    triggers a build. Both results (or failures) are memoized.
    """

    __slots__ = ("_cache", "_develop", "_lock", "_realize", "platform")

    def __init__(
        self,
        platform: PlatformIdentifier,
        *,
        realize: Callable[[], InstalledArtifactTree],
        develop: Callable[[], DevEnvironment],
    ) -> None:
        self.platform = platform
        self._realize = realize
        self._develop = develop
        self._cache: dict[str, tuple[bool, Any]] = {}
        self._lock = threading.Lock()

    @property
    def default_output(self) -> InstalledArtifactTree:
        return self._memoized("default_output", self._realize)

    @property
    def dev_environment(self) -> DevEnvironment:
        return self._memoized("dev_environment", self._develop)

    def _memoized(self, key: str, thunk: Callable[[], Any]) -> Any:
        with self._lock:
            if key not in self._cache:
                try:
                    self._cache[key] = (True, thunk())
                except Exception as exc:
                    self._cache[key] = (False, exc)
            ok, value = self._cache[key]
        if not ok:
            raise value
        return value

    def __repr__(self) -> str:
        return f"PlatformOutputs(platform={self.platform!r})"


__all__ = [
    "DEFAULT_PLATFORMS",
    "DEFAULT_SHELLS",
    "DevEnvironment",
    "InstalledArtifactTree",
    "PackageDescriptor",
    "PackageIndex",
    "PlatformIdentifier",
    "PlatformOutputs",
]
