"""Pinned package lock: parser, serializer and the source built on it."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from drvkit.errors import LockfileError, UnknownPackageError
from drvkit.models import PackageDescriptor, PackageIndex, PlatformIdentifier

LOCK_VERSION = 1


@dataclass(frozen=True, slots=True)
class PackageLock:
    version: int
    revision: str
    platforms: dict[PlatformIdentifier, dict[str, PackageDescriptor]] = field(default_factory=dict)


@dataclass(slots=True)
class LockedPackageSource:
    """Package source backed by a pinned ``drvkit.lock.json``."""

    lock: PackageLock

    @classmethod
    def from_path(cls, path: str | Path) -> LockedPackageSource:
        return cls(lock=read_package_lock(path))

    @property
    def revision(self) -> str:
        return self.lock.revision

    def resolve(self, platform: PlatformIdentifier) -> PackageIndex:
        packages = self.lock.platforms.get(platform)
        if packages is None:
            raise UnknownPackageError(
                f"Package lock has no entries for platform {platform}.",
                package="*",
                hint="Re-pin the package set for this platform or drop it from the matrix.",
                context={"platform": platform, "revision": self.lock.revision},
            )
        return PackageIndex(platform=platform, revision=self.lock.revision, packages=packages)


def serialize_package_lock(lock: PackageLock) -> str:
    payload = {
        "version": lock.version,
        "revision": lock.revision,
        "platforms": {
            platform: {name: _descriptor_payload(desc) for name, desc in sorted(packages.items())}
            for platform, packages in sorted(lock.platforms.items())
        },
    }
    return json.dumps(payload, indent=2, sort_keys=True) + "\n"


def parse_package_lock(raw: str) -> PackageLock:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise LockfileError("Invalid package lock JSON.", hint=str(exc)) from exc

    if not isinstance(payload, dict):
        raise LockfileError("Invalid package lock payload type.")

    version = _required_int(payload, "version")
    if version != LOCK_VERSION:
        raise LockfileError(
            f"Unsupported package lock version {version}.",
            hint=f"Expected version {LOCK_VERSION}.",
        )
    revision = _required_str(payload, "revision")
    platforms_raw = payload.get("platforms")
    if not isinstance(platforms_raw, dict):
        raise LockfileError("Invalid package lock `platforms` value.")

    platforms: dict[PlatformIdentifier, dict[str, PackageDescriptor]] = {}
    for platform, packages_raw in platforms_raw.items():
        if not isinstance(packages_raw, dict):
            raise LockfileError(
                "Invalid package set in package lock.",
                context={"platform": str(platform)},
            )
        platforms[platform] = {
            name: _parse_descriptor(name, item, platform=platform)
            for name, item in packages_raw.items()
        }
    return PackageLock(version=version, revision=revision, platforms=platforms)


def read_package_lock(path: str | Path) -> PackageLock:
    lock_path = Path(path)
    try:
        raw = lock_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise LockfileError(
            "Package lock does not exist.",
            hint="Pin a package set before building.",
            context={"path": str(lock_path)},
        ) from exc
    return parse_package_lock(raw)


def write_package_lock(lock: PackageLock, path: str | Path) -> Path:
    lock_path = Path(path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock_path.write_text(serialize_package_lock(lock), encoding="utf-8")
    return lock_path


def _descriptor_payload(descriptor: PackageDescriptor) -> dict[str, Any]:
    payload = descriptor.describe()
    payload.pop("name")
    return payload


def _parse_descriptor(name: Any, item: Any, *, platform: str) -> PackageDescriptor:
    if not isinstance(name, str) or not name:
        raise LockfileError("Invalid package name in package lock.", context={"platform": platform})
    if not isinstance(item, dict):
        raise LockfileError(
            "Invalid package entry in package lock.",
            context={"platform": platform, "package": name},
        )
    executables = item.get("executables", [])
    lib_dirs = item.get("lib_dirs", [])
    if not _is_str_list(executables) or not _is_str_list(lib_dirs):
        raise LockfileError(
            "Invalid package lock `executables`/`lib_dirs` value.",
            context={"platform": platform, "package": name},
        )
    return PackageDescriptor(
        name=name,
        version=_required_str(item, "version"),
        path=Path(_required_str(item, "path")),
        executables=tuple(executables),
        lib_dirs=tuple(Path(entry) for entry in lib_dirs),
    )


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(entry, str) for entry in value)


def _required_str(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise LockfileError(f"Invalid package lock `{key}` value.")
    return value


def _required_int(payload: dict[str, Any], key: str) -> int:
    value = payload.get(key)
    if not isinstance(value, int) or isinstance(value, bool):
        raise LockfileError(f"Invalid package lock `{key}` value.")
    return value
