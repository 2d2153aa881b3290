"""Package index binding: per-platform, read-only package lookup."""

from __future__ import annotations

from typing import Protocol

from drvkit.errors import UnknownPackageError
from drvkit.models import PackageDescriptor, PackageIndex, PlatformIdentifier

from .host import HostPackageSource
from .lock import (
    LockedPackageSource,
    PackageLock,
    parse_package_lock,
    read_package_lock,
    serialize_package_lock,
    write_package_lock,
)


class PackageSource(Protocol):
    revision: str

    def resolve(self, platform: PlatformIdentifier) -> PackageIndex:
        """Return the pinned package index for *platform*."""


def lookup(index: PackageIndex, name: str) -> PackageDescriptor:
    try:
        return index[name]
    except KeyError:
        raise UnknownPackageError(
            f"Package `{name}` is not available in the package index.",
            package=name,
            hint="Check the package name or re-pin the package set.",
            context={"platform": index.platform, "revision": index.revision},
        ) from None


__all__ = [
    "HostPackageSource",
    "LockedPackageSource",
    "PackageLock",
    "PackageSource",
    "lookup",
    "parse_package_lock",
    "read_package_lock",
    "serialize_package_lock",
    "write_package_lock",
]
