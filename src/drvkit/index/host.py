"""Host package source: bind package names to executables found on ``PATH``."""

from __future__ import annotations

import shutil
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from drvkit.errors import UnknownPackageError
from drvkit.models import PackageDescriptor, PackageIndex, PlatformIdentifier
from drvkit.platforms import current_platform


@dataclass(slots=True)
class HostPackageSource:
    """Resolve packages from the host for the host platform only.

    ``packages`` maps a package name to the executables it provides. A
    package is present in the index when all of its executables are found.
    Names whose executables are missing are simply absent, so a later
    ``lookup`` fails with ``UnknownPackageError``.
    """

    packages: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    revision: str = "host"
    platform: PlatformIdentifier = field(default_factory=current_platform)

    def resolve(self, platform: PlatformIdentifier) -> PackageIndex:
        if platform != self.platform:
            raise UnknownPackageError(
                f"Host package source cannot resolve packages for {platform}.",
                package="*",
                hint=f"The host platform is {self.platform}; use a pinned package lock instead.",
                context={"platform": platform, "revision": self.revision},
            )
        resolved: dict[str, PackageDescriptor] = {}
        for name, executables in sorted(self.packages.items()):
            found = [shutil.which(exe) for exe in executables]
            if not executables or any(item is None for item in found):
                continue
            # Prefix is the parent of the directory holding the first executable.
            prefix = Path(str(found[0])).parent.parent
            resolved[name] = PackageDescriptor(
                name=name,
                version="host",
                path=prefix,
                executables=tuple(executables),
            )
        return PackageIndex(platform=platform, revision=self.revision, packages=resolved)
