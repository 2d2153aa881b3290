"""Derivation hash and source tree digests."""

from __future__ import annotations

import hashlib
import json
import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from drvkit.errors import BuildFailure
from drvkit.models import PackageDescriptor


@dataclass(frozen=True, slots=True)
class DerivationInput:
    name: str
    platform: str
    revision: str
    source_digest: str
    compiler: dict[str, object]
    native_build_inputs: tuple[PackageDescriptor, ...] = ()
    build_inputs: tuple[PackageDescriptor, ...] = ()
    pre_build_hook: dict[str, object] | None = None
    post_build_hook: dict[str, object] | None = None
    env: dict[str, str] = field(default_factory=dict)


def derivation_hash(inputs: DerivationInput) -> str:
    canonical = json.dumps(_to_payload(inputs), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def source_digest(root: Path) -> str:
    """Digest a source tree by relative path, content, symlink target and exec bit."""
    digest = hashlib.sha256()
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        base = Path(dirpath)
        for filename in sorted(filenames):
            path = base / filename
            rel = path.relative_to(root).as_posix()
            if path.is_symlink():
                digest.update(f"L {rel} {os.readlink(path)}\n".encode())
                continue
            if not stat.S_ISREG(path.lstat().st_mode):
                raise BuildFailure(
                    f"Source tree contains a special file: {rel}.",
                    stage="prepare",
                    exit_code=None,
                    hint="Remove named pipes and other special files from the source tree.",
                    context={"path": rel},
                )
            executable = os.access(path, os.X_OK)
            content = hashlib.sha256(path.read_bytes()).hexdigest()
            digest.update(f"F {rel} {int(executable)} {content}\n".encode())
        for dirname in dirnames:
            path = base / dirname
            if path.is_symlink():
                rel = path.relative_to(root).as_posix()
                digest.update(f"L {rel} {os.readlink(path)}\n".encode())
    return digest.hexdigest()


def _to_payload(inputs: DerivationInput) -> dict[str, Any]:
    return {
        "name": inputs.name,
        "platform": inputs.platform,
        "revision": inputs.revision,
        "source_digest": inputs.source_digest,
        "compiler": inputs.compiler,
        "native_build_inputs": [item.describe() for item in inputs.native_build_inputs],
        "build_inputs": [item.describe() for item in inputs.build_inputs],
        "pre_build_hook": inputs.pre_build_hook,
        "post_build_hook": inputs.post_build_hook,
        "env": dict(sorted(inputs.env.items())),
    }
