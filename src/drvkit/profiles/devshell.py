"""Development shell profile.

Selects the interactive toolchain (compiler, formatter, linters, mutation
testing, pre-commit) from the platform's package index and exposes the
standard-library source location for IDE tooling. Assembly is pure: it
performs lookups only and never touches the filesystem or the build store.
"""

from __future__ import annotations

from dataclasses import dataclass

from drvkit.index import lookup
from drvkit.models import DevEnvironment, PackageIndex

# ---------------------------------------------------------------------------
# Toolchain packages provided by the default Rust development shell
# ---------------------------------------------------------------------------

RUST_DEVSHELL_TOOLS: tuple[str, ...] = (
    "cargo",
    "rustc",
    "rustfmt",
    "pre-commit",
    "clippy",
    "cargo-mutants",
)


@dataclass(frozen=True, slots=True)
class DevShellProfile:
    tools: tuple[str, ...]
    src_env_var: str | None = None
    src_package: str | None = None
    src_subpath: str = ""


RUST_DEVSHELL = DevShellProfile(
    tools=RUST_DEVSHELL_TOOLS,
    src_env_var="RUST_SRC_PATH",
    src_package="rust-src",
    src_subpath="lib/rustlib/src/rust/library",
)


def assemble(
    platform: str,
    index: PackageIndex,
    profile: DevShellProfile = RUST_DEVSHELL,
) -> DevEnvironment:
    """Build the development environment for *platform*.

    Every tool in *profile* must be present in *index*; a missing tool
    raises ``UnknownPackageError``. When the profile names a source package,
    ``src_env_var`` points at ``<package path>/<src_subpath>``.
    """
    tools = tuple(lookup(index, name) for name in profile.tools)
    env_vars: dict[str, str] = {}
    if profile.src_env_var and profile.src_package:
        source = lookup(index, profile.src_package)
        location = source.path / profile.src_subpath if profile.src_subpath else source.path
        env_vars[profile.src_env_var] = str(location)
    return DevEnvironment(platform=platform, toolchain_tools=tools, env_vars=env_vars)
