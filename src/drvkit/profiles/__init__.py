"""Toolchain profiles for interactive development shells."""

from __future__ import annotations

from .devshell import RUST_DEVSHELL, RUST_DEVSHELL_TOOLS, DevShellProfile, assemble

__all__ = [
    "RUST_DEVSHELL",
    "RUST_DEVSHELL_TOOLS",
    "DevShellProfile",
    "assemble",
]
