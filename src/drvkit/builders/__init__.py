"""Derivation builder, lifecycle hooks and compile steps."""

from .base import BuildOutput, BuildSpec, Compiler, Hook, HookContext, Stage
from .compilers import CargoCompiler, GoCompiler, ScriptCompiler
from .derivation import DerivationBuilder
from .hooks import HookChain, IsolatedHome, ShellHook
from .keys import DerivationInput, derivation_hash, source_digest

__all__ = [
    "BuildOutput",
    "BuildSpec",
    "CargoCompiler",
    "Compiler",
    "DerivationBuilder",
    "DerivationInput",
    "GoCompiler",
    "Hook",
    "HookChain",
    "HookContext",
    "IsolatedHome",
    "ScriptCompiler",
    "ShellHook",
    "Stage",
    "derivation_hash",
    "source_digest",
]
