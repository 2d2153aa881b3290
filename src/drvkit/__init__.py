"""Public package entrypoint for drvkit, the multi-platform package builder."""

from .augment import ArtifactAugmenter, ManualPageSpec
from .builders import BuildOutput, BuildSpec, DerivationBuilder, HookChain, IsolatedHome, ShellHook
from .config import PipelineConfig, load_config
from .errors import (
    AmbiguousManualPageWarning,
    BuildFailure,
    CompletionGenerationFailure,
    ConfigError,
    DrvError,
    LockfileError,
    ManualPageNotFound,
    ReproducibilityError,
    UnknownPackageError,
    ValidationError,
)
from .index import HostPackageSource, LockedPackageSource, PackageSource, lookup
from .models import (
    DEFAULT_PLATFORMS,
    DevEnvironment,
    InstalledArtifactTree,
    PackageDescriptor,
    PackageIndex,
    PlatformOutputs,
)
from .pipeline import Pipeline
from .platforms import PlatformMatrix, each_platform
from .profiles import RUST_DEVSHELL, DevShellProfile, assemble

__all__ = [
    "DEFAULT_PLATFORMS",
    "RUST_DEVSHELL",
    "AmbiguousManualPageWarning",
    "ArtifactAugmenter",
    "BuildFailure",
    "BuildOutput",
    "BuildSpec",
    "CompletionGenerationFailure",
    "ConfigError",
    "DerivationBuilder",
    "DevEnvironment",
    "DevShellProfile",
    "DrvError",
    "HookChain",
    "HostPackageSource",
    "InstalledArtifactTree",
    "IsolatedHome",
    "LockedPackageSource",
    "LockfileError",
    "ManualPageNotFound",
    "ManualPageSpec",
    "PackageDescriptor",
    "PackageIndex",
    "PackageSource",
    "Pipeline",
    "PipelineConfig",
    "PlatformMatrix",
    "PlatformOutputs",
    "ReproducibilityError",
    "ShellHook",
    "UnknownPackageError",
    "ValidationError",
    "assemble",
    "each_platform",
    "load_config",
    "lookup",
]
