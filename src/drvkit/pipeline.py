"""Per-platform pipeline: package index → derivation → installed tree."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from drvkit.builders import BuildSpec, DerivationBuilder, HookChain, IsolatedHome, ShellHook
from drvkit.builders.base import Hook
from drvkit.config import PipelineConfig
from drvkit.index import PackageSource
from drvkit.models import (
    DevEnvironment,
    InstalledArtifactTree,
    PlatformIdentifier,
    PlatformOutputs,
)
from drvkit.observability import StructuredLogger
from drvkit.outputs import collect_installed_tree
from drvkit.platforms import PlatformMatrix, each_platform
from drvkit.profiles import assemble


@dataclass(slots=True)
class Pipeline:
    config: PipelineConfig
    package_source: PackageSource
    store_dir: Path
    work_root: Path | None = None
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    def matrix(self) -> PlatformMatrix[PlatformOutputs]:
        return each_platform(self.outputs, self.config.platforms)

    def outputs(self, platform: PlatformIdentifier) -> PlatformOutputs:
        # Each member resolves its own index; nothing is shared across platforms.
        return PlatformOutputs(
            platform,
            realize=lambda: self.realize(platform),
            develop=lambda: self.develop(platform),
        )

    def realize(self, platform: PlatformIdentifier) -> InstalledArtifactTree:
        index = self.package_source.resolve(platform)
        spec = self.spec_for(platform)
        builder = DerivationBuilder(
            store_dir=self.store_dir,
            work_root=self.work_root,
            logger=self.logger,
        )
        output = builder.build(spec, index=index)
        tree = collect_installed_tree(
            output,
            command_name=self.config.command_name,
            shells=self.config.shells,
        )
        self.logger.log(
            operation="realize",
            platform=platform,
            stage="install",
            component="pipeline",
            message="Installed artifact tree is complete.",
            extra={"root": str(tree.root), "digest": tree.digest()},
        )
        return tree

    def develop(self, platform: PlatformIdentifier) -> DevEnvironment:
        index = self.package_source.resolve(platform)
        return assemble(platform, index, self.config.devshell)

    def spec_for(self, platform: PlatformIdentifier) -> BuildSpec:
        """Return a fresh build description for *platform*."""
        return BuildSpec(
            name=self.config.name,
            source_root=self.config.source_root,
            compiler=self.config.compiler_step(),
            native_build_inputs=self.config.native_build_inputs,
            build_inputs=self.config.build_inputs,
            pre_build_hook=self._pre_build_hook(),
            post_build_hook=self.config.augmenter(),
            env={**self.config.env, "DRVKIT_PLATFORM": platform},
        )

    def _pre_build_hook(self) -> Hook | None:
        hooks: list[Hook] = []
        if self.config.isolate_home:
            hooks.append(IsolatedHome())
        if self.config.pre_build:
            hooks.append(ShellHook(self.config.pre_build, name="pre-build"))
        if not hooks:
            return None
        if len(hooks) == 1:
            return hooks[0]
        return HookChain(*hooks, name="pre-build")
