"""Derivation builder: prepare, pre-build, compile, post-build, publish.

A derivation is built in a private working directory that holds a copy of
the source tree, a temporary directory and a staging output root. Only when
every stage succeeded is the staging root promoted into the store. On any
failure the working directory is removed and nothing is published.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from drvkit.builders.base import BuildOutput, BuildSpec, Hook, HookContext, Stage
from drvkit.builders.keys import DerivationInput, derivation_hash, source_digest
from drvkit.builders.sandbox import (
    LOG_TAIL,
    Workspace,
    build_environment,
    install_file,
    promote,
    run_stage,
)
from drvkit.errors import BuildFailure, DrvError
from drvkit.index import lookup
from drvkit.models import PackageDescriptor, PackageIndex
from drvkit.observability import StructuredLogger

STORE_HASH_LENGTH = 32


@dataclass(slots=True)
class DerivationBuilder:
    store_dir: Path
    work_root: Path | None = None
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    def build(self, spec: BuildSpec, *, index: PackageIndex) -> BuildOutput:
        platform = index.platform
        # Resolve every input before touching the filesystem.
        native_inputs = tuple(lookup(index, name) for name in spec.native_build_inputs)
        build_inputs = tuple(lookup(index, name) for name in spec.build_inputs)

        workspace: Workspace | None = None
        context: HookContext | None = None
        try:
            drv_hash = self.derivation_hash(
                spec,
                index=index,
                native_inputs=native_inputs,
                build_inputs=build_inputs,
            )
            self._log(platform, "prepare", "Starting derivation build.", extra={"hash": drv_hash})

            workspace = Workspace.create(work_root=self.work_root, name=spec.name)
            workspace.copy_source(Path(spec.source_root))
            env = build_environment(
                workspace=workspace,
                native_inputs=native_inputs,
                build_inputs=build_inputs,
                extra=spec.env,
            )
            context = HookContext(
                name=spec.name,
                platform=platform,
                work_dir=workspace.root,
                source_dir=workspace.source,
                tmp_dir=workspace.tmp,
                out=workspace.out,
                intermediate_path=spec.compiler.intermediate_dir(workspace.root),
                env=env,
                logger=self.logger,
            )
            env["DRVKIT_INTERMEDIATE"] = str(context.intermediate_path)

            self._run_hook(spec.pre_build_hook, context, stage="pre_build")
            binary = self._compile(spec, context)
            context.stage = "install"
            context.binary_path = install_file(
                binary,
                workspace.out / "bin" / binary.name,
                mode=0o755,
            )
            self._run_hook(spec.post_build_hook, context, stage="post_build")

            final = self.store_dir / f"{drv_hash[:STORE_HASH_LENGTH]}-{spec.name}"
            context.stage = "install"
            promote(workspace.out, final)
            self._log(
                platform, "install", "Published derivation output.", extra={"root": str(final)}
            )
            return BuildOutput(
                name=spec.name,
                platform=platform,
                root_path=final,
                binary_path=final / "bin" / binary.name,
                intermediate_path=context.intermediate_path,
                derivation_hash=drv_hash,
            )
        except OSError as exc:
            # shutil.Error is an OSError; filesystem failures stay scoped to this platform.
            stage: Stage = "prepare" if context is None else context.stage
            failure = BuildFailure(
                f"{stage} step failed: {exc}",
                stage=stage,
                exit_code=None,
                log=str(exc),
                hint="Check the build tree for special files and permissions.",
                context={"platform": platform},
            )
            self._log_failure(platform, failure)
            raise failure from exc
        except DrvError as exc:
            self._log_failure(platform, exc)
            raise
        finally:
            if workspace is not None:
                workspace.cleanup()

    def derivation_hash(
        self,
        spec: BuildSpec,
        *,
        index: PackageIndex,
        native_inputs: tuple[PackageDescriptor, ...],
        build_inputs: tuple[PackageDescriptor, ...],
    ) -> str:
        source_root = Path(spec.source_root)
        return derivation_hash(
            DerivationInput(
                name=spec.name,
                platform=index.platform,
                revision=index.revision,
                source_digest=source_digest(source_root) if source_root.is_dir() else "",
                compiler=spec.compiler.describe(),
                native_build_inputs=native_inputs,
                build_inputs=build_inputs,
                pre_build_hook=spec.pre_build_hook.describe() if spec.pre_build_hook else None,
                post_build_hook=spec.post_build_hook.describe() if spec.post_build_hook else None,
                env=dict(spec.env),
            )
        )

    def _compile(self, spec: BuildSpec, context: HookContext) -> Path:
        context.stage = "compile"
        compiler = spec.compiler
        compiler.prepare_env(context)
        command = compiler.command(context)
        self._log(
            context.platform, "compile", "Running compile step.", extra={"command": list(command)}
        )
        output = run_stage(
            command,
            stage="compile",
            cwd=context.cwd,
            env=context.env,
            context={"platform": context.platform, "compiler": compiler.name},
        )
        binary = compiler.binary_path(context.work_dir)
        if not binary.is_file():
            raise BuildFailure(
                "Compile step succeeded but produced no executable.",
                stage="compile",
                exit_code=0,
                log=output[-LOG_TAIL:],
                hint="Check the compiler configuration and the binary name.",
                context={"platform": context.platform, "expected": str(binary)},
            )
        if not os.access(binary, os.X_OK):
            binary.chmod(binary.stat().st_mode | 0o111)
        return binary

    def _run_hook(self, hook: Hook | None, context: HookContext, *, stage: Stage) -> None:
        context.stage = stage
        if hook is None:
            return
        self._log(context.platform, stage, f"Running {stage} hook.", extra={"hook": hook.name})
        try:
            hook.run(context)
        except OSError as exc:
            raise BuildFailure(
                f"{stage} hook `{hook.name}` failed.",
                stage=stage,
                exit_code=None,
                log=str(exc),
                context={"platform": context.platform, "hook": hook.name},
            ) from exc

    def _log(
        self,
        platform: str,
        stage: str,
        message: str,
        *,
        level: str = "info",
        extra: dict[str, object] | None = None,
    ) -> None:
        self.logger.log(
            operation="build",
            platform=platform,
            stage=stage,
            component="derivation",
            message=message,
            level=level,
            extra=extra,
        )

    def _log_failure(self, platform: str, error: DrvError) -> None:
        self._log(
            platform, "failed", "Derivation build failed.", level="error", extra=error.to_dict()
        )
