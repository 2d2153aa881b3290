"""Artifact augmenter: the post-build hook that installs derived artifacts.

The freshly built executable is asked to describe itself: it is run once
per shell with an environment variable naming that shell and prints the
completion script on stdout. Manual pages generated during the build are
located by a glob under the intermediate build directory. Both are
installed into the output root in the conventional locations.
"""

from __future__ import annotations

import fnmatch
import os
import re
import subprocess
import warnings
from dataclasses import dataclass, field
from pathlib import Path

from drvkit.builders.base import HookContext
from drvkit.builders.sandbox import install_file
from drvkit.errors import (
    AmbiguousManualPageWarning,
    CompletionGenerationFailure,
    ManualPageNotFound,
    ValidationError,
)
from drvkit.models import DEFAULT_SHELLS

LOG_TAIL = 2000

MAN_PAGE_NAME = re.compile(r"^.+\.(?P<section>[1-9][a-z]*)(?:\.gz)?$")


def completion_destination(shell: str, command: str) -> Path:
    """Relative install path of *command*'s completion script for *shell*."""
    if shell == "bash":
        return Path("share/bash-completion/completions") / f"{command}.bash"
    if shell == "zsh":
        return Path("share/zsh/site-functions") / f"_{command}"
    if shell == "fish":
        return Path("share/fish/vendor_completions.d") / f"{command}.fish"
    return Path("share/completions") / shell / command


def manual_page_destination(page: Path) -> Path:
    match = MAN_PAGE_NAME.match(page.name)
    if match is None:
        raise ValidationError(
            f"Cannot infer a manual section for `{page.name}`.",
            hint="Manual pages must be named like `name.1` or `name.1.gz`.",
            context={"path": str(page)},
        )
    section = match.group("section")[0]
    return Path("share/man") / f"man{section}" / page.name


@dataclass(frozen=True, slots=True)
class ManualPageSpec:
    """Glob (relative to the intermediate dir) selecting generated manual pages."""

    pattern: str
    exclude: tuple[str, ...] = ()

    def find(self, intermediate: Path) -> list[Path]:
        if Path(self.pattern).is_absolute():
            raise ValidationError(
                f"Manual page pattern `{self.pattern}` must be relative.",
                hint="Patterns are matched under the intermediate build directory.",
                context={"pattern": self.pattern},
            )
        # Only files with a section suffix count as manual pages.
        matches = [
            path
            for path in sorted(intermediate.glob(self.pattern))
            if path.is_file() and MAN_PAGE_NAME.match(path.name)
        ]
        return [
            path
            for path in matches
            if not any(fnmatch.fnmatch(path.name, pattern) for pattern in self.exclude)
        ]


@dataclass(frozen=True, slots=True)
class ArtifactAugmenter:
    command_name: str
    manual_pages: ManualPageSpec
    shells: tuple[str, ...] = DEFAULT_SHELLS
    completion_env_var: str = "COMPLETE"
    name: str = field(default="augment-artifacts")

    def run(self, context: HookContext) -> None:
        binary = self._require_binary(context)

        completions = {
            shell: self.harvest_completion(context, binary, shell) for shell in self.shells
        }
        pages = self.locate_manual_pages(context)
        page_targets = [(page, manual_page_destination(page)) for page in pages]
        self._check_destinations(context, page_targets)

        # Nothing is written into the output root until every artifact exists.
        for shell, script in completions.items():
            destination = context.out / completion_destination(shell, self.command_name)
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_text(script, encoding="utf-8")
            destination.chmod(0o644)
        for page, target in page_targets:
            install_file(page, context.out / target, mode=0o644)

        context.logger.log(
            operation="augment",
            platform=context.platform,
            stage=context.stage,
            component=self.name,
            message="Installed completions and manual pages.",
            extra={
                "shells": list(completions),
                "manual_pages": [page.name for page in pages],
            },
        )

    def harvest_completion(self, context: HookContext, binary: Path, shell: str) -> str:
        env = dict(context.env)
        env[self.completion_env_var] = shell
        try:
            result = subprocess.run(
                [str(binary)],
                cwd=str(context.cwd),
                env=env,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise CompletionGenerationFailure(
                f"Could not run `{binary.name}` to generate {shell} completions.",
                shell=shell,
                hint="The built executable must be runnable on the build host.",
                context={"platform": context.platform, "binary": str(binary), "error": str(exc)},
            ) from exc

        if result.returncode != 0:
            raise CompletionGenerationFailure(
                f"`{binary.name}` exited with status {result.returncode} "
                f"while generating {shell} completions.",
                shell=shell,
                hint=f"Run `{self.completion_env_var}={shell} {binary.name}` to reproduce.",
                context={
                    "platform": context.platform,
                    "binary": str(binary),
                    "returncode": str(result.returncode),
                    "stderr": result.stderr[-LOG_TAIL:] if result.stderr else "",
                },
            )
        if not result.stdout.strip():
            raise CompletionGenerationFailure(
                f"`{binary.name}` produced an empty {shell} completion script.",
                shell=shell,
                hint=f"Check that the executable honours `{self.completion_env_var}`.",
                context={"platform": context.platform, "binary": str(binary)},
            )
        return result.stdout

    def locate_manual_pages(self, context: HookContext) -> list[Path]:
        pages = self.manual_pages.find(context.intermediate_path)
        if not pages:
            raise ManualPageNotFound(
                "No manual pages matched the configured pattern.",
                hint="Check that the build generates manual pages and the glob is correct.",
                context={
                    "platform": context.platform,
                    "pattern": self.manual_pages.pattern,
                    "root": str(context.intermediate_path),
                },
            )
        parents = sorted({str(page.parent) for page in pages})
        if len(parents) > 1:
            message = (
                f"Manual page pattern `{self.manual_pages.pattern}` matched files in "
                f"{len(parents)} directories; installing all of them."
            )
            warnings.warn(message, AmbiguousManualPageWarning, stacklevel=2)
            context.logger.log(
                operation="augment",
                platform=context.platform,
                stage=context.stage,
                component=self.name,
                message=message,
                level="warning",
                extra={"directories": parents},
            )
        return pages

    def describe(self) -> dict[str, object]:
        return {
            "kind": "augment",
            "command": self.command_name,
            "shells": list(self.shells),
            "completion_env_var": self.completion_env_var,
            "manual_page_pattern": self.manual_pages.pattern,
            "manual_page_exclude": list(self.manual_pages.exclude),
        }

    def _require_binary(self, context: HookContext) -> Path:
        binary = context.binary_path
        if binary is None or not binary.is_file() or not os.access(binary, os.X_OK):
            raise CompletionGenerationFailure(
                "Completion harvesting requires the built executable.",
                hint="The post-build hook must run after a successful compile step.",
                context={
                    "platform": context.platform,
                    "binary": "" if binary is None else str(binary),
                },
            )
        return binary

    def _check_destinations(
        self, context: HookContext, page_targets: list[tuple[Path, Path]]
    ) -> None:
        sources: dict[Path, list[str]] = {}
        for page, target in page_targets:
            sources.setdefault(target, []).append(str(page))
        clashes = {str(target): names for target, names in sources.items() if len(names) > 1}
        if clashes:
            target, names = sorted(clashes.items())[0]
            raise ValidationError(
                f"Manual pages {', '.join(names)} would all be installed as `{target}`.",
                hint="Narrow the manual page pattern or exclude the duplicates.",
                context={
                    "platform": context.platform,
                    "pattern": self.manual_pages.pattern,
                    "destination": target,
                    "sources": ", ".join(names),
                },
            )
