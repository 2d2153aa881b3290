"""Collect the installed artifact tree from a published build output."""

from __future__ import annotations

from pathlib import Path

from drvkit.augment import completion_destination
from drvkit.builders.base import BuildOutput
from drvkit.errors import ReproducibilityError
from drvkit.models import InstalledArtifactTree


def collect_installed_tree(
    output: BuildOutput,
    *,
    command_name: str,
    shells: tuple[str, ...],
) -> InstalledArtifactTree:
    root = output.root_path
    executable = root / "bin" / command_name
    if not executable.is_file():
        raise ReproducibilityError(
            "Published output has no executable.",
            hint="The output root does not match what the build published; rebuild it.",
            context={"platform": output.platform, "expected": str(executable)},
        )

    completions: dict[str, Path] = {}
    for shell in shells:
        path = root / completion_destination(shell, command_name)
        if not path.is_file():
            raise ReproducibilityError(
                f"Published output is missing the {shell} completion script.",
                hint="The output root does not match what the build published; rebuild it.",
                context={"platform": output.platform, "expected": str(path)},
            )
        completions[shell] = path

    manual_pages = tuple(
        path for path in sorted((root / "share" / "man").glob("man*/*")) if path.is_file()
    )
    if not manual_pages:
        raise ReproducibilityError(
            "Published output has no manual pages.",
            hint="The output root does not match what the build published; rebuild it.",
            context={"platform": output.platform, "root": str(root)},
        )

    return InstalledArtifactTree(
        platform=output.platform,
        root=root,
        executable=executable,
        shell_completions=completions,
        manual_pages=manual_pages,
    )
