"""Lifecycle hooks run before and after the compile step."""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass

from drvkit.builders.base import Hook, HookContext
from drvkit.errors import BuildFailure

# Shell bookkeeping variables that must not leak back into the build env.
_SHELL_STATE_VARS = frozenset({"_", "SHLVL", "PWD", "OLDPWD", "DRVKIT_ENV_DUMP"})

LOG_TAIL = 2000


@dataclass(frozen=True, slots=True)
class ShellHook:
    """Run a bash snippet; variables it exports persist into later stages.

    The environment is saved after the snippet and again from an EXIT trap,
    so a snippet that installs its own EXIT trap still keeps its exports. A
    snippet that both replaces the trap and calls `exit` ends before either
    save runs, and its exports are dropped.
    """

    script: str
    name: str = "shell"
    shell: str = "bash"

    def run(self, context: HookContext) -> None:
        dump_path = context.tmp_dir / f".env-{context.stage}"
        env = dict(context.env)
        env["DRVKIT_ENV_DUMP"] = str(dump_path)
        dump = 'env -0 > "$DRVKIT_ENV_DUMP"'
        wrapped = f"trap '{dump}' EXIT\n{self.script}\n{dump}\n"
        command = [shutil.which(self.shell) or self.shell, "-euo", "pipefail", "-c", wrapped]
        try:
            result = subprocess.run(
                command,
                cwd=str(context.cwd),
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise BuildFailure(
                f"{context.stage} hook `{self.name}` could not be started.",
                stage=context.stage,
                exit_code=None,
                log=str(exc),
                hint=f"Ensure `{self.shell}` is available in the build environment.",
                context={"platform": context.platform, "hook": self.name},
            ) from exc

        output = result.stdout or ""
        if result.returncode != 0:
            raise BuildFailure(
                f"{context.stage} hook `{self.name}` failed.",
                stage=context.stage,
                exit_code=result.returncode,
                log=output[-LOG_TAIL:],
                hint="Check the hook output for details.",
                context={
                    "platform": context.platform,
                    "hook": self.name,
                    "returncode": str(result.returncode),
                    "output": output[-LOG_TAIL:],
                },
            )

        if dump_path.exists():
            context.env.clear()
            context.env.update(_parse_env_dump(dump_path.read_bytes()))
            dump_path.unlink()

        context.logger.log(
            operation="hook",
            platform=context.platform,
            stage=context.stage,
            component=self.name,
            message="Shell hook completed.",
            level="debug",
            extra={"output": output[-LOG_TAIL:]},
        )

    def describe(self) -> dict[str, object]:
        return {"kind": "shell", "name": self.name, "shell": self.shell, "script": self.script}


@dataclass(frozen=True, slots=True)
class IsolatedHome:
    """Point ``HOME`` at the build's private temporary directory.

    Toolchains such as cargo expect a writable home directory even when
    building offline.
    """

    name: str = "isolated-home"
    variable: str = "HOME"

    def run(self, context: HookContext) -> None:
        context.tmp_dir.mkdir(parents=True, exist_ok=True)
        context.env[self.variable] = str(context.tmp_dir)

    def describe(self) -> dict[str, object]:
        return {"kind": "isolated-home", "variable": self.variable}


class HookChain:
    """Run several hooks in order as a single hook."""

    __slots__ = ("hooks", "name")

    def __init__(self, *hooks: Hook, name: str = "chain") -> None:
        self.hooks = hooks
        self.name = name

    def run(self, context: HookContext) -> None:
        for hook in self.hooks:
            hook.run(context)

    def describe(self) -> dict[str, object]:
        return {"kind": "chain", "hooks": [hook.describe() for hook in self.hooks]}


def _parse_env_dump(raw: bytes) -> dict[str, str]:
    env: dict[str, str] = {}
    for entry in raw.decode("utf-8", errors="surrogateescape").split("\0"):
        if not entry or "=" not in entry:
            continue
        key, value = entry.split("=", 1)
        if key in _SHELL_STATE_VARS:
            continue
        env[key] = value
    return env
