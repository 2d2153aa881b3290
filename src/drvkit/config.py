"""Pipeline configuration model and JSON loader."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, cast, get_args

from drvkit.augment import ArtifactAugmenter, ManualPageSpec
from drvkit.builders import CargoCompiler, Compiler, GoCompiler, ScriptCompiler
from drvkit.errors import ConfigError
from drvkit.models import DEFAULT_PLATFORMS, DEFAULT_SHELLS
from drvkit.platforms import validate_platforms
from drvkit.profiles import RUST_DEVSHELL, DevShellProfile

CompilerKind = Literal["cargo", "go", "script"]

DEFAULT_CONFIG_NAME = "drvkit.json"
DEFAULT_LOCK_NAME = "drvkit.lock.json"


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    name: str
    command_name: str
    source_root: Path
    manual_page_pattern: str
    platforms: tuple[str, ...] = DEFAULT_PLATFORMS
    native_build_inputs: tuple[str, ...] = ()
    build_inputs: tuple[str, ...] = ()
    compiler: CompilerKind = "cargo"
    build_script: str = "build.sh"
    shells: tuple[str, ...] = DEFAULT_SHELLS
    completion_env_var: str = "COMPLETE"
    manual_page_exclude: tuple[str, ...] = ()
    pre_build: str | None = None
    isolate_home: bool = True
    lock_path: Path | None = None
    devshell: DevShellProfile = RUST_DEVSHELL
    env: Mapping[str, str] = field(default_factory=dict)

    def compiler_step(self) -> Compiler:
        if self.compiler == "cargo":
            return CargoCompiler(binary=self.command_name)
        if self.compiler == "go":
            return GoCompiler(binary=self.command_name)
        return ScriptCompiler(binary=self.command_name, script=self.build_script)

    def augmenter(self) -> ArtifactAugmenter:
        return ArtifactAugmenter(
            command_name=self.command_name,
            manual_pages=ManualPageSpec(
                pattern=self.manual_page_pattern,
                exclude=self.manual_page_exclude,
            ),
            shells=self.shells,
            completion_env_var=self.completion_env_var,
        )


def load_config(path: str | Path) -> PipelineConfig:
    config_path = Path(path)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigError(
            "Pipeline configuration does not exist.",
            hint=f"Create {DEFAULT_CONFIG_NAME} next to the source tree.",
            context={"path": str(config_path)},
        ) from exc
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(
            "Invalid pipeline configuration JSON.",
            hint=str(exc),
            context={"path": str(config_path)},
        ) from exc
    if not isinstance(payload, dict):
        raise ConfigError("Invalid pipeline configuration payload type.")
    return parse_config(payload, base_dir=config_path.parent)


def parse_config(payload: dict[str, Any], *, base_dir: Path) -> PipelineConfig:
    compiler = payload.get("compiler", "cargo")
    if compiler not in get_args(CompilerKind):
        raise ConfigError(
            f"Unsupported compiler `{compiler}`.",
            hint=f"Use one of: {', '.join(get_args(CompilerKind))}.",
        )

    lock_raw = payload.get("lock", DEFAULT_LOCK_NAME)
    if lock_raw is not None and not isinstance(lock_raw, str):
        raise ConfigError("Invalid configuration `lock` value.")

    pre_build = payload.get("pre_build")
    if pre_build is not None and not isinstance(pre_build, str):
        raise ConfigError("Invalid configuration `pre_build` value.")

    isolate_home = payload.get("isolate_home", True)
    if not isinstance(isolate_home, bool):
        raise ConfigError("Invalid configuration `isolate_home` value.")

    env = payload.get("env", {})
    if not isinstance(env, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in env.items()
    ):
        raise ConfigError("Invalid configuration `env` value.")

    manual_pages = _required_str(payload, "manual_pages")
    if Path(manual_pages).is_absolute():
        raise ConfigError(
            "Invalid configuration `manual_pages` value.",
            hint="Use a glob relative to the intermediate build directory.",
        )

    platforms = _optional_str_tuple(payload, "platforms", DEFAULT_PLATFORMS)
    validate_platforms(platforms)

    return PipelineConfig(
        name=_required_str(payload, "name"),
        command_name=_required_str(payload, "command"),
        source_root=_resolve(base_dir, payload.get("source_root", ".")),
        manual_page_pattern=manual_pages,
        platforms=platforms,
        native_build_inputs=_optional_str_tuple(payload, "native_build_inputs", ()),
        build_inputs=_optional_str_tuple(payload, "build_inputs", ()),
        compiler=cast(CompilerKind, compiler),
        build_script=_optional_str(payload, "build_script", "build.sh"),
        shells=_optional_str_tuple(payload, "shells", DEFAULT_SHELLS),
        completion_env_var=_optional_str(payload, "completion_env_var", "COMPLETE"),
        manual_page_exclude=_optional_str_tuple(payload, "manual_pages_exclude", ()),
        pre_build=pre_build,
        isolate_home=isolate_home,
        lock_path=None if lock_raw is None else _resolve(base_dir, lock_raw),
        devshell=_parse_devshell(payload.get("devshell")),
        env=dict(env),
    )


def _parse_devshell(raw: Any) -> DevShellProfile:
    if raw is None:
        return RUST_DEVSHELL
    if not isinstance(raw, dict):
        raise ConfigError("Invalid configuration `devshell` value.")
    src_env_var = raw.get("src_env_var")
    src_package = raw.get("src_package")
    if src_env_var is not None and not isinstance(src_env_var, str):
        raise ConfigError("Invalid configuration `devshell.src_env_var` value.")
    if src_package is not None and not isinstance(src_package, str):
        raise ConfigError("Invalid configuration `devshell.src_package` value.")
    return DevShellProfile(
        tools=_optional_str_tuple(raw, "tools", RUST_DEVSHELL.tools),
        src_env_var=src_env_var,
        src_package=src_package,
        src_subpath=_optional_str(raw, "src_subpath", ""),
    )


def _resolve(base_dir: Path, value: Any) -> Path:
    if not isinstance(value, str) or not value:
        raise ConfigError("Invalid configuration path value.", context={"value": repr(value)})
    path = Path(value)
    return path if path.is_absolute() else (base_dir / path).resolve()


def _required_str(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise ConfigError(f"Invalid configuration `{key}` value.")
    return value


def _optional_str(payload: dict[str, Any], key: str, default: str) -> str:
    value = payload.get(key, default)
    if not isinstance(value, str):
        raise ConfigError(f"Invalid configuration `{key}` value.")
    return value


def _optional_str_tuple(
    payload: dict[str, Any],
    key: str,
    default: tuple[str, ...],
) -> tuple[str, ...]:
    value = payload.get(key)
    if value is None:
        return default
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"Invalid configuration `{key}` value.")
    return tuple(value)
