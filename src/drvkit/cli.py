"""Command line interface for drvkit.

Usage:
    drvkit platforms
    drvkit build [--platform P ...] [--jobs N] [--store DIR] [--log-file F]
    drvkit develop [--platform P] [--print-env]
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Sequence
from pathlib import Path

from drvkit.config import DEFAULT_CONFIG_NAME, PipelineConfig, load_config
from drvkit.errors import ConfigError, DrvError, ValidationError
from drvkit.index import LockedPackageSource
from drvkit.observability import StructuredLogger
from drvkit.pipeline import Pipeline
from drvkit.platforms import current_platform, each_platform

DEFAULT_STORE = Path(".drvkit") / "store"


def cmd_platforms(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    for platform in config.platforms:
        print(platform)
    return 0


def cmd_build(args: argparse.Namespace) -> int:
    pipeline = _pipeline(args)
    selected = _select_platforms(pipeline.config, args.platform or pipeline.config.platforms)
    matrix = each_platform(pipeline.outputs, selected)
    try:
        report = matrix.realize_all(
            select=lambda outputs: outputs.default_output,
            max_workers=args.jobs,
        )
    finally:
        if args.log_file:
            pipeline.logger.to_json_lines(args.log_file)

    for platform, outputs in sorted(report.results.items()):
        tree = outputs.default_output
        print(f"{platform}\t{tree.root}\t{tree.digest()}")
    for platform, error in sorted(report.failures.items()):
        payload = {"platform": platform, **error.to_dict()}
        print(json.dumps(payload, sort_keys=True), file=sys.stderr)
    return 0 if report.ok else 1


def cmd_develop(args: argparse.Namespace) -> int:
    pipeline = _pipeline(args)
    platform = args.platform or current_platform()
    (platform,) = _select_platforms(pipeline.config, [platform])
    environment = pipeline.outputs(platform).dev_environment
    if args.print_env:
        for key, value in sorted(environment.environ(base={}).items()):
            print(f"{key}={value}")
        return 0
    shell = os.environ.get("SHELL", "/bin/sh")
    os.execvpe(shell, [shell], environment.environ())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="drvkit", description="Multi-platform package builds")
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_NAME,
        help=f"Pipeline configuration file (default: {DEFAULT_CONFIG_NAME})",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("platforms", help="List configured target platforms")

    build_p = sub.add_parser("build", help="Build and install outputs for target platforms")
    build_p.add_argument(
        "--platform",
        action="append",
        help="Target platform (repeatable; default: all configured)",
    )
    build_p.add_argument("--jobs", type=int, default=None, help="Platforms to build in parallel")
    build_p.add_argument("--store", type=Path, default=DEFAULT_STORE, help="Output store directory")
    build_p.add_argument("--log-file", type=Path, default=None, help="Write JSONL build records")

    develop_p = sub.add_parser("develop", help="Enter the development toolchain shell")
    develop_p.add_argument("--platform", default=None, help="Platform (default: host)")
    develop_p.add_argument(
        "--print-env",
        action="store_true",
        help="Print the toolchain environment instead of starting a shell",
    )
    develop_p.set_defaults(store=DEFAULT_STORE)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    handlers = {
        "platforms": cmd_platforms,
        "build": cmd_build,
        "develop": cmd_develop,
    }
    try:
        return handlers[args.command](args)
    except DrvError as exc:
        print(json.dumps(exc.to_dict(), sort_keys=True), file=sys.stderr)
        return 1


def _pipeline(args: argparse.Namespace) -> Pipeline:
    config = load_config(args.config)
    if config.lock_path is None:
        raise ConfigError(
            "The command line requires a pinned package lock.",
            hint="Set `lock` in the configuration to a drvkit.lock.json file.",
        )
    return Pipeline(
        config=config,
        package_source=LockedPackageSource.from_path(config.lock_path),
        store_dir=Path(args.store),
        logger=StructuredLogger(),
    )


def _select_platforms(config: PipelineConfig, requested: Sequence[str]) -> tuple[str, ...]:
    unknown = [platform for platform in requested if platform not in config.platforms]
    if unknown:
        raise ValidationError(
            f"Platform not configured: {', '.join(unknown)}.",
            hint=f"Configured platforms: {', '.join(config.platforms)}.",
        )
    return tuple(requested)


if __name__ == "__main__":
    sys.exit(main())
