"""Print the handlr development toolchain environment for one platform."""

from __future__ import annotations

import sys
from pathlib import Path

from drvkit import LockedPackageSource, assemble, load_config
from drvkit.platforms import current_platform

HERE = Path(__file__).resolve().parent / "handlr"


def main(platform: str) -> None:
    config = load_config(HERE / "drvkit.json")
    assert config.lock_path is not None
    index = LockedPackageSource.from_path(config.lock_path).resolve(platform)
    environment = assemble(platform, index, config.devshell)
    for tool in environment.toolchain_tools:
        print(f"{tool.name:<14} {tool.version:<8} {tool.path}")
    for key, value in sorted(environment.env_vars.items()):
        print(f"{key}={value}")


if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else current_platform())
