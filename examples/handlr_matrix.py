"""Build handlr for every platform pinned in the example lock.

Usage:
    python examples/handlr_matrix.py /path/to/handlr-regex
"""

from __future__ import annotations

import sys
from dataclasses import replace
from pathlib import Path

from drvkit import LockedPackageSource, Pipeline, load_config

HERE = Path(__file__).resolve().parent / "handlr"


def main(source_root: Path) -> int:
    config = replace(load_config(HERE / "drvkit.json"), source_root=source_root)
    assert config.lock_path is not None
    pipeline = Pipeline(
        config=config,
        package_source=LockedPackageSource.from_path(config.lock_path),
        store_dir=Path("build") / "store",
    )

    report = pipeline.matrix().realize_all(
        select=lambda outputs: outputs.default_output,
        max_workers=2,
    )
    for platform, outputs in sorted(report.results.items()):
        tree = outputs.default_output
        print(f"{platform}: {tree.root} ({tree.digest()[:16]})")
    for platform, error in sorted(report.failures.items()):
        print(f"{platform}: {error}", file=sys.stderr)
    pipeline.logger.to_json_lines(Path("build") / "logs" / "build.jsonl")
    return 0 if report.ok else 1


if __name__ == "__main__":
    sys.exit(main(Path(sys.argv[1] if len(sys.argv) > 1 else ".").resolve()))
