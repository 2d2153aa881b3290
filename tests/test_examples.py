import ast
from pathlib import Path

from drvkit.config import load_config
from drvkit.index import LockedPackageSource
from drvkit.profiles import assemble

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"


def test_examples_are_syntax_valid() -> None:
    examples = sorted(EXAMPLES.glob("*.py"))
    assert examples

    for path in examples:
        source = path.read_text(encoding="utf-8")
        ast.parse(source, filename=str(path))


def test_handlr_example_config_matches_its_lock() -> None:
    config = load_config(EXAMPLES / "handlr" / "drvkit.json")
    assert config.lock_path is not None
    source = LockedPackageSource.from_path(config.lock_path)

    assert config.compiler_step().binary_path(Path("/w")) == Path("/w/target/release/handlr")
    assert config.manual_page_exclude == ("handlr-autocomplete.1",)
    for platform in config.platforms:
        index = source.resolve(platform)
        for name in config.native_build_inputs:
            assert name in index
        environment = assemble(platform, index, config.devshell)
        assert environment.env_vars["RUST_SRC_PATH"].endswith("lib/rustlib/src/rust/library")
