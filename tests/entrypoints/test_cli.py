from pathlib import Path

from typer.testing import CliRunner

from esm_to_cjs.entrypoints.cli import app
from tests.consts import BASIC_PROJECT, BROKEN_PROJECT
from tests.helpers import ProjectFactory, write_sources

runner = CliRunner()


def test_convert__on_basic_project__writes_output_and_exits_zero(copy_project: ProjectFactory) -> None:
    root = copy_project(BASIC_PROJECT)

    result = runner.invoke(app, ["convert", str(root), "--patch-import-self", "off"])

    assert result.exit_code == 0, result.output
    assert "Converted 4 modules into 1 output directories" in result.output
    assert (root / "cjs/index.cjs").is_file()
    assert "require('mini-css')" in (root / "cjs/__tests/basic.cjs").read_text(encoding="utf-8")


def test_convert__on_treeshake_none__keeps_unused_module(copy_project: ProjectFactory) -> None:
    root = copy_project(BASIC_PROJECT)

    result = runner.invoke(
        app, ["convert", str(root), "--treeshake", "none", "--patch-import-self", "off"]
    )

    assert result.exit_code == 0, result.output
    assert (root / "cjs/walk.cjs").is_file()


def test_convert__on_unresolved_import__exits_with_error(copy_project: ProjectFactory) -> None:
    root = copy_project(BROKEN_PROJECT)
    write_sources(
        root,
        {"esm-to-cjs.yaml": "groups:\n  - entry_points: [lib/index.js]\n    output_dir: cjs\n"},
    )

    result = runner.invoke(app, ["convert", str(root), "--patch-import-self", "off"])

    assert result.exit_code == 1
    assert 'Could not resolve "./missing.js"' in result.output
    assert not (root / "cjs").exists()


def test_convert__on_invalid_config__exits_with_error(copy_project: ProjectFactory) -> None:
    root = copy_project(BASIC_PROJECT)
    write_sources(root, {"esm-to-cjs.yaml": "treeshake: sometimes\n"})

    result = runner.invoke(app, ["convert", str(root)])

    assert result.exit_code == 1


def test_graph__on_basic_project__writes_yaml(copy_project: ProjectFactory, tmp_path: Path) -> None:
    root = copy_project(BASIC_PROJECT)
    write_sources(root, {"esm-to-cjs.yaml": "patch_import_self: false\n"})
    output = tmp_path / "graph.yaml"

    result = runner.invoke(app, ["graph", str(root), "--output", str(output)])

    assert result.exit_code == 0, result.output
    assert "Wrote 5 modules" in result.output
    assert output.is_file()
