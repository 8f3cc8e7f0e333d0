import logging
from pathlib import Path

import pytest

from esm_to_cjs.errors import UnresolvedModuleError
from esm_to_cjs.loaders.config_loader import ConfigLoader
from esm_to_cjs.models import ConversionConfig, PatchImportSelf
from esm_to_cjs.pipeline import ConversionPipeline
from esm_to_cjs.services.converter import GroupConverter
from tests.helpers import ProjectFactory
from tests.consts import BASIC_PACKAGE_NAME, BASIC_PROJECT, BROKEN_PROJECT, SHIM_PROJECT


def _config(root: Path, **overrides: object) -> ConversionConfig:
    return ConfigLoader(root).load(**overrides)


def _outputs(root: Path) -> dict[str, str]:
    out = root / "cjs"
    return {
        path.relative_to(out).as_posix(): path.read_text(encoding="utf-8")
        for path in sorted(out.rglob("*"))
        if path.is_file()
    }


def test_convert__on_basic_project_without_self_resolution__rewrites_test_import(
    copy_project: ProjectFactory,
) -> None:
    root = copy_project(BASIC_PROJECT)
    config = _config(root)

    ConversionPipeline(config=config, probe=lambda name: False).run()

    outputs = _outputs(root)
    assert set(outputs) == {"index.cjs", "parse.cjs", "tokenizer/index.cjs", "__tests/basic.cjs"}
    assert "const index = require('../index.cjs');" in outputs["__tests/basic.cjs"]
    assert "index.parse('a b')" in outputs["__tests/basic.cjs"]
    assert "const assert = require('assert');" in outputs["__tests/basic.cjs"]


def test_convert__on_basic_project__produces_expected_entry_module(copy_project: ProjectFactory) -> None:
    root = copy_project(BASIC_PROJECT)

    ConversionPipeline(config=_config(root), probe=lambda name: False).run()

    assert _outputs(root)["index.cjs"] == (
        "'use strict';\n"
        "\n"
        "const fs = require('fs');\n"
        "const parse = require('./parse.cjs');\n"
        "\n"
        "// Read and parse a stylesheet from disk.\n"
        "function readFile(filename) {\n"
        "    return parse.parse(fs.readFileSync(filename, 'utf8'));\n"
        "}\n"
        "\n"
        "exports.readFile = readFile;\n"
        "Object.defineProperty(exports, 'parse', {\n"
        "\tenumerable: true,\n"
        "\tget: function () { return parse.parse; }\n"
        "});\n"
    )


def test_convert__on_basic_project__drops_unused_exports_and_modules(copy_project: ProjectFactory) -> None:
    root = copy_project(BASIC_PROJECT)

    ConversionPipeline(config=_config(root), probe=lambda name: False).run()

    outputs = _outputs(root)
    assert "walk.cjs" not in outputs
    assert "unusedHelper" not in outputs["parse.cjs"]
    assert "const unused" not in outputs["parse.cjs"]
    assert "exports.parse = parse;" in outputs["parse.cjs"]


def test_convert__on_resolvable_package__leaves_by_name_import(copy_project: ProjectFactory) -> None:
    root = copy_project(BASIC_PROJECT)

    ConversionPipeline(config=_config(root), probe=lambda name: True).run()

    content = _outputs(root)["__tests/basic.cjs"]
    assert f"const miniCss = require('{BASIC_PACKAGE_NAME}');" in content
    assert "miniCss.parse('a b')" in content


def test_convert__on_raising_probe__applies_patch(copy_project: ProjectFactory, caplog) -> None:
    root = copy_project(BASIC_PROJECT)

    def probe(name: str) -> bool:
        raise FileNotFoundError("node")

    with caplog.at_level(logging.INFO):
        ConversionPipeline(config=_config(root), probe=probe).run()

    assert "require('../index.cjs')" in _outputs(root)["__tests/basic.cjs"]
    assert "Fixing CommonJS tests by replacing \"mini-css\" for a relative paths" in caplog.text
    assert "Convert ESM to CommonJS (output: cjs)" in caplog.text
    assert "Done in " in caplog.text


def test_convert__on_patch_forced_off__keeps_by_name_import(copy_project: ProjectFactory) -> None:
    root = copy_project(BASIC_PROJECT)
    config = _config(root, patch_import_self=PatchImportSelf.OFF)

    ConversionPipeline(config=config, probe=lambda name: False).run()

    assert "require('mini-css')" in _outputs(root)["__tests/basic.cjs"]


def test_convert__on_same_input_twice__returns_byte_identical_output(copy_project: ProjectFactory) -> None:
    root = copy_project(BASIC_PROJECT)
    pipeline = ConversionPipeline(config=_config(root), probe=lambda name: False)

    pipeline.run()
    first = _outputs(root)
    pipeline.run()

    assert _outputs(root) == first


def test_convert__on_shim_module__removes_create_require(copy_project: ProjectFactory) -> None:
    root = copy_project(SHIM_PROJECT)
    config = _config(root)
    converter = GroupConverter(config=config, probe=lambda name: True)

    converter.convert(config.groups[0].model_copy(update={"entry_dirs": []}))

    content = _outputs(root)["index.cjs"]
    assert "createRequire" not in content
    assert "const { version } = require('../package.json');" in content
    assert "exports.version = version;" in content


def test_convert__on_failing_module__writes_nothing(copy_project: ProjectFactory) -> None:
    root = copy_project(BROKEN_PROJECT)
    config = _config(root)
    converter = GroupConverter(config=config, probe=lambda name: True)

    with pytest.raises(UnresolvedModuleError):
        converter.convert(config.groups[0].model_copy(update={"entry_dirs": []}))

    assert not (root / "cjs").exists()


def test_analyze__on_basic_project__builds_graph_without_writing(copy_project: ProjectFactory) -> None:
    root = copy_project(BASIC_PROJECT)
    config = _config(root)

    (analysis,) = ConversionPipeline(config=config, probe=lambda name: False).analyze()

    assert analysis.decision.apply
    assert len(analysis.graph.modules) == 5
    assert len(analysis.shaken.included) == 4
    assert not (root / "cjs").exists()
