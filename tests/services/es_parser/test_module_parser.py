from pathlib import Path

import pytest

from esm_to_cjs.errors import ParseError
from esm_to_cjs.models import ExportKind, ModuleID, ModuleRecord, StatementKind
from esm_to_cjs.services.es_parser.module_parser import ESModuleParser

PATH = Path("/project/lib/format.js")


def _parse(source: str) -> ModuleRecord:
    parser = ESModuleParser(path=PATH, source=source.encode("utf-8"))
    return parser.build(ModuleID.create(PATH))


def test_build__on_import_forms__returns_bindings() -> None:
    record = _parse(
        "import fs from 'fs';\n"
        "import * as path from 'path';\n"
        "import { a, b as c } from './ab.js';\n"
        "import './polyfill.js';\n"
    )

    assert [d.source for d in record.imports] == ["fs", "path", "./ab.js", "./polyfill.js"]
    assert [(b.local, b.imported) for d in record.imports for b in d.bindings] == [
        ("fs", "default"),
        ("path", "*"),
        ("a", "a"),
        ("c", "b"),
    ]
    assert record.imports[2].line == 3
    assert all(s.kind is StatementKind.IMPORT for s in record.statements)


def test_build__on_export_forms__returns_export_declarations() -> None:
    record = _parse(
        "export const x = 1, { y } = {};\n"
        "function f() {}\n"
        "export { f as g };\n"
        "export { h } from './h.js';\n"
        "export * from './all.js';\n"
        "export * as ns from './ns.js';\n"
    )

    assert [(e.kind, e.exported, e.local, e.source) for e in record.exports] == [
        (ExportKind.LOCAL, "x", "x", None),
        (ExportKind.LOCAL, "y", "y", None),
        (ExportKind.LOCAL, "g", "f", None),
        (ExportKind.REEXPORT, "h", None, "./h.js"),
        (ExportKind.STAR, None, None, "./all.js"),
        (ExportKind.NAMESPACE_REEXPORT, "ns", None, "./ns.js"),
    ]
    assert record.dependency_specifiers == ["./h.js", "./all.js", "./ns.js"]


def test_build__on_anonymous_default_function__names_it_after_file() -> None:
    record = _parse("export default function (value) {\n    return String(value);\n}\n")

    statement = record.statements[0]
    assert record.exports[0].local == "format"
    assert statement.declared == ["format"]
    assert statement.prefix == "function format"
    assert record.source[statement.code_start : statement.code_end].startswith(b"(value)")


def test_build__on_default_expression__declares_generated_local() -> None:
    record = _parse("const format = 1;\nexport default format + 1;\n")

    statement = record.statements[1]
    assert statement.kind is StatementKind.DEFAULT_EXPRESSION
    assert statement.prefix == "const format$1 = "
    assert statement.references == {"format"}
    assert record.exports[0].local == "format$1"


def test_build__on_default_identifier__exports_existing_local() -> None:
    record = _parse("class Format {}\nexport default Format;\n")

    assert record.exports[0].local == "Format"
    assert record.statements[1].kind is StatementKind.EXPORT_CLAUSE


def test_build__on_leading_comment__attaches_it_to_next_statement() -> None:
    source = "// helper\nexport function f() {}\n"
    record = _parse(source)

    statement = record.statements[0]
    assert statement.leading_start == 0
    assert record.source[statement.leading_start : statement.start_byte] == b"// helper\n"
    assert record.source[statement.code_start : statement.code_start + 8] == b"function"


def test_build__on_side_effect_call__marks_statement_impure() -> None:
    record = _parse("const a = /*#__PURE__*/ make();\nconst b = make();\nconsole.log(a);\n")

    assert [s.has_side_effects for s in record.statements] == [False, True, True]


def test_build__on_use_strict__returns_directive() -> None:
    record = _parse("'use strict';\nexport const a = 1;\n")

    assert record.statements[0].kind is StatementKind.DIRECTIVE


def test_build__on_invalid_syntax__raises_parse_error() -> None:
    with pytest.raises(ParseError) as exc_info:
        _parse("export const = ;\n")

    assert exc_info.value.path == PATH
    assert exc_info.value.line == 1


def test_build__on_reassigned_bindings__returns_reassigned_names() -> None:
    record = _parse(
        "export let count = 0;\n"
        "let total = 0, last;\n"
        "let items = [];\n"
        "const limit = 10;\n"
        "export function inc(step) {\n"
        "    count++;\n"
        "    total += step;\n"
        "    [last] = [step];\n"
        "    let limit = 1;\n"
        "    limit = 2;\n"
        "    items.push(limit);\n"
        "}\n"
    )

    assert record.reassigned_names == {"count", "total", "last"}


def test_build__on_never_reassigned_bindings__returns_no_reassigned_names() -> None:
    record = _parse("export let count = 0;\nexport const next = () => count + 1;\n")

    assert record.reassigned_names == set()
