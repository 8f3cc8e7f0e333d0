from pathlib import Path

from esm_to_cjs.models import ModuleID, ModuleRecord, SiteKind
from esm_to_cjs.services.es_parser.module_parser import ESModuleParser

PATH = Path("/project/lib/scope.js")


def _parse(source: str) -> ModuleRecord:
    return ESModuleParser(path=PATH, source=source.encode("utf-8")).build(ModuleID.create(PATH))


def test_analyze__on_shadowing_parameter__ignores_shadowed_name() -> None:
    record = _parse("import { a } from './a.js';\nexport function f(a) {\n    return a;\n}\n")

    assert record.statements[1].references == set()


def test_analyze__on_block_and_catch_scopes__ignores_inner_bindings() -> None:
    record = _parse(
        "import { a, b } from './ab.js';\n"
        "export function f() {\n"
        "    { const a = 1; }\n"
        "    try { return a; } catch (b) { return b; }\n"
        "}\n"
    )

    assert record.statements[1].references == {"a"}


def test_analyze__on_hoisted_var__ignores_name_used_before_declaration() -> None:
    record = _parse(
        "import { a } from './a.js';\n"
        "export function f() {\n"
        "    a = 2;\n"
        "    if (true) { var a; }\n"
        "    return a;\n"
        "}\n"
    )

    assert record.statements[1].references == set()


def test_analyze__on_shorthand_property__records_shorthand_site() -> None:
    record = _parse("import { a } from './a.js';\nexport const o = { a };\n")

    sites = record.statements[1].sites
    assert [(s.kind, s.name) for s in sites] == [(SiteKind.SHORTHAND, "a")]


def test_analyze__on_dynamic_import_and_meta__records_rewrite_sites() -> None:
    record = _parse(
        "export const load = () => import('./lazy.js');\n"
        "export const url = import.meta.url;\n"
    )

    assert record.statements[0].dynamic_imports == ["./lazy.js"]
    assert [s.kind for s in record.statements[0].sites] == [SiteKind.DYNAMIC_IMPORT]
    assert [s.kind for s in record.statements[1].sites] == [SiteKind.META_URL]
    assert record.dependency_specifiers == ["./lazy.js"]


def test_analyze__on_property_name__does_not_report_reference() -> None:
    record = _parse("import { a } from './a.js';\nexport const x = obj.a;\n")

    assert record.statements[1].references == set()
