from pathlib import Path

from esm_to_cjs.utils.naming import (
    camel_case,
    identifier_from_path,
    identifier_from_specifier,
    property_access,
    unique_name,
)
from esm_to_cjs.utils.paths import relative_specifier


def test_camel_case__on_dashed_name__returns_camel_case() -> None:
    assert camel_case("json-to-ast") == "jsonToAst"
    assert camel_case("2d") == "_2d"


def test_identifier_from_path__on_dotted_file_name__uses_first_segment() -> None:
    assert identifier_from_path(Path("lib/parse.test.js")) == "parse"


def test_identifier_from_specifier__on_scoped_package__uses_last_segment() -> None:
    assert identifier_from_specifier("@scope/source-map") == "sourceMap"
    assert identifier_from_specifier("source-map/lib/util") == "util"
    assert identifier_from_specifier("./lib/walk.js") == "walk"


def test_unique_name__on_taken_and_reserved_names__appends_counter() -> None:
    assert unique_name("parse", {"parse", "parse$1"}) == "parse$2"
    assert unique_name("module", set()) == "module$1"
    assert unique_name("class", set()) == "class$1"


def test_property_access__on_non_identifier__uses_brackets() -> None:
    assert property_access("ns", "a") == "ns.a"
    assert property_access("ns", "a-b") == "ns['a-b']"


def test_relative_specifier__on_sibling_and_parent__prefixes_dot() -> None:
    assert relative_specifier(Path("/out"), Path("/out/a.cjs")) == "./a.cjs"
    assert relative_specifier(Path("/out/__tests"), Path("/out/index.cjs")) == "../index.cjs"
