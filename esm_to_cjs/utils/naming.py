import re
from pathlib import Path
from typing import Iterable

from esm_to_cjs.services.es_parser.consts import CJS_RESERVED_NAMES, JS_RESERVED_WORDS

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][\w$]*$")
_SEPARATOR_RE = re.compile(r"[^\w$]+(\w?)")


def is_identifier(name: str) -> bool:
    return bool(_IDENTIFIER_RE.match(name)) and name not in JS_RESERVED_WORDS


def camel_case(raw: str) -> str:
    """Turn ``source-map`` or ``json.to.ast`` into ``sourceMap`` / ``jsonToAst``."""

    name = _SEPARATOR_RE.sub(lambda m: m.group(1).upper(), raw)
    if not name:
        return "module"
    if name[0].isdigit():
        name = f"_{name}"
    return name


def identifier_from_path(path: Path) -> str:
    stem = path.name.split(".")[0] if not path.name.startswith(".") else path.stem
    return camel_case(stem)


def identifier_from_specifier(specifier: str) -> str:
    """Derive a variable name for ``require(specifier)``."""

    if specifier.startswith((".", "/")):
        return identifier_from_path(Path(specifier))
    parts = [part for part in specifier.split("/") if part]
    if parts and parts[0].startswith("@") and len(parts) > 1:
        parts = parts[1:]
    return camel_case(parts[-1] if parts else specifier)


def unique_name(base: str, taken: Iterable[str]) -> str:
    """Return ``base`` or ``base$1``, ``base$2``... avoiding taken and reserved names."""

    taken_names = set(taken)
    blocked = taken_names | CJS_RESERVED_NAMES
    if is_identifier(base) and base not in blocked:
        return base
    counter = 1
    while f"{base}${counter}" in blocked:
        counter += 1
    return f"{base}${counter}"


def js_string(value: str) -> str:
    """Single-quoted JavaScript string literal."""

    escaped = value.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n")
    return f"'{escaped}'"


def property_access(obj: str, name: str) -> str:
    return f"{obj}.{name}" if _IDENTIFIER_RE.match(name) else f"{obj}[{js_string(name)}]"


def exports_target(name: str) -> str:
    return property_access("exports", name)
