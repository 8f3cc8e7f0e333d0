import logging
import os
from collections import deque
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from esm_to_cjs.models import (
    ExportDeclaration,
    ExportKind,
    ExportMode,
    ModuleGraph,
    ModuleID,
    ModuleRecord,
    OutputDescriptor,
    RewriteSite,
    SiteKind,
)
from esm_to_cjs.models.config import DEFAULT_EXTENSION
from esm_to_cjs.models.module import DEFAULT_EXPORT
from esm_to_cjs.services.tree_shaking import ShakeResult
from esm_to_cjs.utils.naming import (
    exports_target,
    identifier_from_path,
    identifier_from_specifier,
    is_identifier,
    js_string,
    property_access,
    unique_name,
)
from esm_to_cjs.utils.paths import relative_specifier

logger = logging.getLogger(__name__)

IMPORT_META_URL = "require('url').pathToFileURL(__filename).href"


def find_cyclic_modules(graph: ModuleGraph, modules: list[ModuleID]) -> set[ModuleID]:
    """Return the modules of ``modules`` that can reach themselves through imports."""

    allowed = set(modules)
    cyclic: set[ModuleID] = set()
    for start in modules:
        pending = deque(d for d in graph.dependencies(start) if d in allowed)
        reached: set[ModuleID] = set(pending)
        while pending:
            current = pending.popleft()
            if current == start:
                cyclic.add(start)
                break
            for dep in graph.dependencies(current):
                if dep in allowed and dep not in reached:
                    reached.add(dep)
                    pending.append(dep)
    return cyclic


class RequireBinding(BaseModel):
    """One top-level ``require`` call of a generated module."""

    specifier: str = Field(..., description="Specifier as written in the source module")
    output_specifier: str
    variable: str | None = None
    target: ModuleID | None = None


class CommonJSEmitter(BaseModel):
    """Render every module kept by tree-shaking as a CommonJS file.

    Output paths mirror the input tree below ``preserve_modules_root`` (or
    the closest common directory of the kept modules) inside ``output_dir``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    graph: ModuleGraph
    shaken: ShakeResult
    output_dir: Path
    extension: str = DEFAULT_EXTENSION
    preserve_modules_root: Path | None = None
    __base_dir: Path = PrivateAttr()
    __modes: dict[ModuleID, ExportMode] = PrivateAttr(default_factory=dict)

    def model_post_init(self, context: Any) -> None:
        self.__base_dir = self.__find_base_dir()
        self.__modes = self.__export_modes()
        return super().model_post_init(context)

    def __find_base_dir(self) -> Path:
        if self.preserve_modules_root is not None:
            return self.preserve_modules_root.resolve()
        directories = [module_id.path.parent.as_posix() for module_id in self.shaken.included]
        if not directories:
            return self.output_dir.resolve()
        return Path(os.path.commonpath(directories))

    def destination(self, module_id: ModuleID) -> Path:
        relative = Path(os.path.relpath(module_id.path, self.__base_dir))
        return (self.output_dir / relative).with_suffix(self.extension)

    def export_mode(self, module_id: ModuleID) -> ExportMode:
        return self.__modes[module_id]

    # -- export modes -----------------------------------------------------

    def __export_modes(self) -> dict[ModuleID, ExportMode]:
        cyclic = find_cyclic_modules(self.graph, self.shaken.included)
        modes: dict[ModuleID, ExportMode] = {}
        for module_id in self.shaken.included:
            used = self.shaken.used_exports.get(module_id, set())
            has_external_star = bool(self.__live_external_stars(module_id))
            if not used and not has_external_star:
                modes[module_id] = ExportMode.NONE
            elif used == {DEFAULT_EXPORT} and not has_external_star:
                if module_id in cyclic or module_id in self.shaken.namespace_required:
                    logger.debug("%s keeps named exports, it is cyclic or used as a namespace", module_id)
                    modes[module_id] = ExportMode.NAMED
                else:
                    modes[module_id] = ExportMode.DEFAULT
            else:
                modes[module_id] = ExportMode.NAMED
                if DEFAULT_EXPORT in used:
                    logger.warning(
                        "%s is using named and default exports together, consumers will have "
                        "to use .default to access the default export",
                        module_id.path,
                    )
        return modes

    def __live_external_stars(self, module_id: ModuleID) -> list[str]:
        live = self.shaken.live_imports.get(module_id, set())
        return [s for s in self.graph.external_star_sources(module_id) if s in live]

    def __ordered_exports(self, module_id: ModuleID) -> list[str]:
        used = self.shaken.used_exports.get(module_id, set())
        return [name for name in self.graph.export_names(module_id) if name in used]

    # -- requires ---------------------------------------------------------

    def __output_specifier(self, record: ModuleRecord, specifier: str) -> str:
        target = record.resolved.get(specifier)
        if target is None:
            return specifier
        return relative_specifier(self.destination(record.id).parent, self.destination(target))

    def __static_specifiers(self, record: ModuleRecord) -> list[str]:
        static: dict[str, None] = {}
        for declaration in record.imports:
            static.setdefault(declaration.source, None)
        for export in record.exports:
            if export.source is not None:
                static.setdefault(export.source, None)
        return list(static)

    def __preferred_variable(self, record: ModuleRecord, specifier: str) -> str:
        live = self.shaken.live_bindings.get(record.id, set())
        bindings = [
            binding
            for declaration in record.imports
            if declaration.source == specifier
            for binding in declaration.bindings
            if binding.local in live
        ]
        namespace = next((b.local for b in bindings if b.is_namespace), None)
        default = next((b.local for b in bindings if b.imported == DEFAULT_EXPORT), None)
        target = record.resolved.get(specifier)
        if target is None:
            return default or namespace or identifier_from_specifier(specifier)
        if namespace is not None:
            return namespace
        if default is not None and self.__modes.get(target) is ExportMode.DEFAULT:
            return default
        return identifier_from_path(target.path)

    def __needs_variable(self, record: ModuleRecord, specifier: str) -> bool:
        live = self.shaken.live_bindings.get(record.id, set())
        for declaration in record.imports:
            if declaration.source == specifier and any(b.local in live for b in declaration.bindings):
                return True
        if specifier in self.__live_external_stars(record.id):
            return True
        for name in self.shaken.used_exports.get(record.id, set()):
            export = self.graph.resolve_export(record.id, name)
            if export is not None and export.source == specifier:
                return True
        return False

    def __requires(self, record: ModuleRecord) -> list[RequireBinding]:
        live = self.shaken.live_imports.get(record.id, set())
        import_locals = set(record.import_bindings)
        taken = record.identifiers - import_locals
        taken.update(record.declared_names)

        requires: list[RequireBinding] = []
        for specifier in self.__static_specifiers(record):
            if specifier not in live:
                continue
            target = record.resolved.get(specifier)
            if target is not None and target not in self.__modes:
                continue
            variable = None
            if self.__needs_variable(record, specifier):
                variable = unique_name(self.__preferred_variable(record, specifier), taken)
                taken.add(variable)
            requires.append(
                RequireBinding(
                    specifier=specifier,
                    output_specifier=self.__output_specifier(record, specifier),
                    variable=variable,
                    target=target,
                )
            )
        return requires

    def __member(self, require: RequireBinding, imported: str) -> str:
        """Expression reading export ``imported`` from a required module."""

        variable = require.variable or "undefined"
        if require.target is None:
            return variable if imported == DEFAULT_EXPORT else property_access(variable, imported)
        if imported == DEFAULT_EXPORT and self.__modes[require.target] is ExportMode.DEFAULT:
            return variable
        return property_access(variable, imported)

    def __replacements(
        self, record: ModuleRecord, requires: dict[str, RequireBinding]
    ) -> dict[str, str]:
        replacements: dict[str, str] = {}
        for local in self.shaken.live_bindings.get(record.id, set()):
            specifier, binding = record.import_bindings[local]
            require = requires.get(specifier)
            if require is None or require.variable is None:
                continue
            if binding.is_namespace:
                replacements[local] = require.variable
            else:
                replacements[local] = self.__member(require, binding.imported)
        return replacements

    # -- statements -------------------------------------------------------

    def __rewrite(
        self,
        record: ModuleRecord,
        start: int,
        end: int,
        replacements: dict[str, str],
        sites: list[RewriteSite],
    ) -> str:
        source = record.source
        parts: list[str] = []
        cursor = start
        for site in sorted(sites, key=lambda s: s.start_byte):
            if site.start_byte < cursor or site.end_byte > end:
                continue
            match site.kind:
                case SiteKind.REFERENCE:
                    if site.name not in replacements:
                        continue
                    replacement = replacements[site.name]
                case SiteKind.SHORTHAND:
                    if site.name not in replacements:
                        continue
                    replacement = f"{site.name}: {replacements[site.name]}"
                case SiteKind.DYNAMIC_IMPORT:
                    required = js_string(self.__output_specifier(record, site.name))
                    replacement = f"Promise.resolve().then(function () {{ return require({required}); }})"
                case SiteKind.META_URL:
                    replacement = IMPORT_META_URL
                case SiteKind.META:
                    replacement = f"({{ url: {IMPORT_META_URL} }})"
            parts.append(source[cursor : site.start_byte].decode("utf-8"))
            parts.append(replacement)
            cursor = site.end_byte
        parts.append(source[cursor:end].decode("utf-8"))
        return "".join(parts)

    def __statements(self, record: ModuleRecord, replacements: dict[str, str]) -> list[str]:
        live = self.shaken.live_statements.get(record.id, set())
        rendered: list[str] = []
        for statement in record.statements:
            if statement.index not in live or not statement.is_emittable:
                continue
            leading = record.source[statement.leading_start : statement.start_byte].decode("utf-8")
            body = self.__rewrite(
                record, statement.code_start, statement.code_end, replacements, statement.sites
            )
            rendered.append(f"{leading}{statement.prefix}{body}{statement.suffix}")
        return rendered

    # -- exports ----------------------------------------------------------

    def __export_value(
        self,
        record: ModuleRecord,
        export: ExportDeclaration,
        requires: dict[str, RequireBinding],
        replacements: dict[str, str],
    ) -> tuple[str, bool]:
        """Return the exported expression and whether it needs a live getter."""

        if export.kind is ExportKind.LOCAL:
            local = export.local or export.exported or ""
            if local in record.import_bindings:
                value = replacements.get(local, "undefined")
                return value, not is_identifier(value)
            return local, local in record.reassigned_names
        require = requires[export.source or ""]
        if export.kind is ExportKind.NAMESPACE_REEXPORT:
            return require.variable or "undefined", False
        return self.__member(require, export.imported or export.exported or ""), True

    def __export_block(
        self,
        record: ModuleRecord,
        mode: ExportMode,
        requires: dict[str, RequireBinding],
        replacements: dict[str, str],
    ) -> list[str]:
        lines: list[str] = []
        for name in self.__ordered_exports(record.id):
            export = self.graph.resolve_export(record.id, name)
            if export is None:
                continue
            value, live = self.__export_value(record, export, requires, replacements)
            if mode is ExportMode.DEFAULT:
                lines.append(f"module.exports = {value};")
            elif live:
                lines.append(
                    f"Object.defineProperty(exports, {js_string(name)}, {{\n"
                    "\tenumerable: true,\n"
                    f"\tget: function () {{ return {value}; }}\n"
                    "});"
                )
            else:
                lines.append(f"{exports_target(name)} = {value};")

        for specifier in self.__live_external_stars(record.id):
            variable = requires[specifier].variable
            lines.append(
                f"Object.keys({variable}).forEach(function (k) {{\n"
                "\tif (k !== 'default' && !Object.prototype.hasOwnProperty.call(exports, k)) "
                "Object.defineProperty(exports, k, {\n"
                "\t\tenumerable: true,\n"
                f"\t\tget: function () {{ return {variable}[k]; }}\n"
                "\t});\n"
                "});"
            )
        return lines

    # -- modules ----------------------------------------------------------

    def render(self, module_id: ModuleID) -> OutputDescriptor:
        record = self.graph.modules[module_id]
        mode = self.__modes[module_id]
        require_list = self.__requires(record)
        requires = {require.specifier: require for require in require_list}
        replacements = self.__replacements(record, requires)

        sections: list[str] = ["'use strict';"]
        require_lines = [
            f"const {r.variable} = require({js_string(r.output_specifier)});"
            if r.variable is not None
            else f"require({js_string(r.output_specifier)});"
            for r in require_list
        ]
        if require_lines:
            sections.append("\n".join(require_lines))
        sections.extend(s.strip("\n") for s in self.__statements(record, replacements))
        export_lines = self.__export_block(record, mode, requires, replacements)
        if export_lines:
            sections.append("\n".join(export_lines))

        return OutputDescriptor(
            module_id=module_id,
            destination=self.destination(module_id),
            content="\n\n".join(sections) + "\n",
            export_mode=mode,
            exports=self.__ordered_exports(module_id),
        )

    def emit(self) -> list[OutputDescriptor]:
        """Render every kept module, in graph order."""

        outputs = [self.render(module_id) for module_id in self.shaken.included]
        logger.debug("Rendered %d CommonJS modules", len(outputs))
        return outputs
