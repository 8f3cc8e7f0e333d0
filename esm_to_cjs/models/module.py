from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, Field

from esm_to_cjs.models.base import ModuleID


DEFAULT_EXPORT: str = "default"
NAMESPACE: str = "*"


class ImportBinding(BaseModel):
    """A local name bound by an import declaration.

    ``imported`` is the exported name on the source module, ``"default"`` for
    default imports and ``"*"`` for namespace imports.
    """

    local: str
    imported: str

    @property
    def is_namespace(self) -> bool:
        return self.imported == NAMESPACE


class ImportDeclaration(BaseModel):
    source: str
    bindings: list[ImportBinding] = Field(default_factory=list)
    line: int = Field(default=1, ge=1)


class ExportKind(StrEnum):
    LOCAL = "local"
    REEXPORT = "reexport"
    NAMESPACE_REEXPORT = "namespace_reexport"
    STAR = "star"


class ExportDeclaration(BaseModel):
    """One exported name (or a star re-export) of a module."""

    kind: ExportKind
    exported: str | None = None
    local: str | None = None
    source: str | None = None
    imported: str | None = None


class SiteKind(StrEnum):
    REFERENCE = "reference"
    SHORTHAND = "shorthand"
    DYNAMIC_IMPORT = "dynamic_import"
    META_URL = "meta_url"
    META = "meta"


class RewriteSite(BaseModel):
    """A byte range of a statement that codegen replaces."""

    kind: SiteKind
    start_byte: int = Field(..., ge=0)
    end_byte: int = Field(..., ge=0)
    name: str = Field(default="", description="Binding name or dynamic import specifier")


class StatementKind(StrEnum):
    IMPORT = "import"
    EXPORT_CLAUSE = "export_clause"
    DECLARATION = "declaration"
    DEFAULT_EXPRESSION = "default_expression"
    DIRECTIVE = "directive"
    OTHER = "other"


class TopLevelStatement(BaseModel):
    """A top-level statement with everything tree-shaking and codegen need."""

    index: int
    kind: StatementKind
    leading_start: int = Field(..., ge=0, description="Start byte including leading comments")
    start_byte: int = Field(..., ge=0)
    code_start: int = Field(..., ge=0)
    code_end: int = Field(..., ge=0)
    prefix: str = ""
    suffix: str = ""
    declared: list[str] = Field(default_factory=list)
    references: set[str] = Field(default_factory=set)
    sites: list[RewriteSite] = Field(default_factory=list)
    dynamic_imports: list[str] = Field(default_factory=list)
    reassigned: set[str] = Field(
        default_factory=set, description="Top-level bindings this statement assigns to"
    )
    has_side_effects: bool = False

    @property
    def is_emittable(self) -> bool:
        return self.kind in {
            StatementKind.DECLARATION,
            StatementKind.DEFAULT_EXPRESSION,
            StatementKind.OTHER,
        }


class ModuleRecord(BaseModel):
    """A node of the module graph."""

    id: ModuleID
    path: Path
    source: bytes
    is_entry: bool = False
    imports: list[ImportDeclaration] = Field(default_factory=list)
    exports: list[ExportDeclaration] = Field(default_factory=list)
    statements: list[TopLevelStatement] = Field(default_factory=list)
    identifiers: set[str] = Field(
        default_factory=set, description="Every identifier used in the module, at any scope"
    )
    resolved: dict[str, ModuleID | None] = Field(
        default_factory=dict,
        description="Import specifier to module id, None for external dependencies",
    )

    @property
    def dependency_specifiers(self) -> list[str]:
        """Static and dynamic dependency specifiers in first-seen source order."""

        seen: dict[str, None] = {}
        for decl in self.imports:
            seen.setdefault(decl.source, None)
        for export in self.exports:
            if export.source is not None:
                seen.setdefault(export.source, None)
        for statement in self.statements:
            for specifier in statement.dynamic_imports:
                seen.setdefault(specifier, None)
        return list(seen)

    @property
    def import_bindings(self) -> dict[str, tuple[str, ImportBinding]]:
        """Local name to (source specifier, binding)."""

        return {
            binding.local: (decl.source, binding)
            for decl in self.imports
            for binding in decl.bindings
        }

    @property
    def declared_names(self) -> dict[str, int]:
        """Top-level declared name to the index of its declaring statement."""

        declared: dict[str, int] = {}
        for statement in self.statements:
            for name in statement.declared:
                declared.setdefault(name, statement.index)
        return declared

    @property
    def has_side_effects(self) -> bool:
        return any(statement.has_side_effects for statement in self.statements)

    @property
    def reassigned_names(self) -> set[str]:
        """Top-level bindings assigned to after their declaration."""

        return {name for statement in self.statements for name in statement.reassigned}


class ModuleGraph(BaseModel):
    modules: dict[ModuleID, ModuleRecord] = Field(default_factory=dict)
    entries: list[ModuleID] = Field(default_factory=list)

    def dependencies(self, module_id: ModuleID) -> list[ModuleID]:
        """Internal modules imported by ``module_id``, in source order."""

        record = self.modules[module_id]
        deps: list[ModuleID] = []
        for specifier in record.dependency_specifiers:
            target = record.resolved.get(specifier)
            if target is not None and target not in deps:
                deps.append(target)
        return deps

    def export_names(self, module_id: ModuleID) -> list[str]:
        """Every name ``module_id`` exports, star re-exports of internal modules included."""

        return self.__export_names(module_id, set())

    def __export_names(self, module_id: ModuleID, visiting: set[ModuleID]) -> list[str]:
        if module_id in visiting:
            return []
        visiting = visiting | {module_id}
        record = self.modules[module_id]
        names: dict[str, None] = {
            export.exported: None for export in record.exports if export.exported is not None
        }
        for export in record.exports:
            if export.kind is not ExportKind.STAR:
                continue
            target = record.resolved.get(export.source or "")
            if target is None:
                continue
            for name in self.__export_names(target, visiting):
                if name != DEFAULT_EXPORT:
                    names.setdefault(name, None)
        return list(names)

    def resolve_export(self, module_id: ModuleID, name: str) -> ExportDeclaration | None:
        """Find the declaration through which ``module_id`` exports ``name``.

        Names reached through ``export * from`` an internal module come back
        as a synthesized re-export from that module.
        """

        record = self.modules[module_id]
        for export in record.exports:
            if export.exported == name:
                return export
        if name == DEFAULT_EXPORT:
            return None
        for export in record.exports:
            if export.kind is not ExportKind.STAR or export.source is None:
                continue
            target = record.resolved.get(export.source)
            if target is not None and name in self.export_names(target):
                return ExportDeclaration(
                    kind=ExportKind.REEXPORT, exported=name, imported=name, source=export.source
                )
        return None

    def external_star_sources(self, module_id: ModuleID) -> list[str]:
        record = self.modules[module_id]
        return [
            export.source
            for export in record.exports
            if export.kind is ExportKind.STAR
            and export.source is not None
            and record.resolved.get(export.source) is None
        ]
