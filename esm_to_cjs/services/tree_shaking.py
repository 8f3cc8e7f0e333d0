import logging
from collections import deque
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from esm_to_cjs.errors import MissingExportError
from esm_to_cjs.models import ExportKind, ModuleGraph, ModuleID, TreeshakeOptions

logger = logging.getLogger(__name__)


class ShakeResult(BaseModel):
    """What survives tree-shaking.

    Attributes:
        included: Modules that get an output file, in graph order.
        live_statements: Statement indexes kept per module.
        live_bindings: Import locals referenced by kept code, per module.
        live_imports: Specifiers whose ``require`` stays, per module.
        used_exports: Export names emitted per module.
        namespace_required: Modules whose whole namespace object is
            consumed (namespace import, dynamic import, ``export * as``).
    """

    included: list[ModuleID] = Field(default_factory=list)
    live_statements: dict[ModuleID, set[int]] = Field(default_factory=dict)
    live_bindings: dict[ModuleID, set[str]] = Field(default_factory=dict)
    live_imports: dict[ModuleID, set[str]] = Field(default_factory=dict)
    used_exports: dict[ModuleID, set[str]] = Field(default_factory=dict)
    namespace_required: set[ModuleID] = Field(default_factory=set)


class TreeShaker(BaseModel):
    """Mark the statements, bindings and modules reachable from the entries.

    Entries keep every export. Everything else is kept only when kept code
    references it, or when it has side effects under the configured options.
    Work is queued instead of recursed so that import cycles terminate.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    graph: ModuleGraph
    options: TreeshakeOptions = Field(default_factory=TreeshakeOptions)
    __result: ShakeResult = PrivateAttr(default_factory=ShakeResult)
    __queue: deque[Callable[[], None]] = PrivateAttr(default_factory=deque)
    __seen: set[tuple[str, ...]] = PrivateAttr(default_factory=set)
    __side_effects: dict[ModuleID, bool] = PrivateAttr(default_factory=dict)

    def shake(self) -> ShakeResult:
        self.__result = ShakeResult()
        self.__queue = deque()
        self.__seen = set()

        for entry in self.graph.entries:
            self.__include(entry)
            self.__result.live_imports[entry].update(self.graph.external_star_sources(entry))
            for name in self.graph.export_names(entry):
                self.__use_export(entry, name, entry)
        while self.__queue:
            self.__queue.popleft()()

        included = set(self.__result.included)
        self.__result.included = [m for m in self.graph.modules if m in included]
        dropped = len(self.graph.modules) - len(included)
        if dropped:
            logger.info("Tree-shaking dropped %d of %d modules", dropped, len(self.graph.modules))
        return self.__result

    def __once(self, *key: str) -> bool:
        if key in self.__seen:
            return False
        self.__seen.add(key)
        return True

    def __module_has_side_effects(self, module_id: ModuleID) -> bool:
        """Own side effects, or side effects of a statically imported module."""

        cached = self.__side_effects.get(module_id)
        if cached is not None:
            return cached
        pending: deque[ModuleID] = deque([module_id])
        reached: set[ModuleID] = {module_id}
        result = False
        while pending and not result:
            current = pending.popleft()
            result = self.graph.modules[current].has_side_effects
            for dep in self.graph.dependencies(current):
                if dep not in reached:
                    reached.add(dep)
                    pending.append(dep)
        self.__side_effects[module_id] = result
        return result

    # -- marking ----------------------------------------------------------

    def __include(self, module_id: ModuleID) -> None:
        if not self.__once("module", module_id):
            return
        result = self.__result
        result.included.append(module_id)
        result.live_statements.setdefault(module_id, set())
        result.live_bindings.setdefault(module_id, set())
        result.live_imports.setdefault(module_id, set())
        result.used_exports.setdefault(module_id, set())
        record = self.graph.modules[module_id]

        if not self.options.enabled:
            for statement in record.statements:
                if statement.is_emittable:
                    self.__queue.append(lambda i=statement.index: self.__use_statement(module_id, i))
            for specifier, target in record.resolved.items():
                result.live_imports[module_id].add(specifier)
                if target is not None:
                    self.__queue.append(lambda t=target: self.__use_namespace(t))
            return

        for statement in record.statements:
            if statement.is_emittable and statement.has_side_effects:
                self.__queue.append(lambda i=statement.index: self.__use_statement(module_id, i))

        if self.options.module_side_effects:
            static_sources = [d.source for d in record.imports] + [
                e.source for e in record.exports if e.source is not None
            ]
            for source in dict.fromkeys(static_sources):
                target = record.resolved.get(source)
                if target is None:
                    result.live_imports[module_id].add(source)
                elif self.__module_has_side_effects(target):
                    result.live_imports[module_id].add(source)
                    self.__queue.append(lambda t=target: self.__include(t))

    def __use_statement(self, module_id: ModuleID, index: int) -> None:
        if not self.__once("statement", module_id, str(index)):
            return
        record = self.graph.modules[module_id]
        statement = record.statements[index]
        self.__result.live_statements[module_id].add(index)
        for name in sorted(statement.references):
            self.__use_binding(module_id, name)
        for specifier in statement.dynamic_imports:
            self.__result.live_imports[module_id].add(specifier)
            target = record.resolved.get(specifier)
            if target is not None:
                self.__result.namespace_required.add(target)
                self.__queue.append(lambda t=target: self.__use_namespace(t))

    def __use_binding(self, module_id: ModuleID, local: str) -> None:
        if not self.__once("binding", module_id, local):
            return
        record = self.graph.modules[module_id]
        declared = record.declared_names
        if local in declared:
            self.__queue.append(lambda i=declared[local]: self.__use_statement(module_id, i))
            return

        imported = record.import_bindings.get(local)
        if imported is None:
            return
        specifier, binding = imported
        self.__result.live_bindings[module_id].add(local)
        self.__result.live_imports[module_id].add(specifier)
        target = record.resolved.get(specifier)
        if target is None:
            return
        if binding.is_namespace:
            self.__result.namespace_required.add(target)
            self.__queue.append(lambda: self.__use_namespace(target))
        else:
            self.__queue.append(lambda: self.__use_export(target, binding.imported, module_id))

    def __use_namespace(self, module_id: ModuleID) -> None:
        if not self.__once("namespace", module_id):
            return
        self.__include(module_id)
        self.__result.live_imports[module_id].update(self.graph.external_star_sources(module_id))
        for name in self.graph.export_names(module_id):
            self.__use_export(module_id, name, module_id)

    def __use_export(self, module_id: ModuleID, name: str, importer: ModuleID) -> None:
        if not self.__once("export", module_id, name):
            return
        self.__include(module_id)
        record = self.graph.modules[module_id]
        export = self.graph.resolve_export(module_id, name)
        if export is None:
            external_stars = self.graph.external_star_sources(module_id)
            if not external_stars:
                raise MissingExportError(importer.path, name, module_id.path)
            self.__result.live_imports[module_id].update(external_stars)
            return

        self.__result.used_exports[module_id].add(name)
        match export.kind:
            case ExportKind.LOCAL:
                self.__use_binding(module_id, export.local or name)
            case ExportKind.REEXPORT | ExportKind.NAMESPACE_REEXPORT:
                source = export.source or ""
                self.__result.live_imports[module_id].add(source)
                target = record.resolved.get(source)
                if target is None:
                    return
                if export.kind is ExportKind.NAMESPACE_REEXPORT:
                    self.__result.namespace_required.add(target)
                    self.__queue.append(lambda: self.__use_namespace(target))
                else:
                    imported = export.imported or name
                    self.__queue.append(lambda: self.__use_export(target, imported, module_id))
            case ExportKind.STAR:
                pass
