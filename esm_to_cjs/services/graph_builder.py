import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Final

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from esm_to_cjs.errors import PathNotFoundError, UnresolvedModuleError
from esm_to_cjs.models import ModuleGraph, ModuleID, ModuleRecord, TreeshakeOptions
from esm_to_cjs.services.es_parser.module_parser import ESModuleParser
from esm_to_cjs.services.external_classifier import ExternalClassifier
from esm_to_cjs.services.transforms.pipeline import TransformPipeline

logger = logging.getLogger(__name__)

RESOLVE_EXTENSIONS: Final[tuple[str, ...]] = (".js", ".mjs")


class ModuleGraphBuilder(BaseModel):
    """Load entry modules and every internal module they import.

    External specifiers are recorded as ``None`` in ``ModuleRecord.resolved``
    and never loaded. Import cycles are allowed: a module that is still being
    loaded further up the stack is not visited again.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    classifier: ExternalClassifier
    transforms: TransformPipeline = Field(default_factory=TransformPipeline)
    options: TreeshakeOptions = Field(default_factory=TreeshakeOptions)
    __graph: ModuleGraph = PrivateAttr(default_factory=ModuleGraph)
    __in_progress: set[ModuleID] = PrivateAttr(default_factory=set)

    def build(self, entries: list[Path]) -> ModuleGraph:
        """Build the module graph reachable from ``entries``.

        Raises:
            PathNotFoundError: If an entry module cannot be read.
            UnresolvedModuleError: If an internal import does not resolve.
            ParseError: If a module is not valid ES module syntax.
        """

        self.__graph = ModuleGraph(entries=list(dict.fromkeys(ModuleID.create(p) for p in entries)))
        self.__in_progress = set()
        for entry in self.__graph.entries:
            self.__load(entry)
        logger.info(
            "Module graph: %d modules from %d entries",
            len(self.__graph.modules),
            len(self.__graph.entries),
        )
        return self.__graph

    def __load(self, module_id: ModuleID) -> None:
        if module_id in self.__graph.modules:
            return
        if module_id in self.__in_progress:
            logger.debug("Circular import reaches %s again, not revisiting", module_id)
            return

        self.__in_progress.add(module_id)
        try:
            record = self.__parse(module_id)
            for specifier in record.dependency_specifiers:
                target = self.__resolve(record, specifier)
                record.resolved[specifier] = target
                if target is not None:
                    self.__load(target)
            self.__graph.modules[module_id] = record
        finally:
            self.__in_progress.discard(module_id)

    def __parse(self, module_id: ModuleID) -> ModuleRecord:
        path = module_id.path
        try:
            code = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise PathNotFoundError(path, "Module") from e

        code = self.transforms.apply(code, module_id)
        parser = ESModuleParser(path=path, source=code.encode("utf-8"), options=self.options)
        return parser.build(module_id, is_entry=module_id in self.__graph.entries)

    def __candidates(self, base: Path, directory_only: bool) -> Iterator[Path]:
        if not directory_only:
            yield base
            for extension in RESOLVE_EXTENSIONS:
                yield base.with_name(base.name + extension)
        for extension in RESOLVE_EXTENSIONS:
            yield base / f"index{extension}"

    def __resolve(self, importer: ModuleRecord, specifier: str) -> ModuleID | None:
        if self.classifier.is_external(specifier):
            return None

        if specifier.startswith(("./", "../", "/")) or specifier in {".", ".."}:
            base = Path(specifier) if specifier.startswith("/") else importer.path.parent / specifier
            directory_only = specifier in {".", ".."} or specifier.endswith("/")
            for candidate in self.__candidates(base, directory_only):
                if candidate.is_file():
                    return ModuleID.create(candidate)

        raise UnresolvedModuleError(importer.path, specifier)
