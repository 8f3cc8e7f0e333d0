import logging
import time
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from esm_to_cjs.clients.node import NodeResolverClient
from esm_to_cjs.loaders.output_writer import OutputWriter
from esm_to_cjs.models import (
    ConversionConfig,
    ConversionGroup,
    ExternalKind,
    ExternalPattern,
    ModuleGraph,
    OutputDescriptor,
)
from esm_to_cjs.services.codegen import CommonJSEmitter
from esm_to_cjs.services.entry_resolver import EntrySetResolver
from esm_to_cjs.services.external_classifier import ExternalClassifier
from esm_to_cjs.services.graph_builder import ModuleGraphBuilder
from esm_to_cjs.services.transforms.patch_self_import import (
    SelfImportDecision,
    SelfResolutionProbe,
    decide_self_import_patch,
)
from esm_to_cjs.services.transforms.pipeline import TransformPipeline
from esm_to_cjs.services.tree_shaking import ShakeResult, TreeShaker

logger = logging.getLogger(__name__)


class GroupAnalysis(BaseModel):
    """Graph and tree-shaking result of one conversion group."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    group: ConversionGroup
    decision: SelfImportDecision
    graph: ModuleGraph
    shaken: ShakeResult


class GroupConverter(BaseModel):
    """Convert one group of entry modules into CommonJS files.

    ``probe`` answers whether the package already resolves by name; it
    defaults to asking Node.js from the project root.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    config: ConversionConfig
    probe: SelfResolutionProbe | None = None
    writer: OutputWriter = Field(default_factory=OutputWriter)

    def _probe(self) -> SelfResolutionProbe:
        if self.probe is not None:
            return self.probe
        return NodeResolverClient(cwd=self.config.root).resolves

    def classifier(self) -> ExternalClassifier:
        """Configured externals, plus the package's own name and its subpaths."""

        patterns = list(self.config.external)
        name = self.config.package_name
        if name:
            patterns.append(ExternalPattern(kind=ExternalKind.EXACT, value=name))
            patterns.append(ExternalPattern(kind=ExternalKind.PREFIX, value=f"{name}/"))
        return ExternalClassifier(patterns=patterns)

    def analyze(self, group: ConversionGroup) -> GroupAnalysis:
        """Resolve entries, build the module graph and tree-shake it.

        Raises:
            PathNotFoundError: If an entry or entry directory is missing.
            UnresolvedModuleError: If an internal import does not resolve.
            ParseError: If a module is not valid ES module syntax.
            MissingExportError: If a module imports a name that is not exported.
        """

        config = self.config
        decision = decide_self_import_patch(config.patch_import_self, config.package_name, self._probe())
        transforms = TransformPipeline.default(
            decision, config.resolved_package_entry, config.test_file_pattern, config.root
        )
        options = config.treeshake_options

        entries = EntrySetResolver(root=config.root).resolve(group)
        builder = ModuleGraphBuilder(classifier=self.classifier(), transforms=transforms, options=options)
        graph = builder.build(entries)
        shaken = TreeShaker(graph=graph, options=options).shake()
        return GroupAnalysis(group=group, decision=decision, graph=graph, shaken=shaken)

    def render(self, analysis: GroupAnalysis) -> list[OutputDescriptor]:
        preserve_root = self.config.preserve_modules_root
        emitter = CommonJSEmitter(
            graph=analysis.graph,
            shaken=analysis.shaken,
            output_dir=self.config.resolve(analysis.group.output_dir),
            extension=self.config.extension,
            preserve_modules_root=self.config.resolve(preserve_root) if preserve_root else None,
        )
        return emitter.emit()

    def convert(self, group: ConversionGroup) -> list[Path]:
        """Run one group end to end and write its output files.

        Every module is rendered before the first file is written.

        Returns:
            The written file paths.
        """

        logger.info("Convert ESM to CommonJS (output: %s)", group.output_dir)
        started = time.perf_counter()

        outputs = self.render(self.analyze(group))
        written = self.writer.write_all(outputs)

        logger.info("Done in %dms", int((time.perf_counter() - started) * 1000))
        return written
