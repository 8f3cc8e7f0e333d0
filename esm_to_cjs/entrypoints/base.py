from pathlib import Path

from esm_to_cjs.loaders.config_loader import ConfigLoader
from esm_to_cjs.loaders.graph_dump import GraphDumpLoader
from esm_to_cjs.models import ConversionConfig, PatchImportSelf, TreeshakePreset
from esm_to_cjs.pipeline import ConversionPipeline
from esm_to_cjs.services.transforms.patch_self_import import SelfResolutionProbe


def load_config(
    root: Path,
    config_path: Path | None = None,
    treeshake: TreeshakePreset | None = None,
    patch_import_self: PatchImportSelf | None = None,
) -> ConversionConfig:
    """Load the project configuration, letting explicit arguments win over the file.

    Args:
        root: Project root holding ``package.json``.
        config_path: YAML config file, ``<root>/esm-to-cjs.yaml`` when omitted.
        treeshake: Tree-shaking preset override.
        patch_import_self: Self import patch mode override.

    Returns:
        Validated configuration.
    """
    loader = ConfigLoader(root, config_path)
    return loader.load(treeshake=treeshake, patch_import_self=patch_import_self)


def convert_project(
    config: ConversionConfig, probe: SelfResolutionProbe | None = None
) -> dict[Path, list[Path]]:
    """Convert every group of ``config`` and write the CommonJS output.

    Args:
        config: Conversion configuration.
        probe: Replaces the Node.js check of whether the package resolves by name.

    Returns:
        Written files per group output directory.
    """
    return ConversionPipeline(config=config, probe=probe).run()


def dump_project_graph(
    config: ConversionConfig, output_path: Path, probe: SelfResolutionProbe | None = None
) -> int:
    """Write the module graph of every group as YAML and return the module count."""
    analyses = ConversionPipeline(config=config, probe=probe).analyze()
    loader = GraphDumpLoader(output_path, root=config.root)
    loader.load(
        [
            loader.to_serializable(analysis.group.output_dir, analysis.graph, analysis.shaken)
            for analysis in analyses
        ]
    )
    return sum(len(analysis.graph.modules) for analysis in analyses)
