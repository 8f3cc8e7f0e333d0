from collections.abc import Callable
from typing import TypeAlias
from pathlib import Path

from esm_to_cjs.models import (
    ConversionConfig,
    ConversionGroup,
    ExternalPattern,
    ModuleGraph,
    PatchImportSelf,
    TreeshakePreset,
)
from esm_to_cjs.services.converter import GroupConverter
from esm_to_cjs.services.external_classifier import ExternalClassifier
from esm_to_cjs.services.graph_builder import ModuleGraphBuilder
from esm_to_cjs.services.tree_shaking import ShakeResult, TreeShaker

ProjectFactory: TypeAlias = Callable[[Path], Path]


def write_sources(root: Path, files: dict[str, str]) -> Path:
    """Write ``{relative path: source}`` below ``root`` and return ``root``."""
    for relative, source in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source, encoding="utf-8")
    return root


def build_graph(
    root: Path, entries: list[str], external: list[str] | None = None
) -> ModuleGraph:
    classifier = ExternalClassifier(
        patterns=[ExternalPattern.model_validate(name) for name in external or []]
    )
    return ModuleGraphBuilder(classifier=classifier).build([root / entry for entry in entries])


def shake(
    root: Path,
    entries: list[str],
    external: list[str] | None = None,
    preset: TreeshakePreset = TreeshakePreset.SMALLEST,
) -> tuple[ModuleGraph, ShakeResult]:
    graph = build_graph(root, entries, external)
    result = TreeShaker(graph=graph, options=ConversionConfig(treeshake=preset).treeshake_options).shake()
    return graph, result


def convert_sources(
    root: Path,
    entries: list[str],
    external: list[str] | None = None,
    preset: TreeshakePreset = TreeshakePreset.SMALLEST,
) -> dict[str, str]:
    """Convert ``entries`` below ``root`` into ``root/out``.

    Returns:
        Output file contents keyed by path relative to the output directory.
    """
    config = ConversionConfig(
        root=root,
        groups=[ConversionGroup(entry_points=[Path(e) for e in entries], output_dir=Path("out"))],
        external=[ExternalPattern.model_validate(name) for name in external or []],
        treeshake=preset,
        patch_import_self=PatchImportSelf.OFF,
    )
    converter = GroupConverter(config=config)
    converter.convert(config.groups[0])
    out = root / "out"
    return {
        path.relative_to(out).as_posix(): path.read_text(encoding="utf-8")
        for path in sorted(out.rglob("*"))
        if path.is_file()
    }
