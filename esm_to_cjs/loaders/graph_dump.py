import logging
from pathlib import Path
from typing import Any, TypedDict

import yaml

from esm_to_cjs.models import ModuleGraph, ModuleID
from esm_to_cjs.services.tree_shaking import ShakeResult

logger = logging.getLogger(__name__)


class ModuleRow(TypedDict):
    path: str
    entry: bool
    included: bool
    imports: list[dict[str, object]]
    exports: list[dict[str, object]]
    used_exports: list[str]


class GroupYAML(TypedDict):
    output_dir: str
    entries: list[str]
    modules: list[ModuleRow]


class GraphDumpLoader:
    """Persist module graphs as YAML.

    One document section per conversion group:
    - output_dir: the group's output directory
    - entries: entry module paths relative to the project root
    - modules: one row per module with its imports, exports and whether it
      survives tree-shaking
    """

    def __init__(self, output_path: str | Path, root: Path, indent: int = 2) -> None:
        """Create a graph dump loader.

        Args:
            output_path: Target file path to write the YAML into.
            root: Project root, module paths are written relative to it.
            indent: Indentation level for pretty-printing YAML.
        """
        self.output_path: Path = Path(output_path)
        self.root: Path = root.resolve()
        self.indent: int = indent

    def _relative(self, module_id: ModuleID) -> str:
        path = module_id.path
        return path.relative_to(self.root).as_posix() if path.is_relative_to(self.root) else path.as_posix()

    def to_serializable(self, output_dir: Path, graph: ModuleGraph, shaken: ShakeResult) -> GroupYAML:
        """Convert one group's graph to plain Python structures suitable for YAML dumping."""
        included = set(shaken.included)
        rows: list[ModuleRow] = []
        for module_id, record in graph.modules.items():
            imports: list[dict[str, object]] = []
            for specifier in record.dependency_specifiers:
                target = record.resolved.get(specifier)
                imports.append(
                    {
                        "specifier": specifier,
                        "resolved": self._relative(target) if target is not None else None,
                        "external": target is None,
                    }
                )
            rows.append(
                {
                    "path": self._relative(module_id),
                    "entry": record.is_entry,
                    "included": module_id in included,
                    "imports": imports,
                    "exports": [e.model_dump(mode="json", exclude_none=True) for e in record.exports],
                    "used_exports": sorted(shaken.used_exports.get(module_id, set())),
                }
            )
        return {
            "output_dir": output_dir.as_posix(),
            "entries": [self._relative(entry) for entry in graph.entries],
            "modules": rows,
        }

    def load(self, groups: list[GroupYAML]) -> None:
        """Write the serialized groups to the configured YAML file."""
        if self.output_path.parent and not self.output_path.parent.exists():
            self.output_path.parent.mkdir(parents=True, exist_ok=True)

        payload: dict[str, Any] = {"groups": groups}
        try:
            with self.output_path.open("w", encoding="utf-8") as f:
                yaml.safe_dump(
                    payload,
                    f,
                    allow_unicode=True,
                    sort_keys=False,
                    default_flow_style=False,
                    indent=self.indent,
                    width=4096,
                )
        except OSError:
            logger.exception("Failed to write module graph YAML to %s", self.output_path)
            raise
