from pathlib import Path

from pydantic import BaseModel, ConfigDict

from esm_to_cjs.models import ConversionConfig
from esm_to_cjs.services.converter import GroupAnalysis, GroupConverter
from esm_to_cjs.services.transforms.patch_self_import import SelfResolutionProbe


class ConversionPipeline(BaseModel):
    """Convert every configured group, one after the other.

    A failing group stops the run; groups converted before it keep their
    output.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    config: ConversionConfig
    probe: SelfResolutionProbe | None = None

    def _converter(self) -> GroupConverter:
        return GroupConverter(config=self.config, probe=self.probe)

    def run(self) -> dict[Path, list[Path]]:
        """Returns the written files per group output directory."""

        converter = self._converter()
        return {group.output_dir: converter.convert(group) for group in self.config.groups}

    def analyze(self) -> list[GroupAnalysis]:
        converter = self._converter()
        return [converter.analyze(group) for group in self.config.groups]
