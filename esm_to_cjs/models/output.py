from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, Field

from esm_to_cjs.models.base import ModuleID


class ExportMode(StrEnum):
    """Export shape of a generated CommonJS module."""

    NONE = "none"
    DEFAULT = "default"
    NAMED = "named"


class OutputDescriptor(BaseModel):
    module_id: ModuleID
    destination: Path
    content: str
    export_mode: ExportMode = ExportMode.NONE
    exports: list[str] = Field(default_factory=list, description="Emitted export names")
