from pathlib import Path
from typing import Any

from pydantic import GetCoreSchemaHandler
from pydantic_core import CoreSchema, core_schema


class ModuleID(str):
    """Unique identifier of a module in the graph: its resolved absolute path."""

    @classmethod
    def create(cls, path: str | Path) -> "ModuleID":
        return cls(Path(path).resolve().as_posix())

    @property
    def path(self) -> Path:
        return Path(self)

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> CoreSchema:
        return core_schema.no_info_after_validator_function(cls, handler(str))
