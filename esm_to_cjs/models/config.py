import re
from enum import StrEnum
from pathlib import Path
from typing import Any, Final, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


DEFAULT_EXTENSION: Final[str] = ".cjs"
DEFAULT_TEST_FILE_PATTERN: Final[str] = r"[\\/](__)?tests[\\/]"
DEFAULT_ENTRY_FILE_PATTERN: Final[str] = r"\.js$"


class TreeshakePreset(StrEnum):
    SMALLEST = "smallest"
    RECOMMENDED = "recommended"
    SAFEST = "safest"
    NONE = "none"


class TreeshakeOptions(BaseModel):
    """Resolved tree-shaking switches derived from a preset."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    module_side_effects: bool = False
    property_read_side_effects: bool = False
    unknown_global_side_effects: bool = False

    @classmethod
    def from_preset(cls, preset: TreeshakePreset) -> "TreeshakeOptions":
        match preset:
            case TreeshakePreset.SMALLEST:
                return cls()
            case TreeshakePreset.RECOMMENDED:
                return cls(module_side_effects=True, property_read_side_effects=True)
            case TreeshakePreset.SAFEST:
                return cls(
                    module_side_effects=True,
                    property_read_side_effects=True,
                    unknown_global_side_effects=True,
                )
            case TreeshakePreset.NONE:
                return cls(
                    enabled=False,
                    module_side_effects=True,
                    property_read_side_effects=True,
                    unknown_global_side_effects=True,
                )
        raise ValueError(f"Unknown treeshake preset: {preset}")


class PatchImportSelf(StrEnum):
    AUTO = "auto"
    ON = "on"
    OFF = "off"


class ExternalKind(StrEnum):
    EXACT = "exact"
    PREFIX = "prefix"
    REGEX = "regex"


class ExternalPattern(BaseModel):
    """A module identifier, prefix or regular expression marking imports as external."""

    model_config = ConfigDict(frozen=True)

    kind: ExternalKind = ExternalKind.EXACT
    value: str

    @model_validator(mode="before")
    @classmethod
    def _from_shorthand(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"kind": ExternalKind.EXACT, "value": data}
        if isinstance(data, dict) and "value" not in data:
            for kind in ExternalKind:
                if kind.value in data:
                    return {"kind": kind, "value": data[kind.value]}
        return data

    def matches(self, specifier: str) -> bool:
        match self.kind:
            case ExternalKind.EXACT:
                return specifier == self.value
            case ExternalKind.PREFIX:
                return specifier.startswith(self.value)
            case ExternalKind.REGEX:
                return re.search(self.value, specifier) is not None
        return False


class EntryDirectory(BaseModel):
    dir: Path
    pattern: str = DEFAULT_ENTRY_FILE_PATTERN


class ConversionGroup(BaseModel):
    """Entry points converted together into one output directory."""

    entry_points: list[Path] = Field(default_factory=list)
    entry_dirs: list[EntryDirectory] = Field(default_factory=list)
    output_dir: Path

    @model_validator(mode="after")
    def validate_has_entries(self) -> Self:
        if not self.entry_points and not self.entry_dirs:
            raise ValueError("conversion group needs at least one entry point or entry dir")
        return self


def _default_groups() -> list[ConversionGroup]:
    return [
        ConversionGroup(
            entry_points=[Path("lib/index.js")],
            entry_dirs=[EntryDirectory(dir=Path("lib/__tests"))],
            output_dir=Path("cjs"),
        )
    ]


def _default_external() -> list[ExternalPattern]:
    names = ["fs", "path", "assert", "json-to-ast", "css-tree"]
    patterns = [ExternalPattern.model_validate(name) for name in names]
    patterns.append(ExternalPattern(kind=ExternalKind.REGEX, value=r"^source-map"))
    return patterns


class ConversionConfig(BaseModel):
    root: Path = Field(default_factory=Path.cwd)
    package_name: str | None = None
    groups: list[ConversionGroup] = Field(default_factory=_default_groups)
    external: list[ExternalPattern] = Field(default_factory=_default_external)
    treeshake: TreeshakePreset = TreeshakePreset.SMALLEST
    patch_import_self: PatchImportSelf = PatchImportSelf.AUTO
    test_file_pattern: str = DEFAULT_TEST_FILE_PATTERN
    package_entry: Path | None = None
    extension: str = DEFAULT_EXTENSION
    preserve_modules_root: Path | None = None

    @field_validator("patch_import_self", mode="before")
    @classmethod
    def _bool_to_mode(cls, value: Any) -> Any:
        if value is True:
            return PatchImportSelf.ON
        if value is False:
            return PatchImportSelf.OFF
        return value

    @field_validator("treeshake", mode="before")
    @classmethod
    def _false_to_none(cls, value: Any) -> Any:
        return TreeshakePreset.NONE if value is False else value

    @field_validator("extension")
    @classmethod
    def _dotted_extension(cls, value: str) -> str:
        return value if value.startswith(".") else f".{value}"

    @property
    def treeshake_options(self) -> TreeshakeOptions:
        return TreeshakeOptions.from_preset(self.treeshake)

    def resolve(self, path: Path) -> Path:
        """Resolve a config-relative path against the project root."""

        return path if path.is_absolute() else (self.root / path).resolve()

    @property
    def resolved_package_entry(self) -> Path:
        if self.package_entry is not None:
            return self.resolve(self.package_entry)
        first_group = self.groups[0]
        if first_group.entry_points:
            return self.resolve(first_group.entry_points[0])
        return self.resolve(Path("lib/index.js"))
