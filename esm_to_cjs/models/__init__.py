from .base import ModuleID
from .config import (
    ConversionConfig,
    ConversionGroup,
    EntryDirectory,
    ExternalKind,
    ExternalPattern,
    PatchImportSelf,
    TreeshakeOptions,
    TreeshakePreset,
)
from .module import (
    ExportDeclaration,
    ExportKind,
    ImportBinding,
    ImportDeclaration,
    ModuleGraph,
    ModuleRecord,
    RewriteSite,
    SiteKind,
    StatementKind,
    TopLevelStatement,
)
from .output import ExportMode, OutputDescriptor

__all__ = [
    "ModuleID",
    "ConversionConfig",
    "ConversionGroup",
    "EntryDirectory",
    "ExternalKind",
    "ExternalPattern",
    "PatchImportSelf",
    "TreeshakeOptions",
    "TreeshakePreset",
    "ExportDeclaration",
    "ExportKind",
    "ImportBinding",
    "ImportDeclaration",
    "ModuleGraph",
    "ModuleRecord",
    "RewriteSite",
    "SiteKind",
    "StatementKind",
    "TopLevelStatement",
    "ExportMode",
    "OutputDescriptor",
]
