from pathlib import Path


class ConversionError(Exception):
    """Base class for every fatal error raised while converting modules."""


class PathNotFoundError(ConversionError):
    def __init__(self, path: Path, what: str = "Path") -> None:
        self.path = path
        super().__init__(f"{what} does not exist: {path}")


class UnresolvedModuleError(ConversionError):
    """An import is neither external nor resolvable inside the module graph."""

    def __init__(self, importer: Path, specifier: str) -> None:
        self.importer = importer
        self.specifier = specifier
        super().__init__(f'Could not resolve "{specifier}" from {importer}')


class ParseError(ConversionError):
    def __init__(self, path: Path, line: int, column: int, snippet: str = "") -> None:
        self.path = path
        self.line = line
        self.column = column
        message = f"Invalid ES module syntax in {path} at line {line}, column {column}"
        if snippet:
            message += f": {snippet}"
        super().__init__(message)


class WriteError(ConversionError):
    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"Failed to write {path}: {reason}")


class MissingExportError(ConversionError):
    """An internal module is asked for a name it does not export."""

    def __init__(self, importer: Path, name: str, module: Path) -> None:
        self.importer = importer
        self.name = name
        self.module = module
        super().__init__(f'"{name}" is not exported by {module}, imported by {importer}')
