import logging
import re
from pathlib import Path

from pydantic import BaseModel, Field

from esm_to_cjs.errors import PathNotFoundError
from esm_to_cjs.models import ConversionGroup, EntryDirectory

logger = logging.getLogger(__name__)


class EntrySetResolver(BaseModel):
    """Expand a conversion group into the ordered list of entry module paths."""

    root: Path = Field(default_factory=Path.cwd)

    def _absolute(self, path: Path) -> Path:
        return (path if path.is_absolute() else self.root / path).resolve()

    def read_dir(self, entry_dir: EntryDirectory) -> list[Path]:
        """List direct children of a directory whose file name matches the pattern.

        Children come back sorted by name, the order Node.js ``fs.readdirSync``
        lists them in, rather than in raw ``os.listdir`` order. The pattern is
        searched in the bare file name, not in the directory-qualified path.

        Args:
            entry_dir: Directory and file name regex.

        Returns:
            Absolute paths of matching regular files, in name order.

        Raises:
            PathNotFoundError: If the directory does not exist.
        """

        directory = self._absolute(entry_dir.dir)
        if not directory.is_dir():
            raise PathNotFoundError(directory, "Entry directory")

        pattern = re.compile(entry_dir.pattern)
        return [
            candidate.resolve()
            for candidate in sorted(directory.iterdir(), key=lambda p: p.name)
            if candidate.is_file() and pattern.search(candidate.name)
        ]

    def resolve(self, group: ConversionGroup) -> list[Path]:
        entries: list[Path] = []
        for entry_point in group.entry_points:
            path = self._absolute(entry_point)
            if not path.is_file():
                raise PathNotFoundError(path, "Entry module")
            entries.append(path)
        for entry_dir in group.entry_dirs:
            entries.extend(self.read_dir(entry_dir))

        unique = list(dict.fromkeys(entries))
        logger.debug("Resolved %d entry modules for %s", len(unique), group.output_dir)
        return unique
