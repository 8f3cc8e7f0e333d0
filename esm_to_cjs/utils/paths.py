import os
from pathlib import Path


def relative_specifier(from_dir: Path, target: Path) -> str:
    """Relative module specifier from a directory to a file, always ``./`` or ``../`` prefixed."""

    relative = Path(os.path.relpath(target, from_dir)).as_posix()
    if not relative.startswith("."):
        relative = f"./{relative}"
    return relative
