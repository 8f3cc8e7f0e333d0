import json
import logging
from pathlib import Path
from typing import Any, Final

import yaml

from esm_to_cjs.errors import PathNotFoundError
from esm_to_cjs.models import ConversionConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE: Final[str] = "esm-to-cjs.yaml"
PACKAGE_MANIFEST: Final[str] = "package.json"


def read_package_name(root: Path) -> str | None:
    """Return the ``name`` declared in ``<root>/package.json``, if any."""

    manifest = root / PACKAGE_MANIFEST
    if not manifest.is_file():
        return None
    with manifest.open(encoding="utf-8") as f:
        name = json.load(f).get("name")
    return name if isinstance(name, str) and name else None


class ConfigLoader:
    """Build a ``ConversionConfig`` from a project root and an optional YAML file.

    Relative paths in the file are relative to the project root. Without a
    config file the defaults apply.
    """

    def __init__(self, root: str | Path, config_path: str | Path | None = None) -> None:
        self.root: Path = Path(root).resolve()
        self.config_path: Path | None = Path(config_path) if config_path is not None else None

    def _read_yaml(self) -> dict[str, Any]:
        path = self.config_path
        if path is None:
            default = self.root / DEFAULT_CONFIG_FILE
            if not default.is_file():
                return {}
            path = default
        elif not path.is_file():
            raise PathNotFoundError(path, "Config file")

        logger.debug("Reading config from %s", path)
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return data or {}

    def load(self, **overrides: Any) -> ConversionConfig:
        """Load and validate the configuration.

        Args:
            **overrides: Values that win over the file (CLI options). ``None``
                values are ignored.

        Raises:
            PathNotFoundError: If an explicit config file does not exist.
            pydantic.ValidationError: If the values are invalid.
        """

        data = self._read_yaml()
        data.update({key: value for key, value in overrides.items() if value is not None})
        data["root"] = self.root
        if not data.get("package_name"):
            data["package_name"] = read_package_name(self.root)
        return ConversionConfig.model_validate(data)
