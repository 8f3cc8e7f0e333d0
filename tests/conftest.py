import shutil
from pathlib import Path

import pytest

from tests.helpers import ProjectFactory


@pytest.fixture
def copy_project(tmp_path: Path) -> ProjectFactory:
    """Copy a fixture project into a temporary directory and return its root."""

    def _copy(source: Path) -> Path:
        destination = tmp_path / source.name
        shutil.copytree(source, destination)
        return destination

    return _copy
