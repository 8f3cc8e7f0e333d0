from pathlib import Path

import pytest

from esm_to_cjs.errors import WriteError
from esm_to_cjs.loaders.output_writer import OutputWriter
from esm_to_cjs.models import ModuleID, OutputDescriptor


def _output(destination: Path, content: str = "'use strict';\n") -> OutputDescriptor:
    return OutputDescriptor(
        module_id=ModuleID.create("/project/lib/index.js"),
        destination=destination,
        content=content,
    )


def test_write_all__on_nested_destinations__creates_directories(tmp_path: Path) -> None:
    outputs = [_output(tmp_path / "cjs/index.cjs"), _output(tmp_path / "cjs/a/b/c.cjs", "x\n")]

    written = OutputWriter().write_all(outputs)

    assert written == [tmp_path / "cjs/index.cjs", tmp_path / "cjs/a/b/c.cjs"]
    assert (tmp_path / "cjs/a/b/c.cjs").read_text(encoding="utf-8") == "x\n"


def test_write__on_existing_file__overwrites_it(tmp_path: Path) -> None:
    destination = tmp_path / "index.cjs"
    destination.write_text("old", encoding="utf-8")

    OutputWriter().write(_output(destination, "new\n"))

    assert destination.read_text(encoding="utf-8") == "new\n"


def test_write__on_directory_in_the_way__raises_write_error(tmp_path: Path) -> None:
    blocker = tmp_path / "cjs"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(WriteError) as exc_info:
        OutputWriter().write(_output(blocker / "index.cjs"))

    assert exc_info.value.path == blocker / "index.cjs"
    assert isinstance(exc_info.value.__cause__, OSError)
