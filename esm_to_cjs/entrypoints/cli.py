import logging
from pathlib import Path
from typing import Annotated, Final

import typer
from pydantic import ValidationError

from esm_to_cjs.errors import ConversionError
from esm_to_cjs.models import PatchImportSelf, TreeshakePreset

from .base import convert_project, dump_project_graph, load_config

app = typer.Typer(
    name="esm-to-cjs",
    add_completion=False,
    no_args_is_help=True,
    help="Convert an ES module package into CommonJS files.",
)

DEFAULT_GRAPH_FILE: Final[Path] = Path("module-graph.yaml")
LOG_FORMAT: Final[str] = "%(message)s"

RootArgument = Annotated[
    Path,
    typer.Argument(
        help="Project root containing package.json.",
        exists=True,
        file_okay=False,
        dir_okay=True,
        readable=True,
        resolve_path=True,
    ),
]
ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="YAML config file (defaults to <root>/esm-to-cjs.yaml when present).",
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Log debug details."),
]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        force=True,
    )


def _fail(error: Exception) -> typer.Exit:
    typer.secho(str(error), fg=typer.colors.RED, err=True)
    return typer.Exit(code=1)


@app.command("convert")
def convert(
    root: RootArgument = Path("."),
    config_path: ConfigOption = None,
    treeshake: Annotated[
        TreeshakePreset | None,
        typer.Option(
            "--treeshake",
            case_sensitive=False,
            help="Tree-shaking preset (smallest, recommended, safest, none).",
        ),
    ] = None,
    patch_import_self: Annotated[
        PatchImportSelf | None,
        typer.Option(
            "--patch-import-self",
            case_sensitive=False,
            help="Rewrite by-name self imports in tests (auto, on, off).",
        ),
    ] = None,
    verbose: VerboseOption = False,
) -> None:
    """Convert every configured group of entry modules to CommonJS.

    Args:
        root: Project root.
        config_path: Optional YAML config file.
        treeshake: Tree-shaking preset override.
        patch_import_self: Self import patch mode override.
        verbose: Whether to log debug details.
    """
    _configure_logging(verbose)
    try:
        config = load_config(root, config_path, treeshake, patch_import_self)
        written = convert_project(config)
    except (ConversionError, ValidationError) as e:
        raise _fail(e) from e

    total = sum(len(files) for files in written.values())
    typer.secho(
        f"Converted {total} modules into {len(written)} output directories",
        fg=typer.colors.GREEN,
    )


@app.command("graph")
def graph(
    root: RootArgument = Path("."),
    config_path: ConfigOption = None,
    output_path: Annotated[
        Path,
        typer.Option(
            "--output",
            "-o",
            help="Path to write the module graph YAML.",
            file_okay=True,
            dir_okay=False,
            writable=True,
            resolve_path=True,
        ),
    ] = DEFAULT_GRAPH_FILE,
    verbose: VerboseOption = False,
) -> None:
    """Build the module graph of every group and dump it as YAML.

    Args:
        root: Project root.
        config_path: Optional YAML config file.
        output_path: Destination of the YAML dump.
        verbose: Whether to log debug details.
    """
    _configure_logging(verbose)
    try:
        config = load_config(root, config_path)
        modules = dump_project_graph(config, output_path)
    except (ConversionError, ValidationError) as e:
        raise _fail(e) from e

    typer.secho(f"Wrote {modules} modules to {output_path}", fg=typer.colors.GREEN)


def main() -> None:
    """Entry point for executing the Typer application."""
    app()


if __name__ == "__main__":
    main()
