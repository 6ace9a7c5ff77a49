from __future__ import annotations

import os
from pathlib import Path

import typer

from eco import __version__
from eco.cli.commands.build_cmd import build
from eco.cli.commands.ci_cmd import ci_app
from eco.cli.commands.graph_cmd import graph
from eco.cli.commands.release_cmd import release_app
from eco.cli.commands.repo_cmd import repo_app
from eco.core.errors import ErrorCode
from eco.core.workspace import is_ecosystem_root

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command()(graph)
app.command()(build)

# Sub-apps
app.add_typer(release_app, name="release", help="Plan and apply an ecosystem release.")
app.add_typer(ci_app, name="ci", help="CI workflow helpers.")
app.add_typer(repo_app, name="repo", help="Workspace repository management.")


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    root: Path | None = typer.Option(
        None,
        "--root",
        help="Ecosystem root (overrides auto detection)",
    ),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    if root is not None:
        try:
            resolved = root.expanduser().resolve()
        except OSError as e:
            typer.echo(f"error: invalid --root: {e}", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))

        if not resolved.is_dir() or not is_ecosystem_root(resolved):
            typer.echo(
                f"error: --root '{resolved}' is not an ecosystem (missing ecosystem.toml)",
                err=True,
            )
            raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

        os.environ["ECO_ROOT"] = str(resolved)


def main() -> None:
    app()
