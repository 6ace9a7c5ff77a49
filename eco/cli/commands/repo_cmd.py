"""Repo commands - create a new workspace repository."""

from __future__ import annotations

import typer

from eco.cli.commands._helpers import unwrap_or_exit
from eco.cli.context import build_context
from eco.repo.creator import CreateOptions, RepoCreator

repo_app = typer.Typer(add_completion=False, no_args_is_help=True)


@repo_app.command("create")
def create_cmd(
    name: str = typer.Argument(..., help="Workspace name (lowercase, digits, '-')"),
    project_type: str = typer.Option("go", "--type", help="Project type (go, python, node, template)"),
    description: str | None = typer.Option(
        None, "--description", help="One-line description", show_default=False
    ),
    remote: str | None = typer.Option(
        None, "--remote", help="GitHub owner to publish the repo under", show_default=False
    ),
    public: bool = typer.Option(False, "--public", help="Create a public remote repository"),
    register: bool = typer.Option(
        False, "--register", help="Add the repo as a submodule of the ecosystem"
    ),
) -> None:
    """Create a workspace repository; undo local changes on failure."""
    ctx = build_context()
    creator = RepoCreator(
        ecosystem=ctx.ecosystem,
        config=ctx.config,
        registry=ctx.registry,
        console=ctx.console,
    )
    options = CreateOptions(
        name=name,
        project_type=project_type,
        description=description,
        remote_owner=remote,
        public=public,
        register=register,
    )
    path = unwrap_or_exit(creator.create(options), ctx)
    ctx.console.print(str(path))
