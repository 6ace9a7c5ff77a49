from __future__ import annotations

from dataclasses import dataclass

import typer

from eco.core.config import EcoConfig, load_config
from eco.core.errors import ErrorCode
from eco.core.result import Err
from eco.core.workspace import Ecosystem, detect_ecosystem, discover_workspaces
from eco.graph.builder import build_graph
from eco.graph.model import Graph
from eco.output.console import ConsoleProtocol, RichConsole, Style
from eco.output.errors import error_exit_code, print_error
from eco.project.registry import HandlerRegistry, default_registry


@dataclass(frozen=True, slots=True)
class CLIContext:
    ecosystem: Ecosystem
    config: EcoConfig
    registry: HandlerRegistry
    console: ConsoleProtocol


def build_context() -> CLIContext:
    ecosystem_result = detect_ecosystem()
    if isinstance(ecosystem_result, Err):
        typer.echo(f"error: {ecosystem_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    ecosystem = ecosystem_result.value
    console = RichConsole()

    config_result = load_config(ecosystem.config_path)
    if isinstance(config_result, Err):
        console.error(config_result.error.message)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))
    config = config_result.value

    return CLIContext(
        ecosystem=ecosystem,
        config=config,
        registry=default_registry(config.handlers),
        console=console,
    )


def load_graph(ctx: CLIContext) -> Graph:
    """Discover the workspaces and build their dependency graph, or exit."""
    dirs = discover_workspaces(ctx.ecosystem.root, ctx.config.workspaces)
    if not dirs:
        ctx.console.warning("no workspaces found")
        ctx.console.print(
            f"patterns: {', '.join(ctx.config.workspaces)} (each needs an eco.toml)",
            Style.DIM,
        )

    result = build_graph(dirs, registry=ctx.registry, console=ctx.console)
    if isinstance(result, Err):
        print_error(result.error, ctx.console)
        raise typer.Exit(code=error_exit_code(result.error))
    return result.value
