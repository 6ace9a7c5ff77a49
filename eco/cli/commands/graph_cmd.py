"""Graph command - show workspaces, edges and release levels."""

from __future__ import annotations

import json

import typer

from eco.cli.commands._helpers import unwrap_or_exit
from eco.cli.context import build_context, load_graph
from eco.graph.sort import topological_levels
from eco.output.console import Style


def graph(
    as_json: bool = typer.Option(False, "--json", help="Print machine-readable JSON"),
) -> None:
    """Show the workspace dependency graph in release order."""
    ctx = build_context()
    g = load_graph(ctx)
    levels = unwrap_or_exit(topological_levels(g), ctx)

    if as_json:
        payload = {
            "levels": levels,
            "nodes": {
                name: {
                    "type": node.project_type,
                    "path": str(node.path),
                    "identity": node.identity,
                    "dependencies": g.dependencies(name),
                }
                for name, node in sorted(g.nodes.items())
            },
        }
        typer.echo(json.dumps(payload, indent=2))
        return

    ctx.console.header(f"{ctx.config.name}: {len(g)} workspaces, {g.edge_count()} edges")
    for index, level in enumerate(levels):
        ctx.console.print(f"level {index}", Style.INFO)
        for name in level:
            node = g.nodes[name]
            deps = g.dependencies(name)
            suffix = f" <- {', '.join(deps)}" if deps else ""
            ctx.console.print(f"  {name} [{node.project_type}]{suffix}")
