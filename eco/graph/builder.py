"""Build the workspace dependency graph.

Pass 1 loads each workspace's type declaration, resolves its handler and
creates a node (workspaces with an unknown type or without their manifest
are skipped: they may be auxiliary, non-buildable repos). Project types that
are referenced by identity (Go module path, package name) are recorded in an
identity map.

Pass 2 parses each workspace's dependencies and turns every workspace-local
one into an edge, resolving it through the identity map first and the
workspace name second.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from eco.core.config import load_workspace_decl
from eco.core.result import Err, Ok, Result
from eco.graph.model import Graph, Node
from eco.output.console import ConsoleProtocol, Style
from eco.project.base import ProjectHandler
from eco.project.registry import HandlerRegistry

__all__ = ["GraphBuildError", "build_graph"]


@dataclass(frozen=True, slots=True)
class GraphBuildError:
    kind: Literal["config_invalid", "duplicate_workspace", "dependencies_unreadable"]
    workspace: str
    message: str
    hint: str | None = None


@dataclass(slots=True)
class _Pending:
    name: str
    path: Path
    handler: ProjectHandler
    identity: str | None


def _note(console: ConsoleProtocol | None, message: str) -> None:
    if console is not None:
        console.print(message, Style.DIM)


def build_graph(
    workspace_dirs: list[Path],
    *,
    registry: HandlerRegistry,
    console: ConsoleProtocol | None = None,
) -> Result[Graph, GraphBuildError]:
    pending: dict[str, _Pending] = {}
    identities: dict[str, str] = {}

    for path in workspace_dirs:
        name = path.name
        decl = load_workspace_decl(path)
        if isinstance(decl, Err):
            return Err(
                GraphBuildError(
                    kind="config_invalid",
                    workspace=name,
                    message=decl.error.message,
                )
            )

        handler = registry.get(decl.value.type)
        if isinstance(handler, Err):
            _note(console, f"skip {name}: {handler.error.message}")
            continue
        if not handler.value.has_project_file(path):
            _note(console, f"skip {name}: no {handler.value.spec.manifest}")
            continue
        if name in pending:
            return Err(
                GraphBuildError(
                    kind="duplicate_workspace",
                    workspace=name,
                    message=f"two workspaces share the name {name!r}",
                    hint=f"{pending[name].path} and {path}",
                )
            )

        identity: str | None = None
        if handler.value.spec.references_by_identity:
            identity = handler.value.identity(path)
            if identity:
                identities[identity] = name

        pending[name] = _Pending(name=name, path=path, handler=handler.value, identity=identity)

    nodes: list[Node] = []
    for item in pending.values():
        deps_result = item.handler.parse_dependencies(item.path)
        if isinstance(deps_result, Err):
            e = deps_result.error
            return Err(
                GraphBuildError(
                    kind="dependencies_unreadable",
                    workspace=item.name,
                    message=e.message,
                    hint=e.hint,
                )
            )

        resolved: list[str] = []
        for dep in deps_result.value:
            if not dep.workspace_local:
                continue
            target = identities.get(dep.name)
            if target is None and dep.name in pending:
                target = dep.name
            if target is None:
                _note(console, f"{item.name}: {dep.name} is not a workspace of this ecosystem")
                continue
            if target != item.name and target not in resolved:
                resolved.append(target)

        nodes.append(
            Node(
                name=item.name,
                path=item.path,
                project_type=item.handler.spec.type,
                identity=item.identity,
                dependencies=tuple(resolved),
            )
        )

    return Ok(Graph.from_nodes(nodes))
