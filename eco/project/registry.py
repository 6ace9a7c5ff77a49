"""Handler registry: project type string -> handler instance.

The registry is an ordinary object built by the composition root (the CLI,
or a test) from the ecosystem config, then passed to the graph builder and
the release orchestrator.

Usage:
    registry = default_registry(config.handlers)
    match registry.get("go"):
        case Ok(handler):
            deps = handler.parse_dependencies(workspace_dir)
        case Err(e):
            console.error(e.message)  # "no handler for project type: go"
"""

from __future__ import annotations

from collections.abc import Iterable

from eco.core.config import HandlersConfig
from eco.core.result import Err, Ok, Result
from eco.project.base import HandlerError, ProjectHandler
from eco.project.go import GoHandler
from eco.project.node import NodeHandler
from eco.project.python import PythonHandler
from eco.project.template import TemplateHandler

__all__ = ["HandlerRegistry", "default_registry"]


class HandlerRegistry:
    """Maps project types to handlers."""

    def __init__(self, handlers: Iterable[ProjectHandler] = ()) -> None:
        self._handlers: dict[str, ProjectHandler] = {}
        for handler in handlers:
            self.register(handler)

    def register(self, handler: ProjectHandler, *, aliases: Iterable[str] = ()) -> None:
        """Register a handler under its spec type plus optional aliases.

        Registering a type twice replaces the earlier handler.
        """
        for project_type in (handler.spec.type, *aliases):
            self._handlers[project_type] = handler

    def get(self, project_type: str) -> Result[ProjectHandler, HandlerError]:
        handler = self._handlers.get(project_type)
        if handler is None:
            return Err(
                HandlerError(
                    kind="handler_not_found",
                    message=f"no handler for project type: {project_type}",
                    hint=f"Known types: {', '.join(self.types())}",
                )
            )
        return Ok(handler)

    def types(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, project_type: object) -> bool:
        return project_type in self._handlers


def default_registry(config: HandlersConfig | None = None) -> HandlerRegistry:
    """Registry with every built-in handler, namespaced from config."""
    cfg = config or HandlersConfig()
    registry = HandlerRegistry()
    registry.register(GoHandler(namespace=cfg.go_namespace))
    registry.register(
        PythonHandler(prefix=cfg.python_prefix),
        aliases=("maturin",),
    )
    registry.register(NodeHandler(scope=cfg.node_scope))
    registry.register(TemplateHandler())
    return registry
