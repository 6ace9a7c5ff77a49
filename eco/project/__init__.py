"""Per-project-type adapters and the registry that dispatches to them."""

from .base import Dependency, DependencyKind, HandlerError, HandlerSpec, ProjectHandler
from .go import GoHandler
from .node import NodeHandler
from .python import PythonHandler
from .registry import HandlerRegistry, default_registry
from .template import TemplateHandler

__all__ = [
    # base
    "Dependency",
    "DependencyKind",
    "HandlerError",
    "HandlerSpec",
    "ProjectHandler",
    # handlers
    "GoHandler",
    "NodeHandler",
    "PythonHandler",
    "TemplateHandler",
    # registry
    "HandlerRegistry",
    "default_registry",
]
