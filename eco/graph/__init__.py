"""Workspace dependency graph and release ordering."""

from .builder import GraphBuildError, build_graph
from .model import Graph, Node
from .sort import DependencyCycleError, topological_levels

__all__ = [
    "DependencyCycleError",
    "Graph",
    "GraphBuildError",
    "Node",
    "build_graph",
    "topological_levels",
]
