"""Dependency graph between ecosystem workspaces.

An edge A -> B means "A depends on B": B must be released before A.
The graph is built once by `build_graph` and only read afterwards.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

__all__ = ["Graph", "Node"]


@dataclass(frozen=True, slots=True)
class Node:
    """One workspace in the graph.

    Attributes:
        name: Workspace name (directory basename), unique in the graph
        path: Workspace directory
        project_type: Declared type (go, python, node, template)
        identity: Module/package identifier used by dependents, when the
            project type references siblings by identity
        dependencies: Names of sibling nodes this workspace depends on
    """

    name: str
    path: Path
    project_type: str
    identity: str | None = None
    dependencies: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Graph:
    nodes: Mapping[str, Node]
    edges: Mapping[str, frozenset[str]]
    reverse_edges: Mapping[str, frozenset[str]]

    @classmethod
    def from_nodes(cls, nodes: Iterable[Node]) -> Graph:
        """Build edge maps from each node's dependency list.

        Dependencies naming unknown nodes or the node itself are dropped;
        repeated declarations collapse into a single edge.
        """
        by_name = {n.name: n for n in nodes}
        edges: dict[str, set[str]] = {name: set() for name in by_name}
        reverse: dict[str, set[str]] = {name: set() for name in by_name}
        for node in by_name.values():
            for dep in node.dependencies:
                if dep == node.name or dep not in by_name:
                    continue
                edges[node.name].add(dep)
                reverse[dep].add(node.name)
        return cls(
            nodes=by_name,
            edges={k: frozenset(v) for k, v in edges.items()},
            reverse_edges={k: frozenset(v) for k, v in reverse.items()},
        )

    def __contains__(self, name: object) -> bool:
        return name in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def names(self) -> list[str]:
        return sorted(self.nodes)

    def dependencies(self, name: str) -> list[str]:
        return sorted(self.edges.get(name, frozenset()))

    def dependents(self, name: str) -> list[str]:
        return sorted(self.reverse_edges.get(name, frozenset()))

    def transitive_dependents(self, names: Iterable[str]) -> set[str]:
        """Every node that depends, directly or not, on any of `names`."""
        seen: set[str] = set()
        stack = [n for n in names if n in self.nodes]
        while stack:
            current = stack.pop()
            for dependent in self.reverse_edges.get(current, frozenset()):
                if dependent not in seen:
                    seen.add(dependent)
                    stack.append(dependent)
        return seen

    def edge_count(self) -> int:
        return sum(len(deps) for deps in self.edges.values())
