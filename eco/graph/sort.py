"""Level-batched topological sort (Kahn's algorithm).

Each level holds modules whose dependencies all sit in earlier levels, so
the members of one level can be built and released in parallel.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from eco.core.result import Err, Ok, Result
from eco.graph.model import Graph

__all__ = ["DependencyCycleError", "topological_levels"]


@dataclass(frozen=True, slots=True)
class DependencyCycleError:
    """Modules that could not be ordered; sorted by name."""

    members: tuple[str, ...]

    @property
    def message(self) -> str:
        return f"dependency cycle detected among modules: [{', '.join(self.members)}]"

    def __str__(self) -> str:
        return self.message


def topological_levels(
    graph: Graph,
    subset: Iterable[str] | None = None,
) -> Result[list[list[str]], DependencyCycleError]:
    """Sort `graph` (or the `subset` of its nodes) into dependency levels.

    Edges leaving the subset are ignored for in-degree purposes: a module
    whose dependency is not part of the subset is treated as unblocked.
    Names within a level are sorted for stable output.
    """
    if subset is None:
        selected = set(graph.nodes)
    else:
        selected = {name for name in subset if name in graph.nodes}

    in_degree = {
        name: sum(1 for dep in graph.edges.get(name, ()) if dep in selected) for name in selected
    }
    queue = sorted(name for name, degree in in_degree.items() if degree == 0)

    levels: list[list[str]] = []
    processed = 0
    while queue:
        level = queue
        levels.append(level)
        processed += len(level)

        ready: list[str] = []
        for name in level:
            for dependent in graph.reverse_edges.get(name, ()):
                if dependent not in selected:
                    continue
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    ready.append(dependent)
        queue = sorted(ready)

    if processed < len(selected):
        done = {name for level in levels for name in level}
        return Err(DependencyCycleError(members=tuple(sorted(selected - done))))

    return Ok(levels)
