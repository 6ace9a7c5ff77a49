"""Tests for level-batched topological sorting."""

from __future__ import annotations

from pathlib import Path

import pytest

from eco.core.result import Err, Ok
from eco.graph.model import Graph, Node
from eco.graph.sort import DependencyCycleError, topological_levels


def _graph(deps: dict[str, tuple[str, ...]]) -> Graph:
    return Graph.from_nodes(
        Node(name=name, path=Path(name), project_type="go", dependencies=d)
        for name, d in deps.items()
    )


def _levels(graph: Graph, subset: list[str] | None = None) -> list[list[str]]:
    result = topological_levels(graph, subset)
    assert isinstance(result, Ok), result
    return result.value


def test_diamond() -> None:
    graph = _graph(
        {
            "core": (),
            "context": ("core",),
            "proxy": ("core",),
            "flow": ("context", "proxy", "core"),
        }
    )

    assert _levels(graph) == [["core"], ["context", "proxy"], ["flow"]]


def test_independent_modules_share_a_level() -> None:
    graph = _graph({"c": (), "a": (), "b": ()})
    assert _levels(graph) == [["a", "b", "c"]]


def test_empty_graph() -> None:
    assert _levels(_graph({})) == []


def test_two_node_cycle_names_both() -> None:
    graph = _graph({"a": ("b",), "b": ("a",), "c": ()})

    result = topological_levels(graph)

    assert isinstance(result, Err)
    assert result.error == DependencyCycleError(members=("a", "b"))
    assert result.error.message == "dependency cycle detected among modules: [a, b]"


def test_cycle_downstream_members_are_reported() -> None:
    graph = _graph({"a": ("b",), "b": ("a",), "c": ("a",)})

    result = topological_levels(graph)

    assert isinstance(result, Err)
    assert result.error.members == ("a", "b", "c")


def test_duplicate_dependencies_collapse() -> None:
    graph = _graph({"core": (), "flow": ("core", "core")})

    assert graph.edge_count() == 1
    assert graph.dependents("core") == ["flow"]
    assert _levels(graph) == [["core"], ["flow"]]


def test_self_and_unknown_dependencies_dropped() -> None:
    graph = _graph({"core": ("core", "missing")})
    assert graph.edge_count() == 0
    assert _levels(graph) == [["core"]]


def test_subset_ignores_outside_edges() -> None:
    graph = _graph({"core": (), "context": ("core",), "flow": ("context",)})
    assert _levels(graph, ["flow", "context"]) == [["context"], ["flow"]]


@pytest.mark.parametrize(
    "deps",
    [
        {"a": (), "b": ("a",), "c": ("b",), "d": ("a", "c")},
        {"x": (), "y": (), "z": ("x", "y"), "w": ("z",), "v": ("x",)},
        {"m1": (), "m2": ("m1",), "m3": ("m1",), "m4": ("m2", "m3"), "m5": ()},
    ],
)
def test_every_edge_points_to_an_earlier_level(deps: dict[str, tuple[str, ...]]) -> None:
    graph = _graph(deps)
    levels = _levels(graph)
    level_of = {name: i for i, level in enumerate(levels) for name in level}

    assert sorted(level_of) == sorted(deps)
    for name, targets in graph.edges.items():
        for dep in targets:
            assert level_of[dep] < level_of[name]
    for level in levels:
        assert level == sorted(level)


def test_transitive_dependents() -> None:
    graph = _graph({"core": (), "context": ("core",), "flow": ("context",), "ui": ()})
    assert graph.transitive_dependents(["core"]) == {"context", "flow"}
