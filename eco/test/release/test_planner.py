"""Tests for release planning against real git histories."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from eco.core.result import Err, Ok
from eco.graph.model import Graph, Node
from eco.output.console import MockConsole
from eco.release.model import RepoReleasePlan
from eco.release.planner import plan_release, select_bump, set_selected

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


@pytest.fixture(autouse=True)
def git_identity(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    gitconfig = tmp_path / "gitconfig"
    gitconfig.write_text("", encoding="utf-8")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(gitconfig))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for key in ("GIT_AUTHOR", "GIT_COMMITTER"):
        monkeypatch.setenv(f"{key}_NAME", "Eco Test")
        monkeypatch.setenv(f"{key}_EMAIL", "eco@example.com")


def _git(repo: Path, *args: str) -> None:
    subprocess.run(["git", "-C", str(repo), *args], check=True, capture_output=True)


def _repo(root: Path, name: str, *, commits: list[str], tag: str | None = None) -> Path:
    """Create a repo: an initial commit, an optional tag, then `commits`."""
    path = root / name
    path.mkdir()
    _git(path, "init", "-b", "main")
    (path / "README.md").write_text(f"# {name}\n", encoding="utf-8")
    _git(path, "add", "README.md")
    _git(path, "commit", "-m", "chore: init")
    if tag:
        _git(path, "tag", tag)
    for i, message in enumerate(commits):
        (path / f"change{i}.txt").write_text(message, encoding="utf-8")
        _git(path, "add", ".")
        _git(path, "commit", "-m", message)
    return path


def _graph(root: Path, deps: dict[str, tuple[str, ...]]) -> Graph:
    return Graph.from_nodes(
        Node(name=name, path=root / name, project_type="go", dependencies=d)
        for name, d in deps.items()
    )


@pytest.fixture
def ecosystem(tmp_path: Path) -> tuple[Path, Graph]:
    root = tmp_path / "eco"
    root.mkdir()
    _repo(root, "core", commits=["feat: topics", "fix: leak"], tag="v0.1.0")
    _repo(root, "context", commits=[], tag="v0.3.0")
    _repo(root, "flow", commits=[], tag="v1.2.0")
    _repo(root, "ui", commits=[], tag="v2.0.0")
    graph = _graph(
        root,
        {"core": (), "context": ("core",), "flow": ("context",), "ui": ()},
    )
    return root, graph


def test_changed_repo_and_its_dependents_are_planned(ecosystem: tuple[Path, Graph]) -> None:
    root, graph = ecosystem
    console = MockConsole()

    result = plan_release(root=root, graph=graph, console=console)

    assert isinstance(result, Ok)
    plan = result.value
    assert plan.release_levels == [["core"], ["context"], ["flow"]]

    core = plan.repos["core"]
    assert (core.current_version, core.next_version) == ("v0.1.0", "v0.2.0")
    assert core.suggested_bump == "minor"
    assert core.commits == ["fix: leak", "feat: topics"]

    context = plan.repos["context"]
    assert context.next_version == "v0.3.1"
    assert context.suggestion_reasoning == "dependency update"
    assert plan.repos["flow"].next_version == "v1.2.1"

    ui = plan.repos["ui"]
    assert not ui.selected
    assert ui.next_version == "v2.0.0"
    assert console.find("context: selected for dependency update")


def test_untagged_repo_starts_from_zero(tmp_path: Path) -> None:
    _repo(tmp_path, "fresh", commits=["feat: hello"])
    graph = _graph(tmp_path, {"fresh": ()})

    result = plan_release(root=tmp_path, graph=graph, console=MockConsole())

    assert isinstance(result, Ok)
    repo = result.value.repos["fresh"]
    assert repo.current_version == "v0.0.0"
    assert repo.next_version == "v0.1.0"
    assert repo.commits == ["feat: hello", "chore: init"]


def test_only_limits_to_dependents(ecosystem: tuple[Path, Graph]) -> None:
    root, graph = ecosystem

    result = plan_release(root=root, graph=graph, console=MockConsole(), only=["context"])

    assert isinstance(result, Ok)
    assert sorted(result.value.repos) == ["context", "flow"]
    assert result.value.release_levels == []


def test_only_rejects_unknown(ecosystem: tuple[Path, Graph]) -> None:
    root, graph = ecosystem

    result = plan_release(root=root, graph=graph, console=MockConsole(), only=["nope"])

    assert isinstance(result, Err)
    assert result.error.message == "unknown workspace(s): nope"


def test_non_semver_tag_is_rejected(tmp_path: Path) -> None:
    _repo(tmp_path, "odd", commits=["fix: a"], tag="nightly")
    graph = _graph(tmp_path, {"odd": ()})

    result = plan_release(root=tmp_path, graph=graph, console=MockConsole())

    assert isinstance(result, Err)
    assert "not a vX.Y.Z version" in result.error.message


def test_deselect_recomputes_levels(ecosystem: tuple[Path, Graph]) -> None:
    root, graph = ecosystem
    plan = plan_release(root=root, graph=graph, console=MockConsole())
    assert isinstance(plan, Ok)

    assert isinstance(set_selected(plan.value, graph, "context", False), Ok)

    assert plan.value.release_levels == [["core", "flow"]]


def test_started_repo_cannot_be_deselected(ecosystem: tuple[Path, Graph]) -> None:
    root, graph = ecosystem
    plan = plan_release(root=root, graph=graph, console=MockConsole())
    assert isinstance(plan, Ok)
    plan.value.repos["core"].changelog_pushed = True

    result = set_selected(plan.value, graph, "core", False)

    assert isinstance(result, Err)
    assert "partially released" in result.error.message


def test_select_bump_recomputes_next_version() -> None:
    repo = RepoReleasePlan(current_version="v0.4.2", next_version="v0.4.3")

    assert select_bump(repo, "major") == Ok(None)

    assert repo.selected_bump == "major"
    assert repo.next_version == "v1.0.0"


def test_select_bump_rejects_non_semver() -> None:
    repo = RepoReleasePlan(current_version="nightly", next_version="nightly")

    result = select_bump(repo, "patch")

    assert isinstance(result, Err)
    assert result.error.kind == "invalid_input"
    assert "not semantic" in result.error.message
    assert repo.next_version == "nightly"


def test_dependent_with_non_semver_tag_is_an_error(tmp_path: Path) -> None:
    _repo(tmp_path, "core", commits=["feat: topics"], tag="v0.1.0")
    _repo(tmp_path, "app", commits=[], tag="release-1")
    graph = _graph(tmp_path, {"core": (), "app": ("core",)})

    result = plan_release(root=tmp_path, graph=graph, console=MockConsole())

    assert isinstance(result, Err)
    assert result.error.message == "app: current version 'release-1' is not semantic"


def test_selecting_non_semver_repo_is_an_error(tmp_path: Path) -> None:
    _repo(tmp_path, "core", commits=["feat: topics"], tag="v0.1.0")
    _repo(tmp_path, "tools", commits=[], tag="release-1")
    graph = _graph(tmp_path, {"core": (), "tools": ()})
    plan = plan_release(root=tmp_path, graph=graph, console=MockConsole())
    assert isinstance(plan, Ok)

    result = set_selected(plan.value, graph, "tools", True)

    assert isinstance(result, Err)
    assert "not semantic" in result.error.message
    assert not plan.value.repos["tools"].selected
    assert plan.value.release_levels == [["core"]]
