"""Compute a release plan from git history and the dependency graph.

For every workspace: the current version is the latest tag, the commits
since that tag drive the bump suggestion. Workspaces without commits are
still selected (as a patch) when one of their dependencies is released,
so dependents always pick up new versions. Release levels come from the
topological sort restricted to the selected workspaces.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from eco.core.result import Err, Ok, Result
from eco.git.repository import Repository
from eco.graph.model import Graph
from eco.graph.sort import DependencyCycleError, topological_levels
from eco.output.console import ConsoleProtocol, Style
from eco.release.commits import suggest_bump
from eco.release.errors import ReleaseError
from eco.release.model import Bump, ReleasePlan, RepoReleasePlan
from eco.release.semver import INITIAL_VERSION, bump_tag

__all__ = ["PlanError", "plan_release", "select_bump", "set_selected"]

PlanError = ReleaseError | DependencyCycleError


def _repo_plan(name: str, path: Path) -> Result[RepoReleasePlan, ReleaseError]:
    repo = Repository(path)
    tag = repo.latest_tag()
    if isinstance(tag, Err):
        return Err(
            ReleaseError(
                kind="git_failed",
                message=f"{name}: cannot read tags: {tag.error.message}",
            )
        )
    current = tag.value or INITIAL_VERSION

    subjects = repo.commit_subjects(tag.value)
    if isinstance(subjects, Err):
        return Err(
            ReleaseError(
                kind="git_failed",
                message=f"{name}: cannot read commits: {subjects.error.message}",
            )
        )

    bump, reason = suggest_bump(subjects.value)
    next_version = bump_tag(current, bump) if bump else current
    if next_version is None:
        return Err(
            ReleaseError(
                kind="invalid_input",
                message=f"{name}: latest tag {current!r} is not a vX.Y.Z version",
                hint="Tag the repo with a semantic version before releasing.",
            )
        )

    return Ok(
        RepoReleasePlan(
            current_version=current,
            next_version=next_version,
            suggested_bump=bump,
            selected_bump=bump,
            suggestion_reasoning=reason,
            selected=bump is not None,
            commits=subjects.value,
        )
    )


def plan_release(
    *,
    root: Path,
    graph: Graph,
    console: ConsoleProtocol,
    only: list[str] | None = None,
) -> Result[ReleasePlan, PlanError]:
    names = graph.names()
    if only:
        unknown = sorted(set(only) - set(names))
        if unknown:
            return Err(
                ReleaseError(
                    kind="invalid_input",
                    message=f"unknown workspace(s): {', '.join(unknown)}",
                    hint=f"Known: {', '.join(names)}",
                )
            )
        names = sorted(set(only) | graph.transitive_dependents(only))

    repos: dict[str, RepoReleasePlan] = {}
    for name in names:
        result = _repo_plan(name, graph.nodes[name].path)
        if isinstance(result, Err):
            return result
        repos[name] = result.value

    changed = [name for name, repo in repos.items() if repo.selected]
    for name in sorted(graph.transitive_dependents(changed)):
        repo = repos.get(name)
        if repo is None or repo.selected:
            continue
        bumped = select_bump(repo, "patch")
        if isinstance(bumped, Err):
            return Err(
                ReleaseError(
                    kind="invalid_input",
                    message=f"{name}: {bumped.error.message}",
                    hint="Tag the repo with a semantic version before releasing.",
                )
            )
        repo.suggested_bump = "patch"
        repo.suggestion_reasoning = "dependency update"
        repo.selected = True
        console.print(f"{name}: selected for dependency update", Style.DIM)

    levels = topological_levels(graph, subset=[n for n, r in repos.items() if r.selected])
    if isinstance(levels, Err):
        return levels

    return Ok(
        ReleasePlan(
            root_dir=root,
            created_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
            release_levels=levels.value,
            repos=repos,
        )
    )


def select_bump(repo: RepoReleasePlan, bump: Bump) -> Result[None, ReleaseError]:
    """Override the bump; next_version follows the current version."""
    next_version = bump_tag(repo.current_version, bump)
    if next_version is None:
        return Err(
            ReleaseError(
                kind="invalid_input",
                message=f"current version {repo.current_version!r} is not semantic",
            )
        )
    repo.selected_bump = bump
    repo.next_version = next_version
    return Ok(None)


def set_selected(plan: ReleasePlan, graph: Graph, name: str, selected: bool) -> Result[None, PlanError]:
    """Include or exclude a repo and recompute the release levels."""
    repo = plan.repos.get(name)
    if repo is None:
        return Err(ReleaseError(kind="invalid_input", message=f"{name} is not in the plan"))
    if repo.started:
        return Err(
            ReleaseError(
                kind="invalid_input",
                message=f"{name} is already partially released",
                hint="Finish the release with: eco release apply",
            )
        )

    if selected and repo.selected_bump is None:
        bumped = select_bump(repo, "patch")
        if isinstance(bumped, Err):
            return Err(
                ReleaseError(
                    kind="invalid_input",
                    message=f"{name}: {bumped.error.message}",
                    hint="Tag the repo with a semantic version before releasing.",
                )
            )
    repo.selected = selected

    levels = topological_levels(graph, subset=[n for n, r in plan.repos.items() if r.selected])
    if isinstance(levels, Err):
        return levels
    plan.release_levels = levels.value
    return Ok(None)
