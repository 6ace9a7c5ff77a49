from __future__ import annotations

import json
from pathlib import Path

from eco.core.result import Err, Ok, Result
from eco.core.structured import (
    StrDict,
    as_obj_list,
    as_str_dict,
    get_bool,
    get_int,
    get_str,
    get_str_list,
    get_table,
)
from eco.platform.files import atomic_write_text
from eco.release.errors import ReleaseError
from eco.release.model import (
    CHANGELOG_FILE,
    Bump,
    ChangelogState,
    ReleasePlan,
    RepoReleasePlan,
)

PLAN_SCHEMA = 1

_BUMPS: tuple[Bump, ...] = ("major", "minor", "patch")
_STATES: tuple[ChangelogState, ...] = ("none", "clean", "dirty")


def plan_to_dict(plan: ReleasePlan) -> dict[str, object]:
    return {
        "schema": PLAN_SCHEMA,
        "created_at": plan.created_at,
        "root_dir": str(plan.root_dir),
        "release_levels": [list(level) for level in plan.release_levels],
        "repos": {
            name: {
                "current_version": repo.current_version,
                "next_version": repo.next_version,
                "suggested_bump": repo.suggested_bump,
                "selected_bump": repo.selected_bump,
                "suggestion_reasoning": repo.suggestion_reasoning,
                "selected": repo.selected,
                "commits": list(repo.commits),
                "changelog_path": repo.changelog_path,
                "changelog_hash": repo.changelog_hash,
                "changelog_state": repo.changelog_state,
                "changelog_pushed": repo.changelog_pushed,
                "tag_pushed": repo.tag_pushed,
                "ci_passed": repo.ci_passed,
                "last_failed_operation": repo.last_failed_operation,
            }
            for name, repo in sorted(plan.repos.items())
        },
    }


def write_plan_file(*, path: Path, plan: ReleasePlan) -> Result[None, ReleaseError]:
    try:
        atomic_write_text(path, json.dumps(plan_to_dict(plan), indent=2) + "\n")
    except OSError as e:
        return Err(
            ReleaseError(
                kind="plan_io_failed",
                message=f"failed to write plan file: {e}",
                hint=str(path),
            )
        )
    return Ok(None)


def _bump(value: str | None) -> Bump | None:
    for bump in _BUMPS:
        if value == bump:
            return bump
    return None


def _state(value: str | None) -> ChangelogState | None:
    for state in _STATES:
        if value == state:
            return state
    return None


def _repo_from_dict(name: str, data: StrDict, *, path: Path) -> Result[RepoReleasePlan, ReleaseError]:
    current = get_str(data, "current_version")
    next_version = get_str(data, "next_version")
    if current is None or next_version is None:
        return Err(
            ReleaseError(
                kind="invalid_plan",
                message=f"repo {name!r} is missing current_version/next_version",
                hint=str(path),
            )
        )

    state = _state(get_str(data, "changelog_state") or "none")
    if state is None:
        return Err(
            ReleaseError(
                kind="invalid_plan",
                message=f"repo {name!r} has invalid changelog_state",
                hint=str(path),
            )
        )

    return Ok(
        RepoReleasePlan(
            current_version=current,
            next_version=next_version,
            suggested_bump=_bump(get_str(data, "suggested_bump")),
            selected_bump=_bump(get_str(data, "selected_bump")),
            suggestion_reasoning=get_str(data, "suggestion_reasoning") or "",
            selected=get_bool(data, "selected", default=True),
            commits=get_str_list(data, "commits"),
            changelog_path=get_str(data, "changelog_path") or CHANGELOG_FILE,
            changelog_hash=get_str(data, "changelog_hash"),
            changelog_state=state,
            changelog_pushed=get_bool(data, "changelog_pushed"),
            tag_pushed=get_bool(data, "tag_pushed"),
            ci_passed=get_bool(data, "ci_passed"),
            last_failed_operation=get_str(data, "last_failed_operation"),
        )
    )


def plan_from_dict(data: StrDict, *, path: Path) -> Result[ReleasePlan, ReleaseError]:
    schema = get_int(data, "schema")
    if schema != PLAN_SCHEMA:
        return Err(
            ReleaseError(
                kind="invalid_plan",
                message=f"unsupported plan schema: {schema}",
                hint=str(path),
            )
        )

    root_dir = get_str(data, "root_dir")
    if root_dir is None:
        return Err(ReleaseError(kind="invalid_plan", message="missing root_dir", hint=str(path)))

    levels: list[list[str]] = []
    for item in as_obj_list(data.get("release_levels")) or []:
        level = as_obj_list(item)
        if level is None or not all(isinstance(n, str) for n in level):
            return Err(
                ReleaseError(
                    kind="invalid_plan",
                    message="release_levels must be a list of name lists",
                    hint=str(path),
                )
            )
        levels.append([str(n) for n in level])

    repos: dict[str, RepoReleasePlan] = {}
    for name, raw in (get_table(data, "repos") or {}).items():
        repo_data = as_str_dict(raw)
        if repo_data is None:
            return Err(
                ReleaseError(
                    kind="invalid_plan",
                    message=f"repo {name!r} must be an object",
                    hint=str(path),
                )
            )
        repo = _repo_from_dict(name, repo_data, path=path)
        if isinstance(repo, Err):
            return repo
        repos[name] = repo.value

    return Ok(
        ReleasePlan(
            root_dir=Path(root_dir),
            created_at=get_str(data, "created_at") or "",
            release_levels=levels,
            repos=repos,
        )
    )


def read_plan_file(*, path: Path) -> Result[ReleasePlan, ReleaseError]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return Err(
            ReleaseError(
                kind="invalid_plan",
                message="no release plan found",
                hint="Run: eco release plan",
            )
        )
    except OSError as e:
        return Err(
            ReleaseError(
                kind="plan_io_failed",
                message=f"failed to read plan file: {e}",
                hint=str(path),
            )
        )

    try:
        obj: object = json.loads(text)
    except json.JSONDecodeError as e:
        return Err(
            ReleaseError(
                kind="invalid_plan",
                message=f"invalid JSON in plan file: {e}",
                hint=str(path),
            )
        )

    data = as_str_dict(obj)
    if data is None:
        return Err(
            ReleaseError(
                kind="invalid_plan",
                message="plan file root must be a JSON object",
                hint=str(path),
            )
        )
    return plan_from_dict(data, path=path)
