"""Release plan state.

A ReleasePlan is created by the planner, edited by the operator (bump
overrides, deselection), then driven to completion by the orchestrator.
It is persisted between invocations so an interrupted release resumes
where it stopped: each per-repo flag is set right after its side effect
succeeded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

__all__ = [
    "Bump",
    "ChangelogState",
    "CHANGELOG_FILE",
    "ReleasePlan",
    "RepoReleasePlan",
]

Bump = Literal["major", "minor", "patch"]

# none -> clean -> dirty; only a rewrite goes back to clean
ChangelogState = Literal["none", "clean", "dirty"]

CHANGELOG_FILE = "CHANGELOG.md"


def _empty_commits() -> list[str]:
    return []


@dataclass(slots=True)
class RepoReleasePlan:
    current_version: str
    next_version: str
    suggested_bump: Bump | None = None
    selected_bump: Bump | None = None
    suggestion_reasoning: str = ""
    selected: bool = True
    commits: list[str] = field(default_factory=_empty_commits)
    changelog_path: str = CHANGELOG_FILE
    changelog_hash: str | None = None
    changelog_state: ChangelogState = "none"
    changelog_pushed: bool = False
    tag_pushed: bool = False
    ci_passed: bool = False
    last_failed_operation: str | None = None

    @property
    def released(self) -> bool:
        return self.tag_pushed and self.ci_passed

    @property
    def started(self) -> bool:
        return self.changelog_pushed or self.tag_pushed


def _empty_levels() -> list[list[str]]:
    return []


def _empty_repos() -> dict[str, RepoReleasePlan]:
    return {}


@dataclass(slots=True)
class ReleasePlan:
    root_dir: Path
    created_at: str
    release_levels: list[list[str]] = field(default_factory=_empty_levels)
    repos: dict[str, RepoReleasePlan] = field(default_factory=_empty_repos)

    def ordered_repos(self) -> list[str]:
        """Selected repos in release order."""
        return [
            name
            for level in self.release_levels
            for name in level
            if name in self.repos and self.repos[name].selected
        ]

    def level_of(self, name: str) -> int | None:
        for index, level in enumerate(self.release_levels):
            if name in level:
                return index
        return None

    def pending(self) -> list[str]:
        return [name for name in self.ordered_repos() if not self.repos[name].released]

    def is_complete(self) -> bool:
        return not self.pending()
