from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True, slots=True)
class ReleaseError:
    kind: Literal[
        "gh_missing",
        "gh_auth_required",
        "invalid_input",
        "invalid_plan",
        "plan_io_failed",
        "repo_dirty",
        "git_failed",
        "changelog_failed",
        "remote_unknown",
    ]
    message: str
    hint: str | None = None


WaitPhase = Literal["ci", "release"]


@dataclass(frozen=True, slots=True)
class DiscoveryTimeout:
    """The release workflow run never appeared for the pushed tag."""

    workflow: str
    tag: str
    attempts: int
    waited_seconds: float

    @property
    def message(self) -> str:
        return (
            f"{self.workflow} workflow for {self.tag} not found after "
            f"{self.attempts} attempts ({self.waited_seconds:.0f}s)"
        )


@dataclass(frozen=True, slots=True)
class WorkflowFailed:
    """A watched run finished unsuccessfully.

    `exit_code` is the exit status of `gh run watch --exit-status`; it is None
    when the failure was read from an already-completed run's conclusion.
    """

    phase: WaitPhase
    run_id: int
    exit_code: int | None = None
    conclusion: str | None = None

    @property
    def message(self) -> str:
        what = "CI" if self.phase == "ci" else "release workflow"
        if self.exit_code is not None:
            return f"{what} run {self.run_id} failed (exit {self.exit_code})"
        return f"{what} run {self.run_id} concluded: {self.conclusion or 'unknown'}"


@dataclass(frozen=True, slots=True)
class WatchFailed:
    """The polling/watch tooling itself failed (gh missing, timeout, cancelled)."""

    phase: WaitPhase
    reason: str

    @property
    def message(self) -> str:
        return f"watching {self.phase} workflow failed: {self.reason}"


CIWorkflowError = DiscoveryTimeout | WorkflowFailed | WatchFailed


ReleasePhase = Literal[
    "preflight",
    "dependencies",
    "build",
    "changelog",
    "commit",
    "push",
    "tag",
    "ci_wait",
]


@dataclass(frozen=True, slots=True)
class PhaseError:
    """A failure tagged with the release phase (and repo) it happened in.

    `detail` carries long-form context such as captured build output.
    """

    phase: ReleasePhase
    repo: str | None
    message: str
    detail: str | None = None
    hint: str | None = None

    def __str__(self) -> str:
        where = f"{self.repo}: " if self.repo else ""
        return f"[{self.phase}] {where}{self.message}"
