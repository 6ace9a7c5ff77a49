"""CI / release workflow wait protocol.

Runs after a release tag has been pushed, in two phases:

Phase A (pre-existing CI): list the latest runs of the CI workflow. An
in-flight run is watched to completion; a completed latest run must have
succeeded. Finding no run (or failing to list runs) only prints a warning:
this phase is advisory.

Phase B (release workflow): poll every `poll_interval` seconds until a run
of the release workflow for the tag shows up, giving up after
`discovery_timeout`. The run is then watched until it finishes.

A single `overall_timeout`, started before phase A, bounds both watches.
A tripped CancelSignal stops polling and kills a running `gh run watch`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from time import monotonic, sleep

from eco.core.cancel import CancelSignal
from eco.core.config import CiConfig
from eco.core.result import Err, Ok, Result
from eco.core.structured import as_obj_list, as_str_dict, get_int, get_str
from eco.output.console import ConsoleProtocol, Style
from eco.platform.process import run as run_process
from eco.release.errors import (
    CIWorkflowError,
    DiscoveryTimeout,
    WaitPhase,
    WatchFailed,
    WorkflowFailed,
)
from eco.release.timeouts import (
    CI_DISCOVERY_TIMEOUT_SECONDS,
    CI_OVERALL_TIMEOUT_SECONDS,
    CI_POLL_INTERVAL_SECONDS,
    CI_PROGRESS_EVERY_ATTEMPTS,
    GH_TIMEOUT_SECONDS,
)

__all__ = ["WaitSettings", "WorkflowRun", "wait_for_ci", "wait_for_release", "wait_for_tag"]

_ACTIVE_STATUSES = frozenset({"in_progress", "queued", "requested", "waiting", "pending"})
_PASSING_CONCLUSIONS = frozenset({"success", "skipped", "neutral"})


@dataclass(frozen=True, slots=True)
class WaitSettings:
    ci_workflow: str = "CI"
    release_workflow: str = "Release"
    poll_interval: float = CI_POLL_INTERVAL_SECONDS
    discovery_timeout: float = CI_DISCOVERY_TIMEOUT_SECONDS
    overall_timeout: float = CI_OVERALL_TIMEOUT_SECONDS
    progress_every: int = CI_PROGRESS_EVERY_ATTEMPTS

    @classmethod
    def from_config(cls, ci: CiConfig) -> WaitSettings:
        return cls(
            ci_workflow=ci.ci_workflow,
            release_workflow=ci.release_workflow,
            poll_interval=ci.poll_interval_seconds,
            discovery_timeout=ci.discovery_timeout_seconds,
            overall_timeout=ci.overall_timeout_seconds,
        )


@dataclass(frozen=True, slots=True)
class WorkflowRun:
    id: int
    status: str | None = None
    conclusion: str | None = None
    head_branch: str | None = None
    workflow_name: str | None = None


def _parse_runs(payload: str) -> list[WorkflowRun] | None:
    try:
        obj: object = json.loads(payload)
    except json.JSONDecodeError:
        return None
    items = as_obj_list(obj)
    if items is None:
        return None

    runs: list[WorkflowRun] = []
    for item in items:
        d = as_str_dict(item)
        if d is None:
            continue
        run_id = get_int(d, "databaseId")
        if run_id is None:
            continue
        runs.append(
            WorkflowRun(
                id=run_id,
                status=get_str(d, "status"),
                conclusion=get_str(d, "conclusion"),
                head_branch=get_str(d, "headBranch"),
                workflow_name=get_str(d, "workflowName"),
            )
        )
    return runs


def _pause(seconds: float, cancel: CancelSignal | None) -> bool:
    """Sleep between polls; True if cancellation arrived meanwhile."""
    if cancel is None:
        sleep(seconds)
        return False
    return cancel.wait(seconds)


def _remaining(deadline: float) -> float:
    return max(deadline - monotonic(), 1.0)


def _watch(
    *,
    repo_dir: Path,
    slug: str,
    run_id: int,
    phase: WaitPhase,
    timeout: float,
    console: ConsoleProtocol,
    cancel: CancelSignal | None,
) -> Result[None, CIWorkflowError]:
    cmd = ["gh", "run", "watch", str(run_id), "--repo", slug, "--exit-status"]
    console.print(f"gh run watch {run_id} ({slug})", Style.DIM)
    result = run_process(cmd, cwd=repo_dir, timeout=timeout, cancel=cancel)
    if isinstance(result, Ok):
        return Ok(None)

    e = result.error
    if e.cancelled:
        return Err(WatchFailed(phase=phase, reason="cancelled"))
    if e.timed_out:
        return Err(WatchFailed(phase=phase, reason=f"run {run_id} still running after {timeout:.0f}s"))
    if not e.started:
        return Err(WatchFailed(phase=phase, reason=e.stderr.strip() or "gh could not be started"))
    return Err(WorkflowFailed(phase=phase, run_id=run_id, exit_code=e.returncode))


def wait_for_ci(
    *,
    repo_dir: Path,
    slug: str,
    settings: WaitSettings,
    console: ConsoleProtocol,
    cancel: CancelSignal | None = None,
    deadline: float | None = None,
) -> Result[None, CIWorkflowError]:
    """Phase A: settle the most recent CI run, if there is one.

    `deadline` is a monotonic() timestamp shared with phase B; without one
    the watch gets the full overall timeout.
    """
    if cancel is not None and cancel.is_set():
        return Err(WatchFailed(phase="ci", reason="cancelled"))

    cmd = [
        "gh",
        "run",
        "list",
        "--repo",
        slug,
        "--workflow",
        settings.ci_workflow,
        "--limit",
        "5",
        "--json",
        "databaseId,status,conclusion,createdAt",
    ]
    result = run_process(cmd, cwd=repo_dir, timeout=GH_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        console.warning(f"could not list {settings.ci_workflow} runs for {slug}; continuing")
        return Ok(None)

    runs = _parse_runs(result.value)
    if runs is None:
        console.warning(f"unexpected gh run list output for {slug}; continuing")
        return Ok(None)
    if not runs:
        console.print(f"no {settings.ci_workflow} runs found for {slug}", Style.DIM)
        return Ok(None)

    active = next((r for r in runs if r.status in _ACTIVE_STATUSES), None)
    if active is not None:
        console.print(f"waiting for {settings.ci_workflow} run {active.id}", Style.DIM)
        if deadline is None:
            deadline = monotonic() + settings.overall_timeout
        return _watch(
            repo_dir=repo_dir,
            slug=slug,
            run_id=active.id,
            phase="ci",
            timeout=_remaining(deadline),
            console=console,
            cancel=cancel,
        )

    latest = runs[0]
    if latest.status == "completed" and latest.conclusion not in _PASSING_CONCLUSIONS:
        return Err(WorkflowFailed(phase="ci", run_id=latest.id, conclusion=latest.conclusion))
    return Ok(None)


def _matches_tag(run: WorkflowRun, *, tag: str, workflow: str) -> bool:
    if run.head_branch not in (tag, f"refs/tags/{tag}"):
        return False
    name = run.workflow_name or ""
    return name == workflow or name.lower() == workflow.lower()


def wait_for_tag(
    *,
    repo_dir: Path,
    slug: str,
    tag: str,
    settings: WaitSettings,
    console: ConsoleProtocol,
    cancel: CancelSignal | None = None,
    deadline: float | None = None,
) -> Result[None, CIWorkflowError]:
    """Phase B: discover the release workflow run for `tag` and watch it."""
    workflow = settings.release_workflow
    cmd = [
        "gh",
        "run",
        "list",
        "--repo",
        slug,
        "--workflow",
        workflow,
        "--limit",
        "10",
        "--json",
        "databaseId,headBranch,event,workflowName",
    ]

    started = monotonic()
    discovery_deadline = started + settings.discovery_timeout
    overall_deadline = deadline if deadline is not None else started + settings.overall_timeout
    attempts = 0
    found: WorkflowRun | None = None

    while found is None:
        if cancel is not None and cancel.is_set():
            return Err(WatchFailed(phase="release", reason="cancelled"))

        attempts += 1
        result = run_process(cmd, cwd=repo_dir, timeout=GH_TIMEOUT_SECONDS)
        if isinstance(result, Ok):
            runs = _parse_runs(result.value) or []
            found = next((r for r in runs if _matches_tag(r, tag=tag, workflow=workflow)), None)
            if found is not None:
                break

        if attempts % settings.progress_every == 0:
            waited = monotonic() - started
            console.print(
                f"waiting for {workflow} run of {tag} ({attempts} attempts, {waited:.0f}s)",
                Style.DIM,
            )

        if monotonic() >= discovery_deadline:
            return Err(
                DiscoveryTimeout(
                    workflow=workflow,
                    tag=tag,
                    attempts=attempts,
                    waited_seconds=monotonic() - started,
                )
            )

        if _pause(settings.poll_interval, cancel):
            return Err(WatchFailed(phase="release", reason="cancelled"))

    console.print(f"found {workflow} run {found.id} for {tag}", Style.DIM)
    return _watch(
        repo_dir=repo_dir,
        slug=slug,
        run_id=found.id,
        phase="release",
        timeout=_remaining(overall_deadline),
        console=console,
        cancel=cancel,
    )


def wait_for_release(
    *,
    repo_dir: Path,
    slug: str,
    tag: str,
    settings: WaitSettings,
    console: ConsoleProtocol,
    cancel: CancelSignal | None = None,
) -> Result[None, CIWorkflowError]:
    """Run phase A then phase B for a pushed release tag, under one overall timeout."""
    deadline = monotonic() + settings.overall_timeout
    ci = wait_for_ci(
        repo_dir=repo_dir,
        slug=slug,
        settings=settings,
        console=console,
        cancel=cancel,
        deadline=deadline,
    )
    if isinstance(ci, Err):
        return ci
    if cancel is not None and cancel.is_set():
        return Err(WatchFailed(phase="ci", reason="cancelled"))
    return wait_for_tag(
        repo_dir=repo_dir,
        slug=slug,
        tag=tag,
        settings=settings,
        console=console,
        cancel=cancel,
        deadline=deadline,
    )
