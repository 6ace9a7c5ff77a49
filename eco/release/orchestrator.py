"""Drive a release plan to completion, level by level.

Within a level, every selected repo goes through:

1. dependencies: point workspace-local dependencies at the versions tagged
   in earlier levels (manifest and lock files are snapshotted first)
2. build: the level's build (or verify) jobs run in parallel, fail-fast
3. changelog/commit/push: write the changelog section if none exists yet,
   commit "chore(release): vX" and push
4. tag: `git tag -a vX` and `git push origin vX`
5. ci_wait: wait for CI and the release workflow of the tag

A level only starts once every repo of the previous level has finished
step 5. The plan is saved after every step; flags already set on a repo
make a re-run skip the corresponding steps.

On failure, the local and unpublished mutations of the level are undone
(release files unstaged, file snapshots restored, a local tag that never
got pushed deleted), then the original error is returned.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from eco.build.model import BuildJob, BuildResult, RunOptions
from eco.build.runner import BuildRunner
from eco.core.cancel import CancelSignal
from eco.core.config import EcoConfig
from eco.core.result import Err, Ok, Result
from eco.core.workspace import Ecosystem
from eco.git.repository import Repository
from eco.graph.model import Graph
from eco.output.console import ConsoleProtocol, Style
from eco.project.base import ProjectHandler
from eco.project.registry import HandlerRegistry
from eco.release.changelog import (
    has_version_section,
    refresh_changelog_state,
    render_section,
    write_changelog,
)
from eco.release.errors import PhaseError, ReleasePhase
from eco.release.gh import ensure_gh_auth, ensure_gh_available, repo_slug
from eco.release.model import ReleasePlan, RepoReleasePlan
from eco.release.plan_file import write_plan_file
from eco.release.wait import WaitSettings, wait_for_release
from eco.rollback.snapshot import RollbackError, RollbackReport, SnapshotSet, report_rollback

__all__ = ["ApplyOptions", "ReleaseOrchestrator"]


@dataclass(frozen=True, slots=True)
class ApplyOptions:
    """Options for `eco release apply`.

    Attributes:
        dry_run: Print the steps without touching anything
        skip_ci: Mark repos as passed without waiting for workflows
        workers: Build pool size (0 = config / cpu count)
        verify: Run the verify target instead of build
    """

    dry_run: bool = False
    skip_ci: bool = False
    workers: int = 0
    verify: bool = False


def _empty_updates() -> list[str]:
    return []


@dataclass(slots=True)
class _RepoRun:
    """In-memory bookkeeping for one repo during one apply run."""

    name: str
    path: Path
    handler: ProjectHandler
    snapshots: SnapshotSet = field(default_factory=SnapshotSet)
    dependency_updates: list[str] = field(default_factory=_empty_updates)
    wrote_changelog: bool = False
    staged: list[str] = field(default_factory=_empty_updates)
    local_tag: str | None = None


def _has_workflows(repo_dir: Path) -> bool:
    workflows = repo_dir / ".github" / "workflows"
    return workflows.is_dir() and any(workflows.iterdir())


class ReleaseOrchestrator:
    def __init__(
        self,
        *,
        ecosystem: Ecosystem,
        config: EcoConfig,
        graph: Graph,
        registry: HandlerRegistry,
        console: ConsoleProtocol,
        options: ApplyOptions | None = None,
        cancel: CancelSignal | None = None,
    ) -> None:
        self._ecosystem = ecosystem
        self._config = config
        self._graph = graph
        self._registry = registry
        self._console = console
        self._options = options or ApplyOptions()
        self._cancel = cancel or CancelSignal()

    def apply(self, plan: ReleasePlan) -> Result[ReleasePlan, PhaseError]:
        if self._options.dry_run:
            self._print_dry_run(plan)
            return Ok(plan)

        runs = self._preflight(plan)
        if isinstance(runs, Err):
            return runs

        for index, level in enumerate(plan.release_levels):
            names = [n for n in level if n in runs.value and not plan.repos[n].released]
            if not names:
                continue
            self._console.header(f"Level {index}: {', '.join(names)}")
            result = self._release_level(plan, [runs.value[n] for n in names])
            if isinstance(result, Err):
                return result

        self._console.success("release complete")
        return Ok(plan)

    # Preflight

    def _preflight(self, plan: ReleasePlan) -> Result[dict[str, _RepoRun], PhaseError]:
        runs: dict[str, _RepoRun] = {}
        needs_gh = False

        for name in plan.ordered_repos():
            repo = plan.repos[name]
            if repo.released:
                continue
            node = self._graph.nodes.get(name)
            if node is None:
                return Err(
                    PhaseError(
                        phase="preflight",
                        repo=name,
                        message="workspace is no longer part of the ecosystem",
                        hint="Recompute the plan: eco release plan",
                    )
                )
            handler = self._registry.get(node.project_type)
            if isinstance(handler, Err):
                return Err(PhaseError(phase="preflight", repo=name, message=handler.error.message))

            git = Repository(node.path)
            if not git.exists():
                return Err(PhaseError(phase="preflight", repo=name, message="not a git repository"))
            if not repo.changelog_pushed:
                dirty = git.dirty_paths()
                if isinstance(dirty, Err):
                    return Err(PhaseError(phase="preflight", repo=name, message=dirty.error.message))
                unexpected = [p for p in dirty.value if p != repo.changelog_path]
                if unexpected:
                    return Err(
                        PhaseError(
                            phase="preflight",
                            repo=name,
                            message="working tree has uncommitted changes",
                            detail="\n".join(unexpected),
                            hint="Commit or stash them before releasing.",
                        )
                    )

            if not self._options.skip_ci and _has_workflows(node.path):
                needs_gh = True
            runs[name] = _RepoRun(name=name, path=node.path, handler=handler.value)

        if needs_gh:
            gh = ensure_gh_available()
            if isinstance(gh, Ok):
                gh = ensure_gh_auth(cwd=self._ecosystem.root)
            if isinstance(gh, Err):
                return Err(
                    PhaseError(
                        phase="preflight",
                        repo=None,
                        message=gh.error.message,
                        hint=gh.error.hint,
                    )
                )
        return Ok(runs)

    # Level driver

    def _release_level(self, plan: ReleasePlan, runs: list[_RepoRun]) -> Result[None, PhaseError]:
        pending = [r for r in runs if not plan.repos[r.name].changelog_pushed]

        for run in pending:
            updated = self._update_dependencies(plan, run)
            if isinstance(updated, Err):
                return self._fail(plan, runs, updated.error)

        built = self._build(pending)
        if isinstance(built, Err):
            return self._fail(plan, runs, built.error)

        for run in runs:
            published = self._publish(plan, run)
            if isinstance(published, Err):
                return self._fail(plan, runs, published.error)
        return Ok(None)

    def _publish(self, plan: ReleasePlan, run: _RepoRun) -> Result[None, PhaseError]:
        repo = plan.repos[run.name]
        steps = (
            (repo.changelog_pushed, self._changelog_commit_push),
            (repo.tag_pushed, self._tag),
            (repo.ci_passed, self._wait_ci),
        )
        for done, step in steps:
            if done:
                continue
            if self._cancel.is_set():
                return Err(
                    PhaseError(phase="push", repo=run.name, message=f"cancelled: {self._cancel.reason}")
                )
            result = step(plan, run)
            if isinstance(result, Err):
                return result
        self._console.success(f"{run.name} {repo.next_version} released")
        return Ok(None)

    # Steps

    def _update_dependencies(self, plan: ReleasePlan, run: _RepoRun) -> Result[None, PhaseError]:
        repo = plan.repos[run.name]
        snap = run.snapshots.capture_all(run.handler.mutated_files(run.path))
        if isinstance(snap, Err):
            return Err(PhaseError(phase="dependencies", repo=run.name, message=snap.error.message))

        for dep in self._graph.dependencies(run.name):
            dep_plan = plan.repos.get(dep)
            if dep_plan is None or not dep_plan.selected or not dep_plan.tag_pushed:
                continue
            node = self._graph.nodes[dep]
            reference = node.identity or dep
            self._console.print(f"{run.name}: {reference} -> {dep_plan.next_version}", Style.DIM)
            result = run.handler.update_dependency(run.path, reference, dep_plan.next_version)
            if isinstance(result, Err):
                return Err(
                    PhaseError(
                        phase="dependencies",
                        repo=run.name,
                        message=result.error.message,
                        detail=result.error.hint,
                    )
                )
            run.dependency_updates.append(f"{reference} {dep_plan.next_version}")

        version = run.handler.set_version(run.path, repo.next_version)
        if isinstance(version, Err) and version.error.kind != "not_supported":
            return Err(PhaseError(phase="dependencies", repo=run.name, message=version.error.message))
        return Ok(None)

    def _build(self, runs: list[_RepoRun]) -> Result[None, PhaseError]:
        if not runs:
            return Ok(None)

        jobs = [
            BuildJob(
                name=run.name,
                cwd=run.path,
                command=tuple(
                    run.handler.verify_command()
                    if self._options.verify
                    else run.handler.build_command()
                ),
            )
            for run in runs
        ]
        options = RunOptions(
            workers=self._options.workers or self._config.build.workers,
            continue_on_error=False,
            extra_path_dirs=tuple(self._ecosystem.root / p for p in self._config.build.extra_path),
        )

        failure: BuildResult | None = None
        for result in BuildRunner(options).run(jobs, cancel=self._cancel):
            if result.ok:
                self._console.success(f"{result.job.name} built ({result.duration:.1f}s)")
            elif result.failed and failure is None:
                failure = result
                self._console.error(f"{result.job.name} build failed")
            elif result.cancelled:
                self._console.print(f"{result.job.name}: build cancelled", Style.DIM)

        if failure is not None and failure.error is not None:
            return Err(
                PhaseError(
                    phase="build",
                    repo=failure.job.name,
                    message=f"build failed: {failure.error.message}",
                    detail=failure.output,
                )
            )
        if self._cancel.is_set():
            return Err(
                PhaseError(phase="build", repo=None, message=f"cancelled: {self._cancel.reason}")
            )
        return Ok(None)

    def _ensure_changelog(self, run: _RepoRun, repo: RepoReleasePlan) -> Result[None, PhaseError]:
        state = refresh_changelog_state(run.path, repo)
        if state == "none":
            snap = run.snapshots.capture(run.path / repo.changelog_path)
            if isinstance(snap, Err):
                return Err(PhaseError(phase="changelog", repo=run.name, message=snap.error.message))
            section = render_section(
                repo.next_version,
                repo.commits,
                dependency_updates=run.dependency_updates,
            )
            written = write_changelog(run.path, repo, section)
            if isinstance(written, Err):
                return Err(
                    PhaseError(phase="changelog", repo=run.name, message=written.error.message)
                )
            run.wrote_changelog = True
            return Ok(None)

        if state == "dirty":
            self._console.warning(f"{run.name}: {repo.changelog_path} was edited; keeping edits")
        try:
            text = (run.path / repo.changelog_path).read_text(encoding="utf-8")
        except OSError as e:
            return Err(PhaseError(phase="changelog", repo=run.name, message=str(e)))
        if not has_version_section(text, repo.next_version):
            return Err(
                PhaseError(
                    phase="changelog",
                    repo=run.name,
                    message=f"{repo.changelog_path} has no section for {repo.next_version}",
                    hint=f"Regenerate it: eco release changelog {run.name}",
                )
            )
        return Ok(None)

    def _changelog_commit_push(self, plan: ReleasePlan, run: _RepoRun) -> Result[None, PhaseError]:
        repo = plan.repos[run.name]
        changelog = self._ensure_changelog(run, repo)
        if isinstance(changelog, Err):
            return changelog
        saved = self._save(plan, "changelog", run.name)
        if isinstance(saved, Err):
            return saved

        git = Repository(run.path)
        paths = [repo.changelog_path]
        paths += [str(p.relative_to(run.path)) for p in run.snapshots.paths() if p.exists()]
        run.staged = sorted(set(paths))
        added = git.add(run.staged)
        if isinstance(added, Err):
            return Err(PhaseError(phase="commit", repo=run.name, message=added.error.message))
        if git.has_staged_changes():
            committed = git.commit(f"chore(release): {repo.next_version}")
            if isinstance(committed, Err):
                return Err(
                    PhaseError(phase="commit", repo=run.name, message=committed.error.message)
                )
        # Committed: the snapshots no longer describe unpublished state.
        run.snapshots = SnapshotSet()
        run.staged = []
        run.wrote_changelog = False

        pushed = git.push(ref="HEAD")
        if isinstance(pushed, Err):
            return Err(
                PhaseError(
                    phase="push",
                    repo=run.name,
                    message=pushed.error.message,
                    hint="Fix access to origin, then re-run: eco release apply",
                )
            )
        repo.changelog_pushed = True
        return self._save(plan, "push", run.name)

    def _tag(self, plan: ReleasePlan, run: _RepoRun) -> Result[None, PhaseError]:
        repo = plan.repos[run.name]
        tag = repo.next_version
        git = Repository(run.path)

        if not git.tag_exists(tag):
            created = git.create_tag(tag, f"Release {tag}")
            if isinstance(created, Err):
                return Err(PhaseError(phase="tag", repo=run.name, message=created.error.message))
            run.local_tag = tag

        pushed = git.push(ref=tag)
        if isinstance(pushed, Err):
            return Err(PhaseError(phase="tag", repo=run.name, message=pushed.error.message))
        run.local_tag = None
        repo.tag_pushed = True
        return self._save(plan, "tag", run.name)

    def _wait_ci(self, plan: ReleasePlan, run: _RepoRun) -> Result[None, PhaseError]:
        repo = plan.repos[run.name]
        if self._options.skip_ci:
            self._console.print(f"{run.name}: CI wait skipped", Style.DIM)
        elif not _has_workflows(run.path):
            self._console.print(f"{run.name}: no workflows, nothing to wait for", Style.DIM)
        else:
            slug = repo_slug(run.path)
            if isinstance(slug, Err):
                return Err(
                    PhaseError(
                        phase="ci_wait",
                        repo=run.name,
                        message=slug.error.message,
                        hint=slug.error.hint,
                    )
                )
            waited = wait_for_release(
                repo_dir=run.path,
                slug=slug.value,
                tag=repo.next_version,
                settings=WaitSettings.from_config(self._config.ci),
                console=self._console,
                cancel=self._cancel,
            )
            if isinstance(waited, Err):
                return Err(PhaseError(phase="ci_wait", repo=run.name, message=waited.error.message))

        repo.ci_passed = True
        return self._save(plan, "ci_wait", run.name)

    # Persistence / failure handling

    def _save(self, plan: ReleasePlan, phase: ReleasePhase, name: str) -> Result[None, PhaseError]:
        plan.repos[name].last_failed_operation = None
        result = write_plan_file(path=self._ecosystem.plan_path, plan=plan)
        if isinstance(result, Err):
            return Err(
                PhaseError(
                    phase=phase,
                    repo=name,
                    message=result.error.message,
                    hint=result.error.hint,
                )
            )
        return Ok(None)

    def _fail(
        self, plan: ReleasePlan, runs: list[_RepoRun], error: PhaseError
    ) -> Err[PhaseError]:
        report = RollbackReport(performed=[error.phase])
        for run in runs:
            if run.staged:
                unstaged = Repository(run.path).reset_paths(run.staged)
                if isinstance(unstaged, Err):
                    message = f"{run.name}: {unstaged.error.message}"
                    report.errors.append(RollbackError(step="unstage", message=message))
                run.staged = []
            run.snapshots.restore_all(report)
            if run.wrote_changelog:
                repo = plan.repos[run.name]
                repo.changelog_state = "none"
                repo.changelog_hash = None
            if run.local_tag is not None:
                deleted = Repository(run.path).delete_tag(run.local_tag)
                if isinstance(deleted, Err):
                    report.manual_steps.append(f"git -C {run.path} tag -d {run.local_tag}")

        if error.repo is not None and error.repo in plan.repos:
            plan.repos[error.repo].last_failed_operation = error.phase
        saved = write_plan_file(path=self._ecosystem.plan_path, plan=plan)
        if isinstance(saved, Err):
            self._console.warning(f"could not save plan: {saved.error.message}")

        if report.restored or report.removed or report.errors or report.manual_steps:
            report_rollback(report, self._console)
        return Err(error)

    def _print_dry_run(self, plan: ReleasePlan) -> None:
        verb = "verify" if self._options.verify else "build"
        for index, level in enumerate(plan.release_levels):
            names = [n for n in level if n in plan.repos and plan.repos[n].selected]
            if not names:
                continue
            self._console.header(f"Level {index}")
            for name in names:
                repo = plan.repos[name]
                if repo.released:
                    self._console.print(f"{name}: already released", Style.DIM)
                    continue
                tag = repo.next_version
                steps: list[str] = []
                if not repo.changelog_pushed:
                    deps = [d for d in self._graph.dependencies(name) if d in plan.repos]
                    if deps:
                        steps.append(f"update {', '.join(deps)}")
                    steps += [verb, "changelog", f"commit chore(release): {tag}", "push"]
                if not repo.tag_pushed:
                    steps.append(f"tag {tag} + push")
                if not repo.ci_passed and not self._options.skip_ci:
                    steps.append("wait for CI")
                self._console.print(f"{name} {repo.current_version} -> {tag}: {'; '.join(steps)}")
        self._console.print("dry-run: nothing changed", Style.DIM)
