"""Release commands - plan, inspect, adjust and apply an ecosystem release."""

from __future__ import annotations

from enum import StrEnum

import typer

from eco.cli.commands._helpers import exit_with_code, unwrap_or_exit
from eco.cli.context import CLIContext, build_context, load_graph
from eco.core.cancel import CancelSignal
from eco.core.errors import ErrorCode
from eco.graph.model import Graph
from eco.output.console import Style
from eco.release.changelog import refresh_changelog_state, render_section, write_changelog
from eco.release.model import Bump, ReleasePlan
from eco.release.orchestrator import ApplyOptions, ReleaseOrchestrator
from eco.release.plan_file import read_plan_file, write_plan_file
from eco.release.planner import plan_release, select_bump, set_selected

release_app = typer.Typer(add_completion=False, no_args_is_help=True)


class BumpChoice(StrEnum):
    major = "major"
    minor = "minor"
    patch = "patch"


_BUMPS: dict[BumpChoice, Bump] = {
    BumpChoice.major: "major",
    BumpChoice.minor: "minor",
    BumpChoice.patch: "patch",
}


def _load_plan(ctx: CLIContext, g: Graph) -> ReleasePlan:
    """Read the saved plan and refresh each changelog state from disk."""
    plan = unwrap_or_exit(read_plan_file(path=ctx.ecosystem.plan_path), ctx)
    for name, repo in plan.repos.items():
        node = g.nodes.get(name)
        if node is not None:
            refresh_changelog_state(node.path, repo)
    return plan


def _save_plan(ctx: CLIContext, plan: ReleasePlan) -> None:
    unwrap_or_exit(write_plan_file(path=ctx.ecosystem.plan_path, plan=plan), ctx)


def _print_plan(ctx: CLIContext, plan: ReleasePlan) -> None:
    ctx.console.header(f"Release plan ({plan.created_at})")
    for index, level in enumerate(plan.release_levels):
        ctx.console.print(f"level {index}", Style.INFO)
        for name in level:
            repo = plan.repos[name]
            flags = [
                label
                for label, done in (
                    ("changelog pushed", repo.changelog_pushed),
                    ("tagged", repo.tag_pushed),
                    ("ci passed", repo.ci_passed),
                )
                if done
            ]
            status = f" [{', '.join(flags)}]" if flags else ""
            ctx.console.print(
                f"  {name}: {repo.current_version} -> {repo.next_version} "
                f"({repo.selected_bump}){status}"
            )
            ctx.console.print(
                f"    {repo.suggestion_reasoning}; changelog {repo.changelog_state}",
                Style.DIM,
            )
            if repo.last_failed_operation:
                ctx.console.warning(f"    last failure: {repo.last_failed_operation}")

    skipped = sorted(n for n, r in plan.repos.items() if not r.selected)
    if skipped:
        ctx.console.print(f"not released: {', '.join(skipped)}", Style.DIM)


@release_app.command("plan")
def plan_cmd(
    only: list[str] | None = typer.Option(
        None,
        "--only",
        help="Limit to these workspaces and their dependents (repeatable)",
        show_default=False,
    ),
) -> None:
    """Compute versions and release order from git history."""
    ctx = build_context()
    g = load_graph(ctx)
    plan = unwrap_or_exit(
        plan_release(root=ctx.ecosystem.root, graph=g, console=ctx.console, only=only),
        ctx,
    )
    _save_plan(ctx, plan)
    _print_plan(ctx, plan)
    if not plan.ordered_repos():
        ctx.console.success("nothing to release")


@release_app.command("show")
def show_cmd() -> None:
    """Show the saved release plan."""
    ctx = build_context()
    plan = _load_plan(ctx, load_graph(ctx))
    _save_plan(ctx, plan)
    _print_plan(ctx, plan)


@release_app.command("select")
def select_cmd(
    name: str = typer.Argument(..., help="Workspace name"),
    bump: BumpChoice | None = typer.Option(None, "--bump", help="Override the bump size"),
    skip: bool = typer.Option(False, "--skip", help="Exclude the workspace from the release"),
) -> None:
    """Override the bump of a workspace or exclude it."""
    ctx = build_context()
    g = load_graph(ctx)
    plan = _load_plan(ctx, g)

    unwrap_or_exit(set_selected(plan, g, name, not skip), ctx)
    repo = plan.repos[name]
    if bump is not None and not skip:
        unwrap_or_exit(select_bump(repo, _BUMPS[bump]), ctx)
        if repo.changelog_state != "none":
            ctx.console.warning(f"{name}: changelog was written for another version")
            ctx.console.print(f"hint: eco release changelog {name} --force", Style.DIM)

    _save_plan(ctx, plan)
    _print_plan(ctx, plan)


@release_app.command("changelog")
def changelog_cmd(
    name: str = typer.Argument(..., help="Workspace name"),
    force: bool = typer.Option(False, "--force", help="Overwrite a hand-edited changelog"),
) -> None:
    """Write (or rewrite) the changelog section of a workspace."""
    ctx = build_context()
    g = load_graph(ctx)
    plan = _load_plan(ctx, g)
    repo = plan.repos.get(name)
    if repo is None or not repo.selected or name not in g:
        ctx.console.error(f"{name} is not selected for release")
        exit_with_code(int(ErrorCode.USER_ERROR))
    if repo.changelog_pushed:
        ctx.console.error(f"{name}: changelog already pushed")
        exit_with_code(int(ErrorCode.USER_ERROR))
    if repo.changelog_state == "dirty" and not force:
        ctx.console.error(f"{name}: {repo.changelog_path} was edited since it was generated")
        ctx.console.print("hint: pass --force to regenerate it", Style.DIM)
        exit_with_code(int(ErrorCode.USER_ERROR))

    section = render_section(repo.next_version, repo.commits)
    digest = unwrap_or_exit(write_changelog(g.nodes[name].path, repo, section), ctx)
    _save_plan(ctx, plan)
    ctx.console.success(f"{name}: {repo.changelog_path} ({digest[:12]})")


@release_app.command("apply")
def apply_cmd(
    dry_run: bool = typer.Option(False, "--dry-run", help="Print steps without modifying"),
    skip_ci: bool = typer.Option(False, "--skip-ci", help="Do not wait for CI workflows"),
    workers: int = typer.Option(0, "--workers", "-j", help="Parallel build jobs"),
    verify: bool = typer.Option(False, "--verify", help="Run the verify target instead of build"),
) -> None:
    """Execute (or resume) the saved release plan."""
    ctx = build_context()
    g = load_graph(ctx)
    plan = _load_plan(ctx, g)
    if plan.is_complete():
        ctx.console.success("release already complete")
        return

    cancel = CancelSignal()
    orchestrator = ReleaseOrchestrator(
        ecosystem=ctx.ecosystem,
        config=ctx.config,
        graph=g,
        registry=ctx.registry,
        console=ctx.console,
        options=ApplyOptions(dry_run=dry_run, skip_ci=skip_ci, workers=workers, verify=verify),
        cancel=cancel,
    )
    try:
        unwrap_or_exit(orchestrator.apply(plan), ctx)
    except KeyboardInterrupt:
        cancel.trip("interrupted")
        ctx.console.error("interrupted; re-run `eco release apply` to resume")
        exit_with_code(130)


@release_app.command("clear")
def clear_cmd() -> None:
    """Delete the saved release plan."""
    ctx = build_context()
    path = ctx.ecosystem.plan_path
    if not path.exists():
        ctx.console.print("no release plan", Style.DIM)
        return
    try:
        path.unlink()
    except OSError as e:
        ctx.console.error(f"cannot remove {path}: {e}")
        exit_with_code(int(ErrorCode.IO_ERROR))
    ctx.console.success("release plan removed")
