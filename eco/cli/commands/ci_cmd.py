"""CI commands - wait for the workflows of a pushed tag."""

from __future__ import annotations

import typer

from eco.cli.commands._helpers import exit_with_code, unwrap_or_exit
from eco.cli.context import build_context, load_graph
from eco.core.cancel import CancelSignal
from eco.core.errors import ErrorCode
from eco.release.gh import ensure_gh_auth, ensure_gh_available, repo_slug
from eco.release.wait import WaitSettings, wait_for_release

ci_app = typer.Typer(add_completion=False, no_args_is_help=True)


@ci_app.command("wait")
def wait_cmd(
    name: str = typer.Argument(..., help="Workspace name"),
    tag: str = typer.Argument(..., help="Release tag (e.g. v1.2.3)"),
    poll_interval: float | None = typer.Option(
        None, "--poll-interval", help="Seconds between polls", show_default=False
    ),
) -> None:
    """Wait for CI and the release workflow of TAG to pass."""
    ctx = build_context()
    g = load_graph(ctx)
    node = g.nodes.get(name)
    if node is None:
        ctx.console.error(f"unknown workspace: {name}")
        exit_with_code(int(ErrorCode.USER_ERROR))

    unwrap_or_exit(ensure_gh_available(), ctx)
    unwrap_or_exit(ensure_gh_auth(cwd=node.path), ctx)
    slug = unwrap_or_exit(repo_slug(node.path), ctx)

    settings = WaitSettings.from_config(ctx.config.ci)
    if poll_interval is not None:
        settings = WaitSettings(
            ci_workflow=settings.ci_workflow,
            release_workflow=settings.release_workflow,
            poll_interval=poll_interval,
            discovery_timeout=settings.discovery_timeout,
            overall_timeout=settings.overall_timeout,
        )

    cancel = CancelSignal()
    try:
        result = wait_for_release(
            repo_dir=node.path,
            slug=slug,
            tag=tag,
            settings=settings,
            console=ctx.console,
            cancel=cancel,
        )
    except KeyboardInterrupt:
        cancel.trip("interrupted")
        ctx.console.error("interrupted")
        exit_with_code(130)
    unwrap_or_exit(result, ctx)
    ctx.console.success(f"{name} {tag}: workflows passed")
