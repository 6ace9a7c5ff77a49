"""Build command - build (or verify) workspaces level by level."""

from __future__ import annotations

import typer

from eco.build.model import BuildJob, BuildResult, RunOptions
from eco.build.runner import BuildRunner
from eco.cli.commands._helpers import exit_with_code, unwrap_or_exit
from eco.cli.context import CLIContext, build_context, load_graph
from eco.core.cancel import CancelSignal
from eco.core.errors import ErrorCode
from eco.core.result import Err
from eco.graph.model import Graph
from eco.graph.sort import topological_levels
from eco.output.console import Style
from eco.output.errors import print_build_failure


def _jobs(ctx: CLIContext, g: Graph, names: list[str], *, verify: bool) -> list[BuildJob]:
    jobs: list[BuildJob] = []
    for name in names:
        node = g.nodes[name]
        handler = ctx.registry.get(node.project_type)
        if isinstance(handler, Err):
            continue
        command = handler.value.verify_command() if verify else handler.value.build_command()
        jobs.append(BuildJob(name=name, cwd=node.path, command=tuple(command)))
    return jobs


def _run_level(
    runner: BuildRunner,
    jobs: list[BuildJob],
    *,
    ctx: CLIContext,
    cancel: CancelSignal,
) -> list[BuildResult]:
    results: list[BuildResult] = []
    for event in runner.stream(jobs, cancel=cancel):
        match event.type:
            case "start":
                ctx.console.print(f"[{event.job.name}] started", Style.DIM)
            case "output":
                ctx.console.print(f"[{event.job.name}] {event.line}", Style.DIM)
            case "finish":
                result = event.result
                if result is None:
                    continue
                results.append(result)
                if result.ok:
                    ctx.console.success(f"{result.job.name} ({result.duration:.1f}s)")
    return results


def build(
    only: list[str] | None = typer.Option(
        None, "--only", help="Build only these workspaces (repeatable)", show_default=False
    ),
    workers: int = typer.Option(0, "--workers", "-j", help="Parallel jobs (0 = config / CPUs)"),
    continue_on_error: bool = typer.Option(
        False, "--continue-on-error", help="Keep building after a failure"
    ),
    verify: bool = typer.Option(False, "--verify", help="Run the verify target instead of build"),
) -> None:
    """Build every workspace in dependency order."""
    ctx = build_context()
    g = load_graph(ctx)

    if only:
        unknown = sorted(set(only) - set(g.names()))
        if unknown:
            ctx.console.error(f"unknown workspace(s): {', '.join(unknown)}")
            ctx.console.print(f"Known: {', '.join(g.names())}", Style.DIM)
            exit_with_code(int(ErrorCode.USER_ERROR))
    levels = unwrap_or_exit(topological_levels(g, subset=only or None), ctx)

    runner = BuildRunner(
        RunOptions(
            workers=workers or ctx.config.build.workers,
            continue_on_error=continue_on_error,
            extra_path_dirs=tuple(ctx.ecosystem.root / p for p in ctx.config.build.extra_path),
        )
    )
    cancel = CancelSignal()
    failures: list[BuildResult] = []
    cancelled = 0

    try:
        for index, level in enumerate(levels):
            if failures and not continue_on_error:
                break
            ctx.console.header(f"Level {index}: {', '.join(level)}")
            for result in _run_level(runner, _jobs(ctx, g, level, verify=verify), ctx=ctx, cancel=cancel):
                if result.failed:
                    failures.append(result)
                elif result.cancelled:
                    cancelled += 1
    except KeyboardInterrupt:
        cancel.trip("interrupted")
        ctx.console.error("interrupted")
        exit_with_code(130)

    for result in failures:
        print_build_failure(result, ctx.console)
    if failures:
        summary = f"{len(failures)} failed"
        if cancelled:
            summary += f", {cancelled} cancelled"
        ctx.console.error(summary)
        exit_with_code(int(ErrorCode.BUILD_ERROR))
    ctx.console.success("all builds passed")
