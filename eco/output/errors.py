"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from eco.build.model import BuildFailed, BuildResult, JobCancelled
from eco.core.errors import ErrorCode
from eco.graph.builder import GraphBuildError
from eco.graph.sort import DependencyCycleError
from eco.output.console import Style
from eco.project.base import HandlerError
from eco.release.errors import (
    CIWorkflowError,
    DiscoveryTimeout,
    PhaseError,
    ReleaseError,
    WatchFailed,
    WorkflowFailed,
)
from eco.repo.creator import CreateError

if TYPE_CHECKING:
    from eco.output.console import ConsoleProtocol

__all__ = [
    "EcoError",
    "error_exit_code",
    "print_build_failure",
    "print_error",
]

EcoError = (
    GraphBuildError
    | DependencyCycleError
    | HandlerError
    | ReleaseError
    | PhaseError
    | CreateError
    | DiscoveryTimeout
    | WorkflowFailed
    | WatchFailed
)


def _hint(console: ConsoleProtocol, hint: str | None) -> None:
    if hint:
        console.print(f"hint: {hint}", Style.DIM)


def _detail(console: ConsoleProtocol, detail: str | None) -> None:
    if detail:
        for line in detail.rstrip().splitlines():
            console.print(f"  {line}", Style.DIM)


def print_ci_error(error: CIWorkflowError, console: ConsoleProtocol) -> None:
    match error:
        case DiscoveryTimeout():
            console.error(error.message)
            _hint(console, "Check the workflow triggers on tags, then re-run: eco release apply")
        case WorkflowFailed(phase=phase, run_id=run_id):
            console.error(error.message)
            _hint(console, f"Inspect: gh run view {run_id} --log-failed")
            if phase == "ci":
                console.print("the pre-existing CI run must pass before the release", Style.DIM)
        case WatchFailed():
            console.error(error.message)


def print_error(error: EcoError, console: ConsoleProtocol) -> None:
    """Print any eco error with its hint and captured detail."""
    match error:
        case DependencyCycleError():
            console.error(error.message)
            _hint(console, "Remove one of the dependencies between these workspaces.")
        case GraphBuildError(workspace=workspace, message=message, hint=hint):
            console.error(f"{workspace}: {message}")
            _hint(console, hint)
        case HandlerError(message=message, hint=hint):
            console.error(message)
            _hint(console, hint)
        case ReleaseError(message=message, hint=hint):
            console.error(message)
            _hint(console, hint)
        case PhaseError(detail=detail, hint=hint):
            console.error(str(error))
            _detail(console, detail)
            _hint(console, hint)
        case CreateError(phase=phase, message=message, hint=hint, detail=detail):
            console.error(f"[{phase}] {message}")
            _detail(console, detail)
            _hint(console, hint)
        case DiscoveryTimeout() | WorkflowFailed() | WatchFailed():
            print_ci_error(error, console)


def print_build_failure(result: BuildResult, console: ConsoleProtocol) -> None:
    """Print a failed job with its full captured output."""
    match result.error:
        case BuildFailed() as failure:
            console.error(f"{result.job.name}: {failure.message}")
            _detail(console, result.output)
        case JobCancelled() as cancelled:
            console.print(f"{result.job.name}: {cancelled.message}", Style.DIM)
        case None:
            pass


def error_exit_code(error: EcoError) -> int:
    """Get exit code for an error."""
    match error:
        case DependencyCycleError():
            return int(ErrorCode.CYCLE_ERROR)
        case GraphBuildError(kind="dependencies_unreadable"):
            return int(ErrorCode.IO_ERROR)
        case GraphBuildError():
            return int(ErrorCode.USER_ERROR)
        case HandlerError(kind="handler_not_found" | "manifest_invalid"):
            return int(ErrorCode.USER_ERROR)
        case HandlerError(kind="io_failed"):
            return int(ErrorCode.IO_ERROR)
        case HandlerError():
            return int(ErrorCode.BUILD_ERROR)
        case ReleaseError(kind="gh_missing" | "gh_auth_required" | "remote_unknown"):
            return int(ErrorCode.ENV_ERROR)
        case ReleaseError(kind="plan_io_failed" | "changelog_failed"):
            return int(ErrorCode.IO_ERROR)
        case ReleaseError():
            return int(ErrorCode.USER_ERROR)
        case PhaseError(phase="preflight"):
            return int(ErrorCode.ENV_ERROR)
        case PhaseError(phase="build" | "dependencies"):
            return int(ErrorCode.BUILD_ERROR)
        case PhaseError(phase="push" | "tag" | "ci_wait"):
            return int(ErrorCode.NETWORK_ERROR)
        case PhaseError():
            return int(ErrorCode.IO_ERROR)
        case CreateError(phase="validate"):
            return int(ErrorCode.USER_ERROR)
        case CreateError(phase="verify"):
            return int(ErrorCode.BUILD_ERROR)
        case CreateError(phase="remote" | "register"):
            return int(ErrorCode.NETWORK_ERROR)
        case CreateError():
            return int(ErrorCode.IO_ERROR)
        case DiscoveryTimeout() | WorkflowFailed() | WatchFailed():
            return int(ErrorCode.NETWORK_ERROR)
