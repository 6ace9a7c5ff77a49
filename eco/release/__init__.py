"""Release planning and execution.

- planner: versions and bump suggestions from git history
- changelog: section rendering and hash-based dirty tracking
- plan_file: JSON persistence of the plan between invocations
- orchestrator: level-by-level execution with resume and rollback
- wait: CI / release workflow wait protocol
"""

from eco.release.errors import (
    CIWorkflowError,
    DiscoveryTimeout,
    PhaseError,
    ReleaseError,
    WatchFailed,
    WorkflowFailed,
)
from eco.release.model import Bump, ChangelogState, ReleasePlan, RepoReleasePlan
from eco.release.orchestrator import ApplyOptions, ReleaseOrchestrator
from eco.release.plan_file import read_plan_file, write_plan_file
from eco.release.planner import plan_release, select_bump, set_selected

__all__ = [
    "ApplyOptions",
    "Bump",
    "CIWorkflowError",
    "ChangelogState",
    "DiscoveryTimeout",
    "PhaseError",
    "ReleaseError",
    "ReleaseOrchestrator",
    "ReleasePlan",
    "RepoReleasePlan",
    "WatchFailed",
    "WorkflowFailed",
    "plan_release",
    "read_plan_file",
    "select_bump",
    "set_selected",
    "write_plan_file",
]
