"""Concurrent build/verify job execution."""

from .model import (
    DEFAULT_BUILD_COMMAND,
    BuildEvent,
    BuildFailed,
    BuildJob,
    BuildResult,
    JobCancelled,
    JobError,
    RunOptions,
)
from .runner import BuildRunner, job_env, run_jobs

__all__ = [
    "DEFAULT_BUILD_COMMAND",
    "BuildEvent",
    "BuildFailed",
    "BuildJob",
    "BuildResult",
    "BuildRunner",
    "JobCancelled",
    "JobError",
    "RunOptions",
    "job_env",
    "run_jobs",
]
