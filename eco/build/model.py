"""Build runner data types."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

__all__ = [
    "DEFAULT_BUILD_COMMAND",
    "BuildEvent",
    "BuildFailed",
    "BuildJob",
    "BuildResult",
    "EventType",
    "JobCancelled",
    "JobError",
    "RunOptions",
]

DEFAULT_BUILD_COMMAND: tuple[str, ...] = ("make", "build")


@dataclass(frozen=True, slots=True)
class BuildJob:
    name: str
    cwd: Path
    command: tuple[str, ...] = ()

    def argv(self) -> list[str]:
        return list(self.command or DEFAULT_BUILD_COMMAND)


@dataclass(frozen=True, slots=True)
class BuildFailed:
    """The job's command ran (or failed to start) and did not succeed.

    `output` holds the full combined stdout/stderr of the job.
    """

    returncode: int
    output: str
    started: bool = True

    @property
    def message(self) -> str:
        if not self.started:
            return f"failed to start: {self.output.strip()}"
        return f"exit {self.returncode}"


@dataclass(frozen=True, slots=True)
class JobCancelled:
    """The job was skipped or killed because the run was cancelled."""

    reason: str
    killed: bool = False

    @property
    def message(self) -> str:
        if self.killed:
            return f"killed: {self.reason}"
        return f"cancelled: {self.reason}"


JobError = BuildFailed | JobCancelled


@dataclass(frozen=True, slots=True)
class BuildResult:
    """Outcome of one job. `duration` excludes time spent queued."""

    job: BuildJob
    output: str
    error: JobError | None
    duration: float

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def cancelled(self) -> bool:
        return isinstance(self.error, JobCancelled)

    @property
    def failed(self) -> bool:
        return isinstance(self.error, BuildFailed)


EventType = Literal["start", "output", "finish"]


@dataclass(frozen=True, slots=True)
class BuildEvent:
    """Streaming-mode event. `line` is set for output, `result` for finish."""

    type: EventType
    job: BuildJob
    line: str = ""
    result: BuildResult | None = None


@dataclass(frozen=True, slots=True)
class RunOptions:
    """Runner configuration.

    Attributes:
        workers: Pool size; 0 means the number of CPUs
        continue_on_error: Keep running queued jobs after a failure
        extra_path_dirs: Prepended to PATH so tools built earlier in the
            run are found by later jobs
    """

    workers: int = 0
    continue_on_error: bool = False
    extra_path_dirs: tuple[Path, ...] = ()
