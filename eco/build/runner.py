"""Concurrent build runner.

A fixed pool of worker threads drains a pre-filled job queue. Each worker
owns at most one child process at a time. When a job fails and
continue_on_error is off, the shared CancelSignal trips once: jobs not yet
started finish immediately with JobCancelled, and running processes are
killed.

Two modes share the same machinery:
- run(): yields one BuildResult per job as each completes
- stream(): yields BuildEvents (start, output lines, finish) per job

Usage:
    runner = BuildRunner(RunOptions(workers=4))
    for event in runner.stream(jobs):
        if event.type == "output":
            console.print(f"[{event.job.name}] {event.line}", Style.DIM)
"""

from __future__ import annotations

import os
import queue
import subprocess
import sys
import threading
import time
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path

from eco.build.model import (
    BuildEvent,
    BuildFailed,
    BuildJob,
    BuildResult,
    JobCancelled,
    RunOptions,
)
from eco.core.cancel import CancelSignal
from eco.platform.process import kill_tree

__all__ = ["BuildRunner", "job_env", "run_jobs"]

_IS_POSIX = sys.platform != "win32"

Emit = Callable[[BuildEvent], None]


def job_env(extra_path_dirs: Iterable[Path] = ()) -> dict[str, str]:
    """Environment for build jobs: deterministic TERM and an extended PATH."""
    env = dict(os.environ)
    env["TERM"] = "xterm-256color"
    extra = [str(p) for p in extra_path_dirs]
    if extra:
        env["PATH"] = os.pathsep.join([*extra, env.get("PATH", "")])
    return env


class _ProcessTracker:
    """Running child processes, so a cancellation can reach them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._running: set[subprocess.Popen[str]] = set()
        self._killed: set[subprocess.Popen[str]] = set()

    def add(self, proc: subprocess.Popen[str]) -> None:
        with self._lock:
            self._running.add(proc)

    def remove(self, proc: subprocess.Popen[str]) -> bool:
        """Forget `proc`; True if it was killed by a cancellation."""
        with self._lock:
            self._running.discard(proc)
            killed = proc in self._killed
            self._killed.discard(proc)
            return killed

    def kill_all(self) -> None:
        with self._lock:
            procs = list(self._running)
            self._killed.update(procs)
        for proc in procs:
            kill_tree(proc)


class BuildRunner:
    def __init__(self, options: RunOptions | None = None) -> None:
        self.options = options or RunOptions()

    def worker_count(self, job_count: int) -> int:
        workers = self.options.workers or os.cpu_count() or 1
        return max(1, min(workers, job_count))

    def run(
        self, jobs: Iterable[BuildJob], *, cancel: CancelSignal | None = None
    ) -> Iterator[BuildResult]:
        for event in self._drive(list(jobs), cancel=cancel, stream=False):
            if event.result is not None:
                yield event.result

    def stream(
        self, jobs: Iterable[BuildJob], *, cancel: CancelSignal | None = None
    ) -> Iterator[BuildEvent]:
        yield from self._drive(list(jobs), cancel=cancel, stream=True)

    def _drive(
        self,
        jobs: list[BuildJob],
        *,
        cancel: CancelSignal | None,
        stream: bool,
    ) -> Iterator[BuildEvent]:
        if not jobs:
            return

        cancel_signal = cancel or CancelSignal()
        pending: queue.Queue[BuildJob] = queue.Queue()
        for job in jobs:
            pending.put(job)
        events: queue.Queue[BuildEvent] = queue.Queue()
        env = job_env(self.options.extra_path_dirs)
        tracker = _ProcessTracker()
        cancel_signal.on_trip(tracker.kill_all)
        emit: Emit | None = events.put if stream else None

        def worker() -> None:
            while True:
                try:
                    job = pending.get_nowait()
                except queue.Empty:
                    return
                result = _execute(job, env=env, cancel=cancel_signal, tracker=tracker, emit=emit)
                if result.failed and not self.options.continue_on_error:
                    cancel_signal.trip(f"{job.name} failed")
                events.put(BuildEvent(type="finish", job=job, result=result))

        threads = [
            threading.Thread(target=worker, name=f"eco-build-{i}", daemon=True)
            for i in range(self.worker_count(len(jobs)))
        ]
        for thread in threads:
            thread.start()

        finished = 0
        try:
            while finished < len(jobs):
                event = events.get()
                if event.type == "finish":
                    finished += 1
                yield event
        finally:
            if finished < len(jobs):
                cancel_signal.trip("build run abandoned")
            for thread in threads:
                thread.join()
            cancel_signal.off_trip(tracker.kill_all)


def _execute(
    job: BuildJob,
    *,
    env: dict[str, str],
    cancel: CancelSignal,
    tracker: _ProcessTracker,
    emit: Emit | None,
) -> BuildResult:
    if emit is not None:
        emit(BuildEvent(type="start", job=job))

    if cancel.is_set():
        return BuildResult(
            job=job,
            output="",
            error=JobCancelled(reason=cancel.reason or "cancelled"),
            duration=0.0,
        )

    started = time.monotonic()
    try:
        proc = subprocess.Popen(
            job.argv(),
            cwd=str(job.cwd),
            env=env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
            bufsize=1,
            start_new_session=_IS_POSIX,
        )
    except OSError as e:
        return BuildResult(
            job=job,
            output=str(e),
            error=BuildFailed(returncode=-1, output=str(e), started=False),
            duration=time.monotonic() - started,
        )

    tracker.add(proc)
    if cancel.is_set():
        tracker.kill_all()

    chunks: list[str] = []
    try:
        if proc.stdout is not None:
            for line in proc.stdout:
                chunks.append(line)
                if emit is not None:
                    emit(BuildEvent(type="output", job=job, line=line.rstrip("\r\n")))
            proc.stdout.close()
        returncode = proc.wait()
    finally:
        killed = tracker.remove(proc)
    duration = time.monotonic() - started
    output = "".join(chunks)

    if returncode == 0:
        return BuildResult(job=job, output=output, error=None, duration=duration)
    if killed:
        return BuildResult(
            job=job,
            output=output,
            error=JobCancelled(reason=cancel.reason or "cancelled", killed=True),
            duration=duration,
        )
    return BuildResult(
        job=job,
        output=output,
        error=BuildFailed(returncode=returncode, output=output),
        duration=duration,
    )


def run_jobs(
    jobs: Iterable[BuildJob],
    *,
    options: RunOptions | None = None,
    cancel: CancelSignal | None = None,
) -> list[BuildResult]:
    """Run jobs to completion and return results in completion order."""
    return list(BuildRunner(options).run(jobs, cancel=cancel))
