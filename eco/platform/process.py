"""Subprocess execution with Result-based error handling.

git, gh, go, uv and npm are all driven through `run`; their exit code and
captured output are the only contract eco relies on.

Usage:
    result = run(["git", "describe", "--tags", "--abbrev=0"], cwd=repo_dir)
    match result:
        case Ok(stdout):
            tag = stdout.strip()
        case Err(error):
            console.error(str(error))

Long blocking commands (`gh run watch`) take a CancelSignal: tripping it
kills the command's whole process group and the call returns at once.
"""

from __future__ import annotations

import os
import signal
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

from eco.core.cancel import CancelSignal
from eco.core.result import Err, Ok, Result

__all__ = ["ProcessError", "kill_tree", "merged_env", "run"]

_IS_POSIX = sys.platform != "win32"


@dataclass(frozen=True, slots=True)
class ProcessError:
    """Error from a failed subprocess execution.

    `returncode` is -1 when the process could not be started, timed out or
    was cancelled; callers use that to tell tool failures from command
    failures.
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False
    cancelled: bool = False

    @property
    def started(self) -> bool:
        return self.returncode != -1

    def __str__(self) -> str:
        cmd_str = " ".join(self.command[:3])
        if len(self.command) > 3:
            cmd_str += " ..."
        return f"{cmd_str} failed (exit {self.returncode})"


def merged_env(extra: dict[str, str] | None) -> dict[str, str] | None:
    """Overlay `extra` on the current environment (None means inherit)."""
    if not extra:
        return None
    env = dict(os.environ)
    env.update(extra)
    return env


def kill_tree(proc: subprocess.Popen[str]) -> None:
    """SIGKILL a process started with start_new_session, children included."""
    if proc.poll() is not None:
        return
    try:
        if _IS_POSIX:
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except (ProcessLookupError, PermissionError):
        pass


def run(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
    cancel: CancelSignal | None = None,
) -> Result[str, ProcessError]:
    """Execute a command and return stdout or a ProcessError.

    Args:
        cmd: Command and arguments to execute.
        cwd: Working directory for the command.
        env: Variables overlaid on the current environment.
        timeout: Maximum seconds to wait (None for no limit).
        cancel: Kill the command as soon as this signal trips.
    """
    if cancel is not None:
        return _run_cancellable(cmd, cwd, env, timeout=timeout, cancel=cancel)

    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=merged_env(env),
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=-1,
                stdout=e.stdout if isinstance(e.stdout, str) else "",
                stderr=f"Command timed out after {timeout}s",
                timed_out=True,
            )
        )
    except OSError as e:
        return Err(ProcessError(command=tuple(cmd), returncode=-1, stdout="", stderr=str(e)))

    if proc.returncode != 0:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=proc.returncode,
                stdout=proc.stdout,
                stderr=proc.stderr,
            )
        )
    return Ok(proc.stdout)


def _run_cancellable(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None,
    *,
    timeout: float | None,
    cancel: CancelSignal,
) -> Result[str, ProcessError]:
    command = tuple(cmd)
    if cancel.is_set():
        return Err(ProcessError(command, -1, "", "cancelled", cancelled=True))

    try:
        proc = subprocess.Popen(
            cmd,
            cwd=str(cwd),
            env=merged_env(env),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            start_new_session=_IS_POSIX,
        )
    except OSError as e:
        return Err(ProcessError(command, -1, "", str(e)))

    def stop() -> None:
        kill_tree(proc)

    cancel.on_trip(stop)
    timed_out = False
    try:
        try:
            stdout, stderr = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            timed_out = True
            kill_tree(proc)
            stdout, stderr = proc.communicate()
    finally:
        cancel.off_trip(stop)

    if proc.returncode == 0:
        return Ok(stdout)
    if cancel.is_set():
        return Err(ProcessError(command, -1, stdout, "cancelled", cancelled=True))
    if timed_out:
        return Err(
            ProcessError(command, -1, stdout, f"Command timed out after {timeout}s", timed_out=True)
        )
    return Err(ProcessError(command, proc.returncode, stdout, stderr))
