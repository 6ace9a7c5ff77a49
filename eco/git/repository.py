"""Git repository abstraction.

The Repository class wraps the handful of git operations the release flow
needs: reading the last version tag and the commits since it, committing
the changelog, creating and pushing annotated tags, and the index/submodule
operations used when a new workspace is registered.

Usage:
    repo = Repository(workspace_dir)
    match repo.latest_tag():
        case Ok(None):
            print("never released")
        case Ok(tag):
            print(f"last release: {tag}")
        case Err(e):
            print(f"git failed: {e.message}")
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from eco.core.result import Err, Ok, Result
from eco.platform.process import ProcessError
from eco.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0
_NETWORK_COMMANDS = frozenset({"fetch", "pull", "push", "clone", "submodule"})

__all__ = ["GitError", "Repository"]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git sub-command that failed
        message: Error message (stderr, or stdout when stderr is empty)
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


def _to_git_error(command: str, error: ProcessError) -> GitError:
    message = error.stderr.strip() or error.stdout.strip() or f"git {command} failed"
    return GitError(command=command, message=message, returncode=error.returncode)


class Repository:
    """A git working tree at `path`."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        return (self.path / ".git").exists()

    def init(self, *, branch: str = "main") -> Result[None, GitError]:
        result = self._run(["init", "-b", branch])
        if isinstance(result, Err):
            return Err(_to_git_error("init", result.error))
        return Ok(None)

    def is_clean(self) -> bool:
        """True if the working tree has no changes; False if status fails."""
        result = self._run(["status", "--porcelain"])
        match result:
            case Ok(stdout):
                return stdout.strip() == ""
            case Err(_):
                return False

    def dirty_paths(self) -> Result[list[str], GitError]:
        result = self._run(["status", "--porcelain"])
        if isinstance(result, Err):
            return Err(_to_git_error("status", result.error))
        return Ok([line[3:] for line in result.value.splitlines() if len(line) > 3])

    def current_branch(self) -> str | None:
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"])
        match result:
            case Ok(stdout):
                branch = stdout.strip()
                return None if branch == "HEAD" else branch
            case Err(_):
                return None

    def latest_tag(self) -> Result[str | None, GitError]:
        """Most recent reachable tag, or None when the repo was never tagged."""
        result = self._run(["describe", "--tags", "--abbrev=0"])
        if isinstance(result, Err):
            stderr = result.error.stderr
            if "No names found" in stderr or "No tags can describe" in stderr:
                return Ok(None)
            if "Not a valid object name HEAD" in stderr or "bad revision" in stderr:
                return Ok(None)
            return Err(_to_git_error("describe", result.error))
        return Ok(result.value.strip() or None)

    def commit_subjects(self, since: str | None) -> Result[list[str], GitError]:
        """Commit subjects in `since..HEAD` (whole history when since is None)."""
        rev = f"{since}..HEAD" if since else "HEAD"
        result = self._run(["log", rev, "--pretty=%s"])
        if isinstance(result, Err):
            if "does not have any commits" in result.error.stderr:
                return Ok([])
            return Err(_to_git_error("log", result.error))
        return Ok([line.strip() for line in result.value.splitlines() if line.strip()])

    def tag_exists(self, tag: str) -> bool:
        result = self._run(["rev-parse", "-q", "--verify", f"refs/tags/{tag}"])
        return isinstance(result, Ok)

    def add(self, paths: list[str]) -> Result[None, GitError]:
        result = self._run(["add", "--", *paths])
        if isinstance(result, Err):
            return Err(_to_git_error("add", result.error))
        return Ok(None)

    def commit(self, message: str) -> Result[None, GitError]:
        result = self._run(["commit", "-m", message])
        if isinstance(result, Err):
            return Err(_to_git_error("commit", result.error))
        return Ok(None)

    def has_staged_changes(self) -> bool:
        result = self._run(["diff", "--cached", "--quiet"])
        return isinstance(result, Err) and result.error.returncode == 1

    def create_tag(self, tag: str, message: str) -> Result[None, GitError]:
        result = self._run(["tag", "-a", tag, "-m", message])
        if isinstance(result, Err):
            return Err(_to_git_error("tag", result.error))
        return Ok(None)

    def delete_tag(self, tag: str) -> Result[None, GitError]:
        result = self._run(["tag", "-d", tag])
        if isinstance(result, Err):
            return Err(_to_git_error("tag -d", result.error))
        return Ok(None)

    def push(self, *, remote: str = "origin", ref: str | None = None) -> Result[None, GitError]:
        args = ["push", remote]
        if ref is not None:
            args.append(ref)
        result = self._run(args)
        if isinstance(result, Err):
            return Err(_to_git_error("push", result.error))
        return Ok(None)

    def remote_url(self, remote: str = "origin") -> Result[str, GitError]:
        result = self._run(["remote", "get-url", remote])
        if isinstance(result, Err):
            return Err(_to_git_error("remote get-url", result.error))
        return Ok(result.value.strip())

    def submodule_add(self, url: str, path: str) -> Result[None, GitError]:
        result = self._run(["submodule", "add", url, path])
        if isinstance(result, Err):
            return Err(_to_git_error("submodule add", result.error))
        return Ok(None)

    def rm_cached(self, path: str) -> Result[None, GitError]:
        result = self._run(["rm", "--cached", "-r", "-f", "--ignore-unmatch", "--", path])
        if isinstance(result, Err):
            return Err(_to_git_error("rm --cached", result.error))
        return Ok(None)

    def reset_paths(self, paths: list[str]) -> Result[None, GitError]:
        """Unstage `paths`, leaving the working tree alone."""
        result = self._run(["reset", "-q", "--", *paths])
        if isinstance(result, Err):
            return Err(_to_git_error("reset", result.error))
        return Ok(None)

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        command = args[0] if args else ""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS if command in _NETWORK_COMMANDS else _GIT_TIMEOUT_SECONDS
        )
        return run_process(["git", "-C", str(self.path), *args], cwd=self.path, timeout=timeout)
