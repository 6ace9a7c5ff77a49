from __future__ import annotations

import re
import shutil
from pathlib import Path

from eco.core.result import Err, Ok, Result
from eco.git.repository import Repository
from eco.platform.process import run as run_process
from eco.release.errors import ReleaseError
from eco.release.timeouts import GH_TIMEOUT_SECONDS

_SLUG_RE = re.compile(r"(?:git@github\.com:|https://github\.com/)([^/]+)/([^/]+?)(?:\.git)?$")


def parse_repo_slug(url: str) -> str | None:
    """owner/name from a GitHub SSH or HTTPS remote URL."""
    m = _SLUG_RE.search(url.strip())
    if m is None:
        return None
    return f"{m.group(1)}/{m.group(2)}"


def repo_slug(repo_dir: Path) -> Result[str, ReleaseError]:
    url = Repository(repo_dir).remote_url()
    if isinstance(url, Err):
        return Err(
            ReleaseError(
                kind="remote_unknown",
                message=f"{repo_dir.name}: no origin remote",
                hint=url.error.message,
            )
        )
    slug = parse_repo_slug(url.value)
    if slug is None:
        return Err(
            ReleaseError(
                kind="remote_unknown",
                message=f"{repo_dir.name}: origin is not a GitHub repository",
                hint=url.value,
            )
        )
    return Ok(slug)


def ensure_gh_available() -> Result[None, ReleaseError]:
    if shutil.which("gh") is None:
        return Err(
            ReleaseError(
                kind="gh_missing",
                message="gh: missing",
                hint="Install GitHub CLI: https://cli.github.com/",
            )
        )
    return Ok(None)


def ensure_gh_auth(*, cwd: Path) -> Result[None, ReleaseError]:
    result = run_process(["gh", "auth", "status"], cwd=cwd, timeout=GH_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        return Err(
            ReleaseError(
                kind="gh_auth_required",
                message="gh auth required",
                hint="Run: gh auth login",
            )
        )
    return Ok(None)

