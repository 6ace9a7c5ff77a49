"""Ecosystem root detection and workspace discovery.

The ecosystem root is the directory holding `ecosystem.toml`. Workspaces are
the sub-directories matched by its `workspaces` globs that carry their own
`eco.toml`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .config import ECOSYSTEM_FILE, WORKSPACE_FILE
from .result import Err, Ok, Result

__all__ = [
    "Ecosystem",
    "WorkspaceError",
    "detect_ecosystem",
    "discover_workspaces",
    "find_root_upward",
    "is_ecosystem_root",
]


@dataclass(frozen=True)
class WorkspaceError:
    """Error when the ecosystem root cannot be detected."""

    message: str
    searched_from: Path | None = None


@dataclass(frozen=True, slots=True)
class Ecosystem:
    """A detected ecosystem root and the well-known paths below it."""

    root: Path

    @property
    def config_path(self) -> Path:
        return self.root / ECOSYSTEM_FILE

    @property
    def state_dir(self) -> Path:
        """Local state directory (.eco/), expected to be gitignored."""
        return self.root / ".eco"

    @property
    def plan_path(self) -> Path:
        return self.state_dir / "release" / "plan.json"

    @property
    def go_work_path(self) -> Path:
        return self.root / "go.work"

    @property
    def gitmodules_path(self) -> Path:
        return self.root / ".gitmodules"

    @property
    def bin_dir(self) -> Path:
        return self.root / "bin"

    def __str__(self) -> str:
        return str(self.root)


def is_ecosystem_root(path: Path) -> bool:
    return (path / ECOSYSTEM_FILE).is_file()


def find_root_upward(start: Path) -> Path | None:
    for parent in (start, *start.parents):
        if is_ecosystem_root(parent):
            return parent
    return None


def detect_ecosystem(
    *,
    start_dir: Path | None = None,
    env_var: str = "ECO_ROOT",
) -> Result[Ecosystem, WorkspaceError]:
    """Detect the ecosystem root.

    Detection order:
    1. ECO_ROOT environment variable (if set it must be valid)
    2. Search upward from start_dir (or cwd) for ecosystem.toml
    """
    env_value = os.environ.get(env_var)
    if env_value:
        env_path = Path(env_value).expanduser().resolve()
        if env_path.is_dir() and is_ecosystem_root(env_path):
            return Ok(Ecosystem(root=env_path))
        return Err(
            WorkspaceError(
                message=f"${env_var} is set to '{env_value}' but it has no {ECOSYSTEM_FILE}",
                searched_from=env_path if env_path.is_dir() else None,
            )
        )

    search_start = (start_dir or Path.cwd()).resolve()
    found = find_root_upward(search_start)
    if found is not None:
        return Ok(Ecosystem(root=found))

    return Err(
        WorkspaceError(
            message=f"not inside an ecosystem (no {ECOSYSTEM_FILE} found)",
            searched_from=search_start,
        )
    )


def discover_workspaces(root: Path, patterns: tuple[str, ...] | list[str]) -> list[Path]:
    """Expand workspace globs into sorted absolute workspace directories.

    Only directories containing eco.toml count; the root itself is never a
    workspace even if a pattern matches it.
    """
    root = root.resolve()
    found: set[Path] = set()
    for pattern in patterns:
        for candidate in root.glob(pattern):
            if not candidate.is_dir():
                continue
            resolved = candidate.resolve()
            if resolved == root:
                continue
            if any(part.startswith(".") for part in resolved.relative_to(root).parts):
                continue
            if (resolved / WORKSPACE_FILE).is_file():
                found.add(resolved)
    return sorted(found)
