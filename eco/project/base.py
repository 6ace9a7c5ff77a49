"""Base definitions for project handlers.

A project handler adapts one ecosystem (Go modules, Python packages, npm
packages, plain templates) to the operations the release engine needs:
- ProjectHandler: abstract adapter, one instance per project type
- HandlerSpec: immutable metadata (type string, manifest file name)
- Dependency: one declared dependency as read from a manifest
- HandlerError: failure payload shared by all handlers
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from eco.core.result import Err, Ok, Result

__all__ = [
    "Dependency",
    "DependencyKind",
    "HandlerError",
    "HandlerSpec",
    "ProjectHandler",
    "read_manifest_text",
]

DependencyKind = Literal["library", "binary"]


@dataclass(frozen=True, slots=True)
class Dependency:
    """A dependency declared in a workspace manifest.

    Attributes:
        name: Reference key as written in the manifest (module path,
            distribution name, npm package name)
        version: Declared version or specifier, verbatim
        kind: library or binary
        workspace_local: True when the dependency is another workspace of
            the ecosystem; only these become graph edges
    """

    name: str
    version: str
    kind: DependencyKind = "library"
    workspace_local: bool = False


@dataclass(frozen=True, slots=True)
class HandlerError:
    kind: Literal[
        "handler_not_found",
        "manifest_invalid",
        "lock_failed",
        "not_supported",
        "io_failed",
    ]
    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class HandlerSpec:
    """Immutable handler metadata.

    Attributes:
        type: Project type string declared in eco.toml (e.g. "go")
        manifest: Manifest file name relative to the workspace directory
        references_by_identity: True when dependents refer to this project by
            an identity string (module path, package name) rather than by the
            workspace directory name
    """

    type: str
    manifest: str
    references_by_identity: bool = False

    def __post_init__(self) -> None:
        if not self.type:
            raise ValueError("Handler type cannot be empty")
        if not self.manifest:
            raise ValueError("Handler manifest cannot be empty")


class ProjectHandler(ABC):
    """Abstract adapter for one project type.

    Subclasses must define:
    - spec
    - parse_dependencies(), update_dependency()
    - get_version(), set_version()

    Build, test and verify commands default to the make targets every
    workspace is expected to provide.
    """

    spec: HandlerSpec

    @abstractmethod
    def parse_dependencies(self, workspace_dir: Path) -> Result[list[Dependency], HandlerError]:
        """Read the manifest and classify each dependency."""
        ...

    @abstractmethod
    def update_dependency(
        self, workspace_dir: Path, name: str, version: str
    ) -> Result[None, HandlerError]:
        """Move `name` to `version`.

        Any pin/override for `name` is removed first, then the ecosystem's
        lock step runs. A failing lock step is returned as an error.
        """
        ...

    @abstractmethod
    def get_version(self, workspace_dir: Path) -> Result[str, HandlerError]: ...

    @abstractmethod
    def set_version(self, workspace_dir: Path, version: str) -> Result[None, HandlerError]: ...

    def identity(self, workspace_dir: Path) -> str | None:
        """Stable external identity used by dependents, if any."""
        return None

    def build_command(self) -> list[str]:
        return ["make", "build"]

    def test_command(self) -> list[str]:
        return ["make", "test"]

    def verify_command(self) -> list[str]:
        return ["make", "verify"]

    def manifest_path(self, workspace_dir: Path) -> Path:
        return workspace_dir / self.spec.manifest

    def has_project_file(self, workspace_dir: Path) -> bool:
        return self.manifest_path(workspace_dir).is_file()

    def lock_files(self, workspace_dir: Path) -> list[Path]:
        """Files update_dependency may rewrite, besides the manifest."""
        return []

    def mutated_files(self, workspace_dir: Path) -> list[Path]:
        return [self.manifest_path(workspace_dir), *self.lock_files(workspace_dir)]

    def _not_supported(self, operation: str) -> Err[HandlerError]:
        return Err(
            HandlerError(
                kind="not_supported",
                message=f"{operation} is not supported for {self.spec.type} projects",
            )
        )


def read_manifest_text(path: Path) -> Result[str, HandlerError]:
    try:
        return Ok(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return Err(HandlerError(kind="manifest_invalid", message=f"manifest not found: {path}"))
    except (OSError, UnicodeDecodeError) as e:
        return Err(HandlerError(kind="io_failed", message=f"failed to read {path}: {e}"))
