"""Workspace repository creation with snapshot-based rollback."""

from .creator import CreateError, CreateOptions, CreationState, RepoCreator, validate_name
from .manifest import add_go_work_use, go_work_uses

__all__ = [
    "CreateError",
    "CreateOptions",
    "CreationState",
    "RepoCreator",
    "add_go_work_use",
    "go_work_uses",
    "validate_name",
]
