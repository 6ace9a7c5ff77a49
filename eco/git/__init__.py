"""Git operations used by release and repository creation."""

from .repository import GitError, Repository

__all__ = ["GitError", "Repository"]
