"""Template workspaces: scaffolding repos with no manifest of their own."""

from __future__ import annotations

from pathlib import Path

from eco.core.config import WORKSPACE_FILE
from eco.core.result import Ok, Result
from eco.project.base import Dependency, HandlerError, HandlerSpec, ProjectHandler

__all__ = ["TemplateHandler"]


class TemplateHandler(ProjectHandler):
    spec = HandlerSpec(type="template", manifest=WORKSPACE_FILE)

    def parse_dependencies(self, workspace_dir: Path) -> Result[list[Dependency], HandlerError]:
        return Ok([])

    def update_dependency(
        self, workspace_dir: Path, name: str, version: str
    ) -> Result[None, HandlerError]:
        return self._not_supported("update_dependency")

    def get_version(self, workspace_dir: Path) -> Result[str, HandlerError]:
        return self._not_supported("get_version")

    def set_version(self, workspace_dir: Path, version: str) -> Result[None, HandlerError]:
        return self._not_supported("set_version")

    def build_command(self) -> list[str]:
        # Templates have nothing to compile; their test target renders them.
        return ["make", "test"]
