"""Node package handler (package.json)."""

from __future__ import annotations

import json
from pathlib import Path

from eco.core.result import Err, Ok, Result
from eco.core.structured import StrDict, as_str_dict, get_str, get_table
from eco.platform.files import atomic_write_text
from eco.platform.process import run as run_process
from eco.project.base import (
    Dependency,
    HandlerError,
    HandlerSpec,
    ProjectHandler,
    read_manifest_text,
)

__all__ = ["NodeHandler"]

NPM_TIMEOUT_SECONDS = 5 * 60.0


class NodeHandler(ProjectHandler):
    """Handler for npm packages.

    Only `dependencies` are considered; devDependencies never order releases.
    """

    spec = HandlerSpec(type="node", manifest="package.json", references_by_identity=True)

    def __init__(self, scope: str = "") -> None:
        self.scope = scope

    def lock_files(self, workspace_dir: Path) -> list[Path]:
        return [workspace_dir / "package-lock.json"]

    def _load(self, workspace_dir: Path) -> Result[StrDict, HandlerError]:
        path = self.manifest_path(workspace_dir)
        text = read_manifest_text(path)
        if isinstance(text, Err):
            return text
        try:
            obj: object = json.loads(text.value)
        except json.JSONDecodeError as e:
            return Err(HandlerError(kind="manifest_invalid", message=f"invalid JSON in {path}: {e}"))
        data = as_str_dict(obj)
        if data is None:
            return Err(
                HandlerError(kind="manifest_invalid", message=f"{path} must be a JSON object")
            )
        return Ok(data)

    def _save(self, workspace_dir: Path, data: StrDict) -> Result[None, HandlerError]:
        path = self.manifest_path(workspace_dir)
        try:
            atomic_write_text(path, json.dumps(data, indent=2) + "\n")
        except OSError as e:
            return Err(HandlerError(kind="io_failed", message=f"failed to write {path}: {e}"))
        return Ok(None)

    def identity(self, workspace_dir: Path) -> str | None:
        data = self._load(workspace_dir)
        if isinstance(data, Err):
            return None
        return get_str(data.value, "name")

    def parse_dependencies(self, workspace_dir: Path) -> Result[list[Dependency], HandlerError]:
        data = self._load(workspace_dir)
        if isinstance(data, Err):
            return data
        deps = get_table(data.value, "dependencies") or {}
        return Ok(
            [
                Dependency(
                    name=name,
                    version=str(version),
                    workspace_local=bool(self.scope) and name.startswith(self.scope),
                )
                for name, version in deps.items()
            ]
        )

    def update_dependency(
        self, workspace_dir: Path, name: str, version: str
    ) -> Result[None, HandlerError]:
        loaded = self._load(workspace_dir)
        if isinstance(loaded, Err):
            return loaded
        data = loaded.value

        for key in ("overrides", "resolutions"):
            table = get_table(data, key)
            if table is not None:
                table.pop(name, None)

        deps = get_table(data, "dependencies")
        if deps is None or name not in deps:
            return Err(
                HandlerError(
                    kind="manifest_invalid",
                    message=f"{workspace_dir.name} does not declare a dependency on {name}",
                )
            )
        deps[name] = version[1:] if version.startswith("v") else version

        saved = self._save(workspace_dir, data)
        if isinstance(saved, Err):
            return saved

        result = run_process(
            ["npm", "install", "--package-lock-only"],
            cwd=workspace_dir,
            timeout=NPM_TIMEOUT_SECONDS,
        )
        if isinstance(result, Err):
            e = result.error
            return Err(
                HandlerError(
                    kind="lock_failed",
                    message=f"npm install --package-lock-only failed in {workspace_dir.name}",
                    hint=(e.stderr.strip() or e.stdout.strip()) or None,
                )
            )
        return Ok(None)

    def get_version(self, workspace_dir: Path) -> Result[str, HandlerError]:
        data = self._load(workspace_dir)
        if isinstance(data, Err):
            return data
        version = get_str(data.value, "version")
        if version is None:
            return Err(HandlerError(kind="manifest_invalid", message="package.json has no version"))
        return Ok(version)

    def set_version(self, workspace_dir: Path, version: str) -> Result[None, HandlerError]:
        loaded = self._load(workspace_dir)
        if isinstance(loaded, Err):
            return loaded
        data = loaded.value
        data["version"] = version[1:] if version.startswith("v") else version
        return self._save(workspace_dir, data)
