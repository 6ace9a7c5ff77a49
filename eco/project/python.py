"""Python package handler (pyproject.toml, built with maturin or any PEP 517 backend).

Reading uses tomllib; every rewrite goes through tomlkit so comments and
formatting of the manifest survive a release.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, cast

import tomlkit
from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name
from tomlkit.exceptions import ParseError

from eco.core.result import Err, Ok, Result
from eco.core.structured import get_str, get_str_list, get_table
from eco.platform.files import atomic_write_text
from eco.platform.process import run as run_process
from eco.project.base import (
    Dependency,
    HandlerError,
    HandlerSpec,
    ProjectHandler,
    read_manifest_text,
)

__all__ = ["PythonHandler", "pin_requirement"]

UV_LOCK_TIMEOUT_SECONDS = 5 * 60.0


def pin_requirement(requirement: str, version: str) -> str:
    """Pin a PEP 508 requirement to an exact version, keeping extras and markers.

    Example:
        pin_requirement("acme-core[cli]>=0.1", "0.2.0") -> "acme-core[cli]==0.2.0"
    """
    req = Requirement(requirement)
    extras = f"[{','.join(sorted(req.extras))}]" if req.extras else ""
    marker = f"; {req.marker}" if req.marker else ""
    return f"{req.name}{extras}=={version}{marker}"


def _plain_version(version: str) -> str:
    return version[1:] if version.startswith("v") else version


class PythonHandler(ProjectHandler):
    spec = HandlerSpec(type="python", manifest="pyproject.toml", references_by_identity=True)

    def __init__(self, prefix: str = "", *, project_type: str = "python") -> None:
        self.prefix = canonicalize_name(prefix) if prefix else ""
        if project_type != self.spec.type:
            self.spec = HandlerSpec(
                type=project_type, manifest="pyproject.toml", references_by_identity=True
            )

    def lock_files(self, workspace_dir: Path) -> list[Path]:
        return [workspace_dir / "uv.lock"]

    def _load(self, workspace_dir: Path) -> Result[dict[str, object], HandlerError]:
        path = self.manifest_path(workspace_dir)
        text = read_manifest_text(path)
        if isinstance(text, Err):
            return text
        try:
            return Ok(tomllib.loads(text.value))
        except tomllib.TOMLDecodeError as e:
            return Err(HandlerError(kind="manifest_invalid", message=f"invalid TOML in {path}: {e}"))

    def identity(self, workspace_dir: Path) -> str | None:
        data = self._load(workspace_dir)
        if isinstance(data, Err):
            return None
        name = get_str(get_table(data.value, "project") or {}, "name")
        return canonicalize_name(name) if name else None

    def _is_local(self, name: str) -> bool:
        return bool(self.prefix) and canonicalize_name(name).startswith(self.prefix)

    def parse_dependencies(self, workspace_dir: Path) -> Result[list[Dependency], HandlerError]:
        data = self._load(workspace_dir)
        if isinstance(data, Err):
            return data
        project = get_table(data.value, "project") or {}

        deps: list[Dependency] = []
        for raw in get_str_list(project, "dependencies"):
            try:
                req = Requirement(raw)
            except InvalidRequirement as e:
                return Err(
                    HandlerError(
                        kind="manifest_invalid",
                        message=f"invalid requirement {raw!r} in {workspace_dir.name}: {e}",
                    )
                )
            deps.append(
                Dependency(
                    name=canonicalize_name(req.name),
                    version=str(req.specifier) or "*",
                    workspace_local=self._is_local(req.name),
                )
            )
        return Ok(deps)

    def _edit(self, workspace_dir: Path) -> Result[tomlkit.TOMLDocument, HandlerError]:
        path = self.manifest_path(workspace_dir)
        text = read_manifest_text(path)
        if isinstance(text, Err):
            return text
        try:
            return Ok(tomlkit.parse(text.value))
        except ParseError as e:
            return Err(HandlerError(kind="manifest_invalid", message=f"invalid TOML in {path}: {e}"))

    def _save(self, workspace_dir: Path, doc: tomlkit.TOMLDocument) -> Result[None, HandlerError]:
        path = self.manifest_path(workspace_dir)
        try:
            atomic_write_text(path, tomlkit.dumps(doc))
        except OSError as e:
            return Err(HandlerError(kind="io_failed", message=f"failed to write {path}: {e}"))
        return Ok(None)

    def update_dependency(
        self, workspace_dir: Path, name: str, version: str
    ) -> Result[None, HandlerError]:
        loaded = self._edit(workspace_dir)
        if isinstance(loaded, Err):
            return loaded
        doc = loaded.value
        target = canonicalize_name(name)

        # Cast needed because tomlkit containers are complex unions
        tool = cast(dict[str, Any], doc.get("tool") or {})
        sources = cast(dict[str, Any], (tool.get("uv") or {}).get("sources") or {})
        for key in [k for k in sources if canonicalize_name(k) == target]:
            del sources[key]

        project = cast(dict[str, Any], doc.get("project") or {})
        deps = project.get("dependencies")
        pinned = False
        if isinstance(deps, list):
            for i, raw in enumerate(deps):
                if canonicalize_name(Requirement(str(raw)).name) == target:
                    deps[i] = pin_requirement(str(raw), _plain_version(version))
                    pinned = True
        if not pinned:
            return Err(
                HandlerError(
                    kind="manifest_invalid",
                    message=f"{workspace_dir.name} does not declare a dependency on {name}",
                )
            )

        saved = self._save(workspace_dir, doc)
        if isinstance(saved, Err):
            return saved

        result = run_process(["uv", "lock"], cwd=workspace_dir, timeout=UV_LOCK_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            e = result.error
            return Err(
                HandlerError(
                    kind="lock_failed",
                    message=f"uv lock failed in {workspace_dir.name}",
                    hint=(e.stderr.strip() or e.stdout.strip()) or None,
                )
            )
        return Ok(None)

    def get_version(self, workspace_dir: Path) -> Result[str, HandlerError]:
        data = self._load(workspace_dir)
        if isinstance(data, Err):
            return data
        version = get_str(get_table(data.value, "project") or {}, "version")
        if version is None:
            return Err(
                HandlerError(
                    kind="manifest_invalid",
                    message=f"no static [project].version in {workspace_dir.name}",
                    hint="Dynamic versions are not managed by eco.",
                )
            )
        return Ok(version)

    def set_version(self, workspace_dir: Path, version: str) -> Result[None, HandlerError]:
        loaded = self._edit(workspace_dir)
        if isinstance(loaded, Err):
            return loaded
        doc = loaded.value
        project = doc.get("project")
        if project is None:
            return Err(
                HandlerError(kind="manifest_invalid", message="missing [project] table")
            )
        if "version" in [str(item) for item in project.get("dynamic", [])]:
            # The build backend owns the version (setuptools-scm, hatch-vcs, ...).
            return Err(
                HandlerError(
                    kind="not_supported",
                    message=f"{workspace_dir.name} declares a dynamic version",
                    hint="Dynamic versions are not managed by eco.",
                )
            )
        project["version"] = _plain_version(version)
        return self._save(workspace_dir, doc)
