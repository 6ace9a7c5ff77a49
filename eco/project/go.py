"""Go module handler.

Dependencies come from go.mod `require` directives. A requirement only
counts as workspace-local when it lives under the ecosystem namespace AND
production code imports it: modules used solely by tests must not affect
release ordering.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

from eco.core.result import Err, Ok, Result
from eco.platform.files import atomic_write_text
from eco.platform.process import run as run_process
from eco.project.base import (
    Dependency,
    HandlerError,
    HandlerSpec,
    ProjectHandler,
    read_manifest_text,
)

__all__ = [
    "GoHandler",
    "drop_replace_directive",
    "parse_go_mod",
    "production_imports",
    "source_imports",
]

GO_TIMEOUT_SECONDS = 5 * 60.0

_SKIP_DIRS = frozenset({"test", "tests", "testdata", "vendor"})
_IMPORT_SPEC_RE = re.compile(r'^(?:[\w.]+\s+)?"([^"]+)"$')
_IMPORT_LINE_RE = re.compile(r"^import\s+(.+)$")
_IMPORT_BLOCK_RE = re.compile(r"^import\s*\($")
_MODULE_RE = re.compile(r"^module\s+(\S+)", re.M)


def _strip_comment(line: str) -> str:
    return line.split("//", 1)[0].strip()


def parse_go_mod(text: str) -> tuple[str | None, list[tuple[str, str]]]:
    """Return (module path, [(required path, version), ...])."""
    module_match = _MODULE_RE.search(text)
    module = module_match.group(1).strip('"') if module_match else None

    requires: list[tuple[str, str]] = []
    in_block = False
    for raw in text.splitlines():
        line = _strip_comment(raw)
        if not line:
            continue
        if in_block:
            if line == ")":
                in_block = False
                continue
            parts = line.split()
            if len(parts) >= 2:
                requires.append((parts[0], parts[1]))
            continue
        if re.match(r"^require\s*\($", line):
            in_block = True
            continue
        if line.startswith("require "):
            parts = line[len("require ") :].split()
            if len(parts) >= 2:
                requires.append((parts[0], parts[1]))
    return module, requires


def drop_replace_directive(text: str, name: str) -> str:
    """Remove every `replace name => ...` directive, single-line or in a block.

    An emptied `replace ( )` block is removed as well.
    """
    out: list[str] = []
    block: list[str] | None = None
    for raw in text.splitlines(keepends=True):
        line = _strip_comment(raw)
        if block is not None:
            if line == ")":
                if any(_strip_comment(b) for b in block[1:]):
                    out.extend(block)
                    out.append(raw)
                block = None
                continue
            if _replace_target(line) == name:
                continue
            block.append(raw)
            continue
        if re.match(r"^replace\s*\($", line):
            block = [raw]
            continue
        if line.startswith("replace ") and _replace_target(line[len("replace ") :]) == name:
            continue
        out.append(raw)
    if block is not None:
        out.extend(block)
    return "".join(out)


def _replace_target(line: str) -> str | None:
    if "=>" not in line:
        return None
    left = line.split("=>", 1)[0].split()
    return left[0] if left else None


def source_imports(source: str) -> list[str]:
    """Import paths of one Go file: `import "x"` lines and `import ( ... )` blocks."""
    paths: list[str] = []
    in_block = False
    for raw in source.splitlines():
        line = _strip_comment(raw)
        if not line:
            continue
        if in_block:
            if line == ")":
                in_block = False
                continue
            m = _IMPORT_SPEC_RE.match(line)
            if m:
                paths.append(m.group(1))
            continue
        if _IMPORT_BLOCK_RE.match(line):
            in_block = True
            continue
        single = _IMPORT_LINE_RE.match(line)
        if single:
            m = _IMPORT_SPEC_RE.match(single.group(1))
            if m:
                paths.append(m.group(1))
    return paths


def production_imports(workspace_dir: Path) -> set[str]:
    """All import paths used by non-test, non-vendor Go sources."""
    found: set[str] = set()
    for dirpath, dirnames, filenames in os.walk(workspace_dir):
        dirnames[:] = sorted(
            d for d in dirnames if d not in _SKIP_DIRS and not d.startswith((".", "_"))
        )
        for filename in filenames:
            if not filename.endswith(".go") or filename.endswith("_test.go"):
                continue
            try:
                source = (Path(dirpath) / filename).read_text(encoding="utf-8", errors="replace")
            except OSError:
                continue
            found.update(source_imports(source))
    return found


class GoHandler(ProjectHandler):
    """Handler for Go modules (go.mod).

    Versions are not stored in go.mod; they come from git tags, so
    get_version/set_version report not_supported.
    """

    spec = HandlerSpec(type="go", manifest="go.mod", references_by_identity=True)

    def __init__(self, namespace: str = "") -> None:
        self.namespace = namespace

    def identity(self, workspace_dir: Path) -> str | None:
        text = read_manifest_text(self.manifest_path(workspace_dir))
        if isinstance(text, Err):
            return None
        module, _ = parse_go_mod(text.value)
        return module

    def lock_files(self, workspace_dir: Path) -> list[Path]:
        return [workspace_dir / "go.sum"]

    def _module_of(self, import_path: str) -> str:
        depth = len([p for p in self.namespace.split("/") if p]) + 1
        return "/".join(import_path.split("/")[:depth])

    def parse_dependencies(self, workspace_dir: Path) -> Result[list[Dependency], HandlerError]:
        text = read_manifest_text(self.manifest_path(workspace_dir))
        if isinstance(text, Err):
            return text
        _, requires = parse_go_mod(text.value)

        used: set[str] = set()
        if self.namespace:
            used = {
                self._module_of(path)
                for path in production_imports(workspace_dir)
                if path.startswith(self.namespace)
            }

        return Ok(
            [
                Dependency(
                    name=name,
                    version=version,
                    workspace_local=bool(self.namespace)
                    and name.startswith(self.namespace)
                    and name in used,
                )
                for name, version in requires
            ]
        )

    def update_dependency(
        self, workspace_dir: Path, name: str, version: str
    ) -> Result[None, HandlerError]:
        go_mod = self.manifest_path(workspace_dir)
        text = read_manifest_text(go_mod)
        if isinstance(text, Err):
            return text

        updated = drop_replace_directive(text.value, name)
        if updated != text.value:
            try:
                atomic_write_text(go_mod, updated)
            except OSError as e:
                return Err(HandlerError(kind="io_failed", message=f"failed to write {go_mod}: {e}"))

        env = {"GOPROXY": "direct"}
        if self.namespace:
            env["GOPRIVATE"] = f"{self.namespace.rstrip('/')}/*"

        for cmd in (["go", "get", f"{name}@{version}"], ["go", "mod", "tidy"]):
            result = run_process(cmd, cwd=workspace_dir, env=env, timeout=GO_TIMEOUT_SECONDS)
            if isinstance(result, Err):
                e = result.error
                return Err(
                    HandlerError(
                        kind="lock_failed",
                        message=f"{' '.join(cmd)} failed in {workspace_dir.name}",
                        hint=(e.stderr.strip() or e.stdout.strip()) or None,
                    )
                )
        return Ok(None)

    def get_version(self, workspace_dir: Path) -> Result[str, HandlerError]:
        return self._not_supported("get_version")

    def set_version(self, workspace_dir: Path, version: str) -> Result[None, HandlerError]:
        return self._not_supported("set_version")
