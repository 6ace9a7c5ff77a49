"""Architecture checks (opt-in with ECO_ARCH_CHECKS=1)."""

from __future__ import annotations

import ast
import os
from dataclasses import dataclass
from pathlib import Path

import pytest


@dataclass(frozen=True, slots=True)
class ImportRef:
    module: str
    line: int


def require_arch_checks_enabled() -> None:
    if os.getenv("ECO_ARCH_CHECKS") != "1":
        pytest.skip("architecture checks are opt-in; set ECO_ARCH_CHECKS=1 to enable")


def eco_root() -> Path:
    return Path(__file__).resolve().parents[2]


def iter_source_files() -> list[Path]:
    root = eco_root()
    files: list[Path] = []
    for path in sorted(root.rglob("*.py")):
        rel = path.relative_to(root)
        if rel.parts and rel.parts[0] == "test":
            continue
        if any(part.startswith(".") or part == "__pycache__" for part in rel.parts):
            continue
        files.append(path)
    return files


def parse_imports(path: Path) -> list[ImportRef]:
    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    imports: list[ImportRef] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            imports.extend(ImportRef(module=a.name, line=node.lineno) for a in node.names)
        elif isinstance(node, ast.ImportFrom) and not node.level and node.module:
            imports.append(ImportRef(module=node.module, line=node.lineno))
    return imports


def matches_prefix(module: str, prefix: str) -> bool:
    return module == prefix or module.startswith(prefix + ".")


def test_rich_is_only_imported_by_the_console() -> None:
    require_arch_checks_enabled()

    root = eco_root()
    offenders: list[str] = []
    for path in iter_source_files():
        rel = path.relative_to(root).as_posix()
        if rel == "output/console.py":
            continue
        for item in parse_imports(path):
            if matches_prefix(item.module, "rich"):
                offenders.append(f"{rel}:{item.line}: direct rich import '{item.module}'")

    assert not offenders, "Direct rich usage policy violations:\n" + "\n".join(offenders)


def test_subprocess_is_only_used_by_process_runners() -> None:
    require_arch_checks_enabled()

    root = eco_root()
    allowlist = {"platform/process.py", "build/runner.py"}
    offenders: list[str] = []
    for path in iter_source_files():
        rel = path.relative_to(root).as_posix()
        if rel in allowlist:
            continue
        for item in parse_imports(path):
            if matches_prefix(item.module, "subprocess"):
                offenders.append(f"{rel}:{item.line}: subprocess import outside allowlist")

    assert not offenders, "Subprocess policy violations:\n" + "\n".join(offenders)


@pytest.mark.parametrize(
    ("package", "forbidden"),
    [
        ("core", ("eco.cli", "eco.release", "eco.graph", "eco.build", "eco.project")),
        ("graph", ("eco.cli", "eco.release", "eco.build")),
        ("build", ("eco.cli", "eco.release", "eco.graph")),
        ("project", ("eco.cli", "eco.release", "eco.graph")),
        ("release", ("eco.cli",)),
        ("repo", ("eco.cli",)),
        ("rollback", ("eco.cli", "eco.release")),
    ],
)
def test_lower_layers_do_not_import_upper_layers(package: str, forbidden: tuple[str, ...]) -> None:
    require_arch_checks_enabled()

    root = eco_root()
    offenders: list[str] = []
    for path in iter_source_files():
        rel = path.relative_to(root)
        if rel.parts[0] != package:
            continue
        for item in parse_imports(path):
            for prefix in forbidden:
                if matches_prefix(item.module, prefix):
                    offenders.append(f"{rel.as_posix()}:{item.line}: forbidden import '{item.module}'")

    assert not offenders, f"{package} layering violations:\n" + "\n".join(offenders)
