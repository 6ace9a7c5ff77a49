"""Tests for the Python package handler."""

from __future__ import annotations

from pathlib import Path

import pytest

from eco.core.result import Err, Ok
from eco.platform.process import ProcessError
from eco.project import python as python_mod
from eco.project.python import PythonHandler, pin_requirement

PYPROJECT = """[project]
name = "Acme_Flow"
version = "0.3.0"
dependencies = [
    # workspace packages
    "acme-core>=0.1",
    "acme-proxy[cli]~=0.2; python_version >= '3.12'",
    "requests>=2.31",
]

[tool.uv.sources]
acme-core = { path = "../core", editable = true }
"""


def _workspace(tmp_path: Path, content: str = PYPROJECT) -> Path:
    ws = tmp_path / "flow"
    ws.mkdir()
    (ws / "pyproject.toml").write_text(content, encoding="utf-8")
    return ws


def _ok_run(calls: list[list[str]]):
    def fake_run(
        cmd: list[str],
        cwd: Path,
        env: dict[str, str] | None = None,
        *,
        timeout: float | None = None,
    ):
        del cwd, env, timeout
        calls.append(cmd)
        return Ok("")

    return fake_run


class TestPinRequirement:
    def test_plain(self) -> None:
        assert pin_requirement("acme-core>=0.1", "0.2.0") == "acme-core==0.2.0"

    def test_keeps_extras_and_marker(self) -> None:
        pinned = pin_requirement("acme-core[cli]>=0.1; sys_platform == 'linux'", "0.2.0")
        assert pinned == 'acme-core[cli]==0.2.0; sys_platform == "linux"'


class TestParseDependencies:
    def test_prefix_marks_local(self, tmp_path: Path) -> None:
        result = PythonHandler(prefix="acme-").parse_dependencies(_workspace(tmp_path))

        assert isinstance(result, Ok)
        by_name = {d.name: d for d in result.value}
        assert set(by_name) == {"acme-core", "acme-proxy", "requests"}
        assert by_name["acme-core"].workspace_local
        assert by_name["acme-proxy"].workspace_local
        assert not by_name["requests"].workspace_local
        assert by_name["requests"].version == ">=2.31"

    def test_invalid_requirement(self, tmp_path: Path) -> None:
        ws = _workspace(tmp_path, '[project]\nname = "x"\ndependencies = ["not a valid !! req"]\n')

        result = PythonHandler(prefix="acme-").parse_dependencies(ws)

        assert isinstance(result, Err)
        assert result.error.kind == "manifest_invalid"

    def test_invalid_toml(self, tmp_path: Path) -> None:
        result = PythonHandler().parse_dependencies(_workspace(tmp_path, "[project\n"))

        assert isinstance(result, Err)
        assert "invalid TOML" in result.error.message

    def test_identity_is_canonical_name(self, tmp_path: Path) -> None:
        assert PythonHandler().identity(_workspace(tmp_path)) == "acme-flow"


class TestUpdateDependency:
    def test_pins_and_drops_source_override(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        ws = _workspace(tmp_path)
        calls: list[list[str]] = []
        monkeypatch.setattr(python_mod, "run_process", _ok_run(calls))

        result = PythonHandler(prefix="acme-").update_dependency(ws, "acme-core", "v0.2.0")

        assert isinstance(result, Ok)
        text = (ws / "pyproject.toml").read_text(encoding="utf-8")
        assert '"acme-core==0.2.0"' in text
        assert "acme-core>=0.1" not in text
        assert "../core" not in text
        assert "# workspace packages" in text
        assert '"requests>=2.31"' in text
        assert calls == [["uv", "lock"]]

    def test_undeclared_dependency(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        ws = _workspace(tmp_path)
        calls: list[list[str]] = []
        monkeypatch.setattr(python_mod, "run_process", _ok_run(calls))

        result = PythonHandler(prefix="acme-").update_dependency(ws, "acme-other", "v1.0.0")

        assert isinstance(result, Err)
        assert "does not declare" in result.error.message
        assert calls == []
        assert (ws / "pyproject.toml").read_text(encoding="utf-8") == PYPROJECT

    def test_lock_failure(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        ws = _workspace(tmp_path)

        def fake_run(
            cmd: list[str],
            cwd: Path,
            env: dict[str, str] | None = None,
            *,
            timeout: float | None = None,
        ):
            del cwd, env, timeout
            return Err(ProcessError(tuple(cmd), 2, "", "No solution found"))

        monkeypatch.setattr(python_mod, "run_process", fake_run)

        result = PythonHandler(prefix="acme-").update_dependency(ws, "acme-core", "v0.2.0")

        assert isinstance(result, Err)
        assert result.error.kind == "lock_failed"
        assert result.error.hint == "No solution found"


class TestVersion:
    def test_get_and_set(self, tmp_path: Path) -> None:
        ws = _workspace(tmp_path)
        handler = PythonHandler()

        assert handler.get_version(ws) == Ok("0.3.0")
        assert isinstance(handler.set_version(ws, "v0.4.0"), Ok)
        assert handler.get_version(ws) == Ok("0.4.0")
        assert "# workspace packages" in (ws / "pyproject.toml").read_text(encoding="utf-8")

    def test_dynamic_version_unsupported(self, tmp_path: Path) -> None:
        ws = _workspace(tmp_path, '[project]\nname = "x"\ndynamic = ["version"]\n')

        result = PythonHandler().get_version(ws)

        assert isinstance(result, Err)
        assert result.error.hint == "Dynamic versions are not managed by eco."

    def test_set_version_leaves_dynamic_version_alone(self, tmp_path: Path) -> None:
        manifest = '[project]\nname = "x"\ndynamic = ["version"]\n'
        ws = _workspace(tmp_path, manifest)

        result = PythonHandler().set_version(ws, "v1.2.0")

        assert isinstance(result, Err)
        assert result.error.kind == "not_supported"
        assert (ws / "pyproject.toml").read_text(encoding="utf-8") == manifest

    def test_maturin_alias_keeps_manifest(self) -> None:
        handler = PythonHandler(project_type="maturin")
        assert handler.spec.type == "maturin"
        assert handler.spec.manifest == "pyproject.toml"
