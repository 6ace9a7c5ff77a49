"""Tests for eco.platform.files."""

from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from eco.platform.files import atomic_write_bytes, atomic_write_text


def test_writes_and_creates_parents(tmp_path: Path) -> None:
    path = tmp_path / "a" / "b" / "plan.json"

    atomic_write_text(path, "{}\n")

    assert path.read_text(encoding="utf-8") == "{}\n"


def test_replaces_existing_bytes_exactly(tmp_path: Path) -> None:
    path = tmp_path / "go.work"
    path.write_bytes(b"old")

    atomic_write_bytes(path, b"go 1.22\r\n\r\nuse ./core\r\n")

    assert path.read_bytes() == b"go 1.22\r\n\r\nuse ./core\r\n"


def test_leaves_no_temp_files(tmp_path: Path) -> None:
    atomic_write_text(tmp_path / "CHANGELOG.md", "# Changelog\n")

    assert sorted(p.name for p in tmp_path.iterdir()) == ["CHANGELOG.md"]


@pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
def test_keeps_mode_of_replaced_file(tmp_path: Path) -> None:
    path = tmp_path / "build.sh"
    path.write_text("old", encoding="utf-8")
    path.chmod(0o755)

    atomic_write_text(path, "new")

    assert stat.S_IMODE(path.stat().st_mode) == 0o755
