"""Tests for eco.platform.process."""

from __future__ import annotations

import sys
import threading
import time
from pathlib import Path

import pytest

from eco.core.cancel import CancelSignal
from eco.core.result import Err, Ok
from eco.platform.process import ProcessError, merged_env, run


class TestProcessError:
    def test_str_short_command(self) -> None:
        error = ProcessError(command=("git", "status"), returncode=1, stdout="", stderr="")
        assert str(error) == "git status failed (exit 1)"

    def test_str_long_command_truncated(self) -> None:
        error = ProcessError(
            command=("gh", "run", "list", "--repo", "acme/core"),
            returncode=1,
            stdout="",
            stderr="",
        )
        assert str(error) == "gh run list ... failed (exit 1)"

    def test_started(self) -> None:
        assert ProcessError(("x",), 2, "", "").started is True
        assert ProcessError(("x",), -1, "", "").started is False


class TestRun:
    def test_success_returns_stdout(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "print('hello')"], cwd=tmp_path)

        assert isinstance(result, Ok)
        assert result.value.strip() == "hello"

    def test_failure_keeps_exit_code_and_stderr(self, tmp_path: Path) -> None:
        result = run(
            [sys.executable, "-c", "import sys; sys.stderr.write('bad'); sys.exit(42)"],
            cwd=tmp_path,
        )

        assert isinstance(result, Err)
        assert result.error.returncode == 42
        assert "bad" in result.error.stderr
        assert result.error.started

    def test_command_not_found(self, tmp_path: Path) -> None:
        result = run(["nonexistent_command_eco_12345"], cwd=tmp_path)

        assert isinstance(result, Err)
        assert result.error.returncode == -1
        assert not result.error.started

    def test_timeout(self, tmp_path: Path) -> None:
        result = run(
            [sys.executable, "-c", "import time; time.sleep(5)"],
            cwd=tmp_path,
            timeout=0.2,
        )

        assert isinstance(result, Err)
        assert result.error.timed_out
        assert result.error.returncode == -1

    def test_env_is_overlaid(self, tmp_path: Path) -> None:
        result = run(
            [sys.executable, "-c", "import os; print(os.environ['ECO_TEST_VAR'], bool(os.environ.get('PATH')))"],
            cwd=tmp_path,
            env={"ECO_TEST_VAR": "direct"},
        )

        assert isinstance(result, Ok)
        assert result.value.split() == ["direct", "True"]

    def test_uses_cwd(self, tmp_path: Path) -> None:
        (tmp_path / "marker.txt").write_text("x", encoding="utf-8")

        result = run([sys.executable, "-c", "import os; print(os.listdir('.'))"], cwd=tmp_path)

        assert isinstance(result, Ok)
        assert "marker.txt" in result.value


def test_merged_env_none_inherits(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ECO_INHERITED", "1")
    assert merged_env(None) is None
    env = merged_env({"GOPROXY": "direct"})
    assert env is not None
    assert env["GOPROXY"] == "direct"
    assert env["ECO_INHERITED"] == "1"


class TestRunWithCancel:
    def test_completes_normally(self, tmp_path: Path) -> None:
        cancel = CancelSignal()

        result = run([sys.executable, "-c", "print('done')"], cwd=tmp_path, cancel=cancel)

        assert isinstance(result, Ok)
        assert result.value.strip() == "done"

    def test_exit_code_is_kept(self, tmp_path: Path) -> None:
        result = run(
            [sys.executable, "-c", "import sys; sys.exit(3)"],
            cwd=tmp_path,
            cancel=CancelSignal(),
        )

        assert isinstance(result, Err)
        assert result.error.returncode == 3
        assert not result.error.cancelled

    def test_trip_kills_the_running_command(self, tmp_path: Path) -> None:
        cancel = CancelSignal()
        timer = threading.Timer(0.3, cancel.trip, args=("interrupted",))
        started = time.monotonic()
        timer.start()
        try:
            result = run(
                [sys.executable, "-c", "import time; time.sleep(30)"],
                cwd=tmp_path,
                timeout=60,
                cancel=cancel,
            )
        finally:
            timer.cancel()

        assert time.monotonic() - started < 10
        assert isinstance(result, Err)
        assert result.error.cancelled
        assert not result.error.started

    def test_already_tripped_does_not_start(self, tmp_path: Path) -> None:
        marker = tmp_path / "ran.txt"
        cancel = CancelSignal()
        cancel.trip("interrupted")

        result = run(
            [sys.executable, "-c", f"open({str(marker)!r}, 'w').close()"],
            cwd=tmp_path,
            cancel=cancel,
        )

        assert isinstance(result, Err)
        assert result.error.cancelled
        assert not marker.exists()

    def test_timeout_still_applies(self, tmp_path: Path) -> None:
        result = run(
            [sys.executable, "-c", "import time; time.sleep(5)"],
            cwd=tmp_path,
            timeout=0.2,
            cancel=CancelSignal(),
        )

        assert isinstance(result, Err)
        assert result.error.timed_out
        assert not result.error.cancelled
