"""Tests for the CI / release workflow wait protocol."""

from __future__ import annotations

import json
import os
import sys
import threading
import time
from collections.abc import Callable
from pathlib import Path

import pytest

from eco.core.cancel import CancelSignal
from eco.core.result import Err, Ok
from eco.output.console import MockConsole
from eco.platform.process import ProcessError
from eco.release import wait as wait_mod
from eco.release.errors import DiscoveryTimeout, WatchFailed, WorkflowFailed
from eco.release.wait import WaitSettings, wait_for_ci, wait_for_release, wait_for_tag

SLUG = "acme/core"
TAG = "v0.2.0"


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> _Clock:
    c = _Clock()
    monkeypatch.setattr(wait_mod, "monotonic", c.monotonic)
    monkeypatch.setattr(wait_mod, "sleep", c.sleep)
    return c


def _settings(**overrides: float) -> WaitSettings:
    values: dict[str, float] = {
        "poll_interval": 5.0,
        "discovery_timeout": 20.0,
        "overall_timeout": 100.0,
    }
    values.update(overrides)
    return WaitSettings(
        poll_interval=values["poll_interval"],
        discovery_timeout=values["discovery_timeout"],
        overall_timeout=values["overall_timeout"],
    )


def _release_run(run_id: int, branch: str = TAG, name: str = "Release") -> dict[str, object]:
    return {"databaseId": run_id, "headBranch": branch, "event": "push", "workflowName": name}


class _FakeGh:
    """Scripted gh: `lists` are returned in order (the last one repeats)."""

    def __init__(
        self,
        lists: list[object],
        *,
        watch_rc: int = 0,
        watch_timeout: bool = False,
        on_watch: Callable[[], None] | None = None,
    ):
        self.lists = lists
        self.watch_rc = watch_rc
        self.watch_timeout = watch_timeout
        self.on_watch = on_watch
        self.calls: list[list[str]] = []
        self.watch_timeouts: list[float | None] = []
        self.cancels: list[CancelSignal | None] = []

    def __call__(
        self,
        cmd: list[str],
        cwd: Path,
        env: dict[str, str] | None = None,
        *,
        timeout: float | None = None,
        cancel: CancelSignal | None = None,
    ):
        del cwd, env
        self.calls.append(cmd)
        if cmd[:3] == ["gh", "run", "list"]:
            listed = sum(1 for c in self.calls if c[:3] == ["gh", "run", "list"])
            index = min(listed, len(self.lists))
            payload = self.lists[index - 1]
            if isinstance(payload, ProcessError):
                return Err(payload)
            return Ok(json.dumps(payload))
        if cmd[:3] == ["gh", "run", "watch"]:
            self.watch_timeouts.append(timeout)
            self.cancels.append(cancel)
            if self.on_watch is not None:
                self.on_watch()
            if cancel is not None and cancel.is_set():
                return Err(ProcessError(tuple(cmd), -1, "", "cancelled", cancelled=True))
            if self.watch_timeout:
                return Err(ProcessError(tuple(cmd), -1, "", "timed out", timed_out=True))
            if self.watch_rc:
                return Err(ProcessError(tuple(cmd), self.watch_rc, "", ""))
            return Ok("")
        raise AssertionError(f"unexpected command: {cmd}")

    def watched(self) -> list[str]:
        return [c[3] for c in self.calls if c[:3] == ["gh", "run", "watch"]]


class TestReleaseDiscovery:
    def test_polls_until_the_tag_run_appears(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, clock: _Clock
    ) -> None:
        gh = _FakeGh(
            [
                [],
                [_release_run(7, branch="v0.1.0")],
                [_release_run(8, branch=f"refs/tags/{TAG}", name="release")],
            ]
        )
        monkeypatch.setattr(wait_mod, "run_process", gh)

        result = wait_for_tag(
            repo_dir=tmp_path, slug=SLUG, tag=TAG, settings=_settings(), console=MockConsole()
        )

        assert result == Ok(None)
        assert gh.watched() == ["8"]
        assert gh.watch_timeouts == [90.0]

    def test_discovery_timeout(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, clock: _Clock
    ) -> None:
        gh = _FakeGh([[]])
        monkeypatch.setattr(wait_mod, "run_process", gh)
        console = MockConsole()

        result = wait_for_tag(
            repo_dir=tmp_path, slug=SLUG, tag=TAG, settings=_settings(), console=console
        )

        assert isinstance(result, Err)
        assert result.error == DiscoveryTimeout(
            workflow="Release", tag=TAG, attempts=5, waited_seconds=20.0
        )
        assert gh.watched() == []
        assert console.find("4 attempts")

    def test_list_errors_keep_polling(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, clock: _Clock
    ) -> None:
        gh = _FakeGh([ProcessError(("gh",), 1, "", "HTTP 502"), [_release_run(9)]])
        monkeypatch.setattr(wait_mod, "run_process", gh)

        result = wait_for_tag(
            repo_dir=tmp_path, slug=SLUG, tag=TAG, settings=_settings(), console=MockConsole()
        )

        assert result == Ok(None)
        assert gh.watched() == ["9"]

    def test_failed_run(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, clock: _Clock
    ) -> None:
        gh = _FakeGh([[_release_run(11)]], watch_rc=1)
        monkeypatch.setattr(wait_mod, "run_process", gh)

        result = wait_for_tag(
            repo_dir=tmp_path, slug=SLUG, tag=TAG, settings=_settings(), console=MockConsole()
        )

        assert isinstance(result, Err)
        assert result.error == WorkflowFailed(phase="release", run_id=11, exit_code=1)
        assert result.error.message == "release workflow run 11 failed (exit 1)"

    def test_watch_timeout(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, clock: _Clock
    ) -> None:
        gh = _FakeGh([[_release_run(12)]], watch_timeout=True)
        monkeypatch.setattr(wait_mod, "run_process", gh)

        result = wait_for_tag(
            repo_dir=tmp_path, slug=SLUG, tag=TAG, settings=_settings(), console=MockConsole()
        )

        assert isinstance(result, Err)
        assert isinstance(result.error, WatchFailed)
        assert "still running" in result.error.reason

    def test_cancel_before_polling(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, clock: _Clock
    ) -> None:
        gh = _FakeGh([[]])
        monkeypatch.setattr(wait_mod, "run_process", gh)
        cancel = CancelSignal()
        cancel.trip("interrupted")

        result = wait_for_tag(
            repo_dir=tmp_path,
            slug=SLUG,
            tag=TAG,
            settings=_settings(),
            console=MockConsole(),
            cancel=cancel,
        )

        assert result == Err(WatchFailed(phase="release", reason="cancelled"))
        assert gh.calls == []

    def test_cancel_between_polls(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, clock: _Clock
    ) -> None:
        signal = CancelSignal()
        gh = _FakeGh([[]])

        def tripping_run(
            cmd: list[str],
            cwd: Path,
            env: dict[str, str] | None = None,
            *,
            timeout: float | None = None,
            cancel: CancelSignal | None = None,
        ):
            signal.trip("interrupted")
            return gh(cmd, cwd, env, timeout=timeout, cancel=cancel)

        monkeypatch.setattr(wait_mod, "run_process", tripping_run)

        result = wait_for_tag(
            repo_dir=tmp_path,
            slug=SLUG,
            tag=TAG,
            settings=_settings(),
            console=MockConsole(),
            cancel=signal,
        )

        assert result == Err(WatchFailed(phase="release", reason="cancelled"))
        assert len(gh.calls) == 1

    def test_cancel_during_watch(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, clock: _Clock
    ) -> None:
        signal = CancelSignal()
        gh = _FakeGh([[_release_run(13)]], on_watch=lambda: signal.trip("interrupted"))
        monkeypatch.setattr(wait_mod, "run_process", gh)

        result = wait_for_tag(
            repo_dir=tmp_path,
            slug=SLUG,
            tag=TAG,
            settings=_settings(),
            console=MockConsole(),
            cancel=signal,
        )

        assert result == Err(WatchFailed(phase="release", reason="cancelled"))
        assert gh.cancels == [signal]

    @pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell script")
    def test_cancel_kills_a_running_watch(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir()
        gh = bin_dir / "gh"
        gh.write_text(
            "#!/bin/sh\n"
            'if [ "$2" = "list" ]; then\n'
            f"  echo '{json.dumps([_release_run(5)])}'\n"
            "  exit 0\n"
            "fi\n"
            "sleep 30\n",
            encoding="utf-8",
        )
        gh.chmod(0o755)
        monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")

        signal = CancelSignal()
        timer = threading.Timer(0.5, signal.trip, args=("interrupted",))
        timer.start()
        started = time.monotonic()
        try:
            result = wait_for_tag(
                repo_dir=tmp_path,
                slug=SLUG,
                tag=TAG,
                settings=_settings(),
                console=MockConsole(),
                cancel=signal,
            )
        finally:
            timer.cancel()

        assert result == Err(WatchFailed(phase="release", reason="cancelled"))
        assert time.monotonic() - started < 10


class TestPreexistingCi:
    def test_active_run_is_watched(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        gh = _FakeGh(
            [
                [
                    {"databaseId": 3, "status": "in_progress", "conclusion": ""},
                    {"databaseId": 2, "status": "completed", "conclusion": "success"},
                ]
            ]
        )
        monkeypatch.setattr(wait_mod, "run_process", gh)

        result = wait_for_ci(
            repo_dir=tmp_path, slug=SLUG, settings=_settings(), console=MockConsole()
        )

        assert result == Ok(None)
        assert gh.watched() == ["3"]

    def test_completed_failure_is_fatal(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        gh = _FakeGh([[{"databaseId": 4, "status": "completed", "conclusion": "failure"}]])
        monkeypatch.setattr(wait_mod, "run_process", gh)

        result = wait_for_ci(
            repo_dir=tmp_path, slug=SLUG, settings=_settings(), console=MockConsole()
        )

        assert result == Err(WorkflowFailed(phase="ci", run_id=4, conclusion="failure"))

    @pytest.mark.parametrize("payload", [[], ProcessError(("gh",), 1, "", "no workflow")])
    def test_nothing_to_check_is_advisory(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, payload: object
    ) -> None:
        gh = _FakeGh([payload])
        monkeypatch.setattr(wait_mod, "run_process", gh)

        result = wait_for_ci(
            repo_dir=tmp_path, slug=SLUG, settings=_settings(), console=MockConsole()
        )

        assert result == Ok(None)
        assert gh.watched() == []

    def test_cancel_stops_the_active_watch(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        signal = CancelSignal()
        gh = _FakeGh(
            [[{"databaseId": 3, "status": "in_progress", "conclusion": ""}]],
            on_watch=lambda: signal.trip("interrupted"),
        )
        monkeypatch.setattr(wait_mod, "run_process", gh)

        result = wait_for_ci(
            repo_dir=tmp_path, slug=SLUG, settings=_settings(), console=MockConsole(), cancel=signal
        )

        assert result == Err(WatchFailed(phase="ci", reason="cancelled"))
        assert gh.cancels == [signal]

    def test_already_cancelled_lists_nothing(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        gh = _FakeGh([[]])
        monkeypatch.setattr(wait_mod, "run_process", gh)
        signal = CancelSignal()
        signal.trip("interrupted")

        result = wait_for_ci(
            repo_dir=tmp_path, slug=SLUG, settings=_settings(), console=MockConsole(), cancel=signal
        )

        assert result == Err(WatchFailed(phase="ci", reason="cancelled"))
        assert gh.calls == []


def test_release_wait_runs_both_phases(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, clock: _Clock
) -> None:
    gh = _FakeGh(
        [
            [{"databaseId": 1, "status": "completed", "conclusion": "success"}],
            [_release_run(20)],
        ]
    )
    monkeypatch.setattr(wait_mod, "run_process", gh)

    result = wait_for_release(
        repo_dir=tmp_path, slug=SLUG, tag=TAG, settings=_settings(), console=MockConsole()
    )

    assert result == Ok(None)
    lists = [c for c in gh.calls if c[:3] == ["gh", "run", "list"]]
    assert lists[0][lists[0].index("--workflow") + 1] == "CI"
    assert lists[1][lists[1].index("--workflow") + 1] == "Release"
    assert gh.watched() == ["20"]


def test_release_wait_shares_one_deadline(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, clock: _Clock
) -> None:
    def slow_watch() -> None:
        clock.now += 60.0

    gh = _FakeGh(
        [
            [{"databaseId": 3, "status": "in_progress", "conclusion": ""}],
            [_release_run(21)],
        ],
        on_watch=slow_watch,
    )
    monkeypatch.setattr(wait_mod, "run_process", gh)

    result = wait_for_release(
        repo_dir=tmp_path, slug=SLUG, tag=TAG, settings=_settings(), console=MockConsole()
    )

    assert result == Ok(None)
    assert gh.watched() == ["3", "21"]
    assert gh.watch_timeouts == [100.0, 40.0]
