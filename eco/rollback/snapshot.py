"""Byte-exact file snapshots and rollback reporting.

Every shared file a multi-step operation is about to mutate is captured
before the first step runs. Rollback writes each capture back verbatim; a
file that did not exist at capture time is deleted instead. Rollback never
raises: failures are collected in the report and shown as warnings so the
error that triggered the rollback stays the one surfaced to the operator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from eco.core.result import Err, Ok, Result
from eco.output.console import ConsoleProtocol, Style
from eco.platform.files import atomic_write_bytes

__all__ = [
    "FileSnapshot",
    "RollbackError",
    "RollbackReport",
    "SnapshotSet",
    "report_rollback",
]


@dataclass(frozen=True, slots=True)
class RollbackError:
    step: str
    message: str


@dataclass(frozen=True, slots=True)
class FileSnapshot:
    path: Path
    content: bytes | None

    @classmethod
    def capture(cls, path: Path) -> Result[FileSnapshot, RollbackError]:
        try:
            content = path.read_bytes() if path.is_file() else None
        except OSError as e:
            return Err(RollbackError(step="snapshot", message=f"cannot read {path}: {e}"))
        return Ok(cls(path=path, content=content))

    @property
    def existed(self) -> bool:
        return self.content is not None

    def matches_disk(self) -> bool:
        try:
            current = self.path.read_bytes() if self.path.is_file() else None
        except OSError:
            return False
        return current == self.content

    def restore(self) -> Result[bool, RollbackError]:
        """Put the captured bytes back; Ok(True) if the file had to change."""
        if self.matches_disk():
            return Ok(False)
        try:
            if self.content is None:
                self.path.unlink(missing_ok=True)
            else:
                atomic_write_bytes(self.path, self.content)
        except OSError as e:
            return Err(RollbackError(step="restore", message=f"cannot restore {self.path}: {e}"))
        return Ok(True)


def _empty_paths() -> list[Path]:
    return []


def _empty_errors() -> list[RollbackError]:
    return []


def _empty_strs() -> list[str]:
    return []


@dataclass(slots=True)
class RollbackReport:
    performed: list[str] = field(default_factory=_empty_strs)
    restored: list[Path] = field(default_factory=_empty_paths)
    removed: list[Path] = field(default_factory=_empty_paths)
    errors: list[RollbackError] = field(default_factory=_empty_errors)
    manual_steps: list[str] = field(default_factory=_empty_strs)

    @property
    def clean(self) -> bool:
        return not self.errors and not self.manual_steps


class SnapshotSet:
    """Snapshots keyed by path; the first capture of a path wins."""

    def __init__(self) -> None:
        self._snapshots: dict[Path, FileSnapshot] = {}

    def __len__(self) -> int:
        return len(self._snapshots)

    def __contains__(self, path: object) -> bool:
        return path in self._snapshots

    def paths(self) -> list[Path]:
        return list(self._snapshots)

    def capture(self, path: Path) -> Result[FileSnapshot, RollbackError]:
        existing = self._snapshots.get(path)
        if existing is not None:
            return Ok(existing)
        snap = FileSnapshot.capture(path)
        if isinstance(snap, Ok):
            self._snapshots[path] = snap.value
        return snap

    def capture_all(self, paths: list[Path]) -> Result[None, RollbackError]:
        for path in paths:
            snap = self.capture(path)
            if isinstance(snap, Err):
                return Err(snap.error)
        return Ok(None)

    def restore_all(self, report: RollbackReport) -> None:
        for snap in self._snapshots.values():
            result = snap.restore()
            if isinstance(result, Err):
                report.errors.append(result.error)
            elif result.value:
                if snap.existed:
                    report.restored.append(snap.path)
                else:
                    report.removed.append(snap.path)


def report_rollback(report: RollbackReport, console: ConsoleProtocol) -> None:
    if report.performed:
        console.print(f"rolled back after: {', '.join(report.performed)}", Style.DIM)
    for path in report.restored:
        console.print(f"restored {path}", Style.DIM)
    for path in report.removed:
        console.print(f"removed {path}", Style.DIM)
    for error in report.errors:
        console.warning(f"rollback ({error.step}): {error.message}")
    for step in report.manual_steps:
        console.warning(f"manual step required: {step}")
