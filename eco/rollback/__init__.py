from eco.rollback.snapshot import (
    FileSnapshot,
    RollbackError,
    RollbackReport,
    SnapshotSet,
    report_rollback,
)

__all__ = [
    "FileSnapshot",
    "RollbackError",
    "RollbackReport",
    "SnapshotSet",
    "report_rollback",
]
