"""Platform abstraction layer."""

from .files import atomic_write_bytes, atomic_write_text
from .process import ProcessError, kill_tree, merged_env, run

__all__ = [
    # files
    "atomic_write_bytes",
    "atomic_write_text",
    # process
    "ProcessError",
    "kill_tree",
    "merged_env",
    "run",
]
