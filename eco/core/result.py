"""Result type for explicit error handling.

Every fallible step of the release pipeline (reading a manifest, running
git, waiting for a workflow) returns a Result instead of raising, so the
orchestrator can tag the failure with its phase and decide on rollback.

Usage:
    match repo.latest_tag():
        case Ok(tag):
            console.print(f"current: {tag}")
        case Err(error):
            console.error(error.message)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeGuard


@dataclass(frozen=True, slots=True)
class Ok[T]:
    """A successful result carrying `value`."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map[U](self, f: Callable[[T], U]) -> Ok[U]:
        """Transform the contained value."""
        return Ok(f(self.value))

    def map_err(self, f: Callable[[object], object]) -> Ok[T]:
        return self

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err[E]:
    """A failed result carrying `error`."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> None:
        """Raise ValueError: an Err has no value."""
        raise ValueError(f"called unwrap on Err: {self.error}")

    def unwrap_or[T](self, default: T) -> T:
        return default

    def map(self, f: Callable[[object], object]) -> Err[E]:
        return self

    def map_err[F](self, f: Callable[[E], F]) -> Err[F]:
        """Transform the contained error (e.g. wrap it with a phase tag)."""
        return Err(f(self.error))

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


type Result[T, E] = Ok[T] | Err[E]


def is_ok[T, E](result: Result[T, E]) -> TypeGuard[Ok[T]]:
    """Narrow a Result to Ok for static type checkers."""
    return isinstance(result, Ok)


def is_err[T, E](result: Result[T, E]) -> TypeGuard[Err[E]]:
    """Narrow a Result to Err for static type checkers."""
    return isinstance(result, Err)
