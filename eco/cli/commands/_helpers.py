"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

import typer

from eco.core.result import Err, Result
from eco.output.errors import EcoError, error_exit_code, print_error

if TYPE_CHECKING:
    from eco.cli.context import CLIContext


def unwrap_or_exit[T, E: EcoError](result: Result[T, E], ctx: CLIContext) -> T:
    """Return the Ok value, or print the error and exit with its code.

    Replaces the common pattern:
        match result:
            case Err(e):
                print_error(e, ctx.console)
                raise typer.Exit(code=error_exit_code(e))
            case Ok(value):
                ...
    """
    if isinstance(result, Err):
        print_error(result.error, ctx.console)
        raise typer.Exit(code=error_exit_code(result.error))
    return result.value


def exit_with_code(code: int) -> NoReturn:
    """Exit with given code. Explicit helper for clarity."""
    raise typer.Exit(code=code)
