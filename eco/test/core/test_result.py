"""Tests for eco.core.result."""

from __future__ import annotations

import pytest

from eco.core.result import Err, Ok, Result, is_err, is_ok


def _parse(value: str) -> Result[int, str]:
    try:
        return Ok(int(value))
    except ValueError:
        return Err(f"not a number: {value}")


def test_ok_accessors() -> None:
    result = Ok(3)
    assert result.is_ok() and not result.is_err()
    assert result.unwrap() == 3
    assert result.unwrap_or(0) == 3
    assert result.map(lambda v: v * 2) == Ok(6)


def test_err_accessors() -> None:
    result: Err[str] = Err("boom")
    assert result.is_err() and not result.is_ok()
    assert result.unwrap_or(7) == 7
    assert result.map_err(str.upper) == Err("BOOM")
    with pytest.raises(ValueError, match="boom"):
        result.unwrap()


def test_type_guards() -> None:
    assert is_ok(_parse("12"))
    assert is_err(_parse("x"))


def test_pattern_matching() -> None:
    match _parse("x"):
        case Ok(value):
            raise AssertionError(f"unexpected {value}")
        case Err(message):
            assert message == "not a number: x"
