"""Console output abstraction.

Services and the orchestrator report progress through ConsoleProtocol so
they never depend on rich directly. The CLI creates one RichConsole and
passes it down; tests pass a MockConsole and assert on what was printed.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Protocol

__all__ = [
    "Style",
    "ConsoleProtocol",
    "RichConsole",
    "MockConsole",
    "OutputRecord",
]


class Style(Enum):
    """Text styles for console output."""

    DEFAULT = auto()
    SUCCESS = auto()
    ERROR = auto()
    WARNING = auto()
    INFO = auto()
    DIM = auto()
    BOLD = auto()
    HEADER = auto()

    def __str__(self) -> str:
        return self.name.lower()


class ConsoleProtocol(Protocol):
    """Styled, line-oriented output."""

    def print(self, message: str, style: Style = Style.DEFAULT) -> None: ...

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def header(self, message: str) -> None: ...

    def newline(self) -> None: ...


class RichConsole:
    """Production console backed by rich.

    Writes are serialized with a lock: build events can be rendered from a
    consumer thread while the orchestrator prints from the main one.
    """

    _STYLES = {
        Style.SUCCESS: "green",
        Style.ERROR: "red bold",
        Style.WARNING: "yellow",
        Style.INFO: "cyan",
        Style.DIM: "dim",
        Style.BOLD: "bold",
        Style.HEADER: "blue bold",
    }

    def __init__(self, *, no_color: bool = False) -> None:
        from rich.console import Console

        self._console = Console(no_color=no_color, highlight=False)
        self._lock = threading.Lock()

    def _emit(self, message: str, style: Style, *, prefix: str | None = None) -> None:
        from rich.text import Text

        rich_style = self._STYLES.get(style, "")
        line = Text()
        if prefix is not None:
            line.append(prefix, style=rich_style)
            line.append(" ")
            line.append(message)
        else:
            line.append(message, style=rich_style)
        with self._lock:
            self._console.print(line)

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self._emit(message, style)

    def success(self, message: str) -> None:
        self._emit(message, Style.SUCCESS, prefix=_PREFIXES[Style.SUCCESS])

    def error(self, message: str) -> None:
        self._emit(message, Style.ERROR, prefix=_PREFIXES[Style.ERROR])

    def warning(self, message: str) -> None:
        self._emit(message, Style.WARNING, prefix=_PREFIXES[Style.WARNING])

    def info(self, message: str) -> None:
        self._emit(message, Style.INFO, prefix=_PREFIXES[Style.INFO])

    def header(self, message: str) -> None:
        with self._lock:
            self._console.print()
        self._emit(message, Style.HEADER)

    def newline(self) -> None:
        with self._lock:
            self._console.print()


_PREFIXES = {
    Style.SUCCESS: "OK",
    Style.ERROR: "error:",
    Style.WARNING: "warning:",
    Style.INFO: "info:",
}


@dataclass(frozen=True, slots=True)
class OutputRecord:
    message: str
    style: Style


@dataclass
class MockConsole:
    """Records every line instead of printing it.

    success/error/warning/info lines keep their plain-text prefix
    ("OK ", "error: ", ...) so assertions read like the real output.
    """

    outputs: list[OutputRecord] = field(default_factory=list)

    def _record(self, message: str, style: Style) -> None:
        prefix = _PREFIXES.get(style)
        text = f"{prefix} {message}" if prefix else message
        self.outputs.append(OutputRecord(text, style))

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self.outputs.append(OutputRecord(message, style))

    def success(self, message: str) -> None:
        self._record(message, Style.SUCCESS)

    def error(self, message: str) -> None:
        self._record(message, Style.ERROR)

    def warning(self, message: str) -> None:
        self._record(message, Style.WARNING)

    def info(self, message: str) -> None:
        self._record(message, Style.INFO)

    def header(self, message: str) -> None:
        self.outputs.append(OutputRecord(message, Style.HEADER))

    def newline(self) -> None:
        self.outputs.append(OutputRecord("", Style.DEFAULT))

    def clear(self) -> None:
        self.outputs.clear()

    @property
    def messages(self) -> list[str]:
        return [record.message for record in self.outputs]

    @property
    def text(self) -> str:
        return "\n".join(self.messages)

    def has_error(self) -> bool:
        return self.count(Style.ERROR) > 0

    def has_warning(self) -> bool:
        return self.count(Style.WARNING) > 0

    def find(self, substring: str) -> list[OutputRecord]:
        return [record for record in self.outputs if substring in record.message]

    def count(self, style: Style) -> int:
        return sum(record.style is style for record in self.outputs)
