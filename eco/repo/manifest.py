"""go.work `use` directive registration."""

from __future__ import annotations

import re

__all__ = ["add_go_work_use", "go_work_uses"]

_USE_BLOCK_RE = re.compile(r"^use[ \t]*\([ \t]*$(?P<body>.*?)^\)[ \t]*$", re.MULTILINE | re.DOTALL)
_USE_LINE_RE = re.compile(r"^use[ \t]+(?P<path>[^\s(]\S*)[ \t]*$", re.MULTILINE)


def go_work_uses(text: str) -> list[str]:
    """Directories listed by `use` directives, in file order."""
    uses: list[str] = []
    for block in _USE_BLOCK_RE.finditer(text):
        for line in block.group("body").splitlines():
            entry = line.split("//", 1)[0].strip()
            if entry:
                uses.append(entry)
    uses.extend(m.group("path") for m in _USE_LINE_RE.finditer(text))
    return uses


def add_go_work_use(text: str, directory: str) -> str:
    """Return go.work content with `directory` added to its use directives.

    The entry goes at the end of the first `use ( ... )` block, or after the
    last single-line `use`, or in a new block at the end of the file.
    Already-listed directories leave the text unchanged.
    """
    if directory in go_work_uses(text):
        return text

    block = _USE_BLOCK_RE.search(text)
    if block is not None:
        insert_at = block.end("body")
        return f"{text[:insert_at]}\t{directory}\n{text[insert_at:]}"

    lines = list(_USE_LINE_RE.finditer(text))
    if lines:
        insert_at = lines[-1].end()
        return f"{text[:insert_at]}\nuse {directory}{text[insert_at:]}"

    sep = "" if text.endswith("\n") or not text else "\n"
    return f"{text}{sep}\nuse (\n\t{directory}\n)\n"
