"""Release tags: `vMAJOR.MINOR.PATCH` only, no pre-release suffixes."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace

from eco.release.model import Bump

_VERSION_RE = re.compile(r"^v?(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)$")

INITIAL_VERSION = "v0.0.0"


@dataclass(frozen=True, slots=True, order=True)
class SemVer:
    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"v{self.major}.{self.minor}.{self.patch}"

    def bump(self, kind: Bump) -> SemVer:
        if kind == "major":
            return SemVer(self.major + 1, 0, 0)
        if kind == "minor":
            return replace(self, minor=self.minor + 1, patch=0)
        return replace(self, patch=self.patch + 1)


def parse_version(text: str) -> SemVer | None:
    """Parse `vX.Y.Z` or `X.Y.Z`; anything else (pre-releases included) is None."""
    m = _VERSION_RE.match(text.strip())
    if m is None:
        return None
    return SemVer(**{k: int(v) for k, v in m.groupdict().items()})


def bump_tag(current: str, kind: Bump) -> str | None:
    version = parse_version(current)
    return None if version is None else str(version.bump(kind))
