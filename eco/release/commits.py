"""Conventional-commit analysis: bump suggestion and changelog grouping."""

from __future__ import annotations

import re
from typing import Literal

from eco.release.model import Bump

__all__ = ["CommitKind", "classify", "describe", "suggest_bump"]

CommitKind = Literal["breaking", "feature", "fix", "other"]

_PREFIX_RE = re.compile(r"^(?P<type>[A-Za-z]+)(?:\((?P<scope>[^)]*)\))?(?P<bang>!)?:\s*(?P<rest>.*)$")


def classify(subject: str) -> CommitKind:
    if "BREAKING" in subject or "!:" in subject:
        return "breaking"
    m = _PREFIX_RE.match(subject)
    if m is None:
        return "other"
    kind = m.group("type").lower()
    if kind == "feat":
        return "feature"
    if kind == "fix":
        return "fix"
    return "other"


def describe(subject: str) -> str:
    """Subject without its conventional prefix; scope kept in bold."""
    m = _PREFIX_RE.match(subject)
    if m is None:
        return subject.strip()
    rest = m.group("rest").strip() or subject.strip()
    scope = m.group("scope")
    return f"**{scope}:** {rest}" if scope else rest


def suggest_bump(subjects: list[str]) -> tuple[Bump | None, str]:
    """Suggest a bump for commits since the last release.

    Returns (None, reason) when there is nothing to release.
    """
    if not subjects:
        return None, "no commits since last release"

    kinds = [classify(s) for s in subjects]
    breaking = kinds.count("breaking")
    features = kinds.count("feature")
    if breaking:
        return "major", f"{breaking} breaking change(s)"
    if features:
        return "minor", f"{features} new feature(s)"
    return "patch", f"{len(subjects)} commit(s), no features or breaking changes"
