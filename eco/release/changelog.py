"""Changelog generation and hash-based dirty tracking.

The hash is the sha256 of the full CHANGELOG.md bytes as written by eco.
Any later edit, whitespace included, makes the recomputed hash differ and
flips the repo's changelog_state to "dirty"; only a rewrite restores
"clean" with a fresh hash.
"""

from __future__ import annotations

import hashlib
import re
from datetime import date
from pathlib import Path

from eco.core.result import Err, Ok, Result
from eco.platform.files import atomic_write_bytes
from eco.release.commits import classify, describe
from eco.release.errors import ReleaseError
from eco.release.model import ChangelogState, RepoReleasePlan

__all__ = [
    "hash_content",
    "has_version_section",
    "refresh_changelog_state",
    "render_section",
    "strip_version_section",
    "write_changelog",
]

_GROUPS = (
    ("breaking", "Breaking Changes"),
    ("feature", "Features"),
    ("fix", "Bug Fixes"),
    ("other", "Other Changes"),
)


def hash_content(content: bytes | str) -> str:
    data = content.encode("utf-8") if isinstance(content, str) else content
    return hashlib.sha256(data).hexdigest()


def render_section(
    version: str,
    subjects: list[str],
    *,
    dependency_updates: list[str] | None = None,
    on: date | None = None,
) -> str:
    """Render the `## <version> (<date>)` section for a release."""
    day = (on or date.today()).isoformat()
    lines = [f"## {version} ({day})", ""]

    for kind, title in _GROUPS:
        items = [describe(s) for s in subjects if classify(s) == kind]
        if items:
            lines.append(f"### {title}")
            lines.extend(f"- {item}" for item in items)
            lines.append("")

    if dependency_updates:
        lines.append("### Dependencies")
        lines.extend(f"- {item}" for item in dependency_updates)
        lines.append("")

    if len(lines) == 2:
        lines.extend(["### Other Changes", "- Maintenance release", ""])

    return "\n".join(lines).rstrip("\n") + "\n"


def _header_re(version: str) -> re.Pattern[str]:
    return re.compile(rf"^## .*(?<![\w.]){re.escape(version)}(?![\w.])")


def has_version_section(text: str, version: str) -> bool:
    pattern = _header_re(version)
    return any(pattern.match(line) for line in text.splitlines())


def strip_version_section(text: str, version: str) -> str:
    """Drop the section for `version` (header up to the next `## ` header)."""
    pattern = _header_re(version)
    out: list[str] = []
    skipping = False
    for line in text.splitlines(keepends=True):
        if line.startswith("## "):
            skipping = bool(pattern.match(line))
        if not skipping:
            out.append(line)
    return "".join(out)


def _prepend(existing: str, section: str) -> str:
    """Insert `section` above the newest entry, below a leading `# ` title."""
    if existing.startswith("# "):
        title, _, rest = existing.partition("\n")
        rest = rest.lstrip("\n")
        if not rest:
            return f"{title}\n\n{section}"
        return f"{title}\n\n{section}\n{rest}"
    if not existing.strip():
        return section
    return f"{section}\n{existing}"


def write_changelog(
    repo_dir: Path, plan: RepoReleasePlan, section: str
) -> Result[str, ReleaseError]:
    """Write `section` as the newest entry and record the resulting hash.

    An existing section for the same version is replaced. Returns the stored
    hash; the repo's state becomes "clean".
    """
    path = repo_dir / plan.changelog_path
    try:
        existing = path.read_bytes().decode("utf-8") if path.exists() else ""
        existing = strip_version_section(existing, plan.next_version)
        content = _prepend(existing, section).encode("utf-8")
        atomic_write_bytes(path, content)
    except (OSError, UnicodeDecodeError) as e:
        return Err(
            ReleaseError(
                kind="changelog_failed",
                message=f"failed to write {path}: {e}",
            )
        )

    digest = hash_content(content)
    plan.changelog_hash = digest
    plan.changelog_state = "clean"
    return Ok(digest)


def refresh_changelog_state(repo_dir: Path, plan: RepoReleasePlan) -> ChangelogState:
    """Recompute the on-disk hash and move clean -> dirty on mismatch."""
    if plan.changelog_state != "clean" or plan.changelog_hash is None:
        return plan.changelog_state

    path = repo_dir / plan.changelog_path
    try:
        current = hash_content(path.read_bytes())
    except OSError:
        current = None

    if current != plan.changelog_hash:
        plan.changelog_state = "dirty"
    return plan.changelog_state
