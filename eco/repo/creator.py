"""Create a new workspace repository inside the ecosystem.

Phases, in order:
- skeleton: directory, README.md, eco.toml, CHANGELOG.md, type manifest,
  `git init` and an initial commit
- manifest: register `./<name>` in the root go.work (go workspaces only)
- verify: `make build` then `make test` through the build runner, when the
  skeleton has a Makefile
- remote (optional): `gh repo create <owner>/<name> --source . --push`
- register (optional): `git submodule add <url> <name>` at the root

go.work and .gitmodules are snapshotted before the first phase. If any
phase fails, the snapshots are restored byte for byte, the new directory
is removed and the root index entry for it is dropped. A remote repository
that was already created is left alone and reported as a manual step.
"""

from __future__ import annotations

import json
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from eco.build.model import BuildJob, RunOptions
from eco.build.runner import run_jobs
from eco.core.config import WORKSPACE_FILE, EcoConfig
from eco.core.result import Err, Ok, Result
from eco.core.workspace import Ecosystem
from eco.git.repository import Repository
from eco.output.console import ConsoleProtocol, Style
from eco.platform.files import atomic_write_text
from eco.platform.process import run as run_process
from eco.project.registry import HandlerRegistry
from eco.release.model import CHANGELOG_FILE
from eco.release.timeouts import GH_TIMEOUT_SECONDS
from eco.repo.manifest import add_go_work_use
from eco.rollback.snapshot import RollbackError, RollbackReport, SnapshotSet, report_rollback

__all__ = ["CreateError", "CreateOptions", "CreationState", "RepoCreator", "validate_name"]

_NAME_RE = re.compile(r"^[a-z0-9-]+$")

CreatePhase = Literal["validate", "skeleton", "manifest", "verify", "remote", "register"]


@dataclass(frozen=True, slots=True)
class CreateError:
    phase: CreatePhase
    message: str
    hint: str | None = None
    detail: str | None = None


@dataclass(frozen=True, slots=True)
class CreateOptions:
    name: str
    project_type: str = "go"
    description: str | None = None
    remote_owner: str | None = None
    public: bool = False
    register: bool = False

    @property
    def remote_slug(self) -> str | None:
        if self.remote_owner is None:
            return None
        return f"{self.remote_owner}/{self.name}"


@dataclass(slots=True)
class CreationState:
    """Side effects performed so far; each flag is set right after its step."""

    dir_created: bool = False
    manifest_registered: bool = False
    verified: bool = False
    remote_slug: str | None = None
    registered: bool = False


def validate_name(name: str) -> str | None:
    """Return an error message, or None if `name` is a valid workspace name."""
    if not _NAME_RE.match(name):
        return f"invalid workspace name {name!r}: use lowercase letters, digits and '-'"
    return None


def _render_eco_toml(options: CreateOptions) -> str:
    lines = [f'type = "{options.project_type}"']
    if options.description:
        lines.append(f"description = {json.dumps(options.description)}")
    return "\n".join(lines) + "\n"


def _render_readme(options: CreateOptions) -> str:
    body = options.description or f"{options.project_type} workspace"
    return f"# {options.name}\n\n{body}\n"


class RepoCreator:
    def __init__(
        self,
        *,
        ecosystem: Ecosystem,
        config: EcoConfig,
        registry: HandlerRegistry,
        console: ConsoleProtocol,
    ) -> None:
        self._ecosystem = ecosystem
        self._config = config
        self._registry = registry
        self._console = console

    def create(self, options: CreateOptions) -> Result[Path, CreateError]:
        checked = self._validate(options)
        if isinstance(checked, Err):
            return checked

        target = self._ecosystem.root / options.name
        snapshots = SnapshotSet()
        captured = snapshots.capture_all(
            [self._ecosystem.go_work_path, self._ecosystem.gitmodules_path]
        )
        if isinstance(captured, Err):
            return Err(CreateError(phase="validate", message=captured.error.message))

        state = CreationState()
        result = self._run_phases(options, target, state)
        if isinstance(result, Err):
            self._rollback(options, target, state, snapshots, result.error)
            return result

        self._console.success(f"created {options.name} ({options.project_type})")
        return Ok(target)

    def _validate(self, options: CreateOptions) -> Result[None, CreateError]:
        message = validate_name(options.name)
        if message is not None:
            return Err(CreateError(phase="validate", message=message))
        if options.project_type not in self._registry:
            return Err(
                CreateError(
                    phase="validate",
                    message=f"unknown project type: {options.project_type}",
                    hint=f"Known: {', '.join(self._registry.types())}",
                )
            )
        if (self._ecosystem.root / options.name).exists():
            return Err(
                CreateError(phase="validate", message=f"{options.name} already exists")
            )
        if options.register and options.remote_owner is None:
            return Err(
                CreateError(
                    phase="validate",
                    message="registering a submodule needs a remote",
                    hint="Pass --remote OWNER",
                )
            )
        if shutil.which("git") is None:
            return Err(CreateError(phase="validate", message="git: missing"))
        if options.remote_owner is not None and shutil.which("gh") is None:
            return Err(
                CreateError(
                    phase="validate",
                    message="gh: missing",
                    hint="Install GitHub CLI: https://cli.github.com/",
                )
            )
        return Ok(None)

    def _run_phases(
        self, options: CreateOptions, target: Path, state: CreationState
    ) -> Result[None, CreateError]:
        skeleton = self._skeleton(options, target, state)
        if isinstance(skeleton, Err):
            return skeleton
        manifest = self._register_manifest(options, state)
        if isinstance(manifest, Err):
            return manifest
        verified = self._verify(options, target, state)
        if isinstance(verified, Err):
            return verified
        slug = options.remote_slug
        if slug is not None:
            remote = self._publish(options, target, state, slug)
            if isinstance(remote, Err):
                return remote
        if options.register:
            registered = self._register_submodule(options, state)
            if isinstance(registered, Err):
                return registered
        return Ok(None)

    # Phases

    def _type_manifest(self, options: CreateOptions) -> tuple[str, str] | None:
        handlers = self._config.handlers
        match options.project_type:
            case "go":
                module = options.name
                if handlers.go_namespace:
                    module = f"{handlers.go_namespace.rstrip('/')}/{options.name}"
                return "go.mod", f"module {module}\n\ngo 1.22\n"
            case "python" | "maturin":
                dist = f"{handlers.python_prefix}{options.name}"
                return (
                    "pyproject.toml",
                    f'[project]\nname = "{dist}"\nversion = "0.0.0"\ndependencies = []\n',
                )
            case "node":
                package = options.name
                if handlers.node_scope:
                    package = f"{handlers.node_scope.rstrip('/')}/{options.name}"
                data = {"name": package, "version": "0.0.0", "private": True}
                return "package.json", json.dumps(data, indent=2) + "\n"
            case _:
                return None

    def _skeleton(
        self, options: CreateOptions, target: Path, state: CreationState
    ) -> Result[None, CreateError]:
        files = {
            "README.md": _render_readme(options),
            WORKSPACE_FILE: _render_eco_toml(options),
            CHANGELOG_FILE: "# Changelog\n",
        }
        manifest = self._type_manifest(options)
        if manifest is not None:
            files[manifest[0]] = manifest[1]

        try:
            target.mkdir(parents=False)
            state.dir_created = True
            for name, content in files.items():
                atomic_write_text(target / name, content)
        except OSError as e:
            return Err(CreateError(phase="skeleton", message=f"failed to write skeleton: {e}"))

        repo = Repository(target)
        steps = (
            lambda: repo.init(),
            lambda: repo.add(sorted(files)),
            lambda: repo.commit("chore: initial commit"),
        )
        for step in steps:
            result = step()
            if isinstance(result, Err):
                return Err(
                    CreateError(
                        phase="skeleton",
                        message=f"git {result.error.command} failed",
                        detail=result.error.message,
                    )
                )
        self._console.print(f"skeleton: {', '.join(sorted(files))}", Style.DIM)
        return Ok(None)

    def _register_manifest(
        self, options: CreateOptions, state: CreationState
    ) -> Result[None, CreateError]:
        go_work = self._ecosystem.go_work_path
        if options.project_type != "go" or not go_work.is_file():
            return Ok(None)
        try:
            text = go_work.read_bytes().decode("utf-8")
            updated = add_go_work_use(text, f"./{options.name}")
            if updated != text:
                atomic_write_text(go_work, updated)
        except (OSError, UnicodeDecodeError) as e:
            return Err(CreateError(phase="manifest", message=f"failed to update go.work: {e}"))
        state.manifest_registered = True
        self._console.print(f"go.work: use ./{options.name}", Style.DIM)
        return Ok(None)

    def _verify(
        self, options: CreateOptions, target: Path, state: CreationState
    ) -> Result[None, CreateError]:
        if not (target / "Makefile").is_file():
            self._console.warning(f"{options.name}: no Makefile, skipping local verification")
            return Ok(None)

        handler = self._registry.get(options.project_type)
        if isinstance(handler, Err):
            return Err(CreateError(phase="verify", message=handler.error.message))
        run_options = RunOptions(
            workers=1,
            extra_path_dirs=tuple(self._ecosystem.root / p for p in self._config.build.extra_path),
        )
        for command in (handler.value.build_command(), handler.value.test_command()):
            job = BuildJob(name=options.name, cwd=target, command=tuple(command))
            for result in run_jobs([job], options=run_options):
                if result.error is not None:
                    return Err(
                        CreateError(
                            phase="verify",
                            message=f"{' '.join(command)} failed: {result.error.message}",
                            detail=result.output,
                        )
                    )
        state.verified = True
        self._console.print(f"{options.name}: build and test passed", Style.DIM)
        return Ok(None)

    def _publish(
        self, options: CreateOptions, target: Path, state: CreationState, slug: str
    ) -> Result[None, CreateError]:
        visibility = "--public" if options.public else "--private"
        cmd = ["gh", "repo", "create", slug, visibility, "--source", ".", "--push"]
        result = run_process(cmd, cwd=target, timeout=GH_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            e = result.error
            return Err(
                CreateError(
                    phase="remote",
                    message=f"gh repo create {slug} failed",
                    detail=(e.stderr.strip() or e.stdout.strip()) or None,
                    hint="Check: gh auth status",
                )
            )
        state.remote_slug = slug
        self._console.print(f"remote: https://github.com/{slug}", Style.DIM)
        return Ok(None)

    def _register_submodule(
        self, options: CreateOptions, state: CreationState
    ) -> Result[None, CreateError]:
        url = f"https://github.com/{options.remote_slug}.git"
        result = Repository(self._ecosystem.root).submodule_add(url, options.name)
        if isinstance(result, Err):
            return Err(
                CreateError(
                    phase="register",
                    message=f"git submodule add failed for {options.name}",
                    detail=result.error.message,
                )
            )
        state.registered = True
        self._console.print(f".gitmodules: {options.name}", Style.DIM)
        return Ok(None)

    # Rollback

    def _rollback(
        self,
        options: CreateOptions,
        target: Path,
        state: CreationState,
        snapshots: SnapshotSet,
        error: CreateError,
    ) -> None:
        report = RollbackReport(performed=[error.phase])
        snapshots.restore_all(report)

        root = Repository(self._ecosystem.root)
        if options.register and root.exists():
            unstaged = root.rm_cached(options.name)
            if isinstance(unstaged, Err):
                report.errors.append(RollbackError(step="unstage", message=unstaged.error.message))
            modules = self._ecosystem.root / ".git" / "modules" / options.name
            if modules.is_dir():
                shutil.rmtree(modules, ignore_errors=True)

        if state.dir_created and target.exists():
            try:
                shutil.rmtree(target)
                report.removed.append(target)
            except OSError as e:
                report.errors.append(RollbackError(step="remove", message=f"cannot remove {target}: {e}"))

        if state.remote_slug is not None:
            report.manual_steps.append(f"gh repo delete {state.remote_slug} --yes")

        report_rollback(report, self._console)
