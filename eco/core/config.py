"""Typed loading of `ecosystem.toml` and per-workspace `eco.toml`.

The root file describes the ecosystem as a whole (workspace globs, handler
namespaces, build pool and CI wait tuning). Each workspace carries a small
`eco.toml` declaring its project type.
"""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_str_dict,
    get_float,
    get_int,
    get_str,
    get_str_list,
    get_table,
)

__all__ = [
    "BuildConfig",
    "CiConfig",
    "ConfigError",
    "EcoConfig",
    "HandlersConfig",
    "WorkspaceDecl",
    "DEFAULT_PROJECT_TYPE",
    "ECOSYSTEM_FILE",
    "WORKSPACE_FILE",
    "load_config",
    "load_workspace_decl",
]

ECOSYSTEM_FILE = "ecosystem.toml"
WORKSPACE_FILE = "eco.toml"
DEFAULT_PROJECT_TYPE = "go"


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when a config file cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class HandlersConfig:
    """Namespaces that mark a dependency as belonging to the ecosystem."""

    go_namespace: str = ""
    python_prefix: str = ""
    node_scope: str = ""


@dataclass(frozen=True, slots=True)
class BuildConfig:
    workers: int = 0  # 0 = cpu count
    extra_path: tuple[str, ...] = ("bin",)


@dataclass(frozen=True, slots=True)
class CiConfig:
    ci_workflow: str = "CI"
    release_workflow: str = "Release"
    poll_interval_seconds: float = 5.0
    discovery_timeout_seconds: float = 30 * 60.0
    overall_timeout_seconds: float = 60 * 60.0


@dataclass(frozen=True, slots=True)
class EcoConfig:
    """Root ecosystem configuration."""

    name: str = "ecosystem"
    workspaces: tuple[str, ...] = ("*",)
    handlers: HandlersConfig = field(default_factory=HandlersConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    ci: CiConfig = field(default_factory=CiConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> EcoConfig:
        eco: StrDict = get_table(data, "ecosystem") or {}
        handlers: StrDict = get_table(data, "handlers") or {}
        build: StrDict = get_table(data, "build") or {}
        ci: StrDict = get_table(data, "ci") or {}

        defaults = CiConfig()
        workers = get_int(build, "workers") or 0
        if workers < 0:
            raise ValueError(f"build.workers must be >= 0, got {workers}")

        extra_path = tuple(get_str_list(build, "extra_path")) if "extra_path" in build else ("bin",)

        return cls(
            name=get_str(eco, "name") or "ecosystem",
            workspaces=tuple(get_str_list(eco, "workspaces")) or ("*",),
            handlers=HandlersConfig(
                go_namespace=get_str(handlers, "go_namespace") or "",
                python_prefix=get_str(handlers, "python_prefix") or "",
                node_scope=get_str(handlers, "node_scope") or "",
            ),
            build=BuildConfig(workers=workers, extra_path=extra_path),
            ci=CiConfig(
                ci_workflow=get_str(ci, "ci_workflow") or defaults.ci_workflow,
                release_workflow=get_str(ci, "release_workflow") or defaults.release_workflow,
                poll_interval_seconds=get_float(ci, "poll_interval_seconds")
                or defaults.poll_interval_seconds,
                discovery_timeout_seconds=get_float(ci, "discovery_timeout_seconds")
                or defaults.discovery_timeout_seconds,
                overall_timeout_seconds=get_float(ci, "overall_timeout_seconds")
                or defaults.overall_timeout_seconds,
            ),
        )


@dataclass(frozen=True, slots=True)
class WorkspaceDecl:
    """Contents of a workspace's eco.toml."""

    type: str = DEFAULT_PROJECT_TYPE
    description: str | None = None


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def load_config(path: Path) -> Result[EcoConfig, ConfigError]:
    """Load the root ecosystem.toml."""
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(EcoConfig.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_workspace_decl(workspace_dir: Path) -> Result[WorkspaceDecl, ConfigError]:
    """Load a workspace's type declaration.

    A missing eco.toml is an error here; discovery only yields directories
    that contain one.
    """
    result = _parse_toml(workspace_dir / WORKSPACE_FILE)
    if isinstance(result, Err):
        return result
    data = result.value
    return Ok(
        WorkspaceDecl(
            type=get_str(data, "type") or DEFAULT_PROJECT_TYPE,
            description=get_str(data, "description"),
        )
    )
