"""Core types shared by every layer."""

from .config import ConfigError, EcoConfig, WorkspaceDecl, load_config, load_workspace_decl
from .errors import ErrorCode
from .result import Err, Ok, Result, is_err, is_ok
from .workspace import Ecosystem, WorkspaceError, detect_ecosystem, discover_workspaces

__all__ = [
    # config
    "ConfigError",
    "EcoConfig",
    "WorkspaceDecl",
    "load_config",
    "load_workspace_decl",
    # errors
    "ErrorCode",
    # result
    "Err",
    "Ok",
    "Result",
    "is_err",
    "is_ok",
    # workspace
    "Ecosystem",
    "WorkspaceError",
    "detect_ecosystem",
    "discover_workspaces",
]
