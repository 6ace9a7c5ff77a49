"""eco: dependency-aware release orchestration for a multi-repo ecosystem."""

__version__ = "0.1.0"
