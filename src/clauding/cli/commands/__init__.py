"""CLI command modules for clauding."""

from . import feature, merge, timelog

__all__ = ["feature", "merge", "timelog"]
