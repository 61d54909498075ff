"""Git plumbing, persisted layout, configuration and error taxonomy."""

from .config import ClaudingConfig, load_config, save_config
from .exceptions import (
    AgentResolutionPendingError,
    BranchDeletionWarning,
    ClaudingError,
    ConfigError,
    FeatureExistsError,
    FeatureNotFoundError,
    GitCommandError,
    InvalidConflictStrategyError,
    InvalidFeatureNameError,
    NothingToCommitError,
    UncommittedChangesError,
    UnsavedEditorsError,
    WorktreeCreationError,
    WorktreeNotFoundError,
    WorktreeRenameError,
)
from .git_ops import GitClient
from .paths import ClaudingPaths, ensure_clauding_directories, locate_project_root
from .worktree import WorktreeManager

__all__ = [
    "AgentResolutionPendingError",
    "BranchDeletionWarning",
    "ClaudingConfig",
    "ClaudingError",
    "ClaudingPaths",
    "ConfigError",
    "FeatureExistsError",
    "FeatureNotFoundError",
    "GitClient",
    "GitCommandError",
    "InvalidConflictStrategyError",
    "InvalidFeatureNameError",
    "NothingToCommitError",
    "UncommittedChangesError",
    "UnsavedEditorsError",
    "WorktreeCreationError",
    "WorktreeManager",
    "WorktreeNotFoundError",
    "WorktreeRenameError",
    "ensure_clauding_directories",
    "load_config",
    "locate_project_root",
    "save_config",
]
