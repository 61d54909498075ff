"""Error taxonomy for the feature lifecycle and merge core.

Every error raised by clauding derives from :class:`ClaudingError` so the CLI
can report it uniformly. Git subprocess failures are surfaced as
:class:`GitCommandError`; the "nothing to commit" case has its own subclass
because it is recovered locally almost everywhere it can occur.

Non-fatal problems in trailing steps of an otherwise successful operation are
modelled as :class:`ClaudingWarning` subclasses. They are collected on result
objects and logged, never raised.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

__all__ = [
    "ClaudingError",
    "ConfigError",
    "GitCommandError",
    "NothingToCommitError",
    "WorktreeCreationError",
    "WorktreeNotFoundError",
    "WorktreeRenameError",
    "FeatureNotFoundError",
    "FeatureExistsError",
    "InvalidFeatureNameError",
    "UncommittedChangesError",
    "UnsavedEditorsError",
    "InvalidConflictStrategyError",
    "AgentResolutionPendingError",
    "MergeError",
    "CleanupError",
    "TimelogError",
    "ClaudingWarning",
    "BranchDeletionWarning",
    "FeatureFolderWarning",
    "ArchiveIndexWarning",
    "collect_warning",
]


class ClaudingError(Exception):
    """Base class for all clauding errors."""


class ConfigError(ClaudingError):
    """Raised when the project configuration cannot be loaded."""


class GitCommandError(ClaudingError):
    """A git subprocess exited non-zero."""

    def __init__(
        self,
        args: Sequence[str],
        returncode: int,
        stdout: str = "",
        stderr: str = "",
        cwd: Path | None = None,
    ) -> None:
        self.git_args = list(args)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.cwd = cwd
        detail = (stderr or stdout).strip()
        message = f"git {' '.join(self.git_args)} failed with exit code {returncode}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)

    @property
    def output(self) -> str:
        """Combined stdout and stderr, for message matching."""
        return f"{self.stdout}\n{self.stderr}"


class NothingToCommitError(GitCommandError):
    """git refused to commit because nothing was staged."""


class WorktreeCreationError(ClaudingError):
    """The branch or worktree path for a new feature already exists, or git failed."""


class WorktreeNotFoundError(ClaudingError):
    """The worktree for a feature does not exist."""

    def __init__(self, feature_name: str, path: Path | None = None) -> None:
        self.feature_name = feature_name
        self.path = path
        super().__init__(f'Worktree for feature "{feature_name}" does not exist')


class WorktreeRenameError(ClaudingError):
    """A worktree could not be moved to its new name."""


class FeatureNotFoundError(ClaudingError):
    """No active feature with the given name exists."""

    def __init__(self, feature_name: str) -> None:
        self.feature_name = feature_name
        super().__init__(f"Feature not found: {feature_name}")


class FeatureExistsError(ClaudingError):
    """An active feature with the given name already exists."""

    def __init__(self, feature_name: str) -> None:
        self.feature_name = feature_name
        super().__init__(f'Active feature "{feature_name}" already exists')


class InvalidFeatureNameError(ClaudingError, ValueError):
    """A feature name is not usable as a branch suffix and directory name."""


class UncommittedChangesError(ClaudingError):
    """The feature worktree must be clean for this operation."""

    def __init__(self, worktree_path: Path) -> None:
        self.worktree_path = worktree_path
        super().__init__("Feature has uncommitted changes. Please commit first.")


class UnsavedEditorsError(ClaudingError):
    """Open editors under the worktree hold unsaved changes."""

    def __init__(self, paths: Sequence[str]) -> None:
        self.paths = list(paths)
        super().__init__(
            f"{len(self.paths)} editor(s) have unsaved changes: {', '.join(self.paths)}"
        )


class InvalidConflictStrategyError(ClaudingError, ValueError):
    """A conflict resolution strategy name is not recognised."""

    def __init__(self, strategy: object) -> None:
        self.strategy = strategy
        super().__init__(f"Invalid conflict resolution strategy: {strategy}")


class AgentResolutionPendingError(ClaudingError):
    """Conflicts are deferred to an external agent and are not resolved yet.

    This is a deferred state rather than a failure: the merge stays in
    progress and the caller may retry once the agent has finished.
    """

    def __init__(self, conflicted_files: Sequence[str]) -> None:
        self.conflicted_files = list(conflicted_files)
        super().__init__(
            f"Agent did not resolve all conflicts ({len(self.conflicted_files)} remaining)"
        )


class MergeError(ClaudingError):
    """A merge failed for a reason other than conflicts."""


class CleanupError(ClaudingError):
    """Pre-merge cleanup could not run."""


class TimelogError(ClaudingError):
    """The timelog file is unreadable."""


class ClaudingWarning(UserWarning):
    """Base class for non-fatal problems reported alongside a success."""


class BranchDeletionWarning(ClaudingWarning):
    """The feature branch could not be deleted after merge or deletion."""


class FeatureFolderWarning(ClaudingWarning):
    """The permanent features folder could not be removed or renamed."""


class ArchiveIndexWarning(ClaudingWarning):
    """The archived-features cache could not be updated."""


def collect_warning(
    warnings: list[str],
    warning: ClaudingWarning,
    logger: logging.Logger,
    cause: BaseException | None = None,
) -> None:
    """Log ``warning`` and append its message to a result's ``warnings``."""
    if cause is not None:
        logger.warning("%s: %s (%s)", type(warning).__name__, warning, cause)
    else:
        logger.warning("%s: %s", type(warning).__name__, warning)
    warnings.append(str(warning))
