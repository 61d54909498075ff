"""Create, move and remove per-feature git worktrees and their branches."""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path

from clauding.core.config import ClaudingConfig
from clauding.core.exceptions import (
    GitCommandError,
    WorktreeCreationError,
    WorktreeNotFoundError,
    WorktreeRenameError,
)
from clauding.core.git_ops import GitClient
from clauding.core.paths import ClaudingPaths

logger = logging.getLogger(__name__)

__all__ = ["WorktreeManager", "sanitize_branch_suffix"]

_WHITESPACE = re.compile(r"\s+")


def sanitize_branch_suffix(feature_name: str) -> str:
    """Replace whitespace runs with ``-`` so the name is a valid ref component."""
    return _WHITESPACE.sub("-", feature_name)


class WorktreeManager:
    """Physical lifecycle of a feature: branch, worktree and features folder.

    Removal is idempotent. Branch deletion raises :class:`GitCommandError`;
    callers that run it as a trailing step downgrade that to a warning.
    """

    def __init__(self, project_root: Path, config: ClaudingConfig, git: GitClient | None = None) -> None:
        self.project_root = project_root
        self.config = config
        self.git = git or GitClient()
        self.paths = ClaudingPaths(project_root)

    def branch_name(self, feature_name: str) -> str:
        return f"{self.config.branch_prefix}{sanitize_branch_suffix(feature_name)}"

    def worktree_path(self, feature_name: str) -> Path:
        return self.paths.worktree_path(feature_name)

    def worktree_exists(self, feature_name: str) -> bool:
        return self.worktree_path(feature_name).exists()

    def create_worktree(self, feature_name: str) -> Path:
        """Create ``{prefix}{name}`` from the main branch tip and check it out.

        Also creates the worktree meta directory and the features folder
        with its ``outputs/`` subdirectory.

        Raises:
            WorktreeCreationError: If the branch or path exists, or git fails.
        """
        worktree_path = self.worktree_path(feature_name)
        branch = self.branch_name(feature_name)

        if worktree_path.exists():
            raise WorktreeCreationError(f"Worktree path already exists: {worktree_path}")
        if self.git.branch_exists(self.project_root, branch):
            raise WorktreeCreationError(f"Branch already exists: {branch}")

        self.paths.worktrees_dir.mkdir(parents=True, exist_ok=True)
        base = self.config.main_branch if self.git.branch_exists(self.project_root, self.config.main_branch) else None
        try:
            self.git.worktree_add(self.project_root, worktree_path, branch, base)
        except GitCommandError as e:
            raise WorktreeCreationError(f"Failed to create worktree: {e}") from e

        ClaudingPaths.meta_dir(worktree_path).mkdir(parents=True, exist_ok=True)
        self.paths.outputs_dir(feature_name).mkdir(parents=True, exist_ok=True)
        logger.info("Created worktree %s on branch %s", worktree_path, branch)
        return worktree_path

    def remove_worktree(self, feature_name: str) -> None:
        """Force-remove the worktree; a missing worktree is a no-op."""
        worktree_path = self.worktree_path(feature_name)
        if not worktree_path.exists():
            logger.debug("Worktree %s already removed", worktree_path)
            return
        self.git.worktree_remove(self.project_root, worktree_path)
        logger.info("Removed worktree %s", worktree_path)

    def rename_worktree(self, old_name: str, new_name: str) -> Path:
        """Move a worktree with ``git worktree move``.

        Raises:
            WorktreeNotFoundError: If the source worktree does not exist.
            WorktreeRenameError: If the destination exists or git fails.
        """
        old_path = self.worktree_path(old_name)
        new_path = self.worktree_path(new_name)
        if not old_path.exists():
            raise WorktreeNotFoundError(old_name, old_path)
        if new_path.exists():
            raise WorktreeRenameError(f'Worktree path for feature "{new_name}" already exists')
        try:
            self.git.worktree_move(self.project_root, old_path, new_path)
        except GitCommandError as e:
            raise WorktreeRenameError(f"Failed to rename worktree: {e}") from e
        return new_path

    def delete_branch(self, branch: str, repo_root: Path | None = None) -> None:
        self.git.delete_branch(repo_root or self.project_root, branch)
        logger.info("Deleted branch %s", branch)

    def rename_branch(self, worktree_path: Path, new_name: str) -> str:
        """Rename the branch checked out in ``worktree_path``.

        The configured prefix is kept unless ``new_name`` carries its own. A
        branch outside the configured prefix keeps its own ``group/`` part.
        """
        current = self.git.current_branch(worktree_path)
        prefix = self.config.branch_prefix
        if "/" in new_name:
            new_branch = new_name
        elif prefix and current.startswith(prefix):
            new_branch = self.branch_name(new_name)
        else:
            prefix = current.rsplit("/", 1)[0] + "/" if "/" in current else ""
            new_branch = f"{prefix}{sanitize_branch_suffix(new_name)}"
        self.git.rename_branch(worktree_path, current, new_branch)
        return new_branch

    def rename_feature_folder(self, old_name: str, new_name: str) -> None:
        old_folder = self.paths.feature_folder(old_name)
        new_folder = self.paths.feature_folder(new_name)
        if not old_folder.exists():
            return
        if new_folder.exists():
            raise FileExistsError(f'Feature folder for "{new_name}" already exists')
        old_folder.rename(new_folder)

    def remove_feature_folder(self, feature_name: str) -> None:
        folder = self.paths.feature_folder(feature_name)
        if folder.exists():
            shutil.rmtree(folder)
