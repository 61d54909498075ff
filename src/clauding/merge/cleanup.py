"""Pre-merge cleanup of the worktree metadata directory.

``prompt.md``, ``plan.md`` and ``modify-prompt.md`` are tracked on the
feature branch but must not reach main. Before merging they are copied to
the features folder and removed from the branch in a single commit tagged
``pre-merge-cleanup``. Re-running the cleanup is a no-op.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from clauding.core.exceptions import CleanupError, NothingToCommitError
from clauding.core.git_ops import GitClient
from clauding.core.paths import CONFIG_DIRNAME, META_FILES, ClaudingPaths

logger = logging.getLogger(__name__)

CLEANUP_TAG = "pre-merge-cleanup"


@dataclass
class CleanupResult:
    commit_hash: str
    moved_files: list[str] = field(default_factory=list)
    already_done: bool = False


def is_cleanup_done(worktree_path: Path) -> bool:
    """True when the meta directory holds none of the tracked markdown files."""
    meta_dir = ClaudingPaths.meta_dir(worktree_path)
    if not meta_dir.exists():
        return True
    return not any((meta_dir / name).exists() for name in META_FILES)


def is_cleanup_commit(message: str) -> bool:
    return CLEANUP_TAG in message


class PreMergeCleanupService:
    def __init__(self, paths: ClaudingPaths, git: GitClient | None = None) -> None:
        self.paths = paths
        self.git = git or GitClient()

    def cleanup_before_merge(self, worktree_path: Path, feature_name: str) -> CleanupResult:
        """Relocate transient metadata and commit its removal.

        Returns the current HEAD hash without committing when cleanup has
        already happened.
        """
        if is_cleanup_done(worktree_path):
            return CleanupResult(commit_hash=self.git.head(worktree_path), already_done=True)

        meta_dir = ClaudingPaths.meta_dir(worktree_path)
        if not meta_dir.is_dir():
            raise CleanupError(f"No {meta_dir.name} directory found to clean up in {worktree_path}")

        feature_folder = self.paths.feature_folder(feature_name)
        feature_folder.mkdir(parents=True, exist_ok=True)

        moved: list[str] = []
        for name in META_FILES:
            source = meta_dir / name
            if source.exists():
                shutil.copy2(source, feature_folder / name)
                moved.append(name)

        for entry in meta_dir.iterdir():
            if entry.name == CONFIG_DIRNAME:
                continue
            if entry.is_dir():
                shutil.rmtree(entry)
            else:
                entry.unlink()

        message = f"feat: {CLEANUP_TAG} - moved {', '.join(moved)} to features folder"
        self.git.stage_all(worktree_path)
        try:
            self.git.commit(worktree_path, message)
        except NothingToCommitError:
            logger.debug("Removed metadata was never committed in %s", worktree_path)
        commit_hash = self.git.head(worktree_path)
        logger.info("Pre-merge cleanup for %s moved %s (%s)", feature_name, moved, commit_hash[:8])
        return CleanupResult(commit_hash=commit_hash, moved_files=moved)
