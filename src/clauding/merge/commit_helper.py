"""Commit transactions that bundle a change with its timelog entry.

Every mutating feature operation wants one commit holding both its change
and its metadata, but the metadata (the commit hash) is only known after
the commit exists. :meth:`CommitHelper.fold_into_head` is the single
combinator for that: stage everything, amend HEAD, and fall back to a
separate commit when amending is impossible.

Failure policy:

* amend reports nothing to commit: nothing to fold, done;
* amend fails otherwise: create ``chore: Update timelog`` instead;
* that fallback reports nothing to commit: done, the timelog file is
  already correct on disk;
* any other error propagates.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from clauding.core.config import ClaudingConfig
from clauding.core.exceptions import GitCommandError, NothingToCommitError
from clauding.core.git_ops import GitClient
from clauding.core.paths import ClaudingPaths
from clauding.status.models import TimelogResult
from clauding.status.timelog import TimelogStore

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = "chore: Update timelog"


class CommitHelper:
    def __init__(
        self,
        paths: ClaudingPaths,
        config: ClaudingConfig | None = None,
        git: GitClient | None = None,
        timelog: TimelogStore | None = None,
    ) -> None:
        self.paths = paths
        self.config = config or ClaudingConfig()
        self.git = git or GitClient()
        self.timelog = timelog or TimelogStore(paths)

    def _feature_name(self, worktree_path: Path) -> str:
        return self.paths.feature_name_for_worktree(worktree_path)

    def stage_and_commit(self, worktree_path: Path, message: str) -> str:
        self.git.stage_all(worktree_path)
        return self.git.commit(worktree_path, message)

    def fold_into_head(self, worktree_path: Path, fallback_message: str = FALLBACK_MESSAGE) -> str | None:
        """Amend pending changes into HEAD, or commit them separately.

        Returns the resulting HEAD short hash, or None when there was nothing
        to record.
        """
        self.git.stage_all(worktree_path)
        try:
            return self.git.amend(worktree_path)
        except NothingToCommitError:
            return None
        except GitCommandError as e:
            logger.warning("Failed to amend commit, falling back to a new commit: %s", e)

        try:
            return self.stage_and_commit(worktree_path, fallback_message)
        except NothingToCommitError:
            logger.debug("Fallback commit in %s had nothing to commit", worktree_path)
            return None

    def commit_with_timelog(
        self,
        worktree_path: Path,
        commit_message: str,
        action: str,
        details: dict[str, Any] | None = None,
    ) -> str:
        """Commit the working tree, log it, and fold the log into the commit.

        Returns the hash of the primary commit as recorded in the timelog.

        Raises:
            NothingToCommitError: If the primary commit has nothing to commit.
        """
        commit_hash = self.stage_and_commit(worktree_path, commit_message)
        self.timelog.add_entry(
            self._feature_name(worktree_path),
            action,
            TimelogResult.SUCCESS,
            details,
            commit_hash,
        )
        self.fold_into_head(worktree_path)
        return commit_hash

    def add_timelog_and_commit(
        self,
        worktree_path: Path,
        action: str,
        result: TimelogResult | str,
        details: dict[str, Any] | None = None,
        commit_hash: str | None = None,
        timestamp: str | None = None,
    ) -> None:
        """Append a timelog entry and fold any pending change into HEAD.

        ``commit_hash`` and ``timestamp`` should be captured before the
        operation being logged started.
        """
        self.timelog.add_entry(
            self._feature_name(worktree_path),
            action,
            result,
            details,
            commit_hash,
            timestamp,
        )
        self.fold_into_head(worktree_path)

    def safe_commit(self, worktree_path: Path, message: str) -> str | None:
        """Stage and commit, treating nothing-to-commit as a no-op."""
        try:
            return self.stage_and_commit(worktree_path, message)
        except NothingToCommitError:
            return None

    def commit_pending_output_files(self, worktree_path: Path, feature_name: str) -> str | None:
        return self.safe_commit(
            worktree_path,
            f"{self.config.commit_message_prefix}({feature_name}): Commit pending output files",
        )
