"""Git-level merge primitives.

Forward merges (feature into main) run in the project root. Reverse merges
(main into feature) run inside the feature worktree, where "ours" is the
feature and "theirs" is main.
"""

from __future__ import annotations

import logging
from pathlib import Path

from clauding.core.config import ClaudingConfig
from clauding.core.exceptions import (
    AgentResolutionPendingError,
    GitCommandError,
    MergeError,
    NothingToCommitError,
)
from clauding.core.git_ops import GitClient

from .state import (
    ConflictStrategy,
    MergeResult,
    has_unmerged_paths,
    is_merge_in_progress,
    looks_like_conflict,
)

logger = logging.getLogger(__name__)

FORWARD_RESOLUTION = {
    ConflictStrategy.FEATURE: ("theirs", "Merge: Resolved conflicts by accepting feature branch"),
    ConflictStrategy.MAIN: ("ours", "Merge: Resolved conflicts by accepting main branch"),
}

REVERSE_RESOLUTION = {
    ConflictStrategy.FEATURE: ("ours", "Merge: Resolved conflicts by keeping feature branch changes"),
    ConflictStrategy.MAIN: ("theirs", "Merge: Resolved conflicts by accepting main branch changes"),
}


class MergeService:
    def __init__(self, project_root: Path, config: ClaudingConfig, git: GitClient | None = None) -> None:
        self.project_root = project_root
        self.config = config
        self.git = git or GitClient()

    @property
    def main_branch(self) -> str:
        return self.config.main_branch

    def has_uncommitted_changes(self, worktree_path: Path) -> bool:
        return self.git.has_uncommitted_changes(worktree_path)

    def is_merge_in_progress(self, repo_path: Path | None = None) -> bool:
        return is_merge_in_progress(self.git, repo_path or self.project_root)

    def conflicted_files(self, repo_path: Path | None = None) -> list[str]:
        return self.git.conflicted_files(repo_path or self.project_root)

    def merge_branch(self, branch_name: str) -> MergeResult:
        """Merge ``branch_name`` into main with ``--no-ff``.

        Re-entrant: while a merge is in progress this either reports the
        remaining conflicts or finalises the merge commit.

        Raises:
            ValueError: If ``branch_name`` is empty.
            MergeError: If git fails for a reason other than conflicts.
        """
        if not branch_name or not branch_name.strip():
            raise ValueError("Branch name cannot be empty")

        if self.is_merge_in_progress():
            return self._resume_merge()

        try:
            self.git.checkout(self.project_root, self.main_branch)
        except GitCommandError as e:
            raise MergeError(f"Merge failed: {e}") from e

        result = self.git.merge(self.project_root, branch_name, f"Merge {branch_name}")
        if result.ok:
            return MergeResult.merged("Merge successful")
        return self._interpret_failure(self.project_root, f"{result.stdout}\n{result.stderr}")

    def _resume_merge(self) -> MergeResult:
        conflicted = self.conflicted_files()
        if conflicted:
            return MergeResult.conflicted(
                conflicted, f"Merge in progress with conflicts in {len(conflicted)} file(s)"
            )
        try:
            self.git.commit(self.project_root, "", no_edit=True)
        except NothingToCommitError:
            return MergeResult.merged("Merge already completed")
        return MergeResult.merged("Merge completed")

    def _interpret_failure(self, repo_path: Path, output: str) -> MergeResult:
        conflicted = self.conflicted_files(repo_path)
        if conflicted:
            return MergeResult.conflicted(conflicted, f"Merge conflicts in {len(conflicted)} file(s)")
        if looks_like_conflict(output):
            return MergeResult.conflicted([], "Merge conflicts detected")
        raise MergeError(f"Merge failed: {output.strip()}")

    def merge_main_into_feature(self, worktree_path: Path) -> MergeResult:
        result = self.git.merge(
            worktree_path, self.main_branch, f"Merge {self.main_branch} into feature"
        )
        if result.ok:
            return MergeResult.merged("Merge successful")
        return self._interpret_failure(worktree_path, f"{result.stdout}\n{result.stderr}")

    def _resolve(self, repo_path: Path, files: list[str], side: str, message: str) -> str:
        for path in files:
            self.git.checkout_side(repo_path, side, path)
            self.git.stage(repo_path, [path])
        self.git.commit(repo_path, message)
        return self.git.head(repo_path)

    def resolve_conflicts(self, conflicted_files: list[str], strategy: ConflictStrategy | str) -> str | None:
        """Resolve a forward merge in the project root.

        Returns the resulting commit hash for ``feature``/``main``, None for
        ``agent`` (deferred) and ``cancel`` (aborted).
        """
        strategy = ConflictStrategy.parse(strategy)
        if strategy is ConflictStrategy.AGENT:
            return None
        if strategy is ConflictStrategy.CANCEL:
            self.abort_merge()
            return None
        side, message = FORWARD_RESOLUTION[strategy]
        return self._resolve(self.project_root, conflicted_files, side, message)

    def resolve_conflicts_in_worktree(
        self,
        worktree_path: Path,
        conflicted_files: list[str],
        strategy: ConflictStrategy | str,
    ) -> str | None:
        strategy = ConflictStrategy.parse(strategy)
        if strategy is ConflictStrategy.AGENT:
            return None
        if strategy is ConflictStrategy.CANCEL:
            self.abort_merge(worktree_path)
            return None
        side, message = REVERSE_RESOLUTION[strategy]
        return self._resolve(worktree_path, conflicted_files, side, message)

    def abort_merge(self, repo_path: Path | None = None) -> None:
        self.git.merge_abort(repo_path or self.project_root)
        logger.info("Aborted merge in %s", repo_path or self.project_root)

    def complete_after_agent(self, repo_path: Path, message: str) -> str:
        """Commit an agent-resolved merge once no unmerged paths remain.

        Raises:
            AgentResolutionPendingError: If conflicts are still present.
        """
        if has_unmerged_paths(self.git, repo_path):
            raise AgentResolutionPendingError(self.git.conflicted_files(repo_path))
        self.git.stage_all(repo_path)
        self.git.commit(repo_path, message)
        return self.git.head(repo_path)

    def complete_merge_after_agent_resolution(self, branch_name: str) -> str:
        return self.complete_after_agent(
            self.project_root, f"Merge {branch_name}: Resolved conflicts with agent"
        )

    def complete_update_after_agent_resolution(self, worktree_path: Path) -> str:
        return self.complete_after_agent(
            worktree_path, f"Merge {self.main_branch} into feature: Resolved conflicts with agent"
        )
