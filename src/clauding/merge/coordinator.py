"""Merge coordinator: the full feature merge protocol.

Forward merge (feature into main)::

    IDLE -> PRE_CHECKING -> CLEANING_UP -> MERGING -> MERGED -> TEARING_DOWN -> DONE
                                                   +-> CONFLICTED

A conflicted merge stays in git's native merge-in-progress state. It can be
resolved (``feature``/``main``), handed to an agent and completed later with
:meth:`MergeCoordinator.complete_merge_after_agent`, or aborted (``cancel``).

The reverse flow (:meth:`MergeCoordinator.update_from_main`) merges main into
the feature worktree. It skips the pre-merge cleanup and the teardown.

Failures in trailing teardown steps (branch deletion, archive indexing,
editor closing) are logged and returned as warnings on the result.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Sequence

from clauding.core.exceptions import (
    AgentResolutionPendingError,
    ArchiveIndexWarning,
    BranchDeletionWarning,
    ClaudingError,
    ClaudingWarning,
    GitCommandError,
    MergeError,
    UncommittedChangesError,
    UnsavedEditorsError,
    WorktreeNotFoundError,
    collect_warning,
)
from clauding.core.git_ops import GitClient
from clauding.core.protocols import (
    ArchiveIndexer,
    EditorSurface,
    FeatureWatcher,
    NullEditorSurface,
    NullTerminalRunner,
    TerminalRunner,
)
from clauding.core.worktree import WorktreeManager
from clauding.status.models import TimelogResult
from clauding.status.store import utc_now_iso

from .cleanup import PreMergeCleanupService
from .commit_helper import CommitHelper
from .service import MergeService
from .state import ConflictStrategy, MergePhase, MergeResult, can_transition

logger = logging.getLogger(__name__)

PhaseCallback = Callable[[MergePhase, str], None]

FINALIZE = "Finalize"
UPDATE_FROM_MAIN = "Update from Main"


class MergeCoordinator:
    def __init__(
        self,
        *,
        worktrees: WorktreeManager,
        merge_service: MergeService,
        commit_helper: CommitHelper,
        cleanup: PreMergeCleanupService,
        git: GitClient | None = None,
        archive: ArchiveIndexer | None = None,
        terminals: TerminalRunner | None = None,
        editors: EditorSurface | None = None,
        watchers: Sequence[FeatureWatcher] = (),
        on_phase: PhaseCallback | None = None,
    ) -> None:
        self.worktrees = worktrees
        self.merge_service = merge_service
        self.commit_helper = commit_helper
        self.cleanup = cleanup
        self.git = git or GitClient()
        self.archive = archive
        self.terminals = terminals or NullTerminalRunner()
        self.editors = editors or NullEditorSurface()
        self.watchers = list(watchers)
        self.on_phase = on_phase
        self.phases: dict[str, MergePhase] = {}

    @property
    def project_root(self) -> Path:
        return self.worktrees.project_root

    def _enter(self, feature_name: str, phase: MergePhase, detail: str = "") -> None:
        current = self.phases.get(feature_name, MergePhase.IDLE)
        if current != phase and not can_transition(current, phase):
            logger.debug("Merge phase jump for %s: %s -> %s", feature_name, current, phase)
        self.phases[feature_name] = phase
        logger.info("[%s] %s %s", feature_name, phase, detail)
        if self.on_phase is not None:
            self.on_phase(phase, detail)

    def _start_point(self, worktree_path: Path) -> tuple[str, str]:
        return self.git.short_head(worktree_path), utc_now_iso()

    def _require_worktree(self, feature_name: str, worktree_path: Path) -> None:
        if not worktree_path.exists():
            raise WorktreeNotFoundError(feature_name, worktree_path)

    # Pre-checks

    def check_for_active_editors(self, worktree_path: Path) -> list[str]:
        """Close saved editors under the worktree; return the unsaved ones."""
        if not self.editors.get_editor_paths(worktree_path):
            return []
        unsaved = self.editors.get_unsaved_editor_paths(worktree_path)
        if unsaved:
            return unsaved
        self.editors.close_all_editors_for_feature(worktree_path)
        return []

    def perform_pre_merge_checks(self, feature_name: str, worktree_path: Path, force: bool = False) -> None:
        """Close terminals (capturing their output) and editors for the feature.

        Raises:
            UnsavedEditorsError: If editors hold unsaved changes and ``force`` is off.
        """
        self._enter(feature_name, MergePhase.PRE_CHECKING)
        terminals = self.terminals.get_terminals_by_feature(feature_name)
        if terminals:
            logger.info("Closing %d active terminal(s) for %s", len(terminals), feature_name)
            self.terminals.kill_all_terminals_and_capture_output(
                feature_name, worktree_path, lambda msg: logger.info("[%s] %s", feature_name, msg)
            )

        unsaved = self.check_for_active_editors(worktree_path)
        if unsaved:
            if not force:
                raise UnsavedEditorsError(unsaved)
            logger.warning("Closing %d editor(s) with unsaved changes for %s", len(unsaved), feature_name)
            self.editors.close_all_editors_for_feature(worktree_path)

    def commit_pending_output_files(self, feature_name: str, worktree_path: Path) -> str | None:
        if not self.merge_service.has_uncommitted_changes(worktree_path):
            return None
        commit_hash = self.commit_helper.commit_pending_output_files(worktree_path, feature_name)
        logger.info("Committed pending output files for %s (%s)", feature_name, commit_hash)
        return commit_hash

    def _prepare(self, feature_name: str, worktree_path: Path, force: bool) -> None:
        self.perform_pre_merge_checks(feature_name, worktree_path, force=force)
        self.commit_pending_output_files(feature_name, worktree_path)

    # Teardown

    def close_all_editors_for_feature(self, worktree_path: Path) -> None:
        if self.editors.get_editor_paths(worktree_path):
            self.editors.close_all_editors_for_feature(worktree_path)

    def _teardown(self, feature_name: str, branch_name: str, worktree_path: Path, result: MergeResult) -> MergeResult:
        self._enter(feature_name, MergePhase.TEARING_DOWN)
        try:
            self.close_all_editors_for_feature(worktree_path)
        except Exception as e:  # external collaborator
            collect_warning(result.warnings, ClaudingWarning(f"Failed to close editors: {e}"), logger)

        for watcher in self.watchers:
            watcher.stop(feature_name)

        self.worktrees.remove_worktree(feature_name)

        try:
            self.worktrees.delete_branch(branch_name, self.project_root)
        except GitCommandError as e:
            warning = BranchDeletionWarning(
                f"Failed to delete feature branch {branch_name}. You may need to delete it manually."
            )
            collect_warning(result.warnings, warning, logger, e)

        try:
            merge_commit = self.git.head(self.project_root)
            result.merge_commit_hash = merge_commit
            if self.archive is not None:
                self.archive.add_to_archived_cache(feature_name, merge_commit)
        except (ClaudingError, OSError) as e:
            warning = ArchiveIndexWarning(f"Failed to update archived features cache: {e}")
            collect_warning(result.warnings, warning, logger)

        self._enter(feature_name, MergePhase.DONE)
        result.phase = MergePhase.DONE
        return result

    # Forward flow

    def merge_feature(
        self,
        feature_name: str,
        branch_name: str,
        worktree_path: Path,
        force: bool = False,
    ) -> MergeResult:
        """Merge a feature branch into main and tear the feature down.

        Returns a conflicted result, leaving the merge in progress, when git
        reports conflicts.

        Raises:
            UnsavedEditorsError: Editors hold unsaved changes (unless ``force``).
            UncommittedChangesError: The worktree is still dirty after
                committing pending output files.
        """
        self._require_worktree(feature_name, worktree_path)
        self.phases[feature_name] = MergePhase.IDLE
        self._prepare(feature_name, worktree_path, force)

        if self.merge_service.has_uncommitted_changes(worktree_path):
            raise UncommittedChangesError(worktree_path)

        start_hash, start_time = self._start_point(worktree_path)
        self.commit_helper.add_timelog_and_commit(
            worktree_path,
            FINALIZE,
            TimelogResult.SUCCESS,
            {"message": "Merged without conflicts"},
            start_hash,
            start_time,
        )

        self._enter(feature_name, MergePhase.CLEANING_UP)
        cleanup = self.cleanup.cleanup_before_merge(worktree_path, feature_name)
        logger.info("Cleaned metadata on feature branch (commit: %s)", cleanup.commit_hash[:8])

        self._enter(feature_name, MergePhase.MERGING, branch_name)
        result = self.merge_service.merge_branch(branch_name)
        if not result.success:
            self._enter(feature_name, MergePhase.CONFLICTED, result.message)
            return result

        self._enter(feature_name, MergePhase.MERGED, result.message)
        return self._teardown(feature_name, branch_name, worktree_path, result)

    def resolve_merge_conflicts(
        self,
        feature_name: str,
        branch_name: str,
        worktree_path: Path,
        conflicted_files: Sequence[str] | None,
        strategy: ConflictStrategy | str,
        force: bool = False,
    ) -> MergeResult:
        """Resolve a conflicted forward merge.

        ``feature`` and ``main`` commit the resolution and tear the feature
        down like a clean merge. ``agent`` leaves the merge in progress.
        ``cancel`` aborts it.
        """
        strategy = ConflictStrategy.parse(strategy)
        self.phases[feature_name] = MergePhase.CONFLICTED

        if strategy is ConflictStrategy.CANCEL:
            start_hash, start_time = self._start_point(worktree_path)
            self.merge_service.abort_merge()
            self._enter(feature_name, MergePhase.ABORTED)
            self.commit_helper.add_timelog_and_commit(
                worktree_path,
                FINALIZE,
                TimelogResult.WARNING,
                {"message": "Merge aborted by user"},
                start_hash,
                start_time,
            )
            return MergeResult(success=False, message="Merge aborted by user", phase=MergePhase.ABORTED)

        files = list(conflicted_files) if conflicted_files else self.merge_service.conflicted_files()
        if strategy is ConflictStrategy.AGENT:
            return MergeResult.conflicted(files, "Waiting for agent to resolve conflicts")

        self._prepare(feature_name, worktree_path, force)
        self._enter(feature_name, MergePhase.RESOLVING, str(strategy))
        start_hash, start_time = self._start_point(worktree_path)
        self.commit_helper.add_timelog_and_commit(
            worktree_path,
            FINALIZE,
            TimelogResult.SUCCESS,
            {"message": f"Resolved conflicts by accepting {strategy} branch"},
            start_hash,
            start_time,
        )
        self.merge_service.resolve_conflicts(files, strategy)

        result = MergeResult.merged(f"Resolved conflicts by accepting {strategy} branch")
        self._enter(feature_name, MergePhase.MERGED, result.message)
        return self._teardown(feature_name, branch_name, worktree_path, result)

    def complete_merge_after_agent(
        self,
        feature_name: str,
        branch_name: str,
        worktree_path: Path,
        force: bool = False,
    ) -> MergeResult:
        """Commit a forward merge whose conflicts an agent resolved.

        Raises:
            AgentResolutionPendingError: If unmerged paths remain.
            MergeError: If no merge is in progress in the project root.
        """
        if not self.merge_service.is_merge_in_progress():
            raise MergeError(f"No merge in progress for feature {feature_name}")
        remaining = self.merge_service.conflicted_files()
        if remaining:
            raise AgentResolutionPendingError(remaining)

        self.phases[feature_name] = MergePhase.CONFLICTED
        self._prepare(feature_name, worktree_path, force)
        self._enter(feature_name, MergePhase.RESOLVING, str(ConflictStrategy.AGENT))
        start_hash, start_time = self._start_point(worktree_path)
        self.commit_helper.add_timelog_and_commit(
            worktree_path,
            FINALIZE,
            TimelogResult.SUCCESS,
            {"message": "Resolved conflicts with agent"},
            start_hash,
            start_time,
        )
        self.merge_service.complete_merge_after_agent_resolution(branch_name)

        result = MergeResult.merged("Resolved conflicts with agent")
        self._enter(feature_name, MergePhase.MERGED, result.message)
        return self._teardown(feature_name, branch_name, worktree_path, result)

    # Reverse flow

    def update_from_main(self, feature_name: str, worktree_path: Path) -> MergeResult:
        """Merge main into the feature worktree.

        Raises:
            UncommittedChangesError: If the worktree is dirty.
        """
        self._require_worktree(feature_name, worktree_path)
        self.phases[feature_name] = MergePhase.IDLE
        if self.merge_service.has_uncommitted_changes(worktree_path):
            raise UncommittedChangesError(worktree_path)

        start_hash, start_time = self._start_point(worktree_path)
        self._enter(feature_name, MergePhase.MERGING, self.merge_service.main_branch)
        result = self.merge_service.merge_main_into_feature(worktree_path)
        if not result.success:
            self._enter(feature_name, MergePhase.CONFLICTED, result.message)
            return result

        self.commit_helper.add_timelog_and_commit(
            worktree_path,
            UPDATE_FROM_MAIN,
            TimelogResult.SUCCESS,
            {"message": "Updated feature from main branch"},
            start_hash,
            start_time,
        )
        self._enter(feature_name, MergePhase.MERGED, result.message)
        self._enter(feature_name, MergePhase.DONE)
        result.phase = MergePhase.DONE
        return result

    def resolve_update_from_main_conflicts(
        self,
        feature_name: str,
        worktree_path: Path,
        conflicted_files: Sequence[str] | None,
        strategy: ConflictStrategy | str,
    ) -> MergeResult:
        strategy = ConflictStrategy.parse(strategy)
        self.phases[feature_name] = MergePhase.CONFLICTED
        start_hash, start_time = self._start_point(worktree_path)

        if strategy is ConflictStrategy.CANCEL:
            self.merge_service.abort_merge(worktree_path)
            self._enter(feature_name, MergePhase.ABORTED)
            self.commit_helper.add_timelog_and_commit(
                worktree_path,
                UPDATE_FROM_MAIN,
                TimelogResult.WARNING,
                {"message": "Update from main aborted by user"},
                start_hash,
                start_time,
            )
            return MergeResult(success=False, message="Update from main aborted by user", phase=MergePhase.ABORTED)

        files = list(conflicted_files) if conflicted_files else self.merge_service.conflicted_files(worktree_path)
        if strategy is ConflictStrategy.AGENT:
            return MergeResult.conflicted(files, "Waiting for agent to resolve conflicts")

        self._enter(feature_name, MergePhase.RESOLVING, str(strategy))
        self.merge_service.resolve_conflicts_in_worktree(worktree_path, files, strategy)
        message = f"Updated from main, resolved conflicts by accepting {strategy} branch"
        self.commit_helper.add_timelog_and_commit(
            worktree_path,
            UPDATE_FROM_MAIN,
            TimelogResult.SUCCESS,
            {"message": message},
            start_hash,
            start_time,
        )
        self._enter(feature_name, MergePhase.MERGED, message)
        self._enter(feature_name, MergePhase.DONE)
        return MergeResult(success=True, message=message, phase=MergePhase.DONE)

    def complete_update_after_agent(self, feature_name: str, worktree_path: Path) -> MergeResult:
        """Commit a reverse merge whose conflicts an agent resolved.

        Raises:
            AgentResolutionPendingError: If unmerged paths remain.
            MergeError: If no merge is in progress in the worktree.
        """
        if not self.merge_service.is_merge_in_progress(worktree_path):
            raise MergeError(f"No update from main in progress for feature {feature_name}")
        self.phases[feature_name] = MergePhase.CONFLICTED
        start_hash, start_time = self._start_point(worktree_path)
        self._enter(feature_name, MergePhase.RESOLVING, str(ConflictStrategy.AGENT))
        self.merge_service.complete_update_after_agent_resolution(worktree_path)
        message = "Updated from main, resolved conflicts with agent"
        self.commit_helper.add_timelog_and_commit(
            worktree_path,
            UPDATE_FROM_MAIN,
            TimelogResult.SUCCESS,
            {"message": message},
            start_hash,
            start_time,
        )
        self._enter(feature_name, MergePhase.MERGED, message)
        self._enter(feature_name, MergePhase.DONE)
        return MergeResult(success=True, message=message, phase=MergePhase.DONE)
