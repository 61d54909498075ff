"""Feature operations exposed to the CLI and to host applications.

:meth:`FeatureService.from_project` wires every service explicitly from a
project root and a loaded :class:`ClaudingConfig`; nothing is looked up
globally.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from clauding.core.config import ClaudingConfig, load_config
from clauding.core.exceptions import (
    BranchDeletionWarning,
    FeatureExistsError,
    FeatureFolderWarning,
    FeatureNotFoundError,
    GitCommandError,
    InvalidFeatureNameError,
    WorktreeCreationError,
    collect_warning,
)
from clauding.core.git_ops import GitClient
from clauding.core.paths import (
    CLASSIFICATION_FILE,
    PENDING_COMMAND_FILE,
    PROMPT_FILE,
    ClaudingPaths,
    ensure_clauding_directories,
)
from clauding.core.protocols import EditorSurface, FeatureWatcher, TerminalRunner
from clauding.core.worktree import WorktreeManager
from clauding.merge.cleanup import PreMergeCleanupService
from clauding.merge.commit_helper import CommitHelper
from clauding.merge.coordinator import MergeCoordinator, PhaseCallback
from clauding.merge.service import MergeService
from clauding.merge.state import ConflictStrategy, MergeResult
from clauding.status.models import (
    STAGE_ORDER,
    Feature,
    LifecycleStage,
    PendingCommand,
    SortDirection,
    SortOrder,
    TimelogResult,
)
from clauding.status.resolver import StatusResolver
from clauding.status.store import LifecycleStatusStore
from clauding.status.timelog import TimelogStore

from .archive import ArchiveIndex

logger = logging.getLogger(__name__)

FEATURE_NAME_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")
MAX_FEATURE_NAME_LENGTH = 255


def validate_feature_name(name: str) -> None:
    """Raise :class:`InvalidFeatureNameError` unless ``name`` is lowercase-dashed."""
    if not name:
        raise InvalidFeatureNameError("Empty feature name")
    if not name.strip():
        raise InvalidFeatureNameError("Invalid feature name: whitespace-only names are not allowed")
    if name != name.strip():
        raise InvalidFeatureNameError("Invalid feature name: contains leading or trailing whitespace")
    if not FEATURE_NAME_PATTERN.match(name):
        raise InvalidFeatureNameError(
            "Invalid feature name: must contain only lowercase letters, numbers, "
            "and dashes (e.g., my-feature, feature-123)"
        )
    if len(name) > MAX_FEATURE_NAME_LENGTH:
        raise InvalidFeatureNameError("Feature name too long: exceeds maximum length")


@dataclass
class DeleteResult:
    name: str
    commit_hash: str | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "commitHash": self.commit_hash, "warnings": list(self.warnings)}


@dataclass
class RenameResult:
    old_name: str
    new_name: str
    worktree_path: Path
    branch_name: str
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "oldName": self.old_name,
            "newName": self.new_name,
            "worktreePath": str(self.worktree_path),
            "branchName": self.branch_name,
            "warnings": list(self.warnings),
        }


def _read_json(path: Path) -> Any | None:
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable %s: %s", path, e)
        return None


class FeatureService:
    def __init__(
        self,
        *,
        paths: ClaudingPaths,
        config: ClaudingConfig,
        git: GitClient,
        worktrees: WorktreeManager,
        resolver: StatusResolver,
        status_store: LifecycleStatusStore,
        timelog: TimelogStore,
        commit_helper: CommitHelper,
        archive: ArchiveIndex,
        coordinator: MergeCoordinator,
    ) -> None:
        self.paths = paths
        self.config = config
        self.git = git
        self.worktrees = worktrees
        self.resolver = resolver
        self.status_store = status_store
        self.timelog = timelog
        self.commit_helper = commit_helper
        self.archive = archive
        self.coordinator = coordinator

    @classmethod
    def from_project(
        cls,
        project_root: Path,
        config: ClaudingConfig | None = None,
        *,
        git: GitClient | None = None,
        terminals: TerminalRunner | None = None,
        editors: EditorSurface | None = None,
        watchers: Sequence[FeatureWatcher] = (),
        on_phase: PhaseCallback | None = None,
    ) -> FeatureService:
        config = config or load_config(project_root)
        git = git or GitClient()
        paths = ClaudingPaths(project_root)
        timelog = TimelogStore(paths)
        status_store = LifecycleStatusStore(paths)
        worktrees = WorktreeManager(project_root, config, git)
        commit_helper = CommitHelper(paths, config, git, timelog)
        archive = ArchiveIndex(paths, status_store)
        coordinator = MergeCoordinator(
            worktrees=worktrees,
            merge_service=MergeService(project_root, config, git),
            commit_helper=commit_helper,
            cleanup=PreMergeCleanupService(paths, git),
            git=git,
            archive=archive,
            terminals=terminals,
            editors=editors,
            watchers=watchers,
            on_phase=on_phase,
        )
        return cls(
            paths=paths,
            config=config,
            git=git,
            worktrees=worktrees,
            resolver=StatusResolver(paths, git),
            status_store=status_store,
            timelog=timelog,
            commit_helper=commit_helper,
            archive=archive,
            coordinator=coordinator,
        )

    # Queries

    def _active_names(self) -> list[str]:
        worktrees_dir = self.paths.worktrees_dir
        if not worktrees_dir.is_dir():
            return []
        return sorted(p.name for p in worktrees_dir.iterdir() if p.is_dir())

    def _branch_for(self, feature_name: str, worktree_path: Path) -> str:
        try:
            return self.git.current_branch(worktree_path)
        except GitCommandError:
            return self.worktrees.branch_name(feature_name)

    def get_feature(self, feature_name: str) -> Feature | None:
        """Active feature by name, or None. Archived features are not returned."""
        worktree_path = self.worktrees.worktree_path(feature_name)
        if not worktree_path.is_dir():
            return None

        folder = self.paths.feature_folder(feature_name)
        prompt_path = ClaudingPaths.meta_dir(worktree_path) / PROMPT_FILE
        prompt = prompt_path.read_text(encoding="utf-8") if prompt_path.exists() else None

        pending_raw = _read_json(folder / PENDING_COMMAND_FILE)
        pending = None
        if isinstance(pending_raw, dict) and "command" in pending_raw:
            pending = PendingCommand.from_dict(pending_raw)
        classification = _read_json(folder / CLASSIFICATION_FILE)

        return Feature(
            name=feature_name,
            worktree_path=worktree_path,
            branch_name=self._branch_for(feature_name, worktree_path),
            lifecycle_stage=self.resolver.load_lifecycle_stage(worktree_path, feature_name),
            status=self.resolver.determine_status(worktree_path),
            prompt=prompt,
            pending_command=pending,
            classification=classification if isinstance(classification, dict) else None,
            created_at=self.status_store.created_at(feature_name),
        )

    def require_feature(self, feature_name: str) -> Feature:
        feature = self.get_feature(feature_name)
        if feature is None:
            raise FeatureNotFoundError(feature_name)
        return feature

    def get_features(
        self,
        sort_order: SortOrder | str = SortOrder.CHRONOLOGICAL,
        direction: SortDirection | str = SortDirection.ASC,
    ) -> list[Feature]:
        features = [f for f in (self.get_feature(n) for n in self._active_names()) if f is not None]
        return sort_features(features, SortOrder(sort_order), SortDirection(direction))

    def get_archived_features(
        self,
        sort_order: SortOrder | str | None = None,
        direction: SortDirection | str = SortDirection.ASC,
    ) -> list[Feature]:
        archived = self.archive.archived_features()
        if sort_order is None:
            return archived
        return sort_features(archived, SortOrder(sort_order), SortDirection(direction))

    def get_unique_feature_name(self, base_name: str) -> str:
        """``base_name`` or the first free ``base_name-N`` among active features."""
        existing = set(self._active_names())
        if base_name not in existing:
            return base_name
        counter = 1
        while f"{base_name}-{counter}" in existing:
            counter += 1
        return f"{base_name}-{counter}"

    # Lifecycle

    def create_feature(self, name: str) -> Feature:
        """Create the branch, worktree, empty prompt and initial commit.

        Raises:
            InvalidFeatureNameError: If ``name`` is not lowercase-dashed.
            FeatureExistsError: If an active feature has this name.
            WorktreeCreationError: If the branch or worktree already exists.
        """
        validate_feature_name(name)
        if self.get_feature(name) is not None:
            raise FeatureExistsError(name)
        if self.archive.is_archived(name):
            logger.warning('Archived feature "%s" exists; the new feature reuses its features folder', name)

        ensure_clauding_directories(self.paths.project_root)
        branch = self.worktrees.branch_name(name)
        if self.git.branch_exists(self.paths.project_root, branch):
            raise WorktreeCreationError(f'Git branch "{branch}" already exists')

        worktree_path = self.worktrees.create_worktree(name)
        (ClaudingPaths.meta_dir(worktree_path) / PROMPT_FILE).write_text("", encoding="utf-8")
        self.status_store.save(name, created=True)

        commit_hash = self.commit_helper.commit_with_timelog(
            worktree_path,
            f"{self.config.commit_message_prefix}({name}): Initialize feature",
            "Feature Created",
            {"file": PROMPT_FILE},
        )
        self.status_store.save(name, commit_hash)
        logger.info("Created feature %s at %s (%s)", name, worktree_path, commit_hash)
        return self.require_feature(name)

    def delete_feature(self, name: str, commit_changes: bool = False) -> DeleteResult:
        """Remove the worktree, features folder and branch of an active feature.

        With ``commit_changes`` uncommitted work is committed first so it stays
        reachable from the reflog.
        """
        feature = self.require_feature(name)
        result = DeleteResult(name=name)

        if commit_changes and self.git.has_uncommitted_changes(feature.worktree_path):
            message = f"{self.config.commit_message_prefix}: Auto-commit before deletion"
            result.commit_hash = self.commit_helper.stage_and_commit(feature.worktree_path, message)
            self.timelog.add_entry(
                name,
                "Commit",
                TimelogResult.SUCCESS,
                {"message": message, "reason": "auto-commit before deletion"},
                result.commit_hash,
            )

        self.worktrees.remove_worktree(name)

        try:
            self.worktrees.remove_feature_folder(name)
        except OSError as e:
            warning = FeatureFolderWarning(f"Worktree removed but failed to delete features folder: {e}")
            collect_warning(result.warnings, warning, logger)

        try:
            self.worktrees.delete_branch(feature.branch_name, self.paths.project_root)
        except GitCommandError as e:
            warning = BranchDeletionWarning(f"Worktree removed but failed to delete branch: {e}")
            collect_warning(result.warnings, warning, logger)

        return result

    def rename_feature(self, old_name: str, new_name: str) -> RenameResult:
        self.require_feature(old_name)
        validate_feature_name(new_name)
        if self.get_feature(new_name) is not None:
            raise FeatureExistsError(new_name)

        new_path = self.worktrees.rename_worktree(old_name, new_name)
        warnings: list[str] = []
        try:
            self.worktrees.rename_feature_folder(old_name, new_name)
        except OSError as e:
            warning = FeatureFolderWarning(f"Worktree renamed but failed to rename features folder: {e}")
            collect_warning(warnings, warning, logger)

        branch = self.worktrees.rename_branch(new_path, new_name)
        logger.info("Renamed feature %s -> %s (%s)", old_name, new_name, branch)
        return RenameResult(old_name, new_name, new_path, branch, warnings)

    def request_lifecycle_stage(self, name: str, stage: LifecycleStage | str) -> bool:
        """Record a forced stage change requested by the user.

        The stage is still derived from marker files afterwards. Returns
        whether the change follows the stage graph.
        """
        feature = self.require_feature(name)
        return self.status_store.update_lifecycle_stage(
            name,
            feature.lifecycle_stage,
            LifecycleStage(stage),
            self.git.short_head(feature.worktree_path),
        )

    # Merge operations

    def merge_feature(self, name: str, force: bool = False) -> MergeResult:
        feature = self.require_feature(name)
        return self.coordinator.merge_feature(name, feature.branch_name, feature.worktree_path, force=force)

    def update_from_main(self, name: str) -> MergeResult:
        feature = self.require_feature(name)
        return self.coordinator.update_from_main(name, feature.worktree_path)

    def resolve_merge_conflicts(
        self,
        name: str,
        strategy: ConflictStrategy | str,
        conflicted_files: Sequence[str] | None = None,
        force: bool = False,
    ) -> MergeResult:
        strategy = ConflictStrategy.parse(strategy)
        feature = self.require_feature(name)
        return self.coordinator.resolve_merge_conflicts(
            name, feature.branch_name, feature.worktree_path, conflicted_files, strategy, force=force
        )

    def resolve_update_from_main_conflicts(
        self,
        name: str,
        strategy: ConflictStrategy | str,
        conflicted_files: Sequence[str] | None = None,
    ) -> MergeResult:
        strategy = ConflictStrategy.parse(strategy)
        feature = self.require_feature(name)
        return self.coordinator.resolve_update_from_main_conflicts(
            name, feature.worktree_path, conflicted_files, strategy
        )

    def complete_merge_after_agent(self, name: str, force: bool = False) -> MergeResult:
        feature = self.require_feature(name)
        return self.coordinator.complete_merge_after_agent(
            name, feature.branch_name, feature.worktree_path, force=force
        )

    def complete_update_after_agent(self, name: str) -> MergeResult:
        feature = self.require_feature(name)
        return self.coordinator.complete_update_after_agent(name, feature.worktree_path)


def sort_features(features: list[Feature], sort_order: SortOrder, direction: SortDirection) -> list[Feature]:
    if sort_order is SortOrder.ALPHABETICAL:
        ordered = sorted(features, key=lambda f: f.name)
    elif sort_order is SortOrder.CHRONOLOGICAL:
        ordered = sorted(features, key=_creation_time)
    else:
        ordered = sorted(features, key=lambda f: STAGE_ORDER.get(f.lifecycle_stage, 999))
    if direction is SortDirection.DESC:
        ordered.reverse()
    return ordered


def _creation_time(feature: Feature) -> float:
    if feature.created_at is not None:
        return feature.created_at.timestamp()
    try:
        stat = feature.worktree_path.stat()
    except OSError:
        return 0.0
    return getattr(stat, "st_birthtime", stat.st_ctime)
