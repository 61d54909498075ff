"""Derive a feature's status and lifecycle stage from observable state.

Nothing here writes to disk or to git. Both queries are computed from a
:class:`StatusSnapshot` so that the decision logic is a pure function of
its five inputs: the uncommitted-changes flag, the latest test result,
plan presence, file mtimes relative to the plan, and the prompt content.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from clauding.core.exceptions import GitCommandError
from clauding.core.git_ops import GitClient
from clauding.core.paths import (
    META_FILES,
    OUTPUTS_DIRNAME,
    PENDING_COMMAND_FILE,
    PLAN_FILE,
    PROMPT_FILE,
    TIMELOG_FILE,
    WRAP_UP_FILE,
    ClaudingPaths,
)
from clauding.status.models import FeatureStatus, LifecycleStage, StatusType
from clauding.status.test_results import latest_test_run

logger = logging.getLogger(__name__)

__all__ = [
    "StatusSnapshot",
    "StatusResolver",
    "status_from_snapshot",
    "files_modified_after",
]

SKIPPED_DIRS = frozenset({OUTPUTS_DIRNAME, ".git", "node_modules", ".clauding"})
SKIPPED_FILES = frozenset({*META_FILES, TIMELOG_FILE, PENDING_COMMAND_FILE})

IMPLEMENT_OUTPUT_PREFIX = "implement-plan"


@dataclass(frozen=True)
class StatusSnapshot:
    """Read-only capture of everything :func:`status_from_snapshot` looks at.

    ``has_uncommitted_changes`` is ``None`` when git could not answer.
    ``tests_failing`` is ``None`` when no test result exists.
    """

    has_uncommitted_changes: bool | None
    tests_failing: bool | None
    plan_exists: bool
    modified_after_plan: bool
    prompt_has_content: bool


def status_from_snapshot(snapshot: StatusSnapshot) -> FeatureStatus:
    """Apply the status rules in priority order, first match wins."""
    if snapshot.has_uncommitted_changes is False:
        return FeatureStatus.of(StatusType.READY_TO_MERGE)

    if snapshot.tests_failing is not None:
        if snapshot.tests_failing:
            return FeatureStatus.of(StatusType.TESTS_FAILED)
        return FeatureStatus.of(StatusType.TESTS_PASSED)

    if snapshot.plan_exists:
        if snapshot.modified_after_plan:
            return FeatureStatus.of(StatusType.IMPLEMENTING)
        return FeatureStatus.of(StatusType.PLAN_CREATED)

    if snapshot.prompt_has_content:
        return FeatureStatus.of(StatusType.NEEDS_PLAN)

    return FeatureStatus.of(StatusType.JUST_CREATED)


def files_modified_after(root: Path, after: float) -> bool:
    """True if any non-metadata file under ``root`` has an mtime after ``after``.

    Unreadable directories are skipped.
    """
    for dirpath, dirnames, filenames in os.walk(root, onerror=lambda e: None):
        dirnames[:] = [d for d in dirnames if d not in SKIPPED_DIRS]
        for filename in filenames:
            if filename in SKIPPED_FILES:
                continue
            try:
                mtime = os.stat(os.path.join(dirpath, filename)).st_mtime
            except OSError:
                continue
            if mtime > after:
                return True
    return False


class StatusResolver:
    """Compute :class:`FeatureStatus` and :class:`LifecycleStage` for a worktree."""

    def __init__(self, paths: ClaudingPaths, git: GitClient | None = None) -> None:
        self.paths = paths
        self.git = git or GitClient()

    # Predicates

    def has_uncommitted_changes(self, worktree_path: Path) -> bool | None:
        try:
            return self.git.has_uncommitted_changes(worktree_path)
        except (GitCommandError, OSError) as e:
            logger.debug("Cannot read git status for %s: %s", worktree_path, e)
            return None

    def tests_failing(self, feature_name: str) -> bool | None:
        result = latest_test_run(self.paths.outputs_dir(feature_name))
        if result is None:
            return None
        return result.has_failures()

    @staticmethod
    def plan_path(worktree_path: Path) -> Path:
        return ClaudingPaths.meta_dir(worktree_path) / PLAN_FILE

    @staticmethod
    def prompt_path(worktree_path: Path) -> Path:
        return ClaudingPaths.meta_dir(worktree_path) / PROMPT_FILE

    def prompt_has_content(self, worktree_path: Path) -> bool:
        try:
            return bool(self.prompt_path(worktree_path).read_text(encoding="utf-8").strip())
        except OSError:
            return False

    def has_implementation_output(self, feature_name: str) -> bool:
        outputs = self.paths.outputs_dir(feature_name)
        try:
            return any(
                p.name.startswith(IMPLEMENT_OUTPUT_PREFIX) and p.suffix == ".txt"
                for p in outputs.iterdir()
            )
        except OSError:
            return False

    # Queries

    def snapshot(self, worktree_path: Path) -> StatusSnapshot:
        feature_name = self.paths.feature_name_for_worktree(worktree_path)
        plan = self.plan_path(worktree_path)
        try:
            plan_mtime: float | None = plan.stat().st_mtime
        except OSError:
            plan_mtime = None

        return StatusSnapshot(
            has_uncommitted_changes=self.has_uncommitted_changes(worktree_path),
            tests_failing=self.tests_failing(feature_name),
            plan_exists=plan_mtime is not None,
            modified_after_plan=plan_mtime is not None and files_modified_after(worktree_path, plan_mtime),
            prompt_has_content=self.prompt_has_content(worktree_path),
        )

    def determine_status(self, worktree_path: Path) -> FeatureStatus:
        return status_from_snapshot(self.snapshot(worktree_path))

    def load_lifecycle_stage(self, worktree_path: Path, feature_name: str | None = None) -> LifecycleStage:
        """Stage from marker files, most advanced first.

        ``wrap-up.json`` in the features folder, then an ``implement-plan*.txt``
        output, then the worktree ``plan.md``, then ``prompt.md``.
        """
        name = feature_name or self.paths.feature_name_for_worktree(worktree_path)
        if (self.paths.feature_folder(name) / WRAP_UP_FILE).exists():
            return LifecycleStage.WRAP_UP
        if self.has_implementation_output(name):
            return LifecycleStage.IMPLEMENT
        if self.plan_path(worktree_path).exists():
            return LifecycleStage.PLAN
        if self.prompt_path(worktree_path).exists():
            return LifecycleStage.PRE_PLAN
        return LifecycleStage.LEGACY
