"""Merge protocol states, conflict strategies and result records.

The merge coordinator never stores its phase on disk. Whether a merge is
in progress, conflicted or already cleaned up is read back from git and the
filesystem through the predicates in this module and in
:mod:`clauding.merge.cleanup`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

from clauding.core.exceptions import InvalidConflictStrategyError
from clauding.core.git_ops import GitClient


class MergePhase(StrEnum):
    IDLE = "idle"
    PRE_CHECKING = "pre_checking"
    CLEANING_UP = "cleaning_up"
    MERGING = "merging"
    CONFLICTED = "conflicted"
    MERGED = "merged"
    RESOLVING = "resolving"
    TEARING_DOWN = "tearing_down"
    DONE = "done"
    ABORTED = "aborted"


PHASE_TRANSITIONS: dict[MergePhase, frozenset[MergePhase]] = {
    MergePhase.IDLE: frozenset({MergePhase.PRE_CHECKING, MergePhase.MERGING, MergePhase.RESOLVING, MergePhase.ABORTED}),
    MergePhase.PRE_CHECKING: frozenset({MergePhase.CLEANING_UP, MergePhase.MERGING, MergePhase.RESOLVING}),
    MergePhase.CLEANING_UP: frozenset({MergePhase.MERGING}),
    MergePhase.MERGING: frozenset({MergePhase.CONFLICTED, MergePhase.MERGED}),
    MergePhase.CONFLICTED: frozenset({MergePhase.PRE_CHECKING, MergePhase.RESOLVING, MergePhase.ABORTED}),
    MergePhase.RESOLVING: frozenset({MergePhase.MERGED, MergePhase.CONFLICTED}),
    MergePhase.MERGED: frozenset({MergePhase.TEARING_DOWN, MergePhase.DONE}),
    MergePhase.TEARING_DOWN: frozenset({MergePhase.DONE}),
    MergePhase.DONE: frozenset(),
    MergePhase.ABORTED: frozenset(),
}


def can_transition(current: MergePhase, new: MergePhase) -> bool:
    return new in PHASE_TRANSITIONS[current]


class ConflictStrategy(StrEnum):
    FEATURE = "feature"
    MAIN = "main"
    AGENT = "agent"
    CANCEL = "cancel"

    @classmethod
    def parse(cls, value: str | ConflictStrategy) -> ConflictStrategy:
        """Convert user input, raising before any git command can run."""
        try:
            return cls(value)
        except ValueError:
            raise InvalidConflictStrategyError(value) from None


@dataclass
class MergeResult:
    """Outcome of one merge attempt. Never persisted."""

    success: bool
    has_conflicts: bool = False
    conflicted_files: list[str] = field(default_factory=list)
    message: str = ""
    phase: MergePhase = MergePhase.IDLE
    warnings: list[str] = field(default_factory=list)
    merge_commit_hash: str | None = None

    @classmethod
    def merged(cls, message: str) -> MergeResult:
        return cls(success=True, message=message, phase=MergePhase.MERGED)

    @classmethod
    def conflicted(cls, files: list[str], message: str) -> MergeResult:
        return cls(
            success=False,
            has_conflicts=True,
            conflicted_files=list(files),
            message=message,
            phase=MergePhase.CONFLICTED,
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "success": self.success,
            "hasConflicts": self.has_conflicts,
            "conflictedFiles": list(self.conflicted_files),
            "message": self.message,
            "phase": str(self.phase),
        }
        if self.warnings:
            d["warnings"] = list(self.warnings)
        if self.merge_commit_hash:
            d["mergeCommitHash"] = self.merge_commit_hash
        return d


def is_merge_in_progress(git: GitClient, repo_path: Path) -> bool:
    return git.merge_in_progress(repo_path)


def has_unmerged_paths(git: GitClient, repo_path: Path) -> bool:
    return bool(git.conflicted_files(repo_path))


def looks_like_conflict(output: str) -> bool:
    return "CONFLICT" in output or "Automatic merge failed" in output
