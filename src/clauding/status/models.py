"""Feature status models.

Defines the derived lifecycle stage, the derived status summary, the
timelog entry record and the aggregate :class:`Feature` view. None of the
stage or status values are persisted; they are recomputed on every query.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Any


class LifecycleStage(StrEnum):
    """High-level phase of a feature, derived from artifact presence."""

    PRE_PLAN = "pre-plan"
    PLAN = "plan"
    IMPLEMENT = "implement"
    WRAP_UP = "wrap-up"
    LEGACY = "legacy"


STAGE_ORDER: dict[LifecycleStage, int] = {
    LifecycleStage.PRE_PLAN: 1,
    LifecycleStage.PLAN: 2,
    LifecycleStage.IMPLEMENT: 3,
    LifecycleStage.WRAP_UP: 4,
    LifecycleStage.LEGACY: 5,
}


class StatusType(StrEnum):
    JUST_CREATED = "just-created"
    NEEDS_PLAN = "needs-plan"
    PLAN_CREATED = "plan-created"
    IMPLEMENTING = "implementing"
    TESTS_FAILED = "tests-failed"
    TESTS_PASSED = "tests-passed"
    READY_TO_MERGE = "ready-to-merge"


STATUS_MESSAGES: dict[StatusType, str] = {
    StatusType.READY_TO_MERGE: "Feature complete. Ready to [Merge]",
    StatusType.TESTS_FAILED: "Tests failing. Review test output and run [Fix All Tests]",
    StatusType.TESTS_PASSED: "Tests passing. Review changes and [Commit]",
    StatusType.IMPLEMENTING: "Run [Run Tests] to verify implementation",
    StatusType.PLAN_CREATED: "Review plan and either [Modify Plan] or [Implement Plan]",
    StatusType.NEEDS_PLAN: "Review feature prompt and run [Create Plan]",
    StatusType.JUST_CREATED: "Edit feature prompt, save file and run [Create Plan]",
}


@dataclass(frozen=True)
class FeatureStatus:
    """Human-readable summary of where a feature stands."""

    type: StatusType
    message: str

    @classmethod
    def of(cls, status_type: StatusType) -> FeatureStatus:
        return cls(type=status_type, message=STATUS_MESSAGES[status_type])

    def to_dict(self) -> dict[str, str]:
        return {"type": str(self.type), "message": self.message}


class TimelogResult(StrEnum):
    SUCCESS = "Success"
    FAILED = "Failed"
    WARNING = "Warning"


@dataclass
class TimelogEntry:
    """One append-only timelog record.

    ``commit_hash`` is the commit that existed when the operation started,
    not the commit the operation produced.
    """

    timestamp: str
    action: str
    result: TimelogResult
    details: dict[str, Any] | None = None
    commit_hash: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "timestamp": self.timestamp,
            "action": self.action,
            "result": str(self.result),
        }
        if self.details is not None:
            d["details"] = self.details
        if self.commit_hash:
            d["commitHash"] = self.commit_hash
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TimelogEntry:
        return cls(
            timestamp=data["timestamp"],
            action=data["action"],
            result=TimelogResult(data["result"]),
            details=data.get("details"),
            commit_hash=data.get("commitHash"),
        )


class SortOrder(StrEnum):
    ALPHABETICAL = "alphabetical"
    CHRONOLOGICAL = "chronological"
    STAGE = "stage"


class SortDirection(StrEnum):
    ASC = "asc"
    DESC = "desc"


@dataclass
class PendingCommand:
    command: str
    missing_files: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PendingCommand:
        return cls(command=data["command"], missing_files=list(data.get("missingFiles", [])))

    def to_dict(self) -> dict[str, Any]:
        return {"command": self.command, "missingFiles": list(self.missing_files)}


@dataclass
class Feature:
    """Aggregate view of a feature.

    An active feature has a worktree and a branch. An archived feature has
    only its features folder; its ``branch_name`` is empty.
    """

    name: str
    worktree_path: Path
    branch_name: str
    lifecycle_stage: LifecycleStage
    status: FeatureStatus | None = None
    prompt: str | None = None
    pending_command: PendingCommand | None = None
    classification: dict[str, Any] | None = None
    merge_commit_hash: str | None = None
    merge_date: datetime | None = None
    created_at: datetime | None = None

    @property
    def is_archived(self) -> bool:
        return self.branch_name == ""

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "name": self.name,
            "worktreePath": str(self.worktree_path),
            "branchName": self.branch_name,
            "lifecycleStatus": str(self.lifecycle_stage),
            "archived": self.is_archived,
        }
        if self.status is not None:
            d["status"] = self.status.to_dict()
        if self.prompt is not None:
            d["prompt"] = self.prompt
        if self.pending_command is not None:
            d["pendingCommand"] = self.pending_command.to_dict()
        if self.classification is not None:
            d["classification"] = self.classification
        if self.merge_commit_hash:
            d["mergeCommitHash"] = self.merge_commit_hash
        if self.merge_date is not None:
            d["mergeDate"] = self.merge_date.isoformat()
        if self.created_at is not None:
            d["createdAt"] = self.created_at.isoformat()
        return d
