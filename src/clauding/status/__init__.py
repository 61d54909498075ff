"""Feature status: derived lifecycle stage, status messages and timelogs.

Public API surface -- consumers import from this package.
"""

from .models import (
    STAGE_ORDER,
    Feature,
    FeatureStatus,
    LifecycleStage,
    PendingCommand,
    SortDirection,
    SortOrder,
    StatusType,
    TimelogEntry,
    TimelogResult,
)
from .reconcile import ReconcileStats, TimelogReconciler
from .resolver import StatusResolver, StatusSnapshot, status_from_snapshot
from .store import LifecycleStatusStore, StoreError
from .timelog import TimelogStore
from .transitions import ALLOWED_TRANSITIONS, is_valid_transition, next_expected_stage

__all__ = [
    "ALLOWED_TRANSITIONS",
    "STAGE_ORDER",
    "Feature",
    "FeatureStatus",
    "LifecycleStage",
    "LifecycleStatusStore",
    "PendingCommand",
    "ReconcileStats",
    "SortDirection",
    "SortOrder",
    "StatusResolver",
    "StatusSnapshot",
    "StatusType",
    "StoreError",
    "TimelogEntry",
    "TimelogReconciler",
    "TimelogResult",
    "TimelogStore",
    "is_valid_transition",
    "next_expected_stage",
    "status_from_snapshot",
]
