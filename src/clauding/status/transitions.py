"""Advisory lifecycle stage graph.

Used to sanity-check manually forced stage changes. The stage itself is
always derived by :mod:`clauding.status.resolver`; nothing here blocks it.
"""

from __future__ import annotations

from .models import LifecycleStage

ALLOWED_TRANSITIONS: dict[LifecycleStage, frozenset[LifecycleStage]] = {
    LifecycleStage.PRE_PLAN: frozenset({LifecycleStage.PLAN, LifecycleStage.LEGACY}),
    LifecycleStage.PLAN: frozenset(
        {LifecycleStage.IMPLEMENT, LifecycleStage.PRE_PLAN, LifecycleStage.LEGACY}
    ),
    LifecycleStage.IMPLEMENT: frozenset(
        {LifecycleStage.WRAP_UP, LifecycleStage.PLAN, LifecycleStage.LEGACY}
    ),
    LifecycleStage.WRAP_UP: frozenset({LifecycleStage.LEGACY}),
    # Legacy features can restart the lifecycle.
    LifecycleStage.LEGACY: frozenset({LifecycleStage.PRE_PLAN}),
}

NEXT_STAGE: dict[LifecycleStage, LifecycleStage | None] = {
    LifecycleStage.PRE_PLAN: LifecycleStage.PLAN,
    LifecycleStage.PLAN: LifecycleStage.IMPLEMENT,
    LifecycleStage.IMPLEMENT: LifecycleStage.WRAP_UP,
    LifecycleStage.WRAP_UP: None,
    LifecycleStage.LEGACY: LifecycleStage.PRE_PLAN,
}


def is_valid_transition(current: str, new: str) -> bool:
    """Return True if ``current -> new`` is an edge of the stage graph.

    Unknown stage names are never valid.
    """
    try:
        current_stage = LifecycleStage(current)
        new_stage = LifecycleStage(new)
    except ValueError:
        return False
    return new_stage in ALLOWED_TRANSITIONS[current_stage]


def next_expected_stage(current: str) -> LifecycleStage | None:
    return NEXT_STAGE[LifecycleStage(current)]
