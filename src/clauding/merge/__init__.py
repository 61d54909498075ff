"""Merge subpackage for clauding merge operations.

Modules:
    commit_helper: Commit plus timelog entry folded into one commit
    cleanup: Move worktree metadata to the features folder before merging
    service: Git-level merge, conflict resolution and abort primitives
    state: Merge phases, conflict strategies and merge results
    coordinator: The full merge protocol with pre-checks and teardown
"""

from __future__ import annotations

__all__: list[str] = []
