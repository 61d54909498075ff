"""clauding: feature worktrees, lifecycle status and merge orchestration.

Each feature lives on its own branch in its own git worktree under
``.clauding/worktrees/``. Its permanent, never-committed metadata lives in
``.clauding/features/<name>/``.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
