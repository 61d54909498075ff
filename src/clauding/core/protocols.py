"""Interfaces of the collaborators the merge coordinator talks to.

Terminals, editors and watchers belong to the host application. The null
implementations let the core run headless (CLI, tests) with nothing open.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol

ProgressCallback = Callable[[str], None]


@dataclass(frozen=True)
class TerminalInfo:
    name: str


class TerminalRunner(Protocol):
    def get_terminals_by_feature(self, feature_name: str) -> list[TerminalInfo]:
        ...

    def kill_all_terminals_and_capture_output(
        self,
        feature_name: str,
        worktree_path: Path,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        """Persist each terminal's tail output, then close it."""
        ...


class EditorSurface(Protocol):
    def get_editor_paths(self, worktree_path: Path) -> list[str]:
        """Open documents located under ``worktree_path``."""
        ...

    def get_unsaved_editor_paths(self, worktree_path: Path) -> list[str]:
        ...

    def close_all_editors_for_feature(self, worktree_path: Path) -> None:
        ...


class ArchiveIndexer(Protocol):
    def add_to_archived_cache(self, feature_name: str, merge_commit_hash: str) -> None:
        ...


class FeatureWatcher(Protocol):
    """Agent-status tracker or metadata watcher bound to one feature."""

    def stop(self, feature_name: str) -> None:
        ...


class NullTerminalRunner:
    def get_terminals_by_feature(self, feature_name: str) -> list[TerminalInfo]:
        return []

    def kill_all_terminals_and_capture_output(
        self,
        feature_name: str,
        worktree_path: Path,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        return None


class NullEditorSurface:
    def get_editor_paths(self, worktree_path: Path) -> list[str]:
        return []

    def get_unsaved_editor_paths(self, worktree_path: Path) -> list[str]:
        return []

    def close_all_editors_for_feature(self, worktree_path: Path) -> None:
        return None
