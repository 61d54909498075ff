"""Thin wrapper around the git command line.

Every call is a blocking ``subprocess.run`` with captured text output. A
non-zero exit becomes :class:`GitCommandError`; a commit that git refuses
because nothing is staged becomes :class:`NothingToCommitError`.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from clauding.core.exceptions import GitCommandError, NothingToCommitError

logger = logging.getLogger(__name__)

__all__ = ["GitClient", "GitResult", "NOTHING_TO_COMMIT_MARKERS", "is_nothing_to_commit"]

NOTHING_TO_COMMIT_MARKERS = ("nothing to commit", "nothing added to commit")


def is_nothing_to_commit(output: str) -> bool:
    lowered = output.lower()
    return any(marker in lowered for marker in NOTHING_TO_COMMIT_MARKERS)


@dataclass
class GitResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class GitClient:
    """Run git commands in a given working directory."""

    def __init__(self, git_executable: str = "git", timeout: int | None = 120) -> None:
        self.git_executable = git_executable
        self.timeout = timeout

    def run(self, cwd: Path, args: Sequence[str], check: bool = True) -> GitResult:
        """Run ``git <args>`` in ``cwd``.

        Raises:
            GitCommandError: If ``check`` is set and git exits non-zero, or git
                cannot be executed at all.
        """
        argv = [self.git_executable, *args]
        logger.debug("git %s (cwd=%s)", " ".join(args), cwd)
        try:
            completed = subprocess.run(
                argv,
                cwd=str(cwd),
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise GitCommandError(args, 127, stderr=f"git executable not found: {e}", cwd=cwd) from e
        except subprocess.TimeoutExpired as e:
            raise GitCommandError(args, 124, stderr=f"git command timed out after {e.timeout}s", cwd=cwd) from e

        result = GitResult(completed.returncode, completed.stdout or "", completed.stderr or "")
        if check and not result.ok:
            raise GitCommandError(args, result.returncode, result.stdout, result.stderr, cwd=cwd)
        return result

    def _output(self, cwd: Path, args: Sequence[str]) -> str:
        return self.run(cwd, args).stdout.strip()

    # Commits

    def stage_all(self, cwd: Path) -> None:
        self.run(cwd, ["add", "-A"])

    def stage(self, cwd: Path, paths: Sequence[str]) -> None:
        if paths:
            self.run(cwd, ["add", "--", *paths])

    def commit(self, cwd: Path, message: str, *, no_edit: bool = False) -> str:
        """Create a commit and return the new short hash.

        Raises:
            NothingToCommitError: If git reports nothing to commit.
        """
        args = ["commit", "--no-edit"] if no_edit else ["commit", "-m", message]
        self._commit(cwd, args)
        return self.short_head(cwd)

    def amend(self, cwd: Path) -> str:
        """Fold the staged changes into HEAD, keeping its message.

        Raises:
            NothingToCommitError: If nothing is staged.
        """
        if not self.has_staged_changes(cwd):
            raise NothingToCommitError(["commit", "--amend", "--no-edit"], 1, stdout="nothing to commit", cwd=cwd)
        self._commit(cwd, ["commit", "--amend", "--no-edit"])
        return self.short_head(cwd)

    def _commit(self, cwd: Path, args: list[str]) -> None:
        result = self.run(cwd, args, check=False)
        if result.ok:
            return
        combined = f"{result.stdout}\n{result.stderr}"
        if is_nothing_to_commit(combined):
            raise NothingToCommitError(args, result.returncode, result.stdout, result.stderr, cwd=cwd)
        raise GitCommandError(args, result.returncode, result.stdout, result.stderr, cwd=cwd)

    # Queries

    def short_head(self, cwd: Path) -> str:
        return self._output(cwd, ["rev-parse", "--short", "HEAD"])

    def head(self, cwd: Path) -> str:
        return self._output(cwd, ["rev-parse", "HEAD"])

    def rev_parse(self, cwd: Path, rev: str) -> str | None:
        result = self.run(cwd, ["rev-parse", "-q", "--verify", rev], check=False)
        return result.stdout.strip() if result.ok else None

    def current_branch(self, cwd: Path) -> str:
        return self._output(cwd, ["rev-parse", "--abbrev-ref", "HEAD"])

    def branch_exists(self, cwd: Path, branch: str) -> bool:
        return self.rev_parse(cwd, f"refs/heads/{branch}") is not None

    def list_branches(self, cwd: Path) -> list[str]:
        out = self._output(cwd, ["branch", "--list", "--format=%(refname:short)"])
        return [line.strip() for line in out.splitlines() if line.strip()]

    def status_porcelain(self, cwd: Path) -> list[str]:
        out = self.run(cwd, ["status", "--porcelain"]).stdout
        return [line for line in out.splitlines() if line.strip()]

    def has_uncommitted_changes(self, cwd: Path) -> bool:
        return bool(self.status_porcelain(cwd))

    def has_staged_changes(self, cwd: Path) -> bool:
        result = self.run(cwd, ["diff", "--cached", "--quiet"], check=False)
        return result.returncode == 1

    def commit_exists(self, cwd: Path, commit_hash: str) -> bool:
        result = self.run(cwd, ["cat-file", "-e", f"{commit_hash}^{{commit}}"], check=False)
        return result.ok

    def commit_count(self, cwd: Path, rev: str = "HEAD") -> int:
        return int(self._output(cwd, ["rev-list", "--count", rev]))

    def log(self, cwd: Path, args: Sequence[str]) -> str:
        return self.run(cwd, ["log", *args]).stdout

    # Merges

    def merge_in_progress(self, cwd: Path) -> bool:
        """True while ``MERGE_HEAD`` exists for the checkout at ``cwd``."""
        return self.rev_parse(cwd, "MERGE_HEAD") is not None

    def conflicted_files(self, cwd: Path) -> list[str]:
        out = self.run(cwd, ["diff", "--name-only", "--diff-filter=U"]).stdout
        return [line.strip() for line in out.splitlines() if line.strip()]

    def checkout(self, cwd: Path, branch: str) -> None:
        self.run(cwd, ["checkout", branch])

    def merge(self, cwd: Path, branch: str, message: str) -> GitResult:
        """Run a ``--no-ff`` merge without raising; callers interpret the result."""
        return self.run(cwd, ["merge", branch, "--no-ff", "-m", message], check=False)

    def merge_abort(self, cwd: Path) -> None:
        self.run(cwd, ["merge", "--abort"])

    def checkout_side(self, cwd: Path, side: str, path: str) -> None:
        """Take ``--ours`` or ``--theirs`` for one unmerged path."""
        if side not in ("ours", "theirs"):
            raise ValueError(f"side must be 'ours' or 'theirs', got {side!r}")
        self.run(cwd, ["checkout", f"--{side}", "--", path])

    # Branches and worktrees

    def delete_branch(self, cwd: Path, branch: str) -> None:
        self.run(cwd, ["branch", "-D", branch])

    def rename_branch(self, cwd: Path, old: str, new: str) -> None:
        self.run(cwd, ["branch", "-m", old, new])

    def worktree_add(self, cwd: Path, path: Path, branch: str, base: str | None = None) -> None:
        args = ["worktree", "add", str(path), "-b", branch]
        if base:
            args.append(base)
        self.run(cwd, args)

    def worktree_remove(self, cwd: Path, path: Path) -> None:
        self.run(cwd, ["worktree", "remove", str(path), "--force"])

    def worktree_move(self, cwd: Path, source: Path, destination: Path) -> None:
        self.run(cwd, ["worktree", "move", str(source), str(destination)])
