"""Tests for the GitClient subprocess wrapper."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from clauding.core.exceptions import GitCommandError, NothingToCommitError
from clauding.core.git_ops import GitClient, is_nothing_to_commit
from tests.utils import commit_file, git


@pytest.mark.parametrize(
    "output",
    [
        "On branch main\nnothing to commit, working tree clean",
        "nothing added to commit but untracked files present",
        "NOTHING TO COMMIT",
    ],
)
def test_nothing_to_commit_detection(output: str) -> None:
    assert is_nothing_to_commit(output)


def test_other_output_is_not_nothing_to_commit() -> None:
    assert not is_nothing_to_commit("error: pathspec 'x' did not match any file(s)")


def test_failed_command_raises_with_details(project_root: Path, git_client: GitClient) -> None:
    with pytest.raises(GitCommandError) as excinfo:
        git_client.run(project_root, ["checkout", "no-such-branch"])
    assert excinfo.value.returncode != 0
    assert excinfo.value.git_args == ["checkout", "no-such-branch"]
    assert "no-such-branch" in excinfo.value.output


def test_unchecked_command_returns_result(project_root: Path, git_client: GitClient) -> None:
    result = git_client.run(project_root, ["rev-parse", "--verify", "nope"], check=False)
    assert not result.ok


def test_missing_executable_becomes_git_command_error(project_root: Path) -> None:
    client = GitClient(git_executable="git-does-not-exist-anywhere")
    with pytest.raises(GitCommandError) as excinfo:
        client.run(project_root, ["status"])
    assert excinfo.value.returncode == 127


def test_timeout_becomes_git_command_error(project_root: Path, git_client: GitClient) -> None:
    with patch(
        "clauding.core.git_ops.subprocess.run",
        side_effect=subprocess.TimeoutExpired(cmd="git status", timeout=120),
    ):
        with pytest.raises(GitCommandError) as excinfo:
            git_client.run(project_root, ["status"])
    assert excinfo.value.returncode == 124


def test_commit_returns_short_hash(project_root: Path, git_client: GitClient) -> None:
    (project_root / "new.txt").write_text("hello\n", encoding="utf-8")
    git_client.stage_all(project_root)
    short = git_client.commit(project_root, "Add new file")
    assert short == git(project_root, "rev-parse", "--short", "HEAD")
    assert git(project_root, "log", "-1", "--format=%s") == "Add new file"


def test_commit_with_nothing_staged_raises_nothing_to_commit(project_root: Path, git_client: GitClient) -> None:
    with pytest.raises(NothingToCommitError):
        git_client.commit(project_root, "Empty")


def test_amend_with_nothing_staged_raises_nothing_to_commit(project_root: Path, git_client: GitClient) -> None:
    before = git(project_root, "rev-parse", "HEAD")
    with pytest.raises(NothingToCommitError):
        git_client.amend(project_root)
    assert git(project_root, "rev-parse", "HEAD") == before


def test_amend_folds_staged_changes_into_head(project_root: Path, git_client: GitClient) -> None:
    commit_file(project_root, "a.txt", "one\n", "Add a")
    count = git_client.commit_count(project_root)

    (project_root / "a.txt").write_text("two\n", encoding="utf-8")
    git_client.stage_all(project_root)
    git_client.amend(project_root)

    assert git_client.commit_count(project_root) == count
    assert git(project_root, "log", "-1", "--format=%s") == "Add a"
    assert not git_client.has_uncommitted_changes(project_root)


def test_branch_queries(project_root: Path, git_client: GitClient) -> None:
    assert git_client.current_branch(project_root) == "main"
    assert git_client.branch_exists(project_root, "main")
    assert not git_client.branch_exists(project_root, "feature/missing")
    git(project_root, "branch", "feature/x")
    assert set(git_client.list_branches(project_root)) == {"main", "feature/x"}


def test_commit_exists(project_root: Path, git_client: GitClient) -> None:
    head = git_client.short_head(project_root)
    assert git_client.commit_exists(project_root, head)
    assert not git_client.commit_exists(project_root, "0000000")


def test_merge_conflict_leaves_merge_in_progress(project_root: Path, git_client: GitClient) -> None:
    git(project_root, "checkout", "-b", "other")
    commit_file(project_root, "shared.txt", "other\n", "Change on other")
    git(project_root, "checkout", "main")
    commit_file(project_root, "shared.txt", "main\n", "Change on main")

    result = git_client.merge(project_root, "other", "Merge other")

    assert not result.ok
    assert git_client.merge_in_progress(project_root)
    assert git_client.conflicted_files(project_root) == ["shared.txt"]

    git_client.merge_abort(project_root)
    assert not git_client.merge_in_progress(project_root)


def test_checkout_side_rejects_unknown_side(project_root: Path, git_client: GitClient) -> None:
    with pytest.raises(ValueError):
        git_client.checkout_side(project_root, "mine", "shared.txt")
