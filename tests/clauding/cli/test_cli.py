"""CLI tests driving the clauding app against a real repository."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from clauding import __version__
from clauding.cli.app import app
from clauding.core.git_ops import GitClient
from tests.utils import commit_file, git

runner = CliRunner()


@pytest.fixture()
def in_project(project_root: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.delenv("CLAUDING_PROJECT_ROOT", raising=False)
    monkeypatch.chdir(project_root)
    return project_root


def _json(args: list[str], exit_code: int = 0):
    result = runner.invoke(app, [*args, "--json"])
    assert result.exit_code == exit_code, result.output
    return json.loads(result.stdout)


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"clauding {__version__}" in result.output


def test_outside_a_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CLAUDING_PROJECT_ROOT", raising=False)
    monkeypatch.chdir(tmp_path)
    data = _json(["feature", "list"], exit_code=1)
    assert data == {"error": "Could not locate project root"}


def test_project_root_from_environment(project_root: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLAUDING_PROJECT_ROOT", str(project_root))
    monkeypatch.chdir(tmp_path)
    assert _json(["feature", "list"]) == []


# --- feature commands ---


def test_feature_create(in_project: Path) -> None:
    data = _json(["feature", "create", "login"])

    assert data["name"] == "login"
    assert data["branchName"] == "feature/login"
    assert data["lifecycleStatus"] == "pre-plan"
    assert data["archived"] is False
    assert Path(data["worktreePath"]).is_dir()


def test_feature_create_invalid_name(in_project: Path) -> None:
    data = _json(["feature", "create", "Login"], exit_code=1)
    assert data["error"].startswith("Invalid feature name")


def test_feature_create_duplicate(in_project: Path) -> None:
    _json(["feature", "create", "login"])
    data = _json(["feature", "create", "login"], exit_code=1)
    assert data == {"error": 'Active feature "login" already exists'}


def test_feature_list_sorted(in_project: Path) -> None:
    for name in ("beta", "alpha"):
        _json(["feature", "create", name])

    assert [f["name"] for f in _json(["feature", "list", "--sort", "alphabetical"])] == ["alpha", "beta"]
    assert [f["name"] for f in _json(["feature", "list", "--sort", "alphabetical", "--desc"])] == ["beta", "alpha"]


def test_feature_list_human_output(in_project: Path) -> None:
    result = runner.invoke(app, ["feature", "list"])
    assert result.exit_code == 0
    assert "No active features" in result.output

    _json(["feature", "create", "login"])
    result = runner.invoke(app, ["feature", "list"])
    assert result.exit_code == 0
    assert "login" in result.output


def test_feature_show_and_status(in_project: Path) -> None:
    _json(["feature", "create", "login"])

    shown = _json(["feature", "show", "login"])
    status = _json(["feature", "status", "login"])

    assert shown["prompt"] == ""
    assert status["name"] == "login"
    assert status["lifecycleStatus"] == "pre-plan"
    assert set(status["status"]) == {"type", "message"}


def test_feature_show_unknown(in_project: Path) -> None:
    assert _json(["feature", "show", "ghost"], exit_code=1) == {"error": "Feature not found: ghost"}


def test_feature_stage(in_project: Path) -> None:
    _json(["feature", "create", "login"])
    assert _json(["feature", "stage", "login", "plan"]) == {"name": "login", "stage": "plan", "valid": True}
    assert _json(["feature", "stage", "login", "wrap-up"])["valid"] is False


def test_feature_rename(in_project: Path) -> None:
    _json(["feature", "create", "login"])

    data = _json(["feature", "rename", "login", "sign-in"])

    assert data["oldName"] == "login"
    assert data["newName"] == "sign-in"
    assert data["branchName"] == "feature/sign-in"
    assert [f["name"] for f in _json(["feature", "list"])] == ["sign-in"]


def test_feature_delete(in_project: Path) -> None:
    created = _json(["feature", "create", "login"])

    data = _json(["feature", "delete", "login"])

    assert data == {"name": "login", "commitHash": None, "warnings": []}
    assert not Path(created["worktreePath"]).exists()


def test_feature_delete_with_commit(in_project: Path) -> None:
    created = _json(["feature", "create", "login"])
    (Path(created["worktreePath"]) / "draft.txt").write_text("wip\n", encoding="utf-8")

    data = _json(["feature", "delete", "login", "--commit"])

    assert data["commitHash"]


# --- merge commands ---


def test_merge_run_archives_feature(in_project: Path) -> None:
    created = _json(["feature", "create", "login"])
    commit_file(Path(created["worktreePath"]), "login.py", "pass\n", "feat(login): Add login")

    result = _json(["merge", "run", "login"])

    assert result["success"] is True
    assert result["phase"] == "done"
    assert result["mergeCommitHash"] == git(in_project, "rev-parse", "HEAD")
    archived = _json(["feature", "list", "--archived"])
    assert [f["name"] for f in archived] == ["login"]
    assert _json(["feature", "show", "login"])["archived"] is True


def test_merge_run_human_output(in_project: Path) -> None:
    _json(["feature", "create", "login"])

    result = runner.invoke(app, ["merge", "run", "login"])

    assert result.exit_code == 0, result.output
    assert "Merge successful" in result.output


def test_merge_conflict_then_resolve(in_project: Path) -> None:
    created = _json(["feature", "create", "login"])
    commit_file(Path(created["worktreePath"]), "shared.txt", "feature\n", "feat(login): Change shared")
    commit_file(in_project, "shared.txt", "main\n", "Change shared on main")

    conflicted = _json(["merge", "run", "login"], exit_code=1)
    assert conflicted["hasConflicts"] is True
    assert conflicted["conflictedFiles"] == ["shared.txt"]

    waiting = _json(["merge", "resolve", "login", "agent"])
    assert waiting["message"] == "Waiting for agent to resolve conflicts"

    resolved = _json(["merge", "resolve", "login", "feature"])
    assert resolved["success"] is True
    assert (in_project / "shared.txt").read_text(encoding="utf-8") == "feature\n"


def test_merge_conflict_human_output_suggests_resolution(in_project: Path) -> None:
    created = _json(["feature", "create", "login"])
    commit_file(Path(created["worktreePath"]), "shared.txt", "feature\n", "feat(login): Change shared")
    commit_file(in_project, "shared.txt", "main\n", "Change shared on main")

    result = runner.invoke(app, ["merge", "run", "login"])

    assert result.exit_code == 1
    assert "shared.txt" in result.output
    assert "clauding merge resolve login" in result.output


def test_merge_resolve_invalid_strategy(in_project: Path) -> None:
    with patch.object(GitClient, "run") as run:
        data = _json(["merge", "resolve", "login", "theirs"], exit_code=1)
    assert data == {"error": "Invalid conflict resolution strategy: theirs"}
    run.assert_not_called()


def test_merge_unknown_feature(in_project: Path) -> None:
    assert _json(["merge", "run", "ghost"], exit_code=1) == {"error": "Feature not found: ghost"}


def test_merge_update(in_project: Path) -> None:
    created = _json(["feature", "create", "login"])
    commit_file(in_project, "main-only.txt", "m\n", "Main only")

    data = _json(["merge", "update", "login"])

    assert data["success"] is True
    assert (Path(created["worktreePath"]) / "main-only.txt").exists()


def test_merge_complete_with_pending_conflicts(in_project: Path) -> None:
    created = _json(["feature", "create", "login"])
    worktree = Path(created["worktreePath"])
    commit_file(worktree, "shared.txt", "feature\n", "feat(login): Change shared")
    commit_file(in_project, "shared.txt", "main\n", "Change shared on main")
    _json(["merge", "update", "login"], exit_code=1)

    data = _json(["merge", "complete", "login", "--update"], exit_code=1)
    assert data["error"].startswith("Agent did not resolve all conflicts")

    (worktree / "shared.txt").write_text("merged\n", encoding="utf-8")
    git(worktree, "add", "shared.txt")
    assert _json(["merge", "complete", "login", "--update"])["success"] is True


# --- timelog commands ---


def test_timelog_show(in_project: Path) -> None:
    _json(["feature", "create", "login"])

    data = _json(["timelog", "show", "login"])

    assert [e["action"] for e in data["entries"]] == ["Feature Created"]
    result = runner.invoke(app, ["timelog", "show", "login"])
    assert result.exit_code == 0
    assert "Timelog: login" in result.output


def test_timelog_reconcile_dry_run(in_project: Path) -> None:
    _json(["feature", "create", "login"])

    data = _json(["timelog", "reconcile", "--dry-run"])

    assert data["dryRun"] is True
    assert data["totalFeatures"] == 1
    assert data["staleHashes"] == 0
