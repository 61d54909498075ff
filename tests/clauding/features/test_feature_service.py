"""Tests for feature creation, listing, deletion and renaming."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from clauding.core.config import ClaudingConfig
from clauding.core.exceptions import (
    FeatureExistsError,
    FeatureNotFoundError,
    GitCommandError,
    InvalidFeatureNameError,
    WorktreeCreationError,
)
from clauding.core.paths import ClaudingPaths
from clauding.core.worktree import WorktreeManager
from clauding.features.service import FeatureService, validate_feature_name
from clauding.status.models import LifecycleStage, SortDirection, SortOrder, TimelogResult
from tests.utils import branches, git


# --- validate_feature_name ---


@pytest.mark.parametrize("name", ["login", "add-login-page", "feature-123", "a"])
def test_valid_feature_names(name: str) -> None:
    validate_feature_name(name)


@pytest.mark.parametrize(
    ("name", "message"),
    [
        ("", "Empty feature name"),
        ("   ", "whitespace-only"),
        (" login", "leading or trailing whitespace"),
        ("Login", "lowercase letters"),
        ("login_page", "lowercase letters"),
        ("login--page", "lowercase letters"),
        ("-login", "lowercase letters"),
        ("a" * 256, "too long"),
    ],
)
def test_invalid_feature_names(name: str, message: str) -> None:
    with pytest.raises(InvalidFeatureNameError, match=message):
        validate_feature_name(name)


# --- create_feature ---


def test_create_feature(service: FeatureService, project_root: Path) -> None:
    feature = service.create_feature("login")

    assert feature.name == "login"
    assert feature.branch_name == "feature/login"
    assert feature.worktree_path == project_root / ".clauding" / "worktrees" / "login"
    assert feature.lifecycle_stage is LifecycleStage.PRE_PLAN
    assert feature.prompt == ""
    assert not feature.is_archived
    assert "feature/login" in branches(project_root)


def test_create_feature_commits_prompt_and_logs(service: FeatureService) -> None:
    path = service.create_feature("login").worktree_path

    head = git(path, "rev-parse", "--short", "HEAD")
    assert git(path, "log", "-1", "--format=%s") == "feat(login): Initialize feature"
    assert ".clauding/prompt.md" in git(path, "show", "--name-only", "--format=", "HEAD")
    assert git(path, "status", "--porcelain") == ""

    entry = service.timelog.last_entry("login")
    assert entry.action == "Feature Created"
    assert entry.result is TimelogResult.SUCCESS
    assert entry.details == {"file": "prompt.md"}
    assert entry.commit_hash == head
    assert service.status_store.load("login")["commitHash"] == head


def test_create_leaves_main_clean(service: FeatureService, project_root: Path) -> None:
    service.create_feature("login")
    assert git(project_root, "status", "--porcelain") == ""


def test_create_duplicate_feature(service: FeatureService) -> None:
    service.create_feature("login")
    with pytest.raises(FeatureExistsError):
        service.create_feature("login")


def test_create_rejects_invalid_name(service: FeatureService) -> None:
    with pytest.raises(InvalidFeatureNameError):
        service.create_feature("Login Page")
    assert service.get_features() == []


def test_create_rejects_existing_branch(service: FeatureService, project_root: Path) -> None:
    git(project_root, "branch", "feature/login")
    with pytest.raises(WorktreeCreationError, match='Git branch "feature/login" already exists'):
        service.create_feature("login")


def test_unique_feature_name(service: FeatureService) -> None:
    assert service.get_unique_feature_name("login") == "login"
    service.create_feature("login")
    assert service.get_unique_feature_name("login") == "login-1"
    service.create_feature("login-1")
    assert service.get_unique_feature_name("login") == "login-2"


# --- queries ---


def test_get_feature_unknown(service: FeatureService) -> None:
    assert service.get_feature("ghost") is None
    with pytest.raises(FeatureNotFoundError):
        service.require_feature("ghost")


def test_get_features_alphabetical(service: FeatureService) -> None:
    for name in ("beta", "alpha", "gamma"):
        service.create_feature(name)

    asc = service.get_features(SortOrder.ALPHABETICAL)
    desc = service.get_features("alphabetical", "desc")

    assert [f.name for f in asc] == ["alpha", "beta", "gamma"]
    assert [f.name for f in desc] == ["gamma", "beta", "alpha"]


def test_get_features_by_stage(service: FeatureService) -> None:
    service.create_feature("alpha")
    planned = service.create_feature("beta").worktree_path
    (ClaudingPaths.meta_dir(planned) / "plan.md").write_text("1. build\n", encoding="utf-8")

    ordered = service.get_features(SortOrder.STAGE, SortDirection.DESC)

    assert [(f.name, f.lifecycle_stage) for f in ordered] == [
        ("beta", LifecycleStage.PLAN),
        ("alpha", LifecycleStage.PRE_PLAN),
    ]


def test_get_features_chronological_uses_creation_order(service: FeatureService) -> None:
    alpha = service.create_feature("alpha").worktree_path
    service.create_feature("beta")
    (alpha / "new-file.txt").write_text("later edit\n", encoding="utf-8")

    assert [f.name for f in service.get_features(SortOrder.CHRONOLOGICAL)] == ["alpha", "beta"]
    assert [f.name for f in service.get_features("chronological", "desc")] == ["beta", "alpha"]


def test_created_at_survives_later_status_saves(service: FeatureService) -> None:
    service.create_feature("login")
    created = service.status_store.load("login")["createdAt"]

    service.status_store.save("login", "abc1234")

    data = service.status_store.load("login")
    assert data["createdAt"] == created
    assert service.require_feature("login").created_at is not None


def test_chronological_falls_back_without_created_at(service: FeatureService) -> None:
    service.create_feature("login")
    status_path = service.paths.status_path("login")
    data = json.loads(status_path.read_text(encoding="utf-8"))
    del data["createdAt"]
    status_path.write_text(json.dumps(data), encoding="utf-8")

    features = service.get_features(SortOrder.CHRONOLOGICAL)

    assert [f.name for f in features] == ["login"]
    assert features[0].created_at is None


def test_feature_reads_pending_command_and_classification(service: FeatureService) -> None:
    service.create_feature("login")
    folder = service.paths.feature_folder("login")
    (folder / "pending-command.json").write_text(
        json.dumps({"command": "Create Plan", "missingFiles": ["plan.md"]}), encoding="utf-8"
    )
    (folder / "classification.json").write_text(json.dumps({"type": "feature"}), encoding="utf-8")

    feature = service.require_feature("login")

    assert feature.pending_command is not None
    assert feature.pending_command.command == "Create Plan"
    assert feature.pending_command.missing_files == ["plan.md"]
    assert feature.classification == {"type": "feature"}
    assert feature.to_dict()["pendingCommand"] == {"command": "Create Plan", "missingFiles": ["plan.md"]}


def test_unreadable_pending_command_is_ignored(service: FeatureService) -> None:
    service.create_feature("login")
    (service.paths.feature_folder("login") / "pending-command.json").write_text("{", encoding="utf-8")
    assert service.require_feature("login").pending_command is None


# --- delete_feature ---


def test_delete_feature(service: FeatureService, project_root: Path) -> None:
    path = service.create_feature("login").worktree_path

    result = service.delete_feature("login")

    assert result.warnings == []
    assert result.commit_hash is None
    assert not path.exists()
    assert not service.paths.feature_folder("login").exists()
    assert "feature/login" not in branches(project_root)
    assert service.get_features() == []


def test_delete_with_commit_keeps_work_reachable(service: FeatureService, project_root: Path) -> None:
    path = service.create_feature("login").worktree_path
    (path / "draft.py").write_text("x = 1\n", encoding="utf-8")

    result = service.delete_feature("login", commit_changes=True)

    assert result.commit_hash is not None
    assert git(project_root, "cat-file", "-t", result.commit_hash) == "commit"
    assert git(project_root, "log", "-1", "--format=%s", result.commit_hash) == "feat: Auto-commit before deletion"


def test_delete_without_commit_on_clean_worktree(service: FeatureService) -> None:
    service.create_feature("login")
    assert service.delete_feature("login", commit_changes=True).commit_hash is None


def test_delete_branch_failure_is_a_warning(service: FeatureService) -> None:
    path = service.create_feature("login").worktree_path
    error = GitCommandError(["branch", "-D", "feature/login"], 1, stderr="not found")

    with patch.object(WorktreeManager, "delete_branch", side_effect=error):
        result = service.delete_feature("login")

    assert not path.exists()
    assert len(result.warnings) == 1
    assert result.warnings[0].startswith("Worktree removed but failed to delete branch")


def test_delete_unknown_feature(service: FeatureService) -> None:
    with pytest.raises(FeatureNotFoundError):
        service.delete_feature("ghost")


# --- rename_feature ---


def test_rename_feature(service: FeatureService, project_root: Path) -> None:
    old_path = service.create_feature("login").worktree_path

    result = service.rename_feature("login", "sign-in")

    assert result.branch_name == "feature/sign-in"
    assert result.warnings == []
    assert not old_path.exists()
    assert result.worktree_path.is_dir()
    assert service.get_feature("login") is None
    assert service.require_feature("sign-in").branch_name == "feature/sign-in"
    assert service.paths.feature_folder("sign-in").is_dir()
    assert not service.paths.feature_folder("login").exists()
    assert "feature/login" not in branches(project_root)


def test_rename_feature_keeps_configured_prefix(project_root: Path) -> None:
    service = FeatureService.from_project(project_root, ClaudingConfig(branch_prefix="feat-"))
    service.create_feature("login")

    result = service.rename_feature("login", "signin")

    assert result.branch_name == "feat-signin"
    assert service.require_feature("signin").branch_name == "feat-signin"
    assert "feat-login" not in branches(project_root)


def test_rename_to_existing_feature(service: FeatureService) -> None:
    service.create_feature("login")
    service.create_feature("signup")
    with pytest.raises(FeatureExistsError):
        service.rename_feature("login", "signup")


def test_rename_to_invalid_name(service: FeatureService) -> None:
    service.create_feature("login")
    with pytest.raises(InvalidFeatureNameError):
        service.rename_feature("login", "Sign In")
    assert service.get_feature("login") is not None


# --- request_lifecycle_stage ---


def test_request_lifecycle_stage(service: FeatureService) -> None:
    service.create_feature("login")
    before = service.status_store.load("login")["updatedAt"]

    assert service.request_lifecycle_stage("login", "plan") is True
    assert service.request_lifecycle_stage("login", LifecycleStage.WRAP_UP) is False
    assert service.status_store.load("login")["updatedAt"] >= before
    assert service.require_feature("login").lifecycle_stage is LifecycleStage.PRE_PLAN


def test_request_unknown_stage(service: FeatureService) -> None:
    service.create_feature("login")
    with pytest.raises(ValueError):
        service.request_lifecycle_stage("login", "shipping")
