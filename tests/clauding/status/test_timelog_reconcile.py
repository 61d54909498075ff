"""Tests for stale timelog commit hash reconciliation."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

from clauding.core.paths import ClaudingPaths
from clauding.status.reconcile import CommitInfo, ReconcileStats, TimelogReconciler, find_replacement
from clauding.status.store import utc_now_iso
from clauding.status.timelog import TimelogStore
from tests.utils import commit_file, git

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _commit(short: str, message: str, offset: timedelta) -> CommitInfo:
    return CommitInfo(hash=short * 5, short_hash=short, message=message, date=NOW + offset)


def _entry(action: str, **details) -> dict:
    entry = {"timestamp": NOW.isoformat().replace("+00:00", "Z"), "action": action, "result": "Success"}
    if details:
        entry["details"] = details
    return entry


# --- find_replacement ---


def test_feature_created_matches_init_commit_within_window() -> None:
    commits = [
        _commit("aaaaaaaa", "feat(login): Initialize feature", timedelta(seconds=30)),
        _commit("bbbbbbbb", "feat(login): Initialize feature", timedelta(minutes=10)),
    ]
    assert find_replacement(_entry("Feature Created"), commits) == "aaaaaaaa" * 5


def test_feature_created_outside_window_is_unfixable() -> None:
    commits = [_commit("aaaaaaaa", "feat(login): Initialize feature", timedelta(minutes=3))]
    assert find_replacement(_entry("Feature Created"), commits) is None


def test_output_file_reference_wins() -> None:
    commits = [
        _commit("aaaaaaaa", "feat(login): Create Plan", timedelta(seconds=5)),
        _commit("bbbbbbbb", "feat(login): Create Plan - plan-2.txt", timedelta(minutes=30)),
    ]
    entry = _entry("Create Plan", outputFile="plan-2.txt")
    assert find_replacement(entry, commits) == "bbbbbbbb" * 5


def test_closest_matching_action_is_chosen() -> None:
    commits = [
        _commit("aaaaaaaa", "feat(login): Run Tests", timedelta(minutes=4)),
        _commit("bbbbbbbb", "feat(login): Run Tests", timedelta(minutes=-1)),
        _commit("cccccccc", "feat(login): Something else", timedelta(seconds=1)),
    ]
    assert find_replacement(_entry("Run Tests"), commits) == "bbbbbbbb" * 5


def test_action_words_matched_individually() -> None:
    commits = [_commit("aaaaaaaa", "feat(login): update implementation from review", timedelta(seconds=10))]
    assert find_replacement(_entry("Update Implementation"), commits) == "aaaaaaaa" * 5


# --- against a repository ---


def _write_timelog(paths: ClaudingPaths, name: str, entries: list[dict]) -> Path:
    path = paths.timelog_path(name)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"entries": entries}), encoding="utf-8")
    return path


def test_reconcile_replaces_stale_hash(project_root: Path, paths: ClaudingPaths) -> None:
    commit_file(project_root, "login.txt", "x\n", "feat(login): Initialize feature")
    real = git(project_root, "rev-parse", "HEAD")
    entry = {
        "timestamp": utc_now_iso(),
        "action": "Feature Created",
        "result": "Success",
        "commitHash": "deadbee",
    }
    _write_timelog(paths, "login", [entry])

    stats = TimelogReconciler(paths).run()

    assert stats.total_features == 1
    assert stats.stale_hashes == 1
    assert stats.fixed_hashes == 1
    assert stats.replacements == {"login": {"deadbee": real[:7]}}
    assert TimelogStore(paths).entries("login")[0].commit_hash == real[:7]


def test_reconcile_dry_run_does_not_write(project_root: Path, paths: ClaudingPaths) -> None:
    commit_file(project_root, "login.txt", "x\n", "feat(login): Initialize feature")
    entry = {"timestamp": utc_now_iso(), "action": "Feature Created", "result": "Success", "commitHash": "deadbee"}
    path = _write_timelog(paths, "login", [entry])
    before = path.read_text(encoding="utf-8")

    stats = TimelogReconciler(paths).run(dry_run=True)

    assert stats.fixed_hashes == 1
    assert path.read_text(encoding="utf-8") == before


def test_reconcile_handles_legacy_hash_in_details(project_root: Path, paths: ClaudingPaths) -> None:
    commit_file(project_root, "login.txt", "x\n", "feat(login): Run Tests")
    real = git(project_root, "rev-parse", "HEAD")
    entry = {
        "timestamp": utc_now_iso(),
        "action": "Run Tests",
        "result": "Success",
        "details": {"commitHash": "deadbee"},
    }
    _write_timelog(paths, "login", [entry])

    TimelogReconciler(paths).run()

    raw = TimelogStore(paths).read_raw("login")
    assert raw[0]["details"]["commitHash"] == real[:7]
    assert "commitHash" not in raw[0]


def test_existing_hashes_are_left_alone(project_root: Path, paths: ClaudingPaths) -> None:
    head = git(project_root, "rev-parse", "--short", "HEAD")
    entry = {"timestamp": utc_now_iso(), "action": "Commit", "result": "Success", "commitHash": head}
    path = _write_timelog(paths, "login", [entry])
    before = path.read_text(encoding="utf-8")

    stats = TimelogReconciler(paths).run()

    assert stats.total_entries == 1
    assert stats.stale_hashes == 0
    assert path.read_text(encoding="utf-8") == before


def test_unfixable_hash_is_counted(project_root: Path, paths: ClaudingPaths) -> None:
    entry = {"timestamp": utc_now_iso(), "action": "Run Tests", "result": "Success", "commitHash": "deadbee"}
    _write_timelog(paths, "login", [entry])

    stats = TimelogReconciler(paths).run()

    assert stats.unfixable_hashes == 1
    assert stats.fixed_hashes == 0


def test_corrupt_timelog_is_skipped(project_root: Path, paths: ClaudingPaths) -> None:
    path = paths.timelog_path("broken")
    path.parent.mkdir(parents=True)
    path.write_text("{nope", encoding="utf-8")

    stats = TimelogReconciler(paths).run()

    assert isinstance(stats, ReconcileStats)
    assert stats.total_features == 1
    assert stats.fixed_hashes == 0
