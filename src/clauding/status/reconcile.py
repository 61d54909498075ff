"""Repair timelog commit hashes invalidated by amended commits.

Amending a commit to fold in metadata gives it a new hash, so a timelog
entry can point at a commit that no longer exists. For each such entry,
pick the commit whose subject mentions the entry's action and whose author
date is closest to the entry's timestamp.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from clauding.core.exceptions import ClaudingError, GitCommandError
from clauding.core.git_ops import GitClient
from clauding.core.paths import ClaudingPaths

from .timelog import TimelogStore

logger = logging.getLogger(__name__)

INIT_MATCH_WINDOW = timedelta(minutes=2)
ACTION_MATCH_WINDOW = timedelta(minutes=5)
INIT_MARKERS = ("initialize feature", "init feature", "feature created")
FEATURE_CREATED_ACTION = "Feature Created"


@dataclass(frozen=True)
class CommitInfo:
    hash: str
    short_hash: str
    message: str
    date: datetime


@dataclass
class ReconcileStats:
    total_features: int = 0
    total_entries: int = 0
    stale_hashes: int = 0
    fixed_hashes: int = 0
    unfixable_hashes: int = 0
    replacements: dict[str, dict[str, str]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalFeatures": self.total_features,
            "totalEntries": self.total_entries,
            "staleHashes": self.stale_hashes,
            "fixedHashes": self.fixed_hashes,
            "unfixableHashes": self.unfixable_hashes,
            "replacements": self.replacements,
        }


def _parse_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _message_matches_action(action: str, message: str) -> bool:
    action_lower = action.lower()
    message_lower = message.lower()
    if action_lower in message_lower:
        return True
    if re.sub(r"\s+", "-", action_lower) in message_lower:
        return True
    words = action_lower.split(" ")
    return all(len(word) > 3 and word in message_lower for word in words)


def find_replacement(entry: dict[str, Any], commits: list[CommitInfo]) -> str | None:
    """Best candidate commit hash for a stale entry, or None."""
    entry_date = _parse_iso(entry["timestamp"])
    details = entry.get("details") or {}
    output_file = details.get("outputFile")
    referenced_file = details.get("file")
    action = entry["action"]

    best: CommitInfo | None = None
    best_diff: timedelta | None = None

    for commit in commits:
        diff = abs(commit.date - entry_date)

        if action == FEATURE_CREATED_ACTION:
            lowered = commit.message.lower()
            if any(marker in lowered for marker in INIT_MARKERS):
                if diff < INIT_MATCH_WINDOW and (best_diff is None or diff < best_diff):
                    best, best_diff = commit, diff
            continue

        if not _message_matches_action(action, commit.message):
            continue
        if output_file and output_file in commit.message:
            return commit.hash
        if referenced_file and referenced_file in commit.message and diff < INIT_MATCH_WINDOW:
            return commit.hash
        if diff < ACTION_MATCH_WINDOW and (best_diff is None or diff < best_diff):
            best, best_diff = commit, diff

    return best.hash if best else None


class TimelogReconciler:
    def __init__(self, paths: ClaudingPaths, git: GitClient | None = None) -> None:
        self.paths = paths
        self.git = git or GitClient()
        self.timelog = TimelogStore(paths)

    def feature_commits(self, feature_name: str) -> list[CommitInfo]:
        """Commits on any ref whose message mentions ``feature_name``, oldest first."""
        try:
            output = self.git.log(
                self.paths.project_root,
                ["--all", "--format=%H|%h|%s|%aI", f"--grep={feature_name}", "--fixed-strings"],
            )
        except GitCommandError as e:
            logger.warning("Failed to list commits for %s: %s", feature_name, e)
            return []

        commits: list[CommitInfo] = []
        for line in output.splitlines():
            parts = line.strip().split("|")
            if len(parts) < 4:
                continue
            full, short, timestamp = parts[0], parts[1], parts[-1]
            message = "|".join(parts[2:-1])
            commits.append(CommitInfo(full, short, message, _parse_iso(timestamp)))
        commits.sort(key=lambda c: c.date)
        return commits

    def reconcile_feature(self, feature_name: str, stats: ReconcileStats, dry_run: bool = False) -> None:
        raw = self.timelog.read_raw(feature_name)
        commits = self.feature_commits(feature_name)
        modified = False

        for entry in raw:
            stats.total_entries += 1
            details = entry.get("details") if isinstance(entry.get("details"), dict) else None
            in_details = "commitHash" not in entry and details is not None and "commitHash" in details
            stale_hash = details["commitHash"] if in_details else entry.get("commitHash")
            if not stale_hash:
                continue
            if self.git.commit_exists(self.paths.project_root, stale_hash):
                continue

            stats.stale_hashes += 1
            replacement = find_replacement(entry, commits)
            if replacement is None:
                stats.unfixable_hashes += 1
                logger.info("No replacement for %s entry %s (%s)", feature_name, entry.get("action"), stale_hash)
                continue

            short = replacement[:7]
            stats.fixed_hashes += 1
            stats.replacements.setdefault(feature_name, {})[stale_hash] = short
            if not dry_run:
                if in_details:
                    details["commitHash"] = short
                else:
                    entry["commitHash"] = short
                modified = True

        if modified:
            self.timelog.write_raw(feature_name, raw)
            logger.info("Updated timelog for %s", feature_name)

    def run(self, dry_run: bool = False) -> ReconcileStats:
        """Reconcile every feature folder that has a timelog."""
        stats = ReconcileStats()
        features_dir = self.paths.features_dir
        if not features_dir.is_dir():
            return stats

        for folder in sorted(p for p in features_dir.iterdir() if p.is_dir()):
            stats.total_features += 1
            if not self.timelog.path(folder.name).exists():
                continue
            try:
                self.reconcile_feature(folder.name, stats, dry_run=dry_run)
            except ClaudingError as e:
                logger.error("Error reconciling %s: %s", folder.name, e)
        return stats
