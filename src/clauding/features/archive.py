"""Archived features: a features folder whose worktree is gone."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from clauding.core.paths import PROMPT_FILE, ClaudingPaths
from clauding.status.models import Feature, FeatureStatus, LifecycleStage, StatusType
from clauding.status.store import LifecycleStatusStore, StoreError, parse_timestamp

logger = logging.getLogger(__name__)

ARCHIVED_STATUS = FeatureStatus(type=StatusType.READY_TO_MERGE, message="Archived feature")


class ArchiveIndex:
    """In-memory index of archived features, refreshed from the filesystem."""

    def __init__(self, paths: ClaudingPaths, status_store: LifecycleStatusStore | None = None) -> None:
        self.paths = paths
        self.status_store = status_store or LifecycleStatusStore(paths)
        self._cache: dict[str, Feature] = {}

    def is_archived(self, feature_name: str) -> bool:
        return (
            self.paths.feature_folder(feature_name).is_dir()
            and not self.paths.worktree_path(feature_name).exists()
        )

    def read_metadata(self, feature_name: str) -> Feature | None:
        folder = self.paths.feature_folder(feature_name)
        prompt_path = folder / PROMPT_FILE
        prompt = prompt_path.read_text(encoding="utf-8").strip() if prompt_path.exists() else None

        try:
            status = self.status_store.load(feature_name)
        except StoreError as e:
            logger.error("Failed to read archived feature metadata for %s: %s", feature_name, e)
            return None

        return Feature(
            name=feature_name,
            worktree_path=folder,
            branch_name="",
            lifecycle_stage=LifecycleStage.LEGACY,
            status=ARCHIVED_STATUS,
            prompt=prompt,
            merge_commit_hash=status.get("mergeCommitHash"),
            merge_date=parse_timestamp(status.get("mergeDate")),
            created_at=parse_timestamp(status.get("createdAt")),
        )

    def refresh(self) -> dict[str, Feature]:
        features_dir = self.paths.features_dir
        fresh: dict[str, Feature] = {}
        if features_dir.is_dir():
            for folder in sorted(p for p in features_dir.iterdir() if p.is_dir()):
                if not self.is_archived(folder.name):
                    continue
                feature = self.read_metadata(folder.name)
                if feature is not None:
                    fresh[folder.name] = feature
        self._cache = fresh
        return fresh

    def add_to_archived_cache(self, feature_name: str, merge_commit_hash: str) -> None:
        """Record the merge commit for a freshly merged feature and re-index."""
        self.status_store.record_merge(feature_name, merge_commit_hash)
        self.refresh()
        logger.info("Archived %s at %s", feature_name, merge_commit_hash[:8])

    def get(self, feature_name: str) -> Feature | None:
        if feature_name not in self._cache:
            self.refresh()
        return self._cache.get(feature_name)

    def archived_features(self) -> list[Feature]:
        """All archived features, most recently merged first."""
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        return sorted(self.refresh().values(), key=lambda f: f.merge_date or epoch, reverse=True)
