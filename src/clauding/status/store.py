"""Auxiliary per-feature status file (``status.json``).

Only non-authoritative metadata is written: ``createdAt``, ``updatedAt``, the
last known ``commitHash`` and, once a feature is archived, ``mergeCommitHash`` and
``mergeDate``. The lifecycle stage is never stored.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from clauding.core.exceptions import ClaudingError
from clauding.core.paths import ClaudingPaths

from .models import LifecycleStage
from .transitions import is_valid_transition

logger = logging.getLogger(__name__)


class StoreError(ClaudingError):
    """Raised when status.json is corrupt."""


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO timestamp written by :func:`utc_now_iso`; None if unusable."""
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class LifecycleStatusStore:
    def __init__(self, paths: ClaudingPaths) -> None:
        self.paths = paths

    def _path(self, feature_name: str) -> Path:
        return self.paths.status_path(feature_name)

    def load(self, feature_name: str) -> dict[str, Any]:
        """Return the stored metadata, or an empty dict when absent.

        Raises:
            StoreError: If the file is not a JSON object.
        """
        path = self._path(feature_name)
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise StoreError(f"Invalid JSON in {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StoreError(f"Expected a JSON object in {path}")
        return data

    def _write(self, feature_name: str, data: dict[str, Any]) -> None:
        path = self._path(feature_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8")
        tmp.replace(path)

    def save(self, feature_name: str, commit_hash: str | None = None, created: bool = False) -> dict[str, Any]:
        """Stamp ``updatedAt`` (and ``commitHash`` if given), keeping other keys.

        ``created`` also stamps ``createdAt``, which is otherwise never touched.
        """
        try:
            data = self.load(feature_name)
        except StoreError as exc:
            logger.warning("Overwriting unreadable status file: %s", exc)
            data = {}
        data.pop("lifecycleStatus", None)
        data["updatedAt"] = utc_now_iso()
        if created:
            data["createdAt"] = data["updatedAt"]
        if commit_hash:
            data["commitHash"] = commit_hash
        self._write(feature_name, data)
        return data

    def created_at(self, feature_name: str) -> datetime | None:
        try:
            return parse_timestamp(self.load(feature_name).get("createdAt"))
        except StoreError as exc:
            logger.warning("Cannot read creation time: %s", exc)
            return None

    def update_lifecycle_stage(
        self,
        feature_name: str,
        current: LifecycleStage,
        requested: LifecycleStage,
        commit_hash: str | None = None,
    ) -> bool:
        """Record a manually requested stage change.

        The stage itself is not persisted; this only refreshes the auxiliary
        metadata. Returns whether the change is an edge of the stage graph.
        Invalid changes are logged, not rejected.
        """
        valid = is_valid_transition(current, requested)
        if not valid:
            logger.warning(
                "Unexpected lifecycle transition for %s: %s -> %s", feature_name, current, requested
            )
        self.save(feature_name, commit_hash)
        return valid

    def record_merge(self, feature_name: str, merge_commit_hash: str, merged_at: str | None = None) -> dict[str, Any]:
        data = self.load(feature_name)
        data["mergeCommitHash"] = merge_commit_hash
        data["mergeDate"] = merged_at or utc_now_iso()
        data["updatedAt"] = utc_now_iso()
        self._write(feature_name, data)
        return data
