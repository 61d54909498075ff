"""Append-only per-feature timelog (``timelog.json``).

The file lives in the never-committed features folder and has the shape
``{"entries": [{timestamp, action, result, details?, commitHash?}, ...]}``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from clauding.core.exceptions import TimelogError
from clauding.core.paths import ClaudingPaths

from .models import TimelogEntry, TimelogResult
from .store import utc_now_iso

logger = logging.getLogger(__name__)


class TimelogStore:
    def __init__(self, paths: ClaudingPaths) -> None:
        self.paths = paths

    def path(self, feature_name: str) -> Path:
        return self.paths.timelog_path(feature_name)

    def read_raw(self, feature_name: str) -> list[dict[str, Any]]:
        """Raw entry dicts; empty when the file does not exist.

        Raises:
            TimelogError: On invalid JSON or a missing ``entries`` list.
        """
        path = self.path(feature_name)
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise TimelogError(f"Invalid JSON in {path}: {exc}") from exc
        entries = data.get("entries") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise TimelogError(f"Missing 'entries' list in {path}")
        return entries

    def entries(self, feature_name: str) -> list[TimelogEntry]:
        results: list[TimelogEntry] = []
        for index, raw in enumerate(self.read_raw(feature_name)):
            try:
                results.append(TimelogEntry.from_dict(raw))
            except (KeyError, ValueError, TypeError) as exc:
                raise TimelogError(f"Invalid timelog entry #{index + 1} for {feature_name}: {exc}") from exc
        return results

    def last_entry(self, feature_name: str) -> TimelogEntry | None:
        entries = self.entries(feature_name)
        return entries[-1] if entries else None

    def write_raw(self, feature_name: str, entries: list[dict[str, Any]]) -> None:
        path = self.path(feature_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps({"entries": entries}, indent=2) + "\n", encoding="utf-8")
        tmp.replace(path)

    def add_entry(
        self,
        feature_name: str,
        action: str,
        result: TimelogResult | str,
        details: dict[str, Any] | None = None,
        commit_hash: str | None = None,
        timestamp: str | None = None,
    ) -> TimelogEntry:
        """Append one entry and return it.

        ``commit_hash`` and ``timestamp`` should describe the state from before
        the operation started; ``timestamp`` defaults to now.
        """
        entry = TimelogEntry(
            timestamp=timestamp or utc_now_iso(),
            action=action,
            result=TimelogResult(result),
            details=details,
            commit_hash=commit_hash,
        )
        raw = self.read_raw(feature_name)
        raw.append(entry.to_dict())
        self.write_raw(feature_name, raw)
        logger.debug("Timelog %s: %s/%s", feature_name, action, entry.result)
        return entry
