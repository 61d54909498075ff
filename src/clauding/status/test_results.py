"""Read the most recent test-run artifact from a feature's outputs folder.

Test runs are stored by an external runner as ``outputs/test-run-<stamp>.txt``
with an optional parsed sibling ``test-run-<stamp>.json`` carrying
``{"summary": {"failed": N, ...}}``. Only reading happens here.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

TEST_RUN_PREFIX = "test-run-"


@dataclass(frozen=True)
class TestRunResult:
    output_file: Path
    output: str
    timestamp: str

    @property
    def parsed_file(self) -> Path:
        return self.output_file.with_suffix(".json")

    def has_failures(self) -> bool:
        """Failed count from the parsed JSON, else a text scan for ``fail``."""
        if self.parsed_file.exists():
            try:
                parsed = json.loads(self.parsed_file.read_text(encoding="utf-8"))
                return int(parsed["summary"]["failed"]) > 0
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.warning("Unreadable parsed test result %s: %s", self.parsed_file, e)
        return "fail" in self.output.lower()


# Keep pytest from collecting the dataclass above.
TestRunResult.__test__ = False  # type: ignore[attr-defined]


def latest_test_run(outputs_dir: Path) -> TestRunResult | None:
    """Return the newest ``test-run-*.txt`` in ``outputs_dir``, if any."""
    if not outputs_dir.is_dir():
        return None

    candidates = sorted(
        (p for p in outputs_dir.iterdir() if p.name.startswith(TEST_RUN_PREFIX) and p.suffix == ".txt"),
        key=lambda p: p.name,
        reverse=True,
    )
    if not candidates:
        return None

    newest = candidates[0]
    try:
        output = newest.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning("Cannot read test output %s: %s", newest, e)
        return None
    return TestRunResult(
        output_file=newest,
        output=output,
        timestamp=newest.stem[len(TEST_RUN_PREFIX):],
    )
