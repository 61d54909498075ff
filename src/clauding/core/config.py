"""Project configuration.

Settings live in ``.clauding/config/config.yaml`` under the project root::

    main_branch: main
    branch_prefix: feature/
    commit_message_prefix: feat

A missing file yields the defaults. ``CLAUDING_MAIN_BRANCH`` and
``CLAUDING_BRANCH_PREFIX`` override the file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from clauding.core.exceptions import ConfigError
from clauding.core.paths import ClaudingPaths

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yaml"

ENV_OVERRIDES = {
    "CLAUDING_MAIN_BRANCH": "main_branch",
    "CLAUDING_BRANCH_PREFIX": "branch_prefix",
}


@dataclass
class ClaudingConfig:
    """Settings consumed by the worktree manager and the commit helper."""

    main_branch: str = "main"
    branch_prefix: str = "feature/"
    commit_message_prefix: str = "feat"

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


def config_path(project_root: Path) -> Path:
    return ClaudingPaths(project_root).config_dir / CONFIG_FILENAME


def load_config(project_root: Path) -> ClaudingConfig:
    """Load configuration for ``project_root``.

    Raises:
        ConfigError: If the YAML is invalid or a known key has a non-string value.
    """
    path = config_path(project_root)
    data: dict = {}

    if path.exists():
        yaml = YAML()
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.load(f) or {}
        except YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Expected a mapping in {path}")
    else:
        logger.debug("No config file at %s, using defaults", path)

    known = {f.name for f in fields(ClaudingConfig)}
    values: dict[str, str] = {}
    for key, value in data.items():
        if key not in known:
            logger.debug("Ignoring unknown config key %r", key)
            continue
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(f"Config key {key!r} must be a non-empty string")
        values[key] = value

    for env_name, key in ENV_OVERRIDES.items():
        override = os.environ.get(env_name)
        if override:
            values[key] = override

    return ClaudingConfig(**values)


def save_config(project_root: Path, config: ClaudingConfig) -> Path:
    """Write ``config`` back, preserving unrelated keys already in the file."""
    path = config_path(project_root)
    yaml = YAML()
    yaml.preserve_quotes = True

    data: dict = {}
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.load(f) or {}
    else:
        path.parent.mkdir(parents=True, exist_ok=True)

    data.update(config.to_dict())
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(data, f)

    logger.info("Saved config to %s", path)
    return path
