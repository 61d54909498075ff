from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from clauding.core.config import ClaudingConfig
from clauding.core.git_ops import GitClient
from clauding.core.paths import GITIGNORE_ENTRIES, ClaudingPaths
from clauding.features.service import FeatureService
from tests.utils import run


@pytest.fixture()
def temp_repo(tmp_path: Path) -> Iterator[Path]:
    repo_dir = tmp_path / "repo"
    repo_dir.mkdir()
    run(["git", "init", "-b", "main"], cwd=repo_dir)
    run(["git", "config", "user.name", "Clauding"], cwd=repo_dir)
    run(["git", "config", "user.email", "clauding@example.com"], cwd=repo_dir)
    run(["git", "config", "commit.gpgsign", "false"], cwd=repo_dir)
    yield repo_dir


@pytest.fixture()
def project_root(temp_repo: Path) -> Path:
    """A repository on ``main`` with the clauding ignore entries committed."""
    (temp_repo / ".gitignore").write_text("\n".join(GITIGNORE_ENTRIES) + "\n", encoding="utf-8")
    (temp_repo / "README.md").write_text("# Demo\n", encoding="utf-8")
    (temp_repo / "shared.txt").write_text("base\n", encoding="utf-8")
    run(["git", "add", "."], cwd=temp_repo)
    run(["git", "commit", "-m", "Initial commit"], cwd=temp_repo)
    return temp_repo


@pytest.fixture()
def paths(project_root: Path) -> ClaudingPaths:
    return ClaudingPaths(project_root)


@pytest.fixture()
def config() -> ClaudingConfig:
    return ClaudingConfig()


@pytest.fixture()
def git_client() -> GitClient:
    return GitClient()


@pytest.fixture()
def service(project_root: Path, config: ClaudingConfig) -> FeatureService:
    return FeatureService.from_project(project_root, config)
