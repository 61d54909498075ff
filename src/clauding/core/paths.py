"""Persisted layout of a clauding project.

Two per-feature locations exist:

* the worktree meta directory ``{worktree}/.clauding/`` holding the
  git-tracked transient files (``prompt.md``, ``plan.md``, ``modify-prompt.md``);
* the permanent features folder ``{root}/.clauding/features/{name}/`` holding
  the never-committed metadata (timelog, status, outputs, ...).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

__all__ = [
    "CLAUDING_DIR",
    "CONFIG_DIRNAME",
    "WORKTREES_DIRNAME",
    "FEATURES_DIRNAME",
    "OUTPUTS_DIRNAME",
    "PROMPT_FILE",
    "PLAN_FILE",
    "MODIFY_PROMPT_FILE",
    "META_FILES",
    "TIMELOG_FILE",
    "STATUS_FILE",
    "CLASSIFICATION_FILE",
    "PENDING_COMMAND_FILE",
    "WRAP_UP_FILE",
    "GITIGNORE_ENTRIES",
    "ClaudingPaths",
    "locate_project_root",
    "get_main_repo_root",
    "ensure_clauding_directories",
]

CLAUDING_DIR = ".clauding"
CONFIG_DIRNAME = "config"
WORKTREES_DIRNAME = "worktrees"
FEATURES_DIRNAME = "features"
OUTPUTS_DIRNAME = "outputs"

PROMPT_FILE = "prompt.md"
PLAN_FILE = "plan.md"
MODIFY_PROMPT_FILE = "modify-prompt.md"
META_FILES: tuple[str, ...] = (PROMPT_FILE, PLAN_FILE, MODIFY_PROMPT_FILE)

TIMELOG_FILE = "timelog.json"
STATUS_FILE = "status.json"
CLASSIFICATION_FILE = "classification.json"
PENDING_COMMAND_FILE = "pending-command.json"
WRAP_UP_FILE = "wrap-up.json"

# Anchored so a worktree's own .clauding/ stays trackable on its branch.
GITIGNORE_ENTRIES: tuple[str, ...] = (
    f"/{CLAUDING_DIR}/{WORKTREES_DIRNAME}/",
    f"/{CLAUDING_DIR}/{FEATURES_DIRNAME}/",
)


@dataclass(frozen=True)
class ClaudingPaths:
    """Path arithmetic for one project root."""

    project_root: Path

    @property
    def clauding_dir(self) -> Path:
        return self.project_root / CLAUDING_DIR

    @property
    def config_dir(self) -> Path:
        return self.clauding_dir / CONFIG_DIRNAME

    @property
    def worktrees_dir(self) -> Path:
        return self.clauding_dir / WORKTREES_DIRNAME

    @property
    def features_dir(self) -> Path:
        return self.clauding_dir / FEATURES_DIRNAME

    def worktree_path(self, feature_name: str) -> Path:
        return self.worktrees_dir / feature_name

    def feature_folder(self, feature_name: str) -> Path:
        return self.features_dir / feature_name

    def outputs_dir(self, feature_name: str) -> Path:
        return self.feature_folder(feature_name) / OUTPUTS_DIRNAME

    def timelog_path(self, feature_name: str) -> Path:
        return self.feature_folder(feature_name) / TIMELOG_FILE

    def status_path(self, feature_name: str) -> Path:
        return self.feature_folder(feature_name) / STATUS_FILE

    @staticmethod
    def meta_dir(worktree_path: Path) -> Path:
        """Return the git-tracked metadata directory inside a worktree."""
        return worktree_path / CLAUDING_DIR

    def feature_name_for_worktree(self, worktree_path: Path) -> str:
        return Path(worktree_path).name


def locate_project_root(start: Path | None = None) -> Path | None:
    """Walk upwards from ``start`` to the main checkout of the repository.

    ``CLAUDING_PROJECT_ROOT`` takes precedence when set. When the walk lands
    inside a linked worktree the main repository root is returned instead.
    """
    env_root = os.environ.get("CLAUDING_PROJECT_ROOT")
    if env_root:
        candidate = Path(env_root).expanduser().resolve()
        if (candidate / ".git").exists():
            return candidate

    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        if (directory / ".git").exists():
            return get_main_repo_root(directory)
    return None


def get_main_repo_root(repo_root: Path) -> Path:
    """Get the main repository root, even if called from a worktree.

    A linked worktree has a ``.git`` *file* of the form
    ``gitdir: /main/repo/.git/worktrees/<name>``.
    """
    git_dir = repo_root / ".git"
    if git_dir.is_dir():
        return repo_root

    if git_dir.is_file():
        content = git_dir.read_text(encoding="utf-8").strip()
        if content.startswith("gitdir: "):
            gitdir_path = Path(content[len("gitdir: "):])
            if not gitdir_path.is_absolute():
                gitdir_path = (repo_root / gitdir_path).resolve()
            if "worktrees" in gitdir_path.parts:
                main_git_dir = gitdir_path
                while main_git_dir.name != ".git":
                    if main_git_dir == main_git_dir.parent:
                        return repo_root
                    main_git_dir = main_git_dir.parent
                return main_git_dir.parent

    return repo_root


def ensure_clauding_directories(project_root: Path) -> ClaudingPaths:
    """Create the project-level directories and ignore entries.

    Safe to call repeatedly; existing ``.gitignore`` lines are kept and
    missing entries are appended once.
    """
    paths = ClaudingPaths(project_root)
    for directory in (paths.config_dir, paths.worktrees_dir, paths.features_dir):
        directory.mkdir(parents=True, exist_ok=True)

    gitignore = project_root / ".gitignore"
    existing = gitignore.read_text(encoding="utf-8") if gitignore.exists() else ""
    lines = existing.splitlines()
    missing = [entry for entry in GITIGNORE_ENTRIES if entry not in lines]
    if missing:
        prefix = existing if not existing or existing.endswith("\n") else existing + "\n"
        gitignore.write_text(prefix + "\n".join(missing) + "\n", encoding="utf-8")
    return paths
