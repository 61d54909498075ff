from __future__ import annotations

import subprocess
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]


def run(cmd: list[str], cwd: Path) -> subprocess.CompletedProcess:
    return subprocess.run(cmd, cwd=cwd, check=True, capture_output=True, text=True)


def git(cwd: Path, *args: str) -> str:
    return run(["git", *args], cwd=cwd).stdout.strip()


def commit_file(cwd: Path, relpath: str, content: str, message: str) -> str:
    """Write ``relpath`` under ``cwd``, commit it and return the short hash."""
    target = cwd / relpath
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    git(cwd, "add", relpath)
    git(cwd, "commit", "-m", message)
    return git(cwd, "rev-parse", "--short", "HEAD")


def branches(cwd: Path) -> list[str]:
    out = git(cwd, "branch", "--list", "--format=%(refname:short)")
    return [line.strip() for line in out.splitlines() if line.strip()]
