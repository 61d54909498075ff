"""Shared plumbing for clauding CLI commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, NoReturn

import typer
from rich.console import Console

from clauding.core.exceptions import ClaudingError
from clauding.core.paths import locate_project_root
from clauding.features.service import FeatureService

console = Console()
err_console = Console(stderr=True)


def output_result(json_mode: bool, data: Any, success_message: str | None = None) -> None:
    """Output result in JSON or human-readable format."""
    if json_mode:
        print(json.dumps(data))
    elif success_message:
        console.print(success_message)


def output_error(json_mode: bool, error_message: str) -> NoReturn:
    """Output an error in JSON or human-readable format and exit 1."""
    if json_mode:
        print(json.dumps({"error": error_message}))
    else:
        console.print(f"[red]Error:[/red] {error_message}")
    raise typer.Exit(1)


def print_warnings(json_mode: bool, warnings: list[str]) -> None:
    if json_mode:
        return
    for warning in warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


def find_project_root(json_mode: bool) -> Path:
    repo_root = locate_project_root(Path.cwd())
    if repo_root is None:
        output_error(json_mode, "Could not locate project root")
    return repo_root


def build_service(json_mode: bool, **kwargs: Any) -> FeatureService:
    """Construct a :class:`FeatureService` for the current project or exit."""
    repo_root = find_project_root(json_mode)
    try:
        return FeatureService.from_project(repo_root, **kwargs)
    except ClaudingError as e:
        output_error(json_mode, str(e))
