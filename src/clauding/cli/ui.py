"""Reusable UI helpers for clauding CLI output."""

from __future__ import annotations

from typing import Callable, Iterable

from rich.table import Table
from rich.tree import Tree

from clauding.merge.state import MergePhase
from clauding.status.models import Feature

FORWARD_MERGE_STEPS: tuple[tuple[MergePhase, str], ...] = (
    (MergePhase.PRE_CHECKING, "Close terminals and editors"),
    (MergePhase.CLEANING_UP, "Move metadata to features folder"),
    (MergePhase.MERGING, "Merge into main"),
    (MergePhase.RESOLVING, "Resolve conflicts"),
    (MergePhase.MERGED, "Merge committed"),
    (MergePhase.TEARING_DOWN, "Remove worktree and branch"),
    (MergePhase.DONE, "Done"),
)

UPDATE_STEPS: tuple[tuple[MergePhase, str], ...] = (
    (MergePhase.MERGING, "Merge main into feature"),
    (MergePhase.RESOLVING, "Resolve conflicts"),
    (MergePhase.MERGED, "Merge committed"),
    (MergePhase.DONE, "Done"),
)

_TERMINAL_PHASES = {
    MergePhase.CONFLICTED: "error",
    MergePhase.ABORTED: "skipped",
}


class StepTracker:
    """Track and render steps with Rich trees."""

    def __init__(self, title: str):
        self.title = title
        self.steps = []  # list of dicts: {key, label, status, detail}
        self._refresh_cb: Callable[[], None] | None = None

    def attach_refresh(self, cb: Callable[[], None]) -> None:
        self._refresh_cb = cb

    def add(self, key: str, label: str):
        if key not in [s["key"] for s in self.steps]:
            self.steps.append({"key": key, "label": label, "status": "pending", "detail": ""})
            self._maybe_refresh()

    def start(self, key: str, detail: str = ""):
        self._update(key, status="running", detail=detail)

    def complete(self, key: str, detail: str = ""):
        self._update(key, status="done", detail=detail)

    def _update(self, key: str, status: str, detail: str):
        for s in self.steps:
            if s["key"] == key:
                s["status"] = status
                if detail:
                    s["detail"] = detail
                self._maybe_refresh()
                return
        self.steps.append({"key": key, "label": key, "status": status, "detail": detail})
        self._maybe_refresh()

    def _maybe_refresh(self):
        if self._refresh_cb:
            self._refresh_cb()

    def render(self) -> Tree:
        tree = Tree(f"[cyan]{self.title}[/cyan]", guide_style="grey50")
        for step in self.steps:
            label = step["label"]
            detail_text = step["detail"].strip() if step["detail"] else ""

            status = step["status"]
            if status == "done":
                symbol = "[green]●[/green]"
            elif status == "pending":
                symbol = "[green dim]○[/green dim]"
            elif status == "running":
                symbol = "[cyan]○[/cyan]"
            elif status == "error":
                symbol = "[red]●[/red]"
            elif status == "skipped":
                symbol = "[yellow]○[/yellow]"
            else:
                symbol = " "

            if status == "pending":
                if detail_text:
                    line = f"{symbol} [bright_black]{label} ({detail_text})[/bright_black]"
                else:
                    line = f"{symbol} [bright_black]{label}[/bright_black]"
            else:
                if detail_text:
                    line = f"{symbol} [white]{label}[/white] [bright_black]({detail_text})[/bright_black]"
                else:
                    line = f"{symbol} [white]{label}[/white]"

            tree.add(line)
        return tree


class PhaseTracker(StepTracker):
    """StepTracker driven by merge coordinator phase callbacks.

    Entering a phase completes every running step before it. Phases with no
    step of their own (conflicted, aborted) mark the running step instead.
    """

    def __init__(self, title: str, steps: Iterable[tuple[MergePhase, str]]):
        super().__init__(title)
        for phase, label in steps:
            self.add(str(phase), label)

    def __call__(self, phase: MergePhase, detail: str = "") -> None:
        key = str(phase)
        if phase in _TERMINAL_PHASES:
            for s in self.steps:
                if s["status"] == "running":
                    self._update(s["key"], _TERMINAL_PHASES[phase], detail)
            return

        for s in self.steps:
            if s["key"] == key:
                break
            if s["status"] == "running":
                self.complete(s["key"])
        if phase is MergePhase.DONE:
            self.complete(key, detail)
        else:
            self.start(key, detail)


def feature_table(features: Iterable[Feature], title: str = "Features") -> Table:
    table = Table(title=title, header_style="bold cyan")
    table.add_column("Name", style="white")
    table.add_column("Stage")
    table.add_column("Status")
    table.add_column("Branch", style="bright_black")
    for feature in features:
        status = feature.status.message if feature.status else ""
        if feature.is_archived and feature.merge_date is not None:
            status = f"{status} ({feature.merge_date:%Y-%m-%d})"
        table.add_row(feature.name, str(feature.lifecycle_stage), status, feature.branch_name)
    return table
