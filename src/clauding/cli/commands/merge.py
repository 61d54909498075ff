"""Merge commands.

A conflicted merge is left in progress. Resolve it with
``clauding merge resolve NAME feature|main|agent|cancel`` and, after an agent
has fixed the files, finish it with ``clauding merge complete NAME``.
``--update`` selects the update-from-main merge inside the worktree.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator

import typer
from rich.live import Live
from typing_extensions import Annotated

from clauding.cli.helpers import build_service, console, output_error, output_result, print_warnings
from clauding.cli.ui import FORWARD_MERGE_STEPS, UPDATE_STEPS, PhaseTracker
from clauding.core.exceptions import ClaudingError
from clauding.features.service import FeatureService
from clauding.merge.state import ConflictStrategy, MergeResult

app = typer.Typer(
    name="merge",
    help="Merge features into main and resolve conflicts",
    no_args_is_help=True,
)

JsonOption = Annotated[bool, typer.Option("--json", help="Machine-readable JSON output")]
UpdateOption = Annotated[
    bool, typer.Option("--update", help="Act on the update-from-main merge inside the worktree")
]
ForceOption = Annotated[bool, typer.Option("--force", help="Close editors even with unsaved changes")]


@contextmanager
def _tracked(json_output: bool, title: str, update: bool) -> Iterator[FeatureService]:
    """Yield a service whose phase changes drive a live StepTracker."""
    if json_output:
        yield build_service(json_output)
        return

    tracker = PhaseTracker(title, UPDATE_STEPS if update else FORWARD_MERGE_STEPS)
    service = build_service(json_output, on_phase=tracker)
    with Live(tracker.render(), console=console, refresh_per_second=8, transient=False) as live:
        tracker.attach_refresh(lambda: live.update(tracker.render(), refresh=True))
        yield service


def _report(json_output: bool, name: str, result: MergeResult) -> None:
    if json_output:
        output_result(True, result.to_dict())
    else:
        print_warnings(False, result.warnings)
        if result.has_conflicts:
            console.print(f"[yellow]Conflicts in {len(result.conflicted_files)} file(s):[/yellow]")
            for path in result.conflicted_files:
                console.print(f"  [yellow]•[/yellow] {path}")
            if result.message:
                console.print(f"[dim]{result.message}[/dim]")
            console.print(
                f"\n[dim]Resolve with: clauding merge resolve {name} feature|main|agent|cancel[/dim]"
            )
        elif result.success:
            console.print(f"[green]✓[/green] {result.message}")
        else:
            console.print(f"[yellow]{result.message}[/yellow]")

    waiting_for_agent = result.has_conflicts and result.message == "Waiting for agent to resolve conflicts"
    if not result.success and not waiting_for_agent:
        raise typer.Exit(1)


def _run(json_output: bool, name: str, title: str, update: bool, action: Callable[[FeatureService], MergeResult]) -> None:
    try:
        with _tracked(json_output, title, update) as service:
            result = action(service)
    except ClaudingError as e:
        output_error(json_output, str(e))
    _report(json_output, name, result)


@app.command()
def run(
    name: Annotated[str, typer.Argument(help="Feature name")],
    force: ForceOption = False,
    json_output: JsonOption = False,
) -> None:
    """Merge a feature into main, then remove its worktree and branch."""
    _run(json_output, name, f"Merge {name}", False, lambda s: s.merge_feature(name, force=force))


@app.command()
def update(
    name: Annotated[str, typer.Argument(help="Feature name")],
    json_output: JsonOption = False,
) -> None:
    """Merge main into the feature worktree."""
    _run(json_output, name, f"Update {name} from main", True, lambda s: s.update_from_main(name))


@app.command()
def resolve(
    name: Annotated[str, typer.Argument(help="Feature name")],
    strategy: Annotated[str, typer.Argument(help="feature, main, agent or cancel")],
    update: UpdateOption = False,
    force: ForceOption = False,
    json_output: JsonOption = False,
) -> None:
    """Resolve the conflicts of an in-progress merge."""
    try:
        parsed = ConflictStrategy.parse(strategy)
    except ClaudingError as e:
        output_error(json_output, str(e))

    if update:
        _run(
            json_output,
            name,
            f"Resolve update of {name}",
            True,
            lambda s: s.resolve_update_from_main_conflicts(name, parsed),
        )
    else:
        _run(
            json_output,
            name,
            f"Resolve merge of {name}",
            False,
            lambda s: s.resolve_merge_conflicts(name, parsed, force=force),
        )


@app.command()
def complete(
    name: Annotated[str, typer.Argument(help="Feature name")],
    update: UpdateOption = False,
    force: ForceOption = False,
    json_output: JsonOption = False,
) -> None:
    """Commit a merge whose conflicts were resolved by an agent."""
    if update:
        _run(json_output, name, f"Complete update of {name}", True, lambda s: s.complete_update_after_agent(name))
    else:
        _run(
            json_output,
            name,
            f"Complete merge of {name}",
            False,
            lambda s: s.complete_merge_after_agent(name, force=force),
        )


__all__ = ["app"]
