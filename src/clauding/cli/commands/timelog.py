"""Timelog inspection and commit-hash reconciliation."""

from __future__ import annotations

import typer
from rich.table import Table
from typing_extensions import Annotated

from clauding.cli.helpers import console, find_project_root, output_error, output_result
from clauding.core.exceptions import ClaudingError
from clauding.core.paths import ClaudingPaths
from clauding.status.reconcile import TimelogReconciler
from clauding.status.timelog import TimelogStore

app = typer.Typer(
    name="timelog",
    help="Inspect and repair feature timelogs",
    no_args_is_help=True,
)

JsonOption = Annotated[bool, typer.Option("--json", help="Machine-readable JSON output")]

_RESULT_STYLES = {"Success": "green", "Failed": "red", "Warning": "yellow"}


@app.command()
def show(
    name: Annotated[str, typer.Argument(help="Feature name (active or archived)")],
    json_output: JsonOption = False,
) -> None:
    """Print the timelog of a feature."""
    store = TimelogStore(ClaudingPaths(find_project_root(json_output)))
    try:
        entries = store.entries(name)
    except ClaudingError as e:
        output_error(json_output, str(e))

    if json_output:
        output_result(True, {"entries": [entry.to_dict() for entry in entries]})
        return
    if not entries:
        console.print(f"[dim]No timelog entries for {name}[/dim]")
        return

    table = Table(title=f"Timelog: {name}", header_style="bold cyan")
    table.add_column("Time", style="bright_black")
    table.add_column("Action")
    table.add_column("Result")
    table.add_column("Commit", style="bright_black")
    table.add_column("Details")
    for entry in entries:
        style = _RESULT_STYLES.get(str(entry.result), "white")
        details = (entry.details or {}).get("message", "")
        table.add_row(
            entry.timestamp,
            entry.action,
            f"[{style}]{entry.result}[/{style}]",
            entry.commit_hash or "",
            str(details),
        )
    console.print(table)


@app.command()
def reconcile(
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Report replacements without writing")] = False,
    json_output: JsonOption = False,
) -> None:
    """Replace timelog commit hashes that no longer exist in the repository."""
    reconciler = TimelogReconciler(ClaudingPaths(find_project_root(json_output)))
    stats = reconciler.run(dry_run=dry_run)

    if json_output:
        output_result(True, {"dryRun": dry_run, **stats.to_dict()})
        return

    console.print(f"Features scanned:  {stats.total_features}")
    console.print(f"Entries checked:   {stats.total_entries}")
    console.print(f"Stale hashes:      {stats.stale_hashes}")
    console.print(f"Fixed:             [green]{stats.fixed_hashes}[/green]")
    if stats.unfixable_hashes:
        console.print(f"Unfixable:         [yellow]{stats.unfixable_hashes}[/yellow]")
    for feature_name, replacements in stats.replacements.items():
        for old, new in replacements.items():
            console.print(f"  {feature_name}: {old} -> {new}")
    if dry_run and stats.fixed_hashes:
        console.print("\n[dim]Dry run: no timelog was modified[/dim]")
