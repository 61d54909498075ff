"""Feature lifecycle commands.

- ``clauding feature create NAME``
- ``clauding feature list [--sort ...] [--desc] [--archived]``
- ``clauding feature show NAME`` / ``clauding feature status NAME``
- ``clauding feature stage NAME STAGE``
- ``clauding feature delete NAME [--commit]``
- ``clauding feature rename OLD NEW``
"""

from __future__ import annotations

from typing import Optional

import typer
from typing_extensions import Annotated

from clauding.cli.helpers import build_service, console, output_error, output_result, print_warnings
from clauding.cli.ui import feature_table
from clauding.core.exceptions import ClaudingError
from clauding.status.models import LifecycleStage, SortDirection, SortOrder

app = typer.Typer(
    name="feature",
    help="Create, inspect, rename and delete features",
    no_args_is_help=True,
)

JsonOption = Annotated[bool, typer.Option("--json", help="Machine-readable JSON output")]


@app.command()
def create(
    name: Annotated[str, typer.Argument(help="Feature name (lowercase words separated by dashes)")],
    json_output: JsonOption = False,
) -> None:
    """Create a branch, worktree and initial commit for a new feature."""
    service = build_service(json_output)
    try:
        feature = service.create_feature(name)
    except ClaudingError as e:
        output_error(json_output, str(e))

    output_result(
        json_output,
        feature.to_dict(),
        f"[green]✓[/green] Created feature [bold]{feature.name}[/bold] on {feature.branch_name}\n"
        f"  [dim]{feature.worktree_path}[/dim]",
    )


@app.command("list")
def list_features(
    sort: Annotated[Optional[SortOrder], typer.Option("--sort", help="Sort order")] = None,
    desc: Annotated[bool, typer.Option("--desc", help="Reverse the sort order")] = False,
    archived: Annotated[bool, typer.Option("--archived", help="List archived features instead")] = False,
    json_output: JsonOption = False,
) -> None:
    """List active (or archived) features."""
    service = build_service(json_output)
    direction = SortDirection.DESC if desc else SortDirection.ASC
    try:
        if archived:
            features = service.get_archived_features(sort, direction)
        else:
            features = service.get_features(sort or SortOrder.CHRONOLOGICAL, direction)
    except ClaudingError as e:
        output_error(json_output, str(e))

    if json_output:
        output_result(True, [f.to_dict() for f in features])
        return
    if not features:
        console.print("[dim]No archived features[/dim]" if archived else "[dim]No active features[/dim]")
        return
    console.print(feature_table(features, "Archived features" if archived else "Features"))


@app.command()
def show(
    name: Annotated[str, typer.Argument(help="Feature name")],
    json_output: JsonOption = False,
) -> None:
    """Show one feature, active or archived."""
    service = build_service(json_output)
    feature = service.get_feature(name) or service.archive.get(name)
    if feature is None:
        output_error(json_output, f"Feature not found: {name}")

    if json_output:
        output_result(True, feature.to_dict())
        return
    console.print(f"[bold]{feature.name}[/bold]")
    console.print(f"  Stage:    {feature.lifecycle_stage}")
    if feature.status is not None:
        console.print(f"  Status:   {feature.status.message}")
    console.print(f"  Branch:   {feature.branch_name or '[dim]-[/dim]'}")
    console.print(f"  Path:     {feature.worktree_path}")
    if feature.merge_commit_hash:
        console.print(f"  Merged:   {feature.merge_commit_hash[:8]}")
    if feature.pending_command is not None:
        console.print(f"  Pending:  {feature.pending_command.command}")
    if feature.prompt:
        console.print()
        console.print(feature.prompt)


@app.command()
def status(
    name: Annotated[str, typer.Argument(help="Feature name")],
    json_output: JsonOption = False,
) -> None:
    """Show the computed status and lifecycle stage of a feature."""
    service = build_service(json_output)
    try:
        feature = service.require_feature(name)
    except ClaudingError as e:
        output_error(json_output, str(e))

    data = {
        "name": feature.name,
        "lifecycleStatus": str(feature.lifecycle_stage),
        "status": feature.status.to_dict() if feature.status else None,
    }
    message = feature.status.message if feature.status else ""
    output_result(json_output, data, f"{feature.name}: [cyan]{feature.lifecycle_stage}[/cyan] {message}")


@app.command()
def stage(
    name: Annotated[str, typer.Argument(help="Feature name")],
    target: Annotated[LifecycleStage, typer.Argument(help="Requested lifecycle stage")],
    json_output: JsonOption = False,
) -> None:
    """Record a manually requested lifecycle stage change."""
    service = build_service(json_output)
    try:
        valid = service.request_lifecycle_stage(name, target)
    except ClaudingError as e:
        output_error(json_output, str(e))

    if valid:
        message = f"Recorded stage change for {name} -> {target}"
    else:
        message = f"[yellow]Warning:[/yellow] {target} is not an expected next stage for {name}"
    output_result(json_output, {"name": name, "stage": str(target), "valid": valid}, message)


@app.command()
def delete(
    name: Annotated[str, typer.Argument(help="Feature name")],
    commit: Annotated[
        bool, typer.Option("--commit/--no-commit", help="Commit uncommitted changes before deleting")
    ] = False,
    json_output: JsonOption = False,
) -> None:
    """Delete a feature's worktree, features folder and branch."""
    service = build_service(json_output)
    try:
        result = service.delete_feature(name, commit_changes=commit)
    except ClaudingError as e:
        output_error(json_output, str(e))

    print_warnings(json_output, result.warnings)
    output_result(json_output, result.to_dict(), f"[green]✓[/green] Deleted feature [bold]{name}[/bold]")


@app.command()
def rename(
    old_name: Annotated[str, typer.Argument(help="Current feature name")],
    new_name: Annotated[str, typer.Argument(help="New feature name")],
    json_output: JsonOption = False,
) -> None:
    """Rename a feature's worktree, features folder and branch."""
    service = build_service(json_output)
    try:
        result = service.rename_feature(old_name, new_name)
    except ClaudingError as e:
        output_error(json_output, str(e))

    print_warnings(json_output, result.warnings)
    output_result(
        json_output,
        result.to_dict(),
        f"[green]✓[/green] Renamed [bold]{old_name}[/bold] to [bold]{new_name}[/bold] ({result.branch_name})",
    )
