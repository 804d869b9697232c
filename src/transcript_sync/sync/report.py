"""Console rendering for push warnings and summaries."""

from __future__ import annotations

from itertools import islice
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from transcript_sync.sync.models import (
    MAX_COLLISION_PATHS_TO_DISPLAY,
    MAX_CONVERSATIONS_TO_DISPLAY,
    MAX_FILES_TO_LIST,
    ConversationSummary,
    DirectoryStructureCheck,
    PushResult,
    SyncOperation,
)

_OPERATION_STYLES = {
    SyncOperation.ADDED: "green",
    SyncOperation.MODIFIED: "yellow",
    SyncOperation.UNCHANGED: "dim",
    SyncOperation.CONFLICT: "red",
    SyncOperation.DELETED: "red",
}


def render_structure_warning(console: Console, check: DirectoryStructureCheck) -> None:
    if check.is_consistent or not check.warning:
        return
    console.print()
    console.print("[bold yellow]Directory structure warning[/bold yellow]")
    console.print(f"[yellow]{escape(check.warning)}[/yellow]")
    console.print()


def render_collisions(console: Console, collisions: dict[str, list[Path]]) -> None:
    """List project names claimed by several local directories."""
    if not collisions:
        return
    console.print()
    console.print("[bold yellow]Warning:[/bold yellow] multiple projects map to the same name:")
    for name, paths in sorted(collisions.items()):
        console.print(f"  [cyan]{escape(name)}[/cyan] -> {len(paths)} locations:")
        for path in paths[:MAX_COLLISION_PATHS_TO_DISPLAY]:
            console.print(f"    - {escape(path.name)}")
        if len(paths) > MAX_COLLISION_PATHS_TO_DISPLAY:
            console.print(f"    ... and {len(paths) - MAX_COLLISION_PATHS_TO_DISPLAY} more")
    console.print(
        "[yellow]Sessions from colliding projects will be merged into the same directory.[/yellow]"
    )
    console.print()


def render_pending(console: Console, result: PushResult) -> None:
    """Counts and the first few files a push is about to write."""
    console.print()
    console.print("[bold cyan]Pending changes:[/bold cyan]")
    console.print(f"  [green]•[/green] Added: {result.added}")
    console.print(f"  [yellow]•[/yellow] Modified: {result.modified}")
    console.print(f"  [dim]•[/dim] Unchanged: {result.unchanged}")
    if result.skipped_no_project:
        console.print(f"  [dim]•[/dim] Skipped (no project): {result.skipped_no_project}")

    if not result.summaries:
        return
    console.print()
    for idx, summary in enumerate(islice(result.summaries, MAX_FILES_TO_LIST), start=1):
        style = _OPERATION_STYLES[summary.operation]
        console.print(
            f"  {idx}. {escape(summary.relative_path.as_posix())} "
            f"[{style}]\\[{summary.operation}][/{style}]"
        )
    if len(result.summaries) > MAX_FILES_TO_LIST:
        console.print(f"  ... and {len(result.summaries) - MAX_FILES_TO_LIST} more")


def render_push_summary(console: Console, result: PushResult) -> None:
    """Final counts plus changed conversations grouped by project."""
    console.print()
    console.print("[bold cyan]Push summary:[/bold cyan]")
    console.print(f"  [green]•[/green] Added: {result.added}")
    console.print(f"  [yellow]•[/yellow] Modified: {result.modified}")
    console.print(f"  [dim]•[/dim] Unchanged: {result.unchanged}")
    if result.deleted_from_repo:
        console.print(f"  [red]•[/red] Removed from sync repo: {result.deleted_from_repo}")
    if result.skipped_no_project:
        console.print(f"  [dim]•[/dim] Skipped (no project): {result.skipped_no_project}")
    if result.synced_memory_dirs or result.deleted_memory_files:
        console.print(
            f"  [cyan]•[/cyan] Memory directories: {result.synced_memory_dirs} "
            f"({result.deleted_memory_files} file(s) removed)"
        )
    if result.config_files:
        console.print(f"  [cyan]•[/cyan] Device config: {', '.join(result.config_files)}")

    by_project: dict[str, list[ConversationSummary]] = {}
    for conversation in result.conversations:
        if conversation.operation == SyncOperation.UNCHANGED:
            continue
        by_project.setdefault(conversation.project, []).append(conversation)

    for project in sorted(by_project):
        conversations = by_project[project]
        console.print()
        console.print(f"  [bold]{escape(project)}[/bold] ({len(conversations)})")
        for conversation in conversations[:MAX_CONVERSATIONS_TO_DISPLAY]:
            style = _OPERATION_STYLES[conversation.operation]
            when = conversation.timestamp[:19].replace("T", " ") if conversation.timestamp else "-"
            console.print(
                f"    [{style}]{conversation.operation:<8}[/{style}] "
                f"{escape(conversation.project_path)} "
                f"[dim]{conversation.message_count} msgs, {when}[/dim]"
            )
        if len(conversations) > MAX_CONVERSATIONS_TO_DISPLAY:
            console.print(
                f"    ... and {len(conversations) - MAX_CONVERSATIONS_TO_DISPLAY} more"
            )

    console.print()
    if result.cancelled:
        console.print("[yellow]Push cancelled.[/yellow]")
    elif not result.committed:
        console.print("[dim]No changes to commit.[/dim]")
    elif result.pushed:
        console.print(f"[green]✓[/green] Committed and pushed to [cyan]{result.branch}[/cyan]")
    else:
        console.print("[green]✓[/green] Committed locally")
