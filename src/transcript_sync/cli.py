"""CLI interface for transcript-sync."""

import logging
from pathlib import Path
from typing import Annotated, NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape

from transcript_sync import scm
from transcript_sync.config import FilterConfig, load_config, save_config, update_config
from transcript_sync.config_sync.services import (
    apply_device_config,
    auto_apply_claude_md,
    list_device_configs,
    push_config_files,
)
from transcript_sync.errors import SyncError
from transcript_sync.history import load_history, undo_last_push
from transcript_sync.state import SyncState, load_sync_state, save_sync_state
from transcript_sync.sync.models import PushOptions
from transcript_sync.sync.push import push_history
from transcript_sync.sync.status import collect_status, render_status

app = typer.Typer(
    name="transcript-sync",
    help="Back up and sync AI assistant conversation transcripts through git or Mercurial.",
)
config_app = typer.Typer(help="Show or change the sync configuration.")
config_sync_app = typer.Typer(help="Share assistant configuration between devices.")
history_app = typer.Typer(help="Inspect the operation history.")
undo_app = typer.Typer(help="Undo recorded operations.")
app.add_typer(config_app, name="config")
app.add_typer(config_sync_app, name="config-sync")
app.add_typer(history_app, name="history")
app.add_typer(undo_app, name="undo")

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from transcript_sync import __version__

        console.print(f"transcript-sync {__version__}")
        raise typer.Exit()


def _fail(exc: Exception) -> NoReturn:
    console.print(f"[red]Error:[/red] {escape(str(exc))}")
    raise typer.Exit(1)


def _open_sync_repo(config: FilterConfig) -> tuple[SyncState, scm.Repository]:
    state = load_sync_state()
    return state, scm.open_repository(state.sync_repo_path, config.backend_name)


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log debug details to stderr.")
    ] = False,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Only log errors.")] = False,
) -> None:
    """Transcript Sync - back up assistant conversations to a repository."""
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    if quiet:
        console.quiet = True


@app.command()
def init(
    path: Annotated[Path, typer.Argument(help="Local working copy of the sync repository.")],
    remote: Annotated[
        Optional[str], typer.Option("--remote", "-r", help="Clone from this URL.")
    ] = None,
    backend: Annotated[
        Optional[str], typer.Option("--backend", help="git or mercurial (default: configured).")
    ] = None,
) -> None:
    """Point transcript-sync at a sync repository, cloning or creating it as needed."""
    try:
        config = load_config()
        chosen = scm.Backend.parse(backend or config.backend_name)
        path = path.expanduser().resolve()
        if scm.is_repo(path):
            repo = scm.open_repository(path, chosen)
        elif remote:
            repo = scm.clone(remote, path, chosen)
        else:
            repo = scm.init(path, chosen)
        state = SyncState(sync_repo_path=path, has_remote=repo.has_remote("origin"))
        state_file = save_sync_state(state)
    except SyncError as exc:
        _fail(exc)
    console.print(f"[green]✓[/green] Sync repository: {escape(str(path))} ({repo.backend})")
    console.print(f"  State saved to {escape(str(state_file))}")


@app.command()
def push(
    message: Annotated[
        Optional[str], typer.Option("--message", "-m", help="Commit message.")
    ] = None,
    no_push: Annotated[
        bool, typer.Option("--no-push", help="Commit locally without pushing to the remote.")
    ] = False,
    branch: Annotated[
        Optional[str], typer.Option("--branch", "-b", help="Branch to push (default: current).")
    ] = None,
    exclude_attachments: Annotated[
        bool, typer.Option("--exclude-attachments", help="Only sync .jsonl transcripts.")
    ] = False,
    no_config: Annotated[
        bool, typer.Option("--no-config", help="Skip the device configuration snapshot.")
    ] = False,
    interactive: Annotated[
        bool, typer.Option("--interactive", "-i", help="Confirm before writing anything.")
    ] = False,
    show_files: Annotated[
        bool, typer.Option("--show-files", help="List the files about to be pushed.")
    ] = False,
) -> None:
    """Push local conversation history to the sync repository."""
    try:
        config = load_config()
        state, repo = _open_sync_repo(config)
        console.print("[bold cyan]Pushing conversation history...[/bold cyan]")
        push_history(
            config,
            state,
            repo,
            PushOptions(
                commit_message=message,
                push_remote=not no_push,
                branch=branch,
                exclude_attachments=exclude_attachments,
                sync_config=not no_config,
                interactive=interactive,
                verbose=show_files,
            ),
            console=console,
        )
    except SyncError as exc:
        _fail(exc)


@app.command()
def status(
    show_files: Annotated[
        bool, typer.Option("--show-files", help="List local session files.")
    ] = False,
) -> None:
    """Show local and synced session counts and repository state."""
    try:
        config = load_config()
        state, repo = _open_sync_repo(config)
        report = collect_status(config, state, repo)
    except SyncError as exc:
        _fail(exc)
    render_status(console, report, show_files=show_files)


@config_app.command("show")
def config_show() -> None:
    """Print the effective configuration as JSON."""
    console.print_json(load_config().model_dump_json())


@config_app.command("set")
def config_set(
    exclude_older_than: Annotated[
        Optional[int], typer.Option("--exclude-older-than", help="Skip sessions older than N days.")
    ] = None,
    include_patterns: Annotated[
        Optional[str], typer.Option("--include", help="Comma-separated include patterns.")
    ] = None,
    exclude_patterns: Annotated[
        Optional[str], typer.Option("--exclude", help="Comma-separated exclude patterns.")
    ] = None,
    max_file_size: Annotated[
        Optional[int], typer.Option("--max-file-size", help="Largest file to sync, in bytes.")
    ] = None,
    exclude_attachments: Annotated[
        Optional[bool], typer.Option("--exclude-attachments/--include-attachments")
    ] = None,
    enable_lfs: Annotated[Optional[bool], typer.Option("--lfs/--no-lfs")] = None,
    lfs_patterns: Annotated[
        Optional[str], typer.Option("--lfs-patterns", help="Comma-separated LFS patterns.")
    ] = None,
    backend: Annotated[
        Optional[str], typer.Option("--backend", help="git or mercurial.")
    ] = None,
    subdirectory: Annotated[
        Optional[str], typer.Option("--subdirectory", help="Directory for sessions in the repo.")
    ] = None,
    project_name_only: Annotated[
        Optional[bool],
        typer.Option(
            "--use-project-name-only/--use-full-path",
            help="Store sessions by project name (multi-device) or full encoded path.",
        ),
    ] = None,
    device_name: Annotated[
        Optional[str], typer.Option("--device-name", help="Name of this device in _configs/.")
    ] = None,
) -> None:
    """Change configuration values and save them."""
    try:
        config = update_config(
            load_config(),
            exclude_older_than_days=exclude_older_than,
            include_patterns=include_patterns,
            exclude_patterns=exclude_patterns,
            max_file_size_bytes=max_file_size,
            exclude_attachments=exclude_attachments,
            enable_lfs=enable_lfs,
            lfs_patterns=lfs_patterns,
            scm_backend=backend,
            sync_subdirectory=subdirectory,
            use_project_name_only=project_name_only,
            device_name=device_name,
        )
        path = save_config(config)
    except SyncError as exc:
        _fail(exc)
    console.print(f"[green]✓[/green] Configuration saved to {escape(str(path))}")


@config_sync_app.command("push")
def config_sync_push() -> None:
    """Snapshot this device's configuration and commit it."""
    try:
        config = load_config()
        state, repo = _open_sync_repo(config)
        settings = config.config_sync
        files = push_config_files(settings, state.sync_repo_path)
        repo.stage_all()
        if not repo.has_changes():
            console.print("[dim]Configuration unchanged.[/dim]")
            return
        repo.commit(f"Sync config from {settings.get_device_name()}")
        if state.has_remote:
            repo.push("origin", repo.current_branch())
    except SyncError as exc:
        _fail(exc)
    console.print("[green]✓[/green] Configuration pushed")
    for name in files:
        console.print(f"  - {escape(name)}")


@config_sync_app.command("list")
def config_sync_list() -> None:
    """List device configuration snapshots in the sync repository."""
    try:
        config = load_config()
        state = load_sync_state()
    except SyncError as exc:
        _fail(exc)
    devices = list_device_configs(state.sync_repo_path, config.config_sync.get_device_name())
    if not devices:
        console.print("[yellow]No device configurations found.[/yellow]")
        console.print("Run [cyan]transcript-sync config-sync push[/cyan] to add this device.")
        return
    console.print("[bold]Available device configurations:[/bold]")
    for device in devices:
        marker = " (this device)" if device.is_current else ""
        color = "green" if device.is_current else "cyan"
        console.print(f"  [{color}]{escape(device.name)}[/{color}]{marker}")
        if device.info:
            console.print(f"    Platform: {escape(device.info.platform)}")
            console.print(f"    Last sync: {escape(device.info.last_sync)}")
        if device.files:
            console.print(f"    Files: [dim]{escape(', '.join(device.files))}[/dim]")


@config_sync_app.command("apply")
def config_sync_apply(
    device: Annotated[str, typer.Argument(help="Device whose configuration to apply.")],
    with_hooks: Annotated[
        bool, typer.Option("--with-hooks", help="Also apply hooks and hook settings.")
    ] = False,
) -> None:
    """Apply another device's configuration to this machine."""
    try:
        config = load_config()
        state = load_sync_state()
        result = apply_device_config(
            device, config.config_sync, state.sync_repo_path, with_hooks=with_hooks
        )
    except SyncError as exc:
        _fail(exc)
    if not result.applied:
        console.print("[yellow]Nothing was applied.[/yellow]")
        return
    console.print(f"[green]✓[/green] Applied configuration from {escape(device)}")
    for name in result.applied:
        console.print(f"  - {escape(name)}")
    for backup in result.backups:
        console.print(f"  [blue]ℹ[/blue] Previous file kept as {escape(backup)}")
    if result.merged_claude_md:
        console.print("  [blue]ℹ[/blue] CLAUDE.md merged, local platform section kept")
    if result.hooks_applied:
        console.print("[yellow]Check that hook paths in ~/.claude/hooks/ suit this device.[/yellow]")
    for url in result.skill_urls:
        console.print(f"  skill: [cyan]{escape(url)}[/cyan]")
    for name in result.plugin_names:
        console.print(f"  plugin: [cyan]{escape(name)}[/cyan]")


@config_sync_app.command("auto-apply")
def config_sync_auto_apply() -> None:
    """Adopt the newest peer device's CLAUDE.md when it is newer than ours."""
    try:
        config = load_config()
        state = load_sync_state()
        source = auto_apply_claude_md(config.config_sync, state.sync_repo_path)
    except SyncError as exc:
        _fail(exc)
    if source:
        console.print(f"[green]✓[/green] CLAUDE.md updated from {escape(source)}")
    else:
        console.print("[dim]CLAUDE.md already up to date.[/dim]")


@history_app.command("list")
def history_list(
    limit: Annotated[int, typer.Option("--limit", "-n", help="Records to show.")] = 10,
) -> None:
    """Show recent operations, newest first."""
    history = load_history()
    if not history.operations:
        console.print("[dim]No operations recorded.[/dim]")
        return
    for record in history.operations[:limit]:
        revision = record.commit_hash[:8] if record.commit_hash else "-"
        console.print(
            f"[cyan]{record.timestamp:%Y-%m-%d %H:%M:%S}[/cyan] {record.operation_type} "
            f"branch={escape(record.branch or '-')} before={revision} "
            f"({len(record.conversations)} conversations)"
        )


@undo_app.command("push")
def undo_push() -> None:
    """Reset the sync repository to its state before the last push."""
    try:
        config = load_config()
        _, repo = _open_sync_repo(config)
        record = undo_last_push(repo)
    except SyncError as exc:
        _fail(exc)
    console.print(
        f"[green]✓[/green] Reset to {record.commit_hash[:8]} "
        f"(undid push of {len(record.conversations)} conversations)"
    )


if __name__ == "__main__":
    app()
