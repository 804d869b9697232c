"""Status report: local vs synced sessions and repository facts."""

from __future__ import annotations

import logging
from itertools import islice
from pathlib import Path

from pydantic import BaseModel, Field
from rich.console import Console
from rich.markup import escape

from transcript_sync.config import FilterConfig
from transcript_sync.config_sync.services import configs_dir
from transcript_sync.errors import ScmError
from transcript_sync.scm import Repository
from transcript_sync.state import SyncState
from transcript_sync.sync.discovery import claude_projects_dir, discover_sessions
from transcript_sync.sync.models import MAX_FILES_TO_LIST, LayoutMode

logger = logging.getLogger(__name__)


class LocalFile(BaseModel):
    relative_path: str
    message_count: int


class StatusReport(BaseModel):
    """Everything ``transcript-sync status`` shows."""

    sync_repo_path: Path
    backend: str
    remote_url: str | None = None
    has_remote: bool = False
    branch: str | None = None
    has_uncommitted_changes: bool | None = None
    layout_mode: LayoutMode
    local_root: Path
    local_sessions: int = 0
    synced_sessions: int | None = None
    config_sync_enabled: bool = True
    device_name: str
    config_sync_items: list[str] = Field(default_factory=list)
    auto_apply_claude_md: bool = True
    devices: list[str] = Field(default_factory=list)
    local_files: list[LocalFile] = Field(default_factory=list)


def collect_status(
    config: FilterConfig,
    state: SyncState,
    repo: Repository,
    local_root: Path | None = None,
) -> StatusReport:
    """Gather status facts. SCM query failures leave the field unset."""
    local_root = local_root or claude_projects_dir()
    local = discover_sessions(local_root, config)

    synced_dir = state.projects_dir(config.sync_subdirectory)
    synced = len(discover_sessions(synced_dir, config)) if synced_dir.is_dir() else None

    remote_url: str | None = None
    if state.has_remote:
        try:
            remote_url = repo.get_remote_url("origin")
        except ScmError as exc:
            logger.debug("No remote URL: %s", exc)

    branch: str | None
    try:
        branch = repo.current_branch()
    except ScmError as exc:
        logger.debug("No current branch: %s", exc)
        branch = None

    dirty: bool | None
    try:
        dirty = repo.has_changes()
    except ScmError as exc:
        logger.debug("Cannot query working copy state: %s", exc)
        dirty = None

    settings = config.config_sync
    items = [
        name
        for name, enabled in (
            ("settings.json", settings.sync_settings),
            ("CLAUDE.md", settings.sync_claude_md),
            ("skills", settings.sync_skills_list),
            ("hooks", settings.sync_hooks),
        )
        if enabled
    ]

    configs = configs_dir(state.sync_repo_path)
    devices = sorted(p.name for p in configs.iterdir() if p.is_dir()) if configs.is_dir() else []

    local_files = []
    for session in local:
        if not session.is_valid:
            continue
        try:
            relative = session.file_path.relative_to(local_root).as_posix()
        except ValueError:
            relative = str(session.file_path)
        local_files.append(LocalFile(relative_path=relative, message_count=session.message_count))

    return StatusReport(
        sync_repo_path=state.sync_repo_path,
        backend=str(repo.backend),
        remote_url=remote_url,
        has_remote=state.has_remote,
        branch=branch,
        has_uncommitted_changes=dirty,
        layout_mode=LayoutMode.from_flag(config.use_project_name_only),
        local_root=local_root,
        local_sessions=len(local),
        synced_sessions=synced,
        config_sync_enabled=settings.enabled,
        device_name=settings.get_device_name(),
        config_sync_items=items,
        auto_apply_claude_md=settings.auto_apply_claude_md,
        devices=devices,
        local_files=local_files,
    )


def render_status(console: Console, status: StatusReport, show_files: bool = False) -> None:
    console.print("[bold cyan]=== Transcript Sync Status ===[/bold cyan]")
    console.print()

    console.print("[bold]Sync repository:[/bold]")
    console.print(f"  Path: {escape(str(status.sync_repo_path))}")
    console.print(f"  Backend: {status.backend}")
    if status.remote_url:
        console.print(f"  Remote: [cyan]{escape(status.remote_url)}[/cyan]")
    elif status.has_remote:
        console.print("  Remote: [green]configured[/green]")
    else:
        console.print("  Remote: [yellow]not configured[/yellow]")
    if status.branch:
        console.print(f"  Branch: [cyan]{escape(status.branch)}[/cyan]")
    if status.has_uncommitted_changes is not None:
        dirty = "[yellow]yes[/yellow]" if status.has_uncommitted_changes else "[green]no[/green]"
        console.print(f"  Uncommitted changes: {dirty}")
    console.print(f"  Layout: {status.layout_mode}")
    console.print()

    console.print("[bold]Conversations:[/bold]")
    console.print(f"  Local: [cyan]{status.local_sessions}[/cyan] sessions")
    if status.synced_sessions is not None:
        console.print(f"  Sync repository: [cyan]{status.synced_sessions}[/cyan] sessions")
    console.print()

    console.print("[bold]Config sync:[/bold]")
    enabled = "[green]enabled[/green]" if status.config_sync_enabled else "[yellow]disabled[/yellow]"
    console.print(f"  Status: {enabled}")
    console.print(f"  Device: [cyan]{escape(status.device_name)}[/cyan]")
    if status.config_sync_items:
        console.print(f"  Items: {', '.join(status.config_sync_items)}")
    auto = "[green]yes[/green]" if status.auto_apply_claude_md else "[dim]no[/dim]"
    console.print(f"  Auto-apply CLAUDE.md: {auto}")
    if status.devices:
        console.print(f"  Devices: [dim]{escape(', '.join(status.devices))}[/dim]")

    if show_files:
        console.print()
        console.print("[bold]Local session files:[/bold]")
        for local_file in islice(status.local_files, MAX_FILES_TO_LIST):
            console.print(
                f"  {escape(local_file.relative_path)} ({local_file.message_count} messages)"
            )
        if len(status.local_files) > MAX_FILES_TO_LIST:
            console.print(f"  ... and {len(status.local_files) - MAX_FILES_TO_LIST} more")
