"""Push local transcripts into the sync repository.

One push walks a fixed sequence of phases (see ``PushPhase``). Nothing is
written to the synced tree before the diff is complete and, in interactive
mode, confirmed. The local transcript tree is only ever read.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from rich.console import Console
from rich.prompt import Confirm

from transcript_sync.config import FilterConfig
from transcript_sync.config_sync.services import push_config_files
from transcript_sync.errors import PushError, ScmError, SyncError
from transcript_sync.history import OperationRecord, OperationType, record_operation
from transcript_sync.parsers import Session
from transcript_sync.scm import Repository, lfs
from transcript_sync.state import SyncState
from transcript_sync.sync import report
from transcript_sync.sync.discovery import (
    TRANSCRIPT_SUFFIX,
    claude_projects_dir,
    discover_sessions,
    warn_large_files,
)
from transcript_sync.sync.layout import (
    build_local_index,
    check_directory_structure_consistency,
    compute_relative_path,
    find_colliding_projects,
    map_project_dirs,
)
from transcript_sync.sync.models import (
    LayoutMode,
    PushOptions,
    PushPhase,
    PushResult,
    SessionSummary,
    SyncOperation,
)

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "main"
DEFAULT_REMOTE = "origin"
MEMORY_DIRNAME = "memory"

ConfirmFn = Callable[[str], bool]


def _ask(question: str) -> bool:
    return Confirm.ask(question, default=False)


@contextmanager
def _phase(phase: PushPhase) -> Iterator[None]:
    """Log entry into phase and attach the phase name to any failure."""
    logger.info("Push phase: %s", phase)
    try:
        yield
    except PushError:
        raise
    except (SyncError, OSError, ValueError) as exc:
        raise PushError(phase.value, str(exc)) from exc


def classify(session: Session, synced: Session | None) -> SyncOperation:
    """Added when no synced copy exists, else Modified or Unchanged by content."""
    if synced is None:
        return SyncOperation.ADDED
    if synced.content_hash == session.content_hash:
        return SyncOperation.UNCHANGED
    return SyncOperation.MODIFIED


def default_commit_message(session_count: int, now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    return f"Sync {session_count} sessions at {now:%Y-%m-%d %H:%M:%S} UTC"


def remove_deleted_sessions(projects_dir: Path, local_index: dict[Path, set[str]]) -> int:
    """Delete synced transcripts whose local file no longer exists.

    Only directories present in local_index are touched, and only
    ``*.jsonl`` files directly inside them.
    """
    deleted = 0
    for relative_dir, local_names in sorted(local_index.items()):
        synced_dir = projects_dir / relative_dir
        if not synced_dir.is_dir():
            continue
        for path in sorted(synced_dir.iterdir()):
            if not path.is_file() or not path.name.endswith(TRANSCRIPT_SUFFIX):
                continue
            if path.name in local_names:
                continue
            try:
                path.unlink()
            except OSError as exc:
                logger.warning("Failed to remove deleted session %s: %s", path, exc)
                continue
            deleted += 1
            logger.debug("Removed deleted session %s", path)
    return deleted


def sync_memory_dirs(projects_dir: Path, project_dirs: dict[Path, Path]) -> tuple[int, int]:
    """Mirror ``<local project>/memory/`` files into the synced project directories.

    Synced memory files absent from every local directory mapping to the
    same synced project are removed. Projects without a local memory
    directory are left alone.

    Returns:
        (memory directories synced, memory files removed)
    """
    synced_dirs = 0
    local_files: dict[Path, set[str]] = {}

    for local_dir, synced_project in sorted(project_dirs.items()):
        local_memory = local_dir / MEMORY_DIRNAME
        if not local_memory.is_dir():
            continue
        dest = projects_dir / synced_project / MEMORY_DIRNAME
        try:
            dest.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("Failed to create memory directory for %s: %s", synced_project, exc)
            continue

        names = local_files.setdefault(synced_project, set())
        for entry in sorted(local_memory.iterdir()):
            if not entry.is_file():
                continue
            names.add(entry.name)
            try:
                shutil.copyfile(entry, dest / entry.name)
            except OSError as exc:
                logger.warning("Failed to copy memory file %s: %s", entry, exc)
        synced_dirs += 1

    removed = 0
    for synced_project, names in local_files.items():
        synced_memory = projects_dir / synced_project / MEMORY_DIRNAME
        for entry in sorted(synced_memory.iterdir()):
            if entry.is_file() and entry.name not in names:
                try:
                    entry.unlink()
                except OSError as exc:
                    logger.warning("Failed to remove deleted memory file %s: %s", entry, exc)
                    continue
                removed += 1
    return synced_dirs, removed


def push_history(
    config: FilterConfig,
    state: SyncState,
    repo: Repository,
    options: PushOptions | None = None,
    *,
    local_root: Path | None = None,
    claude_dir: Path | None = None,
    console: Console | None = None,
    confirm: ConfirmFn | None = None,
    history_path: Path | None = None,
    now: datetime | None = None,
) -> PushResult:
    """Copy new and changed sessions into the sync repository and commit them.

    Args:
        config: Filters, layout mode and SCM settings.
        state: Location of the sync repository.
        repo: Working copy at ``state.sync_repo_path``.
        options: Per-invocation switches.
        local_root: Local transcript tree. Defaults to ``~/.claude/projects``.
        claude_dir: Assistant config directory for the device snapshot.
        console: Where progress and the summary are printed.
        confirm: Asked yes/no questions in interactive mode.
        history_path: Operation history file. Defaults to the app config dir.
        now: Clock used for the default commit message.

    Returns:
        PushResult. ``cancelled`` is set when a confirmation was declined.

    Raises:
        ConfigError: The configuration is invalid; raised before any I/O.
        PushError: A phase failed. ``phase`` says which.
    """
    options = options or PushOptions()
    console = console or Console()
    confirm = confirm or _ask
    result = PushResult()

    if options.exclude_attachments:
        config = config.model_copy(update={"exclude_attachments": True})
    config.validate()

    with _phase(PushPhase.INITIALIZING):
        mode = LayoutMode.from_flag(config.use_project_name_only)
        local_root = local_root or claude_projects_dir()
        projects_dir = state.projects_dir(config.sync_subdirectory)
        try:
            result.branch = options.branch or repo.current_branch()
        except ScmError as exc:
            logger.debug("Falling back to %s: %s", DEFAULT_BRANCH, exc)
            result.branch = DEFAULT_BRANCH
        if config.enable_lfs:
            console.print("  [cyan]Configuring[/cyan] Git LFS...")
            lfs.setup(state.sync_repo_path, config.lfs_patterns)

    with _phase(PushPhase.DISCOVERING_LOCAL):
        console.print("  [cyan]Discovering[/cyan] conversation sessions...")
        sessions = discover_sessions(local_root, config)
        result.total_sessions = len(sessions)
        result.large_files = warn_large_files(s.file_path for s in sessions)
        console.print(f"  [green]Found[/green] {len(sessions)} sessions")

    with _phase(PushPhase.CHECKING_LAYOUT):
        if projects_dir.is_dir():
            check = check_directory_structure_consistency(projects_dir, mode)
            result.structure_check = check
            if not check.is_consistent:
                report.render_structure_warning(console, check)
                if options.interactive and not confirm("Continue pushing anyway?"):
                    result.cancelled = True
                    console.print("[yellow]Push cancelled.[/yellow]")
                    return result
        if mode == LayoutMode.PROJECT_NAME_ONLY:
            result.collisions = find_colliding_projects(local_root, sessions)
            report.render_collisions(console, result.collisions)

    with _phase(PushPhase.DISCOVERING_SYNCED):
        synced_by_id = {s.session_id: s for s in discover_sessions(projects_dir, config)}

    planned: list[tuple[Session, Path, SyncOperation]] = []
    with _phase(PushPhase.DIFFING):
        for session in sessions:
            relative = compute_relative_path(session, mode, local_root)
            if relative is None:
                result.skipped_no_project += 1
                logger.debug("Skipping session %s (no project)", session.session_id)
                continue
            operation = classify(session, synced_by_id.get(session.session_id))
            if operation == SyncOperation.ADDED:
                result.added += 1
            elif operation == SyncOperation.MODIFIED:
                result.modified += 1
            else:
                result.unchanged += 1
            planned.append((session, relative, operation))
            result.summaries.append(SessionSummary.from_session(session, relative, operation))

    with _phase(PushPhase.CONFIRM_PENDING):
        if options.verbose or options.interactive:
            report.render_pending(console, result)
        if options.interactive and not confirm("Proceed with pushing these changes?"):
            result.cancelled = True
            console.print("[yellow]Push cancelled.[/yellow]")
            return result

    with _phase(PushPhase.WRITING):
        projects_dir.mkdir(parents=True, exist_ok=True)
        for session, relative, operation in planned:
            dest = projects_dir / relative
            if operation == SyncOperation.UNCHANGED and dest.exists():
                continue
            try:
                session.write_to_file(dest)
            except OSError as exc:
                logger.warning("Failed to write %s: %s", dest, exc)
                continue
            result.written += 1

        if options.sync_config and config.config_sync.enabled and config.config_sync.push_with_config:
            try:
                result.config_files = push_config_files(
                    config.config_sync, state.sync_repo_path, claude_dir
                )
            except (SyncError, OSError) as exc:
                logger.warning("Failed to sync device configuration: %s", exc)
                console.print(f"  [yellow]⚠[/yellow] Failed to sync device configuration: {exc}")

        local_index = build_local_index(sessions, mode, local_root)
        result.deleted_from_repo = remove_deleted_sessions(projects_dir, local_index)
        if result.deleted_from_repo:
            console.print(
                f"  [green]✓[/green] Removed {result.deleted_from_repo} deleted sessions from sync repo"
            )

    with _phase(PushPhase.SYNCING_MEMORY):
        if config.auto_memory.enabled:
            project_dirs = map_project_dirs(sessions, mode, local_root)
            result.synced_memory_dirs, result.deleted_memory_files = sync_memory_dirs(
                projects_dir, project_dirs
            )

    commit_before_push: str | None = None
    with _phase(PushPhase.COMMITTING):
        repo.stage_all()
        if not repo.has_changes():
            logger.info("Nothing to commit in %s", repo.path)
            report.render_push_summary(console, result)
            return result
        try:
            commit_before_push = repo.current_commit_hash()
        except ScmError:
            logger.info("First push to %s; there is no previous commit to undo to", repo.path)
        message = options.commit_message or default_commit_message(result.total_sessions, now)
        repo.commit(message)
        result.committed = True
        result.commit_message = message
        result.commit_before_push = commit_before_push

    with _phase(PushPhase.PUSHING):
        if options.push_remote and state.has_remote:
            try:
                repo.push(DEFAULT_REMOTE, result.branch)
                result.pushed = True
            except ScmError as exc:
                logger.warning("Push to %s failed: %s", DEFAULT_REMOTE, exc)
                console.print(f"  [yellow]⚠[/yellow] Push to remote failed: {exc}")

    with _phase(PushPhase.RECORDING_HISTORY):
        record_operation(
            OperationRecord(
                operation_type=OperationType.PUSH,
                branch=result.branch,
                conversations=result.conversations,
                commit_hash=commit_before_push,
            ),
            history_path,
        )

    logger.info("Push phase: %s", PushPhase.DONE)
    report.render_push_summary(console, result)
    return result
