"""Pure data models for the push/diff engine.

No I/O here. The engine, the layout policy and the report renderer all
import from this module.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, Field

from transcript_sync.parsers.models import Session

MAX_CONVERSATIONS_TO_DISPLAY = 10
MAX_FILES_TO_LIST = 20
MAX_COLLISION_PATHS_TO_DISPLAY = 3


class SyncOperation(StrEnum):
    """What a push did (or would do) to one session."""

    ADDED = "added"
    MODIFIED = "modified"
    UNCHANGED = "unchanged"
    CONFLICT = "conflict"
    DELETED = "deleted"


class LayoutMode(StrEnum):
    """Naming convention for project directories in the synced tree."""

    FULL_PATH = "full-path"
    PROJECT_NAME_ONLY = "project-name-only"

    @classmethod
    def from_flag(cls, use_project_name_only: bool) -> LayoutMode:
        return cls.PROJECT_NAME_ONLY if use_project_name_only else cls.FULL_PATH


class PushPhase(StrEnum):
    """Steps of one push invocation, in order."""

    INITIALIZING = "initializing"
    DISCOVERING_LOCAL = "discovering-local"
    CHECKING_LAYOUT = "checking-layout"
    DISCOVERING_SYNCED = "discovering-synced"
    DIFFING = "diffing"
    CONFIRM_PENDING = "confirm-pending"
    WRITING = "writing"
    SYNCING_MEMORY = "syncing-memory"
    COMMITTING = "committing"
    PUSHING = "pushing"
    RECORDING_HISTORY = "recording-history"
    DONE = "done"


class DirectoryStructureCheck(BaseModel):
    """Shape of the top-level directories in the synced projects tree."""

    full_path_dirs: list[str] = Field(default_factory=list)
    project_name_dirs: list[str] = Field(default_factory=list)
    is_consistent: bool = True
    warning: str | None = None


class ConversationSummary(BaseModel):
    """One conversation as recorded in the operation history."""

    session_id: str
    project_path: str
    timestamp: str | None = None
    message_count: int = 0
    operation: SyncOperation

    @property
    def project(self) -> str:
        """Top-level directory of ``project_path``."""
        return self.project_path.split("/", 1)[0] or "unknown"


class SessionSummary(BaseModel):
    """Transient projection of a session used for classification and display."""

    session_id: str
    relative_path: Path
    title: str | None = None
    message_count: int = 0
    latest_timestamp: str | None = None
    file_size: int = 0
    operation: SyncOperation

    @classmethod
    def from_session(
        cls, session: Session, relative_path: Path, operation: SyncOperation
    ) -> SessionSummary:
        try:
            size = session.file_path.stat().st_size
        except OSError:
            size = 0
        latest = session.latest_timestamp
        return cls(
            session_id=session.session_id,
            relative_path=relative_path,
            title=session.title,
            message_count=session.message_count,
            latest_timestamp=latest.isoformat() if latest else None,
            file_size=size,
            operation=operation,
        )

    def to_conversation(self) -> ConversationSummary:
        return ConversationSummary(
            session_id=self.session_id,
            project_path=self.relative_path.as_posix(),
            timestamp=self.latest_timestamp,
            message_count=self.message_count,
            operation=self.operation,
        )


class PushOptions(BaseModel):
    """Per-invocation switches for a push."""

    commit_message: str | None = None
    push_remote: bool = True
    branch: str | None = None
    exclude_attachments: bool = False
    sync_config: bool = True
    interactive: bool = False
    verbose: bool = False


class PushResult(BaseModel):
    """Everything a push did, for the summary and for tests."""

    added: int = 0
    modified: int = 0
    unchanged: int = 0
    deleted_from_repo: int = 0
    deleted_memory_files: int = 0
    skipped_no_project: int = 0
    synced_memory_dirs: int = 0
    written: int = 0
    total_sessions: int = 0
    committed: bool = False
    pushed: bool = False
    cancelled: bool = False
    commit_message: str | None = None
    commit_before_push: str | None = None
    branch: str = "main"
    config_files: list[str] = Field(default_factory=list)
    summaries: list[SessionSummary] = Field(default_factory=list)
    structure_check: DirectoryStructureCheck | None = None
    collisions: dict[str, list[Path]] = Field(default_factory=dict)
    large_files: list[Path] = Field(default_factory=list)

    @property
    def conversations(self) -> list[ConversationSummary]:
        return [s.to_conversation() for s in self.summaries]

    @property
    def changed(self) -> list[SessionSummary]:
        return [s for s in self.summaries if s.operation != SyncOperation.UNCHANGED]
