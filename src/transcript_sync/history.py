"""Operation history: one record per push, used to undo the last push."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, Field

from transcript_sync.config import app_config_dir
from transcript_sync.errors import UndoError
from transcript_sync.scm import Repository
from transcript_sync.sync.models import ConversationSummary

logger = logging.getLogger(__name__)

HISTORY_FILENAME = "operation-history.json"
MAX_HISTORY_ENTRIES = 50


class OperationType(StrEnum):
    PUSH = "push"
    PULL = "pull"


class OperationRecord(BaseModel):
    """What one operation changed, and the revision to return to."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    operation_type: OperationType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    branch: str | None = None
    conversations: list[ConversationSummary] = Field(default_factory=list)
    commit_hash: str | None = None


class OperationHistory(BaseModel):
    """Newest-first list of operation records, capped at MAX_HISTORY_ENTRIES."""

    operations: list[OperationRecord] = Field(default_factory=list)

    def add(self, record: OperationRecord) -> None:
        self.operations.insert(0, record)
        del self.operations[MAX_HISTORY_ENTRIES:]

    def latest(self, operation_type: OperationType | None = None) -> OperationRecord | None:
        for record in self.operations:
            if operation_type is None or record.operation_type == operation_type:
                return record
        return None

    def remove(self, record_id: str) -> None:
        self.operations = [r for r in self.operations if r.id != record_id]


def history_path() -> Path:
    return app_config_dir() / HISTORY_FILENAME


def load_history(path: Path | None = None) -> OperationHistory:
    """Load the history; a missing or corrupt file yields an empty one."""
    path = path or history_path()
    if not path.exists():
        return OperationHistory()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return OperationHistory.model_validate(data)
    except (json.JSONDecodeError, ValueError, OSError):
        logger.warning("Corrupt operation history at %s, starting fresh", path)
        return OperationHistory()


def save_history(history: OperationHistory, path: Path | None = None) -> None:
    path = path or history_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(history.model_dump_json(indent=2), encoding="utf-8")


def record_operation(record: OperationRecord, path: Path | None = None) -> bool:
    """Append record to the history. Failures are logged, never raised.

    Returns:
        True when the record was saved.
    """
    try:
        history = load_history(path)
        history.add(record)
        save_history(history, path)
    except OSError as exc:
        logger.warning("Failed to record %s operation: %s", record.operation_type, exc)
        return False
    logger.debug("Recorded %s operation %s", record.operation_type, record.id)
    return True


def undo_last_push(repo: Repository, path: Path | None = None) -> OperationRecord:
    """Reset the sync repository to the revision before the last push.

    Only the local working copy is rewound; a commit already pushed to the
    remote stays there until the next push.

    Raises:
        UndoError: No push recorded, the push was the first commit, or the
            working copy has uncommitted changes.
    """
    history = load_history(path)
    record = history.latest(OperationType.PUSH)
    if record is None:
        raise UndoError("No push operation to undo")
    if record.commit_hash is None:
        raise UndoError("The last push created the first commit and cannot be undone")
    if repo.has_changes():
        raise UndoError(f"Uncommitted changes in {repo.path}; commit or discard them first")

    repo.reset_hard(record.commit_hash)
    history.remove(record.id)
    save_history(history, path)
    logger.info("Reset %s to %s", repo.path, record.commit_hash)
    return record
