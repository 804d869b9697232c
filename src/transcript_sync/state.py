"""Persisted sync state: where the sync repository lives and whether it has a remote."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel

from transcript_sync.config import app_config_dir
from transcript_sync.errors import PreconditionError

logger = logging.getLogger(__name__)

STATE_FILENAME = "state.json"


class SyncState(BaseModel):
    """Location of the local working copy of the sync repository."""

    sync_repo_path: Path
    has_remote: bool = False

    def projects_dir(self, sync_subdirectory: str) -> Path:
        return self.sync_repo_path / sync_subdirectory


def state_path() -> Path:
    return app_config_dir() / STATE_FILENAME


def load_sync_state(path: Path | None = None) -> SyncState:
    """Load the sync state.

    Raises:
        PreconditionError: No state has been saved yet, or it is unreadable.
    """
    path = path or state_path()
    if not path.exists():
        raise PreconditionError(
            f"Sync state not found at {path}. Initialize a sync repository first."
        )
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return SyncState.model_validate(data)
    except (json.JSONDecodeError, ValueError, OSError) as exc:
        raise PreconditionError(f"Corrupt sync state at {path}: {exc}") from exc


def save_sync_state(state: SyncState, path: Path | None = None) -> Path:
    """Save the sync state to disk."""
    path = path or state_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(state.model_dump_json(indent=2), encoding="utf-8")
    logger.debug("Saved sync state to %s", path)
    return path
