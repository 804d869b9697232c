"""Error types shared across the sync engine."""

from __future__ import annotations


class SyncError(Exception):
    """Base error for transcript-sync."""


class ParseError(SyncError):
    """A transcript file could not be read or decoded."""


class ConfigError(SyncError):
    """Invalid configuration, rejected before any I/O happens."""


class PreconditionError(SyncError):
    """A required piece of local state is missing (sync state, home dir)."""


class ScmError(SyncError):
    """A version-control command failed."""


class UndoError(SyncError):
    """An operation recorded in the history cannot be undone."""


class PushError(SyncError):
    """A push failed part-way through.

    ``phase`` names the step that failed so the caller can tell whether
    files in the synced tree may already have been written.
    """

    def __init__(self, phase: str, reason: str) -> None:
        super().__init__(f"Push failed during {phase}: {reason}")
        self.phase = phase
        self.reason = reason
