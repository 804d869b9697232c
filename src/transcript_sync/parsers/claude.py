"""Reader for Claude Code JSONL transcripts."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from transcript_sync.errors import ParseError
from transcript_sync.parsers.models import EntryType, Session, TranscriptEntry

logger = logging.getLogger(__name__)


def parse_timestamp(value: object) -> datetime | None:
    """Parse an RFC 3339 string or epoch milliseconds into an aware datetime."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None


def parse_entry(record: dict[str, Any]) -> TranscriptEntry:
    """Map one decoded record onto a TranscriptEntry."""
    cwd = record.get("cwd")
    session_id = record.get("sessionId")
    return TranscriptEntry(
        entry_type=EntryType.from_record(record.get("type")),
        message=record.get("message"),
        timestamp=parse_timestamp(record.get("timestamp")),
        cwd=cwd if isinstance(cwd, str) and cwd else None,
        session_id=str(session_id) if session_id else None,
        raw=record,
    )


def parse_transcript(path: Path) -> Session:
    """Read one transcript file.

    Malformed lines are skipped with a warning; the rest of the file is
    still usable.

    Raises:
        ParseError: The file cannot be read or is not UTF-8.
    """
    entries: list[TranscriptEntry] = []
    try:
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = json.loads(line)
                except json.JSONDecodeError as exc:
                    logger.warning("Skipping malformed line %d in %s: %s", line_num, path, exc)
                    continue
                if not isinstance(record, dict):
                    logger.warning("Skipping non-object line %d in %s", line_num, path)
                    continue
                entries.append(parse_entry(record))
    except (OSError, UnicodeDecodeError) as exc:
        raise ParseError(f"Failed to read {path}: {exc}") from exc

    session_id = next((e.session_id for e in entries if e.session_id), None) or path.stem
    return Session(session_id=session_id, file_path=path, entries=entries)


class ClaudeParser:
    """Parses transcript files, collecting per-file errors instead of raising."""

    def __init__(self) -> None:
        self.parse_errors: list[str] = []

    def parse_file(self, path: Path) -> Session | None:
        try:
            return parse_transcript(path)
        except ParseError as exc:
            self.parse_errors.append(str(exc))
            logger.warning("%s", exc)
            return None

    def parse_directory(self, path: Path) -> list[Session]:
        """Parse every ``*.jsonl`` file under path, skipping unreadable ones."""
        sessions = []
        for file_path in sorted(path.rglob("*.jsonl")):
            session = self.parse_file(file_path)
            if session is not None:
                sessions.append(session)
        return sessions
