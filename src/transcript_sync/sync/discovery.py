"""Session discovery with deduplication by session id."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from transcript_sync.config import FilterConfig
from transcript_sync.errors import PreconditionError
from transcript_sync.parsers import ClaudeParser, Session

logger = logging.getLogger(__name__)

LARGE_FILE_WARNING_THRESHOLD = 10 * 1024 * 1024
TRANSCRIPT_SUFFIX = ".jsonl"


def claude_home() -> Path:
    """The assistant's config directory (``~/.claude``)."""
    try:
        home = Path.home()
    except RuntimeError as exc:
        raise PreconditionError("Failed to determine the home directory") from exc
    return home / ".claude"


def claude_projects_dir() -> Path:
    return claude_home() / "projects"


def iter_transcript_files(root: Path) -> Iterable[Path]:
    """Yield ``*.jsonl`` files under root in a stable order.

    Symbolic links to directories are not followed; walk errors are logged
    and the affected entry skipped.
    """

    def _on_error(exc: OSError) -> None:
        logger.warning("Skipping unreadable path %s: %s", exc.filename, exc.strerror)

    for dirpath, dirnames, filenames in os.walk(root, followlinks=False, onerror=_on_error):
        dirnames.sort()
        for name in sorted(filenames):
            if name.endswith(TRANSCRIPT_SUFFIX):
                yield Path(dirpath) / name


def discover_sessions(base_path: Path, filter_config: FilterConfig) -> list[Session]:
    """Discover every transcript under base_path, one session per session id.

    Sub-process transcripts reuse the session id of their parent
    conversation but carry far fewer messages. When several files share an
    id, the one with strictly more messages wins; ties keep the first file
    encountered.

    Args:
        base_path: Root of the tree to scan. A missing root yields no sessions.
        filter_config: Extension, size, age and pattern filters.

    Returns:
        Deduplicated sessions in discovery order.
    """
    if not base_path.is_dir():
        return []

    parser = ClaudeParser()
    by_id: dict[str, Session] = {}

    for path in iter_transcript_files(base_path):
        if not filter_config.should_include(path):
            continue
        session = parser.parse_file(path)
        if session is None:
            continue

        existing = by_id.get(session.session_id)
        if existing is None:
            by_id[session.session_id] = session
        elif session.message_count > existing.message_count:
            logger.debug(
                "Deduplicating session %s: replacing %s (%d messages) with %s (%d messages)",
                session.session_id,
                existing.file_path,
                existing.message_count,
                session.file_path,
                session.message_count,
            )
            by_id[session.session_id] = session
        else:
            logger.debug(
                "Deduplicating session %s: keeping %s (%d messages), discarding %s (%d messages)",
                session.session_id,
                existing.file_path,
                existing.message_count,
                session.file_path,
                session.message_count,
            )

    if parser.parse_errors:
        logger.info("Skipped %d unreadable transcript(s) under %s", len(parser.parse_errors), base_path)

    return list(by_id.values())


def warn_large_files(file_paths: Iterable[Path]) -> list[Path]:
    """Return (and log) files at or above the large-file threshold."""
    large: list[Path] = []
    for path in file_paths:
        try:
            size = path.stat().st_size
        except OSError:
            continue
        if size >= LARGE_FILE_WARNING_THRESHOLD:
            logger.warning(
                "Large conversation file detected: %s (%.1f MB)", path.name, size / (1024 * 1024)
            )
            large.append(path)
    return large
