"""Layout policy: where sessions live in the synced tree.

Two naming modes exist. Full-path mode mirrors the assistant's encoded
directory names (``-Users-abc-work-myapp``); project-name-only mode stores
sessions under the bare project name (``myapp``) so that devices with
different home directories share one directory per project.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from transcript_sync.parsers import ClaudeParser, Session
from transcript_sync.sync.discovery import TRANSCRIPT_SUFFIX
from transcript_sync.sync.models import DirectoryStructureCheck, LayoutMode

logger = logging.getLogger(__name__)

ENCODED_SEPARATOR = "-"
FULL_PATH_MIN_SEPARATORS = 3


def compute_relative_path(session: Session, mode: LayoutMode, local_root: Path) -> Path | None:
    """Relative storage path of a session in the synced projects tree.

    Returns None in project-name-only mode when the session recorded no
    working directory; such sessions are skipped by push and counted.
    """
    if mode == LayoutMode.PROJECT_NAME_ONLY:
        project_name = session.project_name
        if not project_name:
            return None
        return Path(project_name) / session.file_name

    try:
        return session.file_path.relative_to(local_root)
    except ValueError:
        return Path(session.file_path.parent.name) / session.file_name


def extract_project_name(encoded_path: str) -> str:
    """Last non-empty segment of an encoded project directory name.

    ``-Users-abc-Documents-GitHub-myproject`` -> ``myproject``. Lossy for
    names that contain dashes; prefer ``Session.project_name`` when a
    transcript is at hand.
    """
    for segment in reversed(encoded_path.split(ENCODED_SEPARATOR)):
        if segment:
            return segment
    return encoded_path


def _project_dirs(projects_dir: Path) -> list[Path]:
    try:
        return sorted(
            p for p in projects_dir.iterdir() if p.is_dir() and not p.name.startswith(".")
        )
    except OSError as exc:
        logger.warning("Cannot list %s: %s", projects_dir, exc)
        return []


def _transcript_names(directory: Path) -> set[str]:
    try:
        return {
            p.name for p in directory.iterdir() if p.is_file() and p.name.endswith(TRANSCRIPT_SUFFIX)
        }
    except OSError as exc:
        logger.warning("Cannot list %s: %s", directory, exc)
        return set()


def _recorded_project_name(project_dir: Path, parser: ClaudeParser) -> str | None:
    """Project name from the first transcript in project_dir that recorded a cwd."""
    for path in sorted(project_dir.glob(f"*{TRANSCRIPT_SUFFIX}")):
        session = parser.parse_file(path)
        if session is not None and session.project_name:
            return session.project_name
    return None


def find_local_project_by_name(projects_dir: Path, project_name: str) -> Path | None:
    """Find the single local project directory that maps to project_name.

    Matches by encoded directory name first and only accepts an unambiguous
    hit. Otherwise falls back to the ``cwd`` recorded in each directory's
    transcripts, which also covers names the encoding mangles (non-ASCII).
    """
    entries = _project_dirs(projects_dir)
    matches = [p for p in entries if extract_project_name(p.name) == project_name]
    if len(matches) == 1:
        return matches[0]

    parser = ClaudeParser()
    for project_dir in entries:
        if _recorded_project_name(project_dir, parser) == project_name:
            return project_dir
    return None


def find_colliding_projects(
    projects_dir: Path, sessions: Iterable[Session] | None = None
) -> dict[str, list[Path]]:
    """Group local project directories by project name, keeping only collisions.

    Two directories with the same project name would be written to the same
    synced directory in project-name-only mode, merging unrelated histories.
    Names come from the discovered sessions when given, falling back to the
    encoded directory name.
    """
    recorded: dict[Path, str] = {}
    for session in sessions or ():
        name = session.project_name
        if name:
            recorded.setdefault(session.file_path.parent, name)

    groups: dict[str, list[Path]] = {}
    for project_dir in _project_dirs(projects_dir):
        name = recorded.get(project_dir) or extract_project_name(project_dir.name)
        groups.setdefault(name, []).append(project_dir)

    return {name: paths for name, paths in groups.items() if len(paths) > 1}


def is_full_path_dir_name(dir_name: str) -> bool:
    return (
        dir_name.startswith(ENCODED_SEPARATOR)
        and dir_name.count(ENCODED_SEPARATOR) >= FULL_PATH_MIN_SEPARATORS
    )


def check_directory_structure_consistency(
    synced_projects_dir: Path, mode: LayoutMode
) -> DirectoryStructureCheck:
    """Classify synced directory names and report mixed or mismatched layouts.

    Never renames anything: merging directories across devices can lose data,
    so the caller only warns.
    """
    full_path_dirs: list[str] = []
    project_name_dirs: list[str] = []

    if synced_projects_dir.is_dir():
        for project_dir in _project_dirs(synced_projects_dir):
            if is_full_path_dir_name(project_dir.name):
                full_path_dirs.append(project_dir.name)
            else:
                project_name_dirs.append(project_dir.name)

    warning: str | None = None
    if full_path_dirs and project_name_dirs:
        warning = (
            f"Mixed directory formats detected: {len(full_path_dirs)} full-path "
            f"and {len(project_name_dirs)} project-name directories.\n"
            "This can duplicate conversations. Clean up or unify the directory format."
        )
    elif mode == LayoutMode.PROJECT_NAME_ONLY and full_path_dirs:
        warning = (
            "Configured for multi-device (project-name-only) mode, but the sync "
            f"repository holds {len(full_path_dirs)} full-path directories.\n"
            "Clean up these directories or switch back to full-path mode."
        )
    elif mode == LayoutMode.FULL_PATH and project_name_dirs:
        warning = (
            "Configured for single-device (full-path) mode, but the sync "
            f"repository holds {len(project_name_dirs)} project-name directories.\n"
            "Switch to project-name-only mode to stay consistent."
        )

    return DirectoryStructureCheck(
        full_path_dirs=full_path_dirs,
        project_name_dirs=project_name_dirs,
        is_consistent=warning is None,
        warning=warning,
    )


def build_local_index(
    sessions: Iterable[Session], mode: LayoutMode, local_root: Path
) -> dict[Path, set[str]]:
    """Map each synced project directory known locally to its local file names.

    Keys are relative synced directories computed from the genuine project
    identity of discovered sessions, never re-derived from a directory
    string. Values are every transcript file name present in the local
    directories that map to that key, including files the filters skipped.
    In full-path mode every local project directory is registered, even one
    with no readable transcript left.
    """
    index: dict[Path, set[str]] = {}
    listings: dict[Path, set[str]] = {}

    for session in sessions:
        relative = compute_relative_path(session, mode, local_root)
        if relative is None:
            continue
        local_dir = session.file_path.parent
        if local_dir not in listings:
            listings[local_dir] = _transcript_names(local_dir)
        names = index.setdefault(relative.parent, set())
        names.update(listings[local_dir])
        names.add(session.file_name)

    if mode == LayoutMode.FULL_PATH:
        for project_dir in _project_dirs(local_root):
            index.setdefault(Path(project_dir.name), set()).update(
                listings.get(project_dir) or _transcript_names(project_dir)
            )

    return index


def map_project_dirs(
    sessions: Iterable[Session], mode: LayoutMode, local_root: Path
) -> dict[Path, Path]:
    """Local directory of each session -> its synced project directory (first wins)."""
    mapping: dict[Path, Path] = {}
    for session in sessions:
        relative = compute_relative_path(session, mode, local_root)
        if relative is None or relative.parent == Path("."):
            continue
        mapping.setdefault(session.file_path.parent, relative.parent)
    return mapping
