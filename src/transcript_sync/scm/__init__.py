"""Version-control collaborators for the sync repository."""

from __future__ import annotations

from pathlib import Path

from transcript_sync.errors import ScmError
from transcript_sync.scm.base import Backend, Repository, run_command
from transcript_sync.scm.git import GitRepository, clone_git, init_git
from transcript_sync.scm.mercurial import MercurialRepository, clone_mercurial, init_mercurial

__all__ = [
    "Backend",
    "GitRepository",
    "MercurialRepository",
    "Repository",
    "clone",
    "detect_backend",
    "init",
    "is_repo",
    "open_repository",
    "run_command",
]

_MARKERS = {Backend.GIT: ".git", Backend.MERCURIAL: ".hg"}
_CLASSES: dict[Backend, type[Repository]] = {
    Backend.GIT: GitRepository,
    Backend.MERCURIAL: MercurialRepository,
}


def detect_backend(path: Path) -> Backend | None:
    """Backend whose metadata directory exists in path, if any."""
    for backend, marker in _MARKERS.items():
        if (path / marker).exists():
            return backend
    return None


def is_repo(path: Path) -> bool:
    return detect_backend(path) is not None


def open_repository(path: Path, backend: Backend | str | None = None) -> Repository:
    """Open the working copy at path.

    Raises:
        ScmError: path is not a repository of the requested backend.
    """
    detected = detect_backend(path)
    wanted = Backend.parse(backend) if isinstance(backend, str) else backend
    if detected is None:
        raise ScmError(f"Not a repository: {path}")
    if wanted is not None and wanted != detected:
        raise ScmError(f"{path} is a {detected} repository, but {wanted} is configured")
    return _CLASSES[detected](path)


def clone(url: str, path: Path, backend: Backend | str = Backend.GIT) -> Repository:
    backend = Backend.parse(backend) if isinstance(backend, str) else backend
    if backend == Backend.MERCURIAL:
        return clone_mercurial(url, path)
    return clone_git(url, path)


def init(path: Path, backend: Backend | str = Backend.GIT) -> Repository:
    backend = Backend.parse(backend) if isinstance(backend, str) else backend
    if backend == Backend.MERCURIAL:
        return init_mercurial(path)
    return init_git(path)
