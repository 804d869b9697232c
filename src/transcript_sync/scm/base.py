"""SCM abstraction shared by the git and Mercurial backends."""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from enum import StrEnum
from pathlib import Path

from transcript_sync.errors import ScmError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60
NETWORK_TIMEOUT = 300


class Backend(StrEnum):
    """Supported version-control backends."""

    GIT = "git"
    MERCURIAL = "mercurial"

    @classmethod
    def parse(cls, name: str) -> Backend:
        lowered = name.strip().lower()
        if lowered == "hg":
            return cls.MERCURIAL
        try:
            return cls(lowered)
        except ValueError:
            raise ScmError(f"Unknown SCM backend: '{name}'. Use 'git' or 'mercurial'.") from None


def run_command(
    cmd: list[str],
    *,
    cwd: Path | None = None,
    timeout: int = DEFAULT_TIMEOUT,
    ok_codes: tuple[int, ...] = (0,),
) -> subprocess.CompletedProcess[str]:
    """Run a VCS command and return the completed process.

    Raises:
        ScmError: On any failure (binary not found, timeout, exit code not
            in ok_codes).
    """
    logger.debug("Running %s in %s", " ".join(cmd), cwd)
    try:
        result = subprocess.run(
            cmd,
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError as exc:
        raise ScmError(f"'{cmd[0]}' not found. Is it installed and on the PATH?") from exc
    except subprocess.TimeoutExpired as exc:
        raise ScmError(f"'{' '.join(cmd)}' timed out after {timeout}s") from exc

    if result.returncode not in ok_codes:
        raise ScmError(
            f"'{' '.join(cmd)}' failed (exit {result.returncode}): "
            f"{(result.stderr or result.stdout).strip()[:500]}"
        )
    return result


class Repository(ABC):
    """A working copy of the sync repository."""

    backend: Backend

    def __init__(self, path: Path) -> None:
        self.path = path

    @abstractmethod
    def current_branch(self) -> str:
        """Name of the checked-out branch."""

    @abstractmethod
    def current_commit_hash(self) -> str:
        """Revision of the working copy parent.

        Raises:
            ScmError: The repository has no commits yet.
        """

    @abstractmethod
    def has_changes(self) -> bool:
        """Whether the working copy differs from the last commit."""

    @abstractmethod
    def stage_all(self) -> None:
        """Stage additions, modifications and removals."""

    @abstractmethod
    def commit(self, message: str) -> None: ...

    @abstractmethod
    def push(self, remote: str, branch: str) -> None: ...

    @abstractmethod
    def has_remote(self, name: str) -> bool: ...

    @abstractmethod
    def get_remote_url(self, name: str) -> str: ...

    @abstractmethod
    def reset_hard(self, revision: str) -> None:
        """Move the working copy back to revision, discarding later changes."""
