"""Git LFS setup for the sync repository."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from transcript_sync.scm.base import run_command

logger = logging.getLogger(__name__)


def setup(repo_path: Path, patterns: Iterable[str]) -> None:
    """Install LFS hooks in repo_path and track each pattern.

    Raises:
        ScmError: ``git lfs`` is missing or a command fails.
    """
    run_command(["git", "lfs", "install", "--local"], cwd=repo_path)
    for pattern in patterns:
        run_command(["git", "lfs", "track", pattern], cwd=repo_path)
        logger.debug("LFS tracking %s in %s", pattern, repo_path)
