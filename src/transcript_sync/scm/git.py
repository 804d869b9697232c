"""git backend, shelling out to the ``git`` binary."""

from __future__ import annotations

from pathlib import Path

from transcript_sync.errors import ScmError
from transcript_sync.scm.base import NETWORK_TIMEOUT, Backend, Repository, run_command


class GitRepository(Repository):
    backend = Backend.GIT

    def _git(self, *args: str, timeout: int | None = None, ok_codes: tuple[int, ...] = (0,)):
        cmd = ["git", *args]
        if timeout is None:
            return run_command(cmd, cwd=self.path, ok_codes=ok_codes)
        return run_command(cmd, cwd=self.path, timeout=timeout, ok_codes=ok_codes)

    def current_branch(self) -> str:
        # symbolic-ref also works on an unborn branch, unlike rev-parse
        result = self._git("symbolic-ref", "--short", "-q", "HEAD", ok_codes=(0, 1))
        branch = result.stdout.strip()
        if not branch:
            raise ScmError(f"Detached HEAD in {self.path}")
        return branch

    def current_commit_hash(self) -> str:
        return self._git("rev-parse", "--verify", "HEAD").stdout.strip()

    def has_changes(self) -> bool:
        return bool(self._git("status", "--porcelain").stdout.strip())

    def stage_all(self) -> None:
        self._git("add", "-A")

    def commit(self, message: str) -> None:
        self._git("commit", "-m", message)

    def push(self, remote: str, branch: str) -> None:
        self._git("push", "-u", remote, branch, timeout=NETWORK_TIMEOUT)

    def has_remote(self, name: str) -> bool:
        return name in self._git("remote").stdout.split()

    def get_remote_url(self, name: str) -> str:
        return self._git("remote", "get-url", name).stdout.strip()

    def reset_hard(self, revision: str) -> None:
        self._git("reset", "--hard", revision)


def clone_git(url: str, path: Path) -> GitRepository:
    run_command(["git", "clone", url, str(path)], timeout=NETWORK_TIMEOUT)
    return GitRepository(path)


def init_git(path: Path) -> GitRepository:
    path.mkdir(parents=True, exist_ok=True)
    run_command(["git", "init"], cwd=path)
    return GitRepository(path)
