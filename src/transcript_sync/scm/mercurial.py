"""Mercurial backend, shelling out to the ``hg`` binary."""

from __future__ import annotations

from pathlib import Path

from transcript_sync.errors import ScmError
from transcript_sync.scm.base import NETWORK_TIMEOUT, Backend, Repository, run_command

NULL_REVISION = "0" * 40

# Mercurial calls the default remote "default"; callers use git's "origin".
_REMOTE_ALIASES = {"origin": "default"}


class MercurialRepository(Repository):
    backend = Backend.MERCURIAL

    def _hg(self, *args: str, timeout: int | None = None, ok_codes: tuple[int, ...] = (0,)):
        cmd = ["hg", *args]
        if timeout is None:
            return run_command(cmd, cwd=self.path, ok_codes=ok_codes)
        return run_command(cmd, cwd=self.path, timeout=timeout, ok_codes=ok_codes)

    def current_branch(self) -> str:
        return self._hg("branch").stdout.strip()

    def current_commit_hash(self) -> str:
        node = self._hg("log", "-r", ".", "--template", "{node}").stdout.strip()
        if not node or node == NULL_REVISION:
            raise ScmError(f"No commits yet in {self.path}")
        return node

    def has_changes(self) -> bool:
        return bool(self._hg("status").stdout.strip())

    def stage_all(self) -> None:
        self._hg("addremove")

    def commit(self, message: str) -> None:
        self._hg("commit", "-m", message)

    def push(self, remote: str, branch: str) -> None:
        # exit 1 means "nothing to push"
        self._hg(
            "push",
            _REMOTE_ALIASES.get(remote, remote),
            "--branch",
            branch,
            "--new-branch",
            timeout=NETWORK_TIMEOUT,
            ok_codes=(0, 1),
        )

    def has_remote(self, name: str) -> bool:
        result = self._hg("paths", _REMOTE_ALIASES.get(name, name), ok_codes=(0, 1))
        return result.returncode == 0 and bool(result.stdout.strip())

    def get_remote_url(self, name: str) -> str:
        return self._hg("paths", _REMOTE_ALIASES.get(name, name)).stdout.strip()

    def reset_hard(self, revision: str) -> None:
        # update alone would leave the later changesets behind as a second head
        later = f"descendants({revision}) - {revision}"
        if self._hg("log", "-r", later, "--template", "{node}\n").stdout.strip():
            self._hg("--config", "extensions.strip=", "strip", "-r", later)
        self._hg("update", "--clean", "-r", revision)


def clone_mercurial(url: str, path: Path) -> MercurialRepository:
    run_command(["hg", "clone", url, str(path)], timeout=NETWORK_TIMEOUT)
    return MercurialRepository(path)


def init_mercurial(path: Path) -> MercurialRepository:
    path.mkdir(parents=True, exist_ok=True)
    run_command(["hg", "init"], cwd=path)
    return MercurialRepository(path)
