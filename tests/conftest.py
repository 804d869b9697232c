"""Shared fixtures: transcript writers and an in-memory SCM."""

import json
from pathlib import Path

import pytest

from transcript_sync.errors import ScmError
from transcript_sync.scm.base import Backend, Repository


def write_transcript(
    path: Path,
    session_id: str = "session-1",
    cwd: str | None = "/home/dev/work/myapp",
    messages: int = 2,
    summary: str | None = None,
) -> Path:
    """Write a transcript with alternating user/assistant messages."""
    records: list[dict] = []
    if summary:
        records.append({"type": "summary", "summary": summary, "leafUuid": "leaf"})
    for i in range(messages):
        role = "user" if i % 2 == 0 else "assistant"
        record = {
            "type": role,
            "sessionId": session_id,
            "uuid": f"{session_id}-{i}",
            "timestamp": f"2025-01-01T12:{i:02d}:00Z",
            "message": {"role": role, "content": f"message {i} of {session_id}"},
        }
        if cwd is not None:
            record["cwd"] = cwd
        records.append(record)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(json.dumps(r) for r in records) + "\n", encoding="utf-8")
    return path


class FakeRepository(Repository):
    """Repository that tracks the working tree in memory instead of running a VCS."""

    backend = Backend.GIT

    def __init__(self, path: Path, branch: str = "main", remote: str | None = "git@example.com:me/history.git"):
        path.mkdir(parents=True, exist_ok=True)
        super().__init__(path)
        self.branch = branch
        self.remotes = {"origin": remote} if remote else {}
        self.commits: list[tuple[str, str]] = []
        self.pushes: list[tuple[str, str]] = []
        self.resets: list[str] = []
        self.staged = False
        self._committed_tree = self._tree()

    def _tree(self) -> dict[str, bytes]:
        return {
            p.relative_to(self.path).as_posix(): p.read_bytes()
            for p in sorted(self.path.rglob("*"))
            if p.is_file()
        }

    def current_branch(self) -> str:
        return self.branch

    def current_commit_hash(self) -> str:
        if not self.commits:
            raise ScmError(f"No commits yet in {self.path}")
        return self.commits[-1][0]

    def has_changes(self) -> bool:
        return self._tree() != self._committed_tree

    def stage_all(self) -> None:
        self.staged = True

    def commit(self, message: str) -> None:
        self._committed_tree = self._tree()
        self.commits.append((f"{len(self.commits) + 1:040x}", message))

    def push(self, remote: str, branch: str) -> None:
        self.pushes.append((remote, branch))

    def has_remote(self, name: str) -> bool:
        return name in self.remotes

    def get_remote_url(self, name: str) -> str:
        if name not in self.remotes:
            raise ScmError(f"No such remote: {name}")
        return self.remotes[name]

    def reset_hard(self, revision: str) -> None:
        self.resets.append(revision)


@pytest.fixture
def make_transcript():
    """Factory writing transcript files (see write_transcript)."""
    return write_transcript


@pytest.fixture
def fake_repo(tmp_path: Path) -> FakeRepository:
    """In-memory repository rooted at tmp_path/repo."""
    return FakeRepository(tmp_path / "repo")


@pytest.fixture(autouse=True)
def isolated_config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep config, state and history files out of the real home directory."""
    config_dir = tmp_path / "app-config"
    monkeypatch.setenv("TRANSCRIPT_SYNC_CONFIG_DIR", str(config_dir))
    for var in ("TRANSCRIPT_SYNC_BACKEND", "TRANSCRIPT_SYNC_SUBDIRECTORY", "TRANSCRIPT_SYNC_DEVICE_NAME"):
        monkeypatch.delenv(var, raising=False)
    return config_dir
