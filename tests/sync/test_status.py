"""Tests for the status report."""

import io
import json
from pathlib import Path

import pytest
from rich.console import Console

from transcript_sync.config import ConfigSyncSettings, FilterConfig
from transcript_sync.state import SyncState
from transcript_sync.sync.status import collect_status, render_status


@pytest.fixture
def local_root(tmp_path: Path) -> Path:
    root = tmp_path / "claude" / "projects"
    root.mkdir(parents=True)
    return root


@pytest.fixture
def config() -> FilterConfig:
    return FilterConfig(config_sync=ConfigSyncSettings(device_name="laptop"))


class TestCollectStatus:
    """Tests for gathering status facts."""

    def test_counts_and_repository_facts(self, config, fake_repo, local_root, make_transcript) -> None:
        """Local and synced counts come from discovery; SCM facts from the repository."""
        make_transcript(local_root / "-home-dev-myapp" / "a.jsonl", session_id="a")
        make_transcript(fake_repo.path / "projects" / "myapp" / "a.jsonl", session_id="a")
        state = SyncState(sync_repo_path=fake_repo.path, has_remote=True)

        status = collect_status(config, state, fake_repo, local_root)

        assert status.local_sessions == 1
        assert status.synced_sessions == 1
        assert status.branch == "main"
        assert status.remote_url == "git@example.com:me/history.git"
        assert status.device_name == "laptop"

    def test_invalid_sessions_not_listed(self, config, fake_repo, local_root, make_transcript) -> None:
        """Sessions without messages or a title are left out of the file listing."""
        make_transcript(local_root / "-home-dev-myapp" / "good.jsonl", session_id="good")
        snapshot_only = local_root / "-home-dev-myapp" / "empty.jsonl"
        snapshot_only.write_text(
            json.dumps({"type": "file-history-snapshot", "messageId": "m1", "snapshot": {}}) + "\n"
        )
        state = SyncState(sync_repo_path=fake_repo.path)

        status = collect_status(config, state, fake_repo, local_root)

        assert [f.relative_path for f in status.local_files] == ["-home-dev-myapp/good.jsonl"]

    def test_missing_synced_tree(self, config, fake_repo, local_root) -> None:
        """A sync repository without a projects directory reports no synced count."""
        status = collect_status(config, SyncState(sync_repo_path=fake_repo.path), fake_repo, local_root)
        assert status.synced_sessions is None
        assert status.local_files == []


class TestRenderStatus:
    """Tests for the console rendering."""

    def test_show_files_lists_valid_sessions(self, config, fake_repo, local_root, make_transcript) -> None:
        """--show-files prints each listed session with its message count."""
        make_transcript(local_root / "-home-dev-myapp" / "a.jsonl", session_id="a", messages=3)
        status = collect_status(config, SyncState(sync_repo_path=fake_repo.path), fake_repo, local_root)
        out = io.StringIO()

        render_status(Console(file=out, width=200), status, show_files=True)

        assert "-home-dev-myapp/a.jsonl (3 messages)" in out.getvalue()
