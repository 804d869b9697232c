"""Smoke tests for the CLI."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from transcript_sync import scm
from transcript_sync.cli import app
from transcript_sync.config import load_config
from transcript_sync.history import load_history
from transcript_sync.state import SyncState, save_sync_state


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Fake home directory holding ~/.claude."""
    home = tmp_path / "home"
    (home / ".claude" / "projects").mkdir(parents=True)
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("TRANSCRIPT_SYNC_DEVICE_NAME", "laptop")
    return home


@pytest.fixture
def synced(fake_repo, monkeypatch: pytest.MonkeyPatch, home: Path):
    """Saved sync state pointing at an in-memory repository."""
    save_sync_state(SyncState(sync_repo_path=fake_repo.path, has_remote=True))
    monkeypatch.setattr(scm, "open_repository", lambda path, backend=None: fake_repo)
    return fake_repo


class TestCLI:
    """Tests for the CLI entry point."""

    def test_main_help(self, runner: CliRunner) -> None:
        """--help lists the commands."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "push" in result.output
        assert "config-sync" in result.output

    def test_version(self, runner: CliRunner) -> None:
        """--version prints the version."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "transcript-sync" in result.output

    def test_push_help(self, runner: CliRunner) -> None:
        """push --help shows its options."""
        result = runner.invoke(app, ["push", "--help"])
        assert result.exit_code == 0
        assert "--no-push" in result.output


class TestStatusCommand:
    """Tests for the status command."""

    def test_without_state_fails(self, runner: CliRunner, home: Path) -> None:
        """status without sync state exits with an error."""
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_with_state(self, runner: CliRunner, home: Path, synced, make_transcript) -> None:
        """status succeeds once a sync repository is set up."""
        make_transcript(home / ".claude" / "projects" / "-home-dev-work-myapp" / "session-1.jsonl")

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0, result.output


class TestConfigCommands:
    """Tests for the config sub-commands."""

    def test_set_and_show(self, runner: CliRunner) -> None:
        """config set saves values that config show prints."""
        result = runner.invoke(app, ["config", "set", "--exclude", "tmp,scratch"])
        assert result.exit_code == 0, result.output
        assert load_config().exclude_patterns == ["tmp", "scratch"]

        shown = runner.invoke(app, ["config", "show"])
        assert shown.exit_code == 0
        assert "scratch" in shown.output

    def test_lfs_with_mercurial_rejected(self, runner: CliRunner) -> None:
        """An invalid combination is rejected and not saved."""
        result = runner.invoke(app, ["config", "set", "--lfs", "--backend", "mercurial"])
        assert result.exit_code == 1
        assert "LFS" in result.output
        assert load_config().enable_lfs is False


class TestPushCommand:
    """Tests for the push command."""

    def test_push_commits_and_records_history(
        self, runner: CliRunner, home: Path, synced, make_transcript
    ) -> None:
        """push copies, commits, pushes and records history."""
        make_transcript(home / ".claude" / "projects" / "-home-dev-work-myapp" / "session-1.jsonl")

        result = runner.invoke(app, ["push", "-m", "backup"])

        assert result.exit_code == 0, result.output
        assert (synced.path / "projects" / "myapp" / "session-1.jsonl").exists()
        assert synced.commits[-1][1] == "backup"
        assert synced.pushes == [("origin", "main")]
        assert load_history().operations[0].conversations[0].session_id == "session-1"

    def test_no_push_commits_locally(
        self, runner: CliRunner, home: Path, synced, make_transcript
    ) -> None:
        """--no-push --no-config only commits sessions."""
        make_transcript(home / ".claude" / "projects" / "-home-dev-work-myapp" / "session-1.jsonl")

        result = runner.invoke(app, ["push", "--no-push", "--no-config"])

        assert result.exit_code == 0, result.output
        assert len(synced.commits) == 1
        assert synced.pushes == []
        assert not (synced.path / "_configs").exists()


class TestHistoryAndUndo:
    """Tests for the history and undo commands."""

    def test_empty_history(self, runner: CliRunner) -> None:
        """An empty history says so."""
        result = runner.invoke(app, ["history", "list"])
        assert result.exit_code == 0
        assert "No operations" in result.output

    def test_undo_without_push_fails(self, runner: CliRunner, synced) -> None:
        """undo push without a recorded push exits with an error."""
        result = runner.invoke(app, ["undo", "push"])
        assert result.exit_code == 1
        assert "No push" in result.output


class TestConfigSyncCommands:
    """Tests for the config-sync sub-commands."""

    def test_list_empty(self, runner: CliRunner, synced) -> None:
        """Listing without snapshots suggests pushing one."""
        result = runner.invoke(app, ["config-sync", "list"])
        assert result.exit_code == 0
        assert "No device configurations" in result.output

    def test_push_then_list(self, runner: CliRunner, home: Path, synced) -> None:
        """A pushed snapshot appears in the list as this device."""
        (home / ".claude" / "settings.json").write_text(json.dumps({"model": "opus"}))

        pushed = runner.invoke(app, ["config-sync", "push"])
        listed = runner.invoke(app, ["config-sync", "list"])

        assert pushed.exit_code == 0, pushed.output
        assert synced.commits[-1][1] == "Sync config from laptop"
        assert "laptop" in listed.output
        assert "this device" in listed.output
