"""Tests for the layout policy."""

from pathlib import Path

from transcript_sync.parsers import parse_transcript
from transcript_sync.sync.layout import (
    build_local_index,
    check_directory_structure_consistency,
    compute_relative_path,
    extract_project_name,
    find_colliding_projects,
    find_local_project_by_name,
    is_full_path_dir_name,
    map_project_dirs,
)
from transcript_sync.sync.models import LayoutMode


class TestComputeRelativePath:
    """Tests for storage paths in both naming modes."""

    def test_project_name_only(self, tmp_path: Path, make_transcript) -> None:
        """Sessions land under their cwd's last component."""
        path = make_transcript(tmp_path / "-home-dev-work-myapp" / "abc.jsonl")
        session = parse_transcript(path)

        relative = compute_relative_path(session, LayoutMode.PROJECT_NAME_ONLY, tmp_path)

        assert relative == Path("myapp/abc.jsonl")
        assert relative.name == path.name

    def test_project_name_only_without_cwd(self, tmp_path: Path, make_transcript) -> None:
        """No cwd means no path in project-name mode."""
        session = parse_transcript(make_transcript(tmp_path / "-x" / "abc.jsonl", cwd=None))
        assert compute_relative_path(session, LayoutMode.PROJECT_NAME_ONLY, tmp_path) is None

    def test_full_path_is_relative_to_root(self, tmp_path: Path, make_transcript) -> None:
        """Full-path mode mirrors the local tree."""
        path = make_transcript(tmp_path / "-home-dev-work-myapp" / "abc.jsonl")
        session = parse_transcript(path)

        relative = compute_relative_path(session, LayoutMode.FULL_PATH, tmp_path)

        assert relative == Path("-home-dev-work-myapp/abc.jsonl")

    def test_full_path_outside_root(self, tmp_path: Path, make_transcript) -> None:
        """Files outside the root keep their parent directory name."""
        path = make_transcript(tmp_path / "elsewhere" / "-proj" / "abc.jsonl")
        session = parse_transcript(path)

        relative = compute_relative_path(session, LayoutMode.FULL_PATH, tmp_path / "root")

        assert relative == Path("-proj/abc.jsonl")


class TestProjectNames:
    """Tests for encoded directory names."""

    def test_extract_project_name(self) -> None:
        """The last non-empty segment is the project name."""
        assert extract_project_name("-Users-abc-Documents-GitHub-myproject") == "myproject"
        assert extract_project_name("-Users-abc-myproject-") == "myproject"
        assert extract_project_name("plain") == "plain"

    def test_is_full_path_dir_name(self) -> None:
        """Full-path names start with a dash and have three or more."""
        assert is_full_path_dir_name("-Users-abc-project")
        assert not is_full_path_dir_name("-a-b")
        assert not is_full_path_dir_name("my-cool-app-here")

    def test_find_local_project_by_unique_name(self, tmp_path: Path) -> None:
        """A unique encoded name is matched directly."""
        (tmp_path / "-home-dev-myapp").mkdir()
        (tmp_path / "-home-dev-other").mkdir()

        assert find_local_project_by_name(tmp_path, "myapp") == tmp_path / "-home-dev-myapp"

    def test_find_local_project_by_recorded_cwd(self, tmp_path: Path, make_transcript) -> None:
        """The recorded cwd resolves names the encoding mangles."""
        make_transcript(tmp_path / "-home-dev---" / "s.jsonl", cwd="/home/dev/项目")
        (tmp_path / "-home-dev-other").mkdir()

        assert find_local_project_by_name(tmp_path, "项目") == tmp_path / "-home-dev---"

    def test_find_local_project_missing(self, tmp_path: Path) -> None:
        """Unknown names yield None."""
        (tmp_path / "-home-dev-other").mkdir()
        assert find_local_project_by_name(tmp_path, "myapp") is None


class TestCollisions:
    """Tests for project-name collision detection."""

    def test_groups_of_two_or_more(self, tmp_path: Path) -> None:
        """Only names with several directories are reported."""
        for name in ("-home-a-myapp", "-work-b-myapp", "-home-a-solo"):
            (tmp_path / name).mkdir()

        collisions = find_colliding_projects(tmp_path)

        assert list(collisions) == ["myapp"]
        assert len(collisions["myapp"]) == 2

    def test_recorded_project_names_win(self, tmp_path: Path, make_transcript) -> None:
        """Names from sessions override the encoded directory name."""
        a = make_transcript(tmp_path / "-home-dev-my-app" / "a.jsonl", session_id="a", cwd="/home/dev/my-app")
        b = make_transcript(tmp_path / "-work-app" / "b.jsonl", session_id="b", cwd="/work/app")
        sessions = [parse_transcript(a), parse_transcript(b)]

        # "app" is the last dash segment of both names, but the recorded cwds differ
        assert find_colliding_projects(tmp_path, sessions) == {}


class TestDirectoryStructure:
    """Tests for layout consistency checks."""

    def test_consistent_project_name_layout(self, tmp_path: Path) -> None:
        """A uniform layout is consistent."""
        (tmp_path / "myapp").mkdir()
        (tmp_path / "other").mkdir()

        check = check_directory_structure_consistency(tmp_path, LayoutMode.PROJECT_NAME_ONLY)

        assert check.is_consistent
        assert check.warning is None
        assert sorted(check.project_name_dirs) == ["myapp", "other"]

    def test_mixed_layout_warns(self, tmp_path: Path) -> None:
        """Mixed layouts produce a warning."""
        (tmp_path / "myapp").mkdir()
        (tmp_path / "-Users-abc-project").mkdir()

        check = check_directory_structure_consistency(tmp_path, LayoutMode.PROJECT_NAME_ONLY)

        assert not check.is_consistent
        assert "Mixed directory formats" in check.warning

    def test_mode_mismatch_warns(self, tmp_path: Path) -> None:
        """A layout that differs from the mode produces a warning."""
        (tmp_path / "-Users-abc-project").mkdir()

        check = check_directory_structure_consistency(tmp_path, LayoutMode.PROJECT_NAME_ONLY)

        assert not check.is_consistent
        assert check.full_path_dirs == ["-Users-abc-project"]

    def test_hidden_directories_ignored(self, tmp_path: Path) -> None:
        """Hidden directories are not classified."""
        (tmp_path / ".git").mkdir()
        (tmp_path / "-Users-abc-project").mkdir()

        check = check_directory_structure_consistency(tmp_path, LayoutMode.FULL_PATH)

        assert check.is_consistent
        assert check.project_name_dirs == []

    def test_never_renames(self, tmp_path: Path) -> None:
        """The check leaves directories untouched."""
        (tmp_path / "myapp").mkdir()
        (tmp_path / "-Users-abc-project").mkdir()

        check_directory_structure_consistency(tmp_path, LayoutMode.FULL_PATH)

        assert sorted(p.name for p in tmp_path.iterdir()) == ["-Users-abc-project", "myapp"]


class TestLocalIndex:
    """Tests for the deletion-scoping index."""

    def test_project_mode_merges_local_dirs(self, tmp_path: Path, make_transcript) -> None:
        """Local directories sharing a project share one index entry."""
        a = make_transcript(tmp_path / "-home-a-myapp" / "a.jsonl", session_id="a")
        b = make_transcript(tmp_path / "-work-b-myapp" / "b.jsonl", session_id="b")
        (tmp_path / "-work-b-myapp" / "filtered.jsonl").write_text("{}\n")
        sessions = [parse_transcript(a), parse_transcript(b)]

        index = build_local_index(sessions, LayoutMode.PROJECT_NAME_ONLY, tmp_path)

        assert index == {Path("myapp"): {"a.jsonl", "b.jsonl", "filtered.jsonl"}}

    def test_full_path_registers_empty_dirs(self, tmp_path: Path, make_transcript) -> None:
        """Empty local directories are still indexed in full-path mode."""
        a = make_transcript(tmp_path / "-home-dev-myapp" / "a.jsonl", session_id="a")
        (tmp_path / "-home-dev-emptied").mkdir()

        index = build_local_index([parse_transcript(a)], LayoutMode.FULL_PATH, tmp_path)

        assert index[Path("-home-dev-myapp")] == {"a.jsonl"}
        assert index[Path("-home-dev-emptied")] == set()

    def test_map_project_dirs(self, tmp_path: Path, make_transcript) -> None:
        """Each local directory maps to its synced project directory."""
        a = make_transcript(tmp_path / "-home-dev-myapp" / "a.jsonl")

        mapping = map_project_dirs([parse_transcript(a)], LayoutMode.PROJECT_NAME_ONLY, tmp_path)

        assert mapping == {tmp_path / "-home-dev-myapp": Path("myapp")}
