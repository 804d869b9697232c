"""Tests for platform-tagged CLAUDE.md handling."""

import pytest

from transcript_sync.config_sync.platform_filter import (
    Platform,
    apply_claude_md,
    cleanup_blank_lines,
    extract_current_platform_block,
    extract_platform_blocks,
    filter_for_platform,
    has_platform_blocks,
    merge_claude_md,
)

MIXED = """# Common content

## Environment

<!-- platform:macos -->
- Use fnm for node management
- Homebrew path: /opt/homebrew/bin
<!-- end-platform -->

<!-- platform:windows -->
- Use nvm-windows for node management
- Use backslash for paths
<!-- end-platform -->

## Other common content
"""


class TestPlatform:
    """Tests for tag names."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("macos", Platform.MACOS),
            ("mac", Platform.MACOS),
            ("Darwin", Platform.MACOS),
            ("windows", Platform.WINDOWS),
            ("win", Platform.WINDOWS),
            ("linux", Platform.LINUX),
            ("beos", None),
        ],
    )
    def test_from_tag_name(self, name: str, expected: Platform | None) -> None:
        """Tag names and their aliases map to platforms."""
        assert Platform.from_tag_name(name) is expected

    def test_current_is_a_platform(self) -> None:
        """The running platform is one of the known ones."""
        assert Platform.current() in set(Platform)


class TestFilterForPlatform:
    """Tests for keeping one platform's content."""

    def test_macos(self) -> None:
        """Only the macOS block survives and tags are removed."""
        filtered = filter_for_platform(MIXED, Platform.MACOS)

        assert "Use fnm for node management" in filtered
        assert "nvm-windows" not in filtered
        assert "Common content" in filtered
        assert "Other common content" in filtered
        assert "<!--" not in filtered

    def test_windows(self) -> None:
        """Only the Windows block survives."""
        filtered = filter_for_platform(MIXED, Platform.WINDOWS)

        assert "Homebrew" not in filtered
        assert "backslash" in filtered

    def test_untagged_content_unchanged(self) -> None:
        """Content without tags comes back unchanged."""
        content = "# No platform tags\n\nJust regular content."
        assert filter_for_platform(content, Platform.MACOS) == content

    def test_tags_are_case_insensitive(self) -> None:
        """Tag keywords and names match regardless of case."""
        content = "top\n<!-- PLATFORM: Linux -->\nlinux only\n<!-- End-Platform -->\n"
        assert "linux only" in filter_for_platform(content, Platform.LINUX)
        assert "linux only" not in filter_for_platform(content, Platform.MACOS)


class TestBlocks:
    """Tests for block detection and extraction."""

    def test_has_platform_blocks(self) -> None:
        """Only complete blocks count."""
        assert has_platform_blocks("<!-- platform:macos -->\ncontent\n<!-- end-platform -->")
        assert not has_platform_blocks("# plain")
        assert not has_platform_blocks("<!-- platform:macos -->\nunterminated")

    def test_extract_platform_blocks(self) -> None:
        """Blocks are returned in document order with their content."""
        blocks = extract_platform_blocks(MIXED)
        assert [platform for platform, _ in blocks] == [Platform.MACOS, Platform.WINDOWS]
        assert "fnm" in blocks[0][1]

    def test_extract_current_platform_block_keeps_tags(self) -> None:
        """The extracted block includes its opening and closing tags."""
        block = extract_current_platform_block(MIXED, Platform.WINDOWS)
        assert block is not None
        assert block.startswith("<!-- platform:windows -->")
        assert block.endswith("<!-- end-platform -->")
        assert extract_current_platform_block(MIXED, Platform.LINUX) is None

    def test_cleanup_blank_lines(self) -> None:
        """Runs of blank lines collapse to one."""
        assert cleanup_blank_lines("a\n\n\n\nb\n\nc") == "a\n\nb\n\nc"


class TestMerge:
    """Tests for merging a peer's CLAUDE.md with the local one."""

    def test_keeps_local_block_and_drops_foreign_content(self) -> None:
        """Foreign blocks go, shared content stays and the local block is appended."""
        source = "# Shared rules\n\n<!-- platform:macos -->\nbrew install x\n<!-- end-platform -->\n\nAlways test.\n"
        target = "# Old\n\n<!-- platform:windows -->\nwinget install x\n<!-- end-platform -->\n"

        merged = merge_claude_md(source, target, Platform.WINDOWS)

        assert "brew install" not in merged
        assert "# Shared rules" in merged
        assert "Always test." in merged
        assert "<!-- platform:windows -->\nwinget install x\n<!-- end-platform -->" in merged
        assert "# Old" not in merged
        assert merged.endswith("<!-- end-platform -->\n")

    def test_without_local_block_returns_shared_content(self) -> None:
        """Without a local block only the shared content remains."""
        source = "# Shared\n\n<!-- platform:linux -->\napt\n<!-- end-platform -->\n"

        merged = merge_claude_md(source, "", Platform.MACOS)

        assert merged == "# Shared\n\n"

    def test_every_shared_line_is_preserved(self) -> None:
        """No shared line is lost in the merge."""
        merged = merge_claude_md(MIXED, MIXED, Platform.LINUX)
        for line in ("# Common content", "## Environment", "## Other common content"):
            assert line in merged
        assert not has_platform_blocks(merged)

    def test_apply_without_blocks_is_verbatim(self) -> None:
        """Untagged documents are copied verbatim."""
        assert apply_claude_md("# New\n", "# Old\n", Platform.LINUX) == "# New\n"

    def test_apply_with_blocks_merges(self) -> None:
        """A tagged target keeps its platform block."""
        target = "<!-- platform:linux -->\nmine\n<!-- end-platform -->"
        applied = apply_claude_md("# New\n", target, Platform.LINUX)
        assert applied == "# New\n<!-- platform:linux -->\nmine\n<!-- end-platform -->\n"
