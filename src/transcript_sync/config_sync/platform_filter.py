"""Platform-tagged sections in CLAUDE.md.

A shared CLAUDE.md may carry blocks that only apply to one operating
system::

    <!-- platform:macos -->
    - Homebrew path: /opt/homebrew/bin
    <!-- end-platform -->

Blocks do not nest. Tag names are case-insensitive; ``mac``/``darwin`` and
``win`` are accepted aliases.
"""

from __future__ import annotations

import re
import sys
from enum import StrEnum

PLATFORM_BLOCK_RE = re.compile(
    r"<!--\s*platform:\s*(macos|mac|darwin|windows|win|linux)\s*-->(.*?)<!--\s*end-platform\s*-->",
    re.DOTALL | re.IGNORECASE,
)
_BLANK_LINES_RE = re.compile(r"\n{3,}")


class Platform(StrEnum):
    MACOS = "macos"
    WINDOWS = "windows"
    LINUX = "linux"

    @classmethod
    def current(cls) -> Platform:
        if sys.platform == "darwin":
            return cls.MACOS
        if sys.platform.startswith("win"):
            return cls.WINDOWS
        return cls.LINUX

    @classmethod
    def from_tag_name(cls, name: str) -> Platform | None:
        return _ALIASES.get(name.strip().lower())


_ALIASES: dict[str, Platform] = {
    "macos": Platform.MACOS,
    "mac": Platform.MACOS,
    "darwin": Platform.MACOS,
    "windows": Platform.WINDOWS,
    "win": Platform.WINDOWS,
    "linux": Platform.LINUX,
}


def cleanup_blank_lines(content: str) -> str:
    """Collapse runs of three or more newlines to a single blank line."""
    return _BLANK_LINES_RE.sub("\n\n", content)


def filter_for_platform(content: str, target: Platform) -> str:
    """Keep the inner text of target's blocks and drop every other block."""

    def _replace(match: re.Match[str]) -> str:
        if Platform.from_tag_name(match.group(1)) is target:
            return match.group(2)
        return ""

    return cleanup_blank_lines(PLATFORM_BLOCK_RE.sub(_replace, content))


def has_platform_blocks(content: str) -> bool:
    return PLATFORM_BLOCK_RE.search(content) is not None


def extract_platform_blocks(content: str) -> list[tuple[Platform, str]]:
    """(platform, inner text) for every block, in document order."""
    blocks: list[tuple[Platform, str]] = []
    for match in PLATFORM_BLOCK_RE.finditer(content):
        platform = Platform.from_tag_name(match.group(1))
        if platform is not None:
            blocks.append((platform, match.group(2)))
    return blocks


def extract_current_platform_block(content: str, platform: Platform) -> str | None:
    """First whole block (tags included) for platform, or None."""
    for match in PLATFORM_BLOCK_RE.finditer(content):
        if Platform.from_tag_name(match.group(1)) is platform:
            return match.group(0)
    return None


def merge_claude_md(source: str, target: str, current: Platform) -> str:
    """Shared content from source plus target's own block for current.

    Every tagged block is stripped from source. If target holds a block for
    the current platform, it is appended verbatim after the shared content;
    otherwise the shared content is returned alone.
    """
    shared = cleanup_blank_lines(PLATFORM_BLOCK_RE.sub("", source))
    block = extract_current_platform_block(target, current)
    if block is None:
        return shared
    return f"{shared.rstrip()}\n{block}\n"


def apply_claude_md(source: str, target: str, current: Platform | None = None) -> str:
    """Content to write locally when adopting a peer device's CLAUDE.md."""
    if has_platform_blocks(source) or has_platform_blocks(target):
        return merge_claude_md(source, target, current or Platform.current())
    return source
