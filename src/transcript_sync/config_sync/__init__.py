"""Device configuration snapshots and platform-aware CLAUDE.md merging."""

from .platform_filter import (
    Platform,
    apply_claude_md,
    cleanup_blank_lines,
    extract_current_platform_block,
    extract_platform_blocks,
    filter_for_platform,
    has_platform_blocks,
    merge_claude_md,
)

__all__ = [
    "Platform",
    "apply_claude_md",
    "cleanup_blank_lines",
    "extract_current_platform_block",
    "extract_platform_blocks",
    "filter_for_platform",
    "has_platform_blocks",
    "merge_claude_md",
]
