"""Parsers for AI coding assistant transcript files."""

from .claude import ClaudeParser, parse_entry, parse_timestamp, parse_transcript
from .models import EntryType, Session, TranscriptEntry

__all__ = [
    "ClaudeParser",
    "EntryType",
    "Session",
    "TranscriptEntry",
    "parse_entry",
    "parse_timestamp",
    "parse_transcript",
]
