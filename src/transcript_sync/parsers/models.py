"""Parser-specific models for transcript data."""

from __future__ import annotations

import hashlib
import json
import shutil
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, PrivateAttr

TITLE_MAX_CHARS = 100


class EntryType(StrEnum):
    """Kinds of transcript records the reader understands."""

    USER = "user"
    ASSISTANT = "assistant"
    SUMMARY = "summary"
    CUSTOM_TITLE = "custom-title"
    OTHER = "other"

    @classmethod
    def from_record(cls, value: object) -> EntryType:
        try:
            return cls(str(value))
        except ValueError:
            return cls.OTHER


class TranscriptEntry(BaseModel):
    """One line of a transcript file."""

    entry_type: EntryType
    message: Any = None
    timestamp: datetime | None = None
    cwd: str | None = None
    session_id: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_message(self) -> bool:
        return self.entry_type in (EntryType.USER, EntryType.ASSISTANT)

    @property
    def text(self) -> str:
        """Plain text of the message payload, ignoring tool blocks."""
        content = self.message.get("content") if isinstance(self.message, dict) else self.message
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts = [
                block.get("text", "")
                for block in content
                if isinstance(block, dict) and block.get("type") == "text"
            ]
            return "\n".join(p for p in parts if p)
        return ""

    def canonical(self) -> list[Any]:
        """The fields that define conversation content, for fingerprinting."""
        kind = self.raw.get("type", self.entry_type.value)
        if self.message is not None:
            payload = self.message
        elif self.entry_type == EntryType.SUMMARY:
            payload = self.raw.get("summary")
        elif self.entry_type == EntryType.CUSTOM_TITLE:
            payload = self.raw.get("customTitle")
        else:
            payload = None
        return [kind, payload]


class Session(BaseModel):
    """One conversation transcript read from disk."""

    session_id: str
    file_path: Path
    entries: list[TranscriptEntry] = Field(default_factory=list)

    _content_hash: str | None = PrivateAttr(default=None)

    @property
    def file_name(self) -> str:
        return self.file_path.name

    @property
    def message_count(self) -> int:
        return sum(1 for e in self.entries if e.is_message)

    @property
    def first_timestamp(self) -> datetime | None:
        timestamps = [e.timestamp for e in self.entries if e.timestamp is not None]
        return min(timestamps) if timestamps else None

    @property
    def latest_timestamp(self) -> datetime | None:
        timestamps = [e.timestamp for e in self.entries if e.timestamp is not None]
        return max(timestamps) if timestamps else None

    @property
    def cwd(self) -> str | None:
        for entry in self.entries:
            if entry.cwd:
                return entry.cwd
        return None

    @property
    def project_name(self) -> str | None:
        """Last component of the recorded working directory.

        Derived from ``cwd`` rather than the file location because the
        assistant's directory encoding is lossy.
        """
        cwd = self.cwd
        if not cwd:
            return None
        name = cwd.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]
        return name or None

    @property
    def title(self) -> str | None:
        """Custom title, else summary, else the first user message."""
        for kind, key in ((EntryType.CUSTOM_TITLE, "customTitle"), (EntryType.SUMMARY, "summary")):
            for entry in reversed(self.entries):
                if entry.entry_type == kind:
                    value = entry.raw.get(key)
                    if isinstance(value, str) and value.strip():
                        return value.strip()
        for entry in self.entries:
            if entry.entry_type == EntryType.USER:
                text = entry.text.strip()
                if text:
                    return text[:TITLE_MAX_CHARS]
        return None

    @property
    def is_valid(self) -> bool:
        """Valid sessions have messages and a title; others are hidden from listings."""
        return self.message_count > 0 and self.title is not None

    @property
    def content_hash(self) -> str:
        """SHA-256 over the ordered (type, message) pairs.

        Key order, whitespace and metadata such as uuids or timestamps do
        not affect the result.
        """
        if self._content_hash is None:
            canonical = json.dumps(
                [e.canonical() for e in self.entries],
                sort_keys=True,
                separators=(",", ":"),
                ensure_ascii=False,
            )
            self._content_hash = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
        return self._content_hash

    def write_to_file(self, dest: Path) -> None:
        """Copy the transcript to dest, creating parent directories.

        The source bytes are copied as-is so the synced copy has the same
        size as the local file. Without a source file the records are
        re-serialized compactly.
        """
        dest.parent.mkdir(parents=True, exist_ok=True)
        if self.file_path.is_file():
            shutil.copyfile(self.file_path, dest)
            return
        lines = [
            json.dumps(e.raw, ensure_ascii=False, separators=(",", ":")) for e in self.entries
        ]
        dest.write_text("\n".join(lines) + ("\n" if lines else ""), encoding="utf-8")
