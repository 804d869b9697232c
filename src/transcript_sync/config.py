"""Filter and sync configuration loaded from config.toml and env vars.

Loading order: defaults -> TOML file -> env vars -> CLI changes.
"""

from __future__ import annotations

import logging
import os
import platform
import re
import socket
import subprocess
import time
import tomllib
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Any

import tomli_w
from pydantic import BaseModel, Field

from transcript_sync.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.toml"
CONFIG_DIR_ENV = "TRANSCRIPT_SYNC_CONFIG_DIR"
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024
SUPPORTED_BACKENDS = ("git", "mercurial", "hg")

_WILDCARD_CHARS = set("*?[")


def app_config_dir() -> Path:
    """Directory holding config.toml, state.json and the operation history."""
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override)
    return Path.home() / ".config" / "transcript-sync"


def sanitize_device_name(name: str) -> str:
    """Replace anything but ASCII alphanumerics, '-' and '_' with single dashes."""
    sanitized = "".join(
        c if (c.isascii() and c.isalnum()) or c in "-_" else "-" for c in name
    )
    sanitized = re.sub(r"-{2,}", "-", sanitized)
    return sanitized.strip("-")


def _friendly_computer_name() -> str | None:
    system = platform.system()
    if system == "Darwin":
        try:
            result = subprocess.run(
                ["scutil", "--get", "ComputerName"],
                capture_output=True,
                text=True,
                timeout=5,
            )
        except (OSError, subprocess.TimeoutExpired):
            return None
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()
    elif system == "Windows":
        name = os.environ.get("COMPUTERNAME", "")
        if name:
            return name
    else:
        try:
            name = Path("/etc/hostname").read_text(encoding="utf-8").strip()
        except OSError:
            return None
        if name:
            return name
    return None


class ConfigSyncSettings(BaseModel):
    """[config_sync] section: which assistant config files travel between devices."""

    enabled: bool = True
    sync_settings: bool = True
    sync_claude_md: bool = True
    sync_hooks: bool = False
    sync_skills_list: bool = True
    auto_apply_claude_md: bool = True
    push_with_config: bool = True
    device_name: str | None = None

    def get_device_name(self) -> str:
        """Configured device name, else the machine's friendly name or hostname."""
        if self.device_name:
            return sanitize_device_name(self.device_name)
        for candidate in (_friendly_computer_name(), socket.gethostname()):
            if candidate:
                name = sanitize_device_name(candidate)
                if name:
                    return name
        return "unknown-device"


class AutoMemorySettings(BaseModel):
    """[auto_memory] section."""

    enabled: bool = True


class FilterConfig(BaseModel):
    """Top-level configuration for discovery, layout and the SCM backend."""

    exclude_older_than_days: int | None = None
    include_patterns: list[str] = Field(default_factory=list)
    exclude_patterns: list[str] = Field(default_factory=list)
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE
    exclude_attachments: bool = False
    enable_lfs: bool = False
    lfs_patterns: list[str] = Field(default_factory=lambda: ["*.jsonl"])
    scm_backend: str = "git"
    sync_subdirectory: str = "projects"
    use_project_name_only: bool = True
    config_sync: ConfigSyncSettings = Field(default_factory=ConfigSyncSettings)
    auto_memory: AutoMemorySettings = Field(default_factory=AutoMemorySettings)

    @property
    def backend_name(self) -> str:
        """Canonical backend name (``hg`` is spelled ``mercurial``)."""
        name = self.scm_backend.strip().lower()
        return "mercurial" if name == "hg" else name

    def validate(self) -> None:  # type: ignore[override]
        """Reject inconsistent settings.

        Raises:
            ConfigError: Unknown backend, LFS on a non-git backend, or an
                empty sync subdirectory.
        """
        backend = self.scm_backend.strip().lower()
        if backend not in SUPPORTED_BACKENDS:
            raise ConfigError(
                f"Unknown SCM backend: '{self.scm_backend}'. Use 'git' or 'mercurial'."
            )
        if self.enable_lfs and backend != "git":
            raise ConfigError(
                "Git LFS is only supported with the 'git' backend. "
                f"Current backend: '{self.scm_backend}'"
            )
        if not self.sync_subdirectory.strip():
            raise ConfigError("Sync subdirectory cannot be empty")

    def should_include(self, file_path: Path) -> bool:
        """Check whether a file passes the attachment, size, pattern and age filters."""
        if self.exclude_attachments and file_path.suffix and file_path.suffix != ".jsonl":
            return False

        try:
            stat = file_path.stat()
        except OSError:
            stat = None

        if stat is not None and stat.st_size > self.max_file_size_bytes:
            return False

        path_str = str(file_path)
        if any(_glob_match(p, path_str) for p in self.exclude_patterns):
            return False
        if self.include_patterns and not any(
            _glob_match(p, path_str) for p in self.include_patterns
        ):
            return False

        if self.exclude_older_than_days is not None and stat is not None:
            max_age = self.exclude_older_than_days * 24 * 60 * 60
            if time.time() - stat.st_mtime > max_age:
                return False

        return True


def _glob_match(pattern: str, text: str) -> bool:
    """Wildcard patterns match the whole path; plain patterns match a substring."""
    if _WILDCARD_CHARS & set(pattern):
        return fnmatchcase(text, pattern)
    return pattern in text


def config_path() -> Path:
    return app_config_dir() / CONFIG_FILENAME


def load_config(path: str | Path | None = None) -> FilterConfig:
    """Load configuration from a TOML file, then overlay environment variables.

    Args:
        path: Explicit path to a TOML file. Defaults to
            ``~/.config/transcript-sync/config.toml``.

    Returns:
        Merged FilterConfig. A missing file yields the defaults.
    """
    toml_path = Path(path) if path is not None else config_path()
    data: dict[str, Any] = {}
    if toml_path.exists():
        data = _load_toml(toml_path)
        logger.info("Loaded config from %s", toml_path)
    elif path is not None:
        logger.warning("Config file not found: %s", toml_path)

    config = FilterConfig.model_validate(data) if data else FilterConfig()
    return _apply_env_vars(config)


def save_config(config: FilterConfig, path: str | Path | None = None) -> Path:
    """Write the configuration as TOML, creating the config directory."""
    toml_path = Path(path) if path is not None else config_path()
    toml_path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(exclude_none=True)
    toml_path.write_text(tomli_w.dumps(data), encoding="utf-8")
    return toml_path


def update_config(config: FilterConfig, **changes: object) -> FilterConfig:
    """Apply explicitly-set CLI changes and validate the result.

    Only keys whose value is not None are applied. Comma-separated strings
    are accepted for the pattern lists.

    Raises:
        ConfigError: The resulting configuration is invalid.
    """
    data = config.model_dump()

    for key, value in changes.items():
        if value is None:
            continue
        if key in ("include_patterns", "exclude_patterns", "lfs_patterns") and isinstance(
            value, str
        ):
            value = [p.strip() for p in value.split(",") if p.strip()]
        if key == "scm_backend" and isinstance(value, str):
            value = value.strip().lower()
        if key == "sync_subdirectory" and isinstance(value, str):
            value = value.strip()
        if key == "device_name":
            data["config_sync"]["device_name"] = value
            continue
        if key not in data:
            raise ConfigError(f"Unknown configuration option: {key}")
        data[key] = value

    updated = FilterConfig.model_validate(data)
    if updated.use_project_name_only != config.use_project_name_only:
        logger.warning(
            "Layout mode switched to %s; existing directories in the sync "
            "repository are not renamed and may now be mixed",
            "project-name-only" if updated.use_project_name_only else "full-path",
        )
    updated.validate()
    return updated


def _load_toml(path: Path) -> dict[str, Any]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: FilterConfig) -> FilterConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, str] = {
        "TRANSCRIPT_SYNC_BACKEND": "scm_backend",
        "TRANSCRIPT_SYNC_SUBDIRECTORY": "sync_subdirectory",
    }
    for env_var, field in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[field] = value

    device = os.environ.get("TRANSCRIPT_SYNC_DEVICE_NAME")
    if device:
        data["config_sync"]["device_name"] = device

    return FilterConfig.model_validate(data)
