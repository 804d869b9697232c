"""Per-device configuration snapshots in the sync repository.

Each device writes its assistant configuration to ``_configs/<device>/``
next to the synced transcripts, with a ``.sync-info.json`` descriptor
recording when it last synced. Other devices can list, apply or
auto-apply those snapshots.
"""

from __future__ import annotations

import json
import logging
import shutil
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from transcript_sync.config import ConfigSyncSettings
from transcript_sync.config_sync.platform_filter import Platform, apply_claude_md, has_platform_blocks
from transcript_sync.errors import PreconditionError, ScmError
from transcript_sync.scm import run_command
from transcript_sync.sync.discovery import claude_home

logger = logging.getLogger(__name__)

CONFIGS_DIRNAME = "_configs"
SYNC_INFO_FILENAME = ".sync-info.json"
SNAPSHOT_FILES = ("settings.json", "settings-full.json", "CLAUDE.md", "installed_skills.json")


class DeviceSyncInfo(BaseModel):
    """Contents of ``.sync-info.json``."""

    model_config = ConfigDict(populate_by_name=True)

    device: str
    platform: str
    last_sync: str = Field(alias="lastSync")

    @property
    def synced_at(self) -> datetime | None:
        try:
            parsed = datetime.fromisoformat(self.last_sync)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


class SkillsList(BaseModel):
    """Skill name -> git remote URL it was installed from."""

    skills: dict[str, str] = Field(default_factory=dict)


class DeviceConfig(BaseModel):
    """One device snapshot as shown by ``config-sync list``."""

    name: str
    is_current: bool = False
    info: DeviceSyncInfo | None = None
    files: list[str] = Field(default_factory=list)


class ApplyResult(BaseModel):
    """What applying a device snapshot changed locally."""

    source_device: str
    applied: list[str] = Field(default_factory=list)
    backups: list[str] = Field(default_factory=list)
    merged_claude_md: bool = False
    hooks_applied: bool = False
    skill_urls: list[str] = Field(default_factory=list)
    plugin_names: list[str] = Field(default_factory=list)


def configs_dir(sync_repo: Path) -> Path:
    return sync_repo / CONFIGS_DIRNAME


def device_config_dir(sync_repo: Path, device_name: str) -> Path:
    return configs_dir(sync_repo) / device_name


def read_sync_info(device_dir: Path) -> DeviceSyncInfo | None:
    info_path = device_dir / SYNC_INFO_FILENAME
    if not info_path.exists():
        return None
    try:
        return DeviceSyncInfo.model_validate_json(info_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Unreadable %s: %s", info_path, exc)
        return None


def _read_json(path: Path) -> object:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise PreconditionError(f"Invalid JSON in {path}: {exc}") from exc


def generate_skills_list(skills_dir: Path) -> SkillsList:
    """Record the origin URL of every skill directory that is a git checkout."""
    skills: dict[str, str] = {}
    for entry in sorted(skills_dir.iterdir()):
        if not entry.is_dir() or not (entry / ".git").exists():
            continue
        try:
            result = run_command(["git", "remote", "get-url", "origin"], cwd=entry)
        except ScmError as exc:
            logger.debug("No origin for skill %s: %s", entry.name, exc)
            continue
        url = result.stdout.strip()
        if url:
            skills[entry.name] = url
    return SkillsList(skills=skills)


def push_config_files(
    settings: ConfigSyncSettings,
    sync_repo: Path,
    claude_dir: Path | None = None,
    now: datetime | None = None,
) -> list[str]:
    """Snapshot this device's configuration into the sync repository.

    Returns:
        Names of the files written, relative to the device directory. The
        ``.sync-info.json`` descriptor is always written and never listed.
    """
    device_name = settings.get_device_name()
    claude = claude_dir or claude_home()
    target_dir = device_config_dir(sync_repo, device_name)
    target_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Pushing configuration files for device %s", device_name)

    synced: list[str] = []

    if settings.sync_settings:
        settings_path = claude / "settings.json"
        if settings_path.exists():
            content = settings_path.read_text(encoding="utf-8")
            try:
                data = json.loads(content)
            except json.JSONDecodeError:
                data = None
            if isinstance(data, dict):
                (target_dir / "settings-full.json").write_text(content, encoding="utf-8")
                synced.append("settings-full.json")
                data.pop("hooks", None)
                (target_dir / "settings.json").write_text(
                    json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8"
                )
            else:
                shutil.copyfile(settings_path, target_dir / "settings.json")
            synced.append("settings.json")

    if settings.sync_claude_md:
        claude_md = claude / "CLAUDE.md"
        if claude_md.exists():
            shutil.copyfile(claude_md, target_dir / "CLAUDE.md")
            synced.append("CLAUDE.md")

    if settings.sync_hooks:
        hooks_dir = claude / "hooks"
        if hooks_dir.is_dir():
            target_hooks = target_dir / "hooks"
            if target_hooks.exists():
                shutil.rmtree(target_hooks)
            shutil.copytree(hooks_dir, target_hooks)
            synced.append("hooks/")

    if settings.sync_skills_list:
        skills_dir = claude / "skills"
        if skills_dir.is_dir():
            skills = generate_skills_list(skills_dir)
            (target_dir / "installed_skills.json").write_text(
                skills.model_dump_json(indent=2), encoding="utf-8"
            )
            synced.append("installed_skills.json")

        plugins_path = claude / "plugins" / "installed_plugins.json"
        if plugins_path.exists():
            shutil.copyfile(plugins_path, target_dir / "installed_plugins.json")
            synced.append("installed_plugins.json")

    info = DeviceSyncInfo(
        device=device_name,
        platform=Platform.current().value,
        last_sync=(now or datetime.now(UTC)).isoformat(),
    )
    (target_dir / SYNC_INFO_FILENAME).write_text(
        info.model_dump_json(by_alias=True, indent=2), encoding="utf-8"
    )
    return synced


def list_device_configs(sync_repo: Path, current_device: str) -> list[DeviceConfig]:
    """Every device snapshot in the sync repository, sorted by name."""
    root = configs_dir(sync_repo)
    if not root.is_dir():
        return []

    devices: list[DeviceConfig] = []
    for entry in sorted(root.iterdir()):
        if not entry.is_dir():
            continue
        files = [name for name in SNAPSHOT_FILES if (entry / name).exists()]
        if (entry / "hooks").exists():
            files.append("hooks/")
        devices.append(
            DeviceConfig(
                name=entry.name,
                is_current=entry.name == current_device,
                info=read_sync_info(entry),
                files=files,
            )
        )
    return devices


def get_device_sync_time(sync_repo: Path, device: str) -> datetime | None:
    info = read_sync_info(device_config_dir(sync_repo, device))
    return info.synced_at if info else None


def find_latest_device_config_with_time(
    sync_repo: Path, current_device: str
) -> tuple[str, datetime] | None:
    """The other device with the newest ``lastSync``, with that time."""
    root = configs_dir(sync_repo)
    if not root.is_dir():
        return None

    latest: tuple[str, datetime] | None = None
    for entry in root.iterdir():
        if not entry.is_dir() or entry.name == current_device:
            continue
        info = read_sync_info(entry)
        synced_at = info.synced_at if info else None
        if synced_at is None:
            continue
        if latest is None or synced_at > latest[1]:
            latest = (entry.name, synced_at)
    return latest


def find_latest_device_config(sync_repo: Path, current_device: str) -> str | None:
    found = find_latest_device_config_with_time(sync_repo, current_device)
    return found[0] if found else None


def apply_device_config(
    source_device: str,
    settings: ConfigSyncSettings,
    sync_repo: Path,
    claude_dir: Path | None = None,
    with_hooks: bool = False,
    platform: Platform | None = None,
) -> ApplyResult:
    """Apply another device's snapshot to the local assistant configuration.

    Local ``settings.json`` and ``CLAUDE.md`` are copied to ``*.backup``
    first. Without ``with_hooks`` the local hooks block is kept and only
    the rest of the settings is taken from the snapshot. CLAUDE.md keeps
    the local block for the current platform when either side is tagged.

    Raises:
        PreconditionError: No snapshot exists for source_device.
    """
    source_dir = device_config_dir(sync_repo, source_device)
    if not source_dir.is_dir():
        raise PreconditionError(
            f"Device config not found: {source_device}. Run 'transcript-sync config-sync list'."
        )

    claude = claude_dir or claude_home()
    claude.mkdir(parents=True, exist_ok=True)
    current = platform or Platform.current()
    result = ApplyResult(source_device=source_device)

    if settings.sync_settings:
        source_settings = source_dir / ("settings-full.json" if with_hooks else "settings.json")
        if source_settings.exists():
            target_settings = claude / "settings.json"
            if target_settings.exists():
                shutil.copyfile(target_settings, claude / "settings.json.backup")
                result.backups.append("settings.json.backup")

            if with_hooks:
                shutil.copyfile(source_settings, target_settings)
            else:
                merged = _read_json(source_settings)
                local = _read_json(target_settings) if target_settings.exists() else {}
                if isinstance(merged, dict) and isinstance(local, dict) and "hooks" in local:
                    merged["hooks"] = local["hooks"]
                target_settings.write_text(
                    json.dumps(merged, indent=2, ensure_ascii=False), encoding="utf-8"
                )
            result.applied.append("settings.json")

    if settings.sync_claude_md:
        source_md = source_dir / "CLAUDE.md"
        if source_md.exists():
            source_content = source_md.read_text(encoding="utf-8")
            target_md = claude / "CLAUDE.md"
            target_content = ""
            if target_md.exists():
                target_content = target_md.read_text(encoding="utf-8")
                shutil.copyfile(target_md, claude / "CLAUDE.md.backup")
                result.backups.append("CLAUDE.md.backup")
            result.merged_claude_md = has_platform_blocks(source_content) or has_platform_blocks(
                target_content
            )
            target_md.write_text(
                apply_claude_md(source_content, target_content, current), encoding="utf-8"
            )
            result.applied.append("CLAUDE.md")

    if with_hooks and settings.sync_hooks:
        source_hooks = source_dir / "hooks"
        if source_hooks.is_dir():
            target_hooks = claude / "hooks"
            target_hooks.mkdir(parents=True, exist_ok=True)
            for entry in source_hooks.iterdir():
                if entry.is_file():
                    target = target_hooks / entry.name
                    shutil.copyfile(entry, target)
                    target.chmod(0o755)
            result.hooks_applied = True
            result.applied.append("hooks/")

    skills_path = source_dir / "installed_skills.json"
    if skills_path.exists():
        try:
            skills = SkillsList.model_validate_json(skills_path.read_text(encoding="utf-8"))
            result.skill_urls = sorted(skills.skills.values())
        except ValueError as exc:
            logger.warning("Unreadable %s: %s", skills_path, exc)

    plugins_path = source_dir / "installed_plugins.json"
    if plugins_path.exists():
        try:
            plugins = json.loads(plugins_path.read_text(encoding="utf-8")).get("plugins")
        except (ValueError, AttributeError) as exc:
            logger.warning("Unreadable %s: %s", plugins_path, exc)
            plugins = None
        if isinstance(plugins, dict):
            result.plugin_names = sorted(plugins)

    logger.info("Applied %d config item(s) from %s", len(result.applied), source_device)
    return result


def auto_apply_claude_md(
    settings: ConfigSyncSettings,
    sync_repo: Path,
    claude_dir: Path | None = None,
    platform: Platform | None = None,
) -> str | None:
    """Adopt the newest peer's CLAUDE.md when it is newer than this device's snapshot.

    Returns:
        The device applied from, or None when nothing was written.
    """
    if not settings.enabled or not settings.auto_apply_claude_md:
        logger.debug("Auto-apply of CLAUDE.md is disabled")
        return None

    current_device = settings.get_device_name()
    latest = find_latest_device_config_with_time(sync_repo, current_device)
    if latest is None:
        logger.debug("No other device configs found for auto-apply")
        return None
    latest_device, latest_time = latest

    current_time = get_device_sync_time(sync_repo, current_device)
    if current_time is not None and latest_time <= current_time:
        logger.debug(
            "Config of %s (%s) is not newer than this device's (%s); skipping auto-apply",
            latest_device,
            latest_time,
            current_time,
        )
        return None

    source_md = device_config_dir(sync_repo, latest_device) / "CLAUDE.md"
    if not source_md.exists():
        logger.debug("No CLAUDE.md in device config %s", latest_device)
        return None

    claude = claude_dir or claude_home()
    target_md = claude / "CLAUDE.md"
    source_content = source_md.read_text(encoding="utf-8")
    target_content = target_md.read_text(encoding="utf-8") if target_md.exists() else ""

    final = apply_claude_md(source_content, target_content, platform)
    if final == target_content:
        return None

    target_md.parent.mkdir(parents=True, exist_ok=True)
    target_md.write_text(final, encoding="utf-8")
    logger.info("Auto-applied CLAUDE.md from device %s", latest_device)
    return latest_device
