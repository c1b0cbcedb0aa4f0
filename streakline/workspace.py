"""Workspace root, settings, timezone and path helpers for Streakline."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from streakline.clock import Clock
from streakline.models import Settings

logger = logging.getLogger("streakline.workspace")

_USER_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.@-]{0,127}$")


def workspace_root() -> Path:
    """Get the workspace root directory (contains config.yaml and users/)."""
    return Path(
        os.environ.get("STREAKLINE_ROOT", str(Path.home() / "streakline"))
    ).expanduser().resolve()


def config_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "config.yaml"


def load_settings(root: Path | None = None) -> Settings:
    """Read config.yaml into Settings; a missing or broken file gives defaults."""
    path = config_path(root)
    if not path.exists():
        return Settings()
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        return Settings.from_dict(data if isinstance(data, dict) else {})
    except (yaml.YAMLError, TypeError, ValueError) as e:
        logger.warning("Invalid %s, using defaults: %s", path, e)
        return Settings()


def get_timezone(settings: Settings) -> ZoneInfo:
    """Resolve the configured zone, defaulting to UTC."""
    try:
        return ZoneInfo(settings.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to UTC", settings.timezone)
        return ZoneInfo("UTC")


def get_clock(root: Path | None = None) -> Clock:
    return Clock(get_timezone(load_settings(root)))


# ── Path helpers ──────────────────────────────────────────────

def validate_user_id(user_id: str) -> str:
    if not isinstance(user_id, str) or not _USER_ID_RE.match(user_id) or ".." in user_id:
        raise ValueError(f"Invalid user id: {user_id!r}")
    return user_id


def user_dir(root: Path, user_id: str) -> Path:
    return root / "users" / validate_user_id(user_id)


def state_path(root: Path, user_id: str) -> Path:
    return user_dir(root, user_id) / "state.json"


def tasks_path(root: Path, user_id: str) -> Path:
    return user_dir(root, user_id) / "tasks.yaml"


def lock_path(root: Path, user_id: str) -> Path:
    return user_dir(root, user_id) / ".lock"
