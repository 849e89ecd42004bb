"""User preferences: a small YAML-backed get/set store.

Reminder hour, autosave, preview and theme are UI concerns kept here only
so callers have one place to read them. ``timezone``, ``near_deadline_days``
and ``planner_limit`` feed the engine.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, fields
from datetime import date, datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from devjournal.dates import as_utc, to_calendar_day
from devjournal.fileio import atomic_write, read_text

logger = logging.getLogger(__name__)

PREFERENCES_FILE = "preferences.yaml"


def config_root() -> Path:
    """Directory holding preferences.yaml (``$DEVJOURNAL_ROOT`` or ~/.devjournal)."""
    return Path(
        os.environ.get("DEVJOURNAL_ROOT", str(Path.home() / ".devjournal"))
    ).expanduser().resolve()


def preferences_path(root: Path | None = None) -> Path:
    if root is None:
        root = config_root()
    return root / PREFERENCES_FILE


@dataclass
class Preferences:
    timezone: str = "UTC"
    reminder_hour: int = 20
    autosave: bool = True
    preview: bool = False
    theme: str = "dark"
    near_deadline_days: int = 14
    planner_limit: int = 6

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Preferences:
        if not d or not isinstance(d, dict):
            return cls()
        prefs = cls()
        for f in fields(cls):
            if f.name not in d:
                continue
            try:
                setattr(prefs, f.name, _coerce(f.name, d[f.name]))
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid preference %s=%r", f.name, d[f.name])
        return prefs

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


_DEFAULTS = Preferences()
PREFERENCE_KEYS = frozenset(f.name for f in fields(Preferences))


def _coerce(name: str, value: Any) -> Any:
    default = getattr(_DEFAULTS, name)
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    if isinstance(default, int):
        result = int(value)
        if name == "reminder_hour":
            return max(0, min(23, result))
        return max(0, result)
    return str(value)


def load_preferences(path: Path | None = None) -> Preferences:
    """Load preferences, falling back to defaults for anything missing or broken."""
    if path is None:
        path = preferences_path()
    try:
        loaded = yaml.safe_load(read_text(path))
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Could not read preferences from %s: %s", path, exc)
        return Preferences()
    return Preferences.from_dict(loaded if isinstance(loaded, dict) else {})


def save_preferences(prefs: Preferences, path: Path | None = None) -> None:
    if path is None:
        path = preferences_path()
    atomic_write(path, yaml.safe_dump(prefs.to_dict(), default_flow_style=False, sort_keys=False))


def get_preference(key: str, path: Path | None = None) -> Any:
    prefs = load_preferences(path)
    if key not in PREFERENCE_KEYS:
        raise KeyError(f"Unknown preference: {key}")
    return getattr(prefs, key)


def set_preference(key: str, value: Any, path: Path | None = None) -> Preferences:
    prefs = load_preferences(path)
    if key not in PREFERENCE_KEYS:
        raise KeyError(f"Unknown preference: {key}")
    setattr(prefs, key, _coerce(key, value))
    save_preferences(prefs, path)
    return prefs


def user_timezone(prefs: Preferences | None = None) -> ZoneInfo:
    """The user's timezone, defaulting to UTC."""
    name = (prefs or _DEFAULTS).timezone
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r; using UTC", name)
        return ZoneInfo("UTC")


def local_today(now: datetime, prefs: Preferences | None = None) -> date:
    """Calendar day of *now* in the user's timezone."""
    return to_calendar_day(as_utc(now), user_timezone(prefs))
