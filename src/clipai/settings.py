import json
import logging
import os
from pathlib import Path

from clipai.config import DEFAULT_GLOBAL_SHORTCUT, DEFAULT_RETENTION_DAYS, SETTINGS_PATH

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    "global_shortcut": DEFAULT_GLOBAL_SHORTCUT,
    "transparency": True,
    "openai_api_key": None,
    "retention_days": DEFAULT_RETENTION_DAYS,
}


class SettingsManager:
    """Key-value user settings persisted as JSON."""

    def __init__(self, path: str | Path | None = None):
        self._path = Path(path) if path else SETTINGS_PATH
        self._settings = self._load()

    def _load(self) -> dict:
        try:
            if self._path.exists():
                loaded = json.loads(self._path.read_text(encoding="utf-8"))
                if isinstance(loaded, dict):
                    return {**DEFAULT_SETTINGS, **loaded}
                logger.error("Ignoring settings file %s: not a JSON object", self._path)
        except (OSError, ValueError):
            logger.exception("Failed to load settings from %s", self._path)
        return dict(DEFAULT_SETTINGS)

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(self._settings, indent=2), encoding="utf-8")
        logger.info("Settings saved to %s", self._path)

    def get_settings(self) -> dict:
        return dict(self._settings)

    def get_global_shortcut(self) -> str:
        return self._settings["global_shortcut"]

    def set_global_shortcut(self, shortcut: str) -> None:
        self._settings["global_shortcut"] = shortcut
        self._save()

    def get_transparency(self) -> bool:
        return bool(self._settings["transparency"])

    def set_transparency(self, enabled: bool) -> None:
        self._settings["transparency"] = bool(enabled)
        self._save()

    def get_openai_api_key(self) -> str | None:
        return self._settings.get("openai_api_key") or os.environ.get("OPENAI_API_KEY") or None

    def set_openai_api_key(self, api_key: str | None) -> None:
        self._settings["openai_api_key"] = (api_key or "").strip() or None
        self._save()

    def get_retention_days(self) -> int:
        value = self._settings.get("retention_days")
        if isinstance(value, bool) or not isinstance(value, int):
            return DEFAULT_RETENTION_DAYS
        return value

    def set_retention_days(self, days: int) -> None:
        """Store the retention period. Zero or less disables archival."""
        if isinstance(days, bool) or not isinstance(days, int):
            raise ValueError(f"retention_days must be an integer, got {days!r}")
        self._settings["retention_days"] = days
        self._save()
        logger.info("Retention period set to %d days", days)
