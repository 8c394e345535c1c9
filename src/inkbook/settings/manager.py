"""Settings file management with validation and change notifications."""

from __future__ import annotations

import logging
import os
import sys
from copy import deepcopy
from pathlib import Path
from typing import Any

from jsonschema import ValidationError as SchemaValidationError
from PySide6.QtCore import QObject, Signal

from ..config import APP_NAME, SETTINGS_PATH_ENV
from ..errors import SettingsLoadError, SettingsValidationError
from ..listcore.managed_list import ListSettings
from ..utils.jsonio import read_json, write_json
from .schema import DEFAULT_SETTINGS, merge_with_defaults, resolve_list_section

_logger = logging.getLogger(__name__)


def default_settings_path() -> Path:
    """Return the settings.json location, honouring ``INKBOOK_SETTINGS``."""

    override = os.environ.get(SETTINGS_PATH_ENV)
    if override:
        return Path(override).expanduser()
    if os.name == "nt":
        base = os.environ.get("APPDATA")
        if base:
            return Path(base) / APP_NAME / "settings.json"
        return Path.home() / "AppData" / "Roaming" / APP_NAME / "settings.json"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_NAME / "settings.json"
    base = os.environ.get("XDG_CONFIG_HOME")
    if base:
        return Path(base) / APP_NAME / "settings.json"
    return Path.home() / ".config" / APP_NAME / "settings.json"


class SettingsManager(QObject):
    """Load, validate and persist user settings for the application."""

    settingsChanged = Signal(str, object)

    def __init__(self, path: Path | None = None) -> None:
        super().__init__()
        self._path = Path(path) if path is not None else None
        self._data: dict[str, Any] = deepcopy(DEFAULT_SETTINGS)

    @property
    def path(self) -> Path:
        if self._path is None:
            self._path = default_settings_path()
        return self._path

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def load(self) -> None:
        """Load the settings JSON from disk, creating defaults if missing."""

        path = self.path
        payload = None
        if path.exists():
            try:
                payload = read_json(path)
            except (OSError, ValueError) as exc:
                raise SettingsLoadError(f"Cannot read {path}: {exc}") from exc
        try:
            self._data = merge_with_defaults(payload)
        except SchemaValidationError as exc:
            raise SettingsValidationError(exc.message) from exc
        _logger.debug("Loaded settings from %s", path)
        self._write()

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return the value for *key*, supporting dotted access for nested keys."""

        target = self._data
        parts = key.split(".")
        for index, part in enumerate(parts):
            if not isinstance(target, dict) or part not in target:
                return default
            value = target[part]
            if index == len(parts) - 1:
                return value
            target = value
        return default

    def set(self, key: str, value: Any) -> None:
        """Update *key* with *value*, validate, persist and notify."""

        if isinstance(value, Path):
            value = str(value)
        candidate = deepcopy(self._data)
        parts = key.split(".")
        target: dict[str, Any] = candidate
        for part in parts[:-1]:
            branch = target.get(part)
            if not isinstance(branch, dict):
                branch = {}
                target[part] = branch
            target = branch
        target[parts[-1]] = value
        try:
            self._data = merge_with_defaults(candidate)
        except SchemaValidationError as exc:
            raise SettingsValidationError(f"{key}: {exc.message}") from exc
        self._write()
        self.settingsChanged.emit(key, value)

    def list_settings(self, name: str) -> ListSettings:
        """Effective list settings for the list called *name*."""

        return ListSettings.from_mapping(resolve_list_section(self._data, name))

    # ------------------------------------------------------------------
    # Internal utilities
    # ------------------------------------------------------------------
    def _write(self) -> None:
        write_json(self.path, self._data)


__all__ = ["SettingsManager", "default_settings_path"]
