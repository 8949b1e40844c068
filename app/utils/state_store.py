"""
Persisted key/value state for AutoConvert.

Provides:
- Thread-safe get/set on a JSON document
- Atomic writes (temp file + replace)
- Typed accessors for the keys the service persists
"""

import json
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger
from pydantic import ValidationError

from app.models.schemas import ConversionSettings


class StateStore:
    """JSON file backed key/value store."""

    ENABLED = "enabled"
    WATCH_FOLDER_PATH = "watch_folder_path"
    CONVERSION_SETTINGS = "conversion_settings"
    FOLDER_BOOKMARK = "folder_bookmark"

    def __init__(self, path: Path):
        """Initialize store and load any existing document."""
        self.path = Path(path)
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable state file {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed state file {self.path}")
            return {}
        return data

    def _dump(self) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(json.dumps(self._data, indent=2, sort_keys=True), encoding="utf-8")
        tmp_path.replace(self.path)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value
            self._dump()

    def delete(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._dump()

    # Typed accessors -----------------------------------------------------------------

    @property
    def enabled(self) -> bool:
        return bool(self.get(self.ENABLED, False))

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self.set(self.ENABLED, bool(value))

    @property
    def watch_folder_path(self) -> Optional[str]:
        return self.get(self.WATCH_FOLDER_PATH)

    @watch_folder_path.setter
    def watch_folder_path(self, value: Optional[str]) -> None:
        if value is None:
            self.delete(self.WATCH_FOLDER_PATH)
        else:
            self.set(self.WATCH_FOLDER_PATH, str(value))

    def get_conversion_settings(self) -> ConversionSettings:
        """Return stored settings, or defaults when absent or invalid."""
        raw = self.get(self.CONVERSION_SETTINGS)
        if raw is None:
            return ConversionSettings()

        try:
            return ConversionSettings.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Invalid stored conversion settings, using defaults: {e}")
            return ConversionSettings()

    def save_conversion_settings(self, settings: ConversionSettings) -> None:
        self.set(self.CONVERSION_SETTINGS, settings.model_dump())

    def get_folder_bookmark(self) -> Optional[str]:
        return self.get(self.FOLDER_BOOKMARK)

    def save_folder_bookmark(self, data: str) -> None:
        self.set(self.FOLDER_BOOKMARK, data)

    def set_tool_exists(self, tool: str, exists: bool) -> None:
        self.set(f"{tool}_exists", bool(exists))

    def tool_exists(self, tool: str) -> bool:
        return bool(self.get(f"{tool}_exists", False))
