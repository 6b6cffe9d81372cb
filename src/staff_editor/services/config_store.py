"""
Persisted Settings Store.

Small key/value store for settings that must survive restarts, such as the
sheet web app URL chosen by the user.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# Storage key of the user's chosen sheet web app URL
SHEET_URL_KEY = "sk_sri_aman_sheet_url"

SETTINGS_FILENAME = "settings.json"


@runtime_checkable
class ConfigStore(Protocol):
    """Protocol for a durable string key/value store."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class InMemoryConfigStore:
    """Process-local store, used in tests and for throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFileConfigStore:
    """
    Store backed by a JSON file.

    Each write replaces the settings file atomically.

    Args:
        path: Settings file, or a directory to hold settings.json.
    """

    def __init__(self, path: Path | str) -> None:
        path = Path(path)
        if path.suffix != ".json":
            path = path / SETTINGS_FILENAME
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read settings from {self._path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed settings file {self._path}")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, data: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self._path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)
        logger.debug(f"Stored setting '{key}' in {self._path}")

    def remove(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)
            logger.debug(f"Removed setting '{key}' from {self._path}")
