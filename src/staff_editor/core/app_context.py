"""
AppContext - Dependency Injection Container.
Implements the Dependency Inversion Principle (DIP).
"""
from typing import Any, Dict, Optional
from dataclasses import dataclass, field
from pathlib import Path
import os
import logging

from dotenv import load_dotenv


# Deployed Apps Script web app of the SK Sri Aman staff sheet
DEFAULT_SHEET_URL = (
    "https://script.google.com/macros/s/"
    "AKfycbwUEynctnLs0FtwcCSYqfSIyDbHONbFaqJYXbBD5CYwf_7jsxUheQr8O7yAjAKDDZOpyA/exec"
)

# Packaged fallback roster
DEFAULT_FALLBACK_CSV = Path(__file__).parent.parent / "data" / "initial_staff.csv"


@dataclass
class ConfigLoader:
    """Configuration loader from environment variables."""

    _config: Dict[str, Any] = field(default_factory=dict)

    def load(self, env_path: Optional[str] = None) -> None:
        """Load configuration from .env file."""
        if env_path:
            load_dotenv(env_path)
        else:
            # Try to find .env in the working directory
            env_file = Path.cwd() / ".env"
            if env_file.exists():
                load_dotenv(env_file)

        self._config = {
            "server": {
                "host": os.getenv("SERVER_HOST", "127.0.0.1"),
                "port": int(os.getenv("SERVER_PORT", "8000")),
            },
            "app": {
                "debug": os.getenv("APP_DEBUG", "false").lower() == "true",
                "log_level": os.getenv("APP_LOG_LEVEL", "INFO"),
                "data_dir": os.getenv(
                    "STAFF_EDITOR_DATA_DIR", str(Path.home() / ".staff_editor")
                ),
            },
            "sheet": {
                "default_url": os.getenv("SHEET_DEFAULT_URL", DEFAULT_SHEET_URL),
                "timeout": float(os.getenv("SHEET_TIMEOUT", "30")),
                "fallback_csv_path": os.getenv("FALLBACK_CSV_PATH", str(DEFAULT_FALLBACK_CSV)),
            },
        }

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dot notation key."""
        keys = key.split('.')
        value = self._config
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def read_fallback_csv(self) -> str:
        """Read the fallback roster CSV text. Missing file yields ''."""
        path = Path(self.get("sheet.fallback_csv_path", str(DEFAULT_FALLBACK_CSV)))
        if not path.exists():
            logging.getLogger(__name__).warning(f"Fallback CSV not found: {path}")
            return ""
        return path.read_text(encoding="utf-8-sig")


class AppContext:
    """
    Application Context - Central Dependency Injection Container.
    """

    def __init__(self, config: Optional[ConfigLoader] = None) -> None:
        self._logger = logging.getLogger(__name__)
        if config is None:
            config = ConfigLoader()
            config.load()
        self._config_loader = config

        # Event log for the status endpoint
        self._event_log: list[str] = []
        self._max_log_entries: int = 500

    @property
    def config(self) -> ConfigLoader:
        """Access the configuration loader."""
        return self._config_loader

    def log_event(self, message: str, level: str = "INFO") -> None:
        """Log an event to both logger and event log."""
        from datetime import datetime
        timestamp = datetime.now().strftime("%H:%M:%S")
        formatted = f"[{timestamp}] [{level}] {message}"

        self._event_log.append(formatted)
        if len(self._event_log) > self._max_log_entries:
            self._event_log = self._event_log[-self._max_log_entries:]

        self._logger.info(message)

    def get_event_log(self) -> list[str]:
        """Get the current event log."""
        return self._event_log.copy()
