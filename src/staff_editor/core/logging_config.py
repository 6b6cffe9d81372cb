"""
Logging Configuration Module.

Provides centralized logging setup with rotating file handler.
Includes automatic masking of personal data (identity card numbers,
phone numbers) and of secrets in sheet web app URLs.
"""

import logging
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional
import sys


# --- Constants ---
LOG_FILENAME = "staff_editor.log"
MAX_BYTES = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# --- Sensitive Data Patterns ---
SENSITIVE_PATTERNS = [
    # Apps Script deployment id (/macros/s/<id>/exec)
    (
        re.compile(r"(script\.google\.com/macros/s/)([A-Za-z0-9\-_]{8})[A-Za-z0-9\-_]+"),
        r"\1\2***"
    ),
    # Malaysian identity card number, with or without dashes (keep last 4)
    (
        re.compile(r"\b\d{6}-?\d{2}-?(\d{4})\b"),
        r"******-**-\1"
    ),
    # Phone numbers (01x-xxxxxxx)
    (
        re.compile(r"\b(01\d)-?\d{3,4}-?(\d{4})\b"),
        r"\1-***-\2"
    ),
    # Key-value pairs with sensitive keys (password=xxx, token: xxx, etc.)
    (
        re.compile(
            r"(password|secret|token|api_key|apikey|authorization|cookie|credential)"
            r"\s*[:=]\s*['\"]?([^'\"\s&]+)['\"]?",
            re.IGNORECASE
        ),
        r"\1=***"
    ),
]


class SensitiveDataFormatter(logging.Formatter):
    """
    Custom log formatter that masks sensitive data.

    Automatically detects and masks:
    - Identity card numbers
    - Phone numbers
    - Apps Script deployment ids
    - Passwords, tokens, secrets
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record, masking any sensitive data."""
        masked_msg = super().format(record)
        for pattern, replacement in SENSITIVE_PATTERNS:
            masked_msg = pattern.sub(replacement, masked_msg)
        return masked_msg


def get_log_path(log_dir: Optional[Path] = None) -> Path:
    """
    Get the path for log files.

    Defaults to a logs directory under the current working directory.
    """
    logs_dir = log_dir or (Path.cwd() / "logs")
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir / LOG_FILENAME


def setup_logging(log_level: int = logging.INFO, log_dir: Optional[Path] = None) -> None:
    """
    Configure application logging with rotation.

    Args:
        log_level: The logging level (default: logging.INFO).
        log_dir: Directory for the rotating log file.
    """
    log_file_path = get_log_path(log_dir)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear existing handlers to avoid duplicates
    root_logger.handlers.clear()

    formatter = SensitiveDataFormatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    # --- File Handler (Rotating) ---
    file_handler = RotatingFileHandler(
        filename=str(log_file_path),
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # --- Console Handler ---
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    root_logger.info(f"Logging initialized. Log file: {log_file_path}")

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
