"""
Services - session controller and persisted settings.
"""

from staff_editor.services.config_store import (
    SHEET_URL_KEY,
    ConfigStore,
    InMemoryConfigStore,
    JsonFileConfigStore,
)
from staff_editor.services.staff_session import (
    SAVED_DISPLAY_SECONDS,
    AlreadyLoggedInError,
    NotLoggedInError,
    ReadOnlyFieldError,
    SaveInProgressError,
    SaveOutcome,
    SaveState,
    SessionError,
    SessionStatus,
    StaffNotFoundError,
    StaffSession,
    UnknownFieldError,
    UnsavedChangesError,
)

__all__ = [
    "SHEET_URL_KEY",
    "ConfigStore",
    "InMemoryConfigStore",
    "JsonFileConfigStore",
    "SAVED_DISPLAY_SECONDS",
    "AlreadyLoggedInError",
    "NotLoggedInError",
    "ReadOnlyFieldError",
    "SaveInProgressError",
    "SaveOutcome",
    "SaveState",
    "SessionError",
    "SessionStatus",
    "StaffNotFoundError",
    "StaffSession",
    "UnknownFieldError",
    "UnsavedChangesError",
]
