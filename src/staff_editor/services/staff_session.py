"""
Staff Session Service.

Owns the in-memory roster and the single record being edited, and
reconciles local edits with the remote staff sheet.

Lifecycle:
    initialize()  -> roster from fallback CSV, then from the sheet if a URL is known
    login(ic)     -> active record = copy of the first roster match
    edit(f, v)    -> active record changes, roster untouched, dirty = True
    save()        -> sheet update (or local-only merge when disconnected)
    discard()     -> roster reloaded from its source, unsaved edits dropped
    logout()      -> active record cleared (needs confirmation when dirty)

All mutation happens on the event loop between awaits; the only awaits are
the sheet fetch and the sheet save.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from staff_editor.core.sheet import (
    SheetClient,
    SheetSyncError,
    StaffRecord,
    decode_csv,
    encode_csv,
    normalize_identity_number,
)
from staff_editor.services.config_store import SHEET_URL_KEY, ConfigStore

logger = logging.getLogger(__name__)

# How long a successful save reports "saved" before reading back as "idle"
SAVED_DISPLAY_SECONDS = 3.0

# User-facing notices (the staff sheet is used by a Malay-medium school)
MSG_NOT_FOUND = "No Kad Pengenalan tidak dijumpai."
MSG_CONNECTION_FAILED = "Gagal menyambung ke Google Sheet. Sila semak sambungan internet."
MSG_EMPTY_SHEET = "Data kosong."
MSG_SAVE_FAILED = (
    "Gagal menyimpan ke Google Sheet. Sila semak sambungan internet atau tetapan skrip."
)
MSG_UNPERSISTED = (
    "AMARAN: Data TIDAK disimpan ke pangkalan data kerana tiada sambungan Google Sheet. "
    "Sila 'Download CSV' untuk simpanan manual, atau setkan Google Sheet URL."
)
MSG_UNSAVED_CHANGES = (
    "Anda mempunyai perubahan yang belum disimpan. Adakah anda pasti mahu log keluar?"
)


class SaveState(str, Enum):
    """Save indicator of the active record."""

    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


class SaveOutcome(str, Enum):
    """
    Result of save().

    - SAVED: the sheet web app confirmed the update.
    - UNPERSISTED: no sheet connection; the roster was updated in memory
      only and will be lost on reload unless exported.
    - FAILED: the sheet rejected the update or could not be reached.
    """

    SAVED = "saved"
    UNPERSISTED = "unpersisted"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value

    @property
    def persisted(self) -> bool:
        return self is SaveOutcome.SAVED


# =============================================================================
# Exceptions
# =============================================================================


class SessionError(Exception):
    """Base exception for session errors."""
    pass


class StaffNotFoundError(SessionError):
    """Raised when no roster record matches the identity number."""

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(MSG_NOT_FOUND)


class AlreadyLoggedInError(SessionError):
    """Raised when login() is called while a record is active."""
    pass


class NotLoggedInError(SessionError):
    """Raised when an operation needs an active record and there is none."""
    pass


class UnknownFieldError(SessionError):
    """Raised when editing a field that is not part of StaffRecord."""
    pass


class ReadOnlyFieldError(SessionError):
    """Raised when editing the primary key or the identity number."""
    pass


class UnsavedChangesError(SessionError):
    """Raised when leaving a record with unsaved edits without confirmation."""

    def __init__(self) -> None:
        super().__init__(MSG_UNSAVED_CHANGES)


class SaveInProgressError(SessionError):
    """Raised when save() is called while another save is pending."""
    pass


@dataclass
class SessionStatus:
    """Snapshot of the session for status displays."""

    logged_in: bool
    dirty: bool
    save_state: SaveState
    is_connected: bool
    is_connecting: bool
    sheet_url: str
    roster_size: int
    connection_error: str
    active_bil: Optional[str] = None
    active_name: Optional[str] = None


class StaffSession:
    """
    Session/reconciliation controller for one editing user.

    Args:
        sheet_client: Remote sheet client.
        config_store: Durable store for the chosen sheet URL.
        fallback_text: CSV text used when the sheet is not reachable.
        default_url: Sheet URL used when none is stored.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        sheet_client: SheetClient,
        config_store: ConfigStore,
        fallback_text: str = "",
        default_url: str = "",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = sheet_client
        self._store = config_store
        self._fallback_text = fallback_text
        self._default_url = default_url
        self._clock = clock

        self._roster: List[StaffRecord] = []
        self._active: Optional[StaffRecord] = None
        self._dirty = False
        self._save_state = SaveState.IDLE
        self._saved_at: Optional[float] = None
        self._save_pending = False

        self._sheet_url = ""
        self._is_connected = False
        self._is_connecting = False
        self._connection_error = ""

    # =========================================================================
    # State accessors
    # =========================================================================

    @property
    def roster(self) -> List[StaffRecord]:
        """Copy of the current roster."""
        return list(self._roster)

    @property
    def active_record(self) -> Optional[StaffRecord]:
        return self._active

    @property
    def is_logged_in(self) -> bool:
        return self._active is not None

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    @property
    def save_state(self) -> SaveState:
        if (
            self._save_state is SaveState.SAVED
            and self._saved_at is not None
            and self._clock() - self._saved_at >= SAVED_DISPLAY_SECONDS
        ):
            self._save_state = SaveState.IDLE
            self._saved_at = None
        return self._save_state

    @property
    def sheet_url(self) -> str:
        return self._sheet_url

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    @property
    def connection_error(self) -> str:
        return self._connection_error

    def status(self) -> SessionStatus:
        return SessionStatus(
            logged_in=self.is_logged_in,
            dirty=self._dirty,
            save_state=self.save_state,
            is_connected=self._is_connected,
            is_connecting=self._is_connecting,
            sheet_url=self._sheet_url,
            roster_size=len(self._roster),
            connection_error=self._connection_error,
            active_bil=self._active.BIL if self._active else None,
            active_name=self._active.NAMA if self._active else None,
        )

    # =========================================================================
    # Roster loading and sheet connection
    # =========================================================================

    def _decode_fallback(self) -> List[StaffRecord]:
        return decode_csv(self._fallback_text)

    async def initialize(self) -> None:
        """Load the fallback roster, then the sheet (stored URL or default)."""
        self._roster = self._decode_fallback()
        logger.info(f"Loaded {len(self._roster)} record(s) from fallback CSV")

        stored_url = self._store.get(SHEET_URL_KEY)
        self._sheet_url = stored_url or self._default_url

        if self._sheet_url:
            await self.load_sheet(self._sheet_url)

    async def load_sheet(self, url: str) -> bool:
        """
        Replace the roster with the sheet's rows.

        An empty sheet counts as a failure. On failure the roster keeps its
        last known good contents and the session is marked disconnected.

        Returns:
            True if the roster was replaced.
        """
        self._is_connecting = True
        self._connection_error = ""
        try:
            roster = await self._client.fetch_all(url)
        except SheetSyncError as e:
            logger.error(f"Sheet load failed: {e}")
            self._connection_error = MSG_CONNECTION_FAILED
            self._is_connected = False
            return False
        finally:
            self._is_connecting = False

        if not roster:
            logger.warning("Sheet returned no staff rows; keeping current roster")
            self._connection_error = f"{MSG_CONNECTION_FAILED} ({MSG_EMPTY_SHEET})"
            self._is_connected = False
            return False

        self._roster = roster
        self._is_connected = True
        logger.info(f"Connected to sheet; roster has {len(roster)} record(s)")
        return True

    async def connect(self, url: str) -> bool:
        """
        Remember a sheet URL and load from it.

        Raises:
            ValueError: If url is blank.
        """
        url = (url or "").strip()
        if not url:
            raise ValueError("Sheet URL is required")

        self._store.set(SHEET_URL_KEY, url)
        self._sheet_url = url
        return await self.load_sheet(url)

    def disconnect(self) -> None:
        """Forget the sheet URL and fall back to the packaged roster."""
        self._store.remove(SHEET_URL_KEY)
        self._sheet_url = ""
        self._is_connected = False
        self._connection_error = ""
        self._roster = self._decode_fallback()
        logger.info("Disconnected from sheet; roster reverted to fallback CSV")

    async def reload(self) -> bool:
        """
        Reload the roster from its source of truth.

        Returns:
            True if the roster now reflects the source (always True offline).
        """
        if self._is_connected and self._sheet_url:
            return await self.load_sheet(self._sheet_url)
        self._roster = self._decode_fallback()
        return True

    # =========================================================================
    # Login / edit / save / discard / logout
    # =========================================================================

    def _require_active(self) -> StaffRecord:
        if self._active is None:
            raise NotLoggedInError("No staff record is open")
        return self._active

    def find_by_identity(self, identifier: str) -> Optional[StaffRecord]:
        """First roster record whose identity number matches (digits only)."""
        normalized = normalize_identity_number(identifier)
        if not normalized:
            return None
        for record in self._roster:
            if record.identity_number == normalized:
                return record
        return None

    def login(self, identifier: str) -> StaffRecord:
        """
        Open the record whose identity number matches identifier.

        Raises:
            AlreadyLoggedInError: If a record is already open.
            StaffNotFoundError: If nothing matches. State is unchanged.
        """
        if self._active is not None:
            raise AlreadyLoggedInError("Log out before opening another record")

        record = self.find_by_identity(identifier)
        if record is None:
            logger.info("Login failed: identity number not found")
            raise StaffNotFoundError(identifier)

        self._active = record.model_copy()
        self._dirty = False
        self._save_state = SaveState.IDLE
        self._saved_at = None
        logger.info(f"Opened record BIL {record.BIL}")
        return self._active

    def edit(self, field_name: str, value: str) -> StaffRecord:
        """
        Change one field of the active record.

        Raises:
            NotLoggedInError: If no record is open.
            UnknownFieldError: If field_name is not a StaffRecord field.
            ReadOnlyFieldError: For BIL and NO_KAD_PENGENALAN.
        """
        active = self._require_active()
        if field_name not in StaffRecord.model_fields:
            raise UnknownFieldError(f"Unknown field: {field_name}")
        if field_name in StaffRecord.READ_ONLY_FIELDS:
            raise ReadOnlyFieldError(f"Field {field_name} cannot be edited")

        self._active = active.with_value(field_name, str(value))
        self._dirty = True
        self._save_state = SaveState.IDLE
        self._saved_at = None
        return self._active

    def _merge(self, record: StaffRecord) -> None:
        """Replace roster entries sharing record's BIL."""
        if not any(r.BIL == record.BIL for r in self._roster):
            logger.warning(f"BIL {record.BIL} not in roster; nothing merged")
        self._roster = [record if r.BIL == record.BIL else r for r in self._roster]

    async def save(self) -> SaveOutcome:
        """
        Save the active record.

        Connected: the sheet update must succeed before the roster changes.
        Disconnected: the roster is updated in memory and UNPERSISTED is
        returned so the caller can warn that nothing was stored.

        Raises:
            NotLoggedInError: If no record is open.
            SaveInProgressError: If a save is already pending.
        """
        snapshot = self._require_active()
        if self._save_pending:
            raise SaveInProgressError("A save is already in progress")

        if not (self._is_connected and self._sheet_url):
            self._merge(snapshot)
            self._dirty = False
            self._save_state = SaveState.IDLE
            self._saved_at = None
            logger.warning(f"BIL {snapshot.BIL} updated in memory only (no sheet connection)")
            return SaveOutcome.UNPERSISTED

        self._save_state = SaveState.SAVING
        self._save_pending = True
        success = False
        try:
            success = await self._client.save_one(self._sheet_url, snapshot)
        finally:
            self._save_pending = False
            if not success:
                self._save_state = SaveState.ERROR

        if not success:
            logger.error(f"Save of BIL {snapshot.BIL} failed; edits kept")
            return SaveOutcome.FAILED

        self._merge(snapshot)
        # Edits made while the request was pending stay dirty
        if self._active == snapshot:
            self._dirty = False
        self._save_state = SaveState.SAVED
        self._saved_at = self._clock()
        return SaveOutcome.SAVED

    async def discard(self) -> Optional[StaffRecord]:
        """
        Drop unsaved edits by reloading the roster; stay logged in.

        The active record is re-read from the fresh roster. If it is no
        longer there the session is logged out.

        Returns:
            The refreshed active record, or None if it disappeared.
        """
        active = self._require_active()
        await self.reload()

        refreshed = self.find_by_identity(active.NO_KAD_PENGENALAN)
        self._active = refreshed.model_copy() if refreshed else None
        self._dirty = False
        self._save_state = SaveState.IDLE
        self._saved_at = None

        if refreshed is None:
            logger.warning(f"BIL {active.BIL} no longer in roster after reload; logged out")
        return self._active

    def logout(self, confirmed: bool = False) -> None:
        """
        Close the active record.

        Raises:
            UnsavedChangesError: If there are unsaved edits and the caller
                has not confirmed. Nothing changes in that case.
        """
        if self._dirty and not confirmed:
            raise UnsavedChangesError()

        if self._active is not None:
            logger.info(f"Closed record BIL {self._active.BIL}")
        self._active = None
        self._dirty = False
        self._save_state = SaveState.IDLE
        self._saved_at = None

    # =========================================================================
    # Export
    # =========================================================================

    def export_csv(self) -> str:
        """Full roster as CSV in the sheet layout."""
        return encode_csv(self._roster)
