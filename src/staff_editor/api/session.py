"""
Session API.

JSON endpoints driving the staff editing session, plus the CSV export.
The single StaffSession lives in app.state.staff_session.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from pydantic import BaseModel, Field

from staff_editor.core.sheet import StaffRecord
from staff_editor.services.staff_session import (
    MSG_SAVE_FAILED,
    MSG_UNPERSISTED,
    AlreadyLoggedInError,
    NotLoggedInError,
    ReadOnlyFieldError,
    SaveInProgressError,
    SaveOutcome,
    StaffNotFoundError,
    StaffSession,
    UnknownFieldError,
    UnsavedChangesError,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Session"])

EXPORT_FILENAME = "sk_sri_aman_staff_updated.csv"
EXPORT_MEDIA_TYPE = "text/csv; charset=utf-8"


# -----------------------------------------------------------------------------
# Schemas
# -----------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Login by identity card number (free-form; non-digits are ignored)."""

    identifier: str = Field(..., examples=["840110-07-5583"])


class EditRequest(BaseModel):
    """Change one field of the open record."""

    field: str
    value: str


class ConnectRequest(BaseModel):
    """Sheet web app URL."""

    url: str


class RecordResponse(BaseModel):
    """The open record and its edit state."""

    record: dict[str, str]
    dirty: bool
    save_state: str


class SaveResponse(BaseModel):
    """Outcome of a save."""

    outcome: str
    persisted: bool
    message: str = ""
    save_state: str


class StatusResponse(BaseModel):
    """Session and connection status."""

    logged_in: bool
    dirty: bool
    save_state: str
    is_connected: bool
    is_connecting: bool
    sheet_url: str
    roster_size: int
    connection_error: str
    active_bil: str | None = None
    active_name: str | None = None
    events: list[str] = Field(default_factory=list)


class ConnectionResponse(BaseModel):
    """Result of connecting to or disconnecting from the sheet."""

    is_connected: bool
    sheet_url: str
    roster_size: int
    message: str = ""


class LogoutResponse(BaseModel):
    logged_in: bool


# -----------------------------------------------------------------------------
# Dependencies
# -----------------------------------------------------------------------------


def get_staff_session(request: Request) -> StaffSession:
    """Get the StaffSession from app state."""
    session = getattr(request.app.state, "staff_session", None)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Session not initialized",
        )
    return session


SessionDep = Annotated[StaffSession, Depends(get_staff_session)]


def _event_log(request: Request) -> list[str]:
    context = getattr(request.app.state, "context", None)
    return context.get_event_log() if context is not None else []


def _log_event(request: Request, message: str, level: str = "INFO") -> None:
    context = getattr(request.app.state, "context", None)
    if context is not None:
        context.log_event(message, level)


def _record_response(session: StaffSession, record: StaffRecord) -> RecordResponse:
    return RecordResponse(
        record=record.to_dict(),
        dirty=session.is_dirty,
        save_state=str(session.save_state),
    )


def _require_record(session: StaffSession) -> StaffRecord:
    record = session.active_record
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not logged in",
        )
    return record


# -----------------------------------------------------------------------------
# Endpoints
# -----------------------------------------------------------------------------


@router.get("/status", response_model=StatusResponse)
async def get_status(request: Request, session: SessionDep) -> StatusResponse:
    """Current session and sheet connection status, with recent app events."""
    snapshot = session.status()
    return StatusResponse(
        logged_in=snapshot.logged_in,
        dirty=snapshot.dirty,
        save_state=str(snapshot.save_state),
        is_connected=snapshot.is_connected,
        is_connecting=snapshot.is_connecting,
        sheet_url=snapshot.sheet_url,
        roster_size=snapshot.roster_size,
        connection_error=snapshot.connection_error,
        active_bil=snapshot.active_bil,
        active_name=snapshot.active_name,
        events=_event_log(request),
    )


@router.post("/session/login", response_model=RecordResponse)
async def login(payload: LoginRequest, session: SessionDep) -> RecordResponse:
    """Open the record matching an identity card number."""
    try:
        record = session.login(payload.identifier)
    except StaffNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except AlreadyLoggedInError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return _record_response(session, record)


@router.get("/session/record", response_model=RecordResponse)
async def get_record(session: SessionDep) -> RecordResponse:
    """The open record, including unsaved edits."""
    return _record_response(session, _require_record(session))


@router.patch("/session/record", response_model=RecordResponse)
async def edit_record(payload: EditRequest, session: SessionDep) -> RecordResponse:
    """Change one field of the open record (not saved until /session/save)."""
    try:
        record = session.edit(payload.field, payload.value)
    except NotLoggedInError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    except (UnknownFieldError, ReadOnlyFieldError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return _record_response(session, record)


@router.post("/session/save", response_model=SaveResponse)
async def save_record(session: SessionDep) -> SaveResponse:
    """
    Save the open record.

    A save without a sheet connection succeeds locally but answers
    outcome "unpersisted" and persisted=false with a warning message.
    """
    try:
        outcome = await session.save()
    except NotLoggedInError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    except SaveInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    if outcome is SaveOutcome.FAILED:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=MSG_SAVE_FAILED)

    return SaveResponse(
        outcome=str(outcome),
        persisted=outcome.persisted,
        message=MSG_UNPERSISTED if outcome is SaveOutcome.UNPERSISTED else "",
        save_state=str(session.save_state),
    )


@router.post("/session/discard", response_model=RecordResponse | LogoutResponse)
async def discard_changes(session: SessionDep) -> RecordResponse | LogoutResponse:
    """Drop unsaved edits by reloading the roster; stays logged in."""
    try:
        record = await session.discard()
    except NotLoggedInError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    if record is None:
        return LogoutResponse(logged_in=False)
    return _record_response(session, record)


@router.post("/session/logout", response_model=LogoutResponse)
async def logout(
    session: SessionDep,
    confirm: Annotated[bool, Query(description="Discard unsaved edits")] = False,
) -> LogoutResponse:
    """Close the open record. Unsaved edits need confirm=true."""
    try:
        session.logout(confirmed=confirm)
    except UnsavedChangesError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return LogoutResponse(logged_in=False)


@router.put("/connection", response_model=ConnectionResponse)
async def connect_sheet(
    request: Request, payload: ConnectRequest, session: SessionDep
) -> ConnectionResponse:
    """Remember a sheet web app URL and load the roster from it."""
    try:
        connected = await session.connect(payload.url)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if connected:
        _log_event(request, f"Sheet connected: {len(session.roster)} record(s)", "SUCCESS")
    else:
        _log_event(request, "Sheet connection failed; roster unchanged", "WARNING")
    return ConnectionResponse(
        is_connected=connected,
        sheet_url=session.sheet_url,
        roster_size=len(session.roster),
        message=session.connection_error,
    )


@router.delete("/connection", response_model=ConnectionResponse)
async def disconnect_sheet(request: Request, session: SessionDep) -> ConnectionResponse:
    """Forget the sheet URL and revert to the packaged roster."""
    session.disconnect()
    _log_event(request, "Sheet disconnected; using fallback roster")
    return ConnectionResponse(
        is_connected=False,
        sheet_url="",
        roster_size=len(session.roster),
    )


@router.get("/export")
async def export_csv(session: SessionDep) -> Response:
    """Download the full roster as CSV."""
    content = session.export_csv()
    logger.info(f"Exported roster of {len(session.roster)} record(s)")
    return Response(
        content=content,
        media_type=EXPORT_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )
