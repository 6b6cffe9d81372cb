"""
Staff Sheet HTTP Client.

Talks to the Google Apps Script web app that fronts the staff spreadsheet:

    GET  <url>  -> JSON array of row objects keyed by (approximate) column titles
    POST <url>  -> {"action": "update", "data": {...}, "keyMap": {...}}
                   answered with {"status": "success"} on success

Design Principles:
    SheetClient requires httpx.AsyncClient via EXPLICIT dependency injection.
    The HTTP client lifecycle is managed by the caller.

    Usage in FastAPI routes / app lifespan:
        client = SheetClient(http_client=request.app.state.http_client)
"""

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from staff_editor.core.sheet.columns import HeaderMap, first_line, get_header_map
from staff_editor.core.sheet.exceptions import SheetConnectionError, SheetFormatError
from staff_editor.core.sheet.models import StaffRecord

logger = logging.getLogger(__name__)

# Apps Script answers this status on a successful update
SUCCESS_STATUS = "success"

_MISSING = object()


def _stringify(value: Any) -> str:
    """Render a JSON cell value the way the sheet displays it."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def match_row_value(row: Dict[str, Any], header: str) -> Any:
    """
    Find the value for a column title in a loosely keyed sheet row.

    Tries, in this order:
        1. the exact header
        2. the header with line breaks replaced by spaces
        3. the first key that contains the header's first line

    Returns the module sentinel _MISSING when nothing matches.
    """
    if header in row:
        return row[header]

    flattened = header.replace("\n", " ")
    if flattened in row:
        return row[flattened]

    prefix = first_line(header)
    for key, value in row.items():
        if prefix in key:
            return value

    return _MISSING


def map_sheet_row(row: Dict[str, Any], header_map: HeaderMap) -> StaffRecord:
    """Translate one sheet row into a StaffRecord."""
    values: Dict[str, str] = {}
    for identifier, header in header_map:
        value = match_row_value(row, header)
        values[identifier] = "" if value is _MISSING else _stringify(value)
    return StaffRecord.from_values(values)


class SheetClient:
    """
    Remote staff sheet client.

    Args:
        http_client: Shared httpx.AsyncClient (required).
        header_map: Column layout; defaults to the packaged layout.
        timeout: Per-request timeout override in seconds.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        header_map: Optional[HeaderMap] = None,
        timeout: float = 30.0,
    ) -> None:
        if http_client is None:
            raise ValueError(
                "http_client is required. Use the app's shared client "
                "from create_http_client_context()."
            )

        self._client = http_client
        self._header_map = header_map or get_header_map()
        self._timeout = timeout

    @property
    def header_map(self) -> HeaderMap:
        return self._header_map

    async def fetch_all(self, url: str) -> List[StaffRecord]:
        """
        Fetch every staff row from the sheet web app.

        Args:
            url: Web app URL.

        Returns:
            Roster in sheet order.

        Raises:
            SheetConnectionError: If the request fails or returns a non-2xx status.
            SheetFormatError: If the body is not a JSON array of objects.
        """
        try:
            response = await self._client.get(
                url, timeout=self._timeout, follow_redirects=True
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Sheet API error: {e.response.status_code} - {e.response.text[:200]}")
            raise SheetConnectionError(
                f"Sheet web app answered HTTP {e.response.status_code}", url=url
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Failed to reach sheet web app: {e}")
            raise SheetConnectionError(f"Network error: {e}", url=url) from e

        try:
            raw_rows = response.json()
        except ValueError as e:
            logger.error(f"Sheet web app returned invalid JSON: {e}")
            raise SheetFormatError("Response is not valid JSON", url=url) from e

        if not isinstance(raw_rows, list):
            logger.error(f"Sheet web app returned {type(raw_rows).__name__}, expected list")
            raise SheetFormatError("Invalid data format from sheet", url=url)

        records: List[StaffRecord] = []
        for index, row in enumerate(raw_rows):
            if not isinstance(row, dict):
                raise SheetFormatError(f"Row {index} is not an object", url=url)
            records.append(map_sheet_row(row, self._header_map))

        logger.info(f"Fetched {len(records)} staff record(s) from sheet")
        return records

    async def save_one(
        self,
        url: str,
        record: StaffRecord,
        header_map: Optional[HeaderMap] = None,
    ) -> bool:
        """
        Push one record to the sheet web app.

        The full key map travels with the data so the script can translate
        identifiers back to columns itself.

        Returns:
            True only if the response JSON carries status == "success".
        """
        key_map = (header_map or self._header_map).as_dict()
        payload = {
            "action": "update",
            "data": record.to_dict(),
            "keyMap": key_map,
        }

        try:
            # Apps Script only accepts simple requests, hence text/plain
            response = await self._client.post(
                url,
                content=json.dumps(payload),
                headers={"Content-Type": "text/plain;charset=utf-8"},
                timeout=self._timeout,
                follow_redirects=True,
            )
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Sheet API error saving BIL {record.BIL}: {e.response.status_code}")
            return False
        except Exception as e:
            logger.error(f"Failed to save BIL {record.BIL} to sheet: {e}")
            return False

        if isinstance(result, dict) and result.get("status") == SUCCESS_STATUS:
            logger.info(f"Saved BIL {record.BIL} to sheet")
            return True

        logger.warning(f"Sheet web app rejected update for BIL {record.BIL}: {result!r}"[:300])
        return False
