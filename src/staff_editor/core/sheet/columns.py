"""
Staff Sheet Column Layout.

Loads the column definitions from the packaged staff_columns.json file.
This is the single source of truth for field identifiers, their display
headers, and the canonical column order used by both the CSV codec and
the remote sheet client.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator

from staff_editor.core.sheet.exceptions import SheetConfigurationError


# Path to the column layout file (package root)
_CONFIG_FILE = Path(__file__).parent.parent.parent / "staff_columns.json"


class ColumnDefinition(BaseModel):
    """
    One spreadsheet column.

    Attributes:
        key: Stable internal field identifier (e.g., "NO_KAD_PENGENALAN").
        header: Display header exactly as written in the sheet. May span lines.
    """
    key: str
    header: str

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        """Identifiers are upper snake case."""
        if not v or v != v.upper() or " " in v:
            raise ValueError(f"Invalid field identifier: {v!r}")
        return v


class ColumnLayoutConfig(BaseModel):
    """Root model for staff_columns.json."""
    schema_version: str = "1.0"
    description: str = ""
    decorative_rows: List[str] = Field(default_factory=list)
    key_field: str
    login_field: str
    columns: List[ColumnDefinition]


class HeaderMap:
    """
    Ordered, immutable bijection between field identifiers and display headers.

    Usage:
        header_map = get_header_map()
        header_map.header_for("NAMA")               # "NAMA"
        header_map.identifier_for("NO KAD PENGENALAN")  # "NO_KAD_PENGENALAN"
    """

    def __init__(
        self,
        columns: List[Tuple[str, str]],
        decorative_rows: Optional[List[str]] = None,
        key_field: str = "BIL",
        login_field: str = "NO_KAD_PENGENALAN",
    ) -> None:
        keys = [key for key, _ in columns]
        headers = [header for _, header in columns]
        if len(set(keys)) != len(keys):
            raise SheetConfigurationError("Duplicate field identifiers in column layout")
        if len(set(headers)) != len(headers):
            raise SheetConfigurationError("Duplicate headers in column layout")
        if len(columns) < 2:
            raise SheetConfigurationError("Column layout needs at least two columns")
        for field_name in (key_field, login_field):
            if field_name not in keys:
                raise SheetConfigurationError(f"Field '{field_name}' not found in column layout")

        self._identifiers: Tuple[str, ...] = tuple(keys)
        self._headers: Tuple[str, ...] = tuple(headers)
        self._by_identifier = dict(columns)
        self._by_header = {header: key for key, header in columns}
        self._decorative_rows: Tuple[str, ...] = tuple(decorative_rows or ())
        self._key_field = key_field
        self._login_field = login_field

    @property
    def identifiers(self) -> Tuple[str, ...]:
        """Field identifiers in canonical column order."""
        return self._identifiers

    @property
    def headers(self) -> Tuple[str, ...]:
        """Display headers in canonical column order."""
        return self._headers

    @property
    def decorative_rows(self) -> Tuple[str, ...]:
        return self._decorative_rows

    @property
    def key_field(self) -> str:
        return self._key_field

    @property
    def login_field(self) -> str:
        return self._login_field

    @property
    def header_sentinel(self) -> str:
        """Literal prefix of the true header row (first two headers)."""
        return f"{self._headers[0]},{self._headers[1]}"

    def header_for(self, identifier: str) -> str:
        """Get the display header for an identifier. Raises KeyError if unknown."""
        return self._by_identifier[identifier]

    def identifier_for(self, header: str) -> Optional[str]:
        """Get the identifier for an exact display header, or None."""
        return self._by_header.get(header)

    def as_dict(self) -> dict[str, str]:
        """Fresh identifier -> header dict, in column order."""
        return dict(self._by_identifier)

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        return iter(zip(self._identifiers, self._headers))

    def __len__(self) -> int:
        return len(self._identifiers)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._by_identifier


def first_line(header: str) -> str:
    """First physical line of a (possibly multi-line) header."""
    return header.split("\n")[0]


@lru_cache(maxsize=1)
def _load_column_layout() -> ColumnLayoutConfig:
    """Load and cache the staff_columns.json file."""
    if not _CONFIG_FILE.exists():
        raise SheetConfigurationError(
            f"Column layout not found: {_CONFIG_FILE}. "
            "Please ensure staff_columns.json ships with the package."
        )

    with open(_CONFIG_FILE, "r", encoding="utf-8") as f:
        raw = json.load(f)

    try:
        return ColumnLayoutConfig.model_validate(raw)
    except ValidationError as e:
        raise SheetConfigurationError(f"Invalid column layout: {e}") from e


@lru_cache(maxsize=1)
def get_header_map() -> HeaderMap:
    """
    Get the process-wide header map.

    Raises:
        SheetConfigurationError: If the layout is invalid or does not match
            the StaffRecord fields.
    """
    from staff_editor.core.sheet.models import StaffRecord

    layout = _load_column_layout()
    header_map = HeaderMap(
        [(c.key, c.header) for c in layout.columns],
        decorative_rows=layout.decorative_rows,
        key_field=layout.key_field,
        login_field=layout.login_field,
    )

    record_fields = tuple(StaffRecord.model_fields)
    if header_map.identifiers != record_fields:
        raise SheetConfigurationError(
            "Column layout does not match StaffRecord fields. "
            f"Layout: {list(header_map.identifiers)}, record: {list(record_fields)}"
        )
    return header_map
