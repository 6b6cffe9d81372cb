"""
Staff Sheet Layer.

Translation between the staff spreadsheet (CSV export and Apps Script
JSON rows) and the internal StaffRecord model.

Components:
    - HeaderMap: Canonical column order and identifier <-> title mapping
    - StaffRecord: Closed, immutable record of one staff member
    - decode_csv / encode_csv: CSV fallback and export codec
    - SheetClient: Bulk read and single-record write over HTTP
"""

from staff_editor.core.sheet.exceptions import (
    SheetError,
    SheetConfigurationError,
    SheetSyncError,
    SheetConnectionError,
    SheetFormatError,
)
from staff_editor.core.sheet.columns import (
    ColumnDefinition,
    ColumnLayoutConfig,
    HeaderMap,
    first_line,
    get_header_map,
)
from staff_editor.core.sheet.models import StaffRecord, normalize_identity_number
from staff_editor.core.sheet.codec import (
    decode_csv,
    encode_csv,
    escape_value,
    iter_records,
)
from staff_editor.core.sheet.client import SheetClient, match_row_value, map_sheet_row

__all__ = [
    # Exceptions
    "SheetError",
    "SheetConfigurationError",
    "SheetSyncError",
    "SheetConnectionError",
    "SheetFormatError",
    # Column layout
    "ColumnDefinition",
    "ColumnLayoutConfig",
    "HeaderMap",
    "first_line",
    "get_header_map",
    # Model
    "StaffRecord",
    "normalize_identity_number",
    # CSV codec
    "decode_csv",
    "encode_csv",
    "escape_value",
    "iter_records",
    # Remote
    "SheetClient",
    "match_row_value",
    "map_sheet_row",
]
