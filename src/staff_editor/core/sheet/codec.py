"""
Staff Sheet CSV Codec.

Translates between the human-authored CSV export of the staff sheet and
StaffRecord values.

The CSV layout is:
    - decorative title rows (school name, subtitle)
    - the true header row, starting with "BIL,NAMA"
    - one row per staff member

Columns are resolved by their fixed position in the canonical column order
from staff_columns.json, never by the order found in the input. The parsed
header row is only checked against the canonical headers and mismatches
are logged.
"""

import logging
from typing import Iterable, Iterator, List, Optional, Tuple

from staff_editor.core.sheet.columns import HeaderMap, first_line, get_header_map
from staff_editor.core.sheet.models import StaffRecord

logger = logging.getLogger(__name__)

# Characters that force a data value to be quoted
_QUOTE_TRIGGERS = (",", "\n", '"')


# =============================================================================
# Decoding
# =============================================================================


def normalize_newlines(text: str) -> str:
    """Convert \\r\\n and lone \\r line breaks to \\n."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _find_header_offset(text: str, header_map: HeaderMap) -> Optional[int]:
    """
    Character offset of the true header row, or None if there is none.

    The header row is recognised by the sentinel prefix "BIL,NAMA". Quotes
    around header cells are ignored so our own exports are recognised too.
    """
    sentinel = header_map.header_sentinel
    offset = 0
    for line in text.split("\n"):
        if line.replace('"', "").startswith(sentinel):
            return offset
        offset += len(line) + 1
    return None


def _scan_record(text: str, start: int, multiline: bool = True) -> Tuple[List[str], int, bool]:
    """
    Split the record at start into raw cells, quotes included.

    A running in-quotes flag is toggled by every '"', so an escaped '""'
    leaves it unchanged. Commas inside quotes are literal. With multiline,
    a line break inside quotes belongs to the cell; otherwise every line
    break ends the record.

    Returns:
        (raw cells, offset of the next record, whether all quotes were closed)
    """
    cells: List[str] = []
    in_quotes = False
    cell_start = start
    for index in range(start, len(text)):
        char = text[index]
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            cells.append(text[cell_start:index])
            cell_start = index + 1
        elif char == "\n" and (not in_quotes or not multiline):
            cells.append(text[cell_start:index])
            return cells, index + 1, not in_quotes
    cells.append(text[cell_start:])
    return cells, len(text), not in_quotes


def _cell_value(raw: str) -> str:
    """Trim a raw cell, then strip outer quotes and unescape '""'."""
    token = raw.strip()
    if len(token) >= 2 and token.startswith('"') and token.endswith('"'):
        return token[1:-1].replace('""', '"')
    return token


def _iter_rows(text: str, start: int) -> Iterator[List[str]]:
    """
    Yield decoded cell lists from start to the end of text.

    A quote left open would swallow every following row into one cell.
    When that happens the rest of the text, from the record holding the
    open quote, is decoded one physical line per row instead.
    """
    position = start
    while position < len(text):
        cells, next_position, balanced = _scan_record(text, position)
        if not balanced:
            line_number = text.count("\n", 0, position) + 1
            logger.warning(
                f"Unterminated quoted field in CSV row at line {line_number}; "
                f"decoding the remaining rows line by line"
            )
            while position < len(text):
                cells, position, _ = _scan_record(text, position, multiline=False)
                yield [_cell_value(cell) for cell in cells]
            return
        yield [_cell_value(cell) for cell in cells]
        position = next_position


def _is_blank(row: List[str]) -> bool:
    return len(row) == 1 and not row[0]


def _check_header_row(row: List[str], header_map: HeaderMap) -> None:
    """Log canonical columns whose title in the input does not match."""
    mismatched = []
    for index, expected in enumerate(header_map.headers):
        found = row[index] if index < len(row) else ""
        if first_line(found).strip() != first_line(expected).strip():
            mismatched.append(f"{index}:{first_line(expected).strip()!r}")
    if mismatched:
        logger.warning(
            f"CSV header row differs from canonical layout at {len(mismatched)} column(s): "
            f"{', '.join(mismatched[:5])}. Values are still read by position."
        )


def iter_records(text: str, header_map: Optional[HeaderMap] = None) -> Iterator[StaffRecord]:
    """
    Lazily decode staff records from CSV text.

    Each field is trimmed before its outer quotes are removed, so
    whitespace inside quotes is kept. Quoted fields may contain commas,
    doubled quotes and line breaks. Rows shorter than the canonical layout
    decode their missing trailing fields to ''. Blank rows are skipped.
    Text without a header row yields nothing.
    """
    header_map = header_map or get_header_map()
    normalized = normalize_newlines(text or "")

    offset = _find_header_offset(normalized, header_map)
    if offset is None:
        logger.warning("No header row found in CSV text; nothing decoded")
        return

    rows = _iter_rows(normalized, offset)
    _check_header_row(next(rows), header_map)

    identifiers = header_map.identifiers
    for values in rows:
        if _is_blank(values):
            continue
        yield StaffRecord.from_values({
            identifier: values[index] if index < len(values) else ""
            for index, identifier in enumerate(identifiers)
        })


def decode_csv(text: str, header_map: Optional[HeaderMap] = None) -> List[StaffRecord]:
    """Decode CSV text into a roster (eager form of iter_records)."""
    records = list(iter_records(text, header_map))
    logger.debug(f"Decoded {len(records)} staff record(s) from CSV")
    return records


# =============================================================================
# Encoding
# =============================================================================


def quote_always(value: str) -> str:
    """Wrap in quotes, doubling embedded quotes."""
    return '"' + value.replace('"', '""') + '"'


def escape_value(value: str) -> str:
    """Quote a data value only if it contains a comma, a line break or a quote."""
    if any(trigger in value for trigger in _QUOTE_TRIGGERS):
        return quote_always(value)
    return value


def encode_csv(records: Iterable[StaffRecord], header_map: Optional[HeaderMap] = None) -> str:
    """
    Encode a roster as CSV text in the sheet's layout.

    Emits the decorative rows verbatim, the header row with every title
    quoted, then one row per record in canonical column order. Rows are
    joined with '\\n' and there is no trailing newline.
    """
    header_map = header_map or get_header_map()

    lines = list(header_map.decorative_rows)
    lines.append(",".join(quote_always(header) for header in header_map.headers))

    count = 0
    for record in records:
        lines.append(",".join(
            escape_value(record.value_of(identifier)) for identifier in header_map.identifiers
        ))
        count += 1

    logger.debug(f"Encoded {count} staff record(s) to CSV")
    return "\n".join(lines)
