"""
app/parsing/csv_reader.py

Tabular text reader for decoded order exports.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass

from app.domain.order_ingestion import RawRow

logger = logging.getLogger(__name__)

DELIMITER_CANDIDATES: tuple[str, ...] = (",", "\t", ";")


class TableParseError(ValueError):
    """
    Raised when decoded text cannot be read as a delimited table.
    """


@dataclass(frozen=True)
class ParsedTable:
    headers: tuple[str, ...]
    rows: tuple[RawRow, ...]
    delimiter: str = ","
    skipped_blank_rows: int = 0


def clean_header(value: str) -> str:
    return value.replace("\ufeff", "").strip()


def sniff_delimiter(first_line: str) -> str:
    """
    Pick the delimiter that splits the header line into the most columns.

    Quoted sections are honoured so a comma inside a quoted tab-separated
    header does not win. Falls back to comma.
    """

    best = DELIMITER_CANDIDATES[0]
    best_count = 1
    for candidate in DELIMITER_CANDIDATES:
        try:
            parsed = next(csv.reader([first_line], delimiter=candidate), [])
        except csv.Error:
            continue
        if len(parsed) > best_count:
            best = candidate
            best_count = len(parsed)
    return best


def read_header(text: str) -> tuple[str, ...]:
    """
    Parse only the first record of ``text`` as header tokens.
    """

    first_line = text.lstrip("\ufeff").split("\n", 1)[0].rstrip("\r")
    if not first_line.strip():
        return ()
    delimiter = sniff_delimiter(first_line)
    try:
        reader = csv.reader(io.StringIO(text.lstrip("\ufeff"), newline=""), delimiter=delimiter)
        raw_headers = next(reader, [])
    except csv.Error as exc:
        raise TableParseError(f"Invalid CSV header: {exc}") from exc
    return tuple(clean_header(value) for value in raw_headers)


def read_table(text: str) -> ParsedTable:
    """
    Read a header row and all data rows from decoded text.

    Quoted fields may contain the delimiter and line breaks. Rows that are
    entirely empty are skipped but still consume a line number, so numbers
    shown to users match the data record position in the file. Missing
    trailing cells read as empty strings; surplus cells are ignored.
    """

    body = text.lstrip("\ufeff")
    first_line = body.split("\n", 1)[0].rstrip("\r")
    delimiter = sniff_delimiter(first_line) if first_line.strip() else ","

    rows: list[RawRow] = []
    skipped_blank = 0
    surplus_rows = 0
    try:
        reader = csv.reader(io.StringIO(body, newline=""), delimiter=delimiter)
        raw_headers = next(reader, [])
        headers = tuple(clean_header(value) for value in raw_headers)

        # First occurrence wins for duplicated header tokens.
        positions: dict[str, int] = {}
        for index, header in enumerate(headers):
            if header and header not in positions:
                positions[header] = index

        for line_number, cells in enumerate(reader, start=1):
            if not cells or all(not cell.strip() for cell in cells):
                skipped_blank += 1
                continue
            if len(cells) > len(headers):
                surplus_rows += 1
            values = {
                header: (cells[index] if index < len(cells) else "")
                for header, index in positions.items()
            }
            rows.append(RawRow(values=values, line_number=line_number))
    except csv.Error as exc:
        raise TableParseError(f"Invalid CSV format: {exc}") from exc

    if surplus_rows:
        logger.info("CSV rows with more cells than headers: %d (surplus cells ignored)", surplus_rows)

    return ParsedTable(
        headers=headers,
        rows=tuple(rows),
        delimiter=delimiter,
        skipped_blank_rows=skipped_blank,
    )
