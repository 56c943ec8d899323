"""CSV ingestion for experiment datasets."""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from prompt_studio.core.errors import DataError

logger = structlog.get_logger()


@dataclass
class ParsedTable:
    """Header row plus one mapping per data row. All values are strings."""

    columns: list[str] = field(default_factory=list)
    data: list[dict[str, str]] = field(default_factory=list)


def _read_rows(text: str) -> list[list[str]]:
    """Split CSV text into trimmed rows.

    Any ``"`` toggles quoting, wherever it sits in the field, and ``""``
    inside quotes is a literal quote. Whitespace around quotes is trimmed
    with the rest of the field.
    """
    rows: list[list[str]] = []
    row: list[str] = []
    current: list[str] = []
    in_quotes = False
    quote_line = line = 1
    i, n = 0, len(text)

    def end_row() -> None:
        nonlocal row, current
        value = "".join(current).strip()
        # Blank and whitespace-only lines carry no row.
        if value or row:
            rows.append([*row, value])
        row, current = [], []

    while i < n:
        char = text[i]
        if char == '"':
            if in_quotes and text.startswith('""', i):
                current.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
            quote_line = line
        elif char == "," and not in_quotes:
            row.append("".join(current).strip())
            current = []
        elif char in "\r\n" and not in_quotes:
            if text.startswith("\r\n", i):
                i += 1
            line += 1
            end_row()
        else:
            if char == "\n":
                line += 1
            current.append(char)
        i += 1

    if in_quotes:
        raise DataError(f"Malformed CSV: quote opened on line {quote_line} is never closed")
    end_row()
    return rows


def parse_csv(text: str) -> ParsedTable:
    """Parse comma-separated text whose first row names the columns.

    Handles double-quoted fields, doubled-quote escapes and newlines inside
    quotes. Missing cells become ``""``; cells beyond the header are dropped.
    """
    if not text.strip():
        return ParsedTable()

    rows = _read_rows(text)
    if not rows:
        return ParsedTable()

    columns = rows[0]
    data: list[dict[str, str]] = []
    for line_no, row in enumerate(rows[1:], start=2):
        if len(row) > len(columns):
            logger.warning(
                "datasets.extra_cells_dropped",
                row=line_no,
                expected=len(columns),
                got=len(row),
            )
        data.append({col: (row[i] if i < len(row) else "") for i, col in enumerate(columns)})

    return ParsedTable(columns=columns, data=data)
