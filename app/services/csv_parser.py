"""Delimited text parsing and CSV generation for bulk uploads.

Parsing rules:
  - blank / whitespace-only lines are dropped
  - the first non-blank line is the header row
  - cells are trimmed and stripped of surrounding quotes
  - quoted fields may contain commas (handled by the ``csv`` module)
  - ``row_index`` counts non-blank data rows from 1; the header is not counted

Header cells are canonicalised against a list of known template columns so
``Product Name``, ``product_name`` and ``productName`` all land on the same key.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from collections.abc import Iterable, Sequence

from app.core.exceptions import ValidationError
from app.schemas.upload import ParsedUpload, RawRow

logger = logging.getLogger(__name__)

_HEADER_KEY_RE = re.compile(r"[^a-z0-9]")

# Human-facing labels from older templates that do not reduce to a column name
_HEADER_SYNONYMS: dict[str, str] = {
    "lob": "lineOfBusiness",
    "provider": "insurerName",
    "providername": "insurerName",
    "insurer": "insurerName",
    "creatortype": "createdByType",
    "policytermyears": "policyTerm",
    "premiumpaymenttermyears": "premiumPaymentTerm",
    "uincode": "uin",
}


def _header_key(value: str) -> str:
    return _HEADER_KEY_RE.sub("", value.lower())


def _clean_cell(value: str) -> str:
    return value.strip().strip('"').strip()


def canonicalize_headers(headers: Sequence[str], known_columns: Iterable[str]) -> list[str]:
    """Map raw header cells onto *known_columns*; unknown headers are kept as-is."""
    by_key = {_header_key(col): col for col in known_columns}
    canonical: list[str] = []
    for header in headers:
        key = _header_key(header)
        target = by_key.get(key)
        if target is None and key in _HEADER_SYNONYMS and _header_key(_HEADER_SYNONYMS[key]) in by_key:
            target = _HEADER_SYNONYMS[key]
        canonical.append(target or header)
    return canonical


def parse_delimited_text(
    text: str, known_columns: Iterable[str] | None = None
) -> ParsedUpload:
    """Split raw CSV text into canonical headers and 1-indexed data rows."""
    text = text.lstrip("\ufeff")
    # Quoted cells may span blank lines, so blanks are dropped per record
    records = [
        record
        for record in csv.reader(io.StringIO(text), skipinitialspace=True)
        if any(_clean_cell(cell) for cell in record)
    ]
    if not records:
        return ParsedUpload(headers=[], rows=[])

    headers = [_clean_cell(cell) for cell in records[0]]
    if known_columns is not None:
        headers = canonicalize_headers(headers, known_columns)

    rows: list[RawRow] = []
    for position, record in enumerate(records[1:], start=1):
        cells = [_clean_cell(cell) for cell in record]
        if len(cells) > len(headers):
            logger.debug(
                "Row %d has %d cells for %d headers; extra cells ignored",
                position, len(cells), len(headers),
            )
        cells += [""] * (len(headers) - len(cells))
        rows.append(RawRow(row_index=position, columns=dict(zip(headers, cells))))

    return ParsedUpload(headers=headers, rows=rows)


def render_csv(columns: Sequence[str], rows: Iterable[Sequence[object]]) -> str:
    """Render a header plus rows as CSV text, quoting every cell."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(columns)
    for row in rows:
        writer.writerow(["" if cell is None else str(cell) for cell in row])
    return buffer.getvalue()


def build_error_report(
    failures: Sequence[tuple[int, Sequence[str], dict[str, str]]],
    headers: Sequence[str],
) -> str:
    """Regenerate a CSV holding only failed rows plus their error text.

    *failures* is ``(row_index, messages, columns)`` per failed row. The
    output re-uses the uploaded headers so the file can be fixed and
    re-uploaded as-is after dropping the first two columns.
    """
    if not failures:
        return ""
    out_headers = ["Row Number", "Error Details", *headers]
    body = (
        [str(row_index), "; ".join(messages), *[columns.get(h, "") for h in headers]]
        for row_index, messages, columns in failures
    )
    return render_csv(out_headers, body)


def decode_upload(raw: bytes) -> str:
    """Decode uploaded bytes as UTF-8, tolerating a byte-order mark."""
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ValidationError(
            f"File is not valid UTF-8 text (byte {exc.start}); save it as CSV UTF-8 and retry."
        ) from exc
