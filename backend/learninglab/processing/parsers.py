"""
Local document parsers.

Each function takes the raw bytes of one file and returns plain text
("" when the file holds no text). Parser exceptions propagate; the
dispatcher wraps them into ExtractionError with the strategy name.
"""

from __future__ import annotations

import csv
import io
import logging
import re

logger = logging.getLogger(__name__)

# Printable runs in legacy Word binaries: 8-bit text and UTF-16LE text.
_ASCII_RUN_RE   = re.compile(rb"[\x20-\x7e\t\r\n]{4,}")
_UTF16LE_RUN_RE = re.compile(rb"(?:[\x20-\x7e]\x00){4,}")


def decode_text(data: bytes) -> str:
    """UTF-8 decode; undecodable bytes become U+FFFD instead of failing."""
    return data.decode("utf-8", errors="replace")


def parse_pdf(data: bytes) -> str:
    """Extract text from PDF bytes using pypdf."""
    from pypdf import PdfReader

    reader = PdfReader(io.BytesIO(data))
    pages = [page.extract_text() or "" for page in reader.pages]
    return "\n\n".join(p for p in pages if p.strip())


def parse_csv(data: bytes) -> str:
    """One line per row, non-empty cells joined with ' | '."""
    reader = csv.reader(io.StringIO(decode_text(data)))
    rows = []
    for row in reader:
        values = [cell.strip() for cell in row if cell.strip()]
        if values:
            rows.append(" | ".join(values))
    return "\n".join(rows)


def parse_xlsx(data: bytes) -> str:
    """Every worksheet, prefixed with a [sheet]<title> line."""
    import openpyxl

    wb = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    try:
        out = []
        for ws in wb.worksheets:
            out.append(f"[sheet]{ws.title}")
            for row in ws.iter_rows(values_only=True):
                line = " | ".join(str(v).strip() for v in row if v is not None and str(v).strip())
                if line:
                    out.append(line)
        return "\n".join(out)
    finally:
        wb.close()


def parse_xls(data: bytes) -> str:
    """Legacy .xls via xlrd, same layout as parse_xlsx."""
    import xlrd

    book = xlrd.open_workbook(file_contents=data)
    out = []
    for sheet in book.sheets():
        out.append(f"[sheet]{sheet.name}")
        for rx in range(sheet.nrows):
            values = [str(v).strip() for v in sheet.row_values(rx) if str(v).strip()]
            if values:
                out.append(" | ".join(values))
    return "\n".join(out)


def parse_docx(data: bytes) -> str:
    """Paragraphs, then table rows (cells joined with ' | ')."""
    import docx

    doc = docx.Document(io.BytesIO(data))
    chunks = [p.text.strip() for p in doc.paragraphs if p.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            line = " | ".join(c.text.strip() for c in row.cells if c.text.strip())
            if line:
                chunks.append(line)
    return "\n".join(chunks)


def parse_doc_legacy(data: bytes) -> str:
    """
    Best-effort text for binary .doc files: the longer of the 8-bit and
    UTF-16LE printable runs found in the file.
    """
    ascii_runs = [m.decode("ascii").strip() for m in _ASCII_RUN_RE.findall(data)]
    utf16_runs = [m.decode("utf-16-le").strip() for m in _UTF16LE_RUN_RE.findall(data)]

    ascii_text = "\n".join(r for r in ascii_runs if r)
    utf16_text = "\n".join(r for r in utf16_runs if r)
    return utf16_text if len(utf16_text) > len(ascii_text) else ascii_text
