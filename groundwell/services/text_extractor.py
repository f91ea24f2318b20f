"""Multi-format text extraction for uploaded documents.

# ─── ROUTING ──────────────────────────────────────────────────────────
#
#   declared content type          extension       extractor
#   ──────────────────────────────────────────────────────────
#   application/pdf                .pdf            PyMuPDF, pypdf fallback
#   ...wordprocessingml.document   .docx           python-docx
#   ...spreadsheetml.sheet         .xlsx           openpyxl
#   application/vnd.ms-excel       .xls            xlrd (OLE2), openpyxl
#   text/xml, application/xml      .xml            xml.etree
#   text/csv                       .csv            csv
#   text/plain, text/markdown      .txt, .md       strict UTF-8 decode
#
# The content type decides first.  Only when it is the generic
# application/octet-stream (or something we don't recognise) does the
# filename extension pick the extractor.
#
# PDF, DOCX and spreadsheets are parsed in a worker thread under a
# wall-clock timeout, so a pathological file can neither block the event
# loop nor hang an ingestion task forever.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import csv
import io
import xml.etree.ElementTree as ET
from typing import Callable

import pymupdf as fitz
import structlog
import xlrd
from docx import Document as DocxDocument
from docx.oxml.ns import qn
from docx.table import Table
from docx.text.paragraph import Paragraph
from openpyxl import load_workbook
from pypdf import PdfReader

from groundwell.utils.errors import ExtractionError, ExtractionTimeoutError

logger = structlog.get_logger(logger_name=__name__)

OCTET_STREAM = "application/octet-stream"

_MIME_FORMATS: dict[str, str] = {
    "application/pdf": "pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "spreadsheet",
    "application/vnd.ms-excel": "spreadsheet",
    "text/xml": "xml",
    "application/xml": "xml",
    "text/csv": "csv",
    "text/plain": "text",
    "text/markdown": "text",
}

_EXTENSION_FORMATS: dict[str, str] = {
    "pdf": "pdf",
    "docx": "docx",
    "xlsx": "spreadsheet",
    "xls": "spreadsheet",
    "xml": "xml",
    "csv": "csv",
    "txt": "text",
    "md": "text",
}

SUPPORTED_MIME_TYPES = frozenset({*_MIME_FORMATS, OCTET_STREAM})
SUPPORTED_EXTENSIONS = frozenset(_EXTENSION_FORMATS)

# Formats parsed off the event loop under the timeout.
_BLOCKING_FORMATS = frozenset({"pdf", "docx", "spreadsheet"})

DEFAULT_TIMEOUT_SECONDS = 120.0


def _normalise_content_type(content_type: str) -> str:
    return content_type.split(";", 1)[0].strip().lower()


def _extension(filename: str) -> str:
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def _resolve_format(content_type: str, filename: str) -> str | None:
    fmt = _MIME_FORMATS.get(_normalise_content_type(content_type))
    if fmt is not None:
        return fmt
    return _EXTENSION_FORMATS.get(_extension(filename))


def is_supported(content_type: str, filename: str) -> bool:
    """Return ``True`` if the declared type (or, for octet-stream, the extension) is supported."""
    return _resolve_format(content_type, filename) is not None


# ---------------------------------------------------------------------------
# Format extractors (synchronous; heavy ones run in a worker thread)
# ---------------------------------------------------------------------------


def _extract_pdf(data: bytes) -> str:
    # Primary: PyMuPDF.  Its text is returned as soon as it is non-blank, so
    # a failure in the fallback can never hide a good primary result.
    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            text = "\n".join(page.get_text("text") for page in doc)
        if text.strip():
            logger.info("pdf_extracted", method="pymupdf", chars=len(text))
            return text
        logger.warning("pdf_primary_empty", method="pymupdf")
    except Exception as exc:  # noqa: BLE001  any PyMuPDF failure falls through to pypdf
        logger.warning("pdf_primary_failed", method="pymupdf", error=str(exc))

    try:
        reader = PdfReader(io.BytesIO(data))
        text = "\n".join(page.extract_text() or "" for page in reader.pages)
    except Exception as exc:  # noqa: BLE001  pypdf raises a wide range of parse errors
        raise ExtractionError(message=f"Failed to extract text from PDF: {exc}") from exc
    logger.info("pdf_extracted", method="pypdf", chars=len(text))
    return text


def _paragraph_runs(paragraph: Paragraph) -> str:
    return "".join(run.text for run in paragraph.runs)


def _extract_docx(data: bytes) -> str:
    try:
        document = DocxDocument(io.BytesIO(data))
    except Exception as exc:  # noqa: BLE001  zip, XML, and package errors all mean "not a DOCX"
        raise ExtractionError(message=f"Failed to read DOCX: {exc}") from exc

    parts: list[str] = []
    # Walk the body in order so tables stay where they appear in the text.
    for child in document.element.body.iterchildren():
        if child.tag == qn("w:p"):
            parts.append(_paragraph_runs(Paragraph(child, document)))
            parts.append("\n")
        elif child.tag == qn("w:tbl"):
            for row in Table(child, document).rows:
                for cell in row.cells:
                    for paragraph in cell.paragraphs:
                        parts.append(_paragraph_runs(paragraph))
                        parts.append("\t")
                parts.append("\n")
    return "".join(parts)


# OLE2 compound-file signature; legacy BIFF .xls workbooks start with it.
_OLE2_MAGIC = b"\xd0\xcf\x11\xe0"


def _xls_cell(value: object) -> str:
    # BIFF stores every number as a float.
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _extract_legacy_xls(data: bytes) -> str:
    try:
        book = xlrd.open_workbook(file_contents=data, on_demand=True)
    except Exception as exc:  # noqa: BLE001  xlrd raises XLRDError, CompDocError and struct errors
        raise ExtractionError(message=f"Failed to read spreadsheet: {exc}") from exc

    lines: list[str] = []
    try:
        for index in range(book.nsheets):
            sheet = book.sheet_by_index(index)
            for row in range(sheet.nrows):
                lines.append("\t".join(_xls_cell(value) for value in sheet.row_values(row)))
            lines.append("")
    finally:
        book.release_resources()
    return "\n".join(lines) + ("\n" if lines else "")


def _extract_spreadsheet(data: bytes) -> str:
    # The magic bytes pick the reader, whatever the declared type.
    if data[:4] == _OLE2_MAGIC:
        return _extract_legacy_xls(data)

    try:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception as exc:  # noqa: BLE001  zip and XML errors all mean "not a workbook"
        raise ExtractionError(message=f"Failed to read spreadsheet: {exc}") from exc

    lines: list[str] = []
    try:
        for sheet in workbook.worksheets:
            for row in sheet.iter_rows(values_only=True):
                lines.append("\t".join("" if cell is None else str(cell) for cell in row))
            lines.append("")
    finally:
        workbook.close()
    return "\n".join(lines) + ("\n" if lines else "")


def _collect_xml_text(element: ET.Element, out: list[str]) -> None:
    if element.text and element.text.strip():
        out.append(element.text.strip())
    for child in element:
        _collect_xml_text(child, out)
        if child.tail and child.tail.strip():
            out.append(child.tail.strip())


def _extract_xml(data: bytes) -> str:
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise ExtractionError(message=f"XML parse error: {exc}") from exc
    pieces: list[str] = []
    _collect_xml_text(root, pieces)
    return "".join(f"{piece} " for piece in pieces)


def _extract_csv(data: bytes) -> str:
    try:
        decoded = data.decode("utf-8-sig")
        rows = list(csv.reader(io.StringIO(decoded, newline="")))
    except (UnicodeDecodeError, csv.Error) as exc:
        raise ExtractionError(message=f"Failed to parse CSV: {exc}") from exc
    return "".join(" ".join(row) + "\n" for row in rows)


def _extract_plaintext(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ExtractionError(message=f"File is not valid UTF-8 text: {exc}") from exc


_EXTRACTORS: dict[str, Callable[[bytes], str]] = {
    "pdf": _extract_pdf,
    "docx": _extract_docx,
    "spreadsheet": _extract_spreadsheet,
    "xml": _extract_xml,
    "csv": _extract_csv,
    "text": _extract_plaintext,
}


# ---------------------------------------------------------------------------
# Public service
# ---------------------------------------------------------------------------


class TextExtractor:
    """Convert uploaded file bytes into a single plain-text string.

    Parameters
    ----------
    timeout_seconds:
        Wall-clock limit for the PDF / DOCX / spreadsheet extractors.
    """

    def __init__(self, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self._timeout = timeout_seconds

    @staticmethod
    def is_supported(content_type: str, filename: str) -> bool:
        return is_supported(content_type, filename)

    async def extract(self, data: bytes, content_type: str, filename: str) -> str:
        """Extract text from *data*.

        Raises
        ------
        ExtractionError
            Unsupported type, corrupt file, or undecodable text.
        ExtractionTimeoutError
            A heavy format took longer than the configured limit.
        """
        fmt = _resolve_format(content_type, filename)
        if fmt is None:
            raise ExtractionError(
                message=f"Unsupported file type: {content_type} (ext: {_extension(filename) or 'none'})"
            )

        extractor = _EXTRACTORS[fmt]
        if fmt not in _BLOCKING_FORMATS:
            return extractor(data)

        logger.info("extraction_started", filename=filename, format=fmt, size_bytes=len(data))
        try:
            text = await asyncio.wait_for(asyncio.to_thread(extractor, data), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            logger.error("extraction_timed_out", filename=filename, timeout=self._timeout)
            raise ExtractionTimeoutError(
                message=f"Text extraction timed out after {self._timeout:g}s for '{filename}'"
            ) from exc
        logger.info("extraction_finished", filename=filename, format=fmt, chars=len(text))
        return text
