"""Unit tests for TextExtractor format routing and the per-format extractors.

Binary fixtures (PDF, DOCX, XLSX, XLS) are generated in memory with the same
libraries the extractor reads them with, or their writer counterparts.
"""

from __future__ import annotations

import io
import time
from unittest.mock import patch

import pymupdf as fitz
import pytest
import xlwt
from docx import Document as DocxDocument
from openpyxl import Workbook

from groundwell.services import text_extractor
from groundwell.services.text_extractor import TextExtractor, is_supported
from groundwell.utils.errors import ExtractionError, ExtractionTimeoutError

_DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
_XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _make_pdf(text: str) -> bytes:
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


def _make_docx() -> bytes:
    document = DocxDocument()
    document.add_paragraph("Quarterly report")
    table = document.add_table(rows=2, cols=2)
    table.cell(0, 0).text = "region"
    table.cell(0, 1).text = "revenue"
    table.cell(1, 0).text = "north"
    table.cell(1, 1).text = "42"
    document.add_paragraph("End of report")
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def _make_xlsx() -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(["name", "qty"])
    sheet.append(["apple", 3])
    sheet.append(["pear", None])
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def _make_xls() -> bytes:
    workbook = xlwt.Workbook()
    stock = workbook.add_sheet("Stock")
    for row, values in enumerate([("sku", "qty"), ("A1", 7), ("B2", 2.5)]):
        for col, value in enumerate(values):
            stock.write(row, col, value)
    workbook.add_sheet("Notes").write(0, 0, "reorder monthly")
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def extractor() -> TextExtractor:
    return TextExtractor(timeout_seconds=30.0)


class TestRouting:
    @pytest.mark.parametrize(
        ("content_type", "filename"),
        [
            ("application/pdf", "a.pdf"),
            (_DOCX, "a.docx"),
            (_XLSX, "a.xlsx"),
            ("application/vnd.ms-excel", "a.xls"),
            ("text/xml", "a.xml"),
            ("application/xml", "a.xml"),
            ("text/csv", "a.csv"),
            ("text/plain", "a.txt"),
            ("text/markdown", "a.md"),
            ("text/plain; charset=utf-8", "a.txt"),
            ("application/octet-stream", "notes.md"),
            ("application/octet-stream", "REPORT.PDF"),
        ],
    )
    def test_supported(self, content_type: str, filename: str) -> None:
        assert is_supported(content_type, filename)

    @pytest.mark.parametrize(
        ("content_type", "filename"),
        [
            ("image/png", "photo.png"),
            ("application/octet-stream", "archive.zip"),
            ("application/octet-stream", "no_extension"),
        ],
    )
    def test_unsupported(self, content_type: str, filename: str) -> None:
        assert not is_supported(content_type, filename)

    @pytest.mark.asyncio
    async def test_unsupported_type_raises(self, extractor: TextExtractor) -> None:
        with pytest.raises(ExtractionError, match="Unsupported file type"):
            await extractor.extract(b"\x89PNG", "image/png", "photo.png")

    @pytest.mark.asyncio
    async def test_octet_stream_uses_extension(self, extractor: TextExtractor) -> None:
        text = await extractor.extract(b"name,qty\nfig,1\n", "application/octet-stream", "x.csv")
        assert text == "name qty\nfig 1\n"


class TestPlainText:
    @pytest.mark.asyncio
    async def test_round_trip_is_identical(self, extractor: TextExtractor) -> None:
        original = "Héllo wörld\n\n  indented line\ttab\nlast line without newline"
        text = await extractor.extract(original.encode("utf-8"), "text/plain", "notes.txt")
        assert text == original

    @pytest.mark.asyncio
    async def test_invalid_utf8_raises(self, extractor: TextExtractor) -> None:
        with pytest.raises(ExtractionError, match="UTF-8"):
            await extractor.extract(b"\xff\xfe\xfa broken", "text/plain", "bad.txt")


class TestStructuredText:
    @pytest.mark.asyncio
    async def test_csv_rows_become_lines(self, extractor: TextExtractor) -> None:
        data = b'name,qty\napple,3\n"pear, green",5\n'
        text = await extractor.extract(data, "text/csv", "fruit.csv")
        assert text == "name qty\napple 3\npear, green 5\n"

    @pytest.mark.asyncio
    async def test_xml_text_and_tails(self, extractor: TextExtractor) -> None:
        data = b"<root><a>Hello</a><b>World<c>nested</c>tail</b></root>"
        text = await extractor.extract(data, "application/xml", "doc.xml")
        assert text == "Hello World nested tail "

    @pytest.mark.asyncio
    async def test_malformed_xml_raises(self, extractor: TextExtractor) -> None:
        with pytest.raises(ExtractionError, match="XML parse error"):
            await extractor.extract(b"<root><unclosed></root>", "text/xml", "bad.xml")


class TestOfficeFormats:
    @pytest.mark.asyncio
    async def test_docx_paragraphs_and_tables(self, extractor: TextExtractor) -> None:
        text = await extractor.extract(_make_docx(), _DOCX, "report.docx")

        assert "Quarterly report\n" in text
        assert "region\trevenue\t\n" in text
        assert "north\t42\t\n" in text
        # Body order is preserved: the table sits between the two paragraphs.
        assert text.index("Quarterly") < text.index("region") < text.index("End of report")

    @pytest.mark.asyncio
    async def test_corrupt_docx_raises(self, extractor: TextExtractor) -> None:
        with pytest.raises(ExtractionError, match="DOCX"):
            await extractor.extract(b"not a zip file", _DOCX, "broken.docx")

    @pytest.mark.asyncio
    async def test_xlsx_rows_tab_separated(self, extractor: TextExtractor) -> None:
        text = await extractor.extract(_make_xlsx(), _XLSX, "stock.xlsx")

        assert "name\tqty\n" in text
        assert "apple\t3\n" in text
        assert "pear\t\n" in text

    @pytest.mark.asyncio
    async def test_legacy_xls_rows_tab_separated(self, extractor: TextExtractor) -> None:
        text = await extractor.extract(_make_xls(), "application/vnd.ms-excel", "stock.xls")

        assert "sku\tqty" in text
        assert text == "sku\tqty\nA1\t7\nB2\t2.5\n\nreorder monthly\n\n"

    @pytest.mark.asyncio
    async def test_legacy_xls_by_extension(self, extractor: TextExtractor) -> None:
        text = await extractor.extract(_make_xls(), "application/octet-stream", "stock.xls")
        assert "A1\t7\n" in text

    @pytest.mark.asyncio
    async def test_corrupt_legacy_xls_raises(self, extractor: TextExtractor) -> None:
        with pytest.raises(ExtractionError, match="spreadsheet"):
            await extractor.extract(b"\xd0\xcf\x11\xe0legacy", "application/vnd.ms-excel", "old.xls")


class TestPdf:
    @pytest.mark.asyncio
    async def test_pdf_text(self, extractor: TextExtractor) -> None:
        text = await extractor.extract(_make_pdf("Grounded answers"), "application/pdf", "a.pdf")
        assert "Grounded answers" in text

    @pytest.mark.asyncio
    async def test_garbage_pdf_raises(self, extractor: TextExtractor) -> None:
        with pytest.raises(ExtractionError):
            await extractor.extract(b"definitely not a pdf", "application/pdf", "bad.pdf")


class TestTimeout:
    @pytest.mark.asyncio
    async def test_slow_extraction_times_out(self) -> None:
        def _slow(_data: bytes) -> str:
            time.sleep(0.5)
            return "too late"

        extractor = TextExtractor(timeout_seconds=0.05)
        with patch.dict(text_extractor._EXTRACTORS, {"pdf": _slow}):
            with pytest.raises(ExtractionTimeoutError, match="timed out"):
                await extractor.extract(b"%PDF-1.4", "application/pdf", "slow.pdf")

    def test_timeout_error_is_an_extraction_error(self) -> None:
        assert issubclass(ExtractionTimeoutError, ExtractionError)
